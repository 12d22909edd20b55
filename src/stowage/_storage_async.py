"""StorageAsync: session that owns providers, buckets and cross-provider transfers."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from stowage.core.config import BucketConfig, ProviderConfig, StorageConfig
from stowage.core.entries import FileEntry
from stowage.core.exceptions import (
    DuplicatedElementError,
    InvalidParamsError,
    NotFoundError,
    StorageError,
    UnknownError,
)
from stowage.core.provider import Provider
from stowage.core.provider_types import default_provider_types, validate_name
from stowage.core.registry import Registry
from stowage.core.types import (
    CopyFileOptions,
    CopyManyOptions,
    ListOptions,
    MoveFileOptions,
    MoveManyOptions,
    PutFileOptions,
    ResolvedUri,
    SignedUrlOptions,
    StorageResponse,
)
from stowage.core.uri import make_file_uri, normalize_path, parse_uri
from stowage.core.utils import extract_filename, is_directory_path, join_path, relative_to
from stowage.events import EventType

if TYPE_CHECKING:
    from collections.abc import Mapping

    from stowage.core.bucket import Bucket
    from stowage.core.entries import StorageFile
    from stowage.core.matcher import Pattern
    from stowage.core.provider_types import DriverFactory, ProviderTypeRegistry
    from stowage.events import BucketEvent

    PathRef = str | FileEntry

logger = logging.getLogger(__name__)


class StorageAsync:
    """Async storage session.

    Holds the provider registry and the session-wide bucket registry
    (keyed by alias), resolves ``provider://alias/path`` URIs and moves
    data between providers by streaming from one into the other.

    Usage::

        async with StorageAsync() as storage:
            await storage.add_provider("memory://?name=mem")
            await storage.add_bucket("mem://docs")
            await storage.get_bucket("docs").put_file("a.txt", b"hello")
    """

    def __init__(
        self,
        config: StorageConfig | Mapping[str, Any] | None = None,
        *,
        provider_types: ProviderTypeRegistry | None = None,
    ) -> None:
        if config is None:
            config = StorageConfig()
        elif not isinstance(config, StorageConfig):
            config = StorageConfig(**config)
        self.config: StorageConfig = config
        self.provider_types = (
            provider_types if provider_types is not None else default_provider_types()
        )
        self.providers: Registry[str, Provider] = Registry()
        self.buckets: Registry[str, Bucket] = Registry()

    # ------------------------------------------------------------------
    # Provider types
    # ------------------------------------------------------------------

    def register_provider_type(
        self, name: str, factory: DriverFactory, *, replace: bool = False
    ) -> None:
        self.provider_types.register(name, factory, replace=replace)

    def unregister_provider_type(self, name: str) -> bool:
        return self.provider_types.unregister(name)

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    async def add_provider(
        self,
        config: str | Mapping[str, Any] | ProviderConfig,
        *,
        replace: bool = False,
    ) -> StorageResponse[Provider, Any]:
        """Instantiate, initialize and register a provider.

        *config* is a URI such as ``memory://?name=mem&autoInit=false``, a
        mapping or a :class:`ProviderConfig`. URI query parameters overlay
        the object fields.

        Raises:
            InvalidParamsError: Missing or malformed name or type.
            DuplicatedElementError: Name taken and *replace* is False.
            NotFoundError: Type not registered.
            UnknownError: ``init()`` failed.
        """
        cfg = ProviderConfig.parse(config)
        if not cfg.name:
            raise InvalidParamsError("Invalid configuration options: missing name")
        validate_name(cfg.name, "provider name")
        if not cfg.type:
            raise InvalidParamsError("Invalid configuration options: missing type")

        if self.providers.has(cfg.name):
            if not replace:
                raise DuplicatedElementError(
                    f"The provider {cfg.name!r} already exists", {"name": cfg.name}
                )
            await self.dispose_provider(cfg.name)

        factory = self.provider_types.get(cfg.type)
        provider = Provider(self, cfg, factory(cfg))
        provider.events.register_all(self._on_bucket_event)

        auto_init = cfg.auto_init if cfg.auto_init is not None else self.config.auto_init_providers
        native = None
        if auto_init:
            try:
                native = (await provider.init()).native_response
            except Exception as e:
                await self._discard(provider)
                raise UnknownError(f"Provider {cfg.name!r} failed to initialize: {e}") from e

        self.providers.add(cfg.name, provider)
        logger.info("Provider %s (%s) added", cfg.name, cfg.type)
        return StorageResponse(provider, native)

    def get_provider(self, name: str) -> Provider | None:
        return self.providers.get(name)

    async def dispose_provider(self, name: str) -> StorageResponse[bool, Any]:
        """Close a provider and drop it and all of its buckets from the session."""
        provider = self.providers.get(name)
        if provider is None:
            return StorageResponse(True)
        try:
            native = (await provider.dispose()).native_response
        finally:
            self._forget_buckets_of(provider)
            provider.events.unregister_all(self._on_bucket_event)
            self.providers.remove(name)
        logger.info("Provider %s disposed", name)
        return StorageResponse(True, native)

    async def _discard(self, provider: Provider) -> None:
        try:
            await provider.dispose()
        except StorageError:
            logger.warning("Cleanup of provider %s failed", provider.name, exc_info=True)
        self._forget_buckets_of(provider)
        provider.events.unregister_all(self._on_bucket_event)

    def _forget_buckets_of(self, provider: Provider) -> None:
        for bucket in self.buckets.list():
            if bucket.provider is provider:
                self.buckets.remove(bucket.alias)

    async def _on_bucket_event(self, event: BucketEvent) -> None:
        bucket = event.bucket
        if bucket is None:
            return
        if event.event_type is EventType.BUCKET_ADDED:
            self.buckets.add(bucket.alias, bucket)
        elif event.event_type in (EventType.BUCKET_REMOVED, EventType.BUCKET_DESTROYED):
            if self.buckets.get(bucket.alias) is bucket:
                self.buckets.remove(bucket.alias)
        logger.debug("%s: %s", event.event_type.value, bucket.alias)

    async def close(self) -> None:
        """Dispose every provider."""
        for provider in self.providers.list():
            await self.dispose_provider(provider.name)

    async def __aenter__(self) -> StorageAsync:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Buckets
    # ------------------------------------------------------------------

    async def add_bucket(
        self, config: str | Mapping[str, Any] | BucketConfig
    ) -> StorageResponse[Bucket, Any]:
        """Add a bucket to the provider named by ``provider_name`` or the URI scheme."""
        cfg = BucketConfig.parse(config)
        if not cfg.provider_name:
            raise InvalidParamsError(
                "Invalid bucket configuration: the provider name must be provided"
            )
        provider = self.providers.get(cfg.provider_name)
        if provider is None:
            raise NotFoundError(
                f"The provider {cfg.provider_name!r} does not exist",
                {"provider": cfg.provider_name},
            )
        return await provider.add_bucket(cfg)

    async def remove_bucket(self, bucket: Bucket | str) -> StorageResponse[bool, Any]:
        """Unregister a bucket by object or alias. Unknown aliases are a no-op."""
        target = self.buckets.get(bucket) if isinstance(bucket, str) else bucket
        if target is None:
            return StorageResponse(True)
        return await target.remove()

    async def destroy_bucket(self, bucket: Bucket | str) -> StorageResponse[bool, Any]:
        target = self.buckets.get(bucket) if isinstance(bucket, str) else bucket
        if target is None:
            raise NotFoundError(f"Bucket {bucket!r} not found", {"alias": bucket})
        return await target.destroy()

    def get_bucket(self, alias: str | None = None) -> Bucket | None:
        """Registered bucket by alias, or the default bucket when *alias* is omitted."""
        alias = alias or self.config.default_bucket_name
        if not alias:
            raise InvalidParamsError(
                "Provide a bucket name or configure default_bucket_name"
            )
        return self.buckets.get(alias)

    def make_bucket_alias(self, name: str, provider: Provider) -> str:
        strategy = self.config.bucket_alias_strategy
        if strategy == "NAME":
            return name
        if strategy == "PROVIDER:NAME":
            return f"{provider.name}:{name}"
        return strategy(name, provider)

    # ------------------------------------------------------------------
    # URIs and paths
    # ------------------------------------------------------------------

    def resolve_file_uri(self, ref: PathRef) -> ResolvedUri | None:
        """Resolve ``provider://alias/path``. Returns None for plain paths.

        Raises:
            NotFoundError: The provider or the bucket alias is not registered.
        """
        if isinstance(ref, FileEntry):
            return ResolvedUri(ref.bucket.provider, ref.bucket, ref.path)
        parsed = parse_uri(ref)
        if parsed is None:
            return None
        provider = self.providers.get(parsed.protocol)
        if provider is None:
            raise NotFoundError(
                f"The provider {parsed.protocol!r} is not registered",
                {"uri": ref, "provider": parsed.protocol},
            )
        bucket = self.buckets.get(parsed.bucket)
        if bucket is None or bucket.provider is not provider:
            raise NotFoundError(
                f"The bucket {parsed.bucket!r} is not registered on provider {provider.name!r}",
                {"uri": ref, "bucket": parsed.bucket},
            )
        return ResolvedUri(provider, bucket, self.normalize_path(parsed.path))

    def make_file_uri(self, provider: Provider, bucket: Bucket, path: str) -> str:
        return make_file_uri(provider.name, bucket.alias, path)

    def normalize_path(self, path: str | None) -> str:
        return normalize_path(path or "", self.config.slug_fn)

    def slug(self, value: str) -> str:
        return self.config.slug_fn(value)

    def make_slug(self, path: str) -> str:
        """Slug every segment of *path*, keeping the separators."""
        return "/".join(self.slug(seg) for seg in path.split("/") if seg)

    def get_mime(self, filename: str) -> str:
        return self.config.mime_fn(filename)

    def matches(self, path: str, pattern: Pattern) -> bool:
        return self.config.matcher.match(path, pattern)

    def _resolve_or_raise(self, ref: PathRef, param: str) -> ResolvedUri:
        resolved = self.resolve_file_uri(ref)
        if resolved is None:
            raise InvalidParamsError(
                f"The {param} must be a full storage uri", {param: str(ref)}
            )
        return resolved

    # ------------------------------------------------------------------
    # Files by uri
    # ------------------------------------------------------------------

    async def get_file(self, ref: PathRef) -> StorageResponse[StorageFile, Any]:
        target = self._resolve_or_raise(ref, "uri")
        return await target.bucket.get_file(target.path)

    async def get_native_path(self, ref: PathRef) -> str:
        target = self._resolve_or_raise(ref, "uri")
        return await target.bucket.get_native_path(target.path)

    async def get_public_url(self, ref: PathRef) -> str:
        target = self._resolve_or_raise(ref, "uri")
        return await target.bucket.get_public_url(target.path)

    async def get_signed_url(self, ref: PathRef, options: SignedUrlOptions | None = None) -> str:
        target = self._resolve_or_raise(ref, "uri")
        return await target.bucket.get_signed_url(target.path, options)

    # ------------------------------------------------------------------
    # Cross-provider transfers
    # ------------------------------------------------------------------

    @staticmethod
    def _shares_provider(source: ResolvedUri, target: ResolvedUri) -> bool:
        return source.provider is target.provider and (
            source.bucket is target.bucket or source.provider.supports_cross_bucket_operations
        )

    def _dest_path(self, source: ResolvedUri, target: ResolvedUri, dest: PathRef) -> str:
        if isinstance(dest, FileEntry):
            return target.path
        if is_directory_path(dest) or not target.path:
            return join_path(target.path, extract_filename(source.path))
        return target.path

    async def copy_file(
        self, src: PathRef, dest: PathRef, options: CopyFileOptions | None = None
    ) -> StorageResponse[str | StorageFile, Any]:
        """Copy a file between any two registered buckets.

        A destination ending in ``/`` receives the source file name.
        """
        options = options or CopyFileOptions()
        source = self._resolve_or_raise(src, "src")
        target = self._resolve_or_raise(dest, "dest")
        if isinstance(src, str) and is_directory_path(src):
            raise InvalidParamsError("The src must be a file", {"src": src})
        dest_path = self._dest_path(source, target, dest)

        if self._shares_provider(source, target):
            return await source.provider.copy_file(
                source.bucket,
                source.path,
                self.make_file_uri(target.provider, target.bucket, dest_path),
                options,
            )
        stream = (await source.bucket.get_file_stream(source.path)).result
        return await target.bucket.put_file(
            dest_path,
            stream,
            PutFileOptions(returning=options.returning, overwrite=options.overwrite),
        )

    async def move_file(
        self, src: PathRef, dest: PathRef, options: MoveFileOptions | None = None
    ) -> StorageResponse[str | StorageFile, Any]:
        options = options or MoveFileOptions()
        source = self._resolve_or_raise(src, "src")
        target = self._resolve_or_raise(dest, "dest")
        if isinstance(src, str) and is_directory_path(src):
            raise InvalidParamsError("The src must be a file", {"src": src})
        dest_path = self._dest_path(source, target, dest)

        if self._shares_provider(source, target):
            return await source.provider.move_file(
                source.bucket,
                source.path,
                self.make_file_uri(target.provider, target.bucket, dest_path),
                options,
            )
        response = await self.copy_file(
            source.bucket.get_storage_uri(source.path),
            self.make_file_uri(target.provider, target.bucket, dest_path),
            CopyFileOptions(returning=options.returning, overwrite=options.overwrite),
        )
        await source.bucket.delete_file(source.path, cleanup=options.cleanup)
        return response

    async def copy_files(
        self,
        src: str,
        dest: str,
        pattern: Pattern | None = None,
        options: CopyManyOptions | None = None,
    ) -> StorageResponse[list[str | StorageFile], list[Any]]:
        """Copy every matching file under *src* into *dest*, across providers."""
        options = options or CopyManyOptions()
        source = self._resolve_or_raise(src, "src")
        target = self._resolve_or_raise(dest, "dest")
        if self._shares_provider(source, target):
            return await source.provider.copy_files(
                source.bucket, source.path + "/", dest, pattern, options
            )
        paths = await self._list_sources(source, pattern, options.filter)
        responses = await asyncio.gather(
            *(self._bridge(source, p, target, options) for p in paths)
        )
        return StorageResponse(
            [r.result for r in responses], [r.native_response for r in responses]
        )

    async def move_files(
        self,
        src: str,
        dest: str,
        pattern: Pattern | None = None,
        options: MoveManyOptions | None = None,
    ) -> StorageResponse[list[str | StorageFile], list[Any]]:
        """Move every matching file under *src* into *dest*, then clean up *src* once."""
        options = options or MoveManyOptions()
        source = self._resolve_or_raise(src, "src")
        target = self._resolve_or_raise(dest, "dest")
        if self._shares_provider(source, target):
            return await source.provider.move_files(
                source.bucket, source.path + "/", dest, pattern, options
            )
        paths = await self._list_sources(source, pattern, options.filter)

        async def move(path: str) -> StorageResponse[Any, Any]:
            response = await self._bridge(source, path, target, options)
            await source.bucket.delete_file(path, cleanup=False)
            return response

        responses = await asyncio.gather(*(move(p) for p in paths))
        if source.provider.should_cleanup(source.bucket, options.cleanup):
            await source.bucket.remove_empty_directories(source.path + "/")
        return StorageResponse(
            [r.result for r in responses], [r.native_response for r in responses]
        )

    async def _list_sources(
        self, source: ResolvedUri, pattern: Pattern | None, predicate: Any
    ) -> list[str]:
        listing = await source.bucket.list_files(
            source.path + "/",
            pattern,
            ListOptions(recursive=True, returning=False, filter=predicate),
        )
        paths = []
        for uri in listing.result:
            resolved = self.resolve_file_uri(uri)
            if resolved is not None:
                paths.append(resolved.path)
        return paths

    async def _bridge(
        self,
        source: ResolvedUri,
        path: str,
        target: ResolvedUri,
        options: CopyManyOptions | MoveManyOptions,
    ) -> StorageResponse[Any, Any]:
        dest_path = join_path(target.path, relative_to(path, source.path))
        stream = (await source.bucket.get_file_stream(path)).result
        return await target.bucket.put_file(
            dest_path,
            stream,
            PutFileOptions(returning=options.returning, overwrite=options.overwrite),
        )
