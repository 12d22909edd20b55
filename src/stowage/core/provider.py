"""Provider: bucket registry and batch-operation engine over a driver.

A provider owns one :class:`~stowage.core.protocol.StorageDriver` and the
buckets that live on it. Every public file operation resolves its path
references, checks the bucket mode, calls the driver primitives and wraps
the result in a :class:`StorageResponse`.

Recursive listing, pattern-filtered copy/move/delete and empty-directory
cleanup are built generically on the primitives. When the driver declares
an opt-in capability (native recursive listing, server-side copy, real
directories) the engine uses it instead of the generic fallback.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from stowage.events import BucketEvent, EventBus, EventType

from .bucket import Bucket
from .config import BucketConfig
from .entries import Directory, FileEntry, StorageFile
from .exceptions import (
    DuplicatedElementError,
    InvalidParamsError,
    NotFoundError,
    PermissionDeniedError,
    native_errors,
)
from .protocol import (
    SupportsContainers,
    SupportsDirectories,
    SupportsNativeCopy,
    SupportsNativePaths,
    SupportsRecursiveListing,
    SupportsSignedUrls,
)
from .registry import Registry
from .types import (
    CopyFileOptions,
    CopyManyOptions,
    DeleteManyOptions,
    EntryStat,
    EntryType,
    GetFileOptions,
    ListOptions,
    MoveFileOptions,
    MoveManyOptions,
    PutFileOptions,
    ResolvedUri,
    SignedUrlOptions,
    StorageResponse,
)
from .utils import (
    extract_directory,
    extract_filename,
    is_directory_path,
    join_path,
    relative_to,
    slice_stream,
    stream_to_bytes,
    to_async_chunks,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping

    from stowage._storage_async import StorageAsync

    from .config import ProviderConfig
    from .matcher import Pattern
    from .protocol import StorageDriver
    from .utils import Contents

logger = logging.getLogger(__name__)

T = TypeVar("T")

PathRef = str | FileEntry


class Provider:
    """One driver instance plus its buckets.

    Created by :meth:`StorageAsync.add_provider`; not meant to be built
    directly. ``storage`` is the owning session, used for URI resolution,
    slugging, mime detection, matching and the session-wide defaults.
    """

    def __init__(
        self, storage: StorageAsync, config: ProviderConfig, driver: StorageDriver
    ) -> None:
        self.storage = storage
        self.config = config
        self.driver = driver
        self.events = EventBus()
        self._buckets: Registry[str, Bucket] = Registry()
        self._ready = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def type(self) -> str:
        return self.config.type

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def supports_cross_bucket_operations(self) -> bool:
        return bool(getattr(self.driver, "supports_cross_bucket_operations", False))

    def _get_capability(self, protocol: type[T]) -> T | None:
        if isinstance(self.driver, protocol):
            return self.driver
        return None

    def __repr__(self) -> str:
        return f"Provider(name={self.name!r}, type={self.type!r}, ready={self._ready})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> StorageResponse[bool, Any]:
        """Open the driver and register the buckets listed in the config."""
        if self._ready:
            return StorageResponse(True)
        with native_errors(f"Cannot open provider {self.name!r}", provider=self.name):
            native = await self.driver.open()
        self._ready = True
        for bucket_config in self.config.buckets:
            cfg = BucketConfig.parse(bucket_config)
            if not self._buckets.has(cfg.name):
                await self.add_bucket(cfg)
        logger.debug("Provider %s initialized", self.name)
        return StorageResponse(True, native)

    async def make_ready(self) -> None:
        if not self._ready:
            await self.init()

    async def dispose(self) -> StorageResponse[bool, Any]:
        """Unregister every bucket and close the driver."""
        for bucket in self._buckets.list():
            await self.remove_bucket(bucket)
        native = None
        if self._ready:
            with native_errors(f"Cannot close provider {self.name!r}", provider=self.name):
                native = await self.driver.close()
        self._ready = False
        return StorageResponse(True, native)

    # ------------------------------------------------------------------
    # Buckets
    # ------------------------------------------------------------------

    @property
    def buckets(self) -> Registry[str, Bucket]:
        return self._buckets

    def get_bucket(self, name: str) -> Bucket | None:
        return self._buckets.get(name)

    async def list_buckets(self) -> StorageResponse[list[Bucket], Any]:
        await self.make_ready()
        return StorageResponse(self._buckets.list())

    async def list_unregistered_buckets(self) -> StorageResponse[list[BucketConfig], Any]:
        """Physical containers the driver knows about that have no bucket yet."""
        await self.make_ready()
        containers = self._get_capability(SupportsContainers)
        if containers is None:
            return StorageResponse([])
        with native_errors("Cannot list buckets", provider=self.name):
            names = await containers.list_bucket_names()
        configs = [
            BucketConfig(name=name, provider_name=self.name)
            for name in names
            if not self._buckets.has(name)
        ]
        return StorageResponse(configs, names)

    def _ensure_bucket_not_registered(self, name: str, alias: str) -> None:
        if self._buckets.has(name) or self.storage.buckets.has(alias):
            raise DuplicatedElementError(
                f"The bucket {alias!r} already exists",
                {"name": name, "alias": alias, "provider": self.name},
            )

    async def add_bucket(
        self, config: str | Mapping[str, Any] | BucketConfig
    ) -> StorageResponse[Bucket, Any]:
        """Create (if needed) and register a bucket.

        Raises:
            DuplicatedElementError: If the name is taken on this provider or
                the alias is taken anywhere in the session.
        """
        await self.make_ready()
        cfg = BucketConfig.parse(config)
        if cfg.provider_name and cfg.provider_name.lower() != self.name.lower():
            raise InvalidParamsError(
                f"Bucket {cfg.name!r} belongs to provider {cfg.provider_name!r}",
                {"expected": self.name, "received": cfg.provider_name},
            )
        cfg.provider_name = self.name
        alias = self.storage.make_bucket_alias(cfg.name, self)
        self._ensure_bucket_not_registered(cfg.name, alias)
        await self.events.emit(
            BucketEvent(EventType.BEFORE_ADD_BUCKET, self.name, cfg.name)
        )

        native = None
        containers = self._get_capability(SupportsContainers)
        if containers is not None:
            with native_errors(f"Cannot create bucket {cfg.name!r}", bucket=cfg.name):
                native = await containers.create_bucket(cfg.name, cfg.options)

        # another add may have finished while the driver call was pending
        self._ensure_bucket_not_registered(cfg.name, alias)
        bucket = Bucket(self, cfg, alias)
        self._buckets.add(cfg.name, bucket)
        await self.events.emit(
            BucketEvent(EventType.BUCKET_ADDED, self.name, cfg.name, bucket)
        )
        logger.info("Bucket %s added on provider %s", alias, self.name)
        return StorageResponse(bucket, native)

    def _own_bucket(self, bucket: Bucket | str) -> Bucket:
        if isinstance(bucket, str):
            found = self._buckets.get(bucket)
            if found is None:
                raise NotFoundError(
                    f"Bucket {bucket!r} not found on provider {self.name!r}",
                    {"name": bucket, "provider": self.name},
                )
            return found
        return bucket

    async def remove_bucket(self, bucket: Bucket | str) -> StorageResponse[bool, Any]:
        """Unregister a bucket. The physical container is left untouched."""
        if isinstance(bucket, str) and not self._buckets.has(bucket):
            return StorageResponse(True)
        bucket = self._own_bucket(bucket)
        await self.events.emit(
            BucketEvent(EventType.BEFORE_REMOVE_BUCKET, self.name, bucket.name, bucket)
        )
        self._buckets.remove(bucket.name)
        await self.events.emit(
            BucketEvent(EventType.BUCKET_REMOVED, self.name, bucket.name, bucket)
        )
        logger.info("Bucket %s removed from provider %s", bucket.alias, self.name)
        return StorageResponse(True)

    async def destroy_bucket(self, bucket: Bucket | str) -> StorageResponse[bool, Any]:
        """Delete the physical container and unregister the bucket."""
        await self.make_ready()
        bucket = self._own_bucket(bucket)
        self._check_write(bucket)
        await self.events.emit(
            BucketEvent(EventType.BEFORE_DESTROY_BUCKET, self.name, bucket.name, bucket)
        )
        containers = self._get_capability(SupportsContainers)
        if containers is not None:
            with native_errors(f"Cannot destroy bucket {bucket.name!r}", bucket=bucket.name):
                native = await containers.destroy_bucket(bucket.name)
        else:
            native = (await self.empty_bucket(bucket)).native_response
        self._buckets.remove(bucket.name)
        await self.events.emit(
            BucketEvent(EventType.BUCKET_DESTROYED, self.name, bucket.name, bucket)
        )
        logger.info("Bucket %s destroyed on provider %s", bucket.alias, self.name)
        return StorageResponse(True, native)

    async def empty_bucket(self, bucket: Bucket) -> StorageResponse[bool, Any]:
        """Delete every file and directory in *bucket*, keeping the bucket."""
        return await self.empty_directory(bucket, "")

    # ------------------------------------------------------------------
    # Resolution and defaults
    # ------------------------------------------------------------------

    def resolve_file_uri(
        self, bucket: Bucket, ref: PathRef, allow_cross_bucket: bool = False
    ) -> ResolvedUri:
        """Turn a URI, bucket-relative path or entry into a resolved path.

        Raises:
            InvalidParamsError: If *ref* names another provider, or another
                bucket when cross-bucket access is not allowed or supported.
        """
        if isinstance(ref, FileEntry):
            target = ResolvedUri(ref.bucket.provider, ref.bucket, ref.path)
        else:
            target = self.storage.resolve_file_uri(ref)
            if target is None:
                return ResolvedUri(self, bucket, self.storage.normalize_path(ref))
        if target.provider is not self:
            raise InvalidParamsError(
                "The file uri is invalid, wrong provider name",
                {"expected": self.name, "received": target.provider.name},
            )
        if target.bucket is not bucket and (
            not allow_cross_bucket or not self.supports_cross_bucket_operations
        ):
            raise InvalidParamsError(
                "The file uri is invalid, wrong bucket name",
                {"expected": bucket.alias, "received": target.bucket.alias},
            )
        return target

    def make_file_uri(self, bucket: Bucket, ref: PathRef) -> str:
        path = ref.path if isinstance(ref, FileEntry) else ref
        return self.storage.make_file_uri(self, bucket, path)

    @staticmethod
    def _is_directory_ref(ref: PathRef) -> bool:
        if isinstance(ref, FileEntry):
            return ref.is_directory
        return is_directory_path(ref)

    def _file_ref_or_raise(self, ref: PathRef, param: str) -> None:
        if self._is_directory_ref(ref):
            raise InvalidParamsError(
                f"The {param} path must be a file, not a directory", {param: str(ref)}
            )

    def _should_return(self, bucket: Bucket, returning: bool | None) -> bool:
        for value in (
            returning,
            bucket.config.returning,
            self.config.returning,
            self.storage.config.returning_by_default,
        ):
            if value is not None:
                return bool(value)
        return False

    def should_cleanup(self, bucket: Bucket, cleanup: bool | None) -> bool:
        for value in (
            cleanup,
            bucket.config.auto_cleanup,
            self.config.auto_cleanup,
            self.storage.config.auto_cleanup,
        ):
            if value is not None:
                return bool(value)
        return False

    def _signed_url_expiration(self, bucket: Bucket, expiration: int | None) -> int:
        for value in (
            expiration,
            bucket.config.default_signed_url_expiration,
            self.config.default_signed_url_expiration,
        ):
            if value is not None:
                return int(value)
        return self.storage.config.default_signed_url_expiration

    def _check_read(self, bucket: Bucket) -> None:
        if not bucket.can_read():
            raise PermissionDeniedError(
                f"Cannot read on bucket {bucket.alias!r}", {"mode": bucket.mode}
            )

    def _check_write(self, bucket: Bucket) -> None:
        if not bucket.can_write():
            raise PermissionDeniedError(
                f"Cannot write on bucket {bucket.alias!r}", {"mode": bucket.mode}
            )

    # ------------------------------------------------------------------
    # Entry construction
    # ------------------------------------------------------------------

    def _make_entry(self, bucket: Bucket, stat: EntryStat) -> StorageFile | Directory:
        if stat.is_directory:
            return Directory(
                bucket=bucket,
                path=stat.path,
                created_at=stat.created_at,
                updated_at=stat.updated_at,
                native_meta=stat.native,
            )
        return StorageFile(
            bucket=bucket,
            path=stat.path,
            created_at=stat.created_at,
            updated_at=stat.updated_at,
            native_meta=stat.native,
            size=stat.size,
            mime=stat.mime or self.storage.get_mime(stat.path),
        )

    async def _stat(self, bucket: Bucket, path: str) -> EntryStat | None:
        if not path:
            return EntryStat(path="", type=EntryType.DIRECTORY)
        with native_errors(f"Cannot stat {path!r}", bucket=bucket.name, path=path):
            return await self.driver.stat(bucket.name, path)

    async def _file_result(
        self, bucket: Bucket, path: str, returning: bool | None
    ) -> str | StorageFile:
        if not self._should_return(bucket, returning):
            return self.make_file_uri(bucket, path)
        stat = await self._stat(bucket, path)
        if stat is None or stat.is_directory:
            raise NotFoundError(f"File {path!r} not found", {"path": path})
        return self._make_entry(bucket, stat)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def put_file(
        self,
        bucket: Bucket,
        ref: PathRef,
        contents: Contents,
        options: PutFileOptions | None = None,
    ) -> StorageResponse[str | StorageFile, Any]:
        """Create or replace a file from bytes, text, a file object or a chunk stream."""
        options = options or PutFileOptions()
        target = self.resolve_file_uri(bucket, ref)
        self._file_ref_or_raise(ref, "dest")
        await self.make_ready()
        self._check_write(bucket)
        await self._check_overwrite(bucket, target.path, options.overwrite)
        mime = options.mime or self.storage.get_mime(target.path)
        with native_errors(f"Cannot write {target.path!r}", bucket=bucket.name):
            native = await self.driver.put_file(
                bucket.name, target.path, to_async_chunks(contents), mime
            )
        result = await self._file_result(bucket, target.path, options.returning)
        return StorageResponse(result, native)

    async def get_file_stream(
        self, bucket: Bucket, ref: PathRef, options: GetFileOptions | None = None
    ) -> StorageResponse[AsyncIterator[bytes], Any]:
        target = self.resolve_file_uri(bucket, ref)
        self._file_ref_or_raise(ref, "src")
        await self.make_ready()
        self._check_read(bucket)
        with native_errors(f"Cannot read {target.path!r}", bucket=bucket.name):
            stream, native = await self.driver.get_file_stream(bucket.name, target.path)
        if options is not None and (options.start is not None or options.end is not None):
            stream = slice_stream(stream, options.start, options.end)
        return StorageResponse(stream, native)

    async def get_file_contents(
        self, bucket: Bucket, ref: PathRef, options: GetFileOptions | None = None
    ) -> StorageResponse[bytes, Any]:
        response = await self.get_file_stream(bucket, ref, options)
        with native_errors(f"Cannot read {ref!s}", bucket=bucket.name):
            data = await stream_to_bytes(response.result)
        return StorageResponse(data, response.native_response)

    async def get_file(self, bucket: Bucket, ref: PathRef) -> StorageResponse[StorageFile, Any]:
        """Hydrated entry for a file.

        Raises:
            NotFoundError: If nothing exists at the path or it is a directory.
        """
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_read(bucket)
        stat = await self._stat(bucket, target.path)
        if stat is None or stat.is_directory:
            raise NotFoundError(f"File {target.path!r} not found", {"path": target.path})
        return StorageResponse(self._make_entry(bucket, stat), stat.native)  # type: ignore[arg-type]

    async def file_exists(
        self, bucket: Bucket, ref: PathRef, returning: bool = False
    ) -> StorageResponse[bool | StorageFile, Any]:
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_read(bucket)
        stat = await self._stat(bucket, target.path)
        if stat is None or stat.is_directory:
            return StorageResponse(False)
        if returning:
            return StorageResponse(self._make_entry(bucket, stat), stat.native)  # type: ignore[arg-type]
        return StorageResponse(True, stat.native)

    async def delete_file(
        self, bucket: Bucket, ref: PathRef, cleanup: bool | None = None
    ) -> StorageResponse[bool, Any]:
        """Delete one file. A missing file counts as deleted."""
        target = self.resolve_file_uri(bucket, ref)
        self._file_ref_or_raise(ref, "path")
        await self.make_ready()
        self._check_write(bucket)
        native = await self._delete_one(bucket, target.path)
        if self.should_cleanup(bucket, cleanup):
            await self._clean_directories(bucket, extract_directory(target.path))
        return StorageResponse(True, native)

    async def _check_overwrite(self, bucket: Bucket, path: str, overwrite: bool) -> None:
        if not overwrite and await self._stat(bucket, path) is not None:
            raise DuplicatedElementError(f"File {path!r} already exists", {"path": path})

    async def _delete_one(self, bucket: Bucket, path: str) -> Any:
        try:
            with native_errors(f"Cannot delete {path!r}", bucket=bucket.name):
                return await self.driver.delete_file(bucket.name, path)
        except NotFoundError:
            logger.debug("Delete of missing file %s:%s ignored", bucket.alias, path)
            return None

    async def copy_file(
        self,
        bucket: Bucket,
        src: PathRef,
        dest: PathRef,
        options: CopyFileOptions | None = None,
    ) -> StorageResponse[str | StorageFile, Any]:
        """Copy one file. A destination ending in ``/`` receives the source name.

        *dest* may name another bucket of this provider only when the
        driver supports cross-bucket operations.
        """
        options = options or CopyFileOptions()
        source, target = self._resolve_pair(bucket, src, dest)
        await self.make_ready()
        self._check_read(source.bucket)
        self._check_write(target.bucket)
        await self._check_overwrite(target.bucket, target.path, options.overwrite)
        native = await self._copy_one(source.bucket, source.path, target.bucket, target.path)
        result = await self._file_result(target.bucket, target.path, options.returning)
        return StorageResponse(result, native)

    async def move_file(
        self,
        bucket: Bucket,
        src: PathRef,
        dest: PathRef,
        options: MoveFileOptions | None = None,
    ) -> StorageResponse[str | StorageFile, Any]:
        options = options or MoveFileOptions()
        source, target = self._resolve_pair(bucket, src, dest)
        await self.make_ready()
        self._check_read(source.bucket)
        self._check_write(source.bucket)
        self._check_write(target.bucket)
        if source.bucket is not target.bucket or source.path != target.path:
            await self._check_overwrite(target.bucket, target.path, options.overwrite)
        native = await self._move_one(source.bucket, source.path, target.bucket, target.path)
        if self.should_cleanup(source.bucket, options.cleanup):
            await self._clean_directories(source.bucket, extract_directory(source.path))
        result = await self._file_result(target.bucket, target.path, options.returning)
        return StorageResponse(result, native)

    def _resolve_pair(
        self, bucket: Bucket, src: PathRef, dest: PathRef
    ) -> tuple[ResolvedUri, ResolvedUri]:
        self._file_ref_or_raise(src, "src")
        source = self.resolve_file_uri(bucket, src)
        target = self.resolve_file_uri(bucket, dest, allow_cross_bucket=True)
        if self._is_directory_ref(dest):
            path = join_path(target.path, extract_filename(source.path))
            target = ResolvedUri(target.provider, target.bucket, path)
        if not target.path:
            raise InvalidParamsError("The dest path must be a file", {"dest": str(dest)})
        return source, target

    async def _copy_one(
        self, src_bucket: Bucket, src_path: str, dest_bucket: Bucket, dest_path: str
    ) -> Any:
        if src_bucket is dest_bucket and src_path == dest_path:
            return None
        native_copy = self._get_capability(SupportsNativeCopy)
        with native_errors(
            f"Cannot copy {src_path!r} to {dest_path!r}",
            src_bucket=src_bucket.name,
            dest_bucket=dest_bucket.name,
        ):
            if native_copy is not None:
                return await native_copy.copy_file(
                    src_bucket.name, src_path, dest_bucket.name, dest_path
                )
            stream, _ = await self.driver.get_file_stream(src_bucket.name, src_path)
            return await self.driver.put_file(
                dest_bucket.name, dest_path, stream, self.storage.get_mime(dest_path)
            )

    async def _move_one(
        self, src_bucket: Bucket, src_path: str, dest_bucket: Bucket, dest_path: str
    ) -> Any:
        if src_bucket is dest_bucket and src_path == dest_path:
            return None
        native_copy = self._get_capability(SupportsNativeCopy)
        if native_copy is not None:
            with native_errors(
                f"Cannot move {src_path!r} to {dest_path!r}",
                src_bucket=src_bucket.name,
                dest_bucket=dest_bucket.name,
            ):
                return await native_copy.move_file(
                    src_bucket.name, src_path, dest_bucket.name, dest_path
                )
        native = await self._copy_one(src_bucket, src_path, dest_bucket, dest_path)
        await self._delete_one(src_bucket, src_path)
        return native

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _keep(
        self,
        stat: EntryStat,
        pattern: Pattern | None,
        predicate: Callable[[str, str], bool] | None,
    ) -> bool:
        if pattern is not None and not self.storage.matches(stat.path, pattern):
            return False
        if predicate is None:
            return True
        return bool(predicate(extract_filename(stat.path), extract_directory(stat.path)))

    async def _list_level(
        self, bucket: Bucket, path: str, page_size: int | None, natives: list[Any]
    ) -> list[EntryStat]:
        """Every entry one level under *path*, following continuation tokens."""
        entries: list[EntryStat] = []
        token: str | None = None
        while True:
            with native_errors(f"Cannot list {path!r}", bucket=bucket.name, path=path):
                page = await self.driver.list_entries(bucket.name, path, token, page_size)
            natives.append(page.native)
            entries.extend(page.entries)
            token = page.continuation_token
            if not token:
                return entries

    async def _collect(
        self,
        bucket: Bucket,
        path: str,
        *,
        kind: EntryType,
        recursive: bool,
        pattern: Pattern | None = None,
        predicate: Callable[[str, str], bool] | None = None,
        page_size: int | None = None,
    ) -> tuple[list[EntryStat], list[Any]]:
        natives: list[Any] = []
        found: list[EntryStat] = []
        tree = self._get_capability(SupportsRecursiveListing)

        if recursive and kind is EntryType.FILE and tree is not None:
            token: str | None = None
            while True:
                with native_errors(f"Cannot list {path!r}", bucket=bucket.name, path=path):
                    page = await tree.list_tree(bucket.name, path, token, page_size)
                natives.append(page.native)
                found.extend(
                    s for s in page.entries
                    if not s.is_directory and self._keep(s, pattern, predicate)
                )
                token = page.continuation_token
                if not token:
                    return found, natives

        async def walk(current: str) -> None:
            level = await self._list_level(bucket, current, page_size, natives)
            found.extend(
                s for s in level
                if s.type is kind and self._keep(s, pattern, predicate)
            )
            if recursive:
                for sub in level:
                    if sub.is_directory:
                        await walk(sub.path)

        await walk(path)
        return found, natives

    async def list_files(
        self,
        bucket: Bucket,
        ref: PathRef = "",
        pattern: Pattern | None = None,
        options: ListOptions | None = None,
    ) -> StorageResponse[list[str | StorageFile], list[Any]]:
        """List files under *ref*, recursively when ``options.recursive``.

        *pattern* (or ``options.pattern``) is matched against the
        bucket-relative path first, then ``options.filter(name, directory)``.
        """
        options = options or ListOptions()
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_read(bucket)
        stats, natives = await self._collect(
            bucket,
            target.path,
            kind=EntryType.FILE,
            recursive=options.recursive,
            pattern=pattern if pattern is not None else options.pattern,
            predicate=options.filter,
            page_size=options.page_size,
        )
        return StorageResponse(self._listing_result(bucket, stats, options.returning), natives)

    def _listing_result(
        self, bucket: Bucket, stats: list[EntryStat], returning: bool | None
    ) -> list[Any]:
        if self._should_return(bucket, returning):
            return [self._make_entry(bucket, s) for s in stats]
        return [self.make_file_uri(bucket, s.path) for s in stats]

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def make_directory(
        self, bucket: Bucket, ref: PathRef, returning: bool | None = None
    ) -> StorageResponse[str | Directory, Any]:
        """Create a directory. Flat-namespace drivers have implicit directories."""
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_write(bucket)
        native = None
        directories = self._get_capability(SupportsDirectories)
        if directories is not None and target.path:
            with native_errors(f"Cannot create directory {target.path!r}", bucket=bucket.name):
                native = await directories.make_directory(bucket.name, target.path)
        if self._should_return(bucket, returning):
            return StorageResponse(Directory(bucket=bucket, path=target.path), native)
        return StorageResponse(self.make_file_uri(bucket, target.path + "/"), native)

    async def directory_exists(self, bucket: Bucket, ref: PathRef) -> StorageResponse[bool, Any]:
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_read(bucket)
        stat = await self._stat(bucket, target.path)
        return StorageResponse(stat is not None and stat.is_directory)

    async def get_directory(self, bucket: Bucket, ref: PathRef) -> StorageResponse[Directory, Any]:
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_read(bucket)
        stat = await self._stat(bucket, target.path)
        if stat is None or not stat.is_directory:
            raise NotFoundError(f"Directory {target.path!r} not found", {"path": target.path})
        return StorageResponse(self._make_entry(bucket, stat), stat.native)  # type: ignore[arg-type]

    async def list_directories(
        self,
        bucket: Bucket,
        ref: PathRef = "",
        pattern: Pattern | None = None,
        options: ListOptions | None = None,
    ) -> StorageResponse[list[str | Directory], list[Any]]:
        options = options or ListOptions()
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_read(bucket)
        stats, natives = await self._collect(
            bucket,
            target.path,
            kind=EntryType.DIRECTORY,
            recursive=options.recursive,
            pattern=pattern if pattern is not None else options.pattern,
            predicate=options.filter,
            page_size=options.page_size,
        )
        if self._should_return(bucket, options.returning):
            return StorageResponse([self._make_entry(bucket, s) for s in stats], natives)
        return StorageResponse([self.make_file_uri(bucket, s.path + "/") for s in stats], natives)

    async def delete_directory(
        self, bucket: Bucket, ref: PathRef, cleanup: bool | None = None
    ) -> StorageResponse[bool, Any]:
        """Delete a directory and everything under it. Missing counts as deleted."""
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_write(bucket)
        if not target.path:
            return await self.empty_bucket(bucket)
        native = None
        directories = self._get_capability(SupportsDirectories)
        if directories is not None:
            try:
                with native_errors(f"Cannot delete directory {target.path!r}", bucket=bucket.name):
                    native = await directories.delete_directory(bucket.name, target.path)
            except NotFoundError:
                native = None
        else:
            stats, _ = await self._collect(
                bucket, target.path, kind=EntryType.FILE, recursive=True
            )
            await asyncio.gather(*(self._delete_one(bucket, s.path) for s in stats))
        if self.should_cleanup(bucket, cleanup):
            await self._clean_directories(bucket, extract_directory(target.path))
        return StorageResponse(True, native)

    async def empty_directory(self, bucket: Bucket, ref: PathRef) -> StorageResponse[bool, Any]:
        """Delete everything under a directory, keeping the directory."""
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_write(bucket)
        directories = self._get_capability(SupportsDirectories)
        if directories is None:
            stats, natives = await self._collect(
                bucket, target.path, kind=EntryType.FILE, recursive=True
            )
            await asyncio.gather(*(self._delete_one(bucket, s.path) for s in stats))
            return StorageResponse(True, natives)

        natives = []
        level = await self._list_level(bucket, target.path, None, natives)
        await asyncio.gather(
            *(
                self._delete_tree(directories, bucket, s.path)
                if s.is_directory
                else self._delete_one(bucket, s.path)
                for s in level
            )
        )
        return StorageResponse(True, natives)

    async def _delete_tree(
        self, directories: SupportsDirectories, bucket: Bucket, path: str
    ) -> Any:
        with native_errors(f"Cannot delete directory {path!r}", bucket=bucket.name):
            return await directories.delete_directory(bucket.name, path)

    async def remove_empty_directories(
        self, bucket: Bucket, ref: PathRef = ""
    ) -> StorageResponse[bool, Any]:
        """Delete every directory under *ref* that holds no file, deepest first.

        *ref* itself is removed too when it ends up empty, unless it is
        the bucket root. Flat-namespace drivers have nothing to remove.
        """
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_write(bucket)
        await self._clean_directories(bucket, target.path)
        return StorageResponse(True)

    async def _clean_directories(self, bucket: Bucket, path: str) -> None:
        directories = self._get_capability(SupportsDirectories)
        if directories is None:
            return
        stat = await self._stat(bucket, path)
        if stat is None or not stat.is_directory:
            return

        async def clean(current: str) -> None:
            natives: list[Any] = []
            children = await self._list_level(bucket, current, None, natives)
            for child in children:
                if child.is_directory:
                    await clean(child.path)
            if any(not c.is_directory for c in children):
                return
            children = await self._list_level(bucket, current, None, natives)
            if not children and current:
                with native_errors(f"Cannot remove directory {current!r}", bucket=bucket.name):
                    await directories.delete_directory(bucket.name, current)

        await clean(path)

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def copy_files(
        self,
        bucket: Bucket,
        src: PathRef,
        dest: PathRef,
        pattern: Pattern | None = None,
        options: CopyManyOptions | None = None,
    ) -> StorageResponse[list[str | StorageFile], list[Any]]:
        """Copy every file under *src* matching *pattern* into *dest*.

        Sub-paths relative to *src* are preserved under *dest*. Copies run
        concurrently and the call fails if any single copy fails.
        """
        options = options or CopyManyOptions()
        source = self.resolve_file_uri(bucket, src)
        target = self.resolve_file_uri(bucket, dest, allow_cross_bucket=True)
        await self.make_ready()
        self._check_read(source.bucket)
        self._check_write(target.bucket)
        stats, _ = await self._collect(
            source.bucket,
            source.path,
            kind=EntryType.FILE,
            recursive=True,
            pattern=pattern,
            predicate=options.filter,
        )
        pairs = [
            (s.path, join_path(target.path, relative_to(s.path, source.path))) for s in stats
        ]
        await self._check_overwrites(source.bucket, target.bucket, pairs, options.overwrite)
        natives = await asyncio.gather(
            *(self._copy_one(source.bucket, s, target.bucket, d) for s, d in pairs)
        )
        results = await asyncio.gather(
            *(self._file_result(target.bucket, d, options.returning) for _, d in pairs)
        )
        return StorageResponse(list(results), list(natives))

    async def move_files(
        self,
        bucket: Bucket,
        src: PathRef,
        dest: PathRef,
        pattern: Pattern | None = None,
        options: MoveManyOptions | None = None,
    ) -> StorageResponse[list[str | StorageFile], list[Any]]:
        """Move every matching file under *src* into *dest*, then clean up *src* once."""
        options = options or MoveManyOptions()
        source = self.resolve_file_uri(bucket, src)
        target = self.resolve_file_uri(bucket, dest, allow_cross_bucket=True)
        await self.make_ready()
        self._check_read(source.bucket)
        self._check_write(source.bucket)
        self._check_write(target.bucket)
        stats, _ = await self._collect(
            source.bucket,
            source.path,
            kind=EntryType.FILE,
            recursive=True,
            pattern=pattern,
            predicate=options.filter,
        )
        pairs = [
            (s.path, join_path(target.path, relative_to(s.path, source.path))) for s in stats
        ]
        await self._check_overwrites(source.bucket, target.bucket, pairs, options.overwrite)
        natives = await asyncio.gather(
            *(self._move_one(source.bucket, s, target.bucket, d) for s, d in pairs)
        )
        if self.should_cleanup(source.bucket, options.cleanup):
            await self._clean_directories(source.bucket, source.path)
        results = await asyncio.gather(
            *(self._file_result(target.bucket, d, options.returning) for _, d in pairs)
        )
        return StorageResponse(list(results), list(natives))

    async def _check_overwrites(
        self,
        src_bucket: Bucket,
        dest_bucket: Bucket,
        pairs: list[tuple[str, str]],
        overwrite: bool,
    ) -> None:
        if overwrite:
            return
        await asyncio.gather(
            *(
                self._check_overwrite(dest_bucket, d, overwrite)
                for s, d in pairs
                if not (src_bucket is dest_bucket and s == d)
            )
        )

    async def delete_files(
        self,
        bucket: Bucket,
        ref: PathRef = "",
        pattern: Pattern | None = None,
        options: DeleteManyOptions | None = None,
    ) -> StorageResponse[bool, list[Any]]:
        """Delete every matching file under *ref*, then clean up *ref* once."""
        options = options or DeleteManyOptions()
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        self._check_write(bucket)
        stats, _ = await self._collect(
            bucket,
            target.path,
            kind=EntryType.FILE,
            recursive=True,
            pattern=pattern,
            predicate=options.filter,
        )
        natives = await asyncio.gather(*(self._delete_one(bucket, s.path) for s in stats))
        if self.should_cleanup(bucket, options.cleanup):
            await self._clean_directories(bucket, target.path)
        return StorageResponse(True, list(natives))

    # ------------------------------------------------------------------
    # URLs and native paths
    # ------------------------------------------------------------------

    def get_storage_uri(self, bucket: Bucket, ref: PathRef) -> str:
        target = self.resolve_file_uri(bucket, ref)
        return self.make_file_uri(bucket, target.path)

    async def get_public_url(self, bucket: Bucket, ref: PathRef) -> str:
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        signer = self._get_capability(SupportsSignedUrls)
        if signer is not None:
            with native_errors(f"Cannot build url for {target.path!r}", bucket=bucket.name):
                return await signer.get_public_url(bucket.name, target.path)
        generator = self.storage.config.url_generator
        if generator is None:
            raise InvalidParamsError(
                f"Provider {self.name!r} has no public urls and no url generator is configured"
            )
        return await generator(bucket, target.path)

    async def get_signed_url(
        self, bucket: Bucket, ref: PathRef, options: SignedUrlOptions | None = None
    ) -> str:
        """Time-limited URL. Expiration: *options*, then bucket, provider, session."""
        options = options or SignedUrlOptions()
        target = self.resolve_file_uri(bucket, ref)
        await self.make_ready()
        expiration = self._signed_url_expiration(bucket, options.expiration)
        signer = self._get_capability(SupportsSignedUrls)
        if signer is not None:
            with native_errors(f"Cannot sign url for {target.path!r}", bucket=bucket.name):
                return await signer.get_signed_url(bucket.name, target.path, expiration)
        generator = self.storage.config.signed_url_generator
        if generator is None:
            raise InvalidParamsError(
                f"Provider {self.name!r} has no signed urls and no signed url generator is configured"
            )
        return await generator(bucket, target.path, expiration)

    async def get_native_path(self, bucket: Bucket, ref: PathRef) -> str:
        """Driver-native location of *ref*, or its storage URI when the driver has none."""
        target = self.resolve_file_uri(bucket, ref)
        native_paths = self._get_capability(SupportsNativePaths)
        if native_paths is None:
            return self.make_file_uri(bucket, target.path)
        return native_paths.native_path(bucket.name, target.path)
