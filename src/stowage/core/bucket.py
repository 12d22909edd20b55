"""Bucket: per-provider namespace that forwards every call to its provider."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .permissions import can_read, can_write

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .config import BucketConfig
    from .entries import Directory, FileEntry, StorageFile
    from .matcher import Pattern
    from .provider import Provider
    from .types import (
        CopyFileOptions,
        CopyManyOptions,
        DeleteManyOptions,
        GetFileOptions,
        ListOptions,
        MoveFileOptions,
        MoveManyOptions,
        PutFileOptions,
        SignedUrlOptions,
        StorageResponse,
    )
    from .utils import Contents

    PathRef = str | FileEntry


class Bucket:
    """A named namespace on a provider.

    ``name`` is provider-local; ``alias`` is the session-wide key derived
    from it by the alias strategy. The bucket holds no state beyond its
    configuration.
    """

    def __init__(self, provider: Provider, config: BucketConfig, alias: str) -> None:
        self.provider = provider
        self.config = config
        self.alias = alias

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def mode(self) -> str:
        """Own mode, else the provider's, else the session default."""
        return (
            self.config.mode
            or self.provider.config.mode
            or self.provider.storage.config.default_bucket_mode
        )

    def can_read(self) -> bool:
        return can_read(self.mode)

    def can_write(self) -> bool:
        return can_write(self.mode)

    def __repr__(self) -> str:
        return f"Bucket(alias={self.alias!r}, provider={self.provider.name!r}, mode={self.mode!r})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def remove(self) -> StorageResponse[bool, Any]:
        return await self.provider.remove_bucket(self)

    async def destroy(self) -> StorageResponse[bool, Any]:
        return await self.provider.destroy_bucket(self)

    async def empty(self) -> StorageResponse[bool, Any]:
        return await self.provider.empty_bucket(self)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def put_file(
        self, ref: PathRef, contents: Contents, options: PutFileOptions | None = None
    ) -> StorageResponse[str | StorageFile, Any]:
        return await self.provider.put_file(self, ref, contents, options)

    async def get_file_stream(
        self, ref: PathRef, options: GetFileOptions | None = None
    ) -> StorageResponse[AsyncIterator[bytes], Any]:
        return await self.provider.get_file_stream(self, ref, options)

    async def get_file_contents(
        self, ref: PathRef, options: GetFileOptions | None = None
    ) -> StorageResponse[bytes, Any]:
        return await self.provider.get_file_contents(self, ref, options)

    async def get_file(self, ref: PathRef) -> StorageResponse[StorageFile, Any]:
        return await self.provider.get_file(self, ref)

    async def file_exists(
        self, ref: PathRef, returning: bool = False
    ) -> StorageResponse[bool | StorageFile, Any]:
        return await self.provider.file_exists(self, ref, returning)

    async def delete_file(
        self, ref: PathRef, cleanup: bool | None = None
    ) -> StorageResponse[bool, Any]:
        return await self.provider.delete_file(self, ref, cleanup)

    async def copy_file(
        self, src: PathRef, dest: PathRef, options: CopyFileOptions | None = None
    ) -> StorageResponse[str | StorageFile, Any]:
        return await self.provider.copy_file(self, src, dest, options)

    async def move_file(
        self, src: PathRef, dest: PathRef, options: MoveFileOptions | None = None
    ) -> StorageResponse[str | StorageFile, Any]:
        return await self.provider.move_file(self, src, dest, options)

    async def list_files(
        self,
        ref: PathRef = "",
        pattern: Pattern | None = None,
        options: ListOptions | None = None,
    ) -> StorageResponse[list[str | StorageFile], list[Any]]:
        return await self.provider.list_files(self, ref, pattern, options)

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def make_directory(
        self, ref: PathRef, returning: bool | None = None
    ) -> StorageResponse[str | Directory, Any]:
        return await self.provider.make_directory(self, ref, returning)

    async def directory_exists(self, ref: PathRef) -> StorageResponse[bool, Any]:
        return await self.provider.directory_exists(self, ref)

    async def get_directory(self, ref: PathRef) -> StorageResponse[Directory, Any]:
        return await self.provider.get_directory(self, ref)

    async def list_directories(
        self,
        ref: PathRef = "",
        pattern: Pattern | None = None,
        options: ListOptions | None = None,
    ) -> StorageResponse[list[str | Directory], list[Any]]:
        return await self.provider.list_directories(self, ref, pattern, options)

    async def delete_directory(
        self, ref: PathRef, cleanup: bool | None = None
    ) -> StorageResponse[bool, Any]:
        return await self.provider.delete_directory(self, ref, cleanup)

    async def empty_directory(self, ref: PathRef) -> StorageResponse[bool, Any]:
        return await self.provider.empty_directory(self, ref)

    async def remove_empty_directories(self, ref: PathRef = "") -> StorageResponse[bool, Any]:
        return await self.provider.remove_empty_directories(self, ref)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def copy_files(
        self,
        src: PathRef,
        dest: PathRef,
        pattern: Pattern | None = None,
        options: CopyManyOptions | None = None,
    ) -> StorageResponse[list[str | StorageFile], list[Any]]:
        return await self.provider.copy_files(self, src, dest, pattern, options)

    async def move_files(
        self,
        src: PathRef,
        dest: PathRef,
        pattern: Pattern | None = None,
        options: MoveManyOptions | None = None,
    ) -> StorageResponse[list[str | StorageFile], list[Any]]:
        return await self.provider.move_files(self, src, dest, pattern, options)

    async def delete_files(
        self,
        ref: PathRef = "",
        pattern: Pattern | None = None,
        options: DeleteManyOptions | None = None,
    ) -> StorageResponse[bool, list[Any]]:
        return await self.provider.delete_files(self, ref, pattern, options)

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def get_storage_uri(self, ref: PathRef) -> str:
        return self.provider.get_storage_uri(self, ref)

    async def get_public_url(self, ref: PathRef) -> str:
        return await self.provider.get_public_url(self, ref)

    async def get_signed_url(self, ref: PathRef, options: SignedUrlOptions | None = None) -> str:
        return await self.provider.get_signed_url(self, ref, options)

    async def get_native_path(self, ref: PathRef) -> str:
        return await self.provider.get_native_path(self, ref)
