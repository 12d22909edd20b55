"""StorageFile and Directory value objects.

Entries are rebuilt on every call that returns them and never cached, so
``exists`` only reflects the moment the entry was produced. Convenience
methods delegate back to the owning bucket.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .types import EntryType

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime

    from .bucket import Bucket
    from .matcher import Pattern
    from .types import (
        CopyFileOptions,
        GetFileOptions,
        ListOptions,
        MoveFileOptions,
        SignedUrlOptions,
        StorageResponse,
    )


@dataclass
class FileEntry:
    """Common fields of files and directories. ``path`` is bucket-relative."""

    bucket: Bucket = field(repr=False)
    path: str
    exists: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    native_meta: Any = field(default=None, repr=False)

    type: EntryType = field(init=False, default=EntryType.FILE)

    @property
    def name(self) -> str:
        return posixpath.basename(self.path.rstrip("/"))

    @property
    def directory(self) -> str:
        """Parent directory, bucket-relative."""
        return posixpath.dirname(self.path.rstrip("/"))

    @property
    def uri(self) -> str:
        return self.bucket.provider.make_file_uri(self.bucket, self.path)

    @property
    def is_directory(self) -> bool:
        return self.type is EntryType.DIRECTORY

    def __str__(self) -> str:
        return self.uri


@dataclass(repr=True)
class StorageFile(FileEntry):
    size: int | None = None
    mime: str | None = None

    def __post_init__(self) -> None:
        self.type = EntryType.FILE

    async def get_contents(
        self, options: GetFileOptions | None = None
    ) -> StorageResponse[bytes, Any]:
        return await self.bucket.get_file_contents(self.path, options)

    async def get_stream(
        self, options: GetFileOptions | None = None
    ) -> StorageResponse[AsyncIterator[bytes], Any]:
        return await self.bucket.get_file_stream(self.path, options)

    async def delete(self, cleanup: bool | None = None) -> StorageResponse[bool, Any]:
        return await self.bucket.delete_file(self.path, cleanup=cleanup)

    async def copy(
        self, dest: str, options: CopyFileOptions | None = None
    ) -> StorageResponse[Any, Any]:
        return await self.bucket.copy_file(self.path, dest, options)

    async def move(
        self, dest: str, options: MoveFileOptions | None = None
    ) -> StorageResponse[Any, Any]:
        return await self.bucket.move_file(self.path, dest, options)

    async def get_public_url(self) -> str:
        return await self.bucket.get_public_url(self.path)

    async def get_signed_url(self, options: SignedUrlOptions | None = None) -> str:
        return await self.bucket.get_signed_url(self.path, options)

    async def get_native_path(self) -> str:
        return await self.bucket.get_native_path(self.path)


@dataclass(repr=True)
class Directory(FileEntry):
    def __post_init__(self) -> None:
        self.type = EntryType.DIRECTORY

    async def list_files(
        self, pattern: Pattern | None = None, options: ListOptions | None = None
    ) -> StorageResponse[list[Any], Any]:
        return await self.bucket.list_files(self.path + "/", pattern, options)

    async def delete(self, cleanup: bool | None = None) -> StorageResponse[bool, Any]:
        return await self.bucket.delete_directory(self.path, cleanup=cleanup)

    async def empty(self) -> StorageResponse[bool, Any]:
        return await self.bucket.empty_directory(self.path)
