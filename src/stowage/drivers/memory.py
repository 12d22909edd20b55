"""MemoryDriver: hierarchical in-process storage with real directories."""

from __future__ import annotations

import asyncio
import posixpath
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from stowage.core.types import EntryStat, EntryType, ListPage
from stowage.core.utils import CHUNK_SIZE, cast_value

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from stowage.core.config import ProviderConfig


@dataclass
class _MemoryObject:
    content: bytes
    mime: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class _MemoryBucket:
    files: dict[str, _MemoryObject] = field(default_factory=dict)
    directories: dict[str, datetime] = field(default_factory=dict)


def _parent(path: str) -> str:
    return posixpath.dirname(path)


class MemoryDriver:
    """Keeps every bucket in a dict. Writing a file creates its parent directories.

    Directories persist after their files are deleted, like on a real
    disk, so empty-directory cleanup has something to do. One-level
    listings are paginated with an offset token when ``page_size`` is set.

    Implements ``StorageDriver``, ``SupportsDirectories`` and
    ``SupportsContainers``. It has no server-side copy, so copies and
    moves go through the engine's stream bridge.
    """

    supports_cross_bucket_operations = False

    def __init__(self, page_size: int | None = None) -> None:
        self.page_size = page_size
        self._buckets: dict[str, _MemoryBucket] = {}

    @classmethod
    def from_config(cls, config: ProviderConfig) -> MemoryDriver:
        return cls(page_size=cast_value(config.options.get("page_size"), int))

    def _bucket(self, name: str) -> _MemoryBucket:
        try:
            return self._buckets[name]
        except KeyError:
            raise FileNotFoundError(f"Bucket not found: {name}") from None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    async def create_bucket(self, name: str, options: dict[str, Any]) -> bool:
        created = name not in self._buckets
        self._buckets.setdefault(name, _MemoryBucket())
        return created

    async def destroy_bucket(self, name: str) -> bool:
        return self._buckets.pop(name, None) is not None

    async def list_bucket_names(self) -> list[str]:
        return sorted(self._buckets)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def put_file(
        self, bucket: str, path: str, chunks: AsyncIterator[bytes], mime: str
    ) -> dict[str, Any]:
        store = self._bucket(bucket)
        if path in store.directories:
            raise IsADirectoryError(f"Is a directory: {path}")
        content = b"".join([chunk async for chunk in chunks])
        self._make_parents(store, _parent(path))
        existing = store.files.get(path)
        if existing is None:
            store.files[path] = _MemoryObject(content=content, mime=mime)
        else:
            existing.content = content
            existing.mime = mime
            existing.updated_at = datetime.now(UTC)
        return {"size": len(content)}

    async def get_file_stream(
        self, bucket: str, path: str
    ) -> tuple[AsyncIterator[bytes], dict[str, Any]]:
        obj = self._bucket(bucket).files.get(path)
        if obj is None:
            raise FileNotFoundError(f"File not found: {path}")
        content = obj.content

        async def stream() -> AsyncIterator[bytes]:
            for offset in range(0, len(content), CHUNK_SIZE):
                await asyncio.sleep(0)
                yield content[offset : offset + CHUNK_SIZE]

        return stream(), {"size": len(content)}

    async def delete_file(self, bucket: str, path: str) -> bool:
        store = self._bucket(bucket)
        await asyncio.sleep(0)
        if store.files.pop(path, None) is None:
            raise FileNotFoundError(f"File not found: {path}")
        return True

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_entries(
        self,
        bucket: str,
        path: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> ListPage:
        store = self._bucket(bucket)
        if path and path not in store.directories:
            raise FileNotFoundError(f"Directory not found: {path}")
        await asyncio.sleep(0)
        entries = [
            EntryStat(path=d, type=EntryType.DIRECTORY, created_at=ts, updated_at=ts)
            for d, ts in store.directories.items()
            if _parent(d) == path
        ]
        entries.extend(
            self._file_stat(p, obj) for p, obj in store.files.items() if _parent(p) == path
        )
        entries.sort(key=lambda e: e.path)

        size = page_size or self.page_size
        start = int(page_token) if page_token else 0
        if not size:
            return ListPage(entries=entries[start:], native={"count": len(entries)})
        page = entries[start : start + size]
        token = str(start + size) if start + size < len(entries) else None
        return ListPage(entries=page, continuation_token=token, native={"offset": start})

    async def stat(self, bucket: str, path: str) -> EntryStat | None:
        store = self._bucket(bucket)
        obj = store.files.get(path)
        if obj is not None:
            return self._file_stat(path, obj)
        ts = store.directories.get(path)
        if ts is not None:
            return EntryStat(path=path, type=EntryType.DIRECTORY, created_at=ts, updated_at=ts)
        return None

    @staticmethod
    def _file_stat(path: str, obj: _MemoryObject) -> EntryStat:
        return EntryStat(
            path=path,
            type=EntryType.FILE,
            size=len(obj.content),
            mime=obj.mime,
            created_at=obj.created_at,
            updated_at=obj.updated_at,
        )

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    @staticmethod
    def _make_parents(store: _MemoryBucket, path: str) -> None:
        while path:
            if path in store.files:
                raise NotADirectoryError(f"Not a directory: {path}")
            store.directories.setdefault(path, datetime.now(UTC))
            path = _parent(path)

    async def make_directory(self, bucket: str, path: str) -> bool:
        store = self._bucket(bucket)
        if path in store.files:
            raise FileExistsError(f"File exists: {path}")
        self._make_parents(store, path)
        return True

    async def delete_directory(self, bucket: str, path: str) -> int:
        store = self._bucket(bucket)
        if path not in store.directories:
            raise FileNotFoundError(f"Directory not found: {path}")
        await asyncio.sleep(0)
        prefix = path + "/"
        removed = 0
        for p in [p for p in store.files if p.startswith(prefix)]:
            del store.files[p]
            removed += 1
        for d in [d for d in store.directories if d == path or d.startswith(prefix)]:
            del store.directories[d]
        return removed
