"""DatabaseDriver: flat-namespace object store on SQLAlchemy async sessions."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete as sa_delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import select

from stowage.core.types import EntryStat, EntryType, ListPage
from stowage.core.utils import CHUNK_SIZE, cast_value
from stowage.models.objects import StoredBucket, StoredObject

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from stowage.core.config import ProviderConfig
    from stowage.models.objects import StoredBucketBase, StoredObjectBase

logger = logging.getLogger(__name__)

DEFAULT_URL = "sqlite+aiosqlite://"
DEFAULT_PAGE_SIZE = 1000


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DatabaseDriver:
    """Object store persisted in two tables: objects and buckets.

    Keys are flat (``docs/a.txt``); directories exist only as shared key
    prefixes, so there is nothing to create or clean up. Works with any
    async SQLAlchemy URL, in-memory SQLite by default.

    Implements ``StorageDriver``, ``SupportsRecursiveListing`` (keyset
    pagination over keys), ``SupportsNativeCopy`` (copies and moves happen
    in SQL, also across buckets), ``SupportsContainers`` and
    ``SupportsNativePaths``.
    """

    supports_cross_bucket_operations = True

    def __init__(
        self,
        url: str = DEFAULT_URL,
        *,
        engine: AsyncEngine | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        object_model: type[StoredObjectBase] | None = None,
        bucket_model: type[StoredBucketBase] | None = None,
        echo: bool = False,
    ) -> None:
        self.url = url
        self.page_size = page_size
        self.echo = echo
        self._engine = engine
        self._owns_engine = engine is None
        self._object_model: Any = object_model or StoredObject
        self._bucket_model: Any = bucket_model or StoredBucket
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_config(cls, config: ProviderConfig) -> DatabaseDriver:
        opts = config.options
        return cls(
            url=opts.get("url", DEFAULT_URL),
            page_size=cast_value(opts.get("page_size"), int, DEFAULT_PAGE_SIZE),
            echo=cast_value(opts.get("echo"), bool, False),
        )

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseDriver is not open")
        return self._session_factory

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> dict[str, Any]:
        if self._engine is None:
            kwargs: dict[str, Any] = {"echo": self.echo}
            if self.url.startswith("sqlite") and (":memory:" in self.url or self.url.endswith("://")):
                kwargs["poolclass"] = StaticPool
            self._engine = create_async_engine(self.url, **kwargs)
            self._owns_engine = True
        async with self._engine.begin() as conn:
            await conn.run_sync(
                lambda c: self._object_model.__table__.create(c, checkfirst=True)
            )
            await conn.run_sync(
                lambda c: self._bucket_model.__table__.create(c, checkfirst=True)
            )
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        logger.debug("Database driver opened on %s", self._engine.dialect.name)
        return {"dialect": self._engine.dialect.name}

    async def close(self) -> None:
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None
        self._session_factory = None

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    async def create_bucket(self, name: str, options: dict[str, Any]) -> bool:
        model = self._bucket_model
        async with self._sessions()() as session:
            existing = await session.get(model, name)
            if existing is not None:
                return False
            session.add(model(name=name))
            await session.commit()
        return True

    async def destroy_bucket(self, name: str) -> int:
        obj, bkt = self._object_model, self._bucket_model
        async with self._sessions()() as session:
            result = await session.execute(sa_delete(obj).where(obj.bucket == name))
            await session.execute(sa_delete(bkt).where(bkt.name == name))
            await session.commit()
        return result.rowcount or 0

    async def list_bucket_names(self) -> list[str]:
        model = self._bucket_model
        async with self._sessions()() as session:
            result = await session.execute(select(model.name).order_by(model.name))
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def _get(self, session: AsyncSession, bucket: str, key: str) -> Any:
        model = self._object_model
        result = await session.execute(
            select(model).where(model.bucket == bucket, model.key == key)
        )
        return result.scalar_one_or_none()

    async def _upsert(
        self, session: AsyncSession, bucket: str, key: str, content: bytes, mime: str
    ) -> Any:
        row = await self._get(session, bucket, key)
        if row is None:
            row = self._object_model(
                bucket=bucket,
                key=key,
                content=content,
                size_bytes=len(content),
                mime_type=mime,
            )
            session.add(row)
        else:
            row.content = content
            row.size_bytes = len(content)
            row.mime_type = mime
            row.updated_at = datetime.now(UTC)
        return row

    async def put_file(
        self, bucket: str, path: str, chunks: AsyncIterator[bytes], mime: str
    ) -> dict[str, Any]:
        content = b"".join([chunk async for chunk in chunks])
        async with self._sessions()() as session:
            row = await self._upsert(session, bucket, path, content, mime)
            await session.commit()
            return {"id": row.id, "size": row.size_bytes}

    async def get_file_stream(
        self, bucket: str, path: str
    ) -> tuple[AsyncIterator[bytes], dict[str, Any]]:
        async with self._sessions()() as session:
            row = await self._get(session, bucket, path)
        if row is None:
            raise FileNotFoundError(f"Object not found: {bucket}/{path}")
        content: bytes = row.content

        async def stream() -> AsyncIterator[bytes]:
            for offset in range(0, len(content), CHUNK_SIZE):
                yield content[offset : offset + CHUNK_SIZE]

        return stream(), {"id": row.id, "size": row.size_bytes}

    async def delete_file(self, bucket: str, path: str) -> dict[str, Any]:
        async with self._sessions()() as session:
            row = await self._get(session, bucket, path)
            if row is None:
                raise FileNotFoundError(f"Object not found: {bucket}/{path}")
            await session.delete(row)
            await session.commit()
        return {"id": row.id}

    async def copy_file(
        self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str
    ) -> dict[str, Any]:
        async with self._sessions()() as session:
            src = await self._get(session, src_bucket, src_path)
            if src is None:
                raise FileNotFoundError(f"Object not found: {src_bucket}/{src_path}")
            row = await self._upsert(
                session, dest_bucket, dest_path, src.content, src.mime_type
            )
            await session.commit()
            return {"id": row.id}

    async def move_file(
        self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str
    ) -> dict[str, Any]:
        async with self._sessions()() as session:
            src = await self._get(session, src_bucket, src_path)
            if src is None:
                raise FileNotFoundError(f"Object not found: {src_bucket}/{src_path}")
            if (src_bucket, src_path) == (dest_bucket, dest_path):
                return {"id": src.id}
            existing = await self._get(session, dest_bucket, dest_path)
            if existing is not None:
                await session.delete(existing)
                await session.flush()
            src.bucket = dest_bucket
            src.key = dest_path
            src.updated_at = datetime.now(UTC)
            await session.commit()
            return {"id": src.id}

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _prefix_filter(self, bucket: str, prefix: str) -> list[Any]:
        model = self._object_model
        clauses = [model.bucket == bucket]
        if prefix:
            clauses.append(model.key.like(_escape_like(prefix) + "%", escape="\\"))
        return clauses

    async def list_entries(
        self,
        bucket: str,
        path: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> ListPage:
        """One level under *path*: objects, plus a directory per shared sub-prefix."""
        model = self._object_model
        prefix = path + "/" if path else ""
        async with self._sessions()() as session:
            result = await session.execute(
                select(model).where(*self._prefix_filter(bucket, prefix)).order_by(model.key)
            )
            rows = result.scalars().all()

        directories: dict[str, EntryStat] = {}
        entries: list[EntryStat] = []
        for row in rows:
            rest = row.key[len(prefix):]
            head, sep, _ = rest.partition("/")
            if sep:
                sub = prefix + head
                if sub not in directories:
                    directories[sub] = EntryStat(path=sub, type=EntryType.DIRECTORY)
            else:
                entries.append(self._stat_of(row))
        entries.extend(directories.values())
        entries.sort(key=lambda e: e.path)

        size = page_size or self.page_size
        start = int(page_token) if page_token else 0
        page = entries[start : start + size]
        token = str(start + size) if start + size < len(entries) else None
        return ListPage(entries=page, continuation_token=token, native={"rows": len(rows)})

    async def list_tree(
        self,
        bucket: str,
        prefix: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> ListPage:
        """Every object under *prefix*, ordered by key, ``page_size`` at a time."""
        model = self._object_model
        size = page_size or self.page_size
        clauses = self._prefix_filter(bucket, prefix + "/" if prefix else "")
        if page_token:
            clauses.append(model.key > page_token)
        async with self._sessions()() as session:
            result = await session.execute(
                select(model).where(*clauses).order_by(model.key).limit(size + 1)
            )
            rows = list(result.scalars().all())
        more = len(rows) > size
        rows = rows[:size]
        token = rows[-1].key if more and rows else None
        return ListPage(
            entries=[self._stat_of(r) for r in rows],
            continuation_token=token,
            native={"rows": len(rows)},
        )

    async def stat(self, bucket: str, path: str) -> EntryStat | None:
        model = self._object_model
        async with self._sessions()() as session:
            row = await self._get(session, bucket, path)
            if row is not None:
                return self._stat_of(row)
            result = await session.execute(
                select(model.id).where(*self._prefix_filter(bucket, path + "/")).limit(1)
            )
            if result.first() is not None:
                return EntryStat(path=path, type=EntryType.DIRECTORY)
        return None

    @staticmethod
    def _stat_of(row: Any) -> EntryStat:
        return EntryStat(
            path=row.key,
            type=EntryType.FILE,
            size=row.size_bytes,
            mime=row.mime_type,
            created_at=row.created_at,
            updated_at=row.updated_at,
            native={"id": row.id},
        )

    def native_path(self, bucket: str, path: str) -> str:
        return f"{self._object_model.__tablename__}/{bucket}/{path}"
