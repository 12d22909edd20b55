"""StoredObject and StoredBucket models for flat-namespace storage.

Provides ``StoredObjectBase`` and ``StoredBucketBase`` non-table base
classes. Subclass with ``table=True`` and a custom ``__tablename__`` to
keep several object stores in one database.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, LargeBinary, UniqueConstraint
from sqlmodel import Field, SQLModel

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class StoredObjectBase(SQLModel):
    """One object: a key inside a bucket and its bytes. No directory rows exist."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    bucket: str = Field(index=True)
    key: str = Field(index=True)
    content: bytes = Field(default=b"", sa_type=LargeBinary)
    size_bytes: int = Field(default=0)
    mime_type: str = Field(default="application/octet-stream")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class StoredObject(StoredObjectBase, table=True):
    """Default object table: ``stowage_objects``."""

    __tablename__ = "stowage_objects"
    __table_args__ = (UniqueConstraint("bucket", "key", name="uq_stowage_objects_bucket_key"),)


class StoredBucketBase(SQLModel):
    """A physical container. Objects reference it by name."""

    name: str = Field(primary_key=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class StoredBucket(StoredBucketBase, table=True):
    """Default bucket table: ``stowage_buckets``."""

    __tablename__ = "stowage_buckets"
