"""SQLModel tables used by the database driver."""

from stowage.models.objects import (
    StoredBucket,
    StoredBucketBase,
    StoredObject,
    StoredObjectBase,
)

__all__ = [
    "StoredBucket",
    "StoredBucketBase",
    "StoredObject",
    "StoredObjectBase",
]
