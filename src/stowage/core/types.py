"""Result envelope, listing pages and per-call option types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from .bucket import Bucket
    from .matcher import Pattern
    from .provider import Provider

R = TypeVar("R")
N = TypeVar("N")


class EntryType(str, Enum):
    FILE = "FILE"
    DIRECTORY = "DIRECTORY"


@dataclass
class StorageResponse(Generic[R, N]):
    """Every public operation returns its result next to the driver's raw response."""

    result: R
    native_response: N | None = None


@dataclass
class EntryStat:
    """What a driver knows about one entry. ``path`` is bucket-relative."""

    path: str
    type: EntryType = EntryType.FILE
    size: int | None = None
    mime: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    native: Any = None

    @property
    def is_directory(self) -> bool:
        return self.type is EntryType.DIRECTORY


@dataclass
class ListPage:
    """One page of a listing. ``continuation_token`` is None on the last page."""

    entries: list[EntryStat] = field(default_factory=list)
    continuation_token: str | None = None
    native: Any = None


@dataclass(frozen=True, slots=True)
class ResolvedUri:
    """Outcome of resolving ``provider://alias/path`` against a session."""

    provider: Provider
    bucket: Bucket
    path: str


# =============================================================================
# Options
# =============================================================================


@dataclass
class ListOptions:
    """Options for ``list_files`` / ``list_directories``.

    ``pattern`` is applied before ``filter``. ``returning=None`` defers to
    the bucket, then provider, then session default.
    """

    recursive: bool = False
    pattern: Pattern | None = None
    filter: Callable[[str, str], bool] | None = None
    """Predicate ``(name, path) -> keep``."""
    returning: bool | None = None
    page_size: int | None = None


@dataclass
class GetFileOptions:
    """Byte range for reads. ``end`` is inclusive."""

    start: int | None = None
    end: int | None = None


@dataclass
class PutFileOptions:
    returning: bool | None = None
    overwrite: bool = True
    mime: str | None = None


@dataclass
class CopyFileOptions:
    returning: bool | None = None
    overwrite: bool = True


@dataclass
class MoveFileOptions:
    returning: bool | None = None
    cleanup: bool | None = None
    overwrite: bool = True


@dataclass
class DeleteFileOptions:
    cleanup: bool | None = None


@dataclass
class CopyManyOptions:
    returning: bool | None = None
    overwrite: bool = True
    filter: Callable[[str, str], bool] | None = None


@dataclass
class MoveManyOptions:
    returning: bool | None = None
    cleanup: bool | None = None
    overwrite: bool = True
    filter: Callable[[str, str], bool] | None = None


@dataclass
class DeleteManyOptions:
    cleanup: bool | None = None
    filter: Callable[[str, str], bool] | None = None


@dataclass
class SignedUrlOptions:
    expiration: int | None = None
    """Seconds the URL stays valid."""
    action: str = "read"
