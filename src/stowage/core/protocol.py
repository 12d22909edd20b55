"""Driver protocols: runtime-checkable interfaces.

Split into a core protocol and opt-in capability protocols so that a
driver for a flat object store can implement just the primitives without
pretending to have directories, server-side copy or signed URLs. The
:class:`~stowage.core.provider.Provider` engine checks capabilities with
``isinstance`` and falls back to generic algorithms built on the core.

Drivers speak in bucket *names* and bucket-relative paths that have
already been normalized. They raise ``FileNotFoundError`` for missing
entries and let anything else propagate; the engine wraps both.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .types import EntryStat, ListPage


@runtime_checkable
class StorageDriver(Protocol):
    """Primitive contract every driver must implement."""

    supports_cross_bucket_operations: bool
    """True when one driver call can act on two buckets at once."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> Any:
        """Called by ``Provider.init``. Returns the native response."""
        ...

    async def close(self) -> Any:
        """Called by ``Provider.dispose``."""
        ...

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def put_file(
        self, bucket: str, path: str, chunks: AsyncIterator[bytes], mime: str
    ) -> Any:
        """Write (create or replace) *path* from *chunks*."""
        ...

    async def get_file_stream(
        self, bucket: str, path: str
    ) -> tuple[AsyncIterator[bytes], Any]:
        """Open *path* for reading. Raises ``FileNotFoundError``."""
        ...

    async def delete_file(self, bucket: str, path: str) -> Any:
        """Delete one file. Raises ``FileNotFoundError``."""
        ...

    async def list_entries(
        self,
        bucket: str,
        path: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> ListPage:
        """List one level under *path* (``""`` is the bucket root)."""
        ...

    async def stat(self, bucket: str, path: str) -> EntryStat | None:
        """Describe *path*, or None when nothing exists there."""
        ...


# =====================================================================
# Opt-in capabilities
# =====================================================================


@runtime_checkable
class SupportsRecursiveListing(Protocol):
    """Native flat listing of every file under a prefix."""

    async def list_tree(
        self,
        bucket: str,
        prefix: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> ListPage: ...


@runtime_checkable
class SupportsDirectories(Protocol):
    """Hierarchical backends with real directory nodes."""

    async def make_directory(self, bucket: str, path: str) -> Any: ...

    async def delete_directory(self, bucket: str, path: str) -> Any:
        """Remove *path* and everything under it."""
        ...


@runtime_checkable
class SupportsNativeCopy(Protocol):
    """Server-side copy and move between paths (and buckets, if declared)."""

    async def copy_file(
        self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str
    ) -> Any: ...

    async def move_file(
        self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str
    ) -> Any: ...


@runtime_checkable
class SupportsContainers(Protocol):
    """Physical bucket management."""

    async def create_bucket(self, name: str, options: dict[str, Any]) -> Any: ...

    async def destroy_bucket(self, name: str) -> Any: ...

    async def list_bucket_names(self) -> list[str]: ...


@runtime_checkable
class SupportsSignedUrls(Protocol):
    async def get_public_url(self, bucket: str, path: str) -> str: ...

    async def get_signed_url(self, bucket: str, path: str, expiration: int) -> str: ...


@runtime_checkable
class SupportsNativePaths(Protocol):
    def native_path(self, bucket: str, path: str) -> str: ...
