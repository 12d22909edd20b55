"""Tests for driver capability detection and the engine fallbacks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from stowage import ListOptions, NativeError, NotFoundError
from stowage.core.protocol import (
    StorageDriver,
    SupportsContainers,
    SupportsDirectories,
    SupportsNativeCopy,
    SupportsNativePaths,
    SupportsRecursiveListing,
    SupportsSignedUrls,
)
from stowage.core.types import EntryStat, EntryType, ListPage
from stowage.drivers import DatabaseDriver, MemoryDriver

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from stowage import Bucket, StorageAsync


# =========================================================================
# Fake drivers
# =========================================================================


class FlatDriver:
    """Minimal flat-namespace driver: only the core primitives."""

    supports_cross_bucket_operations = False

    def __init__(self) -> None:
        self.files: dict[tuple[str, str], bytes] = {}
        self.calls: list[str] = []

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def put_file(
        self, bucket: str, path: str, chunks: AsyncIterator[bytes], mime: str
    ) -> None:
        self.calls.append("put_file")
        self.files[(bucket, path)] = b"".join([c async for c in chunks])

    async def get_file_stream(self, bucket: str, path: str) -> tuple[Any, None]:
        self.calls.append("get_file_stream")
        try:
            data = self.files[(bucket, path)]
        except KeyError:
            raise FileNotFoundError(path) from None

        async def stream() -> AsyncIterator[bytes]:
            yield data

        return stream(), None

    async def delete_file(self, bucket: str, path: str) -> None:
        self.calls.append("delete_file")
        if self.files.pop((bucket, path), None) is None:
            raise FileNotFoundError(path)

    async def list_entries(
        self,
        bucket: str,
        path: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> ListPage:
        self.calls.append("list_entries")
        prefix = path + "/" if path else ""
        entries: dict[str, EntryStat] = {}
        for b, key in sorted(self.files):
            if b != bucket or not key.startswith(prefix):
                continue
            head, sep, _ = key[len(prefix):].partition("/")
            sub = prefix + head
            kind = EntryType.DIRECTORY if sep else EntryType.FILE
            entries.setdefault(sub, EntryStat(path=sub, type=kind))
        return ListPage(entries=sorted(entries.values(), key=lambda e: e.path))

    async def stat(self, bucket: str, path: str) -> EntryStat | None:
        if (bucket, path) in self.files:
            return EntryStat(path=path, size=len(self.files[(bucket, path)]))
        if any(b == bucket and k.startswith(path + "/") for b, k in self.files):
            return EntryStat(path=path, type=EntryType.DIRECTORY)
        return None


class TreeDriver(FlatDriver):
    """Flat driver with paginated recursive listing."""

    async def list_tree(
        self,
        bucket: str,
        prefix: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> ListPage:
        self.calls.append("list_tree")
        head = prefix + "/" if prefix else ""
        keys = sorted(k for b, k in self.files if b == bucket and k.startswith(head))
        start = int(page_token) if page_token else 0
        size = page_size or 2
        token = str(start + size) if start + size < len(keys) else None
        return ListPage(
            entries=[EntryStat(path=k) for k in keys[start : start + size]],
            continuation_token=token,
            native={"start": start},
        )


class CopyDriver(FlatDriver):
    """Flat driver with server-side copy and move."""

    async def copy_file(
        self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str
    ) -> str:
        self.calls.append("copy_file")
        try:
            self.files[(dest_bucket, dest_path)] = self.files[(src_bucket, src_path)]
        except KeyError:
            raise FileNotFoundError(src_path) from None
        return "copied"

    async def move_file(
        self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str
    ) -> str:
        self.calls.append("move_file")
        self.files[(dest_bucket, dest_path)] = self.files.pop((src_bucket, src_path))
        return "moved"


class SigningDriver(FlatDriver):
    async def get_public_url(self, bucket: str, path: str) -> str:
        return f"https://cdn.example/{bucket}/{path}"

    async def get_signed_url(self, bucket: str, path: str, expiration: int) -> str:
        return f"https://cdn.example/{bucket}/{path}?expires={expiration}"


class BrokenDriver(FlatDriver):
    async def put_file(
        self, bucket: str, path: str, chunks: AsyncIterator[bytes], mime: str
    ) -> None:
        raise RuntimeError("disk full")


class PickyDriver(FlatDriver):
    """Rejects writes whose file name starts with ``bad``."""

    async def put_file(
        self, bucket: str, path: str, chunks: AsyncIterator[bytes], mime: str
    ) -> None:
        if path.rpartition("/")[2].startswith("bad"):
            raise RuntimeError(f"rejected {path}")
        await super().put_file(bucket, path, chunks, mime)


async def _bucket_on(storage: StorageAsync, driver: FlatDriver, name: str = "fake") -> Bucket:
    storage.register_provider_type(name, lambda cfg: driver)
    await storage.add_provider(f"{name}://?name={name}")
    return (await storage.add_bucket(f"{name}://docs")).result


# =========================================================================
# Protocol detection
# =========================================================================


class TestProtocols:
    def test_flat_driver(self) -> None:
        driver = FlatDriver()
        assert isinstance(driver, StorageDriver)
        assert not isinstance(driver, SupportsDirectories)
        assert not isinstance(driver, SupportsRecursiveListing)
        assert not isinstance(driver, SupportsNativeCopy)
        assert not isinstance(driver, SupportsContainers)

    def test_extended_fakes(self) -> None:
        assert isinstance(TreeDriver(), SupportsRecursiveListing)
        assert isinstance(CopyDriver(), SupportsNativeCopy)
        assert isinstance(SigningDriver(), SupportsSignedUrls)

    def test_memory_driver(self) -> None:
        driver = MemoryDriver()
        assert isinstance(driver, StorageDriver)
        assert isinstance(driver, SupportsDirectories)
        assert isinstance(driver, SupportsContainers)
        assert not isinstance(driver, SupportsNativeCopy)
        assert not isinstance(driver, SupportsRecursiveListing)

    def test_database_driver(self) -> None:
        driver = DatabaseDriver()
        assert isinstance(driver, StorageDriver)
        assert isinstance(driver, SupportsRecursiveListing)
        assert isinstance(driver, SupportsNativeCopy)
        assert isinstance(driver, SupportsContainers)
        assert isinstance(driver, SupportsNativePaths)
        assert not isinstance(driver, SupportsDirectories)
        assert not isinstance(driver, SupportsSignedUrls)


# =========================================================================
# Flat-namespace fallbacks
# =========================================================================


class TestFlatDriver:
    async def test_recursive_listing_walks_levels(self, storage: StorageAsync) -> None:
        driver = FlatDriver()
        bucket = await _bucket_on(storage, driver)
        for path in ("a.txt", "x/b.txt", "x/y/c.txt"):
            await bucket.put_file(path, b"1")
        r = await bucket.list_files("", options=ListOptions(recursive=True))
        assert r.result == ["fake://docs/a.txt", "fake://docs/x/b.txt", "fake://docs/x/y/c.txt"]
        assert driver.calls.count("list_entries") == 3

    async def test_copy_uses_stream_bridge(self, storage: StorageAsync) -> None:
        driver = FlatDriver()
        bucket = await _bucket_on(storage, driver)
        await bucket.put_file("a.txt", b"1")
        driver.calls.clear()
        await bucket.copy_file("a.txt", "b.txt")
        assert driver.calls == ["get_file_stream", "put_file"]

    async def test_no_directory_cleanup(self, storage: StorageAsync) -> None:
        driver = FlatDriver()
        bucket = await _bucket_on(storage, driver)
        await bucket.put_file("x/a.txt", b"1")
        await bucket.delete_file("x/a.txt", cleanup=True)
        assert (await bucket.remove_empty_directories("")).result is True
        assert "list_entries" not in driver.calls

    async def test_make_directory_is_implicit(self, storage: StorageAsync) -> None:
        bucket = await _bucket_on(storage, FlatDriver())
        assert (await bucket.make_directory("x")).result == "fake://docs/x/"

    async def test_delete_directory_deletes_files(self, storage: StorageAsync) -> None:
        driver = FlatDriver()
        bucket = await _bucket_on(storage, driver)
        for path in ("x/a.txt", "x/y/b.txt", "z.txt"):
            await bucket.put_file(path, b"1")
        await bucket.delete_directory("x")
        assert set(driver.files) == {("docs", "z.txt")}

    async def test_destroy_without_containers_empties(self, storage: StorageAsync) -> None:
        driver = FlatDriver()
        bucket = await _bucket_on(storage, driver)
        await bucket.put_file("x/a.txt", b"1")
        await bucket.destroy()
        assert driver.files == {}
        assert storage.get_bucket("docs") is None


class TestRecursiveListing:
    async def test_pages_are_followed(self, storage: StorageAsync) -> None:
        driver = TreeDriver()
        bucket = await _bucket_on(storage, driver)
        for i in range(5):
            await bucket.put_file(f"d/f{i}.txt", b"1")
        driver.calls.clear()
        r = await bucket.list_files("d/", options=ListOptions(recursive=True))
        assert len(r.result) == 5
        assert driver.calls == ["list_tree"] * 3
        assert len(r.native_response) == 3

    async def test_pattern_applies(self, storage: StorageAsync) -> None:
        driver = TreeDriver()
        bucket = await _bucket_on(storage, driver)
        for path in ("a.txt", "b.md", "x/c.txt"):
            await bucket.put_file(path, b"1")
        r = await bucket.list_files("", "**/*.txt", ListOptions(recursive=True))
        assert r.result == ["fake://docs/a.txt", "fake://docs/x/c.txt"]

    async def test_one_level_still_uses_list_entries(self, storage: StorageAsync) -> None:
        driver = TreeDriver()
        bucket = await _bucket_on(storage, driver)
        await bucket.put_file("a.txt", b"1")
        driver.calls.clear()
        await bucket.list_files("")
        assert driver.calls == ["list_entries"]


class TestNativeCopy:
    async def test_copy_is_server_side(self, storage: StorageAsync) -> None:
        driver = CopyDriver()
        bucket = await _bucket_on(storage, driver)
        await bucket.put_file("a.txt", b"1")
        driver.calls.clear()
        r = await bucket.copy_file("a.txt", "b.txt")
        assert r.native_response == "copied"
        assert driver.calls == ["copy_file"]

    async def test_move_is_server_side(self, storage: StorageAsync) -> None:
        driver = CopyDriver()
        bucket = await _bucket_on(storage, driver)
        await bucket.put_file("a.txt", b"1")
        driver.calls.clear()
        await bucket.move_file("a.txt", "b.txt")
        assert driver.calls == ["move_file"]
        assert set(driver.files) == {("docs", "b.txt")}


class TestSignedUrls:
    async def test_driver_urls(self, storage: StorageAsync) -> None:
        bucket = await _bucket_on(storage, SigningDriver())
        assert await bucket.get_public_url("a.txt") == "https://cdn.example/docs/a.txt"
        signed = await bucket.get_signed_url("a.txt")
        assert signed == "https://cdn.example/docs/a.txt?expires=3600"


# =========================================================================
# Error wrapping
# =========================================================================


class TestErrors:
    async def test_driver_failure_becomes_native_error(self, storage: StorageAsync) -> None:
        bucket = await _bucket_on(storage, BrokenDriver())
        with pytest.raises(NativeError) as exc_info:
            await bucket.put_file("a.txt", b"1")
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.code.value == "E_NATIVE"

    async def test_missing_file_becomes_not_found(self, storage: StorageAsync) -> None:
        bucket = await _bucket_on(storage, FlatDriver())
        with pytest.raises(NotFoundError) as exc_info:
            await bucket.get_file_contents("missing.txt")
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    async def test_batch_fails_when_one_item_fails(self, storage: StorageAsync) -> None:
        driver = PickyDriver()
        bucket = await _bucket_on(storage, driver)
        driver.files[("docs", "src/a.txt")] = b"a"
        driver.files[("docs", "src/bad.txt")] = b"b"
        with pytest.raises(NativeError) as exc_info:
            await bucket.copy_files("src/", "dest/", "**")
        assert "bad.txt" in str(exc_info.value)

    async def test_batch_move_keeps_source_of_failed_item(self, storage: StorageAsync) -> None:
        driver = PickyDriver()
        bucket = await _bucket_on(storage, driver)
        driver.files[("docs", "src/a.txt")] = b"a"
        driver.files[("docs", "src/bad.txt")] = b"b"
        with pytest.raises(NativeError):
            await bucket.move_files("src/", "dest/", "**")
        assert ("docs", "src/bad.txt") in driver.files
