"""Tests for path and stream helpers."""

from __future__ import annotations

import io

from stowage.core.utils import (
    cast_value,
    extract_directory,
    extract_filename,
    guess_mime_type,
    is_directory_path,
    join_path,
    relative_to,
    slice_stream,
    stream_to_bytes,
    to_async_chunks,
)


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


# =========================================================================
# Paths
# =========================================================================


class TestPaths:
    def test_join_path(self) -> None:
        assert join_path("a", "b", "c.txt") == "a/b/c.txt"
        assert join_path("", "c.txt") == "c.txt"
        assert join_path("a/", "b/") == "a/b/"
        assert join_path("/a", "./b") == "a/b"
        assert join_path() == ""

    def test_is_directory_path(self) -> None:
        assert is_directory_path("")
        assert is_directory_path("a/")
        assert is_directory_path("a\\")
        assert not is_directory_path("a/b.txt")

    def test_extract(self) -> None:
        assert extract_filename("a/b/c.txt") == "c.txt"
        assert extract_filename("c.txt") == "c.txt"
        assert extract_directory("a/b/c.txt") == "a/b"
        assert extract_directory("c.txt") == ""
        assert extract_directory("a/b/") == "a"

    def test_relative_to(self) -> None:
        assert relative_to("a/b/c.txt", "a") == "b/c.txt"
        assert relative_to("a/b/c.txt", "a/") == "b/c.txt"
        assert relative_to("c.txt", "") == "c.txt"
        assert relative_to("ab/c.txt", "a") == "ab/c.txt"


class TestMisc:
    def test_guess_mime_type(self) -> None:
        assert guess_mime_type("a.txt") == "text/plain"
        assert guess_mime_type("noext") == "application/octet-stream"

    def test_cast_value(self) -> None:
        assert cast_value("true", bool) is True
        assert cast_value("1", bool) is True
        assert cast_value("no", bool) is False
        assert cast_value("5", int) == 5
        assert cast_value(None, int, 7) == 7
        assert cast_value(3, int) == 3


# =========================================================================
# Streams
# =========================================================================


class TestStreams:
    async def test_chunks_from_str(self) -> None:
        assert await stream_to_bytes(to_async_chunks("héllo")) == "héllo".encode()

    async def test_chunks_from_bytes(self) -> None:
        assert await stream_to_bytes(to_async_chunks(b"abc")) == b"abc"

    async def test_chunks_from_file_object(self) -> None:
        data = b"x" * 10
        chunks = [c async for c in to_async_chunks(io.BytesIO(data), chunk_size=4)]
        assert chunks == [b"xxxx", b"xxxx", b"xx"]

    async def test_chunks_from_async_iterable(self) -> None:
        assert await stream_to_bytes(to_async_chunks(_chunks(b"a", b"b"))) == b"ab"

    async def test_chunks_from_iterable(self) -> None:
        assert await stream_to_bytes(to_async_chunks([b"a", b"b"])) == b"ab"

    async def test_slice_inclusive_end(self) -> None:
        stream = _chunks(b"0123", b"4567", b"89")
        assert await stream_to_bytes(slice_stream(stream, 2, 5)) == b"2345"

    async def test_slice_open_ended(self) -> None:
        assert await stream_to_bytes(slice_stream(_chunks(b"0123", b"4567"), 6)) == b"67"
        assert await stream_to_bytes(slice_stream(_chunks(b"0123", b"4567"), None, 0)) == b"0"
