"""Path, slug, mime and stream helpers."""

from __future__ import annotations

import mimetypes
import posixpath
import re
import unicodedata
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import Any, BinaryIO

DEFAULT_MIME_TYPE = "application/octet-stream"

CHUNK_SIZE = 64 * 1024

Contents = str | bytes | bytearray | BinaryIO | Iterable[bytes] | AsyncIterable[bytes]
"""Anything ``put_file`` accepts as file contents."""

_INVALID_SLUG_CHARS = re.compile(r"[^a-z0-9._ ]")
_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Text
# =============================================================================


def slug(value: str, replacement: str = "-") -> str:
    """Make *value* safe for use as a path segment.

    Accents are stripped, the result is lower-cased and every character
    outside ``[a-z0-9._ ]`` becomes *replacement*; whitespace runs are
    then collapsed into a single *replacement*.

    Examples:
        slug("Ärger Über.TXT") -> "arger-uber.txt"
        slug("file   01.txt") -> "file-01.txt"
    """
    if not value or not value.strip():
        return value
    text = unicodedata.normalize("NFD", value)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.lower().strip()
    text = _INVALID_SLUG_CHARS.sub(replacement, text)
    text = _WHITESPACE.sub(replacement, text)
    if replacement:
        text = text.replace(replacement + replacement, replacement)
    return text


def guess_mime_type(filename: str) -> str:
    """Guess the MIME type of a file based on its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_MIME_TYPE


def cast_value(value: Any, kind: type, default: Any = None) -> Any:
    """Cast a query-string value to *kind*.

    ``None`` yields *default*. Booleans accept ``"true"`` and ``"1"``.
    """
    if value is None:
        return default
    if isinstance(value, kind) and not (kind is int and isinstance(value, bool)):
        return value
    if kind is bool:
        return str(value).strip().lower() in ("true", "1")
    if kind is int:
        return int(str(value))
    if kind is float:
        return float(str(value))
    if kind is str:
        return str(value)
    return kind(value)


# =============================================================================
# Paths
# =============================================================================


def join_path(*parts: str) -> str:
    """Join bucket-relative path parts with ``/``, ignoring empty parts.

    A trailing separator on the last part is preserved so the result
    still reads as a directory.
    """
    pieces = [p.replace("\\", "/") for p in parts if p]
    if not pieces:
        return ""
    joined = posixpath.join(*pieces)
    trailing = joined.endswith("/")
    joined = posixpath.normpath(joined).lstrip("/")
    if joined == ".":
        joined = ""
    if trailing and joined:
        joined += "/"
    return joined


def is_directory_path(path: str) -> bool:
    """An empty reference or one ending in ``/`` names a directory."""
    return not path or path.endswith("/") or path.endswith("\\")


def extract_filename(path: str) -> str:
    """Return the last segment of *path* (empty for directory references)."""
    return posixpath.basename(path.replace("\\", "/"))


def extract_directory(path: str) -> str:
    """Return the parent of *path*, bucket-relative, no trailing separator."""
    parent = posixpath.dirname(path.replace("\\", "/").rstrip("/"))
    return parent.strip("/")


def relative_to(path: str, base: str) -> str:
    """Strip *base* from the front of *path*.

    Examples:
        relative_to("a/b/c.txt", "a") -> "b/c.txt"
        relative_to("c.txt", "") -> "c.txt"
    """
    base = base.strip("/")
    if not base:
        return path
    if path == base:
        return ""
    prefix = base + "/"
    if path.startswith(prefix):
        return path[len(prefix):]
    return path


# =============================================================================
# Streams
# =============================================================================


async def to_async_chunks(
    contents: Contents, chunk_size: int = CHUNK_SIZE
) -> AsyncIterator[bytes]:
    """Adapt any supported contents into an async iterator of byte chunks."""
    if isinstance(contents, str):
        yield contents.encode("utf-8")
        return
    if isinstance(contents, (bytes, bytearray)):
        yield bytes(contents)
        return
    if hasattr(contents, "read"):
        while True:
            chunk = contents.read(chunk_size)  # type: ignore[union-attr]
            if not chunk:
                return
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
    if isinstance(contents, AsyncIterable):
        async for chunk in contents:
            yield chunk
        return
    for chunk in contents:
        yield chunk


async def stream_to_bytes(stream: AsyncIterable[bytes]) -> bytes:
    """Drain *stream* into a single ``bytes`` object."""
    parts = [chunk async for chunk in stream]
    return b"".join(parts)


async def slice_stream(
    stream: AsyncIterable[bytes], start: int | None = None, end: int | None = None
) -> AsyncIterator[bytes]:
    """Yield only bytes ``start..end`` (inclusive) of *stream*."""
    lo = start or 0
    hi = end
    offset = 0
    async for chunk in stream:
        chunk_start = offset
        offset += len(chunk)
        if offset <= lo:
            continue
        if hi is not None and chunk_start > hi:
            return
        a = max(lo - chunk_start, 0)
        b = len(chunk) if hi is None else min(hi - chunk_start + 1, len(chunk))
        if a < b:
            yield chunk[a:b]
