"""URI parsing and path normalization for ``provider://bucket/path`` references."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, quote, unquote

from .utils import slug

if TYPE_CHECKING:
    from collections.abc import Callable

URI_RE = re.compile(
    r"^(?P<protocol>[a-zA-Z0-9]+)://(?P<bucket>[a-zA-Z0-9:._-]+)/?(?P<path>[^?#]*)"
    r"(?:\?(?P<query>[^#]*))?(?:#.*)?$"
)
"""``<providerName>://<bucketAlias>/<path>?<query>``"""


@dataclass(frozen=True, slots=True)
class ParsedUri:
    """Raw pieces of a storage URI, before any registry lookup."""

    protocol: str
    bucket: str
    path: str
    query: dict[str, str]


def parse_uri(uri: str) -> ParsedUri | None:
    """Split *uri* into protocol, bucket alias, decoded path and query.

    Returns None when *uri* does not look like a storage URI.

    Examples:
        parse_uri("mem://docs/a%20b.txt").path -> "a b.txt"
        parse_uri("docs/a.txt") -> None
    """
    if not isinstance(uri, str):
        return None
    match = URI_RE.match(uri.strip())
    if match is None:
        return None
    query = dict(parse_qsl(match.group("query") or "", keep_blank_values=True))
    return ParsedUri(
        protocol=match.group("protocol"),
        bucket=match.group("bucket"),
        path=unquote(match.group("path") or ""),
        query=query,
    )


def is_uri(value: str) -> bool:
    return parse_uri(value) is not None


def normalize_path(path: str, slug_fn: Callable[[str], str] = slug) -> str:
    """Normalize a bucket-relative path.

    - Backslashes become ``/``
    - Resolves ``.`` and ``..`` and collapses repeated separators
    - Slugs and lower-cases every segment
    - Strips leading and trailing separators; the root is ``""``

    Examples:
        normalize_path("/Docs//My File.TXT") -> "docs/my-file.txt"
        normalize_path("a/../b/") -> "b"
        normalize_path("/") -> ""
    """
    if not path:
        return ""
    text = path.replace("\\", "/").strip()
    text = posixpath.normpath("/" + text)
    segments = [slug_fn(seg).lower() for seg in text.split("/") if seg and seg != "."]
    return "/".join(s for s in segments if s)


def make_file_uri(provider_name: str, bucket_alias: str, path: str) -> str:
    """Build ``provider://alias/path``, the inverse of :func:`parse_uri`.

    The path is percent-encoded so that it survives :func:`parse_uri` intact.
    """
    return f"{provider_name}://{bucket_alias}/{quote(path.lstrip('/'), safe='/')}"
