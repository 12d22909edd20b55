"""Glob matching for pattern-filtered listings.

The engine never interprets patterns itself; it asks a :class:`Matcher`.
:class:`GlobMatcher` is the default and understands ``*``, ``**``, ``?``,
``[...]`` and ``{a,b}``. Patterns without a ``/`` are matched against
the basename only, so ``*.txt`` finds text files at any depth.
"""

from __future__ import annotations

import functools
import posixpath
import re
from typing import Protocol, runtime_checkable

Pattern = str | re.Pattern[str]


@runtime_checkable
class Matcher(Protocol):
    """Decides whether a bucket-relative path matches a pattern."""

    def match(self, path: str, pattern: Pattern) -> bool: ...


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    i, n = 0, len(segment)
    depth = 0
    while i < n:
        ch = segment[i]
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            j = segment.find("]", i + 1)
            if j == -1:
                out.append(re.escape(ch))
            else:
                body = segment[i + 1 : j]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = j
        elif ch == "{":
            depth += 1
            out.append("(?:")
        elif ch == "}" and depth:
            depth -= 1
            out.append(")")
        elif ch == "," and depth:
            out.append("|")
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)


@functools.lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob into an anchored regex over ``/``-separated paths.

    Examples:
        compile_glob("**/*.txt").fullmatch("a/b/c.txt") -> match
        compile_glob("*.txt").fullmatch("a/c.txt") -> None
    """
    segments = pattern.strip("/").split("/")
    parts: list[str] = []
    last = len(segments) - 1
    for idx, segment in enumerate(segments):
        if segment == "**":
            parts.append(".*" if idx == last else "(?:[^/]+/)*")
            continue
        parts.append(_translate_segment(segment) + ("" if idx == last else "/"))
    return re.compile("".join(parts))


class GlobMatcher:
    """Default matcher. ``match_base`` mirrors minimatch's ``matchBase``."""

    def __init__(self, match_base: bool = True) -> None:
        self.match_base = match_base

    def match(self, path: str, pattern: Pattern) -> bool:
        path = path.strip("/")
        if isinstance(pattern, re.Pattern):
            return pattern.search(path) is not None
        if self.match_base and "/" not in pattern:
            return compile_glob(pattern).fullmatch(posixpath.basename(path)) is not None
        return compile_glob(pattern).fullmatch(path) is not None
