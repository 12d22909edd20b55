"""Tests for glob and regex path matching."""

from __future__ import annotations

import re

import pytest

from stowage.core.matcher import GlobMatcher, Matcher, compile_glob


@pytest.fixture
def matcher() -> GlobMatcher:
    return GlobMatcher()


class TestGlobMatcher:
    def test_is_matcher(self, matcher: GlobMatcher) -> None:
        assert isinstance(matcher, Matcher)

    def test_globstar(self, matcher: GlobMatcher) -> None:
        assert matcher.match("a/b/c.txt", "**/*.txt")
        assert matcher.match("c.txt", "**/*.txt")
        assert not matcher.match("a/b/c.md", "**/*.txt")

    def test_trailing_globstar(self, matcher: GlobMatcher) -> None:
        assert matcher.match("docs/x/y.txt", "docs/**")
        assert not matcher.match("other/y.txt", "docs/**")

    def test_single_star_stays_in_segment(self, matcher: GlobMatcher) -> None:
        assert matcher.match("docs/a.txt", "docs/*.txt")
        assert not matcher.match("docs/x/a.txt", "docs/*.txt")

    def test_match_base(self) -> None:
        assert GlobMatcher().match("a/b/c.txt", "*.txt")
        assert not GlobMatcher(match_base=False).match("a/b/c.txt", "*.txt")

    def test_question_mark(self, matcher: GlobMatcher) -> None:
        assert matcher.match("a.txt", "?.txt")
        assert not matcher.match("ab.txt", "?.txt")

    def test_character_class(self, matcher: GlobMatcher) -> None:
        assert matcher.match("a.txt", "[ab].txt")
        assert not matcher.match("c.txt", "[ab].txt")
        assert matcher.match("c.txt", "[!ab].txt")

    def test_braces(self, matcher: GlobMatcher) -> None:
        assert matcher.match("a.md", "*.{txt,md}")
        assert matcher.match("a.txt", "*.{txt,md}")
        assert not matcher.match("a.py", "*.{txt,md}")

    def test_literal_dot(self, matcher: GlobMatcher) -> None:
        assert not matcher.match("aXtxt", "a.txt")

    def test_regex_searches_full_path(self, matcher: GlobMatcher) -> None:
        assert matcher.match("a/b.txt", re.compile(r"\.txt$"))
        assert matcher.match("a/b.txt", re.compile(r"^a/"))
        assert not matcher.match("a/b.md", re.compile(r"\.txt$"))


class TestCompileGlob:
    def test_cached(self) -> None:
        assert compile_glob("**/*.txt") is compile_glob("**/*.txt")

    def test_globstar_alone(self) -> None:
        assert compile_glob("**").fullmatch("a/b/c") is not None
