"""Tests for storage URIs, path normalization and slugs."""

from __future__ import annotations

from stowage.core.uri import is_uri, make_file_uri, normalize_path, parse_uri
from stowage.core.utils import slug


class TestParseUri:
    def test_full_uri(self) -> None:
        parsed = parse_uri("mem://docs/a/b.txt")
        assert parsed is not None
        assert parsed.protocol == "mem"
        assert parsed.bucket == "docs"
        assert parsed.path == "a/b.txt"
        assert parsed.query == {}

    def test_bucket_only(self) -> None:
        parsed = parse_uri("mem://docs")
        assert parsed is not None
        assert parsed.bucket == "docs"
        assert parsed.path == ""

    def test_percent_decoding(self) -> None:
        parsed = parse_uri("mem://docs/a%20b.txt")
        assert parsed is not None
        assert parsed.path == "a b.txt"

    def test_query(self) -> None:
        parsed = parse_uri("mem://docs/a.txt?mode=0444")
        assert parsed is not None
        assert parsed.path == "a.txt"
        assert parsed.query == {"mode": "0444"}

    def test_alias_with_provider_prefix(self) -> None:
        parsed = parse_uri("mem://mem:docs/a.txt")
        assert parsed is not None
        assert parsed.bucket == "mem:docs"

    def test_not_a_uri(self) -> None:
        assert parse_uri("docs/a.txt") is None
        assert parse_uri("/abs/path.txt") is None
        assert parse_uri("mem:/docs/a.txt") is None
        assert not is_uri("a.txt")
        assert is_uri("mem://docs/a.txt")


class TestNormalizePath:
    def test_slugs_every_segment(self) -> None:
        assert normalize_path("/Docs//My File.TXT") == "docs/my-file.txt"

    def test_resolves_dots(self) -> None:
        assert normalize_path("a/./b/../c.txt") == "a/c.txt"
        assert normalize_path("a/../b/") == "b"

    def test_cannot_escape_root(self) -> None:
        assert normalize_path("../../etc/passwd") == "etc/passwd"
        assert normalize_path("..") == ""

    def test_root(self) -> None:
        assert normalize_path("") == ""
        assert normalize_path("/") == ""

    def test_backslashes(self) -> None:
        assert normalize_path("a\\b\\c.txt") == "a/b/c.txt"

    def test_custom_slug(self) -> None:
        assert normalize_path("A/B", str.upper) == "a/b"


class TestMakeFileUri:
    def test_build(self) -> None:
        assert make_file_uri("mem", "docs", "a/b.txt") == "mem://docs/a/b.txt"
        assert make_file_uri("mem", "docs", "/a.txt") == "mem://docs/a.txt"

    def test_inverse_of_parse(self) -> None:
        parsed = parse_uri(make_file_uri("db", "mem:docs", "x/y.bin"))
        assert parsed is not None
        assert (parsed.protocol, parsed.bucket, parsed.path) == ("db", "mem:docs", "x/y.bin")

    def test_reserved_characters_are_encoded(self) -> None:
        uri = make_file_uri("mem", "docs", "a b/c#1?.txt")
        assert uri == "mem://docs/a%20b/c%231%3F.txt"
        parsed = parse_uri(uri)
        assert parsed is not None
        assert parsed.path == "a b/c#1?.txt"
        assert parsed.query == {}


class TestSlug:
    def test_accents_and_case(self) -> None:
        assert slug("Ärger Über.TXT") == "arger-uber.txt"

    def test_whitespace_runs(self) -> None:
        assert slug("file   01.txt") == "file-01.txt"

    def test_invalid_characters(self) -> None:
        assert slug("a_b") == "a-b"
        assert slug("report(1).pdf") == "report-1-.pdf"

    def test_empty(self) -> None:
        assert slug("") == ""
