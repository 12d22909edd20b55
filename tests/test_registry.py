"""Tests for Registry and its write-through mirrors."""

from __future__ import annotations

import pytest

from stowage.core.exceptions import DuplicatedElementError
from stowage.core.registry import Registry


class TestRegistry:
    def test_add_and_get(self) -> None:
        r: Registry[str, int] = Registry()
        assert r.add("a", 1) == 1
        assert r.get("a") == 1
        assert r.get("missing") is None

    def test_string_keys_are_case_insensitive(self) -> None:
        r: Registry[str, int] = Registry()
        r.add("Docs", 1)
        assert r.has("docs")
        assert r.get("DOCS") == 1
        assert "dOcS" in r

    def test_duplicate_raises(self) -> None:
        r: Registry[str, int] = Registry()
        r.add("a", 1)
        with pytest.raises(DuplicatedElementError):
            r.add("A", 2)
        assert r.get("a") == 1

    def test_replace(self) -> None:
        r: Registry[str, int] = Registry()
        r.add("a", 1)
        r.add("a", 2, replace=True)
        assert r.get("a") == 2
        assert len(r) == 1

    def test_remove_returns_value(self) -> None:
        r: Registry[str, int] = Registry()
        r.add("a", 1)
        assert r.remove("a") == 1
        assert r.remove("a") is None
        assert not r.has("a")

    def test_list_keeps_insertion_order(self) -> None:
        r: Registry[str, int] = Registry()
        for i, key in enumerate(["c", "a", "b"]):
            r.add(key, i)
        assert r.list() == [0, 1, 2]
        assert r.keys() == ["c", "a", "b"]
        assert list(r) == [0, 1, 2]

    def test_clear(self) -> None:
        r: Registry[str, int] = Registry()
        r.add("a", 1)
        r.add("b", 2)
        r.clear()
        assert len(r) == 0


# =========================================================================
# Mirrors
# =========================================================================


class TestMirrors:
    def test_add_and_remove_are_replayed(self) -> None:
        source: Registry[str, int] = Registry()
        mirror: Registry[str, int] = Registry()
        source.add_mirror(mirror)
        source.add("a", 1)
        assert mirror.get("a") == 1
        source.remove("a")
        assert not mirror.has("a")

    def test_existing_entries_are_not_copied(self) -> None:
        source: Registry[str, int] = Registry()
        source.add("before", 1)
        mirror: Registry[str, int] = Registry()
        source.add_mirror(mirror)
        assert not mirror.has("before")

    def test_duplicate_in_mirror_blocks_add(self) -> None:
        first: Registry[str, int] = Registry()
        second: Registry[str, int] = Registry()
        shared: Registry[str, int] = Registry()
        first.add_mirror(shared)
        second.add_mirror(shared)
        first.add("docs", 1)
        with pytest.raises(DuplicatedElementError):
            second.add("docs", 2)
        assert not second.has("docs")
        assert shared.get("docs") == 1

    def test_remove_mirror_stops_replay(self) -> None:
        source: Registry[str, int] = Registry()
        mirror: Registry[str, int] = Registry()
        source.add_mirror(mirror)
        assert source.remove_mirror(mirror) is True
        assert source.remove_mirror(mirror) is False
        source.add("a", 1)
        assert not mirror.has("a")

    def test_cannot_mirror_itself(self) -> None:
        r: Registry[str, int] = Registry()
        with pytest.raises(ValueError):
            r.add_mirror(r)
