"""Registry: keyed collection with write-through mirrors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from .exceptions import DuplicatedElementError

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterator

K = TypeVar("K")
V = TypeVar("V")


class Registry(Generic[K, V]):
    """Ordered key → value store.

    String keys are case-insensitive. Every ``add`` and ``remove`` is
    replayed into all attached mirrors, which is how per-provider bucket
    registries keep the session-wide alias registry in sync.
    """

    def __init__(self) -> None:
        self._items: dict[Hashable, V] = {}
        self._mirrors: list[Registry[K, V]] = []

    @staticmethod
    def _key(key: K) -> Hashable:
        if isinstance(key, str):
            return key.lower()
        return key  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, key: K, value: V, *, replace: bool = False) -> V:
        """Register *value* under *key*.

        Raises:
            DuplicatedElementError: If *key* exists and *replace* is False.
        """
        k = self._key(key)
        if not replace and (k in self._items or any(m.has(key) for m in self._mirrors)):
            raise DuplicatedElementError(
                f"Element {key!r} already registered", {"key": key}
            )
        self._items[k] = value
        for mirror in self._mirrors:
            mirror.add(key, value, replace=replace)
        return value

    def remove(self, key: K) -> V | None:
        """Unregister *key*. Returns the removed value, or None."""
        value = self._items.pop(self._key(key), None)
        for mirror in self._mirrors:
            mirror.remove(key)
        return value

    def clear(self) -> None:
        """Remove every key, replaying each removal into the mirrors."""
        for k in list(self._items):
            self.remove(k)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def has(self, key: K) -> bool:
        return self._key(key) in self._items

    def get(self, key: K) -> V | None:
        return self._items.get(self._key(key))

    def list(self) -> list[V]:
        """Values in insertion order."""
        return list(self._items.values())

    def keys(self) -> list[Hashable]:
        return list(self._items)

    # ------------------------------------------------------------------
    # Mirrors
    # ------------------------------------------------------------------

    def add_mirror(self, mirror: Registry[K, V]) -> None:
        if mirror is self:
            raise ValueError("A registry cannot mirror itself")
        if mirror not in self._mirrors:
            self._mirrors.append(mirror)

    def remove_mirror(self, mirror: Registry[K, V]) -> bool:
        try:
            self._mirrors.remove(mirror)
            return True
        except ValueError:
            return False

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[V]:
        return iter(list(self._items.values()))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._items)})"
