"""ProviderTypeRegistry: maps a driver type name to a driver factory."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .exceptions import InvalidParamsError, NotFoundError
from .registry import Registry

if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import ProviderConfig
    from .protocol import StorageDriver

    DriverFactory = Callable[[ProviderConfig], StorageDriver]

VALID_NAME_RE = re.compile(r"^[A-Za-z0-9]+$")


def validate_name(name: str, what: str = "name") -> str:
    """Raise :class:`InvalidParamsError` unless *name* is alphanumeric."""
    if not isinstance(name, str) or not VALID_NAME_RE.match(name):
        raise InvalidParamsError(f"Invalid {what}: {name!r}", {what: name})
    return name


class ProviderTypeRegistry:
    """Driver factories a session can instantiate, keyed by type name.

    One instance is handed to each :class:`~stowage.StorageAsync`; sessions
    built from the same instance share the registered types.
    """

    def __init__(self) -> None:
        self._factories: Registry[str, DriverFactory] = Registry()

    def register(self, name: str, factory: DriverFactory, *, replace: bool = False) -> None:
        validate_name(name, "provider type")
        self._factories.add(name, factory, replace=replace)

    def unregister(self, name: str) -> bool:
        return self._factories.remove(name) is not None

    def get(self, name: str) -> DriverFactory:
        factory = self._factories.get(name)
        if factory is None:
            raise NotFoundError(
                f"The provider type {name!r} has not been registered", {"type": name}
            )
        return factory

    def has(self, name: str) -> bool:
        return self._factories.has(name)

    @property
    def names(self) -> list[str]:
        return [str(k) for k in self._factories.keys()]


def default_provider_types() -> ProviderTypeRegistry:
    """Registry with the bundled ``memory`` and ``database`` drivers."""
    from stowage.drivers.database import DatabaseDriver
    from stowage.drivers.memory import MemoryDriver

    registry = ProviderTypeRegistry()
    registry.register("memory", MemoryDriver.from_config)
    registry.register("database", DatabaseDriver.from_config)
    return registry
