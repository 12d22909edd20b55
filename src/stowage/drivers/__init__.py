"""Bundled drivers: in-memory hierarchical storage and a SQL object store."""

from stowage.drivers.database import DatabaseDriver
from stowage.drivers.memory import MemoryDriver

__all__ = ["DatabaseDriver", "MemoryDriver"]
