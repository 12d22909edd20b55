"""EventBus and event types for bucket lifecycle notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from stowage.core.bucket import Bucket

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Bucket lifecycle transitions a provider announces."""

    BEFORE_ADD_BUCKET = "before_add_bucket"
    BUCKET_ADDED = "bucket_added"
    BEFORE_REMOVE_BUCKET = "before_remove_bucket"
    BUCKET_REMOVED = "bucket_removed"
    BEFORE_DESTROY_BUCKET = "before_destroy_bucket"
    BUCKET_DESTROYED = "bucket_destroyed"


@dataclass(frozen=True, slots=True)
class BucketEvent:
    """Immutable record of a bucket lifecycle transition.

    Attributes:
        event_type: The transition.
        provider_name: Name of the provider that owns the bucket.
        bucket_name: Provider-local bucket name.
        bucket: The bucket object, None for ``BEFORE_ADD_BUCKET``.
    """

    event_type: EventType
    provider_name: str
    bucket_name: str
    bucket: Bucket | None = None


class EventBus:
    """Dispatches bucket events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated, a failing observer
    must not undo a bucket operation that already happened.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def register_all(self, handler: Callable[..., Any]) -> None:
        for event_type in EventType:
            self.register(event_type, handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    def unregister_all(self, handler: Callable[..., Any]) -> int:
        """Remove *handler* from every event type. Returns how many were removed."""
        return sum(self.unregister(et, handler) for et in EventType)

    async def emit(self, event: BucketEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in list(self._handlers[event.event_type]):
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s:%s",
                    handler,
                    event.event_type.value,
                    event.provider_name,
                    event.bucket_name,
                    exc_info=True,
                )
