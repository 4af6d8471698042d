"""In-memory async event bus for domain events.

Scheduling and session services announce what happened (a card was
rescheduled, a session started or finished) through this bus. Delivery stays
inside the running process and nothing is persisted, so subscribers such as
loggers or statistics collectors never slow down the SQLite store.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

logger = logging.getLogger(__name__)


def _handler_name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__name__", repr(handler))


class DomainEvent:
    """Base class for all domain events.

    Concrete events are dataclasses that call ``super().__init__()`` from
    ``__post_init__``; this base stays a plain class so the subclasses can
    declare required fields of their own.
    """

    def __init__(self, event_id: str = "", occurred_at: datetime | None = None):
        """Assign the event identity.

        Args:
            event_id: Unique identifier, a fresh UUID4 when empty
            occurred_at: When the event happened, now (UTC) when None
        """
        self.event_id = event_id or str(uuid4())
        self.occurred_at = occurred_at or datetime.now(UTC)

    def __str__(self) -> str:
        """Short form used in log lines."""
        return f"{self.__class__.__name__}(event_id={self.event_id})"

    @property
    def event_name(self) -> str:
        """Return the name of this event type."""
        return self.__class__.__name__


class EventBus:
    """Publish/subscribe hub keyed by event type.

    Handlers may be plain callables or coroutine functions. All handlers of
    an event run concurrently, and an exception in one handler is logged
    without affecting the others or the publisher.
    """

    def __init__(self) -> None:
        """Create a bus with no subscriptions."""
        self._handlers: dict[type[DomainEvent], list[Callable[..., Any]]] = {}

    async def publish(self, event: DomainEvent) -> None:
        """Deliver an event to every handler subscribed to its exact type.

        Args:
            event: Domain event to deliver

        Handlers registered for a base class do not receive subclasses.
        """
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug(f"No handlers registered for {event_type.__name__}")
            return

        logger.info(f"Publishing {event_type.__name__} to {len(handlers)} handlers")
        await asyncio.gather(*[self._handle_event(handler, event) for handler in handlers])

    async def _handle_event(
        self, handler: Callable[..., Any], event: DomainEvent
    ) -> None:
        """Run one handler, logging instead of propagating its failure."""
        try:
            if inspect.iscoroutinefunction(handler):
                await handler(event)
            else:
                handler(event)
        except Exception as e:
            logger.error(
                f"Event handler {_handler_name(handler)} failed for "
                f"{type(event).__name__}: {e}"
            )

    def subscribe(
        self, event_type: type[DomainEvent], handler: Callable[..., Any]
    ) -> None:
        """Register a handler for an event type.

        Args:
            event_type: Event class to listen for
            handler: Sync or async callable taking the event
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.info(f"Subscribed {_handler_name(handler)} to {event_type.__name__}")

    def unsubscribe(
        self, event_type: type[DomainEvent], handler: Callable[..., Any]
    ) -> None:
        """Remove a handler from an event type.

        Args:
            event_type: Event class the handler was registered for
            handler: Previously subscribed handler; unknown ones are only logged
        """
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            logger.info(
                f"Unsubscribed {_handler_name(handler)} from {event_type.__name__}"
            )
        else:
            logger.warning(
                f"Handler {_handler_name(handler)} not found for {event_type.__name__}"
            )

    def get_handler_count(self, event_type: type[DomainEvent]) -> int:
        """Get number of handlers for specific event type."""
        return len(self._handlers.get(event_type, []))

    def clear_subscriptions(self) -> None:
        """Drop every subscription, e.g. between CLI invocations or tests."""
        self._handlers.clear()
        logger.info("Cleared all event subscriptions")
