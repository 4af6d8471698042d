"""Domain service base classes and the domain error hierarchy.

Each domain service encapsulates a single business operation behind an async
``call`` method. Errors raised by the pure scheduling core and by the service
layer all derive from ``DomainServiceError`` so callers can map them to
results with a machine-readable ``error_code``.
"""

from __future__ import annotations

import functools
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from lexideck.infrastructure.messaging.event_bus import DomainEvent, EventBus

logger = logging.getLogger(__name__)

T = TypeVar("T")  # Request type
U = TypeVar("U")  # Response type


class DomainService(ABC, Generic[T, U]):
    """Base class for all domain services.

    Subclasses use Verb + Noun naming (``ScheduleCard``), expose a single
    ``call`` method and publish domain events through the shared event bus.
    """

    def __init__(self, event_bus: EventBus) -> None:
        """Initialize domain service with event bus.

        Args:
            event_bus: Event bus for publishing domain events
        """
        self.event_bus = event_bus
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def call(self, request: T) -> U:
        """Single entry point for domain service execution."""

    async def _publish_event(self, event: DomainEvent) -> None:
        """Publish a domain event, logging instead of raising on failure."""
        try:
            await self.event_bus.publish(event)
        except Exception as e:
            self.logger.error(f"Failed to publish event {type(event).__name__}: {e}")


class DomainServiceError(Exception):
    """Base exception for domain errors."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        """Initialize domain service error.

        Args:
            message: Human-readable error message
            error_code: Optional machine-readable error code
        """
        super().__init__(message)
        self.error_code = error_code


class ValidationError(DomainServiceError):
    """Input does not meet the required constraints."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        error_code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(message, error_code)
        self.field = field


class InvalidRatingError(ValidationError):
    """Quality rating outside the accepted 0-5 range."""

    def __init__(self, quality: Any) -> None:
        super().__init__(
            f"Invalid quality rating {quality!r} (must be an integer 0-5)",
            field="quality",
            error_code="INVALID_RATING",
        )
        self.quality = quality


class InvalidStateError(ValidationError):
    """Scheduling state or session summary violates an invariant."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, field=field, error_code="INVALID_STATE")


class BusinessRuleViolationError(DomainServiceError):
    """Requested operation violates a domain rule."""

    def __init__(
        self,
        message: str,
        rule: str | None = None,
        error_code: str = "BUSINESS_RULE_VIOLATION",
    ) -> None:
        super().__init__(message, error_code)
        self.rule = rule


class ConcurrentUpdateError(BusinessRuleViolationError):
    """Card was changed by another review since it was loaded."""

    def __init__(self, card_id: int, expected_version: int) -> None:
        super().__init__(
            f"Card {card_id} was modified concurrently "
            f"(expected version {expected_version})",
            rule="single_in_flight_update",
            error_code="CONCURRENT_UPDATE",
        )
        self.card_id = card_id
        self.expected_version = expected_version


class SessionClosedError(BusinessRuleViolationError):
    """Review recorded against a finalized session."""

    def __init__(self, message: str = "Session is already finalized") -> None:
        super().__init__(message, rule="finalized_session", error_code="SESSION_CLOSED")


class SessionNotFoundError(BusinessRuleViolationError):
    """Session id is not active."""

    def __init__(self, session_id: int) -> None:
        super().__init__(
            f"Session {session_id} not found or not active",
            rule="active_session",
            error_code="SESSION_NOT_FOUND",
        )
        self.session_id = session_id


class SessionLimitReachedError(BusinessRuleViolationError):
    """Session already holds its maximum number of reviews."""

    def __init__(self, session_id: int, max_reviews: int) -> None:
        super().__init__(
            f"Session {session_id} reached its limit of {max_reviews} reviews",
            rule="max_reviews",
            error_code="SESSION_LIMIT_REACHED",
        )
        self.session_id = session_id
        self.max_reviews = max_reviews


class CardNotInSessionError(BusinessRuleViolationError):
    """Card was not selected for the session it is reviewed in."""

    def __init__(self, session_id: int, card_id: int) -> None:
        super().__init__(
            f"Card {card_id} is not part of session {session_id}",
            rule="session_cards",
            error_code="CARD_NOT_IN_SESSION",
        )
        self.session_id = session_id
        self.card_id = card_id


class CardNotFoundError(DomainServiceError):
    """Card id does not exist."""

    def __init__(self, card_id: int) -> None:
        super().__init__(f"Card {card_id} not found", "CARD_NOT_FOUND")
        self.card_id = card_id


def log_domain_operation(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to log domain service calls with their duration."""

    @functools.wraps(func)
    async def wrapper(self: Any, request: Any) -> Any:
        operation_name = f"{self.__class__.__name__}.call"
        self.logger.info(f"Starting {operation_name}")

        start_time = time.time()
        try:
            result = await func(self, request)
            duration = time.time() - start_time
            self.logger.info(f"Completed {operation_name} in {duration:.3f}s")
            return result
        except Exception as e:
            duration = time.time() - start_time
            self.logger.error(f"Failed {operation_name} after {duration:.3f}s: {e}")
            raise

    return wrapper
