"""ScheduleCard domain service.

Loads a card's scheduling state, applies the pure scheduler, stores the new
state (version-checked) together with its review history row in one
transaction and publishes a ``CardScheduledEvent``. Failures come back as
unsuccessful results carrying the untouched prior state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from lexideck.core.scheduler import (
    CardSchedulingState,
    ReviewEvent,
    as_utc,
    schedule,
)
from lexideck.domain.learning.events.card_events import CardScheduledEvent
from lexideck.domain.shared.services import (
    CardNotFoundError,
    DomainService,
    DomainServiceError,
    log_domain_operation,
)
from lexideck.infrastructure.database.database import DatabaseManager
from lexideck.infrastructure.messaging.event_bus import EventBus

SCHEDULING_FAILED = "SCHEDULING_FAILED"


@dataclass
class ScheduleCardRequest:
    """Request DTO for scheduling one review."""

    card_id: int
    quality: int
    response_time_ms: int = 0
    session_id: int | None = None
    reviewed_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate request data."""
        if self.card_id <= 0:
            raise ValueError("card_id must be positive")
        if self.response_time_ms < 0:
            raise ValueError("response_time_ms cannot be negative")


@dataclass
class ScheduleCardResult:
    """Result DTO for a scheduling attempt."""

    success: bool
    card_id: int
    state_before: CardSchedulingState | None
    state_after: CardSchedulingState | None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def due_at(self) -> datetime | None:
        return self.state_after.due_at if self.state_after else None

    @classmethod
    def failure(
        cls,
        card_id: int,
        state: CardSchedulingState | None,
        error: Exception,
    ) -> ScheduleCardResult:
        """Failed result keeping the stored state; unexpected errors get
        ``SCHEDULING_FAILED``."""
        return cls(
            success=False,
            card_id=card_id,
            state_before=state,
            state_after=state,
            error_code=getattr(error, "error_code", None) or SCHEDULING_FAILED,
            error_message=str(error),
        )


class ScheduleCard(DomainService[ScheduleCardRequest, ScheduleCardResult]):
    """Apply one review to a stored card."""

    def __init__(self, db_manager: DatabaseManager, event_bus: EventBus) -> None:
        """Initialize ScheduleCard service.

        Args:
            db_manager: Database manager for card operations
            event_bus: Event bus for publishing domain events
        """
        super().__init__(event_bus)
        self.db_manager = db_manager

    @log_domain_operation
    async def call(self, request: ScheduleCardRequest) -> ScheduleCardResult:
        """Schedule the card named in ``request``.

        Returns:
            Result with the states before and after the review; on failure
            both equal the stored state (or None for an unknown card)
        """
        try:
            loaded = self.db_manager.get_card_state(request.card_id)
        except Exception as e:
            self.logger.error(f"Failed to load card {request.card_id}: {e}")
            return ScheduleCardResult.failure(request.card_id, None, e)
        if loaded is None:
            error = CardNotFoundError(request.card_id)
            self.logger.error(str(error))
            return ScheduleCardResult.failure(request.card_id, None, error)

        state_before, version = loaded
        now = as_utc(request.reviewed_at or datetime.now(UTC))

        try:
            review = ReviewEvent(quality=request.quality, occurred_at=now)
            state_after = schedule(state_before, review.quality, review.occurred_at)
            self.db_manager.apply_review(
                card_id=request.card_id,
                expected_version=version,
                quality=review.quality,
                before=state_before,
                after=state_after,
                response_time_ms=request.response_time_ms,
                session_id=request.session_id,
            )
        except DomainServiceError as e:
            self.logger.error(f"Could not schedule card {request.card_id}: {e}")
            return ScheduleCardResult.failure(request.card_id, state_before, e)
        except Exception as e:
            self.logger.error(f"Failed to schedule card {request.card_id}: {e}")
            return ScheduleCardResult.failure(request.card_id, state_before, e)

        await self._publish_event(
            CardScheduledEvent(
                card_id=request.card_id,
                quality=request.quality,
                easiness_factor=state_after.easiness_factor,
                interval_days=state_after.interval_days,
                repetition_count=state_after.repetition_count,
                due_at=state_after.due_at,
                response_time_ms=request.response_time_ms,
                session_id=request.session_id,
            )
        )

        self.logger.info(
            f"Scheduled card {request.card_id}: quality={request.quality} "
            f"interval={state_after.interval_days}d"
        )
        return ScheduleCardResult(
            success=True,
            card_id=request.card_id,
            state_before=state_before,
            state_after=state_after,
        )
