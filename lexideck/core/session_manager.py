"""Study session orchestration.

Coordinates the ScheduleCard service, the session aggregator and storage:
a session picks the cards that are due, applies each submitted review and
folds the outcome into a ``SessionSummary`` that is persisted when the
session ends.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from lexideck.core.scheduler import as_utc, is_success
from lexideck.core.session import (
    SessionSummary,
    accuracy,
    finalize,
    record_review,
    start_session,
)
from lexideck.domain.learning.events.card_events import (
    SessionCompletedEvent,
    SessionStartedEvent,
)
from lexideck.domain.learning.services.schedule_card import (
    ScheduleCard,
    ScheduleCardRequest,
    ScheduleCardResult,
)
from lexideck.domain.shared.services import (
    CardNotInSessionError,
    SessionLimitReachedError,
    SessionNotFoundError,
)
from lexideck.infrastructure.database.database import DatabaseManager
from lexideck.infrastructure.messaging.event_bus import DomainEvent, EventBus

logger = logging.getLogger(__name__)


@dataclass
class SessionConfig:
    """Configuration for a study session."""

    max_reviews: int = 20
    deck_id: int | None = None

    def __post_init__(self) -> None:
        if self.max_reviews <= 0:
            raise ValueError("max_reviews must be positive")


@dataclass
class ActiveSession:
    """In-memory bookkeeping for a running session."""

    session_id: int
    user_id: int
    config: SessionConfig
    card_ids: list[int]
    summary: SessionSummary
    in_flight: int = 0


@dataclass
class SessionProgress:
    """Snapshot of a running session."""

    session_id: int
    summary: SessionSummary
    cards_total: int
    cards_remaining: int
    accuracy_percentage: float


class SessionManager:
    """Manages study session lifecycle."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        schedule_card_service: ScheduleCard,
        event_bus: EventBus,
    ) -> None:
        """Initialize session manager.

        Args:
            db_manager: Database manager instance
            schedule_card_service: Domain service for card scheduling
            event_bus: Event bus for session events
        """
        self.db_manager = db_manager
        self.schedule_card_service = schedule_card_service
        self.event_bus = event_bus
        self._active_sessions: dict[int, ActiveSession] = {}

    async def start_session(
        self,
        config: SessionConfig,
        user_id: int = 1,
        now: datetime | None = None,
    ) -> tuple[int, list[int]]:
        """Start a session over the cards currently due.

        Returns:
            Tuple of (session_id, due card ids in review order)
        """
        now = as_utc(now or datetime.now(UTC))
        session_id = self.db_manager.create_study_session(
            start_time=now, user_id=user_id, deck_id=config.deck_id
        )
        due_cards = self.db_manager.get_due_cards(
            now=now, user_id=user_id, limit=config.max_reviews, deck_id=config.deck_id
        )
        card_ids = [card.card_id for card in due_cards]

        self._active_sessions[session_id] = ActiveSession(
            session_id=session_id,
            user_id=user_id,
            config=config,
            card_ids=card_ids,
            summary=start_session(now),
        )
        logger.info(f"Started session {session_id} with {len(card_ids)} due cards")

        await self._publish(
            SessionStartedEvent(
                session_id=session_id,
                user_id=user_id,
                deck_id=config.deck_id,
                max_reviews=config.max_reviews,
                cards_due=len(card_ids),
            )
        )
        return session_id, card_ids

    async def submit_review(
        self,
        session_id: int,
        card_id: int,
        quality: int,
        response_time_ms: int = 0,
        now: datetime | None = None,
    ) -> ScheduleCardResult:
        """Schedule a reviewed card and count it toward the session.

        Only reviews that were actually applied are counted. A review holds
        one of the session's ``max_reviews`` slots while it is being
        scheduled, so concurrent submissions cannot overrun the limit.

        Raises:
            SessionNotFoundError: When the session is not active
            SessionLimitReachedError: When the session is already full
            CardNotInSessionError: When the card was not selected for the session
        """
        active = self._get_active(session_id)
        taken = active.summary.cards_reviewed + active.in_flight
        if taken >= active.config.max_reviews:
            raise SessionLimitReachedError(session_id, active.config.max_reviews)
        if card_id not in active.card_ids:
            raise CardNotInSessionError(session_id, card_id)

        active.in_flight += 1
        try:
            result = await self.schedule_card_service.call(
                ScheduleCardRequest(
                    card_id=card_id,
                    quality=quality,
                    response_time_ms=response_time_ms,
                    session_id=session_id,
                    reviewed_at=now,
                )
            )
        finally:
            active.in_flight -= 1

        if result.success:
            active.summary = record_review(active.summary, is_success(quality), quality)
        return result

    def get_session_progress(self, session_id: int) -> SessionProgress:
        """Get current session progress."""
        active = self._get_active(session_id)
        total = min(len(active.card_ids), active.config.max_reviews)
        return SessionProgress(
            session_id=session_id,
            summary=active.summary,
            cards_total=total,
            cards_remaining=max(0, total - active.summary.cards_reviewed),
            accuracy_percentage=round(accuracy(active.summary), 1),
        )

    async def end_session(
        self, session_id: int, now: datetime | None = None
    ) -> SessionSummary:
        """Finalize, persist and close a session.

        Returns:
            The finalized summary
        """
        active = self._get_active(session_id)
        summary = finalize(active.summary, now or datetime.now(UTC))
        self.db_manager.save_study_session(session_id, summary)
        del self._active_sessions[session_id]

        logger.info(
            f"Ended session {session_id}: {summary.cards_correct}/"
            f"{summary.cards_reviewed} correct in {summary.duration_seconds}s"
        )
        await self._publish(
            SessionCompletedEvent(
                session_id=session_id,
                user_id=active.user_id,
                cards_reviewed=summary.cards_reviewed,
                cards_correct=summary.cards_correct,
                average_quality=summary.average_quality,
                duration_seconds=summary.duration_seconds,
            )
        )
        return summary

    def _get_active(self, session_id: int) -> ActiveSession:
        if session_id not in self._active_sessions:
            raise SessionNotFoundError(session_id)
        return self._active_sessions[session_id]

    async def _publish(self, event: DomainEvent) -> None:
        try:
            await self.event_bus.publish(event)
        except Exception as e:
            logger.error(f"Failed to publish {event.event_name}: {e}")
