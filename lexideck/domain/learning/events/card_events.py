"""Learning context domain events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from lexideck.infrastructure.messaging.event_bus import DomainEvent


@dataclass
class CardScheduledEvent(DomainEvent):
    """Event emitted when a review updates a card's schedule."""

    card_id: int
    quality: int  # 0=Again, 3=Hard, 4=Good, 5=Easy
    easiness_factor: float
    interval_days: int
    repetition_count: int
    due_at: datetime
    response_time_ms: int
    session_id: int | None = None

    def __post_init__(self) -> None:
        """Initialize parent DomainEvent fields."""
        super().__init__()


@dataclass
class SessionStartedEvent(DomainEvent):
    """Event emitted when a study session begins."""

    session_id: int
    user_id: int
    deck_id: int | None
    max_reviews: int
    cards_due: int

    def __post_init__(self) -> None:
        """Initialize parent DomainEvent fields."""
        super().__init__()


@dataclass
class SessionCompletedEvent(DomainEvent):
    """Event emitted when a study session is finalized."""

    session_id: int
    user_id: int
    cards_reviewed: int
    cards_correct: int
    average_quality: float
    duration_seconds: int

    def __post_init__(self) -> None:
        """Initialize parent DomainEvent fields."""
        super().__init__()
