"""Deck, flashcard and review persistence models."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from lexideck.core.scheduler import DEFAULT_EASINESS_FACTOR
from lexideck.domain.shared.models import Base


def utcnow_naive() -> datetime:
    """Current UTC time without tzinfo (SQLite stores naive datetimes)."""
    return datetime.now(UTC).replace(tzinfo=None)


class Deck(Base):
    """Named collection of flashcards owned by a user."""

    __tablename__ = "decks"

    deck_id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, default=1)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow_naive)

    cards = relationship("Flashcard", back_populates="deck")

    __table_args__ = (Index("idx_decks_user", "user_id"), {"extend_existing": True})


class Flashcard(Base):
    """Vocabulary card together with its scheduling state.

    ``version`` is bumped on every scheduling update and guards against two
    reviews of the same card being applied from the same prior state.
    """

    __tablename__ = "flashcards"

    card_id = Column(Integer, primary_key=True)
    deck_id = Column(Integer, ForeignKey("decks.deck_id"), nullable=False)
    user_id = Column(Integer, nullable=False, default=1)

    word = Column(String(200), nullable=False)
    definition = Column(Text, nullable=False)
    pronunciation = Column(String(200))
    examples = Column(Text, default="[]")  # JSON array of strings

    # Scheduling state
    easiness_factor = Column(Float, nullable=False, default=DEFAULT_EASINESS_FACTOR)
    interval_days = Column(Integer, nullable=False, default=0)
    repetition_count = Column(Integer, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    correct_count = Column(Integer, nullable=False, default=0)
    last_reviewed_at = Column(DateTime)
    due_at = Column(DateTime, nullable=False, default=utcnow_naive)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utcnow_naive)
    updated_at = Column(DateTime, nullable=False, default=utcnow_naive)

    deck = relationship("Deck", back_populates="cards")
    reviews = relationship("ReviewHistory", back_populates="card")

    __table_args__ = (
        Index("idx_flashcards_user_due", "user_id", "due_at"),
        Index("idx_flashcards_deck", "deck_id"),
        {"extend_existing": True},
    )


class ReviewHistory(Base):
    """One review of one card with the state before and after."""

    __tablename__ = "review_history"

    review_id = Column(Integer, primary_key=True)
    card_id = Column(Integer, ForeignKey("flashcards.card_id"), nullable=False)
    session_id = Column(Integer, ForeignKey("study_sessions.session_id"))

    reviewed_at = Column(DateTime, nullable=False)
    quality = Column(Integer, nullable=False)  # 0=Again, 3=Hard, 4=Good, 5=Easy
    response_time_ms = Column(Integer)

    easiness_before = Column(Float)
    easiness_after = Column(Float)
    interval_before = Column(Integer)
    interval_after = Column(Integer)
    repetition_before = Column(Integer)
    repetition_after = Column(Integer)
    due_at_after = Column(DateTime)

    card = relationship("Flashcard", back_populates="reviews")
    session = relationship("StudySession", back_populates="reviews")

    __table_args__ = (
        Index("idx_review_history_card", "card_id"),
        Index("idx_review_history_date", "reviewed_at"),
        {"extend_existing": True},
    )


class StudySession(Base):
    """Persisted session summary."""

    __tablename__ = "study_sessions"

    session_id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, default=1)
    deck_id = Column(Integer, ForeignKey("decks.deck_id"))

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime)
    cards_reviewed = Column(Integer, nullable=False, default=0)
    cards_correct = Column(Integer, nullable=False, default=0)
    cards_incorrect = Column(Integer, nullable=False, default=0)
    average_quality = Column(Float, nullable=False, default=0.0)
    duration_seconds = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow_naive)

    reviews = relationship("ReviewHistory", back_populates="session")

    __table_args__ = (
        Index("idx_study_sessions_user_created", "user_id", "created_at"),
        {"extend_existing": True},
    )
