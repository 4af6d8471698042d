"""SQLite persistence for decks, cards, reviews and study sessions."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, select, update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lexideck.core.scheduler import CardSchedulingState, as_utc
from lexideck.core.session import SessionSummary
from lexideck.domain.learning.models.learning_models import (
    Deck,
    Flashcard,
    ReviewHistory,
    StudySession,
    utcnow_naive,
)
from lexideck.domain.shared.models import Base
from lexideck.domain.shared.services import CardNotFoundError, ConcurrentUpdateError

logger = logging.getLogger(__name__)


def to_naive_utc(moment: datetime | None) -> datetime | None:
    """Convert to the naive UTC form stored in SQLite."""
    if moment is None:
        return None
    return as_utc(moment).replace(tzinfo=None)


def card_state(card: Flashcard) -> CardSchedulingState:
    """Build the scheduling value object from a card row."""
    return CardSchedulingState(
        easiness_factor=card.easiness_factor,
        interval_days=card.interval_days,
        repetition_count=card.repetition_count,
        review_count=card.review_count,
        correct_count=card.correct_count,
        due_at=as_utc(card.due_at),
        last_reviewed_at=as_utc(card.last_reviewed_at)
        if card.last_reviewed_at
        else None,
    )


def session_summary(row: StudySession) -> SessionSummary:
    """Build a session summary value from a stored session row."""
    return SessionSummary(
        start_time=as_utc(row.start_time),
        end_time=as_utc(row.end_time) if row.end_time else None,
        cards_reviewed=row.cards_reviewed,
        cards_correct=row.cards_correct,
        average_quality=row.average_quality,
        duration_seconds=row.duration_seconds,
    )


class DatabaseManager:
    """Manages database connections and card/session storage.

    Card scheduling updates use optimistic locking: ``apply_review`` and
    ``save_card_state`` only succeed when the row still carries the version
    the caller loaded.
    """

    def __init__(self, db_path: str | Path = "data/lexideck.db") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_connection: Any, _: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._create_tables()

    def _create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database initialized at {self.db_path}")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session that commits on success.

        Yields:
            Database session.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Decks and cards

    def create_deck(
        self, name: str, description: str | None = None, user_id: int = 1
    ) -> int:
        """Create a deck and return its id."""
        with self.get_session() as session:
            deck = Deck(name=name, description=description, user_id=user_id)
            session.add(deck)
            session.flush()
            logger.info(f"Created deck {deck.deck_id} ({name})")
            return deck.deck_id

    def get_deck(self, deck_id: int) -> Deck | None:
        with self.get_session() as session:
            return session.get(Deck, deck_id)

    def create_card(
        self,
        deck_id: int,
        word: str,
        definition: str,
        pronunciation: str | None = None,
        examples: list[str] | None = None,
        user_id: int = 1,
        now: datetime | None = None,
    ) -> int:
        """Create a card with the default scheduling state, due at ``now``.

        Returns:
            Id of the new card.
        """
        state = CardSchedulingState.new(now or utcnow_naive())
        with self.get_session() as session:
            card = Flashcard(
                deck_id=deck_id,
                user_id=user_id,
                word=word,
                definition=definition,
                pronunciation=pronunciation,
                examples=json.dumps(examples or []),
                easiness_factor=state.easiness_factor,
                interval_days=state.interval_days,
                repetition_count=state.repetition_count,
                review_count=state.review_count,
                correct_count=state.correct_count,
                due_at=to_naive_utc(state.due_at),
                version=1,
            )
            session.add(card)
            session.flush()
            return card.card_id

    def get_card(self, card_id: int) -> Flashcard | None:
        with self.get_session() as session:
            return session.get(Flashcard, card_id)

    def get_card_state(self, card_id: int) -> tuple[CardSchedulingState, int] | None:
        """Load a card's scheduling state and its current version.

        Returns:
            ``(state, version)`` or None if the card does not exist.
        """
        card = self.get_card(card_id)
        if card is None:
            return None
        return card_state(card), card.version

    def get_due_cards(
        self,
        now: datetime,
        user_id: int = 1,
        limit: int = 20,
        deck_id: int | None = None,
    ) -> list[Flashcard]:
        """Cards due at or before ``now``, most overdue first."""
        query = select(Flashcard).where(
            Flashcard.user_id == user_id, Flashcard.due_at <= to_naive_utc(now)
        )
        if deck_id is not None:
            query = query.where(Flashcard.deck_id == deck_id)
        query = query.order_by(Flashcard.due_at, Flashcard.card_id).limit(limit)

        with self.get_session() as session:
            return list(session.scalars(query).all())

    def get_card_states(
        self, user_id: int = 1, deck_id: int | None = None
    ) -> list[CardSchedulingState]:
        """Scheduling states of all cards of a user, optionally one deck."""
        query = select(Flashcard).where(Flashcard.user_id == user_id)
        if deck_id is not None:
            query = query.where(Flashcard.deck_id == deck_id)

        with self.get_session() as session:
            return [card_state(card) for card in session.scalars(query).all()]

    def save_card_state(
        self, card_id: int, expected_version: int, state: CardSchedulingState
    ) -> int:
        """Store a new scheduling state if the card is still at ``expected_version``.

        Returns:
            The card's new version.

        Raises:
            CardNotFoundError: When the card does not exist
            ConcurrentUpdateError: When another update landed first
        """
        with self.get_session() as session:
            return self._swap_card_state(session, card_id, expected_version, state)

    def apply_review(
        self,
        card_id: int,
        expected_version: int,
        quality: int,
        before: CardSchedulingState,
        after: CardSchedulingState,
        response_time_ms: int | None = None,
        session_id: int | None = None,
    ) -> int:
        """Store a review's new card state and its history row atomically.

        Either both the version-checked card update and the ``ReviewHistory``
        insert are committed, or neither is.

        Returns:
            The card's new version.

        Raises:
            CardNotFoundError: When the card does not exist
            ConcurrentUpdateError: When another update landed first
        """
        with self.get_session() as session:
            new_version = self._swap_card_state(
                session, card_id, expected_version, after
            )
            session.add(
                self._review_row(
                    card_id, quality, before, after, response_time_ms, session_id
                )
            )
            session.flush()
            return new_version

    def _swap_card_state(
        self,
        session: Session,
        card_id: int,
        expected_version: int,
        state: CardSchedulingState,
    ) -> int:
        new_version = expected_version + 1
        statement = (
            update(Flashcard)
            .where(
                Flashcard.card_id == card_id,
                Flashcard.version == expected_version,
            )
            .values(
                easiness_factor=state.easiness_factor,
                interval_days=state.interval_days,
                repetition_count=state.repetition_count,
                review_count=state.review_count,
                correct_count=state.correct_count,
                last_reviewed_at=to_naive_utc(state.last_reviewed_at),
                due_at=to_naive_utc(state.due_at),
                version=new_version,
                updated_at=utcnow_naive(),
            )
            .execution_options(synchronize_session=False)
        )

        result = session.execute(statement)
        if result.rowcount == 1:
            return new_version
        if session.get(Flashcard, card_id) is None:
            raise CardNotFoundError(card_id)

        logger.warning(
            f"Rejected stale update for card {card_id} at version {expected_version}"
        )
        raise ConcurrentUpdateError(card_id, expected_version)

    @staticmethod
    def _review_row(
        card_id: int,
        quality: int,
        before: CardSchedulingState,
        after: CardSchedulingState,
        response_time_ms: int | None,
        session_id: int | None,
    ) -> ReviewHistory:
        reviewed_at = after.last_reviewed_at or after.due_at
        return ReviewHistory(
            card_id=card_id,
            session_id=session_id,
            reviewed_at=to_naive_utc(reviewed_at),
            quality=int(quality),
            response_time_ms=response_time_ms,
            easiness_before=before.easiness_factor,
            easiness_after=after.easiness_factor,
            interval_before=before.interval_days,
            interval_after=after.interval_days,
            repetition_before=before.repetition_count,
            repetition_after=after.repetition_count,
            due_at_after=to_naive_utc(after.due_at),
        )

    def get_review_history(self, card_id: int) -> list[ReviewHistory]:
        query = (
            select(ReviewHistory)
            .where(ReviewHistory.card_id == card_id)
            .order_by(ReviewHistory.reviewed_at, ReviewHistory.review_id)
        )
        with self.get_session() as session:
            return list(session.scalars(query).all())

    # Study sessions

    def create_study_session(
        self, start_time: datetime, user_id: int = 1, deck_id: int | None = None
    ) -> int:
        """Create an open study session row and return its id."""
        with self.get_session() as session:
            row = StudySession(
                user_id=user_id,
                deck_id=deck_id,
                start_time=to_naive_utc(start_time),
            )
            session.add(row)
            session.flush()
            return row.session_id

    def save_study_session(self, session_id: int, summary: SessionSummary) -> None:
        """Write a (finalized) summary onto its session row."""
        with self.get_session() as session:
            row = session.get(StudySession, session_id)
            if row is None:
                raise ValueError(f"Study session {session_id} not found")
            row.start_time = to_naive_utc(summary.start_time)
            row.end_time = to_naive_utc(summary.end_time)
            row.cards_reviewed = summary.cards_reviewed
            row.cards_correct = summary.cards_correct
            row.cards_incorrect = summary.cards_incorrect
            row.average_quality = summary.average_quality
            row.duration_seconds = summary.duration_seconds

    def get_study_sessions(
        self,
        user_id: int = 1,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SessionSummary]:
        """Finalized sessions of a user, newest first."""
        query = select(StudySession).where(
            StudySession.user_id == user_id, StudySession.end_time.is_not(None)
        )
        if since is not None:
            query = query.where(StudySession.start_time >= to_naive_utc(since))
        query = query.order_by(StudySession.start_time.desc())
        if limit is not None:
            query = query.limit(limit)

        with self.get_session() as session:
            return [session_summary(row) for row in session.scalars(query).all()]
