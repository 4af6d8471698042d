"""Study session aggregation.

A ``SessionSummary`` is an immutable value: every operation returns a new
summary. The average quality is kept as a running mean so the individual
ratings never need to be stored.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from lexideck.core.scheduler import as_utc, validate_quality
from lexideck.domain.shared.services import InvalidStateError, SessionClosedError


@dataclass(frozen=True)
class SessionSummary:
    """Aggregated outcome of one study session."""

    start_time: datetime
    end_time: datetime | None = None
    cards_reviewed: int = 0
    cards_correct: int = 0
    average_quality: float = 0.0
    duration_seconds: int = 0

    @property
    def cards_incorrect(self) -> int:
        return self.cards_reviewed - self.cards_correct

    @property
    def is_finalized(self) -> bool:
        return self.end_time is not None


def start_session(start_time: datetime) -> SessionSummary:
    """Create an empty summary for a session starting at ``start_time``."""
    return SessionSummary(start_time=as_utc(start_time))


def record_review(
    summary: SessionSummary, is_correct: bool, quality: int
) -> SessionSummary:
    """Fold one review outcome into the summary.

    Raises:
        InvalidRatingError: When quality is not an integer in [0, 5]
        SessionClosedError: When the summary was already finalized
    """
    quality = validate_quality(quality)
    if summary.is_finalized:
        raise SessionClosedError()

    cards_reviewed = summary.cards_reviewed + 1
    average_quality = (
        summary.average_quality
        + (quality - summary.average_quality) / cards_reviewed
    )
    return replace(
        summary,
        cards_reviewed=cards_reviewed,
        cards_correct=summary.cards_correct + (1 if is_correct else 0),
        average_quality=average_quality,
    )


def finalize(summary: SessionSummary, end_time: datetime) -> SessionSummary:
    """Close the session at ``end_time``.

    Finalizing again overwrites ``end_time`` and the duration, so repeating
    the call with the same time yields an identical summary.
    """
    end_time = as_utc(end_time)
    start_time = as_utc(summary.start_time)
    if end_time < start_time:
        raise InvalidStateError(
            f"end_time {end_time.isoformat()} is before start_time "
            f"{start_time.isoformat()}",
            "end_time",
        )
    return replace(
        summary,
        end_time=end_time,
        duration_seconds=int((end_time - start_time).total_seconds()),
    )


def accuracy(summary: SessionSummary) -> float:
    """Percentage of reviewed cards answered correctly."""
    if summary.cards_reviewed == 0:
        return 0.0
    return summary.cards_correct / summary.cards_reviewed * 100
