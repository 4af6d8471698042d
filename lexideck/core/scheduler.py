"""SM-2 style spaced-repetition scheduler.

Pure functions over an immutable ``CardSchedulingState``. Given a recall
quality rating (0-5) and the review time, ``schedule`` returns the next state
of the card; nothing here reads the clock or touches storage.

Callers that persist the state must make sure at most one scheduling update
per card is in flight at a time (see ``DatabaseManager.apply_review``),
otherwise two concurrent reviews can both start from the same prior state.

Rules:
    - EF' = EF + (0.1 - (5-q)*(0.08 + (5-q)*0.02)), floored at 1.3 and kept
      at two decimal places
    - q < 3: repetitions = 0, interval = 1
    - q >= 3: repetitions += 1; interval is 1, then 6, then
      round_half_up(interval * EF'), capped at MAX_INTERVAL_DAYS (100 years)
    - due_at = now + interval days
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from lexideck.domain.shared.models import Rating
from lexideck.domain.shared.services import InvalidRatingError, InvalidStateError

MIN_EASINESS_FACTOR = 1.3
DEFAULT_EASINESS_FACTOR = 2.5
EASINESS_PRECISION = 2
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
LAPSE_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 36500


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime; naive values are UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class CardSchedulingState:
    """Scheduling state of a single card."""

    easiness_factor: float
    interval_days: int
    repetition_count: int
    review_count: int
    correct_count: int
    due_at: datetime
    last_reviewed_at: datetime | None = None

    @classmethod
    def new(cls, now: datetime) -> CardSchedulingState:
        """Default state for a freshly created card, due immediately."""
        return cls(
            easiness_factor=DEFAULT_EASINESS_FACTOR,
            interval_days=0,
            repetition_count=0,
            review_count=0,
            correct_count=0,
            due_at=as_utc(now),
            last_reviewed_at=None,
        )

    def validate(self) -> None:
        """Raise ``InvalidStateError`` if any invariant is violated."""
        if not isinstance(self.easiness_factor, (int, float)) or math.isnan(
            self.easiness_factor
        ):
            raise InvalidStateError(
                f"easiness_factor must be a number, got {self.easiness_factor!r}",
                "easiness_factor",
            )
        if self.easiness_factor < MIN_EASINESS_FACTOR:
            raise InvalidStateError(
                f"easiness_factor {self.easiness_factor} is below "
                f"{MIN_EASINESS_FACTOR}",
                "easiness_factor",
            )
        for name in ("interval_days", "repetition_count", "review_count", "correct_count"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidStateError(f"{name} must be an integer", name)
            if value < 0:
                raise InvalidStateError(f"{name} cannot be negative ({value})", name)
        if self.correct_count > self.review_count:
            raise InvalidStateError(
                f"correct_count {self.correct_count} exceeds "
                f"review_count {self.review_count}",
                "correct_count",
            )
        if not isinstance(self.due_at, datetime):
            raise InvalidStateError("due_at must be a datetime", "due_at")
        if self.last_reviewed_at is not None and not isinstance(
            self.last_reviewed_at, datetime
        ):
            raise InvalidStateError(
                "last_reviewed_at must be a datetime or None", "last_reviewed_at"
            )


def validate_quality(quality: object) -> int:
    """Return ``quality`` as an int or raise ``InvalidRatingError``."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidRatingError(quality)
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidRatingError(quality)
    return int(quality)


@dataclass(frozen=True)
class ReviewEvent:
    """A single rating given to a card; not persisted by the scheduler."""

    quality: int
    occurred_at: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "quality", validate_quality(self.quality))
        object.__setattr__(self, "occurred_at", as_utc(self.occurred_at))


def is_success(quality: int) -> bool:
    """A review counts as successful from "Hard" (3) upwards."""
    return quality >= PASSING_QUALITY


def update_easiness(easiness_factor: float, quality: int) -> float:
    """Apply the SM-2 easiness update with the 1.3 floor."""
    miss = MAX_QUALITY - quality
    updated = easiness_factor + (0.1 - miss * (0.08 + miss * 0.02))
    return round(max(MIN_EASINESS_FACTOR, updated), EASINESS_PRECISION)


def next_interval(
    interval_days: int, repetition_count: int, easiness_factor: float
) -> int:
    """Interval for a successful review that brings the streak to ``repetition_count``."""
    if repetition_count == 1:
        return FIRST_INTERVAL_DAYS
    if repetition_count == 2:
        return SECOND_INTERVAL_DAYS
    grown = round_half_up(interval_days * easiness_factor)
    return min(MAX_INTERVAL_DAYS, max(1, grown))


def schedule(
    state: CardSchedulingState, quality: int, now: datetime
) -> CardSchedulingState:
    """Compute the card state after a review with the given quality.

    Args:
        state: Current scheduling state (left untouched)
        quality: Recall quality rating, an integer from 0 to 5
        now: Time of the review

    Returns:
        New scheduling state with updated due date

    Raises:
        InvalidRatingError: When quality is not an integer in [0, 5]
        InvalidStateError: When the input state violates an invariant, or
            the next due date falls outside the datetime range
    """
    quality = validate_quality(quality)
    state.validate()
    now = as_utc(now)

    easiness_factor = update_easiness(state.easiness_factor, quality)

    if is_success(quality):
        repetition_count = state.repetition_count + 1
        interval_days = next_interval(
            state.interval_days, repetition_count, easiness_factor
        )
        correct_count = state.correct_count + 1
    else:
        repetition_count = 0
        interval_days = LAPSE_INTERVAL_DAYS
        correct_count = state.correct_count

    try:
        due_at = now + timedelta(days=interval_days)
    except OverflowError as e:
        raise InvalidStateError(
            f"due date {interval_days} days after {now.isoformat()} is not "
            "representable",
            "due_at",
        ) from e

    return replace(
        state,
        easiness_factor=easiness_factor,
        interval_days=interval_days,
        repetition_count=repetition_count,
        review_count=state.review_count + 1,
        correct_count=correct_count,
        due_at=due_at,
        last_reviewed_at=now,
    )


def is_due(state: CardSchedulingState, now: datetime) -> bool:
    """Whether the card is eligible for review at ``now``."""
    return as_utc(state.due_at) <= as_utc(now)


def preview(
    state: CardSchedulingState, now: datetime
) -> dict[Rating, CardSchedulingState]:
    """State each rating button would produce, keyed by rating."""
    return {rating: schedule(state, int(rating), now) for rating in Rating}


def format_interval(days: int) -> str:
    """Human-readable label for an interval, e.g. for rating buttons."""
    if days <= 0:
        return "now"
    if days < 7:
        return "1 day" if days == 1 else f"{days} days"
    if days < 30:
        weeks = round_half_up(days / 7)
        return "1 week" if weeks == 1 else f"{weeks} weeks"
    if days < 365:
        months = round_half_up(days / 30)
        return "1 month" if months == 1 else f"{months} months"
    years = round_half_up(days / 365)
    return "1 year" if years == 1 else f"{years} years"
