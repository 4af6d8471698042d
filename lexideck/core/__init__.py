"""Scheduling core: pure scheduler and session aggregation."""

from lexideck.core.scheduler import (
    CardSchedulingState,
    ReviewEvent,
    format_interval,
    is_due,
    is_success,
    preview,
    schedule,
)
from lexideck.core.session import (
    SessionSummary,
    accuracy,
    finalize,
    record_review,
    start_session,
)
from lexideck.domain.shared.services import (
    InvalidRatingError,
    InvalidStateError,
    SessionClosedError,
)

__all__ = [
    "CardSchedulingState",
    "ReviewEvent",
    "schedule",
    "preview",
    "is_due",
    "is_success",
    "format_interval",
    "SessionSummary",
    "start_session",
    "record_review",
    "finalize",
    "accuracy",
    "InvalidRatingError",
    "InvalidStateError",
    "SessionClosedError",
]
