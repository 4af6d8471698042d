"""Tests for session aggregation."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

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


def review_all(summary: SessionSummary, qualities: list[int]) -> SessionSummary:
    for quality in qualities:
        summary = record_review(summary, quality >= 3, quality)
    return summary


class TestRecordReview:
    """Folding review outcomes into a summary."""

    def test_start_session_is_empty(self, now: datetime) -> None:
        summary = start_session(now)

        assert summary.start_time == now
        assert summary.end_time is None
        assert summary.cards_reviewed == 0
        assert summary.cards_correct == 0
        assert summary.cards_incorrect == 0
        assert summary.average_quality == 0.0
        assert summary.duration_seconds == 0

    def test_mixed_outcomes(self, now: datetime) -> None:
        summary = review_all(start_session(now), [5, 4, 0])

        assert summary.cards_reviewed == 3
        assert summary.cards_correct == 2
        assert summary.cards_incorrect == 1
        assert summary.average_quality == 3.0

    def test_running_mean_matches_arithmetic_mean(self, now: datetime) -> None:
        qualities = [0, 3, 4, 5, 5, 4, 3, 0, 4]
        summary = start_session(now)

        for n, quality in enumerate(qualities, 1):
            summary = record_review(summary, quality >= 3, quality)
            assert summary.average_quality == pytest.approx(sum(qualities[:n]) / n)

    def test_is_correct_is_taken_from_caller(self, now: datetime) -> None:
        summary = record_review(start_session(now), False, 5)

        assert summary.cards_correct == 0
        assert summary.average_quality == 5.0

    def test_returns_new_value(self, now: datetime) -> None:
        original = start_session(now)
        updated = record_review(original, True, 4)

        assert original.cards_reviewed == 0
        assert updated is not original

    @pytest.mark.parametrize("quality", [6, -1, 2.5])
    def test_invalid_quality(self, quality: object, now: datetime) -> None:
        with pytest.raises(InvalidRatingError):
            record_review(start_session(now), True, quality)  # type: ignore[arg-type]

    def test_finalized_summary_rejects_reviews(self, now: datetime) -> None:
        summary = finalize(start_session(now), now + timedelta(minutes=1))

        with pytest.raises(SessionClosedError):
            record_review(summary, True, 4)


class TestFinalize:
    """Closing a session."""

    def test_sets_end_time_and_duration(self, now: datetime) -> None:
        end = now + timedelta(minutes=1, seconds=30)
        summary = finalize(review_all(start_session(now), [4, 4]), end)

        assert summary.end_time == end
        assert summary.duration_seconds == 90
        assert summary.is_finalized
        assert summary.cards_reviewed == 2

    def test_idempotent_for_same_end_time(self, now: datetime) -> None:
        end = now + timedelta(minutes=5)
        once = finalize(start_session(now), end)

        assert finalize(once, end) == once

    def test_later_call_overwrites(self, now: datetime) -> None:
        summary = finalize(start_session(now), now + timedelta(minutes=5))
        summary = finalize(summary, now + timedelta(minutes=10))

        assert summary.duration_seconds == 600

    def test_end_before_start(self, now: datetime) -> None:
        with pytest.raises(InvalidStateError):
            finalize(start_session(now), now - timedelta(seconds=1))

    def test_zero_length_session(self, now: datetime) -> None:
        assert finalize(start_session(now), now).duration_seconds == 0


class TestAccuracy:
    def test_empty_session(self, now: datetime) -> None:
        assert accuracy(start_session(now)) == 0.0

    def test_percentage(self, now: datetime) -> None:
        summary = review_all(start_session(now), [5, 4, 0, 0])
        assert accuracy(summary) == 50.0
