"""Learning progress analytics.

Streaks, per-day progress over a timeframe, easiness/interval distributions
and deck mastery, computed from session summaries and card scheduling states.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from lexideck.core.scheduler import CardSchedulingState, as_utc, is_due
from lexideck.core.session import SessionSummary
from lexideck.domain.shared.models import Timeframe
from lexideck.infrastructure.database.database import DatabaseManager

DEFAULT_MASTERY_REPETITIONS = 5

EASINESS_BUCKETS: list[tuple[str, float, float]] = [
    ("Very Hard", 1.3, 1.7),
    ("Hard", 1.7, 2.1),
    ("Normal", 2.1, 2.5),
    ("Easy", 2.5, 3.0),
    ("Very Easy", 3.0, math.inf),
]

INTERVAL_BUCKETS: list[tuple[str, int, float]] = [
    ("1-3 days", 1, 3),
    ("3-7 days", 3, 7),
    ("1-4 weeks", 7, 30),
    ("1-3 months", 30, 90),
    ("3-12 months", 90, 365),
    ("1 year+", 365, math.inf),
]


@dataclass
class LearningStreak:
    """Learning streak information."""

    current_streak: int
    longest_streak: int
    total_study_days: int
    last_study_date: date | None


@dataclass
class DailyProgress:
    """Sessions aggregated for one calendar day."""

    day: date
    sessions: int = 0
    cards_reviewed: int = 0
    cards_correct: int = 0
    duration_seconds: int = 0
    average_quality: float = 0.0


@dataclass
class ProgressReport:
    """Progress over a timeframe."""

    timeframe: Timeframe
    start_date: datetime
    end_date: datetime
    daily: list[DailyProgress] = field(default_factory=list)
    total_sessions: int = 0
    total_cards_reviewed: int = 0
    total_cards_correct: int = 0
    total_duration_seconds: int = 0
    accuracy: float = 0.0


@dataclass
class Bucket:
    """One bar of a distribution."""

    label: str
    count: int
    percentage: float


@dataclass
class DeckMastery:
    """Card counts by learning stage."""

    total_cards: int
    cards_due: int
    new_cards: int
    learning_cards: int
    mastered_cards: int
    mastery_percentage: float


def learning_streak(study_dates: Iterable[date], today: date) -> LearningStreak:
    """Compute current and longest streaks of consecutive study days.

    The current streak counts back from ``today``; a day without study,
    including today itself, ends it.
    """
    days = sorted(set(study_dates))
    if not days:
        return LearningStreak(0, 0, 0, None)

    studied = set(days)
    current = 0
    while today - timedelta(days=current) in studied:
        current += 1

    longest = run = 1
    for previous, day in zip(days, days[1:]):
        run = run + 1 if (day - previous).days == 1 else 1
        longest = max(longest, run)

    return LearningStreak(
        current_streak=current,
        longest_streak=longest,
        total_study_days=len(days),
        last_study_date=days[-1],
    )


def progress_report(
    sessions: Iterable[SessionSummary],
    timeframe: Timeframe | str,
    now: datetime,
) -> ProgressReport:
    """Aggregate sessions started within the timeframe by day.

    Unknown timeframe names fall back to a week.
    """
    try:
        timeframe = Timeframe(timeframe)
    except ValueError:
        timeframe = Timeframe.WEEK

    end_date = as_utc(now)
    start_date = end_date - timedelta(days=timeframe.days)
    by_day: dict[date, DailyProgress] = {}
    quality_sums: dict[date, float] = {}

    for summary in sessions:
        started = as_utc(summary.start_time)
        if not start_date <= started <= end_date:
            continue
        day = started.date()
        bucket = by_day.setdefault(day, DailyProgress(day=day))
        bucket.sessions += 1
        bucket.cards_reviewed += summary.cards_reviewed
        bucket.cards_correct += summary.cards_correct
        bucket.duration_seconds += summary.duration_seconds
        quality_sums[day] = quality_sums.get(day, 0.0) + summary.average_quality

    daily = [by_day[day] for day in sorted(by_day)]
    for bucket in daily:
        bucket.average_quality = quality_sums[bucket.day] / bucket.sessions

    report = ProgressReport(
        timeframe=timeframe, start_date=start_date, end_date=end_date, daily=daily
    )
    report.total_sessions = sum(d.sessions for d in daily)
    report.total_cards_reviewed = sum(d.cards_reviewed for d in daily)
    report.total_cards_correct = sum(d.cards_correct for d in daily)
    report.total_duration_seconds = sum(d.duration_seconds for d in daily)
    if report.total_cards_reviewed:
        report.accuracy = (
            report.total_cards_correct / report.total_cards_reviewed * 100
        )
    return report


def _distribution(
    values: list[float], buckets: list[tuple[str, float, float]]
) -> list[Bucket]:
    counts = [
        sum(1 for value in values if low <= value < high) for _, low, high in buckets
    ]
    total = sum(counts)
    return [
        Bucket(
            label=label,
            count=count,
            percentage=round(count / total * 100, 1) if total else 0.0,
        )
        for (label, _, _), count in zip(buckets, counts)
    ]


def easiness_distribution(states: Iterable[CardSchedulingState]) -> list[Bucket]:
    """Cards grouped by easiness factor."""
    return _distribution([s.easiness_factor for s in states], EASINESS_BUCKETS)


def interval_distribution(states: Iterable[CardSchedulingState]) -> list[Bucket]:
    """Reviewed cards grouped by current interval."""
    return _distribution(
        [s.interval_days for s in states if s.interval_days > 0], INTERVAL_BUCKETS
    )


def deck_mastery(
    states: Iterable[CardSchedulingState],
    now: datetime,
    mastery_repetitions: int = DEFAULT_MASTERY_REPETITIONS,
) -> DeckMastery:
    """Classify cards as new, learning or mastered and count the due ones."""
    states = list(states)
    new_cards = sum(1 for s in states if s.review_count == 0)
    mastered = sum(1 for s in states if s.repetition_count >= mastery_repetitions)
    total = len(states)
    return DeckMastery(
        total_cards=total,
        cards_due=sum(1 for s in states if is_due(s, now)),
        new_cards=new_cards,
        learning_cards=total - new_cards - mastered,
        mastered_cards=mastered,
        mastery_percentage=round(mastered / total * 100, 1) if total else 0.0,
    )


@dataclass
class ProgressOverview:
    """Everything the stats view shows."""

    streak: LearningStreak
    progress: ProgressReport
    mastery: DeckMastery
    easiness: list[Bucket]
    intervals: list[Bucket]


class ProgressAnalytics:
    """Builds progress overviews from stored sessions and cards."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        mastery_repetitions: int = DEFAULT_MASTERY_REPETITIONS,
    ) -> None:
        self.db_manager = db_manager
        self.mastery_repetitions = mastery_repetitions

    def get_overview(
        self,
        now: datetime,
        user_id: int = 1,
        timeframe: Timeframe | str = Timeframe.WEEK,
        deck_id: int | None = None,
    ) -> ProgressOverview:
        now = as_utc(now)
        sessions = self.db_manager.get_study_sessions(user_id=user_id)
        states = self.db_manager.get_card_states(user_id=user_id, deck_id=deck_id)
        return ProgressOverview(
            streak=learning_streak(
                (as_utc(s.start_time).date() for s in sessions), now.date()
            ),
            progress=progress_report(sessions, timeframe, now),
            mastery=deck_mastery(states, now, self.mastery_repetitions),
            easiness=easiness_distribution(states),
            intervals=interval_distribution(states),
        )
