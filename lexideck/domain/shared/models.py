"""Shared models and base classes for all bounded contexts."""

from __future__ import annotations

from enum import Enum

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Rating(int, Enum):
    """Recall-quality ratings emitted by the review buttons."""

    AGAIN = 0
    HARD = 3
    GOOD = 4
    EASY = 5

    @property
    def label(self) -> str:
        """Button label for this rating."""
        return self.name.capitalize()


class Timeframe(str, Enum):
    """Progress report windows."""

    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def days(self) -> int:
        """Number of days covered by the window."""
        return {"week": 7, "month": 30, "year": 365}[self.value]
