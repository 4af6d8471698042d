"""Spaced-repetition scheduling for vocabulary decks."""

__version__ = "0.1.0"
