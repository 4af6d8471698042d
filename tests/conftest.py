"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Make the package importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from lexideck.infrastructure.database.database import DatabaseManager  # noqa: E402


@pytest.fixture
def now() -> datetime:
    """Fixed review time used across tests."""
    return datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


@pytest.fixture
def db_manager(tmp_path: Path) -> DatabaseManager:
    """Database manager backed by a temporary SQLite file."""
    return DatabaseManager(tmp_path / "lexideck.db")
