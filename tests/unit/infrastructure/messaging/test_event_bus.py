"""Tests for the in-memory event bus and learning events."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from lexideck.domain.learning.events.card_events import (
    CardScheduledEvent,
    SessionCompletedEvent,
    SessionStartedEvent,
)
from lexideck.infrastructure.messaging.event_bus import DomainEvent, EventBus


def make_scheduled_event(**overrides) -> CardScheduledEvent:
    fields = {
        "card_id": 7,
        "quality": 4,
        "easiness_factor": 2.5,
        "interval_days": 6,
        "repetition_count": 2,
        "due_at": datetime(2026, 3, 8, tzinfo=UTC),
        "response_time_ms": 1500,
    }
    fields.update(overrides)
    return CardScheduledEvent(**fields)


def make_started_event() -> SessionStartedEvent:
    return SessionStartedEvent(
        session_id=1, user_id=1, deck_id=None, max_reviews=20, cards_due=3
    )


class TestDomainEvent:
    """Base event fields."""

    def test_auto_generates_event_id(self) -> None:
        event = DomainEvent()
        assert len(event.event_id) == 36  # UUID format

    def test_uses_provided_values(self) -> None:
        timestamp = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        event = DomainEvent(event_id="custom-id", occurred_at=timestamp)

        assert event.event_id == "custom-id"
        assert event.occurred_at == timestamp

    def test_auto_generates_timestamp(self) -> None:
        before = datetime.now(UTC)
        event = make_scheduled_event()
        after = datetime.now(UTC)

        assert before <= event.occurred_at <= after

    def test_dataclass_events_get_base_fields(self) -> None:
        first = make_scheduled_event()
        second = make_scheduled_event()

        assert first.event_id != second.event_id
        assert first.event_name == "CardScheduledEvent"
        assert str(first) == f"CardScheduledEvent(event_id={first.event_id})"

    def test_session_events(self) -> None:
        completed = SessionCompletedEvent(
            session_id=3,
            user_id=1,
            cards_reviewed=10,
            cards_correct=8,
            average_quality=3.9,
            duration_seconds=420,
        )

        assert completed.event_name == "SessionCompletedEvent"
        assert make_started_event().cards_due == 3
        assert make_scheduled_event().session_id is None


class TestEventBus:
    """Publish/subscribe behaviour."""

    @pytest.fixture
    def event_bus(self) -> EventBus:
        return EventBus()

    @pytest.mark.asyncio
    async def test_publish_no_handlers(self, event_bus: EventBus) -> None:
        await event_bus.publish(make_scheduled_event())

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self, event_bus: EventBus) -> None:
        sync_handler = Mock()
        received: list[DomainEvent] = []

        async def async_handler(event: DomainEvent) -> None:
            received.append(event)

        event_bus.subscribe(CardScheduledEvent, sync_handler)
        event_bus.subscribe(CardScheduledEvent, async_handler)

        event = make_scheduled_event()
        await event_bus.publish(event)

        sync_handler.assert_called_once_with(event)
        assert received == [event]

    @pytest.mark.asyncio
    async def test_delivers_only_to_matching_type(self, event_bus: EventBus) -> None:
        scheduled_handler = Mock()
        started_handler = Mock()
        event_bus.subscribe(CardScheduledEvent, scheduled_handler)
        event_bus.subscribe(SessionStartedEvent, started_handler)

        await event_bus.publish(make_started_event())

        scheduled_handler.assert_not_called()
        started_handler.assert_called_once()

    @pytest.mark.asyncio
    async def test_handlers_run_concurrently(self, event_bus: EventBus) -> None:
        call_order = []

        async def slow_handler(_event: DomainEvent) -> None:
            call_order.append("slow_start")
            await asyncio.sleep(0.05)
            call_order.append("slow_end")

        async def fast_handler(_event: DomainEvent) -> None:
            call_order.append("fast_start")
            await asyncio.sleep(0.01)
            call_order.append("fast_end")

        event_bus.subscribe(CardScheduledEvent, slow_handler)
        event_bus.subscribe(CardScheduledEvent, fast_handler)

        await event_bus.publish(make_scheduled_event())

        assert call_order == ["slow_start", "fast_start", "fast_end", "slow_end"]

    @pytest.mark.asyncio
    async def test_handler_error_isolation(
        self, event_bus: EventBus, caplog: pytest.LogCaptureFixture
    ) -> None:
        before = Mock()
        after = Mock()

        def broken_handler(_event: DomainEvent) -> None:
            raise ValueError("stats store offline")

        event_bus.subscribe(CardScheduledEvent, before)
        event_bus.subscribe(CardScheduledEvent, broken_handler)
        event_bus.subscribe(CardScheduledEvent, after)

        with caplog.at_level(logging.ERROR):
            await event_bus.publish(make_scheduled_event())

        before.assert_called_once()
        after.assert_called_once()
        assert "broken_handler failed for CardScheduledEvent" in caplog.text
        assert "stats store offline" in caplog.text

    def test_subscribe_and_unsubscribe(self, event_bus: EventBus) -> None:
        first = Mock()
        second = Mock()

        event_bus.subscribe(CardScheduledEvent, first)
        event_bus.subscribe(CardScheduledEvent, second)
        assert event_bus.get_handler_count(CardScheduledEvent) == 2

        event_bus.unsubscribe(CardScheduledEvent, first)
        assert event_bus.get_handler_count(CardScheduledEvent) == 1

    def test_unsubscribe_unknown_handler_is_logged(
        self, event_bus: EventBus, caplog: pytest.LogCaptureFixture
    ) -> None:
        def handler(_event: DomainEvent) -> None:
            pass

        with caplog.at_level(logging.WARNING):
            event_bus.unsubscribe(SessionStartedEvent, handler)

        assert "Handler handler not found for SessionStartedEvent" in caplog.text

    def test_clear_subscriptions(self, event_bus: EventBus) -> None:
        event_bus.subscribe(CardScheduledEvent, Mock())
        event_bus.subscribe(SessionCompletedEvent, Mock())

        event_bus.clear_subscriptions()

        assert event_bus.get_handler_count(CardScheduledEvent) == 0
        assert event_bus.get_handler_count(SessionCompletedEvent) == 0

    @pytest.mark.asyncio
    async def test_logging_publish(
        self, event_bus: EventBus, caplog: pytest.LogCaptureFixture
    ) -> None:
        event_bus.subscribe(SessionStartedEvent, Mock())

        with caplog.at_level(logging.INFO):
            await event_bus.publish(make_started_event())

        assert "Publishing SessionStartedEvent to 1 handlers" in caplog.text
