"""Tests for domain service base classes and the error hierarchy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from unittest.mock import AsyncMock, Mock

import pytest

from lexideck.domain.shared.services import (
    BusinessRuleViolationError,
    CardNotFoundError,
    CardNotInSessionError,
    ConcurrentUpdateError,
    DomainService,
    DomainServiceError,
    InvalidRatingError,
    InvalidStateError,
    SessionClosedError,
    SessionLimitReachedError,
    SessionNotFoundError,
    ValidationError,
    log_domain_operation,
)
from lexideck.infrastructure.messaging.event_bus import DomainEvent, EventBus


@dataclass
class WordLookupRequest:
    word: str


@dataclass
class WordLookupEvent(DomainEvent):
    word: str

    def __post_init__(self) -> None:
        super().__init__()


class LookUpWord(DomainService[WordLookupRequest, str]):
    """Minimal service exercising the base class."""

    @log_domain_operation
    async def call(self, request: WordLookupRequest) -> str:
        if not request.word:
            raise ValidationError("word cannot be empty", "word")
        await self._publish_event(WordLookupEvent(word=request.word))
        return request.word.lower()


class TestDomainServiceBase:
    @pytest.fixture
    def event_bus(self) -> Mock:
        bus = Mock(spec=EventBus)
        bus.publish = AsyncMock()
        return bus

    @pytest.fixture
    def service(self, event_bus: Mock) -> LookUpWord:
        return LookUpWord(event_bus)

    @pytest.mark.asyncio
    async def test_successful_call(
        self,
        service: LookUpWord,
        event_bus: Mock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO):
            assert await service.call(WordLookupRequest("Serendipity")) == "serendipity"

        event_bus.publish.assert_awaited_once()
        assert event_bus.publish.call_args.args[0].word == "Serendipity"
        assert "Starting LookUpWord.call" in caplog.text
        assert "Completed LookUpWord.call" in caplog.text

    @pytest.mark.asyncio
    async def test_errors_are_logged_and_reraised(
        self, service: LookUpWord, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR), pytest.raises(ValidationError):
            await service.call(WordLookupRequest(""))

        assert "Failed LookUpWord.call" in caplog.text

    @pytest.mark.asyncio
    async def test_event_publish_failure_is_logged(
        self,
        service: LookUpWord,
        event_bus: Mock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        event_bus.publish.side_effect = RuntimeError("bus down")

        with caplog.at_level(logging.ERROR):
            assert await service.call(WordLookupRequest("ok")) == "ok"

        assert "Failed to publish event WordLookupEvent" in caplog.text

    def test_logger_named_after_service(self, service: LookUpWord) -> None:
        assert service.logger.name == "LookUpWord"


class TestErrors:
    """Error codes and hierarchy."""

    def test_base_error(self) -> None:
        error = DomainServiceError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.error_code is None

    def test_validation_error_defaults(self) -> None:
        error = ValidationError("Invalid input")
        assert error.error_code == "VALIDATION_ERROR"
        assert error.field is None

    def test_invalid_rating(self) -> None:
        error = InvalidRatingError(7)

        assert isinstance(error, ValidationError)
        assert error.error_code == "INVALID_RATING"
        assert error.field == "quality"
        assert error.quality == 7
        assert "7" in str(error)

    def test_invalid_state(self) -> None:
        error = InvalidStateError("easiness_factor is below 1.3", "easiness_factor")

        assert isinstance(error, ValidationError)
        assert error.error_code == "INVALID_STATE"
        assert error.field == "easiness_factor"

    def test_business_rule_defaults(self) -> None:
        error = BusinessRuleViolationError("Rule violated")
        assert error.error_code == "BUSINESS_RULE_VIOLATION"
        assert error.rule is None

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (ConcurrentUpdateError(3, 2), "CONCURRENT_UPDATE"),
            (SessionClosedError(), "SESSION_CLOSED"),
            (SessionNotFoundError(9), "SESSION_NOT_FOUND"),
            (SessionLimitReachedError(9, 20), "SESSION_LIMIT_REACHED"),
            (CardNotInSessionError(9, 4), "CARD_NOT_IN_SESSION"),
        ],
    )
    def test_business_rule_errors(
        self, error: BusinessRuleViolationError, code: str
    ) -> None:
        assert isinstance(error, BusinessRuleViolationError)
        assert error.error_code == code
        assert error.rule

    def test_concurrent_update_message(self) -> None:
        error = ConcurrentUpdateError(card_id=3, expected_version=2)

        assert str(error) == "Card 3 was modified concurrently (expected version 2)"
        assert error.card_id == 3

    def test_card_not_found(self) -> None:
        error = CardNotFoundError(11)

        assert not isinstance(error, BusinessRuleViolationError)
        assert error.error_code == "CARD_NOT_FOUND"
        assert str(error) == "Card 11 not found"
