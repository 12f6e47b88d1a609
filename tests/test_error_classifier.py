from __future__ import annotations

import pytest

from lifegit.models.llm_client import (
    LLMAuthenticationError,
    LLMBadRequestError,
    LLMRateLimitError,
    LLMRetryError,
    LLMServerError,
    LLMTransportError,
    LLMUnavailableError,
)
from lifegit.planning.errors import ErrorAction, ErrorClassifier
from lifegit.planning.service import EmptyResponseError, ParsingFailedError, PlanValidationError


def test_should_retry_consumes_budget() -> None:
    classifier = ErrorClassifier()
    granted = [classifier.should_retry() for _ in range(5)]
    assert granted == [True, True, True, False, False]
    assert classifier.attempts == 3


def test_retry_delay_doubles_per_attempt() -> None:
    classifier = ErrorClassifier(max_attempts=4, base_delay=2.0)
    delays = []
    while classifier.should_retry():
        delays.append(classifier.retry_delay())
    assert delays == [2.0, 4.0, 8.0, 16.0]


def test_reset_restores_budget_and_clears_last_error() -> None:
    classifier = ErrorClassifier(max_attempts=1)
    classifier.handle(LLMServerError("boom"))
    assert classifier.should_retry()
    assert not classifier.should_retry()

    classifier.reset_retry_count()
    assert classifier.attempts == 0
    assert classifier.last_error is None
    assert classifier.should_retry()


@pytest.mark.parametrize(
    ("error", "retryable", "action"),
    [
        (LLMTransportError("connection reset"), True, ErrorAction.RETRY),
        (ConnectionError("refused"), True, ErrorAction.RETRY),
        (LLMRateLimitError("slow down"), True, ErrorAction.WAIT_AND_RETRY),
        (LLMServerError("502"), True, ErrorAction.RETRY),
        (LLMAuthenticationError("401"), False, ErrorAction.CHECK_SETTINGS),
        (LLMBadRequestError("400"), False, ErrorAction.USE_OFFLINE_MODE),
        (LLMUnavailableError("offline"), False, ErrorAction.USE_OFFLINE_MODE),
        (EmptyResponseError("nothing"), True, ErrorAction.RETRY),
        (ParsingFailedError("garbled"), True, ErrorAction.RETRY),
        (LLMRetryError("schema mismatch"), True, ErrorAction.RETRY),
        (PlanValidationError("no tasks"), True, ErrorAction.RETRY),
        (KeyError("surprise"), True, ErrorAction.RETRY),
    ],
)
def test_classification(error: Exception, retryable: bool, action: ErrorAction) -> None:
    info = ErrorClassifier().handle(error)
    assert info.retryable is retryable
    assert info.action is action
    assert info.message


def test_network_errors_are_fatal_when_offline() -> None:
    classifier = ErrorClassifier(is_online=False)
    info = classifier.handle(LLMTransportError("no route to host"))
    assert not info.retryable
    assert info.action is ErrorAction.USE_OFFLINE_MODE
    assert classifier.last_error is not None


def test_actions_have_display_text() -> None:
    for action in ErrorAction:
        assert action.label
        assert action.description
