"""Classification of plan-generation failures and the retry budget that governs them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..models.llm_client import (
    LLMAuthenticationError,
    LLMBadRequestError,
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMRetryError,
    LLMServerError,
    LLMTransportError,
    LLMUnavailableError,
)
from .service import EmptyResponseError, ParsingFailedError, PlanValidationError

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 2.0


class ErrorAction(str, Enum):
    """Follow-up the caller should take after a failed generation."""

    RETRY = "retry"
    WAIT_AND_RETRY = "wait_and_retry"
    USE_OFFLINE_MODE = "use_offline_mode"
    CHECK_SETTINGS = "check_settings"

    @property
    def label(self) -> str:
        return _ACTION_TEXT[self][0]

    @property
    def description(self) -> str:
        return _ACTION_TEXT[self][1]


_ACTION_TEXT = {
    ErrorAction.RETRY: ("Retry", "Try the request again."),
    ErrorAction.WAIT_AND_RETRY: ("Wait and retry", "The service is busy; try again shortly."),
    ErrorAction.USE_OFFLINE_MODE: (
        "Use offline mode",
        "Create the task plan manually instead of using the AI backend.",
    ),
    ErrorAction.CHECK_SETTINGS: ("Check settings", "Verify the API key and model configuration."),
}


@dataclass(slots=True, frozen=True)
class ErrorInfo:
    """Classification result for a single failure."""

    title: str
    message: str
    action: ErrorAction
    retryable: bool


class ErrorClassifier:
    """Map generation failures to retry decisions and track the attempt budget.

    One instance belongs to one generation call chain. ``should_retry`` consumes an
    attempt each time it grants one; ``reset_retry_count`` restores the full budget
    after a success.
    """

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        is_online: bool = True,
    ) -> None:
        if max_attempts < 0:
            raise ValueError("max_attempts must be non-negative")
        if base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.is_online = is_online
        self._attempts = 0
        self._last_error: Optional[Exception] = None

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def handle(self, error: Exception) -> ErrorInfo:
        """Record ``error`` and describe how the caller should react to it."""
        self._last_error = error
        info = self.classify(error)
        LOGGER.debug(
            "Classified %s as %s (retryable=%s)", type(error).__name__, info.action.value, info.retryable
        )
        return info

    def classify(self, error: Exception) -> ErrorInfo:
        detail = str(error) or type(error).__name__
        if isinstance(error, LLMRateLimitError):
            return ErrorInfo("Too many requests", detail, ErrorAction.WAIT_AND_RETRY, True)
        if isinstance(error, LLMServerError):
            return ErrorInfo("Server error", detail, ErrorAction.RETRY, True)
        if isinstance(error, (LLMTransportError, ConnectionError, TimeoutError)):
            if not self.is_online:
                return ErrorInfo("No network connection", detail, ErrorAction.USE_OFFLINE_MODE, False)
            return ErrorInfo("Network error", detail, ErrorAction.RETRY, True)
        if isinstance(error, LLMAuthenticationError):
            return ErrorInfo("Authentication failed", detail, ErrorAction.CHECK_SETTINGS, False)
        if isinstance(error, LLMBadRequestError):
            return ErrorInfo("Invalid request", detail, ErrorAction.USE_OFFLINE_MODE, False)
        if isinstance(error, LLMUnavailableError):
            return ErrorInfo("AI backend unavailable", detail, ErrorAction.USE_OFFLINE_MODE, False)
        if isinstance(error, EmptyResponseError):
            return ErrorInfo("Empty response", detail, ErrorAction.RETRY, True)
        if isinstance(error, (ParsingFailedError, LLMResponseFormatError, LLMRetryError)):
            return ErrorInfo("Unreadable response", detail, ErrorAction.RETRY, True)
        if isinstance(error, PlanValidationError):
            return ErrorInfo("Invalid task plan", detail, ErrorAction.RETRY, True)
        return ErrorInfo("Unexpected error", detail, ErrorAction.RETRY, True)

    def should_retry(self) -> bool:
        """Return True and consume one attempt while the budget allows another try."""
        if self._attempts < self.max_attempts:
            self._attempts += 1
            return True
        return False

    def retry_delay(self) -> float:
        """Exponential backoff in seconds for the most recently granted attempt."""
        exponent = max(self._attempts - 1, 0)
        return self.base_delay * (2 ** exponent)

    def reset_retry_count(self) -> None:
        self._attempts = 0
        self._last_error = None


__all__ = [
    "DEFAULT_BASE_DELAY",
    "DEFAULT_MAX_ATTEMPTS",
    "ErrorAction",
    "ErrorClassifier",
    "ErrorInfo",
]
