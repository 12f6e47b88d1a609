"""Stub client used when no AI backend is configured."""

from __future__ import annotations

from typing import Any, Dict

from .llm_client import LLMClient, LLMUnavailableError

__all__ = ["OfflineLLMClient"]


class OfflineLLMClient(LLMClient):
    """Client that always reports the backend as unavailable.

    Plan generation treats this as a fatal error and falls back to a manual plan.
    """

    def __init__(self) -> None:
        super().__init__("offline", max_attempts=1)

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        raise LLMUnavailableError("AI backend is offline; no model is configured.")
