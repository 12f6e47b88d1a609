"""Production Deepseek client that speaks the chat-completions API."""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Dict, Optional

from .llm_client import (
    LLMAuthenticationError,
    LLMBadRequestError,
    LLMClient,
    LLMClientError,
    LLMEmptyResponseError,
    LLMRateLimitError,
    LLMServerError,
    LLMTransportError,
)

__all__ = ["DeepseekClient", "error_for_status"]


Transport = Callable[[Dict[str, Any]], str]

DEFAULT_BASE_URL = "https://api.deepseek.com/chat/completions"


def error_for_status(status: int, message: str) -> LLMClientError:
    """Map an HTTP status code onto the client error taxonomy."""
    if status == 400:
        return LLMBadRequestError(f"Bad request: {message}")
    if status in (401, 403):
        return LLMAuthenticationError(f"HTTP {status}: {message}")
    if status == 429:
        return LLMRateLimitError(f"Rate limited: {message}")
    if status >= 500:
        return LLMServerError(f"Server error {status}: {message}")
    return LLMTransportError(f"HTTP {status}: {message}")


class DeepseekClient(LLMClient):
    """Thin adapter around the Deepseek chat-completions endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = "deepseek-reasoner",
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        max_attempts: int = 2,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__(model=model, max_attempts=max_attempts, retry_delay=retry_delay)
        self._api_key = api_key or os.getenv("DEEPSEEK_API_KEY")
        self._base_url = base_url
        timeout_override = os.getenv("DEEPSEEK_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    timeout = parsed
            except ValueError:
                pass
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Send the request over the configured transport."""
        try:
            raw_response = self._transport(payload)
        except LLMClientError:
            raise
        except Exception as error:  # pragma: no cover - defensive path
            raise LLMTransportError(f"Transport rejected the request: {error}") from error

        content = self._extract_message_content(raw_response)
        if content is None:
            raise LLMEmptyResponseError("Deepseek response did not contain any choices.")
        return content

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default HTTP transport that targets the Deepseek API."""
        import urllib.error
        import urllib.request

        body = dict(payload)
        body.pop("metadata", None)
        data = json.dumps(body).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError("Deepseek response timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise error_for_status(error.code, message) from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach Deepseek endpoint: {error.reason}") from error

        if status >= 400:
            raise error_for_status(status, raw.decode("utf-8", errors="ignore"))

        return raw.decode("utf-8")

    @staticmethod
    def _extract_message_content(raw_response: str) -> Optional[str]:
        """Return ``choices[0].message.content`` or the raw text when it is not an envelope."""
        if not raw_response:
            return None

        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

        if not isinstance(data, dict) or "choices" not in data:
            return raw_response

        choices = data.get("choices") or []
        for choice in choices:
            if not isinstance(choice, dict):
                continue
            message = choice.get("message")
            if isinstance(message, dict):
                content = message.get("content")
                if isinstance(content, str) and content.strip():
                    return content
        return None
