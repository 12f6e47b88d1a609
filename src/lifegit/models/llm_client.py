"""Typed client base class shared by all language-model integrations."""

from __future__ import annotations

import ast
import json
import re
import time
from collections.abc import Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar, get_args, get_origin, get_type_hints

from pydantic import ValidationError
from pydantic.type_adapter import TypeAdapter

__all__ = [
    "LLMAuthenticationError",
    "LLMBadRequestError",
    "LLMClient",
    "LLMClientError",
    "LLMEmptyResponseError",
    "LLMRateLimitError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMServerError",
    "LLMTransportError",
    "LLMUnavailableError",
]


T = TypeVar("T")


class LLMClientError(RuntimeError):
    """Base error raised for structured LLM client failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMRateLimitError(LLMTransportError):
    """Raised when the backend rejects the request because of rate limits."""


class LLMServerError(LLMTransportError):
    """Raised when the backend answers with a 5xx status."""


class LLMAuthenticationError(LLMClientError):
    """Raised when credentials are missing, invalid, or lack permission."""


class LLMBadRequestError(LLMClientError):
    """Raised when the backend refuses the request as malformed."""


class LLMUnavailableError(LLMClientError):
    """Raised when no backend is reachable in the current configuration."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the model returns payload that is not valid JSON."""


class LLMEmptyResponseError(LLMResponseFormatError):
    """Raised when the model answers with no content at all."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting retries due to repeated validation failures."""


@dataclass(slots=True)
class LLMRequest(Generic[T]):
    """Typed request payload sent to an LLM."""

    prompt: str
    response_model: Type[T]
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    temperature: float = 0.0
    max_tokens: Optional[int] = None
    max_attempts: Optional[int] = None

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Render a transport-ready payload for a chat-completions API."""
        messages: list[Dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.prompt})

        payload: Dict[str, Any] = {
            "model": self.model or default_model,
            "messages": messages,
            "response_format": {"type": "json_object"},
        }
        if self.temperature not in (None, 0.0):
            payload["temperature"] = self.temperature
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens
        if self.metadata:
            payload["metadata"] = {
                key: value if isinstance(value, str) else json.dumps(value, sort_keys=True)
                for key, value in self.metadata.items()
            }
        return payload


class LLMClient:
    """High-level helper that enforces JSON responses and schema validation.

    Transport failures propagate immediately so callers can apply their own retry
    policy; only malformed or schema-invalid payloads are retried here.
    """

    def __init__(self, model: str, *, max_attempts: int = 2, retry_delay: float = 0.5) -> None:
        self._model = model
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    def invoke(self, request: LLMRequest[T]) -> T:
        """Invoke the underlying model and return a validated response."""
        result, _ = self.invoke_structured(request)
        return result

    def invoke_structured(
        self,
        request: LLMRequest[T],
        *,
        logger: Optional[
            Callable[[Dict[str, Any], Optional[str], Optional[Any], Optional[Exception], int], None]
        ] = None,
    ) -> tuple[T, Any]:
        """Invoke the model and return both the structured response and raw payload."""
        attempts = request.max_attempts or self._max_attempts
        last_error: Optional[Exception] = None
        payload = request.to_payload(self._model)

        for attempt in range(1, attempts + 1):
            raw: Optional[str] = None
            data: Optional[Any] = None
            try:
                raw = self._raw_invoke(payload)
                data = self._parse_json(raw)
                data = _coerce_to_model_schema(request.response_model, data)
                data = _hydrate_response_payload(request.response_model, data)
                validated = _cached_type_adapter(request.response_model).validate_python(data)
                if logger:
                    logger(payload, raw, data, None, attempt)
                return validated, data
            except (LLMResponseFormatError, ValidationError) as error:
                last_error = error
                if logger:
                    logger(payload, raw, data, error, attempt)
                if attempt >= attempts:
                    break
                time.sleep(self._retry_delay)
            except LLMClientError as error:
                if logger:
                    logger(payload, raw, data, error, attempt)
                raise

        error_message = (
            f"Failed to produce schema-valid JSON after {attempts} attempt(s) for model "
            f"{request.model or self._model}"
        )
        raise LLMRetryError(error_message) from last_error

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")

    @staticmethod
    def _parse_json(raw_response: str) -> Any:
        """Parse JSON payloads and normalize errors."""
        text = raw_response.strip()
        if not text:
            raise LLMEmptyResponseError("Model returned an empty response.")

        text = _normalise_json_string(text)
        candidates = [text]
        repaired = _repair_json_payload(text)
        if repaired and repaired not in candidates:
            candidates.append(_normalise_json_string(repaired))

        for candidate in candidates:
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                pythonic = _coerce_python_literal(candidate)
                if pythonic is not None:
                    return pythonic

        snippet = text[:200]
        raise LLMResponseFormatError(f"Model returned invalid JSON: {snippet}")


def _strip_code_fence(payload: str) -> str:
    """Remove Markdown-style code fences that wrap JSON payloads."""
    if not payload.startswith("```"):
        return payload
    fence_header_match = re.match(r"```(?:json)?", payload[:10], re.IGNORECASE)
    if not fence_header_match:
        return payload
    fence_end = payload.find("```", len(fence_header_match.group(0)))
    if fence_end == -1:
        return payload
    content_start = payload.find("\n", len(fence_header_match.group(0)))
    if content_start == -1:
        return payload
    return payload[content_start + 1 : fence_end].strip()


def _normalise_json_string(payload: str) -> str:
    """Normalise common non-JSON characters emitted by models."""
    if not payload:
        return payload
    translation = {
        0x201C: '"',
        0x201D: '"',
        0x2018: "'",
        0x2019: "'",
        0xFF0C: ",",
        0xFF1A: ":",
        0x00A0: " ",
        0xFEFF: "",
    }
    return payload.translate(str.maketrans(translation))


def _strip_trailing_commas(payload: str) -> str:
    """Remove trailing commas before closing braces/brackets."""
    if not payload:
        return payload
    return re.sub(r",(\s*[}\]])", r"\1", payload)


def _repair_json_payload(raw: str) -> str | None:
    """Attempt to salvage a JSON object embedded in noisy output."""
    stripped = _strip_code_fence(raw.strip())
    if not stripped:
        return None

    try:
        json.loads(stripped)
    except json.JSONDecodeError:
        pass
    else:
        return stripped

    opening_idx = None
    expected: list[str] = []
    for index, char in enumerate(stripped):
        if char in "{[":
            if opening_idx is None:
                opening_idx = index
            expected.append("}" if char == "{" else "]")
        elif expected and char == expected[-1]:
            expected.pop()
            if not expected and opening_idx is not None:
                candidate = stripped[opening_idx : index + 1]
                return _strip_trailing_commas(candidate.strip())
    return None


def _coerce_python_literal(candidate: str) -> Any | None:
    """Fall back to Python literal parsing when JSON decoding fails."""
    try:
        literal = ast.literal_eval(candidate)
    except (SyntaxError, ValueError):
        return None
    if isinstance(literal, (dict, list)):
        return json.loads(json.dumps(literal, default=str))
    return None


def _hydrate_response_payload(model: Type[Any], payload: Any) -> Any:
    """Populate missing dataclass fields with defaults during coercion."""
    if not isinstance(payload, dict) or not is_dataclass(model):
        return payload
    updated = dict(payload)
    for field_info in fields(model):
        if field_info.name in updated:
            continue
        if field_info.default is not MISSING:
            updated[field_info.name] = field_info.default
        elif field_info.default_factory is not MISSING:  # type: ignore[attr-defined]
            updated[field_info.name] = field_info.default_factory()  # type: ignore[misc]
    return updated


def _coerce_to_model_schema(model: Type[Any], value: Any) -> Any:
    """Drop unknown keys and coerce nested dataclass payloads to their schema."""
    if not is_dataclass(model) or not isinstance(value, Mapping):
        return value
    normalised = {_snake_case(str(key)): item for key, item in value.items()}
    normalised.update({key: item for key, item in value.items() if key in normalised})
    value = normalised
    hints = _cached_type_hints(model)
    cleaned: dict[str, Any] = {}
    for field_info in fields(model):
        name = field_info.name
        if name in value:
            cleaned[name] = _coerce_value(hints.get(name, field_info.type), value[name])
    return cleaned


def _coerce_value(annotation: Any, value: Any) -> Any:
    """Recursively coerce nested values to match the annotated structure."""
    origin = get_origin(annotation)
    if isinstance(annotation, type) and is_dataclass(annotation):
        if not isinstance(value, Mapping):
            return {}
        return _hydrate_response_payload(annotation, _coerce_to_model_schema(annotation, value))
    if origin in {list, Sequence}:
        args = get_args(annotation)
        item_type = args[0] if args else Any
        if value is None:
            return []
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
            value = [value]
        return [_coerce_value(item_type, item) for item in value]
    return value


@lru_cache(maxsize=None)
def _cached_type_hints(model: type[Any]) -> dict[str, Any]:
    """Cache `get_type_hints` lookups to avoid repeated reflection cost."""
    try:
        return get_type_hints(model, include_extras=True)
    except Exception:
        return {field.name: field.type for field in fields(model)}


@lru_cache(maxsize=None)
def _cached_type_adapter(annotation: Any) -> TypeAdapter:
    """Reuse `TypeAdapter` instances required during validation."""
    return TypeAdapter(annotation)


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def _snake_case(key: str) -> str:
    """Convert ``camelCase`` keys emitted by some models to ``snake_case``."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()
