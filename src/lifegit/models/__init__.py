"""Convenience exports for LifeGit LLM client implementations."""

from .deepseek import DeepseekClient
from .llm_client import (
    LLMAuthenticationError,
    LLMBadRequestError,
    LLMClient,
    LLMClientError,
    LLMEmptyResponseError,
    LLMRateLimitError,
    LLMRequest,
    LLMResponseFormatError,
    LLMRetryError,
    LLMServerError,
    LLMTransportError,
    LLMUnavailableError,
)
from .offline import OfflineLLMClient

__all__ = [
    "DeepseekClient",
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
    "OfflineLLMClient",
]
