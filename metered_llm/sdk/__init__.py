"""
SDK for metered-llm.

Provides the metered chat client and the types it accepts and returns.
"""

from ..core.errors import (
    AuthError,
    ConfigurationError,
    ContentRejected,
    ErrorKind,
    LLMClientError,
    RateLimitedByProvider,
    RetriesExhausted,
    TransientNetworkError,
)
from ..core.models import ChatMessage, ChatRequest, ChatResult, CallUsage
from ..core.usage import UsageStats
from .openai_client import MeteredOpenAI

__all__ = [
    "MeteredOpenAI",
    "ChatMessage",
    "ChatRequest",
    "ChatResult",
    "CallUsage",
    "UsageStats",
    "ErrorKind",
    "LLMClientError",
    "ConfigurationError",
    "AuthError",
    "TransientNetworkError",
    "RateLimitedByProvider",
    "ContentRejected",
    "RetriesExhausted",
]
