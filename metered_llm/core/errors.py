"""
Client error taxonomy.

Every provider failure is mapped onto one closed set of error kinds,
each either retryable or fatal. Classification is table driven: provider
error codes first, then HTTP status codes, then status ranges.
"""

from enum import Enum
from typing import Dict, Optional

import openai


class ErrorKind(Enum):
    """Failure classifications."""
    CONFIGURATION = "configuration"
    AUTH = "auth"
    TRANSIENT_NETWORK = "transient_network"
    RATE_LIMITED = "rate_limited"
    CONTENT_REJECTED = "content_rejected"
    RETRIES_EXHAUSTED = "retries_exhausted"


class LLMClientError(Exception):
    """Base class for all client failures.

    Carries the classification plus whatever the provider reported, so
    callers can choose their own fallback.
    """
    kind: ErrorKind = ErrorKind.TRANSIENT_NETWORK
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.retry_after = retry_after

    def __str__(self) -> str:
        details = []
        if self.status_code is not None:
            details.append(f"status={self.status_code}")
        if self.code:
            details.append(f"code={self.code}")
        if details:
            return f"{self.message} ({', '.join(details)})"
        return self.message


class ConfigurationError(LLMClientError):
    """Missing or invalid credential or settings. Raised before any request."""
    kind = ErrorKind.CONFIGURATION


class AuthError(LLMClientError):
    """Provider rejected the credential or the account has no quota left."""
    kind = ErrorKind.AUTH


class TransientNetworkError(LLMClientError):
    """Timeout, connection failure or provider 5xx."""
    kind = ErrorKind.TRANSIENT_NETWORK
    retryable = True


class RateLimitedByProvider(LLMClientError):
    """Provider-side rate limit (not the local limiter)."""
    kind = ErrorKind.RATE_LIMITED
    retryable = True


class ContentRejected(LLMClientError):
    """Provider refused the input or the function-call formatting."""
    kind = ErrorKind.CONTENT_REJECTED


class RetriesExhausted(LLMClientError):
    """Every attempt failed with a retryable error."""
    kind = ErrorKind.RETRIES_EXHAUSTED

    def __init__(self, last_error: LLMClientError, attempts: int):
        super().__init__(
            f"Gave up after {attempts} attempt(s), last error: {last_error}",
            status_code=last_error.status_code,
            code=last_error.code,
        )
        self.last_error = last_error
        self.attempts = attempts
        self.__cause__ = last_error


ERROR_CLASSES: Dict[ErrorKind, type] = {
    ErrorKind.AUTH: AuthError,
    ErrorKind.TRANSIENT_NETWORK: TransientNetworkError,
    ErrorKind.RATE_LIMITED: RateLimitedByProvider,
    ErrorKind.CONTENT_REJECTED: ContentRejected,
}

# Provider error codes win over the HTTP status: quota exhaustion arrives as 429
ERROR_CODE_KINDS: Dict[str, ErrorKind] = {
    "invalid_api_key": ErrorKind.AUTH,
    "insufficient_quota": ErrorKind.AUTH,
    "content_filter": ErrorKind.CONTENT_REJECTED,
    "context_length_exceeded": ErrorKind.CONTENT_REJECTED,
    "invalid_function_call": ErrorKind.CONTENT_REJECTED,
    "rate_limit_exceeded": ErrorKind.RATE_LIMITED,
}

STATUS_KINDS: Dict[int, ErrorKind] = {
    400: ErrorKind.CONTENT_REJECTED,
    401: ErrorKind.AUTH,
    403: ErrorKind.AUTH,
    404: ErrorKind.CONTENT_REJECTED,
    408: ErrorKind.TRANSIENT_NETWORK,
    409: ErrorKind.TRANSIENT_NETWORK,
    422: ErrorKind.CONTENT_REJECTED,
    429: ErrorKind.RATE_LIMITED,
}


def kind_for_status(status_code: Optional[int], code: Optional[str] = None) -> ErrorKind:
    """Map a provider status code and error code to an error kind.

    Args:
        status_code: HTTP status of the failed response, if any
        code: Provider error code from the response body, if any

    Returns:
        The matching ErrorKind
    """
    if code and code in ERROR_CODE_KINDS:
        return ERROR_CODE_KINDS[code]
    if status_code is None:
        return ErrorKind.TRANSIENT_NETWORK
    if status_code in STATUS_KINDS:
        return STATUS_KINDS[status_code]
    if status_code >= 500:
        return ErrorKind.TRANSIENT_NETWORK
    if 400 <= status_code < 500:
        return ErrorKind.CONTENT_REJECTED
    return ErrorKind.TRANSIENT_NETWORK


def _retry_after_seconds(exc: openai.APIStatusError) -> Optional[float]:
    """Read a numeric Retry-After header, if the provider sent one."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def classify_error(exc: Exception) -> LLMClientError:
    """Translate an SDK exception into the client taxonomy.

    Args:
        exc: Exception raised by the OpenAI SDK

    Returns:
        The classified error; already-classified errors are returned as is
    """
    if isinstance(exc, LLMClientError):
        return exc

    if isinstance(exc, openai.APITimeoutError):
        return TransientNetworkError(f"Request timed out: {exc}")

    if isinstance(exc, openai.APIConnectionError):
        return TransientNetworkError(f"Connection failed: {exc}")

    if isinstance(exc, openai.APIStatusError):
        code = getattr(exc, "code", None)
        kind = kind_for_status(exc.status_code, code)
        retry_after = _retry_after_seconds(exc) if kind is ErrorKind.RATE_LIMITED else None
        return ERROR_CLASSES[kind](
            str(getattr(exc, "message", exc)),
            status_code=exc.status_code,
            code=code,
            retry_after=retry_after,
        )

    code = getattr(exc, "code", None)
    kind = kind_for_status(None, code)
    return ERROR_CLASSES[kind](str(exc), code=code)
