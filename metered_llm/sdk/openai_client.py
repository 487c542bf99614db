"""
Metered OpenAI client.

Wraps chat completions with a local rate limit, a response cache,
retry with exponential backoff, and running cost accounting.
"""

import logging
import os
import time
from typing import Any, Callable, Dict, Iterable, Optional

import openai
from openai import OpenAI

from ..config.loader import ClientConfig
from ..core.cache import ResponseCache, build_fingerprint
from ..core.errors import ConfigurationError, TransientNetworkError, classify_error
from ..core.models import CallUsage, ChatMessage, ChatRequest, ChatResult, MessageLike
from ..core.pricing import calculate_cost
from ..core.rate_limiter import FixedWindowRateLimiter
from ..core.retry import RetryController, RetryPolicy
from ..core.token_counter import TokenUsage, estimate_message_tokens, estimate_tokens
from ..core.usage import UsageAccountant, UsageStats

logger = logging.getLogger(__name__)

API_KEY_ENV = "OPENAI_API_KEY"


class MeteredOpenAI:
    """OpenAI chat client with rate limiting, caching, retries and cost tracking.

    One instance owns its limiter, cache and accountant; they can be
    injected to share them between clients or to control them in tests.
    Safe to call from several threads at once: shared state is locked
    only for bookkeeping, never across the network call or a backoff.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        api_key: Optional[str] = None,
        *,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        cache: Optional[ResponseCache] = None,
        accountant: Optional[UsageAccountant] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize the client.

        Args:
            config: Client settings (built-in defaults if omitted)
            api_key: OpenAI key; read from OPENAI_API_KEY if omitted
            rate_limiter: Limiter to use instead of a new one
            cache: Response cache to use instead of a new one
            accountant: Usage accountant to use instead of a new one
            sleep: Blocking sleep, in seconds

        Raises:
            ConfigurationError: If no API key is available
        """
        self.config = config or ClientConfig()

        key = api_key if api_key is not None else os.environ.get(API_KEY_ENV)
        if not key or not key.strip():
            raise ConfigurationError(f"{API_KEY_ENV} is not configured")

        # Retries are ours; the SDK must not retry on its own
        self.client = OpenAI(
            api_key=key,
            timeout=self.config.timeout_seconds,
            max_retries=0
        )

        if rate_limiter is None:
            rate_limiter = FixedWindowRateLimiter(self.config.max_requests_per_minute)
        if cache is None:
            cache = ResponseCache(
                ttl_seconds=self.config.cache_ttl_seconds,
                max_entries=self.config.cache_max_entries
            )
        if accountant is None:
            accountant = UsageAccountant()

        self.rate_limiter = rate_limiter
        self.cache = cache
        self.accountant = accountant
        self._sleep = sleep

    def chat(self, messages: Iterable[MessageLike], **overrides: Any) -> ChatResult:
        """Send a conversation using the configured defaults.

        Args:
            messages: Chat messages (dicts or ChatMessage)
            **overrides: Any ChatRequest field, e.g. temperature=0.9

        Returns:
            The completed ChatResult
        """
        defaults = self.config.defaults
        params: Dict[str, Any] = {
            "model": defaults.model,
            "max_tokens": defaults.max_tokens,
            "temperature": defaults.temperature,
            "function_call": defaults.function_call,
            "use_cache": defaults.use_cache,
            "max_retries": defaults.max_retries,
            "retry_delay_ms": defaults.retry_delay_ms,
        }
        params.update(overrides)
        return self.call(ChatRequest(messages=tuple(messages), **params))

    def call(self, request: ChatRequest) -> ChatResult:
        """Run one request through rate limiting, cache and retries.

        A cache hit still takes a rate slot: the gate runs first.

        Args:
            request: The request to send

        Returns:
            ChatResult from the provider or the cache

        Raises:
            AuthError, ContentRejected: Fatal provider errors, not retried
            RetriesExhausted: When every attempt failed with a retryable error
        """
        admission = self.rate_limiter.admit()
        if not admission.allowed:
            logger.warning(f"Local rate limit reached, waiting {admission.wait_ms}ms")
            self._sleep(admission.wait_ms / 1000)

        fingerprint = None
        if request.use_cache:
            fingerprint = build_fingerprint(
                request.model, request.messages, request.max_tokens, request.temperature
            )
            cached = self.cache.get(fingerprint)
            if cached is not None:
                self.accountant.record_cache_hit()
                logger.info("Response served from cache")
                return cached

        estimated_input = estimate_message_tokens(m.content for m in request.messages)
        logger.info(
            f"OpenAI request: {request.model}, ~{estimated_input} input tokens, "
            f"max {request.max_tokens} output"
        )

        retry = RetryController(
            RetryPolicy(max_retries=request.max_retries, retry_delay_ms=request.retry_delay_ms),
            sleep=self._sleep
        )
        result = retry.run(lambda attempt: self._attempt(request, estimated_input, attempt))

        if fingerprint is not None:
            self.cache.put(fingerprint, result)

        return result

    def _attempt(self, request: ChatRequest, estimated_input: int, attempt: int) -> ChatResult:
        """Make one provider call and account for it."""
        self.accountant.record_attempt()

        try:
            response = self.client.chat.completions.create(**self._request_body(request))
        except openai.APIError as exc:
            self.accountant.record_failure()
            error = classify_error(exc)
            logger.error(
                f"OpenAI error (attempt {attempt}/{request.max_retries}): "
                f"kind={error.kind.value} status={error.status_code} "
                f"code={error.code} message={error.message}"
            )
            raise error from exc

        try:
            message = _parse_message(response)
            usage = getattr(response, "usage", None)

            # Zero or missing counts fall back to the estimate, each side separately
            input_tokens = (getattr(usage, "prompt_tokens", None) if usage else None) or estimated_input
            output_tokens = (getattr(usage, "completion_tokens", None) if usage else None) or estimate_tokens(message.content)
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            self.accountant.record_failure()
            logger.error(
                f"Malformed OpenAI response (attempt {attempt}/{request.max_retries}): "
                f"{type(exc).__name__}: {exc}"
            )
            raise TransientNetworkError(f"Malformed completion response: {exc}") from exc

        cost = calculate_cost(
            request.model,
            TokenUsage(prompt_tokens=input_tokens, completion_tokens=output_tokens),
            self.config.pricing
        )
        self.accountant.record_success(input_tokens, output_tokens, cost)

        logger.info(
            f"OpenAI OK: {input_tokens} in + {output_tokens} out tokens | "
            f"cost ${cost:.6f} | running total ${self.accountant.snapshot().total_cost_usd:.4f}"
        )

        return ChatResult(
            message=message,
            usage=CallUsage(input_tokens=input_tokens, output_tokens=output_tokens, cost_usd=cost),
            model=request.model,
            request_id=getattr(response, "id", None)
        )

    @staticmethod
    def _request_body(request: ChatRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": request.model,
            "messages": request.wire_messages(),
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.functions:
            body["functions"] = list(request.functions)
            body["function_call"] = request.function_call
        return body

    def stats(self) -> UsageStats:
        """Current usage totals."""
        return self.accountant.snapshot()

    def reset_stats(self) -> None:
        """Zero the usage counters."""
        self.accountant.reset()

    def clear_cache(self) -> int:
        """Drop all cached responses, returning how many were removed."""
        return self.cache.clear()


def _parse_message(response: Any) -> ChatMessage:
    """Extract the first choice's message from a completion response."""
    message = response.choices[0].message

    function_call = getattr(message, "function_call", None)
    if function_call is not None:
        function_call = {"name": function_call.name, "arguments": function_call.arguments}

    return ChatMessage(
        role=getattr(message, "role", None) or "assistant",
        content=message.content,
        function_call=function_call
    )
