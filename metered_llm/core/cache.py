"""
Response cache.

In-memory, TTL-bound store of completed results keyed by a request
fingerprint. Bounded in size with first-in, first-out eviction.
"""

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from .models import ChatMessage, ChatResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_MAX_ENTRIES = 100


def build_fingerprint(
    model: str,
    messages: Iterable[ChatMessage],
    max_tokens: int,
    temperature: float
) -> str:
    """Deterministic digest of the fields that influence a completion.

    Message order is significant. Function schemas are not part of the key.
    Numeric fields are normalized, so temperature=1 and 1.0 share a key.

    Args:
        model: Model identifier
        messages: Conversation, in order
        max_tokens: Output token ceiling
        temperature: Sampling temperature

    Returns:
        Hex MD5 of the canonical JSON serialization
    """
    payload = {
        "model": model,
        "messages": [m.to_dict() for m in messages],
        "max_tokens": int(max_tokens),
        "temperature": float(temperature),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    """Cached result and the clock reading at which it was stored."""
    result: ChatResult
    stored_at: float


class ResponseCache:
    """Bounded, time-expiring map of fingerprint -> ChatResult.

    Eviction is by insertion order, not by access: reads never refresh an
    entry's position or age. Overwriting a key keeps its original position.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> Optional[ChatResult]:
        """Return the cached result, or None if absent or expired.

        Expired entries are removed as a side effect.
        """
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            if self._clock() - entry.stored_at >= self.ttl_seconds:
                del self._entries[fingerprint]
                logger.debug(f"Cache entry expired: {fingerprint}")
                return None
            return entry.result

    def put(self, fingerprint: str, result: ChatResult) -> None:
        """Store a result, evicting the oldest-inserted entry when full."""
        with self._lock:
            self._entries[fingerprint] = CacheEntry(result=result, stored_at=self._clock())
            if len(self._entries) > self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug(f"Cache full, evicted oldest entry: {oldest}")

    def clear(self) -> int:
        """Drop every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        logger.info(f"Cache cleared: {removed} entries removed")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, fingerprint: Any) -> bool:
        with self._lock:
            return fingerprint in self._entries
