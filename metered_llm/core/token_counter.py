"""
Token counting and usage tracking.

Holds exact token counts reported by the provider and the character-based
estimate used when the provider leaves them out.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

# Roughly 4 characters per token for Spanish/English prose
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation."""
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


def estimate_tokens(text: Optional[str]) -> int:
    """Estimate the token count of a text from its length.

    Only a fallback for responses that omit usage counts.

    Args:
        text: Text to estimate (None counts as empty)

    Returns:
        ceil(len(text) / 4)
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_message_tokens(contents: Iterable[Optional[str]]) -> int:
    """Estimate input tokens for a conversation.

    Message contents are joined with single spaces before estimating,
    so empty contents still contribute their separator.
    """
    return estimate_tokens(" ".join(content or "" for content in contents))
