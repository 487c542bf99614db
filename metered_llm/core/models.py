"""
Request and result models.

Immutable value objects passed between the caller, the cache and the
provider wrapper.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class ChatMessage:
    """One chat turn, as sent to or received from the provider."""
    role: str
    content: Optional[str]
    name: Optional[str] = None
    function_call: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatMessage":
        """Build a message from an OpenAI-style dictionary."""
        if "role" not in data:
            raise ValueError("message is missing 'role'")
        return cls(
            role=data["role"],
            content=data.get("content"),
            name=data.get("name"),
            function_call=data.get("function_call"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation, omitting unset optional fields."""
        data: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name is not None:
            data["name"] = self.name
        if self.function_call is not None:
            data["function_call"] = self.function_call
        return data


MessageLike = Union[ChatMessage, Mapping[str, Any]]


def _to_messages(messages: Iterable[MessageLike]) -> Tuple[ChatMessage, ...]:
    return tuple(
        m if isinstance(m, ChatMessage) else ChatMessage.from_dict(m)
        for m in messages
    )


@dataclass(frozen=True)
class ChatRequest:
    """A chat completion request. Immutable once submitted.

    Dictionaries passed as messages are converted to ChatMessage and
    stored as a tuple.
    """
    model: str
    messages: Tuple[ChatMessage, ...]
    max_tokens: int = 200
    temperature: float = 0.8
    functions: Optional[Tuple[Dict[str, Any], ...]] = None
    function_call: Union[str, Dict[str, Any]] = "auto"
    use_cache: bool = True
    max_retries: int = 3
    retry_delay_ms: int = 1000

    def __post_init__(self):
        """Normalize messages and validate request values."""
        if not self.model or not self.model.strip():
            raise ValueError("model is required and cannot be empty")
        if not self.messages:
            raise ValueError("messages is required and cannot be empty")
        object.__setattr__(self, "messages", _to_messages(self.messages))
        if self.functions is not None:
            object.__setattr__(self, "functions", tuple(self.functions))
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if not 0 <= self.temperature <= 2:
            raise ValueError("temperature must be between 0 and 2")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be >= 0")

    def wire_messages(self) -> List[Dict[str, Any]]:
        """Messages in the provider's request format."""
        return [m.to_dict() for m in self.messages]


@dataclass(frozen=True)
class CallUsage:
    """Token counts and cost of one completed call."""
    input_tokens: int
    output_tokens: int
    cost_usd: float

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class ChatResult:
    """Completed call. Shared by reference with the cache, do not mutate."""
    message: ChatMessage
    usage: CallUsage
    model: str
    request_id: Optional[str] = field(default=None, compare=False)
