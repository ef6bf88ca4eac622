"""History entities."""

from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    """Message author."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def estimate_tokens(text: str) -> int:
    """Rough token estimate (four characters per token).

    Args:
        text: Text to measure.

    Returns:
        Estimated token count.
    """
    if not text:
        return 0
    return len(text) // 4


@dataclass(frozen=True)
class HistoryEntry:
    """One chat or completion turn.

    Attributes:
        role: Message author.
        content: Message text.
        token_count: Approximate token count.
    """

    role: Role
    content: str
    token_count: int

    @classmethod
    def from_text(cls, role: Role, content: str) -> "HistoryEntry":
        """Create an entry with an estimated token count."""
        return cls(role=role, content=content, token_count=estimate_tokens(content))

    def to_message(self) -> dict[str, str]:
        """Convert to an OpenAI-format message."""
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class ChangeCacheEntry:
    """A recent edit kept as context for non-FIM providers.

    Attributes:
        path: File the edit was made in.
        line_number: Edited line.
        snippet: Line content after the edit.
    """

    path: str
    line_number: int
    snippet: str
