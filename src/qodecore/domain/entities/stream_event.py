"""Stream event entities.

A request produces an ordered sequence of events. Consumers must handle them
one at a time, in emission order; chunks are positionally significant.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Request-scoped failure categories."""

    CONNECTION = "connection"
    PARSE_FAILURE = "parse_failure"
    TIMEOUT = "timeout"
    TEMPLATE_INVALID = "template_invalid"
    HISTORY_OVERSIZED = "history_oversized"
    CONTEXT_UNAVAILABLE = "context_unavailable"


class ConnectionReason(Enum):
    """Sub-reason for connection failures."""

    TIMEOUT = "timeout"
    REFUSED = "refused"
    AUTH_REJECTED = "auth_rejected"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    REQUEST_REJECTED = "request_rejected"


@dataclass(frozen=True)
class TokenChunk:
    """A piece of generated text."""

    text: str


@dataclass(frozen=True)
class Done:
    """The provider finished the response."""

    finish_reason: str = "stop"


@dataclass(frozen=True)
class StreamError:
    """The request failed. Chunks delivered before it stay valid."""

    kind: ErrorKind
    message: str
    reason: ConnectionReason | None = None


StreamEvent = TokenChunk | Done | StreamError
