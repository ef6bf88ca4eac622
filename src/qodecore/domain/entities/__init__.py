"""Domain entities."""

from qodecore.domain.entities.context_window import (
    ContextWindow,
    CursorPosition,
    OpenDocument,
    TruncationInfo,
)
from qodecore.domain.entities.history import (
    ChangeCacheEntry,
    HistoryEntry,
    Role,
    estimate_tokens,
)
from qodecore.domain.entities.language import Language
from qodecore.domain.entities.prompt_template import (
    Placeholder,
    PromptTemplate,
    RenderedPrompt,
    TemplateKind,
)
from qodecore.domain.entities.request import CancellationToken, LLMRequest, RequestType
from qodecore.domain.entities.stream_event import (
    ConnectionReason,
    Done,
    ErrorKind,
    StreamError,
    StreamEvent,
    TokenChunk,
)
from qodecore.domain.entities.trigger import (
    ChatTurn,
    CompletionTrigger,
    EditEvent,
    Trigger,
    TriggerState,
)

__all__ = [
    "CancellationToken",
    "ChangeCacheEntry",
    "ChatTurn",
    "CompletionTrigger",
    "ConnectionReason",
    "ContextWindow",
    "CursorPosition",
    "Done",
    "EditEvent",
    "ErrorKind",
    "HistoryEntry",
    "LLMRequest",
    "Language",
    "OpenDocument",
    "Placeholder",
    "PromptTemplate",
    "RenderedPrompt",
    "RequestType",
    "Role",
    "StreamError",
    "StreamEvent",
    "TemplateKind",
    "TokenChunk",
    "Trigger",
    "TriggerState",
    "TruncationInfo",
    "estimate_tokens",
]
