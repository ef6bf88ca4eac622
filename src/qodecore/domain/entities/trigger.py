"""Trigger entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from qodecore.domain.entities.context_window import CursorPosition, OpenDocument
from qodecore.domain.entities.request import CancellationToken

if TYPE_CHECKING:
    from qodecore.domain.services.protocols import EditorDocument


class TriggerState(Enum):
    """Scheduler state of one completion context."""

    IDLE = "idle"
    PENDING = "pending"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class EditEvent:
    """A text change reported by the editor.

    Attributes:
        context_id: Completion context (usually the editor widget / file).
        path: File path.
        line_number: Line where the change happened.
        line_text: Line content after the change.
        chars_added: Number of inserted characters.
        chars_removed: Number of removed characters.
        inserted_text: Inserted text, if known.
        payload: Data forwarded to the dispatch callback.
        created_at: Event creation time.
    """

    context_id: str
    path: str
    line_number: int
    line_text: str
    chars_added: int = 0
    chars_removed: int = 0
    inserted_text: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_insertion(self) -> bool:
        """Check if this is a pure insertion."""
        return self.chars_added > 0 and self.chars_removed == 0


@dataclass(frozen=True)
class Trigger:
    """A decision to dispatch a completion request.

    Attributes:
        context_id: Completion context.
        manual: Whether the user asked explicitly.
        payload: Data carried from the edit event.
        cancellation: Token cancelled when the trigger is superseded.
    """

    context_id: str
    manual: bool = False
    payload: dict[str, Any] = field(default_factory=dict)
    cancellation: CancellationToken = field(default_factory=CancellationToken)


@dataclass(frozen=True)
class CompletionTrigger:
    """Everything the orchestrator needs for one code completion.

    Attributes:
        context_id: Completion context.
        document: Active document.
        cursor: Cursor position.
        open_documents: Other open files.
        instructions: Extra user instructions.
        cancellation: Cancellation token (shared with the scheduler).
    """

    context_id: str
    document: "EditorDocument"
    cursor: CursorPosition
    open_documents: tuple[OpenDocument, ...] = ()
    instructions: str | None = None
    cancellation: CancellationToken = field(default_factory=CancellationToken)


@dataclass(frozen=True)
class ChatTurn:
    """A user chat message.

    Attributes:
        conversation_id: Chat conversation.
        text: User message.
        linked_documents: Files attached to the message.
        cancellation: Cancellation token.
    """

    conversation_id: str
    text: str
    linked_documents: tuple[OpenDocument, ...] = ()
    cancellation: CancellationToken = field(default_factory=CancellationToken)
