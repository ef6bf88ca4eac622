"""Context window entity."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CursorPosition:
    """Cursor location in a document (0-based, LSP style).

    Attributes:
        line: Line number.
        column: Character offset within the line.
    """

    line: int
    column: int


@dataclass(frozen=True)
class OpenDocument:
    """Another file open in the editor.

    Attributes:
        path: File path.
        content: File content.
        focused_at: When the file last had editor focus.
    """

    path: str
    content: str
    focused_at: datetime


@dataclass(frozen=True)
class TruncationInfo:
    """What the collector cut to stay within its caps.

    Attributes:
        prefix_truncated: Prefix lost characters at its start.
        suffix_truncated: Suffix lost characters at its end.
        truncated_files: Open files shortened to the per-file cap.
        dropped_files: Open files dropped to fit the aggregate cap.
    """

    prefix_truncated: bool = False
    suffix_truncated: bool = False
    truncated_files: tuple[str, ...] = ()
    dropped_files: tuple[str, ...] = ()

    @property
    def is_partial(self) -> bool:
        """Check if any collected content was cut."""
        return bool(
            self.prefix_truncated
            or self.suffix_truncated
            or self.truncated_files
            or self.dropped_files
        )


@dataclass(frozen=True)
class ContextWindow:
    """Editor context gathered around the cursor.

    Attributes:
        prefix: Text before the cursor.
        suffix: Text after the cursor.
        open_files_context: (path, content) pairs from other open files,
            most recently focused first.
        full_file_requested: Whether the whole file was requested.
        file_context: Extra informational text (language, path, recent changes).
        truncation: What was cut to fit the caps.
    """

    prefix: str = ""
    suffix: str = ""
    open_files_context: tuple[tuple[str, str], ...] = ()
    full_file_requested: bool = False
    file_context: str = ""
    truncation: TruncationInfo = field(default_factory=TruncationInfo)

    @classmethod
    def empty(cls) -> "ContextWindow":
        """Create a window that carries no context at all."""
        return cls()

    @property
    def is_empty(self) -> bool:
        """Check if no context was collected."""
        return not (
            self.prefix or self.suffix or self.open_files_context or self.file_context
        )

    @property
    def total_chars(self) -> int:
        """Total characters of collected code context."""
        return (
            len(self.prefix)
            + len(self.suffix)
            + sum(len(content) for _, content in self.open_files_context)
        )
