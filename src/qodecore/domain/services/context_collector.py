"""Context collection around the editor cursor."""

import logging
import re
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from qodecore.config.models import ContextConfig
from qodecore.domain.entities import (
    ContextWindow,
    CursorPosition,
    OpenDocument,
    TruncationInfo,
)
from qodecore.domain.exceptions import ContextUnavailableError
from qodecore.domain.services.languages import LanguageRegistry
from qodecore.domain.services.protocols import EditorDocument

if TYPE_CHECKING:
    from qodecore.infrastructure.persistence.change_cache import ChangeCache

logger = logging.getLogger(__name__)

_HEADER_COMMENT_PATTERN = re.compile(
    r"\A\s*(?:/\*[\s\S]*?\*/|(?:[ \t]*(?://|#|--).*(?:\n|\Z))+)"
)
_COPYRIGHT_MARKERS = ("copyright", "(c)", "©")


def find_copyright_header_end(lines: Sequence[str]) -> int:
    """Find the last line of a leading copyright comment block.

    Args:
        lines: Document lines.

    Returns:
        0-based index of the block's last line, or -1 if the document
        does not start with a copyright comment.
    """
    text = "\n".join(lines)
    match = _HEADER_COMMENT_PATTERN.match(text)
    if not match:
        return -1

    header = match.group(0)
    if not any(marker in header.lower() for marker in _COPYRIGHT_MARKERS):
        return -1

    return header.rstrip("\n").count("\n")


class ContextCollector:
    """Gathers prefix, suffix and supplementary context for a request.

    Args:
        config: Context collection settings.
        languages: Language table used for the file info line.
    """

    def __init__(
        self,
        config: ContextConfig,
        languages: LanguageRegistry | None = None,
    ) -> None:
        self._config = config
        self._languages = languages or LanguageRegistry()

    def collect(
        self,
        document: EditorDocument,
        cursor: CursorPosition,
        open_documents: Iterable[OpenDocument] = (),
        *,
        change_cache: "ChangeCache | None" = None,
    ) -> ContextWindow:
        """Collect the context window for a cursor position.

        Args:
            document: Active document.
            cursor: Cursor position (clamped to the document).
            open_documents: Other files open in the editor.
            change_cache: Recent edits to include in the file context.

        Returns:
            Collected context.

        Raises:
            ContextUnavailableError: If the document cannot be read.
        """
        try:
            text = document.read_text()
        except OSError as e:
            raise ContextUnavailableError(document.path, str(e)) from e

        lines = text.split("\n")
        line_index = min(max(cursor.line, 0), len(lines) - 1)
        column = min(max(cursor.column, 0), len(lines[line_index]))

        start_line = 0
        if self._config.skip_copyright_header:
            header_end = find_copyright_header_end(lines)
            if 0 <= header_end < line_index:
                start_line = header_end + 1

        if self._config.read_full_file:
            end_line = len(lines) - 1
        else:
            start_line = max(start_line, line_index - self._config.lines_before)
            end_line = min(len(lines) - 1, line_index + self._config.lines_after)

        prefix = "\n".join(
            lines[start_line:line_index] + [lines[line_index][:column]]
        )
        suffix = "\n".join(
            [lines[line_index][column:]] + lines[line_index + 1 : end_line + 1]
        )

        prefix_truncated = len(prefix) > self._config.max_prefix_chars
        if prefix_truncated:
            prefix = prefix[len(prefix) - self._config.max_prefix_chars :]
        suffix_truncated = len(suffix) > self._config.max_suffix_chars
        if suffix_truncated:
            suffix = suffix[: self._config.max_suffix_chars]

        open_files: tuple[tuple[str, str], ...] = ()
        truncated_files: tuple[str, ...] = ()
        dropped_files: tuple[str, ...] = ()
        if self._config.include_open_files:
            open_files, truncated_files, dropped_files = self._collect_open_files(
                document.path, open_documents
            )

        if prefix_truncated or suffix_truncated or truncated_files or dropped_files:
            logger.debug(
                "Context truncated for %s (prefix=%s, suffix=%s, files=%d, dropped=%d)",
                document.path,
                prefix_truncated,
                suffix_truncated,
                len(truncated_files),
                len(dropped_files),
            )

        return ContextWindow(
            prefix=prefix,
            suffix=suffix,
            open_files_context=open_files,
            full_file_requested=self._config.read_full_file,
            file_context=self._build_file_context(document.path, change_cache),
            truncation=TruncationInfo(
                prefix_truncated=prefix_truncated,
                suffix_truncated=suffix_truncated,
                truncated_files=truncated_files,
                dropped_files=dropped_files,
            ),
        )

    def _collect_open_files(
        self,
        active_path: str,
        open_documents: Iterable[OpenDocument],
    ) -> tuple[tuple[tuple[str, str], ...], tuple[str, ...], tuple[str, ...]]:
        """Apply per-file and aggregate caps to other open files.

        Files are ordered most recently focused first, so the aggregate cap
        drops the least recently focused ones.
        """
        candidates = sorted(
            (doc for doc in open_documents if doc.path != active_path),
            key=lambda doc: doc.focused_at,
            reverse=True,
        )

        kept: list[tuple[str, str]] = []
        truncated: list[str] = []
        for doc in candidates:
            content = doc.content
            if len(content) > self._config.max_file_chars:
                content = content[: self._config.max_file_chars]
                truncated.append(doc.path)
            kept.append((doc.path, content))

        dropped: list[str] = []
        total = sum(len(content) for _, content in kept)
        while kept and total > self._config.max_open_files_chars:
            path, content = kept.pop()
            dropped.append(path)
            total -= len(content)

        truncated = [path for path in truncated if path not in dropped]
        return tuple(kept), tuple(truncated), tuple(dropped)

    def _build_file_context(
        self,
        path: str,
        change_cache: "ChangeCache | None",
    ) -> str:
        parts: list[str] = []
        if self._config.use_file_path:
            language = self._languages.detect_from_path(path) or "unknown"
            parts.append(f"Language: {language} filepath: {path}")
        if self._config.use_changes_cache and change_cache is not None:
            recent = change_cache.recent_changes_context(exclude_path=path)
            if recent:
                parts.append(f"Recent changes in other files:\n{recent}")
        return "\n\n".join(parts)
