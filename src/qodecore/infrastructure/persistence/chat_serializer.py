"""JSON chat history files."""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from qodecore.domain.entities import HistoryEntry, Role
from qodecore.domain.exceptions import HistoryEntryOversizedError
from qodecore.infrastructure.persistence.exceptions import (
    ChatHistoryParseError,
    PersistenceError,
)
from qodecore.infrastructure.persistence.history_store import HistoryStore

logger = logging.getLogger(__name__)

FORMAT_VERSION = "0.1"


class ChatSerializer:
    """Saves and loads chat history as JSON.

    File format::

        {
          "version": "0.1",
          "messages": [
            {"role": "user", "content": "...", "tokens": 12},
            ...
          ]
        }
    """

    def save(self, entries: Iterable[HistoryEntry], path: str | Path) -> None:
        """Write entries to a file, creating parent directories.

        Args:
            entries: Entries to save, oldest first.
            path: Destination file.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        path = Path(path)
        document = {
            "version": FORMAT_VERSION,
            "messages": [
                {
                    "role": entry.role.value,
                    "content": entry.content,
                    "tokens": entry.token_count,
                }
                for entry in entries
            ],
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8"
            )
        except OSError as e:
            raise PersistenceError(f"Failed to write chat history {path}: {e}") from e
        logger.info("Saved %d messages to %s", len(document["messages"]), path)

    def load(self, path: str | Path) -> list[HistoryEntry]:
        """Read and validate a chat history file.

        Args:
            path: File to read.

        Returns:
            Entries, oldest first.

        Raises:
            ChatHistoryParseError: If the file is missing, is not valid JSON,
                or does not have the expected structure.
        """
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ChatHistoryParseError(str(path), str(e)) from e

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ChatHistoryParseError(str(path), f"JSON parse error: {e}") from e

        return self._parse_document(document, str(path))

    def load_into(self, store: HistoryStore, path: str | Path) -> list[HistoryEntry]:
        """Load a file and replace the store's entries with it.

        The file is fully validated first; on any error the store is not
        modified.

        When the file's total exceeds the store's token limit, the oldest
        messages are dropped and a warning is logged.

        Returns:
            Entries kept in the store.

        Raises:
            ChatHistoryParseError: If the file is invalid or holds an entry
                larger than the store's token limit.
        """
        entries = self.load(path)
        try:
            evicted = store.replace(entries)
        except HistoryEntryOversizedError as e:
            raise ChatHistoryParseError(str(path), str(e)) from e
        if evicted:
            logger.warning(
                "Dropped %d of %d messages from %s to fit the token limit (%d)",
                len(evicted),
                len(entries),
                path,
                store.token_limit,
            )
        return entries[len(evicted) :]

    def _parse_document(self, document: Any, path: str) -> list[HistoryEntry]:
        if not isinstance(document, dict):
            raise ChatHistoryParseError(path, "root must be an object")

        version = document.get("version")
        if version != FORMAT_VERSION:
            raise ChatHistoryParseError(path, f"unsupported version: {version!r}")

        messages = document.get("messages")
        if not isinstance(messages, list):
            raise ChatHistoryParseError(path, "'messages' must be a list")

        return [
            self._parse_message(message, index, path)
            for index, message in enumerate(messages)
        ]

    @staticmethod
    def _parse_message(message: Any, index: int, path: str) -> HistoryEntry:
        where = f"messages[{index}]"
        if not isinstance(message, dict):
            raise ChatHistoryParseError(path, f"{where} must be an object")

        try:
            role = Role(message.get("role"))
        except ValueError:
            raise ChatHistoryParseError(
                path, f"{where}.role is invalid: {message.get('role')!r}"
            ) from None

        content = message.get("content")
        if not isinstance(content, str):
            raise ChatHistoryParseError(path, f"{where}.content must be a string")

        if "tokens" not in message:
            return HistoryEntry.from_text(role, content)
        tokens = message["tokens"]
        if isinstance(tokens, bool) or not isinstance(tokens, int) or tokens < 0:
            raise ChatHistoryParseError(
                path, f"{where}.tokens must be a non-negative integer"
            )
        return HistoryEntry(role=role, content=content, token_count=tokens)
