"""Tests for ChatSerializer."""

import json
from pathlib import Path

import pytest

from qodecore.domain.entities import HistoryEntry, Role
from qodecore.infrastructure.persistence import (
    FORMAT_VERSION,
    ChatHistoryParseError,
    ChatSerializer,
    HistoryStore,
)


@pytest.fixture
def serializer() -> ChatSerializer:
    """Create a serializer."""
    return ChatSerializer()


@pytest.fixture
def conversation() -> list[HistoryEntry]:
    """Create a short conversation."""
    return [
        HistoryEntry(Role.USER, "コードを説明して", 4),
        HistoryEntry(Role.ASSISTANT, "It adds two numbers.", 5),
    ]


def write_json(path: Path, document: object) -> Path:
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


class TestSave:
    """Tests for save."""

    def test_writes_format(
        self, serializer: ChatSerializer, conversation: list[HistoryEntry], tmp_path: Path
    ) -> None:
        """Test the file layout and unescaped non-ASCII text."""
        path = tmp_path / "chats" / "session.json"

        serializer.save(conversation, path)

        raw = path.read_text(encoding="utf-8")
        assert "コードを説明して" in raw
        assert json.loads(raw) == {
            "version": FORMAT_VERSION,
            "messages": [
                {"role": "user", "content": "コードを説明して", "tokens": 4},
                {"role": "assistant", "content": "It adds two numbers.", "tokens": 5},
            ],
        }

    def test_round_trip(
        self, serializer: ChatSerializer, conversation: list[HistoryEntry], tmp_path: Path
    ) -> None:
        """Test that a saved conversation loads back equal."""
        path = tmp_path / "session.json"

        serializer.save(conversation, path)

        assert serializer.load(path) == conversation


class TestLoad:
    """Tests for load and load_into."""

    def test_missing_tokens_are_estimated(
        self, serializer: ChatSerializer, tmp_path: Path
    ) -> None:
        """Test that entries without a token count get an estimate."""
        path = write_json(
            tmp_path / "h.json",
            {"version": "0.1", "messages": [{"role": "user", "content": "a" * 20}]},
        )

        assert serializer.load(path)[0].token_count == 5

    @pytest.mark.parametrize(
        ("document", "message"),
        [
            ([], "root must be an object"),
            ({"version": "9.9", "messages": []}, "unsupported version"),
            ({"version": "0.1", "messages": {}}, "'messages' must be a list"),
            ({"version": "0.1", "messages": ["hi"]}, "messages[0] must be an object"),
            (
                {"version": "0.1", "messages": [{"role": "bot", "content": "x"}]},
                "messages[0].role is invalid",
            ),
            (
                {"version": "0.1", "messages": [{"role": "user", "content": 1}]},
                "messages[0].content must be a string",
            ),
            (
                {
                    "version": "0.1",
                    "messages": [{"role": "user", "content": "x", "tokens": -1}],
                },
                "messages[0].tokens must be a non-negative integer",
            ),
            (
                {
                    "version": "0.1",
                    "messages": [{"role": "user", "content": "x", "tokens": True}],
                },
                "messages[0].tokens must be a non-negative integer",
            ),
        ],
    )
    def test_invalid_structure(
        self, serializer: ChatSerializer, tmp_path: Path, document: object, message: str
    ) -> None:
        """Test that structural problems raise ChatHistoryParseError."""
        path = write_json(tmp_path / "h.json", document)

        with pytest.raises(ChatHistoryParseError) as exc_info:
            serializer.load(path)

        assert message in str(exc_info.value)

    def test_invalid_json(self, serializer: ChatSerializer, tmp_path: Path) -> None:
        """Test that broken JSON raises ChatHistoryParseError."""
        path = tmp_path / "h.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ChatHistoryParseError) as exc_info:
            serializer.load(path)

        assert str(path) in str(exc_info.value)

    def test_missing_file(self, serializer: ChatSerializer, tmp_path: Path) -> None:
        """Test that a missing file raises ChatHistoryParseError."""
        with pytest.raises(ChatHistoryParseError):
            serializer.load(tmp_path / "missing.json")

    def test_load_into_replaces(
        self, serializer: ChatSerializer, conversation: list[HistoryEntry], tmp_path: Path
    ) -> None:
        """Test that load_into replaces the store's entries."""
        path = tmp_path / "h.json"
        serializer.save(conversation, path)
        store = HistoryStore(token_limit=100)
        store.append(HistoryEntry(Role.USER, "old", 1))

        serializer.load_into(store, path)

        assert store.entries() == conversation

    def test_malformed_file_leaves_store_untouched(
        self, serializer: ChatSerializer, tmp_path: Path
    ) -> None:
        """Test that a bad file does not change the live history."""
        path = write_json(
            tmp_path / "h.json",
            {
                "version": "0.1",
                "messages": [
                    {"role": "user", "content": "fine"},
                    {"role": "user", "content": None},
                ],
            },
        )
        store = HistoryStore(token_limit=100)
        existing = HistoryEntry(Role.USER, "keep me", 2)
        store.append(existing)

        with pytest.raises(ChatHistoryParseError):
            serializer.load_into(store, path)

        assert store.entries() == [existing]

    def test_oversized_entry_is_parse_error(
        self, serializer: ChatSerializer, tmp_path: Path
    ) -> None:
        """Test that an entry above the store limit is rejected."""
        path = write_json(
            tmp_path / "h.json",
            {"version": "0.1", "messages": [{"role": "user", "content": "x", "tokens": 500}]},
        )
        store = HistoryStore(token_limit=100)

        with pytest.raises(ChatHistoryParseError):
            serializer.load_into(store, path)

        assert len(store) == 0

    def test_over_limit_drops_oldest_with_warning(
        self,
        serializer: ChatSerializer,
        tmp_path: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that trimming a loaded conversation is reported."""
        path = write_json(
            tmp_path / "h.json",
            {
                "version": "0.1",
                "messages": [
                    {"role": "user", "content": "one", "tokens": 60},
                    {"role": "assistant", "content": "two", "tokens": 60},
                    {"role": "user", "content": "three", "tokens": 60},
                ],
            },
        )
        store = HistoryStore(token_limit=120)

        kept = serializer.load_into(store, path)

        assert [e.content for e in kept] == ["two", "three"]
        assert store.entries() == kept
        assert "Dropped 1 of 3 messages" in caplog.text
