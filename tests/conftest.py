"""Common fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from qodecore.config.models import ContextConfig, ProviderConfig, ProviderID
from qodecore.domain.entities import OpenDocument


class FakeDocument:
    """In-memory editor document."""

    def __init__(self, path: str, text: str) -> None:
        self._path = path
        self._text = text

    @property
    def path(self) -> str:
        return self._path

    def read_text(self) -> str:
        return self._text


class UnreadableDocument:
    """Document whose content cannot be read."""

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def read_text(self) -> str:
        raise OSError("Permission denied")


@pytest.fixture
def context_config() -> ContextConfig:
    """Context settings without file info, for exact prefix/suffix checks."""
    return ContextConfig(use_file_path=False, use_changes_cache=False)


@pytest.fixture
def ollama_config() -> ProviderConfig:
    """Create an Ollama provider config."""
    return ProviderConfig(
        provider=ProviderID.OLLAMA,
        url="http://localhost:11434",
        model="qwen2.5-coder:7b",
    )


@pytest.fixture
def timestamp() -> datetime:
    """Fixed focus time."""
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_document() -> type[FakeDocument]:
    """Factory for in-memory documents."""
    return FakeDocument


@pytest.fixture
def unreadable_document() -> UnreadableDocument:
    """Create a document that fails to read."""
    return UnreadableDocument("/tmp/locked.py")


@pytest.fixture
def make_open_document(timestamp: datetime):
    """Factory for open documents focused ``minutes`` after ``timestamp``."""

    def factory(path: str, content: str, minutes: int = 0) -> OpenDocument:
        return OpenDocument(
            path=path,
            content=content,
            focused_at=timestamp + timedelta(minutes=minutes),
        )

    return factory
