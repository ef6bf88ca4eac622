"""Persistence-related exceptions."""


class PersistenceError(Exception):
    """Base exception for persistence-related errors."""


class ChatHistoryParseError(PersistenceError):
    """A chat history file is not valid.

    Raised before any live history is modified.
    """

    def __init__(self, path: str, message: str) -> None:
        """Initialize.

        Args:
            path: File that failed to load.
            message: What is wrong with it.
        """
        self.path = path
        super().__init__(f"Invalid chat history {path}: {message}")
