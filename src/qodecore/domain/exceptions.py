"""Domain exceptions."""


class QodeError(Exception):
    """Base exception for request-scoped failures in the core."""


class ContextUnavailableError(QodeError):
    """The active document could not be read.

    Recoverable: the caller may retry or proceed with an empty context.
    """

    def __init__(self, path: str, message: str = "") -> None:
        """Initialize.

        Args:
            path: Path of the document that could not be read.
            message: Optional error message.
        """
        self.path = path
        super().__init__(message or f"Document {path} is not available")


class TemplateInvalidError(QodeError):
    """A prompt template is misconfigured.

    Always raised before any network call and never retried.
    """

    def __init__(self, template_name: str, problems: list[str]) -> None:
        self.template_name = template_name
        self.problems = list(problems)
        super().__init__(
            f"Template '{template_name}' is invalid: {'; '.join(self.problems)}"
        )


class HistoryEntryOversizedError(QodeError):
    """The newest history entry alone exceeds the token budget."""

    def __init__(self, token_count: int, token_limit: int) -> None:
        self.token_count = token_count
        self.token_limit = token_limit
        super().__init__(
            f"Entry needs {token_count} tokens but the history limit is "
            f"{token_limit}. Token limit exceeded, start a new chat?"
        )
