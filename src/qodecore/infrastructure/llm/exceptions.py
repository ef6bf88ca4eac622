"""LLM-related exceptions."""

from qodecore.domain.entities import ConnectionReason


class LLMError(Exception):
    """Base exception for LLM-related errors."""


class ProviderConnectionError(LLMError):
    """The request could not be delivered to the provider.

    Adapters raise this and never retry; the orchestrator decides.
    """

    def __init__(self, reason: ConnectionReason, message: str = "") -> None:
        """Initialize.

        Args:
            reason: Failure sub-reason.
            message: Optional detail (never contains credentials).
        """
        self.reason = reason
        super().__init__(message or f"Connection failed: {reason.value}")


class ModelListingUnsupportedError(LLMError):
    """The provider cannot list models; the model name must be entered."""


class ProviderNotFoundError(LLMError):
    """No adapter is registered for a provider id."""
