"""Domain service protocols."""

from collections.abc import AsyncIterator
from typing import Protocol

from qodecore.config.models import ProviderConfig
from qodecore.domain.entities import CancellationToken, LLMRequest, StreamEvent


class EditorDocument(Protocol):
    """Active document as exposed by the editor integration layer."""

    @property
    def path(self) -> str:
        """File path of the document."""
        ...

    def read_text(self) -> str:
        """Read the full document text.

        Raises:
            OSError: If the document cannot be read.
        """
        ...


class ProviderAdapter(Protocol):
    """Capability set every LLM backend implements.

    This protocol defines the interface the orchestrator uses to talk to
    any backend (local inference server or hosted API).
    """

    supports_model_listing: bool

    def build_request(self, request: LLMRequest) -> object:
        """Translate a generic request into the provider's wire payload."""
        ...

    def send_and_stream(
        self,
        payload: object,
        cancellation: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        """Send the payload and yield stream events in order.

        Raises:
            ProviderConnectionError: If the request could not be delivered.
        """
        ...

    async def list_models(self, config: ProviderConfig) -> list[str]:
        """List model identifiers available at the endpoint.

        Raises:
            ModelListingUnsupportedError: If the backend cannot list models.
        """
        ...


class CompletionSink(Protocol):
    """Editor-side receiver of completion results."""

    def show_progress(self, context_id: str) -> None:
        """Show the progress indicator."""
        ...

    def hide_progress(self, context_id: str) -> None:
        """Hide the progress indicator."""
        ...

    def insert_completion(self, context_id: str, text: str) -> None:
        """Offer the completion text at the cursor."""
        ...

    def report_error(self, context_id: str, message: str) -> None:
        """Show a request failure to the user."""
        ...
