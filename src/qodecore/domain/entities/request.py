"""Request entities."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from qodecore.config.models import ProviderConfig
from qodecore.domain.entities.prompt_template import RenderedPrompt


class RequestType(Enum):
    """What a request is for."""

    CODE_COMPLETION = "code_completion"
    CHAT = "chat"


class CancellationToken:
    """Cooperative cancellation signal shared by a request's participants."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Signal cancellation. Idempotent."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was signalled."""
        return self._event.is_set()

    async def wait(self) -> None:
        """Wait until cancellation is signalled."""
        await self._event.wait()


@dataclass(frozen=True)
class LLMRequest:
    """Immutable request built once per dispatch.

    Attributes:
        prompt: Rendered prompt.
        provider_config: Snapshot of the provider configuration.
        request_type: Completion or chat.
        cancellation: Cancellation token for this request.
    """

    prompt: RenderedPrompt
    provider_config: ProviderConfig
    request_type: RequestType
    cancellation: CancellationToken = field(default_factory=CancellationToken)
