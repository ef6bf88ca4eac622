"""Provider adapter registry."""

import httpx

from qodecore.config.models import ProviderID, TimeoutConfig
from qodecore.infrastructure.llm.exceptions import ProviderNotFoundError
from qodecore.infrastructure.llm.providers.base import BaseProvider
from qodecore.infrastructure.llm.providers.claude import ClaudeProvider
from qodecore.infrastructure.llm.providers.google import GoogleAIProvider
from qodecore.infrastructure.llm.providers.litellm_provider import LiteLLMProvider
from qodecore.infrastructure.llm.providers.llamacpp import LlamaCppProvider
from qodecore.infrastructure.llm.providers.mistral import (
    CodestralProvider,
    MistralAIProvider,
)
from qodecore.infrastructure.llm.providers.ollama import OllamaProvider
from qodecore.infrastructure.llm.providers.openai import (
    LMStudioProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenRouterProvider,
)

PROVIDER_CLASSES: dict[ProviderID, type[BaseProvider]] = {
    ProviderID.OLLAMA: OllamaProvider,
    ProviderID.LLAMA_CPP: LlamaCppProvider,
    ProviderID.LM_STUDIO: LMStudioProvider,
    ProviderID.OPENAI: OpenAIProvider,
    ProviderID.OPENAI_COMPATIBLE: OpenAICompatibleProvider,
    ProviderID.OPENROUTER: OpenRouterProvider,
    ProviderID.CLAUDE: ClaudeProvider,
    ProviderID.GOOGLE_AI: GoogleAIProvider,
    ProviderID.MISTRAL_AI: MistralAIProvider,
    ProviderID.CODESTRAL: CodestralProvider,
    ProviderID.LITELLM: LiteLLMProvider,
}


def create_provider(
    provider_id: ProviderID,
    client: httpx.AsyncClient,
    timeouts: TimeoutConfig,
    *,
    debug_llm_messages: bool = False,
) -> BaseProvider:
    """Create the adapter for a provider.

    Args:
        provider_id: Provider to create.
        client: Shared HTTP client.
        timeouts: Connect and idle timeouts.
        debug_llm_messages: If True, adapters log request bodies at INFO.

    Returns:
        Provider adapter.

    Raises:
        ProviderNotFoundError: If no adapter exists for the provider.
    """
    try:
        provider_class = PROVIDER_CLASSES[provider_id]
    except KeyError:
        raise ProviderNotFoundError(f"No adapter for provider: {provider_id}") from None
    return provider_class(client, timeouts, debug_llm_messages=debug_llm_messages)
