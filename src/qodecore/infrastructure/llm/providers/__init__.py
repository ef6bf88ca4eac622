"""Provider adapters."""

from qodecore.infrastructure.llm.providers.base import (
    BaseProvider,
    FrameResult,
    Framing,
    WirePayload,
    status_to_reason,
)
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
from qodecore.infrastructure.llm.providers.registry import (
    PROVIDER_CLASSES,
    create_provider,
)

__all__ = [
    "PROVIDER_CLASSES",
    "BaseProvider",
    "ClaudeProvider",
    "CodestralProvider",
    "FrameResult",
    "Framing",
    "GoogleAIProvider",
    "LMStudioProvider",
    "LiteLLMProvider",
    "LlamaCppProvider",
    "MistralAIProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "WirePayload",
    "create_provider",
    "status_to_reason",
]
