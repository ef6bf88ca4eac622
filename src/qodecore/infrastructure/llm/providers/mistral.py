"""Mistral AI and Codestral adapters."""

from typing import Any

from qodecore.config.models import ProviderConfig, ProviderID, SamplingConfig
from qodecore.domain.entities import RenderedPrompt
from qodecore.infrastructure.llm.providers.base import drop_none
from qodecore.infrastructure.llm.providers.openai import OpenAIProvider


class MistralAIProvider(OpenAIProvider):
    """Mistral ``/v1/fim/completions`` and ``/v1/chat/completions``.

    Frames follow the OpenAI chat shape for both endpoints. top_k and
    penalties are not sent.
    """

    provider_id = ProviderID.MISTRAL_AI

    def sampling_fields(self, sampling: SamplingConfig) -> dict[str, Any]:
        return drop_none(
            {
                "max_tokens": sampling.max_tokens,
                "temperature": sampling.temperature,
                "top_p": sampling.top_p,
            }
        )

    def build_fim_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        body: dict[str, Any] = {
            "model": config.model,
            "prompt": prompt.prompt,
            "stream": config.streaming,
            **self.sampling_fields(config.sampling),
        }
        if prompt.suffix is not None:
            body["suffix"] = prompt.suffix
        if prompt.stop_words:
            body["stop"] = list(prompt.stop_words)
        return f"{config.url}/v1/fim/completions", body


class CodestralProvider(MistralAIProvider):
    """Codestral endpoint (same API as Mistral AI, separate key and host)."""

    provider_id = ProviderID.CODESTRAL
