"""OpenAI chat completions API and the servers that mimic it."""

from typing import Any

from qodecore.config.models import ProviderConfig, ProviderID
from qodecore.domain.entities import RenderedPrompt
from qodecore.infrastructure.llm.providers.base import BaseProvider, FrameResult


class OpenAIProvider(BaseProvider):
    """OpenAI ``/v1/chat/completions`` (and ``/v1/completions`` for FIM).

    Streams SSE ``data:`` frames terminated by ``data: [DONE]``.
    """

    provider_id = ProviderID.OPENAI

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
        return f"{config.url}/v1/completions", body

    def build_chat_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        body: dict[str, Any] = {
            "model": config.model,
            "messages": self.chat_messages(prompt),
            "stream": config.streaming,
            **self.sampling_fields(config.sampling),
        }
        if prompt.stop_words:
            body["stop"] = list(prompt.stop_words)
        return f"{config.url}/v1/chat/completions", body

    def parse_frame(self, frame: dict[str, Any]) -> FrameResult:
        if "error" in frame:
            return FrameResult(error=self.error_message(frame["error"]))
        choices = frame["choices"]
        if not choices:
            # Usage-only frames carry no choices.
            return FrameResult()
        choice = choices[0]
        if "delta" in choice:
            text = choice["delta"].get("content") or ""
        else:
            text = choice.get("text") or ""
        if not isinstance(text, str):
            raise TypeError("choice content is not a string")
        return FrameResult(text=text, finish_reason=choice.get("finish_reason"))

    def parse_response(self, data: dict[str, Any]) -> tuple[str, str]:
        choice = data["choices"][0]
        if "message" in choice:
            text = choice["message"].get("content") or ""
        else:
            text = choice["text"]
        return text, choice.get("finish_reason") or "stop"


class OpenAICompatibleProvider(OpenAIProvider):
    """Any server exposing the OpenAI API at a configurable URL."""

    provider_id = ProviderID.OPENAI_COMPATIBLE
    supports_model_listing = False


class LMStudioProvider(OpenAIProvider):
    """LM Studio local server."""

    provider_id = ProviderID.LM_STUDIO


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter routing API."""

    provider_id = ProviderID.OPENROUTER

    def build_headers(self, config: ProviderConfig) -> dict[str, str]:
        headers = super().build_headers(config)
        headers["X-Title"] = "qodecore"
        return headers
