"""Ollama adapter (local inference server)."""

from typing import Any

from qodecore.config.models import ProviderConfig, ProviderID
from qodecore.domain.entities import RenderedPrompt
from qodecore.infrastructure.llm.providers.base import (
    BaseProvider,
    FrameResult,
    Framing,
    drop_none,
)


def keep_alive_value(idle_suspend: str) -> str | int:
    """Convert the idle-suspend setting to Ollama's ``keep_alive`` field.

    ``"-1"`` keeps the model loaded forever; other values such as ``"5m"``
    are passed through.
    """
    value = idle_suspend.strip()
    if value.lstrip("-").isdigit():
        return int(value)
    return value


class OllamaProvider(BaseProvider):
    """Ollama ``/api/generate`` and ``/api/chat`` with NDJSON streaming."""

    provider_id = ProviderID.OLLAMA
    framing = Framing.NDJSON

    def _options(self, config: ProviderConfig, prompt: RenderedPrompt) -> dict[str, Any]:
        sampling = config.sampling
        options = drop_none(
            {
                "num_predict": sampling.max_tokens,
                "temperature": sampling.temperature,
                "top_p": sampling.top_p,
                "top_k": sampling.top_k,
                "presence_penalty": sampling.presence_penalty,
                "frequency_penalty": sampling.frequency_penalty,
                "num_ctx": config.context_window_tokens,
            }
        )
        if prompt.stop_words:
            options["stop"] = list(prompt.stop_words)
        return options

    def build_fim_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        body: dict[str, Any] = {
            "model": config.model,
            "prompt": prompt.prompt,
            "stream": config.streaming,
            "options": self._options(config, prompt),
            "keep_alive": keep_alive_value(config.idle_suspend),
        }
        if prompt.suffix is not None:
            body["suffix"] = prompt.suffix
        if prompt.system:
            body["system"] = prompt.system
        return f"{config.url}/api/generate", body

    def build_chat_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        body = {
            "model": config.model,
            "messages": self.chat_messages(prompt),
            "stream": config.streaming,
            "options": self._options(config, prompt),
            "keep_alive": keep_alive_value(config.idle_suspend),
        }
        return f"{config.url}/api/chat", body

    def parse_frame(self, frame: dict[str, Any]) -> FrameResult:
        if "error" in frame:
            return FrameResult(error=self.error_message(frame["error"]))
        if "message" in frame:
            text = frame["message"].get("content", "")
        else:
            text = frame.get("response", "")
        if not isinstance(text, str):
            raise TypeError("response text is not a string")
        done = bool(frame.get("done", False))
        return FrameResult(
            text=text,
            finish_reason=frame.get("done_reason") if done else None,
            done=done,
        )

    def parse_response(self, data: dict[str, Any]) -> tuple[str, str]:
        if "message" in data:
            text = data["message"]["content"]
        else:
            text = data["response"]
        return text, data.get("done_reason") or "stop"

    def models_url(self, config: ProviderConfig) -> str:
        return f"{config.url}/api/tags"

    def parse_models(self, data: dict[str, Any]) -> list[str]:
        return [item["name"] for item in data.get("models", [])]
