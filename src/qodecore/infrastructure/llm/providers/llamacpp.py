"""llama.cpp server adapter."""

from typing import Any

from qodecore.config.models import ProviderConfig, ProviderID, SamplingConfig
from qodecore.domain.entities import RenderedPrompt
from qodecore.infrastructure.llm.providers.base import FrameResult, drop_none
from qodecore.infrastructure.llm.providers.openai import OpenAIProvider


class LlamaCppProvider(OpenAIProvider):
    """llama.cpp ``/infill`` for FIM and its OpenAI-compatible chat endpoint.

    Templates with a separate suffix go to ``/infill``; single-prompt FIM
    templates go to ``/completion``. The server cannot list models.
    """

    provider_id = ProviderID.LLAMA_CPP
    supports_model_listing = False

    def _native_sampling(self, sampling: SamplingConfig) -> dict[str, Any]:
        return drop_none(
            {
                "n_predict": sampling.max_tokens,
                "temperature": sampling.temperature,
                "top_p": sampling.top_p,
                "top_k": sampling.top_k,
                "presence_penalty": sampling.presence_penalty,
                "frequency_penalty": sampling.frequency_penalty,
            }
        )

    def build_fim_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        body: dict[str, Any] = {
            "stream": config.streaming,
            **self._native_sampling(config.sampling),
        }
        if prompt.stop_words:
            body["stop"] = list(prompt.stop_words)

        if prompt.suffix is None:
            body["prompt"] = prompt.prompt
            return f"{config.url}/completion", body

        body["input_prefix"] = prompt.prompt
        body["input_suffix"] = prompt.suffix
        if prompt.system:
            body["input_extra"] = [{"filename": "", "text": prompt.system}]
        return f"{config.url}/infill", body

    def parse_frame(self, frame: dict[str, Any]) -> FrameResult:
        if "choices" in frame or "error" in frame:
            return super().parse_frame(frame)
        text = frame["content"]
        if not isinstance(text, str):
            raise TypeError("content is not a string")
        stopped = bool(frame.get("stop", False))
        finish_reason = None
        if stopped:
            finish_reason = "length" if frame.get("stop_type") == "limit" else "stop"
        return FrameResult(text=text, finish_reason=finish_reason, done=stopped)

    def parse_response(self, data: dict[str, Any]) -> tuple[str, str]:
        if "choices" in data:
            return super().parse_response(data)
        finish_reason = "length" if data.get("stop_type") == "limit" else "stop"
        return data["content"], finish_reason
