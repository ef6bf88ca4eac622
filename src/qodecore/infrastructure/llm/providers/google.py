"""Google AI (Gemini) adapter."""

from typing import Any

from qodecore.config.models import ProviderConfig, ProviderID
from qodecore.domain.entities import LLMRequest, RenderedPrompt
from qodecore.infrastructure.llm.providers.base import (
    BaseProvider,
    FrameResult,
    drop_none,
)

MODEL_PREFIX = "models/"


class GoogleAIProvider(BaseProvider):
    """Gemini ``generateContent`` / ``streamGenerateContent`` (SSE).

    Penalties are not sent. The stream has no terminator frame and ends
    when the connection closes.
    """

    provider_id = ProviderID.GOOGLE_AI

    def build_headers(self, config: ProviderConfig) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["x-goog-api-key"] = config.api_key
        return headers

    def uses_fim_endpoint(self, request: LLMRequest) -> bool:
        return False

    def build_fim_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        return self.build_chat_body(config, prompt)

    def build_chat_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        sampling = config.sampling
        contents = [
            {
                "role": "model" if message["role"] == "assistant" else "user",
                "parts": [{"text": message["content"]}],
            }
            for message in self.chat_messages(prompt)
            if message["role"] != "system"
        ]
        generation_config = drop_none(
            {
                "maxOutputTokens": sampling.max_tokens,
                "temperature": sampling.temperature,
                "topP": sampling.top_p,
                "topK": sampling.top_k,
            }
        )
        if prompt.stop_words:
            generation_config["stopSequences"] = list(prompt.stop_words)

        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if prompt.system:
            body["system_instruction"] = {"parts": [{"text": prompt.system}]}

        model = config.model.removeprefix(MODEL_PREFIX)
        if config.streaming:
            url = f"{config.url}/models/{model}:streamGenerateContent?alt=sse"
        else:
            url = f"{config.url}/models/{model}:generateContent"
        return url, body

    def _candidate_text(self, data: dict[str, Any]) -> tuple[str, str | None]:
        candidates = data.get("candidates") or []
        if not candidates:
            return "", None
        candidate = candidates[0]
        parts = candidate.get("content", {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts)
        return text, candidate.get("finishReason") or None

    def parse_frame(self, frame: dict[str, Any]) -> FrameResult:
        if "error" in frame:
            return FrameResult(error=self.error_message(frame["error"]))
        text, finish_reason = self._candidate_text(frame)
        return FrameResult(
            text=text,
            finish_reason=finish_reason.lower() if finish_reason else None,
        )

    def parse_response(self, data: dict[str, Any]) -> tuple[str, str]:
        if "candidates" not in data:
            raise KeyError("candidates")
        text, finish_reason = self._candidate_text(data)
        return text, finish_reason.lower() if finish_reason else "stop"

    def models_url(self, config: ProviderConfig) -> str:
        return f"{config.url}/models"

    def parse_models(self, data: dict[str, Any]) -> list[str]:
        return [
            item["name"].removeprefix(MODEL_PREFIX) for item in data.get("models", [])
        ]
