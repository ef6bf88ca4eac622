"""Anthropic Messages API adapter."""

from typing import Any

from qodecore.config.models import ProviderConfig, ProviderID
from qodecore.domain.entities import LLMRequest, RenderedPrompt
from qodecore.infrastructure.llm.providers.base import (
    BaseProvider,
    FrameResult,
    drop_none,
)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(BaseProvider):
    """Claude ``/v1/messages`` with SSE streaming.

    Penalties are not supported by the API and are left out.
    """

    provider_id = ProviderID.CLAUDE

    def build_headers(self, config: ProviderConfig) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        if config.api_key:
            headers["x-api-key"] = config.api_key
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
        # The system prompt is a top-level field, not a message.
        messages = [m for m in self.chat_messages(prompt) if m["role"] != "system"]
        body: dict[str, Any] = {
            "model": config.model,
            "messages": messages,
            "stream": config.streaming,
            **drop_none(
                {
                    "max_tokens": sampling.max_tokens,
                    "temperature": sampling.temperature,
                    "top_p": sampling.top_p,
                    "top_k": sampling.top_k,
                }
            ),
        }
        if prompt.system:
            body["system"] = prompt.system
        if prompt.stop_words:
            body["stop_sequences"] = list(prompt.stop_words)
        return f"{config.url}/v1/messages", body

    def parse_frame(self, frame: dict[str, Any]) -> FrameResult:
        event_type = frame["type"]
        if event_type == "error":
            return FrameResult(error=self.error_message(frame.get("error")))
        if event_type == "content_block_delta":
            delta = frame["delta"]
            if delta.get("type") == "text_delta":
                return FrameResult(text=delta["text"])
            return FrameResult()
        if event_type == "message_delta":
            return FrameResult(finish_reason=frame["delta"].get("stop_reason"))
        if event_type == "message_stop":
            return FrameResult(done=True)
        # message_start, content_block_start/stop, ping
        return FrameResult()

    def parse_response(self, data: dict[str, Any]) -> tuple[str, str]:
        text = "".join(
            block["text"] for block in data["content"] if block.get("type") == "text"
        )
        return text, data.get("stop_reason") or "stop"
