"""LiteLLM adapter for backends routed through LiteLLM."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import litellm
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    RateLimitError,
    Timeout,
)

from qodecore.config.models import ProviderConfig, ProviderID
from qodecore.domain.entities import (
    CancellationToken,
    ConnectionReason,
    Done,
    ErrorKind,
    LLMRequest,
    RenderedPrompt,
    StreamError,
    StreamEvent,
    TokenChunk,
)
from qodecore.infrastructure.llm.exceptions import ProviderConnectionError
from qodecore.infrastructure.llm.providers.base import (
    EOF,
    BaseProvider,
    FrameResult,
    Interrupt,
    WirePayload,
    next_or_eof,
)

logger = logging.getLogger(__name__)


class LiteLLMProvider(BaseProvider):
    """Sends requests through ``litellm.acompletion``.

    The model name uses LiteLLM's ``provider/model`` form. The configured
    URL, when set, is passed as ``api_base``. Requests always use the chat
    shape; FIM prompts become a single user message.
    """

    provider_id = ProviderID.LITELLM
    supports_model_listing = False

    def uses_fim_endpoint(self, request: LLMRequest) -> bool:
        return False

    def build_headers(self, config: ProviderConfig) -> dict[str, str]:
        # LiteLLM builds its own headers; the key travels as a parameter.
        return {}

    def build_fim_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        return self.build_chat_body(config, prompt)

    def build_chat_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        sampling = config.sampling
        params: dict[str, Any] = {
            "model": config.model,
            "messages": self.chat_messages(prompt),
            "stream": config.streaming,
            **self.sampling_fields(sampling),
        }
        if sampling.top_k is not None:
            params["top_k"] = sampling.top_k
        if prompt.stop_words:
            params["stop"] = list(prompt.stop_words)
        return config.url, params

    def build_request(self, request: LLMRequest) -> WirePayload:
        payload = super().build_request(request)
        config = request.provider_config
        body = dict(payload.body)
        if config.url:
            body["api_base"] = config.url
        return WirePayload(
            url=payload.url,
            body=body,
            # Credentials stay out of the logged body.
            headers={"api_key": config.api_key} if config.api_key else {},
            streaming=payload.streaming,
        )

    def parse_frame(self, frame: dict[str, Any]) -> FrameResult:
        choices = frame["choices"]
        if not choices:
            return FrameResult()
        choice = choices[0]
        delta = choice.get("delta") or {}
        return FrameResult(
            text=delta.get("content") or "",
            finish_reason=choice.get("finish_reason"),
        )

    def parse_response(self, data: dict[str, Any]) -> tuple[str, str]:
        choice = data["choices"][0]
        return choice["message"].get("content") or "", choice.get("finish_reason") or "stop"

    async def send_and_stream(
        self,
        payload: WirePayload,
        cancellation: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        """Send the request through LiteLLM and yield stream events.

        Raises:
            ProviderConnectionError: If LiteLLM reports a delivery failure.
        """
        if cancellation.is_cancelled:
            return

        params = {**payload.body, **payload.headers}
        if self._debug_llm_messages:
            logger.info(
                "=== litellm request ===\n%s",
                json.dumps(payload.body, ensure_ascii=False, indent=2),
            )
        else:
            logger.debug("LLM request: model=%s", params["model"])

        cancel_task = asyncio.ensure_future(cancellation.wait())
        try:
            response = await self._race(
                litellm.acompletion(**params, timeout=self._timeouts.idle_seconds),
                cancel_task,
            )
            if response is Interrupt.CANCELLED:
                return
            if response is Interrupt.IDLE_TIMEOUT:
                raise ProviderConnectionError(
                    ConnectionReason.TIMEOUT, "LiteLLM request timed out"
                )

            if not payload.streaming:
                text, finish_reason = self.parse_response(response.model_dump())
                yield TokenChunk(text)
                yield Done(finish_reason)
                return

            async for event in self._iter_chunks(response, cancel_task):
                yield event
        except AuthenticationError as e:
            logger.error("LLM authentication error: %s", e)
            raise ProviderConnectionError(ConnectionReason.AUTH_REJECTED, str(e)) from e
        except RateLimitError as e:
            logger.warning("LLM rate limit exceeded: %s", e)
            raise ProviderConnectionError(ConnectionReason.RATE_LIMITED, str(e)) from e
        except Timeout as e:
            raise ProviderConnectionError(ConnectionReason.TIMEOUT, str(e)) from e
        except APIConnectionError as e:
            raise ProviderConnectionError(ConnectionReason.REFUSED, str(e)) from e
        except BadRequestError as e:
            raise ProviderConnectionError(ConnectionReason.REQUEST_REJECTED, str(e)) from e
        except APIError as e:
            logger.error("LLM error: %s", e)
            raise ProviderConnectionError(ConnectionReason.SERVER_ERROR, str(e)) from e
        finally:
            cancel_task.cancel()

    async def _iter_chunks(
        self,
        response: Any,
        cancel_task: "asyncio.Future[None]",
    ) -> AsyncIterator[StreamEvent]:
        chunks = response.__aiter__()
        finish_reason: str | None = None
        while True:
            chunk = await self._race(next_or_eof(chunks), cancel_task)
            if chunk is Interrupt.CANCELLED:
                return
            if chunk is Interrupt.IDLE_TIMEOUT:
                yield StreamError(ErrorKind.TIMEOUT, "No data from LiteLLM stream")
                return
            if chunk is EOF:
                break
            try:
                result = self.parse_frame(chunk.model_dump())
            except (KeyError, IndexError, TypeError, AttributeError) as e:
                yield StreamError(ErrorKind.PARSE_FAILURE, f"Malformed LiteLLM chunk: {e}")
                return
            if result.text:
                yield TokenChunk(result.text)
            if result.finish_reason:
                finish_reason = result.finish_reason
        yield Done(finish_reason or "stop")
