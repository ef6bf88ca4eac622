"""Provider adapter base class and stream handling shared by all backends."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

import httpx

from qodecore.config.models import ProviderConfig, ProviderID, SamplingConfig, TimeoutConfig
from qodecore.domain.entities import (
    CancellationToken,
    ConnectionReason,
    Done,
    ErrorKind,
    LLMRequest,
    RenderedPrompt,
    RequestType,
    StreamError,
    StreamEvent,
    TemplateKind,
    TokenChunk,
)
from qodecore.infrastructure.llm.exceptions import (
    ModelListingUnsupportedError,
    ProviderConnectionError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Framing(Enum):
    """How a streaming response is split into frames."""

    NDJSON = "ndjson"
    SSE = "sse"


@dataclass(frozen=True)
class WirePayload:
    """A provider-specific HTTP request ready to send.

    Attributes:
        url: Full endpoint URL.
        body: JSON request body.
        headers: Request headers (may contain credentials, never logged).
        streaming: Whether the response is streamed.
    """

    url: str
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict, repr=False)
    streaming: bool = True


@dataclass(frozen=True)
class FrameResult:
    """What one decoded frame means for the stream.

    Attributes:
        text: Generated text carried by the frame.
        finish_reason: Finish reason reported by the frame, if any.
        done: The frame ends the response.
        error: Provider error message carried in the stream.
    """

    text: str = ""
    finish_reason: str | None = None
    done: bool = False
    error: str | None = None


class Interrupt(Enum):
    """Why a read stopped before producing data."""

    CANCELLED = "cancelled"
    IDLE_TIMEOUT = "idle_timeout"


EOF = object()

SSE_DONE = "[DONE]"


async def next_or_eof(iterator: AsyncIterator[T]) -> T | object:
    """Next item of an async iterator, or ``EOF`` when it is exhausted."""
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return EOF


def status_to_reason(status_code: int) -> ConnectionReason:
    """Map an HTTP error status to a connection failure reason."""
    if status_code in (401, 403):
        return ConnectionReason.AUTH_REJECTED
    if status_code == 429:
        return ConnectionReason.RATE_LIMITED
    if status_code >= 500:
        return ConnectionReason.SERVER_ERROR
    return ConnectionReason.REQUEST_REJECTED


def drop_none(values: dict[str, Any]) -> dict[str, Any]:
    """Remove unset (None) entries."""
    return {key: value for key, value in values.items() if value is not None}


class BaseProvider(ABC):
    """Common HTTP and stream handling for provider adapters.

    Subclasses describe their wire format (endpoints, headers, body
    fields and frame decoding); this class sends the request, splits the
    response into frames and turns them into stream events.

    Adapters never retry. Delivery failures are raised as
    ``ProviderConnectionError``; failures after the response started are
    yielded as ``StreamError`` events.
    """

    provider_id: ProviderID
    framing: Framing = Framing.SSE
    supports_model_listing: bool = True

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeouts: TimeoutConfig,
        *,
        debug_llm_messages: bool = False,
    ) -> None:
        """Initialize the adapter.

        Args:
            client: Shared HTTP client.
            timeouts: Connect and idle timeouts.
            debug_llm_messages: If True, log request bodies at INFO level.
        """
        self._client = client
        self._timeouts = timeouts
        self._debug_llm_messages = debug_llm_messages

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------

    def build_request(self, request: LLMRequest) -> WirePayload:
        """Translate a generic request into this provider's wire payload.

        Args:
            request: Request to translate.

        Returns:
            Payload ready for ``send_and_stream``.
        """
        config = request.provider_config
        prompt = request.prompt
        if self.uses_fim_endpoint(request):
            url, body = self.build_fim_body(config, prompt)
        else:
            url, body = self.build_chat_body(config, prompt)

        # Custom JSON body templates override generated fields.
        body.update(prompt.body)

        return WirePayload(
            url=url,
            body=body,
            headers=self.build_headers(config),
            streaming=config.streaming,
        )

    def uses_fim_endpoint(self, request: LLMRequest) -> bool:
        """Check if a request goes to the completion endpoint."""
        return (
            request.request_type is RequestType.CODE_COMPLETION
            and request.prompt.kind is TemplateKind.FIM
        )

    def build_headers(self, config: ProviderConfig) -> dict[str, str]:
        """Request headers. Bearer auth when an API key is set."""
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    @abstractmethod
    def build_fim_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        """Build the URL and body for a fill-in-the-middle request."""

    @abstractmethod
    def build_chat_body(
        self, config: ProviderConfig, prompt: RenderedPrompt
    ) -> tuple[str, dict[str, Any]]:
        """Build the URL and body for a chat request."""

    @abstractmethod
    def parse_frame(self, frame: dict[str, Any]) -> FrameResult:
        """Decode one streamed frame.

        Raises:
            KeyError, IndexError, TypeError, ValueError: If the frame does
                not have the expected shape.
        """

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> tuple[str, str]:
        """Decode a non-streamed response into (text, finish reason)."""

    def chat_messages(self, prompt: RenderedPrompt) -> list[dict[str, str]]:
        """OpenAI-format messages with the system prompt first.

        A FIM prompt sent to a chat endpoint becomes one user message.
        """
        messages: list[dict[str, str]] = []
        if prompt.system:
            messages.append({"role": "system", "content": prompt.system})
        if prompt.kind is TemplateKind.FIM:
            messages.append({"role": "user", "content": prompt.prompt})
        else:
            messages.extend(dict(message) for message in prompt.messages)
        return messages

    def sampling_fields(self, sampling: SamplingConfig) -> dict[str, Any]:
        """OpenAI-style sampling fields. top_k is not supported."""
        return drop_none(
            {
                "max_tokens": sampling.max_tokens,
                "temperature": sampling.temperature,
                "top_p": sampling.top_p,
                "presence_penalty": sampling.presence_penalty,
                "frequency_penalty": sampling.frequency_penalty,
            }
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def send_and_stream(
        self,
        payload: WirePayload,
        cancellation: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        """Send the payload and yield stream events in order.

        Cancellation ends the stream without an event; the HTTP response
        is closed when the generator exits.

        Args:
            payload: Payload from ``build_request``.
            cancellation: Cancellation token, checked before every read.

        Yields:
            Stream events.

        Raises:
            ProviderConnectionError: If the request could not be delivered
                or the provider rejected it.
        """
        if cancellation.is_cancelled:
            return

        self._log_payload(payload)
        cancel_task = asyncio.ensure_future(cancellation.wait())
        try:
            async with self._client.stream(
                "POST",
                payload.url,
                json=payload.body,
                headers=payload.headers,
                timeout=self._http_timeout(),
            ) as response:
                await self._raise_for_status(response)
                if payload.streaming:
                    async for event in self._iter_stream(response, cancel_task):
                        yield event
                else:
                    async for event in self._read_whole(response, cancel_task):
                        yield event
        except httpx.TimeoutException as e:
            raise ProviderConnectionError(
                ConnectionReason.TIMEOUT, f"{self.provider_id.value}: {e}"
            ) from e
        except httpx.ConnectError as e:
            raise ProviderConnectionError(
                ConnectionReason.REFUSED, f"{self.provider_id.value}: {e}"
            ) from e
        except httpx.TransportError as e:
            raise ProviderConnectionError(
                ConnectionReason.SERVER_ERROR, f"{self.provider_id.value}: {e}"
            ) from e
        finally:
            cancel_task.cancel()

    async def _iter_stream(
        self,
        response: httpx.Response,
        cancel_task: "asyncio.Future[None]",
    ) -> AsyncIterator[StreamEvent]:
        lines = response.aiter_lines()
        finish_reason: str | None = None
        while True:
            try:
                line = await self._race(next_or_eof(lines), cancel_task)
            except httpx.ReadTimeout:
                line = Interrupt.IDLE_TIMEOUT

            if line is Interrupt.CANCELLED:
                logger.debug("%s stream cancelled", self.provider_id.value)
                return
            if line is Interrupt.IDLE_TIMEOUT:
                yield StreamError(
                    ErrorKind.TIMEOUT,
                    f"No data from {self.provider_id.value} for "
                    f"{self._timeouts.idle_seconds} seconds",
                )
                return
            if line is EOF:
                break

            data = self._frame_data(line)
            if data is None:
                continue
            if data == SSE_DONE:
                yield Done(finish_reason or "stop")
                return

            try:
                frame = json.loads(data)
                if not isinstance(frame, dict):
                    raise TypeError(f"expected a JSON object, got {type(frame).__name__}")
                result = self.parse_frame(frame)
            except (ValueError, KeyError, IndexError, TypeError) as e:
                logger.warning("Malformed frame from %s: %s", self.provider_id.value, e)
                yield StreamError(
                    ErrorKind.PARSE_FAILURE,
                    f"Malformed frame from {self.provider_id.value}: {e}",
                )
                return

            if result.error is not None:
                yield StreamError(
                    ErrorKind.CONNECTION,
                    result.error,
                    reason=ConnectionReason.SERVER_ERROR,
                )
                return
            if result.text:
                yield TokenChunk(result.text)
            if result.finish_reason:
                finish_reason = result.finish_reason
            if result.done:
                yield Done(finish_reason or "stop")
                return

        yield Done(finish_reason or "stop")

    async def _read_whole(
        self,
        response: httpx.Response,
        cancel_task: "asyncio.Future[None]",
    ) -> AsyncIterator[StreamEvent]:
        try:
            content = await self._race(response.aread(), cancel_task)
        except httpx.ReadTimeout:
            content = Interrupt.IDLE_TIMEOUT

        if content is Interrupt.CANCELLED:
            return
        if content is Interrupt.IDLE_TIMEOUT:
            yield StreamError(
                ErrorKind.TIMEOUT,
                f"No response from {self.provider_id.value} within "
                f"{self._timeouts.idle_seconds} seconds",
            )
            return

        try:
            data = json.loads(content)
            if not isinstance(data, dict):
                raise TypeError(f"expected a JSON object, got {type(data).__name__}")
            if "error" in data:
                yield StreamError(
                    ErrorKind.CONNECTION,
                    self.error_message(data["error"]),
                    reason=ConnectionReason.SERVER_ERROR,
                )
                return
            text, finish_reason = self.parse_response(data)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            yield StreamError(
                ErrorKind.PARSE_FAILURE,
                f"Malformed response from {self.provider_id.value}: {e}",
            )
            return

        yield TokenChunk(text)
        yield Done(finish_reason or "stop")

    async def _race(
        self,
        awaitable: Awaitable[T],
        cancel_task: "asyncio.Future[None]",
    ) -> T | Interrupt:
        """Await a read unless cancellation or the idle timeout comes first."""
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait(
                {task, cancel_task},
                timeout=self._timeouts.idle_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if cancel_task in done:
            return Interrupt.CANCELLED
        if task in done:
            return task.result()
        return Interrupt.IDLE_TIMEOUT

    def _frame_data(self, line: str) -> str | None:
        """Extract the JSON text of a frame, or None for non-data lines."""
        line = line.strip()
        if not line:
            return None
        if self.framing is Framing.NDJSON:
            return line
        if line.startswith("data:"):
            return line[len("data:") :].strip()
        # SSE comments, event names and ids carry no payload.
        return None

    async def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        await response.aread()
        reason = status_to_reason(response.status_code)
        detail = response.text[:200]
        logger.warning(
            "%s rejected the request: HTTP %d %s",
            self.provider_id.value,
            response.status_code,
            detail,
        )
        raise ProviderConnectionError(
            reason, f"HTTP {response.status_code} from {self.provider_id.value}: {detail}"
        )

    def _http_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._timeouts.idle_seconds,
            connect=self._timeouts.connect_seconds,
        )

    def _log_payload(self, payload: WirePayload) -> None:
        if self._debug_llm_messages:
            logger.info(
                "=== %s request: %s ===\n%s",
                self.provider_id.value,
                payload.url,
                json.dumps(payload.body, ensure_ascii=False, indent=2),
            )
        else:
            logger.debug("%s request: %s", self.provider_id.value, payload.url)

    @staticmethod
    def error_message(error: Any) -> str:
        """Readable message from a provider error object."""
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)

    # ------------------------------------------------------------------
    # Model listing
    # ------------------------------------------------------------------

    def models_url(self, config: ProviderConfig) -> str:
        """Model listing endpoint."""
        return f"{config.url}/v1/models"

    def parse_models(self, data: dict[str, Any]) -> list[str]:
        """Model identifiers from a listing response."""
        return [item["id"] for item in data.get("data", [])]

    async def list_models(self, config: ProviderConfig) -> list[str]:
        """List model identifiers available at the endpoint.

        Args:
            config: Provider configuration.

        Returns:
            Model identifiers.

        Raises:
            ModelListingUnsupportedError: If the backend cannot list models.
            ProviderConnectionError: If the endpoint cannot be reached.
        """
        if not self.supports_model_listing:
            raise ModelListingUnsupportedError(
                f"{self.provider_id.value} does not support model listing; "
                "enter the model name manually"
            )

        try:
            response = await self._client.get(
                self.models_url(config),
                headers=self.build_headers(config),
                timeout=self._http_timeout(),
            )
        except httpx.TimeoutException as e:
            raise ProviderConnectionError(ConnectionReason.TIMEOUT, str(e)) from e
        except httpx.ConnectError as e:
            raise ProviderConnectionError(ConnectionReason.REFUSED, str(e)) from e
        except httpx.TransportError as e:
            raise ProviderConnectionError(ConnectionReason.SERVER_ERROR, str(e)) from e

        if response.status_code >= 400:
            raise ProviderConnectionError(
                status_to_reason(response.status_code),
                f"HTTP {response.status_code} listing models from {self.provider_id.value}",
            )
        try:
            return self.parse_models(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ProviderConnectionError(
                ConnectionReason.SERVER_ERROR,
                f"Malformed model list from {self.provider_id.value}: {e}",
            ) from e
