"""Tests for LiteLLMProvider."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from litellm.exceptions import AuthenticationError, RateLimitError

from qodecore.config.models import ProviderConfig, ProviderID
from qodecore.domain.entities import (
    CancellationToken,
    ConnectionReason,
    Done,
    ErrorKind,
    LLMRequest,
    RenderedPrompt,
    RequestType,
    TemplateKind,
    TokenChunk,
)
from qodecore.infrastructure.llm import ProviderConnectionError
from qodecore.infrastructure.llm.providers.litellm_provider import LiteLLMProvider

ACOMPLETION = "qodecore.infrastructure.llm.providers.litellm_provider.litellm.acompletion"


def chunk(content: str | None, finish_reason: str | None = None) -> MagicMock:
    mock = MagicMock()
    mock.model_dump.return_value = {
        "choices": [{"delta": {"content": content}, "finish_reason": finish_reason}]
    }
    return mock


class ChunkStream:
    """Async iterator over prepared LiteLLM chunks."""

    def __init__(self, chunks: list[MagicMock]) -> None:
        self._chunks = iter(chunks)

    def __aiter__(self) -> "ChunkStream":
        return self

    async def __anext__(self) -> MagicMock:
        try:
            return next(self._chunks)
        except StopIteration:
            raise StopAsyncIteration from None


class TestLiteLLMProvider:
    """LiteLLMProvider tests."""

    @pytest.fixture
    def provider(self, timeouts) -> LiteLLMProvider:
        """Create the provider."""
        return LiteLLMProvider(httpx.AsyncClient(), timeouts)

    @pytest.fixture
    def request_(self) -> LLMRequest:
        """Create a chat request routed through LiteLLM."""
        config = ProviderConfig(
            provider=ProviderID.LITELLM,
            url="http://proxy:4000",
            model="anthropic/claude-sonnet",
            api_key="sk-secret",
        )
        prompt = RenderedPrompt(
            kind=TemplateKind.FIM, system="sys", prompt="def f(", stop_words=("<EOT>",)
        )
        return LLMRequest(
            prompt=prompt, provider_config=config, request_type=RequestType.CODE_COMPLETION
        )

    def test_build_request(self, provider: LiteLLMProvider, request_: LLMRequest) -> None:
        """Test that FIM prompts become chat messages and the key stays out of the body."""
        payload = provider.build_request(request_)

        assert payload.body["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "def f("},
        ]
        assert payload.body["api_base"] == "http://proxy:4000"
        assert payload.body["stop"] == ["<EOT>"]
        assert "api_key" not in payload.body
        assert payload.headers == {"api_key": "sk-secret"}

    async def test_streams_chunks(
        self, provider: LiteLLMProvider, request_: LLMRequest, collect
    ) -> None:
        """Test that LiteLLM chunks become stream events."""
        stream = ChunkStream([chunk("x = "), chunk("1", "stop")])
        with patch(ACOMPLETION, new=AsyncMock(return_value=stream)) as mock_completion:
            events = await collect(
                provider.send_and_stream(provider.build_request(request_), CancellationToken())
            )

        assert events == [TokenChunk("x = "), TokenChunk("1"), Done("stop")]
        call_kwargs = mock_completion.call_args.kwargs
        assert call_kwargs["model"] == "anthropic/claude-sonnet"
        assert call_kwargs["api_key"] == "sk-secret"
        assert call_kwargs["stream"] is True

    async def test_malformed_chunk(
        self, provider: LiteLLMProvider, request_: LLMRequest, collect
    ) -> None:
        """Test that a chunk without choices is a parse failure."""
        bad = MagicMock()
        bad.model_dump.return_value = {}
        stream = ChunkStream([chunk("a"), bad])
        with patch(ACOMPLETION, new=AsyncMock(return_value=stream)):
            events = await collect(
                provider.send_and_stream(provider.build_request(request_), CancellationToken())
            )

        assert events[0] == TokenChunk("a")
        assert events[1].kind is ErrorKind.PARSE_FAILURE

    async def test_authentication_error(
        self, provider: LiteLLMProvider, request_: LLMRequest, collect
    ) -> None:
        """Test that authentication errors are converted."""
        error = AuthenticationError(
            message="Invalid API key", llm_provider="anthropic", model="claude-sonnet"
        )
        with patch(ACOMPLETION, new=AsyncMock(side_effect=error)):
            with pytest.raises(ProviderConnectionError) as exc_info:
                await collect(
                    provider.send_and_stream(
                        provider.build_request(request_), CancellationToken()
                    )
                )

        assert exc_info.value.reason is ConnectionReason.AUTH_REJECTED

    async def test_rate_limit_error(
        self, provider: LiteLLMProvider, request_: LLMRequest, collect
    ) -> None:
        """Test that rate limit errors are converted."""
        error = RateLimitError(
            message="Rate limit exceeded", llm_provider="anthropic", model="claude-sonnet"
        )
        with patch(ACOMPLETION, new=AsyncMock(side_effect=error)):
            with pytest.raises(ProviderConnectionError) as exc_info:
                await collect(
                    provider.send_and_stream(
                        provider.build_request(request_), CancellationToken()
                    )
                )

        assert exc_info.value.reason is ConnectionReason.RATE_LIMITED

    async def test_cancelled_before_send(
        self, provider: LiteLLMProvider, request_: LLMRequest, collect
    ) -> None:
        """Test that nothing is sent for a cancelled request."""
        token = CancellationToken()
        token.cancel()
        with patch(ACOMPLETION, new=AsyncMock()) as mock_completion:
            events = await collect(provider.send_and_stream(provider.build_request(request_), token))

        assert events == []
        mock_completion.assert_not_called()
