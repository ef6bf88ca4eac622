"""Tests for provider wire payloads."""

import httpx
import pytest

from qodecore.config.models import (
    ProviderConfig,
    ProviderID,
    SamplingConfig,
    TimeoutConfig,
)
from qodecore.domain.entities import LLMRequest, RenderedPrompt, RequestType, TemplateKind
from qodecore.infrastructure.llm import ProviderNotFoundError, create_provider
from qodecore.infrastructure.llm.providers.claude import ANTHROPIC_VERSION, ClaudeProvider
from qodecore.infrastructure.llm.providers.google import GoogleAIProvider
from qodecore.infrastructure.llm.providers.llamacpp import LlamaCppProvider
from qodecore.infrastructure.llm.providers.mistral import MistralAIProvider
from qodecore.infrastructure.llm.providers.ollama import OllamaProvider, keep_alive_value
from qodecore.infrastructure.llm.providers.openai import (
    OpenAIProvider,
    OpenRouterProvider,
)

FULL_SAMPLING = SamplingConfig(
    temperature=0.1,
    top_p=0.9,
    top_k=40,
    max_tokens=64,
    presence_penalty=0.5,
    frequency_penalty=0.3,
)

FIM_PROMPT = RenderedPrompt(
    kind=TemplateKind.FIM,
    system="sys",
    prompt="def f(",
    suffix=")",
    stop_words=("<EOT>",),
)
CHAT_PROMPT = RenderedPrompt(
    kind=TemplateKind.CHAT,
    system="sys",
    messages=(
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "explain"},
    ),
)


@pytest.fixture
def client() -> httpx.AsyncClient:
    """Create a client that is never used to send."""
    return httpx.AsyncClient()


@pytest.fixture
def timeouts() -> TimeoutConfig:
    """Create default timeouts."""
    return TimeoutConfig()


def make_request(
    provider: ProviderID,
    prompt: RenderedPrompt,
    request_type: RequestType = RequestType.CODE_COMPLETION,
    **kwargs,
) -> LLMRequest:
    config = ProviderConfig(provider=provider, url="http://host", model="m", **kwargs)
    return LLMRequest(prompt=prompt, provider_config=config, request_type=request_type)


class TestOllama:
    """Tests for the Ollama payload."""

    def test_fim_body(self, client, timeouts) -> None:
        """Test the /api/generate body."""
        provider = OllamaProvider(client, timeouts)

        payload = provider.build_request(make_request(ProviderID.OLLAMA, FIM_PROMPT))

        assert payload.url == "http://host/api/generate"
        assert payload.body == {
            "model": "m",
            "prompt": "def f(",
            "suffix": ")",
            "system": "sys",
            "stream": True,
            "options": {
                "num_predict": 50,
                "temperature": 0.2,
                "num_ctx": 2048,
                "stop": ["<EOT>"],
            },
            "keep_alive": "5m",
        }
        assert "Authorization" not in payload.headers

    def test_chat_body(self, client, timeouts) -> None:
        """Test the /api/chat body with all sampling parameters."""
        provider = OllamaProvider(client, timeouts)

        payload = provider.build_request(
            make_request(
                ProviderID.OLLAMA, CHAT_PROMPT, RequestType.CHAT, sampling=FULL_SAMPLING
            )
        )

        assert payload.url == "http://host/api/chat"
        assert payload.body["messages"][0] == {"role": "system", "content": "sys"}
        assert len(payload.body["messages"]) == 4
        assert payload.body["options"]["top_k"] == 40
        assert payload.body["options"]["presence_penalty"] == 0.5

    @pytest.mark.parametrize(
        ("idle_suspend", "expected"), [("-1", -1), ("5m", "5m"), ("0", 0), (" 1h ", "1h")]
    )
    def test_keep_alive(self, idle_suspend: str, expected) -> None:
        """Test the idle-suspend to keep_alive conversion."""
        assert keep_alive_value(idle_suspend) == expected

    def test_body_template_overrides(self, client, timeouts) -> None:
        """Test that template body fields are merged last."""
        prompt = RenderedPrompt(
            kind=TemplateKind.FIM,
            prompt="a",
            suffix="b",
            body={"raw": True, "keep_alive": -1},
        )
        provider = OllamaProvider(client, timeouts)

        payload = provider.build_request(make_request(ProviderID.OLLAMA, prompt))

        assert payload.body["raw"] is True
        assert payload.body["keep_alive"] == -1


class TestOpenAIStyle:
    """Tests for OpenAI style payloads."""

    def test_chat_body_omits_top_k(self, client, timeouts) -> None:
        """Test that unsupported sampling fields are not sent."""
        provider = OpenAIProvider(client, timeouts)

        payload = provider.build_request(
            make_request(
                ProviderID.OPENAI,
                CHAT_PROMPT,
                RequestType.CHAT,
                sampling=FULL_SAMPLING,
                api_key="sk-secret",
            )
        )

        assert payload.url == "http://host/v1/chat/completions"
        assert "top_k" not in payload.body
        assert payload.body["presence_penalty"] == 0.5
        assert payload.body["max_tokens"] == 64
        assert payload.headers["Authorization"] == "Bearer sk-secret"
        assert "sk-secret" not in repr(payload)

    def test_unset_sampling_omitted(self, client, timeouts) -> None:
        """Test that None sampling values are left out."""
        provider = OpenAIProvider(client, timeouts)
        sampling = SamplingConfig(temperature=None, max_tokens=None)

        payload = provider.build_request(
            make_request(ProviderID.OPENAI, CHAT_PROMPT, RequestType.CHAT, sampling=sampling)
        )

        assert set(payload.body) == {"model", "messages", "stream"}

    def test_fim_prompt_uses_completions(self, client, timeouts) -> None:
        """Test that FIM prompts go to /v1/completions."""
        provider = OpenAIProvider(client, timeouts)

        payload = provider.build_request(make_request(ProviderID.OPENAI, FIM_PROMPT))

        assert payload.url == "http://host/v1/completions"
        assert payload.body["prompt"] == "def f("
        assert payload.body["suffix"] == ")"
        assert payload.body["stop"] == ["<EOT>"]

    def test_openrouter_title(self, client, timeouts) -> None:
        """Test the OpenRouter app header."""
        provider = OpenRouterProvider(client, timeouts)

        payload = provider.build_request(
            make_request(ProviderID.OPENROUTER, CHAT_PROMPT, RequestType.CHAT)
        )

        assert payload.headers["X-Title"] == "qodecore"

    def test_mistral_fim(self, client, timeouts) -> None:
        """Test the Mistral FIM endpoint and its sampling subset."""
        provider = MistralAIProvider(client, timeouts)

        payload = provider.build_request(
            make_request(ProviderID.MISTRAL_AI, FIM_PROMPT, sampling=FULL_SAMPLING)
        )

        assert payload.url == "http://host/v1/fim/completions"
        assert payload.body["suffix"] == ")"
        assert "top_k" not in payload.body
        assert "presence_penalty" not in payload.body

    def test_llamacpp_infill(self, client, timeouts) -> None:
        """Test the llama.cpp /infill body."""
        provider = LlamaCppProvider(client, timeouts)

        payload = provider.build_request(make_request(ProviderID.LLAMA_CPP, FIM_PROMPT))

        assert payload.url == "http://host/infill"
        assert payload.body["input_prefix"] == "def f("
        assert payload.body["input_suffix"] == ")"
        assert payload.body["n_predict"] == 50
        assert payload.body["input_extra"] == [{"filename": "", "text": "sys"}]

    def test_llamacpp_single_prompt(self, client, timeouts) -> None:
        """Test that FIM prompts without a separate suffix go to /completion."""
        prompt = RenderedPrompt(kind=TemplateKind.FIM, prompt="<PRE>a<SUF>b<MID>")
        provider = LlamaCppProvider(client, timeouts)

        payload = provider.build_request(make_request(ProviderID.LLAMA_CPP, prompt))

        assert payload.url == "http://host/completion"
        assert payload.body["prompt"] == "<PRE>a<SUF>b<MID>"


class TestClaude:
    """Tests for the Anthropic payload."""

    def test_messages_body(self, client, timeouts) -> None:
        """Test the /v1/messages body and headers."""
        provider = ClaudeProvider(client, timeouts)

        payload = provider.build_request(
            make_request(
                ProviderID.CLAUDE,
                CHAT_PROMPT,
                RequestType.CHAT,
                sampling=FULL_SAMPLING,
                api_key="key",
            )
        )

        assert payload.url == "http://host/v1/messages"
        assert payload.body["system"] == "sys"
        assert all(m["role"] != "system" for m in payload.body["messages"])
        assert payload.body["top_k"] == 40
        assert "presence_penalty" not in payload.body
        assert payload.headers["x-api-key"] == "key"
        assert payload.headers["anthropic-version"] == ANTHROPIC_VERSION

    def test_fim_prompt_as_user_message(self, client, timeouts) -> None:
        """Test that a FIM prompt is sent as one user message."""
        provider = ClaudeProvider(client, timeouts)

        payload = provider.build_request(make_request(ProviderID.CLAUDE, FIM_PROMPT))

        assert payload.url == "http://host/v1/messages"
        assert payload.body["messages"] == [{"role": "user", "content": "def f("}]
        assert payload.body["stop_sequences"] == ["<EOT>"]


class TestGoogle:
    """Tests for the Gemini payload."""

    def test_streaming_body(self, client, timeouts) -> None:
        """Test contents, generationConfig and the streaming URL."""
        provider = GoogleAIProvider(client, timeouts)

        payload = provider.build_request(
            make_request(ProviderID.GOOGLE_AI, CHAT_PROMPT, RequestType.CHAT, api_key="g")
        )

        assert payload.url == "http://host/models/m:streamGenerateContent?alt=sse"
        assert [c["role"] for c in payload.body["contents"]] == ["user", "model", "user"]
        assert payload.body["system_instruction"] == {"parts": [{"text": "sys"}]}
        assert payload.body["generationConfig"] == {
            "maxOutputTokens": 50,
            "temperature": 0.2,
        }
        assert payload.headers["x-goog-api-key"] == "g"

    def test_non_streaming_url(self, client, timeouts) -> None:
        """Test the generateContent URL."""
        provider = GoogleAIProvider(client, timeouts)

        payload = provider.build_request(
            make_request(ProviderID.GOOGLE_AI, CHAT_PROMPT, RequestType.CHAT, streaming=False)
        )

        assert payload.url == "http://host/models/m:generateContent"


class TestRegistry:
    """Tests for create_provider."""

    @pytest.mark.parametrize("provider_id", list(ProviderID))
    def test_every_provider_has_adapter(self, client, timeouts, provider_id) -> None:
        """Test that all provider ids map to an adapter."""
        provider = create_provider(provider_id, client, timeouts)

        assert provider.provider_id is provider_id

    def test_unknown_provider(self, client, timeouts) -> None:
        """Test that an unregistered id raises ProviderNotFoundError."""
        with pytest.raises(ProviderNotFoundError):
            create_provider("watsonx", client, timeouts)  # type: ignore[arg-type]
