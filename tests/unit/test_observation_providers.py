"""Tests for text-generation providers."""

import json

import httpx
import pytest

from ravi.exceptions import ProviderCallError, ProviderRateLimitedError
from ravi.observation.models import ProviderResponse, ProviderType, SearchResult
from ravi.observation.providers import (
    AnthropicProvider,
    GeminiProvider,
    MockProvider,
    OpenAIProvider,
    PerplexityProvider,
    ProviderConfig,
    get_provider,
)


def _transport(status: int, body: dict | str, seen: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


class TestProviderResponse:
    """Tests for ProviderResponse."""

    def test_non_empty_text_succeeds(self) -> None:
        """Text with content marks the response as succeeded."""
        response = ProviderResponse.from_text(ProviderType.CHATGPT, 0, "Acme is great")

        assert response.succeeded is True

    def test_whitespace_text_fails(self) -> None:
        """Whitespace-only text is not a success."""
        response = ProviderResponse.from_text(ProviderType.CHATGPT, 0, "  \n ")

        assert response.succeeded is False

    def test_to_dict_truncates_text(self) -> None:
        """Long text is truncated in the dict form."""
        response = ProviderResponse.from_text(ProviderType.GEMINI, 3, "x" * 600)

        d = response.to_dict()

        assert d["provider"] == "gemini"
        assert d["query_index"] == 3
        assert len(d["text"]) == 503


class TestSearchResult:
    """Tests for SearchResult."""

    def test_text_joins_title_and_snippet(self) -> None:
        """Lexical text is title plus snippet."""
        result = SearchResult(name="Acme", link="https://acme.com", snippet="Leading vendor")

        assert result.text == "Acme. Leading vendor"


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    @pytest.mark.asyncio
    async def test_generate_returns_content(self) -> None:
        """Returns the first choice's message content."""
        seen: list[httpx.Request] = []
        provider = OpenAIProvider(
            ProviderConfig(
                api_key="sk-test",
                transport=_transport(200, {"choices": [{"message": {"content": "Hello"}}]}, seen),
            )
        )

        text = await provider.generate("Say hello")

        assert text == "Hello"
        assert seen[0].url.path == "/v1/chat/completions"
        assert seen[0].headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(seen[0].content)
        assert payload["model"] == "gpt-3.5-turbo"
        assert payload["max_tokens"] == 400
        assert payload["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 503])
    async def test_overload_is_rate_limited(self, status: int) -> None:
        """429 and 503 raise the retryable error."""
        provider = OpenAIProvider(ProviderConfig(api_key="k", transport=_transport(status, {})))

        with pytest.raises(ProviderRateLimitedError) as exc_info:
            await provider.generate("hi")

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_other_errors_raise_call_error(self) -> None:
        """Other non-200 statuses raise a call error."""
        provider = OpenAIProvider(ProviderConfig(api_key="k", transport=_transport(401, "bad key")))

        with pytest.raises(ProviderCallError) as exc_info:
            await provider.generate("hi")

        assert exc_info.value.status_code == 401
        assert exc_info.value.provider == "chatgpt"

    @pytest.mark.asyncio
    async def test_unexpected_shape_raises_call_error(self) -> None:
        """A payload without choices is malformed."""
        provider = OpenAIProvider(ProviderConfig(api_key="k", transport=_transport(200, {"x": 1})))

        with pytest.raises(ProviderCallError):
            await provider.generate("hi")

    @pytest.mark.asyncio
    async def test_transport_error_raises_call_error(self) -> None:
        """Network failures surface as call errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = OpenAIProvider(
            ProviderConfig(api_key="k", transport=httpx.MockTransport(handler))
        )

        with pytest.raises(ProviderCallError):
            await provider.generate("hi")


class TestGeminiProvider:
    """Tests for GeminiProvider."""

    @pytest.mark.asyncio
    async def test_generate_joins_parts(self) -> None:
        """Returns the first candidate's text parts."""
        seen: list[httpx.Request] = []
        body = {"candidates": [{"content": {"parts": [{"text": "Hi "}, {"text": "there"}]}}]}
        provider = GeminiProvider(ProviderConfig(api_key="g-key", transport=_transport(200, body, seen)))

        text = await provider.generate("hello")

        assert text == "Hi there"
        assert seen[0].url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
        assert seen[0].url.params["key"] == "g-key"

    @pytest.mark.asyncio
    async def test_no_candidates_is_empty(self) -> None:
        """A blocked generation returns empty text."""
        provider = GeminiProvider(ProviderConfig(api_key="g", transport=_transport(200, {})))

        assert await provider.generate("hello") == ""


class TestAnthropicProvider:
    """Tests for AnthropicProvider."""

    @pytest.mark.asyncio
    async def test_generate_returns_text_blocks(self) -> None:
        """Returns the concatenated text content blocks."""
        seen: list[httpx.Request] = []
        body = {"content": [{"type": "text", "text": "Claude says hi"}]}
        provider = AnthropicProvider(ProviderConfig(api_key="a-key", transport=_transport(200, body, seen)))

        text = await provider.generate("hello")

        assert text == "Claude says hi"
        assert seen[0].headers["x-api-key"] == "a-key"
        assert seen[0].headers["anthropic-version"] == "2023-06-01"


class TestPerplexityProvider:
    """Tests for PerplexityProvider."""

    @pytest.mark.asyncio
    async def test_generate_uses_sonar(self) -> None:
        """Uses the sonar model by default."""
        seen: list[httpx.Request] = []
        body = {"choices": [{"message": {"content": "Answer"}}]}
        provider = PerplexityProvider(ProviderConfig(api_key="p", transport=_transport(200, body, seen)))

        text = await provider.generate("q")

        assert text == "Answer"
        assert json.loads(seen[0].content)["model"] == "sonar"


class TestMockProvider:
    """Tests for MockProvider."""

    @pytest.mark.asyncio
    async def test_scripted_response(self) -> None:
        """Returns the response registered for a prompt fragment."""
        provider = MockProvider()
        provider.set_response("Acme", "Acme is a leader")

        assert await provider.generate("Tell me about Acme") == "Acme is a leader"
        assert await provider.generate("Something else") == ""
        assert provider.calls == ["Tell me about Acme", "Something else"]

    @pytest.mark.asyncio
    async def test_responder_callable(self) -> None:
        """A responder callable takes precedence."""
        provider = MockProvider(responder=lambda prompt: prompt.upper())

        assert await provider.generate("abc") == "ABC"

    @pytest.mark.asyncio
    async def test_rate_limited_then_ok(self) -> None:
        """Rate-limits the configured number of calls."""
        provider = MockProvider(responder=lambda prompt: "ok")
        provider.set_rate_limited(1)

        with pytest.raises(ProviderRateLimitedError):
            await provider.generate("a")
        assert await provider.generate("a") == "ok"

    @pytest.mark.asyncio
    async def test_failure_mode(self) -> None:
        """Failure mode raises a call error."""
        provider = MockProvider()
        provider.set_failure_mode(True)

        with pytest.raises(ProviderCallError):
            await provider.generate("a")


class TestGetProvider:
    """Tests for the provider factory."""

    @pytest.mark.parametrize(
        ("provider_type", "expected"),
        [
            (ProviderType.CHATGPT, OpenAIProvider),
            (ProviderType.GEMINI, GeminiProvider),
            (ProviderType.CLAUDE, AnthropicProvider),
            (ProviderType.PERPLEXITY, PerplexityProvider),
            (ProviderType.MOCK, MockProvider),
        ],
    )
    def test_maps_every_kind(self, provider_type: ProviderType, expected: type) -> None:
        """Every provider kind maps to one class."""
        assert isinstance(get_provider(provider_type), expected)

    def test_config_defaults_filled(self) -> None:
        """Base URL and model default per provider."""
        provider = get_provider(ProviderType.CLAUDE, ProviderConfig(api_key="k"))

        assert provider.config.base_url == "https://api.anthropic.com/v1"
        assert provider.config.model == "claude-3-5-sonnet-20241022"
