"""Text-generation providers - one small class per supported service."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from ravi.exceptions import ProviderCallError, ProviderRateLimitedError
from ravi.observation.models import ProviderType

# HTTP statuses treated as "overloaded, try again later"
RETRYABLE_STATUS_CODES = frozenset({429, 503})


@dataclass
class ProviderConfig:
    """Configuration for a text-generation provider."""

    api_key: str = ""
    base_url: str = ""
    model: str = ""
    timeout_seconds: float = 30.0
    max_tokens: int = 400

    # Injected in tests (httpx.MockTransport)
    transport: httpx.AsyncBaseTransport | None = None


class TextProvider(ABC):
    """Abstract base class for text-generation providers.

    ``generate`` returns the provider's text or raises one of the
    ``ProviderError`` subclasses; turning failures into the fallback value is
    the gateway's job, not the provider's.
    """

    provider_type: ProviderType
    default_base_url: str = ""
    default_model: str = ""

    def __init__(self, config: ProviderConfig):
        self.config = config
        if not config.base_url:
            config.base_url = self.default_base_url
        if not config.model:
            config.model = self.default_model

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate text for a single prompt."""
        ...

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            transport=self.config.transport,
        )

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST a JSON payload and return the decoded body.

        Raises:
            ProviderRateLimitedError: on HTTP 429/503
            ProviderCallError: on any other non-200 status or transport error
        """
        try:
            async with self._client() as client:
                response = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.HTTPError as e:
            raise ProviderCallError(self.provider_type.value, f"transport error: {e}") from e

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise ProviderRateLimitedError(self.provider_type.value, response.status_code)
        if response.status_code != 200:
            raise ProviderCallError(
                self.provider_type.value,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise ProviderCallError(self.provider_type.value, "response is not JSON") from e
        return data

    def _malformed(self, data: Any) -> ProviderCallError:
        return ProviderCallError(
            self.provider_type.value,
            f"unexpected response shape: {str(data)[:200]}",
        )


class OpenAIProvider(TextProvider):
    """OpenAI chat completions (ChatGPT)."""

    provider_type = ProviderType.CHATGPT
    default_base_url = "https://api.openai.com/v1"
    default_model = "gpt-3.5-turbo"

    async def generate(self, prompt: str) -> str:
        """Run a chat completion."""
        data = await self._post_json(
            f"{self.config.base_url}/chat/completions",
            payload={
                "model": self.config.model,
                "messages": [
                    {"role": "system", "content": "You are a helpful market analyst."},
                    {"role": "user", "content": prompt},
                ],
                "max_tokens": self.config.max_tokens,
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._malformed(data) from e
        return content or ""


class GeminiProvider(TextProvider):
    """Google Gemini generateContent REST endpoint."""

    provider_type = ProviderType.GEMINI
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "gemini-1.5-flash"

    async def generate(self, prompt: str) -> str:
        """Run a generateContent call."""
        data = await self._post_json(
            f"{self.config.base_url}/models/{self.config.model}:generateContent",
            payload={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {"maxOutputTokens": self.config.max_tokens},
            },
            params={"key": self.config.api_key},
        )
        candidates = data.get("candidates") or []
        if not candidates:
            # Blocked or empty generations come back without candidates
            return ""
        try:
            parts = candidates[0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._malformed(data) from e
        return "".join(part.get("text", "") for part in parts)


class AnthropicProvider(TextProvider):
    """Anthropic messages API (Claude)."""

    provider_type = ProviderType.CLAUDE
    default_base_url = "https://api.anthropic.com/v1"
    default_model = "claude-3-5-sonnet-20241022"

    async def generate(self, prompt: str) -> str:
        """Run a messages call."""
        data = await self._post_json(
            f"{self.config.base_url}/messages",
            payload={
                "model": self.config.model,
                "max_tokens": self.config.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": self.config.api_key,
                "anthropic-version": "2023-06-01",
            },
        )
        try:
            blocks = data["content"]
        except (KeyError, TypeError) as e:
            raise self._malformed(data) from e
        return "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")


class PerplexityProvider(TextProvider):
    """Perplexity chat completions (sonar models)."""

    provider_type = ProviderType.PERPLEXITY
    default_base_url = "https://api.perplexity.ai"
    default_model = "sonar"

    async def generate(self, prompt: str) -> str:
        """Run a chat completion."""
        data = await self._post_json(
            f"{self.config.base_url}/chat/completions",
            payload={
                "model": self.config.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": self.config.max_tokens,
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._malformed(data) from e
        return content or ""


# Responder signature for the mock: prompt -> text
Responder = Callable[[str], str]


class MockProvider(TextProvider):
    """Scripted provider for testing."""

    provider_type = ProviderType.MOCK

    def __init__(
        self,
        config: ProviderConfig | None = None,
        responder: Responder | None = None,
        delay_seconds: float = 0.0,
    ):
        super().__init__(config or ProviderConfig(api_key="mock"))
        self.responder = responder
        self.delay_seconds = delay_seconds
        self.responses: dict[str, str] = {}
        self.rate_limit_count: int = 0
        self.should_fail: bool = False
        self.calls: list[str] = []

    def set_response(self, prompt_fragment: str, content: str) -> None:
        """Return ``content`` for any prompt containing ``prompt_fragment``."""
        self.responses[prompt_fragment] = content

    def set_rate_limited(self, count: int) -> None:
        """Answer the next ``count`` calls with HTTP 429."""
        self.rate_limit_count = count

    def set_failure_mode(self, should_fail: bool) -> None:
        """Make every call raise a non-retryable error."""
        self.should_fail = should_fail

    async def generate(self, prompt: str) -> str:
        """Return the scripted response for a prompt."""
        self.calls.append(prompt)

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if self.rate_limit_count > 0:
            self.rate_limit_count -= 1
            raise ProviderRateLimitedError(self.provider_type.value, 429)

        if self.should_fail:
            raise ProviderCallError(self.provider_type.value, "Simulated failure", status_code=500)

        if self.responder is not None:
            return self.responder(prompt)

        for fragment, content in self.responses.items():
            if fragment in prompt:
                return content
        return ""


def get_provider(
    provider_type: ProviderType,
    config: ProviderConfig | None = None,
) -> TextProvider:
    """Factory function to get a text-generation provider."""
    if config is None:
        config = ProviderConfig()

    providers: dict[ProviderType, type[TextProvider]] = {
        ProviderType.CHATGPT: OpenAIProvider,
        ProviderType.GEMINI: GeminiProvider,
        ProviderType.CLAUDE: AnthropicProvider,
        ProviderType.PERPLEXITY: PerplexityProvider,
        ProviderType.MOCK: MockProvider,
    }

    provider_class = providers.get(provider_type)
    if provider_class is None:
        raise ValueError(f"Unknown provider type: {provider_type}")

    return provider_class(config)
