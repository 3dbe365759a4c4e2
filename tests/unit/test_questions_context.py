"""Tests for industry/product detection."""

import pytest

from ravi.observation.gateway import ProviderGateway
from ravi.observation.models import ProviderType, SearchResult
from ravi.observation.providers import MockProvider
from ravi.observation.search import StaticSearchClient
from ravi.questions.context import IndustryContext, detect_industry_and_product

PROFILE = [SearchResult(name="Acme", link="https://acme.com", snippet="Acme makes CRM software")]


def _gateway(**providers: MockProvider) -> ProviderGateway:
    return ProviderGateway(
        {ProviderType(name): p for name, p in providers.items()},
        retry_base_seconds=0.0,
    )


class TestDetectIndustryAndProduct:
    """Tests for detect_industry_and_product."""

    @pytest.mark.asyncio
    async def test_parses_reply(self) -> None:
        """Industry and product come from the model's JSON reply."""
        gemini = MockProvider(responder=lambda p: '{"industry": "SaaS", "product": "CRM"}')
        search = StaticSearchClient({"Acme": PROFILE})

        context = await detect_industry_and_product("Acme", _gateway(gemini=gemini), search)

        assert context == IndustryContext(industry="SaaS", product="CRM")
        assert len(search.queries) == 4
        assert "Acme makes CRM software" in gemini.calls[0]

    @pytest.mark.asyncio
    async def test_prefers_gemini(self) -> None:
        """Gemini is asked when it is configured."""
        gemini = MockProvider(responder=lambda p: '{"industry": "Retail"}')
        chatgpt = MockProvider(responder=lambda p: '{"industry": "Other"}')
        gateway = _gateway(chatgpt=chatgpt, gemini=gemini)

        context = await detect_industry_and_product("Acme", gateway, StaticSearchClient({"Acme": PROFILE}))

        assert context.industry == "Retail"
        assert context.product == ""
        assert chatgpt.calls == []

    @pytest.mark.asyncio
    async def test_falls_back_to_other_provider(self) -> None:
        """Without Gemini another configured provider is used."""
        claude = MockProvider(responder=lambda p: '```json\n{"industry": "Fintech", "product": "cards"}\n```')

        context = await detect_industry_and_product(
            "Acme", _gateway(claude=claude), StaticSearchClient({"Acme": PROFILE})
        )

        assert context.industry == "Fintech"

    @pytest.mark.asyncio
    async def test_no_search_results(self) -> None:
        """No snippets means no model call and an empty context."""
        gemini = MockProvider(responder=lambda p: '{"industry": "SaaS"}')

        context = await detect_industry_and_product("Acme", _gateway(gemini=gemini), StaticSearchClient())

        assert context == IndustryContext()
        assert gemini.calls == []

    @pytest.mark.asyncio
    async def test_no_provider(self) -> None:
        """No configured provider gives an empty context."""
        context = await detect_industry_and_product(
            "Acme", _gateway(), StaticSearchClient({"Acme": PROFILE})
        )

        assert context == IndustryContext()

    @pytest.mark.asyncio
    async def test_unparseable_reply(self) -> None:
        """A reply without JSON gives an empty context instead of raising."""
        gemini = MockProvider(responder=lambda p: "I am not sure.")

        context = await detect_industry_and_product(
            "Acme", _gateway(gemini=gemini), StaticSearchClient({"Acme": PROFILE})
        )

        assert context == IndustryContext()
