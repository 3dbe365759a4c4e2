"""Industry/product detection for requests that arrive without an industry."""

import asyncio
from dataclasses import dataclass

import structlog

from ravi.exceptions import MalformedExtractionError
from ravi.observation.gateway import ProviderGateway
from ravi.observation.models import ProviderType, SearchResult
from ravi.observation.parser import parse_json_object
from ravi.observation.search import SearchClient

logger = structlog.get_logger(__name__)

CONTEXT_QUERY_TEMPLATES = [
    "{name} company profile",
    "{name} what do they do",
    "{name} industry sector",
    "{name} products services",
]

# Gemini first, then any other configured provider
CONTEXT_PROVIDER_PREFERENCE = [
    ProviderType.GEMINI,
    ProviderType.CHATGPT,
    ProviderType.CLAUDE,
    ProviderType.PERPLEXITY,
]


@dataclass(frozen=True)
class IndustryContext:
    """Detected industry and main product; empty strings when unknown."""

    industry: str = ""
    product: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"industry": self.industry, "product": self.product}


def _build_prompt(company_name: str, results: list[SearchResult]) -> str:
    snippets = "\n\n".join(f"{r.name}: {r.snippet}" for r in results)
    return (
        f'Analyze these search results about "{company_name}" and determine:\n'
        "1. The primary industry/sector this company operates in\n"
        "2. The main products/services they offer\n\n"
        f"Search results:\n{snippets}\n\n"
        "Return ONLY a JSON object with this format:\n"
        "{\n"
        '  "industry": "the primary industry",\n'
        '  "product": "the main product or service"\n'
        "}"
    )


def _pick_provider(gateway: ProviderGateway) -> ProviderType | None:
    configured = gateway.configured_providers
    for provider_type in CONTEXT_PROVIDER_PREFERENCE:
        if provider_type in configured:
            return provider_type
    return configured[0] if configured else None


async def detect_industry_and_product(
    company_name: str,
    gateway: ProviderGateway,
    search: SearchClient,
    timeout: float = 8.0,
) -> IndustryContext:
    """Guess a company's industry and main product from search snippets.

    Never raises; any failure (no results, no provider, unparseable reply)
    yields an empty context.
    """
    queries = [t.format(name=company_name) for t in CONTEXT_QUERY_TEMPLATES]
    batches = await asyncio.gather(*(search.search(q) for q in queries))
    results = [r for batch in batches for r in batch]

    if not results:
        logger.info("industry_detection_skipped", company=company_name, reason="no_search_results")
        return IndustryContext()

    provider_type = _pick_provider(gateway)
    if provider_type is None:
        logger.info("industry_detection_skipped", company=company_name, reason="no_provider")
        return IndustryContext()

    reply = await gateway.generate(provider_type, _build_prompt(company_name, results), timeout)
    if not reply.strip():
        return IndustryContext()

    try:
        data = parse_json_object(reply)
    except MalformedExtractionError as e:
        logger.warning("industry_detection_unparseable", company=company_name, error=e.message)
        return IndustryContext()

    context = IndustryContext(
        industry=str(data.get("industry") or "").strip(),
        product=str(data.get("product") or "").strip(),
    )
    logger.info(
        "industry_detected",
        company=company_name,
        provider=provider_type.value,
        industry=context.industry,
        product=context.product,
    )
    return context
