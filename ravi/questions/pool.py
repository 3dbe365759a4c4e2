"""Deterministic probe query pool.

Six industry-level questions plus a bank of thirty purchase-intent questions
that can be localized with a city/region/country and a product. The merged
list is de-duplicated and truncated, which bounds the fan-out size
(providers x queries) of every stage.
"""

import re
from dataclasses import dataclass

from ravi.observation.models import Query

DEFAULT_INDUSTRY = "this category"
DEFAULT_PRODUCT = "[product]"
DEFAULT_COMPETITOR_B = "Amazon"

FAST_QUERY_COUNT = 6
FULL_QUERY_COUNT = 12

INDUSTRY_TEMPLATES = [
    "top companies in {industry}",
    "best tools in {industry}",
    "leading vendors in {industry}",
    "alternatives and competitors in {industry}",
    "who are the leaders in {industry}",
    "recommended solutions in {industry}",
]

# {loc_in} / {loc_for} are " in <geo>" / " for <geo>", or empty without a geo
PURCHASE_INTENT_TEMPLATES = [
    "Best website to buy {product} online{loc_in}",
    "Top {category} ecommerce stores{loc_in}",
    "Trusted online stores for {product}{loc_in}",
    "Affordable {product} retailers online{loc_in}",
    "Where can I buy high-quality {product} with warranty{loc_in}?",
    "Most reliable ecommerce websites for {category}{loc_in}",
    "Which online store has the best reviews for {product}{loc_in}?",
    "Is {competitor_a} a trusted site for {product}{loc_in}?",
    "Best-rated ecommerce platforms for {product}{loc_for}",
    "Where do experts recommend buying {product}{loc_in}?",
    "Cheapest place to buy {product} online{loc_in}",
    "Best deals on {category} ecommerce websites{loc_in}",
    "{product} price comparison: Amazon vs {competitor_a} vs others{loc_in}",
    "Does {competitor_a} offer discounts on {product}{loc_in}?",
    "Best value-for-money online store for {product}{loc_in}",
    "Fastest delivery for {product}{loc_in}",
    "Ecommerce websites with free shipping for {product}{loc_in}",
    "Best return policies for {product} online{loc_in}",
    "Where can I get same-day delivery for {product}{loc_in}?",
    "Which online store has the best customer service for {product}{loc_in}?",
    "Compare {competitor_a} vs {competitor_b} for {product}{loc_in}",
    "Is {competitor_a} better than Amazon for {product}{loc_in}?",
    "Which online store is more reliable: {competitor_a} or {competitor_b} for {product}{loc_in}?",
    "Best alternatives to {competitor_a} for {product}{loc_in}",
    "Which ecommerce site has the most product variety for {product}{loc_in}?",
    "Best local online store for {product}{loc_in}",
    "Where can I buy {product} from local sellers{loc_in}?",
    "{product} ecommerce websites that deliver to {geo_or_placeholder}",
    "Most popular ecommerce site for {product}{loc_in}",
    "Which online store near me sells {product} with delivery{loc_in}?",
]


@dataclass(frozen=True)
class GeoContext:
    """Optional localization for the purchase-intent questions."""

    city: str = ""
    region: str = ""
    country: str = ""
    competitor_a: str = ""
    competitor_b: str = ""

    @property
    def location(self) -> str:
        """Location as city/region/country, skipping empty parts."""
        parts = (self.city, self.region, self.country)
        return "/".join(part.strip() for part in parts if part.strip())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "city": self.city,
            "region": self.region,
            "country": self.country,
            "competitor_a": self.competitor_a,
            "competitor_b": self.competitor_b,
        }


def _dedupe_key(question: str) -> str:
    return re.sub(r"\s+", " ", question).strip().lower()


def build_query_texts(
    industry: str = "",
    geo: GeoContext | None = None,
    company_name: str = "",
    product: str = "",
) -> list[str]:
    """Full merged, de-duplicated question list in stable order."""
    geo = geo or GeoContext()
    industry = industry.strip() or DEFAULT_INDUSTRY
    location = geo.location

    values = {
        "industry": industry,
        "category": industry,
        "product": product.strip() or DEFAULT_PRODUCT,
        "competitor_a": geo.competitor_a.strip() or company_name.strip() or "[competitor name]",
        "competitor_b": geo.competitor_b.strip() or DEFAULT_COMPETITOR_B,
        "loc_in": f" in {location}" if location else "",
        "loc_for": f" for {location}" if location else "",
        "geo_or_placeholder": location or "[city/country]",
    }

    merged = [t.format(**values) for t in INDUSTRY_TEMPLATES]
    merged += [t.format(**values) for t in PURCHASE_INTENT_TEMPLATES]

    seen: set[str] = set()
    unique: list[str] = []
    for question in merged:
        key = _dedupe_key(question)
        if key in seen:
            continue
        seen.add(key)
        unique.append(question)
    return unique


def build_query_pool(
    industry: str = "",
    geo: GeoContext | None = None,
    company_name: str = "",
    product: str = "",
    fast: bool = True,
    limit: int | None = None,
) -> list[Query]:
    """Indexed query pool, truncated to 6 (fast) or 12 (full) questions.

    ``limit`` overrides the mode-based count.
    """
    count = limit if limit is not None else (FAST_QUERY_COUNT if fast else FULL_QUERY_COUNT)
    texts = build_query_texts(industry, geo, company_name, product)[: max(0, count)]
    return [Query(text=text, index=i) for i, text in enumerate(texts)]
