"""Lexical signals extracted from provider responses and search snippets.

All heuristics here are deliberately cheap: marker-word counts for sentiment,
host patterns for source credibility, and position/list cues for prominence.
"""

import json
import math
import re
from typing import Any
from urllib.parse import urlparse

from ravi.exceptions import MalformedExtractionError

# Positive sentiment indicators
POSITIVE_INDICATORS = [
    "best",
    "leading",
    "top",
    "innovative",
    "recommended",
    "trusted",
    "popular",
    "positive",
    "strong",
    "leader",
    "growing",
]

# Negative sentiment indicators
NEGATIVE_INDICATORS = [
    "problem",
    "issue",
    "concern",
    "negative",
    "bad",
    "poor",
    r"not\s+recommended",
    "decline",
    "weak",
]

_POSITIVE_RE = re.compile(r"\b(?:" + "|".join(POSITIVE_INDICATORS) + r")\b", re.IGNORECASE)
_NEGATIVE_RE = re.compile(r"\b(?:" + "|".join(NEGATIVE_INDICATORS) + r")\b", re.IGNORECASE)

# Host patterns -> credibility weight. First match wins.
SOURCE_WEIGHT_PATTERNS: list[tuple[re.Pattern[str], float]] = [
    (
        re.compile(
            r"forbes|bloomberg|wsj|nytimes|wired|techcrunch|theverge|reuters|"
            r"guardian|bbc|cnbc|financialtimes|ft\.com|news"
        ),
        1.5,
    ),
    (re.compile(r"medium|substack|blog|dev\.to|hashnode"), 1.0),
    (re.compile(r"reddit|twitter|x\.com|quora|stackoverflow|hackernews|ycombinator"), 0.5),
]
DEFAULT_SOURCE_WEIGHT = 1.0

# Sentiment score lower bounds -> citation weight
SENTIMENT_WEIGHT_BINS: list[tuple[float, float]] = [
    (0.6, 1.0),
    (0.2, 0.8),
    (-0.2, 0.6),
    (-0.6, 0.4),
]
MIN_SENTIMENT_WEIGHT = 0.2

RECOMMENDATION_RE = re.compile(r"recommend|we\s+recommend|top\s+pick|best\s+choice", re.IGNORECASE)
NUMBERED_ITEM_RE = re.compile(r"^\s*(\d+)[\)\.]?\s+(.+)$")

EARLY_POSITION_CHARS = 200
EARLY_POSITION_BOOST = 0.15
RECOMMENDATION_BOOST = 0.10
MAX_LIST_RANK_BOOST = 0.30
LIST_SCAN_LINES = 20
PROMINENCE_FACTOR_RANGE = (0.5, 1.5)


def quick_sentiment_score(text: str) -> float:
    """Score text in [-1, 1] from positive/negative marker counts."""
    if not text:
        return 0.0
    positive = len(_POSITIVE_RE.findall(text))
    negative = len(_NEGATIVE_RE.findall(text))
    raw = (positive - negative) / max(1, positive + negative)
    return max(-1.0, min(1.0, raw))


def source_weight(url: str) -> float:
    """Credibility weight for a search result's host."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        host = ""
    if not host:
        return DEFAULT_SOURCE_WEIGHT

    for pattern, weight in SOURCE_WEIGHT_PATTERNS:
        if pattern.search(host):
            return weight
    return DEFAULT_SOURCE_WEIGHT


def sentiment_weight(score: float) -> float:
    """Bin a sentiment score into one of five citation weights."""
    for lower_bound, weight in SENTIMENT_WEIGHT_BINS:
        if score >= lower_bound:
            return weight
    return MIN_SENTIMENT_WEIGHT


def list_rank_boost(text: str, mentions_line: "re.Pattern[str]") -> float:
    """Boost for appearing as a numbered list item near the top of the text.

    Each numbered line that mentions the entity scores the rank discount
    ``1/log2(1+rank) - 1``; the best one is clamped to [0, 0.30]. Blank lines
    do not count toward the scan window. A leading "0." ranks as 99.
    """
    lines = [line for line in text.splitlines() if line]
    best = 0.0
    for line in lines[:LIST_SCAN_LINES]:
        match = NUMBERED_ITEM_RE.match(line)
        if not match or not mentions_line.search(line):
            continue
        rank = int(match.group(1)) or 99
        discount = 1 / math.log2(1 + max(1, rank))
        best = max(best, discount - 1)
    return min(MAX_LIST_RANK_BOOST, max(0.0, best))


def prominence_factor(
    text: str,
    first_position: int | None,
    mentions_line: "re.Pattern[str]",
) -> float:
    """Prominence of an entity in a response, in [0.5, 1.5]."""
    factor = 1.0
    if first_position is not None and 0 <= first_position < EARLY_POSITION_CHARS:
        factor += EARLY_POSITION_BOOST
    if RECOMMENDATION_RE.search(text):
        factor += RECOMMENDATION_BOOST
    factor += list_rank_boost(text, mentions_line)

    low, high = PROMINENCE_FACTOR_RANGE
    return max(low, min(high, factor))


def _strip_code_fences(content: str) -> str:
    content = content.strip()
    if "```" in content:
        content = re.sub(r"```(?:json)?", "", content, flags=re.IGNORECASE)
    return content.strip()


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse a JSON object out of a free-text model reply.

    Code fences are removed first; if the remainder still isn't valid JSON,
    the first ``{...}`` block is salvaged.

    Raises:
        MalformedExtractionError: if no JSON object can be recovered
    """
    cleaned = _strip_code_fences(content or "")
    candidates = [cleaned]
    block = re.search(r"\{.*\}", cleaned, re.DOTALL)
    if block and block.group(0) != cleaned:
        candidates.append(block.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise MalformedExtractionError("No JSON object found in reply", raw=content or "")
