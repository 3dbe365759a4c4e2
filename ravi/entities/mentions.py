"""Mention detection with separator-tolerant alias matching."""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

from ravi.entities.resolver import Entity

# Generic English words that need a domain keyword nearby to count as a brand
AMBIGUOUS_NAMES = frozenset({"box", "meta", "apple", "oracle", "data", "cloud", "drive"})

DEFAULT_DOMAIN_KEYWORDS = (
    "cloud",
    "migration",
    "file",
    "sharing",
    "security",
    "saas",
    "platform",
    "software",
    "ai",
    "storage",
)

# A single response never counts for more than this many mentions
MAX_MENTION_COUNT = 3

_SEPARATORS = r"[\s._-]*"
_LEFT_BOUNDARY = r"(?<![A-Za-z0-9])"
_RIGHT_BOUNDARY = r"(?![A-Za-z0-9])"


def _flexible(alias: str) -> str:
    # Whitespace inside an alias matches any run of space/dot/hyphen/underscore
    return _SEPARATORS.join(re.escape(part) for part in alias.split())


@lru_cache(maxsize=4096)
def alias_pattern(alias: str) -> re.Pattern[str]:
    """Case-insensitive pattern for one alias, anchored on non-alphanumerics.

    "cloud fuze" matches "Cloud Fuze", "cloud-fuze", "cloud.fuze" and
    "cloudfuze", but not "mycloudfuze".
    """
    return re.compile(_LEFT_BOUNDARY + _flexible(alias) + _RIGHT_BOUNDARY, re.IGNORECASE)


@lru_cache(maxsize=1024)
def aliases_pattern(aliases: frozenset[str]) -> re.Pattern[str]:
    """One pattern matching any alias, longest alternative first."""
    alternatives = sorted((a for a in aliases if a.strip()), key=lambda a: (-len(a), a))
    if not alternatives:
        # Matches nothing
        return re.compile(r"(?!x)x")
    body = "|".join(_flexible(a) for a in alternatives)
    return re.compile(_LEFT_BOUNDARY + "(?:" + body + ")" + _RIGHT_BOUNDARY, re.IGNORECASE)


def is_mentioned(text: str, aliases: Iterable[str]) -> bool:
    """True iff any alias occurs in the text."""
    if not text:
        return False
    return any(alias_pattern(a).search(text) for a in aliases if a.strip())


@dataclass(frozen=True)
class MentionResult:
    """Outcome of scanning one text for one entity."""

    detected: bool
    count: int = 0
    first_position: int | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "detected": self.detected,
            "count": self.count,
            "first_position": self.first_position,
        }


NOT_DETECTED = MentionResult(detected=False)


class MentionDetector:
    """Detects entity mentions, guarding ambiguous generic names.

    For a name in ``ambiguous_names`` the mention only counts when at least
    one domain keyword also appears in the text as a whole word.
    """

    def __init__(
        self,
        domain_keywords: Iterable[str] = DEFAULT_DOMAIN_KEYWORDS,
        ambiguous_names: Iterable[str] = AMBIGUOUS_NAMES,
    ):
        self.domain_keywords = tuple(k for k in domain_keywords if k)
        self.ambiguous_names = frozenset(n.lower() for n in ambiguous_names)
        self._keyword_re = (
            re.compile(
                r"\b(?:" + "|".join(re.escape(k) for k in self.domain_keywords) + r")\b",
                re.IGNORECASE,
            )
            if self.domain_keywords
            else None
        )

    def is_ambiguous(self, entity: Entity) -> bool:
        return entity.name.strip().lower() in self.ambiguous_names

    def has_domain_context(self, text: str) -> bool:
        return bool(self._keyword_re and self._keyword_re.search(text))

    def detect(self, text: str, entity: Entity) -> MentionResult:
        """Scan ``text`` for ``entity``.

        ``count`` is the number of non-overlapping alias occurrences, clamped
        to [1, 3] when the entity is detected.
        """
        if not text:
            return NOT_DETECTED

        matches = list(aliases_pattern(entity.aliases).finditer(text))
        if not matches:
            return NOT_DETECTED

        if self.is_ambiguous(entity) and not self.has_domain_context(text):
            return NOT_DETECTED

        return MentionResult(
            detected=True,
            count=max(1, min(MAX_MENTION_COUNT, len(matches))),
            first_position=matches[0].start(),
        )

    def is_mentioned(self, text: str, entity: Entity) -> bool:
        return self.detect(text, entity).detected
