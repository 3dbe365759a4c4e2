"""Entity resolution: canonical dedup keys and alias sets for brand names."""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlparse

import structlog

logger = structlog.get_logger(__name__)

CORPORATE_SUFFIX_RE = re.compile(
    r"\b(?:corp(?:oration)?|inc|ltd|llc|co|technologies|technology|systems|solutions)\b\.?",
    re.IGNORECASE,
)

# Stripped from the end of a key one at a time, in list order
TRAILING_NOISE_TOKENS = [
    "com",
    "in",
    "co",
    "io",
    "ai",
    "official",
    "store",
    "shop",
    "app",
    "inc",
    "ltd",
    "limited",
    "mart",
    "online",
    "healthservices",
    "healthservice",
    "healthcare",
    # Corporate suffixes glued onto the name ("acmecorp")
    "corporation",
    "corp",
    "llc",
    "technologies",
    "technology",
    "systems",
    "solutions",
]

# Names containing these are page titles, not brands
NOISE_NAME_MARKERS = ("wikipedia", "linkedin", "news", "article")

_WRAPPERS_RE = re.compile(r"^[\"'\[\(]+|[\"'\]\)]+$")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


@dataclass(frozen=True)
class Entity:
    """A company or brand being scored. Immutable for the whole run."""

    name: str
    canonical_key: str
    aliases: frozenset[str]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "canonical_key": self.canonical_key,
            "aliases": sorted(self.aliases),
        }


def _strip_corporate_suffixes(value: str) -> str:
    stripped = CORPORATE_SUFFIX_RE.sub(" ", value)
    return re.sub(r"\s+", " ", stripped).strip(" ,.-")


def canonical_key(name: str) -> str:
    """Dedup key for an entity name.

    "Acme Inc.", "acme.com", "https://www.acme.com/about" and "AcmeCorp" all
    reduce to "acme".
    """
    if not name:
        return ""

    s = _WRAPPERS_RE.sub("", str(name).strip().lower()).strip()

    if s.startswith(("http://", "https://")):
        s = urlparse(s).hostname or s

    s = s.removeprefix("www.").split("/")[0]

    # Domain-looking: keep the brand label before the first dot
    if "." in s:
        s = s.split(".")[0]

    s = _strip_corporate_suffixes(s) or s
    s = re.sub(r"[^a-z0-9]", "", s)

    changed = True
    while changed:
        changed = False
        for token in TRAILING_NOISE_TOKENS:
            # Keep some brand core
            if s.endswith(token) and len(s) > len(token) + 2:
                s = s[: -len(token)]
                changed = True
                break

    return s


def build_aliases(name: str) -> frozenset[str]:
    """Textual variants under which an entity may appear in free text."""
    raw = str(name or "").strip()
    if not raw:
        return frozenset()

    lower = raw.lower()
    no_space = re.sub(r"\s+", "", lower)
    hyphen = re.sub(r"\s+", "-", lower)

    stripped = _strip_corporate_suffixes(lower)
    aliases = {
        raw,
        lower,
        no_space,
        hyphen,
        stripped,
        stripped.replace(" ", ""),
        stripped.replace(" ", "-"),
        f"{no_space}.com",
        f"{no_space}.ai",
    }

    # "CloudFuze" -> "cloud fuze", so separators between the humps still match
    camel_split = _CAMEL_BOUNDARY_RE.sub(" ", raw).lower()
    if camel_split != lower:
        aliases.update({camel_split, re.sub(r"\s+", "-", camel_split)})

    words = lower.split()
    if len(words) == 2:
        swapped = f"{words[1]} {words[0]}"
        aliases.update({swapped, swapped.replace(" ", ""), swapped.replace(" ", "-")})

    return frozenset(a for a in aliases if a)


def resolve_entity(name: str) -> Entity:
    """Build the run-scoped Entity record for a raw name."""
    raw = str(name or "").strip()
    return Entity(name=raw, canonical_key=canonical_key(raw), aliases=build_aliases(raw))


def same_entity(a: str, b: str) -> bool:
    """Two names are the same entity iff their canonical keys match."""
    key_a = canonical_key(a)
    return bool(key_a) and key_a == canonical_key(b)


def prettify(key: str) -> str:
    """Readable display name from a canonical key."""
    if not key:
        return ""
    return re.sub(r"\b([a-z])", lambda m: m.group(1).upper(), key)


def _looks_like_domain(name: str) -> bool:
    return "." in name or "/" in name


def dedupe_entity_names(names: Iterable[str]) -> list[str]:
    """Clean a raw name list and drop duplicates by canonical key.

    Noise names (page titles such as "... - Wikipedia") are removed and the
    first-seen spelling wins. Domain-looking names are replaced by a
    prettified form of their key.
    """
    seen: set[str] = set()
    unique: list[str] = []

    for name in names:
        if not isinstance(name, str):
            continue
        name = name.strip()
        if not name:
            continue
        lowered = name.lower()
        if any(marker in lowered for marker in NOISE_NAME_MARKERS):
            logger.debug("entity_name_dropped", name=name, reason="noise")
            continue

        key = canonical_key(name)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(prettify(key) if _looks_like_domain(name) else name)

    return unique
