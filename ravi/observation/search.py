"""Search collaborator: web search results used for snippet-based metrics."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable

import httpx
import structlog

from ravi.exceptions import SearchUnavailableError
from ravi.observation.models import SearchResult

logger = structlog.get_logger(__name__)

GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"


class SearchClient(ABC):
    """Abstract search client. ``search`` never raises; it degrades to []."""

    @abstractmethod
    async def search(self, query: str, num: int = 10) -> list[SearchResult]:
        """Return up to ``num`` results for a query."""
        ...


class GoogleSearchClient(SearchClient):
    """Google Custom Search JSON API client.

    HTTP 429 is retried with exponential backoff (``base * 2^(attempt-1)``);
    any other failure is retried after a flat ``base`` delay. When attempts
    run out, or credentials are missing, the search yields no results.
    """

    def __init__(
        self,
        api_key: str | None,
        cse_id: str | None,
        timeout_seconds: float = 9.0,
        max_attempts: int = 3,
        retry_base_seconds: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.cse_id = cse_id
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_base_seconds = retry_base_seconds
        self.transport = transport

    async def search(self, query: str, num: int = 10) -> list[SearchResult]:
        """Search, returning [] if the service is unavailable."""
        try:
            return await self._search_with_retry(query, num)
        except SearchUnavailableError as e:
            logger.warning("search_unavailable", query=query, error=e.message)
            return []

    async def _search_with_retry(self, query: str, num: int) -> list[SearchResult]:
        if not (self.api_key and self.cse_id):
            raise SearchUnavailableError("Search credentials are not configured")

        params = {
            "key": self.api_key,
            "cx": self.cse_id,
            "q": query,
            "num": str(max(1, min(10, num))),
        }
        last_error = ""

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self.transport,
        ) as client:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    response = await client.get(GOOGLE_CSE_URL, params=params)
                except httpx.HTTPError as e:
                    last_error = f"transport error: {e}"
                    delay = self.retry_base_seconds
                else:
                    if response.status_code == 200:
                        try:
                            return self._parse_items(response.json())
                        except ValueError:
                            raise SearchUnavailableError("Search returned invalid JSON") from None
                    last_error = f"HTTP {response.status_code}"
                    if response.status_code == 429:
                        delay = self.retry_base_seconds * 2 ** (attempt - 1)
                    else:
                        delay = self.retry_base_seconds

                if attempt < self.max_attempts:
                    logger.info(
                        "search_retrying",
                        query=query,
                        attempt=attempt,
                        error=last_error,
                        retry_in_seconds=delay,
                    )
                    await asyncio.sleep(delay)

        raise SearchUnavailableError(
            f"Search failed after {self.max_attempts} attempts: {last_error}"
        )

    @staticmethod
    def _parse_items(data: object) -> list[SearchResult]:
        if not isinstance(data, dict):
            raise SearchUnavailableError("Search returned an unexpected payload")
        items = data.get("items") or []
        if not isinstance(items, list):
            raise SearchUnavailableError("Search returned an unexpected payload")
        # Entries that are not objects are skipped
        return [
            SearchResult(
                name=str(item.get("title") or ""),
                link=str(item.get("link") or ""),
                snippet=str(item.get("snippet") or ""),
            )
            for item in items
            if isinstance(item, dict)
        ]


class StaticSearchClient(SearchClient):
    """Scripted search client for testing.

    Results are looked up by exact query, then by the first registered
    fragment contained in the query.
    """

    def __init__(self, results: dict[str, list[SearchResult]] | None = None):
        self.results: dict[str, list[SearchResult]] = dict(results or {})
        self.queries: list[str] = []

    def set_results(self, query_fragment: str, results: list[SearchResult]) -> None:
        self.results[query_fragment] = results

    async def search(self, query: str, num: int = 10) -> list[SearchResult]:
        """Return the scripted results for a query."""
        self.queries.append(query)
        if query in self.results:
            return self.results[query][:num]
        for fragment, results in self.results.items():
            if fragment in query:
                return results[:num]
        return []


def dedupe_by_link(results: Iterable[SearchResult], limit: int | None = None) -> list[SearchResult]:
    """Drop results whose link was already seen, keeping first-seen order."""
    seen: set[str] = set()
    unique: list[SearchResult] = []
    for result in results:
        key = result.link or result.name
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
        if limit is not None and len(unique) >= limit:
            break
    return unique
