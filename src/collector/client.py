"""
Suggestion Source Clients

Async HTTP clients for autocomplete-style suggestion sources:
- GoogleSuggestClient: one query per call (JSON or JSONP response)
- ApifySuggestClient: many queries per call (batch actor run)

Both provide:
- Automatic retry with exponential backoff
- Ranked results truncated to MAX_SUGGESTIONS
- Request/response logging

Callers above the client treat any SuggestionSourceError as an empty
result for that query; the client itself always raises.
"""

import asyncio
import json
import re
import httpx
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 14

_JSONP = re.compile(r"^[\w.$]+\((.*)\)\s*;?\s*$", re.DOTALL)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 1
    initial_delay: float = 1.0
    max_delay: float = 5.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


class SuggestionSourceError(Exception):
    """Raised when the suggestion source cannot produce a result."""
    def __init__(self, message: str, status_code: int = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class SourceUnavailableError(SuggestionSourceError):
    """
    The suggestion source failed persistently; the run cannot continue.

    When raised from a harvesting run, report holds the counts achieved
    before the source went down.
    """
    def __init__(self, message: str, status_code: int = None, response: Any = None, report: Any = None):
        super().__init__(message, status_code=status_code, response=response)
        self.report = report


def parse_suggest_response(body: str) -> List[str]:
    """
    Extract ranked suggestions from a suggest endpoint body.

    Accepts plain JSON or JSONP. Suggestions sit at index 1 and are either
    strings or lists whose first element is the string.

    Raises:
        SuggestionSourceError: On an unparseable body
    """
    text = body.strip()
    match = _JSONP.match(text)
    if match:
        text = match.group(1)

    try:
        data = json.loads(text)
    except ValueError as e:
        raise SuggestionSourceError(f"Malformed suggest response: {e}")

    if not isinstance(data, list) or len(data) < 2 or not isinstance(data[1], list):
        return []

    suggestions = []
    for item in data[1]:
        if isinstance(item, str):
            value = item
        elif isinstance(item, list) and item and isinstance(item[0], str):
            value = item[0]
        else:
            continue
        value = value.strip()
        if value:
            suggestions.append(value)
    return suggestions[:MAX_SUGGESTIONS]


class SuggestionClient:
    """
    Base class for suggestion sources.

    Subclasses implement _fetch_once (and _fetch_many_once when
    supports_batch is True).
    """

    supports_batch = False
    estimated_cost_per_call = 0.0
    name = "base"

    def __init__(
        self,
        base_url: str,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 10.0,
        language: str = "en",
        country: str = "US",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize client.

        Args:
            base_url: Source base URL
            retry_config: Retry configuration (optional)
            timeout: Request timeout in seconds
            language: Locale language code
            country: Locale country code
            transport: Custom httpx transport (tests use httpx.MockTransport)
            sleep: Backoff sleep function
        """
        self.retry_config = retry_config or RetryConfig()
        self.language = language
        self.country = country
        self._sleep = sleep

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "User-Agent": "Mozilla/5.0 (compatible; seed-phrase-engine/1.0)",
                "Accept": "application/json, text/javascript, */*",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    async def fetch(self, query: str) -> List[str]:
        """
        Fetch ranked suggestions for one query.

        Raises:
            SuggestionSourceError: After retries are exhausted
        """
        if self._closed:
            raise SuggestionSourceError("Client is closed")
        return await self._request_with_retry(lambda: self._fetch_once(query), query)

    async def fetch_many(self, queries: Sequence[str]) -> Dict[str, List[str]]:
        """
        Fetch suggestions for several queries in one call.

        Returns:
            query -> ranked suggestions (queries with no rows map to [])

        Raises:
            SuggestionSourceError: After retries are exhausted, or when the
                source does not support batches
        """
        if self._closed:
            raise SuggestionSourceError("Client is closed")
        if not self.supports_batch:
            raise SuggestionSourceError(f"{self.name} source does not accept multi-query batches")
        description = f"batch of {len(queries)}"
        return await self._request_with_retry(lambda: self._fetch_many_once(list(queries)), description)

    async def _fetch_once(self, query: str) -> List[str]:
        raise NotImplementedError

    async def _fetch_many_once(self, queries: List[str]) -> Dict[str, List[str]]:
        raise NotImplementedError

    def _check_status(self, response: httpx.Response, ok: tuple = (200,)) -> None:
        if response.status_code not in ok:
            raise SuggestionSourceError(
                f"{self.name} request failed: {response.status_code}",
                status_code=response.status_code,
                response=response.text[:500] if response.content else None,
            )

    async def _request_with_retry(self, call: Callable[[], Awaitable[Any]], description: str) -> Any:
        """Run a request with automatic retry on failure."""
        last_exception = None
        delay = self.retry_config.initial_delay

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                return await call()

            except SuggestionSourceError as e:
                last_exception = e

                # Don't retry client errors (4xx except 429) or bad bodies
                if e.status_code is None or e.status_code not in self.retry_config.retryable_status_codes:
                    raise

            except httpx.TimeoutException as e:
                last_exception = SuggestionSourceError(f"Request timed out: {e}")

            except httpx.HTTPError as e:
                last_exception = SuggestionSourceError(f"HTTP error: {e}")

            if attempt < self.retry_config.max_retries:
                logger.warning(
                    f"{self.name} call for '{description}' failed "
                    f"(attempt {attempt + 1}/{self.retry_config.max_retries + 1}): {last_exception}. "
                    f"Retrying in {delay}s..."
                )
                await self._sleep(delay)
                delay = min(
                    delay * self.retry_config.exponential_base,
                    self.retry_config.max_delay
                )

        raise last_exception

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True
            logger.debug(f"{self.name} client closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class GoogleSuggestClient(SuggestionClient):
    """
    Single-query client for the public suggest endpoint (YouTube dataset).

    Usage:
        async with GoogleSuggestClient() as client:
            suggestions = await client.fetch("content creation")
    """

    BASE_URL = "https://suggestqueries.google.com"
    name = "google"

    def __init__(self, **kwargs):
        kwargs.setdefault("base_url", self.BASE_URL)
        super().__init__(**kwargs)

    async def _fetch_once(self, query: str) -> List[str]:
        logger.debug(f"GET suggest q='{query}'")
        response = await self._client.get(
            "/complete/search",
            params={
                "client": "youtube",
                "ds": "yt",
                "q": query,
                "hl": self.language,
                "gl": self.country,
            },
        )
        self._check_status(response)
        return parse_suggest_response(response.text)


class ApifySuggestClient(SuggestionClient):
    """
    Multi-query client backed by an Apify autocomplete actor.

    One synchronous actor run answers every query in the batch; rows come
    back as {"seed": query, "suggestion": text} in rank order.
    """

    BASE_URL = "https://api.apify.com/v2"
    DEFAULT_ACTOR = "scraper-mind~youtube-autocomplete-scraper"
    supports_batch = True
    estimated_cost_per_call = 0.001
    name = "apify"

    def __init__(self, token: str, actor_id: str = DEFAULT_ACTOR, **kwargs):
        if not token:
            raise ValueError("Apify token is required")
        kwargs.setdefault("base_url", self.BASE_URL)
        kwargs.setdefault("timeout", 30.0)
        kwargs.setdefault("retry_config", RetryConfig(max_retries=2, initial_delay=1.0, max_delay=5.0))
        super().__init__(**kwargs)
        self.token = token
        self.actor_id = actor_id

    async def _fetch_once(self, query: str) -> List[str]:
        results = await self._fetch_many_once([query])
        return results.get(query, [])

    async def _fetch_many_once(self, queries: List[str]) -> Dict[str, List[str]]:
        logger.debug(f"POST actor {self.actor_id} with {len(queries)} queries")
        response = await self._client.post(
            f"/acts/{self.actor_id}/run-sync-get-dataset-items",
            params={"token": self.token},
            json={
                "queries": queries,
                "language": self.language,
                "country": self.country,
            },
        )
        self._check_status(response, ok=(200, 201))

        try:
            rows = response.json()
        except ValueError as e:
            raise SuggestionSourceError(f"Malformed actor response: {e}")
        if not isinstance(rows, list):
            raise SuggestionSourceError("Actor response is not a list", response=rows)

        return group_actor_rows(queries, rows)


def group_actor_rows(queries: Sequence[str], rows: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Group actor rows back to their queries, keeping rank order and dropping repeats."""
    grouped: Dict[str, List[str]] = {q: [] for q in queries}
    lookup = {q.strip().lower(): q for q in queries}

    for row in rows:
        if not isinstance(row, dict):
            continue
        seed = str(row.get("seed") or row.get("query") or "").strip().lower()
        suggestion = str(row.get("suggestion") or "").strip()
        query = lookup.get(seed)
        if query is None or not suggestion:
            continue
        bucket = grouped[query]
        if suggestion not in bucket and len(bucket) < MAX_SUGGESTIONS:
            bucket.append(suggestion)

    return grouped


def create_client(settings=None, transport: Optional[httpx.AsyncBaseTransport] = None) -> SuggestionClient:
    """
    Create the configured suggestion client.

    Falls back to the single-query source when Apify is selected but no
    token is configured.
    """
    if settings is None:
        from src.utils.config import get_settings
        settings = get_settings()

    source = settings.SUGGESTION_SOURCE.lower()
    if source == "apify":
        if settings.APIFY_TOKEN:
            return ApifySuggestClient(
                token=settings.APIFY_TOKEN,
                actor_id=settings.APIFY_ACTOR_ID,
                timeout=float(settings.APIFY_TIMEOUT),
                language=settings.SUGGEST_LANGUAGE,
                country=settings.SUGGEST_COUNTRY,
                transport=transport,
            )
        logger.warning("SUGGESTION_SOURCE=apify but APIFY_TOKEN is not set, using google source")
    elif source != "google":
        raise ValueError(f"Unknown suggestion source: {settings.SUGGESTION_SOURCE}")

    return GoogleSuggestClient(
        timeout=float(settings.API_TIMEOUT),
        language=settings.SUGGEST_LANGUAGE,
        country=settings.SUGGEST_COUNTRY,
        transport=transport,
    )


# ============================================================================
# TESTING
# ============================================================================

async def test_client(query: str = "cold brew"):
    """Fetch suggestions for one query from the configured source."""
    from dotenv import load_dotenv
    from src.utils.config import Settings

    load_dotenv()

    async with create_client(Settings()) as client:
        suggestions = await client.fetch(query)

    print(f"Source: {client.name}")
    print(f"Suggestions for '{query}': {len(suggestions)}")
    for rank, suggestion in enumerate(suggestions, start=1):
        print(f"  {rank:2}. {suggestion}")


if __name__ == "__main__":
    import sys
    asyncio.run(test_client(" ".join(sys.argv[1:]) or "cold brew"))
