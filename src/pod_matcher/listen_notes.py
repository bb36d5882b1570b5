import logging
import os
from typing import Any

import httpx
from pydantic import ValidationError

from .capabilities import PodcastSearch
from .config import LISTEN_NOTES_BASE_URL, LISTEN_NOTES_RATE_LIMIT, SEARCH_TIMEOUT
from .errors import SearchAuthError, SearchError, SearchRateLimitError, SearchUnavailableError
from .models import PodcastRecord, SearchFilters, SearchResults
from .rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)


class ListenNotesClient(PodcastSearch):
    """Async client for the Listen Notes podcast search API."""

    BASE_URL = LISTEN_NOTES_BASE_URL

    def __init__(
        self,
        api_key: str | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        timeout: float = SEARCH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or os.getenv("LISTEN_NOTES_API_KEY", "")
        if not self.api_key:
            raise ValueError("LISTEN_NOTES_API_KEY must be set")
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(*LISTEN_NOTES_RATE_LIMIT)
        self.timeout = timeout
        self._transport = transport

    def _get_headers(self) -> dict[str, str]:
        return {
            "User-Agent": "pod-matcher/0.1.0",
            "X-ListenAPI-Key": self.api_key,
        }

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict:
        """Make a rate-limited GET request, mapping failures to SearchError kinds."""
        await self.rate_limiter.wait()
        url = f"{self.BASE_URL}/{endpoint}"

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    url, headers=self._get_headers(), params=params or {}, timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                raise SearchRateLimitError("Rate limit exceeded. Please try again later.", status) from e
            if status in (401, 403):
                raise SearchAuthError("Invalid API key. Please check your configuration.", status) from e
            if status >= 500:
                raise SearchUnavailableError("Listen Notes service is currently unavailable.", status) from e
            raise SearchError(f"Listen Notes API error ({status})", status) from e
        except httpx.TimeoutException as e:
            raise SearchUnavailableError("Request timed out. Please try again.") from e
        except httpx.RequestError as e:
            raise SearchUnavailableError(f"Listen Notes request failed: {e}") from e
        except ValueError as e:
            raise SearchUnavailableError("Listen Notes returned a malformed response") from e

    def _parse_podcast(self, item: dict) -> PodcastRecord:
        """Parse a raw API podcast into a PodcastRecord."""
        genres = item.get("genre_ids") or []
        categories = [c.get("name", "") for c in item.get("categories") or [] if isinstance(c, dict)]
        return PodcastRecord(
            id=str(item.get("id") or ""),
            title=item.get("title_original") or item.get("title") or "",
            description=item.get("description_original") or item.get("description") or "",
            publisher=item.get("publisher_original") or item.get("publisher") or "",
            categories=categories or [str(g) for g in genres],
            total_episodes=item.get("total_episodes") or 0,
            average_duration_seconds=item.get("audio_length_sec") or item.get("average_duration"),
            listen_score=_as_float(item.get("listen_score")),
            listener_count=item.get("listener_count"),
            rating=_as_float(item.get("rating")),
            publish_frequency=item.get("publish_frequency"),
            earliest_pub_date_ms=item.get("earliest_pub_date_ms"),
            latest_pub_date_ms=item.get("latest_pub_date_ms"),
            language=item.get("language") or "",
            image=item.get("image") or item.get("thumbnail"),
            website=item.get("website"),
        )

    async def search(self, query: str, filters: SearchFilters | None = None) -> SearchResults:
        """Search podcasts by term, restricted to titles and descriptions."""
        filters = filters or SearchFilters()
        params: dict[str, Any] = {
            "q": query,
            "type": "podcast",
            "language": filters.language,
            "offset": filters.offset,
            "page_size": filters.limit,
            "safe_mode": filters.safe_mode,
            "only_in": "title,description",
        }
        if filters.len_min is not None:
            params["len_min"] = filters.len_min
        if filters.len_max is not None:
            params["len_max"] = filters.len_max
        if filters.genre_ids:
            params["genre_ids"] = ",".join(str(g) for g in filters.genre_ids)

        data = await self._get("search", params)
        try:
            results = [self._parse_podcast(item) for item in data.get("results") or []]
            results = [r for r in results if r.id]
            search_results = SearchResults(
                results=results,
                total=data.get("total") or len(results),
                count=data.get("count") or len(results),
                next_offset=data.get("next_offset") or filters.offset + len(results),
            )
        except (AttributeError, TypeError, ValidationError) as e:
            raise SearchUnavailableError(f"Listen Notes returned unusable podcast data: {e}") from e

        logger.info(f"Listen Notes search '{query}' returned {len(results)} podcasts")
        return search_results

    async def get_podcast(self, podcast_id: str) -> PodcastRecord:
        """Get full details for a specific podcast."""
        data = await self._get(f"podcasts/{podcast_id}")
        return self._parse_podcast(data)


def _as_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
