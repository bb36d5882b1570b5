"""Local-first podcast matching with a single live-search fallback."""

import hashlib
import json
import logging
import sqlite3
import time

from .capabilities import PodcastSearch
from .config import (
    DEFAULT_SEARCH_LIMIT,
    MATCH_CACHE_TTL,
    SEARCH_LENGTH_BOUNDS,
    TieredThresholds,
)
from .db import Database
from .errors import SearchAuthError, SearchError
from .local_matcher import LocalMatcher, apply_filters
from .models import (
    MatchFilters,
    MatchingStats,
    PodcastMatch,
    PreferenceAdjustment,
    ProcessedResults,
    ProcessingOptions,
    SearchFilters,
    UserPreferences,
)
from .results import process_results

logger = logging.getLogger(__name__)


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def merge_matches(
    local: list[PodcastMatch],
    remote: list[PodcastMatch],
    filters: MatchFilters | None = None,
) -> list[PodcastMatch]:
    """
    Combine both tiers into one list.

    Local matches come first, so when a podcast appears in both tiers the
    local match is kept. Ordering is a stable sort on overall score.
    """
    merged: list[PodcastMatch] = []
    seen_ids: set[str] = set()
    for match in [*local, *remote]:
        if match.podcast_id not in seen_ids:
            seen_ids.add(match.podcast_id)
            merged.append(match)

    merged.sort(key=lambda m: m.overall_score, reverse=True)
    return apply_filters(merged, filters)


class TieredMatcher:
    def __init__(
        self,
        local_matcher: LocalMatcher,
        search_client: PodcastSearch,
        db: Database,
        use_cache: bool = True,
        cache_ttl_seconds: int = MATCH_CACHE_TTL,
    ):
        self.local_matcher = local_matcher
        self.search_client = search_client
        self.db = db
        self.use_cache = use_cache
        self.cache_ttl_minutes = max(1, cache_ttl_seconds // 60)

    def _is_match_quality_sufficient(self, matches: list[PodcastMatch]) -> bool:
        """True when the local tier alone is good enough to answer."""
        if len(matches) < TieredThresholds.MIN_MATCHES:
            return False
        if not any(m.overall_score >= TieredThresholds.MIN_SCORE for m in matches):
            return False
        if _average([m.confidence for m in matches]) < TieredThresholds.MIN_CONFIDENCE:
            return False
        topics = {topic for m in matches for topic in m.suggested_topics}
        return len(topics) >= TieredThresholds.MIN_TOPIC_DIVERSITY

    def _load_adjustment(self, preferences: UserPreferences) -> PreferenceAdjustment | None:
        if not preferences.user_id:
            return None
        return self.db.get_preference_adjustment(preferences.user_id)

    def _cache_key(
        self,
        preferences: UserPreferences,
        filters: MatchFilters | None,
        adjustment: PreferenceAdjustment | None,
    ) -> str:
        """Create a hash of the inputs to use as a cache key."""
        filters_json = filters.model_dump_json() if filters else ""
        adjustment_json = (
            adjustment.model_dump_json(exclude={"last_adjusted"}) if adjustment else ""
        )
        content = f"{preferences.model_dump_json()}|{filters_json}|{adjustment_json}"
        return hashlib.sha256(content.encode()).hexdigest()

    def build_search(
        self, preferences: UserPreferences, filters: MatchFilters | None = None
    ) -> tuple[str, SearchFilters]:
        """Query string and search filters for the remote tier."""
        len_min, len_max = SEARCH_LENGTH_BOUNDS[preferences.preferred_length]
        limit = filters.max_results if filters and filters.max_results else DEFAULT_SEARCH_LIMIT
        query = " ".join(preferences.topics)
        return query, SearchFilters(len_min=len_min, len_max=len_max, limit=limit)

    async def _find_remote_matches(
        self,
        preferences: UserPreferences,
        filters: MatchFilters | None,
        adjustment: PreferenceAdjustment | None,
    ) -> list[PodcastMatch]:
        query, search_filters = self.build_search(preferences, filters)
        results = await self.search_client.search(query, search_filters)

        # New podcasts join the local catalogue for future requests
        if results.results:
            try:
                self.db.upsert_podcasts(results.results)
            except sqlite3.Error as e:
                logger.warning(f"Could not cache {len(results.results)} searched podcasts: {e}")

        return await self.local_matcher.score_podcasts(
            preferences, results.results, adjustment, "remote"
        )

    async def find_matches_with_stats(
        self,
        preferences: UserPreferences,
        filters: MatchFilters | None = None,
    ) -> tuple[list[PodcastMatch], MatchingStats]:
        """
        Find matches for an author, consulting live search only when needed.

        Returns:
            The matches, best first, and statistics for this request

        Remote-tier failures never propagate: the local matches are returned
        unchanged and the failure is recorded on the stats. The quality gate
        sees every local candidate; max_results only trims the final list.
        """
        start = time.perf_counter()
        adjustment = self._load_adjustment(preferences)

        # Check cache first
        cache_key = self._cache_key(preferences, filters, adjustment)
        if self.use_cache:
            cached = self.db.get_cached_matches(cache_key, self.cache_ttl_minutes)
            if cached:
                data = json.loads(cached)
                matches = [PodcastMatch.model_validate(m) for m in data["matches"]]
                stats = MatchingStats.model_validate(data["stats"])
                stats.cached = True
                stats.processing_time_ms = (time.perf_counter() - start) * 1000
                return matches, stats

        # Step 1: Local tier
        viable = await self.local_matcher.find_viable_matches(preferences, adjustment)
        untruncated = filters.model_copy(update={"max_results": None}) if filters else None
        candidates = apply_filters(viable, untruncated)
        local = apply_filters(candidates, filters)
        stats = MatchingStats(
            total_local_matches=len(candidates),
            average_local_score=_average([m.overall_score for m in candidates]),
        )

        if self._is_match_quality_sufficient(candidates):
            logger.info(f"Local tier sufficient with {len(local)} matches, skipping search")
            matches = local
        else:
            # Step 2: Remote tier
            stats.remote_called = True
            try:
                remote = await self._find_remote_matches(preferences, filters, adjustment)
            except SearchAuthError as e:
                logger.error(f"Podcast search rejected our credentials: {e}", exc_info=True)
                stats.error = str(e)
                matches = local
            except SearchError as e:
                logger.warning(f"Podcast search failed, returning local matches: {e}")
                stats.error = str(e)
                matches = local
            except Exception as e:
                logger.error(f"Unexpected remote tier failure, returning local matches: {e}", exc_info=True)
                stats.error = str(e) or type(e).__name__
                matches = local
            else:
                stats.total_remote_matches = len(remote)
                stats.average_remote_score = _average([m.overall_score for m in remote])
                # Step 3: Merge
                matches = merge_matches(candidates, remote, filters)

        stats.processing_time_ms = (time.perf_counter() - start) * 1000

        # Degraded answers are not cached
        if self.use_cache and stats.error is None:
            self.db.set_cached_matches(
                cache_key,
                json.dumps({
                    "matches": [m.model_dump(mode="json") for m in matches],
                    "stats": stats.model_dump(mode="json"),
                }),
            )

        return matches, stats

    async def find_matches(
        self,
        preferences: UserPreferences,
        filters: MatchFilters | None = None,
    ) -> list[PodcastMatch]:
        matches, _ = await self.find_matches_with_stats(preferences, filters)
        return matches

    async def find_ranked_matches(
        self,
        preferences: UserPreferences,
        filters: MatchFilters | None = None,
        options: ProcessingOptions | None = None,
    ) -> ProcessedResults:
        """find_matches followed by ranking and display formatting."""
        matches = await self.find_matches(preferences, filters)
        return process_results(matches, options)
