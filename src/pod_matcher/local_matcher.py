"""Scores cached catalogue podcasts against an author's preferences."""

import logging

from .config import MIN_VIABLE_SCORE
from .db import Database
from .errors import ExtractionError
from .features import FeatureExtractor
from .models import (
    MatchFilters,
    MatchSource,
    PodcastFeatures,
    PodcastMatch,
    PodcastRecord,
    PreferenceAdjustment,
    UserPreferences,
)
from .scoring import score_match

logger = logging.getLogger(__name__)


def apply_filters(matches: list[PodcastMatch], filters: MatchFilters | None) -> list[PodcastMatch]:
    """Drop matches under the filter minimums and cap the list length."""
    if filters is None:
        return matches
    if filters.min_score is not None:
        matches = [m for m in matches if m.overall_score >= filters.min_score]
    if filters.min_confidence is not None:
        matches = [m for m in matches if m.confidence >= filters.min_confidence]
    if filters.max_results is not None:
        matches = matches[: filters.max_results]
    return matches


class LocalMatcher:
    def __init__(
        self,
        db: Database,
        extractor: FeatureExtractor,
        min_score: float = MIN_VIABLE_SCORE,
    ):
        self.db = db
        self.extractor = extractor
        self.min_score = min_score

    async def _ensure_features(self, podcast: PodcastRecord) -> PodcastFeatures | None:
        """
        Cached features if still fresh, otherwise re-extract and persist.

        A failed extraction falls back to whatever stale features are cached;
        with nothing cached the podcast is skipped.
        """
        cached = self.db.get_features(podcast.id)
        if cached is not None and not self.extractor.is_stale(cached):
            return cached

        try:
            features = await self.extractor.extract_features(podcast)
        except ExtractionError as e:
            if cached is not None:
                logger.warning(f"Using stale features for podcast {podcast.id}: {e}")
                return cached
            logger.warning(f"Skipping podcast {podcast.id}, no features available: {e}")
            return None

        self.db.save_features(features)
        return features

    async def score_podcasts(
        self,
        preferences: UserPreferences,
        podcasts: list[PodcastRecord],
        adjustment: PreferenceAdjustment | None = None,
        source: MatchSource = "local",
    ) -> list[PodcastMatch]:
        """Score candidates, keep the viable ones, best first."""
        matches = []
        for podcast in podcasts:
            features = await self._ensure_features(podcast)
            if features is None:
                continue
            match = score_match(preferences, features, podcast, adjustment, source)
            if match.overall_score >= self.min_score:
                matches.append(match)

        matches.sort(key=lambda m: m.overall_score, reverse=True)
        return matches

    async def find_local_matches(
        self,
        preferences: UserPreferences,
        filters: MatchFilters | None = None,
        adjustment: PreferenceAdjustment | None = None,
    ) -> list[PodcastMatch]:
        return apply_filters(await self.find_viable_matches(preferences, adjustment), filters)

    async def find_viable_matches(
        self,
        preferences: UserPreferences,
        adjustment: PreferenceAdjustment | None = None,
    ) -> list[PodcastMatch]:
        """Every viable catalogue match, best first, before request filters."""
        podcasts = self.db.get_podcasts()
        matches = await self.score_podcasts(preferences, podcasts, adjustment, "local")
        logger.info(f"Local matching scored {len(podcasts)} podcasts, kept {len(matches)}")
        return matches
