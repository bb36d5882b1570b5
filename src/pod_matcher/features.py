"""Podcast feature extraction via a text-analysis service."""

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from .capabilities import TextAnalyzer
from .config import FEATURE_CACHE_TTL
from .errors import ExtractionError
from .models import ParsedFeatures, PodcastFeatures, PodcastRecord, UpdateFrequency

logger = logging.getLogger(__name__)

FEATURES_PROMPT = """\
You are analyzing a podcast to decide which authors would make good guests. \
Extract its key features from the metadata below.

<podcast>
Title: {title}
Description: {description}
Publisher: {publisher}
Categories: {categories}
</podcast>

Return ONLY a JSON object with these keys:
- "main_topics": up to 5 topic strings, most prominent first
- "content_style": object with booleans "is_interview", "is_narrative", "is_educational", "is_debate"
- "complexity_level": one of "beginner", "intermediate", "advanced"
- "production_quality": number from 0 to 1
- "hosting_style": list of short tags such as "conversational", "solo", "panel"
- "language_complexity": number from 0 to 1"""

MS_PER_DAY = 24 * 60 * 60 * 1000


def calculate_average_length(podcast: PodcastRecord) -> float:
    """Average episode length in minutes from catalogue metadata, 0 if unknown."""
    if not podcast.average_duration_seconds or podcast.average_duration_seconds <= 0:
        return 0
    return round(podcast.average_duration_seconds / 60.0, 1)


def calculate_update_frequency(podcast: PodcastRecord) -> UpdateFrequency:
    """
    Publishing cadence from catalogue metadata.

    Uses the catalogue's own frequency label when it has one, otherwise the
    mean gap between the first and latest episode. Defaults to weekly.
    """
    if podcast.publish_frequency in ("daily", "weekly", "monthly", "irregular"):
        return podcast.publish_frequency

    if (
        podcast.total_episodes > 1
        and podcast.earliest_pub_date_ms
        and podcast.latest_pub_date_ms
        and podcast.latest_pub_date_ms > podcast.earliest_pub_date_ms
    ):
        span_days = (podcast.latest_pub_date_ms - podcast.earliest_pub_date_ms) / MS_PER_DAY
        gap_days = span_days / (podcast.total_episodes - 1)
        if gap_days <= 2:
            return "daily"
        if gap_days <= 10:
            return "weekly"
        if gap_days <= 45:
            return "monthly"
        return "irregular"

    return "weekly"


class FeatureExtractor:
    def __init__(
        self,
        analyzer: TextAnalyzer,
        ttl_seconds: int = FEATURE_CACHE_TTL,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.analyzer = analyzer
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def build_prompt(self, podcast: PodcastRecord) -> str:
        return FEATURES_PROMPT.format(
            title=podcast.title,
            description=podcast.description,
            publisher=podcast.publisher,
            categories=", ".join(podcast.categories),
        )

    def _parse_json(self, text: str):
        """Extract JSON from the model's response, handling markdown fences."""
        text = text.strip()
        if text.startswith("```"):
            text = text.split("\n", 1)[1] if "\n" in text else text[3:]
            text = text.rsplit("```", 1)[0]
        return json.loads(text.strip())

    def parse_features(self, text: str) -> ParsedFeatures:
        """Parse a response leniently; only a non-object payload is an error."""
        try:
            data = self._parse_json(text)
        except ValueError as e:
            raise ExtractionError("Failed to parse analysis response", "PROCESSING_ERROR", text) from e

        if not isinstance(data, dict):
            raise ExtractionError("Analysis response is not a JSON object", "PROCESSING_ERROR", text)

        try:
            return ParsedFeatures.model_validate(data)
        except ValidationError as e:
            raise ExtractionError("Failed to parse analysis response", "PROCESSING_ERROR", text) from e

    async def extract_features(self, podcast: PodcastRecord) -> PodcastFeatures:
        """
        Derive PodcastFeatures for a catalogue record.

        Raises:
            ExtractionError: the analysis call failed or returned unparseable content
        """
        try:
            response = await self.analyzer.complete(self.build_prompt(podcast))
        except Exception as e:
            logger.error(f"Feature extraction failed for podcast {podcast.id}: {e}")
            raise ExtractionError(
                "Failed to extract podcast features", "EXTRACTION_ERROR", podcast.id
            ) from e

        parsed = self.parse_features(response)

        return PodcastFeatures(
            id=podcast.id,
            **parsed.model_dump(),
            average_episode_length=calculate_average_length(podcast),
            update_frequency=calculate_update_frequency(podcast),
            analyzed_at=self._clock(),
        )

    def is_stale(self, features: PodcastFeatures) -> bool:
        if features.analyzed_at is None:
            return True
        analyzed_at = features.analyzed_at
        if analyzed_at.tzinfo is None:
            analyzed_at = analyzed_at.replace(tzinfo=timezone.utc)
        return self._clock() - analyzed_at > self.ttl
