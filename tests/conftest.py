import json
from datetime import datetime, timezone

import pytest

from pod_matcher.capabilities import TextAnalyzer
from pod_matcher.db import Database
from pod_matcher.models import (
    ContentStyle,
    PodcastFeatures,
    PodcastRecord,
    StylePreferences,
    UserPreferences,
)

TECH_ANALYSIS = json.dumps({
    "main_topics": ["technology", "business", "startups"],
    "content_style": {
        "is_interview": True,
        "is_narrative": False,
        "is_educational": True,
        "is_debate": False,
    },
    "complexity_level": "intermediate",
    "production_quality": 0.9,
    "hosting_style": ["conversational", "interview"],
    "language_complexity": 0.5,
})

SPORTS_ANALYSIS = json.dumps({
    "main_topics": ["sports", "football"],
    "content_style": {"is_narrative": True},
    "complexity_level": "beginner",
    "production_quality": 0.4,
    "hosting_style": ["panel"],
    "language_complexity": 0.2,
})


class FakeAnalyzer(TextAnalyzer):
    """Answers with a canned response per podcast title and records every prompt."""

    def __init__(self, responses: dict[str, str] | None = None):
        self.responses = responses or {}
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        for title, response in self.responses.items():
            if f"Title: {title}\n" in prompt:
                return response
        raise RuntimeError("analysis service unavailable")


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database for testing."""
    db = Database(str(tmp_path / "test.db"))
    yield db
    db.conn.close()


@pytest.fixture
def author_prefs():
    return UserPreferences(
        user_id="author-1",
        topics=["technology", "business"],
        preferred_length="medium",
        style_preferences=StylePreferences(interview=True, educational=True),
        expertise_level="intermediate",
    )


@pytest.fixture
def make_podcast():
    def _make(podcast_id: str, title: str = "Tech Talks", **kwargs) -> PodcastRecord:
        data = {
            "description": f"{title} description",
            "publisher": "Pod Co",
            "categories": ["Technology"],
            "total_episodes": 120,
            "average_duration_seconds": 45 * 60,
            "listener_count": 5000,
            "rating": 4.5,
            "publish_frequency": "weekly",
        }
        data.update(kwargs)
        return PodcastRecord(id=podcast_id, title=title, **data)

    return _make


@pytest.fixture
def make_features():
    def _make(podcast_id: str, **kwargs) -> PodcastFeatures:
        data = {
            "main_topics": ["technology", "business", "startups"],
            "content_style": ContentStyle(is_interview=True, is_educational=True),
            "complexity_level": "intermediate",
            "average_episode_length": 45,
            "update_frequency": "weekly",
            "production_quality": 0.9,
            "hosting_style": ["conversational", "interview"],
            "language_complexity": 0.5,
            "analyzed_at": datetime.now(timezone.utc),
        }
        data.update(kwargs)
        return PodcastFeatures(id=podcast_id, **data)

    return _make
