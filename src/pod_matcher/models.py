from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

PodcastTopic = Literal[
    "technology",
    "business",
    "science",
    "health",
    "education",
    "entertainment",
    "news",
    "sports",
    "culture",
    "politics",
]
PodcastLength = Literal["short", "medium", "long"]
ExpertiseLevel = Literal["beginner", "intermediate", "expert"]
ComplexityLevel = Literal["beginner", "intermediate", "advanced"]
UpdateFrequency = Literal["daily", "weekly", "monthly", "irregular"]
PodcastStyle = Literal["interview", "narrative", "educational", "debate"]
MatchSource = Literal["local", "remote"]
QualityLevel = Literal["high", "low"]


# --- Author side ---


class StylePreferences(BaseModel):
    interview: bool = False
    storytelling: bool = False
    educational: bool = False
    debate: bool = False


class UserPreferences(BaseModel):
    user_id: str = ""
    topics: list[PodcastTopic] = Field(min_length=1, max_length=5)
    preferred_length: PodcastLength = "medium"
    style_preferences: StylePreferences = Field(default_factory=StylePreferences)
    expertise_level: ExpertiseLevel = "intermediate"


# --- Podcast side ---


class PodcastRecord(BaseModel):
    """A catalogue row, as cached locally or returned by the search API."""

    id: str
    title: str = ""
    description: str = ""
    publisher: str = ""
    categories: list[str] = Field(default_factory=list)
    total_episodes: int = 0
    average_duration_seconds: int | None = None
    listen_score: float | None = None
    listener_count: int | None = None
    rating: float | None = None
    publish_frequency: str | None = None  # daily | weekly | monthly | irregular, when known
    earliest_pub_date_ms: int | None = None
    latest_pub_date_ms: int | None = None
    language: str = ""
    image: str | None = None
    website: str | None = None
    cached_at: datetime | None = None


class ContentStyle(BaseModel):
    is_interview: bool = False
    is_narrative: bool = False
    is_educational: bool = False
    is_debate: bool = False


class PodcastFeatures(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    main_topics: list[str] = Field(default_factory=list)
    content_style: ContentStyle = Field(default_factory=ContentStyle)
    complexity_level: ComplexityLevel = "intermediate"
    average_episode_length: float = 0  # minutes
    update_frequency: UpdateFrequency = "weekly"
    production_quality: float = Field(default=0.0, ge=0.0, le=1.0)
    hosting_style: list[str] = Field(default_factory=list)
    language_complexity: float = Field(default=0.0, ge=0.0, le=1.0)
    analyzed_at: datetime | None = None


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


def _as_unit_float(value: Any) -> float:
    """Coerce to 0-1, accepting percentages (0-100) as well."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    if number > 1.0:
        number = number / 100.0
    return max(0.0, min(1.0, number))


_STYLE_KEYS = {
    "is_interview": ("is_interview", "isInterview", "interview"),
    "is_narrative": ("is_narrative", "isNarrative", "narrative", "storytelling"),
    "is_educational": ("is_educational", "isEducational", "educational"),
    "is_debate": ("is_debate", "isDebate", "debate"),
}


class ParsedFeatures(BaseModel):
    """
    Lenient view of a text-analysis response.

    The upstream model's output is not contractually fixed, so every field
    has a default and a coercion rule instead of a validation error:

    - main_topics, hosting_style: list of strings (a comma string is split), else []
    - content_style: dict of flags or a list of style names, else all False
    - complexity_level: beginner | intermediate | advanced ("expert" -> advanced), else intermediate
    - production_quality, language_complexity: 0-1 (0-100 rescaled), else 0
    """

    main_topics: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("main_topics", "mainTopics")
    )
    content_style: ContentStyle = Field(
        default_factory=ContentStyle, validation_alias=AliasChoices("content_style", "contentStyle")
    )
    complexity_level: ComplexityLevel = Field(
        default="intermediate", validation_alias=AliasChoices("complexity_level", "complexityLevel")
    )
    production_quality: float = Field(
        default=0.0, validation_alias=AliasChoices("production_quality", "productionQuality")
    )
    hosting_style: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("hosting_style", "hostingStyle")
    )
    language_complexity: float = Field(
        default=0.0, validation_alias=AliasChoices("language_complexity", "languageComplexity")
    )

    @field_validator("main_topics", "hosting_style", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> list[str]:
        return _as_str_list(value)

    @field_validator("production_quality", "language_complexity", mode="before")
    @classmethod
    def _unit_floats(cls, value: Any) -> float:
        return _as_unit_float(value)

    @field_validator("complexity_level", mode="before")
    @classmethod
    def _complexity(cls, value: Any) -> str:
        level = str(value).strip().lower() if isinstance(value, str) else ""
        if level == "expert":
            return "advanced"
        return level if level in ("beginner", "intermediate", "advanced") else "intermediate"

    @field_validator("content_style", mode="before")
    @classmethod
    def _content_style(cls, value: Any) -> dict[str, bool]:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            names = {str(v).strip().lower() for v in value}
            return {
                field: any(key.lower() in names for key in keys)
                for field, keys in _STYLE_KEYS.items()
            }
        if isinstance(value, dict):
            return {
                field: any(bool(value.get(key)) for key in keys)
                for field, keys in _STYLE_KEYS.items()
            }
        return {}


# --- Matching ---


class MatchBreakdown(BaseModel):
    topic_score: float = 0.0
    expertise_score: float = 0.0
    style_score: float = 0.0
    audience_score: float = 0.0
    format_score: float = 0.0
    length_score: float = 0.0
    complexity_score: float = 0.0
    quality_score: float = 0.0
    explanation: list[str] = Field(default_factory=list)

    def subscores(self) -> dict[str, float]:
        return self.model_dump(exclude={"explanation"})


class PodcastSummary(BaseModel):
    title: str = ""
    category: str = ""
    description: str = ""
    listener_count: int | None = None
    rating: float | None = None
    frequency: str | None = None


class PodcastMatch(BaseModel):
    # Scores are plain floats: range checks belong to the results processor
    id: str = ""
    podcast_id: str
    overall_score: float
    confidence: float
    breakdown: MatchBreakdown = Field(default_factory=MatchBreakdown)
    match_reasons: list[str] = Field(default_factory=list)
    suggested_topics: list[str] = Field(default_factory=list)
    podcast: PodcastSummary | None = None
    source: MatchSource = "local"


class ProcessedMatch(PodcastMatch):
    rank: int = 0
    quality_level: QualityLevel = "low"
    match_strength: float = 0.0
    display_reasons: list[str] = Field(default_factory=list)
    applied_filters: list[str] = Field(default_factory=list)


class ProcessedResults(BaseModel):
    top_matches: list[ProcessedMatch] = Field(default_factory=list)
    total_matches: int = 0
    average_confidence: float = 0.0
    processing_time_ms: float = 0.0
    applied_filters: list[str] = Field(default_factory=list)


class MatchFilters(BaseModel):
    min_score: float | None = None
    min_confidence: float | None = None
    max_results: int | None = Field(default=None, ge=1)


class ProcessingOptions(BaseModel):
    min_confidence: float | None = None
    min_match_strength: float | None = None
    max_results: int | None = Field(default=None, ge=1)


class MatchingStats(BaseModel):
    total_local_matches: int = 0
    total_remote_matches: int = 0
    average_local_score: float = 0.0
    average_remote_score: float = 0.0
    processing_time_ms: float = 0.0
    remote_called: bool = False
    cached: bool = False
    error: str | None = None


# --- Remote search ---


class SearchFilters(BaseModel):
    language: str = "English"
    len_min: int | None = None  # minutes
    len_max: int | None = None
    offset: int = 0
    limit: int = 10
    safe_mode: int = 1
    genre_ids: list[int] = Field(default_factory=list)


class SearchResults(BaseModel):
    results: list[PodcastRecord] = Field(default_factory=list)
    total: int = 0
    count: int = 0
    next_offset: int = 0


# --- Feedback ---


class FeedbackType(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"
    SAVE = "save"
    LISTEN = "listen"
    COMPLETE = "complete"


class FeedbackMetadata(BaseModel):
    podcast_style: PodcastStyle | None = None
    listen_duration: int | None = None  # seconds
    completion_percent: float | None = None
    device_type: str | None = None
    source: str | None = None


class FeedbackDetails(BaseModel):
    id: int = 0
    user_id: str
    podcast_id: str
    feedback_type: FeedbackType
    rating: int | None = None  # 1-5, checked by validate_feedback
    comment: str | None = None
    categories: list[str] = Field(default_factory=list)
    metadata: FeedbackMetadata = Field(default_factory=FeedbackMetadata)
    timestamp: datetime | None = None
    is_processed: bool = False


class StyleWeights(BaseModel):
    interview_weight: float = 0.25
    narrative_weight: float = 0.25
    educational_weight: float = 0.25
    debate_weight: float = 0.25


class PreferenceAdjustment(BaseModel):
    user_id: str
    topic_weights: dict[str, float] = Field(default_factory=dict)
    style_preferences: StyleWeights = Field(default_factory=StyleWeights)
    last_adjusted: datetime


class FeedbackMetrics(BaseModel):
    podcast_id: str
    total_interactions: int = 0
    like_count: int = 0
    dislike_count: int = 0
    save_count: int = 0
    listen_count: int = 0
    completion_count: int = 0
    average_rating: float = 0.0
    last_updated: datetime
