# src/pod_matcher/scoring.py
"""
Scoring functions for author/podcast matching.

All scoring functions return normalized values between 0.0 and 1.0:
- 1.0 = perfect match/highest quality
- 0.0 = no match/lowest quality

These scores are combined using weighted averages defined in config.py.
Everything here is pure: no I/O and no clock, so the same inputs always
produce the same match.
"""

import re

from pod_matcher.config import LENGTH_RANGES, MatchWeights
from pod_matcher.models import (
    ContentStyle,
    MatchBreakdown,
    MatchSource,
    PodcastFeatures,
    PodcastMatch,
    PodcastRecord,
    PodcastSummary,
    PreferenceAdjustment,
    StylePreferences,
    StyleWeights,
    UserPreferences,
)

EXPERTISE_LEVELS = ["beginner", "intermediate", "expert"]
COMPLEXITY_LEVELS = ["beginner", "intermediate", "advanced"]

# Language complexity an audience at each author level is comfortable with
AUDIENCE_TARGETS = {"beginner": 0.3, "intermediate": 0.5, "expert": 0.7}

# Hosting-style tags that suit each preferred style
STYLE_HOSTING_TAGS = {
    "interview": ("interview", "conversational"),
    "storytelling": ("storytelling", "narrative"),
    "educational": ("educational", "solo", "lecture"),
    "debate": ("debate", "panel", "roundtable"),
}

UPDATE_REGULARITY = {"daily": 1.0, "weekly": 1.0, "monthly": 0.6, "irregular": 0.3}

MAX_SUGGESTED_TOPICS = 5


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _topic_covered(topic: str, podcast_topics: list[str]) -> bool:
    """Whole-word, case-insensitive match of a topic inside any podcast topic."""
    needle = topic.strip()
    if not needle:
        return False
    pattern = re.compile(rf"(?<!\w){re.escape(needle)}(?!\w)", re.IGNORECASE)
    return any(pattern.search(p) for p in podcast_topics)


def _style_pairs(prefs: StylePreferences, style: ContentStyle) -> list[tuple[bool, bool]]:
    return [
        (prefs.interview, style.is_interview),
        (prefs.storytelling, style.is_narrative),
        (prefs.educational, style.is_educational),
        (prefs.debate, style.is_debate),
    ]


def _has_style_signal(weights: StyleWeights) -> bool:
    """Uniform 0.25 weights carry no information about the user."""
    return any(abs(w - 0.25) > 1e-9 for w in weights.model_dump().values())


def calculate_topic_score(
    author_topics: list[str],
    podcast_topics: list[str],
    topic_weights: dict[str, float] | None = None,
) -> float:
    """
    Share of the author's topics the podcast covers (0.0-1.0).

    A topic counts as covered when it appears (case-insensitively) inside
    any of the podcast's main topics, so "technology" covers
    "Technology News".

    When feedback-derived topic weights are available, 20% of the score
    comes from the summed weight of the podcast topics the user has
    responded well to.

    Args:
        author_topics: Topics from the author's explicit preferences
        podcast_topics: The podcast's main topics
        topic_weights: Optional topic -> weight map from feedback processing

    Returns:
        Score between 0.0 and 1.0
    """
    if not author_topics or not podcast_topics:
        return 0.0

    covered = [t for t in author_topics if _topic_covered(t, podcast_topics)]
    base = len(covered) / len(author_topics)

    if not topic_weights:
        return _clamp(base)

    affinity = sum(
        weight for topic, weight in topic_weights.items() if _topic_covered(topic, podcast_topics)
    )
    return _clamp(0.8 * base + 0.2 * _clamp(affinity))


def calculate_style_score(
    prefs: StylePreferences,
    style: ContentStyle,
    style_weights: StyleWeights | None = None,
) -> float:
    """
    Share of the author's preferred styles the podcast exhibits (0.0-1.0).

    With no stated preference the explicit part is neutral (0.5). Learned
    style weights, when they differ from the uniform default, make up half
    the score.
    """
    pairs = _style_pairs(prefs, style)
    wanted = [has for wants, has in pairs if wants]
    base = sum(wanted) / len(wanted) if wanted else 0.5

    if style_weights is None or not _has_style_signal(style_weights):
        return _clamp(base)

    affinity = sum(
        weight
        for weight, has in [
            (style_weights.interview_weight, style.is_interview),
            (style_weights.narrative_weight, style.is_narrative),
            (style_weights.educational_weight, style.is_educational),
            (style_weights.debate_weight, style.is_debate),
        ]
        if has
    )
    return _clamp(0.5 * base + 0.5 * _clamp(affinity))


def calculate_length_score(preferred_length: str, average_minutes: float) -> float:
    """
    Score based on episode length versus the preferred bucket (0.0-1.0).

    - Inside the bucket: 1.0
    - Outside: drops linearly, reaching 0.0 one hour away from the bucket
    - Unknown length: 0.5

    Buckets (minutes): short 0-30, medium 30-60, long 60+
    """
    if not average_minutes or average_minutes <= 0:
        return 0.5

    low, high = LENGTH_RANGES[preferred_length]
    if low <= average_minutes <= high:
        return 1.0

    distance = low - average_minutes if average_minutes < low else average_minutes - high
    return _clamp(1 - distance / 60.0)


def calculate_complexity_score(expertise_level: str, complexity_level: str) -> float:
    """1.0 for the same level, 0.5 one level apart, 0.0 two levels apart."""
    author_idx = EXPERTISE_LEVELS.index(expertise_level)
    podcast_idx = COMPLEXITY_LEVELS.index(complexity_level)
    distance = abs(author_idx - podcast_idx)
    return 1 - distance / (len(COMPLEXITY_LEVELS) - 1)


def calculate_expertise_score(expertise_level: str, complexity_level: str) -> float:
    """1.0 when the author's expertise meets the podcast's level, else 0.5."""
    author_idx = EXPERTISE_LEVELS.index(expertise_level)
    podcast_idx = COMPLEXITY_LEVELS.index(complexity_level)
    return 1.0 if author_idx >= podcast_idx else 0.5


def calculate_audience_score(expertise_level: str, language_complexity: float) -> float:
    """
    How close the podcast's language complexity is to what the author's
    audience level suits. Unknown complexity (0) scores neutral 0.5.
    """
    if language_complexity <= 0:
        return 0.5
    target = AUDIENCE_TARGETS[expertise_level]
    return _clamp(1 - abs(language_complexity - target) * 2)


def calculate_format_score(
    prefs: StylePreferences, hosting_style: list[str], update_frequency: str
) -> float:
    """
    Hosting-style fit (60%) plus update regularity (40%).

    Hosting fit is 1.0 when any hosting tag suits a preferred style, 0.3
    when none does, and 0.5 when either side is unknown.
    """
    wanted = [name for name, on in prefs.model_dump().items() if on]
    tags = [t.lower() for t in hosting_style]

    if not tags or not wanted:
        hosting = 0.5
    elif any(key in tag for name in wanted for key in STYLE_HOSTING_TAGS[name] for tag in tags):
        hosting = 1.0
    else:
        hosting = 0.3

    regularity = UPDATE_REGULARITY.get(update_frequency, 0.3)
    return _clamp(0.6 * hosting + 0.4 * regularity)


def calculate_quality_score(production_quality: float) -> float:
    return _clamp(production_quality)


def calculate_confidence(prefs: UserPreferences, features: PodcastFeatures) -> float:
    """
    Fraction of scoring inputs that were actually present (0.0-1.0).

    Measures data completeness, not match quality: a podcast with every
    field filled in gets full confidence even if it is a poor match.
    """
    present = [
        bool(prefs.topics),
        any(prefs.style_preferences.model_dump().values()),
        bool(features.main_topics),
        any(features.content_style.model_dump().values()),
        features.average_episode_length > 0,
        features.production_quality > 0,
        bool(features.hosting_style),
        features.language_complexity > 0,
    ]
    return sum(present) / len(present)


def calculate_overall_score(
    breakdown: MatchBreakdown, weights: type[MatchWeights] = MatchWeights
) -> float:
    """
    Weighted combination of all factor scores.

    The weights sum to 1.0, so the result is also in the range 0.0-1.0.
    """
    overall = (
        breakdown.topic_score * weights.TOPIC +
        breakdown.style_score * weights.STYLE +
        breakdown.length_score * weights.LENGTH +
        breakdown.expertise_score * weights.EXPERTISE +
        breakdown.audience_score * weights.AUDIENCE +
        breakdown.complexity_score * weights.COMPLEXITY +
        breakdown.format_score * weights.FORMAT +
        breakdown.quality_score * weights.QUALITY
    )
    return _clamp(overall)


def generate_explanations(breakdown: MatchBreakdown, prefs: UserPreferences) -> list[str]:
    """Human-readable lines for every factor that crossed its notable threshold."""
    explanations: list[str] = []

    if breakdown.topic_score > 0.7:
        explanations.append("Strong topic alignment with podcast focus")
    elif breakdown.topic_score > 0.4:
        explanations.append("Moderate topic overlap with podcast content")

    if breakdown.style_score > 0.7:
        explanations.append("Content style aligns well with your preferences")

    if breakdown.length_score > 0.8:
        explanations.append(
            f"Episode length matches your preference for {prefs.preferred_length} episodes"
        )

    if breakdown.expertise_score > 0.8:
        explanations.append("Expertise level matches podcast requirements")

    if breakdown.audience_score > 0.8:
        explanations.append("Well-suited for podcast audience level")

    if breakdown.complexity_score > 0.8:
        explanations.append("Content complexity suits your expertise")

    if breakdown.format_score > 0.8:
        explanations.append("Show format suits a guest appearance")

    if breakdown.quality_score > 0.8:
        explanations.append("High production quality")

    return explanations


def generate_match_reasons(breakdown: MatchBreakdown, confidence: float) -> list[str]:
    """Short tags the results processor aggregates into applied filters."""
    reasons: list[str] = []
    if confidence >= 0.8:
        reasons.append("High confidence match")
    if breakdown.topic_score > 0.7:
        reasons.append("Topic match")
    if breakdown.style_score > 0.7:
        reasons.append("Style match")
    if breakdown.length_score > 0.8:
        reasons.append("Length match")
    if breakdown.quality_score > 0.8:
        reasons.append("Quality match")
    return reasons


def generate_suggested_topics(prefs: UserPreferences, features: PodcastFeatures) -> list[str]:
    """Overlapping topics first, then the podcast's other focus areas; top 5."""
    suggestions: list[str] = []
    for topic in prefs.topics:
        if _topic_covered(topic, features.main_topics):
            suggestions.append(topic)
    for topic in features.main_topics:
        if topic.lower() not in (s.lower() for s in suggestions):
            suggestions.append(topic)
    return suggestions[:MAX_SUGGESTED_TOPICS]


def build_podcast_summary(podcast: PodcastRecord | None, features: PodcastFeatures) -> PodcastSummary | None:
    if podcast is None:
        return None
    return PodcastSummary(
        title=podcast.title,
        category=podcast.categories[0] if podcast.categories else "",
        description=podcast.description[:300],
        listener_count=podcast.listener_count,
        rating=podcast.rating,
        frequency=features.update_frequency,
    )


def score_match(
    preferences: UserPreferences,
    features: PodcastFeatures,
    podcast: PodcastRecord | None = None,
    adjustment: PreferenceAdjustment | None = None,
    source: MatchSource = "local",
) -> PodcastMatch:
    """
    Score one podcast against an author's preferences.

    Args:
        preferences: The author's explicit preferences
        features: Extracted features for the podcast
        podcast: Catalogue row, used only for the denormalized summary
        adjustment: Feedback-derived weights; advisory, never replaces preferences
        source: Which tier produced the candidate

    Returns:
        PodcastMatch with every score in [0, 1]
    """
    topic_weights = adjustment.topic_weights if adjustment else None
    style_weights = adjustment.style_preferences if adjustment else None

    breakdown = MatchBreakdown(
        topic_score=calculate_topic_score(preferences.topics, features.main_topics, topic_weights),
        style_score=calculate_style_score(
            preferences.style_preferences, features.content_style, style_weights
        ),
        length_score=calculate_length_score(
            preferences.preferred_length, features.average_episode_length
        ),
        complexity_score=calculate_complexity_score(
            preferences.expertise_level, features.complexity_level
        ),
        expertise_score=calculate_expertise_score(
            preferences.expertise_level, features.complexity_level
        ),
        audience_score=calculate_audience_score(
            preferences.expertise_level, features.language_complexity
        ),
        format_score=calculate_format_score(
            preferences.style_preferences, features.hosting_style, features.update_frequency
        ),
        quality_score=calculate_quality_score(features.production_quality),
    )
    breakdown.explanation = generate_explanations(breakdown, preferences)

    confidence = calculate_confidence(preferences, features)

    return PodcastMatch(
        id=f"match_{preferences.user_id or 'anonymous'}_{features.id}",
        podcast_id=features.id,
        overall_score=calculate_overall_score(breakdown),
        confidence=confidence,
        breakdown=breakdown,
        match_reasons=generate_match_reasons(breakdown, confidence),
        suggested_topics=generate_suggested_topics(preferences, features),
        podcast=build_podcast_summary(podcast, features),
        source=source,
    )
