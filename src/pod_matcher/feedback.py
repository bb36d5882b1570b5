"""Turns the feedback log into per-user preference weights and per-podcast metrics.

Everything here is pure: callers pass the feedback history and the current
time, and get models back. Storage and scheduling live in feedback_processor.

Topic weights: every like/save contributes exp(-age / FEEDBACK_DECAY_MS) to
each of its categories, and the sums are divided by the number of positive
category occurrences. Feedback given right now therefore sums to 1.0, and
older feedback counts for strictly less.
"""

import math
from collections import defaultdict
from datetime import datetime, timezone

from .config import FEEDBACK_DECAY_MS
from .errors import FeedbackError
from .models import (
    FeedbackDetails,
    FeedbackMetrics,
    FeedbackType,
    PreferenceAdjustment,
    StyleWeights,
)

TOPIC_SIGNALS = (FeedbackType.LIKE, FeedbackType.SAVE)
STYLE_SIGNALS = (FeedbackType.LIKE, FeedbackType.COMPLETE)

_STYLE_FIELDS = {
    "interview": "interview_weight",
    "narrative": "narrative_weight",
    "educational": "educational_weight",
    "debate": "debate_weight",
}


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def decay_factor(timestamp: datetime | None, now: datetime) -> float:
    """exp(-age_ms / FEEDBACK_DECAY_MS); undated or future entries count in full."""
    if timestamp is None:
        return 1.0
    age_ms = (_as_utc(now) - _as_utc(timestamp)).total_seconds() * 1000
    return math.exp(-max(0.0, age_ms) / FEEDBACK_DECAY_MS)


def calculate_topic_weights(feedback: list[FeedbackDetails], now: datetime) -> dict[str, float]:
    weights: dict[str, float] = defaultdict(float)
    occurrences = 0
    for entry in feedback:
        if entry.feedback_type not in TOPIC_SIGNALS:
            continue
        decay = decay_factor(entry.timestamp, now)
        for category in entry.categories:
            weights[category] += decay
            occurrences += 1

    if occurrences == 0:
        return {}
    return {topic: weight / occurrences for topic, weight in weights.items()}


def calculate_style_weights(feedback: list[FeedbackDetails], now: datetime) -> StyleWeights:
    """Normalised style affinity; uniform 0.25 each when nothing signals a style."""
    weights: dict[str, float] = defaultdict(float)
    for entry in feedback:
        style = entry.metadata.podcast_style
        if entry.feedback_type not in STYLE_SIGNALS or style is None:
            continue
        weights[style] += decay_factor(entry.timestamp, now)

    total = sum(weights.values())
    if total <= 0:
        return StyleWeights()
    return StyleWeights(**{
        field: weights.get(style, 0.0) / total for style, field in _STYLE_FIELDS.items()
    })


def build_preference_adjustment(
    user_id: str, feedback: list[FeedbackDetails], now: datetime
) -> PreferenceAdjustment:
    """Recompute a user's adjustment from their whole feedback history."""
    return PreferenceAdjustment(
        user_id=user_id,
        topic_weights=calculate_topic_weights(feedback, now),
        style_preferences=calculate_style_weights(feedback, now),
        last_adjusted=now,
    )


def calculate_feedback_metrics(
    podcast_id: str, feedback: list[FeedbackDetails], now: datetime
) -> FeedbackMetrics:
    counts = defaultdict(int)
    for entry in feedback:
        counts[entry.feedback_type] += 1

    ratings = [entry.rating for entry in feedback if entry.rating is not None]
    average_rating = sum(ratings) / len(ratings) if ratings else 0.0

    return FeedbackMetrics(
        podcast_id=podcast_id,
        total_interactions=len(feedback),
        like_count=counts[FeedbackType.LIKE],
        dislike_count=counts[FeedbackType.DISLIKE],
        save_count=counts[FeedbackType.SAVE],
        listen_count=counts[FeedbackType.LISTEN],
        completion_count=counts[FeedbackType.COMPLETE],
        average_rating=average_rating,
        last_updated=now,
    )


def validate_feedback(feedback: FeedbackDetails):
    """
    Raises:
        FeedbackError: VALIDATION_ERROR naming the first invalid field
    """
    if not feedback.user_id.strip():
        raise FeedbackError("User ID is required", "VALIDATION_ERROR", {"field": "user_id"})
    if not feedback.podcast_id.strip():
        raise FeedbackError("Podcast ID is required", "VALIDATION_ERROR", {"field": "podcast_id"})
    if feedback.rating is not None and not 1 <= feedback.rating <= 5:
        raise FeedbackError(
            "Rating must be between 1 and 5", "VALIDATION_ERROR", {"rating": feedback.rating}
        )
