# tests/test_feedback.py
import math
from datetime import datetime, timedelta, timezone

import pytest

from pod_matcher.config import FEEDBACK_DECAY_MS
from pod_matcher.errors import FeedbackError
from pod_matcher.feedback import (
    build_preference_adjustment,
    calculate_feedback_metrics,
    calculate_style_weights,
    calculate_topic_weights,
    decay_factor,
    validate_feedback,
)
from pod_matcher.models import FeedbackDetails, FeedbackMetadata, FeedbackType, StyleWeights

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def feedback(feedback_type="like", categories=(), style=None, age=timedelta(0), rating=None, **kwargs):
    return FeedbackDetails(
        user_id=kwargs.pop("user_id", "u1"),
        podcast_id=kwargs.pop("podcast_id", "p1"),
        feedback_type=feedback_type,
        categories=list(categories),
        metadata=FeedbackMetadata(podcast_style=style),
        timestamp=NOW - age,
        rating=rating,
        **kwargs,
    )


class TestTopicWeights:
    """Test decayed topic weights"""

    def test_fresh_feedback_sums_to_one(self):
        entries = [
            feedback(categories=["technology", "business"]),
            feedback("save", categories=["technology"]),
        ]
        weights = calculate_topic_weights(entries, NOW)

        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights["technology"] == pytest.approx(2 / 3)
        assert weights["business"] == pytest.approx(1 / 3)

    def test_only_likes_and_saves_count(self):
        entries = [
            feedback("dislike", categories=["sports"]),
            feedback("listen", categories=["news"]),
            feedback("like", categories=["science"]),
        ]
        assert calculate_topic_weights(entries, NOW) == {"science": pytest.approx(1.0)}

    def test_older_feedback_counts_less(self):
        entries = [
            feedback(categories=["technology"]),
            feedback(categories=["history"], age=timedelta(days=30)),
        ]
        weights = calculate_topic_weights(entries, NOW)

        assert weights["history"] < weights["technology"]
        assert weights["history"] == pytest.approx(math.exp(-1) / 2)

    def test_empty_feedback(self):
        assert calculate_topic_weights([], NOW) == {}

    def test_no_categories(self):
        assert calculate_topic_weights([feedback()], NOW) == {}


class TestStyleWeights:
    """Test learned style weights"""

    def test_no_signal_is_uniform(self):
        weights = calculate_style_weights([feedback("dislike", style="debate")], NOW)
        assert weights == StyleWeights()
        assert weights.interview_weight == 0.25

    def test_normalised(self):
        entries = [
            feedback(style="interview"),
            feedback("complete", style="interview"),
            feedback(style="narrative"),
            feedback(style="educational"),
        ]
        weights = calculate_style_weights(entries, NOW)

        assert weights.interview_weight == pytest.approx(0.5)
        assert weights.narrative_weight == pytest.approx(0.25)
        assert weights.educational_weight == pytest.approx(0.25)
        assert weights.debate_weight == 0.0

    def test_decay_applies(self):
        entries = [feedback(style="interview"), feedback(style="debate", age=timedelta(days=60))]
        weights = calculate_style_weights(entries, NOW)
        assert weights.interview_weight > weights.debate_weight > 0


def test_decay_factor():
    assert decay_factor(NOW, NOW) == 1.0
    assert decay_factor(None, NOW) == 1.0
    assert decay_factor(NOW + timedelta(hours=1), NOW) == 1.0
    month_ago = NOW - timedelta(milliseconds=FEEDBACK_DECAY_MS)
    assert decay_factor(month_ago, NOW) == pytest.approx(math.exp(-1))


def test_naive_timestamps_treated_as_utc():
    naive = (NOW - timedelta(days=30)).replace(tzinfo=None)
    assert decay_factor(naive, NOW) == pytest.approx(math.exp(-1))


def test_build_preference_adjustment():
    adjustment = build_preference_adjustment(
        "u1", [feedback(categories=["technology"], style="interview")], NOW
    )
    assert adjustment.user_id == "u1"
    assert adjustment.topic_weights == {"technology": pytest.approx(1.0)}
    assert adjustment.style_preferences.interview_weight == pytest.approx(1.0)
    assert adjustment.last_adjusted == NOW


class TestFeedbackMetrics:
    def test_counts_and_average_rating(self):
        entries = [
            feedback("like", rating=5),
            feedback("like", rating=3),
            feedback("dislike"),
            feedback("save"),
            feedback("complete"),
            feedback("listen"),
        ]
        metrics = calculate_feedback_metrics("p1", entries, NOW)

        assert metrics.total_interactions == 6
        assert metrics.like_count == 2
        assert metrics.dislike_count == 1
        assert metrics.save_count == 1
        assert metrics.completion_count == 1
        assert metrics.listen_count == 1
        assert metrics.average_rating == pytest.approx(4.0)

    def test_no_ratings(self):
        metrics = calculate_feedback_metrics("p1", [feedback("listen")], NOW)
        assert metrics.average_rating == 0.0

    def test_no_feedback(self):
        metrics = calculate_feedback_metrics("p1", [], NOW)
        assert metrics.total_interactions == 0
        assert metrics.average_rating == 0.0


class TestValidateFeedback:
    def test_valid(self):
        validate_feedback(feedback(rating=5))

    @pytest.mark.parametrize(
        "entry",
        [
            feedback(user_id=" "),
            feedback(podcast_id=""),
            feedback(rating=0),
            feedback(rating=6),
        ],
    )
    def test_invalid(self, entry):
        with pytest.raises(FeedbackError) as exc_info:
            validate_feedback(entry)
        assert exc_info.value.code == "VALIDATION_ERROR"


def test_feedback_type_values():
    assert [t.value for t in FeedbackType] == ["like", "dislike", "save", "listen", "complete"]
