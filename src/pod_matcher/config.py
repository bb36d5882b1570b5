# src/pod_matcher/config.py
"""
Matching System Configuration

SCORING WEIGHTS:
These weights control how each compatibility factor influences the overall
match score. Total must sum to 1.0 (100%).

Content fit (target: 55%):
- TOPIC: Overlap between author topics and podcast focus
- STYLE: Agreement with preferred formats (interview, storytelling, ...)
- LENGTH: Episode length versus preferred bucket

Guest fit (target: 25%):
- EXPERTISE: Author expertise versus podcast level
- AUDIENCE: Author level versus podcast language complexity
- COMPLEXITY: Author level versus podcast complexity

Show fit (target: 20%):
- FORMAT: Hosting style and update regularity
- QUALITY: Production quality
"""

import os


class MatchWeights:
    # Content fit (55% total)
    TOPIC = 0.30
    STYLE = 0.15
    LENGTH = 0.10

    # Guest fit (25% total)
    EXPERTISE = 0.10
    AUDIENCE = 0.05
    COMPLEXITY = 0.10

    # Show fit (20% total)
    FORMAT = 0.10
    QUALITY = 0.10

    @classmethod
    def validate(cls):
        """Ensure weights sum to 1.0"""
        total = sum([
            cls.TOPIC,
            cls.STYLE,
            cls.LENGTH,
            cls.EXPERTISE,
            cls.AUDIENCE,
            cls.COMPLEXITY,
            cls.FORMAT,
            cls.QUALITY,
        ])
        if abs(total - 1.0) >= 0.001:
            raise AssertionError(f"Weights must sum to 1.0, got {total}")
        return True


# Validate on import
MatchWeights.validate()


class TieredThresholds:
    """Bar the local tier must clear before the remote search is skipped."""

    MIN_MATCHES = 3
    MIN_SCORE = 0.7  # at least one match this good
    MIN_CONFIDENCE = 0.6  # average confidence across local matches
    MIN_TOPIC_DIVERSITY = 2  # distinct suggested topics


class ResultThresholds:
    HIGH_CONFIDENCE = 0.7
    STRENGTH_SCORE_WEIGHT = 0.7
    STRENGTH_CONFIDENCE_WEIGHT = 0.3


# Matches scoring below this never leave the scorer's caller
MIN_VIABLE_SCORE = 0.3

# Cache TTLs (in seconds)
FEATURE_CACHE_TTL = 30 * 24 * 60 * 60  # 30 days
MATCH_CACHE_TTL = 1 * 60 * 60  # 1 hour

# Feedback processing
FEEDBACK_BATCH_SIZE = 100
FEEDBACK_PROCESS_INTERVAL = 15 * 60  # 15 minutes
FEEDBACK_DECAY_MS = 30 * 24 * 60 * 60 * 1000
FEEDBACK_CLAIM_LEASE = 10 * 60  # seconds a claim blocks other workers

# External services
LISTEN_NOTES_BASE_URL = "https://listen-api.listennotes.com/api/v2"
LISTEN_NOTES_RATE_LIMIT = (10, 60)  # requests per window (seconds)
SEARCH_TIMEOUT = 10.0
DEFAULT_SEARCH_LIMIT = 10

ANALYSIS_MODEL = os.getenv("POD_MATCHER_ANALYSIS_MODEL", "claude-haiku-4-5-20251001")
ANALYSIS_RATE_LIMIT = (50, 60)
ANALYSIS_TIMEOUT = 30.0
ANALYSIS_MAX_TOKENS = 1024

# Episode length buckets in minutes: (min, max)
LENGTH_RANGES = {
    "short": (0, 30),
    "medium": (30, 60),
    "long": (60, float("inf")),
}

# Remote search duration bounds in minutes: (len_min, len_max)
SEARCH_LENGTH_BOUNDS = {
    "short": (10, 60),
    "medium": (20, 60),
    "long": (20, 90),
}
