"""Exception types raised across the matching and feedback pipeline."""

from __future__ import annotations

from typing import Any


class PodMatcherError(Exception):
    """Base exception for pod-matcher errors."""
    pass


class ExtractionError(PodMatcherError):
    """Raised when podcast features cannot be extracted.

    ``code`` is ``EXTRACTION_ERROR`` when the text-analysis call itself
    failed and ``PROCESSING_ERROR`` when its response could not be parsed.
    """

    def __init__(self, message: str, code: str = "EXTRACTION_ERROR", details: Any = None):
        super().__init__(message)
        self.code = code
        self.details = details


class MatchValidationError(PodMatcherError):
    """Raised when a batch of matches contains a malformed record."""

    def __init__(self, match: Any = None):
        super().__init__("Invalid match data")
        self.match = match


class SearchError(PodMatcherError):
    """Raised when the podcast search service cannot answer a request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SearchRateLimitError(SearchError):
    """Raised on HTTP 429 from the search service."""
    pass


class SearchAuthError(SearchError):
    """Raised when the search API key is missing or rejected."""
    pass


class SearchUnavailableError(SearchError):
    """Raised on 5xx responses, timeouts and network failures."""
    pass


class FeedbackError(PodMatcherError):
    def __init__(self, message: str, code: str = "PROCESSING_ERROR", details: Any = None):
        super().__init__(message)
        self.code = code
        self.details = details
