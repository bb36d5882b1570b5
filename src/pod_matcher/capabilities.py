"""Abstract interfaces for the external services the matcher depends on.

The matching core only talks to these contracts. Listen Notes and Claude
are the shipped implementations; tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod

from .models import SearchFilters, SearchResults


class TextAnalyzer(ABC):
    """Free-text completion used to derive podcast features."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the model's raw text answer for *prompt*.

        Implementations raise on transport or provider failure; callers wrap
        those failures in ExtractionError.
        """


class PodcastSearch(ABC):
    """Live podcast catalogue search (the remote tier)."""

    @abstractmethod
    async def search(self, query: str, filters: SearchFilters | None = None) -> SearchResults:
        """Search podcasts matching *query*.

        Raises:
            SearchRateLimitError: the service's request budget is exhausted.
            SearchAuthError: the API key is missing or rejected.
            SearchUnavailableError: 5xx, timeout or network failure.
        """
