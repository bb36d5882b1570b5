"""Claude-backed text analysis for podcast feature extraction."""

import logging
import os

import anthropic

from .capabilities import TextAnalyzer
from .config import ANALYSIS_MAX_TOKENS, ANALYSIS_MODEL, ANALYSIS_RATE_LIMIT, ANALYSIS_TIMEOUT
from .rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)


class ClaudeTextAnalyzer(TextAnalyzer):
    def __init__(
        self,
        api_key: str | None = None,
        model: str = ANALYSIS_MODEL,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        timeout: float = ANALYSIS_TIMEOUT,
    ):
        self.model = model
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(*ANALYSIS_RATE_LIMIT)
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key or os.getenv("ANTHROPIC_API_KEY", ""),
            timeout=timeout,
        )

    async def complete(self, prompt: str) -> str:
        await self.rate_limiter.wait()
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=ANALYSIS_MAX_TOKENS,
            messages=[{"role": "user", "content": prompt}],
        )
        logger.debug(
            f"Analysis used {response.usage.input_tokens} input / "
            f"{response.usage.output_tokens} output tokens"
        )
        return response.content[0].text
