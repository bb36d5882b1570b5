"""Background processing of the feedback log"""

import asyncio
import logging
import sqlite3
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from .config import FEEDBACK_BATCH_SIZE, FEEDBACK_CLAIM_LEASE, FEEDBACK_PROCESS_INTERVAL
from .db import Database
from .errors import FeedbackError
from .feedback import build_preference_adjustment, calculate_feedback_metrics, validate_feedback
from .models import FeedbackDetails, FeedbackMetrics

logger = logging.getLogger(__name__)


class FeedbackProcessor:
    """
    Records feedback and folds it into per-user preference adjustments.

    Each entry is claimed in the store before it is processed, so several
    processes can share one feedback log. Within a process, a lock keeps
    queue runs from overlapping.
    """

    def __init__(
        self,
        db: Database,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        batch_size: int = FEEDBACK_BATCH_SIZE,
        interval_seconds: float = FEEDBACK_PROCESS_INTERVAL,
        worker_id: str | None = None,
        lease_seconds: int = FEEDBACK_CLAIM_LEASE,
    ):
        self.db = db
        self.clock = clock
        self.batch_size = batch_size
        self.interval_seconds = interval_seconds
        self.worker_id = worker_id or f"worker-{uuid.uuid4().hex[:8]}"
        self.lease_seconds = lease_seconds
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    async def record_feedback(self, feedback: FeedbackDetails) -> FeedbackDetails:
        """
        Validate and append a feedback entry, unprocessed.

        Raises:
            FeedbackError: VALIDATION_ERROR for bad input, STORAGE_ERROR if the write fails
        """
        validate_feedback(feedback)
        entry = feedback.model_copy(update={
            "timestamp": feedback.timestamp or self.clock(),
            "is_processed": False,
        })

        try:
            entry.id = self.db.log_feedback(entry)
        except sqlite3.Error as e:
            raise FeedbackError("Failed to store feedback", "STORAGE_ERROR", str(e)) from e

        try:
            await self.update_metrics(entry.podcast_id)
        except Exception as e:
            logger.warning(f"Could not refresh metrics for podcast {entry.podcast_id}: {e}")

        logger.info(
            f"Recorded {entry.feedback_type.value} feedback {entry.id} "
            f"from {entry.user_id} on {entry.podcast_id}"
        )
        return entry

    async def update_metrics(self, podcast_id: str) -> FeedbackMetrics:
        """Recompute and store the aggregates for one podcast."""
        feedback = self.db.get_feedback_for_podcast(podcast_id)
        metrics = calculate_feedback_metrics(podcast_id, feedback, self.clock())
        self.db.upsert_feedback_metrics(metrics)
        return metrics

    async def _process_entry(self, entry: FeedbackDetails):
        history = self.db.get_feedback_for_user(entry.user_id)
        adjustment = build_preference_adjustment(entry.user_id, history, self.clock())
        self.db.save_preference_adjustment(adjustment)

        try:
            await self.update_metrics(entry.podcast_id)
        except Exception as e:
            logger.warning(f"Could not refresh metrics for podcast {entry.podcast_id}: {e}")

        self.db.mark_feedback_processed(entry.id)

    async def process_feedback_queue(self) -> int:
        """
        Process one batch of unprocessed feedback.

        Returns:
            Number of entries processed by this worker
        """
        async with self._lock:
            now = self.clock()
            entries = self.db.get_unprocessed_feedback(self.batch_size, self.lease_seconds, now)
            processed = 0

            for entry in entries:
                if not self.db.claim_feedback(entry.id, self.worker_id, self.lease_seconds, now):
                    logger.debug(f"Feedback {entry.id} already claimed by another worker")
                    continue
                try:
                    await self._process_entry(entry)
                except Exception as e:
                    logger.error(f"Error processing feedback {entry.id}: {e}", exc_info=True)
                    self.db.release_feedback(entry.id, self.worker_id)
                    continue
                processed += 1

            if entries:
                logger.info(f"Processed {processed} of {len(entries)} feedback entries")
            return processed

    async def _run_loop(self):
        """Process the queue every interval until cancelled."""
        logger.info(f"Starting feedback processing loop ({self.worker_id})")

        try:
            while True:
                try:
                    await self.process_feedback_queue()
                except Exception as e:
                    logger.error(f"Error in feedback processing loop: {e}", exc_info=True)
                await asyncio.sleep(self.interval_seconds)

        except asyncio.CancelledError:
            logger.info("Feedback processing loop cancelled")
            raise

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run_loop())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
