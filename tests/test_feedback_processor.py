import asyncio
import sqlite3
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from pod_matcher.errors import FeedbackError
from pod_matcher.feedback_processor import FeedbackProcessor
from pod_matcher.models import FeedbackDetails, FeedbackMetadata, FeedbackType

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def processor(temp_db):
    return FeedbackProcessor(temp_db, clock=lambda: NOW, worker_id="worker-a")


def make_feedback(user_id="u1", podcast_id="p1", feedback_type=FeedbackType.LIKE, **kwargs):
    return FeedbackDetails(
        user_id=user_id, podcast_id=podcast_id, feedback_type=feedback_type, **kwargs
    )


@pytest.mark.asyncio
async def test_record_feedback_logs_unprocessed(processor, temp_db):
    entry = await processor.record_feedback(make_feedback(rating=4, categories=["technology"]))

    assert entry.id > 0
    assert entry.timestamp == NOW
    [stored] = temp_db.get_unprocessed_feedback()
    assert stored.id == entry.id
    assert stored.is_processed is False


@pytest.mark.asyncio
async def test_record_feedback_refreshes_metrics(processor, temp_db):
    await processor.record_feedback(make_feedback(rating=4))
    await processor.record_feedback(make_feedback(user_id="u2", feedback_type="dislike", rating=2))

    metrics = temp_db.get_feedback_metrics("p1")
    assert metrics.total_interactions == 2
    assert metrics.like_count == 1
    assert metrics.dislike_count == 1
    assert metrics.average_rating == pytest.approx(3.0)


@pytest.mark.asyncio
async def test_record_feedback_rejects_invalid(processor, temp_db):
    with pytest.raises(FeedbackError) as exc_info:
        await processor.record_feedback(make_feedback(rating=9))

    assert exc_info.value.code == "VALIDATION_ERROR"
    assert temp_db.get_feedback_for_user("u1") == []


@pytest.mark.asyncio
async def test_storage_failure_is_storage_error(processor, temp_db):
    with patch.object(temp_db, "log_feedback", side_effect=sqlite3.OperationalError("disk I/O error")):
        with pytest.raises(FeedbackError) as exc_info:
            await processor.record_feedback(make_feedback())

    assert exc_info.value.code == "STORAGE_ERROR"


@pytest.mark.asyncio
async def test_process_queue_builds_adjustment(processor, temp_db):
    await processor.record_feedback(make_feedback(
        categories=["technology"], metadata=FeedbackMetadata(podcast_style="interview")
    ))
    await processor.record_feedback(make_feedback(feedback_type="save", categories=["business"]))

    processed = await processor.process_feedback_queue()

    assert processed == 2
    adjustment = temp_db.get_preference_adjustment("u1")
    assert adjustment.topic_weights == {
        "technology": pytest.approx(0.5),
        "business": pytest.approx(0.5),
    }
    assert adjustment.style_preferences.interview_weight == pytest.approx(1.0)
    assert adjustment.last_adjusted == NOW
    assert temp_db.get_unprocessed_feedback() == []

    # Nothing left on a second run
    assert await processor.process_feedback_queue() == 0


@pytest.mark.asyncio
async def test_batch_size_limits_run(temp_db):
    processor = FeedbackProcessor(temp_db, clock=lambda: NOW, batch_size=2)
    for _ in range(3):
        await processor.record_feedback(make_feedback(categories=["science"]))

    assert await processor.process_feedback_queue() == 2
    assert await processor.process_feedback_queue() == 1


@pytest.mark.asyncio
async def test_claimed_entries_skipped(processor, temp_db):
    entry = await processor.record_feedback(make_feedback(categories=["science"]))
    temp_db.claim_feedback(entry.id, "worker-b", now=NOW)

    # Another worker's live claim hides the entry
    assert await processor.process_feedback_queue() == 0
    assert temp_db.get_preference_adjustment("u1") is None


@pytest.mark.asyncio
async def test_claim_expiry_follows_processor_clock(temp_db):
    entry_id = temp_db.log_feedback(make_feedback(categories=["science"]))
    temp_db.claim_feedback(entry_id, "worker-b", now=NOW)

    # Five minutes on, worker-b still holds a live claim
    later = FeedbackProcessor(temp_db, clock=lambda: NOW + timedelta(minutes=5), worker_id="worker-a")
    assert await later.process_feedback_queue() == 0

    # Past the ten minute lease the claim can be taken over
    expired = FeedbackProcessor(temp_db, clock=lambda: NOW + timedelta(minutes=11), worker_id="worker-a")
    assert await expired.process_feedback_queue() == 1
    assert temp_db.get_preference_adjustment("u1") is not None


@pytest.mark.asyncio
async def test_lost_claim_race_skips_entry(processor, temp_db):
    await processor.record_feedback(make_feedback(categories=["science"]))

    with patch.object(temp_db, "claim_feedback", return_value=False):
        assert await processor.process_feedback_queue() == 0

    assert len(temp_db.get_unprocessed_feedback()) == 1


@pytest.mark.asyncio
async def test_item_failure_does_not_stop_batch(processor, temp_db):
    await processor.record_feedback(make_feedback(user_id="broken", categories=["science"]))
    await processor.record_feedback(make_feedback(user_id="u2", categories=["science"]))

    original = temp_db.save_preference_adjustment

    def failing_save(adjustment):
        if adjustment.user_id == "broken":
            raise sqlite3.OperationalError("database is locked")
        original(adjustment)

    with patch.object(temp_db, "save_preference_adjustment", side_effect=failing_save):
        processed = await processor.process_feedback_queue()

    assert processed == 1
    assert temp_db.get_preference_adjustment("u2") is not None
    # The failed entry is released and retried on the next run
    [pending] = temp_db.get_unprocessed_feedback()
    assert pending.user_id == "broken"
    assert await processor.process_feedback_queue() == 1


@pytest.mark.asyncio
async def test_metrics_failure_does_not_block_processing(processor, temp_db):
    await processor.record_feedback(make_feedback(categories=["science"]))

    with patch.object(temp_db, "upsert_feedback_metrics", side_effect=sqlite3.OperationalError("locked")):
        assert await processor.process_feedback_queue() == 1

    assert temp_db.get_unprocessed_feedback() == []


@pytest.mark.asyncio
async def test_overlapping_runs_process_once(processor, temp_db):
    for _ in range(3):
        await processor.record_feedback(make_feedback(categories=["science"]))

    results = await asyncio.gather(
        processor.process_feedback_queue(),
        processor.process_feedback_queue(),
    )

    assert sorted(results) == [0, 3]


@pytest.mark.asyncio
async def test_update_metrics(processor, temp_db):
    temp_db.log_feedback(make_feedback(feedback_type="complete", rating=5))

    metrics = await processor.update_metrics("p1")

    assert metrics.completion_count == 1
    assert metrics.last_updated == NOW
    assert temp_db.get_feedback_metrics("p1") == metrics


@pytest.mark.asyncio
async def test_start_and_stop(temp_db):
    processor = FeedbackProcessor(temp_db, clock=lambda: NOW, interval_seconds=3600)
    await processor.record_feedback(make_feedback(categories=["science"]))

    task = processor.start()
    assert processor.start() is task
    assert processor.running

    # First pass runs immediately
    for _ in range(50):
        if not temp_db.get_unprocessed_feedback():
            break
        await asyncio.sleep(0.01)
    assert temp_db.get_unprocessed_feedback() == []

    await processor.stop()
    assert not processor.running
    assert task.cancelled()


@pytest.mark.asyncio
async def test_stop_without_start(processor):
    await processor.stop()
    assert not processor.running
