import json
import os
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .models import (
    FeedbackDetails,
    FeedbackMetrics,
    PodcastFeatures,
    PodcastRecord,
    PreferenceAdjustment,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """SQLite store for the podcast catalogue, features, feedback log and derived weights."""

    def __init__(self, db_path: str | None = None):
        if db_path is None:
            db_path = os.getenv("POD_MATCHER_DB")
        if db_path is None:
            db_dir = Path.home() / ".pod-matcher"
            db_dir.mkdir(parents=True, exist_ok=True)
            db_path = str(db_dir / "pod_matcher.db")

        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        """Initialize database tables if they don't exist."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)

        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS podcasts (
                id TEXT PRIMARY KEY,
                record_json TEXT NOT NULL,
                cached_at TEXT NOT NULL
            )
        """
        )
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS podcast_features (
                podcast_id TEXT PRIMARY KEY,
                features_json TEXT NOT NULL,
                analyzed_at TEXT
            )
        """
        )
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feedback (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                podcast_id TEXT NOT NULL,
                feedback_type TEXT NOT NULL,
                rating INTEGER,
                comment TEXT,
                categories TEXT NOT NULL DEFAULT '[]',
                metadata TEXT NOT NULL DEFAULT '{}',
                timestamp TEXT NOT NULL,
                is_processed INTEGER NOT NULL DEFAULT 0,
                claimed_by TEXT,
                claimed_at TEXT
            )
        """
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_feedback_user ON feedback(user_id)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_feedback_podcast ON feedback(podcast_id)")
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS preference_adjustments (
                user_id TEXT PRIMARY KEY,
                adjustment_json TEXT NOT NULL,
                last_adjusted TEXT NOT NULL
            )
        """
        )
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feedback_metrics (
                podcast_id TEXT PRIMARY KEY,
                metrics_json TEXT NOT NULL,
                last_updated TEXT NOT NULL
            )
        """
        )
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS match_cache (
                cache_key TEXT PRIMARY KEY,
                response_json TEXT NOT NULL,
                created_at TEXT DEFAULT (datetime('now'))
            )
        """
        )
        self.conn.commit()

    # --- Podcast catalogue ---

    def upsert_podcast(self, podcast: PodcastRecord):
        """Insert or refresh a catalogue row."""
        self.upsert_podcasts([podcast])

    def upsert_podcasts(self, podcasts: list[PodcastRecord]):
        now = _now_iso()
        self.conn.executemany(
            """
            INSERT INTO podcasts (id, record_json, cached_at)
            VALUES (?, ?, ?)
            ON CONFLICT(id)
            DO UPDATE SET record_json = excluded.record_json,
                          cached_at = excluded.cached_at
            """,
            [(p.id, p.model_dump_json(exclude={"cached_at"}), now) for p in podcasts],
        )
        self.conn.commit()

    def _row_to_podcast(self, row) -> PodcastRecord:
        return PodcastRecord(**json.loads(row[0]), cached_at=row[1])

    def get_podcast(self, podcast_id: str) -> PodcastRecord | None:
        row = self.conn.execute(
            "SELECT record_json, cached_at FROM podcasts WHERE id = ?", (podcast_id,)
        ).fetchone()
        return self._row_to_podcast(row) if row else None

    def get_podcasts(self, podcast_ids: list[str] | None = None) -> list[PodcastRecord]:
        """Return cached podcasts, most recently cached first, optionally restricted to ids."""
        if podcast_ids is None:
            rows = self.conn.execute(
                "SELECT record_json, cached_at FROM podcasts ORDER BY cached_at DESC, id"
            ).fetchall()
        elif not podcast_ids:
            return []
        else:
            placeholders = ",".join("?" for _ in podcast_ids)
            rows = self.conn.execute(
                f"SELECT record_json, cached_at FROM podcasts WHERE id IN ({placeholders}) "
                "ORDER BY cached_at DESC, id",
                podcast_ids,
            ).fetchall()
        return [self._row_to_podcast(row) for row in rows]

    # --- Podcast features ---

    def get_features(self, podcast_id: str) -> PodcastFeatures | None:
        row = self.conn.execute(
            "SELECT features_json FROM podcast_features WHERE podcast_id = ?", (podcast_id,)
        ).fetchone()
        return PodcastFeatures.model_validate_json(row[0]) if row else None

    def save_features(self, features: PodcastFeatures):
        """Replace the cached features for a podcast."""
        analyzed_at = features.analyzed_at.isoformat() if features.analyzed_at else None
        self.conn.execute(
            """
            INSERT OR REPLACE INTO podcast_features (podcast_id, features_json, analyzed_at)
            VALUES (?, ?, ?)
            """,
            (features.id, features.model_dump_json(), analyzed_at),
        )
        self.conn.commit()

    # --- Feedback log ---

    def log_feedback(self, feedback: FeedbackDetails) -> int:
        """Append a feedback entry and return its ID."""
        timestamp = (feedback.timestamp or datetime.now(timezone.utc)).isoformat()
        cursor = self.conn.execute(
            """
            INSERT INTO feedback
                (user_id, podcast_id, feedback_type, rating, comment, categories, metadata,
                 timestamp, is_processed)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                feedback.user_id,
                feedback.podcast_id,
                feedback.feedback_type.value,
                feedback.rating,
                feedback.comment,
                json.dumps(feedback.categories),
                feedback.metadata.model_dump_json(),
                timestamp,
                int(feedback.is_processed),
            ),
        )
        self.conn.commit()
        return cursor.lastrowid or 0

    def _select_feedback(
        self, where: str, params: tuple, limit: int | None = None
    ) -> list[FeedbackDetails]:
        query = f"""
            SELECT id, user_id, podcast_id, feedback_type, rating, comment, categories,
                   metadata, timestamp, is_processed
            FROM feedback
            WHERE {where}
            ORDER BY id
            """
        if limit is not None:
            query += " LIMIT ?"
            params = (*params, limit)

        self.conn.row_factory = sqlite3.Row
        cursor = self.conn.execute(query, params)
        rows = cursor.fetchall()
        self.conn.row_factory = None
        result = []
        for row in rows:
            data = dict(row)
            data["categories"] = json.loads(data["categories"] or "[]")
            data["metadata"] = json.loads(data["metadata"] or "{}")
            data["is_processed"] = bool(data["is_processed"])
            result.append(FeedbackDetails(**data))
        return result

    def get_unprocessed_feedback(
        self, limit: int = 100, lease_seconds: int = 600, now: datetime | None = None
    ) -> list[FeedbackDetails]:
        """Unprocessed entries that no worker holds a live claim on as of `now`."""
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(seconds=lease_seconds)).isoformat()
        return self._select_feedback(
            "is_processed = 0 AND (claimed_at IS NULL OR claimed_at < ?)",
            (cutoff,),
            limit=limit,
        )

    def claim_feedback(
        self,
        feedback_id: int,
        worker_id: str,
        lease_seconds: int = 600,
        now: datetime | None = None,
    ) -> bool:
        """
        Claim an entry for processing.

        Conditional update: succeeds only if the entry is unprocessed and
        unclaimed, its claim has expired, or this worker already holds it.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(seconds=lease_seconds)).isoformat()
        cursor = self.conn.execute(
            """
            UPDATE feedback
            SET claimed_by = ?, claimed_at = ?
            WHERE id = ? AND is_processed = 0
              AND (claimed_at IS NULL OR claimed_at < ? OR claimed_by = ?)
            """,
            (worker_id, now.isoformat(), feedback_id, cutoff, worker_id),
        )
        self.conn.commit()
        return cursor.rowcount == 1

    def release_feedback(self, feedback_id: int, worker_id: str):
        """Drop a claim so the entry is retried on the next run."""
        self.conn.execute(
            "UPDATE feedback SET claimed_by = NULL, claimed_at = NULL WHERE id = ? AND claimed_by = ?",
            (feedback_id, worker_id),
        )
        self.conn.commit()

    def mark_feedback_processed(self, feedback_id: int):
        self.conn.execute("UPDATE feedback SET is_processed = 1 WHERE id = ?", (feedback_id,))
        self.conn.commit()

    def get_feedback_for_user(self, user_id: str) -> list[FeedbackDetails]:
        return self._select_feedback("user_id = ?", (user_id,))

    def get_feedback_for_podcast(self, podcast_id: str) -> list[FeedbackDetails]:
        return self._select_feedback("podcast_id = ?", (podcast_id,))

    # --- Derived weights and metrics ---

    def save_preference_adjustment(self, adjustment: PreferenceAdjustment):
        self.conn.execute(
            """
            INSERT INTO preference_adjustments (user_id, adjustment_json, last_adjusted)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id)
            DO UPDATE SET adjustment_json = excluded.adjustment_json,
                          last_adjusted = excluded.last_adjusted
            """,
            (adjustment.user_id, adjustment.model_dump_json(), adjustment.last_adjusted.isoformat()),
        )
        self.conn.commit()

    def get_preference_adjustment(self, user_id: str) -> PreferenceAdjustment | None:
        row = self.conn.execute(
            "SELECT adjustment_json FROM preference_adjustments WHERE user_id = ?", (user_id,)
        ).fetchone()
        return PreferenceAdjustment.model_validate_json(row[0]) if row else None

    def upsert_feedback_metrics(self, metrics: FeedbackMetrics):
        self.conn.execute(
            """
            INSERT INTO feedback_metrics (podcast_id, metrics_json, last_updated)
            VALUES (?, ?, ?)
            ON CONFLICT(podcast_id)
            DO UPDATE SET metrics_json = excluded.metrics_json,
                          last_updated = excluded.last_updated
            """,
            (metrics.podcast_id, metrics.model_dump_json(), metrics.last_updated.isoformat()),
        )
        self.conn.commit()

    def get_feedback_metrics(self, podcast_id: str) -> FeedbackMetrics | None:
        row = self.conn.execute(
            "SELECT metrics_json FROM feedback_metrics WHERE podcast_id = ?", (podcast_id,)
        ).fetchone()
        return FeedbackMetrics.model_validate_json(row[0]) if row else None

    # --- Match cache ---

    def get_cached_matches(self, cache_key: str, max_age_minutes: int = 60) -> str | None:
        """Return cached JSON or None if expired/missing."""
        cursor = self.conn.execute(
            """
            SELECT response_json FROM match_cache
            WHERE cache_key = ?
              AND datetime(created_at, '+' || ? || ' minutes') > datetime('now')
            """,
            (cache_key, max_age_minutes),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def set_cached_matches(self, cache_key: str, response_json: str):
        """Upsert a cache entry."""
        self.conn.execute(
            """
            INSERT INTO match_cache (cache_key, response_json)
            VALUES (?, ?)
            ON CONFLICT(cache_key)
            DO UPDATE SET response_json = excluded.response_json,
                         created_at = datetime('now')
            """,
            (cache_key, response_json),
        )
        self.conn.commit()

    def clear_match_cache(self):
        self.conn.execute("DELETE FROM match_cache")
        self.conn.commit()
