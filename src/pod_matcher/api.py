"""Pod-Matcher REST API: FastAPI wrapper around the matching and feedback services."""

from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[2] / ".env")

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .db import Database
from .errors import FeedbackError, MatchValidationError
from .feedback_processor import FeedbackProcessor
from .features import FeatureExtractor
from .listen_notes import ListenNotesClient
from .local_matcher import LocalMatcher
from .logging_setup import setup_logging
from .models import FeedbackDetails, MatchFilters, ProcessingOptions, UserPreferences
from .results import process_results
from .text_analysis import ClaudeTextAnalyzer
from .tiered_matching import TieredMatcher

db: Database
matcher: TieredMatcher
feedback_processor: FeedbackProcessor


@asynccontextmanager
async def lifespan(app: FastAPI):
    global db, matcher, feedback_processor
    setup_logging()
    db = Database()
    extractor = FeatureExtractor(ClaudeTextAnalyzer())
    matcher = TieredMatcher(LocalMatcher(db, extractor), ListenNotesClient(), db)
    feedback_processor = FeedbackProcessor(db)
    feedback_processor.start()
    yield
    await feedback_processor.stop()


app = FastAPI(title="Pod Matcher", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Matching ---


class MatchRequest(BaseModel):
    preferences: UserPreferences
    filters: MatchFilters | None = None
    options: ProcessingOptions | None = None


@app.post("/api/matches")
async def find_matches(req: MatchRequest):
    matches, stats = await matcher.find_matches_with_stats(req.preferences, req.filters)
    try:
        results = process_results(matches, req.options)
    except MatchValidationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"results": results.model_dump(mode="json"), "stats": stats.model_dump()}


# --- Feedback ---


@app.post("/api/feedback")
async def record_feedback(feedback: FeedbackDetails):
    try:
        entry = await feedback_processor.record_feedback(feedback)
    except FeedbackError as e:
        status_code = 400 if e.code == "VALIDATION_ERROR" else 500
        raise HTTPException(status_code=status_code, detail={"code": e.code, "message": str(e)})
    return {"status": "success", "feedback_id": entry.id}


@app.post("/api/feedback/process")
async def process_feedback():
    processed = await feedback_processor.process_feedback_queue()
    return {"status": "success", "processed": processed}


@app.get("/api/users/{user_id}/adjustment")
async def get_adjustment(user_id: str):
    adjustment = db.get_preference_adjustment(user_id)
    if not adjustment:
        raise HTTPException(status_code=404, detail="No adjustment for user")
    return adjustment.model_dump(mode="json")


@app.get("/api/podcasts/{podcast_id}/metrics")
async def get_metrics(podcast_id: str):
    metrics = db.get_feedback_metrics(podcast_id)
    if not metrics:
        raise HTTPException(status_code=404, detail="No feedback for podcast")
    return metrics.model_dump(mode="json")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
