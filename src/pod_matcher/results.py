"""Validation, ranking and annotation of scored matches."""

import re
import time
from collections.abc import Sequence

from .config import ResultThresholds
from .errors import MatchValidationError
from .models import PodcastMatch, ProcessedMatch, ProcessedResults, ProcessingOptions, QualityLevel


def _in_unit_range(value: float) -> bool:
    return 0.0 <= value <= 1.0


def validate_match(match: PodcastMatch) -> bool:
    """Check the fields ranking and confidence depend on."""
    if not match.podcast_id or not match.podcast_id.strip():
        return False
    if not _in_unit_range(match.overall_score) or not _in_unit_range(match.confidence):
        return False
    if not all(_in_unit_range(v) for v in match.breakdown.subscores().values()):
        return False
    if isinstance(match, ProcessedMatch):
        if not _in_unit_range(match.match_strength) or match.rank < 0:
            return False
    return True


def calculate_match_strength(match: PodcastMatch) -> float:
    return (
        match.overall_score * ResultThresholds.STRENGTH_SCORE_WEIGHT
        + match.confidence * ResultThresholds.STRENGTH_CONFIDENCE_WEIGHT
    )


def determine_quality_level(confidence: float) -> QualityLevel:
    return "high" if confidence >= ResultThresholds.HIGH_CONFIDENCE else "low"


def format_reason(reason: str) -> str:
    reason = reason.strip()
    reason = re.sub(r"^[:-]\s*", "", reason)
    reason = re.sub(r"\s+", " ", reason)
    return reason.rstrip(".")


def _unique(items: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _process_match(match: PodcastMatch) -> ProcessedMatch:
    display_reasons = _unique([format_reason(r) for r in match.match_reasons])
    data = match.model_dump(include=set(PodcastMatch.model_fields))
    return ProcessedMatch(
        **data,
        quality_level=determine_quality_level(match.confidence),
        match_strength=calculate_match_strength(match),
        display_reasons=display_reasons,
        applied_filters=display_reasons,
    )


def _option_filters(options: ProcessingOptions) -> list[str]:
    filters: list[str] = []
    if options.min_confidence is not None:
        filters.append(f"Minimum confidence: {options.min_confidence}")
    if options.min_match_strength is not None:
        filters.append(f"Minimum match strength: {options.min_match_strength}")
    if options.max_results is not None:
        filters.append(f"Limited to {options.max_results} results")
    return filters


def process_results(
    matches: Sequence[PodcastMatch], options: ProcessingOptions | None = None
) -> ProcessedResults:
    """
    Validate, rank and annotate a batch of matches.

    Validation is all-or-nothing: matches are computed internally and should
    never be malformed, so a single bad record fails the whole batch with
    MatchValidationError ("Invalid match data") rather than being skipped.

    Args:
        matches: Scored matches, in any order; previously processed matches are accepted
        options: Optional confidence/strength minimums and a result limit

    Returns:
        ProcessedResults with ranks 1..n and the union of every match's reasons
        in applied_filters
    """
    started = time.perf_counter()
    options = options or ProcessingOptions()

    for match in matches:
        if not validate_match(match):
            raise MatchValidationError(match)

    processed = [_process_match(m) for m in matches]

    applied_filters = _unique([f for m in processed for f in m.applied_filters])
    applied_filters.extend(_option_filters(options))

    if options.min_confidence is not None:
        processed = [m for m in processed if m.confidence >= options.min_confidence]
    if options.min_match_strength is not None:
        processed = [m for m in processed if m.match_strength >= options.min_match_strength]

    processed.sort(key=lambda m: (round(m.match_strength, 3), m.confidence), reverse=True)
    for rank, match in enumerate(processed, start=1):
        match.rank = rank

    top = processed[: options.max_results] if options.max_results else processed
    average_confidence = (
        sum(m.confidence for m in processed) / len(processed) if processed else 0.0
    )

    return ProcessedResults(
        top_matches=top,
        total_matches=len(matches),
        average_confidence=average_confidence,
        processing_time_ms=(time.perf_counter() - started) * 1000,
        applied_filters=applied_filters,
    )
