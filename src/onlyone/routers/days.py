"""Days router.

POST /days/overlap
    Compare two day summaries activity by activity.

POST /days/similar
    Rank other day summaries by overlap with one day and split its
    activities into unique and common ones.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..lib.days import (
    ActivityMatch,
    DayCandidate,
    DayMatchResult,
    calculate_day_overlap,
    categorize_activities_by_rarity,
    day_scope_threshold,
    extract_activities,
    find_similar_days,
)
from ..lib.embeddings import EmbeddingUnavailable
from ..models import MAX_CONTENT_LENGTH, MIN_CONTENT_LENGTH, Scope
from ..security import verify_api_key

router = APIRouter(tags=["days"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)

MAX_CANDIDATE_DAYS = 50


class DayOverlapRequest(BaseModel):
    day_a: str = Field(..., min_length=MIN_CONTENT_LENGTH, max_length=MAX_CONTENT_LENGTH)
    day_b: str = Field(..., min_length=MIN_CONTENT_LENGTH, max_length=MAX_CONTENT_LENGTH)
    scope: Scope = "world"


class DayOverlapResponse(BaseModel):
    activities_a: list[str]
    activities_b: list[str]
    overlap_percentage: float
    matched_count: int
    is_similar: bool
    details: list[ActivityMatch]


async def _embed_activities(request: Request, activities: list[str]) -> list[list[float]]:
    embedder = getattr(request.app.state, "embedder", None)
    if embedder is None:
        raise HTTPException(status_code=503, detail="Embedding model unavailable")
    try:
        return await embedder.embed_many(activities)
    except EmbeddingUnavailable as exc:
        logger.warning("Day comparison requested while embeddings are unavailable: %s", exc)
        raise HTTPException(status_code=503, detail="Embedding model unavailable") from exc


@router.post("/days/overlap", response_model=DayOverlapResponse)
async def days_overlap(request: Request, payload: DayOverlapRequest) -> DayOverlapResponse:
    activities_a = extract_activities(payload.day_a)
    activities_b = extract_activities(payload.day_b)

    embeddings = await _embed_activities(request, activities_a + activities_b)

    split = len(activities_a)
    overlap = calculate_day_overlap(
        activities_a, embeddings[:split], activities_b, embeddings[split:], payload.scope
    )
    return DayOverlapResponse(
        activities_a=activities_a,
        activities_b=activities_b,
        overlap_percentage=overlap.overlap_percentage,
        matched_count=overlap.matched_count,
        is_similar=overlap.overlap_percentage >= day_scope_threshold(payload.scope),
        details=overlap.details,
    )


class SimilarDaysRequest(BaseModel):
    day: str = Field(..., min_length=MIN_CONTENT_LENGTH, max_length=MAX_CONTENT_LENGTH)
    candidates: list[str] = Field(
        ..., min_length=1, max_length=MAX_CANDIDATE_DAYS,
        description="Other day summaries; results refer to them by list index",
    )
    scope: Scope = "world"


class SimilarDaysResponse(BaseModel):
    activities: list[str]
    similar_days: list[DayMatchResult]
    unique_activities: list[str]
    common_activities: list[str]


@router.post("/days/similar", response_model=SimilarDaysResponse)
async def similar_days(request: Request, payload: SimilarDaysRequest) -> SimilarDaysResponse:
    """Rank candidate days by overlap and split the day's activities by rarity."""
    activities = extract_activities(payload.day)
    candidate_activities = [extract_activities(text) for text in payload.candidates]

    flat = activities + [a for group in candidate_activities for a in group]
    embeddings = await _embed_activities(request, flat)

    candidates: list[DayCandidate] = []
    offset = len(activities)
    for index, group in enumerate(candidate_activities):
        candidates.append(
            DayCandidate(
                id=str(index),
                activities=group,
                embeddings=embeddings[offset:offset + len(group)],
            )
        )
        offset += len(group)

    matches = find_similar_days(activities, embeddings[: len(activities)], candidates, payload.scope)
    unique, common = categorize_activities_by_rarity(activities, matches)
    return SimilarDaysResponse(
        activities=activities,
        similar_days=matches,
        unique_activities=unique,
        common_activities=common,
    )
