"""Stats router.

GET /stats
    Post totals for today and for all time.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from ..security import verify_api_key
from .posts import get_post_service

router = APIRouter(tags=["stats"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


class TodayStats(BaseModel):
    total_posts: int
    unique_posts: int


class AllTimeStats(BaseModel):
    total_posts: int


class StatsResponse(BaseModel):
    today: TodayStats
    all_time: AllTimeStats


@router.get("/stats", response_model=StatsResponse)
async def get_stats(request: Request) -> StatsResponse:
    service = get_post_service(request)
    try:
        stats = await service.get_stats()
    except Exception as exc:
        logger.exception("Failed to load stats")
        raise HTTPException(status_code=502, detail="Failed to load stats") from exc
    return StatsResponse(
        today=TodayStats(total_posts=stats.today_total, unique_posts=stats.today_unique),
        all_time=AllTimeStats(total_posts=stats.all_time_total),
    )
