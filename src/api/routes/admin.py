"""
Admin / observability endpoints
===============================

GET /api/v1/admin/matching-stats -- number of rides waiting for a chair
GET /api/v1/admin/health         -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.api.schemas import HealthResponse, MatchingStatsResponse
from src.infrastructure.repositories import RideRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/matching-stats",
    response_model=MatchingStatsResponse,
    summary="Count rides still waiting for a chair",
)
@limiter.limit("100/minute")
async def get_matching_stats(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    unmatched = await RideRepository(db).count_unmatched()
    return MatchingStatsResponse(unmatched_rides=unmatched)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
