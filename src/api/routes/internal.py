"""
Internal endpoints (operator / timer facing)
============================================

GET /api/internal/matching -- run one matching attempt

Matched, no-ride and no-chair all answer ``204``; the outcome is echoed in
the ``X-Matching-Outcome`` header.  A storage failure, or an attempt that
lost every claim to concurrent matchers, answers ``500`` so the poller
retries.
"""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.dependencies import get_session_factory
from src.api.schemas import ErrorResponse
from src.domain.enums import MatchOutcome
from src.workers.matcher import match_one

router = APIRouter(prefix="/internal", tags=["internal"])


@router.get(
    "/matching",
    status_code=204,
    summary="Match the oldest waiting ride with the nearest chair",
    responses={500: {"model": ErrorResponse}},
)
async def trigger_matching(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    result = await match_one(session_factory)
    if result.outcome is MatchOutcome.FAILURE:
        raise HTTPException(status_code=500, detail=str(result.error))
    return Response(
        status_code=204, headers={"X-Matching-Outcome": result.outcome.value}
    )
