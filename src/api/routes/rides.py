"""
Ride endpoints
==============

POST /api/v1/rides                  -- create a ride request (returns 202 Accepted)
GET  /api/v1/rides/{ride_id}        -- check status and assigned chair
POST /api/v1/rides/{ride_id}/settle -- charge the fare and complete the ride
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_settlement_service
from src.api.middleware import limiter
from src.api.schemas import (
    ErrorResponse,
    RideCreateRequest,
    RideResponse,
    SettlementResponse,
)
from src.domain.entities import InvalidStateTransition
from src.domain.enums import RideStatus
from src.infrastructure.locks import LockNotAcquired
from src.infrastructure.payment_gateway import RetryBudgetExhausted
from src.infrastructure.repositories import (
    RideRepository,
    RideStatusRepository,
    UserRepository,
)
from src.services.settlement import RideNotFound, SettlementService, SettlementTimeout

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rides", tags=["rides"])


def _to_response(ride, status) -> RideResponse:
    response = RideResponse.model_validate(ride)
    response.status = status.value if hasattr(status, "value") else status
    return response


@router.post(
    "",
    status_code=202,
    response_model=RideResponse,
    summary="Create a ride request",
    responses={202: {"description": "Ride request accepted; matching is async."}},
)
@limiter.limit("100/minute")
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    if await UserRepository(db).get_by_id(body.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    ride = await RideRepository(db).create_ride(
        user_id=body.user_id,
        pickup_lat=body.pickup_lat,
        pickup_lng=body.pickup_lng,
        destination_lat=body.destination_lat,
        destination_lng=body.destination_lng,
    )
    await RideStatusRepository(db).append(ride.id, RideStatus.MATCHING)
    return _to_response(ride, RideStatus.MATCHING)


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get ride status and assigned chair",
)
@limiter.limit("100/minute")
async def get_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    ride = await RideRepository(db).get_by_id(ride_id)
    if not ride:
        raise HTTPException(status_code=404, detail="Ride not found")
    status = await RideStatusRepository(db).latest(ride_id)
    return _to_response(ride, status)


@router.post(
    "/{ride_id}/settle",
    response_model=SettlementResponse,
    summary="Charge the fare and mark the ride completed",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
@limiter.limit("100/minute")
async def settle_ride(
    request: Request,
    ride_id: int,
    service: SettlementService = Depends(get_settlement_service),
):
    try:
        receipt = await service.settle(ride_id)
    except RideNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (InvalidStateTransition, LockNotAcquired) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except SettlementTimeout as exc:
        raise HTTPException(status_code=504, detail=str(exc))
    except RetryBudgetExhausted as exc:
        logger.error(
            "Ride %d needs manual payment review: %s", ride_id, exc.last_error
        )
        raise HTTPException(status_code=502, detail=str(exc))

    return SettlementResponse(ride_id=receipt.ride_id, amount=receipt.amount)
