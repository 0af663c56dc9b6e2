"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    user_id: int
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    destination_lat: float = Field(..., ge=-90, le=90)
    destination_lng: float = Field(..., ge=-180, le=180)


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    user_id: int
    chair_id: Optional[int] = None
    pickup_lat: float
    pickup_lng: float
    destination_lat: float
    destination_lng: float
    status: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SettlementResponse(BaseModel):
    ride_id: int
    amount: int
    status: str = "COMPLETED"


class MatchingStatsResponse(BaseModel):
    unmatched_rides: int


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
