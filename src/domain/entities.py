"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (MATCHING -> ENROUTE -> PICKUP -> CARRYING -> ARRIVED -> COMPLETED).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import RideStatus, RIDE_TRANSITIONS


class InvalidStateTransition(Exception):
    """Raised when a ride status change violates the state machine."""


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: Optional[int] = None
    user_id: int = 0
    pickup: Location = field(default_factory=lambda: Location(0, 0))
    destination: Location = field(default_factory=lambda: Location(0, 0))
    chair_id: Optional[int] = None
    status: RideStatus = RideStatus.MATCHING
    created_at: Optional[datetime] = None

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = RIDE_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
