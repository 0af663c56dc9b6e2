"""
Settlement Service (trip-completion step).

Flow:
1. Take the per-ride Redis lock (at most one settlement in flight per ride)
2. Validate the ride's latest status allows ARRIVED -> COMPLETED
3. Compute the fare
4. Submit through the payment gateway client (retry + reconciliation)
5. Append COMPLETED to the status log and release the chair

The ledger handed to the gateway client for reconciliation is the user's
completed rides plus the ride being settled, oldest first.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain.entities import Location, Ride
from src.domain.enums import RideStatus
from src.domain.pricing import FareCalculator
from src.infrastructure.locks import DistributedLock
from src.infrastructure.payment_gateway import PaymentGatewayClient, SettlementError
from src.infrastructure.repositories import (
    ChairRepository,
    RideRepository,
    RideStatusRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[str], PaymentGatewayClient]


class RideNotFound(Exception):
    pass


class SettlementTimeout(SettlementError):
    """The caller's deadline elapsed; no further retry was scheduled."""


@dataclass(frozen=True)
class SettlementReceipt:
    ride_id: int
    amount: int


def default_gateway_factory(token: str) -> PaymentGatewayClient:
    return PaymentGatewayClient(
        settings.payment_gateway_url,
        token,
        max_retry=settings.payment_max_retry,
        backoff_base_seconds=settings.payment_backoff_base_seconds,
        backoff_jitter_seconds=settings.payment_backoff_jitter_seconds,
        timeout_seconds=settings.payment_request_timeout_seconds,
    )


class SettlementService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis: aioredis.Redis,
        *,
        gateway_factory: GatewayFactory = default_gateway_factory,
        fare_calculator: Optional[FareCalculator] = None,
        timeout_seconds: Optional[float] = None,
        lock_ttl_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.redis = redis
        self.gateway_factory = gateway_factory
        self.fare_calculator = fare_calculator or FareCalculator(
            settings.initial_fare, settings.fare_per_km
        )
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.payment_settlement_timeout_seconds
        )
        self.lock_ttl_seconds = lock_ttl_seconds or settings.settlement_lock_ttl_seconds

    async def settle(self, ride_id: int) -> SettlementReceipt:
        """
        Settle *ride_id* and mark it COMPLETED.

        Raises ``RideNotFound``, ``InvalidStateTransition``,
        ``LockNotAcquired``, ``SettlementTimeout`` or
        ``RetryBudgetExhausted``.  Nothing is written unless the gateway
        settlement succeeded.
        """
        lock = DistributedLock(
            self.redis, f"settlement:{ride_id}", ttl_seconds=self.lock_ttl_seconds
        )
        async with lock:
            ride, token = await self._load(ride_id)
            ride.transition_to(RideStatus.COMPLETED)
            amount = self.fare_calculator.calculate_fare(ride.pickup, ride.destination)

            async def retrieve_rides():
                async with self.session_factory() as session:
                    return await RideRepository(session).list_settled_or_settling(
                        ride.user_id, ride_id
                    )

            logger.info("Settling ride %d (amount=%d)", ride_id, amount)
            async with self.gateway_factory(token) as gateway:
                try:
                    await asyncio.wait_for(
                        gateway.post_payment(amount, retrieve_rides),
                        timeout=self.timeout_seconds,
                    )
                except asyncio.TimeoutError as exc:
                    logger.error(
                        "Settlement of ride %d timed out after %.1fs",
                        ride_id, self.timeout_seconds,
                    )
                    raise SettlementTimeout(
                        f"settlement of ride {ride_id} timed out"
                    ) from exc

            async with self.session_factory() as session:
                await RideStatusRepository(session).append(ride_id, RideStatus.COMPLETED)
                if ride.chair_id is not None:
                    await ChairRepository(session).release(ride.chair_id)
                await session.commit()

        logger.info("Ride %d settled", ride_id)
        return SettlementReceipt(ride_id=ride_id, amount=amount)

    async def _load(self, ride_id: int) -> tuple[Ride, str]:
        async with self.session_factory() as session:
            row = await RideRepository(session).get_by_id(ride_id)
            if row is None:
                raise RideNotFound(f"Ride {ride_id} not found")
            status = await RideStatusRepository(session).latest(ride_id)
            user = await UserRepository(session).get_by_id(row.user_id)
            if user is None:
                raise RideNotFound(f"User {row.user_id} of ride {ride_id} not found")

            ride = Ride(
                id=row.id,
                user_id=row.user_id,
                pickup=Location(row.pickup_lat, row.pickup_lng),
                destination=Location(row.destination_lat, row.destination_lng),
                chair_id=row.chair_id,
                status=RideStatus(status) if status else RideStatus.MATCHING,
                created_at=row.created_at,
            )
            return ride, user.payment_token
