"""
Dispatch Matching Worker
========================

``match_one`` performs a single, stateless matching attempt.  It is driven
either by the background loop below (every ``MATCHING_INTERVAL_SECONDS``)
or by ``GET /api/internal/matching`` from an external poller.

Concurrency safety
------------------
* No lock is held while searching.  The oldest-ride look-up and every
  search ring run in their own short read sessions, so the pause between
  rings never keeps a transaction open.
* The look-up skips rides whose claim transaction is in flight
  (``FOR UPDATE SKIP LOCKED``).
* The claim is one transaction: row-lock the ride with ``SKIP LOCKED``
  while it is still unmatched, then two **conditional UPDATEs** (the ride
  only while ``chair_id IS NULL``, the chair only while active and not in
  use).  Zero rows on either side rolls the transaction back.
* A lost claim means another invocation matched that ride or chair, so
  the attempt restarts from the top and selects the next-oldest ride.
  The same holds when the search finds nothing but the ride was matched
  meanwhile.  Restarts are bounded by ``MATCHING_CLAIM_ATTEMPTS``; running
  out is reported as FAILURE (``MatchContention``), never as NO_CHAIR.

Outcome per attempt
-------------------
MATCHED | NO_RIDE | NO_CHAIR (nothing eligible within the ceiling) |
FAILURE (storage error or claim contention, rolled back).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain.distance import BoundingBox
from src.domain.enums import MatchOutcome
from src.domain.matching import ChairCandidate, Sleep, expanding_search
from src.infrastructure.database import async_session_factory
from src.infrastructure.repositories import ChairRepository, RideRepository

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


@dataclass(frozen=True)
class MatchResult:
    outcome: MatchOutcome
    ride_id: Optional[int] = None
    chair_id: Optional[int] = None
    distance_km: Optional[float] = None
    error: Optional[BaseException] = None


class MatchContention(Exception):
    """Every claim in one invocation was lost to concurrent matchers."""


# ── Public API ────────────────────────────────────────────────────────


async def start_matching_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Matching worker started (interval=%.2fs)", settings.matching_interval_seconds
    )


async def stop_matching_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Matching worker stopped")


async def match_one(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    step_km: float | None = None,
    max_km: float | None = None,
    delay_seconds: float | None = None,
    claim_attempts: int | None = None,
    sleep: Sleep = asyncio.sleep,
) -> MatchResult:
    """Match the oldest unmatched ride with the nearest eligible chair."""
    factory = session_factory or async_session_factory
    step = step_km if step_km is not None else settings.matching_step_distance_km
    ceiling = max_km if max_km is not None else settings.matching_max_distance_km
    delay = (
        delay_seconds
        if delay_seconds is not None
        else settings.matching_expand_delay_seconds
    )
    attempts = (
        claim_attempts
        if claim_attempts is not None
        else settings.matching_claim_attempts
    )

    async def find_candidates(box: BoundingBox) -> list[ChairCandidate]:
        async with factory() as session:
            return await ChairRepository(session).find_available_in_box(box)

    ride_id: Optional[int] = None
    try:
        for attempt in range(1, attempts + 1):
            async with factory() as session:
                ride = await RideRepository(session).get_oldest_unmatched()
                if ride is None:
                    return MatchResult(MatchOutcome.NO_RIDE)
                ride_id = ride.id
                pickup_lat, pickup_lng = ride.pickup_lat, ride.pickup_lng

            chair = await expanding_search(
                find_candidates,
                pickup_lat,
                pickup_lng,
                step_km=step,
                max_km=ceiling,
                sleep=sleep,
                delay_seconds=delay,
            )
            if chair is None:
                if await _still_unmatched(factory, ride_id):
                    logger.info(
                        "No chair within %.1f km for ride %d", ceiling, ride_id
                    )
                    return MatchResult(MatchOutcome.NO_CHAIR, ride_id=ride_id)
                logger.info(
                    "Ride %d matched elsewhere during search (attempt %d/%d)",
                    ride_id, attempt, attempts,
                )
                continue

            if await _claim(factory, ride_id, chair.chair_id):
                logger.info(
                    "Matched ride %d with chair %d (%.3f km, ring %.1f km)",
                    ride_id, chair.chair_id, chair.distance_km, chair.radius_km,
                )
                return MatchResult(
                    MatchOutcome.MATCHED,
                    ride_id=ride_id,
                    chair_id=chair.chair_id,
                    distance_km=chair.distance_km,
                )

            logger.info(
                "Claim conflict on ride %d / chair %d (attempt %d/%d)",
                ride_id, chair.chair_id, attempt, attempts,
            )
    except SQLAlchemyError as exc:
        logger.exception("Storage error in matching attempt")
        return MatchResult(MatchOutcome.FAILURE, ride_id=ride_id, error=exc)

    logger.warning("Matching gave up after %d contended attempts", attempts)
    return MatchResult(
        MatchOutcome.FAILURE,
        ride_id=ride_id,
        error=MatchContention(f"all {attempts} claim attempts were contended"),
    )


# ── Internals ─────────────────────────────────────────────────────────


async def _claim(
    factory: async_sessionmaker[AsyncSession], ride_id: int, chair_id: int
) -> bool:
    """Assign *chair_id* to *ride_id* atomically; False if either was taken."""
    async with factory() as session:
        rides = RideRepository(session)
        if not await rides.lock_unmatched(ride_id):
            await session.rollback()
            return False
        if not await rides.claim(ride_id, chair_id):
            await session.rollback()
            return False
        if not await ChairRepository(session).claim(chair_id):
            await session.rollback()
            return False
        await session.commit()
        return True


async def _still_unmatched(
    factory: async_sessionmaker[AsyncSession], ride_id: int
) -> bool:
    async with factory() as session:
        ride = await RideRepository(session).get_by_id(ride_id)
        return ride is not None and ride.chair_id is None


async def _loop() -> None:
    """Periodic loop: run one matching attempt then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await match_one()
        except Exception:
            logger.exception("Unhandled error in matching attempt")
        # Wait for the interval or until stop is signalled
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.matching_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next attempt
