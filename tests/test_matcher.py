"""Integration tests for the matching worker against SQLite."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import update

from src.domain.distance import KM_PER_DEGREE
from src.domain.enums import MatchOutcome
from src.infrastructure.models import RideModel
from src.infrastructure.repositories import RideRepository
from src.workers.matcher import MatchContention, _claim, match_one
from tests.conftest import TOKYO_STATION, no_sleep


def _north_of_station(km: float) -> tuple[float, float]:
    return TOKYO_STATION[0] + km / KM_PER_DEGREE, TOKYO_STATION[1]


async def _match(session_factory, **kwargs):
    kwargs.setdefault("step_km", 25.0)
    kwargs.setdefault("max_km", 150.0)
    kwargs.setdefault("sleep", no_sleep)
    return await match_one(session_factory, **kwargs)


@pytest.mark.asyncio
async def test_no_ride_available(session_factory, factory):
    await factory.chair(*TOKYO_STATION)

    result = await _match(session_factory)

    assert result.outcome is MatchOutcome.NO_RIDE
    assert result.ride_id is None


@pytest.mark.asyncio
async def test_tokyo_example_matches_on_first_ring(session_factory, factory):
    user = await factory.user()
    ride_id = await factory.ride(user)
    chair_id = await factory.chair(35.690, 139.700)

    result = await _match(session_factory)

    assert result.outcome is MatchOutcome.MATCHED
    assert result.ride_id == ride_id
    assert result.chair_id == chair_id
    assert 5.5 < result.distance_km < 6.5
    assert (await factory.get_ride(ride_id)).chair_id == chair_id
    assert (await factory.get_chair(chair_id)).is_in_use is True


@pytest.mark.asyncio
async def test_oldest_ride_is_matched_first(session_factory, factory):
    user = await factory.user()
    newer = await factory.ride(user, minutes=5)
    older = await factory.ride(user, minutes=1)
    await factory.chair(*TOKYO_STATION)

    result = await _match(session_factory)

    assert result.ride_id == older
    assert (await factory.get_ride(newer)).chair_id is None


@pytest.mark.asyncio
async def test_nearest_eligible_chair_selected(session_factory, factory):
    user = await factory.user()
    await factory.ride(user)
    await factory.chair(*_north_of_station(12))
    nearest = await factory.chair(*_north_of_station(2))
    await factory.chair(*_north_of_station(0.5), active=False)
    await factory.chair(*_north_of_station(0.1), in_use=True)

    result = await _match(session_factory)

    assert result.chair_id == nearest
    assert result.distance_km == pytest.approx(2.0, rel=1e-3)


@pytest.mark.asyncio
async def test_latest_location_sample_is_used(session_factory, factory):
    user = await factory.user()
    ride_id = await factory.ride(user)
    chair_id = await factory.chair(*TOKYO_STATION)
    await factory.move(chair_id, *_north_of_station(400))

    result = await _match(session_factory)

    assert result.outcome is MatchOutcome.NO_CHAIR
    assert result.ride_id == ride_id


@pytest.mark.asyncio
async def test_chair_beyond_first_ring_found_after_expansion(session_factory, factory):
    user = await factory.user()
    ride_id = await factory.ride(user)
    chair_id = await factory.chair(*_north_of_station(60))
    sleeps: list[float] = []

    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)

    result = await _match(session_factory, sleep=sleep, delay_seconds=0.1)

    assert result.outcome is MatchOutcome.MATCHED
    assert (await factory.get_ride(ride_id)).chair_id == chair_id
    assert sleeps == [0.1, 0.1]


@pytest.mark.asyncio
async def test_no_chair_within_ceiling_writes_nothing(session_factory, factory):
    user = await factory.user()
    ride_id = await factory.ride(user)
    far = await factory.chair(*_north_of_station(200))
    inactive = await factory.chair(*TOKYO_STATION, active=False)

    result = await _match(session_factory)

    assert result.outcome is MatchOutcome.NO_CHAIR
    assert (await factory.get_ride(ride_id)).chair_id is None
    assert (await factory.get_chair(far)).is_in_use is False
    assert (await factory.get_chair(inactive)).is_in_use is False


@pytest.mark.asyncio
async def test_repeated_invocations_drain_queue(session_factory, factory):
    user = await factory.user()
    rides = [await factory.ride(user, minutes=i) for i in range(3)]
    chairs = [await factory.chair(*_north_of_station(i + 1)) for i in range(2)]

    outcomes = [(await _match(session_factory)).outcome for _ in range(3)]

    assert outcomes == [
        MatchOutcome.MATCHED,
        MatchOutcome.MATCHED,
        MatchOutcome.NO_CHAIR,
    ]
    assignments = await factory.assignments()
    assert set(assignments) == set(rides[:2])
    assert sorted(assignments.values()) == sorted(chairs)


@pytest.mark.asyncio
async def test_chair_found_across_the_antimeridian(session_factory, factory):
    user = await factory.user()
    ride_id = await factory.ride(user, pickup=(0.0, 179.95))
    chair_id = await factory.chair(0.0, -179.95)

    result = await _match(session_factory)

    assert result.outcome is MatchOutcome.MATCHED
    assert result.ride_id == ride_id
    assert result.chair_id == chair_id
    assert result.distance_km == pytest.approx(0.1 * KM_PER_DEGREE, rel=1e-3)


@pytest.mark.asyncio
async def test_ride_matched_during_search_is_not_reported_as_no_chair(
    session_factory, factory
):
    user = await factory.user()
    ride_id = await factory.ride(user)
    other_chair = await factory.chair(*_north_of_station(400))

    async def sleep(_seconds: float) -> None:
        # Another matcher commits this ride while the rings expand.
        async with session_factory() as session:
            await session.execute(
                update(RideModel)
                .where(RideModel.id == ride_id)
                .values(chair_id=other_chair)
            )
            await session.commit()

    result = await _match(session_factory, sleep=sleep)

    assert result.outcome is MatchOutcome.NO_RIDE


@pytest.mark.asyncio
async def test_exhausted_claims_report_contention_not_no_chair(
    session_factory, factory
):
    user = await factory.user()
    ride_id = await factory.ride(user)
    chair_id = await factory.chair(*TOKYO_STATION)
    lost = AsyncMock(return_value=False)

    with patch("src.workers.matcher._claim", lost):
        result = await _match(session_factory, claim_attempts=2)

    assert result.outcome is MatchOutcome.FAILURE
    assert isinstance(result.error, MatchContention)
    assert lost.await_count == 2
    assert (await factory.get_ride(ride_id)).chair_id is None
    assert (await factory.get_chair(chair_id)).is_in_use is False


@pytest.mark.asyncio
async def test_explicit_zero_claim_attempts_is_honoured(session_factory, factory):
    user = await factory.user()
    await factory.ride(user)
    await factory.chair(*TOKYO_STATION)
    lost = AsyncMock(return_value=False)

    with patch("src.workers.matcher._claim", lost):
        result = await _match(session_factory, claim_attempts=0)

    assert result.outcome is MatchOutcome.FAILURE
    lost.assert_not_awaited()


@pytest.mark.asyncio
async def test_storage_error_reports_failure(broken_session_factory):
    result = await _match(broken_session_factory)

    assert result.outcome is MatchOutcome.FAILURE
    assert result.error is not None


class TestClaim:
    @pytest.mark.asyncio
    async def test_claim_assigns_both_sides(self, session_factory, factory):
        user = await factory.user()
        ride_id = await factory.ride(user)
        chair_id = await factory.chair(*TOKYO_STATION)

        assert await _claim(session_factory, ride_id, chair_id) is True
        assert (await factory.get_ride(ride_id)).chair_id == chair_id
        assert (await factory.get_chair(chair_id)).is_in_use is True

    @pytest.mark.asyncio
    async def test_ride_already_matched(self, session_factory, factory):
        user = await factory.user()
        first = await factory.chair(*TOKYO_STATION)
        second = await factory.chair(*TOKYO_STATION)
        ride_id = await factory.ride(user, chair_id=first)

        assert await _claim(session_factory, ride_id, second) is False
        assert (await factory.get_ride(ride_id)).chair_id == first
        assert (await factory.get_chair(second)).is_in_use is False

    @pytest.mark.asyncio
    async def test_chair_taken_rolls_back_ride(self, session_factory, factory):
        user = await factory.user()
        ride_id = await factory.ride(user)
        chair_id = await factory.chair(*TOKYO_STATION, in_use=True)

        assert await _claim(session_factory, ride_id, chair_id) is False
        assert (await factory.get_ride(ride_id)).chair_id is None

    @pytest.mark.asyncio
    async def test_lock_unmatched_rejects_matched_ride(self, session_factory, factory):
        user = await factory.user()
        chair_id = await factory.chair(*TOKYO_STATION)
        matched = await factory.ride(user, chair_id=chair_id)
        waiting = await factory.ride(user, minutes=1)

        async with session_factory() as session:
            rides = RideRepository(session)
            assert await rides.lock_unmatched(matched) is False
            assert await rides.lock_unmatched(waiting) is True
