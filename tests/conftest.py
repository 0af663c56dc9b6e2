"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) per test so that the
matcher's separate sessions see each other's commits, and concurrent
claimers contend on real database locks.  Redis is mocked; the payment
gateway is served by ``httpx.MockTransport``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import AsyncGenerator, Iterable, Optional
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.domain.enums import RideStatus
from src.infrastructure import models  # noqa: F401  (registers tables)
from src.infrastructure.database import Base
from src.infrastructure.models import (
    ChairModel,
    RideModel,
    RideStatusModel,
    UserModel,
)
from src.infrastructure.payment_gateway import PaymentGatewayClient
from src.infrastructure.repositories import ChairLocationRepository

TOKYO_STATION = (35.681, 139.767)
BASE_TIME = datetime(2026, 1, 1, 9, 0, 0)


async def no_sleep(_seconds: float) -> None:
    return None


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(
    tmp_path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables in a fresh SQLite file, yield a session factory."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def broken_session_factory(
    tmp_path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """A database without any tables: every query raises."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}", echo=False
    )
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


class Factory:
    """Inserts rows and reads them back through short-lived sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def user(self, name: str = "Test User", token: str = "token-1") -> int:
        async with self.session_factory() as session:
            user = UserModel(name=name, payment_token=token)
            session.add(user)
            await session.commit()
            return user.id

    async def chair(
        self,
        lat: float,
        lng: float,
        *,
        active: bool = True,
        in_use: bool = False,
        name: str = "chair",
    ) -> int:
        async with self.session_factory() as session:
            chair = ChairModel(
                owner_id=1,
                name=name,
                model="Standard",
                is_active=active,
                is_in_use=in_use,
            )
            session.add(chair)
            await session.flush()
            await ChairLocationRepository(session).add(chair.id, lat, lng)
            await session.commit()
            return chair.id

    async def move(self, chair_id: int, lat: float, lng: float) -> None:
        async with self.session_factory() as session:
            await ChairLocationRepository(session).add(chair_id, lat, lng)
            await session.commit()

    async def ride(
        self,
        user_id: int,
        pickup: tuple[float, float] = TOKYO_STATION,
        destination: tuple[float, float] = (35.6586, 139.7454),
        *,
        minutes: int = 0,
        chair_id: Optional[int] = None,
        statuses: Iterable[RideStatus] = (RideStatus.MATCHING,),
    ) -> int:
        async with self.session_factory() as session:
            ride = RideModel(
                user_id=user_id,
                chair_id=chair_id,
                pickup_lat=pickup[0],
                pickup_lng=pickup[1],
                destination_lat=destination[0],
                destination_lng=destination[1],
                created_at=BASE_TIME + timedelta(minutes=minutes),
            )
            session.add(ride)
            await session.flush()
            for status in statuses:
                session.add(RideStatusModel(ride_id=ride.id, status=status))
            await session.commit()
            return ride.id

    async def arrived_ride(self, user_id: int, chair_id: int, **kwargs) -> int:
        return await self.ride(
            user_id,
            chair_id=chair_id,
            statuses=(
                RideStatus.MATCHING,
                RideStatus.ENROUTE,
                RideStatus.PICKUP,
                RideStatus.CARRYING,
                RideStatus.ARRIVED,
            ),
            **kwargs,
        )

    async def get_ride(self, ride_id: int) -> RideModel:
        async with self.session_factory() as session:
            return await session.get(RideModel, ride_id)

    async def get_chair(self, chair_id: int) -> ChairModel:
        async with self.session_factory() as session:
            return await session.get(ChairModel, chair_id)

    async def statuses(self, ride_id: int) -> list[RideStatus]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(RideStatusModel.status)
                .where(RideStatusModel.ride_id == ride_id)
                .order_by(RideStatusModel.id)
            )
            return list(result.scalars().all())

    async def assignments(self) -> dict[int, int]:
        """ride_id -> chair_id for every matched ride."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(RideModel.id, RideModel.chair_id).where(
                    RideModel.chair_id.is_not(None)
                )
            )
            return {row.id: row.chair_id for row in result.all()}


@pytest_asyncio.fixture
async def factory(session_factory) -> Factory:
    return Factory(session_factory)


# ── Redis / payment gateway ───────────────────────────────────────────


@pytest.fixture
def mock_redis() -> AsyncMock:
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.eval = AsyncMock(return_value=1)
    return redis


class FakeGateway:
    """Scriptable ``/payments`` endpoint recording every request."""

    def __init__(self):
        self.post_responses: list = []
        self.get_responses: list = []
        self.posts: list[httpx.Request] = []
        self.gets: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            self.posts.append(request)
            queue = self.post_responses
        else:
            self.gets.append(request)
            queue = self.get_responses
        # The last scripted response repeats once the queue is drained.
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def client(self, token: str = "token-1", **kwargs) -> PaymentGatewayClient:
        kwargs.setdefault("sleep", no_sleep)
        return PaymentGatewayClient(
            "http://gateway.test",
            token,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
            **kwargs,
        )


def payments(*amounts: int) -> httpx.Response:
    return httpx.Response(
        200, json=[{"amount": a, "status": "completed"} for a in amounts]
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
