"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  The conditional ``claim`` updates are the
exclusion mechanism for concurrent matching: the ``UPDATE`` takes the row
lock and its predicate is re-checked once a competing transaction commits.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import and_, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from .models import (
    ChairLocationModel,
    ChairModel,
    RideModel,
    RideStatusModel,
    UserModel,
)
from src.domain.distance import BoundingBox
from src.domain.enums import RideStatus
from src.domain.matching import ChairCandidate


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ride(
        self,
        *,
        user_id: int,
        pickup_lat: float,
        pickup_lng: float,
        destination_lat: float,
        destination_lng: float,
    ) -> RideModel:
        ride = RideModel(
            user_id=user_id,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            destination_lat=destination_lat,
            destination_lng=destination_lng,
        )
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_oldest_unmatched(self) -> Optional[RideModel]:
        """Oldest ride without a chair, skipping rides another claimer holds."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.chair_id.is_(None))
            .order_by(RideModel.created_at, RideModel.id)
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        return result.scalar_one_or_none()

    async def lock_unmatched(self, ride_id: int) -> bool:
        """Row-lock *ride_id* if it is still unmatched and not locked elsewhere.

        ``SKIP LOCKED`` makes a competing claimer give up at once instead of
        waiting for the holder to commit.
        """
        result = await self.session.execute(
            select(RideModel.id)
            .where(RideModel.id == ride_id, RideModel.chair_id.is_(None))
            .with_for_update(skip_locked=True)
        )
        return result.scalar_one_or_none() is not None

    async def claim(self, ride_id: int, chair_id: int) -> bool:
        """Set ``chair_id`` only if the ride is still unmatched."""
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, RideModel.chair_id.is_(None))
            .values(chair_id=chair_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_settled_or_settling(
        self, user_id: int, settling_ride_id: int
    ) -> list[RideModel]:
        """The user's completed rides plus *settling_ride_id*, oldest first."""
        completed = exists().where(
            RideStatusModel.ride_id == RideModel.id,
            RideStatusModel.status == RideStatus.COMPLETED,
        )
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.user_id == user_id,
                or_(RideModel.id == settling_ride_id, completed),
            )
            .order_by(RideModel.created_at, RideModel.id)
        )
        return list(result.scalars().all())

    async def count_unmatched(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(RideModel)
            .where(RideModel.chair_id.is_(None))
        )
        return result.scalar() or 0


class RideStatusRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, ride_id: int, status: RideStatus) -> RideStatusModel:
        entry = RideStatusModel(ride_id=ride_id, status=status)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def latest(self, ride_id: int) -> Optional[RideStatus]:
        result = await self.session.execute(
            select(RideStatusModel.status)
            .where(RideStatusModel.ride_id == ride_id)
            .order_by(RideStatusModel.created_at.desc(), RideStatusModel.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


class ChairRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, chair_id: int) -> Optional[ChairModel]:
        return await self.session.get(ChairModel, chair_id)

    async def find_available_in_box(self, box: BoundingBox) -> list[ChairCandidate]:
        """Eligible chairs whose most recent location lies inside *box*."""
        latest = select(
            ChairLocationModel.chair_id,
            ChairLocationModel.latitude,
            ChairLocationModel.longitude,
            func.row_number()
            .over(
                partition_by=ChairLocationModel.chair_id,
                order_by=(
                    ChairLocationModel.created_at.desc(),
                    ChairLocationModel.id.desc(),
                ),
            )
            .label("rn"),
        ).subquery()

        result = await self.session.execute(
            select(ChairModel.id, latest.c.latitude, latest.c.longitude)
            .join(latest, latest.c.chair_id == ChairModel.id)
            .where(
                and_(
                    latest.c.rn == 1,
                    ChairModel.is_active.is_(True),
                    ChairModel.is_in_use.is_(False),
                    latest.c.latitude.between(box.min_lat, box.max_lat),
                    or_(
                        *(
                            latest.c.longitude.between(lo, hi)
                            for lo, hi in box.lng_ranges()
                        )
                    ),
                )
            )
        )
        return [
            ChairCandidate(chair_id=row.id, latitude=row.latitude, longitude=row.longitude)
            for row in result.all()
        ]

    async def claim(self, chair_id: int) -> bool:
        """Flip ``is_in_use`` on only if the chair is still eligible."""
        result = await self.session.execute(
            update(ChairModel)
            .where(
                ChairModel.id == chair_id,
                ChairModel.is_active.is_(True),
                ChairModel.is_in_use.is_(False),
            )
            .values(is_in_use=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release(self, chair_id: int) -> None:
        await self.session.execute(
            update(ChairModel)
            .where(ChairModel.id == chair_id)
            .values(is_in_use=False)
            .execution_options(synchronize_session=False)
        )


class ChairLocationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self, chair_id: int, latitude: float, longitude: float
    ) -> ChairLocationModel:
        sample = ChairLocationModel(
            chair_id=chair_id, latitude=latitude, longitude=longitude
        )
        self.session.add(sample)
        await self.session.flush()
        return sample


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)
