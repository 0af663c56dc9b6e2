"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 5 sample users (each with a payment-gateway token)
  - 10 sample chairs with location history around Tokyo Station
  - 6 sample rides (mix of waiting, in progress, arrived and completed)
"""

import asyncio
import secrets

from sqlalchemy import text

from src.domain.enums import RideStatus
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import (
    ChairModel,
    RideModel,
    RideStatusModel,
    UserModel,
)
from src.infrastructure.repositories import ChairLocationRepository


USERS = ["Haruto Sato", "Yui Suzuki", "Sota Takahashi", "Hina Tanaka", "Ren Ito"]

CHAIRS = [
    # Near the station
    {"name": "Azalea", "model": "Standard", "active": True, "track": [(35.6800, 139.7650), (35.6805, 139.7660)]},
    {"name": "Birch", "model": "Standard", "active": True, "track": [(35.6850, 139.7700)]},
    {"name": "Cedar", "model": "Comfort", "active": True, "track": [(35.6900, 139.7000)]},  # Shinjuku side
    {"name": "Dahlia", "model": "Comfort", "active": False, "track": [(35.6810, 139.7670)]},  # off duty
    # Further out
    {"name": "Elm", "model": "Standard", "active": True, "track": [(35.4437, 139.6380)]},  # Yokohama
    {"name": "Fir", "model": "Sport", "active": True, "track": [(35.8617, 139.6455)]},  # Saitama
    {"name": "Ginkgo", "model": "Sport", "active": True, "track": [(36.3911, 139.0608)]},  # Maebashi
    # In use
    {"name": "Hazel", "model": "Standard", "active": True, "track": [(35.6580, 139.7016)]},
    {"name": "Iris", "model": "Comfort", "active": True, "track": [(35.6284, 139.7387)]},
    {"name": "Juniper", "model": "Standard", "active": True, "track": [(35.7100, 139.8107)]},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        user_models = []
        for name in USERS:
            m = UserModel(name=name, payment_token=secrets.token_hex(16))
            session.add(m)
            user_models.append(m)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Chairs + location history ─────────────────────────────────
        chair_models = []
        for c in CHAIRS:
            m = ChairModel(
                owner_id=1,
                name=c["name"],
                model=c["model"],
                is_active=c["active"],
                is_in_use=False,
            )
            session.add(m)
            chair_models.append(m)
        await session.flush()
        locations = ChairLocationRepository(session)
        for m, c in zip(chair_models, CHAIRS):
            for lat, lng in c["track"]:
                await locations.add(m.id, lat, lng)
        print(f"  Created {len(chair_models)} chairs")

        # ── Rides ─────────────────────────────────────────────────────
        rides_data = [
            # Waiting for a chair
            {"user": 0, "pickup": (35.6812, 139.7671), "dest": (35.6586, 139.7454),
             "chair": None, "statuses": [RideStatus.MATCHING]},
            {"user": 1, "pickup": (35.6895, 139.6917), "dest": (35.7295, 139.7109),
             "chair": None, "statuses": [RideStatus.MATCHING]},
            # In progress
            {"user": 2, "pickup": (35.6580, 139.7016), "dest": (35.6654, 139.7707),
             "chair": 7, "statuses": [RideStatus.MATCHING, RideStatus.ENROUTE,
                                      RideStatus.PICKUP, RideStatus.CARRYING]},
            # Arrived, waiting for settlement
            {"user": 3, "pickup": (35.6284, 139.7387), "dest": (35.6467, 139.7101),
             "chair": 8, "statuses": [RideStatus.MATCHING, RideStatus.ENROUTE,
                                      RideStatus.PICKUP, RideStatus.CARRYING,
                                      RideStatus.ARRIVED]},
            {"user": 4, "pickup": (35.7100, 139.8107), "dest": (35.6995, 139.7745),
             "chair": 9, "statuses": [RideStatus.MATCHING, RideStatus.ENROUTE,
                                      RideStatus.PICKUP, RideStatus.CARRYING,
                                      RideStatus.ARRIVED]},
            # Completed and settled
            {"user": 3, "pickup": (35.6812, 139.7671), "dest": (35.6938, 139.7034),
             "chair": 0, "statuses": [RideStatus.MATCHING, RideStatus.ENROUTE,
                                      RideStatus.PICKUP, RideStatus.CARRYING,
                                      RideStatus.ARRIVED, RideStatus.COMPLETED]},
        ]

        for r in rides_data:
            chair_id = chair_models[r["chair"]].id if r["chair"] is not None else None
            ride = RideModel(
                user_id=user_models[r["user"]].id,
                chair_id=chair_id,
                pickup_lat=r["pickup"][0],
                pickup_lng=r["pickup"][1],
                destination_lat=r["dest"][0],
                destination_lng=r["dest"][1],
            )
            session.add(ride)
            await session.flush()
            for status in r["statuses"]:
                session.add(RideStatusModel(ride_id=ride.id, status=status))
            if chair_id is not None and RideStatus.COMPLETED not in r["statuses"]:
                chair_models[r["chair"]].is_in_use = True
        await session.flush()
        print(f"  Created {len(rides_data)} rides")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
