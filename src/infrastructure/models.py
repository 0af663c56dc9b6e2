"""
SQLAlchemy ORM models.

Tables
------
* ``users``            -- passengers, each holding a payment-gateway token
* ``chairs``           -- mobile service units (active / in-use flags)
* ``chair_locations``  -- append-only location samples per chair
* ``rides``            -- ride requests; ``chair_id`` is set once by matching
* ``ride_statuses``    -- append-only ride status log (latest entry wins)

Indexes
-------
* **B-Tree** on ``rides(chair_id, created_at)`` so the oldest unmatched ride
  is a single index scan.
* **B-Tree** on ``chair_locations(chair_id, created_at)`` for latest-sample
  look-ups and on ``(latitude, longitude)`` for the bounding-box filter.
* **B-Tree** on ``chairs(is_active, is_in_use)`` for eligibility filtering.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from src.domain.enums import RideStatus


class UserModel(Base):
    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    payment_token = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ChairModel(Base):
    __tablename__ = "chairs"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, nullable=False)
    name = Column(String(120), nullable=False)
    model = Column(String(120), nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    is_in_use = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_chairs_eligibility", "is_active", "is_in_use"),
        Index("idx_chairs_owner", "owner_id"),
    )


class ChairLocationModel(Base):
    __tablename__ = "chair_locations"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    chair_id = Column(Integer, ForeignKey("chairs.id"), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_chair_locations_chair", "chair_id", "created_at"),
        Index("idx_chair_locations_coords", "latitude", "longitude"),
    )


class RideModel(Base):
    __tablename__ = "rides"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    chair_id = Column(Integer, ForeignKey("chairs.id"), nullable=True)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_rides_unmatched", "chair_id", "created_at"),
        Index("idx_rides_user", "user_id", "created_at"),
    )


class RideStatusModel(Base):
    __tablename__ = "ride_statuses"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    status = Column(Enum(RideStatus), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_ride_statuses_ride", "ride_id", "created_at"),)
