"""FastAPI dependency injection helpers."""

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infrastructure.database import async_session_factory
from src.infrastructure.redis_client import get_redis
from src.services.settlement import SettlementService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for services that manage their own transactions."""
    return async_session_factory


async def get_settlement_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    redis: aioredis.Redis = Depends(get_redis),
) -> SettlementService:
    return SettlementService(session_factory, redis)
