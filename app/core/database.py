"""Async database engine, session factory and transaction helper."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings
from app.core.exceptions import UnavailableError

logger = logging.getLogger(__name__)

engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session dependency."""
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """Session factory dependency for work that needs one transaction per item (sweeps)."""
    return async_session


@asynccontextmanager
async def atomic(db: AsyncSession):
    """Run a block as one transaction.

    Commits when the block finishes, rolls back on any error. Driver-level
    failures surface as UnavailableError so callers can retry.
    """
    try:
        yield db
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    except DBAPIError as e:
        await db.rollback()
        logger.error("Database unavailable: %s", e)
        raise UnavailableError("Subscription store is unavailable, retry later", original_error=e) from e
    except BaseException:
        await db.rollback()
        raise
