"""Seed the plan price catalogue on app startup."""

import logging
from decimal import Decimal
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.models.plan_price import PlanPrice

logger = logging.getLogger(__name__)

DEFAULT_PLAN_PRICES = [
    {"plan_name": "pro", "price_per_patient": Decimal("35.00"), "description": "Full clinical suite"},
    {"plan_name": "scheduling", "price_per_patient": Decimal("15.00"), "description": "Scheduling only"},
]


async def seed_plan_prices(session_factory: async_sessionmaker) -> int:
    """Insert the default price catalogue if it is empty. Returns rows inserted."""
    async with session_factory() as db:
        try:
            result = await db.execute(select(func.count(PlanPrice.id)))
            if result.scalar():
                logger.info("Plan price catalogue already present")
                return 0

            for price in DEFAULT_PLAN_PRICES:
                db.add(PlanPrice(**price))
            await db.commit()

            logger.info("Seeded %d plan prices", len(DEFAULT_PLAN_PRICES))
            return len(DEFAULT_PLAN_PRICES)

        except Exception as e:
            logger.error("Failed to seed plan prices: %s", e)
            await db.rollback()
            return 0
