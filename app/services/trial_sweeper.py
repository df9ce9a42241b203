"""Trial expiration sweep.

Finds every clinic whose trial has lapsed and expires it through the
lifecycle. Each clinic gets its own session and transaction so one bad row
cannot hold locks on, or abort, the rest of the run.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional, List
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import utcnow
from app.models.clinic import Clinic
from app.models.user import User
from app.schemas.subscription import ExpiringTrial
from app.services.subscription_lifecycle import expire_trial

logger = logging.getLogger(__name__)


async def find_lapsed_trials(db: AsyncSession, now: datetime) -> list:
    result = await db.execute(
        select(Clinic.id).where(
            and_(
                Clinic.trial_pro_enabled.is_(True),
                Clinic.trial_pro_expires_at <= now,
            )
        ).order_by(Clinic.trial_pro_expires_at)
    )
    return list(result.scalars().all())


async def sweep_expired_trials(session_factory: async_sessionmaker, now: Optional[datetime] = None) -> int:
    """Expire every lapsed trial. Returns the number of clinics expired.

    Safe to run concurrently with itself: a clinic already expired by another
    run simply reports nothing to do.
    """
    now = now or utcnow()

    async with session_factory() as db:
        clinic_ids = await find_lapsed_trials(db, now)

    expired_count = 0
    fail_count = 0

    for clinic_id in clinic_ids:
        try:
            async with session_factory() as db:
                if await expire_trial(db, clinic_id, now=now):
                    expired_count += 1
        except Exception:
            fail_count += 1
            logger.exception("Failed to expire trial for clinic %s", clinic_id)

    if clinic_ids:
        logger.info(
            "Trial sweep complete: %d expired, %d failed, %d candidates",
            expired_count,
            fail_count,
            len(clinic_ids),
        )
    else:
        logger.info("Trial sweep complete: no lapsed trials")

    return expired_count


async def scan_expiring_soon(
    db: AsyncSession,
    days_ahead: int = 3,
    now: Optional[datetime] = None,
) -> List[ExpiringTrial]:
    """List running trials that lapse within ``days_ahead`` days. Read-only."""
    if days_ahead < 0:
        raise ValueError("days_ahead must be zero or positive")
    now = now or utcnow()
    horizon = now + timedelta(days=days_ahead)

    query = (
        select(Clinic, User.full_name, User.email)
        .outerjoin(User, and_(User.clinic_id == Clinic.id, User.role == "admin"))
        .where(
            and_(
                Clinic.trial_pro_enabled.is_(True),
                Clinic.trial_pro_expires_at > now,
                Clinic.trial_pro_expires_at <= horizon,
            )
        )
        .order_by(Clinic.trial_pro_expires_at)
    )
    result = await db.execute(query)

    trials = []
    for clinic, admin_name, admin_email in result.all():
        seconds_left = (clinic.trial_pro_expires_at - now).total_seconds()
        trials.append(ExpiringTrial(
            clinic_id=clinic.id,
            clinic_name=clinic.name,
            subscription_plan=clinic.subscription_plan,
            trial_pro_expires_at=clinic.trial_pro_expires_at,
            days_remaining=math.ceil(seconds_left / 86400),
            admin_name=admin_name,
            admin_email=admin_email,
        ))

    return trials
