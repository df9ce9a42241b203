"""Plan store: guarded writes on the clinic plan and trial columns.

Each transition is one ``UPDATE ... WHERE <precondition>``. The row count
tells the caller whether the precondition held at write time, so two racing
callers can never both win the same transition.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.clinic import Clinic

logger = logging.getLogger(__name__)


async def get_clinic(db: AsyncSession, clinic_id: UUID) -> Optional[Clinic]:
    """Fetch a clinic, refreshing any copy already held by the session."""
    result = await db.execute(
        select(Clinic).where(Clinic.id == clinic_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def clinic_exists(db: AsyncSession, clinic_id: UUID) -> bool:
    result = await db.execute(select(Clinic.id).where(Clinic.id == clinic_id))
    return result.scalar_one_or_none() is not None


async def get_plan(db: AsyncSession, clinic_id: UUID) -> Optional[str]:
    result = await db.execute(select(Clinic.subscription_plan).where(Clinic.id == clinic_id))
    return result.scalar_one_or_none()


async def start_trial(db: AsyncSession, clinic_id: UUID, expires_at: datetime) -> bool:
    """Set the trial flags if no trial is running."""
    result = await db.execute(
        update(Clinic)
        .where(Clinic.id == clinic_id, Clinic.trial_pro_enabled.is_(False))
        .values(trial_pro_enabled=True, trial_pro_expires_at=expires_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def clear_trial(db: AsyncSession, clinic_id: UUID, lapsed_before: Optional[datetime] = None) -> bool:
    """Clear the trial flags if a trial is running.

    With ``lapsed_before`` the trial is only cleared when its expiry is at or
    before that instant.
    """
    conditions = [Clinic.id == clinic_id, Clinic.trial_pro_enabled.is_(True)]
    if lapsed_before is not None:
        conditions.append(Clinic.trial_pro_expires_at <= lapsed_before)

    result = await db.execute(
        update(Clinic)
        .where(*conditions)
        .values(trial_pro_enabled=False, trial_pro_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def convert_trial(db: AsyncSession, clinic_id: UUID) -> bool:
    """Move a running trial (lapsed or not) onto the paid Pro plan."""
    result = await db.execute(
        update(Clinic)
        .where(Clinic.id == clinic_id, Clinic.trial_pro_enabled.is_(True))
        .values(subscription_plan="pro", trial_pro_enabled=False, trial_pro_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def set_plan(db: AsyncSession, clinic_id: UUID, plan_name: str) -> bool:
    """Set the paid plan. Trial columns are left untouched."""
    result = await db.execute(
        update(Clinic)
        .where(Clinic.id == clinic_id)
        .values(subscription_plan=plan_name)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
