"""Trial history ledger.

Opens a record when a trial starts and closes it with a terminal status.
Records are never deleted.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.trial_history import TrialHistory, TrialStatus

logger = logging.getLogger(__name__)


async def open_trial(
    db: AsyncSession,
    clinic_id: UUID,
    activated_by: Optional[UUID],
    duration_days: int,
    activated_at: datetime,
    expires_at: datetime,
) -> TrialHistory:
    entry = TrialHistory(
        clinic_id=clinic_id,
        activated_by=activated_by,
        activated_at=activated_at,
        duration_days=duration_days,
        expires_at=expires_at,
        status=TrialStatus.ACTIVE.value,
    )
    db.add(entry)
    await db.flush()
    return entry


async def close_trial(db: AsyncSession, clinic_id: UUID, status: TrialStatus, ended_at: datetime) -> int:
    """Move the clinic's active record to a terminal status.

    Returns the number of records closed (0 or 1).
    """
    if status == TrialStatus.ACTIVE:
        raise ValueError("close_trial needs a terminal status")

    result = await db.execute(
        update(TrialHistory)
        .where(TrialHistory.clinic_id == clinic_id, TrialHistory.status == TrialStatus.ACTIVE.value)
        .values(status=status.value, ended_at=ended_at)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        logger.warning("No active trial record to mark %s for clinic %s", status.value, clinic_id)

    return result.rowcount
