"""Subscription and trial lifecycle.

The only place that changes a clinic's plan or trial state. Every operation
runs as one transaction over the plan store, the trial ledger and the
analytics recorder: a guarded update decides whether the transition happens,
the ledger and event writes follow in the same unit, and any failure rolls
the whole thing back.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.config import settings
from app.core.database import atomic
from app.core.exceptions import (
    ClinicNotFoundError,
    InvalidDurationError,
    InvalidPlanError,
    NoActiveTrialError,
    NoTrialToCancelError,
    TrialAlreadyActiveError,
)
from app.models.clinic import Clinic, PlanName
from app.models.subscription_analytics import AnalyticsEventType
from app.models.trial_history import TrialStatus
from app.services import plan_store, trial_ledger
from app.services.analytics_recorder import record_event

logger = logging.getLogger(__name__)

VALID_PLANS = [plan.value for plan in PlanName]


def compute_effective_plan(
    subscription_plan: str,
    trial_pro_enabled: bool,
    trial_pro_expires_at: Optional[datetime],
    now: datetime,
) -> str:
    """Tier a clinic is entitled to at ``now``.

    Pro when paying for Pro or while an unexpired trial is running, otherwise
    the paid plan. A trial past its expiry but not yet swept grants nothing.
    """
    if subscription_plan == PlanName.PRO.value:
        return PlanName.PRO.value
    if trial_pro_enabled and trial_pro_expires_at is not None and trial_pro_expires_at > now:
        return PlanName.PRO.value
    return subscription_plan


def effective_plan_for(clinic: Clinic, now: Optional[datetime] = None) -> str:
    return compute_effective_plan(
        clinic.subscription_plan,
        clinic.trial_pro_enabled,
        clinic.trial_pro_expires_at,
        now or utcnow(),
    )


def validate_duration(duration_days: int) -> None:
    minimum = settings.TRIAL_MIN_DURATION_DAYS
    maximum = settings.TRIAL_MAX_DURATION_DAYS
    if isinstance(duration_days, bool) or not isinstance(duration_days, int):
        raise InvalidDurationError(duration_days, minimum, maximum)
    if duration_days < minimum or duration_days > maximum:
        raise InvalidDurationError(duration_days, minimum, maximum)


async def _missing_or_conflict(db: AsyncSession, clinic_id: UUID, conflict: Exception) -> Exception:
    if not await plan_store.clinic_exists(db, clinic_id):
        return ClinicNotFoundError(clinic_id)
    logger.warning("Refused transition for clinic %s: %s", clinic_id, conflict)
    return conflict


async def activate_trial(
    db: AsyncSession,
    clinic_id: UUID,
    activated_by: Optional[UUID],
    duration_days: int,
    now: Optional[datetime] = None,
) -> datetime:
    """Start a Pro trial and return its expiry instant.

    Raises:
        InvalidDurationError: duration outside the configured bounds
        ClinicNotFoundError: unknown clinic
        TrialAlreadyActiveError: a trial is already running
    """
    validate_duration(duration_days)
    now = now or utcnow()
    expires_at = now + timedelta(days=duration_days)

    async with atomic(db):
        if not await plan_store.start_trial(db, clinic_id, expires_at):
            raise await _missing_or_conflict(db, clinic_id, TrialAlreadyActiveError(clinic_id))

        try:
            await trial_ledger.open_trial(
                db,
                clinic_id=clinic_id,
                activated_by=activated_by,
                duration_days=duration_days,
                activated_at=now,
                expires_at=expires_at,
            )
        except IntegrityError as e:
            # A record left active without the clinic flag; refuse rather than stack trials
            logger.error("Active trial record already exists for clinic %s: %s", clinic_id, e)
            raise TrialAlreadyActiveError(clinic_id) from e

        plan_name = await plan_store.get_plan(db, clinic_id)
        await record_event(
            db,
            clinic_id=clinic_id,
            plan_name=plan_name,
            event_type=AnalyticsEventType.TRIAL_ACTIVATED,
            event_data={
                "activated_by": str(activated_by) if activated_by else None,
                "duration_days": duration_days,
                "expires_at": expires_at.isoformat(),
            },
            now=now,
        )

    logger.info(
        "Trial activated: clinic=%s by=%s days=%d expires_at=%s",
        clinic_id, activated_by, duration_days, expires_at.isoformat(),
    )
    return expires_at


async def convert_trial_to_pro(db: AsyncSession, clinic_id: UUID, now: Optional[datetime] = None) -> None:
    """Turn a running trial, lapsed or not, into a paid Pro plan.

    Raises:
        ClinicNotFoundError: unknown clinic
        NoActiveTrialError: no trial to convert
    """
    now = now or utcnow()

    async with atomic(db):
        if not await plan_store.convert_trial(db, clinic_id):
            raise await _missing_or_conflict(db, clinic_id, NoActiveTrialError(clinic_id))

        await trial_ledger.close_trial(db, clinic_id, TrialStatus.CONVERTED, ended_at=now)
        await record_event(
            db,
            clinic_id=clinic_id,
            plan_name=PlanName.PRO.value,
            event_type=AnalyticsEventType.TRIAL_CONVERTED,
            event_data={"converted_at": now.isoformat()},
            now=now,
        )

    logger.info("Trial converted to Pro: clinic=%s", clinic_id)


async def cancel_trial(db: AsyncSession, clinic_id: UUID, now: Optional[datetime] = None) -> None:
    """Stop a running trial immediately.

    Raises:
        ClinicNotFoundError: unknown clinic
        NoTrialToCancelError: no trial to cancel (a NoActiveTrialError)
    """
    now = now or utcnow()

    async with atomic(db):
        if not await plan_store.clear_trial(db, clinic_id):
            raise await _missing_or_conflict(db, clinic_id, NoTrialToCancelError(clinic_id))

        await trial_ledger.close_trial(db, clinic_id, TrialStatus.CANCELLED, ended_at=now)
        plan_name = await plan_store.get_plan(db, clinic_id)
        await record_event(
            db,
            clinic_id=clinic_id,
            plan_name=plan_name,
            event_type=AnalyticsEventType.TRIAL_CANCELLED,
            event_data={"cancelled_at": now.isoformat()},
            now=now,
        )

    logger.info("Trial cancelled: clinic=%s plan=%s", clinic_id, plan_name)


async def update_plan(db: AsyncSession, clinic_id: UUID, plan_name: str, now: Optional[datetime] = None) -> None:
    """Change the paid plan. A running trial is left as it is.

    Raises:
        InvalidPlanError: plan name not in the catalogue of tiers
        ClinicNotFoundError: unknown clinic
    """
    if plan_name not in VALID_PLANS:
        raise InvalidPlanError(str(plan_name), VALID_PLANS)
    now = now or utcnow()

    async with atomic(db):
        if not await plan_store.set_plan(db, clinic_id, plan_name):
            raise ClinicNotFoundError(clinic_id)

        await record_event(
            db,
            clinic_id=clinic_id,
            plan_name=plan_name,
            event_type=AnalyticsEventType.PLAN_CHANGED,
            event_data={"changed_at": now.isoformat()},
            now=now,
        )

    logger.info("Plan updated: clinic=%s plan=%s", clinic_id, plan_name)


async def expire_trial(db: AsyncSession, clinic_id: UUID, now: Optional[datetime] = None) -> bool:
    """Expire a lapsed trial. Sweeper entry point.

    Returns False without touching anything when the clinic has no trial or
    its trial has not lapsed yet, so repeated runs are harmless.
    """
    now = now or utcnow()

    async with atomic(db):
        if not await plan_store.clear_trial(db, clinic_id, lapsed_before=now):
            return False

        await trial_ledger.close_trial(db, clinic_id, TrialStatus.EXPIRED, ended_at=now)
        plan_name = await plan_store.get_plan(db, clinic_id)
        await record_event(
            db,
            clinic_id=clinic_id,
            plan_name=plan_name,
            event_type=AnalyticsEventType.TRIAL_EXPIRED,
            event_data={"expired_at": now.isoformat()},
            now=now,
        )

    logger.info("Trial expired: clinic=%s plan=%s", clinic_id, plan_name)
    return True
