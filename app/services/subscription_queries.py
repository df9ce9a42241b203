"""Read-only subscription projections for operator tooling and tenants."""

import logging
import math
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.exceptions import ClinicNotFoundError
from app.models.clinic import Clinic
from app.models.plan_price import PlanPrice
from app.models.subscription_analytics import SubscriptionAnalytics, AnalyticsEventType
from app.models.trial_history import TrialHistory
from app.models.user import User
from app.schemas.subscription import (
    SubscriptionOut,
    TrialHistoryEntry,
    AnalyticsEventOut,
    BlockedFeatureEventOut,
    PlanStatsRow,
    PlanPriceOut,
)
from app.services.subscription_lifecycle import effective_plan_for

logger = logging.getLogger(__name__)

TRIAL_STATS_ROW = "trial"


def to_subscription(clinic: Clinic, now: datetime) -> SubscriptionOut:
    days_remaining = None
    if clinic.trial_pro_enabled and clinic.trial_pro_expires_at:
        seconds_left = (clinic.trial_pro_expires_at - now).total_seconds()
        days_remaining = max(0, math.ceil(seconds_left / 86400))

    return SubscriptionOut(
        clinic_id=clinic.id,
        clinic_name=clinic.name,
        subscription_plan=clinic.subscription_plan,
        effective_plan=effective_plan_for(clinic, now),
        trial_pro_enabled=clinic.trial_pro_enabled,
        trial_pro_expires_at=clinic.trial_pro_expires_at,
        trial_days_remaining=days_remaining,
        max_patients=clinic.max_patients,
        total_patients=clinic.total_patients or 0,
        monthly_revenue=float(clinic.monthly_revenue or 0),
    )


async def get_subscription(db: AsyncSession, clinic_id: UUID, now: Optional[datetime] = None) -> SubscriptionOut:
    """Subscription projection for one clinic. Raises ClinicNotFoundError."""
    result = await db.execute(
        select(Clinic).where(Clinic.id == clinic_id).execution_options(populate_existing=True)
    )
    clinic = result.scalar_one_or_none()
    if not clinic:
        raise ClinicNotFoundError(clinic_id)
    return to_subscription(clinic, now or utcnow())


async def list_subscriptions(db: AsyncSession, now: Optional[datetime] = None) -> List[SubscriptionOut]:
    now = now or utcnow()
    result = await db.execute(
        select(Clinic).order_by(Clinic.name).execution_options(populate_existing=True)
    )
    return [to_subscription(clinic, now) for clinic in result.scalars().all()]


async def get_stats(db: AsyncSession) -> List[PlanStatsRow]:
    """Per-plan totals plus a ``trial`` row.

    The trial row counts every clinic with the trial flag set, whatever its
    paid plan, so such a clinic shows up twice. Revenue on the trial row is
    always 0.
    """
    per_plan = await db.execute(
        select(
            Clinic.subscription_plan,
            func.count(Clinic.id),
            func.coalesce(func.sum(Clinic.total_patients), 0),
            func.coalesce(func.sum(Clinic.monthly_revenue), 0),
        ).group_by(Clinic.subscription_plan)
    )
    rows = [
        PlanStatsRow(
            plan=plan,
            total_clinics=count,
            total_patients=int(patients),
            total_revenue=float(revenue),
        )
        for plan, count, patients, revenue in per_plan.all()
    ]

    trial = await db.execute(
        select(
            func.count(Clinic.id),
            func.coalesce(func.sum(Clinic.total_patients), 0),
        ).where(Clinic.trial_pro_enabled.is_(True))
    )
    trial_count, trial_patients = trial.one()
    rows.append(PlanStatsRow(
        plan=TRIAL_STATS_ROW,
        total_clinics=trial_count,
        total_patients=int(trial_patients),
        total_revenue=0.0,
    ))

    return sorted(rows, key=lambda row: row.plan)


async def get_trial_history(db: AsyncSession, clinic_id: UUID) -> List[TrialHistoryEntry]:
    """All trial records of a clinic, newest first."""
    result = await db.execute(
        select(TrialHistory, User.full_name)
        .outerjoin(User, User.id == TrialHistory.activated_by)
        .where(TrialHistory.clinic_id == clinic_id)
        .order_by(desc(TrialHistory.activated_at))
        .execution_options(populate_existing=True)
    )

    history = []
    for entry, activated_by_name in result.all():
        item = TrialHistoryEntry.model_validate(entry)
        item.activated_by_name = activated_by_name
        history.append(item)
    return history


async def get_clinic_analytics(db: AsyncSession, clinic_id: UUID, limit: int = 100) -> List[AnalyticsEventOut]:
    """Every analytics event of a clinic, newest first."""
    result = await db.execute(
        select(SubscriptionAnalytics)
        .where(SubscriptionAnalytics.clinic_id == clinic_id)
        .order_by(desc(SubscriptionAnalytics.created_at))
        .limit(limit)
    )
    return [AnalyticsEventOut.model_validate(event) for event in result.scalars().all()]


async def get_blocked_feature_events(
    db: AsyncSession,
    clinic_id: Optional[UUID] = None,
    limit: int = 50,
) -> List[BlockedFeatureEventOut]:
    """feature_blocked events, optionally for one clinic, newest first."""
    query = (
        select(SubscriptionAnalytics, Clinic.name, Clinic.subscription_plan)
        .join(Clinic, Clinic.id == SubscriptionAnalytics.clinic_id)
        .where(SubscriptionAnalytics.event_type == AnalyticsEventType.FEATURE_BLOCKED.value)
    )
    if clinic_id:
        query = query.where(SubscriptionAnalytics.clinic_id == clinic_id)

    query = query.order_by(desc(SubscriptionAnalytics.created_at)).limit(limit)
    result = await db.execute(query)

    return [
        BlockedFeatureEventOut(
            id=event.id,
            clinic_id=event.clinic_id,
            plan_name=event.plan_name,
            event_type=event.event_type,
            event_data=event.event_data,
            created_at=event.created_at,
            clinic_name=clinic_name,
            subscription_plan=subscription_plan,
        )
        for event, clinic_name, subscription_plan in result.all()
    ]


async def get_plan_prices(db: AsyncSession) -> List[PlanPriceOut]:
    """Active price catalogue, most expensive first."""
    result = await db.execute(
        select(PlanPrice)
        .where(PlanPrice.active.is_(True))
        .order_by(desc(PlanPrice.price_per_patient))
    )
    return [PlanPriceOut.model_validate(price) for price in result.scalars().all()]
