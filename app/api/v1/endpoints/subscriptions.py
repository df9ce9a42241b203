"""Subscription and trial endpoints.

Tenant routes (``/me``) need any user tied to a clinic. Everything else is
operator tooling and requires superadmin. Lifecycle failures propagate as
typed errors and are mapped to HTTP statuses in app.main.
"""

import logging
from typing import Optional, List
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, get_clock
from app.core.database import get_db, get_session_factory
from app.core.dependencies import (
    get_current_user,
    get_current_clinic_id,
    require_superadmin,
    require_pro_plan,
)
from app.models.user import User
from app.schemas.subscription import (
    SubscriptionOut,
    PlanUpdate,
    TrialActivate,
    TrialActivated,
    MessageResponse,
    SubscriptionMessage,
    TrialHistoryEntry,
    AnalyticsEventOut,
    BlockedFeatureEventOut,
    PlanStatsRow,
    ExpiringTrial,
    PlanPriceOut,
    SweepResult,
    FeatureAccess,
)
from app.services import subscription_lifecycle as lifecycle
from app.services import subscription_queries as queries
from app.services.trial_sweeper import sweep_expired_trials, scan_expiring_soon

router = APIRouter()
logger = logging.getLogger(__name__)


# ============================================================================
# TENANT: MY SUBSCRIPTION
# ============================================================================

@router.get("/me", response_model=SubscriptionOut)
async def get_my_subscription(
    clinic_id: UUID = Depends(get_current_clinic_id),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Subscription of the caller's clinic."""
    return await queries.get_subscription(db, clinic_id, now=clock())


@router.get("/me/features/{feature}", response_model=FeatureAccess)
async def check_feature_access(
    feature: str,
    access: dict = Depends(require_pro_plan),
):
    """Check a Pro-only feature for the caller's clinic.

    403 (and a feature_blocked event) when the clinic is not entitled to Pro.
    """
    return FeatureAccess(
        feature=feature,
        allowed=True,
        effective_plan=access["plan"],
        is_trial_active=access["is_trial_active"],
        trial_expires_at=access["trial_expires_at"],
    )


@router.get("/plans/prices", response_model=List[PlanPriceOut])
async def get_plan_prices(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active plan price catalogue."""
    return await queries.get_plan_prices(db)


# ============================================================================
# OPERATOR: OVERVIEW
# ============================================================================

@router.get("/", response_model=List[SubscriptionOut])
async def get_all_subscriptions(
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Every clinic's subscription, ordered by clinic name."""
    return await queries.list_subscriptions(db, now=clock())


@router.get("/stats", response_model=List[PlanStatsRow])
async def get_stats(
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
):
    """Per-plan totals plus the ``trial`` row (clinics currently on trial)."""
    return await queries.get_stats(db)


@router.get("/trials/expiring", response_model=List[ExpiringTrial])
async def get_expiring_trials(
    days_ahead: int = Query(3, ge=0, le=365),
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Running trials that lapse within ``days_ahead`` days."""
    return await scan_expiring_soon(db, days_ahead, now=clock())


@router.post("/trials/expire", response_model=SweepResult)
async def run_trial_expiration(
    current_user: User = Depends(require_superadmin),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
):
    """Run the expiration sweep now instead of waiting for the daily job."""
    expired_count = await sweep_expired_trials(session_factory, now=clock())
    logger.info("Manual trial sweep by %s expired %d trial(s)", current_user.email, expired_count)
    return SweepResult(expired_count=expired_count)


@router.get("/analytics/blocked-features", response_model=List[BlockedFeatureEventOut])
async def get_blocked_features(
    clinic_id: Optional[UUID] = None,
    limit: int = Query(50, ge=1, le=1000),
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
):
    """feature_blocked events (upgrade opportunities), newest first."""
    return await queries.get_blocked_feature_events(db, clinic_id, limit)


# ============================================================================
# OPERATOR: PER CLINIC
# ============================================================================

@router.get("/clinics/{clinic_id}", response_model=SubscriptionOut)
async def get_clinic_subscription(
    clinic_id: UUID,
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await queries.get_subscription(db, clinic_id, now=clock())


@router.put("/clinics/{clinic_id}/plan", response_model=SubscriptionMessage)
async def update_plan(
    clinic_id: UUID,
    update_data: PlanUpdate,
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Change a clinic's paid plan (pro or scheduling)."""
    now = clock()
    await lifecycle.update_plan(db, clinic_id, update_data.plan_name, now=now)
    logger.info("Admin %s set clinic %s plan to %s", current_user.email, clinic_id, update_data.plan_name)

    return SubscriptionMessage(
        message="Plan updated",
        subscription=await queries.get_subscription(db, clinic_id, now=now),
    )


@router.post("/clinics/{clinic_id}/trial/activate", response_model=TrialActivated)
async def activate_trial(
    clinic_id: UUID,
    trial_data: TrialActivate,
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Start a Pro trial of 1 to 30 days."""
    expires_at = await lifecycle.activate_trial(
        db,
        clinic_id,
        activated_by=current_user.id,
        duration_days=trial_data.duration_days,
        now=clock(),
    )
    return TrialActivated(
        message=f"Pro trial activated for {trial_data.duration_days} day(s)",
        expires_at=expires_at,
    )


@router.post("/clinics/{clinic_id}/trial/convert", response_model=MessageResponse)
async def convert_trial(
    clinic_id: UUID,
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Convert the running trial into a paid Pro plan."""
    await lifecycle.convert_trial_to_pro(db, clinic_id, now=clock())
    return MessageResponse(message="Trial converted to Pro plan")


@router.post("/clinics/{clinic_id}/trial/cancel", response_model=SubscriptionMessage)
async def cancel_trial(
    clinic_id: UUID,
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Cancel the running trial immediately."""
    now = clock()
    await lifecycle.cancel_trial(db, clinic_id, now=now)
    logger.info("Admin %s cancelled trial of clinic %s", current_user.email, clinic_id)

    return SubscriptionMessage(
        message="Trial cancelled",
        subscription=await queries.get_subscription(db, clinic_id, now=now),
    )


@router.get("/clinics/{clinic_id}/trials", response_model=List[TrialHistoryEntry])
async def get_trial_history(
    clinic_id: UUID,
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
):
    return await queries.get_trial_history(db, clinic_id)


@router.get("/clinics/{clinic_id}/analytics", response_model=List[AnalyticsEventOut])
async def get_clinic_analytics(
    clinic_id: UUID,
    limit: int = Query(100, ge=1, le=1000),
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
):
    """All analytics events of a clinic, newest first."""
    return await queries.get_clinic_analytics(db, clinic_id, limit)


@router.get("/clinics/{clinic_id}/blocked-features", response_model=List[BlockedFeatureEventOut])
async def get_clinic_blocked_features(
    clinic_id: UUID,
    limit: int = Query(50, ge=1, le=1000),
    current_user: User = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
):
    return await queries.get_blocked_feature_events(db, clinic_id, limit)
