"""Subscription analytics event recorder.

The only writer of ``subscription_analytics``. Lifecycle transitions call
``record_event`` inside their own transaction, so the event is committed
together with the state change or not at all.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.models.subscription_analytics import SubscriptionAnalytics, AnalyticsEventType

logger = logging.getLogger(__name__)


async def record_event(
    db: AsyncSession,
    clinic_id: UUID,
    plan_name: str,
    event_type: AnalyticsEventType,
    event_data: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> SubscriptionAnalytics:
    """Append an analytics event to the current transaction.

    Args:
        db: Database session (the caller commits)
        clinic_id: Clinic the event belongs to
        plan_name: Clinic's paid plan at the time of the event
        event_type: Kind of event
        event_data: Free-form JSON payload
        now: Event instant, defaults to the current UTC time

    Returns:
        The pending analytics row
    """
    event = SubscriptionAnalytics(
        clinic_id=clinic_id,
        plan_name=plan_name,
        event_type=AnalyticsEventType(event_type).value,
        event_data=event_data or {},
        created_at=now or utcnow(),
    )

    db.add(event)
    await db.flush()

    logger.info("Analytics event recorded: clinic=%s type=%s plan=%s", clinic_id, event.event_type, plan_name)

    return event


async def record_feature_blocked(
    db: AsyncSession,
    clinic_id: UUID,
    plan_name: str,
    feature: str,
    details: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> SubscriptionAnalytics:
    """Record that a clinic hit a Pro-only feature and commit it.

    Used by the feature gate, which has no surrounding transaction of its own.
    """
    event = await record_event(
        db,
        clinic_id=clinic_id,
        plan_name=plan_name,
        event_type=AnalyticsEventType.FEATURE_BLOCKED,
        event_data={"feature": feature, **(details or {})},
        now=now,
    )
    await db.commit()
    return event
