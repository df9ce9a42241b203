"""Pydantic schemas for subscription and trial endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field

from app.core.config import settings


class SubscriptionOut(BaseModel):
    """Subscription projection for one clinic."""
    clinic_id: UUID
    clinic_name: str
    subscription_plan: str = Field(description="Paid tier, independent of trial state")
    effective_plan: str = Field(description="Tier the clinic is entitled to right now")
    trial_pro_enabled: bool
    trial_pro_expires_at: Optional[datetime]
    trial_days_remaining: Optional[int] = Field(None, description="Whole days left in the trial, null without one")
    max_patients: Optional[int]
    total_patients: int
    monthly_revenue: float


class PlanUpdate(BaseModel):
    """Change a clinic's paid plan."""
    plan_name: str = Field(description="pro or scheduling")


class TrialActivate(BaseModel):
    """Start a Pro trial."""
    duration_days: int = Field(settings.TRIAL_DEFAULT_DURATION_DAYS, description="Trial length in days (1-30)")


class TrialActivated(BaseModel):
    message: str
    expires_at: datetime


class MessageResponse(BaseModel):
    """Generic message response."""
    message: str


class SubscriptionMessage(BaseModel):
    message: str
    subscription: SubscriptionOut


class TrialHistoryEntry(BaseModel):
    id: UUID
    clinic_id: UUID
    activated_by: Optional[UUID]
    activated_by_name: Optional[str] = None
    activated_at: datetime
    duration_days: int
    expires_at: datetime
    status: str
    ended_at: Optional[datetime]

    class Config:
        from_attributes = True


class AnalyticsEventOut(BaseModel):
    id: UUID
    clinic_id: UUID
    plan_name: str
    event_type: str
    event_data: Optional[dict]
    created_at: datetime

    class Config:
        from_attributes = True


class BlockedFeatureEventOut(AnalyticsEventOut):
    """feature_blocked event with the clinic's current state attached."""
    clinic_name: str
    subscription_plan: str


class PlanStatsRow(BaseModel):
    """Aggregate row per paid plan, plus the synthetic ``trial`` row."""
    plan: str
    total_clinics: int
    total_patients: int
    total_revenue: float


class ExpiringTrial(BaseModel):
    clinic_id: UUID
    clinic_name: str
    subscription_plan: str
    trial_pro_expires_at: datetime
    days_remaining: int
    admin_name: Optional[str] = None
    admin_email: Optional[str] = None


class PlanPriceOut(BaseModel):
    plan_name: str
    price_per_patient: float
    description: Optional[str]

    class Config:
        from_attributes = True


class SweepResult(BaseModel):
    expired_count: int


class FeatureAccess(BaseModel):
    feature: str
    allowed: bool
    effective_plan: str
    is_trial_active: bool
    trial_expires_at: Optional[datetime]
