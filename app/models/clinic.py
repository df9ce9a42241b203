"""Clinic (tenant) model.

A clinic is the billing unit. ``subscription_plan`` is the paid tier; the
``trial_pro_*`` columns track a temporary Pro upgrade. The effective plan is
never stored, see app.services.subscription_lifecycle.compute_effective_plan.
"""

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Numeric, CheckConstraint, Index, Uuid
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from enum import Enum
from app.core.database import Base


class PlanName(str, Enum):
    """Paid subscription tiers."""
    PRO = "pro"
    SCHEDULING = "scheduling"


class Clinic(Base):
    __tablename__ = "clinics"
    __table_args__ = (
        CheckConstraint(
            "subscription_plan IN ('pro', 'scheduling')",
            name="ck_clinics_subscription_plan",
        ),
        # A running trial always has an expiry instant
        CheckConstraint(
            "NOT trial_pro_enabled OR trial_pro_expires_at IS NOT NULL",
            name="ck_clinics_trial_expiry_set",
        ),
        Index("ix_clinics_trial_sweep", "trial_pro_enabled", "trial_pro_expires_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    subscription_plan = Column(String, nullable=False, default=PlanName.SCHEDULING.value)
    trial_pro_enabled = Column(Boolean, nullable=False, default=False)
    trial_pro_expires_at = Column(DateTime, nullable=True)

    # Reporting counters, maintained by the patient/billing side of the app
    max_patients = Column(Integer, nullable=True)
    total_patients = Column(Integer, nullable=False, default=0)
    monthly_revenue = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    users = relationship("User", back_populates="clinic")
    trials = relationship("TrialHistory", back_populates="clinic")
