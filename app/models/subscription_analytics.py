from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.types import JSON
from sqlalchemy.orm import relationship
import uuid
import enum

from app.core.database import Base


class AnalyticsEventType(str, enum.Enum):
    PLAN_CHANGED = "plan_changed"
    TRIAL_ACTIVATED = "trial_activated"
    TRIAL_CONVERTED = "trial_converted"
    TRIAL_CANCELLED = "trial_cancelled"
    TRIAL_EXPIRED = "trial_expired"
    FEATURE_BLOCKED = "feature_blocked"


class SubscriptionAnalytics(Base):
    """Append-only lifecycle fact. Rows are never updated or deleted."""

    __tablename__ = "subscription_analytics"
    __table_args__ = (
        Index("ix_subscription_analytics_type_created", "event_type", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    clinic_id = Column(Uuid(as_uuid=True), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_name = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    event_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False)

    # Relationships
    clinic = relationship("Clinic")
