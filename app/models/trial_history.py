from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index, Uuid, text
from sqlalchemy.orm import relationship
import uuid
import enum

from app.core.database import Base


class TrialStatus(str, enum.Enum):
    ACTIVE = "active"
    CONVERTED = "converted"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class TrialHistory(Base):
    """One row per trial activation. Moves from active to a terminal status exactly once."""

    __tablename__ = "trial_history"
    __table_args__ = (
        # At most one active trial per clinic
        Index(
            "uq_trial_history_one_active",
            "clinic_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    clinic_id = Column(Uuid(as_uuid=True), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    activated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    activated_at = Column(DateTime, nullable=False)
    duration_days = Column(Integer, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=TrialStatus.ACTIVE.value)
    ended_at = Column(DateTime, nullable=True)

    # Relationships
    clinic = relationship("Clinic", back_populates="trials")
    activated_by_user = relationship("User")
