from sqlalchemy import Column, String, Boolean, DateTime, Numeric, Uuid, func
import uuid

from app.core.database import Base


class PlanPrice(Base):
    """Price catalogue row. Maintained by pricing tooling; read-only here."""

    __tablename__ = "subscription_plan_prices"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_name = Column(String, nullable=False, unique=True)
    price_per_patient = Column(Numeric(10, 2), nullable=False)
    description = Column(String, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
