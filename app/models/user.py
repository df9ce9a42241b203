"""User model for multi-tenant authorization.

Accounts are provisioned by the identity layer; this service only reads them
to resolve the caller's role and clinic.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Uuid
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from app.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    clinic_id = Column(Uuid(as_uuid=True), ForeignKey("clinics.id"), nullable=True, index=True)
    role = Column(String, nullable=False, default="user")  # user, admin, superadmin
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    clinic = relationship("Clinic", back_populates="users")
