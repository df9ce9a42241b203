"""FastAPI dependencies for authentication, authorization and plan gating."""

import logging
from typing import Optional
from uuid import UUID
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, get_clock
from app.core.database import get_db
from app.models.user import User
from app.services.analytics_recorder import record_feature_blocked
from app.services.auth import decode_access_token, get_user_by_id
from app.services.plan_store import get_clinic
from app.services.subscription_lifecycle import effective_plan_for

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Extract and validate JWT token, return current user."""

    token = credentials.credentials
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_str: Optional[str] = payload.get("sub")
    if user_id_str is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token"
        )

    user = await get_user_by_id(db, user_id)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled"
        )

    return user


def require_role(*roles: str):
    """Dependency factory that checks if user has one of the required roles.

    Usage:
        require_admin = require_role("admin", "superadmin")

        @router.get("/admin-only")
        async def admin_route(user: User = Depends(require_admin)):
            ...
    """
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(roles)}"
            )
        return current_user

    return role_checker


# Pre-configured role dependencies
require_superadmin = require_role("superadmin")


async def get_current_clinic_id(current_user: User = Depends(get_current_user)) -> UUID:
    """Clinic of the calling tenant user. 400 when the account has none."""
    if not current_user.clinic_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is not associated with a clinic"
        )
    return current_user.clinic_id


async def require_pro_plan(
    feature: str,
    request: Request,
    clinic_id: UUID = Depends(get_current_clinic_id),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Allow the request only when the clinic's effective plan is Pro.

    A paid Pro plan or an unexpired trial both pass. Otherwise a
    feature_blocked analytics event is recorded and 403 is returned.
    """
    clinic = await get_clinic(db, clinic_id)
    if not clinic:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Clinic not found", "requires_pro": True},
        )

    now = clock()
    effective_plan = effective_plan_for(clinic, now)

    if effective_plan != "pro":
        await record_feature_blocked(
            db,
            clinic_id=clinic.id,
            plan_name=clinic.subscription_plan,
            feature=feature,
            details={"path": request.url.path},
            now=now,
        )
        logger.info("Feature %s blocked for clinic %s (plan=%s)", feature, clinic.id, effective_plan)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "This feature is only available on the Pro plan",
                "current_plan": effective_plan,
                "requires_pro": True,
                "feature": feature,
            },
        )

    return {
        "plan": effective_plan,
        "is_trial_active": clinic.trial_pro_enabled,
        "trial_expires_at": clinic.trial_pro_expires_at,
    }
