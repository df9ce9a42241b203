"""
Subscription engine errors.

Lifecycle operations raise these typed failures; each class carries the HTTP
status the API layer answers with (see app.main).
"""

from typing import Any, Dict, Optional


class SubscriptionError(Exception):
    """Base exception for all subscription engine errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(SubscriptionError):
    """Raised when a request carries a value outside the accepted domain."""
    status_code = 400


class InvalidPlanError(InvalidInputError):
    def __init__(self, plan_name: str, allowed: list[str]):
        super().__init__(
            f"Invalid plan '{plan_name}'. Use one of: {', '.join(allowed)}",
            details={"plan_name": plan_name, "allowed": allowed},
        )


class InvalidDurationError(InvalidInputError):
    def __init__(self, duration_days: int, minimum: int, maximum: int):
        super().__init__(
            f"Trial duration must be between {minimum} and {maximum} days",
            details={"duration_days": duration_days, "min": minimum, "max": maximum},
        )


class NotFoundError(SubscriptionError):
    """Raised when a requested resource does not exist."""
    status_code = 404


class ClinicNotFoundError(NotFoundError):
    def __init__(self, clinic_id: Any):
        super().__init__("Clinic not found", details={"clinic_id": str(clinic_id)})


class ConflictError(SubscriptionError):
    """Raised when the current state does not allow the requested transition."""
    status_code = 400


class TrialAlreadyActiveError(ConflictError):
    def __init__(self, clinic_id: Any):
        super().__init__(
            "Clinic already has an active trial",
            details={"clinic_id": str(clinic_id)},
        )


class NoActiveTrialError(ConflictError):
    def __init__(self, clinic_id: Any):
        super().__init__(
            "Clinic has no active trial",
            details={"clinic_id": str(clinic_id)},
        )


class NoTrialToCancelError(NoActiveTrialError):
    """No running trial to cancel. Still a NoActiveTrialError, but answered as not found."""
    status_code = 404


class UnavailableError(SubscriptionError):
    """Raised when the durable store cannot be reached. Callers may retry."""
    status_code = 503
