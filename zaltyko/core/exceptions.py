"""
Custom Exceptions

Every domain error carries a stable machine-readable code. The global
handler in main.py renders them as {"error": code, "message": ..., "details": ...}.
"""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for errors with an error code."""

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code_default = "INTERNAL_ERROR"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code or self.code_default
        self.message = message or self.code
        self.details = details
        super().__init__(
            status_code=self.status_code_default,
            detail=self.message,
            headers=headers,
        )

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code_default = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    """Raised when authentication fails."""
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code_default = "UNAUTHENTICATED"

    def __init__(self, message: str = "Could not validate credentials", code: Optional[str] = None):
        super().__init__(message, code=code, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(AppError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code_default = "FORBIDDEN"


class TenantIsolationError(AuthorizationError):
    """
    Raised when a tenant isolation violation is detected.

    This is a CRITICAL security error and is logged by its handler.
    """
    code_default = "TENANT_MISMATCH"


class NotFoundError(AppError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code_default = "NOT_FOUND"


class ConflictError(AppError):
    status_code_default = status.HTTP_409_CONFLICT
    code_default = "CONFLICT"


class PlanLimitError(AppError):
    """
    Raised when creating a resource would exceed the plan.

    402 so the front-end can show the upgrade dialog from details.upgradeTo.
    """
    status_code_default = status.HTTP_402_PAYMENT_REQUIRED
    code_default = "LIMIT_REACHED"


class GoneError(AppError):
    """Raised for links that existed but can no longer be used."""
    status_code_default = status.HTTP_410_GONE
    code_default = "GONE"


class PayloadTooLargeError(AppError):
    status_code_default = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    code_default = "PAYLOAD_TOO_LARGE"


class RateLimitExceeded(AppError):
    """Raised when rate limit is exceeded."""
    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS
    code_default = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int = 60):
        super().__init__(
            "Too many requests. Please try again later.",
            details={"resetIn": retry_after},
            headers={"Retry-After": str(retry_after)},
        )


class ServiceUnavailableError(AppError):
    """Raised when an external integration (Stripe, Mailgun) is not configured."""
    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
    code_default = "SERVICE_UNAVAILABLE"


class InternalError(AppError):
    pass
