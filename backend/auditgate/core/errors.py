"""
Error taxonomy for entitlement and usage accounting.

Every error carries a stable code, a human-readable message and the HTTP
status the API layer answers with. ``StoreUnavailable`` is the only
retryable kind and must never be read as a deny or a permit.
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = {}


class AuditGateError(Exception):
    """Base exception for entitlement operations."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            retryable=self.retryable,
            details=self.details,
        )


class Unauthenticated(AuditGateError):
    """No resolvable user on the request."""

    status_code = 401

    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None):
        super().__init__("UNAUTHENTICATED", message, details)


class InvalidInput(AuditGateError):
    """Missing or malformed user id, plan id or event payload."""

    status_code = 422

    def __init__(self, message: str = "Invalid input", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_INPUT", message, details)


class UnknownPlan(AuditGateError):
    """A stored plan id has no catalog entry (catalog and data have drifted)."""

    status_code = 500

    def __init__(self, plan_id: str, details: Optional[Dict[str, Any]] = None):
        self.plan_id = plan_id
        super().__init__("UNKNOWN_PLAN", f"Plan '{plan_id}' is not defined in the plan catalog", details)


class NoCancelledSubscription(AuditGateError):
    """Reactivation requested but the effective subscription is not cancelled."""

    status_code = 404

    def __init__(self, message: str = "No cancelled subscription found to reactivate", details: Optional[Dict[str, Any]] = None):
        super().__init__("NO_CANCELLED_SUBSCRIPTION", message, details)


class NoActiveSubscription(AuditGateError):
    """Cancellation requested but there is no active persisted subscription."""

    status_code = 404

    def __init__(self, message: str = "No active subscription found to cancel", details: Optional[Dict[str, Any]] = None):
        super().__init__("NO_ACTIVE_SUBSCRIPTION", message, details)


class StoreUnavailable(AuditGateError):
    """Record store I/O failed or timed out."""

    status_code = 503
    retryable = True

    def __init__(self, message: str = "Record store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_UNAVAILABLE", message, details)


class AdminAuthorizationError(AuditGateError):
    """Admin route called without a valid admin token."""

    status_code = 403

    def __init__(self, message: str = "Admin access denied", details: Optional[Dict[str, Any]] = None):
        super().__init__("ADMIN_FORBIDDEN", message, details)
