"""
Portal exceptions

Services raise these instead of generic Exception; the API layer turns them
into JSON responses with the matching status code.

Usage:
    from app.core.exceptions import NotFoundError

    if not branch:
        raise NotFoundError("Branch", branch_id)
"""

from typing import Optional, Any, Dict


class PortalError(Exception):
    """Base exception for all portal errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(PortalError):
    """Sign-in or session validation failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(PortalError):
    """Caller's role does not allow this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


class RoleLookupError(PortalError):
    """A role document could not be read (e.g. permission denied)"""

    def __init__(self, collection: str, reason: str):
        super().__init__(
            f"Role lookup in '{collection}' failed: {reason}",
            code="ROLE_LOOKUP_FAILED",
            details={"collection": collection}
        )


# ============================================
# Resource Errors
# ============================================

class NotFoundError(PortalError):
    """Referenced document does not exist"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class ValidationError(PortalError):
    """Input rejected before any write"""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field} if field else {}
        )


class ConflictError(PortalError):
    """Write collides with existing state"""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


class InvalidTransitionError(ConflictError):
    """Submission status change not allowed from the current status"""

    def __init__(self, current: Optional[str], action: str):
        super().__init__(
            f"Cannot {action} a submission that is {current or 'not submitted'}",
            details={"current_status": current, "action": action}
        )
        self.code = "INVALID_TRANSITION"


class StorageError(PortalError):
    """Document store, blob store or identity provider write failed"""

    status_code = 502

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(
            message,
            code="STORAGE_ERROR",
            details={"operation": operation} if operation else {}
        )


class ServiceUnavailableError(PortalError):
    """Optional integration is not configured"""

    status_code = 503

    def __init__(self, service: str):
        super().__init__(f"{service} is not configured", code="SERVICE_UNAVAILABLE")
