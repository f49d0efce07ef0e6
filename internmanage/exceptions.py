"""
Custom Exceptions for InternManage
==================================

Every error the assignment engine reports carries the HTTP status it maps to,
so the API layer can render ``{"success": false, "message": ...}`` without
knowing about individual error kinds.

Usage:
    from internmanage.exceptions import NotFoundError

    if not project:
        raise NotFoundError("Project not found")
"""

from typing import Any, Dict, Optional


class InternManageError(Exception):
    """Base exception for all InternManage errors"""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message}


# ============================================
# Authentication & Authorization Errors
# ============================================

class UnauthorizedError(InternManageError):
    """Caller could not be identified"""

    status_code = 401
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized: No token provided"):
        super().__init__(message)


class ForbiddenError(InternManageError):
    """Caller is identified but lacks the role or company scope"""

    status_code = 403
    default_code = "FORBIDDEN"


# ============================================
# Resource and Input Errors
# ============================================

class NotFoundError(InternManageError):
    status_code = 404
    default_code = "NOT_FOUND"


class ValidationError(InternManageError):
    """Malformed or inconsistent input"""

    status_code = 400
    default_code = "VALIDATION_ERROR"


# ============================================
# Uniqueness Errors
# ============================================

class DuplicateRequestError(InternManageError):
    """A volunteer request for the same project and role already exists"""

    status_code = 400
    default_code = "DUPLICATE_REQUEST"


class AlreadyAssignedError(InternManageError):
    """The user already holds the role (or a conflicting one)"""

    status_code = 400
    default_code = "ALREADY_ASSIGNED"


class AlreadyExistsError(InternManageError):
    status_code = 400
    default_code = "ALREADY_EXISTS"


class ConflictError(InternManageError):
    """A concurrent write violated a roster invariant; nothing was persisted"""

    status_code = 409
    default_code = "CONFLICT"

    def __init__(self, message: str = "The project roster was changed concurrently, please retry"):
        super().__init__(message)


class NoCandidatesError(InternManageError):
    status_code = 404
    default_code = "NO_CANDIDATES"


# ============================================
# Downstream Errors
# ============================================

class UnavailableError(InternManageError):
    """The database did not answer in time"""

    status_code = 503
    default_code = "UNAVAILABLE"

    def __init__(self, message: str = "Service temporarily unavailable, please retry"):
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return True

