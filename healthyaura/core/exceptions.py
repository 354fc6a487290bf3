"""
Client exception hierarchy.
Every failure surfaced to callers carries a classified reason, an HTTP-ish status
and a human-readable message (taken from the backend when it sent one).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorReason(str, Enum):
    LOCKED_OUT = "LockedOut"
    INVALID_CREDENTIALS = "InvalidCredentials"
    INVALID_SERVER_RESPONSE = "InvalidServerResponse"
    NETWORK_ERROR = "NetworkError"
    REVIEW_COOLDOWN_ACTIVE = "ReviewCooldownActive"
    VALIDATION_ERROR = "ValidationError"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    REQUEST_REJECTED = "RequestRejected"
    INSUFFICIENT_POINTS = "InsufficientPoints"
    SERVER_ERROR = "ServerError"


class AppError(Exception):
    """Base class for all client exceptions."""

    reason: ErrorReason = ErrorReason.SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "reason": self.reason.value,
                "message": self.message,
                "details": self.details,
            }
        }


class LockedOutException(AppError):
    """Login refused locally, the username is inside its lockout window."""

    reason = ErrorReason.LOCKED_OUT

    def __init__(self, locked_until: datetime, message: str = "Account locked. Try later."):
        self.locked_until = locked_until
        super().__init__(
            message,
            httpx.codes.LOCKED,
            {"locked_until": locked_until.isoformat()},
        )


class InvalidCredentialsException(AppError):
    """Backend rejected the username/password pair."""

    reason = ErrorReason.INVALID_CREDENTIALS

    def __init__(
        self,
        message: str = "The username or password is incorrect. Please try again.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, httpx.codes.UNAUTHORIZED, details)


class InvalidServerResponseException(AppError):
    """A success response did not have the shape the client depends on."""

    reason = ErrorReason.INVALID_SERVER_RESPONSE

    def __init__(self, message: str = "Invalid server response", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, httpx.codes.BAD_GATEWAY, details)


class NetworkException(AppError):
    """Transport failure: connection refused, DNS, timeout."""

    reason = ErrorReason.NETWORK_ERROR

    def __init__(self, message: str = "Unable to reach the server", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, None, details)


class ReviewCooldownActiveException(AppError):
    """Backend refused a review because the author must wait before posting again."""

    reason = ErrorReason.REVIEW_COOLDOWN_ACTIVE

    def __init__(
        self,
        message: str = "You must wait before submitting another review for this eatery.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, httpx.codes.TOO_MANY_REQUESTS, details)


class ValidationException(AppError):
    """Local pre-flight check failed; nothing was sent."""

    reason = ErrorReason.VALIDATION_ERROR

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, httpx.codes.UNPROCESSABLE_ENTITY, details)


class UnauthorizedException(AppError):
    """No usable credential."""

    reason = ErrorReason.UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, httpx.codes.UNAUTHORIZED, details)


class ForbiddenException(AppError):
    """Credential present but its role is not allowed."""

    reason = ErrorReason.FORBIDDEN

    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, httpx.codes.FORBIDDEN, details)


class EntityNotFoundException(AppError):
    """Resource not found error."""

    reason = ErrorReason.NOT_FOUND

    def __init__(self, message: str = "Entity not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, httpx.codes.NOT_FOUND, details)


class BusinessRuleViolationException(AppError):
    """Backend refused the request for a domain reason (400/409/422)."""

    reason = ErrorReason.REQUEST_REJECTED

    def __init__(
        self,
        message: str = "Business rule violation",
        status_code: int = httpx.codes.BAD_REQUEST,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code, details)


class InsufficientPointsException(BusinessRuleViolationException):
    """Reward costs more points than the user holds."""

    reason = ErrorReason.INSUFFICIENT_POINTS

    def __init__(self, points_required: int, total_points: int):
        super().__init__(
            "Not enough points or reward unavailable.",
            httpx.codes.UNPROCESSABLE_ENTITY,
            {"points_required": points_required, "total_points": total_points},
        )


class ServerErrorException(AppError):
    """Backend failed with a 5xx."""

    reason = ErrorReason.SERVER_ERROR

    def __init__(
        self,
        message: str = "An unexpected error occurred. Please try again later.",
        status_code: int = httpx.codes.INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code, details)
