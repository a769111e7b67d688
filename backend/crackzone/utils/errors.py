"""Typed platform errors.

Every service raises a subclass of :class:`PlatformError`; the application
error handlers turn it into the standard JSON error body using the status
code carried by the exception.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError, NoResultFound


class ErrorCode(str, Enum):
    """Standard error codes."""

    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    ROUTE_NOT_FOUND = "ROUTE_NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Auth
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_USER_NOT_FOUND = "AUTH_USER_NOT_FOUND"
    AUTH_ACCOUNT_INACTIVE = "AUTH_ACCOUNT_INACTIVE"
    AUTH_INVALID_CODE = "AUTH_INVALID_CODE"
    AUTH_ALREADY_VERIFIED = "AUTH_ALREADY_VERIFIED"
    AUTH_WRONG_PASSWORD = "AUTH_WRONG_PASSWORD"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Resources
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_STATE = "INVALID_STATE"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    CAPACITY_REACHED = "CAPACITY_REACHED"
    REQUIREMENT_NOT_MET = "REQUIREMENT_NOT_MET"

    # Persistence
    UNIQUE_VIOLATION = "UNIQUE_VIOLATION"
    FOREIGN_KEY_VIOLATION = "FOREIGN_KEY_VIOLATION"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"

    # Integrations
    IMAGE_INVALID = "IMAGE_INVALID"
    IMAGE_UPLOAD_FAILED = "IMAGE_UPLOAD_FAILED"
    EMAIL_NOT_CONFIGURED = "EMAIL_NOT_CONFIGURED"
    EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"


class PlatformError(Exception):
    """Base exception for request-level failures.

    Attributes:
        code: Error code for programmatic handling
        message: User-facing message
        details: Additional structured details
        status_code: HTTP status the error maps to
    """

    status_code: int = 400
    default_code: ErrorCode = ErrorCode.INVALID_REQUEST

    def __init__(
        self,
        message: str,
        code: ErrorCode | str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        code = code or self.default_code
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class InvalidRequestError(PlatformError):
    """Malformed or missing input."""

    status_code = 400
    default_code = ErrorCode.INVALID_REQUEST


class AuthenticationError(PlatformError):
    status_code = 401
    default_code = ErrorCode.AUTH_REQUIRED


class PermissionDeniedError(PlatformError):
    status_code = 403
    default_code = ErrorCode.INSUFFICIENT_PERMISSIONS


class NotFoundError(PlatformError):
    status_code = 404
    default_code = ErrorCode.NOT_FOUND


class ConflictError(PlatformError):
    """Duplicate unique value, duplicate join or duplicate claim."""

    status_code = 409
    default_code = ErrorCode.ALREADY_EXISTS


class BusinessRuleError(PlatformError):
    """Wrong state transition, capacity exceeded or unmet requirement."""

    status_code = 400
    default_code = ErrorCode.INVALID_STATE


class InsufficientBalanceError(BusinessRuleError):
    default_code = ErrorCode.INSUFFICIENT_BALANCE

    def __init__(self, message: str = "Insufficient balance", **kwargs: Any):
        super().__init__(message, **kwargs)


class IntegrationError(PlatformError):
    """An external collaborator (CDN, SMTP) failed."""

    status_code = 502
    default_code = ErrorCode.INTERNAL_ERROR


class PersistenceErrorKind(str, Enum):
    UNIQUE_VIOLATION = "UNIQUE_VIOLATION"
    NOT_FOUND = "NOT_FOUND"
    FOREIGN_KEY_VIOLATION = "FOREIGN_KEY_VIOLATION"
    OTHER = "OTHER"


_KIND_STATUS = {
    PersistenceErrorKind.UNIQUE_VIOLATION: (409, ErrorCode.UNIQUE_VIOLATION),
    PersistenceErrorKind.NOT_FOUND: (404, ErrorCode.NOT_FOUND),
    PersistenceErrorKind.FOREIGN_KEY_VIOLATION: (400, ErrorCode.FOREIGN_KEY_VIOLATION),
    PersistenceErrorKind.OTHER: (500, ErrorCode.PERSISTENCE_ERROR),
}

_KIND_MESSAGES = {
    PersistenceErrorKind.UNIQUE_VIOLATION: "A record with this value already exists",
    PersistenceErrorKind.NOT_FOUND: "Record not found",
    PersistenceErrorKind.FOREIGN_KEY_VIOLATION: "Related record not found",
    PersistenceErrorKind.OTHER: "Database error",
}


class PersistenceError(PlatformError):
    """Classified database failure."""

    def __init__(
        self,
        kind: PersistenceErrorKind,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.kind = kind
        status_code, code = _KIND_STATUS[kind]
        super().__init__(
            message or _KIND_MESSAGES[kind],
            code=code,
            details=details,
            status_code=status_code,
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> "PersistenceError":
        """Classify a driver/ORM exception.

        Constraint names differ between PostgreSQL and SQLite, so the
        classification looks at both the SQLSTATE (when available) and the
        driver message.
        """
        if isinstance(exc, NoResultFound):
            return cls(PersistenceErrorKind.NOT_FOUND)

        if isinstance(exc, IntegrityError):
            orig = exc.orig
            sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
            text = str(orig).lower()
            if sqlstate == "23505" or "unique" in text or "duplicate" in text:
                return cls(PersistenceErrorKind.UNIQUE_VIOLATION)
            if sqlstate == "23503" or "foreign key" in text:
                return cls(PersistenceErrorKind.FOREIGN_KEY_VIOLATION)

        return cls(PersistenceErrorKind.OTHER)
