"""
Domain exceptions for the Mahoya gamification engine.

Purpose
-------
Define the structured exception hierarchy raised by services and stores for
business rule violations, missing records and store failures. Callers (web
views, admin tools) translate these into user-facing messages.

Design Notes
------------
- All domain exceptions inherit from `MahoyaDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Pure functions (level curve, evaluator, prize lookup, formatting) never
  raise these; they apply documented defaults instead.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class MahoyaDomainException(Exception):
    """
    Base exception for all Mahoya domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise MahoyaDomainException("Roll failed", {"user_id": "u-1"})
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ValidationError(MahoyaDomainException):
    """
    Raised when input or a persisted row fails domain validation.

    Covers malformed store rows rejected at the parsing boundary, negative
    XP awards, negative discounts and duplicate title levels in a catalog.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(MahoyaDomainException):
    """
    Raised when a requested record does not exist.

    Args:
        resource_type: Type of record (e.g., "D20Roll", "UserBenefit")
        identifier: Optional identifier for the missing record
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ConflictError(MahoyaDomainException):
    """
    Raised when an insert violates a uniqueness rule.

    The store raises this for a second D20 roll, a duplicate eligibility grant
    or a duplicate achievement unlock. The promotion engine converts a roll
    conflict into "already rolled" rather than surfacing it.

    Args:
        resource_type: Type of record that already exists
        identifier: Key that collided
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(
            f"{resource_type} already exists: {identifier}",
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_CONFLICT",
        )


class AlreadyUsedError(MahoyaDomainException):
    """
    Raised when redeeming a prize or benefit that was already redeemed.

    Args:
        resource_type: "D20Roll" or "UserBenefit"
        identifier: Owning user id or benefit id
        used_at: When the first redemption happened, if known
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        resource_type: str,
        identifier: Optional[Any] = None,
        used_at: Optional[Any] = None,
    ) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        self.used_at = used_at
        super().__init__(
            f"{resource_type} already used: {identifier}",
            details={
                "resource_type": resource_type,
                "identifier": identifier,
                "used_at": used_at.isoformat() if hasattr(used_at, "isoformat") else used_at,
            },
            error_code=f"{resource_type.upper()}_ALREADY_USED",
        )


class InvalidOperationError(MahoyaDomainException):
    """
    Raised when an action violates a business rule.

    Args:
        action: Description of the invalid action
        reason: Explanation of why it's not allowed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


class NotEligibleError(InvalidOperationError):
    """Raised when a user without D20 eligibility attempts to roll."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__("d20_roll", f"user {user_id} is not eligible for the D20 promotion")
        self.details["user_id"] = user_id


class TransientIOError(MahoyaDomainException):
    """
    Raised when the backing store is unreachable or times out.

    Args:
        operation: Store operation that failed
        cause: Underlying driver error message
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, cause: Optional[str] = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(
            f"Store operation '{operation}' failed: {cause or 'unavailable'}",
            details={"operation": operation, "cause": cause},
            error_code="STORE_UNAVAILABLE",
        )


def is_transient_error(exc: Exception) -> bool:
    """Return True if the exception is retryable."""
    if isinstance(exc, MahoyaDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity for logging; unknown exceptions default to ERROR."""
    if isinstance(exc, MahoyaDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
