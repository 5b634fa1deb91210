"""
Mahoya shared domain foundation.

Base classes, the exception hierarchy, the level curve and constants used by
every gamification module.

Usage
-----
    from mahoya.modules.shared import BaseService, NotFoundError
    from mahoya.modules.shared.formulas import level_and_progress
"""

from mahoya.modules.shared.base_repository import BaseRepository
from mahoya.modules.shared.base_service import BaseService
from mahoya.modules.shared.exceptions import (
    AlreadyUsedError,
    ConflictError,
    ErrorSeverity,
    InvalidOperationError,
    MahoyaDomainException,
    NotEligibleError,
    NotFoundError,
    TransientIOError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "AlreadyUsedError",
    "ConflictError",
    "ErrorSeverity",
    "InvalidOperationError",
    "MahoyaDomainException",
    "NotEligibleError",
    "NotFoundError",
    "TransientIOError",
    "ValidationError",
    "get_error_severity",
    "is_transient_error",
    "should_alert",
]
