"""
Mahoya database infrastructure.

Exports the async engine/session service and the ORM declarative base.
"""

from mahoya.core.database.base import Base, CreatedAtMixin, IdMixin, TimestampMixin, utc_now
from mahoya.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "CreatedAtMixin",
    "IdMixin",
    "TimestampMixin",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
