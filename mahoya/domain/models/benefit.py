"""
UserBenefit record and its computed classification.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from mahoya.domain.models.base import (
    DomainValidationError,
    as_utc,
    validate_non_negative,
    validate_not_empty,
    validate_number,
)


@dataclass(frozen=True)
class BenefitStatus:
    active: bool
    used: bool
    expired: bool


@dataclass(frozen=True)
class UserBenefit:
    """
    A discount issued to a user.

    A percent or a fixed amount is normally set; both zero is a legal
    non-monetary benefit. ``is_used``/``used_at`` move once from
    (False, None) to (True, timestamp).
    """

    id: str
    user_id: str
    name: str
    discount_percent: float = 0
    discount_fixed: float = 0
    description: Optional[str] = None
    valid_until: Optional[datetime] = None
    is_used: bool = False
    used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.id, "id")
        validate_not_empty(self.user_id, "user_id")
        validate_not_empty(self.name, "name")
        validate_number(self.discount_percent, "discount_percent")
        validate_non_negative(self.discount_percent, "discount_percent")
        validate_number(self.discount_fixed, "discount_fixed")
        validate_non_negative(self.discount_fixed, "discount_fixed")
        if not isinstance(self.is_used, bool):
            raise DomainValidationError("is_used must be a boolean", field="is_used")
        object.__setattr__(self, "valid_until", as_utc(self.valid_until, "valid_until"))
        object.__setattr__(self, "used_at", as_utc(self.used_at, "used_at"))
        object.__setattr__(self, "created_at", as_utc(self.created_at, "created_at"))

    @classmethod
    def from_record(cls, record: Any) -> "UserBenefit":
        return cls(
            id=getattr(record, "id", None),
            user_id=getattr(record, "user_id", None),
            name=getattr(record, "name", None),
            discount_percent=getattr(record, "discount_percent", 0),
            discount_fixed=getattr(record, "discount_fixed", 0),
            description=getattr(record, "description", None),
            valid_until=getattr(record, "valid_until", None),
            is_used=getattr(record, "is_used", False),
            used_at=getattr(record, "used_at", None),
            created_at=getattr(record, "created_at", None),
        )
