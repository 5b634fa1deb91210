"""
D20 promotion domain types.

Purpose
-------
Value objects for the prize table, the eligibility grant and the single
roll a viewer may make, plus the promotion state machine states.

State Machine
-------------
    INELIGIBLE --(admin grant)--> ELIGIBLE --roll()--> ROLLED_UNUSED --redeem--> ROLLED_USED

Only an administrative reset (deleting the roll and/or the eligibility)
moves a viewer backwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from mahoya.domain.models.base import (
    DomainValidationError,
    as_utc,
    validate_int,
    validate_not_empty,
    validate_range,
)
from mahoya.modules.shared.constants import D20_MAX_ROLL, D20_MIN_ROLL


class PrizeCategory(str, Enum):
    DISCOUNT = "discount"
    GIFT = "gift"
    SPECIAL = "special"


class PromotionState(str, Enum):
    INELIGIBLE = "ineligible"
    ELIGIBLE = "eligible"
    ROLLED_UNUSED = "rolled_unused"
    ROLLED_USED = "rolled_used"


@dataclass(frozen=True)
class PrizeTableEntry:
    """One contiguous band of rolls and the prize it awards."""

    low: int
    high: int
    title: str
    description: str
    code: Optional[str]
    category: PrizeCategory

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise DomainValidationError(f"prize range {self.low}-{self.high} is empty", field="range")

    def contains(self, roll: int) -> bool:
        return self.low <= roll <= self.high


@dataclass(frozen=True)
class D20Eligibility:
    user_id: str
    enabled_at: Optional[datetime] = None
    enabled_by: Optional[str] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.user_id, "user_id")
        object.__setattr__(self, "enabled_at", as_utc(self.enabled_at, "enabled_at"))

    @classmethod
    def from_record(cls, record: Any) -> "D20Eligibility":
        return cls(
            user_id=getattr(record, "user_id", None),
            enabled_at=getattr(record, "enabled_at", None),
            enabled_by=getattr(record, "enabled_by", None),
        )


@dataclass(frozen=True)
class D20Roll:
    """
    The one roll a viewer is allowed.

    ``used_at`` moves once from None to a timestamp and never back.
    """

    user_id: str
    roll_result: int
    prize_code: str
    prize_title: str
    prize_description: str
    created_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
    used_in_order_id: Optional[str] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.user_id, "user_id")
        validate_int(self.roll_result, "roll_result")
        validate_range(self.roll_result, D20_MIN_ROLL, D20_MAX_ROLL, "roll_result")
        if not isinstance(self.prize_code, str):
            raise DomainValidationError("prize_code must be a string", field="prize_code")
        validate_not_empty(self.prize_title, "prize_title")
        if not isinstance(self.prize_description, str):
            raise DomainValidationError("prize_description must be a string", field="prize_description")
        object.__setattr__(self, "created_at", as_utc(self.created_at, "created_at"))
        object.__setattr__(self, "used_at", as_utc(self.used_at, "used_at"))

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    @property
    def state(self) -> PromotionState:
        return PromotionState.ROLLED_USED if self.is_used else PromotionState.ROLLED_UNUSED

    @classmethod
    def from_record(cls, record: Any) -> "D20Roll":
        return cls(
            user_id=getattr(record, "user_id", None),
            roll_result=getattr(record, "roll_result", None),
            prize_code=getattr(record, "prize_code", None),
            prize_title=getattr(record, "prize_title", None),
            prize_description=getattr(record, "prize_description", None),
            created_at=getattr(record, "rolled_at", None),
            used_at=getattr(record, "used_at", None),
            used_in_order_id=getattr(record, "used_in_order_id", None),
        )

    def to_blob(self) -> Dict[str, Any]:
        """Key-value store representation used for guest rolls."""
        return {
            "roll_result": self.roll_result,
            "prize_code": self.prize_code,
            "prize_title": self.prize_title,
            "prize_description": self.prize_description,
            "used_at": self.used_at.isoformat() if self.used_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_blob(cls, user_id: str, blob: Any) -> "D20Roll":
        if not isinstance(blob, dict):
            raise DomainValidationError("roll blob must be a JSON object", field="blob")
        return cls(
            user_id=user_id,
            roll_result=blob.get("roll_result"),
            prize_code=blob.get("prize_code"),
            prize_title=blob.get("prize_title"),
            prize_description=blob.get("prize_description"),
            created_at=blob.get("created_at"),
            used_at=blob.get("used_at"),
        )
