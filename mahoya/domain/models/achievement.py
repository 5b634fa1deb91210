"""
Achievement record types.

Definitions and unlocks are parsed from store rows here; a row with a
negative threshold, a non-numeric XP reward or a missing id is rejected
instead of reaching the evaluator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional

from mahoya.domain.models.base import (
    as_utc,
    validate_int,
    validate_non_negative,
    validate_not_empty,
    validate_number,
)


class RequirementType(str, Enum):
    ORDERS_COUNT = "orders_count"
    TOTAL_SPENT = "total_spent"
    UNIQUE_PRODUCTS = "unique_products"
    MANUAL = "manual"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "RequirementType":
        """Unknown requirement types fall back to ``OTHER``."""
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    requirement_type: RequirementType
    requirement_value: Optional[int] = None
    xp_reward: int = 0
    description: Optional[str] = None
    icon: str = "🏆"
    is_active: bool = True

    def __post_init__(self) -> None:
        validate_not_empty(self.id, "id")
        validate_not_empty(self.name, "name")
        validate_int(self.xp_reward, "xp_reward")
        validate_non_negative(self.xp_reward, "xp_reward")
        if self.requirement_value is not None:
            validate_int(self.requirement_value, "requirement_value")
            validate_non_negative(self.requirement_value, "requirement_value")

    @property
    def target(self) -> int:
        """Threshold to reach; 0 and missing both mean 1."""
        return self.requirement_value or 1

    @classmethod
    def from_record(cls, record: Any) -> "AchievementDefinition":
        return cls(
            id=getattr(record, "id", None),
            name=getattr(record, "name", None),
            requirement_type=RequirementType.parse(getattr(record, "requirement_type", None)),
            requirement_value=getattr(record, "requirement_value", None),
            xp_reward=getattr(record, "xp_reward", 0) or 0,
            description=getattr(record, "description", None),
            icon=getattr(record, "icon", None) or "🏆",
            is_active=bool(getattr(record, "is_active", True)),
        )


@dataclass(frozen=True)
class AchievementUnlock:
    user_id: str
    achievement_id: str
    unlocked_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.user_id, "user_id")
        validate_not_empty(self.achievement_id, "achievement_id")
        object.__setattr__(self, "unlocked_at", as_utc(self.unlocked_at, "unlocked_at"))

    @classmethod
    def from_record(cls, record: Any) -> "AchievementUnlock":
        return cls(
            user_id=getattr(record, "user_id", None),
            achievement_id=getattr(record, "achievement_id", None),
            unlocked_at=getattr(record, "unlocked_at", None),
        )


@dataclass(frozen=True)
class PlayerStats:
    """Cumulative purchase statistics that drive achievement progress."""

    orders_count: int = 0
    total_spent: float = 0.0
    unique_product_count: int = 0

    def __post_init__(self) -> None:
        validate_int(self.orders_count, "orders_count")
        validate_non_negative(self.orders_count, "orders_count")
        validate_number(self.total_spent, "total_spent")
        validate_non_negative(self.total_spent, "total_spent")
        validate_int(self.unique_product_count, "unique_product_count")
        validate_non_negative(self.unique_product_count, "unique_product_count")


@dataclass(frozen=True)
class OrderSummary:
    """
    The parts of an order that count toward achievements.

    ``total`` may be missing on draft orders; it then counts as zero.
    """

    total: Optional[float] = None
    product_names: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, order: dict) -> "OrderSummary":
        items: Iterable[dict] = order.get("order_items") or []
        return cls(
            total=order.get("total"),
            product_names=[item["product_name"] for item in items if item.get("product_name")],
        )
