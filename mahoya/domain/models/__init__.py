"""
Mahoya domain models.

Rich domain models and validated record types, kept separate from the
SQLAlchemy schema in ``mahoya.database.models``.
"""

from mahoya.domain.models.achievement import (
    AchievementDefinition,
    AchievementUnlock,
    OrderSummary,
    PlayerStats,
    RequirementType,
)
from mahoya.domain.models.base import AggregateRoot, DomainEvent, DomainValidationError, Entity
from mahoya.domain.models.benefit import BenefitStatus, UserBenefit
from mahoya.domain.models.progress import PlayerProgress
from mahoya.domain.models.promotion import (
    D20Eligibility,
    D20Roll,
    PrizeCategory,
    PrizeTableEntry,
    PromotionState,
)
from mahoya.domain.models.title import PlayerTitle

__all__ = [
    "AchievementDefinition",
    "AchievementUnlock",
    "OrderSummary",
    "PlayerStats",
    "RequirementType",
    "AggregateRoot",
    "DomainEvent",
    "DomainValidationError",
    "Entity",
    "BenefitStatus",
    "UserBenefit",
    "PlayerProgress",
    "D20Eligibility",
    "D20Roll",
    "PrizeCategory",
    "PrizeTableEntry",
    "PromotionState",
    "PlayerTitle",
]
