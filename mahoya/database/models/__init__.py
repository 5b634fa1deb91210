"""
ORM schema for the Mahoya gamification tables.

Importing this package registers every table on ``Base.metadata``.
"""

from mahoya.database.models.achievement import Achievement, UserAchievement
from mahoya.database.models.benefit import UserBenefit
from mahoya.database.models.progression import PlayerTitle, UserXP
from mahoya.database.models.promotion import D20EligibleUser, D20RollRecord

__all__ = [
    "Achievement",
    "UserAchievement",
    "UserBenefit",
    "PlayerTitle",
    "UserXP",
    "D20EligibleUser",
    "D20RollRecord",
]
