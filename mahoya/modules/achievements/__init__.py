"""
Achievements: progress evaluation and manual grants.
"""

from mahoya.modules.achievements.evaluator import (
    AchievementBoard,
    AchievementProgress,
    aggregate_player_stats,
    evaluate,
    evaluate_all,
    newly_crossed,
    order_definitions,
)
from mahoya.modules.achievements.service import AchievementService

__all__ = [
    "AchievementBoard",
    "AchievementProgress",
    "AchievementService",
    "aggregate_player_stats",
    "evaluate",
    "evaluate_all",
    "newly_crossed",
    "order_definitions",
]
