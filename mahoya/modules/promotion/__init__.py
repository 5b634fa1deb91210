"""
D20 promotion: prize table, roll engine, guest storage and administration.
"""

from mahoya.modules.promotion.admin_service import D20AdminService
from mahoya.modules.promotion.engine import (
    D20PromotionEngine,
    GuestRollStore,
    PopupTracker,
    PromotionStatus,
    RollOutcome,
    RollStore,
    ServerRollStore,
    roll_d20,
)
from mahoya.modules.promotion.prize_table import PRIZE_TABLE, get_prize, validate_prize_table
from mahoya.modules.promotion.storage import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    popup_shown_key,
    roll_key,
)

__all__ = [
    "D20AdminService",
    "D20PromotionEngine",
    "GuestRollStore",
    "PopupTracker",
    "PromotionStatus",
    "RollOutcome",
    "RollStore",
    "ServerRollStore",
    "roll_d20",
    "PRIZE_TABLE",
    "get_prize",
    "validate_prize_table",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
    "popup_shown_key",
    "roll_key",
]
