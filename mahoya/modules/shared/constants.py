"""
Mahoya Gamification Constants

Purpose
-------
Domain-level constants for progression and promotions: the XP curve step,
D20 dice bounds, default title, guest storage key names and event names.

IMPORTANT:
Infrastructure concerns (database pool sizes, Redis URLs, logging) belong in
mahoya.core.config.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Grouped by subsystem
"""

from __future__ import annotations

from typing import Final

# ============================================================================
# LEVELING
# ============================================================================

MIN_LEVEL: Final[int] = 1
XP_STEP: Final[int] = 100  # Level i costs i * XP_STEP to reach from level i-1
STARTING_TOTAL_XP: Final[int] = 0

# ============================================================================
# TITLES
# ============================================================================

DEFAULT_TITLE: Final[str] = "Iniciante"

# ============================================================================
# ACHIEVEMENTS
# ============================================================================

REQUIREMENT_ORDERS_COUNT: Final[str] = "orders_count"
REQUIREMENT_TOTAL_SPENT: Final[str] = "total_spent"
REQUIREMENT_UNIQUE_PRODUCTS: Final[str] = "unique_products"
REQUIREMENT_MANUAL: Final[str] = "manual"
REQUIREMENT_OTHER: Final[str] = "other"
DEFAULT_ACHIEVEMENT_ICON: Final[str] = "🏆"

# ============================================================================
# D20 PROMOTION
# ============================================================================

D20_MIN_ROLL: Final[int] = 1
D20_MAX_ROLL: Final[int] = 20

STORAGE_KEY_PREFIX: Final[str] = "mahoya"
POPUP_SHOWN_KEY: Final[str] = "d20_popup_shown"
ROLL_KEY: Final[str] = "d20_roll"
POPUP_SHOWN_VALUE: Final[str] = "1"

# ============================================================================
# BENEFITS
# ============================================================================

SPECIAL_BENEFIT_LABEL: Final[str] = "Benefício especial"
CURRENCY_SYMBOL: Final[str] = "R$"

# ============================================================================
# EVENTS
# ============================================================================

EVENT_XP_ADDED: Final[str] = "player.xp_added"
EVENT_LEVELED_UP: Final[str] = "player.leveled_up"
EVENT_LEVEL_RECONCILED: Final[str] = "player.level_reconciled"
EVENT_TITLE_SAVED: Final[str] = "title.saved"
EVENT_TITLE_REMOVED: Final[str] = "title.removed"
EVENT_ACHIEVEMENT_GRANTED: Final[str] = "achievement.granted"
EVENT_ACHIEVEMENT_CREATED: Final[str] = "achievement.created"
EVENT_ACHIEVEMENT_UPDATED: Final[str] = "achievement.updated"
EVENT_ACHIEVEMENT_DELETED: Final[str] = "achievement.deleted"
EVENT_D20_ROLLED: Final[str] = "d20.rolled"
EVENT_D20_REDEEMED: Final[str] = "d20.redeemed"
EVENT_D20_ELIGIBILITY_ENABLED: Final[str] = "d20.eligibility_enabled"
EVENT_D20_ELIGIBILITY_DISABLED: Final[str] = "d20.eligibility_disabled"
EVENT_D20_ROLL_RESET: Final[str] = "d20.roll_reset"
EVENT_BENEFIT_ISSUED: Final[str] = "benefit.issued"
EVENT_BENEFIT_USED: Final[str] = "benefit.used"
EVENT_BENEFIT_REVOKED: Final[str] = "benefit.revoked"
