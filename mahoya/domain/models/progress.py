"""
PlayerProgress domain model.

Purpose
-------
Rich domain model for a user's XP total and the level derived from it.
The persisted ``level`` column is a cache; this model recomputes the level
from ``total_xp`` on every load and reports when the cached value drifted.

Usage Example
-------------
>>> progress = PlayerProgress.from_record(user_xp_row)
>>> progress.level
2
>>> progress.add_xp(300, reason="order")
>>> for event in progress.clear_domain_events():
...     await event_bus.publish(event.event_name, event.payload)
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from mahoya.domain.models.base import (
    AggregateRoot,
    validate_int,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
)
from mahoya.modules.shared.constants import EVENT_LEVELED_UP, EVENT_XP_ADDED
from mahoya.modules.shared.formulas import (
    LevelProgress,
    level_and_progress,
    level_from_total_xp,
    xp_floor,
)


class PlayerProgress(AggregateRoot):
    """
    XP aggregate for one user.

    Invariant: ``xp_floor(level) <= total_xp < xp_floor(level + 1)``.
    """

    def __init__(self, user_id: str, total_xp: int = 0, stored_level: Optional[int] = None) -> None:
        validate_not_empty(user_id, "user_id")
        validate_int(total_xp, "total_xp")
        validate_non_negative(total_xp, "total_xp")
        super().__init__(user_id)
        self._total_xp = total_xp
        self._stored_level = stored_level

    @classmethod
    def new(cls, user_id: str) -> "PlayerProgress":
        """Progress for a user observed for the first time."""
        return cls(user_id=user_id, total_xp=0, stored_level=None)

    @classmethod
    def from_record(cls, record: Any) -> "PlayerProgress":
        """Build from a ``user_xp`` row; the stored level is kept only for drift detection."""
        stored_level = getattr(record, "level", None)
        if stored_level is not None:
            validate_int(stored_level, "level")
        return cls(
            user_id=getattr(record, "user_id", None),
            total_xp=getattr(record, "total_xp", None),
            stored_level=stored_level,
        )

    @property
    def user_id(self) -> str:
        return self.id

    @property
    def total_xp(self) -> int:
        return self._total_xp

    @property
    def level(self) -> int:
        return level_from_total_xp(self._total_xp)

    @property
    def current_xp(self) -> int:
        return self._total_xp - xp_floor(self.level)

    @property
    def stored_level(self) -> Optional[int]:
        return self._stored_level

    @property
    def has_level_drift(self) -> bool:
        return self._stored_level is not None and self._stored_level != self.level

    def progress(self) -> LevelProgress:
        return level_and_progress(self._total_xp, self.level)

    def add_xp(self, amount: int, reason: Optional[str] = None) -> int:
        """
        Add XP and record level-up events.

        Returns:
            Number of levels gained.
        """
        validate_int(amount, "amount")
        validate_positive(amount, "amount")

        old_level = self.level
        self._total_xp += amount
        new_level = self.level

        self.add_domain_event(
            EVENT_XP_ADDED,
            {
                "user_id": self.id,
                "amount": amount,
                "reason": reason,
                "total_xp": self._total_xp,
            },
        )
        if new_level > old_level:
            self.add_domain_event(
                EVENT_LEVELED_UP,
                {"user_id": self.id, "old_level": old_level, "new_level": new_level},
            )
        return new_level - old_level

    def mark_reconciled(self) -> None:
        self._stored_level = self.level

    def to_db_updates(self) -> Dict[str, int]:
        return {
            "total_xp": self._total_xp,
            "current_xp": self.current_xp,
            "level": self.level,
        }

    def __repr__(self) -> str:
        return f"PlayerProgress(user_id={self.id!r}, total_xp={self._total_xp}, level={self.level})"
