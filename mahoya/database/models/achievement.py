"""
Achievement catalog and per-user unlock records.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mahoya.core.database.base import Base, CreatedAtMixin, IdMixin, utc_now


class Achievement(Base, IdMixin, CreatedAtMixin):
    """Externally authored achievement definition."""

    __tablename__ = "achievements"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="🏆")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requirement_type: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")
    requirement_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self) -> str:
        return f"<Achievement {self.name!r} type={self.requirement_type} value={self.requirement_value}>"


class UserAchievement(Base, IdMixin):
    """
    Unlock record. Unique per (user_id, achievement_id); never removed by
    normal flow.
    """

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_achievement"),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    achievement_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("achievements.id", ondelete="CASCADE"),
        nullable=False,
    )
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
