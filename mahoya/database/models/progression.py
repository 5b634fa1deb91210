"""
UserXP and PlayerTitle: player progression tables.
Schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mahoya.core.database.base import Base, IdMixin, TimestampMixin


class UserXP(Base, IdMixin, TimestampMixin):
    """
    Cumulative XP per user.

    ``level`` and ``current_xp`` are cached values; readers recompute them
    from ``total_xp`` and reconcile on load.
    """

    __tablename__ = "user_xp"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<UserXP user={self.user_id} total_xp={self.total_xp} level={self.level}>"


class PlayerTitle(Base, IdMixin):
    """Level-gated title catalog. One title per level."""

    __tablename__ = "player_titles"

    level: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<PlayerTitle level={self.level} title={self.title!r}>"
