"""
D20 promotion tables: admin-granted eligibility and the single roll per user.

Schema Design
-------------
- ``d20_eligible_users.user_id`` is unique: one grant per user
- ``d20_rolls.user_id`` is unique: the database rejects a second roll, which
  is what resolves two near-simultaneous roll submissions
- Removing eligibility leaves an existing roll untouched (no FK between them)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mahoya.core.database.base import Base, IdMixin, utc_now


class D20EligibleUser(Base, IdMixin):
    __tablename__ = "d20_eligible_users"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    enabled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    enabled_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class D20RollRecord(Base, IdMixin):
    __tablename__ = "d20_rolls"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    roll_result: Mapped[int] = mapped_column(Integer, nullable=False)
    prize_code: Mapped[str] = mapped_column(String(32), nullable=False)
    prize_title: Mapped[str] = mapped_column(String(120), nullable=False)
    prize_description: Mapped[str] = mapped_column(Text, nullable=False)
    rolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    used_in_order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<D20RollRecord user={self.user_id} roll={self.roll_result} used={self.used_at is not None}>"
