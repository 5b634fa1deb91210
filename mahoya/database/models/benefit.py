"""
UserBenefit: discount benefits issued to a user.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mahoya.core.database.base import Base, CreatedAtMixin, IdMixin


class UserBenefit(Base, IdMixin, CreatedAtMixin):
    __tablename__ = "user_benefits"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    discount_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    discount_fixed: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<UserBenefit {self.name!r} user={self.user_id} used={self.is_used}>"
