"""
PlayerTitle catalog entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from mahoya.domain.models.base import validate_int, validate_not_empty, validate_positive


@dataclass(frozen=True)
class PlayerTitle:
    level: int
    title: str
    description: Optional[str] = None

    def __post_init__(self) -> None:
        validate_int(self.level, "level")
        validate_positive(self.level, "level")
        validate_not_empty(self.title, "title")

    @classmethod
    def from_record(cls, record: Any) -> "PlayerTitle":
        return cls(
            level=getattr(record, "level", None),
            title=getattr(record, "title", None),
            description=getattr(record, "description", None),
        )
