"""
Pytest Configuration and Fixtures for Mahoya Tests
==================================================

Purpose
-------
Shared fixtures for the Mahoya gamification test suite.

Responsibilities
----------------
- In-memory ``GamificationStore`` fake for service unit tests
- Event bus, config and logger fixtures
- Temporary SQLite database (aiosqlite) for store integration tests

Architecture Notes
------------------
- Unit tests use the fake store and mocks (fast, isolated)
- Integration tests run the SQLAlchemy store against a fresh SQLite file
  per test, so every test starts from an empty schema
"""

from __future__ import annotations

import dataclasses
import os

os.environ.setdefault("ENVIRONMENT", "testing")

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from mahoya.core.config import Config
from mahoya.core.database import DatabaseService
from mahoya.core.event import EventBus
from mahoya.core.logging import get_logger
from mahoya.database.store import ACHIEVEMENT_FIELDS, SqlAlchemyGamificationStore
from mahoya.domain.models import (
    AchievementDefinition,
    AchievementUnlock,
    D20Eligibility,
    D20Roll,
    PlayerProgress,
    PlayerTitle,
    UserBenefit,
)
from mahoya.domain.models.base import DomainValidationError
from mahoya.modules.shared.exceptions import (
    AlreadyUsedError,
    ConflictError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# FAKE STORE (Unit Tests)
# ============================================================================


class FakeGamificationStore:
    """
    Dict-backed ``GamificationStore`` with the same conflict and redemption rules.

    Set ``fail_xp_writes`` to make the next XP writes raise ``TransientIOError``
    without changing any state, like a rolled-back transaction.
    """

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now
        self.eligibility: Dict[str, D20Eligibility] = {}
        self.rolls: Dict[str, D20Roll] = {}
        self.achievements: Dict[str, AchievementDefinition] = {}
        self.unlocks: Dict[Tuple[str, str], AchievementUnlock] = {}
        self.benefits: Dict[str, UserBenefit] = {}
        self.titles: List[PlayerTitle] = []
        self.xp: Dict[str, Tuple[int, int]] = {}
        self.reconciled: List[Tuple[str, int, int]] = []
        self.fail_xp_writes = 0
        self._benefit_seq = 0
        self._achievement_seq = 0

    async def get_eligibility(self, user_id: str) -> Optional[D20Eligibility]:
        return self.eligibility.get(user_id)

    async def add_eligibility(self, user_id: str, enabled_by: Optional[str] = None) -> D20Eligibility:
        if user_id in self.eligibility:
            raise ConflictError("D20Eligibility", user_id)
        grant = D20Eligibility(user_id=user_id, enabled_at=self.now, enabled_by=enabled_by)
        self.eligibility[user_id] = grant
        return grant

    async def remove_eligibility(self, user_id: str) -> bool:
        return self.eligibility.pop(user_id, None) is not None

    async def list_eligibility(self) -> List[D20Eligibility]:
        return list(self.eligibility.values())

    async def get_roll(self, user_id: str) -> Optional[D20Roll]:
        return self.rolls.get(user_id)

    async def insert_roll(self, user_id, roll_result, prize_code, prize_title, prize_description) -> D20Roll:
        if user_id in self.rolls:
            raise ConflictError("D20Roll", user_id)
        roll = D20Roll(
            user_id=user_id,
            roll_result=roll_result,
            prize_code=prize_code,
            prize_title=prize_title,
            prize_description=prize_description,
            created_at=self.now,
        )
        self.rolls[user_id] = roll
        return roll

    async def mark_roll_used(self, user_id: str, order_id: Optional[str] = None) -> D20Roll:
        roll = self.rolls.get(user_id)
        if roll is None:
            raise NotFoundError("D20Roll", user_id)
        if roll.is_used:
            raise AlreadyUsedError("D20Roll", user_id, roll.used_at)
        used = D20Roll(
            user_id=roll.user_id,
            roll_result=roll.roll_result,
            prize_code=roll.prize_code,
            prize_title=roll.prize_title,
            prize_description=roll.prize_description,
            created_at=roll.created_at,
            used_at=self.now,
            used_in_order_id=order_id,
        )
        self.rolls[user_id] = used
        return used

    async def delete_roll(self, user_id: str) -> bool:
        return self.rolls.pop(user_id, None) is not None

    async def list_achievement_definitions(self, active_only: bool = True) -> List[AchievementDefinition]:
        return [d for d in self.achievements.values() if d.is_active or not active_only]

    async def get_achievement(self, achievement_id: str) -> Optional[AchievementDefinition]:
        return self.achievements.get(achievement_id)

    async def insert_achievement(
        self,
        name,
        requirement_type="manual",
        requirement_value=None,
        xp_reward=0,
        description=None,
        icon="🏆",
        is_active=True,
    ) -> AchievementDefinition:
        self._achievement_seq += 1
        definition = self._build_definition(
            id=f"achievement-{self._achievement_seq}",
            name=name,
            requirement_type=requirement_type,
            requirement_value=requirement_value,
            xp_reward=xp_reward,
            description=description,
            icon=icon,
            is_active=is_active,
        )
        self.achievements[definition.id] = definition
        return definition

    async def update_achievement(self, achievement_id: str, **changes) -> AchievementDefinition:
        unknown = set(changes) - ACHIEVEMENT_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "not an editable achievement field")
        current = self.achievements.get(achievement_id)
        if current is None:
            raise NotFoundError("Achievement", achievement_id)
        fields = {f.name: getattr(current, f.name) for f in dataclasses.fields(current)}
        fields["requirement_type"] = current.requirement_type.value
        definition = self._build_definition(**{**fields, **changes})
        self.achievements[achievement_id] = definition
        return definition

    async def delete_achievement(self, achievement_id: str) -> bool:
        for key in [key for key in self.unlocks if key[1] == achievement_id]:
            del self.unlocks[key]
        return self.achievements.pop(achievement_id, None) is not None

    @staticmethod
    def _build_definition(**fields) -> AchievementDefinition:
        try:
            return AchievementDefinition.from_record(SimpleNamespace(**fields))
        except DomainValidationError as exc:
            raise ValidationError(exc.field or "achievement", str(exc)) from exc

    async def list_unlocks_for_user(self, user_id: str) -> List[AchievementUnlock]:
        return [unlock for (owner, _), unlock in self.unlocks.items() if owner == user_id]

    async def insert_unlock(self, user_id: str, achievement_id: str) -> AchievementUnlock:
        key = (user_id, achievement_id)
        if key in self.unlocks:
            raise ConflictError("AchievementUnlock", f"{user_id}:{achievement_id}")
        unlock = AchievementUnlock(user_id=user_id, achievement_id=achievement_id, unlocked_at=self.now)
        self.unlocks[key] = unlock
        return unlock

    async def grant_achievement(self, user_id, achievement_id, xp_reward, reason=None):
        self._maybe_fail("grant_achievement")
        key = (user_id, achievement_id)
        if key in self.unlocks:
            raise ConflictError("AchievementUnlock", f"{user_id}:{achievement_id}")
        unlock = AchievementUnlock(user_id=user_id, achievement_id=achievement_id, unlocked_at=self.now)
        self.unlocks[key] = unlock
        progress = self._add_xp(user_id, xp_reward, reason) if xp_reward > 0 else None
        return unlock, progress

    async def list_benefits_for_user(self, user_id: str) -> List[UserBenefit]:
        return [b for b in self.benefits.values() if b.user_id == user_id]

    async def get_benefit(self, benefit_id: str) -> Optional[UserBenefit]:
        return self.benefits.get(benefit_id)

    async def insert_benefit(
        self,
        user_id,
        name,
        description=None,
        discount_percent=0,
        discount_fixed=0,
        valid_until=None,
    ) -> UserBenefit:
        self._benefit_seq += 1
        benefit = UserBenefit(
            id=f"benefit-{self._benefit_seq}",
            user_id=user_id,
            name=name,
            description=description,
            discount_percent=discount_percent,
            discount_fixed=discount_fixed,
            valid_until=valid_until,
            created_at=self.now + timedelta(seconds=self._benefit_seq),
        )
        self.benefits[benefit.id] = benefit
        return benefit

    async def mark_benefit_used(self, benefit_id: str) -> UserBenefit:
        benefit = self.benefits.get(benefit_id)
        if benefit is None:
            raise NotFoundError("UserBenefit", benefit_id)
        if benefit.is_used:
            raise AlreadyUsedError("UserBenefit", benefit_id, benefit.used_at)
        used = UserBenefit(
            id=benefit.id,
            user_id=benefit.user_id,
            name=benefit.name,
            description=benefit.description,
            discount_percent=benefit.discount_percent,
            discount_fixed=benefit.discount_fixed,
            valid_until=benefit.valid_until,
            is_used=True,
            used_at=self.now,
            created_at=benefit.created_at,
        )
        self.benefits[benefit_id] = used
        return used

    async def delete_benefit(self, benefit_id: str) -> bool:
        return self.benefits.pop(benefit_id, None) is not None

    async def list_titles(self) -> List[PlayerTitle]:
        return sorted(self.titles, key=lambda title: title.level)

    async def save_title(self, level: int, title: str, description: Optional[str] = None) -> PlayerTitle:
        saved = PlayerTitle(level=level, title=title, description=description)
        self.titles = [existing for existing in self.titles if existing.level != level] + [saved]
        return saved

    async def delete_title(self, level: int) -> bool:
        remaining = [existing for existing in self.titles if existing.level != level]
        deleted = len(remaining) != len(self.titles)
        self.titles = remaining
        return deleted

    async def get_player_xp(self, user_id: str) -> Optional[PlayerProgress]:
        if user_id not in self.xp:
            return None
        total_xp, level = self.xp[user_id]
        return PlayerProgress(user_id, total_xp=total_xp, stored_level=level)

    async def add_player_xp(self, user_id: str, amount: int, reason: Optional[str] = None) -> PlayerProgress:
        self._maybe_fail("add_player_xp")
        return self._add_xp(user_id, amount, reason)

    async def reconcile_player_level(self, user_id: str) -> Optional[PlayerProgress]:
        progress = await self.get_player_xp(user_id)
        if progress is None:
            return None
        self.xp[user_id] = (progress.total_xp, progress.level)
        self.reconciled.append((user_id, progress.total_xp, progress.level))
        return progress

    async def list_player_xp(self) -> List[PlayerProgress]:
        return [
            PlayerProgress(user_id, total_xp=total_xp, stored_level=level)
            for user_id, (total_xp, level) in self.xp.items()
        ]

    def _add_xp(self, user_id: str, amount: int, reason: Optional[str]) -> PlayerProgress:
        total_xp, level = self.xp.get(user_id, (0, 1))
        progress = PlayerProgress(user_id, total_xp=total_xp, stored_level=level)
        progress.add_xp(amount, reason)
        self.xp[user_id] = (progress.total_xp, progress.level)
        progress.mark_reconciled()
        return progress

    def _maybe_fail(self, operation: str) -> None:
        """Raise before mutating anything while ``fail_xp_writes`` is positive."""
        if self.fail_xp_writes > 0:
            self.fail_xp_writes -= 1
            raise TransientIOError(operation, "connection reset")


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def fake_store() -> FakeGamificationStore:
    return FakeGamificationStore()


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests asserting on published events
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock()
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(listener_timeout_seconds=1.0)


@pytest.fixture
def config():
    return Config


@pytest.fixture
def test_logger():
    return get_logger("mahoya.tests")


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[type[DatabaseService], None]:
    """
    Fresh SQLite database with the full schema.

    Scope: function (new file per test, clean slate)
    """
    await DatabaseService.initialize(f"sqlite+aiosqlite:///{tmp_path / 'mahoya.db'}")
    await DatabaseService.create_schema()
    yield DatabaseService
    await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def sql_store(database) -> SqlAlchemyGamificationStore:
    return SqlAlchemyGamificationStore(database=database, clock=lambda: FIXED_NOW)

