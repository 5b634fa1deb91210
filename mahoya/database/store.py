"""
Gamification Store

Purpose
-------
The narrow persistence port the gamification services consume, and its
SQLAlchemy implementation over ``DatabaseService``.

Responsibilities
----------------
- Read and write eligibility, rolls, achievements, unlocks, benefits,
  titles and XP totals
- Parse every row into a validated domain record before returning it
- Translate driver errors into domain errors:
  - unique-constraint violations → ``ConflictError``
  - connectivity/timeouts → ``TransientIOError``
  - malformed rows → ``ValidationError``
- Make single-use transitions (roll redemption, benefit redemption) atomic
  with a conditional UPDATE
- Increment XP totals in SQL, and commit an achievement unlock together
  with its XP reward

Non-Responsibilities
--------------------
- Gamification rules (services and pure modules)
- Retrying transient failures (external callers)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import (
    Any,
    AsyncGenerator,
    Awaitable,
    Callable,
    FrozenSet,
    List,
    Optional,
    Protocol,
    Tuple,
    TypeVar,
    runtime_checkable,
)

from sqlalchemy import update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from mahoya.core.database.base import utc_now
from mahoya.core.database.service import DatabaseService
from mahoya.core.logging.logger import get_logger
from mahoya.database.models import (
    Achievement,
    D20EligibleUser,
    D20RollRecord,
    PlayerTitle as PlayerTitleRecord,
    UserAchievement,
    UserBenefit as UserBenefitRecord,
    UserXP,
)
from mahoya.domain.models import (
    AchievementDefinition,
    AchievementUnlock,
    D20Eligibility,
    D20Roll,
    DomainValidationError,
    PlayerProgress,
    PlayerTitle,
    UserBenefit,
)
from mahoya.modules.shared.base_repository import BaseRepository
from mahoya.modules.shared.constants import DEFAULT_ACHIEVEMENT_ICON
from mahoya.modules.shared.exceptions import (
    AlreadyUsedError,
    ConflictError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)

_R = TypeVar("_R")

ACHIEVEMENT_FIELDS: FrozenSet[str] = frozenset(
    {"name", "description", "icon", "xp_reward", "requirement_type", "requirement_value", "is_active"}
)


class _XPRowRace(Exception):
    """Another transaction inserted the user's ``user_xp`` row first."""

    def __init__(self, user_id: str) -> None:
        super().__init__(user_id)
        self.user_id = user_id


@runtime_checkable
class GamificationStore(Protocol):
    """Persistence port for the gamification engine."""

    async def get_eligibility(self, user_id: str) -> Optional[D20Eligibility]: ...

    async def add_eligibility(self, user_id: str, enabled_by: Optional[str] = None) -> D20Eligibility: ...

    async def remove_eligibility(self, user_id: str) -> bool: ...

    async def list_eligibility(self) -> List[D20Eligibility]: ...

    async def get_roll(self, user_id: str) -> Optional[D20Roll]: ...

    async def insert_roll(
        self,
        user_id: str,
        roll_result: int,
        prize_code: str,
        prize_title: str,
        prize_description: str,
    ) -> D20Roll: ...

    async def mark_roll_used(self, user_id: str, order_id: Optional[str] = None) -> D20Roll: ...

    async def delete_roll(self, user_id: str) -> bool: ...

    async def list_achievement_definitions(self, active_only: bool = True) -> List[AchievementDefinition]: ...

    async def get_achievement(self, achievement_id: str) -> Optional[AchievementDefinition]: ...

    async def insert_achievement(
        self,
        name: str,
        requirement_type: str = "manual",
        requirement_value: Optional[int] = None,
        xp_reward: int = 0,
        description: Optional[str] = None,
        icon: str = DEFAULT_ACHIEVEMENT_ICON,
        is_active: bool = True,
    ) -> AchievementDefinition: ...

    async def update_achievement(self, achievement_id: str, **changes: Any) -> AchievementDefinition: ...

    async def delete_achievement(self, achievement_id: str) -> bool: ...

    async def list_unlocks_for_user(self, user_id: str) -> List[AchievementUnlock]: ...

    async def insert_unlock(self, user_id: str, achievement_id: str) -> AchievementUnlock: ...

    async def grant_achievement(
        self,
        user_id: str,
        achievement_id: str,
        xp_reward: int,
        reason: Optional[str] = None,
    ) -> Tuple[AchievementUnlock, Optional[PlayerProgress]]: ...

    async def list_benefits_for_user(self, user_id: str) -> List[UserBenefit]: ...

    async def get_benefit(self, benefit_id: str) -> Optional[UserBenefit]: ...

    async def insert_benefit(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        discount_percent: float = 0,
        discount_fixed: float = 0,
        valid_until: Optional[datetime] = None,
    ) -> UserBenefit: ...

    async def mark_benefit_used(self, benefit_id: str) -> UserBenefit: ...

    async def delete_benefit(self, benefit_id: str) -> bool: ...

    async def list_titles(self) -> List[PlayerTitle]: ...

    async def save_title(self, level: int, title: str, description: Optional[str] = None) -> PlayerTitle: ...

    async def delete_title(self, level: int) -> bool: ...

    async def get_player_xp(self, user_id: str) -> Optional[PlayerProgress]: ...

    async def add_player_xp(self, user_id: str, amount: int, reason: Optional[str] = None) -> PlayerProgress: ...

    async def reconcile_player_level(self, user_id: str) -> Optional[PlayerProgress]: ...

    async def list_player_xp(self) -> List[PlayerProgress]: ...


class SqlAlchemyGamificationStore:
    """
    ``GamificationStore`` backed by SQLAlchemy async sessions.

    Args:
        database: Session provider exposing ``get_transaction()``
        clock: Source of "now" for redemption timestamps
    """

    def __init__(
        self,
        database: Any = DatabaseService,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = database
        self._clock = clock
        self.log = get_logger(__name__)

        self._eligibility = BaseRepository[D20EligibleUser](D20EligibleUser, self.log)
        self._rolls = BaseRepository[D20RollRecord](D20RollRecord, self.log)
        self._achievements = BaseRepository[Achievement](Achievement, self.log)
        self._unlocks = BaseRepository[UserAchievement](UserAchievement, self.log)
        self._benefits = BaseRepository[UserBenefitRecord](UserBenefitRecord, self.log)
        self._titles = BaseRepository[PlayerTitleRecord](PlayerTitleRecord, self.log)
        self._xp = BaseRepository[UserXP](UserXP, self.log)

    # ========================================================================
    # Error translation
    # ========================================================================

    @asynccontextmanager
    async def _transaction(
        self,
        operation: str,
        conflict: Optional[Tuple[str, Any]] = None,
    ) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._db.get_transaction() as session:
                yield session
        except IntegrityError as exc:
            resource_type, identifier = conflict or (operation, None)
            self.log.info(
                f"Store conflict during {operation}",
                extra={"operation": operation, "resource_type": resource_type, "identifier": identifier},
            )
            raise ConflictError(resource_type, identifier) from exc
        except (OperationalError, DBAPIError) as exc:
            self.log.warning(
                f"Store unavailable during {operation}",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise TransientIOError(operation, str(exc.orig) if exc.orig else str(exc)) from exc
        except DomainValidationError as exc:
            self.log.error(
                f"Malformed row rejected during {operation}",
                extra={"operation": operation, "field": exc.field, "error_message": str(exc)},
            )
            raise ValidationError(exc.field or operation, str(exc)) from exc

    # ========================================================================
    # D20 eligibility
    # ========================================================================

    async def get_eligibility(self, user_id: str) -> Optional[D20Eligibility]:
        async with self._transaction("get_eligibility") as session:
            row = await self._eligibility.find_one_where(session, D20EligibleUser.user_id == user_id)
            return D20Eligibility.from_record(row) if row else None

    async def add_eligibility(self, user_id: str, enabled_by: Optional[str] = None) -> D20Eligibility:
        async with self._transaction("add_eligibility", ("D20Eligibility", user_id)) as session:
            row = self._eligibility.add(
                session,
                D20EligibleUser(user_id=user_id, enabled_by=enabled_by, enabled_at=self._clock()),
            )
            await self._eligibility.flush(session)
            return D20Eligibility.from_record(row)

    async def remove_eligibility(self, user_id: str) -> bool:
        async with self._transaction("remove_eligibility") as session:
            deleted = await self._eligibility.delete_where(session, D20EligibleUser.user_id == user_id)
            return deleted > 0

    async def list_eligibility(self) -> List[D20Eligibility]:
        async with self._transaction("list_eligibility") as session:
            rows = await self._eligibility.find_many_where(
                session, order_by=[D20EligibleUser.enabled_at.desc()]
            )
            return [D20Eligibility.from_record(row) for row in rows]

    # ========================================================================
    # D20 rolls
    # ========================================================================

    async def get_roll(self, user_id: str) -> Optional[D20Roll]:
        async with self._transaction("get_roll") as session:
            row = await self._rolls.find_one_where(session, D20RollRecord.user_id == user_id)
            return D20Roll.from_record(row) if row else None

    async def insert_roll(
        self,
        user_id: str,
        roll_result: int,
        prize_code: str,
        prize_title: str,
        prize_description: str,
    ) -> D20Roll:
        async with self._transaction("insert_roll", ("D20Roll", user_id)) as session:
            row = self._rolls.add(
                session,
                D20RollRecord(
                    user_id=user_id,
                    roll_result=roll_result,
                    prize_code=prize_code,
                    prize_title=prize_title,
                    prize_description=prize_description,
                    rolled_at=self._clock(),
                ),
            )
            await self._rolls.flush(session)
            return D20Roll.from_record(row)

    async def mark_roll_used(self, user_id: str, order_id: Optional[str] = None) -> D20Roll:
        async with self._transaction("mark_roll_used") as session:
            result = await session.execute(
                update(D20RollRecord)
                .where(D20RollRecord.user_id == user_id, D20RollRecord.used_at.is_(None))
                .values(used_at=self._clock(), used_in_order_id=order_id)
            )
            row = await self._rolls.find_one_where(session, D20RollRecord.user_id == user_id)
            if row is None:
                raise NotFoundError("D20Roll", user_id)
            if result.rowcount == 0:
                raise AlreadyUsedError("D20Roll", user_id, row.used_at)
            await self._rolls.refresh(session, row)
            return D20Roll.from_record(row)

    async def delete_roll(self, user_id: str) -> bool:
        async with self._transaction("delete_roll") as session:
            deleted = await self._rolls.delete_where(session, D20RollRecord.user_id == user_id)
            return deleted > 0

    # ========================================================================
    # Achievements
    # ========================================================================

    async def list_achievement_definitions(self, active_only: bool = True) -> List[AchievementDefinition]:
        conditions = [Achievement.is_active.is_(True)] if active_only else []
        async with self._transaction("list_achievement_definitions") as session:
            rows = await self._achievements.find_many_where(
                session,
                *conditions,
                order_by=[Achievement.requirement_value.asc().nulls_first(), Achievement.name.asc()],
            )
            return [AchievementDefinition.from_record(row) for row in rows]

    async def get_achievement(self, achievement_id: str) -> Optional[AchievementDefinition]:
        async with self._transaction("get_achievement") as session:
            row = await self._achievements.get(session, achievement_id)
            return AchievementDefinition.from_record(row) if row else None

    async def insert_achievement(
        self,
        name: str,
        requirement_type: str = "manual",
        requirement_value: Optional[int] = None,
        xp_reward: int = 0,
        description: Optional[str] = None,
        icon: str = DEFAULT_ACHIEVEMENT_ICON,
        is_active: bool = True,
    ) -> AchievementDefinition:
        async with self._transaction("insert_achievement") as session:
            row = self._achievements.add(
                session,
                Achievement(
                    name=name,
                    requirement_type=requirement_type,
                    requirement_value=requirement_value,
                    xp_reward=xp_reward,
                    description=description,
                    icon=icon,
                    is_active=is_active,
                ),
            )
            await self._achievements.flush(session)
            return AchievementDefinition.from_record(row)

    async def update_achievement(self, achievement_id: str, **changes: Any) -> AchievementDefinition:
        """
        Overwrite the given catalog fields.

        Raises:
            ValidationError: Unknown field, or the result is not a valid definition.
            NotFoundError: No such achievement.
        """
        unknown = set(changes) - ACHIEVEMENT_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "not an editable achievement field")
        async with self._transaction("update_achievement") as session:
            row = await self._achievements.get(session, achievement_id, for_update=True)
            if row is None:
                raise NotFoundError("Achievement", achievement_id)
            for field_name, value in changes.items():
                setattr(row, field_name, value)
            definition = AchievementDefinition.from_record(row)
            await self._achievements.flush(session)
            return definition

    async def delete_achievement(self, achievement_id: str) -> bool:
        """Remove a definition together with every unlock of it."""
        async with self._transaction("delete_achievement") as session:
            await self._unlocks.delete_where(session, UserAchievement.achievement_id == achievement_id)
            deleted = await self._achievements.delete_where(session, Achievement.id == achievement_id)
            return deleted > 0

    async def list_unlocks_for_user(self, user_id: str) -> List[AchievementUnlock]:
        async with self._transaction("list_unlocks_for_user") as session:
            rows = await self._unlocks.find_many_where(session, UserAchievement.user_id == user_id)
            return [AchievementUnlock.from_record(row) for row in rows]

    async def insert_unlock(self, user_id: str, achievement_id: str) -> AchievementUnlock:
        async with self._transaction(
            "insert_unlock", ("AchievementUnlock", f"{user_id}:{achievement_id}")
        ) as session:
            row = self._unlocks.add(
                session,
                UserAchievement(user_id=user_id, achievement_id=achievement_id, unlocked_at=self._clock()),
            )
            await self._unlocks.flush(session)
            return AchievementUnlock.from_record(row)

    async def grant_achievement(
        self,
        user_id: str,
        achievement_id: str,
        xp_reward: int,
        reason: Optional[str] = None,
    ) -> Tuple[AchievementUnlock, Optional[PlayerProgress]]:
        """
        Record the unlock and pay its XP reward in one transaction.

        Either both are committed or neither is, so a grant that failed
        transiently can be retried without leaving an unpaid unlock behind.

        Raises:
            ConflictError: The player already has the achievement.
        """

        async def work(session: AsyncSession) -> Tuple[AchievementUnlock, Optional[PlayerProgress]]:
            row = self._unlocks.add(
                session,
                UserAchievement(user_id=user_id, achievement_id=achievement_id, unlocked_at=self._clock()),
            )
            await self._unlocks.flush(session)
            unlock = AchievementUnlock.from_record(row)
            progress = await self._add_xp(session, user_id, xp_reward, reason) if xp_reward > 0 else None
            return unlock, progress

        return await self._in_xp_transaction(
            "grant_achievement", work, ("AchievementUnlock", f"{user_id}:{achievement_id}")
        )

    # ========================================================================
    # Benefits
    # ========================================================================

    async def list_benefits_for_user(self, user_id: str) -> List[UserBenefit]:
        async with self._transaction("list_benefits_for_user") as session:
            rows = await self._benefits.find_many_where(
                session,
                UserBenefitRecord.user_id == user_id,
                order_by=[UserBenefitRecord.created_at.desc()],
            )
            return [UserBenefit.from_record(row) for row in rows]

    async def get_benefit(self, benefit_id: str) -> Optional[UserBenefit]:
        async with self._transaction("get_benefit") as session:
            row = await self._benefits.get(session, benefit_id)
            return UserBenefit.from_record(row) if row else None

    async def insert_benefit(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        discount_percent: float = 0,
        discount_fixed: float = 0,
        valid_until: Optional[datetime] = None,
    ) -> UserBenefit:
        async with self._transaction("insert_benefit") as session:
            row = self._benefits.add(
                session,
                UserBenefitRecord(
                    user_id=user_id,
                    name=name,
                    description=description,
                    discount_percent=discount_percent,
                    discount_fixed=discount_fixed,
                    valid_until=valid_until,
                    is_used=False,
                    created_at=self._clock(),
                ),
            )
            await self._benefits.flush(session)
            return UserBenefit.from_record(row)

    async def mark_benefit_used(self, benefit_id: str) -> UserBenefit:
        async with self._transaction("mark_benefit_used") as session:
            result = await session.execute(
                update(UserBenefitRecord)
                .where(UserBenefitRecord.id == benefit_id, UserBenefitRecord.is_used.is_(False))
                .values(is_used=True, used_at=self._clock())
            )
            row = await self._benefits.get(session, benefit_id)
            if row is None:
                raise NotFoundError("UserBenefit", benefit_id)
            if result.rowcount == 0:
                raise AlreadyUsedError("UserBenefit", benefit_id, row.used_at)
            await self._benefits.refresh(session, row)
            return UserBenefit.from_record(row)

    async def delete_benefit(self, benefit_id: str) -> bool:
        async with self._transaction("delete_benefit") as session:
            deleted = await self._benefits.delete_where(session, UserBenefitRecord.id == benefit_id)
            return deleted > 0

    # ========================================================================
    # Titles
    # ========================================================================

    async def list_titles(self) -> List[PlayerTitle]:
        async with self._transaction("list_titles") as session:
            rows = await self._titles.find_many_where(session, order_by=[PlayerTitleRecord.level.asc()])
            return [PlayerTitle.from_record(row) for row in rows]

    async def save_title(self, level: int, title: str, description: Optional[str] = None) -> PlayerTitle:
        """Create or replace the title unlocked at ``level``."""
        async with self._transaction("save_title", ("PlayerTitle", level)) as session:
            row = await self._titles.find_one_where(session, PlayerTitleRecord.level == level, for_update=True)
            if row is None:
                row = self._titles.add(session, PlayerTitleRecord(level=level))
            row.title = title
            row.description = description
            title_record = PlayerTitle.from_record(row)
            await self._titles.flush(session)
            return title_record

    async def delete_title(self, level: int) -> bool:
        async with self._transaction("delete_title") as session:
            deleted = await self._titles.delete_where(session, PlayerTitleRecord.level == level)
            return deleted > 0

    # ========================================================================
    # XP
    # ========================================================================

    async def get_player_xp(self, user_id: str) -> Optional[PlayerProgress]:
        async with self._transaction("get_player_xp") as session:
            row = await self._xp.find_one_where(session, UserXP.user_id == user_id)
            return PlayerProgress.from_record(row) if row else None

    async def add_player_xp(self, user_id: str, amount: int, reason: Optional[str] = None) -> PlayerProgress:
        """
        Atomically add ``amount`` to the user's total and refresh the cached level.

        Returns:
            The updated progress, carrying its ``player.xp_added`` /
            ``player.leveled_up`` domain events for the caller to publish.
        """

        async def work(session: AsyncSession) -> PlayerProgress:
            return await self._add_xp(session, user_id, amount, reason)

        return await self._in_xp_transaction("add_player_xp", work)

    async def reconcile_player_level(self, user_id: str) -> Optional[PlayerProgress]:
        """
        Rewrite the cached ``level`` / ``current_xp`` from the stored total.

        Returns:
            Progress as loaded (``stored_level`` still holds the old cache),
            or None when the user has no XP row.
        """
        async with self._transaction("reconcile_player_level") as session:
            row = await self._xp.find_one_where(session, UserXP.user_id == user_id, for_update=True)
            if row is None:
                return None
            progress = PlayerProgress.from_record(row)
            # Only the cache columns; total_xp is written by add_player_xp alone.
            row.level = progress.level
            row.current_xp = progress.current_xp
            await self._xp.flush(session)
            return progress

    async def list_player_xp(self) -> List[PlayerProgress]:
        async with self._transaction("list_player_xp") as session:
            rows = await self._xp.find_many_where(
                session, order_by=[UserXP.total_xp.desc(), UserXP.user_id.asc()]
            )
            return [PlayerProgress.from_record(row) for row in rows]

    async def _add_xp(
        self, session: AsyncSession, user_id: str, amount: int, reason: Optional[str]
    ) -> PlayerProgress:
        # Increment in SQL so concurrent awards serialize on the row instead of
        # overwriting each other's totals.
        result = await session.execute(
            update(UserXP)
            .where(UserXP.user_id == user_id)
            .values(total_xp=UserXP.total_xp + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            row = self._xp.add(session, UserXP(user_id=user_id, total_xp=amount, current_xp=0, level=1))
            try:
                await self._xp.flush(session)
            except IntegrityError as exc:
                raise _XPRowRace(user_id) from exc
        else:
            row = await self._xp.find_one_where(session, UserXP.user_id == user_id)
            if row is None:
                raise NotFoundError("UserXP", user_id)

        progress = PlayerProgress(user_id, total_xp=row.total_xp - amount, stored_level=row.level)
        progress.add_xp(amount, reason)
        for field_name, value in progress.to_db_updates().items():
            setattr(row, field_name, value)
        await self._xp.flush(session)
        progress.mark_reconciled()
        return progress

    async def _in_xp_transaction(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[_R]],
        conflict: Optional[Tuple[str, Any]] = None,
    ) -> _R:
        """Run ``work`` in one transaction, retrying once if the user's XP row was created concurrently."""
        try:
            async with self._transaction(operation, conflict) as session:
                return await work(session)
        except _XPRowRace as race:
            self.log.info(
                f"XP row created concurrently during {operation}, retrying",
                extra={"operation": operation, "user_id": race.user_id},
            )
        try:
            async with self._transaction(operation, conflict) as session:
                return await work(session)
        except _XPRowRace as race:
            raise ConflictError("UserXP", race.user_id) from race
