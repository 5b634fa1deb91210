"""
Achievement Service

Loads the achievement catalog and a player's unlock records, evaluates
progress, records manual grants, and maintains the catalog.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional

from mahoya.domain.models.achievement import AchievementDefinition, AchievementUnlock, PlayerStats
from mahoya.modules.achievements.evaluator import AchievementBoard, evaluate_all, newly_crossed
from mahoya.modules.shared.base_service import BaseService
from mahoya.modules.shared.constants import (
    DEFAULT_ACHIEVEMENT_ICON,
    EVENT_ACHIEVEMENT_CREATED,
    EVENT_ACHIEVEMENT_DELETED,
    EVENT_ACHIEVEMENT_GRANTED,
    EVENT_ACHIEVEMENT_UPDATED,
)
from mahoya.modules.shared.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from mahoya.core.event.bus import EventBus
    from mahoya.database.store import GamificationStore
    from mahoya.modules.progression.service import ProgressionService


class AchievementService(BaseService):
    """
    Args:
        store: Gamification store
        progression: Publishes the XP events of granted achievements
        config: Configuration source
        event_bus: Receives ``achievement.*`` events
        logger: Structured logger
    """

    def __init__(
        self,
        store: GamificationStore,
        progression: ProgressionService,
        config: Any,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config, event_bus, logger)
        self.store = store
        self.progression = progression

    async def get_board(self, user_id: str, stats: PlayerStats) -> AchievementBoard:
        user_id = self.validate_identity(user_id)
        definitions = await self.store.list_achievement_definitions(active_only=True)
        unlocks = await self.store.list_unlocks_for_user(user_id)
        return evaluate_all(definitions, stats, unlocks)

    async def pending_unlocks(self, user_id: str, stats: PlayerStats) -> List[AchievementDefinition]:
        """Achievements the player's stats already satisfy but that were never recorded."""
        user_id = self.validate_identity(user_id)
        definitions = await self.store.list_achievement_definitions(active_only=True)
        unlocks = await self.store.list_unlocks_for_user(user_id)
        return newly_crossed(definitions, stats, unlocks)

    async def grant(
        self,
        user_id: str,
        achievement_id: str,
        granted_by: Optional[str] = None,
    ) -> AchievementUnlock:
        """
        Record an unlock and award its XP.

        The unlock and the XP reward commit together; a failed write leaves
        neither behind, so the grant can simply be retried.

        Raises:
            NotFoundError: Unknown achievement.
            ConflictError: The player already has it.
            TransientIOError: Storage failed; nothing was recorded.
        """
        user_id = self.validate_identity(user_id)
        achievement_id = self.validate_identity(achievement_id, "achievement_id")

        definition = await self.store.get_achievement(achievement_id)
        if definition is None:
            raise NotFoundError("Achievement", achievement_id)

        unlock, progress = await self.store.grant_achievement(
            user_id,
            achievement_id,
            definition.xp_reward,
            reason=f"achievement:{achievement_id}",
        )

        self.log_operation(
            "achievement_grant",
            user_id=user_id,
            achievement_id=achievement_id,
            xp_reward=definition.xp_reward,
            granted_by=granted_by,
        )
        await self.emit_event(
            EVENT_ACHIEVEMENT_GRANTED,
            {
                "user_id": user_id,
                "achievement_id": achievement_id,
                "name": definition.name,
                "xp_reward": definition.xp_reward,
            },
            context={"admin_id": granted_by},
        )
        if progress is not None:
            await self.progression.announce(progress)
        return unlock

    # ------------------------------------------------------------------
    # Catalog administration
    # ------------------------------------------------------------------

    async def list_catalog(self) -> List[AchievementDefinition]:
        """Every definition, inactive ones included."""
        return await self.store.list_achievement_definitions(active_only=False)

    async def create(
        self,
        name: str,
        requirement_type: str = "manual",
        requirement_value: Optional[int] = None,
        xp_reward: int = 0,
        description: Optional[str] = None,
        icon: str = DEFAULT_ACHIEVEMENT_ICON,
        created_by: Optional[str] = None,
    ) -> AchievementDefinition:
        """
        Raises:
            ValidationError: The definition is malformed.
        """
        self.validate_non_negative(xp_reward, "xp_reward")
        definition = await self.store.insert_achievement(
            name,
            requirement_type,
            requirement_value,
            xp_reward=xp_reward,
            description=description,
            icon=icon,
        )
        self.log_operation("achievement_create", achievement_id=definition.id, name=name, admin_id=created_by)
        await self.emit_event(
            EVENT_ACHIEVEMENT_CREATED,
            {"achievement_id": definition.id, "name": definition.name},
            context={"admin_id": created_by},
        )
        return definition

    async def update(
        self,
        achievement_id: str,
        updated_by: Optional[str] = None,
        **changes: Any,
    ) -> AchievementDefinition:
        """
        Edit catalog fields of an achievement. Existing unlocks are kept.

        Raises:
            ValidationError: Unknown field or invalid resulting definition.
            NotFoundError: Unknown achievement.
        """
        achievement_id = self.validate_identity(achievement_id, "achievement_id")
        if not changes:
            raise ValidationError("changes", "nothing to update")
        if "xp_reward" in changes:
            self.validate_non_negative(changes["xp_reward"], "xp_reward")

        definition = await self.store.update_achievement(achievement_id, **changes)
        self.log_operation(
            "achievement_update",
            achievement_id=achievement_id,
            fields=sorted(changes),
            admin_id=updated_by,
        )
        await self.emit_event(
            EVENT_ACHIEVEMENT_UPDATED,
            {"achievement_id": achievement_id, "fields": sorted(changes)},
            context={"admin_id": updated_by},
        )
        return definition

    async def deactivate(self, achievement_id: str, updated_by: Optional[str] = None) -> AchievementDefinition:
        """Hide an achievement from player boards without touching unlocks."""
        return await self.update(achievement_id, updated_by, is_active=False)

    async def delete(self, achievement_id: str, deleted_by: Optional[str] = None) -> None:
        """
        Remove an achievement and every unlock of it. XP already paid stays.

        Raises:
            NotFoundError: Unknown achievement.
        """
        achievement_id = self.validate_identity(achievement_id, "achievement_id")
        if not await self.store.delete_achievement(achievement_id):
            raise NotFoundError("Achievement", achievement_id)
        self.log_operation("achievement_delete", achievement_id=achievement_id, admin_id=deleted_by)
        await self.emit_event(
            EVENT_ACHIEVEMENT_DELETED,
            {"achievement_id": achievement_id},
            context={"admin_id": deleted_by},
        )
