"""
Progression Service

Purpose
-------
Expose a player's XP, level, level progress and title, award XP, rank
players for the admin view, and maintain the level title catalog.

Design Notes
------------
- The stored ``level`` column is a cache. Reads recompute the level from
  ``total_xp``; a mismatch is logged, written back and announced as
  ``player.level_reconciled``.
- Players without a ``user_xp`` row read as level 1 with 0 XP. Nothing is
  written until XP is awarded.
- XP is only ever added through the store's atomic increment; the service
  never writes a total it read earlier.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional

from mahoya.domain.models.progress import PlayerProgress
from mahoya.domain.models.title import PlayerTitle
from mahoya.modules.progression.titles import resolve_title, validate_title_catalog
from mahoya.modules.shared.base_service import BaseService
from mahoya.modules.shared.constants import (
    DEFAULT_TITLE,
    EVENT_LEVEL_RECONCILED,
    EVENT_TITLE_REMOVED,
    EVENT_TITLE_SAVED,
)
from mahoya.modules.shared.exceptions import NotFoundError, ValidationError
from mahoya.modules.shared.formulas import LevelProgress

if TYPE_CHECKING:
    from logging import Logger

    from mahoya.core.event.bus import EventBus
    from mahoya.database.store import GamificationStore


@dataclass(frozen=True)
class PlayerProgressView:
    user_id: str
    total_xp: int
    level: int
    progress: LevelProgress
    title: str


class ProgressionService(BaseService):
    def __init__(
        self,
        store: GamificationStore,
        config: Any,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config, event_bus, logger)
        self.store = store

    async def get_progress(self, user_id: str) -> PlayerProgressView:
        user_id = self.validate_identity(user_id)
        progress = await self.store.get_player_xp(user_id) or PlayerProgress.new(user_id)
        if progress.has_level_drift:
            progress = await self._reconcile(progress)
        return self._view(progress, await self._titles())

    async def award_xp(self, user_id: str, amount: int, reason: Optional[str] = None) -> PlayerProgressView:
        """
        Add XP and persist the derived level.

        The increment happens inside the store, so concurrent awards for the
        same user all count.

        Raises:
            ValidationError: ``amount`` is not a positive integer.
        """
        user_id = self.validate_identity(user_id)
        self.validate_positive_int(amount, "amount")

        progress = await self.store.add_player_xp(user_id, amount, reason)
        self.log_operation(
            "award_xp",
            user_id=user_id,
            amount=amount,
            reason=reason,
            total_xp=progress.total_xp,
            level=progress.level,
        )
        await self.announce(progress)
        return self._view(progress, await self._titles())

    async def announce(self, progress: PlayerProgress) -> None:
        """Publish the XP and level-up events recorded on ``progress``."""
        for event in progress.clear_domain_events():
            await self.emit_event(event.event_name, event.payload)

    async def rank_players(self) -> List[PlayerProgressView]:
        """Every player with XP, highest total first."""
        titles = await self._titles()
        players = await self.store.list_player_xp()
        players.sort(key=lambda progress: (-progress.total_xp, progress.user_id))
        return [self._view(progress, titles) for progress in players]

    async def list_titles(self) -> List[PlayerTitle]:
        return await self._titles()

    async def set_title(
        self,
        level: int,
        title: str,
        description: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> PlayerTitle:
        """
        Create or rename the title unlocked at ``level``.

        Raises:
            ValidationError: Non-positive level or empty title.
        """
        self.validate_positive_int(level, "level")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("title", "title must not be empty")

        saved = await self.store.save_title(level, title.strip(), description)
        self.log_operation("title_set", level=level, title=saved.title, admin_id=updated_by)
        await self.emit_event(
            EVENT_TITLE_SAVED,
            {"level": level, "title": saved.title},
            context={"admin_id": updated_by},
        )
        return saved

    async def remove_title(self, level: int, removed_by: Optional[str] = None) -> None:
        """
        Raises:
            NotFoundError: No title at ``level``.
        """
        self.validate_positive_int(level, "level")
        if not await self.store.delete_title(level):
            raise NotFoundError("PlayerTitle", level)
        self.log_operation("title_removed", level=level, admin_id=removed_by)
        await self.emit_event(EVENT_TITLE_REMOVED, {"level": level}, context={"admin_id": removed_by})

    async def _titles(self) -> List[PlayerTitle]:
        return validate_title_catalog(await self.store.list_titles())

    async def _reconcile(self, progress: PlayerProgress) -> PlayerProgress:
        stored_level = progress.stored_level
        self.log.warning(
            "Stored level out of sync with total XP, reconciling",
            extra={
                "user_id": progress.user_id,
                "stored_level": stored_level,
                "derived_level": progress.level,
                "total_xp": progress.total_xp,
            },
        )
        current = await self.store.reconcile_player_level(progress.user_id) or progress
        await self.emit_event(
            EVENT_LEVEL_RECONCILED,
            {"user_id": progress.user_id, "stored_level": stored_level, "level": current.level},
        )
        return current

    def _view(self, progress: PlayerProgress, titles: List[PlayerTitle]) -> PlayerProgressView:
        return PlayerProgressView(
            user_id=progress.user_id,
            total_xp=progress.total_xp,
            level=progress.level,
            progress=progress.progress(),
            title=resolve_title(progress.level, titles, self.get_config("DEFAULT_TITLE", DEFAULT_TITLE)),
        )
