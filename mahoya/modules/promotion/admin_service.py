"""
D20 eligibility administration.

Grants and revokes the right to roll, and resets a user's roll so they can
roll again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional

from mahoya.domain.models.promotion import D20Eligibility
from mahoya.modules.shared.base_service import BaseService
from mahoya.modules.shared.constants import (
    EVENT_D20_ELIGIBILITY_DISABLED,
    EVENT_D20_ELIGIBILITY_ENABLED,
    EVENT_D20_ROLL_RESET,
)
from mahoya.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from mahoya.core.event.bus import EventBus
    from mahoya.database.store import GamificationStore


class D20AdminService(BaseService):
    def __init__(
        self,
        store: GamificationStore,
        config: Any,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config, event_bus, logger)
        self.store = store

    async def enable(self, user_id: str, enabled_by: Optional[str] = None) -> D20Eligibility:
        """
        Grant eligibility.

        Raises:
            ConflictError: The user is already eligible.
        """
        user_id = self.validate_identity(user_id)
        eligibility = await self.store.add_eligibility(user_id, enabled_by)

        self.log_operation("d20_enable", user_id=user_id, enabled_by=enabled_by)
        await self.emit_event(
            EVENT_D20_ELIGIBILITY_ENABLED,
            {"user_id": user_id},
            context={"admin_id": enabled_by},
        )
        return eligibility

    async def disable(self, user_id: str) -> None:
        """
        Revoke eligibility. An existing roll is left untouched.

        Raises:
            NotFoundError: The user was not eligible.
        """
        user_id = self.validate_identity(user_id)
        if not await self.store.remove_eligibility(user_id):
            raise NotFoundError("D20Eligibility", user_id)

        self.log_operation("d20_disable", user_id=user_id)
        await self.emit_event(EVENT_D20_ELIGIBILITY_DISABLED, {"user_id": user_id})

    async def reset_roll(self, user_id: str) -> bool:
        """Delete the user's roll; returns False when there was none."""
        user_id = self.validate_identity(user_id)
        deleted = await self.store.delete_roll(user_id)

        self.log_operation("d20_reset_roll", user_id=user_id, deleted=deleted)
        if deleted:
            await self.emit_event(EVENT_D20_ROLL_RESET, {"user_id": user_id})
        return deleted

    async def list_eligible(self) -> List[D20Eligibility]:
        return await self.store.list_eligibility()
