"""
D20 Promotion Engine

Purpose
-------
Drive the per-viewer D20 promotion state machine:

    INELIGIBLE --(admin grant)--> ELIGIBLE --roll()--> ROLLED_UNUSED --redeem--> ROLLED_USED

Design Notes
------------
- The engine is storage-agnostic. A ``RollStore`` strategy supplies
  eligibility and the roll record: ``ServerRollStore`` for signed-in users
  (``GamificationStore``), ``GuestRollStore`` for the synthetic guest
  identity (``KeyValueStore`` blobs).
- Guest keys are namespaced by ``STORAGE_KEY_PREFIX``; ``from_config``
  reads it from the configuration source.
- No locking. One roll per identity is enforced by the store, which raises
  ``ConflictError`` on a second insert; the engine answers with the stored
  roll instead.
- The dice is injectable so draws are reproducible in tests.

Usage
-----
    engine = D20PromotionEngine(ServerRollStore(store), Config, event_bus, logger)
    outcome = await engine.roll("user-1")
    if outcome.created:
        show_animation(outcome.roll.roll_result)
"""

from __future__ import annotations

import json
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, Sequence

from mahoya.core.database.base import utc_now
from mahoya.core.logging.logger import LogContext
from mahoya.domain.models.base import DomainValidationError
from mahoya.domain.models.promotion import D20Roll, PrizeTableEntry, PromotionState
from mahoya.modules.promotion.prize_table import PRIZE_TABLE, get_prize
from mahoya.modules.promotion.storage import KeyValueStore, popup_shown_key, roll_key
from mahoya.modules.shared.base_service import BaseService
from mahoya.modules.shared.constants import (
    D20_MAX_ROLL,
    D20_MIN_ROLL,
    EVENT_D20_REDEEMED,
    EVENT_D20_ROLLED,
    POPUP_SHOWN_VALUE,
    STORAGE_KEY_PREFIX,
)
from mahoya.modules.shared.exceptions import (
    AlreadyUsedError,
    ConflictError,
    InvalidOperationError,
    NotEligibleError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from mahoya.core.event.bus import EventBus
    from mahoya.database.store import GamificationStore


Dice = Callable[[], int]

_system_random = secrets.SystemRandom()


def roll_d20() -> int:
    """Uniform draw in [1, 20] from the OS entropy source."""
    return _system_random.randint(D20_MIN_ROLL, D20_MAX_ROLL)


@dataclass(frozen=True)
class PromotionStatus:
    state: PromotionState
    roll: Optional[D20Roll] = None
    prize: Optional[PrizeTableEntry] = None

    @property
    def can_roll(self) -> bool:
        return self.state is PromotionState.ELIGIBLE


@dataclass(frozen=True)
class RollOutcome:
    """``created`` is False when the viewer had already rolled."""

    roll: D20Roll
    created: bool


# ============================================================================
# Roll store strategies
# ============================================================================


class RollStore(Protocol):
    async def is_eligible(self, identity: str) -> bool: ...

    async def get_roll(self, identity: str) -> Optional[D20Roll]: ...

    async def insert_roll(self, identity: str, roll_result: int, prize: PrizeTableEntry) -> D20Roll: ...

    async def mark_used(self, identity: str, order_id: Optional[str]) -> D20Roll: ...


class ServerRollStore:
    """Signed-in viewers: eligibility and rolls live in the gamification store."""

    def __init__(self, store: GamificationStore) -> None:
        self._store = store

    async def is_eligible(self, identity: str) -> bool:
        return await self._store.get_eligibility(identity) is not None

    async def get_roll(self, identity: str) -> Optional[D20Roll]:
        return await self._store.get_roll(identity)

    async def insert_roll(self, identity: str, roll_result: int, prize: PrizeTableEntry) -> D20Roll:
        return await self._store.insert_roll(
            identity,
            roll_result,
            prize.code or "",
            prize.title,
            prize.description,
        )

    async def mark_used(self, identity: str, order_id: Optional[str]) -> D20Roll:
        return await self._store.mark_roll_used(identity, order_id)


class GuestRollStore:
    """
    Guest viewers: the roll is a JSON blob in a key-value store.

    Guests are always eligible. A blob that fails to parse is deleted and
    the guest is treated as not having rolled. Guest rolls are display-only
    and cannot be redeemed against an order.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        logger: Logger,
        prefix: str = STORAGE_KEY_PREFIX,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._kv = kv
        self.log = logger
        self._prefix = prefix
        self._clock = clock

    @classmethod
    def from_config(cls, kv: KeyValueStore, config: Any, logger: Logger) -> "GuestRollStore":
        """Build a guest store namespaced by the configured ``STORAGE_KEY_PREFIX``."""
        return cls(kv, logger, prefix=config.get("STORAGE_KEY_PREFIX", STORAGE_KEY_PREFIX))

    async def is_eligible(self, identity: str) -> bool:
        return True

    async def get_roll(self, identity: str) -> Optional[D20Roll]:
        key = roll_key(identity, self._prefix)
        raw = await self._kv.get(key)
        if raw is None:
            return None
        try:
            return D20Roll.from_blob(identity, json.loads(raw))
        except (ValueError, DomainValidationError) as exc:
            self.log.warning(
                "Discarding corrupt guest roll blob",
                extra={"key": key, "error_type": type(exc).__name__, "error_message": str(exc)},
            )
            await self._kv.delete(key)
            return None

    async def insert_roll(self, identity: str, roll_result: int, prize: PrizeTableEntry) -> D20Roll:
        if await self.get_roll(identity) is not None:
            raise ConflictError("D20Roll", identity)
        roll = D20Roll(
            user_id=identity,
            roll_result=roll_result,
            prize_code=prize.code or "",
            prize_title=prize.title,
            prize_description=prize.description,
            created_at=self._clock(),
        )
        await self._kv.set(roll_key(identity, self._prefix), json.dumps(roll.to_blob()))
        return roll

    async def mark_used(self, identity: str, order_id: Optional[str]) -> D20Roll:
        raise InvalidOperationError("d20_redeem", "guest rolls cannot be redeemed")


# ============================================================================
# Engine
# ============================================================================


class D20PromotionEngine(BaseService):
    """
    One roll per viewer, redeemed at most once.

    Args:
        roll_store: Eligibility and roll persistence strategy
        config: Configuration source
        event_bus: Receives ``d20.rolled`` and ``d20.redeemed``
        logger: Structured logger
        dice: Zero-argument draw returning an int in [1, 20]
        prize_table: Bands resolving a roll to a prize
    """

    def __init__(
        self,
        roll_store: RollStore,
        config: Any,
        event_bus: EventBus,
        logger: Logger,
        dice: Optional[Dice] = None,
        prize_table: Sequence[PrizeTableEntry] = PRIZE_TABLE,
    ) -> None:
        super().__init__(config, event_bus, logger)
        self._rolls = roll_store
        self._dice = dice or roll_d20
        self._prize_table = prize_table

    async def status(self, viewer: str) -> PromotionStatus:
        viewer = self.validate_identity(viewer, "viewer")
        roll = await self._rolls.get_roll(viewer)
        if roll is not None:
            return PromotionStatus(roll.state, roll, get_prize(roll.roll_result, self._prize_table))
        if await self._rolls.is_eligible(viewer):
            return PromotionStatus(PromotionState.ELIGIBLE)
        return PromotionStatus(PromotionState.INELIGIBLE)

    async def roll(self, viewer: str) -> RollOutcome:
        """
        Roll the die for ``viewer``.

        Returns:
            The new roll (``created=True``), or the stored one if the viewer
            had already rolled, including when a concurrent roll won the
            insert race.

        Raises:
            NotEligibleError: Viewer has no roll and no eligibility.
            ValidationError: The dice produced a value outside [1, 20].
        """
        viewer = self.validate_identity(viewer, "viewer")
        async with LogContext(viewer=viewer, operation="d20.roll"):
            return await self._roll(viewer)

    async def _roll(self, viewer: str) -> RollOutcome:
        existing = await self._rolls.get_roll(viewer)
        if existing is not None:
            self.log.info(
                "D20 already rolled, returning stored result",
                extra={"user_id": viewer, "roll_result": existing.roll_result},
            )
            return RollOutcome(existing, created=False)

        if not await self._rolls.is_eligible(viewer):
            raise NotEligibleError(viewer)

        roll_result = self._dice()
        if isinstance(roll_result, bool) or not isinstance(roll_result, int) or not (
            D20_MIN_ROLL <= roll_result <= D20_MAX_ROLL
        ):
            raise ValidationError(
                "roll_result", f"dice produced {roll_result!r}, expected {D20_MIN_ROLL}-{D20_MAX_ROLL}"
            )
        prize = get_prize(roll_result, self._prize_table)

        try:
            roll = await self._rolls.insert_roll(viewer, roll_result, prize)
        except ConflictError as exc:
            winner = await self._rolls.get_roll(viewer)
            if winner is None:
                self.log_error("d20_roll", exc, user_id=viewer, roll_result=roll_result)
                raise
            self.log.info(
                "D20 roll lost insert race, returning stored result",
                extra={"user_id": viewer, "roll_result": winner.roll_result},
            )
            return RollOutcome(winner, created=False)

        self.log_operation("d20_roll", user_id=viewer, roll_result=roll_result, prize_code=prize.code)
        await self.emit_event(
            EVENT_D20_ROLLED,
            {
                "user_id": viewer,
                "roll_result": roll_result,
                "prize_code": prize.code,
                "prize_title": prize.title,
                "category": prize.category.value,
            },
        )
        return RollOutcome(roll, created=True)

    async def redeem(self, viewer: str, order_id: Optional[str] = None) -> D20Roll:
        """
        Mark the viewer's prize as used.

        Raises:
            NotFoundError: Viewer never rolled.
            AlreadyUsedError: Prize was already redeemed.
        """
        viewer = self.validate_identity(viewer, "viewer")
        async with LogContext(viewer=viewer, operation="d20.redeem"):
            return await self._redeem(viewer, order_id)

    async def _redeem(self, viewer: str, order_id: Optional[str]) -> D20Roll:
        try:
            roll = await self._rolls.mark_used(viewer, order_id)
        except (NotFoundError, AlreadyUsedError) as exc:
            self.log.info(
                "D20 redemption refused",
                extra={"user_id": viewer, "order_id": order_id, "error_code": exc.error_code},
            )
            raise

        self.log_operation("d20_redeem", user_id=viewer, order_id=order_id)
        await self.emit_event(
            EVENT_D20_REDEEMED,
            {"user_id": viewer, "order_id": order_id, "prize_code": roll.prize_code},
        )
        return roll


class PopupTracker:
    """
    Decides whether the D20 popup opens on its own.

    The popup auto-opens once per identity, and only while the viewer has
    neither seen it nor rolled. It never gates rolling.
    """

    def __init__(self, kv: KeyValueStore, roll_store: RollStore, prefix: str = STORAGE_KEY_PREFIX) -> None:
        self._kv = kv
        self._rolls = roll_store
        self._prefix = prefix

    @classmethod
    def from_config(cls, kv: KeyValueStore, roll_store: RollStore, config: Any) -> "PopupTracker":
        return cls(kv, roll_store, prefix=config.get("STORAGE_KEY_PREFIX", STORAGE_KEY_PREFIX))

    async def should_auto_open(self, identity: str) -> bool:
        key = popup_shown_key(identity, self._prefix)
        if await self._kv.get(key) is not None:
            return False
        if await self._rolls.get_roll(identity) is not None:
            return False
        await self._kv.set(key, POPUP_SHOWN_VALUE)
        return True
