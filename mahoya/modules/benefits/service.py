"""
Benefit Service

Purpose
-------
Issue, list, redeem and revoke the per-user discount benefits shown on the
account page.

Design Notes
------------
- Redemption is a single conditional update in the store, so two
  concurrent ``mark_used`` calls cannot both succeed.
- Expiry is not enforced at redemption time; an expired benefit is simply
  listed under history. Checkout decides whether to honor it.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from mahoya.core.database.base import utc_now
from mahoya.domain.models.base import DomainValidationError, as_utc
from mahoya.domain.models.benefit import UserBenefit
from mahoya.modules.benefits.ledger import format_discount, partition
from mahoya.modules.shared.base_service import BaseService
from mahoya.modules.shared.constants import (
    CURRENCY_SYMBOL,
    EVENT_BENEFIT_ISSUED,
    EVENT_BENEFIT_REVOKED,
    EVENT_BENEFIT_USED,
)
from mahoya.modules.shared.exceptions import AlreadyUsedError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from mahoya.core.event.bus import EventBus
    from mahoya.database.store import GamificationStore


class BenefitService(BaseService):
    def __init__(
        self,
        store: GamificationStore,
        config: Any,
        event_bus: EventBus,
        logger: Logger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(config, event_bus, logger)
        self.store = store
        self._clock = clock

    async def list_for_user(self, user_id: str) -> List[UserBenefit]:
        """All benefits of a user, newest first."""
        user_id = self.validate_identity(user_id)
        benefits = await self.store.list_benefits_for_user(user_id)
        return sorted(
            benefits,
            key=lambda benefit: benefit.created_at.timestamp() if benefit.created_at else float("-inf"),
            reverse=True,
        )

    async def account_view(
        self, user_id: str, now: Optional[datetime] = None
    ) -> Tuple[List[UserBenefit], List[UserBenefit]]:
        """(active, history) as the account page lists them."""
        return partition(await self.list_for_user(user_id), now or self._clock())

    async def mark_used(self, benefit_id: str) -> UserBenefit:
        """
        Redeem a benefit.

        Raises:
            NotFoundError: Unknown benefit id.
            AlreadyUsedError: The benefit was already redeemed.
        """
        benefit_id = self.validate_identity(benefit_id, "benefit_id")
        try:
            benefit = await self.store.mark_benefit_used(benefit_id)
        except (NotFoundError, AlreadyUsedError) as exc:
            self.log.info(
                "Benefit redemption refused",
                extra={"benefit_id": benefit_id, "error_code": exc.error_code},
            )
            raise

        self.log_operation("benefit_mark_used", benefit_id=benefit_id, user_id=benefit.user_id)
        await self.emit_event(
            EVENT_BENEFIT_USED,
            {"benefit_id": benefit_id, "user_id": benefit.user_id, "name": benefit.name},
        )
        return benefit

    async def issue(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        discount_percent: float = 0,
        discount_fixed: float = 0,
        valid_until: Optional[datetime] = None,
        issued_by: Optional[str] = None,
    ) -> UserBenefit:
        """
        Grant a new benefit to a user.

        Raises:
            ValidationError: Empty name, or a negative or over-100% discount.
        """
        user_id = self.validate_identity(user_id)
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name", "benefit name must not be empty")
        self.validate_non_negative(discount_percent, "discount_percent")
        self.validate_non_negative(discount_fixed, "discount_fixed")
        if discount_percent > 100:
            raise ValidationError("discount_percent", f"discount_percent must be at most 100, got {discount_percent}")

        try:
            valid_until = as_utc(valid_until, "valid_until")
        except DomainValidationError as exc:
            raise ValidationError("valid_until", str(exc)) from exc

        benefit = await self.store.insert_benefit(
            user_id,
            name.strip(),
            description=description,
            discount_percent=discount_percent,
            discount_fixed=discount_fixed,
            valid_until=valid_until,
        )

        self.log_operation("benefit_issue", user_id=user_id, benefit_id=benefit.id, issued_by=issued_by)
        await self.emit_event(
            EVENT_BENEFIT_ISSUED,
            {"benefit_id": benefit.id, "user_id": user_id, "name": benefit.name},
            context={"admin_id": issued_by},
        )
        return benefit

    async def revoke(self, benefit_id: str, revoked_by: Optional[str] = None) -> None:
        """
        Delete a benefit, used or not.

        Raises:
            NotFoundError: Unknown benefit id.
        """
        benefit_id = self.validate_identity(benefit_id, "benefit_id")
        benefit = await self.store.get_benefit(benefit_id)
        if benefit is None or not await self.store.delete_benefit(benefit_id):
            raise NotFoundError("UserBenefit", benefit_id)

        self.log_operation("benefit_revoke", benefit_id=benefit_id, user_id=benefit.user_id, admin_id=revoked_by)
        await self.emit_event(
            EVENT_BENEFIT_REVOKED,
            {"benefit_id": benefit_id, "user_id": benefit.user_id, "name": benefit.name},
            context={"admin_id": revoked_by},
        )

    def describe(self, benefit: UserBenefit) -> str:
        """Discount label using the configured ``CURRENCY_SYMBOL``."""
        return format_discount(benefit, self.get_config("CURRENCY_SYMBOL", CURRENCY_SYMBOL))
