"""
Benefit classification and display rules.

Pure functions over ``UserBenefit`` records. Redemption lives in
``BenefitService``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Tuple

from mahoya.domain.models.base import as_utc
from mahoya.domain.models.benefit import BenefitStatus, UserBenefit
from mahoya.modules.shared.constants import CURRENCY_SYMBOL, SPECIAL_BENEFIT_LABEL


def classify(benefit: UserBenefit, now: datetime) -> BenefitStatus:
    """
    Expired means ``valid_until`` is strictly before ``now``; used follows
    ``is_used`` regardless of expiry.

    Example:
        >>> classify(ten_percent_expired_yesterday, now)
        BenefitStatus(active=False, used=False, expired=True)
    """
    now = as_utc(now, "now")
    expired = benefit.valid_until is not None and benefit.valid_until < now
    return BenefitStatus(
        active=not benefit.is_used and not expired,
        used=benefit.is_used,
        expired=expired,
    )


def format_brl(value: float, symbol: str = CURRENCY_SYMBOL) -> str:
    """
    pt-BR currency rendering.

    Example:
        >>> format_brl(1234.5)
        'R$ 1.234,50'
    """
    whole, cents = f"{value:,.2f}".split(".")
    return f"{symbol} {whole.replace(',', '.')},{cents}"


def format_discount(benefit: UserBenefit, symbol: str = CURRENCY_SYMBOL) -> str:
    """
    Example:
        >>> format_discount(UserBenefit(..., discount_percent=10))
        '10% OFF'
        >>> format_discount(UserBenefit(..., discount_fixed=25))
        'R$ 25,00 OFF'
    """
    if benefit.discount_percent > 0:
        return f"{benefit.discount_percent:g}% OFF"
    if benefit.discount_fixed > 0:
        return f"{format_brl(benefit.discount_fixed, symbol)} OFF"
    return SPECIAL_BENEFIT_LABEL


def partition(benefits: Iterable[UserBenefit], now: datetime) -> Tuple[List[UserBenefit], List[UserBenefit]]:
    """Split into (active, history); history holds used and expired benefits."""
    active: List[UserBenefit] = []
    history: List[UserBenefit] = []
    for benefit in benefits:
        (active if classify(benefit, now).active else history).append(benefit)
    return active, history
