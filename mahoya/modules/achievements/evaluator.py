"""
Achievement progress evaluation.

Purpose
-------
Pure functions that turn a player's purchase statistics and stored unlock
records into per-achievement progress for display.

Design Notes
------------
- "Unlocked" is either a stored unlock record or live stats crossing the
  threshold. The second case is a display inference only: nothing here
  writes an unlock. ``newly_crossed`` lists those cases so a reconciliation
  job can persist them.
- ``manual`` achievements are unlocked only by a stored record.
- A missing or zero threshold counts as 1, so no division by zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Iterable, List, Sequence, Tuple

from mahoya.domain.models.achievement import (
    AchievementDefinition,
    AchievementUnlock,
    OrderSummary,
    PlayerStats,
    RequirementType,
)
from mahoya.modules.shared.formulas import clamp_percent


@dataclass(frozen=True)
class AchievementProgress:
    current: float
    target: int
    percent: float
    unlocked: bool


@dataclass(frozen=True)
class AchievementBoard:
    entries: List[Tuple[AchievementDefinition, AchievementProgress]]
    unlocked_count: int

    @property
    def total(self) -> int:
        return len(self.entries)


def _raw_current(definition: AchievementDefinition, stats: PlayerStats, has_record: bool) -> float:
    requirement = definition.requirement_type
    if requirement is RequirementType.ORDERS_COUNT:
        return stats.orders_count
    if requirement is RequirementType.TOTAL_SPENT:
        return stats.total_spent
    if requirement is RequirementType.UNIQUE_PRODUCTS:
        return stats.unique_product_count
    if requirement is RequirementType.MANUAL:
        return 1 if has_record else 0
    return definition.target if has_record else 0


def evaluate(
    definition: AchievementDefinition,
    stats: PlayerStats,
    unlocked_ids: Collection[str],
) -> AchievementProgress:
    """
    Progress of one achievement for one player.

    Args:
        definition: Catalog entry
        stats: Player purchase statistics
        unlocked_ids: Achievement ids with a stored unlock record

    Returns:
        AchievementProgress with ``current`` clamped to [0, target]

    Example:
        >>> evaluate(first_order, PlayerStats(orders_count=3), set())
        AchievementProgress(current=1, target=1, percent=100.0, unlocked=True)
    """
    target = definition.target
    has_record = definition.id in unlocked_ids
    raw = _raw_current(definition, stats, has_record)
    percent = clamp_percent(raw, target)

    if definition.requirement_type is RequirementType.MANUAL:
        unlocked = has_record
    else:
        unlocked = has_record or percent >= 100

    return AchievementProgress(
        current=min(max(raw, 0), target),
        target=target,
        percent=round(percent, 2),
        unlocked=unlocked,
    )


def order_definitions(definitions: Iterable[AchievementDefinition]) -> List[AchievementDefinition]:
    """Active definitions, ascending by threshold with missing thresholds first."""
    active = [definition for definition in definitions if definition.is_active]
    return sorted(
        active,
        key=lambda d: (d.requirement_value is not None, d.requirement_value or 0),
    )


def evaluate_all(
    definitions: Iterable[AchievementDefinition],
    stats: PlayerStats,
    unlocks: Iterable[AchievementUnlock],
) -> AchievementBoard:
    """Evaluate every active achievement and count the unlocked ones."""
    unlocked_ids = {unlock.achievement_id for unlock in unlocks}
    entries = [
        (definition, evaluate(definition, stats, unlocked_ids))
        for definition in order_definitions(definitions)
    ]
    return AchievementBoard(
        entries=entries,
        unlocked_count=sum(1 for _, progress in entries if progress.unlocked),
    )


def newly_crossed(
    definitions: Iterable[AchievementDefinition],
    stats: PlayerStats,
    unlocks: Iterable[AchievementUnlock],
) -> List[AchievementDefinition]:
    """Active achievements whose threshold is met by live stats but have no stored unlock."""
    unlocked_ids = {unlock.achievement_id for unlock in unlocks}
    return [
        definition
        for definition in order_definitions(definitions)
        if definition.id not in unlocked_ids and evaluate(definition, stats, unlocked_ids).unlocked
    ]


def aggregate_player_stats(orders: Sequence[OrderSummary]) -> PlayerStats:
    """
    Purchase statistics from a player's orders.

    Example:
        >>> aggregate_player_stats([
        ...     OrderSummary(total=50.0, product_names=["Vela Lavanda"]),
        ...     OrderSummary(total=None, product_names=["Vela Lavanda", "Sabonete"]),
        ... ])
        PlayerStats(orders_count=2, total_spent=50.0, unique_product_count=2)
    """
    product_names = {name for order in orders for name in order.product_names}
    return PlayerStats(
        orders_count=len(orders),
        total_spent=float(sum(order.total or 0 for order in orders)),
        unique_product_count=len(product_names),
    )
