"""
Mahoya Level Curve

Purpose
-------
Pure calculation functions for the XP → level curve and per-level progress.

Design Notes
------------
All formulas:
- Accept parameters explicitly
- Never raise; out-of-domain input is clamped to documented defaults
- Have no infrastructure dependencies

The curve:
- ``xp_floor(L)`` is the cumulative XP needed to *reach* level L,
  ``sum(i * 100 for i in 2..L)``.
- ``xp_to_next(L)`` is the XP span of the next level-up, ``(L + 1) * 100``.
  It is computed by its own formula and not derived from ``xp_floor``.

Usage
-----
    from mahoya.modules.shared.formulas import level_and_progress

    progress = level_and_progress(total_xp=250, level=2)
    progress.percent  # 16.67
"""

from __future__ import annotations

from dataclasses import dataclass

from mahoya.modules.shared.constants import MIN_LEVEL, XP_STEP


@dataclass(frozen=True)
class LevelProgress:
    """Progress inside the current level."""

    current_level_xp: int
    needed_for_next: int
    percent: float


def xp_floor(level: int) -> int:
    """
    Calculate cumulative XP required to reach a level from level 1.

    Closed form of ``sum(i * 100 for i in range(2, level + 1))``.
    Levels below 1 are treated as level 1.

    Args:
        level: Target level

    Returns:
        Total XP required to reach the level

    Example:
        >>> xp_floor(1)
        0
        >>> xp_floor(2)
        200
        >>> xp_floor(3)
        500
    """
    level = max(MIN_LEVEL, level)
    return XP_STEP * (level * (level + 1) // 2 - 1)


def xp_to_next(level: int) -> int:
    """
    XP span of the next level-up.

    Args:
        level: Current level

    Returns:
        ``(level + 1) * 100``

    Example:
        >>> xp_to_next(1)
        200
        >>> xp_to_next(2)
        300
    """
    return (max(MIN_LEVEL, level) + 1) * XP_STEP


def level_from_total_xp(total_xp: int) -> int:
    """
    Derive the level for a cumulative XP total.

    Returns the unique L with ``xp_floor(L) <= total_xp < xp_floor(L + 1)``.
    Negative totals map to level 1.

    Example:
        >>> level_from_total_xp(0)
        1
        >>> level_from_total_xp(499)
        2
        >>> level_from_total_xp(500)
        3
    """
    level = MIN_LEVEL
    while xp_floor(level + 1) <= total_xp:
        level += 1
    return level


def level_and_progress(total_xp: int, level: int) -> LevelProgress:
    """
    Compute progress inside ``level`` for a cumulative XP total.

    ``current_level_xp`` may be negative when ``level`` is inconsistent with
    ``total_xp``; ``percent`` is always clamped to [0, 100].

    Args:
        total_xp: Cumulative XP
        level: Level the caller believes the player is at

    Returns:
        LevelProgress with percent rounded to two decimals

    Example:
        >>> level_and_progress(250, 2)
        LevelProgress(current_level_xp=50, needed_for_next=300, percent=16.67)
    """
    current = total_xp - xp_floor(level)
    needed = xp_to_next(level)
    percent = min(max(current / needed * 100, 0.0), 100.0)
    return LevelProgress(
        current_level_xp=current,
        needed_for_next=needed,
        percent=round(percent, 2),
    )


def clamp_percent(current: float, target: float) -> float:
    """
    Ratio of current to target as a percentage in [0, 100].

    A non-positive target is treated as 1.

    Example:
        >>> clamp_percent(3, 5)
        60.0
        >>> clamp_percent(10, 5)
        100.0
    """
    if target <= 0:
        target = 1
    return min(max(current / target * 100, 0.0), 100.0)
