"""
Level → title resolution.

Pure functions. The catalog comes from the store (``player_titles``) and is
validated once when loaded; resolution itself never raises.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from mahoya.domain.models.title import PlayerTitle
from mahoya.modules.shared.constants import DEFAULT_TITLE
from mahoya.modules.shared.exceptions import ValidationError


def validate_title_catalog(titles: Iterable[PlayerTitle]) -> List[PlayerTitle]:
    """
    Check a title catalog and return it sorted by level.

    Raises:
        ValidationError: If two entries share a level.

    Example:
        >>> validate_title_catalog([PlayerTitle(5, "Aprendiz"), PlayerTitle(1, "Novato")])
        [PlayerTitle(level=1, ...), PlayerTitle(level=5, ...)]
    """
    ordered = sorted(titles, key=lambda entry: entry.level)
    seen = set()
    for entry in ordered:
        if entry.level in seen:
            raise ValidationError("player_titles", f"duplicate title level {entry.level}")
        seen.add(entry.level)
    return ordered


def resolve_title(level: int, titles: Sequence[PlayerTitle], default: str = DEFAULT_TITLE) -> str:
    """
    Title of the highest catalog entry whose level is at or below ``level``.

    Example:
        >>> catalog = [PlayerTitle(1, "Novato"), PlayerTitle(5, "Aprendiz")]
        >>> resolve_title(4, catalog)
        'Novato'
        >>> resolve_title(0, catalog)
        'Iniciante'
    """
    qualifying = [entry for entry in titles if entry.level <= level]
    if not qualifying:
        return default
    return max(qualifying, key=lambda entry: entry.level).title
