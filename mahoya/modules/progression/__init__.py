"""
Player progression: level curve, titles and XP awards.
"""

from mahoya.modules.progression.service import PlayerProgressView, ProgressionService
from mahoya.modules.progression.titles import resolve_title, validate_title_catalog

__all__ = ["PlayerProgressView", "ProgressionService", "resolve_title", "validate_title_catalog"]
