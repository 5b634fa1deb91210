"""
Unit tests for level title resolution.
"""

import pytest

from mahoya.domain.models import PlayerTitle
from mahoya.modules.progression.titles import resolve_title, validate_title_catalog
from mahoya.modules.shared.exceptions import ValidationError

CATALOG = [
    PlayerTitle(1, "Novato"),
    PlayerTitle(5, "Aprendiz"),
    PlayerTitle(10, "Alquimista"),
]


@pytest.mark.unit
class TestResolveTitle:
    @pytest.mark.parametrize(
        "level, expected",
        [(1, "Novato"), (4, "Novato"), (5, "Aprendiz"), (9, "Aprendiz"), (10, "Alquimista"), (99, "Alquimista")],
    )
    def test_highest_qualifying_entry_wins(self, level, expected):
        assert resolve_title(level, CATALOG) == expected

    def test_below_every_entry_uses_default(self):
        catalog = [PlayerTitle(3, "Iniciado")]

        assert resolve_title(2, catalog) == "Iniciante"

    def test_empty_catalog_uses_default(self):
        assert resolve_title(7, []) == "Iniciante"

    def test_custom_default(self):
        assert resolve_title(1, [], default="Visitante") == "Visitante"

    def test_unsorted_catalog(self):
        catalog = list(reversed(CATALOG))

        assert resolve_title(6, catalog) == "Aprendiz"


@pytest.mark.unit
class TestValidateTitleCatalog:
    def test_returns_entries_sorted_by_level(self):
        ordered = validate_title_catalog(reversed(CATALOG))

        assert [entry.level for entry in ordered] == [1, 5, 10]

    def test_duplicate_level_rejected(self):
        catalog = [PlayerTitle(5, "Aprendiz"), PlayerTitle(5, "Discípulo")]

        with pytest.raises(ValidationError) as exc_info:
            validate_title_catalog(catalog)

        assert exc_info.value.field == "player_titles"
