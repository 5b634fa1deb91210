"""
Static D20 prize table.

Six bands partition the rolls 1..20. ``get_prize`` never raises: a roll
outside the table resolves to the first entry.
"""

from __future__ import annotations

from typing import Sequence, Tuple

from mahoya.domain.models.promotion import PrizeCategory, PrizeTableEntry
from mahoya.modules.shared.constants import D20_MAX_ROLL, D20_MIN_ROLL
from mahoya.modules.shared.exceptions import ValidationError

PRIZE_TABLE: Tuple[PrizeTableEntry, ...] = (
    PrizeTableEntry(1, 5, "Bênção da Natureza", "5% de desconto", "MAHOYA5", PrizeCategory.DISCOUNT),
    PrizeTableEntry(6, 10, "Essência Mística", "10% de desconto", "MAHOYA10", PrizeCategory.DISCOUNT),
    PrizeTableEntry(11, 14, "Poção de Boas-Vindas", "15% de desconto", "MAHOYA15", PrizeCategory.DISCOUNT),
    PrizeTableEntry(15, 17, "Presente Encantado", "Brinde surpresa", "BRINDE", PrizeCategory.GIFT),
    PrizeTableEntry(18, 19, "Tesouro Alquímico", "20% de desconto", "TESOURO20", PrizeCategory.SPECIAL),
    PrizeTableEntry(20, 20, "✨ CRÍTICO! ✨", "Vela artesanal grátis no pedido!", "CRITICO", PrizeCategory.SPECIAL),
)


def get_prize(roll: int, table: Sequence[PrizeTableEntry] = PRIZE_TABLE) -> PrizeTableEntry:
    """
    Prize for a roll.

    Example:
        >>> get_prize(7).code
        'MAHOYA10'
        >>> get_prize(21).code
        'MAHOYA5'
    """
    for entry in table:
        if entry.contains(roll):
            return entry
    return table[0]


def validate_prize_table(
    table: Sequence[PrizeTableEntry] = PRIZE_TABLE,
    low: int = D20_MIN_ROLL,
    high: int = D20_MAX_ROLL,
) -> None:
    """
    Check that the table covers every roll in [low, high] exactly once.

    Raises:
        ValidationError: On a gap or an overlap.
    """
    for roll in range(low, high + 1):
        matches = [entry for entry in table if entry.contains(roll)]
        if len(matches) != 1:
            raise ValidationError(
                "prize_table",
                f"roll {roll} matches {len(matches)} entries, expected exactly 1",
            )
    for entry in table:
        if entry.low < low or entry.high > high:
            raise ValidationError("prize_table", f"entry {entry.code} falls outside {low}-{high}")


validate_prize_table()
