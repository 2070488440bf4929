"""Result grid layout helpers.

Cards are laid out row by row. When the last row is incomplete it is
centered by inserting invisible placeholder cells in front of its first
card.
"""

from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

MIN_CARD_WIDTH = 360
GRID_GAP = 24


def grid_columns(width: int, min_card_width: int = MIN_CARD_WIDTH, gap: int = GRID_GAP) -> int:
    """How many cards of at least ``min_card_width`` fit into ``width``."""
    return max(1, (width + gap) // (min_card_width + gap))


def leading_placeholders(item_count: int, columns: int) -> int:
    """Placeholders to put before the first card of the last, ragged row."""
    if columns < 1:
        raise ValueError(f"columns must be >= 1, got {columns}")
    remainder = item_count % columns
    if remainder == 0:
        return 0
    return (columns - remainder) // 2


def layout_grid(items: Sequence[T], columns: int) -> list[list[Optional[T]]]:
    """Split items into rows of ``columns``; placeholders are ``None``."""
    leading = leading_placeholders(len(items), columns)
    remainder = len(items) % columns
    last_row_start = len(items) - remainder if remainder else len(items)

    rows: list[list[Optional[T]]] = [
        list(items[i:i + columns]) for i in range(0, last_row_start, columns)
    ]
    if remainder:
        rows.append([None] * leading + list(items[last_row_start:]))
    return rows


def restart_fills_last_row(item_count: int, columns: int) -> bool:
    """True when the restart action should sit inline after a lone last card."""
    return columns > 1 and item_count % columns == 1
