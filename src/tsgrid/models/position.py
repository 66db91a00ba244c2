from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Orientation and cell position models.

Orientation decides which axis carries the entities. CellPosition is derived per
cell while a frame is laid out and is never stored.
"""

__all__ = [
    "Orientation",
    "PositionCategory",
    "CellPosition",
]


class Orientation(Enum):
    """Layout orientation.

    - HORIZONTAL: entities as rows, years as columns
    - VERTICAL: years as rows, entities as columns
    """
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @classmethod
    def parse(cls, value: Orientation | str) -> Orientation:
        if isinstance(value, Orientation):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown orientation: {value!r}") from None


class PositionCategory(Enum):
    """Disjoint position categories of a table cell."""
    HEADER = "header"
    SUBHEADER = "subheader"
    DATA = "data"
    SUMMARY = "summary"
    TOTALS = "totals"


@dataclass(frozen=True)
class CellPosition:
    """Coordinates of one cell inside a laid out frame.

    total_rows / total_cols count every row and column of the frame, including the
    header lane and an appended summary row or totals column. has_summary_row and
    has_totals_col are cleared by the frame renderer when no aggregate lane exists.
    """
    row_index: int
    col_index: int
    total_rows: int
    total_cols: int
    is_header_row: bool = False
    is_header_col: bool = False
    orientation: Orientation = Orientation.HORIZONTAL
    has_summary_row: bool = True
    has_totals_col: bool = True
