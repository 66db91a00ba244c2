from __future__ import annotations

from ..models.position import CellPosition, Orientation, PositionCategory

"""Cell position classifier.

Pure mapping from a CellPosition to exactly one PositionCategory:

- header: the clickable title lane (header row when horizontal, header column
  when vertical)
- subheader: the fixed label lane across the other axis (entity names or year
  labels); never selectable
- summary / totals: appended aggregate row / column; never editable
- data: everything else

At the summary/totals intersection the summary flag wins, so at most one of the
two is ever set.
"""

__all__ = [
    "position_flags",
    "classify_position",
]


def position_flags(position: CellPosition) -> dict[str, bool]:
    """Return the five category flags of a cell; exactly one is True."""
    horizontal = position.orientation is Orientation.HORIZONTAL

    if horizontal:
        header = position.is_header_row
        subheader = not header and position.col_index == 0
    else:
        header = position.is_header_col
        subheader = not header and position.row_index == 0

    lane = not header and not subheader
    summary = (
        lane
        and position.has_summary_row
        and position.total_rows > 1
        and position.row_index == position.total_rows - 1
    )
    totals = (
        lane
        and not summary
        and position.has_totals_col
        and position.total_cols > 1
        and position.col_index == position.total_cols - 1
    )
    data = lane and not summary and not totals

    return {
        "header": header,
        "subheader": subheader,
        "summary": summary,
        "totals": totals,
        "data": data,
    }


def classify_position(position: CellPosition) -> PositionCategory:
    flags = position_flags(position)
    if flags["header"]:
        return PositionCategory.HEADER
    if flags["subheader"]:
        return PositionCategory.SUBHEADER
    if flags["summary"]:
        return PositionCategory.SUMMARY
    if flags["totals"]:
        return PositionCategory.TOTALS
    return PositionCategory.DATA
