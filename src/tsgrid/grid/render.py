from __future__ import annotations

import math
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from ..models.cell_key import CellKey
from ..models.config_models import DataFieldOption, Marker
from ..models.position import CellPosition, Orientation, PositionCategory
from .classes import compose_cell_classes, evaluate_thresholds, marker_styles
from .classifier import classify_position
from .layout import (
    CellData,
    EntityDescriptor,
    GridConfiguration,
    YearDescriptor,
    grid_to_frame,
    is_blank_value,
)

"""Frame renderer.

Lays a GridConfiguration out as a full table frame and produces one descriptor
per cell for the painting layer:

    row 0           header / subheader lane with the column titles
    col 0           label lane with the row titles
    last row        summary row, only when a summary aggregate is given
    last col        totals column, only when a totals aggregate is given

Each descriptor carries the formatted value (read mode, label and aggregate
cells) or an editor widget (data cells in edit mode), the composed class list
and the inline style overrides.
"""

__all__ = [
    "Aggregate",
    "EditorWidget",
    "CellDescriptor",
    "TableFrame",
    "format_cell_value",
    "render_frame",
]

# Reduces the numeric values of one lane to a single number.
Aggregate = Callable[[Sequence[float]], "float | None"]

HEADER_KEY = "header"
LABEL_KEY = "label"
SUMMARY_KEY = "summary"
TOTALS_KEY = "totals"

MODIFIED_BACKGROUND = "rgba(24, 144, 255, 0.1)"
ERROR_BACKGROUND = "rgba(255, 77, 79, 0.1)"
ERROR_BORDER = "#ff4d4f"

_STEP_BY_TYPE = {"currency": 1000, "percentage": 0.1, "number": 1}


def _plain_number(number: float) -> str:
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def format_cell_value(value: Any, field_type: str = "number") -> str:
    """Display text of a read-only value: ``-`` for blanks."""
    if is_blank_value(value):
        return "-"
    if isinstance(value, bool):
        return str(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if math.isnan(number):
        return "-"

    if field_type == "currency":
        if number.is_integer():
            return f"{int(number):,}"
        return f"{number:,}"
    if field_type == "percentage":
        return f"{_plain_number(number)}%"
    return _plain_number(number)


@dataclass(frozen=True)
class EditorWidget:
    """Numeric input for one editable cell."""
    value: Any
    cell_key: str
    kind: str = "input-number"
    min: float | None = None
    max: float | None = None
    precision: int | None = None
    step: float = 1
    display_format: str | None = None  # "thousands" | "percent"
    modified: bool = False
    error: str | None = None


@dataclass(frozen=True)
class CellDescriptor:
    key: str
    category: PositionCategory
    class_list: tuple[str, ...]
    style_overrides: dict[str, Any] = field(default_factory=dict)
    formatted_value: str | None = None
    widget: EditorWidget | None = None
    cell_key: CellKey | None = None
    value: Any = None

    @property
    def class_name(self) -> str:
        return " ".join(self.class_list)

    @property
    def editable(self) -> bool:
        return self.widget is not None


@dataclass
class TableFrame:
    orientation: Orientation
    row_keys: list[str]
    col_keys: list[str]
    cells: list[list[CellDescriptor]]
    grid: GridConfiguration
    summary_values: dict[str, float | None] = field(default_factory=dict)  # col key -> value
    totals_values: dict[str, float | None] = field(default_factory=dict)  # row key -> value
    grand_total: float | None = None

    @property
    def total_rows(self) -> int:
        return len(self.row_keys)

    @property
    def total_cols(self) -> int:
        return len(self.col_keys)

    def cell(self, row_key: str, col_key: str) -> CellDescriptor:
        return self.cells[self.row_keys.index(row_key)][self.col_keys.index(col_key)]

    def class_matrix(self) -> list[list[str]]:
        return [[c.class_name for c in row] for row in self.cells]


def _numeric_frame(grid: GridConfiguration) -> pd.DataFrame:
    frame = grid_to_frame(grid)
    frame.index = [lane.key for lane in grid.rows]
    frame.columns = [lane.key for lane in grid.cols]
    return frame.apply(pd.to_numeric, errors="coerce")


def _reduce(aggregate: Aggregate, values: pd.Series | Sequence[Any]) -> float | None:
    numbers = [float(v) for v in values if v is not None and not pd.isna(v)]
    return aggregate(numbers)


def _lane_title(lane: EntityDescriptor | YearDescriptor) -> str:
    if isinstance(lane, EntityDescriptor):
        return lane.title
    if lane.marker is not None and lane.marker.label:
        return f"{lane.label} ({lane.marker.label})"
    return lane.label


def _lane_marker(lane: Any) -> Marker | None:
    return lane.marker if isinstance(lane, YearDescriptor) else None


def _states(keys: Collection[str], selected: Collection[str], primary: Collection[str]) -> dict[str, bool]:
    return {
        "selected": any(k in selected for k in keys),
        "primary": any(k in primary for k in keys),
    }


def _editor_styles(modified: bool, error: str | None) -> dict[str, Any]:
    styles: dict[str, Any] = {}
    if modified:
        styles["backgroundColor"] = ERROR_BACKGROUND if error else MODIFIED_BACKGROUND
    if error:
        styles["borderColor"] = ERROR_BORDER
    return styles


def render_frame(
    grid: GridConfiguration,
    option: DataFieldOption,
    *,
    is_editing: bool = False,
    modified: Collection[CellKey] = frozenset(),
    validation_errors: Mapping[CellKey, str] | None = None,
    summary: Aggregate | None = None,
    totals: Aggregate | None = None,
    aggregate_label: str = "Total",
    selected: Collection[str] = (),
    primary: Collection[str] = (),
    thresholds: Sequence[Mapping[str, Any]] | None = None,
) -> TableFrame:
    """Render every cell of the grid into descriptors.

    selected / primary hold lane keys (``contract-{i}``, ``year-{y}``); a cell is
    in a state when its row or its column lane is. Threshold rules are evaluated
    against the entity of each data cell and win over every other style.
    """
    errors = validation_errors or {}
    orientation = grid.orientation
    has_summary = summary is not None and bool(grid.rows) and bool(grid.cols)
    has_totals = totals is not None and bool(grid.rows) and bool(grid.cols)

    row_lanes: list[Any] = [None, *grid.rows] + ([SUMMARY_KEY] if has_summary else [])
    col_lanes: list[Any] = [None, *grid.cols] + ([TOTALS_KEY] if has_totals else [])
    row_keys = [HEADER_KEY] + [lane.key for lane in grid.rows] + ([SUMMARY_KEY] if has_summary else [])
    col_keys = [LABEL_KEY] + [lane.key for lane in grid.cols] + ([TOTALS_KEY] if has_totals else [])
    total_rows, total_cols = len(row_keys), len(col_keys)

    summary_values: dict[str, float | None] = {}
    totals_values: dict[str, float | None] = {}
    grand_total: float | None = None
    if has_summary or has_totals:
        numeric = _numeric_frame(grid)
        if has_summary:
            summary_values = {key: _reduce(summary, numeric[key]) for key in numeric.columns}
        if has_totals:
            totals_values = {key: _reduce(totals, numeric.loc[key]) for key in numeric.index}
        if has_summary and has_totals:
            # the intersection summarizes the totals column, like every other column
            grand_total = _reduce(summary, list(totals_values.values()))

    cells: list[list[CellDescriptor]] = []
    for r, row_lane in enumerate(row_lanes):
        line: list[CellDescriptor] = []
        for c, col_lane in enumerate(col_lanes):
            position = CellPosition(
                row_index=r,
                col_index=c,
                total_rows=total_rows,
                total_cols=total_cols,
                is_header_row=r == 0,
                is_header_col=c == 0,
                orientation=orientation,
                has_summary_row=has_summary,
                has_totals_col=has_totals,
            )
            category = classify_position(position)
            key = f"{row_keys[r]}:{col_keys[c]}"
            lane_keys = (row_keys[r], col_keys[c])
            states = _states(lane_keys, selected, primary)

            if r == 0 or c == 0:
                line.append(
                    _render_label(key, category, orientation, row_lane, col_lane, grid, aggregate_label, states)
                )
                continue

            if row_lane == SUMMARY_KEY or col_lane == TOTALS_KEY:
                if row_lane == SUMMARY_KEY and col_lane == TOTALS_KEY:
                    value = grand_total
                elif row_lane == SUMMARY_KEY:
                    value = summary_values.get(col_keys[c])
                else:
                    value = totals_values.get(row_keys[r])
                marker = _lane_marker(col_lane) or _lane_marker(row_lane)
                line.append(
                    CellDescriptor(
                        key=key,
                        category=category,
                        class_list=tuple(compose_cell_classes(category, orientation, marker, states)),
                        style_overrides=marker_styles(marker),
                        formatted_value=format_cell_value(value, option.type),
                        value=value,
                    )
                )
                continue

            data = grid.get_cell_data(row_lane, col_lane)
            line.append(
                _render_data_cell(
                    key, category, orientation, data, grid, row_lane, col_lane, option,
                    is_editing, modified, errors, states, thresholds,
                )
            )
        cells.append(line)

    return TableFrame(
        orientation=orientation,
        row_keys=row_keys,
        col_keys=col_keys,
        cells=cells,
        grid=grid,
        summary_values=summary_values,
        totals_values=totals_values,
        grand_total=grand_total,
    )


def _render_label(
    key: str,
    category: PositionCategory,
    orientation: Orientation,
    row_lane: Any,
    col_lane: Any,
    grid: GridConfiguration,
    aggregate_label: str,
    states: dict[str, bool],
) -> CellDescriptor:
    lane = col_lane if row_lane is None else row_lane
    if row_lane is None and col_lane is None:
        text = grid.axes.corner_title
    elif lane in (SUMMARY_KEY, TOTALS_KEY):
        text = aggregate_label
    else:
        text = _lane_title(lane)
    marker = _lane_marker(lane)
    return CellDescriptor(
        key=key,
        category=category,
        class_list=tuple(compose_cell_classes(category, orientation, marker, states)),
        style_overrides=marker_styles(marker),
        formatted_value=text,
    )


def _render_data_cell(
    key: str,
    category: PositionCategory,
    orientation: Orientation,
    data: CellData,
    grid: GridConfiguration,
    row_lane: Any,
    col_lane: Any,
    option: DataFieldOption,
    is_editing: bool,
    modified: Collection[CellKey],
    errors: Mapping[CellKey, str],
    states: dict[str, bool],
    thresholds: Sequence[Mapping[str, Any]] | None,
) -> CellDescriptor:
    entity, _ = grid.axes.split(row_lane, col_lane)
    styles = marker_styles(data.marker)
    class_list = tuple(compose_cell_classes(category, orientation, data.marker, states))

    widget = None
    formatted = None
    if is_editing:
        is_modified = data.cell_key in modified
        error = errors.get(data.cell_key)
        styles.update(_editor_styles(is_modified, error))
        bounds = option.validation
        widget = EditorWidget(
            value=data.value,
            cell_key=data.cell_key.encode(),
            min=bounds.min,
            max=bounds.max,
            precision=bounds.precision,
            step=_STEP_BY_TYPE.get(option.type, 1),
            display_format={"currency": "thousands", "percentage": "percent"}.get(option.type),
            modified=is_modified,
            error=error,
        )
    else:
        formatted = format_cell_value(data.value, option.type)

    if thresholds:
        overrides = evaluate_thresholds(entity.entity, thresholds, data.value)
        styles.update({k: v for k, v in overrides.items() if not k.startswith("_")})

    return CellDescriptor(
        key=key,
        category=category,
        class_list=class_list,
        style_overrides=styles,
        formatted_value=formatted,
        widget=widget,
        cell_key=data.cell_key,
        value=data.value,
    )
