from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from ..models.cell_key import CellKey
from ..models.config_models import Marker
from ..models.position import Orientation

"""Grid configuration builder.

Turns an entity list and a year range into row descriptors, column descriptors
and a cell accessor. Both orientations go through the same builder: an
AxisMapping decides which axis carries the entities, and get_cell_data asks the
mapping to split a (row, col) pair back into (entity, year). Callers holding a
GridConfiguration never branch on orientation.

Time-series points are mappings ``{"year": int, "value": number | None}``.
"""

__all__ = [
    "YEAR_KEY",
    "VALUE_KEY",
    "EntityDescriptor",
    "YearDescriptor",
    "CellData",
    "AxisMapping",
    "HORIZONTAL_AXES",
    "VERTICAL_AXES",
    "axis_mapping_for",
    "GridConfiguration",
    "build_grid_configuration",
    "find_marker",
    "format_year_label",
    "is_blank_value",
    "series_frame",
    "grid_to_frame",
]

YEAR_KEY = "year"
VALUE_KEY = "value"


def is_blank_value(value: Any) -> bool:
    """None, empty string and NaN count as no data."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float) and np.isnan(value):
        return True
    return False


def find_marker(year: int, markers: Sequence[Marker] = ()) -> Marker | None:
    for marker in markers:
        if marker.year == year:
            return marker
    return None


def format_year_label(year: int) -> str:
    if year == 0:
        return "Year 0"
    return f"Year +{year}" if year > 0 else f"Year {year}"


@dataclass(frozen=True)
class EntityDescriptor:
    """One entity lane (row when horizontal, column when vertical)."""
    index: int  # real index in the entity list, kept when lanes are hidden
    entity: Mapping[str, Any] = field(compare=False, repr=False)
    title: str = ""

    @property
    def key(self) -> str:
        return f"contract-{self.index}"


@dataclass(frozen=True)
class YearDescriptor:
    """One year lane (column when horizontal, row when vertical)."""
    year: int
    marker: Marker | None = None

    @property
    def key(self) -> str:
        return f"year-{self.year}"

    @property
    def label(self) -> str:
        return format_year_label(self.year)


Descriptor = EntityDescriptor | YearDescriptor


@dataclass(frozen=True)
class CellData:
    """Resolved content of one data cell."""
    value: Any
    entity_index: int
    year: int
    cell_key: CellKey
    marker: Marker | None = None
    present: bool = False  # a point exists for this year


@dataclass(frozen=True)
class AxisMapping:
    """Placement of the entity axis.

    entities_on_rows=True is the horizontal layout; False is its transpose.
    """
    orientation: Orientation
    entities_on_rows: bool

    def arrange(
        self, entities: list[EntityDescriptor], years: list[YearDescriptor]
    ) -> tuple[list[Descriptor], list[Descriptor]]:
        if self.entities_on_rows:
            return list(entities), list(years)
        return list(years), list(entities)

    def split(self, row: Descriptor, col: Descriptor) -> tuple[EntityDescriptor, YearDescriptor]:
        entity, year = (row, col) if self.entities_on_rows else (col, row)
        if not isinstance(entity, EntityDescriptor) or not isinstance(year, YearDescriptor):
            raise TypeError("row/col descriptors do not match the grid orientation")
        return entity, year

    @property
    def corner_title(self) -> str:
        return "Contract" if self.entities_on_rows else "Year"


HORIZONTAL_AXES = AxisMapping(orientation=Orientation.HORIZONTAL, entities_on_rows=True)
VERTICAL_AXES = AxisMapping(orientation=Orientation.VERTICAL, entities_on_rows=False)


def axis_mapping_for(orientation: Orientation | str) -> AxisMapping:
    orientation = Orientation.parse(orientation)
    return HORIZONTAL_AXES if orientation is Orientation.HORIZONTAL else VERTICAL_AXES


def _point_index(entity: Mapping[str, Any], field_name: str) -> dict[int, Mapping[str, Any]]:
    series = entity.get(field_name) or []
    index: dict[int, Mapping[str, Any]] = {}
    for point in series:
        if isinstance(point, Mapping) and YEAR_KEY in point:
            index.setdefault(point[YEAR_KEY], point)
    return index


def series_frame(entities: Sequence[Mapping[str, Any]], field_name: str, years: Sequence[int]) -> pd.DataFrame:
    """Entities x years frame of raw values (NaN where no point exists)."""
    rows = []
    for entity in entities:
        points = _point_index(entity, field_name)
        rows.append([points[y].get(VALUE_KEY) if y in points else None for y in years])
    return pd.DataFrame(rows, index=range(len(entities)), columns=list(years), dtype=object)


@dataclass
class GridConfiguration:
    """Rows, columns and cell accessor for one frame."""
    axes: AxisMapping
    rows: list[Descriptor]
    cols: list[Descriptor]
    field_name: str
    _points: dict[int, dict[int, Mapping[str, Any]]] = field(default_factory=dict, repr=False)

    @property
    def orientation(self) -> Orientation:
        return self.axes.orientation

    def get_cell_data(self, row: Descriptor, col: Descriptor) -> CellData:
        entity, year = self.axes.split(row, col)
        points = self._points.get(entity.index)
        if points is None:
            points = _point_index(entity.entity, self.field_name)
            self._points[entity.index] = points
        point = points.get(year.year)
        return CellData(
            value=point.get(VALUE_KEY) if point is not None else None,
            entity_index=entity.index,
            year=year.year,
            cell_key=CellKey(entity.index, year.year),
            marker=year.marker,
            present=point is not None,
        )

    def iter_cells(self):
        """Yield (row, col, CellData) in row-major order."""
        for row in self.rows:
            for col in self.cols:
                yield row, col, self.get_cell_data(row, col)

    @property
    def entity_lanes(self) -> list[EntityDescriptor]:
        lanes = self.rows if self.axes.entities_on_rows else self.cols
        return [lane for lane in lanes if isinstance(lane, EntityDescriptor)]

    @property
    def year_lanes(self) -> list[YearDescriptor]:
        lanes = self.cols if self.axes.entities_on_rows else self.rows
        return [lane for lane in lanes if isinstance(lane, YearDescriptor)]


def build_grid_configuration(
    orientation: Orientation | str,
    years: Sequence[int],
    entities: Sequence[Mapping[str, Any]] | None,
    field_name: str,
    hide_empty: bool = False,
    is_editing: bool = False,
    markers: Sequence[Marker] = (),
) -> GridConfiguration:
    """Build the grid for one orientation.

    When hide_empty is set and the grid is read-only, entities and years whose
    whole cross-section is blank are dropped. Edit mode always shows the full
    sets so every cell of the working copy is reachable.
    """
    axes = axis_mapping_for(orientation)
    entity_list = list(entities or [])
    year_list = list(years)

    kept_entities = list(range(len(entity_list)))
    kept_years = year_list
    if hide_empty and not is_editing and entity_list and year_list:
        frame = series_frame(entity_list, field_name, year_list)
        has_data = ~frame.map(is_blank_value)
        kept_entities = [i for i in frame.index if bool(has_data.loc[i].any())]
        kept_years = [y for y in year_list if bool(has_data[y].any())]

    entity_lanes = [
        EntityDescriptor(
            index=i,
            entity=entity_list[i],
            title=str(entity_list[i].get("name") or f"Contract {i + 1}"),
        )
        for i in kept_entities
    ]
    year_lanes = [YearDescriptor(year=y, marker=find_marker(y, markers)) for y in kept_years]

    rows, cols = axes.arrange(entity_lanes, year_lanes)
    return GridConfiguration(axes=axes, rows=rows, cols=cols, field_name=field_name)


def _lane_label(lane: Descriptor) -> str:
    if isinstance(lane, EntityDescriptor):
        return lane.title
    return lane.label


def grid_to_frame(
    grid: GridConfiguration,
    formatter: Callable[[Any], Any] | None = None,
) -> pd.DataFrame:
    """Export the visible cells as a DataFrame labelled like the table."""
    data = []
    for row in grid.rows:
        values = []
        for col in grid.cols:
            value = grid.get_cell_data(row, col).value
            values.append(formatter(value) if formatter is not None else value)
        data.append(values)
    return pd.DataFrame(
        data,
        index=[_lane_label(r) for r in grid.rows],
        columns=[_lane_label(c) for c in grid.cols],
        dtype=object,
    )
