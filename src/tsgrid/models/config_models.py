from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .position import Orientation

"""Config dataclasses for the time-series grid engine.

These are the domain models produced by tsgrid.config.loader. Validation lives in
the loader (validate_table_config) so that hand-built instances are checked the
same way before an EditSession accepts them.
"""

__all__ = [
    "FIELD_TYPES",
    "FieldValidation",
    "DataFieldOption",
    "DimensionRange",
    "Marker",
    "TableConfig",
]

FIELD_TYPES = ("number", "currency", "percentage")


@dataclass(frozen=True)
class FieldValidation:
    """Numeric bounds for a data field. None disables the check."""
    min: float | None = None
    max: float | None = None
    precision: int | None = None  # max decimal places


@dataclass(frozen=True)
class DataFieldOption:
    """One selectable time-series field of the entities (e.g. ``fees``)."""
    value: str  # attribute name holding the point sequence
    label: str
    type: str = "number"  # number | currency | percentage
    validation: FieldValidation = field(default_factory=FieldValidation)
    default_value_field: str | None = None  # entity attribute used to fill missing years
    required: bool = False


@dataclass(frozen=True)
class DimensionRange:
    """Contiguous year range materialized as rows or columns."""
    min: int = 1
    max: int = 20

    def values(self) -> list[int]:
        return list(range(self.min, self.max + 1))


@dataclass(frozen=True)
class Marker:
    """Highlight bound to a single year (e.g. COD, end of warranty)."""
    year: int
    color: str
    tag: str  # kind tag, rendered as marker-{tag}
    label: str = ""


@dataclass(frozen=True)
class TableConfig:
    """Root configuration of one editable time-series table."""
    path: tuple[str, ...]  # location of the entity list (or single entity) in the scenario
    data_field_options: tuple[DataFieldOption, ...]
    dimension_range: DimensionRange = field(default_factory=DimensionRange)
    trim_blanks: bool = True
    trim_value: Any = None  # sentinel dropped on save (e.g. 0 placeholders)
    orientation: Orientation = Orientation.HORIZONTAL
    hide_empty_items: bool = False
    affected_metrics: tuple[str, ...] = ()
    markers: tuple[Marker, ...] = ()

    def field_option(self, value: str) -> DataFieldOption | None:
        for option in self.data_field_options:
            if option.value == value:
                return option
        return None

    @property
    def default_field(self) -> str:
        return self.data_field_options[0].value
