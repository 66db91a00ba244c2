from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from ..grid.layout import VALUE_KEY, YEAR_KEY, is_blank_value
from ..models.cell_key import CellKey
from ..models.config_models import DataFieldOption

"""Cell value validation.

Validation results are data: a message string, or None when the value is
acceptable. Nothing here raises for a bad value; the edit session stores the
messages per cell and only turns them into a blocking condition at save time.
"""

__all__ = [
    "validate_cell_value",
    "validate_series",
    "validate_time_series_structure",
    "calculate_row_stats",
]


def _format_bound(bound: float) -> str:
    if isinstance(bound, float) and bound.is_integer():
        return str(int(bound))
    return str(bound)


def _decimal_places(value: Any) -> int:
    text = str(value)
    if "e" in text.lower():
        mantissa, _, exponent = text.lower().partition("e")
        places = len(mantissa.partition(".")[2]) - int(exponent)
        return max(places, 0)
    return len(text.partition(".")[2])


def validate_cell_value(value: Any, option: DataFieldOption) -> str | None:
    """Validate one cell value against the active field option.

    Blank values are accepted unless the option is required. Numeric fields must
    parse as a number within min/max and with no more than ``precision`` decimal
    places.
    """
    if is_blank_value(value):
        return "This field is required" if option.required else None

    if isinstance(value, bool):
        return "Must be a number"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "Must be a number"
    if math.isnan(number):
        return "Must be a number"

    bounds = option.validation
    if bounds.min is not None and number < bounds.min:
        return f"Minimum value is {_format_bound(bounds.min)}"
    if bounds.max is not None and number > bounds.max:
        return f"Maximum value is {_format_bound(bounds.max)}"
    if bounds.precision is not None and _decimal_places(value) > bounds.precision:
        return f"Maximum {bounds.precision} decimal places allowed"
    return None


def validate_series(
    entities: Sequence[Mapping[str, Any]],
    option: DataFieldOption,
    years: Sequence[int],
) -> dict[CellKey, str]:
    """Validate every (entity, year) cell of a working copy.

    Pure and deterministic; safe to call repeatedly (e.g. on each save attempt).
    """
    errors: dict[CellKey, str] = {}
    for entity_index, entity in enumerate(entities):
        points = {
            p[YEAR_KEY]: p.get(VALUE_KEY)
            for p in (entity.get(option.value) or [])
            if isinstance(p, Mapping) and YEAR_KEY in p
        }
        for year in years:
            error = validate_cell_value(points.get(year), option)
            if error:
                errors[CellKey(entity_index, year)] = error
    return errors


def validate_time_series_structure(series: Any, context: str = "time series") -> list[str]:
    """Structural checks on a stored point sequence."""
    errors: list[str] = []
    if not isinstance(series, list):
        errors.append(f"{context} must be a list")
        return errors

    seen: set[Any] = set()
    for index, point in enumerate(series):
        if not isinstance(point, Mapping):
            errors.append(f"{context} item {index} must be a mapping")
            continue
        year = point.get(YEAR_KEY)
        if not isinstance(year, int) or isinstance(year, bool):
            errors.append(f"{context} item {index} must have an integer '{YEAR_KEY}' field")
        elif year in seen:
            errors.append(f"{context} has duplicate year {year}")
        else:
            seen.add(year)
        value = point.get(VALUE_KEY)
        if value is not None and validate_cell_value(value, DataFieldOption(value="_", label="_")):
            errors.append(f"{context} item {index} value must be numeric or null")
    return errors


def calculate_row_stats(series: Sequence[Mapping[str, Any]] | None) -> dict[str, float]:
    """min/max/avg/sum/count over the numeric values of a point sequence."""
    values = []
    for point in series or []:
        try:
            number = float(point.get(VALUE_KEY))
        except (TypeError, ValueError):
            continue
        if not math.isnan(number):
            values.append(number)

    if not values:
        return {"min": 0, "max": 0, "avg": 0, "sum": 0, "count": 0}
    total = sum(values)
    return {
        "min": min(values),
        "max": max(values),
        "avg": total / len(values),
        "sum": total,
        "count": len(values),
    }
