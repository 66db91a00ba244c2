from __future__ import annotations
import pytest

from tsgrid.models.cell_key import CellKey
from tsgrid.models.config_models import DataFieldOption, FieldValidation
from tsgrid.services.validation import (
    calculate_row_stats,
    validate_cell_value,
    validate_series,
    validate_time_series_structure,
)

CURRENCY = DataFieldOption(
    value="fees", label="Fees", type="currency", validation=FieldValidation(min=0, max=1000.5, precision=2)
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, None),
        ("", None),
        (12, None),
        ("12.25", None),
        (-1, "Minimum value is 0"),
        (2000, "Maximum value is 1000.5"),
        (1.234, "Maximum 2 decimal places allowed"),
        ("abc", "Must be a number"),
        (True, "Must be a number"),
        (float("nan"), None),
    ],
)
def test_validate_cell_value(value, expected):
    assert validate_cell_value(value, CURRENCY) == expected


def test_required_field():
    option = DataFieldOption(value="v", label="V", required=True)
    assert validate_cell_value(None, option) == "This field is required"
    assert validate_cell_value(0, option) is None


def test_exponent_precision():
    option = DataFieldOption(value="v", label="V", validation=FieldValidation(precision=3))
    assert validate_cell_value(1e-3, option) is None
    assert validate_cell_value(1e-5, option) == "Maximum 3 decimal places allowed"


def test_validate_series_covers_untouched_cells():
    entities = [
        {"fees": [{"year": 1, "value": -5}, {"year": 2, "value": 3}]},
        {"fees": [{"year": 2, "value": 1.999}]},
    ]
    errors = validate_series(entities, CURRENCY, [1, 2])
    assert errors == {
        CellKey(0, 1): "Minimum value is 0",
        CellKey(1, 2): "Maximum 2 decimal places allowed",
    }


def test_validate_time_series_structure():
    assert validate_time_series_structure([{"year": 1, "value": 2}, {"year": 2, "value": None}]) == []
    problems = validate_time_series_structure(
        [{"year": 1, "value": 1}, {"year": 1, "value": "x"}, "bad"], "fees"
    )
    assert len(problems) == 3
    assert validate_time_series_structure("nope")


def test_calculate_row_stats():
    stats = calculate_row_stats([{"year": 1, "value": 2}, {"year": 2, "value": None}, {"year": 3, "value": 4}])
    assert stats == {"min": 2.0, "max": 4.0, "avg": 3.0, "sum": 6.0, "count": 2}
    assert calculate_row_stats(None)["count"] == 0
