from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    FIELD_TYPES,
    DataFieldOption,
    DimensionRange,
    FieldValidation,
    Marker,
    TableConfig,
)
from ..models.position import Orientation

"""Table configuration loader.

Responsibilities:
- Load YAML table configuration
- Validate structure against table_config_schema.json
- Apply semantic checks the schema cannot express (unique field values, range
  order and span, non-empty path segments)
- Build the frozen TableConfig domain model

Construction fails fast: any problem raises ConfigurationError and nothing is
rendered.
"""

__all__ = [
    "ConfigurationError",
    "SCHEMA_PATH",
    "MAX_YEAR_SPAN",
    "load_table_config",
    "build_table_config",
    "validate_table_config",
    "validate_data_field_options",
    "validate_dimension_range",
]

SCHEMA_PATH = Path(__file__).with_name("table_config_schema.json")

# Wider ranges make the grid unusable and the full re-validation slow.
MAX_YEAR_SPAN = 50


class ConfigurationError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate raw config data against the JSON schema.

    Raises:
        ConfigurationError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigurationError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"config validation failed: {e.message}") from e


def _parse_path(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str):
        segments = raw.split(".")
    elif isinstance(raw, (list, tuple)):
        segments = [str(s) for s in raw]
    else:
        raise ConfigurationError("path is required and must be a list of segments")
    return tuple(segments)


def validate_data_field_options(options: Any) -> list[str]:
    """Return the list of problems found in data field options (empty if valid)."""
    errors: list[str] = []
    if not isinstance(options, (list, tuple)):
        errors.append("data_field_options must be a list")
        return errors
    if len(options) == 0:
        errors.append("at least one data field option is required")
        return errors

    for index, option in enumerate(options):
        if not isinstance(option, DataFieldOption):
            errors.append(f"data field option {index} must be a DataFieldOption")
            continue
        if not option.value:
            errors.append(f"data field option {index} must have a 'value'")
        if not option.label:
            errors.append(f"data field option {index} must have a 'label'")
        if option.type not in FIELD_TYPES:
            errors.append(f"data field option {index} has invalid type: {option.type}")
        bounds = option.validation
        if bounds.min is not None and bounds.max is not None and bounds.min > bounds.max:
            errors.append(f"data field option {index} has min greater than max")
        if bounds.precision is not None and bounds.precision < 0:
            errors.append(f"data field option {index} has negative precision")

    values = [o.value for o in options if isinstance(o, DataFieldOption) and o.value]
    if len(values) != len(set(values)):
        errors.append("data field options must have unique values")
    return errors


def validate_dimension_range(dimension_range: Any) -> str | None:
    """Return an error message for an unusable year range, or None."""
    if not isinstance(dimension_range, DimensionRange):
        return "dimension range must have integer min and max"
    low, high = dimension_range.min, dimension_range.max
    if isinstance(low, bool) or isinstance(high, bool) or not isinstance(low, int) or not isinstance(high, int):
        return "dimension range min and max must be integers"
    if low >= high:
        return "dimension range min must be less than max"
    if high - low > MAX_YEAR_SPAN:
        return f"dimension range cannot exceed {MAX_YEAR_SPAN} years"
    return None


def validate_table_config(config: TableConfig) -> TableConfig:
    """Check a TableConfig built by hand or by build_table_config.

    Returns the config unchanged so the call can be chained.
    """
    if not isinstance(config, TableConfig):
        raise ConfigurationError("expected a TableConfig instance")
    if not config.path or any(not isinstance(s, str) or not s.strip() for s in config.path):
        raise ConfigurationError("path is required and must not contain empty segments")

    option_errors = validate_data_field_options(config.data_field_options)
    if option_errors:
        raise ConfigurationError("; ".join(option_errors))

    range_error = validate_dimension_range(config.dimension_range)
    if range_error:
        raise ConfigurationError(range_error)

    if not isinstance(config.orientation, Orientation):
        raise ConfigurationError(f"invalid orientation: {config.orientation!r}")
    return config


def build_table_config(data: dict[str, Any]) -> TableConfig:
    """Build and validate a TableConfig from a plain mapping (YAML / JSON shape)."""
    if not isinstance(data, dict):
        raise ConfigurationError("table configuration must be a mapping")
    _validate_config_schema(data)

    options = []
    for raw in data["data_field_options"]:
        bounds = raw.get("validation") or {}
        options.append(
            DataFieldOption(
                value=raw["value"],
                label=raw["label"],
                type=raw.get("type", "number"),
                validation=FieldValidation(
                    min=bounds.get("min"),
                    max=bounds.get("max"),
                    precision=bounds.get("precision"),
                ),
                default_value_field=raw.get("default_value_field"),
                required=bool(raw.get("required", False)),
            )
        )

    range_raw = data.get("dimension_range") or {"min": 1, "max": 20}
    markers = tuple(
        Marker(year=m["year"], color=m["color"], tag=m["tag"], label=m.get("label", ""))
        for m in data.get("markers", [])
    )

    config = TableConfig(
        path=_parse_path(data["path"]),
        data_field_options=tuple(options),
        dimension_range=DimensionRange(min=range_raw["min"], max=range_raw["max"]),
        trim_blanks=data.get("trim_blanks", True),
        trim_value=data.get("trim_value"),
        orientation=Orientation.parse(data.get("orientation", "horizontal")),
        hide_empty_items=data.get("hide_empty_items", False),
        affected_metrics=tuple(data.get("affected_metrics", [])),
        markers=markers,
    )
    return validate_table_config(config)


def load_table_config(path: Path) -> TableConfig:
    if not path.exists():
        raise ConfigurationError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid yaml: {e}") from e
    return build_table_config(data)
