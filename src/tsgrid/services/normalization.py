from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from ..grid.layout import VALUE_KEY, YEAR_KEY, is_blank_value
from ..models.config_models import DataFieldOption

"""Data normalization and batch-diff builder.

- normalize(): before editing, every entity gets exactly one point per year of
  the range, in range order; missing years are filled from a default source.
- trim(): on save, blank points and sentinel placeholders are dropped so that
  untouched defaults are not persisted.
- build_diff(): dotted path -> new value for everything that differs from the
  pre-edit snapshot. The diff is the only thing sent to persistence.
"""

__all__ = [
    "DefaultSource",
    "is_single_object_mode",
    "default_source_for",
    "normalize",
    "trim",
    "build_diff",
]

DefaultSource = Callable[[Mapping[str, Any]], Any]


def is_single_object_mode(data: Any) -> bool:
    """True when the persisted value is one entity rather than a list of them."""
    return isinstance(data, Mapping)


def default_source_for(option: DataFieldOption | None) -> DefaultSource:
    """Default value for synthesized points: the entity's default_value_field, else 0."""
    field_name = option.default_value_field if option is not None else None

    def _default(entity: Mapping[str, Any]) -> Any:
        if not field_name:
            return 0
        return entity.get(field_name) or 0

    return _default


def normalize(
    entities: Sequence[Mapping[str, Any]] | None,
    field_name: str,
    default_source: DefaultSource,
    years: Sequence[int],
) -> list[dict[str, Any]]:
    """Return deep copies of the entities with a complete, ordered series.

    Points outside ``years`` are dropped from the working copy; existing points
    keep any extra keys they carry.
    """
    if not entities:
        return []

    normalized = []
    for entity in entities:
        working = copy.deepcopy(dict(entity))
        existing: dict[int, dict[str, Any]] = {}
        for point in working.get(field_name) or []:
            if isinstance(point, Mapping) and YEAR_KEY in point:
                existing.setdefault(point[YEAR_KEY], dict(point))

        series = []
        for year in years:
            point = existing.get(year)
            if point is None:
                point = {YEAR_KEY: year, VALUE_KEY: default_source(entity)}
            series.append(point)
        working[field_name] = series
        normalized.append(working)
    return normalized


def _is_trimmable_blank(value: Any) -> bool:
    if is_blank_value(value):
        return True
    if isinstance(value, bool):
        return False
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return True


def trim(
    entities: Sequence[Mapping[str, Any]],
    field_name: str,
    trim_blanks: bool = True,
    trim_value: Any = None,
) -> list[dict[str, Any]]:
    """Drop blank points (trim_blanks) and points equal to trim_value (if not None).

    Entities and points are returned as new dicts; the input is never shared.
    """
    trimmed = []
    for entity in entities:
        working = dict(entity)
        series = [dict(p) if isinstance(p, Mapping) else p for p in working.get(field_name) or []]
        if trim_blanks or trim_value is not None:
            kept = []
            for point in series:
                value = point.get(VALUE_KEY)
                if trim_blanks and _is_trimmable_blank(value):
                    continue
                if trim_value is not None and not isinstance(value, bool) and value == trim_value:
                    continue
                kept.append(point)
            series = kept
        working[field_name] = series
        trimmed.append(working)
    return trimmed


_MISSING = object()


def build_diff(
    processed: Sequence[Mapping[str, Any]],
    original: Sequence[Mapping[str, Any]] | Mapping[str, Any] | None,
    is_single_mode: bool,
    base_path: Sequence[str] | str,
    field_name: str,
) -> dict[str, Any]:
    """Build the minimal dotted-path update map.

    Paths are ``{base}.{index}.{key}`` for entity lists and ``{base}.{key}`` in
    single-object mode. The edited field is compared like every other attribute,
    so a path is only emitted when its new value differs from the snapshot.
    """
    base = ".".join(str(s) for s in base_path) if not isinstance(base_path, str) else base_path

    if is_single_mode:
        snapshots: list[Any] = [original if isinstance(original, Mapping) else {}]
        targets = list(processed[:1])
        prefixes = [base]
    else:
        snapshot_list = list(original or []) if not isinstance(original, Mapping) else [original]
        targets = list(processed)
        snapshots = [snapshot_list[i] if i < len(snapshot_list) else {} for i in range(len(targets))]
        prefixes = [f"{base}.{i}" for i in range(len(targets))]

    updates: dict[str, Any] = {}
    for entity, snapshot, prefix in zip(targets, snapshots, prefixes, strict=True):
        snapshot = snapshot if isinstance(snapshot, Mapping) else {}
        # edited field first so it leads the batch
        keys = [field_name] + [k for k in entity.keys() if k != field_name]
        for key in keys:
            if key not in entity:
                continue
            before = snapshot.get(key, _MISSING)
            # structural equality: 10 and 10.0 are the same value
            if before is not _MISSING and entity[key] == before:
                continue
            updates[f"{prefix}.{key}"] = entity[key]
    return updates
