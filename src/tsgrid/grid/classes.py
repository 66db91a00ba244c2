from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from ..models.config_models import Marker
from ..models.position import Orientation, PositionCategory

"""Class composition engine.

Builds the ordered list of semantic class tokens for one cell. Tokens are
appended in precedence order, lowest first; the theme stylesheet relies on
source order, so a later token always wins over an earlier one:

    base < content type < position < marker < state < state x position

Threshold styles computed by evaluate_thresholds are returned apart from the
class list and are applied inline by the renderer, above every class.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BASE_CLASS",
    "PRECEDENCE",
    "ClassListBuilder",
    "compose_cell_classes",
    "marker_class",
    "marker_styles",
    "evaluate_thresholds",
]

BASE_CLASS = "table-cell"

# Token groups in ascending precedence. ClassListBuilder refuses to add a group
# out of this order.
PRECEDENCE = ("base", "content", "position", "marker", "state", "state-position")

_STATE_ORDER = ("selected", "primary")


class ClassListBuilder:
    """Ordered, duplicate-free class token list with declared precedence."""

    def __init__(self) -> None:
        self._tokens: list[str] = []
        self._rank = -1

    def add(self, group: str, *tokens: str | None) -> ClassListBuilder:
        rank = PRECEDENCE.index(group)
        if rank < self._rank:
            raise ValueError(f"class group '{group}' added after a higher precedence group")
        self._rank = rank
        for token in tokens:
            if token and token not in self._tokens:
                self._tokens.append(token)
        return self

    def build(self) -> list[str]:
        return list(self._tokens)

    def __str__(self) -> str:
        return " ".join(self._tokens)


def marker_class(marker: Marker | None) -> str | None:
    if marker is None:
        return None
    return f"marker-{marker.tag}"


def marker_styles(marker: Marker | None) -> dict[str, str]:
    """CSS custom properties carrying the marker colour into the theme."""
    if marker is None or not marker.color:
        return {}
    return {"--marker-color": marker.color}


def _active_states(states: Mapping[str, bool] | Iterable[str] | None) -> list[str]:
    if not states:
        return []
    if isinstance(states, Mapping):
        active = {name for name, on in states.items() if on}
    else:
        active = set(states)
    return [name for name in _STATE_ORDER if name in active]


def compose_cell_classes(
    category: PositionCategory,
    orientation: Orientation,
    marker: Marker | None = None,
    states: Mapping[str, bool] | Iterable[str] | None = None,
) -> list[str]:
    """Compose the class tokens of one cell.

    Returns, in order: base, ``content``, ``content-cell``, ``content-row`` or
    ``content-col``, ``content-{category}`` (not for data cells), the marker class,
    ``state-{name}`` for each active state and ``state-{category}-{name}`` for each
    active state on non-data cells.
    """
    active = _active_states(states)
    lane = "content-row" if orientation is Orientation.HORIZONTAL else "content-col"
    positioned = category is not PositionCategory.DATA

    builder = ClassListBuilder()
    builder.add("base", BASE_CLASS)
    builder.add("content", "content", "content-cell", lane)
    builder.add("position", f"content-{category.value}" if positioned else None)
    builder.add("marker", marker_class(marker))
    builder.add("state", *(f"state-{name}" for name in active))
    if positioned:
        builder.add("state-position", *(f"state-{category.value}-{name}" for name in active))
    return builder.build()


_COMPARISONS = {
    "greater_than": lambda a, b: a > b,
    "less_than": lambda a, b: a < b,
    "equal_to": lambda a, b: abs(a - b) < 0.001,
    "greater_equal": lambda a, b: a >= b,
    "less_equal": lambda a, b: a <= b,
}


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def evaluate_thresholds(
    row_data: Mapping[str, Any],
    thresholds: Iterable[Mapping[str, Any]] | None,
    cell_value: Any = None,
) -> dict[str, Any]:
    """Evaluate threshold rules into inline style overrides.

    Each rule: ``{field, comparison, value | upper_field, color_rule{text_color,
    background_color, bold}, priority, description}``. Rules are visited by
    descending priority; a matching rule replaces the current style only when its
    priority is at least the one already applied. Internal keys ``_priority`` and
    ``_applied_rules`` are kept for debugging and stripped by the renderer.
    """
    rules = list(thresholds or [])
    if not rules:
        return {}

    applied: dict[str, Any] = {}
    applied_rules: list[str] = []
    for rule in sorted(rules, key=lambda r: r.get("priority", 0) or 0, reverse=True):
        field = rule.get("field")
        comparison = rule.get("comparison")
        priority = rule.get("priority", 0) or 0

        if field not in row_data:
            logger.warning("threshold field '%s' not found in row data", field)
            continue
        compare = _COMPARISONS.get(comparison)
        if compare is None:
            logger.warning("unknown threshold comparison: %s", comparison)
            continue

        value = _as_float(cell_value if cell_value is not None else row_data[field])
        upper_field = rule.get("upper_field")
        if upper_field and upper_field in row_data:
            limit = _as_float(row_data[upper_field])
        else:
            limit = _as_float(rule.get("value", 0))
        if value is None or limit is None:
            continue

        color_rule = rule.get("color_rule")
        if not compare(value, limit) or not color_rule:
            continue
        if priority < applied.get("_priority", 0):
            continue

        applied_rules.append(rule.get("description") or f"{field} {comparison} {limit:g}")
        applied = {
            "color": color_rule.get("text_color", applied.get("color")),
            "backgroundColor": color_rule.get("background_color", applied.get("backgroundColor")),
            "fontWeight": "bold" if color_rule.get("bold") else applied.get("fontWeight"),
            "_priority": priority,
            "_applied_rules": list(applied_rules),
        }

    return {k: v for k, v in applied.items() if v is not None}
