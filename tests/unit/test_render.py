from __future__ import annotations
import pytest

from tsgrid.grid.layout import build_grid_configuration
from tsgrid.grid.render import format_cell_value, render_frame
from tsgrid.models.cell_key import CellKey
from tsgrid.models.position import Orientation, PositionCategory


def _total(values):
    return sum(values)


def _grid(table_config, sample_scenario, orientation="horizontal", editing=False):
    entities = sample_scenario["scenario"]["contracts"]
    return build_grid_configuration(
        orientation,
        table_config.dimension_range.values(),
        entities,
        "fees",
        is_editing=editing,
        markers=table_config.markers,
    )


@pytest.mark.parametrize(
    "value,field_type,expected",
    [
        (None, "number", "-"),
        ("", "currency", "-"),
        (float("nan"), "number", "-"),
        (1234567, "currency", "1,234,567"),
        (1234.5, "currency", "1,234.5"),
        (12.5, "percentage", "12.5%"),
        (3.0, "number", "3"),
        ("abc", "number", "abc"),
    ],
)
def test_format_cell_value(value, field_type, expected):
    assert format_cell_value(value, field_type) == expected


def test_frame_layout_and_labels(table_config, sample_scenario):
    option = table_config.field_option("fees")
    frame = render_frame(_grid(table_config, sample_scenario), option)
    assert frame.row_keys == ["header", "contract-0", "contract-1"]
    assert frame.col_keys == ["label", "year-1", "year-2", "year-3", "year-4", "year-5"]

    assert frame.cell("header", "label").formatted_value == "Contract"
    header = frame.cell("header", "year-3")
    assert header.category is PositionCategory.HEADER
    assert header.formatted_value == "Year +3 (Review)"
    assert "marker-milestone" in header.class_list
    label = frame.cell("contract-1", "label")
    assert label.category is PositionCategory.SUBHEADER
    assert label.formatted_value == "Beta"

    # no aggregate lanes: the last row and column are plain data
    assert frame.cell("contract-1", "year-5").category is PositionCategory.DATA


def test_read_mode_data_cells(table_config, sample_scenario):
    frame = render_frame(_grid(table_config, sample_scenario), table_config.field_option("fees"))
    cell = frame.cell("contract-0", "year-3")
    assert cell.formatted_value == "2,500.5"
    assert cell.widget is None
    assert cell.cell_key == CellKey(0, 3)
    assert cell.class_list == ("table-cell", "content", "content-cell", "content-row", "marker-milestone")
    assert cell.style_overrides == {"--marker-color": "#faad14"}
    assert frame.cell("contract-1", "year-1").formatted_value == "-"


def test_edit_mode_widgets(table_config, sample_scenario):
    option = table_config.field_option("fees")
    frame = render_frame(
        _grid(table_config, sample_scenario, editing=True),
        option,
        is_editing=True,
        modified={CellKey(0, 1), CellKey(1, 2)},
        validation_errors={CellKey(1, 2): "Minimum value is 0"},
    )
    widget = frame.cell("contract-0", "year-1").widget
    assert widget.cell_key == "0-1"
    assert (widget.min, widget.max, widget.precision, widget.step) == (0, 1000000, 2, 1000)
    assert widget.display_format == "thousands"
    assert widget.modified and widget.error is None
    assert frame.cell("contract-0", "year-1").style_overrides == {"backgroundColor": "rgba(24, 144, 255, 0.1)"}

    errored = frame.cell("contract-1", "year-2")
    assert errored.editable
    assert errored.style_overrides == {"backgroundColor": "rgba(255, 77, 79, 0.1)", "borderColor": "#ff4d4f"}


def test_states_add_state_tokens(table_config, sample_scenario):
    frame = render_frame(
        _grid(table_config, sample_scenario),
        table_config.field_option("fees"),
        selected=["contract-1"],
        primary=["year-2"],
    )
    assert frame.cell("contract-1", "year-2").class_list[-2:] == ("state-selected", "state-primary")
    assert frame.cell("contract-1", "label").class_list[-1] == "state-subheader-selected"
    assert "state-selected" not in frame.cell("contract-0", "year-1").class_list


def test_threshold_overrides_win(table_config, sample_scenario):
    thresholds = [{
        "field": "fees",
        "comparison": "greater_than",
        "value": 2000,
        "color_rule": {"background_color": "#ffccc7"},
    }]
    frame = render_frame(
        _grid(table_config, sample_scenario, editing=True),
        table_config.field_option("fees"),
        is_editing=True,
        modified={CellKey(0, 3)},
        thresholds=thresholds,
    )
    styles = frame.cell("contract-0", "year-3").style_overrides
    assert styles == {"--marker-color": "#faad14", "backgroundColor": "#ffccc7"}
    assert frame.cell("contract-0", "year-1").style_overrides == {}


@pytest.mark.parametrize("orientation", ["horizontal", "vertical"])
def test_summary_and_totals_lanes(table_config, sample_scenario, orientation):
    frame = render_frame(
        _grid(table_config, sample_scenario, orientation),
        table_config.field_option("fees"),
        summary=_total,
        totals=_total,
    )
    assert frame.row_keys[-1] == "summary"
    assert frame.col_keys[-1] == "totals"
    assert frame.cell("summary", "totals").category is PositionCategory.SUMMARY
    assert frame.cell(frame.row_keys[1], "totals").category is PositionCategory.TOTALS
    assert frame.cell("summary", frame.col_keys[1]).category is PositionCategory.SUMMARY
    assert frame.cell("summary", "label").formatted_value == "Total"

    # the intersection is the summary of the totals column; the summary row agrees
    assert frame.grand_total == pytest.approx(3800.5)
    assert frame.grand_total == pytest.approx(_total(frame.summary_values.values()))
    assert frame.cell("summary", "totals").formatted_value == "3,800.5"


def test_aggregate_values_horizontal(table_config, sample_scenario):
    frame = render_frame(
        _grid(table_config, sample_scenario),
        table_config.field_option("fees"),
        summary=_total,
        totals=_total,
    )
    assert frame.totals_values == {"contract-0": 3500.5, "contract-1": 300.0}
    assert frame.summary_values["year-4"] == 0
    assert frame.cell("contract-0", "totals").formatted_value == "3,500.5"


def test_vertical_frame(table_config, sample_scenario):
    frame = render_frame(_grid(table_config, sample_scenario, Orientation.VERTICAL), table_config.field_option("fees"))
    assert frame.row_keys[:2] == ["header", "year-1"]
    assert frame.col_keys == ["label", "contract-0", "contract-1"]
    assert frame.cell("header", "label").formatted_value == "Year"
    assert frame.cell("year-1", "label").category is PositionCategory.HEADER
    assert frame.cell("header", "contract-0").category is PositionCategory.SUBHEADER
    assert frame.cell("header", "contract-0").formatted_value == "Alpha"
    assert frame.cell("year-3", "contract-0").class_list[3] == "content-col"
    assert frame.class_matrix()[0][0].startswith("table-cell")
