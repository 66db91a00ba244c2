# Shared pytest fixtures
from __future__ import annotations
import copy
import tempfile
from pathlib import Path

import pytest
import yaml

from tsgrid.config.loader import build_table_config
from tsgrid.logging.init import reset_logging
from tsgrid.models.config_models import DataFieldOption, DimensionRange, FieldValidation, TableConfig
from tsgrid.services.persistence import InMemoryScenarioStore

SAMPLE_SCENARIO = {
    "scenario": {
        "contracts": [
            {
                "name": "Alpha",
                "base_rate": 2.5,
                "fees": [
                    {"year": 1, "value": 1000},
                    {"year": 3, "value": 2500.5},
                ],
            },
            {
                "name": "Beta",
                "base_rate": 1.0,
                "fees": [
                    {"year": 2, "value": 300},
                ],
            },
        ]
    }
}


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """path: scenario.contracts
data_field_options:
  - value: fees
    label: Fees
    type: currency
    validation:
      min: 0
      max: 1000000
      precision: 2
  - value: rate
    label: Rate
    type: percentage
    default_value_field: base_rate
    validation:
      min: 0
      max: 100
      precision: 1
dimension_range:
  min: 1
  max: 5
trim_blanks: true
trim_value: 0
markers:
  - year: 3
    color: "#faad14"
    tag: milestone
    label: Review
"""


@pytest.fixture()
def sample_scenario() -> dict:
    return copy.deepcopy(SAMPLE_SCENARIO)


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "table.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_scenario(temp_workdir: Path, sample_scenario: dict) -> Path:
    data = temp_workdir / "data" / "scenario.yml"
    data.write_text(yaml.safe_dump(sample_scenario, sort_keys=False), encoding="utf-8")
    return data


@pytest.fixture()
def table_config(sample_config_yaml: str) -> TableConfig:
    return build_table_config(yaml.safe_load(sample_config_yaml))


@pytest.fixture()
def store(sample_scenario: dict) -> InMemoryScenarioStore:
    return InMemoryScenarioStore(sample_scenario)


@pytest.fixture()
def fixed_fee_config() -> TableConfig:
    """One-entity example: missing years default to the entity's fixedFee."""
    return TableConfig(
        path=("path",),
        data_field_options=(
            DataFieldOption(
                value="fees",
                label="Fees",
                type="currency",
                validation=FieldValidation(min=0),
                default_value_field="fixedFee",
            ),
        ),
        dimension_range=DimensionRange(min=1, max=3),
    )


@pytest.fixture()
def fixed_fee_store() -> InMemoryScenarioStore:
    return InMemoryScenarioStore({"path": [{"name": "A", "fixedFee": 5, "fees": [{"year": 1, "value": 10}]}]})


@pytest.fixture()
def clean_logging():
    reset_logging()
    yield
    reset_logging()
