from __future__ import annotations

from pathlib import Path

import yaml

from tsgrid.cli import main as cli_main
from tsgrid.logging.init import reset_logging

"""End-to-end: edit cells from the command line and check the scenario file."""


def _contracts(path: Path) -> list[dict]:
    return yaml.safe_load(path.read_text(encoding="utf-8"))["scenario"]["contracts"]


def test_edit_and_persist(write_config, write_scenario: Path, capsys):
    reset_logging()
    code = cli_main(["--set", "0:2=1200", "--set", "1:2="])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO 2 changes saved successfully" in out

    alpha, beta = _contracts(write_scenario)
    assert alpha["fees"] == [
        {"year": 1, "value": 1000},
        {"year": 2, "value": 1200},
        {"year": 3, "value": 2500.5},
    ]
    # cleared cell is trimmed away; other attributes survive
    assert beta["fees"] == []
    assert beta["name"] == "Beta" and beta["base_rate"] == 1.0
    # the grid printed after the save shows the new value
    assert "1,200" in out


def test_blocked_edit_leaves_file_untouched(write_config, write_scenario: Path, capsys):
    reset_logging()
    before = write_scenario.read_text(encoding="utf-8")
    assert cli_main(["--set", "0:2=-1"]) == 2
    assert write_scenario.read_text(encoding="utf-8") == before
    out = capsys.readouterr().out
    assert "WARN cell 0-2: Minimum value is 0" in out
    assert "ERROR Please fix 1 validation errors before saving" in out


def test_rate_field_defaults_are_persisted(write_config, write_scenario: Path, capsys):
    reset_logging()
    assert cli_main(["--field", "rate", "--set", "0:1=3.5"]) == 0
    alpha, beta = _contracts(write_scenario)
    # missing years are filled from base_rate when editing starts, for every entity
    assert [p["value"] for p in alpha["rate"]] == [3.5, 2.5, 2.5, 2.5, 2.5]
    assert [p["value"] for p in beta["rate"]] == [1.0] * 5


def test_env_file_selects_paths(temp_workdir: Path, sample_config_yaml, sample_scenario, monkeypatch, capsys):
    reset_logging()
    # registered so monkeypatch restores them after load_dotenv overrides
    monkeypatch.setenv("TSGRID_CONFIG", "unset")
    monkeypatch.setenv("TSGRID_DATA", "unset")
    (temp_workdir / "alt").mkdir()
    (temp_workdir / "alt" / "cfg.yml").write_text(sample_config_yaml, encoding="utf-8")
    (temp_workdir / "alt" / "data.yml").write_text(yaml.safe_dump(sample_scenario), encoding="utf-8")
    (temp_workdir / ".env").write_text(
        "TSGRID_CONFIG=alt/cfg.yml\nTSGRID_DATA=alt/data.yml\n", encoding="utf-8"
    )

    assert cli_main(["--set", "1:4=40"]) == 0
    beta = _contracts(temp_workdir / "alt" / "data.yml")[1]
    assert beta["fees"] == [{"year": 2, "value": 300}, {"year": 4, "value": 40}]
