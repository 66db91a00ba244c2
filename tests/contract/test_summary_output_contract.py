from __future__ import annotations

import re
from pathlib import Path

from tsgrid.cli import main as cli_main
from tsgrid.logging.init import reset_logging

"""SUMMARY line contract for save attempts."""

SUMMARY_RE = re.compile(
    r"^SUMMARY field=(?P<field>\w+) status=(?P<status>saved|no_changes|blocked|busy|failed) "
    r"applied=(?P<applied>\d+) paths=(?P<paths>\d+) errors=(?P<errors>\d+)$",
    re.MULTILINE,
)


def _summary(out: str) -> dict:
    matches = list(SUMMARY_RE.finditer(out))
    assert len(matches) == 1, out
    return matches[0].groupdict()


def test_summary_saved(write_config, write_scenario, capsys):
    reset_logging()
    cli_main(["--set", "0:2=1200", "--set", "1:5=7"])
    summary = _summary(capsys.readouterr().out)
    assert summary == {"field": "fees", "status": "saved", "applied": "2", "paths": "2", "errors": "0"}


def test_summary_blocked(write_config, write_scenario, capsys):
    reset_logging()
    cli_main(["--set", "0:2=-5", "--set", "1:1=1.999"])
    summary = _summary(capsys.readouterr().out)
    assert summary["status"] == "blocked"
    assert summary["errors"] == "2"
    assert summary["paths"] == "0"


def test_no_summary_in_view_mode(write_config, write_scenario, capsys):
    reset_logging()
    cli_main([])
    assert not SUMMARY_RE.search(capsys.readouterr().out)
