from __future__ import annotations
import json
from pathlib import Path

from tsgrid.logging.error_log import ErrorLogBuffer
from tsgrid.models.error_record import BATCH_CELL, ErrorRecord

KEYS = {"timestamp", "path", "field", "cell", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        path="scenario.contracts",
        field="fees",
        cell="0-2",
        error_type="CELL_VALIDATION",
        message="Minimum value is 0",
    )
    data = json.loads(rec.to_json_line())
    assert data["cell"] == "0-2"
    assert data["error_type"] == "CELL_VALIDATION"
    assert data["timestamp"].endswith("Z")
    assert set(data.keys()) == KEYS


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("s.c", "fees", "0-1", "CELL_VALIDATION", "Must be a number"))
    buf.append(ErrorRecord.create("s.c", "fees", BATCH_CELL, "PERSISTENCE_REJECTED", "locked"))
    path = buf.flush()
    assert path.exists()
    assert path.parent == Path("logs")
    assert path.name.startswith("errors-") and path.suffix == ".log"
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == KEYS
    # buffer cleared after flush
    assert len(buf) == 0


def test_error_log_buffer_multiple_flushes(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "custom")
    assert buf.flush() is None
    buf.append(ErrorRecord.create("p", "f", "0-1", "CELL_VALIDATION", "x"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("p", "f", "0-2", "CELL_VALIDATION", "y"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1
    assert buf.records == []
