from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the error log.

One record per rejected cell or failed persistence call, written as a JSON line
with a fixed key set. ``cell`` is the canonical cell key, or ``"*"`` when the
error concerns the whole batch (persistence failures).
"""

__all__ = [
    "ErrorRecord",
    "BATCH_CELL",
]

BATCH_CELL = "*"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        path: dotted scenario path of the edited table
        field: data field being edited
        cell: canonical cell key, or "*" for batch-level errors
        error_type: error classification in UPPER_SNAKE_CASE format
        message: validation or persistence message
    """
    timestamp: str
    path: str
    field: str
    cell: str
    error_type: str
    message: str

    @staticmethod
    def create(path: str, field: str, cell: str, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            path=path,
            field=field,
            cell=cell,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
