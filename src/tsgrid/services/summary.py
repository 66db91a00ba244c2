from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .session import SaveOutcome

"""SUMMARY line rendering for save attempts.

Format:
SUMMARY field={field} status={status} applied={applied} paths={paths} errors={errors}
"""


def render_summary_line(field_name: str, outcome: SaveOutcome) -> str:
    """Render the SUMMARY line for one save attempt.

    Examples:
        >>> from tsgrid.services.session import SaveOutcome, SaveStatus
        >>> render_summary_line("fees", SaveOutcome(SaveStatus.SAVED, applied=2, updates={"a.0.fees": []}))
        'SUMMARY field=fees status=saved applied=2 paths=1 errors=0'
    """
    paths = len(outcome.updates) if outcome.updates else 0
    return (
        f"SUMMARY field={field_name} "
        f"status={outcome.status.value} "
        f"applied={outcome.applied} "
        f"paths={paths} "
        f"errors={outcome.error_count}"
    )
