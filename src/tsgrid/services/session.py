from __future__ import annotations

import copy
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config.loader import ConfigurationError, validate_table_config
from ..grid.layout import VALUE_KEY, YEAR_KEY, GridConfiguration, build_grid_configuration
from ..grid.render import TableFrame, render_frame
from ..logging.error_log import ErrorLogBuffer
from ..models.cell_key import CellKey
from ..models.config_models import DataFieldOption, TableConfig
from ..models.error_record import BATCH_CELL, ErrorRecord
from ..models.position import Orientation
from .normalization import build_diff, default_source_for, is_single_object_mode, normalize, trim
from .persistence import PersistenceError, ScenarioStore, UpdateResult
from .validation import validate_cell_value, validate_series

"""Edit session state machine.

States: VIEWING (initial) and EDITING.

    begin_edit          VIEWING -> EDITING   working copy normalized from the store
    edit_cell           EDITING -> EDITING   key marked modified, cell validated
    cancel              EDITING -> VIEWING   confirm() gate when cells are modified
    attempt_save        EDITING -> VIEWING   only on accepted persistence
    select_data_field   confirm() gate, then re-normalize from the snapshot

The only suspension point is the persistence call inside attempt_save. While it
is pending a second attempt returns BUSY.
"""

__all__ = [
    "SessionState",
    "SaveStatus",
    "SaveOutcome",
    "SessionStateError",
    "EditSession",
]

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]
MetricsCalculator = Callable[[list[str], Any, dict[str, Any]], Mapping[str, Any]]
BeforeSaveHook = Callable[[list[dict[str, Any]]], "list[dict[str, Any]] | Awaitable[list[dict[str, Any]]]"]


class SessionState(Enum):
    VIEWING = "viewing"
    EDITING = "editing"


class SaveStatus(Enum):
    SAVED = "saved"
    NO_CHANGES = "no_changes"
    BLOCKED = "blocked"
    BUSY = "busy"
    FAILED = "failed"


@dataclass(frozen=True)
class SaveOutcome:
    """Result of one save attempt."""
    status: SaveStatus
    applied: int = 0
    error_count: int = 0
    message: str = ""
    updates: dict[str, Any] | None = None
    errors: list[str] = field(default_factory=list)
    error: PersistenceError | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SaveStatus.SAVED, SaveStatus.NO_CHANGES)


class SessionStateError(Exception):
    """Raised when an operation is called in the wrong session state."""


class EditSession:
    """Owns the working copy of one table while it is being edited.

    The committed data is read from the store on demand; nothing is written back
    until attempt_save sends the minimal diff through store.update_by_path.
    """

    def __init__(
        self,
        config: TableConfig,
        store: ScenarioStore,
        *,
        confirm: ConfirmCallback | None = None,
        calculate_affected_metrics: MetricsCalculator | None = None,
        on_before_save: BeforeSaveHook | None = None,
        on_after_save: Callable[[UpdateResult], Any] | None = None,
        on_cancel: Callable[[], Any] | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._config = validate_table_config(config)
        self._store = store
        self._confirm = confirm
        self._calculate_affected_metrics = calculate_affected_metrics
        self._on_before_save = on_before_save
        self._on_after_save = on_after_save
        self._on_cancel = on_cancel
        self._error_log = error_log

        self.orientation: Orientation = config.orientation
        self._state = SessionState.VIEWING
        self._selected_field = config.default_field
        self._years = config.dimension_range.values()
        self._reset()

    def _reset(self) -> None:
        self._working: list[dict[str, Any]] = []
        self._original: Any = None
        self._is_single = False
        self._modified: set[CellKey] = set()
        self._errors: dict[CellKey, str] = {}
        self._save_attempted = False
        self._save_pending = False

    # ---- read side ----

    @property
    def config(self) -> TableConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_editing(self) -> bool:
        return self._state is SessionState.EDITING

    @property
    def working_copy(self) -> list[dict[str, Any]]:
        return self._working

    @property
    def committed_snapshot(self) -> Any:
        return self._original

    @property
    def modified_cell_keys(self) -> frozenset[CellKey]:
        return frozenset(self._modified)

    @property
    def validation_errors(self) -> dict[CellKey, str]:
        return dict(self._errors)

    def errors_by_key(self) -> dict[str, str]:
        return {key.encode(): message for key, message in sorted(self._errors.items())}

    @property
    def selected_data_field(self) -> str:
        return self._selected_field

    @property
    def current_field_option(self) -> DataFieldOption:
        option = self._config.field_option(self._selected_field)
        if option is None:
            raise ConfigurationError(f"unknown data field: {self._selected_field}")
        return option

    @property
    def years(self) -> list[int]:
        return list(self._years)

    @property
    def has_unsaved_changes(self) -> bool:
        return self.is_editing and bool(self._modified)

    @property
    def can_save(self) -> bool:
        return self.has_unsaved_changes and not self._errors and not self._save_pending

    @property
    def save_pending(self) -> bool:
        return self._save_pending

    @property
    def save_attempted(self) -> bool:
        return self._save_attempted

    @property
    def total_cells(self) -> int:
        return len(self.committed_data()) * len(self._years)

    def committed_data(self) -> list[Any]:
        """Entities currently stored at the configured path (a single object is wrapped)."""
        raw = self._store.get_value_by_path(list(self._config.path), None)
        if is_single_object_mode(raw):
            return [raw]
        if isinstance(raw, list):
            return raw
        return []

    def _require_editing(self, operation: str) -> None:
        if not self.is_editing:
            raise SessionStateError(f"{operation} requires an active edit session")

    # ---- transitions ----

    def begin_edit(self) -> None:
        if self.is_editing:
            raise SessionStateError("edit session already active")
        raw = self._store.get_value_by_path(list(self._config.path), None)
        entities = self.committed_data()
        if not entities:
            raise SessionStateError(f"no data at {'.'.join(self._config.path)}")

        self._reset()
        self._is_single = is_single_object_mode(raw)
        self._original = copy.deepcopy(raw)
        self._working = self._normalize_from_snapshot()
        self._state = SessionState.EDITING
        logger.info(
            "editing %s: %d entities x %d years (field=%s)",
            ".".join(self._config.path),
            len(self._working),
            len(self._years),
            self._selected_field,
        )

    def _snapshot_entities(self) -> list[Mapping[str, Any]]:
        if self._is_single:
            return [self._original]
        return list(self._original or [])

    def _normalize_from_snapshot(self) -> list[dict[str, Any]]:
        return normalize(
            self._snapshot_entities(),
            self._selected_field,
            default_source_for(self.current_field_option),
            self._years,
        )

    def edit_cell(self, entity_index: int, year: int, value: Any) -> str | None:
        """Set one cell of the working copy; returns its validation message, if any."""
        self._require_editing("edit_cell")
        if not 0 <= entity_index < len(self._working):
            raise IndexError(f"entity index out of range: {entity_index}")
        offset = year - self._config.dimension_range.min
        if not 0 <= offset < len(self._years):
            raise IndexError(f"year out of range: {year}")

        series = self._working[entity_index][self._selected_field]
        point = series[offset]
        if point.get(YEAR_KEY) != year:
            # series reordered by a before-save hook or a caller; fall back to a scan
            offset = next(i for i, p in enumerate(series) if p.get(YEAR_KEY) == year)
            point = series[offset]
        series[offset] = {**point, VALUE_KEY: value}

        key = CellKey(entity_index, year)
        self._modified.add(key)
        message = validate_cell_value(value, self.current_field_option)
        if message:
            self._errors[key] = message
        else:
            self._errors.pop(key, None)
        return message

    def validate_all_cells(self) -> int:
        """Re-validate the whole working copy; returns the number of invalid cells."""
        self._require_editing("validate_all_cells")
        self._save_attempted = True
        self._errors = validate_series(self._working, self.current_field_option, self._years)
        return len(self._errors)

    def _discard_allowed(self, message: str) -> bool:
        if not self._modified:
            return True
        if self._confirm is None:
            logger.warning("unsaved changes kept: no confirmation callback")
            return False
        return bool(self._confirm(message))

    def cancel(self) -> bool:
        """Leave edit mode; returns False when the user declined to discard."""
        if not self.is_editing:
            return True
        count = len(self._modified)
        if not self._discard_allowed(
            f"You have {count} unsaved changes. Are you sure you want to cancel?"
        ):
            return False

        self._reset()
        self._state = SessionState.VIEWING
        if count:
            logger.info("discarded %d unsaved changes", count)
        if self._on_cancel is not None:
            self._on_cancel()
        return True

    def select_data_field(self, value: str) -> bool:
        """Switch the edited field; returns False when the switch was declined."""
        if self._config.field_option(value) is None:
            raise ConfigurationError(f"unknown data field: {value}")
        if value == self._selected_field:
            return True

        if self.is_editing:
            if not self._discard_allowed(
                f"You have {len(self._modified)} unsaved changes. "
                "Switching fields will discard them. Continue?"
            ):
                return False
            self._selected_field = value
            self._working = self._normalize_from_snapshot()
            self._modified.clear()
            self._errors.clear()
            self._save_attempted = False
        else:
            self._selected_field = value
        logger.info("data field: %s", value)
        return True

    async def attempt_save(self) -> SaveOutcome:
        self._require_editing("attempt_save")
        if self._save_pending:
            return SaveOutcome(SaveStatus.BUSY, message="A save is already in progress")

        self._save_attempted = True
        if self._errors:
            count = self.validate_all_cells()
            if count:
                for key, error in sorted(self._errors.items()):
                    self._record("CELL_VALIDATION", error, cell=key.encode())
                message = f"Please fix {count} validation errors before saving"
                logger.warning(message)
                return SaveOutcome(SaveStatus.BLOCKED, error_count=count, message=message)

        if not self._modified:
            logger.info("No changes to save")
            return SaveOutcome(SaveStatus.NO_CHANGES, message="No changes to save")

        self._save_pending = True
        try:
            return await self._save()
        finally:
            self._save_pending = False

    async def _save(self) -> SaveOutcome:
        config = self._config
        field_name = self._selected_field
        applied = len(self._modified)

        try:
            # the working copy is never shared with hooks or the store
            processed = trim(copy.deepcopy(self._working), field_name, config.trim_blanks, config.trim_value)
            if self._on_before_save is not None:
                result = self._on_before_save(processed)
                if inspect.isawaitable(result):
                    result = await result
                processed = list(result)

            updates = build_diff(processed, self._original, self._is_single, config.path, field_name)
            if config.affected_metrics and self._calculate_affected_metrics is not None:
                metrics = self._calculate_affected_metrics(
                    list(config.affected_metrics), processed, dict(updates)
                )
                updates.update(metrics or {})

            if updates:
                result = await self._store.update_by_path(updates)
            else:
                result = UpdateResult(is_valid=True, applied=0)
        except Exception as e:
            error = PersistenceError(f"An error occurred while saving: {e}")
            error.__cause__ = e
            logger.error("save failed: %s", e)
            self._record("PERSISTENCE_EXCEPTION", str(e))
            return SaveOutcome(
                SaveStatus.FAILED,
                error_count=1,
                message=str(error),
                errors=[str(e)],
                error=error,
            )

        if not result.is_valid:
            errors = list(result.errors)
            error = PersistenceError("Failed to save changes", errors)
            logger.error("save rejected: %s", "; ".join(errors) or "no details")
            for message in errors or ["update rejected"]:
                self._record("PERSISTENCE_REJECTED", message)
            outcome = SaveOutcome(
                SaveStatus.FAILED,
                error_count=max(len(errors), 1),
                message=str(error),
                updates=updates,
                errors=errors,
                error=error,
            )
        else:
            self._reset()
            self._state = SessionState.VIEWING
            message = f"{applied} changes saved successfully"
            logger.info(message)
            outcome = SaveOutcome(SaveStatus.SAVED, applied=applied, message=message, updates=updates)

        if self._on_after_save is not None:
            self._on_after_save(result)
        return outcome

    def _record(self, error_type: str, message: str, cell: str = BATCH_CELL) -> None:
        if self._error_log is None:
            return
        self._error_log.append(
            ErrorRecord.create(
                path=".".join(self._config.path),
                field=self._selected_field,
                cell=cell,
                error_type=error_type,
                message=message,
            )
        )

    # ---- presentation ----

    def grid(self) -> GridConfiguration:
        entities = self._working if self.is_editing else self.committed_data()
        return build_grid_configuration(
            self.orientation,
            self._years,
            entities,
            self._selected_field,
            hide_empty=self._config.hide_empty_items,
            is_editing=self.is_editing,
            markers=self._config.markers,
        )

    def render(self, **options: Any) -> TableFrame:
        """Render the current mode; options are passed to render_frame."""
        return render_frame(
            self.grid(),
            self.current_field_option,
            is_editing=self.is_editing,
            modified=self._modified,
            validation_errors=self._errors,
            **options,
        )
