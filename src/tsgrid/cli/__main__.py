from __future__ import annotations

import argparse
import asyncio
import dataclasses
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigurationError, load_table_config
from ..grid.layout import grid_to_frame
from ..grid.render import format_cell_value
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.position import Orientation
from ..services.persistence import InMemoryScenarioStore, PersistenceError, dump_scenario, load_scenario
from ..services.session import EditSession, SaveStatus, SessionStateError
from ..services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load .env, table config and scenario file
- Print the grid for the selected field
- With --set: apply the edits through an EditSession, save, and write the
  scenario back when the store accepted the batch

Exit codes: 0 success (or nothing to save), 1 fatal (config / data / arguments),
2 save not applied (validation errors or rejected update).
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_NOT_SAVED = 2

DEFAULT_CONFIG = "config/table.yml"
DEFAULT_DATA = "data/scenario.yml"


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def parse_cell_assignment(text: str) -> tuple[int, int, float | int | None]:
    """Parse ``ENTITY:YEAR=VALUE``; an empty VALUE clears the cell.

    Examples:
        >>> parse_cell_assignment("0:3=1500")
        (0, 3, 1500)
        >>> parse_cell_assignment("1:-2=")
        (1, -2, None)
    """
    target, sep, raw_value = text.partition("=")
    entity, colon, year = target.partition(":")
    if not sep or not colon:
        raise argparse.ArgumentTypeError(f"expected ENTITY:YEAR=VALUE, got {text!r}")
    try:
        entity_index = int(entity)
        year_value = int(year)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid cell reference {target!r}") from e

    raw_value = raw_value.strip()
    if raw_value == "":
        return entity_index, year_value, None
    try:
        return entity_index, year_value, int(raw_value)
    except ValueError:
        pass
    try:
        return entity_index, year_value, float(raw_value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid value {raw_value!r}") from e


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="tsgrid", description="Year-indexed time-series grid editor")
    p.add_argument("--config", type=Path, help=f"Table config YAML (env TSGRID_CONFIG, default {DEFAULT_CONFIG})")
    p.add_argument("--data", type=Path, help=f"Scenario YAML (env TSGRID_DATA, default {DEFAULT_DATA})")
    p.add_argument("--field", help="Data field to show/edit (default: first option)")
    p.add_argument("--orientation", choices=[o.value for o in Orientation], help="Override the configured orientation")
    p.add_argument("--hide-empty", action="store_true", help="Hide entities and years without data")
    p.add_argument(
        "--set",
        dest="assignments",
        action="append",
        default=[],
        type=parse_cell_assignment,
        metavar="ENTITY:YEAR=VALUE",
        help="Edit one cell (repeatable)",
    )
    p.add_argument("--logs-dir", type=Path, default=Path("logs"), help="Directory for the error log")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _print_grid(session: EditSession) -> None:
    field_type = session.current_field_option.type
    frame = grid_to_frame(session.grid(), formatter=lambda v: format_cell_value(v, field_type))
    if frame.empty:
        print("(no data)")
    else:
        print(frame.to_string())


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in logger.handlers:
            h.setLevel("DEBUG")
        logger.setLevel("DEBUG")
        logger.debug("debug mode enabled")

    config_path = args.config or Path(os.getenv("TSGRID_CONFIG", DEFAULT_CONFIG))
    data_path = args.data or Path(os.getenv("TSGRID_DATA", DEFAULT_DATA))

    try:
        config = load_table_config(config_path)
        if args.orientation:
            config = dataclasses.replace(config, orientation=Orientation.parse(args.orientation))
        if args.hide_empty:
            config = dataclasses.replace(config, hide_empty_items=True)
    except ConfigurationError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        document = load_scenario(data_path)
    except PersistenceError as e:
        logger.error(f"data: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(args.logs_dir)
    store = InMemoryScenarioStore(document)
    # edits come from the command line, so discarding is always confirmed
    session = EditSession(config, store, confirm=lambda _message: True, error_log=error_log)
    try:
        if args.field:
            session.select_data_field(args.field)
    except ConfigurationError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    logger.info(f"table {'.'.join(config.path)} field={session.selected_data_field}")
    if not args.assignments:
        _print_grid(session)
        return EXIT_SUCCESS

    try:
        session.begin_edit()
        for entity_index, year, value in args.assignments:
            message = session.edit_cell(entity_index, year, value)
            if message:
                logger.warning(f"cell {entity_index}-{year}: {message}")
    except (SessionStateError, IndexError) as e:
        logger.error(f"edit: {e}")
        return EXIT_FATAL

    outcome = asyncio.run(session.attempt_save())
    summary_line = render_summary_line(session.selected_data_field, outcome)
    log_summary(summary_line[len("SUMMARY "):])

    if outcome.status is SaveStatus.SAVED:
        dump_scenario(store.document, data_path)
        logger.info(f"wrote {data_path}")
        _print_grid(session)
        return EXIT_SUCCESS
    if outcome.status is SaveStatus.NO_CHANGES:
        return EXIT_SUCCESS

    logger.error(outcome.message)
    error_file = error_log.flush()
    if error_file is not None:
        logger.info(f"error log: {error_file}")
    return EXIT_NOT_SAVED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
