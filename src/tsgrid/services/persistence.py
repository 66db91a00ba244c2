from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping, MutableMapping, MutableSequence, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import yaml

"""Persistence contract and in-memory reference store.

The edit session only talks to a ScenarioStore:

- get_value_by_path(path, fallback): synchronous; returns fallback for any path
  that cannot be resolved, never raises
- update_by_path(updates) / update_by_path(path, value): asynchronous; validates
  the whole batch first and applies nothing when any entry is rejected

InMemoryScenarioStore implements the contract over a nested dict/list document
(the scenario), which is what the CLI and the tests use.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PersistenceError",
    "UpdateResult",
    "ScenarioStore",
    "PathValidator",
    "InMemoryScenarioStore",
    "split_path",
    "load_scenario",
    "dump_scenario",
]


class PersistenceError(Exception):
    """A batch update was rejected or the store failed while applying it."""

    def __init__(self, message: str, errors: Sequence[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


@dataclass(frozen=True)
class UpdateResult:
    is_valid: bool
    applied: int = 0
    errors: list[str] = field(default_factory=list)


class ScenarioStore(Protocol):
    def get_value_by_path(self, path: Sequence[str] | str, fallback: Any = None) -> Any: ...

    async def update_by_path(self, updates: Any, value: Any = None) -> UpdateResult: ...


# (dotted path, value) -> error message or None
PathValidator = Callable[[str, Any], "str | None"]


def split_path(path: Sequence[str | int] | str) -> list[str]:
    if isinstance(path, str):
        segments = path.split(".")
    else:
        segments = [str(s) for s in path]
    if not segments or any(s == "" for s in segments):
        raise PersistenceError(f"invalid path: {path!r}")
    return segments


def _child(node: Any, segment: str) -> Any:
    if isinstance(node, Mapping):
        return node[segment]
    if isinstance(node, Sequence) and not isinstance(node, (str, bytes)):
        return node[int(segment)]
    raise KeyError(segment)


def _assign(document: Any, segments: list[str], value: Any) -> None:
    node = document
    for segment in segments[:-1]:
        node = _child(node, segment)
    last = segments[-1]
    if isinstance(node, MutableMapping):
        node[last] = value
    elif isinstance(node, MutableSequence):
        index = int(last)
        if index == len(node):
            node.append(value)
        else:
            node[index] = value
    else:
        raise KeyError(last)


class InMemoryScenarioStore:
    """Scenario document held in memory with atomic batch updates."""

    def __init__(
        self,
        document: MutableMapping[str, Any] | None = None,
        validators: Sequence[PathValidator] = (),
    ) -> None:
        self._document: MutableMapping[str, Any] = document if document is not None else {}
        self._validators = list(validators)
        self.update_calls = 0

    @property
    def document(self) -> MutableMapping[str, Any]:
        return self._document

    def get_value_by_path(self, path: Sequence[str] | str, fallback: Any = None) -> Any:
        try:
            node: Any = self._document
            for segment in split_path(path):
                node = _child(node, segment)
        except (KeyError, IndexError, ValueError, TypeError, PersistenceError):
            return fallback
        return node

    async def update_by_path(self, updates: Any, value: Any = None) -> UpdateResult:
        """Apply one update ``(path, value)`` or a batch ``{path: value}`` atomically."""
        self.update_calls += 1
        if isinstance(updates, Mapping):
            batch = dict(updates)
        else:
            batch = {".".join(split_path(updates)): value}

        errors: list[str] = []
        for path, new_value in batch.items():
            for validator in self._validators:
                message = validator(path, new_value)
                if message:
                    errors.append(f"{path}: {message}")
        if errors:
            logger.warning("update rejected: %d errors", len(errors))
            return UpdateResult(is_valid=False, applied=0, errors=errors)

        staged = copy.deepcopy(self._document)
        for path, new_value in batch.items():
            try:
                _assign(staged, split_path(path), copy.deepcopy(new_value))
            except (KeyError, IndexError, ValueError, TypeError) as e:
                errors.append(f"{path}: cannot resolve path ({e})")
        if errors:
            return UpdateResult(is_valid=False, applied=0, errors=errors)

        self._document = staged
        logger.debug("applied %d updates", len(batch))
        return UpdateResult(is_valid=True, applied=len(batch))


def load_scenario(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise PersistenceError(f"scenario file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise PersistenceError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError(f"scenario root must be a mapping: {path}")
    return data


def dump_scenario(document: Mapping[str, Any], path: Path) -> None:
    path.write_text(
        yaml.safe_dump(dict(document), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
