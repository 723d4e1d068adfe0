"""
sfplanner — config schema.

File: src/sfplanner/config/schema.py

Purpose
- Define the default config tree and strict validation for planner settings.

What should be included in this file
- Built-in defaults for solver limits, race/sequential heuristic sets,
  optimizer, planner strategy and observability.
- Deterministic deep merge of overlays.
- Structured validation issues with dotted paths.

Functional requirements
- Reject unknown keys, wrong types and out-of-range values.

Non-functional requirements
- No side effects; deterministic output for equal input.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from sfplanner.constants import (
    ADMISSIBLE_HEURISTICS,
    DEFAULT_MAX_MEMORY_KB,
    DEFAULT_OPTIMIZER_HEURISTIC,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_RACE_HEURISTICS,
    DEFAULT_SEQUENTIAL_HEURISTICS,
    DEFAULT_SETTLE_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)

ConfigSchemaVersion: Final[int] = 1

STRATEGIES: Final[tuple[str, ...]] = ("race", "sequential")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Leaves holding filesystem paths; an empty string means "not configured".
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("solver", "solver_root"),
    ("solver", "solver_path"),
    ("planner", "scratch_root"),
    ("planner", "search_log_copy"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class SolverConfig(TypedDict):
    timeout_seconds: int
    max_memory_kb: int
    resource_limits: bool
    solver_root: str
    solver_path: str


class RaceConfig(TypedDict):
    heuristics: list[str]
    optimize: bool
    poll_interval_seconds: float
    settle_seconds: float


class SequentialConfig(TypedDict):
    heuristics: list[str]
    continue_after_success: bool
    optimize: bool


class OptimizerConfig(TypedDict):
    heuristic: str


class PlannerSection(TypedDict):
    strategy: str
    debug: bool
    scratch_root: str
    search_log_copy: str


class ObservabilityConfig(TypedDict):
    log_level: str
    log_dir: str
    log_to_stdout: bool


class PlannerConfig(TypedDict):
    meta: MetaConfig
    solver: SolverConfig
    race: RaceConfig
    sequential: SequentialConfig
    optimizer: OptimizerConfig
    planner: PlannerSection
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[PlannerConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "solver": {
        "timeout_seconds": DEFAULT_TIMEOUT_SECONDS,
        "max_memory_kb": DEFAULT_MAX_MEMORY_KB,
        "resource_limits": True,
        "solver_root": "",
        "solver_path": "",
    },
    "race": {
        "heuristics": list(DEFAULT_RACE_HEURISTICS),
        "optimize": False,
        "poll_interval_seconds": DEFAULT_POLL_INTERVAL_SECONDS,
        "settle_seconds": DEFAULT_SETTLE_SECONDS,
    },
    "sequential": {
        "heuristics": list(DEFAULT_SEQUENTIAL_HEURISTICS),
        "continue_after_success": False,
        "optimize": True,
    },
    "optimizer": {
        "heuristic": DEFAULT_OPTIMIZER_HEURISTIC,
    },
    "planner": {
        "strategy": "race",
        "debug": False,
        "scratch_root": "",
        "search_log_copy": "",
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs",
        "log_to_stdout": False,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> PlannerConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, set(DEFAULT_CONFIG), "", issues)
    normalized: dict[str, Any] = {}
    validators = {
        "meta": _validate_meta,
        "solver": _validate_solver,
        "race": _validate_race,
        "sequential": _validate_sequential,
        "optimizer": _validate_optimizer,
        "planner": _validate_planner,
        "observability": _validate_observability,
    }
    for section in sorted(validators):
        if section not in root:
            issues.add(section, "missing required section")
            continue
        payload = _as_object(root[section], section, issues)
        if payload is None:
            continue
        normalized[section] = validators[section](payload, section, issues)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    version = _as_int(payload.get("schema_version"), _join(path, "schema_version"), issues)
    if version is not None and version != ConfigSchemaVersion:
        issues.add(
            _join(path, "schema_version"),
            f"unsupported schema version {version}; expected {ConfigSchemaVersion}",
        )
    return {"schema_version": version}


def _validate_solver(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"timeout_seconds", "max_memory_kb", "resource_limits", "solver_root", "solver_path"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    return {
        "timeout_seconds": _as_int(
            payload.get("timeout_seconds"), _join(path, "timeout_seconds"), issues, minimum=1
        ),
        "max_memory_kb": _as_int(
            payload.get("max_memory_kb"), _join(path, "max_memory_kb"), issues, minimum=1
        ),
        "resource_limits": _as_bool(
            payload.get("resource_limits"), _join(path, "resource_limits"), issues
        ),
        "solver_root": _as_optional_path(
            payload.get("solver_root"), _join(path, "solver_root"), issues
        ),
        "solver_path": _as_optional_path(
            payload.get("solver_path"), _join(path, "solver_path"), issues
        ),
    }


def _validate_race(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"heuristics", "optimize", "poll_interval_seconds", "settle_seconds"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    return {
        "heuristics": _as_heuristics(payload.get("heuristics"), _join(path, "heuristics"), issues),
        "optimize": _as_bool(payload.get("optimize"), _join(path, "optimize"), issues),
        "poll_interval_seconds": _as_float(
            payload.get("poll_interval_seconds"),
            _join(path, "poll_interval_seconds"),
            issues,
            minimum=0.001,
        ),
        "settle_seconds": _as_float(
            payload.get("settle_seconds"), _join(path, "settle_seconds"), issues, minimum=0.0
        ),
    }


def _validate_sequential(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"heuristics", "continue_after_success", "optimize"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    return {
        "heuristics": _as_heuristics(payload.get("heuristics"), _join(path, "heuristics"), issues),
        "continue_after_success": _as_bool(
            payload.get("continue_after_success"), _join(path, "continue_after_success"), issues
        ),
        "optimize": _as_bool(payload.get("optimize"), _join(path, "optimize"), issues),
    }


def _validate_optimizer(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"heuristic"}, path, issues)
    _require_keys(payload, {"heuristic"}, path, issues)
    return {
        "heuristic": _as_enum(
            payload.get("heuristic"),
            _join(path, "heuristic"),
            issues,
            allowed_values=tuple(sorted(ADMISSIBLE_HEURISTICS)),
        )
    }


def _validate_planner(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"strategy", "debug", "scratch_root", "search_log_copy"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    return {
        "strategy": _as_enum(
            payload.get("strategy"), _join(path, "strategy"), issues, allowed_values=STRATEGIES
        ),
        "debug": _as_bool(payload.get("debug"), _join(path, "debug"), issues),
        "scratch_root": _as_optional_path(
            payload.get("scratch_root"), _join(path, "scratch_root"), issues
        ),
        "search_log_copy": _as_optional_path(
            payload.get("search_log_copy"), _join(path, "search_log_copy"), issues
        ),
    }


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_dir", "log_to_stdout"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    level = payload.get("log_level")
    if isinstance(level, str):
        level = level.strip().upper()
    return {
        "log_level": _as_enum(level, _join(path, "log_level"), issues, allowed_values=LOG_LEVELS),
        "log_dir": _as_optional_path(payload.get("log_dir"), _join(path, "log_dir"), issues),
        "log_to_stdout": _as_bool(
            payload.get("log_to_stdout"), _join(path, "log_to_stdout"), issues
        ),
    }


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_optional_path(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    if "\x00" in value:
        issues.add(path, "must not contain NUL bytes")
        return None
    return value.strip()


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _as_heuristics(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    parsed: list[str] = []
    for index, item in enumerate(value):
        name = _as_str(item, f"{path}[{index}]", issues)
        if name is not None:
            parsed.append(name)
    if not parsed:
        issues.add(path, "must name at least one heuristic configuration")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for key, item in value.items():
            if isinstance(key, str):
                out[key] = _deep_copy_value(item)
        return out
    if isinstance(value, list):
        return [_deep_copy_value(item) for item in value]
    if isinstance(value, tuple):
        return [_deep_copy_value(item) for item in value]
    return copy.deepcopy(value)


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "PlannerConfig",
    "STRATEGIES",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
