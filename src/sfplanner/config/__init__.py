"""
sfplanner config package public API.

File: src/sfplanner/config/__init__.py

Purpose
- Export config loading/validation entrypoints, the typed settings value and public error types.

Functional requirements
- Support loading from ``sfplanner.toml`` + ``SFPLANNER_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from sfplanner.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    load_settings,
    normalize_paths,
)
from sfplanner.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    PlannerConfig,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)
from sfplanner.config.settings import ObservabilitySettings, PlannerSettings, SolverLimits

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "ObservabilitySettings",
    "PlannerConfig",
    "PlannerSettings",
    "SolverLimits",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "load_settings",
    "merge_config",
    "normalize_paths",
    "validate_config",
]
