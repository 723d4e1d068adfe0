"""
sfplanner — unit tests for config schema and settings

File: tests/unit/config/test_schema.py

Purpose
- Validate strict schema checks, deep merging and resolution into ``PlannerSettings``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sfplanner.config.schema import (
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)
from sfplanner.config.settings import ObservabilitySettings, PlannerSettings, SolverLimits


def test_default_config_is_valid_and_independent() -> None:
    first = default_config()
    second = default_config()
    first["race"]["heuristics"].append("ff2")

    assert validate_config(second).is_valid
    assert second["race"]["heuristics"] == ["lama"]


def test_merge_config_overlays_nested_sections_without_mutating_base() -> None:
    base = default_config()

    merged = merge_config(base, {"solver": {"timeout_seconds": 5}})

    assert merged["solver"]["timeout_seconds"] == 5
    assert merged["solver"]["max_memory_kb"] == 2_048_000
    assert base["solver"]["timeout_seconds"] == 60


@pytest.mark.parametrize(
    ("overlay", "path"),
    [
        ({"solver": {"timeout_seconds": 0}}, "solver.timeout_seconds"),
        ({"solver": {"max_memory_kb": "lots"}}, "solver.max_memory_kb"),
        ({"race": {"heuristics": []}}, "race.heuristics"),
        ({"race": {"heuristics": ["lama", ""]}}, "race.heuristics"),
        ({"race": {"poll_interval_seconds": 0}}, "race.poll_interval_seconds"),
        ({"race": {"settle_seconds": -1.0}}, "race.settle_seconds"),
        ({"planner": {"strategy": "parallel"}}, "planner.strategy"),
        ({"observability": {"log_level": "LOUD"}}, "observability.log_level"),
        ({"optimizer": {"heuristic": 3}}, "optimizer.heuristic"),
        ({"optimizer": {"heuristic": "lama"}}, "optimizer.heuristic"),
    ],
)
def test_invalid_values_are_reported_with_their_path(
    overlay: dict[str, object], path: str
) -> None:
    config = merge_config(default_config(), overlay)

    result = validate_config(config)

    assert not result.is_valid
    assert any(issue.path.startswith(path) for issue in result.issues)


def test_optimizer_accepts_only_admissible_configurations() -> None:
    blind = validate_config(merge_config(default_config(), {"optimizer": {"heuristic": "blind"}}))
    greedy = validate_config(merge_config(default_config(), {"optimizer": {"heuristic": "ff2"}}))

    assert blind.is_valid
    assert blind.config is not None
    assert blind.config["optimizer"]["heuristic"] == "blind"
    assert [issue.path for issue in greedy.issues] == ["optimizer.heuristic"]
    assert "blind, lmcut" in greedy.issues[0].message


def test_assert_valid_config_raises_structured_error() -> None:
    config = merge_config(default_config(), {"sequential": {"unexpected": True}})

    with pytest.raises(ConfigValidationError) as exc_info:
        assert_valid_config(config)

    assert [issue.path for issue in exc_info.value.issues] == ["sequential.unexpected"]
    assert "unknown field" in str(exc_info.value)


def test_settings_defaults_mirror_default_config() -> None:
    settings = PlannerSettings.defaults()

    assert settings.limits == SolverLimits()
    assert settings.race_heuristics == ("lama",)
    assert settings.sequential_heuristics == ("ff2", "cea2", "fd-autotune-1", "fd-autotune-2")
    assert settings.sequential_optimize is True
    assert settings.race_optimize is False
    assert settings.optimizer_heuristic == "lmcut"
    assert settings.poll_interval_seconds == pytest.approx(0.2)
    assert settings.solver_root is None
    assert isinstance(settings.scratch_root, Path)
    assert settings.observability == ObservabilitySettings()
    assert settings.observability.as_mapping() == default_config()["observability"]


def test_settings_overrides_are_validated() -> None:
    settings = PlannerSettings.defaults()

    changed = settings.with_overrides(strategy="sequential", debug=True)

    assert changed.strategy == "sequential"
    assert changed.debug is True
    assert settings.strategy == "race"
    with pytest.raises(ValueError, match="race_heuristics"):
        settings.with_overrides(race_heuristics=())
    with pytest.raises(ValueError, match="timeout_seconds"):
        SolverLimits(timeout_seconds=0)
