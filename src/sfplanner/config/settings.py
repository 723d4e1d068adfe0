"""Immutable planner settings resolved once from the effective config."""

from __future__ import annotations

import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal

from sfplanner.config.schema import assert_valid_config, default_config
from sfplanner.constants import (
    DEFAULT_MAX_MEMORY_KB,
    DEFAULT_OPTIMIZER_HEURISTIC,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_RACE_HEURISTICS,
    DEFAULT_SEQUENTIAL_HEURISTICS,
    DEFAULT_SETTLE_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)

Strategy = Literal["race", "sequential"]


@dataclass(frozen=True, slots=True)
class SolverLimits:
    """Wall-clock and virtual-memory ceilings applied to each solver invocation."""

    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_memory_kb: int = DEFAULT_MAX_MEMORY_KB
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_memory_kb <= 0:
            raise ValueError("max_memory_kb must be > 0")


@dataclass(frozen=True, slots=True)
class ObservabilitySettings:
    """The ``[observability]`` section as handed to ``setup_logging``."""

    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_stdout: bool = False

    def as_mapping(self) -> dict[str, object]:
        return {
            "log_level": self.log_level,
            "log_dir": str(self.log_dir),
            "log_to_stdout": self.log_to_stdout,
        }


@dataclass(frozen=True, slots=True)
class PlannerSettings:
    """Everything the scheduler, racer, optimizer and planner read at run time."""

    limits: SolverLimits = field(default_factory=SolverLimits)
    solver_root: Path | None = None
    solver_path: Path | None = None
    race_heuristics: tuple[str, ...] = DEFAULT_RACE_HEURISTICS
    race_optimize: bool = False
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    sequential_heuristics: tuple[str, ...] = DEFAULT_SEQUENTIAL_HEURISTICS
    sequential_continue: bool = False
    sequential_optimize: bool = True
    optimizer_heuristic: str = DEFAULT_OPTIMIZER_HEURISTIC
    strategy: Strategy = "race"
    debug: bool = False
    scratch_root: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    search_log_copy: Path | None = None
    observability: ObservabilitySettings = field(default_factory=ObservabilitySettings)

    def __post_init__(self) -> None:
        if not self.race_heuristics:
            raise ValueError("race_heuristics must not be empty")
        if not self.sequential_heuristics:
            raise ValueError("sequential_heuristics must not be empty")
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")
        if self.settle_seconds < 0:
            raise ValueError("settle_seconds must be >= 0")
        if self.strategy not in ("race", "sequential"):
            raise ValueError(f"unsupported strategy {self.strategy!r}")

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> PlannerSettings:
        """Build settings from a validated config tree."""

        valid = assert_valid_config(config)
        solver: dict[str, Any] = valid["solver"]
        race: dict[str, Any] = valid["race"]
        sequential: dict[str, Any] = valid["sequential"]
        planner: dict[str, Any] = valid["planner"]
        observability: dict[str, Any] = valid["observability"]
        return cls(
            limits=SolverLimits(
                timeout_seconds=solver["timeout_seconds"],
                max_memory_kb=solver["max_memory_kb"],
                enabled=solver["resource_limits"],
            ),
            solver_root=_optional_path(solver["solver_root"]),
            solver_path=_optional_path(solver["solver_path"]),
            race_heuristics=tuple(race["heuristics"]),
            race_optimize=race["optimize"],
            poll_interval_seconds=race["poll_interval_seconds"],
            settle_seconds=race["settle_seconds"],
            sequential_heuristics=tuple(sequential["heuristics"]),
            sequential_continue=sequential["continue_after_success"],
            sequential_optimize=sequential["optimize"],
            optimizer_heuristic=valid["optimizer"]["heuristic"],
            strategy=planner["strategy"],
            debug=planner["debug"],
            scratch_root=_optional_path(planner["scratch_root"])
            or Path(tempfile.gettempdir()),
            search_log_copy=_optional_path(planner["search_log_copy"]),
            observability=ObservabilitySettings(
                log_level=observability["log_level"],
                log_dir=_optional_path(observability["log_dir"]) or Path("logs"),
                log_to_stdout=observability["log_to_stdout"],
            ),
        )

    @classmethod
    def defaults(cls) -> PlannerSettings:
        return cls.from_config(default_config())

    def with_overrides(self, **changes: Any) -> PlannerSettings:
        return replace(self, **changes)


def _optional_path(value: str | None) -> Path | None:
    if not value:
        return None
    return Path(value)


__all__ = ["ObservabilitySettings", "PlannerSettings", "SolverLimits", "Strategy"]
