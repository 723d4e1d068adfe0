"""
sfplanner — speculative race scheduler

File: src/sfplanner/solver/scheduler.py

Purpose
- Race several heuristic configurations of the external solver against one
  encoded problem and keep the shortest plan that any of them produces.

Functional requirements
- Preprocess once; a missing intermediate artifact ends the race before any
  search process is spawned.
- One search process per configuration, each with its own plan artifact and
  the configured wall-clock/virtual-memory limits.
- Poll until one run has exited cleanly with a non-empty plan or no run is
  alive. Runs that already hold an artifact get a shared settle window, then
  every run of this working directory is killed.
- Only runs that exited with status 0 before the kill count as solved; the
  artifacts of killed or failed runs are discarded before selection.
- Select the artifact with the fewest plan lines and copy it to the canonical
  plan path; optionally refine it with the plan optimizer.
- The process working directory is changed for the race under a module lock
  and restored on every exit path; termination signals received during the
  race kill all runs.
"""

from __future__ import annotations

import contextlib
import shutil
import subprocess
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Final

import structlog

from sfplanner.constants import SEARCH_LOG_FILENAME
from sfplanner.solver.optimizer import OptimizationResult, PlanOptimizer
from sfplanner.solver.plan_artifact import count_plan_lines, select_shortest_plan
from sfplanner.solver.processes import RaceProcessGroup, forward_termination_signals
from sfplanner.solver.runner import SolverRunner

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from sfplanner.config.settings import PlannerSettings

# Exit status of coreutils ``timeout`` when the wall-clock limit fires.
_TIMEOUT_EXIT_STATUS: Final[int] = 124

# The working directory is process-wide; one race holds it at a time.
_WORKING_DIRECTORY_LOCK: Final = threading.Lock()


class RaceStatus(StrEnum):
    SOLVED = "solved"
    NO_SOLUTION = "no_solution"
    PREPROCESSING_FAILED = "preprocessing_failed"


class RunState(StrEnum):
    """Life cycle of one race run."""

    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class RaceRunReport:
    heuristic: str
    plan_path: Path
    state: RunState
    pid: int | None = None
    returncode: int | None = None
    plan_lines: int | None = None


@dataclass(frozen=True, slots=True)
class RaceOutcome:
    """Result of a race or sequential solve.

    ``plan_path`` is only set when ``status`` is ``SOLVED``; the artifact it
    names is complete and non-empty.
    """

    status: RaceStatus
    plan_path: Path | None = None
    winner: str | None = None
    plan_lines: int | None = None
    runs: tuple[RaceRunReport, ...] = ()
    optimization: OptimizationResult | None = None

    @property
    def solved(self) -> bool:
        return self.status is RaceStatus.SOLVED


def artifact_path(plan_file: Path, heuristic: str) -> Path:
    return plan_file.with_name(f"{plan_file.name}.{heuristic}")


def search_log_name(heuristic: str, *, single: bool) -> str:
    return SEARCH_LOG_FILENAME if single else f"{SEARCH_LOG_FILENAME}.{heuristic}"


def _has_artifact(path: Path) -> bool:
    return path.is_file() and count_plan_lines(path) > 0


class SpeculativeRaceScheduler:
    """Run heuristic configurations concurrently; first clean finish ends the race."""

    def __init__(
        self,
        settings: PlannerSettings,
        *,
        runner: SolverRunner | None = None,
        optimizer: PlanOptimizer | None = None,
        logger: FilteringBoundLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._runner = runner if runner is not None else SolverRunner(settings)
        self._optimizer = (
            optimizer if optimizer is not None else PlanOptimizer(self._runner, settings)
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._sleep = sleep

    def solve(
        self,
        work_dir: Path,
        sas_file: Path,
        plan_file: Path,
        *,
        heuristics: Iterable[str] | None = None,
        optimize: bool | None = None,
    ) -> RaceOutcome:
        configurations = tuple(
            dict.fromkeys(self._settings.race_heuristics if heuristics is None else heuristics)
        )
        if not configurations:
            raise ValueError("at least one heuristic configuration is required")
        refine = self._settings.race_optimize if optimize is None else optimize
        work_dir = Path(work_dir).resolve()
        sas_file = Path(sas_file).resolve()
        plan_file = Path(plan_file).resolve()

        with _WORKING_DIRECTORY_LOCK, contextlib.chdir(work_dir):
            if not self._runner.preprocess(work_dir, sas_file):
                return RaceOutcome(status=RaceStatus.PREPROCESSING_FAILED)

            artifacts = {
                heuristic: artifact_path(plan_file, heuristic) for heuristic in configurations
            }
            for path in artifacts.values():
                path.unlink(missing_ok=True)
            group = RaceProcessGroup()
            cancelled: set[str] = set()
            self._logger.info(
                "race_started",
                heuristics=list(configurations),
                work_dir=str(work_dir),
                timeout_seconds=self._settings.limits.timeout_seconds,
            )
            try:
                with forward_termination_signals(group, work_dir):
                    self._spawn_all(group, work_dir, artifacts)
                    self._await_completion(group, artifacts)
            finally:
                cancelled.update(group.alive())
                group.kill_all(work_dir)

            runs = self._reports(group, artifacts, cancelled)
            for run in runs:
                if run.state is not RunState.SUCCEEDED:
                    run.plan_path.unlink(missing_ok=True)
            selection = select_shortest_plan(
                run.plan_path for run in runs if run.state is RunState.SUCCEEDED
            )
            if selection is None:
                self._logger.warning("race_no_solution", heuristics=list(configurations))
                return RaceOutcome(status=RaceStatus.NO_SOLUTION, runs=runs)

            winner_path, plan_lines = selection
            winner = next(heuristic for heuristic, path in artifacts.items() if path == winner_path)
            plan_file.unlink(missing_ok=True)
            shutil.copyfile(winner_path, plan_file)
            self._logger.info(
                "race_winner_selected",
                heuristic=winner,
                plan_lines=plan_lines,
                candidates=sum(1 for run in runs if run.state is RunState.SUCCEEDED),
            )

            optimization = None
            if refine:
                optimization = self._optimizer.optimize(work_dir, sas_file, plan_file)
                plan_lines = count_plan_lines(plan_file)

            return RaceOutcome(
                status=RaceStatus.SOLVED,
                plan_path=plan_file,
                winner=winner,
                plan_lines=plan_lines,
                runs=runs,
                optimization=optimization,
            )

    def _spawn_all(
        self,
        group: RaceProcessGroup,
        work_dir: Path,
        artifacts: Mapping[str, Path],
    ) -> None:
        single = len(artifacts) == 1
        for heuristic, path in artifacts.items():
            process = self._runner.spawn_search(
                work_dir,
                path,
                heuristic,
                log_name=search_log_name(heuristic, single=single),
            )
            group.add(heuristic, process)
            self._logger.debug("race_run_spawned", heuristic=heuristic, pid=process.pid)

    def _await_completion(
        self,
        group: RaceProcessGroup,
        artifacts: Mapping[str, Path],
    ) -> None:
        """Block until one run has exited cleanly with a plan, or no run is left.

        A run whose process is still alive is not complete even when its
        artifact already has lines, since the solver may still be writing it.
        """

        while True:
            if any(_completed(group, label, path) for label, path in artifacts.items()):
                self._settle(group, artifacts)
                return
            alive = group.alive()
            if not alive:
                return
            writers = [label for label in alive if _has_artifact(artifacts[label])]
            if writers and self._settings.settle_seconds > 0:
                _wait_for_exit(group, writers[:1], self._settings.settle_seconds)
            else:
                self._sleep(self._settings.poll_interval_seconds)

    def _settle(self, group: RaceProcessGroup, artifacts: Mapping[str, Path]) -> None:
        """Give runs that already hold an artifact one shared window to finish."""

        writers = [label for label in group.alive() if _has_artifact(artifacts[label])]
        if writers and self._settings.settle_seconds > 0:
            _wait_for_exit(group, writers, self._settings.settle_seconds)

    def _reports(
        self,
        group: RaceProcessGroup,
        artifacts: Mapping[str, Path],
        cancelled: set[str],
    ) -> tuple[RaceRunReport, ...]:
        returncodes = group.returncodes()
        reports: list[RaceRunReport] = []
        for heuristic, path in artifacts.items():
            process = group.get(heuristic)
            returncode = returncodes.get(heuristic)
            lines = count_plan_lines(path) if path.is_file() else None
            if heuristic in cancelled:
                state = RunState.CANCELLED
            elif returncode == 0 and lines:
                state = RunState.SUCCEEDED
            elif returncode == _TIMEOUT_EXIT_STATUS:
                state = RunState.TIMED_OUT
            else:
                state = RunState.FAILED
            reports.append(
                RaceRunReport(
                    heuristic=heuristic,
                    plan_path=path,
                    state=state,
                    pid=process.pid if process is not None else None,
                    returncode=returncode,
                    plan_lines=lines if state is RunState.SUCCEEDED else None,
                )
            )
        return tuple(reports)


def _completed(group: RaceProcessGroup, label: str, path: Path) -> bool:
    process = group.get(label)
    return process is not None and process.poll() == 0 and _has_artifact(path)


def _wait_for_exit(group: RaceProcessGroup, labels: Sequence[str], seconds: float) -> None:
    deadline = time.monotonic() + seconds
    for label in labels:
        process = group.get(label)
        if process is None:
            continue
        with contextlib.suppress(subprocess.TimeoutExpired):
            process.wait(timeout=max(deadline - time.monotonic(), 0.0))


__all__ = [
    "RaceOutcome",
    "RaceRunReport",
    "RaceStatus",
    "RunState",
    "SpeculativeRaceScheduler",
    "artifact_path",
    "search_log_name",
]
