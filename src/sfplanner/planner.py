"""
sfplanner — planner facade

File: src/sfplanner/planner.py

Purpose
- Wire task compilation, solving, plan resolution and signature construction
  behind one entry point.

Functional requirements
- Classical tasks are compiled to an encoded problem, solved in a fresh
  per-invocation scratch directory with the configured strategy (race or
  sequential) and resolved against the operator catalog.
- Conformant tasks are split into scenarios and each scenario is raced
  independently; the per-scenario collection is the result.
- A solve-time breakdown is written next to the encoded problem and returned.
- Cleanup always runs: stray cost-accounting file removal, optional search
  log copy, scratch removal (kept in debug mode).
- Representations: raw plan, sequential workflow, parallel workflow and
  behavioural signature (classical tasks only).
"""

from __future__ import annotations

import json
import shutil
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import structlog

from sfplanner.config.loader import load_settings
from sfplanner.config.settings import PlannerSettings
from sfplanner.conformant.enumerator import ConformantEnumerator, is_conformant
from sfplanner.constants import (
    BENCHMARKS_FILENAME,
    COST_ACCOUNTING_FILENAME,
    PLAN_FILENAME,
    PROBLEM_FILENAME,
    SCRATCH_PREFIX,
    SEARCH_LOG_FILENAME,
)
from sfplanner.domain.models import (
    Plan,
    PlanningTask,
    ScenarioSolution,
    SignatureModel,
    SolveResult,
    WorkflowNode,
    workflow_from_plan,
)
from sfplanner.observability.logging import correlation_scope, setup_logging
from sfplanner.signature.builder import build_parallel_signature, build_sequential_signature
from sfplanner.solver.plan_artifact import read_plan
from sfplanner.solver.runner import SolverRunner
from sfplanner.solver.scheduler import RaceOutcome, SpeculativeRaceScheduler, search_log_name
from sfplanner.solver.sequential import SequentialHeuristicRacer
from sfplanner.utils.fs import atomic_write, scratch_directory

logger = structlog.get_logger(__name__)

PartialOrderExtractor = Callable[[Plan, PlanningTask], list[WorkflowNode]]


class TaskCompiler(Protocol):
    """Turns a planning task into its encoded (SAS+) problem text."""

    def compile(self, task: PlanningTask) -> str: ...


class ConformantTaskError(ValueError):
    """Raised when a representation is requested that conformant tasks do not support."""

    def __init__(self, message: str = "Conformant task is not supported yet") -> None:
        super().__init__(message)


class Planner:
    """Solve planning tasks through the external solver and derive their representations."""

    def __init__(
        self,
        compiler: TaskCompiler,
        settings: PlannerSettings | None = None,
        *,
        partial_order: PartialOrderExtractor | None = None,
        runner: SolverRunner | None = None,
    ) -> None:
        self._compiler = compiler
        self._settings = settings if settings is not None else PlannerSettings.defaults()
        self._partial_order = partial_order
        self._runner = runner if runner is not None else SolverRunner(self._settings)
        self._scheduler = SpeculativeRaceScheduler(self._settings, runner=self._runner)
        self._racer = SequentialHeuristicRacer(self._settings, runner=self._runner)

    @classmethod
    def from_config(
        cls,
        compiler: TaskCompiler,
        config_path: str | Path | None = None,
        *,
        partial_order: PartialOrderExtractor | None = None,
        run_id: str | None = None,
        configure_logging: bool = True,
    ) -> Planner:
        """Build a planner from ``sfplanner.toml``.

        Structured logging is set up from the ``[observability]`` section unless
        ``configure_logging`` is false, in which case the caller owns logging.
        """

        settings = load_settings(config_path)
        if configure_logging:
            setup_logging(
                settings.observability.as_mapping(),
                run_id=run_id or uuid.uuid4().hex,
            )
        return cls(compiler, settings, partial_order=partial_order)

    @property
    def settings(self) -> PlannerSettings:
        return self._settings

    def solve(self, task: PlanningTask) -> SolveResult | tuple[ScenarioSolution, ...] | None:
        """Solve ``task``; conformant tasks yield one ``ScenarioSolution`` per initial state."""

        if is_conformant(task):
            return self.solve_conformant(task)
        return self.solve_classical(task)

    def solve_classical(self, task: PlanningTask) -> SolveResult | None:
        return self._solve_task(task, strategy=self._settings.strategy)

    def solve_conformant(self, task: PlanningTask) -> tuple[ScenarioSolution, ...]:
        enumerator = ConformantEnumerator(
            lambda scenario: self._solve_task(scenario, strategy="race")
        )
        with correlation_scope(solve_id=uuid.uuid4().hex):
            return enumerator.solve(task)

    def signature(self, task: PlanningTask, *, parallel: bool = False) -> SignatureModel | None:
        """Solve ``task`` and return its behavioural signature (``None`` without a plan)."""

        if is_conformant(task):
            raise ConformantTaskError()
        return self.to_bsig(self.solve_classical(task), parallel=parallel)

    def sequential_workflow(self, result: SolveResult) -> list[WorkflowNode]:
        return workflow_from_plan(result.plan)

    def parallel_workflow(self, result: SolveResult) -> list[WorkflowNode]:
        """Partial-order workflow; a linear chain when no extractor is configured."""

        if not result.plan.steps:
            return []
        if self._partial_order is None:
            return workflow_from_plan(result.plan)
        return self._partial_order(result.plan, result.task)

    def to_bsig(
        self,
        result: SolveResult | None,
        *,
        parallel: bool = False,
    ) -> SignatureModel | None:
        if result is None:
            return None
        if is_conformant(result.task):
            raise ConformantTaskError()
        if parallel:
            return build_parallel_signature(self.parallel_workflow(result), result.task.goal)
        return build_sequential_signature(self.sequential_workflow(result), result.task.goal)

    def _solve_task(self, task: PlanningTask, *, strategy: str) -> SolveResult | None:
        with correlation_scope(solve_id=uuid.uuid4().hex):
            started = time.perf_counter()
            encoded = self._compiler.compile(task)
            timings = {"compile": time.perf_counter() - started}
            return self._solve_encoded(encoded, task, timings, strategy=strategy)

    def _solve_encoded(
        self,
        encoded: str,
        task: PlanningTask,
        timings: dict[str, float],
        *,
        strategy: str,
    ) -> SolveResult | None:
        debug = self._settings.debug
        plan: Plan | None = None
        outcome: RaceOutcome | None = None
        scratch = scratch_directory(self._settings.scratch_root, prefix=SCRATCH_PREFIX, keep=debug)
        with scratch as work_dir:
            try:
                sas_file = work_dir / PROBLEM_FILENAME
                plan_file = work_dir / PLAN_FILENAME

                started = time.perf_counter()
                atomic_write(sas_file, encoded)
                timings["generating sas"] = time.perf_counter() - started

                started = time.perf_counter()
                outcome = self._search(work_dir, sas_file, plan_file, strategy=strategy)
                timings["search_time"] = time.perf_counter() - started

                atomic_write(work_dir / BENCHMARKS_FILENAME, json.dumps(timings, indent=2))
                if outcome.solved and outcome.plan_path is not None:
                    plan = read_plan(outcome.plan_path, task.operators)
            finally:
                self._cleanup(work_dir, outcome)

            logger.info(
                "solve_finished",
                task=task.name,
                status=outcome.status.value if outcome is not None else None,
                winner=outcome.winner if outcome is not None else None,
                plan_length=len(plan) if plan is not None else None,
                scratch_dir=str(work_dir) if debug else None,
            )
            if plan is None:
                return None
            return SolveResult(
                plan=plan,
                task=task,
                encoded_problem=encoded,
                timings=dict(timings),
                scratch_dir=work_dir if debug else None,
            )

    def _search(
        self,
        work_dir: Path,
        sas_file: Path,
        plan_file: Path,
        *,
        strategy: str,
    ) -> RaceOutcome:
        if strategy == "sequential":
            return self._racer.solve(work_dir, sas_file, plan_file)
        return self._scheduler.solve(work_dir, sas_file, plan_file)

    def _cleanup(self, work_dir: Path, outcome: RaceOutcome | None) -> None:
        (Path.cwd() / COST_ACCOUNTING_FILENAME).unlink(missing_ok=True)
        destination = self._settings.search_log_copy
        if destination is None:
            return
        candidates = [work_dir / SEARCH_LOG_FILENAME]
        if outcome is not None and outcome.winner is not None:
            candidates.append(work_dir / search_log_name(outcome.winner, single=False))
        for candidate in candidates:
            if candidate.is_file():
                shutil.copyfile(candidate, destination)
                return


__all__ = [
    "ConformantTaskError",
    "PartialOrderExtractor",
    "Planner",
    "TaskCompiler",
]
