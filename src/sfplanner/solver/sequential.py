"""Sequential heuristic racer: try configurations one after another."""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from sfplanner.solver.optimizer import PlanOptimizer
from sfplanner.solver.plan_artifact import count_plan_lines, select_shortest_plan
from sfplanner.solver.runner import SolverRunner
from sfplanner.solver.scheduler import RaceOutcome, RaceRunReport, RaceStatus, RunState

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from sfplanner.config.settings import PlannerSettings


def solution_path(plan_file: Path, sequence: int) -> Path:
    return plan_file.with_name(f"{plan_file.name}.sol.{sequence}")


class SequentialHeuristicRacer:
    """Non-parallel alternative to the race scheduler with the same selection rule.

    In first-success mode the first configuration producing a plan ends the
    loop; in continue mode every configuration runs and each success is kept
    as ``<plan>.sol.<n>`` until the shortest one is chosen.
    """

    def __init__(
        self,
        settings: PlannerSettings,
        *,
        runner: SolverRunner | None = None,
        optimizer: PlanOptimizer | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self._settings = settings
        self._runner = runner if runner is not None else SolverRunner(settings)
        self._optimizer = (
            optimizer if optimizer is not None else PlanOptimizer(self._runner, settings)
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def solve(
        self,
        work_dir: Path,
        sas_file: Path,
        plan_file: Path,
        *,
        heuristics: Iterable[str] | None = None,
        continue_after_success: bool | None = None,
        optimize: bool | None = None,
    ) -> RaceOutcome:
        order = tuple(self._settings.sequential_heuristics if heuristics is None else heuristics)
        keep_going = (
            self._settings.sequential_continue
            if continue_after_success is None
            else continue_after_success
        )
        refine = self._settings.sequential_optimize if optimize is None else optimize
        work_dir = Path(work_dir).resolve()
        sas_file = Path(sas_file).resolve()
        plan_file = Path(plan_file).resolve()

        solutions: list[tuple[str, Path]] = []
        runs: list[RaceRunReport] = []
        for heuristic in order:
            plan_file.unlink(missing_ok=True)
            found = self._runner.solve(work_dir, sas_file, plan_file, heuristic) and (
                count_plan_lines(plan_file) > 0
            )
            if not found:
                runs.append(
                    RaceRunReport(heuristic=heuristic, plan_path=plan_file, state=RunState.FAILED)
                )
                continue

            kept = solution_path(plan_file, len(solutions) + 1)
            plan_file.replace(kept)
            solutions.append((heuristic, kept))
            lines = count_plan_lines(kept)
            runs.append(
                RaceRunReport(
                    heuristic=heuristic,
                    plan_path=kept,
                    state=RunState.SUCCEEDED,
                    plan_lines=lines,
                )
            )
            self._logger.info("sequential_heuristic_solved", heuristic=heuristic, plan_lines=lines)
            if not keep_going:
                break

        selection = select_shortest_plan(path for _, path in solutions)
        if selection is None:
            self._logger.warning("race_no_solution", heuristics=list(order))
            return RaceOutcome(status=RaceStatus.NO_SOLUTION, runs=tuple(runs))

        winner_path, plan_lines = selection
        winner = next(heuristic for heuristic, path in solutions if path == winner_path)
        plan_file.unlink(missing_ok=True)
        shutil.copyfile(winner_path, plan_file)
        for _, path in solutions:
            path.unlink(missing_ok=True)
        self._logger.info(
            "race_winner_selected",
            heuristic=winner,
            plan_lines=plan_lines,
            candidates=len(solutions),
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
            runs=tuple(runs),
            optimization=optimization,
        )


__all__ = ["SequentialHeuristicRacer", "solution_path"]
