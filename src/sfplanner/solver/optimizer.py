"""Plan optimizer: restrict the encoded problem to a plan's operators and re-solve admissibly."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

import structlog

from sfplanner.solver.plan_artifact import count_plan_lines, plan_operator_identities

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from sfplanner.config.settings import PlannerSettings
    from sfplanner.solver.runner import SolverRunner

FILTERED_SUFFIX: Final[str] = ".2"

_BEGIN_OPERATOR: Final[str] = "begin_operator"
_END_OPERATOR: Final[str] = "end_operator"
_END_GOAL: Final[str] = "end_goal"


@dataclass(frozen=True, slots=True)
class FilteredProblem:
    text: str
    operator_count: int


@dataclass(frozen=True, slots=True)
class OptimizationResult:
    """``improved`` is false when the admissible re-solve found nothing."""

    improved: bool
    original_lines: int
    optimized_lines: int | None = None
    filtered_problem: Path | None = None


def filter_operators(encoded: str, selected: Iterable[str]) -> FilteredProblem:
    """Keep only operator blocks whose identity is in ``selected``.

    Everything outside operator blocks is copied verbatim, except the line
    directly after ``end_goal``, which holds the operator count and is
    rewritten to the number of blocks kept.
    """

    wanted = frozenset(selected)
    output: list[str] = []
    count_line_index: int | None = None
    expect_count = False
    block: list[str] | None = None
    identity: str | None = None
    kept = 0

    for line in encoded.splitlines(keepends=True):
        if expect_count:
            expect_count = False
            count_line_index = len(output)
            output.append(line)
            continue
        if line.startswith(_BEGIN_OPERATOR):
            block = []
            identity = None
        elif line.startswith(_END_OPERATOR):
            if identity in wanted and block is not None:
                output.append(f"{_BEGIN_OPERATOR}\n")
                output.extend(block)
                output.append(f"{_END_OPERATOR}\n")
                kept += 1
            block = None
            identity = None
        elif block is None:
            output.append(line)
            if line.startswith(_END_GOAL):
                expect_count = True
        else:
            if identity is None:
                tokens = line.split(maxsplit=1)
                identity = tokens[0] if tokens else ""
            block.append(line)

    if count_line_index is not None:
        output[count_line_index] = f"{kept}\n"
    return FilteredProblem(text="".join(output), operator_count=kept)


class PlanOptimizer:
    """Re-solve a filtered problem with an admissible configuration.

    The original plan is kept whenever the re-solve fails; optimization
    never raises for solver failures.
    """

    def __init__(
        self,
        runner: SolverRunner,
        settings: PlannerSettings | None = None,
        *,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self._runner = runner
        self._heuristic = (settings or runner.settings).optimizer_heuristic
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def optimize(self, work_dir: Path, sas_file: Path, plan_file: Path) -> OptimizationResult:
        original_lines = count_plan_lines(plan_file)
        filtered_sas = sas_file.with_name(sas_file.name + FILTERED_SUFFIX)
        candidate = plan_file.with_name(plan_file.name + FILTERED_SUFFIX)

        filtered = filter_operators(
            sas_file.read_text(encoding="utf-8"),
            plan_operator_identities(plan_file),
        )
        filtered_sas.write_text(filtered.text, encoding="utf-8")
        candidate.unlink(missing_ok=True)

        solved = self._runner.solve(work_dir, filtered_sas, candidate, self._heuristic)
        if not solved or count_plan_lines(candidate) == 0:
            self._logger.info(
                "plan_optimization_skipped",
                heuristic=self._heuristic,
                plan_lines=original_lines,
            )
            return OptimizationResult(
                improved=False,
                original_lines=original_lines,
                filtered_problem=filtered_sas,
            )

        optimized_lines = count_plan_lines(candidate)
        os.replace(candidate, plan_file)
        self._logger.info(
            "plan_optimization_applied",
            heuristic=self._heuristic,
            original_lines=original_lines,
            optimized_lines=optimized_lines,
            kept_operators=filtered.operator_count,
        )
        return OptimizationResult(
            improved=True,
            original_lines=original_lines,
            optimized_lines=optimized_lines,
            filtered_problem=filtered_sas,
        )


__all__ = [
    "FILTERED_SUFFIX",
    "FilteredProblem",
    "OptimizationResult",
    "PlanOptimizer",
    "filter_operators",
]
