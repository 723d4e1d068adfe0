"""
sfplanner — unit tests for the sequential heuristic racer

File: tests/unit/solver/test_sequential.py

Purpose
- Validate first-success and continue modes, shortest selection and the
  optimizer hand-off.
"""

from __future__ import annotations

from pathlib import Path

from sfplanner.solver.optimizer import OptimizationResult
from sfplanner.solver.plan_artifact import count_plan_lines
from sfplanner.solver.scheduler import RaceStatus, RunState
from sfplanner.solver.sequential import SequentialHeuristicRacer, solution_path

_CEA2 = "ehc(hCea"
_FF2 = "preferred=hFF"
_AUTOTUNE_1 = "boost=1000"
_AUTOTUNE_2 = "boost=200)"


def _plan(count: int) -> list[str]:
    return [f"(step{index})" for index in range(count)]


def _problem(work_dir: Path) -> Path:
    sas_file = work_dir / "problem.sas"
    sas_file.write_text("begin_version\n3\nend_version\n", encoding="utf-8")
    return sas_file


class _RecordingOptimizer:
    def __init__(self) -> None:
        self.calls = 0

    def optimize(self, work_dir: Path, sas_file: Path, plan_file: Path) -> OptimizationResult:
        self.calls += 1
        return OptimizationResult(improved=False, original_lines=count_plan_lines(plan_file))


def _searched(fake_solver) -> list[str]:
    return [record["search"] for record in fake_solver.invocations("downward")]


def test_solution_path_numbering(tmp_path: Path) -> None:
    assert solution_path(tmp_path / "out.plan", 2) == tmp_path / "out.plan.sol.2"


def test_first_success_stops_the_loop(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(
        rules=[
            {"match": _FF2, "exit": 1},
            {"match": _CEA2, "plan": _plan(6)},
            {"match": _AUTOTUNE_1, "plan": _plan(2)},
        ]
    )
    optimizer = _RecordingOptimizer()
    racer = SequentialHeuristicRacer(fake_solver.settings(), optimizer=optimizer)
    plan_file = work_dir / "out.plan"

    outcome = racer.solve(work_dir, _problem(work_dir), plan_file)

    assert outcome.status is RaceStatus.SOLVED
    assert outcome.winner == "cea2"
    assert outcome.plan_lines == 6
    assert count_plan_lines(plan_file) == 6
    assert len(_searched(fake_solver)) == 2
    assert [run.state for run in outcome.runs] == [RunState.FAILED, RunState.SUCCEEDED]
    assert optimizer.calls == 1
    assert not solution_path(plan_file, 1).exists()


def test_continue_mode_keeps_the_shortest(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(
        rules=[
            {"match": _FF2, "plan": _plan(7)},
            {"match": _CEA2, "plan": _plan(4)},
            {"match": _AUTOTUNE_1, "exit": 1},
            {"match": _AUTOTUNE_2, "plan": _plan(4)},
        ]
    )
    racer = SequentialHeuristicRacer(
        fake_solver.settings(sequential_continue=True), optimizer=_RecordingOptimizer()
    )
    plan_file = work_dir / "out.plan"

    outcome = racer.solve(work_dir, _problem(work_dir), plan_file)

    assert len(_searched(fake_solver)) == 4
    assert outcome.winner == "cea2"
    assert outcome.plan_lines == 4
    assert [run.heuristic for run in outcome.runs if run.state is RunState.SUCCEEDED] == [
        "ff2",
        "cea2",
        "fd-autotune-2",
    ]
    assert not any(work_dir.glob("out.plan.sol.*"))


def test_optimize_can_be_disabled_per_call(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(default={"plan": _plan(3)})
    optimizer = _RecordingOptimizer()
    racer = SequentialHeuristicRacer(fake_solver.settings(), optimizer=optimizer)

    outcome = racer.solve(
        work_dir, _problem(work_dir), work_dir / "out.plan", heuristics=["lama"], optimize=False
    )

    assert outcome.solved
    assert outcome.optimization is None
    assert optimizer.calls == 0


def test_no_solution_after_every_configuration(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(default={"exit": 1})
    racer = SequentialHeuristicRacer(fake_solver.settings(), optimizer=_RecordingOptimizer())

    outcome = racer.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert outcome.status is RaceStatus.NO_SOLUTION
    assert len(outcome.runs) == 4
    assert len(_searched(fake_solver)) == 4
