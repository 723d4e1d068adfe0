"""
sfplanner — unit tests for the speculative race scheduler

File: tests/unit/solver/test_scheduler.py

Purpose
- Validate race orchestration against stand-in solver executables.

What this test file should cover
- Preprocessing failure ends the race before any search is spawned.
- Shortest artifact wins; ties select exactly one and slow runs are killed.
- Only runs that exit cleanly count; partial artifacts of killed runs are
  discarded.
- The working directory is restored on every exit path, also under
  concurrent races.
- Per-configuration search logs and optional optimization.

Non-functional requirements
- Plan content from racing is non-deterministic; assertions are limited to
  validity and length where several runs can finish.
"""

from __future__ import annotations

import os
import signal
import threading
import time
from pathlib import Path

import pytest

from sfplanner.solver.optimizer import OptimizationResult
from sfplanner.solver.plan_artifact import count_plan_lines
from sfplanner.solver.scheduler import (
    RaceOutcome,
    RaceStatus,
    RunState,
    SpeculativeRaceScheduler,
    artifact_path,
    search_log_name,
)


def _plan(count: int, prefix: str = "op") -> list[str]:
    return [f"({prefix}{index})" for index in range(count)]


def _problem(work_dir: Path) -> Path:
    sas_file = work_dir / "problem.sas"
    sas_file.write_text("begin_version\n3\nend_version\n", encoding="utf-8")
    return sas_file


class _NoSpawnRunner:
    def __init__(self) -> None:
        self.preprocess_calls = 0

    def preprocess(self, work_dir: Path, sas_file: Path) -> bool:
        self.preprocess_calls += 1
        return False

    def spawn_search(self, *args: object, **kwargs: object) -> object:
        raise AssertionError("search must not be spawned after failed preprocessing")


class _ExplodingRunner:
    def preprocess(self, work_dir: Path, sas_file: Path) -> bool:
        return True

    def spawn_search(self, *args: object, **kwargs: object) -> object:
        raise RuntimeError("spawn failed")


class _RecordingOptimizer:
    def __init__(self) -> None:
        self.calls: list[tuple[Path, Path, Path]] = []

    def optimize(self, work_dir: Path, sas_file: Path, plan_file: Path) -> OptimizationResult:
        self.calls.append((work_dir, sas_file, plan_file))
        return OptimizationResult(improved=False, original_lines=count_plan_lines(plan_file))


def test_artifact_and_log_naming(tmp_path: Path) -> None:
    assert artifact_path(tmp_path / "out.plan", "lama") == tmp_path / "out.plan.lama"
    assert search_log_name("lama", single=True) == "search.log"
    assert search_log_name("lama", single=False) == "search.log.lama"


def test_run_states_are_the_reported_outcomes() -> None:
    assert {state.value for state in RunState} == {"succeeded", "timed_out", "failed", "cancelled"}

def test_preprocessing_failure_spawns_nothing(fake_solver, work_dir: Path) -> None:
    runner = _NoSpawnRunner()
    scheduler = SpeculativeRaceScheduler(
        fake_solver.settings(), runner=runner, optimizer=_RecordingOptimizer()
    )

    outcome = scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert outcome.status is RaceStatus.PREPROCESSING_FAILED
    assert outcome.plan_path is None
    assert outcome.runs == ()
    assert runner.preprocess_calls == 1


def test_preprocessing_failure_with_real_processes(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(preprocess="fail", default={"plan": _plan(3)})
    scheduler = SpeculativeRaceScheduler(fake_solver.settings(race_heuristics=("lama", "ff2")))

    outcome = scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert outcome.status is RaceStatus.PREPROCESSING_FAILED
    assert fake_solver.invocations("downward") == []
    assert not (work_dir / "out.plan").exists()


def test_single_configuration_race(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(default={"plan": _plan(4)})
    scheduler = SpeculativeRaceScheduler(fake_solver.settings())
    plan_file = work_dir / "out.plan"

    outcome = scheduler.solve(work_dir, _problem(work_dir), plan_file)

    assert outcome.status is RaceStatus.SOLVED
    assert outcome.winner == "lama"
    assert outcome.plan_path == plan_file.resolve()
    assert outcome.plan_lines == 4
    assert count_plan_lines(plan_file) == 4
    assert (work_dir / "search.log").exists()
    assert outcome.optimization is None


def test_shortest_artifact_wins(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(
        rules=[
            {"match": "lazy_greedy([hlm,hff]", "plan": _plan(5, "short"), "linger": 0.5},
            {"match": "hFF=ff(cost_type=1)", "plan": _plan(8, "long"), "linger": 0.5},
        ]
    )
    scheduler = SpeculativeRaceScheduler(fake_solver.settings(race_heuristics=("ff2", "lama")))

    outcome = scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert outcome.status is RaceStatus.SOLVED
    assert outcome.winner == "lama"
    assert outcome.plan_lines == 5
    assert (work_dir / "search.log.lama").exists()
    assert (work_dir / "search.log.ff2").exists()
    succeeded = {run.heuristic for run in outcome.runs if run.state is RunState.SUCCEEDED}
    assert succeeded == {"ff2", "lama"}


def test_tie_selects_exactly_one_and_kills_slow_runs(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(
        rules=[{"match": "astar(lmcut", "delay": 30, "plan": _plan(1)}],
        default={"plan": _plan(10), "linger": 0.3},
    )
    scheduler = SpeculativeRaceScheduler(
        fake_solver.settings(race_heuristics=("cg", "cea", "lmcut"))
    )
    started = time.monotonic()

    outcome = scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert time.monotonic() - started < 20
    assert outcome.status is RaceStatus.SOLVED
    assert outcome.winner in {"cg", "cea"}
    assert outcome.plan_lines == 10
    states = {run.heuristic: run for run in outcome.runs}
    assert states["cg"].state is RunState.SUCCEEDED
    assert states["cea"].state is RunState.SUCCEEDED
    assert states["lmcut"].state is RunState.CANCELLED
    assert states["lmcut"].returncode == -signal.SIGKILL
    assert all(run.pid is not None for run in outcome.runs)


def test_partial_artifact_of_killed_run_is_never_selected(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(
        rules=[
            {"match": "lazy_greedy([hlm,hff]", "delay": 0.8, "plan": _plan(5, "whole")},
            {"match": "hFF=ff(cost_type=1)", "plan": _plan(9, "partial"), "line_delay": 0.5},
        ]
    )
    scheduler = SpeculativeRaceScheduler(
        fake_solver.settings(race_heuristics=("ff2", "lama"), settle_seconds=0.5)
    )
    plan_file = work_dir / "out.plan"

    outcome = scheduler.solve(work_dir, _problem(work_dir), plan_file)

    assert outcome.status is RaceStatus.SOLVED
    assert outcome.winner == "lama"
    assert outcome.plan_lines == 5
    assert "partial" not in plan_file.read_text(encoding="utf-8")
    states = {run.heuristic: run for run in outcome.runs}
    assert states["ff2"].state is RunState.CANCELLED
    assert states["ff2"].plan_lines is None
    assert not artifact_path(plan_file.resolve(), "ff2").exists()


def test_streaming_run_is_accepted_once_it_exits(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(default={"plan": _plan(6), "line_delay": 0.2})
    scheduler = SpeculativeRaceScheduler(fake_solver.settings(settle_seconds=0.1))

    outcome = scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert outcome.status is RaceStatus.SOLVED
    assert outcome.plan_lines == 6
    assert [run.state for run in outcome.runs] == [RunState.SUCCEEDED]
    assert outcome.runs[0].returncode == 0


def test_plan_of_failing_run_is_discarded(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(default={"plan": _plan(4), "exit": 3})
    scheduler = SpeculativeRaceScheduler(fake_solver.settings())
    plan_file = work_dir / "out.plan"

    outcome = scheduler.solve(work_dir, _problem(work_dir), plan_file)

    assert outcome.status is RaceStatus.NO_SOLUTION
    assert [run.state for run in outcome.runs] == [RunState.FAILED]
    assert not artifact_path(plan_file.resolve(), "lama").exists()


def test_no_solution_when_every_run_fails(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(default={"exit": 1})
    scheduler = SpeculativeRaceScheduler(fake_solver.settings(race_heuristics=("cg", "cea")))

    outcome = scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert outcome.status is RaceStatus.NO_SOLUTION
    assert outcome.plan_path is None
    assert not outcome.solved
    assert [run.state for run in outcome.runs] == [RunState.FAILED, RunState.FAILED]
    assert not (work_dir / "out.plan").exists()


def test_empty_artifact_is_not_a_solution(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(default={"plan": []})
    scheduler = SpeculativeRaceScheduler(fake_solver.settings())

    outcome = scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert outcome.status is RaceStatus.NO_SOLUTION


def test_empty_artifact_does_not_end_the_race(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(
        rules=[
            {"match": "lazy_greedy([hlm,hff]", "plan": []},
            {"match": "hFF=ff(cost_type=1)", "delay": 0.3, "plan": _plan(3)},
        ]
    )
    scheduler = SpeculativeRaceScheduler(fake_solver.settings())

    outcome = scheduler.solve(
        work_dir, _problem(work_dir), work_dir / "out.plan", heuristics=["lama", "ff2"]
    )

    assert outcome.status is RaceStatus.SOLVED
    assert outcome.winner == "ff2"
    assert outcome.plan_lines == 3


def test_optimizer_runs_only_when_enabled(fake_solver, work_dir: Path) -> None:
    fake_solver.configure(default={"plan": _plan(3)})
    optimizer = _RecordingOptimizer()
    scheduler = SpeculativeRaceScheduler(fake_solver.settings(), optimizer=optimizer)
    sas_file = _problem(work_dir)

    disabled = scheduler.solve(work_dir, sas_file, work_dir / "out.plan")
    enabled = scheduler.solve(work_dir, sas_file, work_dir / "out.plan", optimize=True)

    assert disabled.optimization is None
    assert enabled.optimization is not None
    assert len(optimizer.calls) == 1
    assert optimizer.calls[0][2] == (work_dir / "out.plan").resolve()


@pytest.mark.parametrize("preprocess", ["ok", "fail"])
def test_working_directory_is_restored(fake_solver, work_dir: Path, preprocess: str) -> None:
    fake_solver.configure(preprocess=preprocess, default={"plan": _plan(2)})
    scheduler = SpeculativeRaceScheduler(fake_solver.settings())
    before = Path.cwd()

    scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert Path.cwd() == before


def test_working_directory_is_restored_when_spawning_fails(fake_solver, work_dir: Path) -> None:
    scheduler = SpeculativeRaceScheduler(
        fake_solver.settings(), runner=_ExplodingRunner(), optimizer=_RecordingOptimizer()
    )
    before = Path.cwd()

    with pytest.raises(RuntimeError, match="spawn failed"):
        scheduler.solve(work_dir, _problem(work_dir), work_dir / "out.plan")

    assert Path.cwd() == before
    assert os.getcwd() == str(before)


def test_concurrent_races_keep_working_directory(fake_solver, tmp_path: Path) -> None:
    fake_solver.configure(default={"plan": _plan(2), "linger": 0.2})
    scheduler = SpeculativeRaceScheduler(fake_solver.settings())
    outcomes: dict[str, RaceOutcome] = {}
    errors: list[Exception] = []
    before = Path.cwd()

    def race(name: str) -> None:
        directory = tmp_path / name
        directory.mkdir()
        try:
            outcomes[name] = scheduler.solve(directory, _problem(directory), directory / "out.plan")
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=race, args=(name,)) for name in ("left", "right")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert errors == []
    assert Path.cwd() == before
    assert sorted(outcomes) == ["left", "right"]
    for name, outcome in outcomes.items():
        assert outcome.status is RaceStatus.SOLVED
        assert count_plan_lines(tmp_path / name / "out.plan") == 2
