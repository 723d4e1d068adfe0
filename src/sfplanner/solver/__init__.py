"""Solver orchestration: command construction, racing, sequential fallback and plan refinement."""

from sfplanner.solver.optimizer import (
    FilteredProblem,
    OptimizationResult,
    PlanOptimizer,
    filter_operators,
)
from sfplanner.solver.plan_artifact import (
    MalformedPlanLineError,
    PlanArtifactError,
    UnknownOperatorError,
    count_plan_lines,
    read_plan,
    select_shortest_plan,
)
from sfplanner.solver.processes import RaceInterruptedError, RaceProcessGroup
from sfplanner.solver.runner import (
    SolverCommand,
    SolverError,
    SolverPlatform,
    SolverRunner,
    UnsupportedPlatformError,
    detect_platform,
)
from sfplanner.solver.scheduler import (
    RaceOutcome,
    RaceRunReport,
    RaceStatus,
    RunState,
    SpeculativeRaceScheduler,
)
from sfplanner.solver.sequential import SequentialHeuristicRacer

__all__ = [
    "FilteredProblem",
    "MalformedPlanLineError",
    "OptimizationResult",
    "PlanArtifactError",
    "PlanOptimizer",
    "RaceInterruptedError",
    "RaceOutcome",
    "RaceProcessGroup",
    "RaceRunReport",
    "RaceStatus",
    "RunState",
    "SequentialHeuristicRacer",
    "SolverCommand",
    "SolverError",
    "SolverPlatform",
    "SolverRunner",
    "SpeculativeRaceScheduler",
    "UnknownOperatorError",
    "count_plan_lines",
    "detect_platform",
    "filter_operators",
    "read_plan",
    "select_shortest_plan",
]
