"""Stable constants shared across the solver, signature and conformant layers."""

from __future__ import annotations

from typing import Final

# Resource limits applied to every solver invocation.
DEFAULT_TIMEOUT_SECONDS: Final[int] = 60
DEFAULT_MAX_MEMORY_KB: Final[int] = 2_048_000
DEFAULT_NICENESS: Final[int] = 10

# Race polling.
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 0.2
DEFAULT_SETTLE_SECONDS: Final[float] = 1.0

# Heuristic configurations.
DEFAULT_RACE_HEURISTICS: Final[tuple[str, ...]] = ("lama",)
DEFAULT_SEQUENTIAL_HEURISTICS: Final[tuple[str, ...]] = (
    "ff2",
    "cea2",
    "fd-autotune-1",
    "fd-autotune-2",
)
DEFAULT_OPTIMIZER_HEURISTIC: Final[str] = "lmcut"
# Admissible, cost-optimal configurations usable for plan refinement.
ADMISSIBLE_HEURISTICS: Final[frozenset[str]] = frozenset({"lmcut", "blind"})

# Scratch directory layout.
SCRATCH_PREFIX: Final[str] = "sfplanner_"
PROBLEM_FILENAME: Final[str] = "problem.sas"
PLAN_FILENAME: Final[str] = "out.plan"
PREPROCESS_OUTPUT_FILENAME: Final[str] = "output"
SEARCH_LOG_FILENAME: Final[str] = "search.log"
BENCHMARKS_FILENAME: Final[str] = "sas_translator.benchmarks"
COST_ACCOUNTING_FILENAME: Final[str] = "plan_numbers_and_cost"

# Solver executables inside a platform directory.
PREPROCESS_PROGRAM: Final[str] = "preprocess"
SEARCH_PROGRAM: Final[str] = "downward"

# Compiler-introduced operators that never appear in a returned plan.
AUXILIARY_OPERATOR_KINDS: Final[frozenset[str]] = frozenset({"goal", "globalop", "sometime"})

SIGNATURE_VERSION: Final[int] = 1

__all__ = [
    "ADMISSIBLE_HEURISTICS",
    "AUXILIARY_OPERATOR_KINDS",
    "BENCHMARKS_FILENAME",
    "COST_ACCOUNTING_FILENAME",
    "DEFAULT_MAX_MEMORY_KB",
    "DEFAULT_NICENESS",
    "DEFAULT_OPTIMIZER_HEURISTIC",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_RACE_HEURISTICS",
    "DEFAULT_SEQUENTIAL_HEURISTICS",
    "DEFAULT_SETTLE_SECONDS",
    "DEFAULT_TIMEOUT_SECONDS",
    "PLAN_FILENAME",
    "PREPROCESS_OUTPUT_FILENAME",
    "PREPROCESS_PROGRAM",
    "PROBLEM_FILENAME",
    "SCRATCH_PREFIX",
    "SEARCH_LOG_FILENAME",
    "SEARCH_PROGRAM",
    "SIGNATURE_VERSION",
]
