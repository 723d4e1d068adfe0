"""
sfplanner — conformant initial-state enumerator

File: src/sfplanner/conformant/enumerator.py

Purpose
- Split a task whose initial state holds non-deterministic variables into one
  concrete scenario per combination of admissible values and solve each
  scenario independently.

Functional requirements
- Non-deterministic variables are ``OneOf`` values (or sets) anywhere in the
  nested initial state; each is addressed by a ``$.a.b`` path.
- Combinations are the Cartesian product of the admissible values, produced
  depth-first in the order the variables were discovered.
- Every scenario works on a deep clone of the task; the caller's task is
  never modified.
- The result is the per-scenario collection. Merging scenario plans into a
  single conformant plan is not provided.
"""

from __future__ import annotations

import copy
import dataclasses
import uuid
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from typing import Any, Final

import structlog

from sfplanner.domain.models import (
    Assignment,
    OneOf,
    PlanningTask,
    ScenarioSolution,
    SolveResult,
    StateValue,
)
from sfplanner.observability.logging import correlation_scope

ROOT_PATH: Final[str] = "$"
_SEPARATOR: Final[str] = "."

SolveTask = Callable[[PlanningTask], SolveResult | None]

logger = structlog.get_logger(__name__)


def find_nondeterministic_variables(
    initial: Mapping[str, Any],
    *,
    root: str = ROOT_PATH,
) -> dict[str, tuple[StateValue, ...]]:
    """Collect ``path -> admissible values`` for every non-deterministic variable.

    Nested mappings are walked depth-first in key order. Sets are accepted as
    an alternative spelling of ``OneOf``; their values are sorted by ``repr``
    so enumeration order is stable.
    """

    found: dict[str, tuple[StateValue, ...]] = {}
    pending: list[tuple[str, Mapping[str, Any]]] = [(root, initial)]
    while pending:
        prefix, mapping = pending.pop()
        nested: list[tuple[str, Mapping[str, Any]]] = []
        for key, value in mapping.items():
            path = f"{prefix}{_SEPARATOR}{key}"
            if isinstance(value, OneOf):
                found[path] = value.values
            elif isinstance(value, set | frozenset):
                if not value:
                    raise ValueError(f"{path} has an empty set of admissible values")
                found[path] = tuple(sorted(value, key=repr))
            elif isinstance(value, Mapping):
                nested.append((path, value))
        pending.extend(reversed(nested))
    return found


def enumerate_partial_initial_states(
    variables: Mapping[str, Sequence[StateValue]],
) -> list[dict[str, StateValue]]:
    """Every combination of ``variables`` as one ``path -> value`` assignment."""

    names = list(variables)
    bucket: list[dict[str, StateValue]] = []
    _collect_combinations(names, variables, 0, {}, bucket)
    return bucket


def _collect_combinations(
    names: Sequence[str],
    values: Mapping[str, Sequence[StateValue]],
    index: int,
    current: dict[str, StateValue],
    bucket: list[dict[str, StateValue]],
) -> None:
    if index >= len(names):
        bucket.append(dict(current))
        return
    name = names[index]
    for value in values[name]:
        current[name] = value
        _collect_combinations(names, values, index + 1, current, bucket)
    current.pop(name, None)


def assign_path(initial: MutableMapping[str, Any], path: str, value: StateValue) -> None:
    """Overwrite the variable at ``path`` (``$.a.b``) inside ``initial``."""

    segments = _split_path(path)
    parent: Any = initial
    for segment in segments[:-1]:
        child = parent.get(segment) if isinstance(parent, MutableMapping) else None
        if not isinstance(child, MutableMapping):
            raise KeyError(f"{path}: {segment!r} is not an object in the initial state")
        parent = child
    parent[segments[-1]] = copy.deepcopy(value)


def _split_path(path: str) -> list[str]:
    prefix = ROOT_PATH + _SEPARATOR
    if not path.startswith(prefix) or len(path) == len(prefix):
        raise ValueError(f"invalid state path: {path!r}")
    return path[len(prefix) :].split(_SEPARATOR)


def scenario_task(task: PlanningTask, assignment: Assignment) -> PlanningTask:
    """Deep-cloned task with ``assignment`` written into its initial state."""

    initial = copy.deepcopy(task.initial)
    for path, value in assignment.items():
        assign_path(initial, path, value)
    return dataclasses.replace(task, initial=initial, goal=dict(task.goal))


def is_conformant(task: PlanningTask) -> bool:
    return bool(find_nondeterministic_variables(task.initial))


class ConformantEnumerator:
    """Solve every concrete initial state of a conformant task."""

    def __init__(self, solve_task: SolveTask) -> None:
        self._solve_task = solve_task

    def partial_initial_states(self, task: PlanningTask) -> list[dict[str, StateValue]]:
        return enumerate_partial_initial_states(find_nondeterministic_variables(task.initial))

    def solve(self, task: PlanningTask) -> tuple[ScenarioSolution, ...]:
        assignments = self.partial_initial_states(task)
        solutions: list[ScenarioSolution] = []
        for number, assignment in enumerate(assignments, start=1):
            scenario = scenario_task(task, assignment)
            with correlation_scope(scenario_id=uuid.uuid4().hex):
                result = self._solve_task(scenario)
                logger.info(
                    "conformant_scenario_solved",
                    scenario=number,
                    scenarios=len(assignments),
                    solved=result is not None,
                    plan_length=len(result.plan) if result is not None else None,
                )
            solutions.append(
                ScenarioSolution(
                    assignment=assignment,
                    plan=result.plan if result is not None else None,
                    task=result.task if result is not None else scenario,
                )
            )
        # TODO: merge per-scenario plans into one conformant plan once a merge
        # strategy for diverging operator sequences is settled.
        return tuple(solutions)


__all__ = [
    "ROOT_PATH",
    "ConformantEnumerator",
    "SolveTask",
    "assign_path",
    "enumerate_partial_initial_states",
    "find_nondeterministic_variables",
    "is_conformant",
    "scenario_task",
]
