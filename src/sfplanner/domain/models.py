"""Planning domain models: operators, plans, workflows and behavioural signatures."""

from __future__ import annotations

import json
import time
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from sfplanner.constants import SIGNATURE_VERSION

if TYPE_CHECKING:
    from pathlib import Path

StateScalar = str | int | float | bool | None
StateValue = StateScalar | list["StateValue"] | dict[str, "StateValue"]

Assignment = Mapping[str, StateValue]


@dataclass(frozen=True, slots=True)
class Operator:
    """Ground operator as published by the operator catalog.

    ``preconditions`` and ``effects`` map variable paths to values and are
    frozen on construction.
    """

    name: str
    parameters: tuple[tuple[str, StateValue], ...] = ()
    preconditions: Mapping[str, StateValue] = field(default_factory=dict)
    effects: Mapping[str, StateValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("operator name must be a non-empty string")
        if any(character.isspace() for character in self.name):
            raise ValueError(f"operator name must not contain whitespace: {self.name!r}")
        raw_parameters: object = self.parameters
        if isinstance(raw_parameters, Mapping):
            pairs = tuple((str(key), value) for key, value in raw_parameters.items())
        else:
            pairs = tuple((str(key), value) for key, value in self.parameters)
        object.__setattr__(self, "parameters", pairs)
        object.__setattr__(self, "preconditions", MappingProxyType(dict(self.preconditions)))
        object.__setattr__(self, "effects", MappingProxyType(dict(self.effects)))

    def to_workflow_node(self, *, node_id: int | None = None) -> WorkflowNode:
        """Return a fresh, mutable workflow node for one occurrence of this operator."""

        return WorkflowNode(
            name=self.name,
            parameters=dict(self.parameters),
            condition=dict(self.preconditions),
            effect=dict(self.effects),
            node_id=node_id,
        )


@dataclass(frozen=True, slots=True)
class OneOf:
    """Admissible values of an initial-state variable whose actual value is unknown."""

    values: tuple[StateValue, ...]

    def __post_init__(self) -> None:
        materialized = tuple(self.values)
        if not materialized:
            raise ValueError("OneOf requires at least one admissible value")
        object.__setattr__(self, "values", materialized)


@dataclass(slots=True)
class PlanningTask:
    """Compiled-task view consumed by the planner.

    ``initial`` is the nested initial state (``OneOf`` marks non-deterministic
    variables), ``goal`` maps variable paths to required values and
    ``operators`` is the operator catalog.
    """

    initial: dict[str, Any]
    goal: dict[str, StateValue]
    operators: Mapping[str, Operator]
    name: str = "task"


@dataclass(frozen=True, slots=True)
class PlanStep:
    operator: Operator
    arguments: tuple[str, ...]
    line: str

    @property
    def name(self) -> str:
        return self.operator.name


@dataclass(frozen=True, slots=True)
class Plan:
    """Ordered operator occurrences; insertion order is execution order."""

    steps: tuple[PlanStep, ...]
    goal_operator_line: str | None = None

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[PlanStep]:
        return iter(self.steps)

    @property
    def operator_names(self) -> tuple[str, ...]:
        return tuple(step.name for step in self.steps)

    def to_lines(self) -> list[str]:
        return [step.line for step in self.steps]


@dataclass(slots=True)
class WorkflowNode:
    """One plan step inside a (sequential or partial-order) workflow.

    Predecessor and successor indices are supplied by the partial-order
    extractor; ``priority_index`` is only set for parallel signatures.
    """

    name: str
    parameters: dict[str, StateValue] = field(default_factory=dict)
    condition: dict[str, StateValue] = field(default_factory=dict)
    effect: dict[str, StateValue] = field(default_factory=dict)
    predecessors: list[int] = field(default_factory=list)
    successors: list[int] = field(default_factory=list)
    node_id: int | None = None
    priority_index: int | None = None

    def copy(self) -> WorkflowNode:
        return WorkflowNode(
            name=self.name,
            parameters=dict(self.parameters),
            condition=dict(self.condition),
            effect=dict(self.effect),
            predecessors=list(self.predecessors),
            successors=list(self.successors),
            node_id=self.node_id,
            priority_index=self.priority_index,
        )

    def to_signature_operator(self) -> dict[str, Any]:
        """Public view: graph plumbing (identity, edges) is stripped."""

        payload: dict[str, Any] = {
            "name": self.name,
            "parameters": dict(self.parameters),
            "condition": dict(self.condition),
            "effect": dict(self.effect),
        }
        if self.priority_index is not None:
            payload["pi"] = self.priority_index
        return payload


@dataclass(frozen=True, slots=True)
class SignatureModel:
    """Behavioural signature (BSig) derived from one solved plan."""

    operators: tuple[dict[str, Any], ...] = ()
    goal: Mapping[str, StateValue] = field(default_factory=dict)
    goal_operator: Mapping[str, str] = field(default_factory=dict)
    version: int = SIGNATURE_VERSION
    id: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "id": self.id,
            "operators": [dict(operator) for operator in self.operators],
            "goal": dict(self.goal),
            "goal_operator": dict(self.goal_operator),
        }

    def to_json(self, *, pretty: bool = False) -> str:
        if pretty:
            return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)
        return json.dumps(
            self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )


@dataclass(frozen=True, slots=True)
class SolveResult:
    """A validated plan together with the task and encoding it solves."""

    plan: Plan
    task: PlanningTask
    encoded_problem: str
    timings: Mapping[str, float] = field(default_factory=dict)
    scratch_dir: Path | None = None


@dataclass(frozen=True, slots=True)
class ScenarioSolution:
    """Outcome of solving one concrete initial state of a conformant task."""

    assignment: Assignment
    plan: Plan | None
    task: PlanningTask

    @property
    def solved(self) -> bool:
        return self.plan is not None


def workflow_from_plan(plan: Plan | Sequence[PlanStep]) -> list[WorkflowNode]:
    """Sequential workflow: one node per step, linear predecessor chain."""

    nodes: list[WorkflowNode] = []
    for index, step in enumerate(plan):
        node = step.operator.to_workflow_node(node_id=index)
        if index > 0:
            node.predecessors.append(index - 1)
            nodes[index - 1].successors.append(index)
        nodes.append(node)
    return nodes


__all__ = [
    "Assignment",
    "OneOf",
    "Operator",
    "Plan",
    "PlanStep",
    "PlanningTask",
    "ScenarioSolution",
    "SignatureModel",
    "SolveResult",
    "StateScalar",
    "StateValue",
    "WorkflowNode",
    "workflow_from_plan",
]
