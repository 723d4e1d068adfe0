"""
sfplanner — behavioural-signature builder

File: src/sfplanner/signature/builder.py

Purpose
- Turn a solved plan (a sequential or partial-order workflow) into a
  behavioural signature whose operator conditions carry the effects that
  causally precede them.

Functional requirements
- Sequential: walking from the last node to the second, each node's
  condition map receives its immediate predecessor's effects (predecessor
  wins on key collision).
- Parallel: priority indices are computed from every root along successor
  edges (leaf = 1, parent = 1 + max over successors); each node then receives
  the effects of all of its declared predecessors; graph plumbing is stripped
  from the returned operators.
- Goal resolution scans the workflow from last to first and records, per goal
  variable, the value and the name of the most recent node whose effect sets
  that exact value. Unsupported goal variables are omitted.

Non-functional requirements
- Input workflows are never mutated; builders work on copies.
- Successor graphs supplied from outside may be cyclic; a cycle-closing edge
  is ignored and logged instead of recursing forever.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence

import structlog

from sfplanner.domain.models import SignatureModel, StateValue, WorkflowNode

logger = structlog.get_logger(__name__)

_UNVISITED = 0
_ACTIVE = 1
_DONE = 2


def propagate_sequential(workflow: Sequence[WorkflowNode]) -> list[WorkflowNode]:
    """Return copies of ``workflow`` with each predecessor's effects folded forward."""

    nodes = [node.copy() for node in workflow]
    for index in range(len(nodes) - 1, 0, -1):
        nodes[index].condition.update(nodes[index - 1].effect)
    return nodes


def resolve_goal(
    workflow: Sequence[WorkflowNode],
    goal: Mapping[str, StateValue],
) -> tuple[dict[str, StateValue], dict[str, str]]:
    """Map each supported goal variable to its value and to the node establishing it."""

    goal_values: dict[str, StateValue] = {}
    goal_operators: dict[str, str] = {}
    for variable, value in goal.items():
        for node in reversed(workflow):
            if variable in node.effect and node.effect[variable] == value:
                goal_values[variable] = value
                goal_operators[variable] = node.name
                break
    return goal_values, goal_operators


def build_sequential_signature(
    workflow: Sequence[WorkflowNode],
    goal: Mapping[str, StateValue],
) -> SignatureModel:
    if not workflow:
        return SignatureModel()
    nodes = propagate_sequential(workflow)
    goal_values, goal_operators = resolve_goal(nodes, goal)
    return SignatureModel(
        operators=tuple(node.to_signature_operator() for node in nodes),
        goal=goal_values,
        goal_operator=goal_operators,
    )


def assign_priority_indices(nodes: Sequence[WorkflowNode]) -> list[int]:
    """Compute and store ``priority_index`` on every node; returns the indices.

    Traversal starts at every root (no predecessors) and then at any node not
    reached yet, so nodes on a predecessor-less cycle still receive an index.
    """

    _validate_edges(nodes)
    state = [_UNVISITED] * len(nodes)
    priorities = [1] * len(nodes)

    roots = [index for index, node in enumerate(nodes) if not node.predecessors]
    root_set = set(roots)
    remaining = [index for index in range(len(nodes)) if index not in root_set]
    for start in (*roots, *remaining):
        if state[start] != _UNVISITED:
            continue
        state[start] = _ACTIVE
        frames: list[tuple[int, Iterator[int]]] = [(start, iter(nodes[start].successors))]
        while frames:
            index, successors = frames[-1]
            successor = next(successors, None)
            if successor is None:
                frames.pop()
                state[index] = _DONE
                if frames:
                    parent = frames[-1][0]
                    priorities[parent] = max(priorities[parent], priorities[index] + 1)
                continue
            if state[successor] == _UNVISITED:
                state[successor] = _ACTIVE
                frames.append((successor, iter(nodes[successor].successors)))
                continue
            if state[successor] == _ACTIVE:
                logger.warning(
                    "priority_cycle_ignored",
                    source=index,
                    target=successor,
                    operator=nodes[index].name,
                )
                continue
            priorities[index] = max(priorities[index], priorities[successor] + 1)

    for node, priority in zip(nodes, priorities, strict=True):
        node.priority_index = priority
    return priorities


def build_parallel_signature(
    workflow: Sequence[WorkflowNode],
    goal: Mapping[str, StateValue],
) -> SignatureModel:
    if not workflow:
        return SignatureModel()
    nodes = [node.copy() for node in workflow]
    assign_priority_indices(nodes)
    for node in nodes:
        for predecessor in node.predecessors:
            node.condition.update(workflow[predecessor].effect)
    goal_values, goal_operators = resolve_goal(nodes, goal)
    return SignatureModel(
        operators=tuple(node.to_signature_operator() for node in nodes),
        goal=goal_values,
        goal_operator=goal_operators,
    )


def _validate_edges(nodes: Sequence[WorkflowNode]) -> None:
    size = len(nodes)
    for position, node in enumerate(nodes):
        for label, indices in (("successor", node.successors), ("predecessor", node.predecessors)):
            for index in indices:
                if not 0 <= index < size:
                    raise ValueError(
                        f"node {position} ({node.name}) has {label} index {index} "
                        f"outside workflow of {size} nodes"
                    )


__all__ = [
    "assign_priority_indices",
    "build_parallel_signature",
    "build_sequential_signature",
    "propagate_sequential",
    "resolve_goal",
]
