"""Conformant initial-state enumeration."""

from sfplanner.conformant.enumerator import (
    ConformantEnumerator,
    assign_path,
    enumerate_partial_initial_states,
    find_nondeterministic_variables,
    is_conformant,
    scenario_task,
)

__all__ = [
    "ConformantEnumerator",
    "assign_path",
    "enumerate_partial_initial_states",
    "find_nondeterministic_variables",
    "is_conformant",
    "scenario_task",
]
