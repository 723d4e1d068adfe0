"""Behavioural-signature construction from solved plans."""

from sfplanner.signature.builder import (
    assign_priority_indices,
    build_parallel_signature,
    build_sequential_signature,
    propagate_sequential,
    resolve_goal,
)

__all__ = [
    "assign_priority_indices",
    "build_parallel_signature",
    "build_sequential_signature",
    "propagate_sequential",
    "resolve_goal",
]
