"""
sfplanner — SAS+ planning orchestration

File: src/sfplanner/__init__.py

Purpose
- Package root. Exposes the planner facade, its settings value and the
  domain types callers exchange with it.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from sfplanner.config.settings import PlannerSettings, SolverLimits
from sfplanner.domain.models import (
    OneOf,
    Operator,
    Plan,
    PlanningTask,
    ScenarioSolution,
    SignatureModel,
    SolveResult,
    WorkflowNode,
)
from sfplanner.planner import ConformantTaskError, Planner, TaskCompiler

__version__ = "0.1.0"

__all__ = [
    "ConformantTaskError",
    "OneOf",
    "Operator",
    "Plan",
    "Planner",
    "PlannerSettings",
    "PlanningTask",
    "ScenarioSolution",
    "SignatureModel",
    "SolveResult",
    "SolverLimits",
    "TaskCompiler",
    "WorkflowNode",
    "__version__",
]
