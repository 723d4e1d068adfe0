"""Domain model exports."""

from sfplanner.domain.models import (
    Assignment,
    OneOf,
    Operator,
    Plan,
    PlanningTask,
    PlanStep,
    ScenarioSolution,
    SignatureModel,
    SolveResult,
    StateScalar,
    StateValue,
    WorkflowNode,
    workflow_from_plan,
)

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
