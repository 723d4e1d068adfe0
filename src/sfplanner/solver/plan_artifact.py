"""Plan artifact parsing, counting, shortest-artifact selection and catalog resolution.

A plan artifact is a text file with one operator occurrence per line in the
form ``(identity arg ...)``. Lines starting with ``;`` are solver comments
(``; cost = 3 (unit cost)``) and blank lines are ignored. Some solver builds
number their lines (``1: (identity ...)``); the prefix is dropped.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from sfplanner.constants import AUXILIARY_OPERATOR_KINDS
from sfplanner.domain.models import Operator, Plan, PlanStep

_STEP_NUMBER: Final[re.Pattern[str]] = re.compile(r"^\d+:\s*")
_COMMENT_PREFIX: Final[str] = ";"


class PlanArtifactError(ValueError):
    """Base error for unreadable or untrusted plan artifacts."""


class MalformedPlanLineError(PlanArtifactError):
    """Raised when a plan line is not of the form ``(identity args...)``."""

    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__(f"malformed plan line: {line!r}")


class UnknownOperatorError(PlanArtifactError):
    """Raised when a plan references an operator missing from the catalog."""

    def __init__(self, operator_name: str) -> None:
        self.operator_name = operator_name
        super().__init__(f"cannot find operator: {operator_name}")


@dataclass(frozen=True, slots=True)
class PlanLine:
    identity: str
    arguments: tuple[str, ...]
    text: str


def parse_plan_line(line: str) -> PlanLine:
    text = _STEP_NUMBER.sub("", line.strip(), count=1)
    if len(text) < 2 or not (text.startswith("(") and text.endswith(")")):
        raise MalformedPlanLineError(line)
    tokens = text[1:-1].split()
    if not tokens:
        raise MalformedPlanLineError(line)
    return PlanLine(identity=tokens[0], arguments=tuple(tokens[1:]), text=text)


def iter_plan_lines(lines: Iterable[str]) -> Iterator[PlanLine]:
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith(_COMMENT_PREFIX):
            continue
        yield parse_plan_line(stripped)


def read_plan_lines(path: Path) -> list[PlanLine]:
    return list(iter_plan_lines(path.read_text(encoding="utf-8").splitlines()))


def plan_operator_identities(path: Path) -> list[str]:
    """Operator identities of a plan artifact, in plan order."""

    return [line.identity for line in read_plan_lines(path)]


def count_plan_lines(path: Path) -> int:
    """Number of operator lines in an artifact; comments and blanks do not count."""

    with path.open(encoding="utf-8") as handle:
        return sum(
            1
            for line in handle
            if line.strip() and not line.lstrip().startswith(_COMMENT_PREFIX)
        )


def select_shortest_plan(paths: Iterable[Path]) -> tuple[Path, int] | None:
    """Pick the artifact with the fewest operator lines.

    Missing and empty artifacts are skipped; on a tie the first path in
    iteration order wins.
    """

    best: tuple[Path, int] | None = None
    for path in paths:
        if not path.is_file():
            continue
        length = count_plan_lines(path)
        if length == 0:
            continue
        if best is None or length < best[1]:
            best = (path, length)
    return best


def auxiliary_kind(identity: str) -> str | None:
    """Return ``goal``/``globalop``/``sometime`` for compiler-introduced operators."""

    parts = identity.split("-", 2)
    if len(parts) < 2:
        return None
    kind = parts[1]
    return kind if kind in AUXILIARY_OPERATOR_KINDS else None


def is_auxiliary_operator(identity: str) -> bool:
    return auxiliary_kind(identity) is not None


def resolve_plan(lines: Iterable[PlanLine], catalog: Mapping[str, Operator]) -> Plan:
    """Map plan lines to catalog operators.

    Auxiliary operators are dropped; the goal operator line, if any, is kept
    on the returned ``Plan``.
    """

    steps: list[PlanStep] = []
    goal_operator_line: str | None = None
    for line in lines:
        kind = auxiliary_kind(line.identity)
        if kind is not None:
            if kind == "goal":
                goal_operator_line = line.text
            continue
        operator = catalog.get(line.identity)
        if operator is None:
            raise UnknownOperatorError(line.identity)
        steps.append(PlanStep(operator=operator, arguments=line.arguments, line=line.text))
    return Plan(steps=tuple(steps), goal_operator_line=goal_operator_line)


def read_plan(path: Path, catalog: Mapping[str, Operator]) -> Plan:
    return resolve_plan(read_plan_lines(path), catalog)


__all__ = [
    "MalformedPlanLineError",
    "PlanArtifactError",
    "PlanLine",
    "UnknownOperatorError",
    "auxiliary_kind",
    "count_plan_lines",
    "is_auxiliary_operator",
    "iter_plan_lines",
    "parse_plan_line",
    "plan_operator_identities",
    "read_plan",
    "read_plan_lines",
    "resolve_plan",
    "select_shortest_plan",
]
