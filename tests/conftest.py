"""
sfplanner — shared test fixtures

File: tests/conftest.py

Purpose
- Provide stand-in ``preprocess``/``downward`` executables so the solver
  layer can be exercised through real subprocesses without a planner build.

Behaviour of the stand-ins is driven by ``behaviour.json`` next to them:
- ``preprocess``: ``"ok"`` (copy stdin to ``output``) or ``"fail"``.
- ``rules``: list of ``{"match", "delay", "plan", "plan_from_operators",
  "line_delay", "linger", "exit"}``; the first rule whose ``match`` is a
  substring of the search arguments applies, otherwise ``default``. With
  ``line_delay`` the plan is streamed into the artifact one line at a time
  instead of being renamed into place.
Every invocation is appended to ``invocations.jsonl``.
"""

from __future__ import annotations

import json
import stat
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from sfplanner.config.settings import PlannerSettings, SolverLimits

_PREPROCESS_SOURCE = """#!{python}
import json
import sys
from pathlib import Path

here = Path(__file__).resolve().parent
behaviour = json.loads((here / "behaviour.json").read_text())
problem = sys.stdin.read()
with (here / "invocations.jsonl").open("a") as log:
    log.write(json.dumps({{"program": "preprocess", "cwd": str(Path.cwd())}}) + "\\n")
if behaviour.get("preprocess", "ok") == "fail":
    sys.exit(1)
Path("output").write_text(problem)
"""

_SEARCH_SOURCE = """#!{python}
import json
import os
import sys
import time
from pathlib import Path

here = Path(__file__).resolve().parent
behaviour = json.loads((here / "behaviour.json").read_text())
args = sys.argv[1:]
split = args.index("--plan-file")
plan_file = Path(args[split + 1])
search = " ".join(args[:split])
problem = sys.stdin.read()
with (here / "invocations.jsonl").open("a") as log:
    record = {{"program": "downward", "search": search, "plan_file": str(plan_file)}}
    log.write(json.dumps(record) + "\\n")

rule = behaviour.get("default", {{}})
for candidate in behaviour.get("rules", []):
    if candidate["match"] in search:
        rule = candidate
        break

time.sleep(rule.get("delay", 0))
lines = rule.get("plan")
if rule.get("plan_from_operators"):
    lines = []
    expect_identity = False
    for line in problem.splitlines():
        if line.startswith("begin_operator"):
            expect_identity = True
            continue
        if expect_identity:
            lines.append("(" + line.strip() + ")")
            expect_identity = False
if lines is not None and rule.get("line_delay"):
    with plan_file.open("w") as stream:
        for line in lines:
            stream.write(line + "\\n")
            stream.flush()
            time.sleep(rule["line_delay"])
        stream.write("; cost = %d (unit cost)\\n" % len(lines))
elif lines is not None:
    partial = plan_file.with_name(plan_file.name + ".partial")
    body = "".join(line + "\\n" for line in lines)
    partial.write_text(body + "; cost = %d (unit cost)\\n" % len(lines))
    os.replace(partial, plan_file)
time.sleep(rule.get("linger", 0))
sys.exit(rule.get("exit", 0))
"""


@dataclass
class FakeSolver:
    """Handle on a directory holding stand-in solver executables."""

    root: Path
    scratch_root: Path

    def configure(self, **behaviour: Any) -> None:
        (self.root / "behaviour.json").write_text(json.dumps(behaviour), encoding="utf-8")

    def invocations(self, program: str | None = None) -> list[dict[str, Any]]:
        log = self.root / "invocations.jsonl"
        if not log.exists():
            return []
        records = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
        if program is None:
            return records
        return [record for record in records if record["program"] == program]

    def settings(self, **overrides: Any) -> PlannerSettings:
        values: dict[str, Any] = {
            "limits": SolverLimits(enabled=False),
            "solver_path": self.root,
            "poll_interval_seconds": 0.02,
            "settle_seconds": 2.0,
            "scratch_root": self.scratch_root,
        }
        values.update(overrides)
        return PlannerSettings(**values)


def _install(path: Path, source: str) -> None:
    path.write_text(source.format(python=sys.executable), encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.fixture
def fake_solver(tmp_path: Path) -> FakeSolver:
    if sys.platform == "win32":
        pytest.skip("solver processes require a POSIX host")
    root = tmp_path / "solver"
    root.mkdir()
    scratch_root = tmp_path / "scratch"
    scratch_root.mkdir()
    _install(root / "preprocess", _PREPROCESS_SOURCE)
    _install(root / "downward", _SEARCH_SOURCE)
    solver = FakeSolver(root=root, scratch_root=scratch_root)
    solver.configure()
    return solver


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "work"
    directory.mkdir()
    return directory
