"""Structured solver invocation: platform resolution, command descriptors and spawning."""

from __future__ import annotations

import contextlib
import os
import platform
import resource
import subprocess
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import StrEnum
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Final

import structlog

from sfplanner.config.settings import PlannerSettings, SolverLimits
from sfplanner.constants import (
    DEFAULT_NICENESS,
    PREPROCESS_OUTPUT_FILENAME,
    PREPROCESS_PROGRAM,
    SEARCH_LOG_FILENAME,
    SEARCH_PROGRAM,
)
from sfplanner.solver.heuristics import search_arguments

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

_BUNDLED_SOLVER_ROOT: Final[Path] = Path(__file__).resolve().parents[1] / "bin" / "solver"
_WALL_CLOCK_PROGRAM: Final[str] = "timeout"


class SolverError(RuntimeError):
    """Base error for solver orchestration failures."""


class UnsupportedPlatformError(SolverError):
    """Raised when no solver build exists for the host operating system/architecture."""


class SolverPlatform(StrEnum):
    """Solver build directories, one per supported host."""

    LINUX_X86 = "linux-x86"
    LINUX_ARM = "linux-arm"
    MACOS = "macos"

    @property
    def enforces_wall_clock(self) -> bool:
        # macOS ships no coreutils ``timeout``.
        return self is not SolverPlatform.MACOS


def detect_platform(system: str | None = None, machine: str | None = None) -> SolverPlatform:
    """Map the host (or the given ``system``/``machine``) to a solver build."""

    os_name = (platform.system() if system is None else system).strip().lower()
    arch = (platform.machine() if machine is None else machine).strip().lower()

    if os_name == "linux" and (arch.startswith("x86") or arch in {"amd64", "i386", "i686"}):
        return SolverPlatform.LINUX_X86
    if os_name == "linux" and (arch.startswith("arm") or arch.startswith("aarch64")):
        return SolverPlatform.LINUX_ARM
    if os_name in {"darwin", "macos"}:
        return SolverPlatform.MACOS
    host = f"{os_name or '<unknown>'}/{arch or '<unknown>'}"
    raise UnsupportedPlatformError(f"{host} is not supported")


@dataclass(frozen=True, slots=True)
class SolverCommand:
    """One external solver invocation, executed without a shell."""

    program: Path
    cwd: Path
    arguments: tuple[str, ...] = ()
    stdin_path: Path | None = None
    log_path: Path | None = None
    limits: SolverLimits = field(default_factory=SolverLimits)
    wall_clock: bool = False
    niceness: int = 0

    @property
    def argv(self) -> tuple[str, ...]:
        base = (str(self.program), *self.arguments)
        if self.limits.enabled and self.wall_clock:
            return (_WALL_CLOCK_PROGRAM, str(self.limits.timeout_seconds), *base)
        return base

    @property
    def memory_limit_kb(self) -> int | None:
        return self.limits.max_memory_kb if self.limits.enabled else None


def spawn(command: SolverCommand) -> subprocess.Popen[bytes]:
    """Start ``command`` in its own session with its resource limits applied.

    Output is appended to ``log_path`` (or discarded). The child leads a new
    process group so the whole wrapper/solver pair can be killed together.
    """

    with ExitStack() as stack:
        stdin: object = subprocess.DEVNULL
        stdout: object = subprocess.DEVNULL
        stderr: object = subprocess.DEVNULL
        if command.stdin_path is not None:
            stdin = stack.enter_context(command.stdin_path.open("rb"))
        if command.log_path is not None:
            stdout = stack.enter_context(command.log_path.open("ab"))
            stderr = subprocess.STDOUT
        return subprocess.Popen(  # noqa: S603 - argv built from trusted settings.
            list(command.argv),
            cwd=command.cwd,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            close_fds=True,
            start_new_session=True,
            preexec_fn=partial(_apply_child_limits, command.memory_limit_kb, command.niceness),
        )


def _apply_child_limits(max_memory_kb: int | None, niceness: int) -> None:
    if max_memory_kb is not None:
        soft = max_memory_kb * 1024
        _, hard = resource.getrlimit(resource.RLIMIT_AS)
        if hard != resource.RLIM_INFINITY:
            soft = min(soft, hard)
        # Darwin rejects RLIMIT_AS changes on some releases.
        with contextlib.suppress(ValueError, OSError):
            resource.setrlimit(resource.RLIMIT_AS, (soft, hard))
    if niceness:
        os.nice(niceness)


class SolverRunner:
    """Build and execute preprocess/search commands for one settings value."""

    def __init__(
        self,
        settings: PlannerSettings,
        *,
        system: str | None = None,
        machine: str | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self._settings = settings
        self._system = system
        self._machine = machine
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def settings(self) -> PlannerSettings:
        return self._settings

    @property
    def platform(self) -> SolverPlatform:
        return detect_platform(self._system, self._machine)

    @property
    def solver_path(self) -> Path:
        solver_platform = self.platform
        if self._settings.solver_path is not None:
            return self._settings.solver_path
        root = self._settings.solver_root or _BUNDLED_SOLVER_ROOT
        return root / solver_platform.value

    def preprocess_command(self, work_dir: Path, sas_file: Path) -> SolverCommand:
        return SolverCommand(
            program=self.solver_path / PREPROCESS_PROGRAM,
            cwd=work_dir,
            stdin_path=sas_file,
            limits=self._settings.limits,
        )

    def search_command(
        self,
        work_dir: Path,
        plan_file: Path,
        heuristic: str,
        *,
        log_name: str = SEARCH_LOG_FILENAME,
    ) -> SolverCommand:
        solver_platform = self.platform
        return SolverCommand(
            program=self.solver_path / SEARCH_PROGRAM,
            cwd=work_dir,
            arguments=(*search_arguments(heuristic), "--plan-file", str(plan_file)),
            stdin_path=work_dir / PREPROCESS_OUTPUT_FILENAME,
            log_path=work_dir / log_name,
            limits=self._settings.limits,
            wall_clock=solver_platform.enforces_wall_clock,
            niceness=DEFAULT_NICENESS,
        )

    def run(self, command: SolverCommand) -> int:
        """Run ``command`` to completion and return its exit status."""

        process = spawn(command)
        return process.wait()

    def preprocess(self, work_dir: Path, sas_file: Path) -> bool:
        """Run the preprocessing step; ``True`` when its intermediate artifact exists."""

        output = work_dir / PREPROCESS_OUTPUT_FILENAME
        output.unlink(missing_ok=True)
        returncode = self.run(self.preprocess_command(work_dir, sas_file))
        produced = returncode == 0 and output.exists()
        if not produced:
            self._logger.warning(
                "preprocessing_failed",
                work_dir=str(work_dir),
                sas_file=str(sas_file),
                returncode=returncode,
            )
        return produced

    def spawn_search(
        self,
        work_dir: Path,
        plan_file: Path,
        heuristic: str,
        *,
        log_name: str = SEARCH_LOG_FILENAME,
    ) -> subprocess.Popen[bytes]:
        return spawn(self.search_command(work_dir, plan_file, heuristic, log_name=log_name))

    def solve(self, work_dir: Path, sas_file: Path, plan_file: Path, heuristic: str) -> bool:
        """Preprocess and search with one configuration; ``True`` when a plan artifact exists."""

        if not self.preprocess(work_dir, sas_file):
            return False
        returncode = self.run(self.search_command(work_dir, plan_file, heuristic))
        found = plan_file.exists()
        self._logger.debug(
            "solver_search_finished",
            heuristic=heuristic,
            returncode=returncode,
            plan_found=found,
        )
        return found


__all__ = [
    "SolverCommand",
    "SolverError",
    "SolverPlatform",
    "SolverRunner",
    "UnsupportedPlatformError",
    "detect_platform",
    "spawn",
]
