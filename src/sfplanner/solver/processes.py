"""Process-group bookkeeping for racing solver runs."""

from __future__ import annotations

import contextlib
import os
import signal
import subprocess
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Final

import psutil
import structlog

from sfplanner.constants import PREPROCESS_PROGRAM, SEARCH_PROGRAM
from sfplanner.solver.runner import SolverError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import FrameType

_FORWARDED_SIGNALS: Final[tuple[signal.Signals, ...]] = (
    signal.SIGHUP,
    signal.SIGINT,
    signal.SIGTERM,
)
_REAP_TIMEOUT_SECONDS: Final[float] = 5.0
_SOLVER_PROGRAMS: Final[frozenset[str]] = frozenset({SEARCH_PROGRAM, PREPROCESS_PROGRAM})

logger = structlog.get_logger(__name__)


class RaceInterruptedError(SolverError):
    """Raised after a termination signal interrupted a race; children are already gone."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"race interrupted by {signal.Signals(signum).name}")


class RaceProcessGroup:
    """Track every solver process started for one race."""

    def __init__(self) -> None:
        self._processes: dict[str, subprocess.Popen[bytes]] = {}

    def add(self, label: str, process: subprocess.Popen[bytes]) -> None:
        self._processes[label] = process

    def __len__(self) -> int:
        return len(self._processes)

    def get(self, label: str) -> subprocess.Popen[bytes] | None:
        return self._processes.get(label)

    def alive(self) -> list[str]:
        """Labels of processes that have not exited yet."""

        return [label for label, process in self._processes.items() if process.poll() is None]

    def returncodes(self) -> dict[str, int | None]:
        return {label: process.poll() for label, process in self._processes.items()}

    def kill_all(self, work_dir: Path | None = None) -> int:
        """SIGKILL every tracked process group, then any stray solver working in ``work_dir``.

        Returns the number of processes signalled.
        """

        killed = 0
        for label, process in self._processes.items():
            if process.poll() is not None:
                continue
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
            killed += 1
            logger.debug("race_run_killed", heuristic=label, pid=process.pid)

        for process in self._processes.values():
            with contextlib.suppress(subprocess.TimeoutExpired):
                process.wait(timeout=_REAP_TIMEOUT_SECONDS)

        if work_dir is not None:
            killed += kill_strays(work_dir)
        return killed


def kill_strays(work_dir: Path) -> int:
    """Kill solver processes whose working directory is ``work_dir``."""

    target = Path(work_dir).resolve()
    own_pid = os.getpid()
    killed = 0
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        if proc.info["pid"] == own_pid:
            continue
        try:
            if not _is_solver_process(proc.info["name"], proc.info["cmdline"]):
                continue
            if Path(proc.cwd()).resolve() != target:
                continue
            proc.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
        killed += 1
        logger.debug("race_stray_killed", pid=proc.info["pid"], work_dir=str(target))
    return killed


def _is_solver_process(name: str | None, cmdline: list[str] | None) -> bool:
    if name in _SOLVER_PROGRAMS:
        return True
    return any(Path(argument).name in _SOLVER_PROGRAMS for argument in cmdline or ())


@contextmanager
def forward_termination_signals(
    group: RaceProcessGroup,
    work_dir: Path | None = None,
) -> Iterator[None]:
    """Kill ``group`` and raise ``RaceInterruptedError`` on SIGHUP/SIGINT/SIGTERM.

    Handlers can only be installed from the main thread; elsewhere the scope
    is a no-op and cleanup relies on the caller's ``finally``.
    """

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handle(signum: int, _frame: FrameType | None) -> None:
        logger.warning("race_interrupted", signal=signal.Signals(signum).name)
        group.kill_all(work_dir)
        raise RaceInterruptedError(signum)

    previous = {signum: signal.signal(signum, _handle) for signum in _FORWARDED_SIGNALS}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


__all__ = [
    "RaceInterruptedError",
    "RaceProcessGroup",
    "forward_termination_signals",
    "kill_strays",
]
