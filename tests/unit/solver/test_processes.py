"""Unit tests for race process bookkeeping and signal forwarding."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import threading
from pathlib import Path

import pytest

from sfplanner.solver.processes import (
    RaceInterruptedError,
    RaceProcessGroup,
    forward_termination_signals,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX process groups")


def _sleeper(cwd: Path) -> subprocess.Popen[bytes]:
    return subprocess.Popen(
        [sys.executable, "-c", "import time; time.sleep(60)"],
        cwd=cwd,
        start_new_session=True,
    )


def test_kill_all_terminates_and_reaps_tracked_processes(tmp_path: Path) -> None:
    group = RaceProcessGroup()
    group.add("a", _sleeper(tmp_path))
    group.add("b", _sleeper(tmp_path))

    assert sorted(group.alive()) == ["a", "b"]
    killed = group.kill_all()

    assert killed == 2
    assert group.alive() == []
    assert group.returncodes() == {"a": -signal.SIGKILL, "b": -signal.SIGKILL}


def test_kill_all_skips_finished_processes(tmp_path: Path) -> None:
    group = RaceProcessGroup()
    finished = subprocess.Popen([sys.executable, "-c", "pass"], cwd=tmp_path)
    finished.wait()
    group.add("done", finished)

    assert group.kill_all() == 0
    assert group.returncodes() == {"done": 0}


def test_termination_signal_kills_group_and_raises(tmp_path: Path) -> None:
    group = RaceProcessGroup()
    process = _sleeper(tmp_path)
    group.add("lama", process)
    previous = signal.getsignal(signal.SIGTERM)

    with pytest.raises(RaceInterruptedError) as exc_info:
        with forward_termination_signals(group, tmp_path):
            os.kill(os.getpid(), signal.SIGTERM)
            process.wait(timeout=10)

    assert exc_info.value.signum == signal.SIGTERM
    assert "SIGTERM" in str(exc_info.value)
    assert process.poll() == -signal.SIGKILL
    assert signal.getsignal(signal.SIGTERM) == previous


def test_signal_scope_is_inert_outside_main_thread(tmp_path: Path) -> None:
    installed: list[object] = []
    group = RaceProcessGroup()

    def _worker() -> None:
        with forward_termination_signals(group, tmp_path):
            installed.append(signal.getsignal(signal.SIGTERM))

    before = signal.getsignal(signal.SIGTERM)
    thread = threading.Thread(target=_worker)
    thread.start()
    thread.join()

    assert installed == [before]
