"""
sfplanner — filesystem utilities

File: src/sfplanner/utils/fs.py

Purpose
- Provide safe, minimal filesystem helpers for atomic writes, per-invocation
  scratch directories and guarded deletion.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Scratch directories carry a unique per-invocation discriminator and are removed
  on every exit path unless explicitly kept.
- Deletion refuses paths outside the owning root.

Non-functional requirements
- Standard library only.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "safe_delete",
    "scratch_directory",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding) as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def safe_delete(path: PathLike, root: PathLike) -> None:
    """
    Delete ``path`` only if it is contained within ``root``.

    Symlinks are unlinked without traversing into their targets.
    """

    workspace = Path(root).resolve(strict=True)
    if not workspace.is_dir():
        raise NotADirectoryError(f"{workspace!s} is not a directory")

    target = Path(path)
    candidate = target.parent.resolve(strict=True) / target.name
    if candidate == workspace or not candidate.is_relative_to(workspace):
        raise ValueError(f"refusing to delete path outside root: {target!s}")

    if target.is_symlink():
        target.unlink()
        return

    if target.is_dir():
        shutil.rmtree(target)
        return

    target.unlink()


@contextmanager
def scratch_directory(
    root: PathLike | None = None,
    *,
    prefix: str = "sfplanner_",
    keep: bool = False,
) -> Iterator[Path]:
    """Yield a fresh scratch directory under ``root``.

    The directory name carries a unique suffix so concurrent top-level solves
    never share a namespace. It is removed on exit unless ``keep`` is set.
    """

    base = Path(tempfile.gettempdir() if root is None else root)
    base.mkdir(parents=True, exist_ok=True)
    directory = Path(tempfile.mkdtemp(prefix=prefix, dir=str(base))).resolve()
    try:
        yield directory
    finally:
        if not keep and directory.exists():
            safe_delete(directory, directory.parent)
