"""
sfplanner — unit tests for filesystem helpers

File: tests/unit/utils/test_fs.py

Purpose
- Validate atomic writes, guarded deletion and scratch-directory lifecycle.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sfplanner.utils.fs import atomic_write, safe_delete, scratch_directory


def test_atomic_write_replaces_content_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "problem.sas"
    atomic_write(target, "first")
    atomic_write(target, b"second")

    assert target.read_text(encoding="utf-8") == "second"
    assert [path.name for path in tmp_path.iterdir()] == ["problem.sas"]


def test_atomic_write_requires_existing_parent(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "file.txt", "data")


def test_safe_delete_refuses_paths_outside_root(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "outside.txt"
    outside.write_text("keep", encoding="utf-8")

    with pytest.raises(ValueError, match="outside root"):
        safe_delete(outside, root)
    with pytest.raises(ValueError):
        safe_delete(root, root)
    assert outside.exists()


def test_safe_delete_unlinks_symlink_without_touching_target(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    target_dir = tmp_path / "target"
    target_dir.mkdir()
    (target_dir / "keep.txt").write_text("keep", encoding="utf-8")
    link = root / "link"
    link.symlink_to(target_dir, target_is_directory=True)

    safe_delete(link, root)

    assert not link.exists()
    assert (target_dir / "keep.txt").exists()


def test_scratch_directory_is_removed_on_exit(tmp_path: Path) -> None:
    with scratch_directory(tmp_path, prefix="race_") as directory:
        assert directory.is_dir()
        assert directory.parent == tmp_path.resolve()
        assert directory.name.startswith("race_")
        (directory / "nested").mkdir()
        (directory / "nested" / "plan").write_text("(a)\n", encoding="utf-8")

    assert not directory.exists()


def test_scratch_directory_is_removed_when_body_raises(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError), scratch_directory(tmp_path) as directory:
        raise RuntimeError("boom")

    assert not directory.exists()


def test_scratch_directories_are_unique_and_can_be_kept(tmp_path: Path) -> None:
    with scratch_directory(tmp_path, keep=True) as first, scratch_directory(tmp_path) as second:
        assert first != second

    assert first.is_dir()
    assert not second.exists()
