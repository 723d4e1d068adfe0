"""Utility exports for filesystem helpers."""

from sfplanner.utils.fs import atomic_write, safe_delete, scratch_directory

__all__ = [
    "atomic_write",
    "safe_delete",
    "scratch_directory",
]
