"""Path helpers shared by the workspace services."""

import os

from grove.constants import UNSAFE_DIR_CHARS


def normalize_path(path: str) -> str:
    """Return the absolute, symlink-resolved form of ``path``."""
    return os.path.realpath(os.path.abspath(path))


def is_within(path: str, parent: str) -> bool:
    """Check whether ``path`` is ``parent`` or lies anywhere below it.

    Compares resolved paths component-wise, so ``/ws/feature-2`` is not
    considered inside ``/ws/feature``.
    """
    path = normalize_path(path)
    parent = normalize_path(parent)
    if path == parent:
        return True
    return path.startswith(parent.rstrip(os.sep) + os.sep)


def sanitize_branch_name(branch: str) -> str:
    """Turn a branch name into a directory name (``feat/x`` -> ``feat-x``)."""
    for char in UNSAFE_DIR_CHARS:
        branch = branch.replace(char, "-")
    return branch
