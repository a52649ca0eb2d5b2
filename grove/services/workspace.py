"""Workspace discovery for grove."""

import os
from dataclasses import dataclass
from typing import Optional

from grove.config import Config
from grove.constants import MAX_DIRECTORY_ITERATIONS
from grove.exceptions import GroveError, WorkspaceNotFoundError
from grove.utils.logging import get_logger
from grove.utils.paths import normalize_path

logger = get_logger(__name__)


@dataclass
class Workspace:
    """A bare repository plus the worktree directories next to it."""

    root: str
    bare_dir: str
    lock_path: str


def _is_workspace_root(directory: str, bare_dir_name: str) -> bool:
    """Check for a ``.bare`` directory or a ``.git`` file pointing at it."""
    if os.path.isdir(os.path.join(directory, bare_dir_name)):
        return True

    git_file = os.path.join(directory, ".git")
    if os.path.isfile(git_file):
        try:
            with open(git_file, encoding="utf-8") as f:
                content = f.read().strip()
        except OSError as e:
            logger.debug(f"Could not read {git_file}: {e}")
            return False
        return content == f"gitdir: {bare_dir_name}"
    return False


def find_bare_dir(start: str, bare_dir_name: str = ".bare") -> str:
    """Walk up from ``start`` until a workspace root is found.

    Args:
        start: Directory to start searching from (usually the cwd)
        bare_dir_name: Name of the bare repository directory

    Returns:
        Absolute path to the bare repository

    Raises:
        WorkspaceNotFoundError: If no parent directory is a workspace root
    """
    directory = normalize_path(start)
    for _ in range(MAX_DIRECTORY_ITERATIONS):
        if _is_workspace_root(directory, bare_dir_name):
            bare_dir = os.path.join(directory, bare_dir_name)
            logger.debug(f"Found workspace bare repository at {bare_dir}")
            return bare_dir

        parent = os.path.dirname(directory)
        if parent == directory:
            break
        directory = parent
    else:
        raise GroveError(
            f"exceeded maximum directory depth ({MAX_DIRECTORY_ITERATIONS}): possible symlink loop"
        )

    raise WorkspaceNotFoundError(start)


def find_workspace(start: str, config: Optional[Config] = None) -> Workspace:
    """Locate the workspace enclosing ``start``."""
    config = config or Config()
    bare_dir = find_bare_dir(start, config.bare_dir_name)
    root = os.path.dirname(bare_dir)
    return Workspace(
        root=root,
        bare_dir=bare_dir,
        lock_path=os.path.join(root, config.lock_file_name),
    )
