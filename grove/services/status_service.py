"""Detailed status of a single worktree."""
import os
from typing import List, Optional, Tuple

from grove.exceptions import GitOperationError
from grove.models.worktree import WorktreeInfo, WorktreeStatus
from grove.services.git.backend import GitBackend, GitCommandBackend
from grove.utils.logging import get_logger

logger = get_logger(__name__)

# Marker files in the git dir, checked in order
OPERATION_MARKERS: List[Tuple[str, str]] = [
    ("MERGE_HEAD", "merging"),
    ("rebase-merge", "rebasing"),
    ("rebase-apply", "rebasing"),
    ("CHERRY_PICK_HEAD", "cherry-picking"),
    ("REVERT_HEAD", "reverting"),
]


def detect_operation(git_dir: str) -> str:
    """Name of the operation in progress in ``git_dir``, or empty."""
    for marker, operation in OPERATION_MARKERS:
        if os.path.exists(os.path.join(git_dir, marker)):
            return operation
    return ""


class StatusService:
    """Service that adds stash, conflict and operation state to a listing entry."""

    def __init__(self, backend: Optional[GitBackend] = None):
        self.backend = backend or GitCommandBackend()

    def gather(self, info: WorktreeInfo) -> WorktreeStatus:
        """Collect the detailed status of one worktree.

        Each extra lookup falls back to its zero value if git fails, so a
        partly readable worktree still reports what it can.
        """
        status = WorktreeStatus(info)

        try:
            status.stashes = self.backend.stash_count(info.path)
        except GitOperationError as e:
            logger.debug(f"Failed to count stashes in {info.path}: {e}")

        try:
            status.operation = detect_operation(self.backend.git_dir(info.path))
        except GitOperationError as e:
            logger.debug(f"Failed to find git dir of {info.path}: {e}")

        try:
            status.conflicts = self.backend.conflict_count(info.path)
        except GitOperationError as e:
            logger.debug(f"Failed to count conflicts in {info.path}: {e}")

        return status
