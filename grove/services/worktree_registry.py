"""Worktree enumeration and live state derivation."""

import os
from typing import List, Optional, Tuple

from grove.constants import HEADS_PREFIX, REMOTES_PREFIX
from grove.exceptions import GitOperationError
from grove.models.worktree import WorktreeEntry, WorktreeInfo
from grove.services.git.backend import GitBackend, GitCommandBackend
from grove.utils.logging import get_logger
from grove.utils.paths import is_within, normalize_path

logger = get_logger(__name__)


class WorktreeRegistry:
    """Service for querying the worktrees of a workspace.

    Nothing is cached: every call asks git again, so changes made by plain
    git commands (or another grove process) are always observed.
    """

    def __init__(self, bare_dir: str, backend: Optional[GitBackend] = None):
        """Initialize the registry.

        Args:
            bare_dir: Path to the workspace's bare repository
            backend: Git backend (defaults to the git binary)
        """
        self.bare_dir = bare_dir
        self.backend = backend or GitCommandBackend()

    def list(self, fast: bool = False) -> List[WorktreeInfo]:
        """Get information about all worktrees.

        Args:
            fast: Skip dirty, sync-status and commit-time checks (one git call in total)

        Returns:
            WorktreeInfo objects sorted by branch, then directory name
        """
        infos = []
        for entry in self.backend.list_worktrees(self.bare_dir):
            if entry.prunable or not os.path.isdir(entry.path):
                logger.warning(f"Skipping worktree {entry.path} (directory missing)")
                continue

            info = self._from_entry(entry)
            if not fast:
                try:
                    info.dirty = self.backend.has_changes(info.path)
                except GitOperationError as e:
                    logger.warning(f"Skipping worktree {info.path} (may be corrupted): {e}")
                    continue
                self._fill_sync_status(info)
                self._fill_last_commit_time(info)

            infos.append(info)

        infos.sort(key=lambda i: (i.branch, i.name))
        logger.debug(f"Found {len(infos)} worktrees")
        return infos

    @staticmethod
    def _from_entry(entry: WorktreeEntry) -> WorktreeInfo:
        return WorktreeInfo(
            path=normalize_path(entry.path),
            branch=entry.branch,
            detached=entry.detached or not entry.branch,
            head=entry.head,
            locked=entry.locked,
            lock_reason=entry.lock_reason,
        )

    def _fill_sync_status(self, info: WorktreeInfo) -> None:
        """Compute upstream, ahead/behind and gone for a worktree's branch."""
        if info.detached:
            # Detached HEAD - expected condition, not an error
            info.no_upstream = True
            return

        try:
            upstream_ref = self.backend.upstream_of(info.path, info.branch)
            if not upstream_ref:
                info.no_upstream = True
                return

            if upstream_ref.startswith(REMOTES_PREFIX):
                info.upstream = upstream_ref[len(REMOTES_PREFIX):]
            else:
                # Upstream is a local branch
                info.upstream = upstream_ref.split("/", 2)[-1]

            if not self.backend.ref_exists(info.path, upstream_ref):
                info.gone = True
                return

            branch_ref = f"{HEADS_PREFIX}{info.branch}"
            info.ahead = self.backend.count_commits(info.path, upstream_ref, branch_ref)
            info.behind = self.backend.count_commits(info.path, branch_ref, upstream_ref)
        except GitOperationError as e:
            logger.debug(f"Failed to get sync status for {info.path}: {e}")
            info.no_upstream = True

    def _fill_last_commit_time(self, info: WorktreeInfo) -> None:
        try:
            info.last_commit_time = self.backend.last_commit_time(info.path)
        except GitOperationError as e:
            logger.debug(f"Failed to get last commit time for {info.path}: {e}")

    def lock_state(self, path: str) -> Tuple[bool, str]:
        """Read the current lock state of one worktree straight from git.

        Returns:
            Tuple of (locked, reason)
        """
        target = normalize_path(path)
        for entry in self.backend.list_worktrees(self.bare_dir):
            if normalize_path(entry.path) == target:
                return entry.locked, entry.lock_reason
        return False, ""

    @staticmethod
    def find(infos: List[WorktreeInfo], target: str) -> Optional[WorktreeInfo]:
        """Find a worktree by directory name or branch.

        Directory names are tried first, then branch names.
        """
        target = target.strip()
        if not target:
            return None

        for info in infos:
            if info.name == target:
                return info

        for info in infos:
            if info.branch and info.branch == target:
                return info

        return None

    @staticmethod
    def find_by_branch(infos: List[WorktreeInfo], branch: str) -> Optional[WorktreeInfo]:
        """Find the worktree that has ``branch`` checked out."""
        branch = branch.strip()
        return next((info for info in infos if info.branch and info.branch == branch), None)

    @staticmethod
    def current(infos: List[WorktreeInfo], cwd: str) -> Optional[WorktreeInfo]:
        """Worktree containing ``cwd`` (subdirectories included)."""
        return next((info for info in infos if is_within(cwd, info.path)), None)
