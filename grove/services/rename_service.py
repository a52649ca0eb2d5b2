"""Atomic branch and worktree move.

Moving a worktree touches three things that share no transaction: the
branch ref, the directory on disk, and git's worktree administrative files
(which record the absolute path). The move runs four ordered steps and, if
one fails, replays the inverse of every completed step:

1. ``git branch -m old new``
2. rename the worktree directory
3. ``git worktree repair <new path>``
4. best effort: re-point the upstream to ``<remote>/<new>`` if it exists

A process killed by SIGKILL strictly between two steps is not recovered;
``git worktree repair`` plus a manual ``git branch -m`` fixes it.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from grove.constants import REMOTES_PREFIX
from grove.exceptions import GroveError, RenameError, RollbackError, UserError, WorktreeNotFoundError
from grove.models.worktree import WorktreeInfo
from grove.services.git.backend import GitBackend
from grove.services.workspace import Workspace
from grove.services.workspace_lock import WorkspaceLock
from grove.services.worktree_registry import WorktreeRegistry
from grove.utils.logging import get_logger
from grove.utils.paths import is_within, sanitize_branch_name

console = Console()
logger = get_logger(__name__)


@dataclass
class MoveResult:
    """What a successful move changed."""

    old_branch: str
    new_branch: str
    old_path: str
    new_path: str
    upstream: str = ""  # New upstream, if tracking was re-pointed

    @property
    def dir_name(self) -> str:
        return os.path.basename(self.new_path)


class RenameService:
    """Service that renames a branch together with its worktree directory."""

    def __init__(
        self,
        workspace: Workspace,
        backend: GitBackend,
        registry: Optional[WorktreeRegistry] = None,
        lock: Optional[WorkspaceLock] = None,
    ):
        self.workspace = workspace
        self.backend = backend
        self.registry = registry or WorktreeRegistry(workspace.bare_dir, backend)
        self.lock = lock or WorkspaceLock(workspace.lock_path)

    def move(self, old_branch: str, new_branch: str, cwd: str) -> MoveResult:
        """Rename ``old_branch`` to ``new_branch`` and move its worktree.

        Every precondition is checked before the workspace lock is taken, so
        a rejected move leaves nothing behind.

        Args:
            old_branch: Branch currently checked out in the worktree to move
            new_branch: New branch name (its sanitized form names the directory)
            cwd: Caller's working directory; may not be inside the worktree

        Returns:
            MoveResult describing the new branch and path

        Raises:
            UserError: If a precondition fails
            RenameError: If a step fails (after rollback was attempted)
        """
        old_branch = old_branch.strip()
        new_branch = new_branch.strip()
        info = self._validate(old_branch, new_branch, cwd)

        new_path = os.path.join(self.workspace.root, sanitize_branch_name(new_branch))
        with self.lock:
            result = self._apply(info, old_branch, new_branch, new_path)

        if result.dir_name != new_branch:
            console.print(
                f"[green]Renamed {escape(old_branch)} to {escape(new_branch)} (dir: {escape(result.dir_name)})[/green]"
            )
        else:
            console.print(f"[green]Renamed {escape(old_branch)} to {escape(new_branch)}[/green]")
        return result

    def _validate(self, old_branch: str, new_branch: str, cwd: str) -> WorktreeInfo:
        """Check every precondition; return the worktree to move."""
        if not old_branch or not new_branch:
            raise UserError("branch names cannot be empty")
        if old_branch == new_branch:
            raise UserError("old and new branch names are the same")

        # Not fast: the upstream is needed to re-point tracking later
        infos = self.registry.list(fast=False)
        info = WorktreeRegistry.find_by_branch(infos, old_branch)
        if info is None:
            raise WorktreeNotFoundError(old_branch)

        if is_within(cwd, info.path):
            raise UserError("cannot rename current worktree; switch to a different worktree first")

        if self.backend.local_branch_exists(self.workspace.bare_dir, new_branch):
            raise UserError(f"branch '{new_branch}' already exists")

        if info.dirty:
            raise UserError("worktree has uncommitted changes; commit or stash them first")

        if info.locked:
            raise UserError(
                f"worktree is locked; unlock it first with 'grove unlock {info.name}'"
            )

        new_path = os.path.join(self.workspace.root, sanitize_branch_name(new_branch))
        if os.path.lexists(new_path):
            raise UserError(f"directory '{new_path}' already exists")

        return info

    def _apply(self, info: WorktreeInfo, old_branch: str, new_branch: str, new_path: str) -> MoveResult:
        """Run the four steps, rolling back completed ones on failure."""
        bare_dir = self.workspace.bare_dir
        old_path = info.path
        branch_renamed = False
        dir_moved = False

        try:
            # Step 1: Rename the git branch
            try:
                self.backend.rename_branch(bare_dir, old_branch, new_branch)
            except GroveError as e:
                raise RenameError(f"failed to rename branch: {e}") from e
            branch_renamed = True

            # Step 2: Move the worktree directory
            try:
                self._move_directory(old_path, new_path)
            except OSError as e:
                raise RenameError(f"failed to move worktree directory: {e}") from e
            dir_moved = True

            # Step 3: Repair worktree to update git's registry with new path
            try:
                self.backend.repair_worktree(bare_dir, new_path)
            except GroveError as e:
                raise RenameError(f"failed to repair worktree: {e}") from e
        except BaseException as e:
            if branch_renamed or dir_moved:
                rollback_error = self._rollback(
                    old_branch, new_branch, old_path, new_path, branch_renamed, dir_moved
                )
                if rollback_error is not None:
                    e.rollback_error = rollback_error
            raise

        # Step 4: Update upstream tracking if configured (never fatal)
        upstream = self._repoint_upstream(info, old_branch, new_branch, new_path)

        return MoveResult(
            old_branch=old_branch,
            new_branch=new_branch,
            old_path=old_path,
            new_path=new_path,
            upstream=upstream,
        )

    def _move_directory(self, src: str, dst: str) -> None:
        logger.debug(f"Moving {src} to {dst}")
        os.rename(src, dst)

    def _repoint_upstream(self, info: WorktreeInfo, old_branch: str, new_branch: str, new_path: str) -> str:
        """Track ``<remote>/<new>`` if the old branch tracked ``<remote>/<old>``."""
        if not info.upstream or "/" not in info.upstream:
            return ""

        remote, remote_branch = info.upstream.split("/", 1)
        if remote_branch != old_branch:
            return ""

        new_upstream = f"{remote}/{new_branch}"
        if not self.backend.ref_exists(self.workspace.bare_dir, f"{REMOTES_PREFIX}{new_upstream}"):
            logger.debug(f"Upstream {new_upstream} does not exist, keeping {info.upstream}")
            return ""

        try:
            self.backend.set_upstream(new_path, new_upstream)
        except GroveError as e:
            logger.warning(f"Failed to update upstream: {e}")
            return ""

        logger.info(f"Upstream set to {new_upstream}")
        return new_upstream

    def _rollback(
        self,
        old_branch: str,
        new_branch: str,
        old_path: str,
        new_path: str,
        branch_renamed: bool,
        dir_moved: bool,
    ) -> Optional[RollbackError]:
        """Undo completed steps in reverse order. Never raises."""
        logger.warning("Attempting rollback...")
        bare_dir = self.workspace.bare_dir
        failures: List[str] = []

        if dir_moved:
            try:
                self._move_directory(new_path, old_path)
            except OSError as e:
                logger.error(f"Failed to restore directory: {e}")
                failures.append(f"directory still at {new_path}")

        if branch_renamed:
            try:
                self.backend.rename_branch(bare_dir, new_branch, old_branch)
            except GroveError as e:
                logger.error(f"Failed to restore branch name: {e}")
                failures.append(f"branch still named {new_branch}")

        try:
            self.backend.repair_worktree(bare_dir, old_path)
        except GroveError as e:
            logger.error(f"Failed to repair worktree at {old_path}: {e}")
            failures.append(f"worktree registration for {old_path} not repaired")

        if not failures:
            logger.warning("Rollback complete")
            return None

        rollback_error = RollbackError(failures)
        logger.error(str(rollback_error))
        return rollback_error
