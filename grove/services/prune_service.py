"""Selection and removal of worktrees that are no longer needed.

A worktree is a prune candidate when its upstream branch is gone, and
optionally when it is detached, merged into the default branch, or has no
commits newer than a cutoff. Each worktree is classified once, in that
order. Candidates that would lose work are skipped unless forced.
"""

import time
from typing import List, Optional

from grove.exceptions import BatchOperationError, GroveError
from grove.models.prune import PruneCandidate, PruneKind, PruneResult, SkipReason
from grove.models.worktree import WorktreeInfo
from grove.services.batch_service import BatchOperationRunner
from grove.services.git.backend import GitBackend
from grove.services.workspace import Workspace
from grove.utils.dates import format_age
from grove.utils.logging import get_logger
from grove.utils.paths import is_within

logger = get_logger(__name__)


class PruneService:
    """Service that finds prune candidates and removes them."""

    def __init__(self, workspace: Workspace, backend: GitBackend):
        self.workspace = workspace
        self.backend = backend

    def find_default_branch(self) -> str:
        """Default branch of the workspace, or empty if HEAD cannot be read."""
        try:
            return self.backend.default_branch(self.workspace.bare_dir)
        except GroveError as e:
            logger.debug(f"Could not determine default branch: {e}")
            return ""

    def find_candidates(
        self,
        infos: List[WorktreeInfo],
        cwd: str,
        force: bool = False,
        merged: bool = False,
        detached: bool = False,
        stale_cutoff: Optional[int] = None,
        default_branch: str = "",
        now: Optional[float] = None,
    ) -> List[PruneCandidate]:
        """Classify worktrees into prune candidates.

        Args:
            infos: Full listing (sync status and commit times filled in)
            cwd: Directory the command runs from; its worktree is never removed
            force: Do not skip dirty, locked or unpushed worktrees
            merged: Include branches merged into ``default_branch``
            detached: Include worktrees with a detached HEAD
            stale_cutoff: Include worktrees whose last commit is older than this Unix time
            default_branch: Branch that merged branches are compared against
            now: Reference time for stale ages (defaults to the current time)

        Returns:
            Candidates in listing order
        """
        candidates = []
        for info in infos:
            candidate = self._classify(info, merged, detached, stale_cutoff, default_branch, now)
            if candidate is None:
                continue
            candidate.skip_reason = self.skip_reason(info, cwd, force)
            candidates.append(candidate)
        return candidates

    def _classify(
        self,
        info: WorktreeInfo,
        merged: bool,
        detached: bool,
        stale_cutoff: Optional[int],
        default_branch: str,
        now: Optional[float],
    ) -> Optional[PruneCandidate]:
        if info.gone:
            return PruneCandidate(info, PruneKind.GONE)

        if detached and info.detached:
            return PruneCandidate(info, PruneKind.DETACHED)

        if merged and default_branch and not info.detached and info.branch != default_branch:
            try:
                if self.backend.is_branch_merged(self.workspace.bare_dir, info.branch, default_branch):
                    return PruneCandidate(info, PruneKind.MERGED)
            except GroveError as e:
                logger.debug(f"Failed to check whether {info.branch} is merged: {e}")

        if stale_cutoff is not None and 0 < info.last_commit_time < stale_cutoff:
            return PruneCandidate(info, PruneKind.STALE, stale_age=format_age(info.last_commit_time, now))

        return None

    @staticmethod
    def skip_reason(info: WorktreeInfo, cwd: str, force: bool) -> SkipReason:
        """Why a candidate must be kept; ``SkipReason.NONE`` if it can go."""
        if is_within(cwd, info.path):
            return SkipReason.CURRENT
        if force:
            return SkipReason.NONE
        if info.dirty:
            return SkipReason.DIRTY
        if info.locked:
            return SkipReason.LOCKED
        if info.ahead > 0:
            return SkipReason.UNPUSHED
        return SkipReason.NONE

    def execute(self, result: PruneResult, force: bool = False, default_branch: str = "") -> PruneResult:
        """Remove every removable candidate of ``result``.

        Branches of gone worktrees are deleted afterwards. A branch git
        refuses to delete is reported as kept, not as a failure.
        """
        bare_dir = self.workspace.bare_dir
        by_path = {c.info.path: c for c in result.removable}

        def prune_one(info: WorktreeInfo) -> None:
            if force and info.locked:
                try:
                    self.backend.unlock_worktree(bare_dir, info.path)
                except GroveError as e:
                    logger.debug(f"Failed to unlock worktree: {e}")
            self.backend.remove_worktree(bare_dir, info.path, force=force)
            result.pruned.append(by_path[info.path])

        runner = BatchOperationRunner([c.info for c in result.removable])
        try:
            runner.run(runner.infos, prune_one)
        except BatchOperationError as e:
            result.failed.update(e.failed)
        result.committed = True

        for candidate in result.pruned:
            if candidate.kind == PruneKind.GONE and not candidate.info.detached and candidate.info.branch:
                self._delete_branch(result, candidate.info.branch, default_branch)

        return result

    def _delete_branch(self, result: PruneResult, branch: str, default_branch: str) -> None:
        bare_dir = self.workspace.bare_dir
        # The upstream is gone, so -d would compare against HEAD only
        force = False
        if default_branch:
            try:
                force = self.backend.is_branch_merged(bare_dir, branch, default_branch)
            except GroveError as e:
                logger.debug(f"Failed to check whether {branch} is merged: {e}")

        try:
            self.backend.delete_branch(bare_dir, branch, force=force)
        except GroveError as e:
            logger.debug(f"Kept branch {branch}: {e}")
            result.kept_branches[branch] = "unmerged commits"
            return
        result.deleted_branches.append(branch)


def stale_cutoff_for(seconds: int, now: Optional[float] = None) -> int:
    """Unix time before which a last commit counts as stale."""
    if now is None:
        now = time.time()
    return int(now) - seconds
