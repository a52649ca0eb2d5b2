"""Core functionality for grove"""

import subprocess
from typing import List, Optional, Union

from rich.console import Console
from rich.markup import escape

from grove.config import Config
from grove.exceptions import GroveError, UserError
from grove.models.fetch import RemoteCheck, RemoteFetchResult
from grove.models.prune import PruneResult
from grove.models.worktree import WorktreeInfo, WorktreeStatus
from grove.services.batch_service import BatchOperationRunner, BatchResult
from grove.services.fetch_service import FetchService
from grove.services.git.backend import GitBackend, GitCommandBackend
from grove.services.prune_service import PruneService, stale_cutoff_for
from grove.services.rename_service import MoveResult, RenameService
from grove.services.status_service import StatusService
from grove.services.workspace import find_workspace
from grove.services.workspace_lock import WorkspaceLock, acquire_workspace_lock
from grove.services.worktree_registry import WorktreeRegistry
from grove.utils.dates import parse_duration
from grove.utils.logging import get_logger
from grove.utils.paths import is_within, normalize_path

console = Console()
logger = get_logger(__name__)


class Grove:
    """Main class for managing the worktrees of a workspace."""

    def __init__(self, cwd: str, config: Union[Config, dict, None] = None, backend: Optional[GitBackend] = None):
        """Initialize Grove.

        Args:
            cwd: Directory the command runs from; must be inside a workspace
            config: Configuration dict or Config object
            backend: Git backend (defaults to the git binary)

        Raises:
            WorkspaceNotFoundError: If ``cwd`` is not inside a workspace
        """
        if config is None:
            config = Config()
        elif isinstance(config, dict):
            config = Config.from_dict(config)
        self.config = config
        self.cwd = normalize_path(cwd)

        self.workspace = find_workspace(self.cwd, self.config)
        self.backend = backend or GitCommandBackend()
        self.registry = WorktreeRegistry(self.workspace.bare_dir, self.backend)
        self.fetch_service = FetchService(self.workspace.bare_dir, self.backend, retries=self.config.fetch_retries)
        logger.debug(f"Workspace root: {self.workspace.root}")

    def _new_lock(self) -> WorkspaceLock:
        return WorkspaceLock(
            self.workspace.lock_path,
            max_retries=self.config.max_lock_retries,
            max_age=self.config.lock_max_age,
        )

    def list_worktrees(self, fast: bool = False) -> List[WorktreeInfo]:
        return self.registry.list(fast=fast)

    def current_worktree(self, infos: List[WorktreeInfo]) -> Optional[WorktreeInfo]:
        """Worktree the command was run from, if any."""
        return WorktreeRegistry.current(infos, self.cwd)

    def _run_batch(self, targets: List[str], action, fast: bool = True) -> BatchResult:
        """Resolve every target, then apply ``action`` while holding the workspace lock."""
        if not targets:
            raise UserError("requires at least one worktree")

        runner = BatchOperationRunner(self.list_worktrees(fast=fast))
        resolved = runner.resolve(targets)

        lock = acquire_workspace_lock(
            self.workspace.lock_path,
            max_retries=self.config.max_lock_retries,
            max_age=self.config.lock_max_age,
        )
        try:
            return runner.run(resolved, action)
        finally:
            lock.release()

    def lock(self, targets: List[str], reason: str = "") -> BatchResult:
        """Lock worktrees so ``git worktree prune`` and grove leave them alone."""
        reason = reason.strip()

        def lock_one(info: WorktreeInfo) -> None:
            locked, existing_reason = self.registry.lock_state(info.path)
            if locked:
                if existing_reason:
                    raise UserError(f"worktree is already locked: {existing_reason}")
                raise UserError("worktree is already locked")
            self.backend.lock_worktree(self.workspace.bare_dir, info.path, reason)
            info.locked = True
            info.lock_reason = reason
            if reason:
                console.print(f"[green]Locked {escape(info.label)}[/green] [dim]({escape(reason)})[/dim]")
            else:
                console.print(f"[green]Locked {escape(info.label)}[/green]")

        return self._run_batch(targets, lock_one)

    def unlock(self, targets: List[str]) -> BatchResult:
        def unlock_one(info: WorktreeInfo) -> None:
            locked, _ = self.registry.lock_state(info.path)
            if not locked:
                raise UserError("worktree is not locked")
            self.backend.unlock_worktree(self.workspace.bare_dir, info.path)
            info.locked = False
            info.lock_reason = ""
            console.print(f"[green]Unlocked {escape(info.label)}[/green]")

        return self._run_batch(targets, unlock_one)

    def remove(self, targets: List[str], force: bool = False, delete_branch: bool = False) -> BatchResult:
        """Remove worktrees and optionally their branches.

        Without ``force``, dirty or locked worktrees are refused. With
        ``force`` a locked worktree is unlocked first, since git otherwise
        demands a second ``--force``.
        """
        bare_dir = self.workspace.bare_dir

        def remove_one(info: WorktreeInfo) -> None:
            if is_within(self.cwd, info.path):
                raise UserError("cannot delete current worktree; switch to a different worktree first")

            locked, _ = self.registry.lock_state(info.path)
            if not force:
                if info.dirty:
                    raise UserError("worktree has uncommitted changes; use --force to remove anyway")
                if locked:
                    raise UserError("worktree is locked; use --force to remove anyway")
            elif locked:
                try:
                    self.backend.unlock_worktree(bare_dir, info.path)
                except GroveError as e:
                    logger.debug(f"Failed to unlock worktree: {e}")

            self.backend.remove_worktree(bare_dir, info.path, force=force)
            console.print(f"[green]Removed worktree {escape(info.path)}[/green]")

            if delete_branch and info.branch:
                if info.ahead > 0:
                    logger.warning(f"{info.branch}: branch has {info.ahead} unpushed commit(s)")
                try:
                    self.backend.delete_branch(bare_dir, info.branch, force=force)
                except GroveError as e:
                    raise GroveError(f"worktree removed but failed to delete branch: {e}") from e
                console.print(f"  [dim]deleted branch {escape(info.branch)}[/dim]")

        # Dirty and ahead counts are needed, so the full listing is used
        return self._run_batch(targets, remove_one, fast=False)

    def exec(
        self,
        targets: List[str],
        command: List[str],
        all_worktrees: bool = False,
        fail_fast: bool = False,
    ) -> BatchResult:
        """Run ``command`` in each worktree, streaming its output.

        Does not take the workspace lock: the command is the user's own.
        """
        if not command:
            raise UserError("no command specified")
        if all_worktrees and targets:
            raise UserError("cannot combine --all with worktree names")
        if not all_worktrees and not targets:
            raise UserError("requires at least one worktree or --all")

        runner = BatchOperationRunner(self.list_worktrees(fast=True))
        resolved = runner.infos if all_worktrees else runner.resolve(targets)

        def exec_one(info: WorktreeInfo) -> None:
            console.print(f"[bold cyan]==> {escape(info.label)}[/bold cyan]")
            logger.debug(f"Running {command} in {info.path}")
            completed = subprocess.run(command, cwd=info.path)
            if completed.returncode != 0:
                raise GroveError(f"command exited with status {completed.returncode}")

        return runner.run(resolved, exec_one, fail_fast=fail_fast)

    def move(self, old_branch: str, new_branch: str) -> MoveResult:
        """Rename a branch and move its worktree directory to match."""
        service = RenameService(self.workspace, self.backend, self.registry, self._new_lock())
        return service.move(old_branch, new_branch, self.cwd)

    def fetch(self, remotes: Optional[List[str]] = None) -> List[RemoteFetchResult]:
        return self.fetch_service.fetch_all(remotes)

    def check_remotes(self, remotes: Optional[List[str]] = None) -> List[RemoteCheck]:
        return self.fetch_service.check_remotes(remotes)

    def prune(
        self,
        commit: bool = False,
        force: bool = False,
        merged: bool = False,
        detached: bool = False,
        stale: Optional[str] = None,
    ) -> PruneResult:
        """Find worktrees that are no longer needed and, with ``commit``, remove them.

        Remotes are fetched first so deleted upstream branches are seen.
        Without ``commit`` nothing is changed.

        Args:
            commit: Actually remove; otherwise only report
            force: Include dirty, locked and unpushed worktrees
            merged: Include branches merged into the default branch
            detached: Include worktrees with a detached HEAD
            stale: Include worktrees with no commits within this duration (e.g. "30d")
        """
        stale_cutoff = None
        if stale is not None:
            try:
                stale_cutoff = stale_cutoff_for(parse_duration(stale))
            except ValueError as e:
                raise UserError(f"invalid --stale value: {e}") from e

        # Individual remote failures are logged by the fetch service
        try:
            self.fetch_service.fetch_all()
        except GroveError as e:
            logger.warning(f"Failed to fetch remotes: {e}")

        service = PruneService(self.workspace, self.backend)
        default_branch = service.find_default_branch()
        if merged and not default_branch:
            logger.warning("Could not determine default branch; skipping --merged")
            merged = False

        result = PruneResult(
            candidates=service.find_candidates(
                self.list_worktrees(fast=False),
                self.cwd,
                force=force,
                merged=merged,
                detached=detached,
                stale_cutoff=stale_cutoff,
                default_branch=default_branch,
            )
        )
        if not commit:
            return result
        if not result.removable:
            result.committed = True
            return result

        lock = acquire_workspace_lock(
            self.workspace.lock_path,
            max_retries=self.config.max_lock_retries,
            max_age=self.config.lock_max_age,
        )
        try:
            return service.execute(result, force=force, default_branch=default_branch)
        finally:
            lock.release()

    def status(self) -> WorktreeStatus:
        """Detailed status of the worktree the command was run from."""
        info = self.current_worktree(self.list_worktrees(fast=False))
        if info is None:
            raise UserError("not inside a worktree (run from a worktree directory)")
        return StatusService(self.backend).gather(info)
