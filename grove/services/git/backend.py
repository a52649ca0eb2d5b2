"""Git command backend for grove.

``GitBackend`` is the narrow interface the workspace services talk to;
``GitCommandBackend`` implements it by running the git binary through
GitPython with an explicit argv and a per-call working directory.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import git

from grove.constants import HEADS_PREFIX, REMOTE_CHECK_ENV, REMOTES_PREFIX
from grove.exceptions import GitOperationError
from grove.models.worktree import WorktreeEntry
from grove.services.git.porcelain import (
    count_lines,
    has_status_changes,
    has_unmerged_patches,
    parse_conflict_count,
    parse_count,
    parse_ref_lines,
    parse_remote_list,
    parse_worktree_porcelain,
)
from grove.utils.logging import get_logger
from grove.utils.paths import normalize_path

logger = get_logger(__name__)


class GitBackend(ABC):
    """Interface for the git queries and mutations grove relies on."""

    @abstractmethod
    def list_worktrees(self, bare_dir: str) -> List[WorktreeEntry]:
        """List linked worktrees of the bare repository (bare entry excluded)."""

    @abstractmethod
    def has_changes(self, path: str) -> bool:
        """Check whether a worktree has uncommitted or untracked changes."""

    @abstractmethod
    def upstream_of(self, path: str, branch: str) -> str:
        """Full upstream ref of ``branch`` (``refs/remotes/...``), or empty."""

    @abstractmethod
    def ref_exists(self, cwd: str, ref: str) -> bool:
        """Check whether ``ref`` resolves to a commit."""

    @abstractmethod
    def count_commits(self, cwd: str, from_rev: str, to_rev: str) -> int:
        """Count commits reachable from ``to_rev`` but not from ``from_rev``."""

    @abstractmethod
    def rename_branch(self, bare_dir: str, old: str, new: str) -> None:
        """Rename a local branch."""

    @abstractmethod
    def repair_worktree(self, bare_dir: str, path: str) -> None:
        """Point git's administrative files at the worktree's current path."""

    @abstractmethod
    def set_upstream(self, path: str, upstream: str) -> None:
        """Set the upstream of the branch checked out at ``path``."""

    @abstractmethod
    def lock_worktree(self, bare_dir: str, path: str, reason: str = "") -> None:
        """Lock a worktree, optionally recording a reason."""

    @abstractmethod
    def unlock_worktree(self, bare_dir: str, path: str) -> None:
        """Unlock a worktree."""

    @abstractmethod
    def remove_worktree(self, bare_dir: str, path: str, force: bool = False) -> None:
        """Remove a worktree directory and its registration."""

    @abstractmethod
    def delete_branch(self, bare_dir: str, branch: str, force: bool = False) -> None:
        """Delete a local branch."""

    @abstractmethod
    def list_remotes(self, bare_dir: str) -> List[str]:
        """Names of the configured remotes."""

    @abstractmethod
    def remote_refs(self, bare_dir: str, remote: str) -> Dict[str, str]:
        """Snapshot of ``refs/remotes/<remote>/*`` as ref name -> commit hash."""

    @abstractmethod
    def fetch(self, bare_dir: str, remote: str) -> None:
        """Fetch a remote, pruning deleted branches."""

    @abstractmethod
    def is_remote_reachable(self, bare_dir: str, remote: str) -> bool:
        """Check a remote answers, without prompting for credentials."""

    @abstractmethod
    def remote_url(self, bare_dir: str, remote: str) -> str:
        """URL configured for a remote."""

    @abstractmethod
    def last_commit_time(self, path: str) -> int:
        """Unix time of the commit checked out at ``path``."""

    @abstractmethod
    def default_branch(self, bare_dir: str) -> str:
        """Branch the bare repository's HEAD points at."""

    @abstractmethod
    def is_branch_merged(self, cwd: str, branch: str, target: str) -> bool:
        """Check whether ``branch`` is merged into ``target`` (squash merges included)."""

    @abstractmethod
    def git_dir(self, path: str) -> str:
        """Absolute git directory of a worktree (``.bare/worktrees/<name>``)."""

    @abstractmethod
    def stash_count(self, path: str) -> int:
        """Number of stash entries."""

    @abstractmethod
    def conflict_count(self, path: str) -> int:
        """Number of files with unresolved merge conflicts."""

    def local_branch_exists(self, bare_dir: str, branch: str) -> bool:
        """Check whether ``refs/heads/<branch>`` exists."""
        return self.ref_exists(bare_dir, f"{HEADS_PREFIX}{branch}")


def _describe_git_error(e: git.exc.CommandError) -> str:
    """Extract exit status and stderr from a GitPython command error."""
    stderr = (getattr(e, "stderr", "") or "").strip()
    # GitPython decorates stderr as "stderr: '<text>'"
    if stderr.startswith("stderr:"):
        stderr = stderr[len("stderr:"):].strip().strip("'").strip()
    status = getattr(e, "status", None)
    if status is None:
        status = "unknown"

    if stderr:
        return f"exit {status}: {stderr}"
    return f"exit code {status}"


class GitCommandBackend(GitBackend):
    """GitBackend that shells out to the git binary (never through a shell)."""

    def _git(self, cwd: str) -> git.Git:
        """Get a command wrapper bound to ``cwd``.

        A fresh wrapper per call keeps the backend safe to share between threads.
        """
        return git.Git(cwd)

    def _run(self, cwd: str, operation: str, *args: str, target: Optional[str] = None) -> str:
        """Run ``git <args>`` in ``cwd`` and return its stdout."""
        logger.debug(f"Executing: git {' '.join(args)} in {cwd}")
        try:
            return self._git(cwd).execute(["git", *args])
        except git.exc.CommandError as e:
            raise GitOperationError(operation, target, _describe_git_error(e)) from e

    def _succeeds(self, cwd: str, *args: str, env: Optional[Dict[str, str]] = None) -> bool:
        """Run ``git <args>`` in ``cwd`` and report whether it exited 0."""
        logger.debug(f"Executing: git {' '.join(args)} in {cwd}")
        status, _, _ = self._git(cwd).execute(
            ["git", *args],
            with_extended_output=True,
            with_exceptions=False,
            env=env,
        )
        return status == 0

    def list_worktrees(self, bare_dir: str) -> List[WorktreeEntry]:
        output = self._run(bare_dir, "worktree list", "worktree", "list", "--porcelain")
        bare_path = normalize_path(bare_dir)
        return [
            entry
            for entry in parse_worktree_porcelain(output)
            if not entry.bare and normalize_path(entry.path) != bare_path
        ]

    def has_changes(self, path: str) -> bool:
        output = self._run(path, "status", "status", "--porcelain", target=path)
        return has_status_changes(output)

    def upstream_of(self, path: str, branch: str) -> str:
        output = self._run(
            path,
            "for-each-ref",
            "for-each-ref",
            "--format=%(upstream)",
            f"{HEADS_PREFIX}{branch}",
            target=branch,
        )
        return output.strip()

    def ref_exists(self, cwd: str, ref: str) -> bool:
        return self._succeeds(cwd, "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")

    def count_commits(self, cwd: str, from_rev: str, to_rev: str) -> int:
        output = self._run(cwd, "rev-list", "rev-list", "--count", f"{from_rev}..{to_rev}")
        return parse_count(output)

    def rename_branch(self, bare_dir: str, old: str, new: str) -> None:
        self._run(bare_dir, "rename branch", "branch", "-m", old, new, target=old)

    def repair_worktree(self, bare_dir: str, path: str) -> None:
        self._run(bare_dir, "worktree repair", "worktree", "repair", path, target=path)

    def set_upstream(self, path: str, upstream: str) -> None:
        self._run(path, "set upstream", "branch", f"--set-upstream-to={upstream}", target=upstream)

    def lock_worktree(self, bare_dir: str, path: str, reason: str = "") -> None:
        args = ["worktree", "lock"]
        if reason:
            args.extend(["--reason", reason])
        args.append(path)
        self._run(bare_dir, "worktree lock", *args, target=path)

    def unlock_worktree(self, bare_dir: str, path: str) -> None:
        self._run(bare_dir, "worktree unlock", "worktree", "unlock", path, target=path)

    def remove_worktree(self, bare_dir: str, path: str, force: bool = False) -> None:
        args = ["worktree", "remove", path]
        if force:
            args.append("--force")
        self._run(bare_dir, "worktree remove", *args, target=path)

    def delete_branch(self, bare_dir: str, branch: str, force: bool = False) -> None:
        self._run(bare_dir, "delete branch", "branch", "-D" if force else "-d", branch, target=branch)

    def list_remotes(self, bare_dir: str) -> List[str]:
        return parse_remote_list(self._run(bare_dir, "list remotes", "remote"))

    def remote_refs(self, bare_dir: str, remote: str) -> Dict[str, str]:
        output = self._run(
            bare_dir,
            "for-each-ref",
            "for-each-ref",
            "--format=%(refname) %(objectname)",
            f"{REMOTES_PREFIX}{remote}/",
            target=remote,
        )
        return parse_ref_lines(output)

    def fetch(self, bare_dir: str, remote: str) -> None:
        self._run(bare_dir, "fetch", "fetch", "--prune", remote, target=remote)

    def is_remote_reachable(self, bare_dir: str, remote: str) -> bool:
        return self._succeeds(bare_dir, "ls-remote", "--heads", remote, env=REMOTE_CHECK_ENV)

    def remote_url(self, bare_dir: str, remote: str) -> str:
        return self._run(bare_dir, "remote get-url", "remote", "get-url", remote, target=remote).strip()

    def last_commit_time(self, path: str) -> int:
        output = self._run(path, "log", "log", "-1", "--format=%ct", "HEAD", target=path)
        return parse_count(output)

    def default_branch(self, bare_dir: str) -> str:
        return self._run(bare_dir, "symbolic-ref", "symbolic-ref", "--short", "HEAD").strip()

    def is_branch_merged(self, cwd: str, branch: str, target: str) -> bool:
        if self._succeeds(cwd, "merge-base", "--is-ancestor", branch, target):
            return True

        # Squash merges leave no ancestry; compare patch ids instead
        output = self._run(cwd, "cherry", "cherry", target, branch, target=branch)
        return not has_unmerged_patches(output)

    def git_dir(self, path: str) -> str:
        output = self._run(path, "rev-parse", "rev-parse", "--absolute-git-dir", target=path)
        return output.strip()

    def stash_count(self, path: str) -> int:
        return count_lines(self._run(path, "stash list", "stash", "list", target=path))

    def conflict_count(self, path: str) -> int:
        return parse_conflict_count(self._run(path, "ls-files", "ls-files", "-u", target=path))
