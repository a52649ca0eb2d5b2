"""Worktree data models."""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class WorktreeEntry:
    """One record of ``git worktree list --porcelain``."""

    path: str
    head: str = ""
    branch: str = ""  # Empty when detached
    detached: bool = False
    bare: bool = False
    locked: bool = False
    lock_reason: str = ""
    prunable: bool = False


@dataclass
class WorktreeInfo:
    """Live state of a worktree in a grove workspace."""

    path: str
    branch: str = ""  # Empty when detached
    detached: bool = False
    head: str = ""
    upstream: str = ""  # e.g. "origin/main"
    ahead: int = 0
    behind: int = 0
    dirty: bool = False
    gone: bool = False  # Upstream configured but deleted
    no_upstream: bool = False
    locked: bool = False
    lock_reason: str = ""
    last_commit_time: int = 0  # Unix time of HEAD; 0 if unknown or not computed

    @property
    def name(self) -> str:
        """Worktree name (directory basename)."""
        return os.path.basename(self.path.rstrip(os.sep))

    @property
    def label(self) -> str:
        """Display label combining directory and branch when they differ."""
        if self.detached:
            short = self.head[:7] if self.head else "unknown"
            return f"{self.name} (detached at {short})"
        if self.branch and self.branch != self.name:
            return f"{self.name} [{self.branch}]"
        return self.name

    def to_dict(self, current_path: Optional[str] = None) -> dict:
        """Convert to the listing JSON schema."""
        return {
            "name": self.name,
            "branch": self.branch,
            "path": self.path,
            "current": current_path is not None and self.path == current_path,
            "detached": self.detached,
            "upstream": self.upstream,
            "dirty": self.dirty,
            "ahead": self.ahead,
            "behind": self.behind,
            "gone": self.gone,
            "no_upstream": self.no_upstream,
            "locked": self.locked,
            "lock_reason": self.lock_reason,
        }

    def __str__(self) -> str:
        """String representation of worktree."""
        target = "(detached)" if self.detached else self.branch
        return f"{self.name} @ {target} [{self.path}]"


@dataclass
class WorktreeStatus:
    """Detailed state of a single worktree, beyond what listings show."""

    info: WorktreeInfo
    stashes: int = 0
    operation: str = ""  # "merging", "rebasing", "cherry-picking", "reverting" or ""
    conflicts: int = 0

    def to_dict(self) -> dict:
        """Convert to the status JSON schema."""
        info = self.info
        return {
            "branch": "(detached)" if info.detached else info.branch,
            "path": info.path,
            "upstream": info.upstream,
            "ahead": info.ahead,
            "behind": info.behind,
            "dirty": info.dirty,
            "stashes": self.stashes,
            "operation": self.operation,
            "conflicts": self.conflicts,
            "locked": info.locked,
            "detached": info.detached,
            "gone": info.gone,
            "no_upstream": info.no_upstream,
        }
