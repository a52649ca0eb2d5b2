"""Prune candidate models and enums"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List

from grove.models.worktree import WorktreeInfo


class PruneKind(Enum):
    """Why a worktree is a prune candidate."""
    GONE = "gone"  # Upstream branch deleted on the remote
    DETACHED = "detached"
    MERGED = "merged"  # Merged into the default branch
    STALE = "stale"  # No commits within the stale threshold


class SkipReason(Enum):
    """Why a candidate is kept."""
    NONE = ""
    CURRENT = "current worktree"
    DIRTY = "dirty, use --force"
    LOCKED = "locked, use --force"
    UNPUSHED = "unpushed commits, use --force"


@dataclass
class PruneCandidate:
    """A worktree selected for pruning."""
    info: WorktreeInfo
    kind: PruneKind
    skip_reason: SkipReason = SkipReason.NONE
    stale_age: str = ""  # e.g. "3 months ago", for stale candidates

    @property
    def removable(self) -> bool:
        return self.skip_reason == SkipReason.NONE

    @property
    def label(self) -> str:
        if self.kind == PruneKind.DETACHED:
            return self.info.name
        if self.kind == PruneKind.STALE and self.stale_age:
            return f"{self.info.branch} ({self.stale_age})"
        return self.info.branch


@dataclass
class PruneResult:
    """Outcome of a prune run (dry-run results only fill ``candidates``)."""
    candidates: List[PruneCandidate] = field(default_factory=list)
    committed: bool = False
    pruned: List[PruneCandidate] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)  # Label -> message
    deleted_branches: List[str] = field(default_factory=list)
    kept_branches: Dict[str, str] = field(default_factory=dict)  # Branch -> why it was kept

    @property
    def removable(self) -> List[PruneCandidate]:
        return [c for c in self.candidates if c.removable]

    @property
    def skipped(self) -> List[PruneCandidate]:
        return [c for c in self.candidates if not c.removable]
