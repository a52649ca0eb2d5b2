"""Data models for grove."""

from .worktree import WorktreeEntry, WorktreeInfo, WorktreeStatus
from .fetch import ChangeType, RefChange, RemoteCheck, RemoteFetchResult, UpdateKind
from .prune import PruneCandidate, PruneKind, PruneResult, SkipReason

__all__ = [
    "WorktreeEntry",
    "WorktreeInfo",
    "WorktreeStatus",
    "ChangeType",
    "UpdateKind",
    "RefChange",
    "RemoteFetchResult",
    "RemoteCheck",
    "PruneKind",
    "SkipReason",
    "PruneCandidate",
    "PruneResult",
]
