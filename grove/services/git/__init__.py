"""Git-related services for grove."""

from .backend import GitBackend, GitCommandBackend
from .porcelain import (
    parse_count,
    parse_ref_lines,
    parse_remote_list,
    parse_worktree_porcelain,
)

__all__ = [
    "GitBackend",
    "GitCommandBackend",
    "parse_worktree_porcelain",
    "parse_ref_lines",
    "parse_count",
    "parse_remote_list",
]
