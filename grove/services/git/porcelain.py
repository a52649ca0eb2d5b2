"""Parsers for git porcelain output.

Everything grove learns from git passes through these functions, so an
alternate backend only has to produce the same text (or the same records).
"""

from typing import Dict, List, Optional

from grove.constants import HEADS_PREFIX
from grove.models.worktree import WorktreeEntry


def parse_worktree_porcelain(output: str) -> List[WorktreeEntry]:
    """Parse ``git worktree list --porcelain`` output.

    Format (one block per worktree, blocks separated by blank lines):

        worktree /path/to/worktree
        HEAD <sha>
        branch refs/heads/<name>      (or "detached", or "bare")
        locked [<reason>]
        prunable [<reason>]
    """
    entries: List[WorktreeEntry] = []
    current: Optional[WorktreeEntry] = None

    for raw_line in output.splitlines():
        line = raw_line.rstrip("\r")
        if not line.strip():
            # Empty line marks end of worktree entry
            if current is not None:
                entries.append(current)
                current = None
            continue

        key, _, value = line.partition(" ")
        if key == "worktree":
            if current is not None:
                entries.append(current)
            current = WorktreeEntry(path=value)
            continue
        if current is None:
            continue

        if key == "HEAD":
            current.head = value
        elif key == "branch":
            if value.startswith(HEADS_PREFIX):
                current.branch = value[len(HEADS_PREFIX):]
            else:
                current.branch = value
        elif key == "detached":
            current.detached = True
            current.branch = ""
        elif key == "bare":
            current.bare = True
        elif key == "locked":
            current.locked = True
            current.lock_reason = value.strip()
        elif key == "prunable":
            current.prunable = True

    # Handle last entry if no trailing blank line
    if current is not None:
        entries.append(current)

    return entries


def parse_ref_lines(output: str) -> Dict[str, str]:
    """Parse ``for-each-ref --format='%(refname) %(objectname)'`` output."""
    refs: Dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) == 2:
            refs[parts[0]] = parts[1]
    return refs


def parse_count(output: str) -> int:
    """Parse ``rev-list --count`` output; anything unparsable counts as zero."""
    try:
        return int(output.strip())
    except ValueError:
        return 0


def parse_remote_list(output: str) -> List[str]:
    """Parse ``git remote`` output into remote names."""
    return [line.strip() for line in output.splitlines() if line.strip()]


def has_status_changes(output: str) -> bool:
    """Any line of ``git status --porcelain`` output means the tree is dirty."""
    return any(line.strip() for line in output.splitlines())


def count_lines(output: str) -> int:
    """Count non-empty lines (``git stash list`` and similar)."""
    return sum(1 for line in output.splitlines() if line.strip())


def parse_conflict_count(output: str) -> int:
    """Count distinct paths in ``git ls-files -u`` output.

    Each conflicted path appears once per stage: ``<mode> <sha> <stage>\\t<path>``.
    """
    paths = set()
    for line in output.splitlines():
        _, sep, path = line.partition("\t")
        if sep:
            paths.add(path)
    return len(paths)


def has_unmerged_patches(output: str) -> bool:
    """Check ``git cherry`` output for commits with no equivalent upstream (``+``)."""
    return any(line.startswith("+") for line in output.splitlines())
