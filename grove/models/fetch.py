"""Fetch result models and enums"""
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from grove.exceptions import FetchError


class ChangeType(Enum):
    """How a remote-tracking ref changed across a fetch."""
    NEW = "new"
    UPDATED = "updated"
    PRUNED = "pruned"


class UpdateKind(Enum):
    """Relationship between the old and new commit of an updated ref."""
    ADVANCED = "advanced"  # Old commit is an ancestor of the new one
    RESET = "reset"  # New commit is an ancestor of the old one
    FORCE_PUSHED = "force-pushed"  # Neither history contains the other


@dataclass
class RefChange:
    """Difference of one ref between two snapshots."""
    ref_name: str
    type: ChangeType
    old_hash: str = ""
    new_hash: str = ""
    update_kind: Optional[UpdateKind] = None
    commit_count: Optional[int] = None  # Unsigned; None for force-pushes

    def short_name(self, remote: str) -> str:
        """Ref name without the ``refs/remotes/<remote>/`` prefix."""
        prefix = f"refs/remotes/{remote}/"
        if self.ref_name.startswith(prefix):
            return self.ref_name[len(prefix):]
        return self.ref_name

    def describe(self) -> str:
        """Human readable summary of an updated ref."""
        if self.update_kind == UpdateKind.ADVANCED:
            return f"+{self.commit_count} commits"
        if self.update_kind == UpdateKind.RESET:
            return f"-{self.commit_count} commits"
        if self.update_kind == UpdateKind.FORCE_PUSHED:
            return "force-pushed"
        if self.type == ChangeType.PRUNED:
            return "deleted on remote"
        return self.type.value

    def signed_count(self) -> Optional[int]:
        """Commit count with direction: positive forward, negative backward."""
        if self.commit_count is None:
            return None
        if self.update_kind == UpdateKind.RESET:
            return -self.commit_count
        return self.commit_count


@dataclass
class RemoteFetchResult:
    """Outcome of fetching a single remote."""
    remote: str
    changes: List[RefChange] = field(default_factory=list)
    error: Optional["FetchError"] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RemoteCheck:
    """Reachability of a single remote."""
    remote: str
    url: str = ""
    reachable: bool = False
