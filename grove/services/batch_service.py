"""Shared resolve and execute pattern for commands taking several worktrees."""
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from grove.exceptions import BatchOperationError, GroveError, WorktreeNotFoundError
from grove.models.worktree import WorktreeInfo
from grove.services.worktree_registry import WorktreeRegistry
from grove.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class BatchResult:
    """Per-target outcome of a batch command."""
    succeeded: List[WorktreeInfo] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)  # Worktree name -> message

    @property
    def ok(self) -> bool:
        return not self.failed


class BatchOperationRunner:
    """Runs one action against several worktrees.

    Resolution is strict: every target must name a worktree before anything
    runs. Execution is lenient: a failing target is recorded and the rest
    still run, unless ``fail_fast`` is set.
    """

    def __init__(self, infos: List[WorktreeInfo]):
        self.infos = infos

    def resolve(self, targets: List[str]) -> List[WorktreeInfo]:
        """Resolve targets to worktrees, dropping duplicates.

        Raises:
            WorktreeNotFoundError: For the first target that names no worktree
        """
        resolved = []
        seen = set()
        for target in targets:
            info = WorktreeRegistry.find(self.infos, target)
            if info is None:
                raise WorktreeNotFoundError(target)
            if info.path in seen:
                logger.debug(f"Skipping duplicate target {target}")
                continue
            seen.add(info.path)
            resolved.append(info)
        return resolved

    def run(
        self,
        resolved: List[WorktreeInfo],
        action: Callable[[WorktreeInfo], None],
        fail_fast: bool = False,
    ) -> BatchResult:
        """Apply ``action`` to each resolved worktree.

        Raises:
            BatchOperationError: If any target failed; succeeded targets stay applied
        """
        result = BatchResult()
        for info in resolved:
            try:
                action(info)
            except (GroveError, OSError) as e:
                logger.error(f"{info.name}: {e}")
                if fail_fast:
                    raise
                result.failed[info.name] = str(e)
                continue
            result.succeeded.append(info)

        if result.failed:
            raise BatchOperationError(result.failed, result)
        return result
