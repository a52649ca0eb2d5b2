"""Custom exceptions for grove"""

from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from grove.services.batch_service import BatchResult


class GroveError(Exception):
    """Base exception for all grove errors."""
    pass


class UserError(GroveError):
    """Exception raised for invalid input; surfaced verbatim, never retried."""
    pass


class WorktreeNotFoundError(UserError):
    """Exception raised when a target does not name any worktree."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"worktree not found: {target}")


class WorkspaceNotFoundError(UserError):
    """Exception raised when no grove workspace encloses a directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"not in a grove workspace: {path}")


class GitOperationError(GroveError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, target: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.target = target
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if target:
            error_msg += f" for '{target}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class ConcurrencyError(GroveError):
    """Exception raised when another process holds the workspace."""
    pass


class WorkspaceLockedError(ConcurrencyError):
    """Exception raised when the workspace lock is held by a live process."""

    def __init__(self, lock_path: str, pid: Optional[int] = None):
        self.lock_path = lock_path
        self.pid = pid
        if pid is not None:
            msg = f"another grove operation (PID {pid}) is in progress; if this is wrong, remove {lock_path}"
        else:
            msg = f"another grove operation is in progress; if this is wrong, remove {lock_path}"
        super().__init__(msg)


class LockAcquisitionError(ConcurrencyError):
    """Exception raised when stale-lock reclamation keeps failing."""

    def __init__(self, lock_path: str, attempts: int):
        self.lock_path = lock_path
        self.attempts = attempts
        super().__init__(
            f"failed to acquire lock after {attempts} attempts; "
            f"if no grove operation is running, remove {lock_path}"
        )


class TransientError(GroveError):
    """Exception raised for failures that may succeed when retried."""
    pass


class FetchError(TransientError):
    """Exception raised when fetching a remote fails after retrying."""

    def __init__(self, remote: str, message: Optional[str] = None):
        self.remote = remote
        self.message = message
        error_msg = f"{remote}: fetch failed"
        if message:
            error_msg += f": {message}"
        super().__init__(error_msg)


class BatchOperationError(GroveError):
    """Exception raised when some targets of a batch command failed.

    Targets that succeeded stay applied; ``failed`` maps each failed
    worktree name to its error message.
    """

    def __init__(self, failed: Dict[str, str], result: Optional["BatchResult"] = None):
        self.failed = failed
        self.result = result
        super().__init__(f"failed: {', '.join(failed)}")


class RenameError(GroveError):
    """Exception raised when a step of a branch and worktree move fails."""
    pass


class RollbackError(GroveError):
    """Describes a rollback that could not restore the workspace.

    Never raised on its own: it is logged and attached to the original
    exception as ``rollback_error``.
    """

    def __init__(self, failures: List[str]):
        self.failures = failures
        super().__init__(
            "rollback incomplete, workspace may need manual repair: " + "; ".join(failures)
        )
