"""Cross-process workspace lock.

A single lock file at the workspace root serializes every mutating grove
command in that workspace. The file holds the owner's PID; a lock whose owner
is no longer running (or which is older than ``max_age``) is considered stale
and reclaimed automatically. Acquisition never waits: if a live process holds
the lock the caller gets ``WorkspaceLockedError`` and must retry later.
"""

import os
import time
from typing import Optional

from grove.constants import LOCK_FILE_MODE, LOCK_MAX_AGE_SECONDS, LOCK_WRITE_GRACE_SECONDS, MAX_LOCK_RETRIES
from grove.exceptions import LockAcquisitionError, WorkspaceLockedError
from grove.utils.logging import get_logger
from grove.utils.process import is_process_running

logger = get_logger(__name__)


class WorkspaceLock:
    """Advisory lock file guarding a workspace root.

    Example:
        with WorkspaceLock(workspace.lock_path):
            ...  # mutate the workspace
    """

    def __init__(
        self,
        path: str,
        max_retries: int = MAX_LOCK_RETRIES,
        max_age: float = LOCK_MAX_AGE_SECONDS,
    ):
        """Initialize the lock.

        Args:
            path: Lock file path (``<root>/.grove-worktree.lock``)
            max_retries: Number of stale-lock reclamation attempts
            max_age: Seconds after which a lock file is stale regardless of its PID
        """
        self.path = path
        self.max_retries = max_retries
        self.max_age = max_age
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> "WorkspaceLock":
        """Acquire the lock or fail immediately.

        Returns:
            self, so ``lock = WorkspaceLock(path).acquire()`` reads naturally

        Raises:
            WorkspaceLockedError: If a live process holds the lock
            LockAcquisitionError: If stale locks kept reappearing
        """
        if self.held:
            return self

        for attempt in range(self.max_retries):
            if self._try_acquire(attempt):
                logger.debug(f"Acquired workspace lock {self.path}")
                return self

        raise LockAcquisitionError(self.path, self.max_retries)

    def _try_acquire(self, attempt: int) -> bool:
        """Make a single attempt to acquire the lock.

        Returns:
            True on success, False if a stale lock was removed and a retry is needed
        """
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, LOCK_FILE_MODE)
        except FileExistsError:
            pass
        else:
            try:
                os.write(fd, str(os.getpid()).encode())
                os.fsync(fd)  # PID must be on disk before anyone reads it
            except OSError:
                os.close(fd)
                self._remove_file()
                raise
            self._fd = fd
            return True

        # Lock file exists - check if it's stale
        try:
            mtime = os.stat(self.path).st_mtime
            with open(self.path, encoding="utf-8") as f:
                content = f.read().strip()
        except FileNotFoundError:
            # Released between our create and read
            return False
        except OSError:
            raise WorkspaceLockedError(self.path)

        age = time.time() - mtime
        if not content and age < LOCK_WRITE_GRACE_SECONDS:
            # Owner created the file but has not written its PID yet
            raise WorkspaceLockedError(self.path)

        try:
            pid = int(content)
        except ValueError:
            logger.debug(
                f"Lock file contains invalid PID {content!r}, removing stale lock (attempt {attempt + 1})"
            )
            self._remove_file()
            return False

        if age > self.max_age:
            logger.debug(
                f"Lock file is {age:.0f}s old (max {self.max_age:.0f}s), removing stale lock (attempt {attempt + 1})"
            )
            self._remove_file()
            return False

        if not is_process_running(pid):
            logger.debug(f"Lock held by terminated process {pid}, removing stale lock (attempt {attempt + 1})")
            # Only remove if nobody replaced it in the meantime
            if self._read_content() == content:
                self._remove_file()
            return False

        raise WorkspaceLockedError(self.path, pid)

    def _read_content(self) -> Optional[str]:
        try:
            with open(self.path, encoding="utf-8") as f:
                return f.read().strip()
        except OSError:
            return None

    def _remove_file(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Could not remove lock file {self.path}: {e}")

    def release(self) -> None:
        """Release the lock. Safe to call more than once."""
        if self._fd is None:
            return
        try:
            os.close(self._fd)
        except OSError as e:
            logger.debug(f"Error closing lock file {self.path}: {e}")
        finally:
            self._fd = None
        self._remove_file()
        logger.debug(f"Released workspace lock {self.path}")

    def __enter__(self) -> "WorkspaceLock":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def acquire_workspace_lock(
    path: str,
    max_retries: int = MAX_LOCK_RETRIES,
    max_age: float = LOCK_MAX_AGE_SECONDS,
) -> WorkspaceLock:
    """Acquire the lock at ``path`` and return the held lock object."""
    return WorkspaceLock(path, max_retries=max_retries, max_age=max_age).acquire()
