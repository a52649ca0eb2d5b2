"""Remote fetching with before/after ref diffing."""
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from grove.constants import FETCH_RETRIES
from grove.exceptions import FetchError, GitOperationError
from grove.models.fetch import ChangeType, RefChange, RemoteCheck, RemoteFetchResult, UpdateKind
from grove.services.git.backend import GitBackend, GitCommandBackend
from grove.utils.logging import get_logger

logger = get_logger(__name__)


def detect_ref_changes(before: Dict[str, str], after: Dict[str, str]) -> List[RefChange]:
    """Compare two ref snapshots.

    Args:
        before: Ref name to commit hash, taken before the fetch
        after: Ref name to commit hash, taken after the fetch

    Returns:
        New, updated and pruned refs sorted by ref name
    """
    changes = []

    for ref_name, new_hash in after.items():
        old_hash = before.get(ref_name)
        if old_hash is None:
            changes.append(RefChange(ref_name, ChangeType.NEW, new_hash=new_hash))
        elif old_hash != new_hash:
            changes.append(RefChange(ref_name, ChangeType.UPDATED, old_hash=old_hash, new_hash=new_hash))

    for ref_name, old_hash in before.items():
        if ref_name not in after:
            changes.append(RefChange(ref_name, ChangeType.PRUNED, old_hash=old_hash))

    changes.sort(key=lambda c: c.ref_name)
    return changes


class FetchService:
    """Service for fetching remotes and reporting what changed."""

    def __init__(self, bare_dir: str, backend: Optional[GitBackend] = None, retries: int = FETCH_RETRIES):
        """Initialize the fetch service.

        Args:
            bare_dir: Path to the workspace's bare repository
            backend: Git backend (defaults to the git binary)
            retries: Extra attempts after a failed fetch
        """
        self.bare_dir = bare_dir
        self.backend = backend or GitCommandBackend()
        self.retries = retries

    def fetch_remote(self, remote: str) -> RemoteFetchResult:
        """Fetch one remote and classify every ref that changed.

        Failures are recorded on the result rather than raised.
        """
        result = RemoteFetchResult(remote=remote)

        try:
            before = self.backend.remote_refs(self.bare_dir, remote)
        except GitOperationError as e:
            result.error = FetchError(remote, f"failed to read refs: {e}")
            return result

        last_error = None
        for attempt in range(self.retries + 1):
            try:
                self.backend.fetch(self.bare_dir, remote)
                last_error = None
                break
            except GitOperationError as e:
                last_error = e
                if attempt < self.retries:
                    logger.debug(f"Fetch of {remote} failed, retrying: {e}")

        if last_error is not None:
            logger.warning(f"Failed to fetch {remote}: {last_error}")
            result.error = FetchError(remote, str(last_error))
            return result

        try:
            after = self.backend.remote_refs(self.bare_dir, remote)
        except GitOperationError as e:
            result.error = FetchError(remote, f"failed to read refs: {e}")
            return result

        result.changes = detect_ref_changes(before, after)
        for change in result.changes:
            if change.type == ChangeType.UPDATED:
                self._classify(change)

        logger.debug(f"{remote}: {len(result.changes)} ref changes")
        return result

    def fetch_all(self, remotes: Optional[List[str]] = None) -> List[RemoteFetchResult]:
        """Fetch each remote in order; one failing remote never blocks the rest."""
        if remotes is None:
            remotes = self.backend.list_remotes(self.bare_dir)
        if not remotes:
            logger.info("No remotes configured")
            return []

        return [self.fetch_remote(remote) for remote in remotes]

    def _classify(self, change: RefChange) -> None:
        """Set update kind and commit count of an updated ref."""
        try:
            forward = self.backend.count_commits(self.bare_dir, change.old_hash, change.new_hash)
            backward = self.backend.count_commits(self.bare_dir, change.new_hash, change.old_hash)
        except GitOperationError as e:
            # Old commit may be gone after a force push
            logger.debug(f"Could not count commits for {change.ref_name}: {e}")
            change.update_kind = UpdateKind.FORCE_PUSHED
            return

        if forward > 0 and backward == 0:
            change.update_kind = UpdateKind.ADVANCED
            change.commit_count = forward
        elif backward > 0 and forward == 0:
            change.update_kind = UpdateKind.RESET
            change.commit_count = backward
        else:
            change.update_kind = UpdateKind.FORCE_PUSHED

    def check_remotes(self, remotes: Optional[List[str]] = None) -> List[RemoteCheck]:
        """Check every remote concurrently.

        Returns:
            One RemoteCheck per remote, sorted by remote name
        """
        if remotes is None:
            remotes = self.backend.list_remotes(self.bare_dir)
        if not remotes:
            return []

        results: List[RemoteCheck] = []
        results_lock = threading.Lock()

        def check_one(remote: str) -> None:
            check = RemoteCheck(remote=remote)
            try:
                check.url = self.backend.remote_url(self.bare_dir, remote)
            except GitOperationError as e:
                logger.debug(f"Could not read URL of {remote}: {e}")
            check.reachable = self.backend.is_remote_reachable(self.bare_dir, remote)
            with results_lock:
                results.append(check)

        # Leaving the block waits for every check
        with ThreadPoolExecutor(max_workers=len(remotes)) as executor:
            futures = [executor.submit(check_one, remote) for remote in remotes]

        for future in futures:
            # Re-raise anything unexpected from a worker
            future.result()

        results.sort(key=lambda c: c.remote)
        return results
