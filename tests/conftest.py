"""Pytest fixtures for grove tests"""
import tempfile
from dataclasses import dataclass
from pathlib import Path
from unittest.mock import Mock

import git
import pytest

from grove.models.worktree import WorktreeInfo
from grove.services.git.backend import GitBackend


def commit_file(repo: git.Repo, name: str, content: str, message: str) -> str:
    """Write a file into a checkout and commit it; returns the commit hash."""
    path = Path(repo.working_dir) / name
    path.write_text(content)
    # Through the git binary so linked worktrees behave like the main one
    repo.git.add(name)
    repo.git.commit("-m", message)
    return repo.git.rev_parse("HEAD")


def configure_user(repo: git.Repo) -> None:
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")


@dataclass
class WorkspaceFixture:
    """A real workspace: bare clone of ``origin`` plus worktrees main and feature."""
    root: Path
    bare: git.Repo
    origin: git.Repo

    @property
    def bare_dir(self) -> str:
        return str(self.root / ".bare")

    def worktree(self, name: str) -> Path:
        return self.root / name

    def local_branches(self):
        output = self.bare.git.for_each_ref("--format=%(refname:short)", "refs/heads/")
        return set(output.split())


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        # Resolved so path comparisons survive /tmp symlinks
        yield Path(tmpdir).resolve()


@pytest.fixture
def origin_repo(temp_dir):
    """Create the upstream repository with branches main and feature."""
    repo_path = temp_dir / "origin"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)
    configure_user(repo)

    commit_file(repo, "README.md", "# Test Repository\n", "Initial commit")
    repo.git.branch("-M", "main")

    repo.git.checkout("-b", "feature")
    commit_file(repo, "feature.txt", "Feature content\n", "Add feature")
    repo.git.checkout("main")

    yield repo

    repo.close()


@pytest.fixture
def workspace(temp_dir, origin_repo):
    """Create a grove workspace cloned from ``origin_repo``."""
    root = temp_dir / "ws"
    root.mkdir()
    bare_dir = root / ".bare"

    bare = git.Repo.clone_from(str(origin_repo.working_dir), str(bare_dir), bare=True)
    configure_user(bare)
    # Bare clones map branches 1:1; use remote-tracking refs like a normal clone
    bare.git.config("remote.origin.fetch", "+refs/heads/*:refs/remotes/origin/*")
    bare.git.fetch("origin")
    (root / ".git").write_text("gitdir: .bare\n")

    for branch in ("main", "feature"):
        bare.git.worktree("add", str(root / branch), branch)
        bare.git.branch(f"--set-upstream-to=origin/{branch}", branch)

    yield WorkspaceFixture(root=root, bare=bare, origin=origin_repo)

    bare.close()


@pytest.fixture
def mock_backend():
    """Create a mock Git backend."""
    backend = Mock(spec=GitBackend)
    backend.list_worktrees.return_value = []
    backend.list_remotes.return_value = []
    return backend


@pytest.fixture
def sample_infos():
    """Create sample worktree records."""
    return [
        WorktreeInfo(path="/ws/main", branch="main", head="a" * 40),
        WorktreeInfo(path="/ws/feature-x", branch="feature/x", head="b" * 40),
        WorktreeInfo(path="/ws/scratch", branch="", detached=True, head="c" * 40),
    ]


@pytest.fixture
def make_commit():
    """Expose commit_file to tests."""
    return commit_file
