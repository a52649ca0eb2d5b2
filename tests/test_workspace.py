"""Tests for workspace discovery"""
import os

import pytest

from grove.config import Config
from grove.exceptions import UserError, WorkspaceNotFoundError
from grove.services.workspace import find_bare_dir, find_workspace
from grove.utils.paths import is_within, sanitize_branch_name


class TestFindWorkspace:
    """Test locating the bare repository from any directory."""

    def test_from_root(self, workspace):
        assert find_bare_dir(str(workspace.root)) == workspace.bare_dir

    def test_from_nested_worktree_directory(self, workspace):
        nested = workspace.worktree("main") / "src" / "pkg"
        nested.mkdir(parents=True)
        assert find_bare_dir(str(nested)) == workspace.bare_dir

    def test_workspace_paths(self, workspace):
        ws = find_workspace(str(workspace.worktree("feature")))
        assert ws.root == str(workspace.root)
        assert ws.bare_dir == workspace.bare_dir
        assert ws.lock_path == os.path.join(str(workspace.root), ".grove-worktree.lock")

    def test_custom_lock_file_name(self, workspace):
        config = Config(lock_file_name="custom.lock")
        ws = find_workspace(str(workspace.root), config)
        assert ws.lock_path.endswith("custom.lock")

    def test_git_pointer_file_without_bare_dir_name_match(self, temp_dir):
        """A .git file pointing elsewhere does not make a workspace."""
        (temp_dir / ".git").write_text("gitdir: /somewhere/else\n")
        with pytest.raises(WorkspaceNotFoundError):
            find_bare_dir(str(temp_dir))

    def test_git_pointer_file_marks_root(self, temp_dir):
        (temp_dir / ".git").write_text("gitdir: .bare\n")
        assert find_bare_dir(str(temp_dir)) == str(temp_dir / ".bare")

    def test_not_in_workspace(self, temp_dir):
        with pytest.raises(WorkspaceNotFoundError) as exc_info:
            find_workspace(str(temp_dir))
        assert isinstance(exc_info.value, UserError)
        assert "not in a grove workspace" in str(exc_info.value)


class TestPathHelpers:
    """Test path containment and directory naming."""

    def test_is_within(self, temp_dir):
        parent = temp_dir / "feature"
        child = parent / "src"
        child.mkdir(parents=True)
        assert is_within(str(parent), str(parent))
        assert is_within(str(child), str(parent))

    def test_sibling_with_common_prefix_is_not_within(self, temp_dir):
        (temp_dir / "feature").mkdir()
        (temp_dir / "feature-2").mkdir()
        assert not is_within(str(temp_dir / "feature-2"), str(temp_dir / "feature"))

    @pytest.mark.parametrize("branch,expected", [
        ("main", "main"),
        ("feat/login", "feat-login"),
        ('a<b>c|d"e', "a-b-c-d-e"),
    ])
    def test_sanitize_branch_name(self, branch, expected):
        assert sanitize_branch_name(branch) == expected
