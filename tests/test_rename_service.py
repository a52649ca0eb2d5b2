"""Tests for the atomic branch and worktree move"""
import os
from unittest.mock import Mock, patch

import pytest

from grove.exceptions import (
    GitOperationError,
    RenameError,
    RollbackError,
    UserError,
    WorkspaceLockedError,
    WorktreeNotFoundError,
)
from grove.services.git.backend import GitCommandBackend
from grove.services.rename_service import RenameService
from grove.services.workspace import find_workspace
from grove.services.worktree_registry import WorktreeRegistry


@pytest.fixture
def service(workspace):
    ws = find_workspace(str(workspace.root))
    return RenameService(ws, GitCommandBackend())


def registered_paths(workspace):
    output = workspace.bare.git.worktree("list", "--porcelain")
    return {line.split(" ", 1)[1] for line in output.splitlines() if line.startswith("worktree ")}


class TestMove:
    """Test successful moves."""

    def test_move_renames_branch_and_directory(self, workspace, service):
        result = service.move("feature", "feature2", str(workspace.worktree("main")))

        assert result.new_path == str(workspace.worktree("feature2"))
        assert result.old_path == str(workspace.worktree("feature"))
        assert "feature2" in workspace.local_branches()
        assert "feature" not in workspace.local_branches()
        assert not workspace.worktree("feature").exists()
        assert workspace.worktree("feature2").is_dir()

    def test_no_dangling_worktree_registration(self, workspace, service):
        service.move("feature", "feature2", str(workspace.worktree("main")))

        paths = registered_paths(workspace)
        assert str(workspace.worktree("feature2")) in paths
        assert str(workspace.worktree("feature")) not in paths

        infos = WorktreeRegistry(workspace.bare_dir).list()
        moved = WorktreeRegistry.find(infos, "feature2")
        assert moved.branch == "feature2"
        assert moved.dirty is False

    def test_repeat_move_fails_with_not_found(self, workspace, service):
        service.move("feature", "feature2", str(workspace.worktree("main")))

        with pytest.raises(WorktreeNotFoundError, match="worktree not found: feature"):
            service.move("feature", "feature2", str(workspace.worktree("main")))

    def test_slash_branch_gets_sanitized_directory(self, workspace, service):
        result = service.move("feature", "feat/login", str(workspace.worktree("main")))

        assert os.path.basename(result.new_path) == "feat-login"
        assert result.dir_name == "feat-login"
        assert "feat/login" in workspace.local_branches()

    def test_names_are_stripped(self, workspace, service):
        result = service.move("  feature ", " feature2  ", str(workspace.worktree("main")))
        assert result.new_branch == "feature2"

    def test_upstream_repointed_when_remote_branch_exists(self, workspace, service):
        workspace.origin.git.branch("feature2", "feature")
        workspace.bare.git.fetch("origin")

        result = service.move("feature", "feature2", str(workspace.worktree("main")))

        assert result.upstream == "origin/feature2"
        upstream = workspace.bare.git.rev_parse("--abbrev-ref", "feature2@{upstream}")
        assert upstream == "origin/feature2"

    def test_upstream_kept_when_remote_branch_missing(self, workspace, service):
        result = service.move("feature", "feature2", str(workspace.worktree("main")))
        assert result.upstream == ""

    def test_lock_released_after_move(self, workspace, service):
        service.move("feature", "feature2", str(workspace.worktree("main")))
        assert not os.path.exists(service.lock.path)


class TestPreconditions:
    """Test that invalid moves are rejected before anything changes."""

    def test_same_name(self, workspace, service):
        with pytest.raises(UserError, match="same"):
            service.move("feature", "feature", str(workspace.root))

    def test_unknown_branch(self, workspace, service):
        with pytest.raises(WorktreeNotFoundError):
            service.move("nope", "other", str(workspace.root))

    def test_directory_name_is_not_a_branch_lookup(self, workspace, service):
        workspace.bare.git.branch("-m", "feature", "feat/x")
        with pytest.raises(WorktreeNotFoundError):
            service.move("feature", "other", str(workspace.root))

    def test_cannot_move_current_worktree(self, workspace, service):
        inside = workspace.worktree("feature") / "sub"
        inside.mkdir()
        with pytest.raises(UserError, match="current worktree"):
            service.move("feature", "feature2", str(inside))

    def test_target_branch_exists(self, workspace, service):
        workspace.bare.git.branch("taken", "main")
        with pytest.raises(UserError, match="already exists"):
            service.move("feature", "taken", str(workspace.root))

    def test_dirty_worktree(self, workspace, service):
        (workspace.worktree("feature") / "wip.txt").write_text("wip\n")
        with pytest.raises(UserError, match="uncommitted changes"):
            service.move("feature", "feature2", str(workspace.root))
        assert "feature" in workspace.local_branches()

    def test_locked_worktree(self, workspace, service):
        workspace.bare.git.worktree("lock", str(workspace.worktree("feature")))
        with pytest.raises(UserError, match="locked"):
            service.move("feature", "feature2", str(workspace.root))

    def test_destination_directory_exists(self, workspace, service):
        workspace.worktree("feature2").mkdir()
        with pytest.raises(UserError, match="already exists"):
            service.move("feature", "feature2", str(workspace.root))
        assert "feature" in workspace.local_branches()

    def test_workspace_locked_by_other_process(self, workspace, service):
        with open(service.lock.path, "w") as f:
            f.write(str(os.getpid()))

        with pytest.raises(WorkspaceLockedError):
            service.move("feature", "feature2", str(workspace.root))
        assert "feature" in workspace.local_branches()


class TestRollback:
    """Test that failed steps are undone."""

    def test_directory_move_failure_restores_branch(self, workspace, service):
        with patch.object(service, "_move_directory", side_effect=OSError("disk full")):
            with pytest.raises(RenameError, match="failed to move worktree directory") as exc_info:
                service.move("feature", "feature2", str(workspace.root))

        assert isinstance(exc_info.value.__cause__, OSError)
        assert getattr(exc_info.value, "rollback_error", None) is None
        assert "feature" in workspace.local_branches()
        assert "feature2" not in workspace.local_branches()
        assert workspace.worktree("feature").is_dir()

    def test_repair_failure_restores_directory_and_branch(self, workspace, service):
        real_repair = service.backend.repair_worktree
        calls = []

        def failing_repair(bare_dir, path):
            calls.append(path)
            if len(calls) == 1:
                raise GitOperationError("worktree repair", path, "boom")
            return real_repair(bare_dir, path)

        with patch.object(service.backend, "repair_worktree", side_effect=failing_repair):
            with pytest.raises(RenameError, match="failed to repair worktree"):
                service.move("feature", "feature2", str(workspace.root))

        assert calls[-1] == str(workspace.worktree("feature"))
        assert workspace.worktree("feature").is_dir()
        assert not workspace.worktree("feature2").exists()
        assert "feature" in workspace.local_branches()
        assert str(workspace.worktree("feature")) in registered_paths(workspace)

    def test_branch_rename_failure_needs_no_rollback(self, workspace, service):
        with patch.object(service.backend, "rename_branch", side_effect=GitOperationError("rename branch")):
            with patch.object(service, "_rollback") as rollback:
                with pytest.raises(RenameError):
                    service.move("feature", "feature2", str(workspace.root))
        rollback.assert_not_called()

    def test_keyboard_interrupt_triggers_rollback(self, workspace, service):
        with patch.object(service, "_move_directory", side_effect=KeyboardInterrupt):
            with pytest.raises(KeyboardInterrupt):
                service.move("feature", "feature2", str(workspace.root))

        assert "feature" in workspace.local_branches()
        assert not os.path.exists(service.lock.path)

    def test_failed_rollback_is_attached_not_raised(self, workspace, service):
        backend = service.backend
        original_rename = backend.rename_branch
        rename = Mock(side_effect=[None, GitOperationError("rename branch", "feature2", "locked ref")])

        def rename_branch(bare_dir, old, new):
            rename(bare_dir, old, new)
            if rename.call_count == 1:
                original_rename(bare_dir, old, new)

        with patch.object(backend, "rename_branch", side_effect=rename_branch):
            with patch.object(service, "_move_directory", side_effect=OSError("denied")):
                with pytest.raises(RenameError) as exc_info:
                    service.move("feature", "feature2", str(workspace.root))

        rollback_error = exc_info.value.rollback_error
        assert isinstance(rollback_error, RollbackError)
        assert "branch still named feature2" in rollback_error.failures
        assert "manual repair" in str(rollback_error)
