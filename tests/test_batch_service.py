"""Tests for the batch operation runner and the commands built on it"""
import os
import sys
from unittest.mock import Mock

import pytest

from grove.core import Grove
from grove.exceptions import BatchOperationError, GroveError, UserError, WorkspaceLockedError, WorktreeNotFoundError
from grove.services.batch_service import BatchOperationRunner
from grove.services.worktree_registry import WorktreeRegistry


class TestRunner:
    """Test resolve, dedupe and aggregation with plain records."""

    def test_duplicate_targets_run_once(self, sample_infos):
        runner = BatchOperationRunner(sample_infos)
        action = Mock()

        # Same worktree by directory name and by branch
        result = runner.run(runner.resolve(["feature-x", "feature-x", "feature/x"]), action)

        assert action.call_count == 1
        assert [i.name for i in result.succeeded] == ["feature-x"]

    def test_first_seen_order_is_kept(self, sample_infos):
        runner = BatchOperationRunner(sample_infos)
        resolved = runner.resolve(["scratch", "main", "scratch"])
        assert [i.name for i in resolved] == ["scratch", "main"]

    def test_unresolved_target_aborts_before_running(self, sample_infos):
        runner = BatchOperationRunner(sample_infos)
        with pytest.raises(WorktreeNotFoundError, match="nope"):
            runner.resolve(["main", "nope"])

    def test_partial_failure_names_only_failed(self, sample_infos):
        runner = BatchOperationRunner(sample_infos)
        applied = []

        def action(info):
            if info.name == "main":
                raise GroveError("broken")
            applied.append(info.name)

        with pytest.raises(BatchOperationError) as exc_info:
            runner.run(runner.resolve(["main", "scratch"]), action)

        assert str(exc_info.value) == "failed: main"
        assert exc_info.value.failed == {"main": "broken"}
        assert applied == ["scratch"]
        assert [i.name for i in exc_info.value.result.succeeded] == ["scratch"]

    def test_os_errors_are_collected(self, sample_infos):
        runner = BatchOperationRunner(sample_infos)
        action = Mock(side_effect=OSError("no such file"))

        with pytest.raises(BatchOperationError) as exc_info:
            runner.run(runner.resolve(["main", "scratch"]), action)

        assert str(exc_info.value) == "failed: main, scratch"

    def test_fail_fast_stops_at_first_failure(self, sample_infos):
        runner = BatchOperationRunner(sample_infos)
        action = Mock(side_effect=GroveError("broken"))

        with pytest.raises(GroveError, match="broken"):
            runner.run(runner.resolve(["main", "scratch"]), action, fail_fast=True)

        assert action.call_count == 1

    def test_unexpected_errors_propagate(self, sample_infos):
        runner = BatchOperationRunner(sample_infos)
        with pytest.raises(ValueError):
            runner.run(runner.resolve(["main"]), Mock(side_effect=ValueError("bug")))


@pytest.fixture
def grove(workspace):
    return Grove(str(workspace.root))


def find(workspace, target):
    return WorktreeRegistry.find(WorktreeRegistry(workspace.bare_dir).list(fast=True), target)


class TestLockCommands:
    """Test lock and unlock against a real workspace."""

    def test_lock_with_reason(self, workspace, grove):
        result = grove.lock(["feature"], reason="release freeze")

        assert [i.name for i in result.succeeded] == ["feature"]
        info = find(workspace, "feature")
        assert info.locked is True
        assert info.lock_reason == "release freeze"

    def test_lock_already_locked_reports_reason(self, workspace, grove):
        grove.lock(["feature"], reason="first")

        with pytest.raises(BatchOperationError) as exc_info:
            grove.lock(["feature", "main"])

        assert str(exc_info.value) == "failed: feature"
        assert "first" in exc_info.value.failed["feature"]
        assert find(workspace, "main").locked is True

    def test_unlock(self, workspace, grove):
        grove.lock(["main", "feature"])
        grove.unlock(["main", "feature"])
        assert find(workspace, "main").locked is False
        assert find(workspace, "feature").locked is False

    def test_unlock_not_locked(self, grove):
        with pytest.raises(BatchOperationError) as exc_info:
            grove.unlock(["main"])
        assert "not locked" in exc_info.value.failed["main"]

    def test_unknown_target_changes_nothing(self, workspace, grove):
        with pytest.raises(WorktreeNotFoundError):
            grove.lock(["main", "nope"])
        assert find(workspace, "main").locked is False

    def test_lock_held_by_other_process(self, workspace, grove):
        with open(grove.workspace.lock_path, "w") as f:
            f.write(str(os.getpid()))

        with pytest.raises(WorkspaceLockedError):
            grove.lock(["main"])
        assert find(workspace, "main").locked is False

    def test_workspace_lock_released(self, grove):
        grove.lock(["main"])
        assert not os.path.exists(grove.workspace.lock_path)

    def test_no_targets(self, grove):
        with pytest.raises(UserError):
            grove.lock([])


class TestRemoveCommand:
    """Test removing worktrees."""

    def test_remove(self, workspace, grove):
        grove.remove(["feature"])

        assert not workspace.worktree("feature").exists()
        assert find(workspace, "feature") is None
        assert "feature" in workspace.local_branches()

    def test_remove_with_branch(self, workspace, grove):
        grove.remove(["feature"], delete_branch=True)
        assert "feature" not in workspace.local_branches()

    def test_refuses_current_worktree(self, workspace):
        grove = Grove(str(workspace.worktree("main")))
        with pytest.raises(BatchOperationError) as exc_info:
            grove.remove(["main"])
        assert "current worktree" in exc_info.value.failed["main"]
        assert workspace.worktree("main").is_dir()

    def test_refuses_dirty_without_force(self, workspace, grove):
        (workspace.worktree("feature") / "wip.txt").write_text("wip\n")

        with pytest.raises(BatchOperationError) as exc_info:
            grove.remove(["feature"])

        assert "uncommitted changes" in exc_info.value.failed["feature"]
        assert workspace.worktree("feature").is_dir()

    def test_refuses_locked_without_force(self, workspace, grove):
        grove.lock(["feature"])

        with pytest.raises(BatchOperationError) as exc_info:
            grove.remove(["feature"])

        assert "locked" in exc_info.value.failed["feature"]

    def test_force_removes_dirty_and_locked(self, workspace, grove):
        (workspace.worktree("feature") / "wip.txt").write_text("wip\n")
        grove.lock(["feature"])

        grove.remove(["feature"], force=True)

        assert not workspace.worktree("feature").exists()

    def test_one_failure_does_not_block_others(self, workspace, grove):
        (workspace.worktree("main") / "wip.txt").write_text("wip\n")

        with pytest.raises(BatchOperationError) as exc_info:
            grove.remove(["main", "feature"])

        assert str(exc_info.value) == "failed: main"
        assert not workspace.worktree("feature").exists()
        assert workspace.worktree("main").is_dir()


class TestExecCommand:
    """Test running commands across worktrees."""

    def _touch(self, name):
        return [sys.executable, "-c", f"open({name!r}, 'w').close()"]

    def test_exec_in_targets(self, workspace, grove):
        result = grove.exec(["feature"], self._touch("marker"))

        assert [i.name for i in result.succeeded] == ["feature"]
        assert (workspace.worktree("feature") / "marker").exists()
        assert not (workspace.worktree("main") / "marker").exists()

    def test_exec_all(self, workspace, grove):
        grove.exec([], self._touch("marker"), all_worktrees=True)

        assert (workspace.worktree("feature") / "marker").exists()
        assert (workspace.worktree("main") / "marker").exists()

    def test_non_zero_exit_fails_target(self, grove):
        command = [sys.executable, "-c", "import sys; sys.exit(3)"]

        with pytest.raises(BatchOperationError) as exc_info:
            grove.exec(["main", "feature"], command)

        assert set(exc_info.value.failed) == {"main", "feature"}
        assert "status 3" in exc_info.value.failed["main"]

    def test_fail_fast(self, workspace, grove):
        command = [sys.executable, "-c", "import sys; sys.exit(1)"]

        with pytest.raises(GroveError, match="status 1"):
            grove.exec([], command, all_worktrees=True, fail_fast=True)

    def test_missing_program_fails_target(self, grove):
        with pytest.raises(BatchOperationError):
            grove.exec(["main"], ["grove-test-no-such-program"])

    def test_does_not_take_workspace_lock(self, grove):
        with open(grove.workspace.lock_path, "w") as f:
            f.write(str(os.getpid()))
        grove.exec(["main"], [sys.executable, "-c", "pass"])

    @pytest.mark.parametrize("targets,command,all_worktrees", [
        (["main"], [], False),
        (["main"], ["true"], True),
        ([], ["true"], False),
    ])
    def test_invalid_arguments(self, grove, targets, command, all_worktrees):
        with pytest.raises(UserError):
            grove.exec(targets, command, all_worktrees=all_worktrees)
