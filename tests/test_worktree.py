"""Tests for GitWorktrees."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from branchwatch.backends.worktree import GitWorktrees, WorktreeError


def completed(returncode=0, stdout="", stderr=""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def worktrees():
    return GitWorktrees(timeout=7)


class TestPaths:
    """Tests for worktree path layout."""

    def test_worktree_dir_is_sibling_of_repo(self):
        assert GitWorktrees.worktree_dir("/home/me/app") == "/home/me/app-worktrees"

    def test_worktree_path_uses_sanitized_branch(self, worktrees):
        assert (
            worktrees.worktree_path("/home/me/app", "feature/login")
            == "/home/me/app-worktrees/feature-login"
        )

    def test_exists(self, worktrees, temp_dir):
        repo = temp_dir / "app"
        repo.mkdir()
        assert worktrees.exists(str(repo), "main") is False
        (temp_dir / "app-worktrees" / "main").mkdir(parents=True)
        assert worktrees.exists(str(repo), "main") is True


class TestRepoRoot:
    """Tests for repo_root."""

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_repo_root(self, mock_run, worktrees):
        mock_run.return_value = completed(stdout="/home/me/app\n")
        assert worktrees.repo_root("/home/me/app/src") == "/home/me/app"
        mock_run.assert_called_once_with(
            ["git", "-C", "/home/me/app/src", "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            timeout=7,
        )

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_not_a_repo(self, mock_run, worktrees):
        mock_run.return_value = completed(128, stderr="fatal: not a git repository")
        with pytest.raises(WorktreeError, match="not a git repository"):
            worktrees.repo_root("/tmp")

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_git_missing(self, mock_run, worktrees):
        mock_run.side_effect = FileNotFoundError("git")
        with pytest.raises(WorktreeError):
            worktrees.repo_root("/tmp")

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_git_timeout(self, mock_run, worktrees):
        mock_run.side_effect = subprocess.TimeoutExpired("git", 7)
        with pytest.raises(WorktreeError):
            worktrees.repo_root("/tmp")


class TestBranchExists:
    """Tests for branch_exists."""

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_local_branch(self, mock_run, worktrees):
        mock_run.return_value = completed(0)
        assert worktrees.branch_exists("/repo", "main") is True
        assert mock_run.call_count == 1

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_remote_branch(self, mock_run, worktrees):
        mock_run.side_effect = [completed(1), completed(0)]
        assert worktrees.branch_exists("/repo", "feature") is True
        assert "refs/remotes/origin/feature" in mock_run.call_args.args[0]

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_missing_branch(self, mock_run, worktrees):
        mock_run.side_effect = [completed(1), completed(1)]
        assert worktrees.branch_exists("/repo", "feature") is False

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_git_error(self, mock_run, worktrees):
        mock_run.return_value = completed(128, stderr="fatal: bad repo")
        with pytest.raises(WorktreeError):
            worktrees.branch_exists("/repo", "feature")


class TestCreateRemove:
    """Tests for create and remove."""

    def test_create_existing_branch(self, worktrees, temp_dir):
        repo = str(temp_dir / "app")
        with patch("branchwatch.backends.worktree.subprocess.run") as mock_run:
            mock_run.side_effect = [completed(0), completed(0)]
            path = worktrees.create(repo, "feature/x")

        assert path == str(temp_dir / "app-worktrees" / "feature-x")
        assert (temp_dir / "app-worktrees").is_dir()
        assert mock_run.call_args.args[0][-4:] == ["worktree", "add", path, "feature/x"]

    def test_create_new_branch(self, worktrees, temp_dir):
        repo = str(temp_dir / "app")
        with patch("branchwatch.backends.worktree.subprocess.run") as mock_run:
            mock_run.side_effect = [completed(1), completed(1), completed(0)]
            path = worktrees.create(repo, "feature/x")

        assert mock_run.call_args.args[0][-5:] == ["worktree", "add", "-b", "feature/x", path]

    def test_create_failure(self, worktrees, temp_dir):
        with patch("branchwatch.backends.worktree.subprocess.run") as mock_run:
            mock_run.side_effect = [completed(0), completed(128, stderr="already checked out")]
            with pytest.raises(WorktreeError, match="already checked out"):
                worktrees.create(str(temp_dir / "app"), "main")

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_remove(self, mock_run, worktrees):
        mock_run.return_value = completed(0)
        worktrees.remove("/home/me/app", "feature/x")
        assert mock_run.call_args.args[0] == [
            "git",
            "-C",
            "/home/me/app",
            "worktree",
            "remove",
            "/home/me/app-worktrees/feature-x",
            "--force",
        ]

    @patch("branchwatch.backends.worktree.subprocess.run")
    def test_remove_failure(self, mock_run, worktrees):
        mock_run.return_value = completed(1, stderr="not a working tree")
        with pytest.raises(WorktreeError):
            worktrees.remove("/home/me/app", "feature/x")
