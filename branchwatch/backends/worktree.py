"""Git worktree operations.

Each branch gets its own linked working tree next to the repository, in
"<parent>/<repo>-worktrees/<sanitized-branch>".
"""

import logging
import subprocess
from pathlib import Path

from branchwatch.models.session import sanitize_branch

logger = logging.getLogger(__name__)


class WorktreeError(Exception):
    """Raised when a git worktree operation fails."""


class GitWorktrees:
    """Manages linked working trees for branches."""

    def __init__(self, timeout: int = 30):
        self._timeout = timeout

    def _run_git(self, repo_path: str, args: list[str]) -> subprocess.CompletedProcess:
        """Run a git command in the specified directory.

        Args:
            repo_path: Path to run git in.
            args: Git command arguments.

        Returns:
            The completed process.

        Raises:
            WorktreeError: If git could not be run.
        """
        try:
            return subprocess.run(
                ["git", "-C", str(repo_path), *args],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
            logger.debug(f"Git command failed: {e}")
            raise WorktreeError(f"git {args[0]} failed: {e}") from e

    def repo_root(self, path: str) -> str:
        """Return the top-level directory of the repository containing path.

        Raises:
            WorktreeError: If path is not inside a git repository.
        """
        result = self._run_git(path, ["rev-parse", "--show-toplevel"])
        if result.returncode != 0:
            raise WorktreeError(f"not a git repository: {path}")
        return result.stdout.strip()

    @staticmethod
    def worktree_dir(repo_root: str) -> str:
        """Directory holding all linked worktrees of a repository."""
        root = Path(repo_root)
        return str(root.parent / f"{root.name}-worktrees")

    def worktree_path(self, repo_root: str, branch: str) -> str:
        """Path of the linked worktree for branch."""
        return str(Path(self.worktree_dir(repo_root)) / sanitize_branch(branch))

    def exists(self, repo_root: str, branch: str) -> bool:
        """Return True if the worktree directory for branch exists."""
        return Path(self.worktree_path(repo_root, branch)).is_dir()

    def branch_exists(self, repo_root: str, branch: str) -> bool:
        """Check for a local branch, then for origin/<branch>.

        Raises:
            WorktreeError: If git failed for a reason other than a missing ref.
        """
        local = self._run_git(
            repo_root, ["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"]
        )
        if local.returncode == 0:
            return True
        if local.returncode != 1:
            raise WorktreeError(f"failed to check branch '{branch}': {local.stderr.strip()}")

        remote = self._run_git(
            repo_root, ["show-ref", "--verify", "--quiet", f"refs/remotes/origin/{branch}"]
        )
        return remote.returncode == 0

    def create(self, repo_root: str, branch: str) -> str:
        """Create a linked worktree for branch, creating the branch if needed.

        Args:
            repo_root: Repository root.
            branch: Branch to check out.

        Returns:
            The new worktree path.

        Raises:
            WorktreeError: If the worktree could not be created.
        """
        try:
            Path(self.worktree_dir(repo_root)).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorktreeError(f"failed to create worktree directory: {e}") from e

        path = self.worktree_path(repo_root, branch)
        if self.branch_exists(repo_root, branch):
            args = ["worktree", "add", path, branch]
        else:
            args = ["worktree", "add", "-b", branch, path]

        result = self._run_git(repo_root, args)
        if result.returncode != 0:
            raise WorktreeError(f"failed to create worktree: {result.stderr.strip()}")

        logger.info(f"Created worktree for {branch} at {path}")
        return path

    def remove(self, repo_root: str, branch: str) -> None:
        """Force-remove the linked worktree for branch.

        Raises:
            WorktreeError: If git refused.
        """
        path = self.worktree_path(repo_root, branch)
        result = self._run_git(repo_root, ["worktree", "remove", path, "--force"])
        if result.returncode != 0:
            raise WorktreeError(f"failed to remove worktree: {result.stderr.strip()}")
        logger.info(f"Removed worktree {path}")
