"""SessionManager - foreground session lifecycle operations.

Starts and stops Claude Code sessions: one tmux session per branch, usually
running in the branch's own linked worktree.
"""

import logging

from branchwatch.backends.base import TerminalBackend
from branchwatch.backends.worktree import GitWorktrees, WorktreeError
from branchwatch.models.session import SessionRecord, SessionStatus, session_handle
from branchwatch.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

DEFAULT_AGENT_COMMAND = "claude"


class SessionError(Exception):
    """Base class for session lifecycle errors."""


class SessionExistsError(SessionError):
    """Raised when starting a branch whose session is still running."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"session for branch '{branch}' already exists")


class SessionNotFoundError(SessionError):
    """Raised when no session is registered for a branch."""

    def __init__(self, branch: str, detail: str | None = None):
        self.branch = branch
        super().__init__(detail or f"no session found for branch '{branch}'")


class SessionManager:
    """Creates, attaches, lists, and tears down sessions."""

    def __init__(
        self,
        registry: SessionRegistry,
        backend: TerminalBackend,
        worktrees: GitWorktrees | None = None,
        agent_command: str = DEFAULT_AGENT_COMMAND,
    ):
        """Initialize the SessionManager.

        Args:
            registry: Persisted session records.
            backend: Terminal multiplexer.
            worktrees: Git worktree operations.
            agent_command: Command run inside each new tmux session.
        """
        self._registry = registry
        self._backend = backend
        self._worktrees = worktrees or GitWorktrees()
        self._agent_command = agent_command

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def _tmux_alive(self, name: str) -> bool:
        return self._backend.session_exists(name)

    def start(self, branch: str, repo_path: str, create_worktree: bool = True) -> SessionRecord:
        """Start a session for a branch.

        Args:
            branch: Branch to work on.
            repo_path: Any path inside the repository.
            create_worktree: Run in a linked worktree (created if missing)
                rather than the repository root.

        Returns:
            The registered SessionRecord.

        Raises:
            SessionExistsError: If the branch's tmux session is still running.
            SessionError: If the terminal backend is not installed.
            WorktreeError: If the repository or worktree could not be set up.
            TmuxError: If the tmux session could not be created.
        """
        if not self._backend.is_available():
            raise SessionError(f"{self._backend.backend_name} is not installed")

        existing = self._registry.find_by_branch(branch)
        if existing is not None:
            if self._tmux_alive(existing.tmux_session):
                raise SessionExistsError(branch)
            self._registry.remove(existing.id)
            logger.info(f"Dropped stale record {existing.id} for {branch}")
        elif self._tmux_alive(session_handle(branch)):
            raise SessionExistsError(branch)

        repo_root = self._worktrees.repo_root(repo_path)
        if create_worktree:
            if self._worktrees.exists(repo_root, branch):
                session_path = self._worktrees.worktree_path(repo_root, branch)
            else:
                session_path = self._worktrees.create(repo_root, branch)
        else:
            session_path = repo_root

        record = SessionRecord.new(branch, repo_root, session_path)
        self._backend.create_session(record.tmux_session, session_path, self._agent_command)

        try:
            self._registry.add(record)
        except Exception:
            self._backend.kill_session(record.tmux_session)
            raise

        logger.info(f"Started session {record.id} for {branch} in {session_path}")
        return record

    def stop(self, branch: str, remove_worktree: bool = False) -> None:
        """Stop the session for a branch and forget it.

        Args:
            branch: Branch whose session to stop.
            remove_worktree: Also remove the linked worktree.

        Raises:
            SessionNotFoundError: If no session is registered for branch.
        """
        record = self._registry.find_by_branch(branch)
        if record is None:
            raise SessionNotFoundError(branch)

        if self._tmux_alive(record.tmux_session):
            self._backend.kill_session(record.tmux_session)

        if remove_worktree and record.worktree_path != record.repo_path:
            try:
                self._worktrees.remove(record.repo_path, record.branch)
            except WorktreeError as e:
                logger.warning(f"Could not remove worktree for {branch}: {e}")

        self._registry.remove(record.id)
        logger.info(f"Stopped session for {branch}")

    def stop_all(self, remove_worktrees: bool = False) -> None:
        """Stop every registered session.

        Keeps going after a failure and re-raises the last error at the end.
        """
        last_error: Exception | None = None
        for record in self._registry.get_all():
            try:
                self.stop(record.branch, remove_worktrees)
            except Exception as e:
                logger.error(f"Failed to stop {record.branch}: {e}")
                last_error = e
        if last_error is not None:
            raise last_error

    def attach(self, branch: str) -> int:
        """Attach the current terminal to a branch's session.

        Returns:
            tmux's exit code once the user detaches.

        Raises:
            SessionNotFoundError: If no session is registered, or its tmux
                session is gone (the stale record is removed).
        """
        record = self._registry.find_by_branch(branch)
        if record is None:
            raise SessionNotFoundError(branch)

        if not self._tmux_alive(record.tmux_session):
            self._registry.remove(record.id)
            raise SessionNotFoundError(branch, "tmux session no longer exists")

        return self._backend.attach_session(record.tmux_session)

    def list(self) -> list[SessionRecord]:
        """Return all sessions, marking those whose tmux session is gone.

        The returned records are copies; nothing is persisted.
        """
        sessions = self._registry.get_all()
        if not sessions:
            return sessions
        running = set(self._backend.list_sessions())
        for record in sessions:
            if record.tmux_session not in running:
                record.status = SessionStatus.STOPPED
        return sessions

    def cleanup(self) -> int:
        """Remove records whose tmux session no longer exists.

        Returns:
            Number of records removed.
        """
        sessions = self._registry.get_all()
        if not sessions:
            return 0
        removed = 0
        running = set(self._backend.list_sessions())
        for record in sessions:
            if record.tmux_session not in running:
                self._registry.remove(record.id)
                removed += 1
        if removed:
            logger.info(f"Cleaned up {removed} stale session(s)")
        return removed
