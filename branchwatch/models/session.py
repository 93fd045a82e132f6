"""Session model - a Claude Code session running in a tmux session."""

import re
import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

# tmux session names are built from branch names with everything outside
# this set replaced by "-"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")

SESSION_PREFIX = "gclaude-"


class SessionStatus(str, Enum):
    """Persisted session status.

    Transitions (driven by SessionMonitor):
    - RUNNING → WAITING_INPUT (idle at a prompt)
    - RUNNING → IDLE (idle, no prompt visible)
    - WAITING_INPUT/IDLE → RUNNING (output changed)
    - any → STOPPED (tmux session gone)
    """

    RUNNING = "running"
    """Output is changing, or has not been idle long enough."""

    WAITING_INPUT = "waiting_input"
    """Idle at a prompt that looks like it needs a human."""

    IDLE = "idle"
    """Idle without a prompt-shaped tail."""

    STOPPED = "stopped"
    """Backing tmux session no longer exists."""


def sanitize_branch(branch: str) -> str:
    """Replace characters tmux and the filesystem dislike with '-'."""
    return _UNSAFE_CHARS.sub("-", branch)


def session_handle(branch: str) -> str:
    """Return the tmux session name for a branch.

    Args:
        branch: Git branch name.

    Returns:
        Deterministic tmux session name (e.g., "gclaude-feature-login").
    """
    return SESSION_PREFIX + sanitize_branch(branch)


def new_session_id() -> str:
    """Generate a short opaque session identifier."""
    return str(uuid.uuid4())[:8]


class SessionRecord(BaseModel):
    """A monitored Claude Code session bound to one branch.

    Records are owned by SessionRegistry. Callers always receive copies, so
    mutating a record has no effect until it is passed to
    SessionRegistry.update().
    """

    id: str = Field(default_factory=new_session_id, description="Short unique session token")
    branch: str = Field(..., description="Branch the session works on")
    repo_path: str = Field(..., description="Repository root path")
    worktree_path: str = Field(
        ...,
        description="Directory the session runs in (linked worktree or repo root)",
    )
    tmux_session: str = Field(..., description="tmux session name derived from the branch")
    status: SessionStatus = Field(default=SessionStatus.RUNNING)
    needs_input: bool = Field(
        default=False,
        description="Whether the session is idle at an input prompt",
    )
    created_at: datetime = Field(default_factory=datetime.now)
    last_activity: datetime = Field(default_factory=datetime.now)

    @classmethod
    def new(
        cls,
        branch: str,
        repo_path: str,
        worktree_path: str,
        now: datetime | None = None,
    ) -> "SessionRecord":
        """Create a fresh RUNNING record for a branch.

        Args:
            branch: Git branch name.
            repo_path: Repository root.
            worktree_path: Directory the session runs in.
            now: Creation time. Defaults to datetime.now().

        Returns:
            The new SessionRecord.
        """
        now = now or datetime.now()
        return cls(
            branch=branch,
            repo_path=repo_path,
            worktree_path=worktree_path,
            tmux_session=session_handle(branch),
            created_at=now,
            last_activity=now,
        )

    @property
    def is_live(self) -> bool:
        """True unless the session has been marked STOPPED."""
        return self.status != SessionStatus.STOPPED

    def update_activity(self, now: datetime | None = None) -> None:
        """Record that the session produced output."""
        self.last_activity = now or datetime.now()

    def set_needs_input(self, needs: bool) -> None:
        """Set the needs-input flag and keep status consistent with it."""
        self.needs_input = needs
        if needs:
            self.status = SessionStatus.WAITING_INPUT
        elif self.status == SessionStatus.WAITING_INPUT:
            self.status = SessionStatus.RUNNING
