"""Terminal, git, and window-focus backends."""

from branchwatch.backends.base import PaneInspector, TerminalBackend
from branchwatch.backends.focus import (
    FocusProbe,
    FocusState,
    NullFocusProbe,
    XdotoolFocusProbe,
)
from branchwatch.backends.tmux import TmuxBackend, TmuxError
from branchwatch.backends.worktree import GitWorktrees, WorktreeError

__all__ = [
    "FocusProbe",
    "FocusState",
    "GitWorktrees",
    "NullFocusProbe",
    "PaneInspector",
    "TerminalBackend",
    "TmuxBackend",
    "TmuxError",
    "WorktreeError",
    "XdotoolFocusProbe",
]
