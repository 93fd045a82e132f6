"""Window focus detection for notification suppression.

Answers "is the terminal window showing this tmux client focused right now?"
by correlating the client's TTY with the X11 active window through the
process tree. The answer is a heuristic, so it is tri-state and callers treat
UNKNOWN as "not focused".
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from enum import Enum

logger = logging.getLogger(__name__)

# Stop walking process ancestry after this many hops
MAX_ANCESTRY_DEPTH = 20

_ROOT_PIDS = ("", "0", "1")


class FocusState(str, Enum):
    """Result of a focus probe."""

    FOCUSED = "focused"
    UNFOCUSED = "unfocused"
    UNKNOWN = "unknown"


class FocusProbe(ABC):
    """Capability that decides whether a TTY's window holds input focus."""

    @abstractmethod
    def focus_state(self, tty: str) -> FocusState:
        """Return the focus state of the window owning tty."""


class NullFocusProbe(FocusProbe):
    """Probe for platforms without focus detection. Always UNKNOWN."""

    def focus_state(self, tty: str) -> FocusState:
        return FocusState.UNKNOWN


def _run(cmd: list[str], timeout: int = 5) -> str | None:
    """Run a command and return stdout, or None on any failure."""
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode != 0:
            return None
        return result.stdout
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        logger.debug(f"{cmd[0]} failed: {e}")
        return None


def get_parent_pid(pid: str) -> str:
    """Return the parent pid of pid, or "" if it cannot be read."""
    out = _run(["ps", "-o", "ppid=", "-p", pid])
    return out.strip() if out else ""


def get_ancestors(pid: str) -> list[str]:
    """Return pid followed by its ancestors, stopping before init."""
    ancestors = []
    current = pid
    for _ in range(MAX_ANCESTRY_DEPTH):
        if current in _ROOT_PIDS:
            break
        ancestors.append(current)
        current = get_parent_pid(current)
    return ancestors


class XdotoolFocusProbe(FocusProbe):
    """X11 focus probe built on xdotool and ps.

    A TTY counts as focused when the active window's process is an ancestor
    of a process on the TTY, or descends from the TTY's terminal emulator:
    the nearest ancestor that is not itself on the TTY. Ancestors above the
    emulator (session and user managers) are shared by every window and
    never count.
    """

    def focus_state(self, tty: str) -> FocusState:
        """Determine whether the window owning tty is focused.

        Args:
            tty: Client TTY path (e.g., "/dev/pts/3").

        Returns:
            FOCUSED, UNFOCUSED, or UNKNOWN when any probe step fails.
        """
        if not tty:
            return FocusState.UNKNOWN

        active_out = _run(["xdotool", "getactivewindow", "getwindowpid"])
        if active_out is None:
            return FocusState.UNKNOWN
        active_pid = active_out.strip()
        if not active_pid:
            return FocusState.UNKNOWN

        ps_out = _run(["ps", "-o", "pid=", "-t", tty.removeprefix("/dev/")])
        if ps_out is None:
            return FocusState.UNKNOWN
        tty_pids = ps_out.split()
        if not tty_pids:
            return FocusState.UNKNOWN

        on_tty = set(tty_pids)
        emulators = set()
        for pid in tty_pids:
            chain = get_ancestors(pid)
            if active_pid in chain:
                return FocusState.FOCUSED
            emulator = next((p for p in chain if p not in on_tty), None)
            if emulator is not None:
                emulators.add(emulator)

        if emulators.intersection(get_ancestors(active_pid)):
            return FocusState.FOCUSED
        return FocusState.UNFOCUSED
