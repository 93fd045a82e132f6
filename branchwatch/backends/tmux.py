"""tmux terminal backend.

Every tmux invocation goes through _run_tmux so that a hung tmux server can
never block the monitor for longer than the command timeout.
"""

import logging
import shutil
import subprocess
import time

from branchwatch.backends.base import TerminalBackend

logger = logging.getLogger(__name__)

# tmux exits with 1 for "no such session" and "no server running"
_NOT_FOUND = 1


class TmuxError(Exception):
    """Raised when a tmux command fails."""

    def __init__(self, command: str, detail: str = ""):
        self.command = command
        self.detail = detail.strip()
        message = f"tmux {command} failed"
        if self.detail:
            message = f"{message}: {self.detail}"
        super().__init__(message)


def _run_tmux(*args: str, timeout: int = 10) -> tuple[int, str, str]:
    """Run a tmux command.

    Args:
        *args: Command arguments to pass to tmux.
        timeout: Command timeout in seconds.

    Returns:
        Tuple of (return_code, stdout, stderr). Return code is -1 when tmux
        could not be run at all.
    """
    cmd = ["tmux", *args]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return (result.returncode, result.stdout or "", result.stderr or "")
    except subprocess.TimeoutExpired:
        return (-1, "", "Command timed out")
    except FileNotFoundError:
        return (-1, "", "tmux not found")


class TmuxBackend(TerminalBackend):
    """tmux-based terminal backend."""

    def __init__(self, timeout: int = 10):
        """Initialize the tmux backend.

        Args:
            timeout: Per-command timeout in seconds.
        """
        self._timeout = timeout

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "tmux"

    def _run(self, *args: str) -> tuple[int, str, str]:
        return _run_tmux(*args, timeout=self._timeout)

    def is_available(self) -> bool:
        """Check if tmux is installed.

        Returns:
            True if the tmux binary is on PATH.
        """
        return shutil.which("tmux") is not None

    def session_exists(self, name: str) -> bool:
        """Check whether a tmux session exists.

        Args:
            name: The session name.

        Returns:
            True if it exists, False if tmux reports it missing.

        Raises:
            TmuxError: If tmux could not be run or timed out.
        """
        returncode, _, stderr = self._run("has-session", "-t", name)
        if returncode == 0:
            return True
        if returncode == _NOT_FOUND:
            return False
        raise TmuxError("has-session", stderr)

    def create_session(self, name: str, cwd: str, command: str | None = None) -> None:
        """Create a detached tmux session with mouse scrolling enabled.

        Args:
            name: The session name.
            cwd: Working directory for the session.
            command: Command to run instead of the default shell.

        Raises:
            TmuxError: If the session could not be created.
        """
        args = ["new-session", "-d", "-s", name, "-c", cwd]
        if command:
            args.append(command)

        returncode, _, stderr = self._run(*args)
        if returncode != 0:
            raise TmuxError("new-session", stderr)

        self.set_option(name, "mouse", "on")
        logger.info(f"Created tmux session {name} in {cwd}")

    def set_option(self, name: str, option: str, value: str) -> bool:
        """Set a session option. Returns True on success."""
        returncode, _, stderr = self._run("set-option", "-t", name, option, value)
        if returncode != 0:
            logger.debug(f"set-option {option} failed for {name}: {stderr.strip()}")
        return returncode == 0

    def kill_session(self, name: str) -> None:
        """Kill a tmux session.

        Raises:
            TmuxError: If tmux refused to kill it.
        """
        returncode, _, stderr = self._run("kill-session", "-t", name)
        if returncode != 0:
            raise TmuxError("kill-session", stderr)
        logger.info(f"Killed tmux session {name}")

    def attach_session(self, name: str) -> int:
        """Attach the current terminal to a session.

        Runs without a timeout and with inherited stdio since the user
        interacts with it directly.

        Returns:
            tmux exit code.
        """
        try:
            return subprocess.run(["tmux", "attach-session", "-t", name]).returncode
        except FileNotFoundError as e:
            raise TmuxError("attach-session", "tmux not found") from e

    def capture_pane(self, name: str, lines: int = 50) -> str:
        """Capture the last lines of a tmux pane.

        Args:
            name: The session name.
            lines: Number of lines to capture.

        Returns:
            Captured text.

        Raises:
            TmuxError: If the capture failed.
        """
        returncode, stdout, stderr = self._run(
            "capture-pane", "-t", name, "-p", "-S", str(-lines)
        )
        if returncode != 0:
            raise TmuxError("capture-pane", stderr)
        return stdout

    def list_sessions(self) -> list[str]:
        """List all tmux session names.

        Returns:
            Session names, empty when no server is running.
        """
        returncode, stdout, stderr = self._run("list-sessions", "-F", "#{session_name}")
        if returncode == _NOT_FOUND:
            return []
        if returncode != 0:
            raise TmuxError("list-sessions", stderr)
        return [line for line in stdout.strip().split("\n") if line]

    def _client_field(self, name: str, field: str) -> str:
        """Return a list-clients format field for the first client, or ""."""
        returncode, stdout, _ = self._run("list-clients", "-t", name, "-F", field)
        if returncode != 0:
            return ""
        lines = stdout.strip().split("\n")
        return lines[0].strip() if lines else ""

    def is_attached(self, name: str) -> bool:
        """Return True if any client is attached to the session."""
        return self._client_field(name, "#{client_tty}") != ""

    def attached_client_tty(self, name: str) -> str:
        """Return the first attached client's TTY (e.g., "/dev/pts/3"), or ""."""
        return self._client_field(name, "#{client_tty}")

    def seconds_since_last_input(self, name: str) -> int | None:
        """Seconds since the attached client last sent input.

        Uses tmux's #{client_activity} unix timestamp.

        Returns:
            Elapsed seconds, or None when no client is attached or the value
            cannot be parsed.
        """
        activity = self._client_field(name, "#{client_activity}")
        if not activity:
            return None
        try:
            activity_time = int(activity)
        except ValueError:
            logger.debug(f"Unparseable client_activity for {name}: {activity!r}")
            return None
        return int(time.time()) - activity_time
