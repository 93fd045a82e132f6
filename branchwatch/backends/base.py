"""Abstract base classes for terminal backend implementations.

Defines the interface the session monitor and session manager consume.
"""

from abc import ABC, abstractmethod


class PaneInspector(ABC):
    """Read-only view of hosted terminal sessions.

    This is everything the monitor needs:
    - Check whether a session still exists
    - Capture its visible output
    - Ask whether a client is attached and when it last typed
    """

    @abstractmethod
    def session_exists(self, name: str) -> bool:
        """Check whether a session exists.

        Args:
            name: The session name.

        Returns:
            True if the session is running.

        Raises:
            TmuxError: If the multiplexer itself could not be queried.
        """

    @abstractmethod
    def capture_pane(self, name: str, lines: int = 50) -> str:
        """Capture the last lines of a session's buffer.

        Args:
            name: The session name.
            lines: Number of lines to capture from scrollback.

        Returns:
            Captured text.

        Raises:
            TmuxError: If the capture failed.
        """

    @abstractmethod
    def is_attached(self, name: str) -> bool:
        """Return True if at least one client is attached to the session."""

    @abstractmethod
    def attached_client_tty(self, name: str) -> str:
        """Return the TTY of the attached client, or "" if none."""

    @abstractmethod
    def seconds_since_last_input(self, name: str) -> int | None:
        """Seconds since an attached client last sent input.

        Returns:
            Seconds, or None if it cannot be determined.
        """


class TerminalBackend(PaneInspector):
    """Full terminal multiplexer interface used by foreground commands."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., 'tmux')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend is installed."""

    @abstractmethod
    def create_session(self, name: str, cwd: str, command: str | None = None) -> None:
        """Create a detached session running command in cwd."""

    @abstractmethod
    def kill_session(self, name: str) -> None:
        """Kill a session."""

    @abstractmethod
    def attach_session(self, name: str) -> int:
        """Attach the current terminal to a session, returning the exit code."""

    @abstractmethod
    def list_sessions(self) -> list[str]:
        """List the names of all running sessions."""
