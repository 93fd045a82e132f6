"""Tests for the tmux backend."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from branchwatch.backends.tmux import TmuxBackend, TmuxError, _run_tmux


@pytest.fixture
def mock_run():
    """Patch _run_tmux; tests set return values per command."""
    with patch("branchwatch.backends.tmux._run_tmux") as mock:
        mock.return_value = (0, "", "")
        yield mock


@pytest.fixture
def backend():
    return TmuxBackend(timeout=3)


class TestRunTmux:
    """Tests for the _run_tmux helper."""

    @patch("branchwatch.backends.tmux.subprocess.run")
    def test_returns_output(self, mock_subprocess):
        mock_subprocess.return_value = MagicMock(returncode=0, stdout="out", stderr="")
        assert _run_tmux("list-sessions", timeout=4) == (0, "out", "")
        mock_subprocess.assert_called_once_with(
            ["tmux", "list-sessions"], capture_output=True, text=True, timeout=4
        )

    @patch("branchwatch.backends.tmux.subprocess.run")
    def test_timeout(self, mock_subprocess):
        mock_subprocess.side_effect = subprocess.TimeoutExpired("tmux", 10)
        assert _run_tmux("has-session")[0] == -1

    @patch("branchwatch.backends.tmux.subprocess.run")
    def test_tmux_missing(self, mock_subprocess):
        mock_subprocess.side_effect = FileNotFoundError()
        assert _run_tmux("has-session") == (-1, "", "tmux not found")


class TestAvailability:
    """Tests for is_available and backend_name."""

    def test_backend_name(self, backend):
        assert backend.backend_name == "tmux"

    @patch("branchwatch.backends.tmux.shutil.which", return_value="/usr/bin/tmux")
    def test_available(self, _which, backend):
        assert backend.is_available() is True

    @patch("branchwatch.backends.tmux.shutil.which", return_value=None)
    def test_not_available(self, _which, backend):
        assert backend.is_available() is False


class TestSessionExists:
    """Tests for session_exists."""

    def test_exists(self, backend, mock_run):
        assert backend.session_exists("gclaude-main") is True
        mock_run.assert_called_once_with("has-session", "-t", "gclaude-main", timeout=3)

    def test_missing(self, backend, mock_run):
        mock_run.return_value = (1, "", "can't find session")
        assert backend.session_exists("gclaude-main") is False

    def test_undecidable_raises(self, backend, mock_run):
        mock_run.return_value = (-1, "", "Command timed out")
        with pytest.raises(TmuxError, match="timed out"):
            backend.session_exists("gclaude-main")


class TestCreateAndKill:
    """Tests for session creation and teardown."""

    def test_create_with_command_enables_mouse(self, backend, mock_run):
        backend.create_session("gclaude-x", "/work/x", "claude")

        calls = [c.args for c in mock_run.call_args_list]
        assert calls[0] == ("new-session", "-d", "-s", "gclaude-x", "-c", "/work/x", "claude")
        assert calls[1] == ("set-option", "-t", "gclaude-x", "mouse", "on")

    def test_create_without_command(self, backend, mock_run):
        backend.create_session("gclaude-x", "/work/x")
        assert mock_run.call_args_list[0].args[-1] == "/work/x"

    def test_create_failure_raises(self, backend, mock_run):
        mock_run.return_value = (1, "", "duplicate session: gclaude-x")
        with pytest.raises(TmuxError) as exc_info:
            backend.create_session("gclaude-x", "/work/x")
        assert exc_info.value.command == "new-session"
        assert exc_info.value.detail == "duplicate session: gclaude-x"

    def test_mouse_failure_is_not_fatal(self, backend, mock_run):
        mock_run.side_effect = [(0, "", ""), (1, "", "unknown option")]
        backend.create_session("gclaude-x", "/work/x")

    def test_kill(self, backend, mock_run):
        backend.kill_session("gclaude-x")
        mock_run.assert_called_once_with("kill-session", "-t", "gclaude-x", timeout=3)

    def test_kill_failure_raises(self, backend, mock_run):
        mock_run.return_value = (1, "", "no such session")
        with pytest.raises(TmuxError):
            backend.kill_session("gclaude-x")


class TestAttach:
    """Tests for attach_session."""

    @patch("branchwatch.backends.tmux.subprocess.run")
    def test_attach_returns_exit_code(self, mock_subprocess, backend):
        mock_subprocess.return_value = MagicMock(returncode=0)
        assert backend.attach_session("gclaude-x") == 0
        mock_subprocess.assert_called_once_with(["tmux", "attach-session", "-t", "gclaude-x"])

    @patch("branchwatch.backends.tmux.subprocess.run", side_effect=FileNotFoundError())
    def test_attach_without_tmux(self, _mock_subprocess, backend):
        with pytest.raises(TmuxError):
            backend.attach_session("gclaude-x")


class TestCapture:
    """Tests for capture_pane."""

    def test_capture(self, backend, mock_run):
        mock_run.return_value = (0, "line1\nline2\n", "")
        assert backend.capture_pane("gclaude-x", lines=50) == "line1\nline2\n"
        mock_run.assert_called_once_with(
            "capture-pane", "-t", "gclaude-x", "-p", "-S", "-50", timeout=3
        )

    def test_capture_failure_raises(self, backend, mock_run):
        mock_run.return_value = (1, "", "can't find pane")
        with pytest.raises(TmuxError):
            backend.capture_pane("gclaude-x")


class TestListSessions:
    """Tests for list_sessions."""

    def test_lists_names(self, backend, mock_run):
        mock_run.return_value = (0, "gclaude-a\nwork\n", "")
        assert backend.list_sessions() == ["gclaude-a", "work"]

    def test_no_server(self, backend, mock_run):
        mock_run.return_value = (1, "", "no server running")
        assert backend.list_sessions() == []

    def test_error_raises(self, backend, mock_run):
        mock_run.return_value = (-1, "", "tmux not found")
        with pytest.raises(TmuxError):
            backend.list_sessions()


class TestClients:
    """Tests for attachment and keystroke queries."""

    def test_attached_tty(self, backend, mock_run):
        mock_run.return_value = (0, "/dev/pts/3\n/dev/pts/7\n", "")
        assert backend.is_attached("gclaude-x") is True
        assert backend.attached_client_tty("gclaude-x") == "/dev/pts/3"

    def test_not_attached(self, backend, mock_run):
        mock_run.return_value = (0, "", "")
        assert backend.is_attached("gclaude-x") is False

    def test_list_clients_failure(self, backend, mock_run):
        mock_run.return_value = (1, "", "no server")
        assert backend.attached_client_tty("gclaude-x") == ""

    @patch("branchwatch.backends.tmux.time.time", return_value=1_000_010.4)
    def test_seconds_since_last_input(self, _time, backend, mock_run):
        mock_run.return_value = (0, "1000000\n", "")
        assert backend.seconds_since_last_input("gclaude-x") == 10

    def test_no_client_gives_none(self, backend, mock_run):
        mock_run.return_value = (0, "", "")
        assert backend.seconds_since_last_input("gclaude-x") is None

    def test_unparseable_activity_gives_none(self, backend, mock_run):
        mock_run.return_value = (0, "soon\n", "")
        assert backend.seconds_since_last_input("gclaude-x") is None
