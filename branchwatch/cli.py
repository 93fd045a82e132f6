"""branchwatch command line.

Usage:
    branchwatch start [branch] [--no-worktree] [--detach]
    branchwatch stop [branch] [--all] [--remove-worktree]
    branchwatch attach <branch>
    branchwatch list
    branchwatch cleanup
    branchwatch config show | set <key> <value> | test-notify
    branchwatch version

`start` also launches the background monitor (`branchwatch monitor`),
which sends a notification when a session sits idle at an input prompt.
"""

import argparse
import logging
import os
import signal
import subprocess
import sys
import threading
from datetime import datetime
from pathlib import Path

from branchwatch import __version__
from branchwatch.backends.focus import XdotoolFocusProbe
from branchwatch.backends.tmux import TmuxBackend, TmuxError
from branchwatch.backends.worktree import GitWorktrees, WorktreeError
from branchwatch.models.session import SessionRecord
from branchwatch.services.config_service import ConfigService, get_config_dir
from branchwatch.services.notification_gate import NotificationGate
from branchwatch.services.notification_service import NotificationService
from branchwatch.services.session_manager import SessionError, SessionManager
from branchwatch.services.session_monitor import SessionMonitor
from branchwatch.services.session_registry import RegistryError, SessionRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SESSIONS_FILE = "sessions.yaml"
PID_FILE = "monitor.pid"
MONITOR_LOG = "monitor.log"

# Errors reported as "Error: ..." with exit status 1
USER_ERRORS = (SessionError, RegistryError, WorktreeError, TmuxError, KeyError, ValueError)


# =============================================================================
# Monitor daemon
# =============================================================================


def _is_process_alive(pid: int) -> bool:
    """Check if a process with given PID is still running."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Process exists but we can't signal it


def monitor_pid(config_dir: Path) -> int | None:
    """Return the pid of a running monitor daemon, or None."""
    try:
        pid = int((config_dir / PID_FILE).read_text().strip())
    except (OSError, ValueError):
        return None
    return pid if _is_process_alive(pid) else None


def spawn_monitor(config_dir: Path) -> bool:
    """Launch the monitor daemon in its own session unless one is running.

    Returns:
        True if a new daemon was spawned.
    """
    if monitor_pid(config_dir) is not None:
        return False
    subprocess.Popen(
        [sys.executable, "-m", "branchwatch.cli", "monitor"],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
    return True


def build_monitor(config_service: ConfigService, registry: SessionRegistry) -> SessionMonitor:
    """Wire a SessionMonitor from configuration."""
    config = config_service.get_config()
    backend = TmuxBackend()
    gate = NotificationGate(
        inspector=backend,
        notifier=NotificationService(config.notification),
        focus_probe=XdotoolFocusProbe(),
        idle_threshold_s=config.monitor.idle_threshold_s,
        debounce_secs=config.monitor.debounce_secs,
    )
    return SessionMonitor(registry, backend, gate, config=config.monitor)


def run_monitor(config_dir: Path, config_service: ConfigService) -> int:
    """Run the monitor until SIGINT or SIGTERM."""
    existing = monitor_pid(config_dir)
    if existing is not None and existing != os.getpid():
        logger.info(f"Monitor already running (pid {existing})")
        return 0

    pid_file = config_dir / PID_FILE
    pid_file.write_text(str(os.getpid()))

    stop_requested = threading.Event()

    def handle_signal(signum, frame):
        stop_requested.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    registry = SessionRegistry(config_dir / SESSIONS_FILE)
    monitor = build_monitor(config_service, registry)
    monitor.start()
    try:
        stop_requested.wait()
    finally:
        monitor.stop()
        if monitor_pid(config_dir) == os.getpid():
            pid_file.unlink(missing_ok=True)
    return 0


# =============================================================================
# Commands
# =============================================================================


def _format_activity(last_activity: datetime, now: datetime) -> str:
    elapsed = now - last_activity
    if elapsed.total_seconds() < 3600:
        return f"{int(elapsed.total_seconds())}s ago"
    return last_activity.isoformat(timespec="seconds")


def _truncate_path(path: str, max_len: int = 40) -> str:
    if len(path) <= max_len:
        return path
    return "..." + path[len(path) - max_len + 3 :]


def format_session_table(sessions: list[SessionRecord], now: datetime | None = None) -> str:
    """Render sessions as the `list` table."""
    now = now or datetime.now()
    rows = [("BRANCH", "STATUS", "WORKTREE", "LAST ACTIVITY")]
    for record in sessions:
        status = record.status.value
        if record.needs_input:
            status = "⚠ " + status
        rows.append(
            (
                record.branch,
                status,
                _truncate_path(record.worktree_path),
                _format_activity(record.last_activity, now),
            )
        )

    widths = [max(len(row[i]) for row in rows) for i in range(3)]
    lines = []
    for i, row in enumerate(rows):
        cells = [cell.ljust(widths[j]) for j, cell in enumerate(row[:3])]
        lines.append("  ".join([*cells, row[3]]))
        if i == 0:
            lines.append("-" * 80)
    return "\n".join(lines)


def cmd_start(args, manager: SessionManager, config_dir: Path) -> int:
    cwd = os.getcwd()
    if args.branch:
        branch = args.branch
        create_worktree = not args.no_worktree
    else:
        branch = Path(cwd).name
        create_worktree = False

    record = manager.start(branch, cwd, create_worktree)
    print(f"Started session '{record.branch}'")
    print(f"  Directory: {record.worktree_path}")
    print(f"  tmux: {record.tmux_session}")

    try:
        if spawn_monitor(config_dir):
            print("  Monitor: started (notifications enabled)")
        else:
            print("  Monitor: already running")
    except OSError as e:
        print(f"Warning: failed to start monitor: {e}", file=sys.stderr)

    if args.detach:
        print(
            f"\nSession running in background. "
            f"Use 'branchwatch attach {record.branch}' to attach."
        )
        return 0

    print("\nAttaching to session... (detach with Ctrl+B, D)")
    return manager.attach(record.branch)


def cmd_stop(args, manager: SessionManager) -> int:
    if args.all:
        manager.stop_all(args.remove_worktree)
        print("All sessions stopped")
        return 0
    if not args.branch:
        raise ValueError("branch name required (or use --all)")
    manager.stop(args.branch, args.remove_worktree)
    print(f"Session for branch '{args.branch}' stopped")
    return 0


def cmd_list(manager: SessionManager) -> int:
    sessions = manager.list()
    if not sessions:
        print("No active sessions")
        return 0
    print(format_session_table(sessions))
    return 0


def cmd_cleanup(manager: SessionManager) -> int:
    removed = manager.cleanup()
    if removed == 0:
        print("No stale sessions found")
    else:
        print(f"Removed {removed} stale session(s)")
    return 0


def cmd_config(args, config_service: ConfigService) -> int:
    if args.config_command == "test-notify":
        notifier = NotificationService(config_service.get_config().notification)
        if notifier.test_notification():
            print("Test notification sent")
            return 0
        print("Error: no notification could be sent", file=sys.stderr)
        return 1

    if args.config_command == "set":
        config_service.set_value(args.key, args.value)
        print(f"Set {args.key} = {args.value}")
        return 0

    for key, value in config_service.as_flat_dict().items():
        print(f"{key}: {'' if value is None else value}")
    return 0


# =============================================================================
# Entry point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="branchwatch",
        description="Multi-branch Claude Code session manager",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("version", help="Print version information")

    start = sub.add_parser("start", help="Start a new Claude session")
    start.add_argument("branch", nargs="?", help="Branch to work on (default: current dir)")
    start.add_argument(
        "--no-worktree", action="store_true", help="Don't create a worktree, use current directory"
    )
    start.add_argument(
        "--detach", "-d", action="store_true", help="Start session in background (don't attach)"
    )

    stop = sub.add_parser("stop", help="Stop a Claude session")
    stop.add_argument("branch", nargs="?")
    stop.add_argument("--all", action="store_true", help="Stop all sessions")
    stop.add_argument("--remove-worktree", action="store_true", help="Also remove the worktree")

    attach = sub.add_parser("attach", aliases=["a"], help="Attach to a running session")
    attach.add_argument("branch")

    sub.add_parser("list", aliases=["ls"], help="List all sessions")
    sub.add_parser("cleanup", help="Remove stale sessions")

    config = sub.add_parser("config", help="Manage configuration")
    config_sub = config.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", help="Show current configuration")
    config_set = config_sub.add_parser("set", help="Set a configuration value")
    config_set.add_argument("key")
    config_set.add_argument("value")
    config_sub.add_parser("test-notify", help="Send a test desktop notification")

    # Spawned by `start`
    sub.add_parser("monitor")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line."""
    args = build_parser().parse_args(argv)

    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    config_service = ConfigService(config_dir / "config.yaml")

    if args.command == "monitor":
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format=LOG_FORMAT,
            filename=config_dir / MONITOR_LOG,
        )
        return run_monitor(config_dir, config_service)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT)

    if args.command == "version":
        print(f"branchwatch {__version__}")
        return 0

    try:
        if args.command == "config":
            return cmd_config(args, config_service)

        registry = SessionRegistry(config_dir / SESSIONS_FILE)
        manager = SessionManager(registry, TmuxBackend(), GitWorktrees())

        if args.command == "start":
            return cmd_start(args, manager, config_dir)
        if args.command == "stop":
            return cmd_stop(args, manager)
        if args.command in ("attach", "a"):
            return manager.attach(args.branch)
        if args.command in ("list", "ls"):
            return cmd_list(manager)
        if args.command == "cleanup":
            return cmd_cleanup(manager)
    except USER_ERRORS as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        print(f"Error: {message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
