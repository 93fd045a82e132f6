"""NotificationService for desktop banners and sound alerts.

Sends a desktop notification (notify-send on Linux, terminal-notifier on
macOS) and plays a sound when a session needs input. Every failure is
logged and reported as False; nothing here raises into the monitor.
"""

import logging
import shutil
import subprocess
import sys
from pathlib import Path

from branchwatch.models.config import NotificationConfig
from branchwatch.models.session import SessionRecord

logger = logging.getLogger(__name__)

APP_NAME = "gclaude"

DEFAULT_SOUND_PATHS = [
    "/usr/share/sounds/freedesktop/stereo/complete.oga",
    "/usr/share/sounds/freedesktop/stereo/message.oga",
    "/usr/share/sounds/freedesktop/stereo/bell.oga",
    "/usr/share/sounds/gnome/default/alerts/drip.ogg",
    "/usr/share/sounds/ubuntu/stereo/message.ogg",
]

# Players to try per file extension, in order. Each entry is the argv prefix.
SOUND_PLAYERS: dict[str, list[list[str]]] = {
    ".ogg": [["paplay"], ["ogg123", "-q"]],
    ".oga": [["paplay"], ["ogg123", "-q"]],
    ".wav": [["aplay", "-q"], ["paplay"]],
    ".mp3": [["mpg123", "-q"]],
}
FALLBACK_PLAYERS = [["paplay"], ["aplay", "-q"], ["afplay"]]


def find_default_sound() -> str | None:
    """Return the first installed system sound, or None."""
    for path in DEFAULT_SOUND_PATHS:
        if Path(path).exists():
            return path
    return None


class NotificationService:
    """Delivers "input needed" alerts.

    Desktop banners and sounds are toggled independently by
    NotificationConfig.
    """

    def __init__(self, config: NotificationConfig | None = None, timeout: int = 5):
        """Initialize the NotificationService.

        Args:
            config: Notification toggles. Defaults to NotificationConfig().
            timeout: Seconds to wait for notifier/player processes.
        """
        self._config = config or NotificationConfig()
        self._timeout = timeout

    @property
    def config(self) -> NotificationConfig:
        """Current notification settings."""
        return self._config

    def notify_input_needed(self, record: SessionRecord) -> bool:
        """Alert the user that a session is waiting for input.

        Args:
            record: The session that needs input.

        Returns:
            True if at least one enabled channel succeeded.
        """
        sent = False
        if self._config.desktop:
            sent = self.notify_desktop(
                f"{APP_NAME}: Input Required",
                f"Branch '{record.branch}' is waiting for input",
            ) or sent
        if self._config.sound:
            sent = self.play_sound(self._config.sound_file) or sent
        return sent

    def test_notification(self) -> bool:
        """Send a test notification to verify the system works."""
        return self.notify_desktop(APP_NAME, "Notifications are working!")

    def notify_desktop(self, title: str, message: str, urgent: bool = False) -> bool:
        """Show a desktop notification.

        Args:
            title: Notification title.
            message: Notification body.
            urgent: Use critical urgency (Linux only).

        Returns:
            True if sent successfully.
        """
        if sys.platform == "darwin":
            cmd = ["terminal-notifier", "-title", title, "-message", message]
        else:
            cmd = [
                "notify-send",
                "-a",
                APP_NAME,
                "-u",
                "critical" if urgent else "normal",
                title,
                message,
            ]

        if self._run(cmd):
            logger.debug(f"Notification sent: {title}")
            return True
        return False

    def play_sound(self, path: str | None = None) -> bool:
        """Play an alert sound.

        Args:
            path: Sound file to play. Falls back to a system sound, and
                finally to the terminal bell.

        Returns:
            True if something was played.
        """
        sound_file = path or find_default_sound()
        if sound_file:
            if not Path(sound_file).exists():
                logger.warning(f"Sound file not found: {sound_file}")
            else:
                suffix = Path(sound_file).suffix.lower()
                for player in SOUND_PLAYERS.get(suffix, []) + FALLBACK_PLAYERS:
                    if shutil.which(player[0]) and self._run([*player, sound_file]):
                        return True
        return self._bell()

    def _bell(self) -> bool:
        """Ring the terminal bell."""
        stream = sys.stdout
        if stream is None:
            return False
        try:
            stream.write("\a")
            stream.flush()
            return True
        except (OSError, ValueError) as e:
            logger.debug(f"Terminal bell failed: {e}")
            return False

    def _run(self, cmd: list[str]) -> bool:
        """Run a notifier or player command, returning success."""
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError:
            logger.warning(f"{cmd[0]} not found, cannot notify")
            return False
        except subprocess.TimeoutExpired:
            logger.warning(f"{cmd[0]} timed out")
            return False
        except OSError as e:
            logger.error(f"{cmd[0]} failed: {e}")
            return False

        if result.returncode != 0:
            logger.warning(f"{cmd[0]} error: {result.stderr.strip()}")
            return False
        return True
