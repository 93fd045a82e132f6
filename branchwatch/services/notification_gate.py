"""NotificationGate - decides whether an "input needed" alert goes out.

Suppression checks, in order:
1. Recent keystroke: the attached client typed within the idle threshold.
2. Focus: a client is attached and its terminal window is focused.
3. Debounce: this session was alerted less than debounce_secs ago.

A check can only veto an alert. Probes that fail or cannot decide count as
"not suppressed", so a broken probe never swallows a real alert.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from branchwatch.backends.base import PaneInspector
from branchwatch.backends.focus import FocusProbe, FocusState, NullFocusProbe
from branchwatch.models.session import SessionRecord
from branchwatch.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class GateDecision(str, Enum):
    """Outcome of NotificationGate.evaluate()."""

    DISPATCHED = "dispatched"
    RECENT_INPUT = "recent_input"
    FOCUSED = "focused"
    DEBOUNCED = "debounced"

    @property
    def suppressed(self) -> bool:
        return self != GateDecision.DISPATCHED


class NotificationGate:
    """Suppression logic in front of the NotificationService."""

    def __init__(
        self,
        inspector: PaneInspector,
        notifier: NotificationService,
        focus_probe: FocusProbe | None = None,
        idle_threshold_s: float = 2,
        debounce_secs: float = 30,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the gate.

        Args:
            inspector: Source of attachment and keystroke information.
            notifier: Delivers alerts that pass the gate.
            focus_probe: Window focus capability. Defaults to NullFocusProbe.
            idle_threshold_s: Keystrokes within this many seconds suppress.
            debounce_secs: Minimum gap between two alerts for one session.
            clock: Returns the current time.
        """
        self._inspector = inspector
        self._notifier = notifier
        self._focus = focus_probe or NullFocusProbe()
        self._idle_threshold_s = idle_threshold_s
        self._debounce_secs = debounce_secs
        self._clock = clock
        self._last_dispatch: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def evaluate(self, record: SessionRecord) -> GateDecision:
        """Run the suppression checks and dispatch the alert if none veto it.

        Args:
            record: The session that just started waiting for input.

        Returns:
            The decision taken.
        """
        if self._has_recent_input(record):
            decision = GateDecision.RECENT_INPUT
        elif self._is_focused(record):
            decision = GateDecision.FOCUSED
        else:
            decision = self._dispatch_unless_debounced(record)

        logger.info(f"Alert for {record.branch}: {decision.value}")
        return decision

    def forget(self, session_id: str) -> None:
        """Drop debounce history for a session that is gone."""
        with self._lock:
            self._last_dispatch.pop(session_id, None)

    def last_dispatch(self, session_id: str) -> datetime | None:
        """When the last alert for a session went out, if ever."""
        with self._lock:
            return self._last_dispatch.get(session_id)

    def _has_recent_input(self, record: SessionRecord) -> bool:
        try:
            seconds = self._inspector.seconds_since_last_input(record.tmux_session)
        except Exception as e:
            logger.debug(f"Keystroke probe failed for {record.tmux_session}: {e}")
            return False
        if seconds is None:
            return False
        return 0 <= seconds <= self._idle_threshold_s

    def _is_focused(self, record: SessionRecord) -> bool:
        try:
            if not self._inspector.is_attached(record.tmux_session):
                return False
            tty = self._inspector.attached_client_tty(record.tmux_session)
            state = self._focus.focus_state(tty)
        except Exception as e:
            logger.debug(f"Focus probe failed for {record.tmux_session}: {e}")
            return False
        return state == FocusState.FOCUSED

    def _dispatch_unless_debounced(self, record: SessionRecord) -> GateDecision:
        now = self._clock()
        with self._lock:
            last = self._last_dispatch.get(record.id)
            if last is not None and (now - last).total_seconds() < self._debounce_secs:
                return GateDecision.DEBOUNCED
            self._last_dispatch[record.id] = now

        try:
            if not self._notifier.notify_input_needed(record):
                logger.warning(f"No notification channel succeeded for {record.branch}")
        except Exception as e:
            logger.error(f"Notifier failed for {record.branch}: {e}")
        return GateDecision.DISPATCHED
