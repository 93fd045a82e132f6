"""SessionMonitor - detects sessions that sit idle at an input prompt.

Each pass captures every live session's pane and compares it with the
previous capture:

- tmux session gone            → STOPPED (record updated, state dropped)
- output changed               → ACTIVE (idle clock reset, alert re-armed)
- unchanged past the threshold → WAITING_INPUT if the tail looks like a
  prompt (alert through NotificationGate), otherwise IDLE

Detection is edge-triggered: one idle stretch yields at most one
WAITING_INPUT, and only an output change re-arms it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from branchwatch.backends.base import PaneInspector
from branchwatch.backends.tmux import TmuxError
from branchwatch.models.config import MonitorConfig
from branchwatch.models.session import SessionRecord, SessionStatus
from branchwatch.services.notification_gate import NotificationGate
from branchwatch.services.poll_scheduler import PollScheduler
from branchwatch.services.prompt_classifier import PromptClassifier, tail_lines
from branchwatch.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

# Lines captured from each pane per pass
CAPTURE_LINES = 50


class Transition(str, Enum):
    """What a pass did to one session."""

    STOPPED = "stopped"
    ACTIVE = "active"
    WAITING_INPUT = "waiting_input"
    IDLE = "idle"


@dataclass
class MonitorState:
    """Ephemeral per-session tracking. Never persisted."""

    last_output: str | None = None
    idle_since: datetime | None = None
    notified: bool = False
    was_active: bool = False


class SessionMonitor:
    """Background monitor driving session status and input alerts."""

    def __init__(
        self,
        registry: SessionRegistry,
        inspector: PaneInspector,
        gate: NotificationGate,
        classifier: PromptClassifier | None = None,
        config: MonitorConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the SessionMonitor.

        Args:
            registry: Session records to monitor and update.
            inspector: Pane capture and liveness checks.
            gate: Suppression and dispatch for alerts.
            classifier: Prompt detector. Defaults to the built-in patterns.
            config: Poll interval and idle threshold.
            clock: Returns the current time.
        """
        self._registry = registry
        self._inspector = inspector
        self._gate = gate
        self._classifier = classifier or PromptClassifier()
        self._config = config or MonitorConfig()
        self._clock = clock
        self._states: dict[str, MonitorState] = {}
        self._scheduler: PollScheduler | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start polling on a background thread."""
        if self._scheduler is None:
            self._scheduler = PollScheduler(
                self._config.poll_interval_seconds,
                self.check_sessions,
                name="session-monitor",
            )
        self._scheduler.start()

    def stop(self) -> None:
        """Stop polling, waiting for the in-flight pass."""
        if self._scheduler is not None:
            self._scheduler.stop()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.is_running

    # =========================================================================
    # Polling
    # =========================================================================

    def state_for(self, session_id: str) -> MonitorState | None:
        """Monitor state for a session (for diagnostics and tests)."""
        return self._states.get(session_id)

    def check_sessions(self) -> dict[str, Transition]:
        """Run one inspection pass over every live session.

        Returns:
            Transitions taken this pass, keyed by session id.
        """
        sessions = self._registry.get_all()
        transitions: dict[str, Transition] = {}

        for record in sessions:
            if not record.is_live:
                continue
            try:
                transition = self.check_session(record)
            except Exception as e:
                logger.error(f"Error checking session {record.branch}: {e}")
                continue
            if transition is not None:
                transitions[record.id] = transition

        live_ids = {s.id for s in sessions if s.is_live}
        for session_id in [sid for sid in self._states if sid not in live_ids]:
            self._discard(session_id)

        return transitions

    def check_session(self, record: SessionRecord) -> Transition | None:
        """Apply one tick of the state machine to a session.

        Args:
            record: A snapshot copy of the session's record.

        Returns:
            The transition taken, or None if nothing changed.

        Raises:
            RegistryPersistenceError: If persisting the transition failed.
        """
        try:
            exists = self._inspector.session_exists(record.tmux_session)
        except TmuxError as e:
            logger.warning(f"Skipping {record.branch}: {e}")
            return None

        if not exists:
            return self._mark_stopped(record)

        try:
            output = self._inspector.capture_pane(record.tmux_session, CAPTURE_LINES)
        except TmuxError as e:
            logger.debug(f"Capture failed for {record.branch}: {e}")
            return None

        now = self._clock()
        state = self._states.setdefault(record.id, MonitorState())

        if output != state.last_output:
            return self._mark_active(record, state, output, now)

        if state.idle_since is None or not state.was_active or state.notified:
            return None

        idle_seconds = (now - state.idle_since).total_seconds()
        if idle_seconds <= self._config.idle_threshold_s:
            return None

        tail = tail_lines(output)
        if self._classifier.matches(tail):
            return self._mark_waiting(record, state, tail)
        return self._mark_idle(record, state)

    # =========================================================================
    # Transitions
    # =========================================================================

    def _mark_stopped(self, record: SessionRecord) -> Transition:
        record.status = SessionStatus.STOPPED
        record.needs_input = False
        self._discard(record.id)
        self._registry.update(record)
        logger.info(f"Session {record.branch} stopped (tmux session gone)")
        return Transition.STOPPED

    def _mark_active(
        self,
        record: SessionRecord,
        state: MonitorState,
        output: str,
        now: datetime,
    ) -> Transition:
        state.last_output = output
        state.idle_since = now
        state.notified = False
        state.was_active = True

        record.update_activity(now)
        record.needs_input = False
        record.status = SessionStatus.RUNNING
        self._registry.update(record)
        return Transition.ACTIVE

    def _mark_waiting(self, record: SessionRecord, state: MonitorState, tail: str) -> Transition:
        record.set_needs_input(True)
        self._registry.update(record)
        logger.info(
            f"Session {record.branch} waiting for input "
            f"(matched {self._classifier.matched_pattern(tail)!r})"
        )
        state.notified = True
        self._gate.evaluate(record)
        return Transition.WAITING_INPUT

    def _mark_idle(self, record: SessionRecord, state: MonitorState) -> Transition:
        record.needs_input = False
        record.status = SessionStatus.IDLE
        self._registry.update(record)
        state.was_active = False
        logger.debug(f"Session {record.branch} idle without a prompt")
        return Transition.IDLE

    def _discard(self, session_id: str) -> None:
        self._states.pop(session_id, None)
        self._gate.forget(session_id)
