"""Services for branchwatch."""

from branchwatch.services.config_service import ConfigService, get_config_dir
from branchwatch.services.notification_gate import GateDecision, NotificationGate
from branchwatch.services.notification_service import NotificationService
from branchwatch.services.poll_scheduler import PollScheduler
from branchwatch.services.prompt_classifier import (
    DEFAULT_PATTERNS,
    InvalidPatternError,
    PromptClassifier,
    tail_lines,
)
from branchwatch.services.session_manager import (
    SessionError,
    SessionExistsError,
    SessionManager,
    SessionNotFoundError,
)
from branchwatch.services.session_monitor import MonitorState, SessionMonitor, Transition
from branchwatch.services.session_registry import (
    DuplicateBranchError,
    RegistryError,
    RegistryPersistenceError,
    SessionRegistry,
)

__all__ = [
    "ConfigService",
    "DEFAULT_PATTERNS",
    "DuplicateBranchError",
    "GateDecision",
    "InvalidPatternError",
    "MonitorState",
    "NotificationGate",
    "NotificationService",
    "PollScheduler",
    "PromptClassifier",
    "RegistryError",
    "RegistryPersistenceError",
    "SessionError",
    "SessionExistsError",
    "SessionManager",
    "SessionMonitor",
    "SessionNotFoundError",
    "SessionRegistry",
    "Transition",
    "get_config_dir",
    "tail_lines",
]
