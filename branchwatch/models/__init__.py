"""Domain models for branchwatch."""

from branchwatch.models.config import AppConfig, MonitorConfig, NotificationConfig
from branchwatch.models.session import (
    SessionRecord,
    SessionStatus,
    sanitize_branch,
    session_handle,
)

__all__ = [
    # Session
    "SessionRecord",
    "SessionStatus",
    "sanitize_branch",
    "session_handle",
    # Config
    "AppConfig",
    "MonitorConfig",
    "NotificationConfig",
]
