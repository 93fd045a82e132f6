"""Application configuration models with Pydantic validation."""

from pydantic import BaseModel, Field


class NotificationConfig(BaseModel):
    """Notification configuration."""

    desktop: bool = Field(
        default=True,
        description="Show a desktop banner when a session needs input",
    )
    sound: bool = Field(
        default=True,
        description="Play a sound when a session needs input",
    )
    sound_file: str | None = Field(
        default=None,
        description="Custom sound file (uses a system sound if unset)",
    )


class MonitorConfig(BaseModel):
    """Session monitor tunables."""

    poll_interval_ms: int = Field(
        default=500,
        ge=50,
        le=60_000,
        description="Milliseconds between inspection passes",
    )
    idle_threshold_s: int = Field(
        default=2,
        ge=1,
        le=3600,
        description="Seconds of unchanged output before a session counts as idle",
    )
    debounce_secs: int = Field(
        default=30,
        ge=0,
        le=86_400,
        description="Minimum seconds between two alerts for the same session",
    )

    @property
    def poll_interval_seconds(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000.0


class AppConfig(BaseModel):
    """Root application configuration.

    Loaded from config.yaml and validated with Pydantic.
    """

    notification: NotificationConfig = Field(
        default_factory=NotificationConfig,
        description="Notification settings",
    )
    monitor: MonitorConfig = Field(
        default_factory=MonitorConfig,
        description="Monitor settings",
    )
