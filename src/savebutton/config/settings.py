"""Application configuration settings."""

from typing import Optional
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SERVER = "https://savebutton.com"
DEFAULT_DAEMON_URL = "http://localhost:21420"


class StorageSettings(BaseSettings):
    """Local storage configuration."""

    data_dir: str = Field(default=str(Path.home() / ".kaya"))
    state_file: str = Field(default="storage.json")

    model_config = SettingsConfigDict(env_prefix="SAVEBUTTON_STORAGE_")

    @property
    def data_path(self) -> Path:
        """Expanded data directory."""
        return Path(self.data_dir).expanduser()

    @property
    def state_path(self) -> Path:
        """Path of the persisted key/value document."""
        return self.data_path / self.state_file


class RemoteSettings(BaseSettings):
    """Remote server configuration."""

    request_timeout_seconds: float = Field(default=60.0)

    model_config = SettingsConfigDict(env_prefix="SAVEBUTTON_REMOTE_")


class DaemonSettings(BaseSettings):
    """Local companion daemon configuration."""

    base_url: str = Field(default=DEFAULT_DAEMON_URL)
    timeout_seconds: float = Field(default=2.0)
    enabled: bool = Field(default=True)

    model_config = SettingsConfigDict(env_prefix="SAVEBUTTON_DAEMON_")


class SchedulingSettings(BaseSettings):
    """Scheduling configuration."""

    sync_interval_minutes: int = Field(default=1, ge=1)

    model_config = SettingsConfigDict(env_prefix="SAVEBUTTON_SCHEDULE_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(env_prefix="SAVEBUTTON_LOG_")


class AppSettings(BaseSettings):
    """Main application settings."""

    name: str = Field(default="Save Button")
    version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    storage: StorageSettings = StorageSettings()
    remote: RemoteSettings = RemoteSettings()
    daemon: DaemonSettings = DaemonSettings()
    scheduling: SchedulingSettings = SchedulingSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_prefix="SAVEBUTTON_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings
