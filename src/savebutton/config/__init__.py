"""Configuration package for Save Button."""

from .settings import (
    StorageSettings,
    RemoteSettings,
    DaemonSettings,
    SchedulingSettings,
    LoggingSettings,
    AppSettings,
    get_settings
)

from .store import (
    AccountConfig,
    ConfigStore,
    ConfigurationError,
    get_config_store
)

__all__ = [
    "StorageSettings",
    "RemoteSettings",
    "DaemonSettings",
    "SchedulingSettings",
    "LoggingSettings",
    "AppSettings",
    "get_settings",

    "AccountConfig",
    "ConfigStore",
    "ConfigurationError",
    "get_config_store"
]
