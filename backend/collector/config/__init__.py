"""Config package exporting loader helpers."""

from .loader import (
    AgentSettings,
    ConfigError,
    PersistenceSettings,
    ServerSettings,
    Settings,
    load_settings,
)

__all__ = [
    "AgentSettings",
    "ConfigError",
    "PersistenceSettings",
    "ServerSettings",
    "Settings",
    "load_settings",
]
