"""Layered configuration loader for the metrics server and agent.

Values are resolved lowest to highest priority: built-in defaults, the YAML
profile, explicit overrides (command-line flags), then environment variables.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_ENVIRONMENT = "dev"
DEFAULT_ADDRESS = "localhost:8080"
DEFAULT_STORE_INTERVAL = 300
DEFAULT_FILE_STORAGE_PATH = "/tmp/metrics-db.json"
DEFAULT_RESTORE = True
DEFAULT_REPORT_INTERVAL = 10
DEFAULT_POLL_INTERVAL = 2
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_PROFILE_DICT: dict[str, Any] = {
    "environment": DEFAULT_ENVIRONMENT,
    "server": {"address": DEFAULT_ADDRESS, "database_dsn": ""},
    "persistence": {
        "store_interval": DEFAULT_STORE_INTERVAL,
        "file_storage_path": DEFAULT_FILE_STORAGE_PATH,
        "restore": DEFAULT_RESTORE,
    },
    "agent": {
        "report_interval": DEFAULT_REPORT_INTERVAL,
        "poll_interval": DEFAULT_POLL_INTERVAL,
    },
    "logging": {"level": DEFAULT_LOG_LEVEL, "json": True},
}
CONFIG_PROFILE_ENV = "METRICS_CONFIG_PROFILE"
CONFIG_DIR_ENV = "METRICS_CONFIG_DIR"
DEFAULT_PROFILE = "dev"
DEFAULT_CONFIG_ROOT = Path(__file__).resolve().parents[3] / "config" / "profiles"
CONFIG_EXTENSIONS = (".yaml", ".yml")

# Override key -> (profile section, profile key, environment variable)
_FIELD_SOURCES: dict[str, tuple[str, str, str]] = {
    "address": ("server", "address", "ADDRESS"),
    "database_dsn": ("server", "database_dsn", "DATABASE_DSN"),
    "store_interval": ("persistence", "store_interval", "STORE_INTERVAL"),
    "file_storage_path": ("persistence", "file_storage_path", "FILE_STORAGE_PATH"),
    "restore": ("persistence", "restore", "RESTORE"),
    "report_interval": ("agent", "report_interval", "REPORT_INTERVAL"),
    "poll_interval": ("agent", "poll_interval", "POLL_INTERVAL"),
    "log_level": ("logging", "level", "LOG_LEVEL"),
}


class ConfigError(ValueError):
    """Raised when a configuration source holds an invalid value."""


@dataclass
class ServerSettings:
    address: str = DEFAULT_ADDRESS
    database_dsn: str = ""


@dataclass
class PersistenceSettings:
    store_interval: int = DEFAULT_STORE_INTERVAL
    file_storage_path: str = DEFAULT_FILE_STORAGE_PATH
    restore: bool = DEFAULT_RESTORE


@dataclass
class AgentSettings:
    report_interval: int = DEFAULT_REPORT_INTERVAL
    poll_interval: int = DEFAULT_POLL_INTERVAL


@dataclass
class Settings:
    environment: str = DEFAULT_ENVIRONMENT
    server: ServerSettings = field(default_factory=ServerSettings)
    persistence: PersistenceSettings = field(default_factory=PersistenceSettings)
    agent: AgentSettings = field(default_factory=AgentSettings)
    log_level: str = DEFAULT_LOG_LEVEL
    log_json: bool = True
    raw: dict[str, Any] = field(default_factory=dict)


def load_settings(
    profile: str | None = None,
    config_dir: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Resolve settings from the profile, ``overrides`` and the environment.

    ``overrides`` uses the keys of ``_FIELD_SOURCES``; ``None`` values are
    ignored so argparse namespaces can be passed through unchanged.
    """

    profile_name = profile or os.getenv(CONFIG_PROFILE_ENV, DEFAULT_PROFILE)
    config_root = Path(
        config_dir or os.getenv(CONFIG_DIR_ENV, DEFAULT_CONFIG_ROOT)
    ).expanduser()
    config_data = copy.deepcopy(DEFAULT_PROFILE_DICT)
    _merge_sections(config_data, _load_profile_dict(profile_name, config_root))

    for key, value in (overrides or {}).items():
        if key not in _FIELD_SOURCES:
            raise ConfigError(f"Unknown configuration override '{key}'")
        if value is None:
            continue
        section, name, _ = _FIELD_SOURCES[key]
        config_data[section][name] = value

    for section, name, env_name in _FIELD_SOURCES.values():
        env_value = os.getenv(env_name)
        if env_value:
            config_data[section][name] = env_value

    server_cfg = config_data["server"]
    persistence_cfg = config_data["persistence"]
    agent_cfg = config_data["agent"]
    logging_cfg = config_data["logging"]

    address = str(server_cfg["address"]).strip()
    if not address:
        raise ConfigError("ADDRESS must not be empty")

    return Settings(
        environment=str(config_data.get("environment", DEFAULT_ENVIRONMENT)),
        server=ServerSettings(
            address=address,
            database_dsn=str(server_cfg.get("database_dsn") or ""),
        ),
        persistence=PersistenceSettings(
            store_interval=_as_int(
                "STORE_INTERVAL", persistence_cfg["store_interval"], minimum=0
            ),
            file_storage_path=str(persistence_cfg.get("file_storage_path") or ""),
            restore=_as_bool("RESTORE", persistence_cfg["restore"]),
        ),
        agent=AgentSettings(
            report_interval=_as_int(
                "REPORT_INTERVAL", agent_cfg["report_interval"], minimum=1
            ),
            poll_interval=_as_int(
                "POLL_INTERVAL", agent_cfg["poll_interval"], minimum=1
            ),
        ),
        log_level=str(logging_cfg.get("level") or DEFAULT_LOG_LEVEL).upper(),
        log_json=_as_bool("logging.json", logging_cfg.get("json", True)),
        raw=config_data,
    )


def _load_profile_dict(profile_name: str, config_root: Path) -> dict[str, Any]:
    """Load the YAML profile if available, otherwise return an empty dict."""

    if not config_root.exists():
        return {}

    for extension in CONFIG_EXTENSIONS:
        candidate = config_root / f"{profile_name}{extension}"
        if not candidate.exists():
            continue
        try:
            with candidate.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(
                f"Failed to parse config profile {candidate}: {exc}"
            ) from exc
        if not isinstance(loaded, dict):
            raise ConfigError(
                f"Config profile {candidate} must be a mapping at the root"
            )
        return loaded

    return {}


def _merge_sections(base: dict[str, Any], profile_data: Mapping[str, Any]) -> None:
    for key, value in profile_data.items():
        if isinstance(base.get(key), dict):
            if not isinstance(value, dict):
                raise ConfigError(f"Config section '{key}' must be a mapping")
            base[key].update(value)
        else:
            base[key] = value


def _as_int(name: str, raw: Any, *, minimum: int) -> int:
    if isinstance(raw, bool):
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if isinstance(raw, int):
        value = raw
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _as_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    normalized = str(raw).strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise ConfigError(f"{name} must be 'true' or 'false', got {raw!r}")
