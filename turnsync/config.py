"""Settings loaded from a JSON file and environment variables."""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from .backend import DEFAULT_BACKEND_URL

CONFIG_ENV = "TURNSYNC_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "turnsync" / "config.json"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

ENV_OVERRIDES = {
    "TURNSYNC_BACKEND_URL": "backend_url",
    "TURNSYNC_API_KEY": "api_key",
    "TURNSYNC_TIMEOUT": "timeout",
}


class ConfigError(Exception):
    """Raised when the config file cannot be read."""

    pass


@dataclass
class Settings:
    backend_url: str = DEFAULT_BACKEND_URL
    api_key: str | None = None
    timeout: float = 30.0
    result_log_limit: int = 100
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        try:
            self.timeout = float(self.timeout)
            self.result_log_limit = int(self.result_log_limit)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid setting value: {e}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.result_log_limit < 1:
            raise ConfigError(f"result_log_limit must be at least 1, got {self.result_log_limit}")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Unknown log_level: {self.log_level}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        return cls(**data)


def config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    return Path(env) if env else DEFAULT_CONFIG_PATH


def load_settings(path: Path | None = None, environ: dict[str, str] | None = None) -> Settings:
    """
    Load settings.

    A missing file means defaults. Environment variables override the file.
    """
    path = Path(path) if path else config_path()
    environ = os.environ if environ is None else environ

    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid config file {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")

    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            data[key] = value

    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    path = Path(path) if path else config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(settings.to_dict(), f, indent=2)
    return path
