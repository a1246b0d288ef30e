"""Configuration management for nettap.

Settings come from nettap.toml in the current or a parent directory. Every
value has a default, so nettap runs without a config file against a local
collector.
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from nettap.errors import ConfigError
from nettap.filters import DEFAULT_RESOURCES

__all__ = ["NetTapConfig", "CollectorConfig", "CaptureConfig", "StoreConfig", "load_config"]

CONFIG_FILENAME = "nettap.toml"
ENV_OVERRIDE = "NETTAP_ENV"

DEFAULT_ENVIRONMENTS = {
    "prod": "",
    "stag": "",
    "dev": "http://localhost:3000",
}


@dataclass(frozen=True)
class CollectorConfig:
    """Where and how finished records are sent."""

    env: str = "dev"
    environments: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENVIRONMENTS))
    timeout: float = 10.0
    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CaptureConfig:
    """Chrome connection, traffic selection and body fetch concurrency."""

    port: int = 9222
    host: str = "localhost"
    resources: tuple[str, ...] = DEFAULT_RESOURCES
    fetch_timeout: float = 10.0
    workers: int = 4


@dataclass(frozen=True)
class StoreConfig:
    """Pending request storage.

    pending_ttl of 0 keeps entries until their record is accepted.
    """

    path: str = ".nettap/pending.duckdb"
    pending_ttl: float = 0


@dataclass(frozen=True)
class NetTapConfig:
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    source: Optional[Path] = None

    @property
    def collector_url(self) -> str:
        """Base URL of the selected collector environment.

        Raises:
            ConfigError: If the environment is unknown or has no URL.
        """
        env = self.collector.env
        if env not in self.collector.environments:
            known = ", ".join(sorted(self.collector.environments))
            raise ConfigError(f"Unknown collector environment '{env}' (known: {known})")
        url = self.collector.environments[env]
        if not url:
            raise ConfigError(f"No collector URL configured for environment '{env}'")
        return url.rstrip("/")

    @property
    def store_path(self) -> str:
        """Store path, relative paths resolved against the config file's directory."""
        path = self.store.path
        if path == ":memory:" or Path(path).is_absolute() or self.source is None:
            return path
        return str(self.source.parent / path)


def _find_config_file() -> Optional[Path]:
    """Find nettap.toml in current or parent directories."""
    current = Path.cwd()

    for parent in [current] + list(current.parents):
        config_file = parent / CONFIG_FILENAME
        if config_file.exists():
            return config_file

    return None


def _load_raw(path: Optional[Path]) -> dict:
    if path is None or not path.exists():
        return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid {path}: {e}") from e


def _section(data: dict, name: str) -> dict:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table")
    return value


def _string_table(data: dict, name: str, section: str) -> dict[str, str]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{section}.{name}] must be a table")
    return {str(k): str(v) for k, v in value.items()}


def _string_list(data: dict, name: str, section: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = data.get(name, list(default))
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{section}.{name} must be a list of strings, got {value!r}")
    return tuple(value)


def load_config(path: Optional[Path] = None) -> NetTapConfig:
    """Load configuration.

    Args:
        path: Explicit config file. Searched for when None.

    Returns:
        NetTapConfig with defaults for anything not set

    Raises:
        ConfigError: If the file is not valid TOML or has wrongly typed sections.
    """
    if path is None:
        path = _find_config_file()
    data = _load_raw(path)

    collector = _section(data, "collector")
    capture = _section(data, "capture")
    store = _section(data, "store")

    environments = dict(DEFAULT_ENVIRONMENTS)
    environments.update(_string_table(collector, "environments", "collector"))

    try:
        config = NetTapConfig(
            collector=CollectorConfig(
                env=os.environ.get(ENV_OVERRIDE) or str(collector.get("env", "dev")),
                environments=environments,
                timeout=float(collector.get("timeout", 10.0)),
                headers=_string_table(collector, "headers", "collector"),
                cookies=_string_table(collector, "cookies", "collector"),
            ),
            capture=CaptureConfig(
                port=int(capture.get("port", 9222)),
                host=str(capture.get("host", "localhost")),
                resources=_string_list(capture, "resources", "capture", DEFAULT_RESOURCES),
                fetch_timeout=float(capture.get("fetch_timeout", 10.0)),
                workers=int(capture.get("workers", 4)),
            ),
            store=StoreConfig(
                path=str(store.get("path", StoreConfig.path)),
                pending_ttl=float(store.get("pending_ttl", 0)),
            ),
            source=path,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {path}: {e}") from e

    if config.capture.workers < 1:
        raise ConfigError(f"capture.workers must be at least 1, got {config.capture.workers}")

    return config
