"""Service configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: MAPMOTION_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class QueueConfig:
    max_size: int = 1_000


@dataclass
class StorageConfig:
    backend: str = "memory"  # "memory" or "file"
    base_dir: str = "data/documents"


@dataclass
class CacheConfig:
    backend: str = "file"  # "memory" or "file"
    path: str = "data/local_cache.json"


@dataclass
class IdentityConfig:
    backend: str = "memory"


@dataclass
class TrackingConfig:
    timezone: str = ""  # IANA name; empty means system local time

    def tz(self) -> tzinfo | None:
        if not self.timezone:
            return None
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"invalid timezone: {self.timezone!r}") from exc


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"
    file: str = ""


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "MAPMOTION_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "MAPMOTION_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "MAPMOTION_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "MAPMOTION_QUEUE_MAX_SIZE": lambda v: setattr(config.queue, "max_size", int(v)),
        "MAPMOTION_STORAGE_BACKEND": lambda v: setattr(config.storage, "backend", v),
        "MAPMOTION_STORAGE_BASE_DIR": lambda v: setattr(config.storage, "base_dir", v),
        "MAPMOTION_CACHE_BACKEND": lambda v: setattr(config.cache, "backend", v),
        "MAPMOTION_CACHE_PATH": lambda v: setattr(config.cache, "path", v),
        "MAPMOTION_IDENTITY_BACKEND": lambda v: setattr(config.identity, "backend", v),
        "MAPMOTION_TRACKING_TIMEZONE": lambda v: setattr(config.tracking, "timezone", v),
        "MAPMOTION_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "MAPMOTION_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
        "MAPMOTION_LOG_FILE": lambda v: setattr(config.logging, "file", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    if config_path is None:
        config_path = Path(os.environ.get("MAPMOTION_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section in fields(config):
            values = raw.get(section.name)
            if not isinstance(values, dict):
                continue
            target = getattr(config, section.name)
            for k, v in values.items():
                if hasattr(target, k):
                    setattr(target, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
