"""Top-level configuration: loading from TOML, defaults and validation."""

from __future__ import annotations

import logging
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .database import DatabaseConfig
from .delay_policy import DelayPolicyConfig
from .sections import (
    LoggingConfig,
    ServerConfig,
    StorageConfig,
    UpstreamConfig,
    _mapping,
)

_log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "vein.toml"
_SUPPORTED_UPSTREAM_SCHEMES = ("https", "http")


class ConfigError(ValueError):
    """Raised when a configuration cannot be read, parsed or validated."""


@dataclass
class Config:
    """The complete proxy configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    upstream: UpstreamConfig | None = None
    storage: StorageConfig = field(default_factory=StorageConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    delay_policy: DelayPolicyConfig = field(default_factory=DelayPolicyConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Config:
        """Build a configuration from parsed TOML data; missing sections get defaults."""
        try:
            data = _mapping(data, "config")
            upstream = (
                UpstreamConfig.from_dict(data["upstream"]) if "upstream" in data else None
            )
            return cls(
                server=ServerConfig.from_dict(data.get("server")),
                upstream=upstream,
                storage=StorageConfig.from_dict(data.get("storage")),
                database=DatabaseConfig.from_dict(data.get("database")),
                logging=LoggingConfig.from_dict(data.get("logging")),
                delay_policy=DelayPolicyConfig.from_dict(data.get("delay_policy")),
            )
        except ConfigError:
            raise
        except ValueError as err:
            raise ConfigError(str(err)) from err

    @classmethod
    def from_toml(cls, text: str) -> Config:
        """Parse a configuration from TOML text."""
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as err:
            raise ConfigError(str(err)) from err
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> Config:
        """Load from ``path`` (default ``vein.toml``), or use defaults if it is missing.

        Relative storage and database paths are resolved against the directory
        of the configuration file, or the current directory when using defaults.
        """
        candidate = Path(path) if path is not None else Path(DEFAULT_CONFIG_FILE)
        if candidate.exists():
            try:
                raw = candidate.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as err:
                raise ConfigError(f"failed to read config {candidate}: {err}") from err
            try:
                config = cls.from_toml(raw)
            except ConfigError as err:
                raise ConfigError(f"invalid config {candidate}: {err}") from err
            base_dir = candidate.parent
        else:
            _log.warning("configuration file %s not found, using defaults", candidate)
            config = cls()
            try:
                base_dir = Path.cwd()
            except OSError as err:
                raise ConfigError(f"reading current directory: {err}") from err
        config.storage.normalize_paths(base_dir)
        config.database.normalize_paths(base_dir)
        return config

    def validate(self) -> None:
        """Check the upstream scheme and the database backend settings."""
        if (
            self.upstream is not None
            and self.upstream.url.scheme not in _SUPPORTED_UPSTREAM_SCHEMES
        ):
            raise ConfigError(f"unsupported upstream scheme {self.upstream.url}")
        try:
            self.database.backend()
        except ValueError as err:
            raise ConfigError(str(err)) from err