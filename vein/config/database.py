"""Index database configuration and backend selection."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .sections import _U32_MAX, ReliabilityConfig, RetryConfig, _mapping, _value


def _default_reliability() -> ReliabilityConfig:
    return ReliabilityConfig(
        retry=RetryConfig(max_attempts=5, initial_backoff_ms=500, max_backoff_secs=30)
    )


@dataclass(frozen=True)
class SqliteBackend:
    """A SQLite database file."""

    path: Path


@dataclass(frozen=True)
class PostgresBackend:
    """A PostgreSQL server reached through a connection URL."""

    url: str
    max_connections: int


def parse_scheme(url: str) -> str | None:
    """Return the text before ``://``, or ``None`` if there is none."""
    scheme, sep, _ = url.partition("://")
    return scheme if sep else None


def sqlite_path_from_url(url: str) -> Path:
    """Extract the database path from a ``sqlite://`` URL."""
    prefix = "sqlite://"
    if not url.startswith(prefix):
        raise ValueError("invalid sqlite url")
    after_scheme = url[len(prefix) :]

    slash = after_scheme.find("/")
    if slash != -1:
        host, path_part = after_scheme[:slash], after_scheme[slash:]
    else:
        host, path_part = "", after_scheme

    if host and host not in ("localhost", "."):
        raise ValueError(f"sqlite url must not specify host (got {host})")
    if path_part in ("", "/"):
        raise ValueError("sqlite url must include database path")

    if host == ".":
        return Path(path_part.lstrip("/"))
    return Path(path_part)


@dataclass
class DatabaseConfig:
    """Where the index database lives and how to connect to it."""

    path: Path = field(default_factory=lambda: Path("./vein.db"))
    url: str | None = None
    max_connections: int = 16
    reliability: ReliabilityConfig = field(default_factory=_default_reliability)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> DatabaseConfig:
        data = _mapping(data, "database")
        reliability = (
            ReliabilityConfig.from_dict(data["reliability"])
            if "reliability" in data
            else _default_reliability()
        )
        return cls(
            path=Path(_value(data, "path", str, "./vein.db")),
            url=_value(data, "url", str, None),
            max_connections=_value(
                data, "max_connections", int, 16, minimum=0, maximum=_U32_MAX
            ),
            reliability=reliability,
        )

    def normalize_paths(self, base_dir: str | os.PathLike[str]) -> None:
        """Take the path from a sqlite URL if given, then anchor it at ``base_dir``."""
        if self.url is not None:
            trimmed = self.url.strip()
            if parse_scheme(trimmed) == "sqlite":
                try:
                    self.path = sqlite_path_from_url(trimmed)
                except ValueError:
                    pass
        if not self.path.is_absolute():
            self.path = Path(base_dir) / self.path

    def ensure_directories(self) -> None:
        """Create the directory that holds the database file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def backend(self) -> SqliteBackend | PostgresBackend:
        """Choose the backend described by this configuration."""
        if self.url is None:
            return SqliteBackend(path=self.path)

        trimmed = self.url.strip()
        scheme = parse_scheme(trimmed) or ""
        if scheme in ("postgres", "postgresql"):
            return PostgresBackend(url=trimmed, max_connections=max(self.max_connections, 1))
        if scheme == "sqlite":
            parsed = sqlite_path_from_url(trimmed)
            path = self.path if self.path.is_absolute() else parsed
            return SqliteBackend(path=path)
        raise ValueError(f"unsupported database url scheme {scheme}")