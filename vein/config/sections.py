"""Server, storage, logging, upstream and retry configuration sections."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

_REQUIRED = object()

_TYPE_NAMES = {bool: "a boolean", int: "an integer", float: "a float", str: "a string"}

_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFF_FFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    """Return ``data`` as a mapping, treating ``None`` as an empty table."""
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"invalid type for {what}: expected a table")
    return data


def _value(
    data: Mapping[str, Any],
    key: str,
    kind: type,
    default: Any = _REQUIRED,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> Any:
    """Read ``key`` from ``data``, checking its type and integer range."""
    if key not in data:
        if default is _REQUIRED:
            raise ValueError(f"missing field `{key}`")
        return default
    value = data[key]
    expected = _TYPE_NAMES[kind]
    if kind is bool:
        ok = isinstance(value, bool)
    elif kind is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif kind is float:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    else:
        ok = isinstance(value, kind)
    if not ok:
        raise ValueError(f"invalid type for `{key}`: expected {expected}")
    if kind is float:
        return float(value)
    if kind is int:
        if minimum is not None and value < minimum:
            raise ValueError(f"invalid value for `{key}`: {value} is below {minimum}")
        if maximum is not None and value > maximum:
            raise ValueError(f"invalid value for `{key}`: {value} is above {maximum}")
    return value


_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*")
_INVALID_CHARS = frozenset(' "<>\\^`{|}')


@dataclass(frozen=True)
class Uri:
    """A parsed URI: scheme, authority, path and query."""

    scheme: str | None
    authority: str | None
    path: str
    query: str | None = None

    def __str__(self) -> str:
        parts = []
        if self.scheme:
            parts.append(f"{self.scheme}://")
        if self.authority:
            parts.append(self.authority)
        parts.append(self.path)
        if self.query is not None:
            parts.append(f"?{self.query}")
        return "".join(parts)


def _split_query(tail: str) -> tuple[str, str | None]:
    path, sep, query = tail.partition("?")
    return path, (query if sep else None)


def _check_authority(authority: str, original: str) -> None:
    if not authority:
        raise ValueError(f"invalid uri {original!r}: empty authority")
    hostport = authority.rpartition("@")[2]
    if hostport.startswith("["):
        close = hostport.find("]")
        if close == -1:
            raise ValueError(f"invalid uri {original!r}: unterminated IPv6 host")
        port_part = hostport[close + 1 :]
        if port_part and not port_part.startswith(":"):
            raise ValueError(f"invalid uri {original!r}: bad authority")
        port = port_part[1:] if port_part else ""
        has_port = bool(port_part)
    else:
        if not hostport:
            raise ValueError(f"invalid uri {original!r}: empty host")
        host, sep, port = hostport.rpartition(":")
        has_port = bool(sep)
        if has_port and not host:
            raise ValueError(f"invalid uri {original!r}: empty host")
    if has_port and port and not port.isdigit():
        raise ValueError(f"invalid uri {original!r}: invalid port")
    if has_port and port and int(port) > _U16_MAX:
        raise ValueError(f"invalid uri {original!r}: port out of range")


def parse_uri(text: str) -> Uri:
    """Parse ``text`` into a :class:`Uri`, raising ``ValueError`` if it is invalid."""
    if not isinstance(text, str) or not text:
        raise ValueError("invalid uri: empty string")
    for char in text:
        if ord(char) <= 0x20 or ord(char) >= 0x7F or char in _INVALID_CHARS:
            raise ValueError(f"invalid uri character {char!r} in {text!r}")
    without_fragment = text.split("#", 1)[0]
    if without_fragment == "*":
        return Uri(None, None, "*")
    if without_fragment.startswith("/"):
        path, query = _split_query(without_fragment)
        return Uri(None, None, path, query)

    scheme, sep, rest = without_fragment.partition("://")
    if sep:
        if not _SCHEME_RE.fullmatch(scheme):
            raise ValueError(f"invalid uri {text!r}: bad scheme")
        cut = min(
            (idx for idx in (rest.find("/"), rest.find("?")) if idx != -1),
            default=len(rest),
        )
        authority, tail = rest[:cut], rest[cut:]
        _check_authority(authority, text)
        path, query = _split_query(tail)
        return Uri(scheme.lower(), authority, path or "/", query)

    if "/" in without_fragment or "?" in without_fragment:
        raise ValueError(f"invalid uri {text!r}")
    _check_authority(without_fragment, text)
    return Uri(None, without_fragment, "")


class BackoffStrategy(Enum):
    """How retry delays grow between attempts."""

    EXPONENTIAL = "exponential"
    FIBONACCI = "fibonacci"
    CONSTANT = "constant"


@dataclass
class RetryConfig:
    """Retry settings for outgoing requests."""

    enabled: bool = True
    max_attempts: int = 3
    initial_backoff_ms: int = 100
    max_backoff_secs: int = 2
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    jitter_factor: float = 1.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> RetryConfig:
        data = _mapping(data, "retry")
        defaults = cls()
        raw_strategy = _value(data, "backoff_strategy", str, defaults.backoff_strategy.value)
        try:
            strategy = BackoffStrategy(raw_strategy)
        except ValueError:
            raise ValueError(f"unknown backoff strategy `{raw_strategy}`") from None
        return cls(
            enabled=_value(data, "enabled", bool, defaults.enabled),
            max_attempts=_value(
                data, "max_attempts", int, defaults.max_attempts, minimum=0, maximum=_U32_MAX
            ),
            initial_backoff_ms=_value(
                data,
                "initial_backoff_ms",
                int,
                defaults.initial_backoff_ms,
                minimum=0,
                maximum=_U64_MAX,
            ),
            max_backoff_secs=_value(
                data,
                "max_backoff_secs",
                int,
                defaults.max_backoff_secs,
                minimum=0,
                maximum=_U64_MAX,
            ),
            backoff_strategy=strategy,
            jitter_factor=_value(data, "jitter_factor", float, defaults.jitter_factor),
        )


@dataclass
class ReliabilityConfig:
    """Reliability settings; currently only retries."""

    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ReliabilityConfig:
        data = _mapping(data, "reliability")
        if "retry" in data:
            return cls(retry=RetryConfig.from_dict(_mapping(data["retry"], "retry")))
        return cls()


@dataclass
class LoggingConfig:
    """Log level and output format."""

    level: str = "info"
    json: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> LoggingConfig:
        data = _mapping(data, "logging")
        return cls(
            level=_value(data, "level", str, "info"),
            json=_value(data, "json", bool, False),
        )


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass
class ServerConfig:
    """Address and worker count of the proxy server."""

    host: str = "0.0.0.0"
    port: int = 8346
    workers: int = field(default_factory=_default_workers)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ServerConfig:
        data = _mapping(data, "server")
        return cls(
            host=_value(data, "host", str, "0.0.0.0"),
            port=_value(data, "port", int, 8346, minimum=0, maximum=_U16_MAX),
            workers=_value(data, "workers", int, _default_workers(), minimum=0),
        )


@dataclass
class StorageConfig:
    """Where cached gem files live on disk."""

    path: Path = field(default_factory=lambda: Path("./gems"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> StorageConfig:
        data = _mapping(data, "storage")
        return cls(path=Path(_value(data, "path", str, "./gems")))

    def normalize_paths(self, base_dir: str | os.PathLike[str]) -> None:
        """Resolve a relative storage path against ``base_dir``."""
        if not self.path.is_absolute():
            self.path = Path(base_dir) / self.path

    def ensure_directories(self) -> None:
        """Create the storage directory and its parents."""
        self.path.mkdir(parents=True, exist_ok=True)


def _default_upstream_url() -> Uri:
    return parse_uri("https://rubygems.org/")


@dataclass
class UpstreamConfig:
    """The upstream gem server and how to talk to it."""

    url: Uri = field(default_factory=_default_upstream_url)
    fallback_urls: list[Uri] = field(default_factory=list)
    timeout_secs: int = 30
    connection_pool_size: int = 128
    reliability: ReliabilityConfig = field(default_factory=ReliabilityConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> UpstreamConfig:
        data = _mapping(data, "upstream")
        url = parse_uri(_value(data, "url", str)) if "url" in data else _default_upstream_url()
        raw_fallbacks = data.get("fallback_urls", [])
        if not isinstance(raw_fallbacks, list):
            raise ValueError("invalid type for `fallback_urls`: expected an array")
        fallbacks = []
        for item in raw_fallbacks:
            if not isinstance(item, str):
                raise ValueError("invalid type in `fallback_urls`: expected a string")
            fallbacks.append(parse_uri(item))
        return cls(
            url=url,
            fallback_urls=fallbacks,
            timeout_secs=_value(data, "timeout_secs", int, 30, minimum=0, maximum=_U64_MAX),
            connection_pool_size=_value(data, "connection_pool_size", int, 128, minimum=0),
            reliability=ReliabilityConfig.from_dict(data.get("reliability")),
        )