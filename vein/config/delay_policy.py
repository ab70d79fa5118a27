"""Quarantine delay policy for newly published gem versions."""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .sections import _U32_MAX, _mapping, _value

_U8_MAX = 0xFF


@dataclass(frozen=True)
class DelayPolicy:
    """The timing rules applied when computing a version's release time."""

    default_delay_days: int
    skip_weekends: bool
    business_hours_only: bool
    release_hour_utc: int


@dataclass(frozen=True)
class GemDelayOverride:
    """A per-gem delay; ``name`` is a glob when ``pattern`` is true."""

    name: str
    delay_days: int
    pattern: bool = False


@dataclass(frozen=True)
class PinnedVersion:
    """A version released immediately, bypassing quarantine."""

    name: str
    version: str
    reason: str


def glob_match(pattern: str, name: str) -> bool:
    """Match ``name`` against a pattern with at most one ``*``."""
    if pattern == "*":
        return True
    if pattern.startswith("*"):
        return name.endswith(pattern[1:])
    if pattern.endswith("*"):
        return name.startswith(pattern[:-1])
    prefix, star, suffix = pattern.partition("*")
    if star:
        return name.startswith(prefix) and name.endswith(suffix)
    return pattern == name


def _list_of_tables(data: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    items = data.get(key, [])
    if not isinstance(items, list):
        raise ValueError(f"invalid type for `{key}`: expected an array")
    return [_mapping(item, key) for item in items]


def _override_from_dict(data: Mapping[str, Any]) -> GemDelayOverride:
    return GemDelayOverride(
        name=_value(data, "name", str),
        delay_days=_value(data, "delay_days", int, minimum=0, maximum=_U32_MAX),
        pattern=_value(data, "pattern", bool, False),
    )


def _pinned_from_dict(data: Mapping[str, Any]) -> PinnedVersion:
    return PinnedVersion(
        name=_value(data, "name", str),
        version=_value(data, "version", str),
        reason=_value(data, "reason", str),
    )


@dataclass
class DelayPolicyConfig:
    """Configuration of the delay buffer for new gem versions (opt-in)."""

    enabled: bool = False
    default_delay_days: int = 3
    skip_weekends: bool = True
    business_hours_only: bool = True
    release_hour_utc: int = 9
    gems: list[GemDelayOverride] = field(default_factory=list)
    pinned: list[PinnedVersion] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> DelayPolicyConfig:
        data = _mapping(data, "delay_policy")
        defaults = cls()
        return cls(
            enabled=_value(data, "enabled", bool, defaults.enabled),
            default_delay_days=_value(
                data,
                "default_delay_days",
                int,
                defaults.default_delay_days,
                minimum=0,
                maximum=_U32_MAX,
            ),
            skip_weekends=_value(data, "skip_weekends", bool, defaults.skip_weekends),
            business_hours_only=_value(
                data, "business_hours_only", bool, defaults.business_hours_only
            ),
            release_hour_utc=_value(
                data,
                "release_hour_utc",
                int,
                defaults.release_hour_utc,
                minimum=0,
                maximum=_U8_MAX,
            ),
            gems=[_override_from_dict(item) for item in _list_of_tables(data, "gems")],
            pinned=[_pinned_from_dict(item) for item in _list_of_tables(data, "pinned")],
        )

    @classmethod
    def from_toml(cls, text: str) -> DelayPolicyConfig:
        return cls.from_dict(tomllib.loads(text))

    def to_adapter_policy(self) -> DelayPolicy:
        return DelayPolicy(
            default_delay_days=self.default_delay_days,
            skip_weekends=self.skip_weekends,
            business_hours_only=self.business_hours_only,
            release_hour_utc=self.release_hour_utc,
        )

    def delay_for_gem(self, name: str) -> int:
        """Delay in days for ``name``; the first matching override wins."""
        for override in self.gems:
            matched = (
                glob_match(override.name, name) if override.pattern else override.name == name
            )
            if matched:
                return override.delay_days
        return self.default_delay_days

    def is_pinned(self, name: str, version: str) -> bool:
        return self.pin_reason(name, version) is not None

    def pin_reason(self, name: str, version: str) -> str | None:
        return next(
            (p.reason for p in self.pinned if p.name == name and p.version == version),
            None,
        )