"""Ruby release and branch lifecycle status from the ruby-lang.org data files."""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from http import HTTPStatus
from typing import Any

import requests
import yaml

BRANCHES_URL = (
    "https://raw.githubusercontent.com/ruby/www.ruby-lang.org/master/_data/branches.yml"
)
RELEASES_URL = (
    "https://raw.githubusercontent.com/ruby/www.ruby-lang.org/master/_data/releases.yml"
)
USER_AGENT = "vein-admin/0.1.0"
REQUEST_TIMEOUT_SECS = 15
MAX_ATTEMPTS = 3
INITIAL_BACKOFF_MS = 1000
RECENT_EOL_LIMIT = 3

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RubyRelease:
    """A published Ruby release."""

    version: str
    date: date


@dataclass(frozen=True)
class BranchInfo:
    """A Ruby branch and its maintenance dates."""

    name: str
    status: str
    security_maintenance_date: date | None = None
    eol_date: date | None = None
    expected_eol_date: date | None = None


@dataclass
class RubyStatus:
    """A snapshot of the Ruby lifecycle."""

    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    latest_release: RubyRelease | None = None
    security_maintenance: list[BranchInfo] = field(default_factory=list)
    recent_eol: list[BranchInfo] = field(default_factory=list)


def parse_date(raw: str | None) -> date | None:
    """Parse a ``YYYY-MM-DD`` date, returning ``None`` if absent or malformed."""
    if raw is None:
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        return None


def _load_entries(text: str, what: str) -> list[Mapping[str, Any]]:
    # Every scalar stays a string, so branch names like 3.0 are kept verbatim.
    try:
        data = yaml.load(text, Loader=yaml.BaseLoader)
    except yaml.YAMLError as err:
        raise ValueError(f"parsing {what} yaml") from err
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError(f"parsing {what} yaml: expected a list of mappings")
    return data


def _text(entry: Mapping[str, Any], key: str, what: str, *, required: bool) -> str | None:
    if key not in entry:
        if required:
            raise ValueError(f"parsing {what} yaml: missing field `{key}`")
        return None
    value = entry[key]
    if not isinstance(value, str):
        raise ValueError(f"parsing {what} yaml: field `{key}` must be a string")
    return value


def build_ruby_status(branches_text: str, releases_text: str) -> RubyStatus:
    """Build a status snapshot from the branches and releases YAML documents."""
    branch_entries = _load_entries(branches_text, "branches")
    release_entries = _load_entries(releases_text, "releases")

    branches = [
        BranchInfo(
            name=_text(entry, "name", "branches", required=True),
            status=_text(entry, "status", "branches", required=True),
            security_maintenance_date=parse_date(
                _text(entry, "security_maintenance_date", "branches", required=False)
            ),
            eol_date=parse_date(_text(entry, "eol_date", "branches", required=False)),
            expected_eol_date=parse_date(
                _text(entry, "expected_eol_date", "branches", required=False)
            ),
        )
        for entry in branch_entries
    ]
    releases = [
        (
            _text(entry, "version", "releases", required=True),
            _text(entry, "date", "releases", required=True),
        )
        for entry in release_entries
    ]

    security = [b for b in branches if b.status == "security maintenance"]
    eol = [b for b in branches if b.status == "eol"]
    security.sort(key=lambda b: b.expected_eol_date or date.max)
    eol.sort(key=lambda b: b.eol_date or date.min)
    eol.reverse()

    latest_release = next(
        (
            RubyRelease(version=version, date=parsed)
            for version, raw_date in releases
            if (parsed := parse_date(raw_date)) is not None
        ),
        None,
    )

    return RubyStatus(
        fetched_at=datetime.now(timezone.utc),
        latest_release=latest_release,
        security_maintenance=security,
        recent_eol=eol[:RECENT_EOL_LIMIT],
    )


def _backoff(attempt: int) -> None:
    time.sleep(INITIAL_BACKOFF_MS * 2 ** (attempt - 1) / 1000)


def fetch_with_retry(session: requests.Session, url: str, resource_name: str) -> str:
    """GET ``url``, retrying on network errors, 429 and 5xx responses."""
    for attempt in itertools.count(1):
        _log.debug("fetching %s (attempt %d of %d)", resource_name, attempt, MAX_ATTEMPTS)
        try:
            response = session.get(url, timeout=REQUEST_TIMEOUT_SECS)
        except requests.RequestException as err:
            if attempt < MAX_ATTEMPTS:
                _log.warning("network error fetching %s, retrying: %s", resource_name, err)
                _backoff(attempt)
                continue
            raise RuntimeError(
                f"fetching {resource_name} data after {MAX_ATTEMPTS} attempts"
            ) from err

        status = response.status_code
        if 200 <= status < 300:
            return response.text

        should_retry = status == 429 or 500 <= status < 600
        if should_retry and attempt < MAX_ATTEMPTS:
            _log.warning("%s request failed with status %d, retrying", resource_name, status)
            _backoff(attempt)
            continue

        try:
            reason = HTTPStatus(status).phrase
        except ValueError:
            reason = "Unknown"
        raise RuntimeError(f"{resource_name} request failed with status {status}: {reason}")
    raise AssertionError("unreachable")


def fetch_ruby_status(session: requests.Session | None = None) -> RubyStatus:
    """Download the branch and release data and build a status snapshot."""
    if session is None:
        session = requests.Session()
        session.headers["User-Agent"] = USER_AGENT
    branches_text = fetch_with_retry(session, BRANCHES_URL, "branches")
    releases_text = fetch_with_retry(session, RELEASES_URL, "releases")
    return build_ruby_status(branches_text, releases_text)