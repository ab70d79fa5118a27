"""Synchronise the upstream list of gem names into the local catalogue."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import Protocol

import requests

NAMES_URL = "https://rubygems.org/names.gz"
META_ETAG = "catalog_names_etag"
META_LAST_MODIFIED = "catalog_names_last_modified"
USER_AGENT = "vein-catalog/0.1.0"
REQUEST_TIMEOUT_SECS = 60
CHUNK_SIZE = 1_000

_log = logging.getLogger(__name__)


class _CatalogIndex(Protocol):
    def catalog_meta_get(self, key: str) -> str | None: ...

    def catalog_meta_set(self, key: str, value: str) -> None: ...

    def catalog_upsert_names(self, names: Sequence[str]) -> None: ...


def parse_names(text: str) -> list[str]:
    """Return the trimmed, non-empty lines of a names listing."""
    return [stripped for line in text.split("\n") if (stripped := line.strip())]


def _chunks(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def build_session() -> requests.Session:
    """Create an HTTP session that identifies itself as the catalogue syncer."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def sync_names_with_client(index: _CatalogIndex, session: requests.Session) -> int | None:
    """Fetch the names list with ``session`` and store it in ``index``.

    Returns the number of names stored, or ``None`` when upstream reports the
    list unchanged since the last sync.
    """
    headers: dict[str, str] = {}
    etag = index.catalog_meta_get(META_ETAG)
    if etag is not None:
        headers["If-None-Match"] = etag
    last_modified = index.catalog_meta_get(META_LAST_MODIFIED)
    if last_modified is not None:
        headers["If-Modified-Since"] = last_modified

    try:
        response = session.get(NAMES_URL, headers=headers, timeout=REQUEST_TIMEOUT_SECS)
    except requests.RequestException as err:
        raise RuntimeError("requesting rubygems names list") from err

    if response.status_code == 304:
        _log.info("catalog names list is up to date")
        return None
    if not 200 <= response.status_code < 300:
        raise RuntimeError("fetching rubygems names list")

    new_etag = response.headers.get("ETag")
    new_last_modified = response.headers.get("Last-Modified")

    names = parse_names(response.text)
    for chunk in _chunks(names, CHUNK_SIZE):
        index.catalog_upsert_names(chunk)

    if new_etag is not None:
        index.catalog_meta_set(META_ETAG, new_etag)
    if new_last_modified is not None:
        index.catalog_meta_set(META_LAST_MODIFIED, new_last_modified)

    _log.info("catalog names synced: %d", len(names))
    return len(names)


def sync_names_once(index: _CatalogIndex) -> int | None:
    """Run one catalogue sync with a fresh session."""
    with build_session() as session:
        return sync_names_with_client(index, session)