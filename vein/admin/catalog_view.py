"""View models for the gem catalogue pages."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol
from urllib.parse import quote

from .dashboard import format_bytes

_DEPENDENCY_KINDS = ("runtime", "development", "optional")


class _Dependency(Protocol):
    name: str
    requirement: str
    kind: Any


class _GemMetadata(Protocol):
    name: str
    version: str
    platform: str | None
    summary: str | None
    description: str | None
    licenses: Sequence[str]
    authors: Sequence[str]
    emails: Sequence[str]
    homepage: str | None
    documentation_url: str | None
    changelog_url: str | None
    source_code_url: str | None
    bug_tracker_url: str | None
    wiki_url: str | None
    funding_url: str | None
    metadata: Any
    dependencies: Sequence[_Dependency]
    executables: Sequence[str]
    extensions: Sequence[str]
    native_languages: Sequence[str]
    has_native_extensions: bool
    has_embedded_binaries: bool
    required_ruby_version: str | None
    required_rubygems_version: str | None
    built_at: str | None
    size_bytes: int
    sha256: str
    sbom: Any


@dataclass(frozen=True)
class CatalogEntry:
    """One gem name in the catalogue list."""

    name: str


@dataclass(frozen=True)
class DependencyView:
    """A dependency as shown on the gem detail page."""

    name: str
    requirement: str
    kind: str


def _kind_label(kind: Any) -> str:
    raw = kind.name if isinstance(kind, Enum) else str(kind)
    label = raw.lower()
    return label if label in _DEPENDENCY_KINDS else "unknown"


def _pretty_json(value: Any) -> str | None:
    try:
        return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError):
        return None


def _encode(text: str) -> str:
    return quote(text, safe="")


@dataclass
class GemMetadataView:
    """Gem metadata prepared for the detail template."""

    summary: str | None = None
    description: str | None = None
    description_paragraphs: list[str] = field(default_factory=list)
    authors: list[str] = field(default_factory=list)
    licenses: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    homepage: str | None = None
    documentation_url: str | None = None
    changelog_url: str | None = None
    source_code_url: str | None = None
    bug_tracker_url: str | None = None
    wiki_url: str | None = None
    funding_url: str | None = None
    platform: str | None = None
    built_at: str | None = None
    size_formatted: str = "0 B"
    sha256: str = ""
    required_ruby_version: str | None = None
    required_rubygems_version: str | None = None
    has_native_extensions: bool = False
    has_embedded_binaries: bool = False
    executables: list[str] = field(default_factory=list)
    extensions: list[str] = field(default_factory=list)
    native_languages: list[str] = field(default_factory=list)
    dependencies: list[DependencyView] = field(default_factory=list)
    metadata_json: str | None = None
    sbom: bool = False
    sbom_json: str | None = None
    sbom_download_url: str | None = None

    @classmethod
    def from_metadata(cls, meta: _GemMetadata) -> GemMetadataView:
        """Build the view from stored gem metadata."""
        paragraphs = (
            [segment.replace("\n", "<br />") for segment in meta.description.split("\n\n")]
            if meta.description is not None
            else []
        )
        metadata_json = _pretty_json(meta.metadata) if meta.metadata is not None else None

        has_sbom = meta.sbom is not None
        sbom_json = _pretty_json(meta.sbom) if has_sbom else None
        sbom_url = None
        if has_sbom:
            sbom_url = (
                f"/catalog/{_encode(meta.name)}/sbom?version={_encode(meta.version)}"
            )
            if meta.platform is not None:
                sbom_url += f"&platform={_encode(meta.platform)}"

        return cls(
            summary=meta.summary,
            description=meta.description,
            description_paragraphs=paragraphs,
            authors=list(meta.authors),
            licenses=list(meta.licenses),
            emails=list(meta.emails),
            homepage=meta.homepage,
            documentation_url=meta.documentation_url,
            changelog_url=meta.changelog_url,
            source_code_url=meta.source_code_url,
            bug_tracker_url=meta.bug_tracker_url,
            wiki_url=meta.wiki_url,
            funding_url=meta.funding_url,
            platform=meta.platform,
            built_at=meta.built_at,
            size_formatted=format_bytes(meta.size_bytes),
            sha256=meta.sha256,
            required_ruby_version=meta.required_ruby_version,
            required_rubygems_version=meta.required_rubygems_version,
            has_native_extensions=meta.has_native_extensions,
            has_embedded_binaries=meta.has_embedded_binaries,
            executables=list(meta.executables),
            extensions=list(meta.extensions),
            native_languages=list(meta.native_languages),
            dependencies=[
                DependencyView(
                    name=dep.name, requirement=dep.requirement, kind=_kind_label(dep.kind)
                )
                for dep in meta.dependencies
            ],
            metadata_json=metadata_json,
            sbom=has_sbom,
            sbom_json=sbom_json,
            sbom_download_url=sbom_url,
        )