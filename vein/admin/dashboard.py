"""The admin dashboard page: cache statistics and node configuration."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from .ruby import RubyStatus

_UNITS = ("B", "KB", "MB", "GB", "TB")


@dataclass(frozen=True)
class IndexStats:
    """Counters describing the local asset cache."""

    total_assets: int = 0
    gem_assets: int = 0
    unique_gems: int = 0
    total_size_bytes: int = 0
    last_accessed: str | None = None


@dataclass(frozen=True)
class SbomCoverage:
    """How many cached gem versions carry an SBOM."""

    metadata_rows: int = 0
    with_sbom: int = 0


@dataclass
class DashboardSnapshot:
    """Everything the dashboard page shows, gathered at one moment."""

    generated_at: datetime
    index: IndexStats
    storage_path: Path
    database_path: Path
    upstream: str | None
    server_host: str
    server_port: int
    worker_count: int
    catalog_total: int
    ruby_status: RubyStatus = field(default_factory=RubyStatus)
    sbom: SbomCoverage = field(default_factory=SbomCoverage)


def format_bytes(num_bytes: int) -> str:
    """Render a byte count with a binary unit, e.g. ``1.50 KB``."""
    if num_bytes == 0:
        return "0 B"
    value = float(num_bytes)
    unit = 0
    while value >= 1024.0 and unit < len(_UNITS) - 1:
        value /= 1024.0
        unit += 1
    if unit == 0:
        return f"{num_bytes} {_UNITS[0]}"
    return f"{value:.2f} {_UNITS[unit]}"


def escape_html(text: str) -> str:
    """Escape the five HTML-special characters."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )


# --- style sheet -----------------------------------------------------------

_Rule = tuple[str, "Mapping[str, str] | Sequence[_Rule]"]

_PANEL_SHADOW = "rgba(15, 23, 42, {alpha})"

_STYLE: tuple[_Rule, ...] = (
    (":root", {
        "color-scheme": "light dark",
        "--bg": "#0b1018",
        "--fg": "#f4f7ff",
        "--muted": "#96a1b7",
        "--panel": "rgba(17, 23, 34, 0.75)",
        "--border": "rgba(148, 163, 184, 0.2)",
        "--accent": "#4f8cff",
        "--accent-soft": "rgba(79, 140, 255, 0.2)",
    }),
    ("@media (prefers-color-scheme: light)", (
        (":root", {
            "--bg": "#f5f7fc",
            "--fg": "#101522",
            "--muted": "#4c566f",
            "--panel": "rgba(255, 255, 255, 0.85)",
            "--border": "rgba(15, 23, 42, 0.08)",
            "--accent": "#1d4ed8",
            "--accent-soft": "rgba(29, 78, 216, 0.08)",
        }),
    )),
    ("*", {"box-sizing": "border-box"}),
    ("body", {
        "margin": "0",
        "min-height": "100vh",
        "font-family": "'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif",
        "background": "radial-gradient(circle at top, rgba(79, 140, 255, 0.06), "
        "transparent 55%), var(--bg)",
        "color": "var(--fg)",
        "display": "flex",
        "padding": "4rem clamp(2rem, 5vw, 5rem)",
    }),
    ("main", {
        "margin": "auto",
        "width": "min(960px, 100%)",
        "display": "flex",
        "flex-direction": "column",
        "gap": "2.5rem",
    }),
    ("header", {
        "display": "flex",
        "align-items": "center",
        "justify-content": "space-between",
        "gap": "1.5rem",
        "padding": "clamp(1.75rem, 3vw, 2.5rem)",
        "border-radius": "24px",
        "background": "var(--panel)",
        "border": "1px solid var(--border)",
        "box-shadow": "0 40px 80px " + _PANEL_SHADOW.format(alpha="0.2"),
        "backdrop-filter": "blur(20px)",
    }),
    ("header h1", {
        "margin": "0",
        "font-size": "clamp(1.75rem, 4vw, 2.3rem)",
        "letter-spacing": "-0.03em",
    }),
    ("header p", {
        "margin": ".35rem 0 0",
        "color": "var(--muted)",
        "font-size": "clamp(0.95rem, 1.8vw, 1rem)",
    }),
    ("nav.links", {
        "display": "flex",
        "gap": "1rem",
        "margin": "-1.5rem 0 1rem",
        "padding": "0 clamp(1.75rem, 3vw, 2.5rem)",
    }),
    ("nav.links a", {
        "color": "var(--accent)",
        "text-decoration": "none",
        "font-weight": "600",
    }),
    ("nav.links a:hover", {"text-decoration": "underline"}),
    (".pill", {
        "display": "inline-flex",
        "align-items": "center",
        "gap": ".5rem",
        "padding": ".5rem 1rem",
        "border-radius": "999px",
        "border": "1px solid var(--border)",
        "background": "rgba(255,255,255,0.02)",
        "color": "var(--muted)",
        "font-size": ".9rem",
    }),
    (".grid", {
        "display": "grid",
        "grid-template-columns": "repeat(auto-fit, minmax(220px, 1fr))",
        "gap": "1.5rem",
    }),
    (".card", {
        "padding": "1.6rem",
        "border-radius": "20px",
        "background": "var(--panel)",
        "border": "1px solid var(--border)",
        "box-shadow": "0 24px 48px " + _PANEL_SHADOW.format(alpha="0.18"),
        "display": "flex",
        "flex-direction": "column",
        "gap": ".85rem",
    }),
    (".card h2", {
        "margin": "0",
        "font-size": ".95rem",
        "text-transform": "uppercase",
        "letter-spacing": ".14em",
        "color": "var(--muted)",
    }),
    (".card .metric", {
        "font-size": "clamp(1.8rem, 3.4vw, 2.4rem)",
        "font-weight": "600",
    }),
    (".detail", {
        "margin-top": "auto",
        "font-size": ".9rem",
        "color": "var(--muted)",
        "line-height": "1.5",
    }),
    (".muted", {"color": "var(--muted)"}),
    (".panel", {
        "padding": "1.75rem",
        "border-radius": "20px",
        "background": "var(--panel)",
        "border": "1px solid var(--border)",
        "box-shadow": "0 20px 45px " + _PANEL_SHADOW.format(alpha="0.16"),
        "display": "grid",
        "gap": "1rem",
    }),
    (".feature-box", {
        "display": "grid",
        "gap": "1.1rem",
        "padding": "clamp(1.75rem, 3vw, 2.3rem)",
        "border-radius": "22px",
        "background": "var(--panel)",
        "border": "1px solid var(--border)",
        "box-shadow": "0 26px 45px " + _PANEL_SHADOW.format(alpha="0.18"),
    }),
    (".feature-box h2", {
        "margin": "0",
        "font-size": "1.1rem",
        "text-transform": "uppercase",
        "letter-spacing": ".12em",
        "color": "var(--muted)",
    }),
    (".feature-box ul", {
        "list-style": "none",
        "margin": "0",
        "padding": "0",
        "display": "grid",
        "gap": ".75rem",
    }),
    (".feature-box li", {
        "display": "flex",
        "align-items": "center",
        "gap": ".8rem",
        "font-size": "1rem",
        "color": "var(--fg)",
    }),
    (".feature-box li span.icon", {
        "display": "inline-flex",
        "align-items": "center",
        "justify-content": "center",
        "width": "1.5rem",
        "height": "1.5rem",
        "border-radius": "50%",
        "background": "var(--accent-soft)",
        "color": "var(--accent)",
        "font-weight": "700",
        "font-size": ".9rem",
    }),
    (".panel dl", {
        "margin": "0",
        "display": "grid",
        "grid-template-columns": "180px 1fr",
        "gap": ".75rem 1.5rem",
        "font-size": ".95rem",
    }),
    (".panel dt", {
        "font-weight": "600",
        "color": "var(--muted)",
        "text-transform": "uppercase",
        "letter-spacing": ".1em",
    }),
    (".panel dd", {
        "margin": "0",
        "font-family": "'JetBrains Mono', 'SFMono-Regular', Menlo, monospace",
        "font-size": ".95rem",
        "color": "var(--fg)",
    }),
    ("a", {"color": "var(--accent)", "text-decoration": "none"}),
    ("a:hover", {"text-decoration": "underline"}),
)


def _css(rules: Iterable[_Rule], depth: int = 0) -> str:
    pad = "  " * depth
    blocks = []
    for selector, body in rules:
        if isinstance(body, Mapping):
            inner = "".join(f"{pad}  {name}: {value};\n" for name, value in body.items())
        else:
            inner = _css(body, depth + 1)
        blocks.append(f"{pad}{selector} {{\n{inner}{pad}}}\n")
    return "".join(blocks)


# --- page pieces -----------------------------------------------------------

_NAV = (
    ("/catalog", "Catalogue"),
    ("/changelog", "Changelog"),
    ("/permissions", "Entitlements"),
    ("/security", "Security"),
)

_FEATURES = (
    "Rubygems protocol",
    "Upstream protocol bridge",
    "SBOM export stream",
    "Gem auto-updater",
    "Diff-aware gem delivery",
    "SSH entitlement signing",
    "Incremental catalogue sync",
    "Ruby lifecycle insights",
)


def _card(title: str, *paragraphs: str) -> str:
    inner = "\n".join(paragraphs)
    return f'<article class="card">\n<h2>{title}</h2>\n{inner}\n</article>'


def _metric_card(title: str, metric: object, detail: str) -> str:
    return _card(
        title,
        f'<div class="metric">{metric}</div>',
        f'<p class="detail">{detail}</p>',
    )


def _ruby_latest(status: RubyStatus) -> str:
    release = status.latest_release
    if release is None:
        return "Unknown"
    return f"{release.version} ({release.date:%Y-%m-%d})"


def _ruby_security(status: RubyStatus) -> str:
    if not status.security_maintenance:
        return "None"
    parts = []
    for branch in status.security_maintenance:
        deadline = branch.expected_eol_date or branch.security_maintenance_date
        label = deadline.strftime("%Y-%m-%d") if deadline is not None else "TBD"
        parts.append(f"{branch.name} (until {label})")
    return ", ".join(parts)


def _ruby_eol(status: RubyStatus) -> str:
    if not status.recent_eol:
        return "None"
    return ", ".join(
        f"{branch.name} ({branch.eol_date:%Y-%m-%d})"
        if branch.eol_date is not None
        else f"{branch.name} (Unknown)"
        for branch in status.recent_eol
    )


def _utc(moment: datetime) -> datetime:
    return moment.astimezone(timezone.utc) if moment.tzinfo is not None else moment


def _sbom_summary(sbom: SbomCoverage) -> tuple[str, str]:
    total = sbom.metadata_rows
    covered = sbom.with_sbom
    if total <= 0:
        return "—", "SBOMs will appear as soon as gems are cached."
    missing = max(total - covered, 0)
    percent = covered / total * 100.0
    return (
        f"{percent:.0f}%",
        f"{covered} / {total} versions carry SBOMs ({missing} pending)",
    )


def render_dashboard(snapshot: DashboardSnapshot, show_upstream: bool) -> str:
    """Render the dashboard HTML; the upstream URL is hidden unless asked for."""
    status = snapshot.ruby_status
    index = snapshot.index
    generated_at = snapshot.generated_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    ruby_updated = _utc(status.fetched_at).strftime("%Y-%m-%d %H:%M UTC")
    sbom_metric, sbom_detail = _sbom_summary(snapshot.sbom)

    if show_upstream:
        upstream_detail = escape_html(snapshot.upstream or "offline / cache-only")
    else:
        upstream_detail = (
            '<span class="muted">hidden</span> &middot; '
            '<a href="?upstream=1">show upstream</a>'
        )

    cards = [
        _metric_card("Total Assets", index.total_assets,
                     "Includes gems and gemspecs cached locally."),
        _metric_card("Cached Gems", index.gem_assets, "Unique gem files stored on disk."),
        _metric_card("Unique Packages", index.unique_gems,
                     "Distinct gem names currently cached."),
        _metric_card("Storage Footprint", format_bytes(index.total_size_bytes),
                     "Approximate disk usage of cached assets."),
        _metric_card("Catalogue Size", snapshot.catalog_total,
                     'Upstream gem names synced. <a href="/catalog">Browse catalogue</a>.'),
        _metric_card("SBOM Coverage", escape_html(sbom_metric), escape_html(sbom_detail)),
        _card(
            "Ruby Lifecycle",
            f"<p><strong>Latest:</strong> {escape_html(_ruby_latest(status))}</p>",
            "<p><strong>Security maintenance:</strong> "
            f"{escape_html(_ruby_security(status))}</p>",
            f"<p><strong>Recent EOL:</strong> {escape_html(_ruby_eol(status))}</p>",
            f'<p class="detail">Fetched {escape_html(ruby_updated)}</p>',
        ),
        _card(
            "Access Control",
            "<p><strong>Status:</strong> Entitlements design draft</p>",
            "<p>SSH-signed tokens will gate premium gems and version ranges.</p>",
            '<p class="detail"><a href="/permissions">Review entitlement plan</a></p>',
        ),
    ]

    details = (
        ("Storage Path", escape_html(str(snapshot.storage_path))),
        ("Index Database", escape_html(str(snapshot.database_path))),
        ("Upstream", upstream_detail),
        ("Last Access", escape_html(index.last_accessed or "never")),
        ("Proxy Endpoint",
         escape_html(f"{snapshot.server_host}:{snapshot.server_port}")),
        ("Workers", str(snapshot.worker_count)),
    )

    nav = "\n".join(f'<a href="{href}">{label}</a>' for href, label in _NAV)
    features = "\n".join(
        f'<li><span class="icon">&#10003;</span>{name}</li>' for name in _FEATURES
    )
    definitions = "\n".join(f"<dt>{label}</dt>\n<dd>{value}</dd>" for label, value in details)

    sections = [
        "<header>\n<div>\n<h1>Vein Admin Console</h1>\n"
        "<p>Live cache insight and node configuration snapshot</p>\n</div>\n"
        f'<div class="pill">\n<span>Generated {generated_at}</span>\n</div>\n</header>',
        f'<nav class="links">\n{nav}\n</nav>',
        '<section class="grid">\n' + "\n".join(cards) + "\n</section>",
        '<section class="feature-box">\n<h2>Features enabled</h2>\n'
        f"<ul>\n{features}\n</ul>\n</section>",
        f'<section class="panel">\n<dl>\n{definitions}\n</dl>\n</section>',
    ]

    main = "<main>\n" + "\n".join(sections) + "\n</main>"
    return (
        '<!DOCTYPE html>\n<html lang="en">\n<head>\n<meta charset="utf-8" />\n'
        f"<title>Vein Dashboard</title>\n<style>\n{_css(_STYLE)}</style>\n</head>\n"
        f"<body>\n{main}\n</body>\n</html>\n"
    )