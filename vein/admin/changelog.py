"""The admin changelog page of notable ecosystem events."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class ChangeLogEntry:
    """One dated item on the changelog."""

    date: date
    title: str
    category: str
    details: str
    highlight: bool = False

    @property
    def date_label(self) -> str:
        """The date as ``Mon DD, YYYY`` independent of locale."""
        return f"{_MONTHS[self.date.month - 1]} {self.date.day:02d}, {self.date.year}"


def sample_entries() -> list[ChangeLogEntry]:
    """The fixed entries shown until a live feed exists."""
    samples = (
        (date(2025, 10, 28), "Ruby 3.4.7 Available", "Ruby Release",
         "New security and performance update. "
         "Ruby 3.3.x enters maintenance mode on Dec 01.", True),
        (date(2025, 10, 25), "New Gem: turbo-latest", "New Gem",
         "turbo-latest 1.0.0 published with native Apple Silicon builds.", False),
        (date(2025, 10, 19), "EOL Reminder: Rails 6.1", "EOL Notice",
         "Rails 6.1 will exit support on Nov 15. Upgrade paths to 7.2+.", True),
        (date(2025, 10, 12), "Maintenance Pause: elasticsearch-ruby", "Maintenance",
         "Upstream maintainers announced limited maintenance while API stabilises.",
         False),
    )
    return [ChangeLogEntry(*sample) for sample in samples]


_ACCENT = "#8b5cf6"
_ACCENT_RGB = "139, 92, 246"

_STYLE: tuple[tuple[str, Mapping[str, str]], ...] = (
    (":root", {
        "color-scheme": "light dark",
        "--bg": "#0b1018",
        "--panel": "rgba(18, 24, 36, 0.82)",
        "--border": "rgba(148, 163, 184, 0.14)",
        "--accent": _ACCENT,
        "--accent-soft": f"rgba({_ACCENT_RGB}, 0.18)",
        "--fg": "#f5f8ff",
        "--muted": "rgba(241, 245, 255, 0.7)",
    }),
    ("body", {
        "margin": "0",
        "font-family": "'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif",
        "background": f"linear-gradient(180deg, rgba({_ACCENT_RGB}, 0.06) 0%, "
        "transparent 40%), var(--bg)",
        "color": "var(--fg)",
        "padding": "clamp(2rem, 5vw, 4rem)",
    }),
    ("main", {
        "max-width": "860px",
        "margin": "auto",
        "display": "flex",
        "flex-direction": "column",
        "gap": "1.75rem",
    }),
    ("header.top", {
        "display": "flex",
        "justify-content": "space-between",
        "align-items": "baseline",
    }),
    ("header.top h1", {"margin": "0", "font-size": "clamp(2rem, 4vw, 2.6rem)"}),
    ("header.top a", {"color": "var(--accent)", "text-decoration": "none"}),
    (".entry", {
        "padding": "1.5rem",
        "border-radius": "18px",
        "background": "var(--panel)",
        "border": "1px solid var(--border)",
        "box-shadow": "0 26px 40px rgba(15, 23, 42, 0.25)",
    }),
    (".entry.accent", {
        "border-color": "var(--accent)",
        "box-shadow": f"0 0 0 1px rgba({_ACCENT_RGB}, 0.4)",
    }),
    (".entry header", {
        "display": "flex",
        "flex-wrap": "wrap",
        "gap": "0.75rem",
        "align-items": "center",
    }),
    (".entry h2", {"flex": "1 1 auto", "margin": "0", "font-size": "1.25rem"}),
    (".entry .date", {
        "font-weight": "600",
        "letter-spacing": "0.08em",
        "text-transform": "uppercase",
        "color": "var(--muted)",
    }),
    (".entry .category", {
        "font-size": "0.85rem",
        "padding": "0.25rem 0.6rem",
        "border-radius": "999px",
        "background": f"rgba({_ACCENT_RGB}, 0.18)",
        "color": "var(--accent)",
        "text-transform": "uppercase",
        "letter-spacing": "0.05em",
    }),
    ("nav.links", {"display": "flex", "gap": "1rem", "margin-bottom": ".5rem"}),
    ("nav.links a", {"color": "var(--accent)", "text-decoration": "none"}),
    ("nav.links a:hover", {"text-decoration": "underline"}),
)

_NAV = (
    ("/", "Dashboard"),
    ("/security", "Security"),
    ("/permissions", "Entitlements"),
    ("/catalog", "Catalogue"),
)


def _css() -> str:
    return "".join(
        f"{selector} {{\n"
        + "".join(f"  {name}: {value};\n" for name, value in rules.items())
        + "}\n"
        for selector, rules in _STYLE
    )


def _render_entry(entry: ChangeLogEntry) -> str:
    css_class = "entry accent" if entry.highlight else "entry "
    lines = (
        f'<article class="{css_class}">',
        "  <header>",
        f'    <span class="date">{entry.date_label}</span>',
        f'    <span class="category">{entry.category}</span>',
        f"    <h2>{entry.title}</h2>",
        "  </header>",
        f"  <p>{entry.details}</p>",
        "</article>",
    )
    return "\n".join(lines)


def render_changelog(entries: Iterable[ChangeLogEntry]) -> str:
    """Render the changelog page HTML for ``entries`` in the given order."""
    body = "\n".join(_render_entry(entry) for entry in entries)
    nav = "\n".join(f'<a href="{href}">{label}</a>' for href, label in _NAV)
    main = (
        '<main>\n<header class="top">\n<h1>Vein Changelog</h1>\n'
        '<a href="/">Back to dashboard</a>\n</header>\n'
        f'<nav class="links">\n{nav}\n</nav>\n{body}\n</main>'
    )
    return (
        '<!DOCTYPE html>\n<html lang="en">\n<head>\n<meta charset="utf-8" />\n'
        f"<title>Vein Admin · Changelog</title>\n<style>\n{_css()}</style>\n</head>\n"
        f"<body>\n{main}\n</body>\n</html>\n"
    )