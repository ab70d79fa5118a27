"""Database schema migrations for the admin index, applied to SQLite."""

from __future__ import annotations

import sqlite3
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial

MIGRATIONS_TABLE = "seaql_migrations"

_Operation = Callable[[sqlite3.Connection], None]


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _create_table(
    connection: sqlite3.Connection,
    table: str,
    columns: Sequence[str],
    primary_key: Sequence[str] = (),
) -> None:
    parts = list(columns)
    if primary_key:
        parts.append(f"PRIMARY KEY ({', '.join(_quote(col) for col in primary_key)})")
    connection.execute(f"CREATE TABLE IF NOT EXISTS {_quote(table)} ({', '.join(parts)})")


def _drop_table(connection: sqlite3.Connection, table: str) -> None:
    connection.execute(f"DROP TABLE {_quote(table)}")


def _column_names(connection: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in connection.execute(f"PRAGMA table_info({_quote(table)})")}


def _add_column_if_not_exists(
    connection: sqlite3.Connection, table: str, column: str, definition: str
) -> None:
    if column not in _column_names(connection, table):
        connection.execute(f"ALTER TABLE {_quote(table)} ADD COLUMN {_quote(column)} {definition}")


def _drop_column(connection: sqlite3.Connection, table: str, column: str) -> None:
    connection.execute(f"ALTER TABLE {_quote(table)} DROP COLUMN {_quote(column)}")


def _col(name: str, sql_type: str, *, not_null: bool = False, extra: str = "") -> str:
    parts = [_quote(name), sql_type]
    if not_null:
        parts.append("NOT NULL")
    if extra:
        parts.append(extra)
    return " ".join(parts)


_CACHED_ASSETS_COLUMNS = (
    _col("kind", "varchar", not_null=True),
    _col("name", "varchar", not_null=True),
    _col("version", "varchar", not_null=True),
    _col("platform", "varchar"),
    _col("path", "varchar", not_null=True),
    _col("sha256", "varchar", not_null=True),
    _col("size_bytes", "integer", not_null=True),
    _col("last_accessed", "timestamp", extra="DEFAULT CURRENT_TIMESTAMP"),
)

_CATALOG_GEMS_COLUMNS = (
    _col("name", "varchar", not_null=True, extra="PRIMARY KEY"),
    _col("latest_version", "varchar"),
    _col("synced_at", "timestamp", extra="DEFAULT CURRENT_TIMESTAMP"),
)

_CATALOG_META_COLUMNS = (
    _col("key", "varchar", not_null=True, extra="PRIMARY KEY"),
    _col("value", "varchar", not_null=True),
)

_GEM_METADATA_COLUMNS = (
    _col("name", "varchar", not_null=True),
    _col("version", "varchar", not_null=True),
    _col("platform", "varchar"),
    _col("summary", "varchar"),
    _col("description", "varchar"),
    _col("licenses", "varchar"),
    _col("authors", "varchar"),
    _col("emails", "varchar"),
    _col("homepage", "varchar"),
    _col("documentation_url", "varchar"),
    _col("changelog_url", "varchar"),
    _col("source_code_url", "varchar"),
    _col("bug_tracker_url", "varchar"),
    _col("wiki_url", "varchar"),
    _col("funding_url", "varchar"),
    _col("metadata_json", "varchar"),
    _col("dependencies_json", "varchar", not_null=True),
    _col("executables_json", "varchar"),
    _col("extensions_json", "varchar"),
    _col("has_native_extensions", "integer", not_null=True),
    _col("has_embedded_binaries", "integer", not_null=True),
    _col("required_ruby_version", "varchar"),
    _col("required_rubygems_version", "varchar"),
    _col("rubygems_version", "varchar"),
    _col("specification_version", "integer"),
    _col("built_at", "varchar"),
    _col("size_bytes", "integer"),
    _col("sha256", "varchar"),
)


@dataclass(frozen=True)
class Migration:
    """A named, reversible schema change."""

    name: str
    up_ops: tuple[_Operation, ...]
    down_ops: tuple[_Operation, ...]

    def up(self, connection: sqlite3.Connection) -> None:
        """Apply this migration."""
        for operation in self.up_ops:
            operation(connection)

    def down(self, connection: sqlite3.Connection) -> None:
        """Revert this migration."""
        for operation in self.down_ops:
            operation(connection)


def _create_migration(
    name: str, table: str, columns: Sequence[str], primary_key: Sequence[str] = ()
) -> Migration:
    return Migration(
        name=name,
        up_ops=(partial(_create_table, table=table, columns=columns, primary_key=primary_key),),
        down_ops=(partial(_drop_table, table=table),),
    )


def _add_column_migration(name: str, table: str, column: str, definition: str) -> Migration:
    return Migration(
        name=name,
        up_ops=(
            partial(_add_column_if_not_exists, table=table, column=column, definition=definition),
        ),
        down_ops=(partial(_drop_column, table=table, column=column),),
    )


def all_migrations() -> list[Migration]:
    """Every migration, in the order it must be applied."""
    return [
        _create_migration(
            "m20250723_000001_create_cached_assets",
            "cached_assets",
            _CACHED_ASSETS_COLUMNS,
            ("kind", "name", "version", "platform"),
        ),
        _create_migration(
            "m20250723_000002_create_catalog_gems", "catalog_gems", _CATALOG_GEMS_COLUMNS
        ),
        _create_migration(
            "m20250723_000003_create_catalog_meta", "catalog_meta", _CATALOG_META_COLUMNS
        ),
        _create_migration(
            "m20250723_000004_create_gem_metadata",
            "gem_metadata",
            _GEM_METADATA_COLUMNS,
            ("name", "version", "platform"),
        ),
        _add_column_migration(
            "m20250723_000005_add_sbom_column", "gem_metadata", "sbom_json", "varchar"
        ),
        _add_column_migration(
            "m20250723_000006_add_native_languages_column",
            "gem_metadata",
            "native_languages_json",
            "varchar",
        ),
    ]


def _ensure_tracking_table(connection: sqlite3.Connection) -> None:
    connection.execute(
        f"CREATE TABLE IF NOT EXISTS {_quote(MIGRATIONS_TABLE)} "
        '("version" varchar NOT NULL PRIMARY KEY, "applied_at" bigint NOT NULL)'
    )


def _applied(connection: sqlite3.Connection) -> set[str]:
    rows = connection.execute(f'SELECT "version" FROM {_quote(MIGRATIONS_TABLE)}')
    return {row[0] for row in rows}


def migrate_up(connection: sqlite3.Connection) -> list[str]:
    """Apply every pending migration; return the names applied."""
    with connection:
        _ensure_tracking_table(connection)
    applied = _applied(connection)
    done = []
    for migration in all_migrations():
        if migration.name in applied:
            continue
        with connection:
            migration.up(connection)
            connection.execute(
                f"INSERT INTO {_quote(MIGRATIONS_TABLE)} VALUES (?, ?)",
                (migration.name, int(time.time())),
            )
        done.append(migration.name)
    return done


def migrate_down(connection: sqlite3.Connection) -> list[str]:
    """Revert every applied migration, newest first; return the names reverted."""
    with connection:
        _ensure_tracking_table(connection)
    applied = _applied(connection)
    done = []
    for migration in reversed(all_migrations()):
        if migration.name not in applied:
            continue
        with connection:
            migration.down(connection)
            connection.execute(
                f'DELETE FROM {_quote(MIGRATIONS_TABLE)} WHERE "version" = ?',
                (migration.name,),
            )
        done.append(migration.name)
    return done