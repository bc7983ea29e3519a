"""Schema migration framework for tacks.

Migrations are version-keyed functions that move the schema from one version
to the next. Each receives a raw sqlite3.Connection and must be idempotent
(safe to re-run, using IF NOT EXISTS / column-existence checks).

The migration runner:
  1. Ensures the baseline tables exist and ``schema_version`` is seeded at 0
  2. Reads the current version from the ``config`` table
  3. Applies each pending migration in order, one transaction per step
  4. Bumps ``schema_version`` inside the same transaction as the step

A crash therefore leaves the store at either version N or N+1, never in
between. Re-running on a current store performs no writes.

Adding a new migration:
  1. Increment CURRENT_SCHEMA_VERSION in db_schema.py
  2. Add ``def migrate_v<N>_to_v<N+1>(conn) -> None`` here
  3. Register it in MIGRATIONS under key N
  4. Append the column name to TASK_COLUMNS if the step adds a task column
  5. Add a test in tests/migrations/

Columns may only be appended, and must be nullable or carry a default.
Never drop or retype an existing column.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Protocol

from tacks.db_schema import CURRENT_SCHEMA_VERSION, SCHEMA_V0_SQL, SCHEMA_VERSION_KEY
from tacks.errors import MigrationFailed

logger = logging.getLogger(__name__)


class MigrationFn(Protocol):
    """Protocol for migration functions."""

    def __call__(self, conn: sqlite3.Connection) -> None: ...


# ---------------------------------------------------------------------------
# Migration steps
#
# Keys are the version being migrated FROM.
# ---------------------------------------------------------------------------


def migrate_v0_to_v1(conn: sqlite3.Connection) -> None:
    """v0 → v1: record why a task was closed.

    Changes:
      - tasks: add 'close_reason' column (TEXT, nullable)
      - backfill close_reason='done' for tasks already in status 'done'
    """
    add_column(conn, "tasks", "close_reason", "TEXT", default=None)
    conn.execute("UPDATE tasks SET close_reason = 'done' WHERE status = 'done' AND close_reason IS NULL")


def migrate_v1_to_v2(conn: sqlite3.Connection) -> None:
    """v1 → v2: free-form working notes, overwritten on each update.

    Changes:
      - tasks: add 'notes' column (TEXT, nullable)
    """
    add_column(conn, "tasks", "notes", "TEXT", default=None)


MIGRATIONS: dict[int, MigrationFn] = {
    0: migrate_v0_to_v1,
    1: migrate_v1_to_v2,
}


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def ensure_baseline(conn: sqlite3.Connection) -> None:
    """Create the version-0 tables and seed ``schema_version`` if absent.

    Runs as one transaction. Uses ``execute`` per statement rather than
    ``executescript``, which would commit implicitly.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        for statement in SCHEMA_V0_SQL.split(";"):
            if statement.strip():
                conn.execute(statement)
        conn.execute(
            "INSERT OR IGNORE INTO config (key, value) VALUES (?, '0')",
            (SCHEMA_VERSION_KEY,),
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read ``schema_version`` from the config table (0 when missing)."""
    row = conn.execute("SELECT value FROM config WHERE key = ?", (SCHEMA_VERSION_KEY,)).fetchone()
    if row is None:
        return 0
    try:
        return int(row[0])
    except (TypeError, ValueError) as exc:
        raise MigrationFailed(0, CURRENT_SCHEMA_VERSION, ValueError(f"invalid schema_version value: {row[0]!r}")) from exc


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
        (SCHEMA_VERSION_KEY, str(version)),
    )


def apply_pending_migrations(conn: sqlite3.Connection, target_version: int = CURRENT_SCHEMA_VERSION) -> int:
    """Apply all pending migrations from the stored version up to *target_version*.

    Returns:
        Number of migrations applied (0 if already up to date).

    Raises:
        MigrationFailed: If a step fails (that step is rolled back; earlier
            steps stay committed), if no step is registered for a version,
            or if the store is newer than this release.
    """
    current = get_schema_version(conn)

    if current == target_version:
        return 0

    if current > target_version:
        msg = f"Database schema v{current} is newer than this version of tacks (expects v{target_version}). Downgrade is not supported."
        raise MigrationFailed(current, target_version, ValueError(msg))

    applied = 0
    for version in range(current, target_version):
        migration = MIGRATIONS.get(version)
        if migration is None:
            msg = f"No migration registered for v{version} → v{version + 1}. Database is at v{version}, target is v{target_version}."
            raise MigrationFailed(version, version + 1, KeyError(msg))

        logger.info("Applying migration v%d → v%d ...", version, version + 1)
        try:
            conn.execute("BEGIN IMMEDIATE")
            migration(conn)
            _set_schema_version(conn, version + 1)
            conn.commit()
        except Exception as exc:
            conn.rollback()
            logger.error("Migration v%d → v%d failed: %s", version, version + 1, exc)
            raise MigrationFailed(version, version + 1, exc) from exc
        applied += 1
        logger.info("Migration v%d → v%d complete.", version, version + 1)

    return applied


def has_baseline(conn: sqlite3.Connection) -> bool:
    """True when the config table exists and already holds ``schema_version``."""
    row = conn.execute("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'config'").fetchone()
    if row is None:
        return False
    return conn.execute("SELECT 1 FROM config WHERE key = ?", (SCHEMA_VERSION_KEY,)).fetchone() is not None


def migrate(conn: sqlite3.Connection, target_version: int = CURRENT_SCHEMA_VERSION) -> int:
    """Bring *conn* to *target_version*: baseline first, then pending steps.

    On an already-current store this only reads.
    """
    try:
        if not has_baseline(conn):
            ensure_baseline(conn)
    except sqlite3.Error as exc:
        raise MigrationFailed(0, 0, exc) from exc
    return apply_pending_migrations(conn, target_version)


# ---------------------------------------------------------------------------
# SQLite migration helpers
# ---------------------------------------------------------------------------


def column_names(conn: sqlite3.Connection, table: str) -> list[str]:
    """Return column names of *table* in ordinal order."""
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def add_column(
    conn: sqlite3.Connection,
    table: str,
    column: str,
    col_type: str = "TEXT",
    default: str | None = "''",
) -> None:
    """Append a column to a table (idempotent).

    Args:
        conn: SQLite connection.
        table: Table name.
        column: New column name.
        col_type: SQL type (TEXT, INTEGER, REAL, BLOB).
        default: DEFAULT value as a SQL literal (e.g., "''" or "0").
                 If None, the column is nullable with no DEFAULT clause.
    """
    if column in column_names(conn, table):
        return

    default_clause = f" DEFAULT {default}" if default is not None else ""
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}{default_clause}")
