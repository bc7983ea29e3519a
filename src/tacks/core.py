"""Core database operations for the task tracker.

Single source of truth for all SQLite operations. Both the CLI and the web
dashboard import from this module. No daemon, no sync — just direct SQLite
with WAL mode.

Store location: ``.tacks/tacks.db`` under the current directory unless the
``TACKS_DB`` environment variable (or the CLI ``--db`` option) names another
file. ``prefix``, ``schema_version`` and ``default_priority`` live in the
store's own ``config`` table and are re-read on every use.
"""

from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tacks.db_base import write_transaction
from tacks.db_meta import MetaMixin
from tacks.db_planning import PlanningMixin
from tacks.db_schema import (
    CURRENT_SCHEMA_VERSION,
    DEFAULT_PREFIX,
    DEFAULT_PRIORITY_KEY,
    PREFIX_KEY,
    TASK_COLUMNS,
    VERSION_KEY,
)
from tacks.db_tasks import TasksMixin
from tacks.errors import MigrationFailed, NotFound
from tacks.ids import validate_prefix
from tacks.migrations import get_schema_version, migrate
from tacks.query import order_by
from tacks.validation import decode_tags, validate_priority

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

TACKS_DIR_NAME = ".tacks"
DB_FILENAME = "tacks.db"
DB_ENV_VAR = "TACKS_DB"


def find_tacks_dir(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for a .tacks/ directory.

    Returns the .tacks/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / TACKS_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {TACKS_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def resolve_db_path(explicit: str | Path | None = None, *, cwd: Path | None = None) -> Path:
    """Pick the store file.

    Order: explicit argument, ``$TACKS_DB``, the nearest ``.tacks/`` above
    *cwd*, and finally ``<cwd>/.tacks/tacks.db`` (which may not exist yet).
    """
    if explicit:
        return Path(explicit)
    env = os.environ.get(DB_ENV_VAR)
    if env:
        return Path(env)
    try:
        return find_tacks_dir(cwd) / DB_FILENAME
    except FileNotFoundError:
        return (cwd or Path.cwd()) / TACKS_DIR_NAME / DB_FILENAME


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Task:
    id: str
    title: str
    description: str | None = None
    status: str = "open"
    priority: int = 2
    assignee: str | None = None
    parent_id: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    close_reason: str | None = None
    notes: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Task:
        """Decode by column name; columns missing from older layouts take defaults."""
        data = {key: row[key] for key in row.keys() if key in TASK_COLUMNS}  # noqa: SIM118
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description"),
            status=data.get("status") or "open",
            priority=data["priority"] if data.get("priority") is not None else 2,
            assignee=data.get("assignee") or None,
            parent_id=data.get("parent_id") or None,
            tags=decode_tags(data.get("tags")),
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
            close_reason=data.get("close_reason"),
            notes=data.get("notes"),
        )

    @property
    def is_done(self) -> bool:
        return self.status == "done"

    def to_dict(self) -> dict[str, Any]:
        # Frozen JSON shape: fields may be added, never renamed or removed.
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "assignee": self.assignee,
            "parent_id": self.parent_id,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "close_reason": self.close_reason,
            "notes": self.notes,
        }


@dataclass
class Comment:
    id: int
    task_id: str
    body: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "task_id": self.task_id, "body": self.body, "created_at": self.created_at}


@dataclass
class EpicProgress:
    task: Task
    done: int
    total: int
    by_status: dict[str, int] = field(default_factory=dict)

    @property
    def pct(self) -> int:
        return int(self.done * 100 / self.total) if self.total else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.task.id,
            "title": self.task.title,
            "status": self.task.status,
            "priority": self.task.priority,
            "children_total": self.total,
            "children_done": self.done,
            "children_by_status": dict(self.by_status),
            "progress_pct": self.pct,
        }


# ---------------------------------------------------------------------------
# TacksDB
# ---------------------------------------------------------------------------


class TacksDB(TasksMixin, PlanningMixin, MetaMixin):
    """Direct SQLite operations. No daemon, no sync. Importable by CLI and dashboard."""

    def __init__(self, db_path: str | Path, *, check_same_thread: bool = True) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._check_same_thread = check_same_thread

    @classmethod
    def open(cls, db_path: str | Path, *, check_same_thread: bool = True) -> TacksDB:
        """Open or create the store at *db_path* and apply pending migrations.

        Raises MigrationFailed if any step fails; the handle is closed first
        so no caller can keep using a partially migrated store.
        """
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        db = cls(path, check_same_thread=check_same_thread)
        db.initialize()
        return db

    def __enter__(self) -> TacksDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                isolation_level="DEFERRED",
                check_same_thread=self._check_same_thread,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def initialize(self) -> int:
        """Create the baseline (if new) and apply pending migrations.

        Returns the number of migration steps applied.
        """
        try:
            applied = migrate(self.conn, CURRENT_SCHEMA_VERSION)
        except MigrationFailed:
            self.close()
            raise
        if applied:
            logger.info("Store %s migrated to schema v%d (%d step(s))", self.db_path, CURRENT_SCHEMA_VERSION, applied)
        return applied

    def get_schema_version(self) -> int:
        return get_schema_version(self.conn)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def reconnect(self, *, check_same_thread: bool = True) -> None:
        """Close and reopen the connection (e.g. for use from a server threadpool)."""
        self.close()
        self._check_same_thread = check_same_thread

    def _write_transaction(self) -> contextlib.AbstractContextManager[sqlite3.Connection]:
        return write_transaction(self.conn)

    @property
    def prefix(self) -> str:
        return self.get_config(PREFIX_KEY) or DEFAULT_PREFIX

    # -- Row access ----------------------------------------------------------

    def get_task(self, task_id: str) -> Task:
        row = self.conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFound(task_id)
        return Task.from_row(row)

    def _select_tasks(self, where: str = "", params: list[Any] | None = None, *, limit: int | None = None) -> list[Task]:
        """Run ``SELECT t.* FROM tasks t{where}`` in the canonical order."""
        sql = f"SELECT t.* FROM tasks t{where} ORDER BY {order_by('t')}"
        args = list(params or [])
        if limit is not None:
            sql += " LIMIT ?"
            args.append(limit)
        return [Task.from_row(r) for r in self.conn.execute(sql, args).fetchall()]


def open_store(db_path: str | Path, *, check_same_thread: bool = True) -> TacksDB:
    """Open (creating if needed) and migrate the store at *db_path*."""
    return TacksDB.open(db_path, check_same_thread=check_same_thread)


def init_store(
    db_path: str | Path,
    *,
    prefix: str = DEFAULT_PREFIX,
    default_priority: int | None = None,
    version: str = "",
) -> tuple[TacksDB, bool]:
    """Create (or re-open) a store and record its prefix.

    The prefix is written only when the store has none yet. Returns
    ``(db, created)`` where *created* is False for an existing store.
    """
    cleaned = validate_prefix(prefix)
    if default_priority is not None:
        validate_priority(default_priority)
    db = open_store(db_path)
    created = db.get_config(PREFIX_KEY) is None
    if created:
        db._write_config(PREFIX_KEY, cleaned)
        if version:
            db._write_config(VERSION_KEY, version)
        if default_priority is not None:
            db.set_config(DEFAULT_PRIORITY_KEY, str(default_priority))
        logger.info("Initialized store %s with prefix %r", db_path, cleaned)
    return db, created
