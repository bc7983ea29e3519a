"""Shared utilities, types, and Protocol for DB mixins."""

from __future__ import annotations

import contextlib
import sqlite3
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from tacks.core import Task

VALID_STATUSES: tuple[str, ...] = ("open", "in_progress", "done", "blocked")
VALID_CLOSE_REASONS: tuple[str, ...] = ("done", "duplicate", "absorbed", "stale", "superseded")
EPIC_TAG = "epic"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _next_timestamp(previous: str | None) -> str:
    """Current time, but never earlier than *previous* (ISO strings in UTC sort lexically)."""
    now = _now_iso()
    if previous and previous > now:
        return previous
    return now


class DBMixinProtocol(Protocol):
    """Shared attributes and methods that DB mixins access via self.

    Mixins inherit this Protocol so mypy can type-check self.conn,
    self.get_task(), etc. Actual implementations are provided by
    TacksDB at composition time.
    """

    db_path: Path
    _conn: sqlite3.Connection | None

    @property
    def conn(self) -> sqlite3.Connection: ...

    def get_task(self, task_id: str) -> Task: ...

    def _write_transaction(self) -> contextlib.AbstractContextManager[sqlite3.Connection]: ...


@contextlib.contextmanager
def write_transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the body under ``BEGIN IMMEDIATE``; commit on success, roll back on any error.

    IMMEDIATE takes the write lock up front so reads made for validation
    (cycle check, next subtask number) cannot go stale before the insert.
    """
    if conn.in_transaction:
        conn.commit()
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()
