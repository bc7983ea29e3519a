"""TasksMixin — task CRUD, claiming, closing and hierarchy listing.

All methods access ``self.conn``, ``self.get_task()``, etc. via Python's
MRO when composed into ``TacksDB``. Every write runs in one
``BEGIN IMMEDIATE`` transaction so validation reads cannot go stale.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from tacks.db_base import EPIC_TAG, DBMixinProtocol, _next_timestamp, _now_iso
from tacks.db_schema import DEFAULT_PREFIX, DEFAULT_PRIORITY_KEY, PREFIX_KEY
from tacks.errors import InvalidValue, NotFound, OpenDependents
from tacks.ids import new_subtask_id, new_task_id
from tacks.query import compile_where, parent_is, status_is_not
from tacks.validation import (
    encode_tags,
    normalize_status,
    normalize_tag,
    normalize_tags,
    sanitize_assignee,
    validate_close_reason,
    validate_priority,
    validate_title,
)

if TYPE_CHECKING:
    from tacks.core import Task

logger = logging.getLogger(__name__)

_FALLBACK_PRIORITY = 2


def _read_config(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM config WHERE key = ?", (key,)).fetchone()
    return None if row is None else row[0]


def _default_priority(conn: sqlite3.Connection) -> int:
    raw = _read_config(conn, DEFAULT_PRIORITY_KEY)
    if raw is None:
        return _FALLBACK_PRIORITY
    try:
        return validate_priority(int(raw))
    except ValueError:
        logger.warning("Ignoring malformed default_priority %r in config", raw)
        return _FALLBACK_PRIORITY


def _load(conn: sqlite3.Connection, task_id: str) -> Task:
    from tacks.core import Task

    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    if row is None:
        raise NotFound(task_id)
    return Task.from_row(row)


def _open_children(conn: sqlite3.Connection, task_id: str) -> list[str]:
    rows = conn.execute(
        "SELECT id FROM tasks WHERE parent_id = ? AND status != 'done' ORDER BY id",
        (task_id,),
    ).fetchall()
    return [r[0] for r in rows]


class TasksMixin(DBMixinProtocol):
    """Task CRUD, claiming, closing and hierarchy listing.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``TacksDB`` at composition time via MRO.
    """

    if TYPE_CHECKING:

        def _select_tasks(self, where: str = "", params: list[Any] | None = None, *, limit: int | None = None) -> list[Task]: ...

    # -- Create --------------------------------------------------------------

    def create_task(
        self,
        title: str,
        *,
        description: str | None = None,
        priority: int | None = None,
        tags: list[str] | None = None,
        parent_id: str | None = None,
    ) -> Task:
        """Insert a new task and return it as stored.

        With *parent_id* the id is ``<parent>.N`` and the parent gains the
        ``epic`` tag in the same transaction.
        """
        clean_title = validate_title(title)
        if priority is not None:
            validate_priority(priority)
        clean_tags = encode_tags(normalize_tags(tags or []))

        with self._write_transaction() as conn:
            if priority is None:
                priority = _default_priority(conn)
            if parent_id:
                parent = _load(conn, parent_id)
                task_id = new_subtask_id(conn, parent.id)
            else:
                parent = None
                task_id = new_task_id(conn, _read_config(conn, PREFIX_KEY) or DEFAULT_PREFIX)

            now = _now_iso()
            conn.execute(
                "INSERT INTO tasks (id, title, description, status, priority, assignee, parent_id, tags, created_at, updated_at) "
                "VALUES (?, ?, ?, 'open', ?, NULL, ?, ?, ?, ?)",
                (task_id, clean_title, description, priority, parent_id or None, clean_tags, now, now),
            )
            if parent is not None and EPIC_TAG not in parent.tags:
                conn.execute(
                    "UPDATE tasks SET tags = ?, updated_at = ? WHERE id = ?",
                    (encode_tags([*parent.tags, EPIC_TAG]), _next_timestamp(parent.updated_at), parent.id),
                )
                logger.debug("Tagged %s as epic", parent.id)

        logger.debug("Created task %s", task_id)
        return self.get_task(task_id)

    # -- Update --------------------------------------------------------------

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        status: str | None = None,
        priority: int | None = None,
        assignee: str | None = None,
        notes: str | None = None,
        close_reason: str | None = None,
        add_tags: list[str] | None = None,
        remove_tags: list[str] | None = None,
        claim: bool = False,
    ) -> Task:
        """Apply the supplied fields; unsupplied fields are untouched.

        ``updated_at`` advances even when nothing else changes. An empty
        *assignee* clears it. Moving to ``done`` is refused while hierarchy
        children are open; leaving ``done`` clears the close reason.

        With *claim* the task moves to ``in_progress`` under *assignee* in
        the same write as every other field. Done tasks cannot be claimed.
        """
        # --- Validate all inputs BEFORE any writes ---
        if claim and status is not None:
            msg = "claim and status cannot be combined"
            raise InvalidValue(msg)
        new_title = validate_title(title) if title is not None else None
        new_status = normalize_status(status) if status is not None else None
        if priority is not None:
            validate_priority(priority)
        new_reason = validate_close_reason(close_reason) if close_reason is not None else None
        new_assignee = sanitize_assignee(assignee) if assignee or claim else None
        adding = normalize_tags(add_tags or [])
        removing = {normalize_tag(t) for t in remove_tags or []}

        with self._write_transaction() as conn:
            current = _load(conn, task_id)
            if claim:
                if current.status == "done":
                    msg = f"cannot claim {task_id}: task is already done"
                    raise InvalidValue(msg)
                new_status = "in_progress"
            final_status = new_status or current.status

            if final_status == "done":
                if current.status != "done":
                    pending = _open_children(conn, task_id)
                    if pending:
                        raise OpenDependents(task_id, pending)
                reason = new_reason or current.close_reason or "done"
            else:
                if new_reason is not None:
                    msg = f"close reason requires status done (task {task_id} would be {final_status})"
                    raise InvalidValue(msg)
                reason = None

            updates: list[str] = ["status = ?", "close_reason = ?"]
            params: list[Any] = [final_status, reason]
            if new_title is not None:
                updates.append("title = ?")
                params.append(new_title)
            if description is not None:
                updates.append("description = ?")
                params.append(description)
            if priority is not None:
                updates.append("priority = ?")
                params.append(priority)
            if assignee is not None or claim:
                updates.append("assignee = ?")
                params.append(new_assignee)
            if notes is not None:
                updates.append("notes = ?")
                params.append(notes)
            if adding or removing:
                merged = (set(current.tags) | set(adding)) - removing
                updates.append("tags = ?")
                params.append(encode_tags(merged))
            updates.append("updated_at = ?")
            params.append(_next_timestamp(current.updated_at))

            conn.execute(f"UPDATE tasks SET {', '.join(updates)} WHERE id = ?", [*params, task_id])

        return self.get_task(task_id)

    def claim_task(self, task_id: str, assignee: str) -> Task:
        """Set status ``in_progress`` and record *assignee*. Done tasks cannot be claimed."""
        task = self.update_task(task_id, assignee=assignee, claim=True)
        logger.debug("Task %s claimed by %s", task_id, task.assignee)
        return task

    def close_task(
        self,
        task_id: str,
        *,
        reason: str = "done",
        comment: str | None = None,
        force: bool = False,
    ) -> Task:
        """Mark a task done with *reason*; optionally attach a closing comment.

        Refused with :class:`OpenDependents` while any hierarchy child is not
        done, unless *force*. The comment is written in the same transaction.
        """
        clean_reason = validate_close_reason(reason)
        body = comment.strip() if comment else ""

        with self._write_transaction() as conn:
            current = _load(conn, task_id)
            if current.status == "done":
                msg = f"task {task_id} is already done"
                raise InvalidValue(msg)
            pending = _open_children(conn, task_id)
            if pending and not force:
                raise OpenDependents(task_id, pending)
            if pending:
                logger.info("Force-closing %s with %d open child task(s)", task_id, len(pending))

            stamp = _next_timestamp(current.updated_at)
            conn.execute(
                "UPDATE tasks SET status = 'done', close_reason = ?, updated_at = ? WHERE id = ?",
                (clean_reason, stamp, task_id),
            )
            if body:
                conn.execute(
                    "INSERT INTO comments (task_id, body, created_at) VALUES (?, ?, ?)",
                    (task_id, body, _now_iso()),
                )

        logger.debug("Closed task %s (%s)", task_id, clean_reason)
        return self.get_task(task_id)

    # -- Hierarchy -----------------------------------------------------------

    def list_children(self, task_id: str, *, include_closed: bool = True) -> list[Task]:
        """Direct hierarchy children of *task_id* in listing order."""
        self.get_task(task_id)  # raises NotFound
        clauses = [parent_is(task_id)]
        if not include_closed:
            clauses.append(status_is_not("done"))
        where, params = compile_where(clauses)
        return self._select_tasks(where, params)
