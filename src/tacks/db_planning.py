"""PlanningMixin — dependencies, filtered listings, and ready/blocked/epic queries.

All methods access ``self.conn``, ``self.get_task()``, etc. via Python's
MRO when composed into ``TacksDB``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Any, TypedDict

from tacks.db_base import EPIC_TAG, VALID_STATUSES, DBMixinProtocol
from tacks.errors import CycleDetected, DuplicateEdge, InvalidValue, NotFound, SelfDependency
from tacks.graph import would_create_cycle
from tacks.query import TaskFilter, compile_where, has_open_blockers, has_tag, no_open_blockers, status_is_not

if TYPE_CHECKING:
    from tacks.core import EpicProgress, Task

logger = logging.getLogger(__name__)


class DependencyRecord(TypedDict):
    child_id: str
    parent_id: str


def _exists(conn: sqlite3.Connection, task_id: str) -> bool:
    return conn.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)).fetchone() is not None


class PlanningMixin(DBMixinProtocol):
    """Dependencies and DAG queries (ready/blocked/epic progress).

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``TacksDB`` at composition time via MRO.
    """

    if TYPE_CHECKING:

        def _select_tasks(self, where: str = "", params: list[Any] | None = None, *, limit: int | None = None) -> list[Task]: ...

    # -- Dependencies --------------------------------------------------------

    def add_dependency(self, child_id: str, parent_id: str) -> None:
        """Record that *child_id* is blocked by *parent_id*.

        Existence, duplicate and cycle checks run in the same write
        transaction as the INSERT, so two concurrent writers cannot both
        pass the cycle check.
        """
        if child_id == parent_id:
            raise SelfDependency(child_id)

        with self._write_transaction() as conn:
            for task_id in (child_id, parent_id):
                if not _exists(conn, task_id):
                    raise NotFound(task_id)
            duplicate = conn.execute(
                "SELECT 1 FROM dependencies WHERE child_id = ? AND parent_id = ?",
                (child_id, parent_id),
            ).fetchone()
            if duplicate is not None:
                raise DuplicateEdge(child_id, parent_id)
            if would_create_cycle(conn, child_id, parent_id):
                raise CycleDetected(child_id, parent_id)
            conn.execute(
                "INSERT INTO dependencies (child_id, parent_id) VALUES (?, ?)",
                (child_id, parent_id),
            )
        logger.debug("Added dependency %s -> %s", child_id, parent_id)

    def remove_dependency(self, child_id: str, parent_id: str) -> bool:
        """Delete the edge if present. Returns False (no error) when it was absent."""
        with self._write_transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM dependencies WHERE child_id = ? AND parent_id = ?",
                (child_id, parent_id),
            )
        return cursor.rowcount > 0

    def get_blockers(self, task_id: str) -> list[Task]:
        """Tasks that *task_id* depends on."""
        self.get_task(task_id)  # raises NotFound
        return self._select_tasks(
            " WHERE t.id IN (SELECT parent_id FROM dependencies WHERE child_id = ?)",
            [task_id],
        )

    def get_dependents(self, task_id: str) -> list[Task]:
        """Tasks that depend on *task_id*."""
        self.get_task(task_id)  # raises NotFound
        return self._select_tasks(
            " WHERE t.id IN (SELECT child_id FROM dependencies WHERE parent_id = ?)",
            [task_id],
        )

    def get_all_dependencies(self) -> list[DependencyRecord]:
        rows = self.conn.execute(
            "SELECT d.child_id, d.parent_id, c.id AS c_id, p.id AS p_id FROM dependencies d "
            "LEFT JOIN tasks c ON c.id = d.child_id LEFT JOIN tasks p ON p.id = d.parent_id "
            "ORDER BY d.child_id, d.parent_id"
        ).fetchall()
        result: list[DependencyRecord] = []
        for r in rows:
            if r["c_id"] is None or r["p_id"] is None:
                logger.warning("Skipping dangling dependency %s -> %s", r["child_id"], r["parent_id"])
                continue
            result.append({"child_id": r["child_id"], "parent_id": r["parent_id"]})
        return result

    # -- Listing -------------------------------------------------------------

    def list_tasks(
        self,
        *,
        status: str | None = None,
        priority: int | None = None,
        tag: str | None = None,
        parent_id: str | None = None,
        include_closed: bool = False,
        limit: int | None = None,
    ) -> list[Task]:
        """Conjunctive filtered listing in ``priority, created_at, id`` order.

        Done tasks are hidden unless *include_closed* or ``status="done"``.
        """
        task_filter = TaskFilter(status=status, priority=priority, tag=tag, parent_id=parent_id, include_closed=include_closed)
        return self.query_tasks(task_filter, limit=limit)

    def query_tasks(self, task_filter: TaskFilter, *, limit: int | None = None) -> list[Task]:
        if limit is not None and limit < 0:
            msg = f"limit must be non-negative, got {limit}"
            raise InvalidValue(msg)
        where, params = compile_where(task_filter.clauses())
        return self._select_tasks(where, params, limit=limit)

    # -- Ready / Blocked -----------------------------------------------------

    def ready(self, limit: int | None = None) -> list[Task]:
        """Open tasks whose blockers (if any) are all done."""
        task_filter = TaskFilter(status="open", extra=[no_open_blockers()])
        return self.query_tasks(task_filter, limit=limit)

    def blocked(self) -> list[Task]:
        """Non-done tasks with at least one blocker that is not done."""
        where, params = compile_where([status_is_not("done"), has_open_blockers()])
        return self._select_tasks(where, params)

    # -- Epics ---------------------------------------------------------------

    def epic_progress(self) -> list[EpicProgress]:
        """Every task tagged ``epic`` with its hierarchy children counted by status."""
        from tacks.core import EpicProgress

        where, params = compile_where([has_tag(EPIC_TAG)])
        epics = self._select_tasks(where, params)
        result: list[EpicProgress] = []
        for epic in epics:
            counts = dict.fromkeys(VALID_STATUSES, 0)
            rows = self.conn.execute(
                "SELECT status, COUNT(*) AS cnt FROM tasks WHERE parent_id = ? GROUP BY status",
                (epic.id,),
            ).fetchall()
            for row in rows:
                counts[row["status"]] = row["cnt"]
            total = sum(counts.values())
            result.append(EpicProgress(task=epic, done=counts["done"], total=total, by_status=counts))
        return result
