"""Cycle detection on the depends-on graph.

An edge ``(child_id, parent_id)`` means *child depends on parent*: the parent
blocks the child. Inserting that edge closes a cycle exactly when
``child_id`` is already reachable from ``parent_id`` by following existing
depends-on edges.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import deque

logger = logging.getLogger(__name__)


def would_create_cycle(conn: sqlite3.Connection, child_id: str, parent_id: str) -> bool:
    """Check whether adding ``child_id -> parent_id`` would create a cycle.

    Breadth-first search from *parent_id* over the nodes each visited node
    depends on. The number of expansions is capped at the task count (plus
    one for ids not present in ``tasks``), so the walk terminates even if
    the stored edge set is malformed.

    Must run inside the same write transaction as the INSERT it guards.
    """
    if child_id == parent_id:
        return True

    budget = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()[0] + 1
    visited: set[str] = {parent_id}
    queue = deque([parent_id])
    expansions = 0
    while queue:
        if expansions >= budget:
            logger.warning("Cycle check from %s stopped after %d expansions", parent_id, expansions)
            break
        current = queue.popleft()
        expansions += 1
        for row in conn.execute("SELECT parent_id FROM dependencies WHERE child_id = ?", (current,)).fetchall():
            blocker = row[0]
            if blocker == child_id:
                return True
            if blocker not in visited:
                visited.add(blocker)
                queue.append(blocker)
    return False
