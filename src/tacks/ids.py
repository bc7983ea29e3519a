"""Task identifier generation.

Top-level tasks get ``<prefix>-xxxx`` where ``xxxx`` is four hex characters
taken from a SHA-256 of a random seed and the current time. Subtasks get
``<parent_id>.N`` with N counting up from 1 under each parent.

Both generators read the store, so callers must invoke them inside the same
write transaction as the INSERT that consumes the id.
"""

from __future__ import annotations

import hashlib
import logging
import re
import sqlite3
import time
import uuid

logger = logging.getLogger(__name__)

SUFFIX_LENGTH = 4
_MAX_ATTEMPTS = 64
_PREFIX_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_]*$")


def validate_prefix(prefix: str) -> str:
    """Return *prefix* stripped, or raise ValueError if unusable as an id namespace."""
    cleaned = prefix.strip()
    if not _PREFIX_RE.match(cleaned):
        msg = f"invalid prefix {prefix!r}: use letters, digits and underscores"
        raise ValueError(msg)
    return cleaned


def _hash_suffix(length: int) -> str:
    seed = f"{uuid.uuid4().hex}:{time.time_ns()}".encode()
    return hashlib.sha256(seed).hexdigest()[:length]


def _exists(conn: sqlite3.Connection, task_id: str) -> bool:
    return conn.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)).fetchone() is not None


def new_task_id(conn: sqlite3.Connection, prefix: str) -> str:
    """Generate an unused ``<prefix>-xxxx`` id, regenerating on collision.

    After ``_MAX_ATTEMPTS`` collisions (a nearly full namespace) the suffix
    grows by two characters per round so generation always terminates.
    """
    length = SUFFIX_LENGTH
    while True:
        for _ in range(_MAX_ATTEMPTS):
            candidate = f"{prefix}-{_hash_suffix(length)}"
            if not _exists(conn, candidate):
                return candidate
            logger.debug("ID collision on %s, regenerating", candidate)
        logger.warning("Namespace %r crowded at suffix length %d; widening", prefix, length)
        length += 2


def next_subtask_number(conn: sqlite3.Connection, parent_id: str) -> int:
    """Return ``max(N) + 1`` over existing ``<parent_id>.N`` ids (1 if none).

    Matches on the id shape rather than the current ``parent_id`` column so a
    suffix already handed out is never reused.
    """
    stem = f"{parent_id}."
    highest = 0
    rows = conn.execute(
        "SELECT id FROM tasks WHERE substr(id, 1, ?) = ?",
        (len(stem), stem),
    ).fetchall()
    for row in rows:
        rest = row[0][len(stem) :]
        if rest.isdigit():
            highest = max(highest, int(rest))
    return highest + 1


def new_subtask_id(conn: sqlite3.Connection, parent_id: str) -> str:
    return f"{parent_id}.{next_subtask_number(conn, parent_id)}"
