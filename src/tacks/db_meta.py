"""MetaMixin — comments, stats, and the store's config table.

All methods access ``self.conn``, ``self.get_task()``, etc. via Python's
MRO when composed into ``TacksDB``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypedDict

from tacks.db_base import VALID_STATUSES, DBMixinProtocol, _now_iso
from tacks.db_schema import DEFAULT_PRIORITY_KEY, PREFIX_KEY, SCHEMA_VERSION_KEY, VERSION_KEY
from tacks.errors import InvalidValue
from tacks.validation import decode_tags, validate_priority

if TYPE_CHECKING:
    from tacks.core import Comment

# Keys ``set_config`` accepts. prefix and schema_version are fixed once written.
SETTABLE_CONFIG_KEYS: tuple[str, ...] = (DEFAULT_PRIORITY_KEY,)
KNOWN_CONFIG_KEYS: tuple[str, ...] = (PREFIX_KEY, SCHEMA_VERSION_KEY, VERSION_KEY, DEFAULT_PRIORITY_KEY)


class StatsResult(TypedDict):
    total: int
    by_status: dict[str, int]
    by_priority: dict[int, int]
    by_tag: list[tuple[str, int]]
    ready_count: int
    blocked_count: int
    total_dependencies: int


class MetaMixin(DBMixinProtocol):
    """Comments, stats and config.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``TacksDB`` at composition time via MRO.
    """

    # -- Comments ------------------------------------------------------------

    def add_comment(self, task_id: str, body: str) -> Comment:
        from tacks.core import Comment

        if not isinstance(body, str) or not body.strip():
            msg = "comment body cannot be empty"
            raise InvalidValue(msg)
        now = _now_iso()
        with self._write_transaction() as conn:
            self.get_task(task_id)  # raises NotFound
            cursor = conn.execute(
                "INSERT INTO comments (task_id, body, created_at) VALUES (?, ?, ?)",
                (task_id, body, now),
            )
            rowid = cursor.lastrowid
        if rowid is None:  # pragma: no cover
            msg = "INSERT did not produce a lastrowid"
            raise RuntimeError(msg)
        return Comment(id=rowid, task_id=task_id, body=body, created_at=now)

    def get_comments(self, task_id: str) -> list[Comment]:
        """Comments on *task_id*, oldest first (insertion order breaks ties)."""
        from tacks.core import Comment

        self.get_task(task_id)  # raises NotFound
        rows = self.conn.execute(
            "SELECT id, task_id, body, created_at FROM comments WHERE task_id = ? ORDER BY created_at, id",
            (task_id,),
        ).fetchall()
        return [Comment(id=r["id"], task_id=r["task_id"], body=r["body"], created_at=r["created_at"]) for r in rows]

    # -- Stats ---------------------------------------------------------------

    def stats(self) -> StatsResult:
        """Counts by status, priority and tag, plus ready/blocked totals.

        Tags are ordered by count descending, then name.
        """
        by_status = dict.fromkeys(VALID_STATUSES, 0)
        for row in self.conn.execute("SELECT status, COUNT(*) AS cnt FROM tasks GROUP BY status").fetchall():
            by_status[row["status"]] = row["cnt"]

        by_priority = dict.fromkeys(range(5), 0)
        for row in self.conn.execute("SELECT priority, COUNT(*) AS cnt FROM tasks GROUP BY priority").fetchall():
            by_priority[row["priority"]] = row["cnt"]

        tag_counts: dict[str, int] = {}
        for row in self.conn.execute("SELECT tags FROM tasks WHERE tags != ''").fetchall():
            for tag in decode_tags(row["tags"]):
                tag_counts[tag] = tag_counts.get(tag, 0) + 1
        by_tag = sorted(tag_counts.items(), key=lambda kv: (-kv[1], kv[0]))

        ready_count = self.conn.execute(
            "SELECT COUNT(*) AS cnt FROM tasks t "
            "WHERE t.status = 'open' AND NOT EXISTS ("
            "  SELECT 1 FROM dependencies d JOIN tasks blocker ON d.parent_id = blocker.id "
            "  WHERE d.child_id = t.id AND blocker.status != 'done'"
            ")"
        ).fetchone()["cnt"]
        blocked_count = self.conn.execute(
            "SELECT COUNT(DISTINCT t.id) AS cnt FROM tasks t "
            "JOIN dependencies d ON d.child_id = t.id "
            "JOIN tasks blocker ON d.parent_id = blocker.id "
            "WHERE t.status != 'done' AND blocker.status != 'done'"
        ).fetchone()["cnt"]
        dep_count = self.conn.execute("SELECT COUNT(*) AS cnt FROM dependencies").fetchone()["cnt"]

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_priority": by_priority,
            "by_tag": by_tag,
            "ready_count": ready_count,
            "blocked_count": blocked_count,
            "total_dependencies": dep_count,
        }

    # -- Config --------------------------------------------------------------

    def get_config(self, key: str) -> str | None:
        row = self.conn.execute("SELECT value FROM config WHERE key = ?", (key,)).fetchone()
        return None if row is None else row["value"]

    def get_all_config(self) -> dict[str, str]:
        return {r["key"]: r["value"] for r in self.conn.execute("SELECT key, value FROM config ORDER BY key").fetchall()}

    def set_config(self, key: str, value: str) -> str:
        """Set a user-editable config key and return the stored value."""
        if key not in SETTABLE_CONFIG_KEYS:
            if key in KNOWN_CONFIG_KEYS:
                msg = f"config key {key!r} is read-only"
            else:
                msg = f"unknown config key {key!r}. settable keys: {', '.join(SETTABLE_CONFIG_KEYS)}"
            raise InvalidValue(msg)
        if key == DEFAULT_PRIORITY_KEY:
            try:
                number = int(str(value).strip())
            except ValueError:
                msg = f"default_priority must be an integer between 0 and 4, got {value!r}"
                raise InvalidValue(msg) from None
            value = str(validate_priority(number))
        self._write_config(key, value)
        return value

    def _write_config(self, key: str, value: str) -> None:
        with self._write_transaction() as conn:
            conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)", (key, value))
