"""Composable read filters for task listings.

A filter is a list of typed :class:`Clause` objects combined with AND. Each
clause owns its SQL fragment and bound parameters; user values only ever
travel as parameters.

Every listing orders by ``priority ASC, created_at ASC, id ASC``. The id
tie-break makes the order total, so identical data always lists identically.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from tacks.validation import normalize_status, normalize_tag, validate_priority

ORDER_BY = "priority ASC, created_at ASC, id ASC"


@dataclass(frozen=True)
class Clause:
    """One predicate over the ``tasks`` table (optionally aliased)."""

    sql: str
    params: tuple[Any, ...] = ()

    def qualified(self, alias: str) -> Clause:
        """Return this clause with ``{t}`` column placeholders bound to *alias*."""
        prefix = f"{alias}." if alias else ""
        return Clause(self.sql.replace("{t}", prefix), self.params)


def status_is(status: str) -> Clause:
    return Clause("{t}status = ?", (status,))


def status_is_not(status: str) -> Clause:
    return Clause("{t}status != ?", (status,))


def priority_is(priority: int) -> Clause:
    return Clause("{t}priority = ?", (priority,))


def has_tag(tag: str) -> Clause:
    # Delimit both sides so 'ep' never matches 'epic'.
    return Clause("instr(',' || replace({t}tags, ' ', '') || ',', ?) > 0", (f",{tag},",))


def parent_is(parent_id: str) -> Clause:
    return Clause("{t}parent_id = ?", (parent_id,))


_OPEN_BLOCKER_EXISTS = (
    "EXISTS (SELECT 1 FROM dependencies d JOIN tasks blocker ON d.parent_id = blocker.id "
    "WHERE d.child_id = {t}id AND blocker.status != 'done')"
)


def no_open_blockers() -> Clause:
    """Every blocker (if any) is done. Needs an alias: the subquery has its own ``id``."""
    return Clause(f"NOT {_OPEN_BLOCKER_EXISTS}")


def has_open_blockers() -> Clause:
    return Clause(_OPEN_BLOCKER_EXISTS)


def compile_where(clauses: Sequence[Clause], *, alias: str = "t") -> tuple[str, list[Any]]:
    """Join *clauses* with AND. Returns ``(" WHERE ...", params)`` or ``("", [])``."""
    if not clauses:
        return "", []
    bound = [c.qualified(alias) for c in clauses]
    params: list[Any] = []
    for c in bound:
        params.extend(c.params)
    return " WHERE " + " AND ".join(f"({c.sql})" for c in bound), params


def order_by(alias: str = "t") -> str:
    if not alias:
        return ORDER_BY
    return ", ".join(f"{alias}.{part}" for part in ORDER_BY.split(", "))


@dataclass
class TaskFilter:
    """Conjunctive filter for ``list_tasks``.

    Done tasks are excluded unless ``include_closed`` is set or ``status``
    names ``done`` explicitly.
    """

    status: str | None = None
    priority: int | None = None
    tag: str | None = None
    parent_id: str | None = None
    include_closed: bool = False
    extra: list[Clause] = field(default_factory=list)

    def clauses(self) -> list[Clause]:
        out: list[Clause] = []
        if self.status is not None:
            out.append(status_is(normalize_status(self.status)))
        elif not self.include_closed:
            out.append(status_is_not("done"))
        if self.priority is not None:
            out.append(priority_is(validate_priority(self.priority)))
        if self.tag is not None:
            out.append(has_tag(normalize_tag(self.tag)))
        if self.parent_id is not None:
            out.append(parent_is(self.parent_id))
        out.extend(self.extra)
        return out
