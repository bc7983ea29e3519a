"""Context summary ("prime") for agents starting a session.

Reads the store and renders a compact markdown (or JSON) digest: status
counts, work in progress, the next few ready tasks and a command reference.
"""

from __future__ import annotations

import re
from typing import Any

from tacks.core import TacksDB, Task

READY_LIMIT = 5

COMMAND_REFERENCE: tuple[str, ...] = (
    "tk create <title> [-p priority] [-d desc] [-t tags] [--parent id]",
    "tk list [-s status] [-p pri] [-t tag] [--parent id] [--all] [--json]",
    "tk ready [--limit N] [--json]",
    "tk show <id> [--json]",
    "tk update <id> [fields...] [--claim]",
    "tk close <id> [-r reason] [-c comment] [--force]",
    "tk dep add|remove <child> <parent>",
    "tk comment <id> <body>",
    "tk stats [--oneline] [--json]",
)

# Matches C0/C1 control characters except tab/newline (which we handle separately)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def _sanitize_title(text: str) -> str:
    """Strip control characters and newlines so a title stays on one markdown line."""
    text = _CONTROL_CHARS_RE.sub("", text)
    text = " ".join(text.replace("\r", " ").replace("\n", " ").split())
    if len(text) > 200:
        text = text[:197] + "..."
    return text


def _task_line(task: Task, *, with_assignee: bool = False) -> str:
    line = f"- {task.id}: {_sanitize_title(task.title)} [P{task.priority}]"
    if with_assignee and task.assignee:
        line += f" (assigned: {task.assignee})"
    return line


def status_oneline(by_status: dict[str, int]) -> str:
    """``"2 open, 1 in_progress"`` style summary; ``"no tasks"`` when empty."""
    parts = [f"{count} {status}" for status, count in by_status.items() if count]
    return ", ".join(parts) if parts else "no tasks"


def prime_data(db: TacksDB) -> dict[str, Any]:
    stats = db.stats()
    in_progress = db.list_tasks(status="in_progress")
    ready = db.ready(limit=READY_LIMIT)
    return {
        "stats": dict(stats["by_status"]),
        "in_progress": [t.to_dict() for t in in_progress],
        "ready": [t.to_dict() for t in ready],
        "command_reference": list(COMMAND_REFERENCE),
    }


def generate_prime(db: TacksDB) -> str:
    """Render the markdown context summary."""
    stats = db.stats()
    in_progress = db.list_tasks(status="in_progress")
    ready = db.ready(limit=READY_LIMIT)

    lines: list[str] = ["# Tacks: Project Status", "", "## Stats", status_oneline(stats["by_status"]), ""]

    lines.append("## In Progress")
    if in_progress:
        lines.extend(_task_line(t, with_assignee=True) for t in in_progress)
    else:
        lines.append("none")
    lines.append("")

    lines.append(f"## Ready (next {READY_LIMIT})")
    if ready:
        lines.extend(_task_line(t) for t in ready)
    else:
        lines.append("none")
    lines.append("")

    lines.append("## Command Reference")
    lines.extend(COMMAND_REFERENCE)
    return "\n".join(lines) + "\n"


def stats_payload(db: TacksDB) -> dict[str, Any]:
    """JSON shape of ``stats`` shared by the CLI and the HTTP API."""
    s = db.stats()
    return {
        "total": s["total"],
        "by_status": dict(s["by_status"]),
        "by_priority": {f"P{p}": n for p, n in s["by_priority"].items()},
        "by_tag": dict(s["by_tag"]),
        "ready_count": s["ready_count"],
        "blocked_count": s["blocked_count"],
        "total_dependencies": s["total_dependencies"],
    }
