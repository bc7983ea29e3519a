"""Shared CLI helpers used by ``cli.py`` and ``cli_commands/*.py``.

Provides ``get_db()`` plus output/error helpers so the command modules can
share them without circular imports.
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import click

from tacks.core import TacksDB, Task, open_store, resolve_db_path
from tacks.errors import MigrationFailed, TacksError
from tacks.logging import setup_logging

logger = logging.getLogger("tacks.cli")

EXIT_ERROR = 1
EXIT_MIGRATION = 2


def db_path_from(ctx: click.Context) -> Path:
    """Store path for this invocation: ``--db``, then ``$TACKS_DB``, then discovery."""
    obj = ctx.find_root().obj or {}
    return resolve_db_path(obj.get("db"))


def wants_json(ctx: click.Context, as_json: bool) -> bool:
    """True if either the per-command or the global ``--json`` flag is set."""
    obj = ctx.find_root().obj or {}
    return as_json or bool(obj.get("json"))


def attach_log(db_path: Path) -> None:
    """Write the JSONL log beside the store when its directory exists."""
    if db_path.parent.is_dir():
        setup_logging(db_path.parent)


def get_db(ctx: click.Context) -> TacksDB:
    """Open the store for this invocation, or exit if there is none.

    Exits 1 when the store does not exist and 2 when a migration fails.
    """
    db_path = db_path_from(ctx)
    if not db_path.exists():
        click.echo(f"No tacks store at {db_path}. Run 'tk init' first.", err=True)
        sys.exit(EXIT_ERROR)
    attach_log(db_path)
    try:
        return open_store(db_path)
    except MigrationFailed as e:
        logger.error("Migration failed for %s", db_path, extra={"error": e.code})
        click.echo(f"Error: {e}", err=True)
        click.echo(
            f"The store was left at schema v{e.from_version}. Restore {db_path} from a backup "
            f"or move it aside and run 'tk init' to start a new one.",
            err=True,
        )
        sys.exit(EXIT_MIGRATION)


def fail(ctx: click.Context, error: TacksError | str, *, as_json: bool = False) -> NoReturn:
    """Report *error* (plain text on stderr, or a JSON envelope on stdout) and exit 1."""
    if isinstance(error, TacksError):
        message, code = error.message, error.code
    else:
        message, code = error, "INVALID_VALUE"
    logger.warning(message, extra={"command": ctx.command_path, "error": code})
    if wants_json(ctx, as_json):
        click.echo(json_mod.dumps({"error": message, "code": code}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(EXIT_ERROR)


def echo_json(data: Any) -> None:
    click.echo(json_mod.dumps(data, indent=2, default=str))


def _clip(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def echo_task_table(tasks: list[Task]) -> None:
    if not tasks:
        click.echo("No tasks found.")
        return
    click.echo(f"{'ID':<12} {'PRI':<4} {'STATUS':<12} {'TITLE':<50} TAGS")
    click.echo("-" * 90)
    for t in tasks:
        click.echo(f"{t.id:<12} {'P' + str(t.priority):<4} {t.status:<12} {_clip(t.title, 48):<50} {', '.join(t.tags)}")


def echo_tasks(ctx: click.Context, tasks: list[Task], as_json: bool) -> None:
    if wants_json(ctx, as_json):
        echo_json([t.to_dict() for t in tasks])
    else:
        echo_task_table(tasks)

