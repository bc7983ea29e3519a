"""CLI for the tacks task tracker.

Convention-based: uses .tacks/tacks.db found by walking up from cwd, unless
``--db`` or ``$TACKS_DB`` names another store file.

Usage:
    tk init [--prefix tk]                        # Create the store
    tk create "Fix the bug" -p 1 -t backend      # Create task
    tk create "Sub step" --parent tk-a1b2        # Create subtask (tk-a1b2.1)
    tk list [--all] [-s status] [-t tag]         # List tasks
    tk ready [--limit N]                         # Unblocked open tasks
    tk blocked                                   # Tasks waiting on blockers
    tk show <id>                                 # Task details
    tk update <id> --status in_progress          # Update fields
    tk claim <id> <assignee>                     # Take a task
    tk close <id> [-r reason] [-c comment]       # Close task
    tk children <id>                             # Direct subtasks
    tk epic                                      # Epic progress
    tk dep add|remove <child> <parent>           # Dependency edges
    tk comment <id> "text"                       # Add comment
    tk comments <id>                             # List comments
    tk stats [--oneline]                         # Counts
    tk prime                                     # Agent context summary
    tk config get|set <key> [value]              # Store settings
    tk serve [--port 8080]                       # Web dashboard
"""

from __future__ import annotations

import logging
import time

import click

from tacks import __version__
from tacks.cli_commands import deps as _deps
from tacks.cli_commands import meta as _meta
from tacks.cli_commands import server as _server
from tacks.cli_commands import tasks as _tasks

logger = logging.getLogger("tacks.cli")


@click.group()
@click.version_option(version=__version__, prog_name="tk")
@click.option("--db", "db_path", default=None, type=click.Path(dir_okay=False), help="Store file (default: .tacks/tacks.db, or $TACKS_DB)")
@click.option("--json", "as_json", is_flag=True, help="JSON output for every command")
@click.pass_context
def cli(ctx: click.Context, db_path: str | None, as_json: bool) -> None:
    """tacks — lightweight task tracker for coding agents."""
    ctx.ensure_object(dict)
    ctx.obj["db"] = db_path
    ctx.obj["json"] = as_json
    started = time.monotonic()
    command = ctx.invoked_subcommand or ""

    def _log_command() -> None:
        logger.info(
            "command finished",
            extra={"command": command, "duration_ms": round((time.monotonic() - started) * 1000, 1)},
        )

    ctx.call_on_close(_log_command)


_tasks.register(cli)
_deps.register(cli)
_meta.register(cli)
_server.register(cli)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
