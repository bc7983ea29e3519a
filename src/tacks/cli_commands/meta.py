"""CLI commands for the store and metadata: init, comment, comments, stats, prime, config."""

from __future__ import annotations

import sys

import click

from tacks import __version__
from tacks.cli_common import EXIT_MIGRATION, attach_log, db_path_from, echo_json, fail, get_db, wants_json
from tacks.core import init_store
from tacks.db_schema import DEFAULT_PREFIX
from tacks.errors import MigrationFailed, TacksError
from tacks.summary import generate_prime, prime_data, stats_payload, status_oneline


@click.command()
@click.option("--prefix", default=DEFAULT_PREFIX, show_default=True, help="ID prefix for new tasks")
@click.option("--default-priority", default=None, type=int, help="Priority for tasks created without -p (0-4)")
@click.pass_context
def init(ctx: click.Context, prefix: str, default_priority: int | None) -> None:
    """Create the task store (.tacks/tacks.db unless --db or $TACKS_DB)."""
    db_path = db_path_from(ctx)
    try:
        db, created = init_store(db_path, prefix=prefix, default_priority=default_priority, version=__version__)
    except MigrationFailed as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_MIGRATION)
    except ValueError as e:
        fail(ctx, str(e))
    attach_log(db_path)
    with db:
        if created:
            click.echo(f"Initialized tacks database at {db_path}")
            click.echo(f"Task prefix: {db.prefix}")
        else:
            click.echo(f"Store already exists at {db_path} (prefix: {db.prefix}, schema v{db.get_schema_version()})")


@click.command()
@click.argument("task_id")
@click.argument("body")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def comment(ctx: click.Context, task_id: str, body: str, as_json: bool) -> None:
    """Add a comment to a task."""
    with get_db(ctx) as db:
        try:
            added = db.add_comment(task_id, body)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json(added.to_dict())
        else:
            click.echo(f"Added comment to {task_id}")


@click.command()
@click.argument("task_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def comments(ctx: click.Context, task_id: str, as_json: bool) -> None:
    """List comments on a task, oldest first."""
    with get_db(ctx) as db:
        try:
            result = db.get_comments(task_id)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json([c.to_dict() for c in result])
            return
        if not result:
            click.echo("No comments.")
            return
        for c in result:
            click.echo(f"[{c.created_at}] {c.body}")


@click.command()
@click.option("--oneline", is_flag=True, help="Single-line status summary")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx: click.Context, oneline: bool, as_json: bool) -> None:
    """Show task counts by status, priority and tag."""
    with get_db(ctx) as db:
        if wants_json(ctx, as_json):
            echo_json(stats_payload(db))
            return
        s = db.stats()

    if oneline:
        click.echo(status_oneline(s["by_status"]))
        return
    if not s["total"]:
        click.echo("No tasks found.")
        return

    click.echo("By Status")
    click.echo("-" * 24)
    for status, count in s["by_status"].items():
        click.echo(f"  {status:<14} {count}")
    click.echo("\nBy Priority")
    click.echo("-" * 24)
    for priority, count in s["by_priority"].items():
        if count:
            click.echo(f"  {'P' + str(priority):<14} {count}")
    if s["by_tag"]:
        click.echo("\nBy Tag")
        click.echo("-" * 24)
        for tag, count in s["by_tag"]:
            click.echo(f"  {tag:<14} {count}")
    click.echo(f"\nReady: {s['ready_count']}  Blocked: {s['blocked_count']}")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def prime(ctx: click.Context, as_json: bool) -> None:
    """Print an agent context summary. Prints nothing when no store exists."""
    if not db_path_from(ctx).exists():
        return
    with get_db(ctx) as db:
        if wants_json(ctx, as_json):
            echo_json(prime_data(db))
        else:
            click.echo(generate_prime(db), nl=False)


@click.group()
def config() -> None:
    """Read or change store settings."""


@config.command("get")
@click.argument("key", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def config_get(ctx: click.Context, key: str | None, as_json: bool) -> None:
    """Print KEY, or every setting when KEY is omitted."""
    with get_db(ctx) as db:
        if key is None:
            values = db.get_all_config()
            if wants_json(ctx, as_json):
                echo_json(values)
            else:
                for k, v in values.items():
                    click.echo(f"{k} = {v}")
            return
        value = db.get_config(key)
        if value is None:
            fail(ctx, f"config key not set: {key}", as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json({key: value})
        else:
            click.echo(value)


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str, as_json: bool) -> None:
    """Set KEY to VALUE (only default_priority is settable)."""
    with get_db(ctx) as db:
        try:
            stored = db.set_config(key, value)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json({key: stored})
        else:
            click.echo(f"{key} = {stored}")


def register(cli: click.Group) -> None:
    """Register store and metadata commands with the CLI group."""
    cli.add_command(init)
    cli.add_command(comment)
    cli.add_command(comments)
    cli.add_command(stats)
    cli.add_command(prime)
    cli.add_command(config)
