"""CLI commands for dependency edges: dep add, dep remove."""

from __future__ import annotations

import click

from tacks.cli_common import echo_json, fail, get_db, wants_json
from tacks.errors import TacksError


@click.group()
def dep() -> None:
    """Manage dependencies (CHILD is blocked by PARENT)."""


@dep.command("add")
@click.argument("child_id")
@click.argument("parent_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def dep_add(ctx: click.Context, child_id: str, parent_id: str, as_json: bool) -> None:
    """Make CHILD_ID depend on PARENT_ID."""
    with get_db(ctx) as db:
        try:
            db.add_dependency(child_id, parent_id)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json({"child_id": child_id, "parent_id": parent_id, "added": True})
        else:
            click.echo(f"Added dependency: {child_id} is blocked by {parent_id}")


@dep.command("remove")
@click.argument("child_id")
@click.argument("parent_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def dep_remove(ctx: click.Context, child_id: str, parent_id: str, as_json: bool) -> None:
    """Remove the edge CHILD_ID -> PARENT_ID (no error if absent)."""
    with get_db(ctx) as db:
        removed = db.remove_dependency(child_id, parent_id)
        if wants_json(ctx, as_json):
            echo_json({"child_id": child_id, "parent_id": parent_id, "removed": removed})
        elif removed:
            click.echo(f"Removed dependency: {child_id} no longer blocked by {parent_id}")
        else:
            click.echo(f"No dependency {child_id} -> {parent_id}")


def register(cli: click.Group) -> None:
    """Register dependency commands with the CLI group."""
    cli.add_command(dep)
