"""CLI command for the web dashboard."""

from __future__ import annotations

import click

from tacks.cli_common import db_path_from, get_db


@click.command()
@click.option("--port", default=8080, show_default=True, type=int, help="Port to listen on")
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind")
@click.pass_context
def serve(ctx: click.Context, port: int, host: str) -> None:
    """Serve the JSON API and task list page."""
    from tacks.dashboard import main as dashboard_main

    # Fails fast (and migrates) before uvicorn starts.
    get_db(ctx).close()
    dashboard_main(db_path_from(ctx), host=host, port=port)


def register(cli: click.Group) -> None:
    """Register server commands with the CLI group."""
    cli.add_command(serve)
