"""CLI commands for tasks: create, show, list, ready, blocked, update, claim, close, children, epic."""

from __future__ import annotations

import click

from tacks.cli_common import echo_json, echo_tasks, fail, get_db, wants_json
from tacks.errors import TacksError
from tacks.validation import split_tag_list

_DEFAULT_CLAIMANT = "agent"


@click.command()
@click.argument("title")
@click.option("--priority", "-p", default=None, type=int, help="Priority 0-4 (0=critical; default from config)")
@click.option("--description", "-d", default=None, help="Description")
@click.option("--tags", "-t", default=None, help="Comma-separated tags")
@click.option("--parent", default=None, help="Parent task ID (creates <parent>.N)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def create(
    ctx: click.Context,
    title: str,
    priority: int | None,
    description: str | None,
    tags: str | None,
    parent: str | None,
    as_json: bool,
) -> None:
    """Create a new task."""
    with get_db(ctx) as db:
        try:
            task = db.create_task(
                title,
                description=description,
                priority=priority,
                tags=split_tag_list(tags),
                parent_id=parent,
            )
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json(task.to_dict())
        else:
            click.echo(f"Created task {task.id}: {task.title}")


@click.command()
@click.argument("task_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx: click.Context, task_id: str, as_json: bool) -> None:
    """Show task details with blockers, subtasks and comments."""
    with get_db(ctx) as db:
        try:
            task = db.get_task(task_id)
            blockers = db.get_blockers(task_id)
            children = db.list_children(task_id)
            comments = db.get_comments(task_id)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)

        if wants_json(ctx, as_json):
            data = task.to_dict()
            data["blockers"] = [b.to_dict() for b in blockers]
            data["children"] = [c.to_dict() for c in children]
            data["comments"] = [c.to_dict() for c in comments]
            echo_json(data)
            return

        click.echo(f"ID:          {task.id}")
        click.echo(f"Title:       {task.title}")
        click.echo(f"Status:      {task.status}")
        click.echo(f"Priority:    P{task.priority}")
        if task.description:
            click.echo(f"Description: {task.description}")
        if task.assignee:
            click.echo(f"Assignee:    {task.assignee}")
        if task.parent_id:
            click.echo(f"Parent:      {task.parent_id}")
        if task.tags:
            click.echo(f"Tags:        {', '.join(task.tags)}")
        if task.close_reason:
            click.echo(f"Closed as:   {task.close_reason}")
        click.echo(f"Created:     {task.created_at}")
        click.echo(f"Updated:     {task.updated_at}")
        if task.notes:
            click.echo(f"\n--- Notes ---\n{task.notes}")
        if blockers:
            click.echo("\nBlockers:")
            for b in blockers:
                click.echo(f"  {b.id} [{b.status}] {b.title}")
        if children:
            click.echo("\nSubtasks:")
            for c in children:
                click.echo(f"  {c.id} [{c.status}] {c.title}")
        if comments:
            click.echo("\nComments:")
            for cm in comments:
                click.echo(f"  [{cm.created_at}] {cm.body}")


@click.command("list")
@click.option("--all", "-a", "include_closed", is_flag=True, help="Include done tasks")
@click.option("--status", "-s", default=None, help="Filter by status")
@click.option("--priority", "-p", default=None, type=int, help="Filter by priority")
@click.option("--tag", "-t", default=None, help="Filter by exact tag")
@click.option("--parent", default=None, help="Filter by parent ID")
@click.option("--limit", default=None, type=int, help="Max results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_tasks(
    ctx: click.Context,
    include_closed: bool,
    status: str | None,
    priority: int | None,
    tag: str | None,
    parent: str | None,
    limit: int | None,
    as_json: bool,
) -> None:
    """List tasks (done tasks hidden unless --all or --status done)."""
    with get_db(ctx) as db:
        try:
            tasks = db.list_tasks(
                status=status,
                priority=priority,
                tag=tag,
                parent_id=parent,
                include_closed=include_closed,
                limit=limit,
            )
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        echo_tasks(ctx, tasks, as_json)


@click.command()
@click.option("--limit", "-l", default=None, type=int, help="Max results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ready(ctx: click.Context, limit: int | None, as_json: bool) -> None:
    """Show open tasks with no unfinished blockers."""
    with get_db(ctx) as db:
        try:
            tasks = db.ready(limit=limit)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        echo_tasks(ctx, tasks, as_json)


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def blocked(ctx: click.Context, as_json: bool) -> None:
    """Show tasks waiting on at least one unfinished blocker."""
    with get_db(ctx) as db:
        tasks = db.blocked()
        if wants_json(ctx, as_json):
            echo_json([t.to_dict() for t in tasks])
            return
        if not tasks:
            click.echo("No blocked tasks.")
            return
        for t in tasks:
            waiting = [b.id for b in db.get_blockers(t.id) if not b.is_done]
            click.echo(f"{t.id:<12} P{t.priority}  {t.title}  (blocked by: {', '.join(waiting)})")


@click.command()
@click.argument("task_id")
@click.option("--title", default=None, help="New title")
@click.option("--priority", "-p", default=None, type=int, help="New priority")
@click.option("--status", "-s", default=None, help="New status")
@click.option("--description", "-d", default=None, help="New description")
@click.option("--assignee", default=None, help="New assignee (empty string to clear)")
@click.option("--notes", default=None, help="New notes")
@click.option("--reason", "close_reason", default=None, help="Close reason (only with status done)")
@click.option("--add-tags", default=None, help="Comma-separated tags to add")
@click.option("--remove-tags", default=None, help="Comma-separated tags to remove")
@click.option("--claim", is_flag=True, help="Set in_progress and assign (default assignee: agent)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update(
    ctx: click.Context,
    task_id: str,
    title: str | None,
    priority: int | None,
    status: str | None,
    description: str | None,
    assignee: str | None,
    notes: str | None,
    close_reason: str | None,
    add_tags: str | None,
    remove_tags: str | None,
    claim: bool,
    as_json: bool,
) -> None:
    """Update a task's fields."""
    if claim and status is not None:
        fail(ctx, "--claim and --status cannot be combined", as_json=as_json)

    with get_db(ctx) as db:
        if claim and assignee is None:
            assignee = _DEFAULT_CLAIMANT
        try:
            task = db.update_task(
                task_id,
                title=title,
                description=description,
                status=status,
                priority=priority,
                assignee=assignee,
                notes=notes,
                close_reason=close_reason,
                add_tags=split_tag_list(add_tags),
                remove_tags=split_tag_list(remove_tags),
                claim=claim,
            )
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json(task.to_dict())
        else:
            click.echo(f"Updated task {task.id} [{task.status}]")


@click.command()
@click.argument("task_id")
@click.argument("assignee", required=False, default=_DEFAULT_CLAIMANT)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def claim(ctx: click.Context, task_id: str, assignee: str, as_json: bool) -> None:
    """Claim a task: set in_progress and record the assignee."""
    with get_db(ctx) as db:
        try:
            task = db.claim_task(task_id, assignee)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json(task.to_dict())
        else:
            click.echo(f"Claimed {task.id}: {task.title} (assignee: {task.assignee})")


@click.command()
@click.argument("task_id")
@click.option("--reason", "-r", default="done", help="done, duplicate, absorbed, stale or superseded")
@click.option("--comment", "-c", default=None, help="Closing comment")
@click.option("--force", is_flag=True, help="Close even if subtasks are still open")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def close(ctx: click.Context, task_id: str, reason: str, comment: str | None, force: bool, as_json: bool) -> None:
    """Close a task."""
    with get_db(ctx) as db:
        try:
            task = db.close_task(task_id, reason=reason, comment=comment, force=force)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        if wants_json(ctx, as_json):
            echo_json(task.to_dict())
        else:
            click.echo(f"Closed task {task.id} ({task.close_reason})")


@click.command()
@click.argument("task_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def children(ctx: click.Context, task_id: str, as_json: bool) -> None:
    """List direct subtasks of a task."""
    with get_db(ctx) as db:
        try:
            tasks = db.list_children(task_id)
        except TacksError as e:
            fail(ctx, e, as_json=as_json)
        echo_tasks(ctx, tasks, as_json)


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def epic(ctx: click.Context, as_json: bool) -> None:
    """Show progress of every epic."""
    with get_db(ctx) as db:
        progress = db.epic_progress()
        if wants_json(ctx, as_json):
            echo_json([p.to_dict() for p in progress])
            return
        if not progress:
            click.echo("No epics found.")
            return
        click.echo(f"{'ID':<12} {'PRI':<4} {'STATUS':<12} {'TITLE':<40} PROGRESS")
        click.echo("-" * 80)
        for p in progress:
            title = p.task.title if len(p.task.title) <= 38 else p.task.title[:35] + "..."
            click.echo(
                f"{p.task.id:<12} {'P' + str(p.task.priority):<4} {p.task.status:<12} {title:<40} {p.done}/{p.total} ({p.pct}%)"
            )


def register(cli: click.Group) -> None:
    """Register task commands with the CLI group."""
    cli.add_command(create)
    cli.add_command(show)
    cli.add_command(list_tasks, "list")
    cli.add_command(ready)
    cli.add_command(blocked)
    cli.add_command(update)
    cli.add_command(claim)
    cli.add_command(close)
    cli.add_command(children)
    cli.add_command(epic)
