"""CLI commands for issue CRUD: create, show, list, update, close, reopen, delete."""

from __future__ import annotations

import json as json_mod
from datetime import UTC
from typing import Any

import click

from issuedeck.cli_common import fail, get_controller, resolve_issue, resolve_tag
from issuedeck.core import PRIORITY_NAMES
from issuedeck.filters import Filter, SearchState, SortType, Status


@click.command()
@click.argument("title")
@click.option("--content", "-c", default=None, help="Issue body")
@click.option("--priority", "-p", default=None, type=click.IntRange(0, 2), help="Priority 0-2 (2=high)")
@click.option("--tag", "-t", "tag_name", default=None, help="Attach to this tag")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def create(title: str, content: str | None, priority: int | None, tag_name: str | None, as_json: bool) -> None:
    """Create a new issue."""
    with get_controller() as controller:
        tag = resolve_tag(controller, tag_name, as_json=as_json) if tag_name else None
        issue = controller.create_issue(tag)
        try:
            controller.update_issue(issue, title=title, content=content, priority=priority, immediate=True)
        except ValueError as e:
            controller.delete(issue)
            fail(str(e), as_json=as_json)
        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        else:
            click.echo(f"Created {issue.id}: {issue.issue_title}")


@click.command()
@click.argument("issue_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(issue_id: str, as_json: bool) -> None:
    """Show issue details."""
    with get_controller() as controller:
        issue = resolve_issue(controller, issue_id, as_json=as_json)

        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
            return

        click.echo(f"ID:       {issue.id}")
        click.echo(f"Title:    {issue.issue_title}")
        click.echo(f"Status:   {issue.issue_status}")
        click.echo(f"Priority: {PRIORITY_NAMES[issue.issue_priority]}")
        click.echo(f"Tags:     {issue.issue_tags_list}")
        click.echo(f"Created:  {issue.issue_creation_date.isoformat()}")
        click.echo(f"Modified: {issue.issue_modification_date.isoformat()}")
        if issue.reminder_enabled:
            click.echo(f"Reminder: {issue.issue_reminder_time.isoformat()}")
        if issue.issue_content:
            click.echo(f"\n--- Content ---\n{issue.issue_content}")


@click.command("list")
@click.option("--recent", is_flag=True, help="Only issues modified in the last 7 days")
@click.option("--tag", "-t", "tag_name", default=None, help="Only issues with this tag")
@click.option("--search", "-s", "free_text", default="", help="Text to find in title or content")
@click.option("--token", multiple=True, help="Also require this tag (repeatable)")
@click.option("--priority", "-p", default=None, type=click.IntRange(0, 2), help="Filter by priority")
@click.option("--status", type=click.Choice([s.value for s in Status]), default=Status.ALL.value, help="Filter by status")
@click.option(
    "--sort",
    "sort_field",
    type=click.Choice([s.value for s in SortType]),
    default=SortType.CREATION_DATE.value,
    help="Sort field",
)
@click.option("--asc", is_flag=True, help="Oldest first")
@click.option("--rank", is_flag=True, help="Order title matches by match position")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_issues(
    recent: bool,
    tag_name: str | None,
    free_text: str,
    token: tuple[str, ...],
    priority: int | None,
    status: str,
    sort_field: str,
    asc: bool,
    rank: bool,
    as_json: bool,
) -> None:
    """List issues with optional filters."""
    with get_controller() as controller:
        if tag_name:
            selected = Filter.for_tag(resolve_tag(controller, tag_name, as_json=as_json))
        elif recent:
            selected = Filter.recent_issues()
        else:
            selected = Filter.all_issues()
        search = SearchState(
            free_text=free_text,
            tag_tokens=[resolve_tag(controller, name, as_json=as_json) for name in token],
            advanced_filter_enabled=priority is not None or status != Status.ALL.value,
            priority_filter=priority if priority is not None else -1,
            status_filter=Status(status),
            sort_field=SortType(sort_field),
            sort_descending=not asc,
            rank_matches=rank,
        )
        issues = controller.issues_for_filter(selected, search)

        if as_json:
            click.echo(json_mod.dumps([i.to_dict() for i in issues], indent=2, default=str))
            return

        for issue in issues:
            click.echo(f"P{issue.issue_priority} {issue.id} {issue.issue_status:<7} {issue.issue_title}")

        click.echo(f"\n{len(issues)} issues")


@click.command()
@click.argument("issue_id")
@click.option("--title", default=None, help="New title")
@click.option("--content", "-c", default=None, help="New content")
@click.option("--priority", "-p", default=None, type=int, help="New priority 0-2")
@click.option("--reminder", default=None, type=click.DateTime(), help="Enable a reminder at this time")
@click.option("--no-reminder", is_flag=True, help="Disable the reminder")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def update(
    issue_id: str,
    title: str | None,
    content: str | None,
    priority: int | None,
    reminder: Any,
    no_reminder: bool,
    as_json: bool,
) -> None:
    """Update an issue."""
    with get_controller() as controller:
        issue = resolve_issue(controller, issue_id, as_json=as_json)
        reminder_enabled: bool | None = None
        if reminder is not None:
            reminder_enabled = True
        elif no_reminder:
            reminder_enabled = False
        try:
            controller.update_issue(
                issue,
                title=title,
                content=content,
                priority=priority,
                reminder_enabled=reminder_enabled,
                reminder_time=reminder.astimezone(UTC) if reminder is not None else None,
                immediate=True,
            )
        except ValueError as e:
            fail(str(e), as_json=as_json)
        if as_json:
            click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        else:
            click.echo(f"Updated {issue.id}: {issue.issue_title}")


def _set_completed(issue_ids: tuple[str, ...], completed: bool, as_json: bool) -> None:
    verb = "Closed" if completed else "Reopened"
    with get_controller() as controller:
        changed: list[dict[str, Any]] = []
        for issue_id in issue_ids:
            issue = resolve_issue(controller, issue_id, as_json=as_json)
            controller.update_issue(issue, completed=completed)
            if as_json:
                changed.append(dict(issue.to_dict()))
            else:
                click.echo(f"{verb} {issue.id}: {issue.issue_title}")
        controller.commit_now()
        if as_json:
            click.echo(json_mod.dumps({verb.lower(): changed}, indent=2, default=str))


@click.command()
@click.argument("issue_ids", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def close(issue_ids: tuple[str, ...], as_json: bool) -> None:
    """Close one or more issues."""
    _set_completed(issue_ids, True, as_json)


@click.command()
@click.argument("issue_ids", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def reopen(issue_ids: tuple[str, ...], as_json: bool) -> None:
    """Reopen one or more closed issues."""
    _set_completed(issue_ids, False, as_json)


@click.command()
@click.argument("issue_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def delete(issue_id: str, as_json: bool) -> None:
    """Delete an issue. Its tags are kept."""
    with get_controller() as controller:
        issue = resolve_issue(controller, issue_id, as_json=as_json)
        controller.delete(issue)
        controller.commit_now()
        if as_json:
            click.echo(json_mod.dumps({"deleted": issue_id}))
        else:
            click.echo(f"Deleted {issue_id}")


def register(cli: click.Group) -> None:
    """Register issue commands with the CLI group."""
    cli.add_command(create)
    cli.add_command(show)
    cli.add_command(list_issues, "list")
    cli.add_command(update)
    cli.add_command(close)
    cli.add_command(reopen)
    cli.add_command(delete)
