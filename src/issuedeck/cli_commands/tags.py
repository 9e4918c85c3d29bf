"""CLI commands for tags: tag, untag, tags, new-tag, rename-tag, delete-tag, suggest."""

from __future__ import annotations

import json as json_mod

import click

from issuedeck.cli_common import fail, get_controller, resolve_issue, resolve_tag


@click.command("tag")
@click.argument("issue_id")
@click.argument("tag_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tag_issue(issue_id: str, tag_name: str, as_json: bool) -> None:
    """Add a tag to an issue."""
    with get_controller() as controller:
        issue = resolve_issue(controller, issue_id, as_json=as_json)
        tag = resolve_tag(controller, tag_name, as_json=as_json)
        added = controller.add_tag(issue, tag)
        controller.commit_now()
        if as_json:
            click.echo(json_mod.dumps({"issue_id": issue.id, "tag": tag.tag_name, "added": added}))
        elif added:
            click.echo(f"Tagged {issue.id} with {tag.tag_name}")
        else:
            click.echo(f"{issue.id} already has {tag.tag_name}")


@click.command("untag")
@click.argument("issue_id")
@click.argument("tag_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def untag_issue(issue_id: str, tag_name: str, as_json: bool) -> None:
    """Remove a tag from an issue."""
    with get_controller() as controller:
        issue = resolve_issue(controller, issue_id, as_json=as_json)
        tag = resolve_tag(controller, tag_name, as_json=as_json)
        removed = controller.remove_tag(issue, tag)
        controller.commit_now()
        if as_json:
            click.echo(json_mod.dumps({"issue_id": issue.id, "tag": tag.tag_name, "removed": removed}))
        elif removed:
            click.echo(f"Removed {tag.tag_name} from {issue.id}")
        else:
            click.echo(f"{issue.id} does not have {tag.tag_name}")


@click.command("tags")
@click.option("--missing", "missing_for", default=None, help="Only tags not on this issue")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_tags(missing_for: str | None, as_json: bool) -> None:
    """List tags with their open issue counts."""
    with get_controller() as controller:
        if missing_for:
            tags = controller.missing_tags(resolve_issue(controller, missing_for, as_json=as_json))
        else:
            tags = controller.all_tags()
        if as_json:
            click.echo(json_mod.dumps([t.to_dict() for t in tags], indent=2))
            return
        for tag in tags:
            click.echo(f"{tag.tag_name:<24} {len(tag.tag_active_issues)} open / {len(tag.issues)} total")
        click.echo(f"\n{len(tags)} tags")


@click.command("new-tag")
@click.argument("name", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def new_tag(name: str | None, as_json: bool) -> None:
    """Create a tag (the free version allows three)."""
    with get_controller() as controller:
        try:
            tag = controller.create_tag(name)
        except ValueError as e:
            fail(str(e), as_json=as_json)
        controller.commit_now()
        if as_json:
            click.echo(json_mod.dumps(tag.to_dict()))
        else:
            click.echo(f"Created tag {tag.tag_name} ({tag.id})")


@click.command("rename-tag")
@click.argument("tag_name")
@click.argument("new_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rename_tag(tag_name: str, new_name: str, as_json: bool) -> None:
    """Rename a tag."""
    with get_controller() as controller:
        tag = resolve_tag(controller, tag_name, as_json=as_json)
        try:
            controller.rename_tag(tag, new_name)
        except ValueError as e:
            fail(str(e), as_json=as_json)
        controller.commit_now()
        if as_json:
            click.echo(json_mod.dumps(tag.to_dict()))
        else:
            click.echo(f"Renamed {tag_name} to {tag.tag_name}")


@click.command("delete-tag")
@click.argument("tag_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def delete_tag(tag_name: str, as_json: bool) -> None:
    """Delete a tag. Its issues are kept."""
    with get_controller() as controller:
        tag = resolve_tag(controller, tag_name, as_json=as_json)
        untagged = len(tag.issues)
        controller.delete(tag)
        controller.commit_now()
        if as_json:
            click.echo(json_mod.dumps({"deleted": str(tag.id), "untagged_issues": untagged}))
        else:
            click.echo(f"Deleted tag {tag.tag_name} ({untagged} issues untagged)")


@click.command()
@click.argument("text")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def suggest(text: str, as_json: bool) -> None:
    """Suggest tag tokens for search text starting with '#'."""
    with get_controller() as controller:
        tags = controller.suggested_tag_tokens(text)
        if as_json:
            click.echo(json_mod.dumps([t.to_dict() for t in tags], indent=2))
            return
        for tag in tags:
            click.echo(f"#{tag.tag_name}")


def register(cli: click.Group) -> None:
    """Register tag commands with the CLI group."""
    cli.add_command(tag_issue)
    cli.add_command(untag_issue)
    cli.add_command(list_tags)
    cli.add_command(new_tag)
    cli.add_command(rename_tag)
    cli.add_command(delete_tag)
    cli.add_command(suggest)
