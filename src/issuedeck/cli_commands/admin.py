"""CLI commands for admin: init, sample-data, reset, awards, stats, dashboard."""

from __future__ import annotations

import json as json_mod
import sys
from pathlib import Path

import click

from issuedeck.awards import all_awards
from issuedeck.cli_common import fail, get_controller
from issuedeck.core import (
    DB_FILENAME,
    DEFAULT_SAVE_DELAY,
    ISSUEDECK_DIR_NAME,
    DataController,
    read_config,
    write_config,
)
from issuedeck.db_schema import ModelLoadError


@click.command()
@click.option("--prefix", default=None, help="ID prefix for issues (default: directory name)")
def init(prefix: str | None) -> None:
    """Initialize .issuedeck/ in the current directory."""
    cwd = Path.cwd()
    issuedeck_dir = cwd / ISSUEDECK_DIR_NAME

    if issuedeck_dir.exists():
        click.echo(f"{ISSUEDECK_DIR_NAME}/ already exists in {cwd}")
        # Still ensure DB is initialized
        config = read_config(issuedeck_dir)
        try:
            with DataController(issuedeck_dir / DB_FILENAME, prefix=config.get("prefix", "issue")) as controller:
                controller.initialize()
        except ModelLoadError as e:
            fail(str(e))
        return

    prefix = prefix or cwd.name
    issuedeck_dir.mkdir()
    write_config(issuedeck_dir, {"prefix": prefix, "version": 1, "save_delay": DEFAULT_SAVE_DELAY})

    with DataController(issuedeck_dir / DB_FILENAME, prefix=prefix) as controller:
        controller.initialize()

    click.echo(f"Initialized {ISSUEDECK_DIR_NAME}/ in {cwd}")
    click.echo(f"  Prefix: {prefix}")
    click.echo(f"  Database: {issuedeck_dir / DB_FILENAME}")
    click.echo("\nNext: issuedeck create \"My first issue\"")


@click.command("sample-data")
def sample_data() -> None:
    """Add five tags with ten issues each."""
    with get_controller() as controller:
        controller.create_sample_data()
        stats = controller.stats()
        click.echo(f"Sample data added: {stats['tags']} tags, {stats['issues']} issues")


@click.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
def reset(yes: bool) -> None:
    """Delete every issue and tag."""
    if not yes:
        click.confirm("Delete every issue and tag?", abort=True)
    with get_controller() as controller:
        tags_deleted, issues_deleted = controller.delete_all()
        click.echo(f"Deleted {issues_deleted} issues and {tags_deleted} tags")


@click.command()
@click.option("--all", "show_all", is_flag=True, help="Include awards not yet earned")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def awards(show_all: bool, as_json: bool) -> None:
    """Show earned awards."""
    with get_controller() as controller:
        results = [(award, controller.has_earned(award)) for award in all_awards()]
        if not show_all:
            results = [(award, earned) for award, earned in results if earned]
        if as_json:
            click.echo(json_mod.dumps([a.to_dict(earned=e) for a, e in results], indent=2))
            return
        for award, earned in results:
            marker = "*" if earned else " "
            click.echo(f"{marker} {award.name:<18} {award.description}")
        if not results:
            click.echo("No awards earned yet.")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(as_json: bool) -> None:
    """Show project statistics."""
    with get_controller() as controller:
        result = controller.stats()
        if as_json:
            click.echo(json_mod.dumps(result, indent=2))
            return
        click.echo(f"Issues: {result['issues']} ({result['open']} open, {result['closed']} closed)")
        click.echo(f"Tags:   {result['tags']}")
        for name, count in result["by_priority"].items():
            click.echo(f"  {name:<7} {count}")
        click.echo(f"Full version: {'unlocked' if result['unlocked'] else 'locked'}")


@click.command()
@click.option("--port", default=8377, type=int, help="Server port (default 8377)")
@click.option("--no-browser", is_flag=True, help="Don't auto-open browser")
def dashboard(port: int, no_browser: bool) -> None:
    """Launch the JSON dashboard server."""
    try:
        from issuedeck.dashboard import main as dashboard_main
    except ImportError:
        click.echo('Dashboard requires extra dependencies. Install with: pip install "issuedeck[dashboard]"', err=True)
        sys.exit(1)
    dashboard_main(port=port, no_browser=no_browser)


def register(cli: click.Group) -> None:
    """Register admin commands with the CLI group."""
    cli.add_command(init)
    cli.add_command(sample_data)
    cli.add_command(reset)
    cli.add_command(awards)
    cli.add_command(stats)
    cli.add_command(dashboard)
