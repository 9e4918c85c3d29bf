"""CLI for the issuedeck issue tracker.

Convention-based: discovers .issuedeck/ by walking up from cwd.

Usage:
    issuedeck init                               # Initialize .issuedeck/ in cwd
    issuedeck create "Fix the bug" -t work       # Create issue (optionally tagged)
    issuedeck show <id>                          # Show issue details
    issuedeck list --status=open --asc         # List issues
    issuedeck update <id> --priority=2           # Update issue
    issuedeck close <id>                         # Close issue
    issuedeck reopen <id>                        # Reopen closed issue
    issuedeck tag <id> <tag>                     # Add tag to issue
    issuedeck tags                               # List tags
    issuedeck suggest "#wo"                      # Tag token suggestions
    issuedeck awards                             # Earned awards
    issuedeck stats                              # Project statistics
    issuedeck dashboard                          # Web dashboard
"""

from __future__ import annotations

import click

from issuedeck import __version__
from issuedeck.cli_commands import admin, issues, tags


@click.group()
@click.version_option(version=__version__, prog_name="issuedeck")
def cli() -> None:
    """issuedeck: local-first issue tracker."""


issues.register(cli)
tags.register(cli)
admin.register(cli)


if __name__ == "__main__":
    cli()
