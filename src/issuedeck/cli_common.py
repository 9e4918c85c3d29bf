"""Shared CLI helpers.

Provides ``get_controller()`` and ``fail()`` so that ``cli.py`` and the
``cli_commands/*.py`` modules can use them without circular imports.
"""

from __future__ import annotations

import json as json_mod
import sys
from typing import NoReturn

import click

from issuedeck.core import ISSUEDECK_DIR_NAME, DataController, Issue, Tag, find_issuedeck_root
from issuedeck.db_schema import ModelLoadError
from issuedeck.logging import setup_logging


def get_controller() -> DataController:
    """Discover .issuedeck/ and return an initialized DataController."""
    try:
        issuedeck_dir = find_issuedeck_root()
    except FileNotFoundError:
        click.echo(f"No {ISSUEDECK_DIR_NAME}/ found. Run 'issuedeck init' first.", err=True)
        sys.exit(1)
    setup_logging(issuedeck_dir)
    try:
        return DataController.from_project(issuedeck_dir.parent)
    except ModelLoadError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def fail(message: str, *, as_json: bool = False) -> NoReturn:
    """Report *message* (as JSON when requested) and exit with status 1."""
    if as_json:
        click.echo(json_mod.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def resolve_issue(controller: DataController, issue_id: str, *, as_json: bool = False) -> Issue:
    try:
        return controller.get_issue(issue_id)
    except KeyError:
        fail(f"Not found: {issue_id}", as_json=as_json)


def resolve_tag(controller: DataController, name_or_id: str, *, as_json: bool = False) -> Tag:
    """Look a tag up by name first, then by id."""
    tag = controller.find_tag(name_or_id)
    if tag is not None:
        return tag
    try:
        return controller.get_tag(name_or_id)
    except KeyError:
        fail(f"Tag not found: {name_or_id}", as_json=as_json)
