"""Fixtures for CLI tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from issuedeck.cli import cli


@pytest.fixture(autouse=True)
def _drop_log_handlers() -> Generator[None, None, None]:
    """Every command logs into its project dir; detach those handlers afterwards."""
    yield
    logger = logging.getLogger("issuedeck")
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()


@pytest.fixture
def cli_in_project(tmp_path: Path, cli_runner: CliRunner) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize an issuedeck project in tmp_path and return (runner, project_root)."""
    original_cwd = os.getcwd()
    os.chdir(str(tmp_path))
    result = cli_runner.invoke(cli, ["init", "--prefix", "test"])
    assert result.exit_code == 0
    yield cli_runner, tmp_path
    os.chdir(original_cwd)
