"""Shared pytest fixtures for issuedeck tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from issuedeck.core import DB_FILENAME, ISSUEDECK_DIR_NAME, DataController, write_config
from issuedeck.entitlements import UNLOCK_SETTING_KEY, EntitlementManager
from issuedeck.settings import SettingsStore

# Long enough that debounced saves never fire on their own during a test.
TEST_SAVE_DELAY = 60.0


@pytest.fixture
def controller() -> Generator[DataController, None, None]:
    """Fresh in-memory DataController for each test."""
    c = DataController.in_memory(prefix="test", save_delay=TEST_SAVE_DELAY)
    yield c
    c.close()


@pytest.fixture
def populated_controller(controller: DataController) -> DataController:
    """DataController holding the sample data set: 5 tags x 10 issues."""
    controller.create_sample_data()
    return controller


@pytest.fixture
def unlocked_controller() -> Generator[DataController, None, None]:
    """In-memory DataController with the full version unlocked."""
    settings = SettingsStore.in_memory()
    settings.set_bool(UNLOCK_SETTING_KEY, True)
    c = DataController.in_memory(prefix="test", save_delay=TEST_SAVE_DELAY, entitlements=EntitlementManager(settings))
    yield c
    c.close()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / DB_FILENAME


@pytest.fixture
def file_controller(db_path: Path) -> Generator[DataController, None, None]:
    """DataController backed by an on-disk database."""
    c = DataController(db_path, prefix="test", save_delay=TEST_SAVE_DELAY, device_id="device-a")
    c.initialize()
    yield c
    c.close()


@pytest.fixture
def issuedeck_project(tmp_path: Path) -> Path:
    """A tmp directory set up as an issuedeck project (.issuedeck/ with config + db).

    Returns the project root (parent of .issuedeck/).
    """
    issuedeck_dir = tmp_path / ISSUEDECK_DIR_NAME
    issuedeck_dir.mkdir()
    write_config(issuedeck_dir, {"prefix": "proj", "version": 1, "save_delay": TEST_SAVE_DELAY})

    c = DataController(issuedeck_dir / DB_FILENAME, prefix="proj")
    c.initialize()
    c.close()
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
