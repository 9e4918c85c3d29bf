"""Tests for committing pending changes: debounce, no-op commits, failures, reopen."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from unittest.mock import patch

import pytest

from issuedeck.core import DataController


class TestDebounce:
    def test_burst_of_edits_writes_once(self) -> None:
        c = DataController.in_memory(prefix="test", save_delay=0.2)
        try:
            with patch.object(c.store, "write", wraps=c.store.write) as write:
                issue = c.create_issue()
                for i in range(4):
                    c.update_issue(issue, title=f"edit {i}")
                c._save_slot.join(2)
                assert write.call_count == 1
            assert not c.has_changes
            assert c.count_stored("issue") == 1
        finally:
            c.close()

    def test_commit_now_within_window_writes_every_edit(self, controller: DataController) -> None:
        with patch.object(controller.store, "write", wraps=controller.store.write) as write:
            issue = controller.create_issue()
            for i in range(5):
                controller.update_issue(issue, title=f"edit {i}", priority=i % 3)
            assert controller.commit_now() is True
            assert write.call_count == 1
        row = controller.store.snapshot().issues[issue.id]
        assert row["title"] == "edit 4"
        assert row["priority"] == 1
        assert not controller._save_slot.pending

    def test_immediate_update_skips_the_timer(self, controller: DataController) -> None:
        issue = controller.create_issue()
        controller.update_issue(issue, title="Submitted", immediate=True)
        assert not controller.has_changes
        assert not controller._save_slot.pending
        assert controller.count_stored("issue") == 1

    def test_commit_now_cancels_scheduled_save(self, controller: DataController) -> None:
        controller.create_issue()
        assert controller._save_slot.pending
        assert controller.commit_now() is True
        assert not controller._save_slot.pending


class TestCommitNow:
    def test_noop_commit(self, controller: DataController) -> None:
        issue = controller.create_issue()
        controller.commit_now()
        before = issue.modification_date
        with patch.object(controller.store, "write") as write:
            assert controller.commit_now() is False
            write.assert_not_called()
        assert issue.modification_date == before

    def test_commit_bumps_modification_date(self, controller: DataController) -> None:
        issue = controller.create_issue()
        controller.commit_now()
        before = issue.modification_date
        assert before is not None
        controller.update_issue(issue, title="Changed")
        assert controller.commit_now() is True
        assert issue.modification_date is not None
        assert issue.modification_date >= before
        assert not controller.has_changes

    def test_write_failure_keeps_changes(self, controller: DataController, caplog: pytest.LogCaptureFixture) -> None:
        controller.create_issue()
        with (
            patch.object(controller.store, "write", side_effect=sqlite3.OperationalError("disk I/O error")),
            caplog.at_level(logging.ERROR, logger="issuedeck.db_persistence"),
        ):
            assert controller.commit_now() is False
        assert controller.has_changes
        assert any(getattr(r, "error", None) == "storage_write_failed" for r in caplog.records)
        assert controller.commit_now() is True
        assert controller.count_stored("issue") == 1

    def test_link_edits_are_written(self, controller: DataController) -> None:
        tag = controller.create_tag("Work")
        issue = controller.create_issue()
        controller.commit_now()
        controller.add_tag(issue, tag)
        controller.commit_now()
        assert controller.store.snapshot().links == {issue.id: {str(tag.id)}}
        controller.remove_tag(issue, tag)
        controller.commit_now()
        assert controller.store.snapshot().links == {}


class TestReopen:
    def _reopen(self, db_path: Path) -> DataController:
        c = DataController(db_path, prefix="test", save_delay=60.0, device_id="device-a")
        c.initialize()
        return c

    def test_close_flushes_pending_changes(self, db_path: Path) -> None:
        c = self._reopen(db_path)
        issue = c.create_issue()
        c.update_issue(issue, title="Unsaved", priority=2)
        c.close()
        with self._reopen(db_path) as again:
            loaded = again.get_issue(issue.id)
            assert loaded.issue_title == "Unsaved"
            assert loaded.priority == 2

    def test_links_survive_reopen(self, file_controller: DataController, db_path: Path) -> None:
        tag = file_controller.create_tag("Work")
        issue = file_controller.create_issue(tag)
        file_controller.commit_now()
        with self._reopen(db_path) as again:
            assert [t.tag_name for t in again.get_issue(issue.id).issue_tags] == ["Work"]

    def test_deleted_tag_cascades_on_reopen(self, file_controller: DataController, db_path: Path) -> None:
        tag = file_controller.create_tag("Work")
        issue = file_controller.create_issue(tag)
        file_controller.commit_now()
        file_controller.delete(tag)
        file_controller.commit_now()
        with self._reopen(db_path) as again:
            assert again.get_issue(issue.id).issue_tags == []
            assert again.all_tags() == []


class TestDeleteAllFailure:
    def test_graph_emptied_and_deletes_kept(
        self, populated_controller: DataController, caplog: pytest.LogCaptureFixture
    ) -> None:
        c = populated_controller
        with (
            patch.object(c.store, "delete_all", side_effect=sqlite3.OperationalError("locked")),
            caplog.at_level(logging.ERROR, logger="issuedeck.db_issues"),
        ):
            assert c.delete_all() == (5, 50)
        assert c.count("issue") == 0
        assert c.count_stored("issue") == 50
        assert c.has_changes
        assert any(getattr(r, "error", None) == "storage_write_failed" for r in caplog.records)
        assert c.commit_now() is True
        assert c.count_stored("issue") == 0
        assert c.count_stored("tag") == 0
