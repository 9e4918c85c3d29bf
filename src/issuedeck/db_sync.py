"""SyncMixin: load the stored graph and merge changes made by other devices.

Every commit appends a ``history`` row stamped with the writer's device id.
Rows from other devices are remote changes; each one triggers a reload of the
stored rows and a per-property merge into the live graph. Properties with a
pending local edit keep their local value. The merge itself never writes.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from typing import TYPE_CHECKING, Any

from issuedeck.db_base import ControllerProtocol, _from_iso

if TYPE_CHECKING:
    from issuedeck.storage import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_WATCH_INTERVAL = 1.0


def _issue_values(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "title": row["title"],
        "content": row["content"],
        "creation_date": _from_iso(row["creation_date"]),
        "modification_date": _from_iso(row["modification_date"]),
        "completed": bool(row["completed"]),
        "priority": row["priority"],
        "reminder_enabled": bool(row["reminder_enabled"]),
        "reminder_time": _from_iso(row["reminder_time"]),
    }


class SyncMixin(ControllerProtocol):
    def _load_graph(self) -> None:
        """Replace the live graph with the stored one. Caller holds the lock."""
        self._issues.clear()
        self._tags.clear()
        self._merge_snapshot(self.store.snapshot())

    def on_remote_change(self) -> bool:
        """Merge the stored rows into the live graph and notify once.

        Returns False (graph untouched) if the stored rows cannot be read.
        """
        with self._lock:
            try:
                snapshot = self.store.snapshot()
            except sqlite3.Error as exc:
                logger.error(
                    "Remote reload failed: %s",
                    exc,
                    extra={"op": "on_remote_change", "error": "storage_read_failed"},
                )
                return False
            self._merge_snapshot(snapshot)
            self._notify("remote", reason="remote_change")
        return True

    def poll_remote_changes(self) -> int:
        """Apply each unseen remote commit in order. Returns how many were applied."""
        with self._lock:
            try:
                version = self.store.data_version()
                if version == self._last_data_version:
                    return 0
                self._last_data_version = version
                rows = self.store.remote_history_since(self._last_history_id)
            except sqlite3.Error as exc:
                logger.error(
                    "Polling for remote changes failed: %s",
                    exc,
                    extra={"op": "poll_remote_changes", "error": "storage_read_failed"},
                )
                return 0
            for row in rows:
                self._last_history_id = row["id"]
                logger.debug("Remote %s from %s", row["kind"], row["device_id"])
                self.on_remote_change()
            return len(rows)

    def start_remote_watch(self, interval: float = DEFAULT_WATCH_INTERVAL) -> None:
        """Poll for remote changes every *interval* seconds on a daemon thread."""
        with self._lock:
            if self._watch_thread is not None and self._watch_thread.is_alive():
                return
            self._watch_stop.clear()
            thread = threading.Thread(
                target=self._watch_loop,
                args=(interval,),
                name="issuedeck-remote-watch",
                daemon=True,
            )
            self._watch_thread = thread
        thread.start()

    def stop_remote_watch(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            self._watch_stop.set()
            thread = self._watch_thread
        # Join unlocked: the watch loop takes the lock to poll.
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        with self._lock:
            if self._watch_thread is thread:
                self._watch_thread = None

    def _watch_loop(self, interval: float) -> None:
        while not self._watch_stop.wait(interval):
            try:
                self.poll_remote_changes()
            except Exception:
                logger.exception("Remote watch poll failed")

    def _merge_snapshot(self, snapshot: Snapshot) -> None:
        from issuedeck.core import ISSUE_FIELDS, Issue, Tag

        # Tags
        for tag_id, row in snapshot.tags.items():
            if tag_id in self._deleted_tag_ids:
                continue
            tag = self._tags.get(tag_id)
            if tag is None:
                self._attach(Tag(id=uuid.UUID(tag_id), name=row["name"]), inserted=False)
            elif "name" not in self._changed.get(tag_id, ()):
                tag._set_clean("name", row["name"])
        for tag_id, tag in list(self._tags.items()):
            if tag_id not in snapshot.tags and tag_id not in self._inserted and tag_id not in self._changed:
                self._detach(tag)

        # Issues
        for issue_id, row in snapshot.issues.items():
            if issue_id in self._deleted_issue_ids:
                continue
            values = _issue_values(row)
            issue = self._issues.get(issue_id)
            if issue is None:
                self._attach(Issue(id=issue_id, **values), inserted=False)
                continue
            pending = self._changed.get(issue_id, set())
            for name in ISSUE_FIELDS:
                if name not in pending:
                    issue._set_clean(name, values[name])
        for issue_id, issue in list(self._issues.items()):
            if issue_id not in snapshot.issues and issue_id not in self._inserted and issue_id not in self._changed:
                self._detach(issue)

        # Links: stored links win unless this issue has unsaved link edits
        for issue_id, issue in self._issues.items():
            if issue_id in self._inserted or "tags" in self._changed.get(issue_id, ()):
                continue
            wanted = {self._tags[tag_id] for tag_id in snapshot.links.get(issue_id, ()) if tag_id in self._tags}
            for tag in issue.tags - wanted:
                tag.issues.discard(issue)
            for tag in wanted - issue.tags:
                tag.issues.add(issue)
            issue._set_clean("tags", wanted)
