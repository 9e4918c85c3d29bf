"""PersistenceMixin: write pending graph changes to SQLite, now or debounced.

Pending state is tracked in ``_changed`` (entity id -> changed field names),
``_inserted`` and the two deleted-id sets. A commit turns all of it into one
``ChangeSet`` and writes it in a single transaction.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import datetime

from issuedeck.db_base import ControllerProtocol, _now, _to_iso
from issuedeck.storage import ChangeSet

logger = logging.getLogger(__name__)


class PersistenceMixin(ControllerProtocol):
    @property
    def has_changes(self) -> bool:
        with self._lock:
            return bool(self._changed or self._deleted_issue_ids or self._deleted_tag_ids)

    def commit_debounced(self, delay: float | None = None) -> None:
        """Replace any scheduled save with one that fires after *delay* seconds."""
        self._save_slot.arm(self.save_delay if delay is None else delay, self.commit_now)

    def commit_now(self) -> bool:
        """Write every pending change. Returns True if anything was written.

        A commit with nothing pending never touches SQLite. Storage errors are
        logged and the pending changes are kept for the next attempt.
        """
        self._save_slot.cancel()
        with self._lock:
            if not self.has_changes:
                return False
            now = _now()
            changes = self._collect_changes(now)
            start = time.monotonic()
            try:
                self.store.write(changes)
            except sqlite3.Error as exc:
                logger.error(
                    "Commit failed, keeping pending changes: %s",
                    exc,
                    extra={"op": "commit", "error": "storage_write_failed"},
                )
                return False
            for row in changes.issues:
                issue = self._issues.get(row["id"])
                if issue is not None:
                    issue._set_clean("modification_date", now)
            self._changed.clear()
            self._inserted.clear()
            self._deleted_issue_ids.clear()
            self._deleted_tag_ids.clear()
            logger.info(
                "Committed %d issues, %d tags",
                len(changes.issues),
                len(changes.tags),
                extra={"op": "commit", "duration_ms": round((time.monotonic() - start) * 1000, 2)},
            )
        return True

    def _collect_changes(self, now: datetime) -> ChangeSet:
        changes = ChangeSet(
            deleted_issue_ids=sorted(self._deleted_issue_ids),
            deleted_tag_ids=sorted(self._deleted_tag_ids),
        )
        for key, fields in self._changed.items():
            if key in self._issues:
                issue = self._issues[key]
                row = issue.to_row()
                row["modification_date"] = _to_iso(now)
                changes.issues.append(row)
                if key in self._inserted or "tags" in fields:
                    changes.issue_links[key] = {str(tag.id) for tag in issue.tags}
            elif key in self._tags:
                changes.tags.append(self._tags[key].to_row())
        return changes
