"""IssuesMixin: issue CRUD, generic update/delete, counts and sample data.

All methods access ``self._issues``, ``self.store``, etc. via Python's MRO
when composed into ``DataController``. Every graph read or write happens
under ``self._lock``; persistence is requested after the lock is released.
"""

from __future__ import annotations

import logging
import random
import sqlite3
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal

from issuedeck.db_base import ControllerProtocol, _now
from issuedeck.validation import sanitize_title, validate_priority

if TYPE_CHECKING:
    from issuedeck.core import Issue, Tag
    from issuedeck.predicates import Predicate

logger = logging.getLogger(__name__)

EntityType = Literal["issue", "tag"]

DEFAULT_ISSUE_TITLE = "New issue"
SAMPLE_TAG_COUNT = 5
SAMPLE_ISSUES_PER_TAG = 10


class IssuesMixin(ControllerProtocol):
    """Issue CRUD plus the entity-agnostic update/delete/count operations.

    Inherits ``ControllerProtocol`` for type-safe access to shared attributes.
    """

    if TYPE_CHECKING:
        # From TagsMixin
        def _link(self, issue: Issue, tag: Tag) -> bool: ...

    # -- ID generation -------------------------------------------------------

    def _generate_issue_id(self) -> str:
        for _ in range(10):
            candidate = f"{self.prefix}-{uuid.uuid4().hex[:10]}"
            if candidate not in self._issues and candidate not in self._deleted_issue_ids:
                return candidate
        return f"{self.prefix}-{uuid.uuid4().hex[:16]}"

    # -- Reads ---------------------------------------------------------------

    def get_issue(self, issue_id: str) -> Issue:
        with self._lock:
            try:
                return self._issues[issue_id]
            except KeyError:
                raise KeyError(issue_id) from None

    def all_issues(self) -> list[Issue]:
        """Every issue in default order."""
        with self._lock:
            return sorted(self._issues.values())

    def count(self, entity_type: EntityType, predicate: Predicate | None = None) -> int:
        """Count live entities of *entity_type*, optionally matching *predicate*.

        Evaluation failures are logged and count as zero.
        """
        with self._lock:
            entities: list[Any]
            if entity_type == "issue":
                entities = list(self._issues.values())
            elif entity_type == "tag":
                entities = list(self._tags.values())
            else:
                msg = f"Unknown entity type: {entity_type!r}"
                raise ValueError(msg)
            if predicate is None:
                return len(entities)
            try:
                return sum(1 for entity in entities if predicate.evaluate(entity))
            except (TypeError, ValueError, AttributeError) as exc:
                logger.error(
                    "Count over %ss failed: %s",
                    entity_type,
                    exc,
                    extra={"op": "count", "entity": entity_type, "error": "storage_read_failed"},
                )
                return 0

    def count_stored(self, entity_type: EntityType, predicate: Predicate | None = None) -> int:
        """Count-only query against durable rows (ignores uncommitted edits)."""
        table: Literal["issues", "tags"] = "issues" if entity_type == "issue" else "tags"
        with self._lock:
            try:
                return self.store.count(table, predicate)
            except sqlite3.Error as exc:
                logger.error(
                    "Stored count over %s failed: %s",
                    table,
                    exc,
                    extra={"op": "count_stored", "entity": entity_type, "error": "storage_read_failed"},
                )
                return 0

    # -- Issue CRUD ----------------------------------------------------------

    def create_issue(self, tag: Tag | None = None) -> Issue:
        """Create a medium-priority open issue, optionally attached to *tag*.

        The new issue becomes ``selected_issue``.
        """
        from issuedeck.core import PRIORITY_MEDIUM, Issue

        with self._lock:
            now = _now()
            issue = Issue(
                id=self._generate_issue_id(),
                title=DEFAULT_ISSUE_TITLE,
                creation_date=now,
                modification_date=now,
                completed=False,
                priority=PRIORITY_MEDIUM,
            )
            self._attach(issue, inserted=True)
            if tag is not None:
                self._link(issue, tag)
            self.selected_issue = issue
            logger.info("Created issue %s", issue.id, extra={"op": "create_issue", "entity": issue.id})
            self._notify(reason="created", entity_ids=[issue.id])
        self.commit_debounced()
        return issue

    def update(self, entity: Issue | Tag, *, immediate: bool = False) -> None:
        """Record an edit to *entity*, notify observers and schedule a save.

        ``immediate`` commits right away (an explicit submit).
        """
        with self._lock:
            key = self._key(entity)
            if key not in self._issues and key not in self._tags:
                raise KeyError(key)
            self._changed.setdefault(key, set())
            self._notify(reason="updated", entity_ids=[key])
        if immediate:
            self.commit_now()
        else:
            self.commit_debounced()

    def update_issue(
        self,
        issue: Issue,
        *,
        title: str | None = None,
        content: str | None = None,
        priority: int | None = None,
        completed: bool | None = None,
        reminder_enabled: bool | None = None,
        reminder_time: datetime | None = None,
        immediate: bool = False,
    ) -> Issue:
        """Assign the given fields, then ``update()`` the issue.

        Raises ``ValueError`` for an invalid title or priority; nothing is
        assigned in that case.
        """
        if title is not None:
            title, error = sanitize_title(title)
            if error:
                raise ValueError(error)
        if priority is not None:
            priority = validate_priority(priority)

        with self._lock:
            if self._issues.get(issue.id) is not issue:
                raise KeyError(issue.id)
            if title is not None:
                issue.title = title
            if content is not None:
                issue.content = content
            if priority is not None:
                issue.priority = priority
            if completed is not None:
                issue.completed = completed
            if reminder_enabled is not None:
                issue.reminder_enabled = reminder_enabled
            if reminder_time is not None:
                issue.reminder_time = reminder_time
        self.update(issue, immediate=immediate)
        return issue

    def delete(self, entity: Issue | Tag) -> None:
        """Remove *entity* and its relationship edges. Related entities survive."""
        from issuedeck.core import Issue

        with self._lock:
            key = self._key(entity)
            if key not in self._issues and key not in self._tags:
                raise KeyError(key)
            was_inserted = key in self._inserted
            self._detach(entity)
            if not was_inserted:
                if isinstance(entity, Issue):
                    self._deleted_issue_ids.add(key)
                else:
                    self._deleted_tag_ids.add(key)
            logger.info("Deleted %s", key, extra={"op": "delete", "entity": key})
            self._notify(reason="deleted", entity_ids=[key])
        self.commit_debounced()

    def delete_all(self) -> tuple[int, int]:
        """Bulk-delete every tag and issue. Returns (tags_deleted, issues_deleted).

        On storage failure the live graph is still emptied and the deletes
        remain pending for the next commit.
        """
        self._save_slot.cancel()
        with self._lock:
            try:
                stored_tag_ids, stored_issue_ids = self.store.delete_all()
                stored = True
            except sqlite3.Error as exc:
                logger.error(
                    "Bulk delete failed: %s",
                    exc,
                    extra={"op": "delete_all", "error": "storage_write_failed"},
                )
                stored_tag_ids, stored_issue_ids = [], []
                stored = False

            tags = list(self._tags.values())
            issues = list(self._issues.values())
            pending_tag_ids = {self._key(tag) for tag in tags} - self._inserted
            pending_issue_ids = {issue.id for issue in issues} - self._inserted
            for tag in tags:
                self._detach(tag)
            for issue in issues:
                self._detach(issue)
            self._changed.clear()
            self._inserted.clear()
            if stored:
                self._deleted_tag_ids.clear()
                self._deleted_issue_ids.clear()
            else:
                self._deleted_tag_ids |= pending_tag_ids
                self._deleted_issue_ids |= pending_issue_ids

            removed = (max(len(tags), len(stored_tag_ids)), max(len(issues), len(stored_issue_ids)))
            logger.info(
                "Deleted all: %d tags, %d issues",
                *removed,
                extra={"op": "delete_all"},
            )
            self._notify(reason="deleted_all")
        return removed

    def create_sample_data(self) -> None:
        """Populate five tags with ten issues each and commit immediately."""
        from issuedeck.core import Issue, Tag

        with self._lock:
            now = _now()
            for i in range(1, SAMPLE_TAG_COUNT + 1):
                tag = Tag(name=f"Tag {i}")
                self._attach(tag, inserted=True)
                for j in range(1, SAMPLE_ISSUES_PER_TAG + 1):
                    issue = Issue(
                        id=self._generate_issue_id(),
                        title=f"Issue {i}-{j}",
                        content="Description goes here",
                        creation_date=now,
                        modification_date=now,
                        completed=random.choice([True, False]),
                        priority=random.randint(0, 2),
                    )
                    self._attach(issue, inserted=True)
                    self._link(issue, tag)
            self._notify(reason="sample_data")
        self.commit_now()
