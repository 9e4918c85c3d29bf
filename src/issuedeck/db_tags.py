"""TagsMixin: tag CRUD, issue-tag links and the free-tier tag quota."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from issuedeck.db_base import ControllerProtocol
from issuedeck.validation import sanitize_tag_name

if TYPE_CHECKING:
    from issuedeck.core import Issue, Tag

logger = logging.getLogger(__name__)

DEFAULT_TAG_NAME = "New tag"
FREE_TAG_LIMIT = 3
REVIEW_TAG_THRESHOLD = 5


class TagQuotaExceeded(ValueError):
    """Raised by ``create_tag`` when the free tier already holds its maximum tags."""

    def __init__(self, limit: int = FREE_TAG_LIMIT) -> None:
        self.limit = limit
        super().__init__(f"Free version is limited to {limit} tags; unlock the full version for more")


class TagsMixin(ControllerProtocol):
    """Tag CRUD and both-sides maintenance of the issue/tag relationship."""

    if TYPE_CHECKING:
        # From IssuesMixin
        def update(self, entity: Issue | Tag, *, immediate: bool = False) -> None: ...

    # -- Reads ---------------------------------------------------------------

    def get_tag(self, tag_id: str | uuid.UUID) -> Tag:
        with self._lock:
            try:
                return self._tags[str(tag_id)]
            except KeyError:
                raise KeyError(str(tag_id)) from None

    def find_tag(self, name: str) -> Tag | None:
        """First tag (in default order) whose name matches *name* case-insensitively."""
        wanted = name.strip().lstrip("#").strip().casefold()
        with self._lock:
            for tag in sorted(self._tags.values()):
                if tag.tag_name.casefold() == wanted:
                    return tag
        return None

    def all_tags(self) -> list[Tag]:
        with self._lock:
            return sorted(self._tags.values())

    def missing_tags(self, issue: Issue) -> list[Tag]:
        """Tags not on *issue*, in default order."""
        with self._lock:
            return sorted(tag for tag in self._tags.values() if tag not in issue.tags)

    @property
    def should_request_review(self) -> bool:
        with self._lock:
            return len(self._tags) >= REVIEW_TAG_THRESHOLD

    # -- Writes --------------------------------------------------------------

    def create_tag(self, name: str | None = None) -> Tag:
        """Create a tag, enforcing the free-tier quota while locked.

        Raises ``TagQuotaExceeded`` when locked and ``FREE_TAG_LIMIT`` tags
        already exist, ``ValueError`` for an invalid *name*.
        """
        from issuedeck.core import Tag

        if name is not None:
            name, error = sanitize_tag_name(name)
            if error:
                raise ValueError(error)
        with self._lock:
            if not self.entitlements.is_unlocked() and len(self._tags) >= FREE_TAG_LIMIT:
                logger.info("Tag quota reached", extra={"op": "create_tag", "error": "quota_exceeded"})
                raise TagQuotaExceeded
            tag = Tag(name=name or DEFAULT_TAG_NAME)
            self._attach(tag, inserted=True)
            logger.info("Created tag %s", tag.id, extra={"op": "create_tag", "entity": str(tag.id)})
            self._notify(reason="created", entity_ids=[str(tag.id)])
        self.commit_debounced()
        return tag

    def rename_tag(self, tag: Tag, name: str) -> Tag:
        cleaned, error = sanitize_tag_name(name)
        if error:
            raise ValueError(error)
        with self._lock:
            if self._tags.get(str(tag.id)) is not tag:
                raise KeyError(str(tag.id))
            tag.name = cleaned
        self.update(tag)
        return tag

    def add_tag(self, issue: Issue, tag: Tag) -> bool:
        """Link *issue* and *tag*. Returns False if they were already linked."""
        with self._lock:
            added = self._link(issue, tag)
        if added:
            self.update(issue)
        return added

    def remove_tag(self, issue: Issue, tag: Tag) -> bool:
        """Unlink *issue* and *tag*. Returns False if they were not linked."""
        with self._lock:
            if tag not in issue.tags:
                return False
            issue.tags.discard(tag)
            tag.issues.discard(issue)
            self._mark_changed(issue, "tags")
        self.update(issue)
        return True

    def _link(self, issue: Issue, tag: Tag) -> bool:
        if self._issues.get(issue.id) is not issue:
            raise KeyError(issue.id)
        if self._tags.get(str(tag.id)) is not tag:
            raise KeyError(str(tag.id))
        if tag in issue.tags:
            return False
        issue.tags.add(tag)
        tag.issues.add(issue)
        self._mark_changed(issue, "tags")
        return True
