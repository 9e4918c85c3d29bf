"""Filter descriptors and search state that drive issue queries.

Neither type is persisted. ``Filter`` selects a scope (a tag, or issues
modified after a threshold); ``SearchState`` carries the free text, tag
tokens and advanced options the user has set.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from issuedeck.db_base import EPOCH, _now
from issuedeck.predicates import Attr, HasTag, Predicate, all_of, any_of
from issuedeck.types.core import FilterDict

if TYPE_CHECKING:
    from issuedeck.core import Issue, Tag

TOKEN_TRIGGER = "#"
RECENT_WINDOW = timedelta(days=7)

ALL_ISSUES_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")
RECENT_ISSUES_ID = uuid.UUID("00000000-0000-4000-8000-000000000002")


class Status(str, Enum):
    ALL = "all"
    OPEN = "open"
    CLOSED = "closed"


class SortType(str, Enum):
    CREATION_DATE = "creation_date"
    MODIFICATION_DATE = "modification_date"


@dataclass(eq=False)
class Filter:
    """A named issue scope. Two filters are equal when their ids match.

    Equality ignores every other field so a selected filter stays selected
    while its bound tag is renamed.
    """

    id: uuid.UUID
    name: str
    icon: str
    min_modification_date: datetime = EPOCH
    tag: Tag | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def active_issues_count(self) -> int:
        return len(self.tag.tag_active_issues) if self.tag is not None else 0

    @classmethod
    def all_issues(cls) -> Filter:
        return _ALL_ISSUES

    @classmethod
    def recent_issues(cls, now: datetime | None = None) -> Filter:
        """Issues modified in the last seven days, measured from *now*."""
        return cls(
            id=RECENT_ISSUES_ID,
            name="Recent Issues",
            icon="clock",
            min_modification_date=(now or _now()) - RECENT_WINDOW,
        )

    @classmethod
    def for_tag(cls, tag: Tag) -> Filter:
        return cls(id=tag.id, name=tag.tag_name, icon="tag", tag=tag)

    def to_dict(self) -> FilterDict:
        return FilterDict(
            id=str(self.id),
            name=self.name,
            icon=self.icon,
            min_modification_date=self.min_modification_date.isoformat(),
            tag_id=str(self.tag.id) if self.tag is not None else None,
            active_issues_count=self.active_issues_count,
        )


_ALL_ISSUES = Filter(id=ALL_ISSUES_ID, name="All Issues", icon="tray")


@dataclass
class SearchState:
    free_text: str = ""
    tag_tokens: list[Tag] = field(default_factory=list)
    advanced_filter_enabled: bool = False
    priority_filter: int = -1
    status_filter: Status = Status.ALL
    sort_field: SortType = SortType.CREATION_DATE
    sort_descending: bool = True
    # Order title matches by where the text appears; off by default.
    rank_matches: bool = False


def build_issue_predicate(filter: Filter, search: SearchState) -> Predicate:
    """Conjunction of the scope, free-text, token and advanced predicates."""
    predicates: list[Predicate] = []

    if filter.tag is not None:
        predicates.append(HasTag(str(filter.tag.id)))
    else:
        predicates.append(Attr("modification_date", "gt", filter.min_modification_date))

    text = search.free_text.strip()
    if text:
        predicates.append(any_of([Attr("title", "contains", text), Attr("content", "contains", text)]))

    for token in search.tag_tokens:
        predicates.append(HasTag(str(token.id)))

    if search.advanced_filter_enabled:
        if search.priority_filter >= 0:
            predicates.append(Attr("priority", "eq", search.priority_filter))
        if search.status_filter != Status.ALL:
            predicates.append(Attr("completed", "eq", search.status_filter == Status.CLOSED))

    return all_of(predicates)


def sort_issues(issues: list[Issue], search: SearchState) -> list[Issue]:
    """Sort by the chosen date field; ties keep the default ascending issue order."""
    result = sorted(issues)
    if search.sort_field == SortType.MODIFICATION_DATE:
        result.sort(key=lambda issue: issue.issue_modification_date, reverse=search.sort_descending)
    else:
        result.sort(key=lambda issue: issue.creation_date or EPOCH, reverse=search.sort_descending)

    text = search.free_text.strip().casefold()
    if search.rank_matches and text:
        # Stable: issues whose title lacks the text keep their relative order at the end.
        def match_position(issue: Issue) -> tuple[bool, int]:
            position = issue.issue_title.casefold().find(text)
            return (position < 0, position)

        result.sort(key=match_position)
    return result


def token_query(free_text: str) -> str | None:
    """The tag-name fragment after the trigger, or None when the trigger is absent."""
    if not free_text.startswith(TOKEN_TRIGGER):
        return None
    return free_text[len(TOKEN_TRIGGER) :].strip()
