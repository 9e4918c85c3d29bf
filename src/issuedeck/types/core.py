"""Foundational TypedDicts for dataclass to_dict() returns."""

from __future__ import annotations

from typing import NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)


class ProjectConfig(TypedDict, total=False):
    """Shape of .issuedeck/config.json."""

    prefix: str
    version: int
    save_delay: float


class IssueDict(TypedDict):
    id: str
    title: str
    content: str
    creation_date: str | None
    modification_date: str | None
    completed: bool
    status: str
    priority: int
    reminder_enabled: bool
    reminder_time: str | None
    tags: list[str]
    tag_ids: list[str]


class TagDict(TypedDict):
    id: str
    name: str
    issue_count: int
    active_issue_count: int


class FilterDict(TypedDict):
    id: str
    name: str
    icon: str
    min_modification_date: str
    tag_id: str | None
    active_issues_count: int


class AwardDict(TypedDict):
    id: str
    name: str
    description: str
    color: str
    criterion: str
    value: int
    image: str
    earned: bool


class StatsResult(TypedDict):
    issues: int
    open: int
    closed: int
    tags: int
    by_priority: dict[str, int]
    unlocked: bool
