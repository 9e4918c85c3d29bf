"""Shared utilities, types, and Protocol for controller mixins."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal, Protocol

if TYPE_CHECKING:
    from issuedeck.core import Issue, Tag
    from issuedeck.entitlements import EntitlementManager
    from issuedeck.filters import Filter, SearchState
    from issuedeck.scheduling import DeferredSlot
    from issuedeck.storage import DurableStore

ChangeSource = Literal["local", "remote"]

# "No threshold" for recency filters.
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _now() -> datetime:
    return datetime.now(UTC)


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class ControllerProtocol(Protocol):
    """Shared attributes and methods that controller mixins access via self.

    Mixins inherit this Protocol so mypy can type-check ``self.store``,
    ``self._issues``, etc. Actual implementations are provided by
    ``DataController`` at composition time.
    """

    prefix: str
    save_delay: float
    store: DurableStore
    entitlements: EntitlementManager
    selected_filter: Filter | None
    selected_issue: Issue | None
    search: SearchState
    _lock: threading.RLock
    _issues: dict[str, Issue]
    _tags: dict[str, Tag]
    _changed: dict[str, set[str]]
    _inserted: set[str]
    _deleted_issue_ids: set[str]
    _deleted_tag_ids: set[str]
    _save_slot: DeferredSlot
    _last_history_id: int
    _last_data_version: int | None
    _watch_thread: threading.Thread | None
    _watch_stop: threading.Event

    def _notify(self, source: ChangeSource = "local", **details: Any) -> None: ...

    def _key(self, entity: Issue | Tag) -> str: ...

    def _mark_changed(self, entity: Issue | Tag, field_name: str) -> None: ...

    def _attach(self, entity: Issue | Tag, *, inserted: bool) -> None: ...

    def _detach(self, entity: Issue | Tag) -> None: ...

    def commit_debounced(self, delay: float | None = None) -> None: ...

    def commit_now(self) -> bool: ...
