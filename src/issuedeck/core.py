"""Core entity model and data controller for issuedeck.

The controller owns the live object graph of Issues and Tags (plain
dictionaries keyed by id), pushes changes to SQLite through
``DurableStore``, and tells subscribers whenever the graph changes. Issue
CRUD, tags, queries, persistence, sync and awards live in mixins composed
into ``DataController`` below.

Convention-based discovery: each project has a `.issuedeck/` directory
containing `issuedeck.db` (SQLite), `config.json` (prefix, save delay) and
`settings.json` (lightweight key-value settings).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from issuedeck.awards import AwardsMixin, all_awards
from issuedeck.db_base import EPOCH, ChangeSource, _now, _to_iso
from issuedeck.db_issues import IssuesMixin
from issuedeck.db_persistence import PersistenceMixin
from issuedeck.db_query import QueryMixin
from issuedeck.db_schema import MAIN_SCHEMA, Schema
from issuedeck.db_sync import SyncMixin
from issuedeck.db_tags import TagsMixin
from issuedeck.entitlements import EntitlementManager
from issuedeck.filters import Filter, SearchState
from issuedeck.scheduling import DeferredSlot
from issuedeck.settings import SETTINGS_FILENAME, SettingsStore
from issuedeck.storage import MEMORY_PATH, DurableStore
from issuedeck.types.core import IssueDict, ProjectConfig, TagDict

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

ISSUEDECK_DIR_NAME = ".issuedeck"
DB_FILENAME = "issuedeck.db"
CONFIG_FILENAME = "config.json"

DEFAULT_PREFIX = "issue"
DEFAULT_SAVE_DELAY = 3.0


def find_issuedeck_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .issuedeck/ directory.

    Returns the .issuedeck/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / ISSUEDECK_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {ISSUEDECK_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(issuedeck_dir: Path) -> ProjectConfig:
    """Read .issuedeck/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(prefix=DEFAULT_PREFIX, version=1, save_delay=DEFAULT_SAVE_DELAY)
    config_path = issuedeck_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        result: ProjectConfig = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(result, dict):
        logger.warning("Ignoring non-object config in %s", config_path)
        return defaults
    return result


def write_config(issuedeck_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .issuedeck/config.json."""
    write_atomic(issuedeck_dir / CONFIG_FILENAME, json.dumps(config, indent=2) + "\n")


def write_atomic(path: Path, content: str) -> None:
    """Write content to path atomically via temp file + os.replace()."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

PRIORITY_LOW = 0
PRIORITY_MEDIUM = 1
PRIORITY_HIGH = 2
PRIORITY_NAMES = {PRIORITY_LOW: "Low", PRIORITY_MEDIUM: "Medium", PRIORITY_HIGH: "High"}

ISSUE_FIELDS = frozenset(
    {
        "title",
        "content",
        "creation_date",
        "modification_date",
        "completed",
        "priority",
        "reminder_enabled",
        "reminder_time",
    }
)
TAG_FIELDS = frozenset({"name"})


class _Tracked:
    """Reports attribute assignments on attached entities to their controller."""

    _tracked_fields: frozenset[str] = frozenset()

    def __setattr__(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)
        context = self.__dict__.get("_context")
        if context is not None and name in self._tracked_fields:
            context._mark_changed(self, name)

    def _set_clean(self, name: str, value: Any) -> None:
        """Assign without recording a pending change (used for storage -> memory)."""
        object.__setattr__(self, name, value)


def _format_list(names: list[str]) -> str:
    if len(names) <= 2:
        return " and ".join(names)
    return f"{', '.join(names[:-1])}, and {names[-1]}"


@dataclass(eq=False)
class Issue(_Tracked):
    id: str = field(default_factory=lambda: f"{DEFAULT_PREFIX}-{uuid.uuid4().hex[:10]}")
    title: str | None = None
    content: str | None = None
    creation_date: datetime | None = None
    modification_date: datetime | None = None
    completed: bool = False
    priority: int | None = None
    reminder_enabled: bool = False
    reminder_time: datetime | None = None
    tags: set[Tag] = field(default_factory=set, repr=False)
    _context: Any = field(default=None, init=False, repr=False)

    _tracked_fields = ISSUE_FIELDS

    # -- Non-null accessors ----------------------------------------------------

    @property
    def issue_title(self) -> str:
        return self.title if self.title is not None else ""

    @issue_title.setter
    def issue_title(self, value: str) -> None:
        self.title = value

    @property
    def issue_content(self) -> str:
        return self.content if self.content is not None else ""

    @issue_content.setter
    def issue_content(self, value: str) -> None:
        self.content = value

    @property
    def issue_priority(self) -> int:
        return self.priority if self.priority is not None else PRIORITY_MEDIUM

    @property
    def issue_creation_date(self) -> datetime:
        return self.creation_date or _now()

    @property
    def issue_modification_date(self) -> datetime:
        return self.modification_date or _now()

    @property
    def issue_reminder_time(self) -> datetime:
        return self.reminder_time or _now()

    @property
    def issue_tags(self) -> list[Tag]:
        return sorted(self.tags)

    @property
    def issue_tags_list(self) -> str:
        if not self.tags:
            return "No tags"
        return _format_list([tag.tag_name for tag in self.issue_tags])

    @property
    def issue_status(self) -> str:
        return "Closed" if self.completed else "Open"

    def attribute_value(self, name: str) -> Any:
        if name == "title":
            return self.issue_title
        if name == "content":
            return self.issue_content
        if name == "priority":
            return self.issue_priority
        if name == "creation_date":
            return self.issue_creation_date
        if name == "modification_date":
            return self.issue_modification_date
        if name == "tag_ids":
            return {str(tag.id) for tag in self.tags}
        return getattr(self, name)

    # -- Ordering ----------------------------------------------------------------

    def sort_key(self) -> tuple[str, datetime, str]:
        return (self.issue_title.casefold(), self.creation_date or EPOCH, self.id)

    def __lt__(self, other: Issue) -> bool:
        return self.sort_key() < other.sort_key()

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "creation_date": _to_iso(self.creation_date),
            "modification_date": _to_iso(self.modification_date),
            "completed": int(self.completed),
            "priority": self.priority,
            "reminder_enabled": int(self.reminder_enabled),
            "reminder_time": _to_iso(self.reminder_time),
        }

    def to_dict(self) -> IssueDict:
        return IssueDict(
            id=self.id,
            title=self.issue_title,
            content=self.issue_content,
            creation_date=_to_iso(self.creation_date),
            modification_date=_to_iso(self.modification_date),
            completed=self.completed,
            status=self.issue_status,
            priority=self.issue_priority,
            reminder_enabled=self.reminder_enabled,
            reminder_time=_to_iso(self.reminder_time),
            tags=[tag.tag_name for tag in self.issue_tags],
            tag_ids=[str(tag.id) for tag in self.issue_tags],
        )


@dataclass(eq=False)
class Tag(_Tracked):
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    name: str | None = None
    issues: set[Issue] = field(default_factory=set, repr=False)
    _context: Any = field(default=None, init=False, repr=False)

    _tracked_fields = TAG_FIELDS

    @property
    def tag_id(self) -> uuid.UUID:
        return self.id

    @property
    def tag_name(self) -> str:
        return self.name if self.name is not None else ""

    @property
    def tag_active_issues(self) -> list[Issue]:
        return [issue for issue in self.issues if not issue.completed]

    def attribute_value(self, name: str) -> Any:
        if name == "name":
            return self.tag_name
        if name == "id":
            return str(self.id)
        if name == "issue_ids":
            return {issue.id for issue in self.issues}
        return getattr(self, name)

    def sort_key(self) -> tuple[str, str]:
        return (self.tag_name.casefold(), str(self.id))

    def __lt__(self, other: Tag) -> bool:
        return self.sort_key() < other.sort_key()

    def to_row(self) -> dict[str, Any]:
        return {"id": str(self.id), "name": self.name}

    def to_dict(self) -> TagDict:
        return TagDict(
            id=str(self.id),
            name=self.tag_name,
            issue_count=len(self.issues),
            active_issue_count=len(self.tag_active_issues),
        )


# ---------------------------------------------------------------------------
# Change notifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GraphChange:
    """What subscribers receive after the object graph changes."""

    source: ChangeSource
    reason: str
    entity_ids: tuple[str, ...] = ()


Observer = Callable[[GraphChange], None]


# ---------------------------------------------------------------------------
# DataController
# ---------------------------------------------------------------------------


class DataController(IssuesMixin, TagsMixin, QueryMixin, PersistenceMixin, SyncMixin, AwardsMixin):
    """Live object graph + SQLite persistence + remote reconciliation.

    Every public entry point takes ``self._lock``; timer and watcher threads
    take it too, so graph edits never interleave.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        prefix: str = DEFAULT_PREFIX,
        settings: SettingsStore | None = None,
        entitlements: EntitlementManager | None = None,
        schema: Schema = MAIN_SCHEMA,
        save_delay: float = DEFAULT_SAVE_DELAY,
        device_id: str | None = None,
    ) -> None:
        self.prefix = prefix
        self.save_delay = save_delay
        self.device_id = device_id or uuid.uuid4().hex
        self.store = DurableStore(db_path, device_id=self.device_id, schema=schema)
        self.entitlements = entitlements or EntitlementManager(settings or SettingsStore.in_memory())
        self.entitlements.add_listener(self._on_entitlement_change)

        self._lock = threading.RLock()
        self._issues: dict[str, Issue] = {}
        self._tags: dict[str, Tag] = {}
        self._changed: dict[str, set[str]] = {}
        self._inserted: set[str] = set()
        self._deleted_issue_ids: set[str] = set()
        self._deleted_tag_ids: set[str] = set()
        self._observers: list[Observer] = []
        self._observers_lock = threading.Lock()
        self._save_slot = DeferredSlot("save")

        self._last_history_id = 0
        self._last_data_version: int | None = None
        self._watch_thread: threading.Thread | None = None
        self._watch_stop = threading.Event()

        # Selection and search state, shared by every view of this controller
        self.selected_filter: Filter | None = Filter.all_issues()
        self.selected_issue: Issue | None = None
        self.search = SearchState()

    @classmethod
    def in_memory(cls, **kwargs: Any) -> DataController:
        """An initialized controller backed by a throwaway in-memory store."""
        controller = cls(MEMORY_PATH, **kwargs)
        controller.initialize()
        return controller

    @classmethod
    def from_project(cls, project_path: Path | None = None) -> DataController:
        """Create a DataController by discovering .issuedeck/ from project_path (or cwd)."""
        issuedeck_dir = find_issuedeck_root(project_path)
        config = read_config(issuedeck_dir)
        controller = cls(
            issuedeck_dir / DB_FILENAME,
            prefix=config.get("prefix", DEFAULT_PREFIX),
            save_delay=float(config.get("save_delay", DEFAULT_SAVE_DELAY)),
            settings=SettingsStore(issuedeck_dir / SETTINGS_FILENAME),
        )
        controller.initialize()
        return controller

    def __enter__(self) -> DataController:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def initialize(self) -> None:
        """Load the schema and award manifest (fatal on failure), then read the stored graph."""
        self.store.initialize()
        all_awards()
        with self._lock:
            self._load_graph()
            self._last_history_id = self.store.last_history_id()
            self._last_data_version = self.store.data_version()

    def close(self) -> None:
        """Stop background work, flush pending changes, and close the store."""
        self.stop_remote_watch()
        self.commit_now()
        self.store.close()

    # -- Observers -------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer* for graph changes. Returns an unsubscribe callable."""
        with self._observers_lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._observers_lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _notify(self, source: ChangeSource = "local", **details: Any) -> None:
        change = GraphChange(
            source=source,
            reason=details.get("reason", "changed"),
            entity_ids=tuple(details.get("entity_ids", ())),
        )
        with self._observers_lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(change)
            except Exception:
                logger.exception("Observer %r failed on %s change", observer, source)

    def _on_entitlement_change(self, unlocked: bool) -> None:
        # Runs on the purchase path; must not wait on the graph lock.
        self._notify("local", reason="entitlements")

    # -- Change tracking -------------------------------------------------------

    def _key(self, entity: Issue | Tag) -> str:
        return entity.id if isinstance(entity, Issue) else str(entity.id)

    def _mark_changed(self, entity: Issue | Tag, field_name: str) -> None:
        with self._lock:
            self._changed.setdefault(self._key(entity), set()).add(field_name)

    def _attach(self, entity: Issue | Tag, *, inserted: bool) -> None:
        """Adopt *entity* into the graph; *inserted* marks it as a pending insert."""
        key = self._key(entity)
        if isinstance(entity, Issue):
            self._issues[key] = entity
        else:
            self._tags[key] = entity
        entity._set_clean("_context", self)
        if inserted:
            self._inserted.add(key)
            self._changed.setdefault(key, set())

    def _detach(self, entity: Issue | Tag) -> None:
        """Remove *entity* and its relationship edges from the graph."""
        key = self._key(entity)
        if isinstance(entity, Issue):
            for tag in entity.tags:
                tag.issues.discard(entity)
            entity.tags.clear()
            self._issues.pop(key, None)
            if self.selected_issue is entity:
                self.selected_issue = None
        else:
            for issue in entity.issues:
                issue.tags.discard(entity)
            entity.issues.clear()
            self._tags.pop(key, None)
            if self.selected_filter is not None and self.selected_filter.tag is entity:
                self.selected_filter = Filter.all_issues()
            self.search.tag_tokens = [token for token in self.search.tag_tokens if token is not entity]
        self._changed.pop(key, None)
        self._inserted.discard(key)
        entity._set_clean("_context", None)
