"""Database schema definitions for the issuedeck store.

Contains the canonical SQL schema and the process-wide ``Schema`` object that
every ``DurableStore`` is handed at construction.
"""

from __future__ import annotations

from dataclasses import dataclass

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS issues (
    id                TEXT PRIMARY KEY,
    title             TEXT,
    content           TEXT,
    creation_date     TEXT,
    modification_date TEXT,
    completed         INTEGER NOT NULL DEFAULT 0,
    priority          INTEGER,
    reminder_enabled  INTEGER NOT NULL DEFAULT 0,
    reminder_time     TEXT,

    CHECK (priority IS NULL OR priority BETWEEN 0 AND 2)
);

CREATE INDEX IF NOT EXISTS idx_issues_completed ON issues(completed);
CREATE INDEX IF NOT EXISTS idx_issues_modified ON issues(modification_date);

CREATE TABLE IF NOT EXISTS tags (
    id    TEXT PRIMARY KEY,
    name  TEXT
);

CREATE TABLE IF NOT EXISTS issue_tags (
    issue_id  TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
    tag_id    TEXT NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (issue_id, tag_id)
);

CREATE INDEX IF NOT EXISTS idx_issue_tags_tag ON issue_tags(tag_id);

CREATE TABLE IF NOT EXISTS history (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id     TEXT NOT NULL,
    committed_at  TEXT NOT NULL,
    kind          TEXT NOT NULL DEFAULT 'save'
);

CREATE INDEX IF NOT EXISTS idx_history_device ON history(device_id, id);
"""

CURRENT_SCHEMA_VERSION = 1


class ModelLoadError(RuntimeError):
    """Raised when the entity schema or award manifest cannot be loaded.

    This is the only unrecoverable error class: callers should let it abort
    startup rather than continue in a degraded mode.
    """


@dataclass(frozen=True)
class Schema:
    """Immutable entity schema shared by every store in the process."""

    name: str
    sql: str
    version: int

    @property
    def tables(self) -> tuple[str, ...]:
        return ("issues", "tags", "issue_tags", "history")


MAIN_SCHEMA = Schema(name="Main", sql=SCHEMA_SQL, version=CURRENT_SCHEMA_VERSION)
