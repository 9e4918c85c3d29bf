"""SQLite durable store behind the data controller.

The controller owns the live object graph; this module only moves rows in and
out of SQLite. It supports typed row upserts, many-to-many link rows with
cascade-on-delete link cleanup, bulk delete returning affected ids, count-only
queries compiled from predicates, and a per-commit ``history`` log that lets
another device's writes be detected and replayed in order.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from issuedeck.db_base import _now, _to_iso
from issuedeck.db_schema import MAIN_SCHEMA, ModelLoadError, Schema

if TYPE_CHECKING:
    from issuedeck.predicates import Predicate

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

_ISSUE_COLUMNS = (
    "id",
    "title",
    "content",
    "creation_date",
    "modification_date",
    "completed",
    "priority",
    "reminder_enabled",
    "reminder_time",
)


@dataclass
class ChangeSet:
    """Everything one commit writes, in storage-row form."""

    issues: list[dict[str, Any]] = field(default_factory=list)
    tags: list[dict[str, Any]] = field(default_factory=list)
    deleted_issue_ids: list[str] = field(default_factory=list)
    deleted_tag_ids: list[str] = field(default_factory=list)
    # issue_id -> full set of tag ids; replaces that issue's link rows
    issue_links: dict[str, set[str]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.issues or self.tags or self.deleted_issue_ids or self.deleted_tag_ids or self.issue_links)


@dataclass
class Snapshot:
    """All rows currently in durable storage."""

    issues: dict[str, sqlite3.Row]
    tags: dict[str, sqlite3.Row]
    links: dict[str, set[str]]


class DurableStore:
    """Direct SQLite operations for issues, tags and their links."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        device_id: str,
        schema: Schema = MAIN_SCHEMA,
    ) -> None:
        self.db_path = db_path if db_path == MEMORY_PATH else Path(db_path)
        self.device_id = device_id
        self.schema = schema
        self._conn: sqlite3.Connection | None = None

    @property
    def in_memory(self) -> bool:
        return self.db_path == MEMORY_PATH

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                isolation_level="DEFERRED",
                # The controller lock serialises access across its timer threads.
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            if not self.in_memory:
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def initialize(self) -> None:
        """Create tables if needed. Raises ``ModelLoadError`` if the schema cannot load."""
        try:
            current_version = self.get_schema_version()
            if current_version == 0:
                self.conn.executescript(self.schema.sql)
                self.conn.execute(f"PRAGMA user_version = {self.schema.version}")
            elif current_version > self.schema.version:
                msg = f"Store schema v{current_version} is newer than supported v{self.schema.version}"
                raise ModelLoadError(msg)
            self.conn.commit()
        except sqlite3.Error as exc:
            msg = f"Failed to load {self.schema.name} schema from {self.db_path}: {exc}"
            raise ModelLoadError(msg) from exc

    def get_schema_version(self) -> int:
        result: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        return result

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -- Reads ---------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        """Read every issue, tag and link row. Raises ``sqlite3.Error`` on failure."""
        issues = {r["id"]: r for r in self.conn.execute("SELECT * FROM issues").fetchall()}
        tags = {r["id"]: r for r in self.conn.execute("SELECT * FROM tags").fetchall()}
        links: dict[str, set[str]] = {}
        for r in self.conn.execute("SELECT issue_id, tag_id FROM issue_tags").fetchall():
            links.setdefault(r["issue_id"], set()).add(r["tag_id"])
        return Snapshot(issues=issues, tags=tags, links=links)

    def count(self, table: Literal["issues", "tags"], predicate: Predicate | None = None) -> int:
        """Count-only query against durable rows."""
        where = ""
        params: list[Any] = []
        if predicate is not None:
            clause, params = predicate.to_sql()
            where = f" WHERE {clause}"
        result: int = self.conn.execute(f"SELECT COUNT(*) FROM {table}{where}", params).fetchone()[0]
        return result

    def data_version(self) -> int:
        """SQLite's per-connection counter; changes when *another* connection commits."""
        result: int = self.conn.execute("PRAGMA data_version").fetchone()[0]
        return result

    def last_history_id(self) -> int:
        row = self.conn.execute("SELECT MAX(id) FROM history").fetchone()
        return int(row[0] or 0)

    def remote_history_since(self, last_id: int) -> list[sqlite3.Row]:
        """History rows written by other devices after *last_id*, oldest first."""
        return self.conn.execute(
            "SELECT id, device_id, committed_at, kind FROM history WHERE id > ? AND device_id != ? ORDER BY id",
            (last_id, self.device_id),
        ).fetchall()

    # -- Writes --------------------------------------------------------------

    def write(self, changes: ChangeSet) -> None:
        """Apply *changes* in one transaction. Rolls back and re-raises on failure."""
        try:
            for row in changes.tags:
                self.conn.execute(
                    "INSERT INTO tags (id, name) VALUES (?, ?) ON CONFLICT(id) DO UPDATE SET name = excluded.name",
                    (row["id"], row["name"]),
                )
            placeholders = ", ".join("?" * len(_ISSUE_COLUMNS))
            assignments = ", ".join(f"{c} = excluded.{c}" for c in _ISSUE_COLUMNS if c != "id")
            for row in changes.issues:
                self.conn.execute(
                    f"INSERT INTO issues ({', '.join(_ISSUE_COLUMNS)}) VALUES ({placeholders}) "
                    f"ON CONFLICT(id) DO UPDATE SET {assignments}",
                    tuple(row[c] for c in _ISSUE_COLUMNS),
                )
            if changes.deleted_issue_ids:
                ph = ",".join("?" * len(changes.deleted_issue_ids))
                self.conn.execute(f"DELETE FROM issues WHERE id IN ({ph})", changes.deleted_issue_ids)
            if changes.deleted_tag_ids:
                ph = ",".join("?" * len(changes.deleted_tag_ids))
                self.conn.execute(f"DELETE FROM tags WHERE id IN ({ph})", changes.deleted_tag_ids)
            for issue_id, tag_ids in changes.issue_links.items():
                self.conn.execute("DELETE FROM issue_tags WHERE issue_id = ?", (issue_id,))
                for tag_id in sorted(tag_ids):
                    self.conn.execute(
                        "INSERT OR IGNORE INTO issue_tags (issue_id, tag_id) VALUES (?, ?)",
                        (issue_id, tag_id),
                    )
            self._record_history("save")
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def delete_all(self) -> tuple[list[str], list[str]]:
        """Bulk-delete every tag and issue. Returns (deleted_tag_ids, deleted_issue_ids)."""
        try:
            tag_ids = [r["id"] for r in self.conn.execute("DELETE FROM tags RETURNING id").fetchall()]
            issue_ids = [r["id"] for r in self.conn.execute("DELETE FROM issues RETURNING id").fetchall()]
            self._record_history("delete_all")
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        logger.debug("Bulk deleted %d tags and %d issues", len(tag_ids), len(issue_ids))
        return tag_ids, issue_ids

    def _record_history(self, kind: str) -> None:
        self.conn.execute(
            "INSERT INTO history (device_id, committed_at, kind) VALUES (?, ?, ?)",
            (self.device_id, _to_iso(_now()), kind),
        )
