"""Lightweight key-value settings, kept outside the SQLite store.

The entitlement flag lives here so that it survives a database reset and
never shares a transaction with issue data.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.json"


class SettingsStore:
    """JSON-file (or in-memory) settings with atomic writes."""

    def __init__(self, path: Path | None) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._values: dict[str, Any] = self._read() if path is not None else {}

    @classmethod
    def in_memory(cls) -> SettingsStore:
        return cls(None)

    def _read(self) -> dict[str, Any]:
        assert self.path is not None
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to read %s, starting empty: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object settings in %s", self.path)
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
            if self.path is not None:
                from issuedeck.core import write_atomic

                write_atomic(self.path, json.dumps(self._values, indent=2, sort_keys=True) + "\n")

    def get_bool(self, key: str, default: bool = False) -> bool:
        return bool(self.get(key, default))

    def set_bool(self, key: str, value: bool) -> None:
        self.set(key, bool(value))
