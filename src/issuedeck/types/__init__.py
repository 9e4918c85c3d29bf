# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from core.py, db_base.py, or any mixin, to keep imports acyclic.
"""Typed return-value contracts for issuedeck core and API layers."""

from __future__ import annotations

from issuedeck.types.core import (
    AwardDict,
    FilterDict,
    ISOTimestamp,
    IssueDict,
    ProjectConfig,
    StatsResult,
    TagDict,
)

__all__ = [
    "AwardDict",
    "FilterDict",
    "ISOTimestamp",
    "IssueDict",
    "ProjectConfig",
    "StatsResult",
    "TagDict",
]
