"""Awards: static achievement definitions and the rules for earning them.

Definitions ship in ``issuedeck/data/awards.json`` and are loaded once.
Whether an award is earned is derived on demand from live counts.
"""

from __future__ import annotations

import importlib.resources
import json
import logging
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any

from issuedeck.db_base import ControllerProtocol
from issuedeck.db_schema import ModelLoadError
from issuedeck.predicates import Attr
from issuedeck.types.core import AwardDict

if TYPE_CHECKING:
    from issuedeck.predicates import Predicate

logger = logging.getLogger(__name__)

AWARD_CRITERIA = frozenset({"issues", "closed", "tags", "unlock"})
_REQUIRED_KEYS = ("name", "description", "color", "criterion", "value", "image")


@dataclass(frozen=True)
class Award:
    name: str
    description: str
    color: str
    criterion: str
    value: int
    image: str

    @property
    def id(self) -> str:
        return self.name

    def to_dict(self, *, earned: bool = False) -> AwardDict:
        return AwardDict(**asdict(self), id=self.id, earned=earned)


def _parse_award(raw: Any, index: int) -> Award:
    if not isinstance(raw, dict):
        msg = f"Award #{index} must be an object, got {type(raw).__name__}"
        raise ModelLoadError(msg)
    missing = [key for key in _REQUIRED_KEYS if key not in raw]
    if missing:
        msg = f"Award #{index} is missing {', '.join(missing)}"
        raise ModelLoadError(msg)
    if not isinstance(raw["value"], int):
        msg = f"Award {raw['name']!r} has non-integer value {raw['value']!r}"
        raise ModelLoadError(msg)
    return Award(**{key: raw[key] for key in _REQUIRED_KEYS})


def load_awards(path: Path | None = None) -> list[Award]:
    """Load award definitions from *path*, or the packaged manifest by default.

    Raises ``ModelLoadError`` if the manifest is missing or malformed.
    """
    try:
        if path is None:
            text = importlib.resources.files("issuedeck.data").joinpath("awards.json").read_text(encoding="utf-8")
        else:
            text = path.read_text(encoding="utf-8")
        data = json.loads(text)
    except (OSError, json.JSONDecodeError) as exc:
        msg = f"Failed to load awards manifest {path or 'awards.json'}: {exc}"
        raise ModelLoadError(msg) from exc
    if not isinstance(data, list):
        msg = "Awards manifest must be a JSON array"
        raise ModelLoadError(msg)
    return [_parse_award(raw, i) for i, raw in enumerate(data)]


@lru_cache(maxsize=1)
def all_awards() -> tuple[Award, ...]:
    """The packaged awards, loaded once per process."""
    return tuple(load_awards())


class AwardsMixin(ControllerProtocol):
    """Award evaluation. Read-only over the live graph."""

    if TYPE_CHECKING:

        def count(self, entity_type: str, predicate: Predicate | None = None) -> int: ...

    def has_earned(self, award: Award) -> bool:
        if award.criterion == "issues":
            return self.count("issue") >= award.value
        if award.criterion == "closed":
            return self.count("issue", Attr("completed", "eq", True)) >= award.value
        if award.criterion == "tags":
            return self.count("tag") >= award.value
        if award.criterion == "unlock":
            return self.entitlements.is_unlocked()
        logger.warning("Unknown award criterion %r on %s", award.criterion, award.name)
        return False

    def earned_awards(self, awards: list[Award] | tuple[Award, ...] | None = None) -> list[Award]:
        return [award for award in (awards if awards is not None else all_awards()) if self.has_earned(award)]
