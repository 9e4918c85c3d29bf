"""Tests for predicate evaluation and SQL compilation."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from issuedeck.core import Issue, Tag
from issuedeck.predicates import FALSE, TRUE, And, Attr, HasTag, Not, Or, all_of, any_of
from issuedeck.storage import MEMORY_PATH, ChangeSet, DurableStore


@pytest.fixture
def store() -> Generator[DurableStore, None, None]:
    """In-memory store with three issues, one of them tagged."""
    s = DurableStore(MEMORY_PATH, device_id="test")
    s.initialize()
    tag = Tag(name="Work")
    rows = [
        Issue(id="i-1", title="Fix login", content="50% done", priority=2).to_row(),
        Issue(id="i-2", title="Write docs", completed=True, priority=0).to_row(),
        Issue(id="i-3", title=None, content="under_score", priority=1).to_row(),
    ]
    s.write(ChangeSet(issues=rows, tags=[tag.to_row()], issue_links={"i-1": {str(tag.id)}}))
    s.tag_id = str(tag.id)  # type: ignore[attr-defined]
    yield s
    s.close()


class TestEvaluate:
    def test_attr_operators(self) -> None:
        issue = Issue(title="Fix", priority=2)
        assert Attr("priority", "eq", 2).evaluate(issue)
        assert Attr("priority", "ne", 1).evaluate(issue)
        assert Attr("priority", "gt", 1).evaluate(issue)
        assert Attr("priority", "ge", 2).evaluate(issue)
        assert Attr("priority", "lt", 3).evaluate(issue)
        assert Attr("priority", "le", 2).evaluate(issue)

    def test_contains_uses_non_null_title(self) -> None:
        assert not Attr("title", "contains", "x").evaluate(Issue())
        assert Attr("title", "contains", "").evaluate(Issue())

    def test_has_tag(self) -> None:
        tag = Tag(name="Work")
        issue = Issue()
        issue.tags.add(tag)
        assert HasTag(str(tag.id)).evaluate(issue)
        assert not HasTag(str(Tag().id)).evaluate(issue)

    def test_composition_operators(self) -> None:
        issue = Issue(title="Fix", priority=2)
        high = Attr("priority", "eq", 2)
        low = Attr("priority", "eq", 0)
        assert (high | low).evaluate(issue)
        assert not (high & low).evaluate(issue)
        assert (~low).evaluate(issue)
        assert isinstance(high & low, And)
        assert isinstance(high | low, Or)
        assert isinstance(~low, Not)

    def test_all_of_and_any_of(self) -> None:
        high = Attr("priority", "eq", 2)
        assert all_of([]) is TRUE
        assert any_of([]) is FALSE
        assert all_of([high]) is high
        assert any_of([high]) is high

    def test_unknown_operator(self) -> None:
        with pytest.raises(ValueError, match="Unknown operator"):
            Attr("priority", "between", 1).evaluate(Issue())  # type: ignore[arg-type]


class TestToSql:
    def test_count_by_attribute(self, store: DurableStore) -> None:
        assert store.count("issues", Attr("completed", "eq", True)) == 1
        assert store.count("issues", Attr("priority", "ge", 1)) == 2

    def test_contains_escapes_like_wildcards(self, store: DurableStore) -> None:
        assert store.count("issues", Attr("content", "contains", "50%")) == 1
        assert store.count("issues", Attr("content", "contains", "%")) == 1
        assert store.count("issues", Attr("content", "contains", "_")) == 1

    def test_contains_on_null_column(self, store: DurableStore) -> None:
        assert store.count("issues", Attr("title", "contains", "")) == 3

    def test_has_tag(self, store: DurableStore) -> None:
        assert store.count("issues", HasTag(store.tag_id)) == 1  # type: ignore[attr-defined]

    def test_boolean_combinations(self, store: DurableStore) -> None:
        login = Attr("title", "contains", "login")
        docs = Attr("title", "contains", "docs")
        assert store.count("issues", login | docs) == 2
        assert store.count("issues", ~login) == 2
        assert store.count("issues", TRUE) == 3
        assert store.count("issues", FALSE) == 0

    def test_unknown_column_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown column"):
            Attr("title; DROP TABLE issues", "eq", 1).to_sql()
