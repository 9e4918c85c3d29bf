"""Tests for issue queries: scope, free text, tokens, advanced filters, sorting, suggestions."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from issuedeck.core import DataController, Issue, Tag
from issuedeck.filters import Filter, SearchState, SortType, Status


@pytest.fixture
def tagged(unlocked_controller: DataController) -> tuple[DataController, dict[str, Tag], dict[str, Issue]]:
    """Three tags and four issues with known titles, contents and links."""
    c = unlocked_controller
    tags = {name: c.create_tag(name) for name in ("Work", "Home", "Urgent")}
    issues = {
        "login": c.create_issue(tags["Work"]),
        "docs": c.create_issue(tags["Work"]),
        "garden": c.create_issue(tags["Home"]),
        "roof": c.create_issue(tags["Home"]),
    }
    c.update_issue(issues["login"], title="Fix login bug", content="Users cannot sign in", priority=2)
    c.update_issue(issues["docs"], title="Write docs", content="Explain the LOGIN flow", priority=0)
    c.update_issue(issues["garden"], title="Weed garden", priority=1, completed=True)
    c.update_issue(issues["roof"], title="Repair roof", priority=2)
    c.add_tag(issues["login"], tags["Urgent"])
    c.add_tag(issues["roof"], tags["Urgent"])
    return c, tags, issues


def _titles(issues: list[Issue]) -> set[str]:
    return {i.issue_title for i in issues}


class TestScope:
    def test_all_issues(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, _, _ = tagged
        assert len(c.issues_for_filter(Filter.all_issues(), SearchState())) == 4

    def test_tag_filter(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, tags, _ = tagged
        result = c.issues_for_filter(Filter.for_tag(tags["Home"]), SearchState())
        assert _titles(result) == {"Weed garden", "Repair roof"}

    def test_recent_filter_excludes_old_issues(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, _, issues = tagged
        issues["garden"].modification_date = datetime.now(UTC) - timedelta(days=10)
        result = c.issues_for_filter(Filter.recent_issues(), SearchState())
        assert "Weed garden" not in _titles(result)
        assert len(result) == 3

    def test_none_means_all_issues(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, _, _ = tagged
        assert len(c.issues_for_filter(None, SearchState())) == 4

    def test_selected_filter(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, tags, _ = tagged
        c.selected_filter = Filter.for_tag(tags["Work"])
        assert _titles(c.issues_for_selected_filter()) == {"Fix login bug", "Write docs"}


class TestFreeText:
    def test_matches_title_or_content_case_insensitively(
        self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]
    ) -> None:
        c, _, _ = tagged
        result = c.issues_for_filter(Filter.all_issues(), SearchState(free_text="  login "))
        assert _titles(result) == {"Fix login bug", "Write docs"}

    def test_blank_text_matches_everything(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, _, _ = tagged
        assert len(c.issues_for_filter(Filter.all_issues(), SearchState(free_text="   "))) == 4

    def test_like_wildcards_are_literal(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, _, _ = tagged
        assert c.issues_for_filter(Filter.all_issues(), SearchState(free_text="%")) == []


class TestTokens:
    def test_tokens_are_conjunctive(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, tags, _ = tagged
        search = SearchState(tag_tokens=[tags["Home"], tags["Urgent"]])
        assert _titles(c.issues_for_filter(Filter.all_issues(), search)) == {"Repair roof"}

    def test_token_combines_with_tag_scope(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, tags, _ = tagged
        search = SearchState(tag_tokens=[tags["Urgent"]])
        assert _titles(c.issues_for_filter(Filter.for_tag(tags["Work"]), search)) == {"Fix login bug"}


class TestAdvancedFilters:
    def test_ignored_when_disabled(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, _, _ = tagged
        search = SearchState(priority_filter=2, status_filter=Status.CLOSED)
        assert len(c.issues_for_filter(Filter.all_issues(), search)) == 4

    def test_priority(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, _, _ = tagged
        search = SearchState(advanced_filter_enabled=True, priority_filter=2)
        assert _titles(c.issues_for_filter(Filter.all_issues(), search)) == {"Fix login bug", "Repair roof"}

    def test_any_priority(self, tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]]) -> None:
        c, _, _ = tagged
        search = SearchState(advanced_filter_enabled=True, priority_filter=-1)
        assert len(c.issues_for_filter(Filter.all_issues(), search)) == 4

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (Status.OPEN, {"Fix login bug", "Write docs", "Repair roof"}),
            (Status.CLOSED, {"Weed garden"}),
            (Status.ALL, {"Fix login bug", "Write docs", "Repair roof", "Weed garden"}),
        ],
    )
    def test_status(
        self,
        tagged: tuple[DataController, dict[str, Tag], dict[str, Issue]],
        status: Status,
        expected: set[str],
    ) -> None:
        c, _, _ = tagged
        search = SearchState(advanced_filter_enabled=True, status_filter=status)
        assert _titles(c.issues_for_filter(Filter.all_issues(), search)) == expected


class TestSorting:
    def _with_dates(self, controller: DataController) -> list[Issue]:
        base = datetime(2024, 1, 1, tzinfo=UTC)
        issues = []
        for offset, title in enumerate(["middle", "oldest", "newest"]):
            issue = controller.create_issue()
            controller.update_issue(issue, title=title)
            issue.creation_date = base + timedelta(days={"oldest": 0, "middle": 1, "newest": 2}[title])
            issue.modification_date = base + timedelta(days=10 - offset)
            issues.append(issue)
        return issues

    def test_creation_date_descending_is_newest_first(self, controller: DataController) -> None:
        self._with_dates(controller)
        result = controller.issues_for_filter(Filter.all_issues(), SearchState())
        assert [i.issue_title for i in result] == ["newest", "middle", "oldest"]

    def test_creation_date_ascending(self, controller: DataController) -> None:
        self._with_dates(controller)
        result = controller.issues_for_filter(Filter.all_issues(), SearchState(sort_descending=False))
        assert [i.issue_title for i in result] == ["oldest", "middle", "newest"]

    def test_modification_date(self, controller: DataController) -> None:
        self._with_dates(controller)
        search = SearchState(sort_field=SortType.MODIFICATION_DATE)
        result = controller.issues_for_filter(Filter.all_issues(), search)
        assert [i.issue_title for i in result] == ["middle", "oldest", "newest"]

    @pytest.mark.parametrize("descending", [True, False])
    def test_ties_keep_ascending_title_order(self, controller: DataController, descending: bool) -> None:
        created = datetime(2024, 1, 1, tzinfo=UTC)
        for title in ["charlie", "Alpha", "bravo"]:
            issue = controller.create_issue()
            controller.update_issue(issue, title=title)
            issue.creation_date = created
        result = controller.issues_for_filter(Filter.all_issues(), SearchState(sort_descending=descending))
        assert [i.issue_title for i in result] == ["Alpha", "bravo", "charlie"]

    def test_rank_matches_orders_by_match_position(self, controller: DataController) -> None:
        for title in ["Something about login", "login first", "The login page"]:
            issue = controller.create_issue()
            controller.update_issue(issue, title=title)
        search = SearchState(free_text="login", rank_matches=True)
        result = controller.issues_for_filter(Filter.all_issues(), search)
        assert [i.issue_title for i in result] == ["login first", "The login page", "Something about login"]

    def test_rank_matches_puts_content_only_matches_last(self, controller: DataController) -> None:
        late = controller.create_issue()
        controller.update_issue(late, title="0123456789zzz")
        short = controller.create_issue()
        controller.update_issue(short, title="ab", content="zzz")
        search = SearchState(free_text="zzz", rank_matches=True)
        result = controller.issues_for_filter(Filter.all_issues(), search)
        assert [i.issue_title for i in result] == ["0123456789zzz", "ab"]

    def test_returns_fresh_list(self, populated_controller: DataController) -> None:
        first = populated_controller.issues_for_filter(Filter.all_issues(), SearchState())
        second = populated_controller.issues_for_filter(Filter.all_issues(), SearchState())
        assert first == second
        assert first is not second


class TestSuggestedTagTokens:
    @pytest.fixture
    def named(self, unlocked_controller: DataController) -> DataController:
        for name in ("Work", "homework", "Garden"):
            unlocked_controller.create_tag(name)
        return unlocked_controller

    def test_matches_remainder_case_insensitively(self, named: DataController) -> None:
        assert [t.tag_name for t in named.suggested_tag_tokens("#WORK")] == ["homework", "Work"]

    def test_trigger_only_returns_all_tags(self, named: DataController) -> None:
        assert [t.tag_name for t in named.suggested_tag_tokens("# ")] == ["Garden", "homework", "Work"]

    def test_without_trigger(self, named: DataController) -> None:
        assert named.suggested_tag_tokens("work") == []

    def test_no_match(self, named: DataController) -> None:
        assert named.suggested_tag_tokens("#zzz") == []

    def test_defaults_to_search_text(self, named: DataController) -> None:
        named.search.free_text = "#gar"
        assert [t.tag_name for t in named.suggested_tag_tokens()] == ["Garden"]


class TestTagFilters:
    def test_one_filter_per_tag(self, populated_controller: DataController) -> None:
        filters = populated_controller.tag_filters()
        assert [f.name for f in filters] == [f"Tag {i}" for i in range(1, 6)]
        assert all(f.tag is not None and f.id == f.tag.id for f in filters)

    def test_filter_equality_survives_rename(self, controller: DataController) -> None:
        tag = controller.create_tag("Before")
        selected = Filter.for_tag(tag)
        controller.rename_tag(tag, "After")
        assert controller.tag_filters() == [selected]
