"""QueryMixin: filtered, sorted issue lists and tag-token suggestions.

Queries always read the live graph and return a fresh list on every call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from issuedeck.db_base import ControllerProtocol
from issuedeck.filters import Filter, SearchState, build_issue_predicate, sort_issues, token_query
from issuedeck.types.core import StatsResult

if TYPE_CHECKING:
    from issuedeck.core import Issue, Tag

logger = logging.getLogger(__name__)


class QueryMixin(ControllerProtocol):
    def issues_for_filter(self, filter: Filter | None, search: SearchState | None = None) -> list[Issue]:
        """Issues matching *filter* and *search*, sorted by the search's sort options.

        ``None`` means all issues and the controller's own search state.
        Evaluation failures are logged and produce an empty list.
        """
        filter = filter or Filter.all_issues()
        search = search if search is not None else self.search
        predicate = build_issue_predicate(filter, search)
        with self._lock:
            try:
                matches = [issue for issue in self._issues.values() if predicate.evaluate(issue)]
            except (TypeError, ValueError, AttributeError) as exc:
                logger.error(
                    "Issue query for %s failed: %s",
                    filter.name,
                    exc,
                    extra={"op": "issues_for_filter", "error": "storage_read_failed"},
                )
                return []
            return sort_issues(matches, search)

    def issues_for_selected_filter(self) -> list[Issue]:
        return self.issues_for_filter(self.selected_filter, self.search)

    def suggested_tag_tokens(self, free_text: str | None = None) -> list[Tag]:
        """Tags to offer as tokens while the user types ``#name`` in the search box."""
        query = token_query(self.search.free_text if free_text is None else free_text)
        if query is None:
            return []
        with self._lock:
            tags = sorted(self._tags.values())
        if not query:
            return tags
        needle = query.casefold()
        return [tag for tag in tags if needle in tag.tag_name.casefold()]

    def smart_filters(self) -> list[Filter]:
        return [Filter.all_issues(), Filter.recent_issues()]

    def tag_filters(self) -> list[Filter]:
        """One filter per tag, in default tag order."""
        with self._lock:
            return [Filter.for_tag(tag) for tag in sorted(self._tags.values())]

    def stats(self) -> StatsResult:
        """Issue and tag counts for the CLI and dashboard."""
        from issuedeck.core import PRIORITY_NAMES

        with self._lock:
            issues = list(self._issues.values())
            closed = sum(1 for issue in issues if issue.completed)
            by_priority = {name: 0 for name in PRIORITY_NAMES.values()}
            for issue in issues:
                name = PRIORITY_NAMES.get(issue.issue_priority, str(issue.issue_priority))
                by_priority[name] = by_priority.get(name, 0) + 1
            return StatsResult(
                issues=len(issues),
                open=len(issues) - closed,
                closed=closed,
                tags=len(self._tags),
                by_priority=by_priority,
                unlocked=self.entitlements.is_unlocked(),
            )
