"""
Tests for per-section fetching in both repository modes.
"""

from unittest.mock import patch

import pytest

from octopai.exceptions import CommandError
from octopai.local_store import LocalStore
from octopai.models import AssigneeFilter, SectionKind, StateFilter
from octopai.section_fetcher import Filters, SectionFetcher
from octopai.session_state import SessionStateStore

from tests.fixtures import FakeBackend, make_issue, make_pr, make_worktree


@pytest.fixture
def local_store(tmp_path):
    return LocalStore("acme/widgets", base_dir=tmp_path)


def fetcher_for(local_mode=False, local_store=None, backend=None):
    return SectionFetcher(
        "acme/widgets",
        backend or FakeBackend(),
        SessionStateStore(),
        local_mode=local_mode,
        local_store=local_store,
    )


class TestRemoteMode:

    def test_issues_from_github(self):
        fetcher = fetcher_for()
        with patch("octopai.section_fetcher.github.fetch_issues", return_value=[make_issue(1)]) as mock:
            data = fetcher.fetch(SectionKind.ISSUES)
        mock.assert_called_once_with("acme/widgets", StateFilter.OPEN, AssigneeFilter.ALL)
        assert data.kind is SectionKind.ISSUES
        assert [c.id for c in data.cards] == ["issue-1"]

    def test_filters_passed_through(self):
        fetcher = fetcher_for()
        fetcher.filters.state = StateFilter.CLOSED
        fetcher.filters.assignee = AssigneeFilter.MINE
        with patch("octopai.section_fetcher.github.fetch_prs", return_value=[]) as mock:
            fetcher.fetch(SectionKind.PULL_REQUESTS)
        mock.assert_called_once_with("acme/widgets", StateFilter.CLOSED, AssigneeFilter.MINE)

    def test_merged_branches_from_github(self):
        with patch("octopai.section_fetcher.github.fetch_merged_pr_branches", return_value=["issue-1"]):
            assert fetcher_for().merged_branches() == ["issue-1"]

    def test_open_branches_ignore_display_filters(self):
        fetcher = fetcher_for()
        fetcher.filters.state = StateFilter.CLOSED
        fetcher.filters.assignee = AssigneeFilter.MINE
        with patch("octopai.section_fetcher.github.fetch_open_pr_branches", return_value=["issue-4"]) as mock:
            assert fetcher.open_pr_branches() == ["issue-4"]
        mock.assert_called_once_with("acme/widgets")


class TestLocalMode:

    def test_issues_from_store(self, local_store):
        local_store.create_issue("Local one")
        fetcher = fetcher_for(local_mode=True, local_store=local_store)
        with patch("octopai.section_fetcher.github.fetch_issues") as mock_gh:
            data = fetcher.fetch(SectionKind.ISSUES)
        mock_gh.assert_not_called()
        assert [c.id for c in data.cards] == ["local-issue-1"]

    def test_prs_from_store(self, local_store):
        local_store.create_pr("PR", "local-issue-1")
        fetcher = fetcher_for(local_mode=True, local_store=local_store)
        assert [c.id for c in fetcher.fetch(SectionKind.PULL_REQUESTS).cards] == ["pr-1"]

    def test_merged_branches_from_store(self, local_store):
        local_store.create_pr("PR", "local-issue-1")
        local_store.merge_pr(1)
        fetcher = fetcher_for(local_mode=True, local_store=local_store)
        assert fetcher.merged_branches() == ["local-issue-1"]

    def test_open_branches_from_store(self, local_store):
        local_store.create_pr("Open", "local-issue-1")
        local_store.create_pr("Merged", "local-issue-2")
        local_store.merge_pr(2)
        fetcher = fetcher_for(local_mode=True, local_store=local_store)
        fetcher.filters.state = StateFilter.CLOSED
        assert fetcher.open_pr_branches() == ["local-issue-1"]


class TestSharedSections:

    def test_worktrees(self):
        with patch("octopai.section_fetcher.git_ops.fetch_worktrees", return_value=[make_worktree("issue-1")]):
            data = fetcher_for().fetch(SectionKind.WORKTREES)
        assert [c.title for c in data.cards] == ["issue-1"]

    def test_sessions(self):
        fetcher = fetcher_for(backend=FakeBackend({"issue-1": "> ", "notes": ""}))
        data = fetcher.fetch(SectionKind.SESSIONS)
        assert [c.title for c in data.cards] == ["issue-1"]

    def test_main_behind(self):
        with patch("octopai.section_fetcher.git_ops.fetch_main_behind_count", return_value=2):
            data = fetcher_for().fetch(SectionKind.MAIN_BEHIND)
        assert data.kind is SectionKind.MAIN_BEHIND
        assert data.count == 2


class TestFailures:

    def test_error_yields_empty_section(self):
        with patch("octopai.section_fetcher.github.fetch_prs", side_effect=CommandError("boom")):
            data = fetcher_for().fetch(SectionKind.PULL_REQUESTS)
        assert data.kind is SectionKind.PULL_REQUESTS
        assert data.cards == ()

    def test_error_yields_zero_behind(self):
        with patch("octopai.section_fetcher.git_ops.fetch_main_behind_count", side_effect=OSError("x")):
            assert fetcher_for().fetch(SectionKind.MAIN_BEHIND).count == 0

    def test_merged_branches_failure(self):
        with patch("octopai.section_fetcher.github.fetch_merged_pr_branches", side_effect=ValueError("x")):
            assert fetcher_for().merged_branches() == []

    def test_open_branches_failure(self):
        with patch("octopai.section_fetcher.github.fetch_open_pr_branches", side_effect=OSError("x")):
            assert fetcher_for().open_pr_branches() == []


class TestFilters:

    def test_defaults(self):
        filters = Filters()
        assert filters.state is StateFilter.OPEN
        assert filters.assignee is AssigneeFilter.ALL
