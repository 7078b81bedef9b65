"""
Tests for the local-mode issue/PR store.
"""

import json

import pytest

from octopai.exceptions import LocalStoreError
from octopai.local_store import LocalStore, StoreData, repo_slug
from octopai.models import StateFilter


@pytest.fixture
def store(tmp_path):
    return LocalStore("acme/widgets", base_dir=tmp_path)


class TestPaths:

    def test_repo_slug(self):
        assert repo_slug("acme/widgets") == "acme--widgets"

    def test_store_path(self, tmp_path):
        store = LocalStore("acme/widgets", base_dir=tmp_path)
        assert store.path == tmp_path / "acme--widgets" / "store.json"

    def test_default_base_dir_under_state_dir(self, isolated_state_dir):
        store = LocalStore("acme/widgets")
        assert store.path == isolated_state_dir / "local" / "acme--widgets" / "store.json"


class TestPersistence:

    def test_missing_file_is_empty(self, store):
        data = store.load()
        assert data.issues == []
        assert data.next_issue_number == 1

    def test_corrupt_file_is_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.load().issues == []

    def test_round_trip(self, store):
        store.create_issue("First", "body")
        store.create_pr("PR", "local-issue-1")
        reloaded = LocalStore("acme/widgets", base_dir=store.path.parent.parent).load()
        assert reloaded.issues[0].title == "First"
        assert reloaded.prs[0].branch == "local-issue-1"

    def test_no_temp_file_left(self, store):
        store.create_issue("First")
        assert not store.path.with_suffix(".json.tmp").exists()

    def test_file_is_json(self, store):
        store.create_issue("First")
        data = json.loads(store.path.read_text())
        assert data["next_issue_number"] == 2

    def test_store_data_from_partial_dict(self):
        data = StoreData.from_dict({"issues": [{"number": 3, "title": "x"}]})
        assert data.issues[0].state == "open"
        assert data.next_pr_number == 1


class TestIssues:

    def test_numbers_increment(self, store):
        assert store.create_issue("One") == 1
        assert store.create_issue("Two") == 2

    def test_numbers_not_reused_after_close(self, store):
        store.create_issue("One")
        store.close_issue(1)
        assert store.create_issue("Two") == 2

    def test_fetch_open_newest_first(self, store):
        store.create_issue("One")
        store.create_issue("Two")
        cards = store.fetch_issues()
        assert [c.id for c in cards] == ["local-issue-2", "local-issue-1"]
        assert cards[0].title == "#2 Two"
        assert cards[0].tag == "local"

    def test_closed_filter(self, store):
        store.create_issue("One")
        store.create_issue("Two")
        store.close_issue(1)
        assert [c.id for c in store.fetch_issues(StateFilter.OPEN)] == ["local-issue-2"]
        closed = store.fetch_issues(StateFilter.CLOSED)
        assert [c.id for c in closed] == ["local-issue-1"]
        assert closed[0].tag == "closed"

    def test_fetch_issue(self, store):
        store.create_issue("One", "details")
        assert store.fetch_issue(1) == ("One", "details")

    def test_edit_issue(self, store):
        store.create_issue("One")
        store.edit_issue(1, "Renamed", "new body")
        assert store.fetch_issue(1) == ("Renamed", "new body")

    def test_missing_issue_raises(self, store):
        with pytest.raises(LocalStoreError, match="#9"):
            store.fetch_issue(9)
        with pytest.raises(LocalStoreError):
            store.close_issue(9)

    def test_empty_body_description(self, store):
        store.create_issue("One")
        assert store.fetch_issues()[0].description == "No description"


class TestPullRequests:

    def test_create_pr(self, store):
        number = store.create_pr("Add feature", "local-issue-1", is_draft=False)
        card = store.fetch_prs()[0]
        assert number == 1
        assert card.id == "pr-1"
        assert card.head_branch == "local-issue-1"
        assert card.related == ("local-issue-1",)
        assert card.is_draft is False
        assert card.tag == "local"
        assert card.description == "local-issue-1"

    def test_draft_tag(self, store):
        store.create_pr("Add feature", "local-issue-1")
        assert store.fetch_prs()[0].tag == "draft"

    def test_mark_ready(self, store):
        store.create_pr("Add feature", "local-issue-1")
        store.mark_pr_ready(1)
        assert store.fetch_prs()[0].is_draft is False

    def test_merge(self, store):
        store.create_pr("Add feature", "local-issue-1")
        assert store.merge_pr(1) == "local-issue-1"
        assert store.fetch_prs() == []
        merged = store.fetch_prs(StateFilter.CLOSED)
        assert merged[0].is_merged is True
        assert merged[0].tag == "merged"
        assert store.merged_branches() == ["local-issue-1"]

    def test_merge_twice_raises(self, store):
        store.create_pr("Add feature", "local-issue-1")
        store.merge_pr(1)
        with pytest.raises(LocalStoreError, match="already merged"):
            store.merge_pr(1)

    def test_has_open_pr_for_branch(self, store):
        store.create_pr("Add feature", "local-issue-1")
        assert store.has_open_pr_for_branch("local-issue-1")
        assert not store.has_open_pr_for_branch("local-issue-2")
        store.merge_pr(1)
        assert not store.has_open_pr_for_branch("local-issue-1")

    def test_missing_pr_raises(self, store):
        with pytest.raises(LocalStoreError):
            store.mark_pr_ready(4)
