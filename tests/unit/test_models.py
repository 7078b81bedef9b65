"""
Tests for the board data model: cards, filters, fuzzy matching and the
status message log.
"""

import pytest

from octopai.models import (
    AssigneeFilter,
    Card,
    MessageLog,
    SectionData,
    SectionKind,
    StateFilter,
    card_matches,
    fuzzy_match,
    is_issue_key,
    related_keys_for_branch,
    short_description,
)


class TestIssueKeys:

    @pytest.mark.parametrize("value", ["issue-1", "issue-42", "local-issue-7"])
    def test_issue_keys(self, value):
        assert is_issue_key(value) is True

    @pytest.mark.parametrize("value", ["pr-1", "issue-", "wt-issue-1", "issue-1a", "feature-x", ""])
    def test_non_issue_keys(self, value):
        assert is_issue_key(value) is False

    def test_related_keys_for_issue_branch(self):
        assert related_keys_for_branch("issue-3") == ("issue-3",)
        assert related_keys_for_branch("local-issue-3") == ("local-issue-3",)

    def test_related_keys_for_other_branch(self):
        assert related_keys_for_branch("feature/login") == ()


class TestCard:

    def test_cards_are_immutable(self):
        card = Card(id="issue-1", title="#1 A", description="d", tag="open", tag_color="green")
        with pytest.raises(Exception):
            card.title = "changed"

    def test_optional_fields_default_to_none(self):
        card = Card(id="x", title="x", description="", tag="t", tag_color="c")
        assert card.related == ()
        assert card.pr_number is None
        assert card.head_branch is None


class TestShortDescription:

    def test_empty_body_uses_placeholder(self):
        assert short_description("") == "No description"

    def test_custom_placeholder(self):
        assert short_description("", empty="issue-4") == "issue-4"

    def test_long_body_truncated(self):
        result = short_description("x" * 200)
        assert len(result) == 80
        assert result.endswith("...")

    def test_short_body_unchanged(self):
        assert short_description("Fix it") == "Fix it"


class TestFilters:

    def test_state_filter_toggles(self):
        assert StateFilter.OPEN.toggle() is StateFilter.CLOSED
        assert StateFilter.CLOSED.toggle() is StateFilter.OPEN

    def test_assignee_filter_toggles(self):
        assert AssigneeFilter.ALL.toggle() is AssigneeFilter.MINE
        assert AssigneeFilter.MINE.toggle() is AssigneeFilter.ALL

    def test_labels(self):
        assert StateFilter.CLOSED.label == "closed"
        assert AssigneeFilter.MINE.label == "mine"


class TestSectionData:

    def test_of_cards_freezes_list(self):
        card = Card(id="a", title="a", description="", tag="t", tag_color="c")
        data = SectionData.of_cards(SectionKind.ISSUES, [card])
        assert data.kind is SectionKind.ISSUES
        assert data.cards == (card,)

    def test_main_behind(self):
        data = SectionData.main_behind(3)
        assert data.kind is SectionKind.MAIN_BEHIND
        assert data.count == 3
        assert data.cards == ()


class TestFuzzyMatch:

    def test_subsequence_matches(self):
        assert fuzzy_match("fxbg", "fix bug") is True

    def test_case_insensitive(self):
        assert fuzzy_match("LOGIN", "Fix login page") is True

    def test_order_matters(self):
        assert fuzzy_match("gubx", "fix bug") is False

    def test_empty_query_matches_everything(self):
        assert fuzzy_match("", "anything") is True

    def test_card_matches_title_or_description(self):
        card = Card(id="a", title="#3 Crash", description="on startup", tag="t", tag_color="c")
        assert card_matches(card, "crsh")
        assert card_matches(card, "startup")
        assert not card_matches(card, "zzz")


class TestMessageLog:

    def test_latest(self):
        log = MessageLog()
        assert log.latest() is None
        log.add("one")
        log.add("two")
        assert log.latest() == "two"

    def test_bounded(self):
        log = MessageLog(max_messages=3)
        for i in range(5):
            log.add(f"m{i}")
        assert log.snapshot() == ["m2", "m3", "m4"]

    def test_since_returns_only_new_messages(self):
        log = MessageLog()
        log.add("a")
        _, mark = log.since(0)
        log.add("b")
        log.add("c")
        new, mark = log.since(mark)
        assert new == ["b", "c"]
        assert log.since(mark) == ([], mark)

    def test_since_after_overflow_returns_what_is_kept(self):
        log = MessageLog(max_messages=2)
        for i in range(5):
            log.add(f"m{i}")
        new, mark = log.since(0)
        assert new == ["m3", "m4"]
        assert mark == 5

    def test_clear(self):
        log = MessageLog()
        log.add("a")
        log.clear()
        assert log.snapshot() == []
