"""
Data model shared by every section of the board.

Cards are value objects: every fetch rebuilds them from scratch and nothing
mutates a card after construction.
"""

import re
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Deque, List, Optional, Tuple

from .settings import MAX_MESSAGES


# issue-N (remote) and local-issue-N (local store) are the relation keys
ISSUE_KEY_PATTERN = re.compile(r"^(?:local-)?issue-\d+$")


def is_issue_key(value: str) -> bool:
    return bool(ISSUE_KEY_PATTERN.match(value))


def related_keys_for_branch(branch: str) -> Tuple[str, ...]:
    """Relation keys for a worktree/session/PR on ``branch``."""
    if is_issue_key(branch):
        return (branch,)
    return ()


@dataclass(frozen=True)
class Card:
    """One entry in any of the four sections."""

    id: str
    title: str
    description: str
    tag: str
    tag_color: str
    full_description: Optional[str] = None
    related: Tuple[str, ...] = ()
    url: Optional[str] = None
    pr_number: Optional[int] = None
    is_draft: Optional[bool] = None
    is_merged: Optional[bool] = None
    head_branch: Optional[str] = None
    is_assigned: Optional[bool] = None


def short_description(body: str, empty: str = "No description", limit: int = 80) -> str:
    """One-line card description: truncated body, or ``empty`` when blank."""
    if not body:
        return empty
    if len(body) > limit:
        return body[: limit - 3] + "..."
    return body


class StateFilter(Enum):
    OPEN = "open"
    CLOSED = "closed"

    def toggle(self) -> "StateFilter":
        return StateFilter.CLOSED if self is StateFilter.OPEN else StateFilter.OPEN

    @property
    def label(self) -> str:
        return self.value


class AssigneeFilter(Enum):
    ALL = "all"
    MINE = "mine"

    def toggle(self) -> "AssigneeFilter":
        return AssigneeFilter.MINE if self is AssigneeFilter.ALL else AssigneeFilter.ALL

    @property
    def label(self) -> str:
        return self.value


class SectionKind(Enum):
    """Tag for results flowing over the aggregation channel."""

    ISSUES = 0
    WORKTREES = 1
    SESSIONS = 2
    PULL_REQUESTS = 3
    MAIN_BEHIND = 4


# The four card sections, in display order
CARD_SECTIONS = (
    SectionKind.ISSUES,
    SectionKind.WORKTREES,
    SectionKind.SESSIONS,
    SectionKind.PULL_REQUESTS,
)

SECTION_TITLES = {
    SectionKind.ISSUES: "Issues",
    SectionKind.WORKTREES: "Worktrees",
    SectionKind.SESSIONS: "Sessions",
    SectionKind.PULL_REQUESTS: "Pull Requests",
    SectionKind.MAIN_BEHIND: "Main",
}


@dataclass(frozen=True)
class SectionData:
    """Result of one section fetch.

    Card sections carry ``cards``; MAIN_BEHIND carries ``count``.
    """

    kind: SectionKind
    cards: Tuple[Card, ...] = ()
    count: int = 0

    @classmethod
    def of_cards(cls, kind: SectionKind, cards: List[Card]) -> "SectionData":
        return cls(kind=kind, cards=tuple(cards))

    @classmethod
    def main_behind(cls, count: int) -> "SectionData":
        return cls(kind=SectionKind.MAIN_BEHIND, count=count)


def fuzzy_match(query: str, target: str) -> bool:
    """Subsequence match, case-insensitive ("fxbg" matches "fix bug")."""
    remaining = iter(target.lower())
    return all(ch in remaining for ch in query.lower())


def card_matches(card: Card, query: str) -> bool:
    return fuzzy_match(query, card.title) or fuzzy_match(query, card.description)


@dataclass
class MessageLog:
    """Bounded, thread-safe list of status messages (newest last)."""

    max_messages: int = MAX_MESSAGES
    _messages: Deque[str] = field(default_factory=deque)
    _total: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def add(self, message: str) -> None:
        with self._lock:
            self._messages.append(message)
            self._total += 1
            while len(self._messages) > self.max_messages:
                self._messages.popleft()

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self._messages)

    def since(self, mark: int) -> Tuple[List[str], int]:
        """Messages added after ``mark`` (a value previously returned), and the new mark."""
        with self._lock:
            new_count = min(self._total - mark, len(self._messages))
            new = list(self._messages)[len(self._messages) - new_count:] if new_count > 0 else []
            return new, self._total

    def latest(self) -> Optional[str]:
        with self._lock:
            return self._messages[-1] if self._messages else None

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
