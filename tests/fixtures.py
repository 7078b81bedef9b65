"""
Test fixtures and factories for Octopai unit tests.

This module provides card factories, an in-memory session backend and
fakes for the reconciler's collaborators, so tests never need git, gh or a
terminal multiplexer.
"""

import subprocess
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from octopai.models import Card, SectionData, SectionKind
from octopai.section_fetcher import Filters


# =============================================================================
# Card factories
# =============================================================================

def make_issue(number: int = 1, title: str = "Fix bug", local: bool = False, **overrides) -> Card:
    prefix = "local-issue" if local else "issue"
    values = dict(
        id=f"{prefix}-{number}",
        title=f"#{number} {title}",
        description="No description",
        tag="open",
        tag_color="green",
    )
    values.update(overrides)
    return Card(**values)


def make_worktree(branch: str = "issue-1", path: Optional[str] = None, **overrides) -> Card:
    from octopai.models import related_keys_for_branch

    values = dict(
        id=f"wt-{branch}",
        title=branch,
        description=path or f"/repos/project-{branch}",
        tag="branch",
        tag_color="yellow",
        related=related_keys_for_branch(branch),
        head_branch=branch,
    )
    values.update(overrides)
    return Card(**values)


def make_session(name: str = "issue-1", tag: str = "working", **overrides) -> Card:
    values = dict(
        id=f"session-{name}",
        title=name,
        description="Using tools...",
        tag=tag,
        tag_color="green",
        related=(name,),
        head_branch=name,
    )
    values.update(overrides)
    return Card(**values)


def make_pr(
    number: int = 10,
    branch: str = "issue-1",
    is_draft: bool = True,
    is_merged: bool = False,
    **overrides,
) -> Card:
    from octopai.models import related_keys_for_branch

    values = dict(
        id=f"pr-{number}",
        title=f"#{number} Work on {branch}",
        description=branch,
        tag="merged" if is_merged else ("draft" if is_draft else "ready"),
        tag_color="magenta",
        related=related_keys_for_branch(branch),
        url=f"https://github.com/acme/widgets/pull/{number}",
        pr_number=number,
        is_draft=is_draft,
        is_merged=is_merged,
        head_branch=branch,
    )
    values.update(overrides)
    return Card(**values)


def completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    """A CompletedProcess as subprocess.run would return it."""
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


# =============================================================================
# Session backend
# =============================================================================

class FakeBackend:
    """In-memory SessionBackend.

    Sessions are a dict of name -> pane text. Every call is recorded so
    tests can assert on what was typed or killed.
    """

    name = "fake"

    def __init__(self, panes: Optional[Dict[str, Optional[str]]] = None):
        self.panes: Dict[str, Optional[str]] = dict(panes or {})
        self.created: List[Tuple[str, str]] = []
        self.sent: List[Tuple[str, str]] = []
        self.killed: List[str] = []
        self.attached: List[str] = []
        self.capture_calls: List[str] = []

    def list_sessions(self) -> List[str]:
        return list(self.panes)

    def create_session(self, name: str, working_dir: str) -> None:
        self.created.append((name, working_dir))
        self.panes[name] = ""

    def send_keys(self, name: str, text: str) -> None:
        self.sent.append((name, text))

    def capture_pane(self, name: str) -> Optional[str]:
        self.capture_calls.append(name)
        return self.panes.get(name)

    def attach(self, name: str) -> None:
        self.attached.append(name)

    def kill_session(self, name: str) -> None:
        self.killed.append(name)
        self.panes.pop(name, None)


# =============================================================================
# Reconciler collaborators
# =============================================================================

@dataclass
class FakeFetcher:
    """Stands in for SectionFetcher with scripted section contents.

    ``sections`` is read on every fetch, so tests (and FakeOperations) can
    change it between the initial fetch and the reconciliation re-fetches.
    """

    sections: Dict[SectionKind, List[Card]] = field(default_factory=dict)
    main_behind: int = 0
    merged: List[str] = field(default_factory=list)
    fetch_calls: List[SectionKind] = field(default_factory=list)
    failing: Tuple[SectionKind, ...] = ()
    filters: Filters = field(default_factory=Filters)

    def fetch(self, kind: SectionKind) -> SectionData:
        self.fetch_calls.append(kind)
        if kind in self.failing:
            raise RuntimeError(f"{kind.name} exploded")
        if kind is SectionKind.MAIN_BEHIND:
            return SectionData.main_behind(self.main_behind)
        return SectionData.of_cards(kind, list(self.sections.get(kind, [])))

    def merged_branches(self) -> List[str]:
        return list(self.merged)

    def open_pr_branches(self) -> List[str]:
        """Head branches of the scripted unmerged PR cards."""
        return [
            pr.head_branch
            for pr in self.sections.get(SectionKind.PULL_REQUESTS, [])
            if pr.head_branch and not pr.is_merged
        ]


@dataclass
class FakeOperations:
    """Records the reconciler's side effects and mutates a FakeFetcher.

    Removing a worktree drops it (and its session) from the fetcher;
    creating a local PR adds a PR card, mirroring what the next fetch of
    the real store would return.
    """

    fetcher: FakeFetcher
    commits: Dict[str, int] = field(default_factory=dict)
    subjects: Dict[str, str] = field(default_factory=dict)
    open_local_prs: List[str] = field(default_factory=list)
    fail_remove: List[str] = field(default_factory=list)
    removed: List[Tuple[str, str]] = field(default_factory=list)
    messages: List[Tuple[str, str]] = field(default_factory=list)
    created_prs: List[Tuple[str, str]] = field(default_factory=list)
    launched: List[Tuple[str, str]] = field(default_factory=list)
    next_pr_number: int = 100

    def remove_worktree(self, path: str, branch: str) -> None:
        from octopai.exceptions import CommandError

        if branch in self.fail_remove:
            raise CommandError(f"git worktree remove error: {branch} is locked")
        self.removed.append((path, branch))
        for kind in (SectionKind.WORKTREES, SectionKind.SESSIONS):
            self.fetcher.sections[kind] = [
                card for card in self.fetcher.sections.get(kind, []) if card.title != branch
            ]

    def verify_worktree(self, branch: str, path: str, wait: bool = False) -> int:
        self.launched.append(("verify", path))
        return 0

    def open_in_editor(self, path: str) -> int:
        self.launched.append(("editor", path))
        return 0

    def send_message(self, session: str, text: str) -> None:
        self.messages.append((session, text))

    def commits_ahead(self, branch: str) -> int:
        return self.commits.get(branch, 0)

    def first_commit_subject(self, branch: str) -> Optional[str]:
        return self.subjects.get(branch)

    def has_open_local_pr(self, branch: str) -> bool:
        return branch in self.open_local_prs

    def create_local_pr(self, branch: str, title: str) -> int:
        number = self.next_pr_number
        self.next_pr_number += 1
        self.created_prs.append((branch, title))
        self.open_local_prs.append(branch)
        prs = self.fetcher.sections.setdefault(SectionKind.PULL_REQUESTS, [])
        prs.append(make_pr(number=number, branch=branch, title=f"#{number} {title}"))
        return number


def make_board(sections: Optional[Dict[SectionKind, List[Card]]] = None, **overrides):
    """A Board wired from fakes around a real Reconciler."""
    from octopai.board import Board
    from octopai.models import MessageLog
    from octopai.reconciler import Reconciler
    from octopai.session_state import SessionStateStore

    fetcher = FakeFetcher(sections=dict(sections or {}))
    operations = FakeOperations(fetcher)
    messages = MessageLog()
    values = dict(
        repo="acme/widgets",
        local_mode=False,
        backend=FakeBackend(),
        states=SessionStateStore(),
        fetcher=fetcher,
        operations=operations,
        reconciler=Reconciler(fetcher, operations, messages=messages),
        messages=messages,
    )
    values.update(overrides)
    return Board(**values)
