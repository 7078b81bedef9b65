"""
Pure business logic for the Reconciler.

These functions contain no I/O and are fully unit-testable.
They are used by Reconciler but can be tested independently.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .models import Card
from .status_constants import is_idle_state


class NudgeLedger:
    """Per-branch count of "continue" nudges sent since the branch last had a PR.

    Owned by the reconciling thread; not thread-safe.
    """

    def __init__(self):
        self._counts: Dict[str, int] = {}

    def count(self, branch: str) -> int:
        return self._counts.get(branch, 0)

    def try_nudge(self, branch: str, max_nudges: int) -> bool:
        """Record a nudge if the branch is under ``max_nudges``.

        Returns True when the caller should send the nudge.
        """
        current = self.count(branch)
        if current >= max_nudges:
            return False
        self._counts[branch] = current + 1
        return True

    def reset(self, branch: str) -> None:
        self._counts.pop(branch, None)

    def prune(self, live_branches: Iterable[str]) -> None:
        """Forget branches whose session no longer exists."""
        live = set(live_branches)
        for branch in list(self._counts):
            if branch not in live:
                del self._counts[branch]

    def branches(self) -> Set[str]:
        return set(self._counts)

    def __contains__(self, branch: str) -> bool:
        return branch in self._counts

    def __len__(self) -> int:
        return len(self._counts)


class IdleAction(Enum):
    NONE = "none"  # PR already open, leave the agent alone
    CREATE_PR = "create_pr"
    NUDGE = "nudge"


def worktrees_to_remove(worktrees: Sequence[Card], merged_branches: Iterable[str]) -> List[Card]:
    """Worktree cards whose branch has a merged PR.

    Pure function - no side effects, fully testable.
    """
    merged = set(merged_branches)
    if not merged:
        return []
    return [wt for wt in worktrees if wt.title in merged]


def idle_sessions(sessions: Sequence[Card]) -> List[Card]:
    return [s for s in sessions if is_idle_state(s.tag)]


def split_idle_sessions(sessions: Sequence[Card], branches_with_pr: Iterable[str]):
    """Partition idle sessions into (without PR, with PR).

    A session's branch is its title; ``branches_with_pr`` are the head
    branches of open PRs.
    """
    branches_with_pr = set(branches_with_pr)
    without_pr = []
    with_pr = []
    for session in idle_sessions(sessions):
        if session.title in branches_with_pr:
            with_pr.append(session)
        else:
            without_pr.append(session)
    return without_pr, with_pr


def decide_idle_action(
    local_mode: bool,
    auto_open_pr: bool,
    commits_ahead: int,
    has_open_local_pr: bool,
) -> IdleAction:
    """What to do with an idle session that has no matching PR card.

    Pure function - no side effects, fully testable.

    Local mode opens the PR itself once the agent has committed something;
    everything else falls through to a nudge.
    """
    if not local_mode:
        return IdleAction.NUDGE
    if has_open_local_pr:
        return IdleAction.NONE
    if auto_open_pr and commits_ahead > 0:
        return IdleAction.CREATE_PR
    return IdleAction.NUDGE


def clamp_index(index: int, length: int) -> int:
    """Keep a selection inside a list that may have shrunk."""
    if length <= 0:
        return 0
    return max(0, min(index, length - 1))


def format_cleanup_message(branches: Sequence[str]) -> str:
    return f"Cleaned up merged worktrees: {', '.join(branches)}"


def default_pr_title(branch: str, first_subject: Optional[str] = None) -> str:
    return first_subject or f"Work on {branch}"
