"""
Section fetchers: one read per board section, in either repository mode.

Remote mode reads issues and PRs through gh; local mode reads them from the
LocalStore. Worktrees, sessions and the main-behind count come from git and
the session backend in both modes.

Every fetch is best-effort: a failure yields an empty section (or a zero
count) and is only logged.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from . import git_ops, github
from .exceptions import OctopaiError
from .local_store import LocalStore
from .logging_config import get_logger
from .models import AssigneeFilter, SectionData, SectionKind, StateFilter
from .sessions import fetch_sessions

if TYPE_CHECKING:
    from .protocols import SessionBackend
    from .session_state import SessionStateStore


log = get_logger("fetcher")


@dataclass
class Filters:
    state: StateFilter = StateFilter.OPEN
    assignee: AssigneeFilter = AssigneeFilter.ALL


class SectionFetcher:
    """Reads one section at a time. Safe to call from worker threads."""

    def __init__(
        self,
        repo: str,
        backend: "SessionBackend",
        states: "SessionStateStore",
        local_mode: bool = False,
        local_store: Optional[LocalStore] = None,
        filters: Optional[Filters] = None,
    ):
        self.repo = repo
        self.backend = backend
        self.states = states
        self.local_mode = local_mode
        self.local_store = local_store or LocalStore(repo)
        self.filters = filters or Filters()

    def fetch(self, kind: SectionKind) -> SectionData:
        """Fetch one section, never raising."""
        # Filters may be toggled from the UI thread mid-cycle; read them once
        state, assignee = self.filters.state, self.filters.assignee
        try:
            if kind is SectionKind.ISSUES:
                return SectionData.of_cards(kind, self._issues(state, assignee))
            if kind is SectionKind.WORKTREES:
                return SectionData.of_cards(kind, git_ops.fetch_worktrees())
            if kind is SectionKind.SESSIONS:
                return SectionData.of_cards(kind, fetch_sessions(self.backend, self.states))
            if kind is SectionKind.PULL_REQUESTS:
                return SectionData.of_cards(kind, self._prs(state, assignee))
            return SectionData.main_behind(git_ops.fetch_main_behind_count())
        except (OctopaiError, OSError, ValueError) as e:
            log.debug(f"Fetching {kind.name} failed: {e}")
            if kind is SectionKind.MAIN_BEHIND:
                return SectionData.main_behind(0)
            return SectionData.of_cards(kind, [])

    def _issues(self, state: StateFilter, assignee: AssigneeFilter):
        if self.local_mode:
            return self.local_store.fetch_issues(state, assignee)
        return github.fetch_issues(self.repo, state, assignee)

    def _prs(self, state: StateFilter, assignee: AssigneeFilter):
        if self.local_mode:
            return self.local_store.fetch_prs(state, assignee)
        return github.fetch_prs(self.repo, state, assignee)

    def merged_branches(self) -> List[str]:
        """Branches whose PR has been merged ([] on failure)."""
        try:
            if self.local_mode:
                return self.local_store.merged_branches()
            return github.fetch_merged_pr_branches(self.repo)
        except (OctopaiError, OSError, ValueError) as e:
            log.debug(f"Fetching merged branches failed: {e}")
            return []

    def open_pr_branches(self) -> List[str]:
        """Head branches of all open PRs, ignoring the display filters.

        The reconciler asks "does this session have a PR?" here rather
        than of the PR column, which may be showing closed or only mine.
        """
        try:
            if self.local_mode:
                return self.local_store.open_pr_branches()
            return github.fetch_open_pr_branches(self.repo)
        except (OctopaiError, OSError, ValueError) as e:
            log.debug(f"Fetching open PR branches failed: {e}")
            return []
