"""
Reconciler: one refresh cycle over the whole board.

A cycle fetches the four sections plus the main-behind count concurrently,
waits for all five results, then runs the reconciliation steps in order:

    1. remove worktrees whose branch has a merged PR (re-fetch worktrees)
    2. re-fetch sessions
    3. idle sessions without a PR: auto-open a local PR or nudge
    4. branches that have a PR: clear their nudge count
    5. prune nudge counts to live sessions
    6. clamp selections, stamp the refresh time

Only then is the new BoardSnapshot published, so readers never see a
half-fetched board. Each fetch and side effect is best-effort; one failing
step never aborts the others.
"""

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .exceptions import OctopaiError
from .logging_config import get_structured_logger
from .models import CARD_SECTIONS, Card, MessageLog, SectionData, SectionKind
from .operations import RepoOperations
from .reconciler_core import (
    IdleAction,
    NudgeLedger,
    clamp_index,
    decide_idle_action,
    default_pr_title,
    format_cleanup_message,
    split_idle_sessions,
    worktrees_to_remove,
)
from .section_fetcher import SectionFetcher
from .settings import DEFAULT_NUDGE_MAX, DEFAULT_NUDGE_MESSAGE


log = get_structured_logger("reconciler")

ALL_KINDS = tuple(SectionKind)


class ReconcilerState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"


@dataclass(frozen=True)
class BoardSnapshot:
    """Fully reconciled board contents."""

    issues: Tuple[Card, ...] = ()
    worktrees: Tuple[Card, ...] = ()
    sessions: Tuple[Card, ...] = ()
    pull_requests: Tuple[Card, ...] = ()
    main_behind: int = 0
    last_refresh: Optional[float] = None

    def cards(self, kind: SectionKind) -> Tuple[Card, ...]:
        return {
            SectionKind.ISSUES: self.issues,
            SectionKind.WORKTREES: self.worktrees,
            SectionKind.SESSIONS: self.sessions,
            SectionKind.PULL_REQUESTS: self.pull_requests,
        }.get(kind, ())

    def sections(self) -> List[Tuple[Card, ...]]:
        """The four card lists in display order."""
        return [self.cards(kind) for kind in CARD_SECTIONS]


@dataclass
class ReconcilerSettings:
    local_mode: bool = False
    auto_open_pr: bool = True
    nudge_max: int = DEFAULT_NUDGE_MAX
    nudge_message: str = DEFAULT_NUDGE_MESSAGE


@dataclass
class _Working:
    """Mutable section lists for the cycle in progress."""

    issues: List[Card] = field(default_factory=list)
    worktrees: List[Card] = field(default_factory=list)
    sessions: List[Card] = field(default_factory=list)
    pull_requests: List[Card] = field(default_factory=list)
    main_behind: int = 0


class Reconciler:
    """Runs refresh cycles. One cycle at a time; cycles are never cancelled."""

    def __init__(
        self,
        fetcher: SectionFetcher,
        operations: RepoOperations,
        settings: Optional[ReconcilerSettings] = None,
        messages: Optional[MessageLog] = None,
        on_section: Optional[Callable[[SectionData], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            fetcher: Section reads
            operations: Side effects (cleanup, nudges, local PRs)
            settings: Reconciliation policy knobs
            messages: Status message sink shared with the UI
            on_section: Called from the refreshing thread as each fetch
                result arrives (progress only; the data is not yet final)
            clock: Time source for last_refresh
        """
        self.fetcher = fetcher
        self.operations = operations
        self.settings = settings or ReconcilerSettings()
        self.messages = messages or MessageLog()
        self.on_section = on_section
        self._clock = clock

        self.ledger = NudgeLedger()
        self.state = ReconcilerState.IDLE
        self._snapshot = BoardSnapshot()
        self._snapshot_lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._queue_lock = threading.Lock()
        self._queued = False
        self._loading: Dict[SectionKind, bool] = {kind: False for kind in ALL_KINDS}
        self._selected: Dict[SectionKind, int] = {kind: 0 for kind in CARD_SECTIONS}

    # -------------------------------------------------------------------------
    # Read side (any thread)
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> BoardSnapshot:
        with self._snapshot_lock:
            return self._snapshot

    @property
    def refreshing(self) -> bool:
        return self._refresh_lock.locked()

    def is_loading(self, kind: SectionKind) -> bool:
        return self._loading[kind]

    def loading_flags(self) -> Dict[SectionKind, bool]:
        return dict(self._loading)

    def selected(self, kind: SectionKind) -> int:
        return self._selected.get(kind, 0)

    def select(self, kind: SectionKind, index: int) -> int:
        """Move a section's selection, clamped to its current size."""
        length = len(self.snapshot.cards(kind))
        self._selected[kind] = clamp_index(index, length)
        return self._selected[kind]

    def selected_card(self, kind: SectionKind) -> Optional[Card]:
        cards = self.snapshot.cards(kind)
        if not cards:
            return None
        return cards[clamp_index(self.selected(kind), len(cards))]

    # -------------------------------------------------------------------------
    # Refresh cycle
    # -------------------------------------------------------------------------

    def refresh(self, queue_if_busy: bool = False) -> Optional[BoardSnapshot]:
        """Run one full cycle and publish its snapshot.

        Returns None without doing anything if a cycle is already running.
        With ``queue_if_busy`` the running cycle is asked to go round once
        more before it returns, so changes made after its fetches started
        still reach the board. Any number of queued requests collapse into
        one extra cycle.
        """
        with self._queue_lock:
            if not self._refresh_lock.acquire(blocking=False):
                if queue_if_busy:
                    self._queued = True
                    log.debug("Refresh in progress, queued another cycle")
                else:
                    log.debug("Refresh already in progress, skipping")
                return None

        try:
            while True:
                snapshot = self._run_cycle()
                # Check and release together so no queued request is lost
                with self._queue_lock:
                    if not self._queued:
                        self.state = ReconcilerState.IDLE
                        self._refresh_lock.release()
                        return snapshot
                    self._queued = False
                log.debug("Running queued refresh cycle")
        except BaseException:
            self.state = ReconcilerState.IDLE
            self._refresh_lock.release()
            raise

    def _run_cycle(self) -> BoardSnapshot:
        self.state = ReconcilerState.FETCHING
        results = self._fetch_all()

        self.state = ReconcilerState.RECONCILING
        working = _Working(
            issues=list(results[SectionKind.ISSUES].cards),
            worktrees=list(results[SectionKind.WORKTREES].cards),
            sessions=list(results[SectionKind.SESSIONS].cards),
            pull_requests=list(results[SectionKind.PULL_REQUESTS].cards),
            main_behind=results[SectionKind.MAIN_BEHIND].count,
        )
        snapshot = self._reconcile(working)

        with self._snapshot_lock:
            self._snapshot = snapshot
        return snapshot

    def _fetch_into(self, kind: SectionKind, results: "queue.Queue[SectionData]") -> None:
        try:
            data = self.fetcher.fetch(kind)
        except Exception:
            # The barrier below waits for every kind; a worker must always post
            log.exception("Unexpected fetch failure", section=kind.name)
            if kind is SectionKind.MAIN_BEHIND:
                data = SectionData.main_behind(0)
            else:
                data = SectionData.of_cards(kind, [])
        results.put(data)

    def _fetch_all(self) -> Dict[SectionKind, SectionData]:
        results: "queue.Queue[SectionData]" = queue.Queue()
        pending = set(ALL_KINDS)
        for kind in ALL_KINDS:
            self._loading[kind] = True

        collected: Dict[SectionKind, SectionData] = {}
        with ThreadPoolExecutor(max_workers=len(ALL_KINDS), thread_name_prefix="octopai-fetch") as pool:
            for kind in ALL_KINDS:
                pool.submit(self._fetch_into, kind, results)

            while pending:
                data = results.get()
                collected[data.kind] = data
                pending.discard(data.kind)
                self._loading[data.kind] = False
                if self.on_section is not None:
                    self.on_section(data)

        return collected

    def _reconcile(self, working: _Working) -> BoardSnapshot:
        self._cleanup_merged(working)
        working.sessions = list(self.fetcher.fetch(SectionKind.SESSIONS).cards)
        # Open PRs regardless of the display filters
        branches_with_pr = set(self.fetcher.open_pr_branches())
        self._handle_idle_sessions(working, branches_with_pr)

        for branch in self.ledger.branches() & branches_with_pr:
            self.ledger.reset(branch)
        self.ledger.prune(session.title for session in working.sessions)

        snapshot = BoardSnapshot(
            issues=tuple(working.issues),
            worktrees=tuple(working.worktrees),
            sessions=tuple(working.sessions),
            pull_requests=tuple(working.pull_requests),
            main_behind=working.main_behind,
            last_refresh=self._clock(),
        )
        for kind in CARD_SECTIONS:
            self._selected[kind] = clamp_index(self._selected[kind], len(snapshot.cards(kind)))
        return snapshot

    def _cleanup_merged(self, working: _Working) -> None:
        merged = self.fetcher.merged_branches()
        removed = []
        for worktree in worktrees_to_remove(working.worktrees, merged):
            try:
                self.operations.remove_worktree(worktree.description, worktree.title)
            except OctopaiError as e:
                log.warning("Failed to remove merged worktree", branch=worktree.title, error=e)
                continue
            removed.append(worktree.title)
            log.info("Removed merged worktree", branch=worktree.title, path=worktree.description)

        if removed:
            self.messages.add(format_cleanup_message(removed))
            working.worktrees = list(self.fetcher.fetch(SectionKind.WORKTREES).cards)

    def _handle_idle_sessions(self, working: _Working, branches_with_pr: Set[str]) -> None:
        """Auto-open PRs or nudge; branches given a PR join ``branches_with_pr``."""
        without_pr, _ = split_idle_sessions(working.sessions, branches_with_pr)
        prs_changed = False

        for session in without_pr:
            branch = session.title
            action = self._decide(branch)

            if action is IdleAction.CREATE_PR:
                if self._auto_create_pr(branch):
                    branches_with_pr.add(branch)
                    prs_changed = True
            elif action is IdleAction.NUDGE:
                self._nudge(branch)

        if prs_changed:
            working.pull_requests = list(self.fetcher.fetch(SectionKind.PULL_REQUESTS).cards)

    def _decide(self, branch: str) -> IdleAction:
        if not self.settings.local_mode:
            return IdleAction.NUDGE
        return decide_idle_action(
            local_mode=True,
            auto_open_pr=self.settings.auto_open_pr,
            commits_ahead=self.operations.commits_ahead(branch),
            has_open_local_pr=self.operations.has_open_local_pr(branch),
        )

    def _auto_create_pr(self, branch: str) -> bool:
        title = default_pr_title(branch, self.operations.first_commit_subject(branch))
        try:
            number = self.operations.create_local_pr(branch, title)
        except OctopaiError as e:
            log.warning("Failed to auto-create local PR", branch=branch, error=e)
            self.messages.add(f"Failed to create PR for {branch}: {e}")
            return False
        log.info("Auto-created local PR", branch=branch, pr=number)
        self.messages.add(f"Auto-created local PR #{number} for {branch}")
        return True

    def _nudge(self, branch: str) -> None:
        if not self.ledger.try_nudge(branch, self.settings.nudge_max):
            return
        self.operations.send_message(branch, self.settings.nudge_message)
        log.info("Nudged idle session", branch=branch, count=self.ledger.count(branch))
        self.messages.add(f"Nudged {branch} to continue")
