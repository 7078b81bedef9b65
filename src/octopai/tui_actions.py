"""
Key-bound actions for the dashboard.

Mixed into BoardApp. Anything that shells out runs in a thread worker and
reports back through the message log; attach runs on the main thread with
the app suspended.
"""

import time
import webbrowser
from typing import Callable, Optional

from textual import work

from .config import get_editor_command, get_verify_command
from .exceptions import OctopaiError
from .models import CARD_SECTIONS, Card, SectionKind


class BoardActionsMixin:
    """Actions for BoardApp. Expects ``board``, ``active_kind`` and
    ``_pending_confirmations`` on the app."""

    def _confirm_double_press(
        self,
        action_key: str,
        message: str,
        callback: Callable[[], None],
        target: Optional[str] = None,
        timeout: float = 3.0,
    ) -> None:
        """Generic double-press confirmation pattern.

        First press shows a warning notification. Second press within timeout
        executes the callback. If the target changes, the confirmation
        resets.

        Args:
            action_key: Unique key for this action (e.g., "kill", "remove")
            message: Warning message shown on first press
            callback: Callable to execute on confirmation
            target: Card id to match (None for global actions)
            timeout: Seconds before confirmation expires
        """
        now = time.time()
        pending = self._pending_confirmations.get(action_key)

        if pending is not None:
            pending_target, pending_time = pending
            if pending_target == target and (now - pending_time) < timeout:
                del self._pending_confirmations[action_key]
                callback()
                return
            # Different card or expired: reset
            del self._pending_confirmations[action_key]

        self._pending_confirmations[action_key] = (target, now)
        self.notify(message, severity="warning", timeout=int(timeout))

    @work(thread=True, group="actions")
    def _run_operation(self, description: str, operation: Callable[[], Optional[str]]) -> None:
        """Run a mutation off the main thread, then refresh the board."""
        errors = set()
        try:
            result = operation()
        except OctopaiError as e:
            message = f"{description} failed: {e}"
            errors.add(message)
        else:
            message = result or description
        self.board.messages.add(message)
        self.call_from_thread(self.show_new_messages, errors)
        self.call_from_thread(self.action_refresh)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def action_next_section(self) -> None:
        index = CARD_SECTIONS.index(self.active_kind)
        self.active_kind = CARD_SECTIONS[(index + 1) % len(CARD_SECTIONS)]

    def action_previous_section(self) -> None:
        index = CARD_SECTIONS.index(self.active_kind)
        self.active_kind = CARD_SECTIONS[(index - 1) % len(CARD_SECTIONS)]

    def action_next_card(self) -> None:
        self._move_selection(1)

    def action_previous_card(self) -> None:
        self._move_selection(-1)

    def _move_selection(self, delta: int) -> None:
        kind = self.active_kind
        count = len(self.visible_cards(kind))
        if count == 0:
            return
        current = self.board.reconciler.selected(kind)
        self.board.reconciler.select(kind, min(max(current + delta, 0), count - 1))
        self.render_board()

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def action_toggle_state_filter(self) -> None:
        filters = self.board.filters
        filters.state = filters.state.toggle()
        self.notify(f"Showing {filters.state.label} issues and PRs")
        self.action_refresh()

    def action_toggle_assignee_filter(self) -> None:
        filters = self.board.filters
        filters.assignee = filters.assignee.toggle()
        self.notify(f"Showing {filters.assignee.label} issues and PRs")
        self.action_refresh()

    # -------------------------------------------------------------------------
    # Card actions
    # -------------------------------------------------------------------------

    def action_primary(self) -> None:
        """Enter: attach to a session, start work on an issue, open a PR."""
        card = self.selected_card()
        if card is None:
            return
        kind = self.active_kind
        if kind is SectionKind.SESSIONS:
            self.attach_session(card.title)
        elif kind is SectionKind.WORKTREES:
            if card.title in self.board.backend.list_sessions():
                self.attach_session(card.title)
            else:
                self.notify(f"No session for '{card.title}'", severity="warning")
        elif kind is SectionKind.ISSUES:
            self.action_start_issue()
        elif kind is SectionKind.PULL_REQUESTS and card.url:
            webbrowser.open(card.url)

    def action_start_issue(self) -> None:
        card = self.selected_card(SectionKind.ISSUES)
        if card is None:
            return
        operations = self.board.operations
        self._run_operation(
            f"Start session for {card.id}",
            lambda: f"Started session '{operations.start_issue(card.id)}'",
        )

    def action_delete(self) -> None:
        """x: close issue / remove worktree / kill session (press twice)."""
        card = self.selected_card()
        if card is None:
            return
        operations = self.board.operations
        kind = self.active_kind

        if kind is SectionKind.ISSUES:
            self._confirm_double_press(
                "close",
                f"Press x again to close {card.title}",
                lambda: self._run_operation(
                    f"Closed {card.title}", lambda: operations.close_issue(card.id)
                ),
                target=card.id,
            )
        elif kind is SectionKind.WORKTREES:
            self._confirm_double_press(
                "remove",
                f"Press x again to remove worktree '{card.title}'",
                lambda: self._run_operation(
                    f"Removed worktree '{card.title}'",
                    lambda: operations.remove_worktree(card.description, card.title),
                ),
                target=card.id,
            )
        elif kind is SectionKind.SESSIONS:
            self._confirm_double_press(
                "kill",
                f"Press x again to kill session '{card.title}'",
                lambda: self._run_operation(
                    f"Killed session '{card.title}'",
                    lambda: operations.kill_session(card.title),
                ),
                target=card.id,
            )

    def action_merge_pr(self) -> None:
        card = self.selected_card(SectionKind.PULL_REQUESTS)
        if card is None:
            return
        operations = self.board.operations

        def merge_and_clean() -> str:
            branch = operations.merge_pr(card)
            if branch:
                path = operations.worktree_path(branch)
                if path:
                    operations.remove_worktree(path, branch)
            return f"Merged {card.title}"

        self._confirm_double_press(
            "merge",
            f"Press m again to merge {card.title}",
            lambda: self._run_operation(f"Merge {card.title}", merge_and_clean),
            target=card.id,
        )

    def action_mark_ready(self) -> None:
        card = self.selected_card(SectionKind.PULL_REQUESTS)
        if card is None or not card.is_draft:
            return
        operations = self.board.operations
        self._run_operation(f"Marked {card.title} ready", lambda: operations.mark_pr_ready(card))

    def action_pull_main(self) -> None:
        operations = self.board.operations
        self._run_operation("Pull main", operations.pull_main)

    # -------------------------------------------------------------------------
    # Worktree commands
    # -------------------------------------------------------------------------

    def action_verify_worktree(self) -> None:
        self._worktree_command("verify", get_verify_command)

    def action_edit_worktree(self) -> None:
        self._worktree_command("editor", get_editor_command)

    def _worktree_command(self, kind: str, getter: Callable[[str], Optional[str]]) -> None:
        card = self.selected_card(SectionKind.WORKTREES)
        if card is None:
            return
        if getter(self.board.repo) is None:
            self.prompt_for_command(kind, card)
            return
        self.launch_in_worktree(kind, card)

    def launch_in_worktree(self, kind: str, card: Card) -> None:
        operations = self.board.operations
        if kind == "verify":
            def launch() -> str:
                operations.verify_worktree(card.title, card.description)
                return f"Launched verify for '{card.title}'"
        else:
            def launch() -> str:
                operations.open_in_editor(card.description)
                return f"Opened editor for '{card.title}'"
        self._run_operation(f"{kind.capitalize()} for '{card.title}'", launch)
