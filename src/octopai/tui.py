"""
Textual dashboard for Octopai.

Four columns (issues, worktrees, sessions, pull requests) over a status
bar. Refresh cycles run in a thread worker; the columns only ever show a
fully reconciled snapshot, with a per-column loading marker while a cycle
is in flight.
"""

import time
from typing import Dict, List, Optional, Set, Tuple

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.widgets import Footer, Header, Input, Static

from . import __version__
from .board import Board, build_board
from .config import get_refresh_interval, set_editor_command, set_verify_command
from .logging_config import get_logger, setup_tui_logging
from .models import CARD_SECTIONS, SECTION_TITLES, Card, SectionData, SectionKind, card_matches
from .reconciler_core import clamp_index
from .relations import related_card_ids
from .tui_actions import BoardActionsMixin


log = get_logger("tui")


class SectionColumn(Static):
    """One board section rendered as a list of cards."""

    def __init__(self, kind: SectionKind, **kwargs):
        super().__init__(**kwargs)
        self.kind = kind

    def show(
        self,
        cards: List[Card],
        selected: int,
        related: set,
        active: bool,
        loading: bool,
        total: int,
    ) -> None:
        text = Text()
        title = SECTION_TITLES[self.kind]
        count = f"{len(cards)}/{total}" if len(cards) != total else str(total)
        text.append(f" {title} ({count})", style="bold" if active else "bold dim")
        if loading:
            text.append("  ⟳", style="cyan")
        text.append("\n\n")

        if not cards:
            text.append("  (none)\n", style="dim")

        for index, card in enumerate(cards):
            is_selected = active and index == selected
            marker = "▶ " if is_selected else "  "
            if card.id in related:
                title_style = "bold magenta"
            elif is_selected:
                title_style = "bold reverse"
            else:
                title_style = "bold"
            text.append(marker)
            text.append(card.title, style=title_style)
            text.append(" ")
            text.append(f"[{card.tag}]", style=card.tag_color)
            if card.is_assigned:
                text.append(" @me", style="dim")
            text.append("\n")
            text.append(f"    {card.description}\n", style="dim")

        self.update(text)
        self.set_class(active, "active")


class BoardApp(BoardActionsMixin, App):
    """Dashboard over one repository."""

    CSS_PATH = "tui.tcss"
    AUTO_FOCUS = None

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("l", "next_section", "Next section"),
        ("right", "next_section", "Next section"),
        ("tab", "next_section", "Next section"),
        ("h", "previous_section", "Prev section"),
        ("left", "previous_section", "Prev section"),
        ("j", "next_card", "Next"),
        ("down", "next_card", "Next"),
        ("k", "previous_card", "Prev"),
        ("up", "previous_card", "Prev"),
        ("enter", "primary", "Open/attach"),
        ("n", "start_issue", "New session"),
        ("x", "delete", "Close/remove/kill"),
        ("m", "merge_pr", "Merge PR"),
        ("R", "mark_ready", "PR ready"),
        ("p", "pull_main", "Pull main"),
        ("v", "verify_worktree", "Verify"),
        ("e", "edit_worktree", "Editor"),
        ("s", "toggle_state_filter", "Open/closed"),
        ("a", "toggle_assignee_filter", "All/mine"),
        ("slash", "start_filter", "Filter"),
        ("escape", "clear_filter", "Clear filter"),
    ]

    active_kind: reactive[SectionKind] = reactive(SectionKind.ISSUES)

    def __init__(self, board: Board):
        super().__init__()
        self.board = board
        self.filter_query = ""
        self._pending_confirmations: Dict[str, Tuple[Optional[str], float]] = {}
        self._message_mark = 0
        self._command_prompt: Optional[Tuple[str, Card]] = None
        board.reconciler.on_section = self._on_section_fetched

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal(id="board"):
            for kind in CARD_SECTIONS:
                yield SectionColumn(kind, id=f"section-{kind.value}", classes="section")
        yield Input(placeholder="fuzzy filter (enter to apply, esc to clear)", id="filter-input")
        yield Input(id="command-input")
        yield Static(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        self.title = f"Octopai v{__version__}"
        mode = "local" if self.board.local_mode else "github"
        self.sub_title = f"{self.board.repo} ({mode}, {self.board.backend.name})"
        self.render_board()
        self.action_refresh()
        self.set_interval(get_refresh_interval(), self._periodic_refresh)

    # -------------------------------------------------------------------------
    # Refresh
    # -------------------------------------------------------------------------

    def action_refresh(self) -> None:
        """Refresh now, or right after the cycle already in flight."""
        self._refresh_async(queue_if_busy=True)

    def _periodic_refresh(self) -> None:
        self._refresh_async(queue_if_busy=False)

    @work(thread=True, group="refresh")
    def _refresh_async(self, queue_if_busy: bool) -> None:
        """One reconciliation cycle off the main thread."""
        snapshot = self.board.reconciler.refresh(queue_if_busy=queue_if_busy)
        if snapshot is None:
            return
        self.call_from_thread(self._apply_snapshot)

    def _on_section_fetched(self, data: SectionData) -> None:
        # Called on the refresh thread; only loading markers change
        self.call_from_thread(self.render_board)

    def _apply_snapshot(self) -> None:
        self.show_new_messages()
        self.render_board()

    def show_new_messages(self, errors: Optional[Set[str]] = None) -> None:
        """Notify each message logged since the last call, exactly once.

        Messages in ``errors`` are shown with error severity.
        """
        new_messages, self._message_mark = self.board.messages.since(self._message_mark)
        for message in new_messages:
            if errors and message in errors:
                self.notify(message, severity="error")
            else:
                self.notify(message)

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def watch_active_kind(self, old: SectionKind, new: SectionKind) -> None:
        self.render_board()

    def visible_cards(self, kind: SectionKind) -> List[Card]:
        cards = list(self.board.reconciler.snapshot.cards(kind))
        if self.filter_query:
            cards = [card for card in cards if card_matches(card, self.filter_query)]
        return cards

    def selected_card(self, kind: Optional[SectionKind] = None) -> Optional[Card]:
        kind = kind or self.active_kind
        if kind is not self.active_kind:
            return None
        cards = self.visible_cards(kind)
        if not cards:
            return None
        return cards[clamp_index(self.board.reconciler.selected(kind), len(cards))]

    def render_board(self) -> None:
        if not self.is_mounted:
            return
        reconciler = self.board.reconciler
        snapshot = reconciler.snapshot
        selected = self.selected_card()
        related = related_card_ids(selected, snapshot.sections()) if selected else set()

        for kind in CARD_SECTIONS:
            cards = self.visible_cards(kind)
            column = self.query_one(f"#section-{kind.value}", SectionColumn)
            column.show(
                cards,
                clamp_index(reconciler.selected(kind), len(cards)),
                related,
                active=kind is self.active_kind,
                loading=reconciler.is_loading(kind),
                total=len(snapshot.cards(kind)),
            )
        self._render_status_bar()

    def _render_status_bar(self) -> None:
        snapshot = self.board.reconciler.snapshot
        filters = self.board.filters
        text = Text()
        text.append(f" {filters.state.label}", style="bold")
        text.append(f" · {filters.assignee.label}", style="bold")
        if self.filter_query:
            text.append(f" · /{self.filter_query}", style="yellow")
        if snapshot.main_behind:
            text.append(f" · main ↓{snapshot.main_behind} (p to pull)", style="yellow")
        if self.board.reconciler.is_loading(SectionKind.MAIN_BEHIND):
            text.append(" · ⟳", style="cyan")
        if snapshot.last_refresh:
            stamp = time.strftime("%H:%M:%S", time.localtime(snapshot.last_refresh))
            text.append(f" · refreshed {stamp}", style="dim")
        latest = self.board.messages.latest()
        if latest:
            text.append(f" · {latest}", style="cyan")
        self.query_one("#status-bar", Static).update(text)

    # -------------------------------------------------------------------------
    # Fuzzy filter
    # -------------------------------------------------------------------------

    def action_start_filter(self) -> None:
        filter_input = self.query_one("#filter-input", Input)
        filter_input.display = True
        filter_input.value = self.filter_query
        filter_input.focus()

    def action_clear_filter(self) -> None:
        if self._command_prompt is not None:
            self._close_command_prompt()
            return
        filter_input = self.query_one("#filter-input", Input)
        filter_input.value = ""
        filter_input.display = False
        self.filter_query = ""
        self.set_focus(None)
        self.render_board()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "filter-input":
            return
        self.filter_query = event.value.strip()
        self.render_board()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "command-input":
            self._submit_command_prompt(event.value.strip())
            return
        event.input.display = False
        self.set_focus(None)
        self.render_board()

    # -------------------------------------------------------------------------
    # Worktree command prompt
    # -------------------------------------------------------------------------

    def prompt_for_command(self, kind: str, card: Card) -> None:
        """Ask for the repository's verify/editor command, then run it on ``card``."""
        self._command_prompt = (kind, card)
        command_input = self.query_one("#command-input", Input)
        command_input.placeholder = (
            f"{kind} command for {self.board.repo} ({{path}} = worktree path, esc to cancel)"
        )
        command_input.value = ""
        command_input.display = True
        command_input.focus()

    def _close_command_prompt(self) -> None:
        self._command_prompt = None
        command_input = self.query_one("#command-input", Input)
        command_input.value = ""
        command_input.display = False
        self.set_focus(None)

    def _submit_command_prompt(self, command: str) -> None:
        prompt = self._command_prompt
        self._close_command_prompt()
        if prompt is None or not command:
            return
        kind, card = prompt
        setter = set_verify_command if kind == "verify" else set_editor_command
        setter(self.board.repo, command)
        self.notify(f"Saved {kind} command: {command}")
        self.launch_in_worktree(kind, card)

    # -------------------------------------------------------------------------
    # Attach
    # -------------------------------------------------------------------------

    def attach_session(self, name: str) -> None:
        """Hand the terminal to a session until the user detaches."""
        from .exceptions import SessionBackendError

        try:
            with self.suspend():
                self.board.operations.attach(name)
        except SessionBackendError as e:
            message = f"Attach failed: {e}"
            self.board.messages.add(message)
            self.show_new_messages({message})
        self.action_refresh()


def run_tui(repo: Optional[str] = None, local_mode: Optional[bool] = None) -> None:
    """Run the dashboard.

    Startup failures (no repository, no multiplexer, socket in use) raise
    before the terminal is taken over.
    """
    import os
    import sys

    if not sys.stdout.isatty():
        print("Error: Must run in a TTY terminal", file=sys.stderr)
        sys.exit(1)

    os.environ.setdefault("TERM", "xterm-256color")
    setup_tui_logging()

    board = build_board(repo=repo, local_mode=local_mode, listen=True)
    app = BoardApp(board)
    try:
        app.run()
    finally:
        board.close()
