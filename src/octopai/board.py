"""
Assembly of the dashboard's collaborators.

Startup resolves the repository, the repository mode and the session
backend once, then wires fetcher, operations and reconciler together. The
CLI's headless commands and the TUI share this wiring.
"""

from dataclasses import dataclass
from typing import Optional

from . import config, git_ops, github
from .dependency_check import gh_available
from .event_socket import EventSocketListener
from .exceptions import OctopaiError
from .implementations import detect_backend
from .local_store import LocalStore
from .logging_config import get_logger
from .models import MessageLog
from .operations import RepoOperations
from .protocols import SessionBackend
from .reconciler import Reconciler, ReconcilerSettings
from .section_fetcher import Filters, SectionFetcher
from .session_state import SessionStateStore
from .settings import get_socket_path


log = get_logger("board")


def resolve_repo(explicit: Optional[str] = None) -> str:
    """owner/name of the repository to manage.

    Order: explicit argument, gh, the origin remote, a remote-less
    checkout, then the last repo remembered in config. Worktrees and
    sessions come from the cwd, so the tracker must match it. A detected
    repo is remembered.

    Raises:
        OctopaiError: If no repository can be determined
    """
    if explicit:
        return explicit

    repo = github.detect_repo() if gh_available() else None
    repo = repo or git_ops.detect_current_repo()
    if not repo:
        toplevel = git_ops.repo_toplevel()
        if toplevel:
            # A repo without a remote still gets a stable local-store key
            repo = f"local/{git_ops.get_repo_name(toplevel)}"
    if not repo:
        repo = config.get_repo()
        if not repo:
            raise OctopaiError("Not inside a git repository and no repo configured")
        return repo

    if repo != config.get_repo():
        config.set_repo(repo)
    return repo


def resolve_local_mode(forced: Optional[bool] = None) -> bool:
    if forced is not None:
        return forced
    if config.get_local_mode():
        return True
    if not gh_available():
        log.info("gh not found, using local mode")
        return True
    return False


@dataclass
class Board:
    repo: str
    local_mode: bool
    backend: SessionBackend
    states: SessionStateStore
    fetcher: SectionFetcher
    operations: RepoOperations
    reconciler: Reconciler
    messages: MessageLog
    listener: Optional[EventSocketListener] = None

    @property
    def filters(self) -> Filters:
        return self.fetcher.filters

    def close(self) -> None:
        if self.listener is not None:
            self.listener.stop()


def build_board(
    repo: Optional[str] = None,
    local_mode: Optional[bool] = None,
    backend: Optional[SessionBackend] = None,
    listen: bool = True,
) -> Board:
    """Resolve and wire everything the dashboard needs.

    Raises:
        OctopaiError: No repository can be resolved
        BackendNotFoundError: Neither tmux nor screen is installed
        EventSocketError: ``listen`` is set and the socket cannot be bound
    """
    repo = resolve_repo(repo)
    local_mode = resolve_local_mode(local_mode)
    backend = backend or detect_backend(config.get_multiplexer())

    states = SessionStateStore(max_age=config.get_session_state_max_age())
    listener = None
    if listen:
        listener = EventSocketListener(get_socket_path(), states)
        listener.start()

    store = LocalStore(repo)
    messages = MessageLog()
    fetcher = SectionFetcher(repo, backend, states, local_mode=local_mode, local_store=store)
    operations = RepoOperations(repo, backend, local_mode=local_mode, local_store=store)
    reconciler = Reconciler(
        fetcher,
        operations,
        settings=ReconcilerSettings(
            local_mode=local_mode,
            auto_open_pr=config.get_auto_open_pr(repo),
            nudge_max=config.get_nudge_max(),
            nudge_message=config.get_nudge_message(),
        ),
        messages=messages,
    )
    log.info(f"Board ready for {repo} (local_mode={local_mode}, backend={backend.name})")
    return Board(
        repo=repo,
        local_mode=local_mode,
        backend=backend,
        states=states,
        fetcher=fetcher,
        operations=operations,
        reconciler=reconciler,
        messages=messages,
        listener=listener,
    )
