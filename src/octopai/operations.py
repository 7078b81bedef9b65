"""
Mutating operations on the repository, its tracker and its sessions.

Shared by the reconciler (automatic side effects) and by the dashboard and
CLI (user actions). Failures raise OctopaiError subclasses; callers turn
them into status messages.
"""

import os
import re
import shlex
import subprocess
from typing import TYPE_CHECKING, Optional, Tuple

from . import git_ops, github
from .config import get_editor_command, get_pr_ready, get_session_command, get_verify_command
from .exceptions import CommandError
from .local_store import LocalStore
from .logging_config import get_logger
from .models import Card
from .sessions import create_worktree_and_session
from .settings import get_log_dir

if TYPE_CHECKING:
    from .protocols import SessionBackend


log = get_logger("operations")

_ISSUE_ID_PATTERN = re.compile(r"^(local-)?issue-(\d+)$")


def issue_number(card_id: str) -> Optional[int]:
    """``issue-12`` / ``local-issue-12`` -> 12."""
    match = _ISSUE_ID_PATTERN.match(card_id)
    return int(match.group(2)) if match else None


def expand_worktree_command(template: str, path: str, append_path: bool = False) -> str:
    """Substitute the shell-quoted worktree path for ``{path}``.

    Without a placeholder the path is appended when ``append_path`` is set
    (``code`` becomes ``code /path``); otherwise the template is unchanged
    and relies on running inside the worktree.
    """
    quoted = shlex.quote(path)
    if "{path}" in template:
        return template.replace("{path}", quoted)
    if append_path:
        return f"{template} {quoted}"
    return template


class RepoOperations:

    def __init__(
        self,
        repo: str,
        backend: "SessionBackend",
        local_mode: bool = False,
        local_store: Optional[LocalStore] = None,
    ):
        self.repo = repo
        self.backend = backend
        self.local_mode = local_mode
        self.local_store = local_store or LocalStore(repo)
        self._main_branch: Optional[str] = None

    @property
    def main_branch(self) -> str:
        if self._main_branch is None:
            self._main_branch = git_ops.detect_main_branch()
        return self._main_branch

    # -------------------------------------------------------------------------
    # Sessions and worktrees
    # -------------------------------------------------------------------------

    def send_message(self, session: str, text: str) -> None:
        self.backend.send_keys(session, text)

    def kill_session(self, session: str) -> None:
        self.backend.kill_session(session)

    def attach(self, session: str) -> None:
        self.backend.attach(session)

    def worktree_path(self, branch: str) -> Optional[str]:
        for worktree in git_ops.list_worktrees():
            if worktree.name == branch and not worktree.is_main:
                return worktree.path
        return None

    def remove_worktree(self, path: str, branch: str) -> None:
        git_ops.remove_worktree(path, branch, self.backend)

    def run_in_worktree(
        self,
        template: str,
        path: str,
        append_path: bool = False,
        log_name: Optional[str] = None,
        wait: bool = False,
    ) -> int:
        """Run a configured shell command inside a worktree.

        Detached by default, with output going to ``<log dir>/<log_name>.log``
        (or nowhere); returns the child's pid. With ``wait`` the command runs
        in the foreground on this terminal and its exit code is returned.

        Raises:
            CommandError: The worktree is missing or the shell cannot start
        """
        if not os.path.isdir(path):
            raise CommandError(f"Worktree not found: {path}")
        command = expand_worktree_command(template, path, append_path)
        log.info(f"Running in {path}: {command}")
        try:
            if wait:
                return subprocess.run(["sh", "-c", command], cwd=path).returncode
            if log_name is None:
                process = subprocess.Popen(
                    ["sh", "-c", command], cwd=path,
                    stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                    start_new_session=True,
                )
            else:
                log_dir = get_log_dir()
                log_dir.mkdir(parents=True, exist_ok=True)
                with open(log_dir / f"{log_name}.log", "w") as output:
                    process = subprocess.Popen(
                        ["sh", "-c", command], cwd=path,
                        stdout=output, stderr=subprocess.STDOUT,
                        start_new_session=True,
                    )
        except OSError as e:
            raise CommandError(f"Failed to run '{command}': {e}") from e
        return process.pid

    def verify_worktree(self, branch: str, path: str, wait: bool = False) -> int:
        """Run the repository's verify command in a worktree.

        Raises:
            CommandError: No verify command is configured, or it cannot start
        """
        template = get_verify_command(self.repo)
        if template is None:
            raise CommandError(f"No verify command configured for {self.repo}")
        return self.run_in_worktree(template, path, log_name=f"verify-{branch.replace('/', '-')}", wait=wait)

    def open_in_editor(self, path: str) -> int:
        """Launch the repository's editor command on a worktree.

        Raises:
            CommandError: No editor command is configured, or it cannot start
        """
        template = get_editor_command(self.repo)
        if template is None:
            raise CommandError(f"No editor command configured for {self.repo}")
        return self.run_in_worktree(template, path, append_path=True)

    def start_issue(self, issue_id: str) -> str:
        """Create a worktree and agent session for an issue (by card id)."""
        number = issue_number(issue_id)
        if number is None:
            raise CommandError(f"'{issue_id}' is not an issue")
        title, body = self.issue_details(issue_id)
        return create_worktree_and_session(
            self.repo,
            number,
            title,
            body,
            self.backend,
            local=self.local_mode,
            session_command=get_session_command(self.repo),
        )

    # -------------------------------------------------------------------------
    # Branch inspection
    # -------------------------------------------------------------------------

    def commits_ahead(self, branch: str) -> int:
        return git_ops.commits_ahead(branch, self.main_branch)

    def first_commit_subject(self, branch: str) -> Optional[str]:
        return git_ops.first_commit_subject(branch, self.main_branch)

    def pull_main(self) -> str:
        return git_ops.pull_main()

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    def issue_id(self, number: int) -> str:
        return f"local-issue-{number}" if self.local_mode else f"issue-{number}"

    def create_issue(self, title: str, body: str = "") -> int:
        if self.local_mode:
            return self.local_store.create_issue(title, body)
        return github.create_issue(self.repo, title, body)

    def issue_details(self, issue_id: str) -> Tuple[str, str]:
        """(title, body) of an issue, by card id."""
        number = issue_number(issue_id)
        if number is None:
            raise CommandError(f"'{issue_id}' is not an issue")
        if issue_id.startswith("local-"):
            return self.local_store.fetch_issue(number)
        return github.fetch_issue(self.repo, number)

    def edit_issue(self, issue_id: str, title: str, body: str) -> None:
        number = issue_number(issue_id)
        if number is None:
            raise CommandError(f"'{issue_id}' is not an issue")
        if issue_id.startswith("local-"):
            self.local_store.edit_issue(number, title, body)
        else:
            github.edit_issue(self.repo, number, title, body)

    def close_issue(self, issue_id: str) -> None:
        number = issue_number(issue_id)
        if number is None:
            raise CommandError(f"'{issue_id}' is not an issue")
        if issue_id.startswith("local-"):
            self.local_store.close_issue(number)
        else:
            github.close_issue(self.repo, number)

    # -------------------------------------------------------------------------
    # Pull requests
    # -------------------------------------------------------------------------

    def has_open_local_pr(self, branch: str) -> bool:
        return self.local_store.has_open_pr_for_branch(branch)

    def create_local_pr(self, branch: str, title: str) -> int:
        """Open a local PR; drafts unless the repo is configured pr_ready."""
        return self.local_store.create_pr(
            title=title,
            branch=branch,
            is_draft=not get_pr_ready(self.repo),
        )

    def mark_pr_ready(self, card: Card) -> None:
        if card.pr_number is None:
            raise CommandError(f"'{card.title}' is not a pull request")
        if self.local_mode:
            self.local_store.mark_pr_ready(card.pr_number)
        else:
            github.mark_pr_ready(self.repo, card.pr_number)

    def merge_pr(self, card: Card) -> Optional[str]:
        """Merge a PR and return its head branch."""
        if card.pr_number is None:
            raise CommandError(f"'{card.title}' is not a pull request")
        if card.is_merged:
            raise CommandError("PR is already merged")
        if self.local_mode:
            if card.head_branch:
                git_ops.merge_branch(card.head_branch)
            return self.local_store.merge_pr(card.pr_number)
        github.merge_pr(self.repo, card.pr_number)
        log.info(f"Merged PR #{card.pr_number} ({card.head_branch})")
        return card.head_branch
