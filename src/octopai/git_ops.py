"""
git plumbing: worktree listing and removal, main-branch drift, branch
inspection and repository detection.

Read operations are best-effort and return empty/zero results when git
fails. Mutations raise CommandError with git's stderr so the action layer
can show it.
"""

import re
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from .exceptions import CommandError
from .logging_config import get_logger
from .models import Card, related_keys_for_branch
from .settings import MAIN_BRANCHES
from .status_constants import COLOR_BRANCH

if TYPE_CHECKING:
    from .protocols import SessionBackend


log = get_logger("git")

GIT_TIMEOUT = 30


@dataclass(frozen=True)
class Worktree:
    path: str
    branch: str = ""
    bare: bool = False

    @property
    def name(self) -> str:
        """Branch name, or the directory name for a detached worktree."""
        return self.branch or self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def is_main(self) -> bool:
        return self.name in MAIN_BRANCHES


def _git(args: List[str], cwd: Optional[str] = None, timeout: int = GIT_TIMEOUT) -> Optional[subprocess.CompletedProcess]:
    """Run git, returning None if it could not run at all."""
    try:
        return subprocess.run(
            ["git"] + args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        log.debug(f"git {' '.join(args)} failed to run: {e}")
        return None


def _git_output(args: List[str], cwd: Optional[str] = None) -> Optional[str]:
    """stdout of a successful git call, else None."""
    result = _git(args, cwd=cwd)
    if result is None or result.returncode != 0:
        return None
    return result.stdout


def _git_checked(args: List[str], action: str, cwd: Optional[str] = None) -> str:
    result = _git(args, cwd=cwd)
    if result is None:
        raise CommandError(f"Failed to run git for {action}")
    if result.returncode != 0:
        stderr = result.stderr.strip()
        raise CommandError(f"git {action} error: {stderr}", stderr=stderr)
    return result.stdout


# =============================================================================
# Worktrees
# =============================================================================

def parse_worktree_porcelain(output: str) -> List[Worktree]:
    """Parse `git worktree list --porcelain` into Worktree records.

    Blocks are separated by blank lines; a block without a ``worktree``
    line is skipped.
    """
    worktrees = []
    for block in output.split("\n\n"):
        path = ""
        branch = ""
        bare = False
        for line in block.splitlines():
            if line.startswith("worktree "):
                path = line[len("worktree "):]
            elif line.startswith("branch refs/heads/"):
                branch = line[len("branch refs/heads/"):]
            elif line == "bare":
                bare = True
        if path:
            worktrees.append(Worktree(path=path, branch=branch, bare=bare))
    return worktrees


def worktree_card(worktree: Worktree) -> Card:
    name = worktree.name
    return Card(
        id=f"wt-{name}",
        title=name,
        description=worktree.path,
        tag="branch",
        tag_color=COLOR_BRANCH,
        related=related_keys_for_branch(name),
        head_branch=worktree.branch or None,
    )


def list_worktrees() -> List[Worktree]:
    output = _git_output(["worktree", "list", "--porcelain"])
    if output is None:
        return []
    return parse_worktree_porcelain(output)


def fetch_worktrees() -> List[Card]:
    """Cards for every linked worktree (bare and main/master excluded)."""
    return [
        worktree_card(wt)
        for wt in list_worktrees()
        if not wt.bare and not wt.is_main
    ]


def main_worktree_path() -> Optional[str]:
    """Path of the primary worktree (always listed first by git)."""
    worktrees = list_worktrees()
    return worktrees[0].path if worktrees else None


def create_worktree(path: str, branch: str) -> None:
    """Create a worktree at ``path`` on a new branch."""
    _git_checked(["worktree", "add", path, "-b", branch], "worktree add")


def remove_worktree(path: str, branch: str, backend: "SessionBackend") -> None:
    """Remove a worktree and its branch, killing the branch's session first.

    Raises:
        CommandError: If git refuses to remove the worktree
    """
    backend.kill_session(branch)
    _git_checked(["worktree", "remove", "--force", path], "worktree remove")
    # The branch may already be gone (deleted with the merged PR)
    _git(["branch", "-D", branch])
    log.info(f"Removed worktree {path} ({branch})")


# =============================================================================
# Main branch
# =============================================================================

def detect_main_branch() -> str:
    for candidate in MAIN_BRANCHES:
        result = _git(["rev-parse", "--verify", "--quiet", f"refs/heads/{candidate}"])
        if result is not None and result.returncode == 0:
            return candidate
    return MAIN_BRANCHES[0]


def fetch_main_behind_count(main_branch: Optional[str] = None) -> int:
    """Commits on origin's main branch that the local one lacks.

    Runs a fetch first; 0 when there is no remote or anything fails.
    """
    main_branch = main_branch or detect_main_branch()
    fetched = _git(["fetch", "--quiet", "origin", main_branch], timeout=60)
    if fetched is None or fetched.returncode != 0:
        return 0
    output = _git_output(["rev-list", "--count", f"{main_branch}..origin/{main_branch}"])
    if output is None:
        return 0
    try:
        return int(output.strip())
    except ValueError:
        return 0


def pull_main() -> str:
    """Fast-forward the primary worktree from origin. Returns git's summary line."""
    path = main_worktree_path()
    if path is None:
        raise CommandError("Not inside a git repository")
    output = _git_checked(["pull", "--ff-only"], "pull", cwd=path)
    lines = [line for line in output.strip().splitlines() if line.strip()]
    return lines[-1] if lines else "Already up to date."


def merge_branch(branch: str) -> None:
    """Merge ``branch`` into the checked-out branch of the primary worktree."""
    path = main_worktree_path()
    if path is None:
        raise CommandError("Not inside a git repository")
    _git_checked(["merge", "--no-ff", "--no-edit", branch], "merge", cwd=path)


# =============================================================================
# Branch inspection
# =============================================================================

def commits_ahead(branch: str, main_branch: Optional[str] = None) -> int:
    """Number of commits on ``branch`` not on the main branch (0 on error)."""
    main_branch = main_branch or detect_main_branch()
    output = _git_output(["rev-list", "--count", f"{main_branch}..{branch}"])
    if output is None:
        return 0
    try:
        return int(output.strip())
    except ValueError:
        return 0


def first_commit_subject(branch: str, main_branch: Optional[str] = None) -> Optional[str]:
    """Subject of the oldest commit on ``branch`` since it left main."""
    main_branch = main_branch or detect_main_branch()
    output = _git_output(["log", "--reverse", "--format=%s", f"{main_branch}..{branch}"])
    if not output:
        return None
    for line in output.splitlines():
        if line.strip():
            return line.strip()
    return None


# =============================================================================
# Repository identity
# =============================================================================

def get_repo_name(repo: str) -> str:
    """Repository name without its owner (owner/name -> name)."""
    return repo.rsplit("/", 1)[-1]


# git@github.com:owner/name.git, https://github.com/owner/name(.git)
_REMOTE_PATTERN = re.compile(r"[:/]([^/:]+)/([^/]+?)(?:\.git)?/?$")


def parse_remote_url(url: str) -> Optional[str]:
    match = _REMOTE_PATTERN.search(url.strip())
    if not match:
        return None
    return f"{match.group(1)}/{match.group(2)}"


def detect_current_repo() -> Optional[str]:
    """owner/name of the origin remote, if any."""
    output = _git_output(["remote", "get-url", "origin"])
    if not output:
        return None
    return parse_remote_url(output)


def repo_toplevel() -> Optional[str]:
    output = _git_output(["rev-parse", "--show-toplevel"])
    return output.strip() if output else None
