"""
Agent sessions: listing them as cards and starting new ones.

A session is named after its branch (``issue-N`` or ``local-issue-N``) and
runs in that branch's worktree. Only sessions following that naming are
shown; anything else on the multiplexer belongs to the user.
"""

import shlex
import time
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from . import git_ops, github
from .claude_config import trust_directory
from .dependency_check import detect_ai_tools
from .exceptions import CommandError
from .hook_handler import write_worktree_hook_config
from .logging_config import get_logger
from .models import Card, is_issue_key
from .session_classifier import classify_session
from .settings import get_prompt_dir
from .status_constants import get_session_display

if TYPE_CHECKING:
    from .protocols import SessionBackend
    from .session_state import SessionStateStore


log = get_logger("sessions")

CLAUDE_COMMAND = "claude \"$(cat {prompt_file})\" --allowedTools Read,Edit,Bash"
CURSOR_COMMAND = "cursor-agent \"$(cat {prompt_file})\""

# Give the new shell time to print its prompt before typing into it
SHELL_STARTUP_DELAY = 0.5


def session_card(name: str, state: str) -> Card:
    tag, color, description = get_session_display(state)
    return Card(
        id=f"session-{name}",
        title=name,
        description=description,
        tag=tag,
        tag_color=color,
        related=(name,),
        head_branch=name,
    )


def fetch_sessions(backend: "SessionBackend", states: "SessionStateStore") -> List[Card]:
    """Cards for every issue session, classified."""
    cards = []
    for name in backend.list_sessions():
        if not is_issue_key(name):
            continue
        cards.append(session_card(name, classify_session(name, states, backend)))
    return cards


def branch_for_issue(number: int, local: bool) -> str:
    return f"local-issue-{number}" if local else f"issue-{number}"


def worktree_path_for(repo: str, branch: str) -> str:
    """Sibling directory of the primary worktree: ``<parent>/<name>-<branch>``."""
    main_path = git_ops.main_worktree_path()
    parent = Path(main_path).parent if main_path else Path("..")
    return str(parent / f"{git_ops.get_repo_name(repo)}-{branch}")


def clean_body(body: str) -> str:
    """Collapse an issue body onto one line for the agent prompt."""
    lines = [line.strip() for line in body.splitlines()]
    joined = " ".join(line for line in lines if line)
    return joined or "No description provided."


def build_agent_prompt(repo: str, number: int, title: str, body: str, local: bool = False) -> str:
    if local:
        return (
            f"You are working on local issue #{number} for the repo {repo}. "
            f"Title: {title}. {clean_body(body)} "
            "Please investigate the codebase and implement a solution for this issue. "
            "When you are confident the problem is solved, commit your changes on the "
            "current branch with a clear commit message that explains what was changed and why."
        )
    return (
        f"You are working on GitHub issue #{number} for the repo {repo}. "
        f"Title: {title}. {clean_body(body)} "
        "Please investigate the codebase and implement a solution for this issue. "
        "When you are confident the problem is solved, commit your changes and open a "
        "draft pull request with a clear title and description that explains what was "
        f"changed and why. Reference the issue with 'Closes #{number}' in the PR body. "
        "Use '--assignee @me' when creating the pull request to auto-assign it."
    )


def write_prompt_file(branch: str, prompt: str, prompt_dir: Optional[Path] = None) -> Path:
    prompt_dir = prompt_dir or get_prompt_dir()
    prompt_dir.mkdir(parents=True, exist_ok=True)
    path = prompt_dir / f"prompt-{branch}.txt"
    path.write_text(prompt)
    return path


def default_session_command() -> str:
    claude_ok, cursor_ok = detect_ai_tools()
    if not claude_ok and cursor_ok:
        return CURSOR_COMMAND
    return CLAUDE_COMMAND


def expand_session_command(template: str, prompt_file: Path) -> str:
    """Fill ``{prompt_file}`` (shell-quoted) into a session command template."""
    return template.replace("{prompt_file}", shlex.quote(str(prompt_file)))


def create_worktree_and_session(
    repo: str,
    number: int,
    title: str,
    body: str,
    backend: "SessionBackend",
    local: bool = False,
    session_command: Optional[str] = None,
) -> str:
    """Start work on an issue: worktree, hooks, session, agent.

    Returns:
        The new branch (and session) name

    Raises:
        CommandError: If the worktree cannot be created
        SessionBackendError: If the session cannot be created
    """
    branch = branch_for_issue(number, local)
    path = worktree_path_for(repo, branch)

    git_ops.create_worktree(path, branch)

    try:
        trust_directory(path)
    except (ValueError, OSError) as e:
        log.warning(f"Could not pre-trust {path}: {e}")

    try:
        write_worktree_hook_config(path)
    except OSError as e:
        log.warning(f"Could not write hook settings in {path}: {e}")

    if not local:
        try:
            github.assign_issue_to_me(repo, number)
        except CommandError as e:
            log.warning(f"Could not assign issue #{number}: {e}")

    backend.create_session(branch, path)

    prompt_file = write_prompt_file(branch, build_agent_prompt(repo, number, title, body, local))
    command = expand_session_command(session_command or default_session_command(), prompt_file)

    time.sleep(SHELL_STARTUP_DELAY)
    backend.send_keys(branch, command)
    log.info(f"Started session {branch} in {path}")
    return branch
