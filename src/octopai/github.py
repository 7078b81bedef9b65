"""
GitHub access through the gh CLI.

Fetchers return cards (oldest first) and never raise: a missing gh, an
auth problem or unparseable output all produce an empty list. Mutations
raise CommandError carrying gh's stderr.
"""

import json
import subprocess
from typing import List, Optional, Tuple

from .exceptions import CommandError
from .logging_config import get_logger
from .models import AssigneeFilter, Card, StateFilter, related_keys_for_branch, short_description
from .status_constants import (
    COLOR_CLOSED,
    COLOR_DRAFT,
    COLOR_MERGED,
    COLOR_OPEN,
    COLOR_READY,
    label_color,
)


log = get_logger("github")

GH_TIMEOUT = 30
LIST_LIMIT = "30"
OPEN_BRANCH_LIMIT = "200"
REPO_LIST_LIMIT = "50"

ISSUE_FIELDS = "number,title,body,labels,state"
PR_FIELDS = "number,title,body,isDraft,url,headRefName,state,mergedAt"


def _gh(args: List[str]) -> Optional[subprocess.CompletedProcess]:
    try:
        return subprocess.run(
            ["gh"] + args,
            capture_output=True,
            text=True,
            timeout=GH_TIMEOUT,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        log.debug(f"gh {' '.join(args[:2])} failed to run: {e}")
        return None


def _gh_json(args: List[str]) -> list:
    """Run a gh list command and decode its JSON array ([] on any failure)."""
    result = _gh(args)
    if result is None or result.returncode != 0:
        return []
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError:
        return []
    return data if isinstance(data, list) else []


def _gh_checked(args: List[str], action: str) -> str:
    result = _gh(args)
    if result is None:
        raise CommandError(f"Failed to run gh for {action}")
    if result.returncode != 0:
        stderr = result.stderr.strip()
        raise CommandError(f"gh error: {stderr}", stderr=stderr)
    return result.stdout


def _list_args(kind: str, repo: str, state: StateFilter, assignee: AssigneeFilter, fields: str) -> List[str]:
    args = [
        kind, "list",
        "--repo", repo,
        "--state", state.label,
        "--json", fields,
        "--limit", LIST_LIMIT,
    ]
    if assignee is AssigneeFilter.MINE:
        args += ["--assignee", "@me"]
    return args


# =============================================================================
# Parsing
# =============================================================================

def issue_card(issue: dict, assigned: Optional[bool] = None) -> Card:
    number = issue.get("number") or 0
    title = issue.get("title") or ""
    body = issue.get("body") or ""
    labels = [
        label.get("name")
        for label in issue.get("labels") or []
        if isinstance(label, dict) and label.get("name")
    ]
    state = (issue.get("state") or "OPEN").upper()

    if labels:
        tag, color = labels[0], label_color(labels[0])
    elif state == "CLOSED":
        tag, color = "closed", COLOR_CLOSED
    else:
        tag, color = "open", COLOR_OPEN

    return Card(
        id=f"issue-{number}",
        title=f"#{number} {title}",
        description=short_description(body),
        full_description=body or None,
        tag=tag,
        tag_color=color,
        is_assigned=assigned,
    )


def pr_card(pr: dict, assigned: Optional[bool] = None) -> Card:
    number = pr.get("number") or 0
    title = pr.get("title") or ""
    body = pr.get("body") or ""
    branch = pr.get("headRefName") or ""
    is_draft = bool(pr.get("isDraft"))
    is_merged = bool(pr.get("mergedAt"))

    if is_merged:
        tag, color = "merged", COLOR_MERGED
    elif is_draft:
        tag, color = "draft", COLOR_DRAFT
    else:
        tag, color = "ready", COLOR_READY

    return Card(
        id=f"pr-{number}",
        title=f"#{number} {title}",
        description=short_description(body, empty=branch),
        full_description=body or None,
        tag=tag,
        tag_color=color,
        related=related_keys_for_branch(branch),
        url=pr.get("url") or None,
        pr_number=number,
        is_draft=is_draft,
        is_merged=is_merged,
        head_branch=branch,
        is_assigned=assigned,
    )


def parse_issues(data: list, assigned: Optional[bool] = None) -> List[Card]:
    cards = [issue_card(item, assigned) for item in data if isinstance(item, dict)]
    # gh lists newest first
    cards.reverse()
    return cards


def parse_prs(data: list, assigned: Optional[bool] = None) -> List[Card]:
    cards = [pr_card(item, assigned) for item in data if isinstance(item, dict)]
    cards.reverse()
    return cards


def parse_issue_number(url: str) -> int:
    """`gh issue create` prints the new issue's URL; the number is its last segment."""
    try:
        return int(url.strip().rstrip("/").rsplit("/", 1)[-1])
    except ValueError:
        raise CommandError(f"Could not parse issue number from: {url.strip()}") from None


# =============================================================================
# Fetchers
# =============================================================================

def _assigned_flag(assignee: AssigneeFilter) -> Optional[bool]:
    return True if assignee is AssigneeFilter.MINE else None


def fetch_issues(repo: str, state: StateFilter = StateFilter.OPEN,
                 assignee: AssigneeFilter = AssigneeFilter.ALL) -> List[Card]:
    data = _gh_json(_list_args("issue", repo, state, assignee, ISSUE_FIELDS))
    return parse_issues(data, _assigned_flag(assignee))


def fetch_prs(repo: str, state: StateFilter = StateFilter.OPEN,
              assignee: AssigneeFilter = AssigneeFilter.ALL) -> List[Card]:
    data = _gh_json(_list_args("pr", repo, state, assignee, PR_FIELDS))
    return parse_prs(data, _assigned_flag(assignee))


def _pr_branches(repo: str, state: str, limit: str = LIST_LIMIT) -> List[str]:
    data = _gh_json([
        "pr", "list",
        "--repo", repo,
        "--state", state,
        "--json", "headRefName",
        "--limit", limit,
    ])
    return [
        item["headRefName"]
        for item in data
        if isinstance(item, dict) and isinstance(item.get("headRefName"), str)
    ]


def fetch_merged_pr_branches(repo: str) -> List[str]:
    """Head branches of recently merged PRs."""
    return _pr_branches(repo, "merged")


def fetch_open_pr_branches(repo: str) -> List[str]:
    """Head branches of every open PR, whoever it is assigned to."""
    return _pr_branches(repo, "open", limit=OPEN_BRANCH_LIMIT)


def detect_repo() -> Optional[str]:
    """owner/name of the repository gh resolves for the cwd."""
    result = _gh(["repo", "view", "--json", "nameWithOwner", "-q", ".nameWithOwner"])
    if result is None or result.returncode != 0:
        return None
    return result.stdout.strip() or None


def fetch_repos(owner: str) -> List[str]:
    """owner/name of each repository an org or user owns.

    Unlike the board fetchers this raises, since the caller is picking a
    repo and needs to know why the list is empty.
    """
    output = _gh_checked([
        "repo", "list", owner,
        "--json", "nameWithOwner",
        "--limit", REPO_LIST_LIMIT,
        "-q", ".[].nameWithOwner",
    ], "repo list")
    repos = [line.strip() for line in output.splitlines() if line.strip()]
    if not repos:
        raise CommandError(f"No repos found for '{owner}'")
    return repos


# =============================================================================
# Mutations
# =============================================================================

def fetch_issue(repo: str, number: int) -> Tuple[str, str]:
    """(title, body) of one issue."""
    output = _gh_checked([
        "issue", "view", str(number),
        "--repo", repo,
        "--json", "title,body",
    ], "issue view")
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise CommandError(f"Unexpected gh output for issue #{number}") from e
    return data.get("title") or "", data.get("body") or ""


def create_issue(repo: str, title: str, body: str) -> int:
    output = _gh_checked([
        "issue", "create",
        "--repo", repo,
        "--title", title,
        "--body", body,
        "--assignee", "@me",
    ], "issue create")
    return parse_issue_number(output)


def edit_issue(repo: str, number: int, title: str, body: str) -> None:
    _gh_checked([
        "issue", "edit", str(number),
        "--repo", repo,
        "--title", title,
        "--body", body,
    ], "issue edit")


def close_issue(repo: str, number: int) -> None:
    _gh_checked(["issue", "close", "--repo", repo, str(number)], "issue close")


def assign_issue_to_me(repo: str, number: int) -> None:
    _gh_checked([
        "issue", "edit",
        "--repo", repo,
        str(number),
        "--add-assignee", "@me",
    ], "issue edit")


def merge_pr(repo: str, number: int) -> None:
    _gh_checked([
        "pr", "merge", str(number),
        "--merge",
        "--delete-branch",
        "--repo", repo,
    ], "pr merge")


def mark_pr_ready(repo: str, number: int) -> None:
    _gh_checked(["pr", "ready", "--repo", repo, str(number)], "pr ready")
