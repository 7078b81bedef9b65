"""
Per-repository JSON store for issues and pull requests in local mode.

Used when the repo is not on GitHub (or gh is unavailable). Issues are
``open``/``closed``; PRs are ``open``/``merged``. Numbers auto-increment and
are never reused.

Layout: ``~/.octopai/local/<owner>--<name>/store.json``
"""

import json
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .exceptions import LocalStoreError
from .logging_config import get_logger
from .models import AssigneeFilter, Card, StateFilter, related_keys_for_branch, short_description
from .settings import get_local_store_dir
from .status_constants import (
    COLOR_CLOSED,
    COLOR_DRAFT,
    COLOR_LOCAL,
    COLOR_MERGED,
    label_color,
)


log = get_logger("local_store")

ISSUE_OPEN = "open"
ISSUE_CLOSED = "closed"
PR_OPEN = "open"
PR_MERGED = "merged"


@dataclass
class LocalIssue:
    number: int
    title: str
    body: str = ""
    state: str = ISSUE_OPEN
    labels: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"local-issue-{self.number}"


@dataclass
class LocalPr:
    number: int
    title: str
    branch: str
    body: str = ""
    state: str = PR_OPEN
    is_draft: bool = True


@dataclass
class StoreData:
    issues: List[LocalIssue] = field(default_factory=list)
    prs: List[LocalPr] = field(default_factory=list)
    next_issue_number: int = 1
    next_pr_number: int = 1

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "StoreData":
        return cls(
            issues=[LocalIssue(**item) for item in data.get("issues", [])],
            prs=[LocalPr(**item) for item in data.get("prs", [])],
            next_issue_number=data.get("next_issue_number", 1),
            next_pr_number=data.get("next_pr_number", 1),
        )


def repo_slug(repo: str) -> str:
    return repo.replace("/", "--")


def local_issue_card(issue: LocalIssue) -> Card:
    if issue.labels:
        tag, color = issue.labels[0], label_color(issue.labels[0])
    elif issue.state == ISSUE_CLOSED:
        tag, color = "closed", COLOR_CLOSED
    else:
        tag, color = "local", COLOR_LOCAL
    return Card(
        id=issue.key,
        title=f"#{issue.number} {issue.title}",
        description=short_description(issue.body),
        full_description=issue.body or None,
        tag=tag,
        tag_color=color,
    )


def local_pr_card(pr: LocalPr) -> Card:
    if pr.state == PR_MERGED:
        tag, color = "merged", COLOR_MERGED
    elif pr.is_draft:
        tag, color = "draft", COLOR_DRAFT
    else:
        tag, color = "local", COLOR_LOCAL
    return Card(
        id=f"pr-{pr.number}",
        title=f"#{pr.number} {pr.title}",
        description=short_description(pr.body, empty=pr.branch),
        full_description=pr.body or None,
        tag=tag,
        tag_color=color,
        related=related_keys_for_branch(pr.branch),
        pr_number=pr.number,
        is_draft=pr.is_draft,
        is_merged=pr.state == PR_MERGED,
        head_branch=pr.branch,
    )


class LocalStore:
    """Issue/PR records for one repository, persisted as JSON."""

    def __init__(self, repo: str, base_dir: Optional[Path] = None):
        self.repo = repo
        self.path = (base_dir or get_local_store_dir()) / repo_slug(repo) / "store.json"
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> StoreData:
        """Load the store; a missing or unreadable file is an empty store."""
        if not self.path.exists():
            return StoreData()
        try:
            with open(self.path) as f:
                return StoreData.from_dict(json.load(f))
        except (json.JSONDecodeError, TypeError, OSError) as e:
            log.warning(f"Ignoring unreadable local store {self.path}: {e}")
            return StoreData()

    def save(self, data: StoreData) -> None:
        """Write the store atomically (temp file, then rename)."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.path.with_suffix(".json.tmp")
            with open(temp_path, "w") as f:
                json.dump(data.to_dict(), f, indent=2)
            temp_path.replace(self.path)
        except OSError as e:
            raise LocalStoreError(f"Failed to write local store: {e}") from e

    def _find_issue(self, data: StoreData, number: int) -> LocalIssue:
        for issue in data.issues:
            if issue.number == number:
                return issue
        raise LocalStoreError(f"Local issue #{number} not found")

    def _find_pr(self, data: StoreData, number: int) -> LocalPr:
        for pr in data.prs:
            if pr.number == number:
                return pr
        raise LocalStoreError(f"Local PR #{number} not found")

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    def fetch_issues(self, state: StateFilter = StateFilter.OPEN,
                     assignee: AssigneeFilter = AssigneeFilter.ALL) -> List[Card]:
        # Local issues have no assignees; every filter value sees all of them
        cards = [
            local_issue_card(issue)
            for issue in self.load().issues
            if issue.state == state.label
        ]
        cards.reverse()
        return cards

    def create_issue(self, title: str, body: str = "") -> int:
        with self._lock:
            data = self.load()
            number = data.next_issue_number
            data.next_issue_number += 1
            data.issues.append(LocalIssue(number=number, title=title, body=body))
            self.save(data)
        log.info(f"Created local issue #{number} in {self.repo}")
        return number

    def fetch_issue(self, number: int) -> Tuple[str, str]:
        """(title, body) of one issue."""
        issue = self._find_issue(self.load(), number)
        return issue.title, issue.body

    def edit_issue(self, number: int, title: str, body: str) -> None:
        with self._lock:
            data = self.load()
            issue = self._find_issue(data, number)
            issue.title = title
            issue.body = body
            self.save(data)

    def close_issue(self, number: int) -> None:
        with self._lock:
            data = self.load()
            self._find_issue(data, number).state = ISSUE_CLOSED
            self.save(data)

    # -------------------------------------------------------------------------
    # Pull requests
    # -------------------------------------------------------------------------

    def fetch_prs(self, state: StateFilter = StateFilter.OPEN,
                  assignee: AssigneeFilter = AssigneeFilter.ALL) -> List[Card]:
        wanted = PR_OPEN if state is StateFilter.OPEN else PR_MERGED
        cards = [local_pr_card(pr) for pr in self.load().prs if pr.state == wanted]
        cards.reverse()
        return cards

    def create_pr(self, title: str, branch: str, body: str = "", is_draft: bool = True) -> int:
        with self._lock:
            data = self.load()
            number = data.next_pr_number
            data.next_pr_number += 1
            data.prs.append(LocalPr(
                number=number,
                title=title,
                branch=branch,
                body=body,
                is_draft=is_draft,
            ))
            self.save(data)
        log.info(f"Created local PR #{number} for {branch} (draft={is_draft})")
        return number

    def mark_pr_ready(self, number: int) -> None:
        with self._lock:
            data = self.load()
            self._find_pr(data, number).is_draft = False
            self.save(data)

    def merge_pr(self, number: int) -> str:
        """Mark a PR merged and return its branch."""
        with self._lock:
            data = self.load()
            pr = self._find_pr(data, number)
            if pr.state == PR_MERGED:
                raise LocalStoreError("PR is already merged")
            pr.state = PR_MERGED
            self.save(data)
            return pr.branch

    def merged_branches(self) -> List[str]:
        return [pr.branch for pr in self.load().prs if pr.state == PR_MERGED]

    def has_open_pr_for_branch(self, branch: str) -> bool:
        return any(
            pr.branch == branch and pr.state == PR_OPEN
            for pr in self.load().prs
        )

    def open_pr_branches(self) -> List[str]:
        return [pr.branch for pr in self.load().prs if pr.state == PR_OPEN]
