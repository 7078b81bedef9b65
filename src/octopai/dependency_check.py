"""
Dependency checking for the external tools Octopai drives.

git and at least one AI coding agent are required; gh is optional (local
mode works without it); tmux and screen are optional individually but one
of them must exist for sessions to work.
"""

import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass
class Dependency:
    name: str
    description: str
    required: bool
    available: bool
    version: Optional[str] = None


def find_executable(name: str) -> Optional[str]:
    """Find the path to an executable.

    Args:
        name: Name of the executable

    Returns:
        Full path to executable, or None if not found
    """
    return shutil.which(name)


def check_tool(command: str) -> Tuple[bool, Optional[str]]:
    """Check if a tool runs and get the first line of its version output.

    Returns:
        Tuple of (is_available, version)
    """
    if not find_executable(command):
        return False, None

    # tmux and screen use -V instead of --version
    flag = "-V" if command in ("tmux", "screen") else "--version"
    try:
        result = subprocess.run(
            [command, flag],
            capture_output=True,
            text=True,
            timeout=10
        )
    except (subprocess.SubprocessError, OSError):
        return True, None

    output = result.stdout.strip() or result.stderr.strip()
    first_line = output.splitlines()[0] if output else None
    # screen -V exits 1 on some builds but still prints its version
    return True, first_line


def _dep(name: str, command: str, description: str, required: bool) -> Dependency:
    available, version = check_tool(command)
    return Dependency(name, description, required, available, version)


def check_dependencies() -> List[Dependency]:
    """Check every external tool and report availability."""
    deps = [
        _dep("gh", "gh", "GitHub CLI for issue/PR management (optional for local mode)", False),
        _dep("git", "git", "Version control with worktree support", True),
        _dep("tmux", "tmux", "Preferred terminal multiplexer for sessions", False),
        _dep("screen", "screen", "Alternative terminal multiplexer (GNU Screen)", False),
    ]

    claude = _dep("claude", "claude", "Claude Code CLI", False)
    cursor = _dep("cursor", "cursor-agent", "Cursor agent CLI", False)
    deps.append(Dependency(
        name="claude/cursor",
        description="AI coding agent (Claude Code or Cursor)",
        required=True,
        available=claude.available or cursor.available,
        version=claude.version if claude.available else cursor.version,
    ))

    multiplexer_ok = any(d.available for d in deps if d.name in ("tmux", "screen"))
    deps.append(Dependency(
        name="tmux/screen",
        description="At least one terminal multiplexer",
        required=True,
        available=multiplexer_ok,
    ))
    return deps


def has_missing_required(deps: List[Dependency]) -> bool:
    return any(d.required and not d.available for d in deps)


def gh_available() -> bool:
    """Check if the GitHub CLI is installed."""
    return find_executable("gh") is not None


def detect_ai_tools() -> Tuple[bool, bool]:
    """Returns (claude_available, cursor_available)."""
    return find_executable("claude") is not None, find_executable("cursor-agent") is not None
