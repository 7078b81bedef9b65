"""Agent hook integration.

Each worktree gets hook settings that run ``octopai hook-event <status>``.
That command works out the session name from the worktree directory and
pushes ``{"session", "status"}`` to the dashboard's event socket.

Hook registrations:
    UserPromptSubmit          -> processing
    PreToolUse                -> working (async)
    PermissionRequest         -> permission
    Stop                      -> waiting
    Notification(idle_prompt) -> waiting (async)

The hook must never disturb the agent: it drains stdin, exits 0 and stays
silent whether or not the dashboard is running.
"""

import json
import re
import socket
import sys
from pathlib import Path
from typing import IO, Optional

from .claude_config import ClaudeConfigEditor
from .logging_config import get_logger
from .settings import HOOK_COMMAND, get_socket_path
from .status_constants import (
    STATE_PERMISSION,
    STATE_PROCESSING,
    STATE_WAITING,
    STATE_WORKING,
)


log = get_logger("hooks")

# (event, status, matcher, async)
OCTOPAI_HOOKS: list[tuple[str, str, Optional[str], bool]] = [
    ("UserPromptSubmit", STATE_PROCESSING, None, False),
    ("PreToolUse", STATE_WORKING, None, True),
    ("PermissionRequest", STATE_PERMISSION, None, False),
    ("Stop", STATE_WAITING, None, False),
    ("Notification", STATE_WAITING, "idle_prompt", True),
]

SEND_TIMEOUT = 1.0

_SESSION_NAME_PATTERN = re.compile(r"(?:local-)?issue-\d+")


def hook_command(status: str) -> str:
    return f"{HOOK_COMMAND} {status}"


def build_hook_settings() -> dict:
    """The ``hooks`` block for a worktree's settings.local.json."""
    hooks: dict = {}
    for event, status, matcher, is_async in OCTOPAI_HOOKS:
        command: dict = {"type": "command", "command": hook_command(status)}
        if is_async:
            command["async"] = True
        entry: dict = {"hooks": [command]}
        if matcher:
            entry["matcher"] = matcher
        hooks.setdefault(event, []).append(entry)
    return hooks


def write_worktree_hook_config(worktree_path: str) -> Path:
    """Install the status hooks into a worktree. Returns the settings path."""
    editor = ClaudeConfigEditor.worktree_level(worktree_path)
    editor.set_hooks(build_hook_settings())
    return editor.path


def session_name_from_cwd(cwd: str) -> Optional[str]:
    """Session name encoded in a worktree directory name.

    ``../repo-issue-12`` -> ``issue-12``; ``../repo-local-issue-3`` ->
    ``local-issue-3``. None outside an issue worktree.
    """
    match = _SESSION_NAME_PATTERN.search(Path(cwd).name)
    return match.group(0) if match else None


def send_event(session: str, status: str, socket_path: Optional[Path] = None) -> bool:
    """Push one event to the dashboard. Returns False if nobody is listening."""
    socket_path = socket_path or get_socket_path()
    if not socket_path.exists():
        return False
    payload = json.dumps({"session": session, "status": status}).encode("utf-8")
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(SEND_TIMEOUT)
            sock.connect(str(socket_path))
            sock.sendall(payload)
            sock.shutdown(socket.SHUT_WR)
    except OSError as e:
        log.debug(f"Could not send event to {socket_path}: {e}")
        return False
    return True


def handle_hook_event(
    status: str,
    cwd: Optional[str] = None,
    stdin: Optional[IO[str]] = None,
    socket_path: Optional[Path] = None,
) -> None:
    """Entry point for ``octopai hook-event STATUS``.

    The hook's JSON payload on stdin is read and ignored; the agent blocks
    if nobody drains it.
    """
    stream = stdin if stdin is not None else sys.stdin
    try:
        stream.read()
    except (OSError, ValueError):
        pass

    session = session_name_from_cwd(cwd or str(Path.cwd()))
    if not session or not status:
        return
    send_event(session, status, socket_path)
