"""
User configuration for Octopai.

Config lives in a single YAML file (~/.octopai/config.yaml). Global keys
sit at the top level; per-repository settings live under ``repos``:

    repo: owner/name
    local_mode: false
    multiplexer: tmux
    refresh_interval: 30
    nudge_max: 1
    session_state_max_age: 600
    repos:
      owner/name:
        pr_ready: false
        auto_open_pr: true
        session_command: claude "$(cat {prompt_file})"
        verify_command: make test
        editor_command: code {path}

A missing or malformed file behaves like an empty one.
"""

from typing import Any, Dict, Optional

import yaml

from .settings import (
    DEFAULT_NUDGE_MAX,
    DEFAULT_NUDGE_MESSAGE,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_SESSION_STATE_MAX_AGE,
    get_state_dir,
)


CONFIG_PATH = get_state_dir() / "config.yaml"


def load_config() -> Dict[str, Any]:
    """Load the config file, returning {} when absent or invalid."""
    if not CONFIG_PATH.exists():
        return {}
    try:
        with open(CONFIG_PATH) as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, IOError):
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def save_config(config: Dict[str, Any]) -> None:
    """Write the whole config dict back to disk."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_PATH, "w") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)


def _repo_config(repo: str) -> Dict[str, Any]:
    repos = load_config().get("repos")
    if not isinstance(repos, dict):
        return {}
    entry = repos.get(repo)
    return entry if isinstance(entry, dict) else {}


def _set_repo_value(repo: str, key: str, value: Any) -> None:
    config = load_config()
    repos = config.get("repos")
    if not isinstance(repos, dict):
        repos = {}
    entry = repos.get(repo)
    if not isinstance(entry, dict):
        entry = {}
    if value is None:
        entry.pop(key, None)
    else:
        entry[key] = value
    repos[repo] = entry
    config["repos"] = repos
    save_config(config)


def _get_int(key: str, default: int) -> int:
    value = load_config().get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def get_repo() -> Optional[str]:
    repo = load_config().get("repo")
    if isinstance(repo, str) and repo.strip():
        return repo.strip()
    return None


def set_repo(repo: str) -> None:
    """Remember the last repository, keeping every other key intact."""
    config = load_config()
    config["repo"] = repo
    save_config(config)


def get_local_mode() -> bool:
    return bool(load_config().get("local_mode", False))


def get_multiplexer() -> Optional[str]:
    """Preferred multiplexer ("tmux" or "screen"), or None to detect."""
    value = load_config().get("multiplexer")
    if value in ("tmux", "screen"):
        return value
    return None


def get_refresh_interval() -> int:
    return max(5, _get_int("refresh_interval", DEFAULT_REFRESH_INTERVAL))


def get_nudge_max() -> int:
    return max(0, _get_int("nudge_max", DEFAULT_NUDGE_MAX))


def get_nudge_message() -> str:
    message = load_config().get("nudge_message")
    if isinstance(message, str) and message.strip():
        return message
    return DEFAULT_NUDGE_MESSAGE


def get_session_state_max_age() -> int:
    return max(0, _get_int("session_state_max_age", DEFAULT_SESSION_STATE_MAX_AGE))


def get_pr_ready(repo: str) -> bool:
    """Whether auto-opened PRs should be ready for review instead of draft."""
    return bool(_repo_config(repo).get("pr_ready", False))


def set_pr_ready(repo: str, ready: bool) -> None:
    _set_repo_value(repo, "pr_ready", True if ready else None)


def get_auto_open_pr(repo: str) -> bool:
    return bool(_repo_config(repo).get("auto_open_pr", True))


def _get_repo_command(repo: str, key: str) -> Optional[str]:
    command = _repo_config(repo).get(key)
    if isinstance(command, str) and command.strip():
        return command
    return None


def get_session_command(repo: str) -> Optional[str]:
    """Command template typed into a new session ({prompt_file} is expanded)."""
    return _get_repo_command(repo, "session_command")


def set_session_command(repo: str, command: Optional[str]) -> None:
    _set_repo_value(repo, "session_command", command or None)


def get_verify_command(repo: str) -> Optional[str]:
    """Command run in a worktree to check it ({path} is expanded)."""
    return _get_repo_command(repo, "verify_command")


def set_verify_command(repo: str, command: Optional[str]) -> None:
    _set_repo_value(repo, "verify_command", command or None)


def get_editor_command(repo: str) -> Optional[str]:
    """Command that opens a worktree in an editor ({path} is expanded)."""
    return _get_repo_command(repo, "editor_command")


def set_editor_command(repo: str, command: Optional[str]) -> None:
    _set_repo_value(repo, "editor_command", command or None)
