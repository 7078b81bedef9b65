"""
Paths and fixed constants for Octopai.

Everything user-tunable lives in config.py; this module only holds values
that are not meant to be edited, plus the path helpers both modules share.
"""

import os
from pathlib import Path


# Default interval between automatic refresh cycles (seconds)
DEFAULT_REFRESH_INTERVAL = 30

# Maximum number of "continue" nudges per idle period
DEFAULT_NUDGE_MAX = 1
DEFAULT_NUDGE_MESSAGE = "continue"

# Pushed session state older than this is distrusted (seconds, 0 = never)
DEFAULT_SESSION_STATE_MAX_AGE = 600

# Status message log length
MAX_MESSAGES = 50

# Branches treated as the primary worktree
MAIN_BRANCHES = ("main", "master")

# Commands the agent hooks use to report state
HOOK_COMMAND = "octopai hook-event"

DEFAULT_SOCKET_PATH = "/tmp/octopai-events.sock"


def get_state_dir() -> Path:
    """Base directory for config, logs and the local store.

    Respects OCTOPAI_STATE_DIR for test isolation.
    """
    env_dir = os.environ.get("OCTOPAI_STATE_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".octopai"


def get_socket_path() -> Path:
    """Path of the Unix socket agent hooks push events to."""
    return Path(os.environ.get("OCTOPAI_SOCKET", DEFAULT_SOCKET_PATH))


def get_log_dir() -> Path:
    return get_state_dir() / "logs"


def get_local_store_dir() -> Path:
    return get_state_dir() / "local"


def get_prompt_dir() -> Path:
    """Where agent prompts are written before being handed to the session."""
    return get_state_dir() / "prompts"
