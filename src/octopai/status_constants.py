"""
Status constants and mappings for Octopai.

Centralizes agent session states, their card tags, colors and descriptions,
plus the small set of colors used for issue/PR/worktree tags.
"""

from typing import Tuple


# =============================================================================
# Agent Session States
# =============================================================================

STATE_PROCESSING = "processing"  # Prompt submitted, agent thinking
STATE_WORKING = "working"  # Using tools
STATE_PERMISSION = "permission"  # Blocked on a permission dialog
STATE_IDLE = "idle"  # Prompt visible, nothing running
STATE_WAITING = "waiting"  # Pushed by the Stop/idle hooks; same as idle
STATE_UNKNOWN = "unknown"

# Labels that mean "the agent stopped and is waiting for input"
IDLE_STATES = (STATE_IDLE, STATE_WAITING)


# =============================================================================
# State to card display (tag, color, description)
# =============================================================================

SESSION_STATE_DISPLAY = {
    STATE_PROCESSING: (STATE_PROCESSING, "cyan", "Agent is thinking..."),
    STATE_WORKING: (STATE_WORKING, "green", "Using tools..."),
    STATE_PERMISSION: (STATE_PERMISSION, "yellow", "Awaiting permission"),
    STATE_IDLE: (STATE_IDLE, "bright_black", "Waiting for prompt"),
    STATE_WAITING: (STATE_IDLE, "bright_black", "Waiting for prompt"),
}


def get_session_display(state: str) -> Tuple[str, str, str]:
    """Get (tag, color, description) for a session state label."""
    return SESSION_STATE_DISPLAY.get(
        state, (STATE_UNKNOWN, "bright_black", "Unknown state")
    )


def is_idle_state(state: str) -> bool:
    """Check if a state (or card tag) means the agent is waiting for input."""
    return state in IDLE_STATES


# =============================================================================
# Tag colors for the other sections
# =============================================================================

COLOR_OPEN = "green"
COLOR_CLOSED = "red"
COLOR_LOCAL = "cyan"
COLOR_DRAFT = "bright_black"
COLOR_READY = "green"
COLOR_MERGED = "magenta"
COLOR_BRANCH = "yellow"


def label_color(name: str) -> str:
    """Pick a tag color for an issue label by keyword."""
    lowered = name.lower()
    if "bug" in lowered:
        return "red"
    if "feature" in lowered or "enhancement" in lowered:
        return "green"
    if "documentation" in lowered or "docs" in lowered:
        return "blue"
    if "good first issue" in lowered or "help wanted" in lowered:
        return "cyan"
    if any(word in lowered for word in ("duplicate", "wontfix", "invalid")):
        return "bright_black"
    if any(word in lowered for word in ("priority", "critical", "urgent")):
        return "bright_red"
    return "yellow"
