"""
Session state classification.

A state pushed by the agent's hooks is authoritative. Without one, the
visible pane text is inspected: only the last few non-empty lines count,
since the most recent output dominates. A permission dialog beats a
prompt glyph, and a failed capture is read as busy rather than idle so a
working agent is never nudged by mistake.
"""

from typing import TYPE_CHECKING

from .status_constants import STATE_IDLE, STATE_PERMISSION, STATE_WORKING
from .status_patterns import (
    DEFAULT_PATTERNS,
    StatusPatterns,
    has_idle_prompt,
    has_permission_marker,
    last_content_lines,
)

if TYPE_CHECKING:
    from .protocols import SessionBackend
    from .session_state import SessionStateStore


def classify_pane_text(pane_text: str, patterns: StatusPatterns = DEFAULT_PATTERNS) -> str:
    """Heuristic state from captured pane text."""
    lines = last_content_lines(pane_text, patterns.tail_lines)
    if has_permission_marker(lines, patterns):
        return STATE_PERMISSION
    if has_idle_prompt(lines, patterns):
        return STATE_IDLE
    return STATE_WORKING


def classify_session(
    branch: str,
    states: "SessionStateStore",
    backend: "SessionBackend",
    patterns: StatusPatterns = DEFAULT_PATTERNS,
) -> str:
    """Classify a session as working/idle/permission/processing/...

    Args:
        branch: Session (and branch) name
        states: Pushed hook states
        backend: Session backend used to capture the pane

    Returns:
        The pushed label verbatim when one exists, otherwise one of
        working, idle, permission.
    """
    pushed = states.get(branch)
    if pushed is not None:
        return pushed

    pane_text = backend.capture_pane(branch)
    if pane_text is None:
        return STATE_WORKING
    return classify_pane_text(pane_text, patterns)
