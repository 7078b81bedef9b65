"""
Pane-text patterns for the session state fallback heuristic.

These are only consulted when no hook has pushed a state for a session.
They recognise the prompt and permission dialog of common agent UIs and
will misread unconventional ones; that is an accepted limitation of the
fallback, not something to fix by growing these lists.
"""

import re
from dataclasses import dataclass, field
from typing import List

# Regex to match ANSI escape sequences (colors, cursor movement, etc.)
ANSI_ESCAPE_PATTERN = re.compile(r'\x1b\[[0-9;]*[a-zA-Z]')


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return ANSI_ESCAPE_PATTERN.sub('', text)


@dataclass
class StatusPatterns:
    """Patterns used by the pane heuristic.

    All matching is case-sensitive: the dialogs capitalise their buttons.
    """

    # How many trailing non-empty lines are inspected
    tail_lines: int = 5

    # Permission dialog affordances - HIGHEST priority, since the dialog
    # itself can render prompt-like glyphs
    permission_markers: List[str] = field(default_factory=lambda: [
        "Allow",
        "Deny",
        "allow once",
    ])

    # Prompt characters at the start of a line
    prompt_prefixes: List[str] = field(default_factory=lambda: [
        ">",
        "❯",  # Claude Code's prompt character (U+276F)
    ])

    # Phrases inviting the user to type
    invitation_phrases: List[str] = field(default_factory=lambda: [
        "What would you like",
    ])


DEFAULT_PATTERNS = StatusPatterns()


def last_content_lines(pane_text: str, count: int) -> List[str]:
    """Last ``count`` non-empty lines, stripped, oldest first."""
    lines = [line.strip() for line in strip_ansi(pane_text).splitlines()]
    lines = [line for line in lines if line]
    return lines[-count:] if count > 0 else []


def has_permission_marker(lines: List[str], patterns: StatusPatterns = DEFAULT_PATTERNS) -> bool:
    return any(
        marker in line
        for line in lines
        for marker in patterns.permission_markers
    )


def has_idle_prompt(lines: List[str], patterns: StatusPatterns = DEFAULT_PATTERNS) -> bool:
    for line in lines:
        if any(line.startswith(prefix) for prefix in patterns.prompt_prefixes):
            return True
        if any(phrase in line for phrase in patterns.invitation_phrases):
            return True
    return False
