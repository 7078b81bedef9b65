"""Read and write agent (Claude Code) settings files.

Worktrees get a ``.claude/settings.local.json`` whose hooks report session
state back to the dashboard; ``~/.claude.json`` records which project
directories the agent already trusts.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path


class ClaudeConfigEditor:
    """Read and write a Claude Code settings JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def worktree_level(cls, worktree_path: str | Path) -> ClaudeConfigEditor:
        """Editor for a worktree's local settings (.claude/settings.local.json)."""
        return cls(Path(worktree_path) / ".claude" / "settings.local.json")

    def load(self) -> dict:
        """Load settings from file.

        Returns empty dict if file doesn't exist.
        Raises ValueError on invalid JSON or non-object content.
        """
        if not self.path.exists():
            return {}
        text = self.path.read_text()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} contains non-object JSON")
        return data

    def save(self, settings: dict) -> None:
        """Write settings to file. Creates parent dirs as needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(settings, indent=2) + "\n")

    def set_hooks(self, hooks: dict) -> None:
        """Replace the ``hooks`` block, keeping every other setting.

        An unreadable existing file is replaced rather than merged.
        """
        try:
            settings = self.load()
        except ValueError:
            settings = {}
        updated = copy.deepcopy(settings)
        updated["hooks"] = hooks
        self.save(updated)

    def has_hook(self, event: str, command: str) -> bool:
        """Check if a command hook exists for the given event."""
        settings = self.load()
        for entry in settings.get("hooks", {}).get(event, []):
            for hook in entry.get("hooks", []):
                if hook.get("command") == command:
                    return True
        return False


def claude_json_path() -> Path:
    return Path.home() / ".claude.json"


def trust_directory(path: str | Path, config_path: Path | None = None) -> None:
    """Mark a directory as trusted so the agent skips its trust dialog.

    Raises ValueError if ~/.claude.json exists but is not a JSON object.
    """
    config_path = config_path or claude_json_path()
    editor = ClaudeConfigEditor(config_path)
    config = editor.load()

    abs_path = os.path.realpath(path)
    projects = config.setdefault("projects", {})
    if not isinstance(projects, dict):
        raise ValueError(f"Invalid projects format in {config_path}")
    projects.setdefault(abs_path, {})["hasTrustDialogAccepted"] = True

    editor.save(config)
