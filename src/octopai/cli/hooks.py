"""
Hook commands: hook-event (called by agents), hooks install, hooks status.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich import print as rprint

from ._shared import app, hooks_app


@app.command("hook-event", hidden=True)
def hook_event_cmd(
    status: Annotated[str, typer.Argument(help="Session status to report")],
):
    """Report an agent state change to the dashboard (internal).

    Called by agent hooks, not by users directly. Drains the hook payload
    on stdin, derives the session from the working directory and pushes the
    status to the event socket. Always exits 0.
    """
    from ..hook_handler import handle_hook_event

    handle_hook_event(status)


@hooks_app.command("install")
def hooks_install(
    path: Annotated[
        Path,
        typer.Argument(help="Worktree to install hooks into (default: current directory)"),
    ] = Path("."),
):
    """Install the status hooks into a worktree's .claude/settings.local.json."""
    from ..hook_handler import OCTOPAI_HOOKS, session_name_from_cwd, write_worktree_hook_config

    if not path.is_dir():
        rprint(f"[red]Error:[/red] {path} is not a directory")
        raise typer.Exit(1)

    settings_path = write_worktree_hook_config(str(path))
    rprint(f"[green]✓[/green] Installed {len(OCTOPAI_HOOKS)} hook(s)")
    rprint(f"  [dim]{settings_path}[/dim]")

    if session_name_from_cwd(str(path.resolve())) is None:
        rprint(
            "[yellow]Warning:[/yellow] directory name has no issue-N suffix; "
            "events from it will be ignored."
        )


@hooks_app.command("status")
def hooks_status(
    path: Annotated[
        Path,
        typer.Argument(help="Worktree to inspect (default: current directory)"),
    ] = Path("."),
):
    """Show which status hooks are installed in a worktree."""
    from ..claude_config import ClaudeConfigEditor
    from ..hook_handler import OCTOPAI_HOOKS, hook_command

    editor = ClaudeConfigEditor.worktree_level(path)
    try:
        editor.load()
    except ValueError:
        rprint(f"{editor.path}:")
        rprint("  [red](invalid JSON)[/red]")
        raise typer.Exit(1)

    if not editor.path.exists():
        rprint(f"{editor.path}:")
        rprint("  [dim](no settings file)[/dim]")
        return

    rprint(f"{editor.path}:")
    for event, status, _, _ in OCTOPAI_HOOKS:
        command = hook_command(status)
        if editor.has_hook(event, command):
            rprint(f"  {event:<20} {command}  [green]✓[/green]")
        else:
            rprint(f"  {event:<20} [dim]not installed[/dim]")
