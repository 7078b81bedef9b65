"""
Shared CLI state: Typer apps, console, options, and utilities.
"""

from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.console import Console

# Main app
app = typer.Typer(
    name="octopai",
    help="Keep issues, worktrees, agent sessions and pull requests in sync",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode="rich",
)

# Hooks subcommand group
hooks_app = typer.Typer(
    name="hooks",
    help="Manage agent hook integration.",
    no_args_is_help=True,
)
app.add_typer(hooks_app, name="hooks")

# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage configuration",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(config_app, name="config")

# Console for rich output
console = Console()

RepoOption = Annotated[
    Optional[str],
    typer.Option("--repo", "-r", help="Repository as owner/name (default: detected)"),
]

LocalOption = Annotated[
    Optional[bool],
    typer.Option("--local/--remote", help="Force local or remote (GitHub) mode"),
]

YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
]


def fatal(message: str) -> None:
    """Report an unrecoverable error once and exit non-zero."""
    rprint(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def confirm_or_abort(prompt: str, yes: bool) -> None:
    if yes:
        return
    if not typer.confirm(prompt, default=False):
        rprint("[dim]Cancelled[/dim]")
        raise typer.Exit(0)


def open_board(repo: Optional[str], local: Optional[bool], listen: bool = False):
    """Build the board or exit with a red message."""
    from ..board import build_board
    from ..exceptions import OctopaiError

    try:
        return build_board(repo=repo, local_mode=local, listen=listen)
    except OctopaiError as e:
        fatal(str(e))


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    repo: RepoOption = None,
    local: LocalOption = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """Launch the dashboard when no command is given."""
    if ctx.invoked_subcommand is not None:
        from ..logging_config import setup_cli_logging

        setup_cli_logging(verbose)
        return

    from ..exceptions import OctopaiError
    from ..tui import run_tui

    try:
        run_tui(repo=repo, local_mode=local)
    except OctopaiError as e:
        fatal(str(e))
