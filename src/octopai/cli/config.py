"""
Config commands: init, show, path, pr-ready and the per-repository commands.
"""

from typing import Annotated, Optional

import typer
from rich import print as rprint

from ._shared import RepoOption, config_app, fatal


CONFIG_TEMPLATE = """\
# Octopai configuration
# Location: ~/.octopai/config.yaml

# Repository to manage (detected from gh / the origin remote when unset)
# repo: owner/name

# Keep issues and PRs in a local store instead of GitHub
# (forced on when the gh CLI is not installed)
# local_mode: false

# Terminal multiplexer for agent sessions: tmux or screen (default: detect)
# multiplexer: tmux

# Seconds between automatic refreshes (minimum 5)
# refresh_interval: 30

# How many times an idle session without a PR is nudged, and with what
# nudge_max: 1
# nudge_message: continue

# Seconds after which a hook-pushed session state is distrusted (0 = never)
# session_state_max_age: 600

# Per-repository settings
# repos:
#   owner/name:
#     pr_ready: false        # auto-opened local PRs are drafts unless true
#     auto_open_pr: true     # local mode: open a PR when an agent goes idle
#     session_command: claude "$(cat {prompt_file})" --allowedTools Read,Edit,Bash
#     verify_command: make test          # v: run in the selected worktree
#     editor_command: code {path}        # e: open the selected worktree
"""


@config_app.callback(invoke_without_command=True)
def config_default(ctx: typer.Context):
    """Show current configuration (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _config_show()


@config_app.command("init")
def config_init(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite existing config file")
    ] = False,
):
    """Create a config file with documented defaults.

    Creates ~/.octopai/config.yaml with all options commented out.
    Use --force to overwrite an existing config file.
    """
    from .. import config

    config.CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)

    if config.CONFIG_PATH.exists() and not force:
        rprint(f"[yellow]Config file already exists:[/yellow] {config.CONFIG_PATH}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    config.CONFIG_PATH.write_text(CONFIG_TEMPLATE)
    rprint(f"[green]✓[/green] Created config file: [bold]{config.CONFIG_PATH}[/bold]")
    rprint("[dim]Edit to customize your settings[/dim]")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    _config_show()


@config_app.command("path")
def config_path():
    """Print the config file location."""
    from .. import config

    typer.echo(str(config.CONFIG_PATH))


def _config_show():
    """Internal function to display current config."""
    from .. import config

    if not config.CONFIG_PATH.exists():
        rprint(f"[dim]No config file found at {config.CONFIG_PATH}[/dim]")
        rprint("[dim]Run 'octopai config init' to create one[/dim]")
        return

    data = config.load_config()
    if not data:
        rprint(f"[dim]Config file is empty: {config.CONFIG_PATH}[/dim]")
        return

    rprint(f"[bold]Configuration[/bold] ({config.CONFIG_PATH}):\n")
    rprint(f"  repo: {data.get('repo', '[dim](detect)[/dim]')}")
    rprint(f"  local_mode: {config.get_local_mode()}")
    rprint(f"  multiplexer: {config.get_multiplexer() or '[dim](detect)[/dim]'}")
    rprint(f"  refresh_interval: {config.get_refresh_interval()}s")
    rprint(f"  nudge_max: {config.get_nudge_max()}")
    rprint(f"  nudge_message: \"{config.get_nudge_message()}\"")
    rprint(f"  session_state_max_age: {config.get_session_state_max_age()}s")

    repos = data.get("repos")
    if isinstance(repos, dict) and repos:
        rprint("  repos:")
        for name in repos:
            rprint(f"    {name}:")
            rprint(f"      pr_ready: {config.get_pr_ready(name)}")
            rprint(f"      auto_open_pr: {config.get_auto_open_pr(name)}")
            for key, getter in (
                ("session_command", config.get_session_command),
                ("verify_command", config.get_verify_command),
                ("editor_command", config.get_editor_command),
            ):
                command = getter(name)
                if command:
                    rprint(f"      {key}: {command}")


def _target_repo(repo: Optional[str]) -> str:
    from ..board import resolve_repo
    from ..exceptions import OctopaiError

    try:
        return resolve_repo(repo)
    except OctopaiError as e:
        fatal(str(e))


@config_app.command("pr-ready")
def config_pr_ready(
    ready: Annotated[
        bool, typer.Argument(help="Open auto-created local PRs as ready (true) or draft (false)")
    ],
    repo: RepoOption = None,
):
    """Set whether auto-opened PRs are drafts for a repository."""
    from .. import config

    target = _target_repo(repo)
    config.set_pr_ready(target, ready)
    kind = "ready for review" if ready else "drafts"
    rprint(f"[green]✓[/green] Auto-opened PRs in {target} will be {kind}")


@config_app.command("session-command")
def config_session_command(
    command: Annotated[
        Optional[str],
        typer.Argument(help="Command typed into new sessions ({prompt_file} is expanded)"),
    ] = None,
    clear: Annotated[bool, typer.Option("--clear", help="Revert to the default agent")] = False,
    repo: RepoOption = None,
):
    """Show or set the command that starts the agent in a new session."""
    from .. import config

    target = _target_repo(repo)
    if clear:
        config.set_session_command(target, None)
        rprint(f"[green]✓[/green] {target} uses the default agent command")
        return
    if command is None:
        current = config.get_session_command(target)
        if current:
            typer.echo(current)
        else:
            rprint("[dim](default agent command)[/dim]")
        return
    if "{prompt_file}" not in command:
        rprint("[yellow]Warning:[/yellow] command has no {prompt_file}; the agent gets no prompt")
    config.set_session_command(target, command)
    rprint(f"[green]✓[/green] Session command for {target} updated")


def _worktree_command(target: str, label: str, getter, setter, command: Optional[str], clear: bool) -> None:
    if clear:
        setter(target, None)
        rprint(f"[green]✓[/green] Cleared the {label} command for {target}")
        return
    if command is None:
        current = getter(target)
        if current:
            typer.echo(current)
        else:
            rprint(f"[dim](no {label} command)[/dim]")
        return
    setter(target, command)
    rprint(f"[green]✓[/green] {label.capitalize()} command for {target} updated")


WorktreeCommandArg = Annotated[
    Optional[str],
    typer.Argument(help="Shell command run in the worktree ({path} is the worktree path)"),
]
ClearOption = Annotated[bool, typer.Option("--clear", help="Remove the command")]


@config_app.command("verify-command")
def config_verify_command(
    command: WorktreeCommandArg = None,
    clear: ClearOption = False,
    repo: RepoOption = None,
):
    """Show or set the command that checks a worktree (e.g. its test suite)."""
    from .. import config

    _worktree_command(
        _target_repo(repo), "verify",
        config.get_verify_command, config.set_verify_command,
        command, clear,
    )


@config_app.command("editor-command")
def config_editor_command(
    command: WorktreeCommandArg = None,
    clear: ClearOption = False,
    repo: RepoOption = None,
):
    """Show or set the command that opens a worktree in an editor."""
    from .. import config

    _worktree_command(
        _target_repo(repo), "editor",
        config.get_editor_command, config.set_editor_command,
        command, clear,
    )
