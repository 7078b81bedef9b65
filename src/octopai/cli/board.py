"""
Board commands: refresh, attach, kill, remove, close-issue, new-issue,
edit-issue, new-session, pull, verify, edit, repos, deps.
"""

import json
from dataclasses import asdict
from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.table import Table

from ._shared import (
    LocalOption,
    RepoOption,
    YesOption,
    app,
    confirm_or_abort,
    console,
    fatal,
    open_board,
)


def _section_table(title: str, cards) -> Table:
    table = Table(title=f"{title} ({len(cards)})", title_justify="left", expand=False)
    table.add_column("Id", style="dim", no_wrap=True)
    table.add_column("Title")
    table.add_column("Tag", no_wrap=True)
    table.add_column("Description", overflow="fold")
    for card in cards:
        table.add_row(
            card.id,
            card.title,
            f"[{card.tag_color}]{card.tag}[/{card.tag_color}]",
            card.description,
        )
    return table


@app.command()
def refresh(
    repo: RepoOption = None,
    local: LocalOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the board as JSON")] = False,
):
    """Run one reconciliation cycle without the dashboard.

    Cleans up merged worktrees, nudges idle sessions and (in local mode)
    opens PRs, exactly as a dashboard refresh would.
    """
    from ..models import CARD_SECTIONS, SECTION_TITLES

    board = open_board(repo, local)
    snapshot = board.reconciler.refresh()
    if snapshot is None:
        fatal("A refresh is already running")

    if as_json:
        data = {
            "repo": board.repo,
            "local_mode": board.local_mode,
            "main_behind": snapshot.main_behind,
            "last_refresh": snapshot.last_refresh,
            "messages": board.messages.snapshot(),
        }
        for kind in CARD_SECTIONS:
            data[SECTION_TITLES[kind].lower().replace(" ", "_")] = [
                asdict(card) for card in snapshot.cards(kind)
            ]
        typer.echo(json.dumps(data, indent=2))
        return

    mode = "local" if board.local_mode else "remote"
    rprint(f"[bold]{board.repo}[/bold] [dim]({mode} mode, {board.backend.name})[/dim]")
    if snapshot.main_behind:
        rprint(f"[yellow]main is {snapshot.main_behind} commit(s) behind origin[/yellow]")
    for kind in CARD_SECTIONS:
        console.print(_section_table(SECTION_TITLES[kind], snapshot.cards(kind)))
    for message in board.messages.snapshot():
        rprint(f"[cyan]•[/cyan] {message}")


@app.command()
def attach(
    name: Annotated[str, typer.Argument(help="Session name (e.g. issue-12)")],
    repo: RepoOption = None,
    local: LocalOption = None,
):
    """Attach to an agent session (detach to return)."""
    from ..exceptions import SessionBackendError

    board = open_board(repo, local)
    if name not in board.backend.list_sessions():
        fatal(f"Session '{name}' not found")
    try:
        board.operations.attach(name)
    except SessionBackendError as e:
        fatal(str(e))


@app.command()
def kill(
    name: Annotated[str, typer.Argument(help="Session name")],
    repo: RepoOption = None,
    local: LocalOption = None,
    yes: YesOption = False,
):
    """Kill an agent session."""
    board = open_board(repo, local)
    if name not in board.backend.list_sessions():
        fatal(f"Session '{name}' not found")
    confirm_or_abort(f"Kill session '{name}'?", yes)
    board.operations.kill_session(name)
    rprint(f"[green]✓[/green] Killed session '{name}'")


@app.command()
def remove(
    branch: Annotated[str, typer.Argument(help="Worktree branch")],
    repo: RepoOption = None,
    local: LocalOption = None,
    yes: YesOption = False,
):
    """Remove a worktree, its branch and its session."""
    from ..exceptions import OctopaiError

    board = open_board(repo, local)
    path = board.operations.worktree_path(branch)
    if path is None:
        fatal(f"No worktree for branch '{branch}'")
    confirm_or_abort(f"Remove worktree '{branch}' at {path}?", yes)
    try:
        board.operations.remove_worktree(path, branch)
    except OctopaiError as e:
        fatal(str(e))
    rprint(f"[green]✓[/green] Removed worktree '{branch}'")


@app.command("close-issue")
def close_issue(
    number: Annotated[int, typer.Argument(help="Issue number")],
    repo: RepoOption = None,
    local: LocalOption = None,
    yes: YesOption = False,
):
    """Close an issue."""
    from ..exceptions import OctopaiError

    board = open_board(repo, local)
    confirm_or_abort(f"Close issue #{number}?", yes)
    try:
        board.operations.close_issue(board.operations.issue_id(number))
    except OctopaiError as e:
        fatal(str(e))
    rprint(f"[green]✓[/green] Closed issue #{number}")


@app.command("new-issue")
def new_issue(
    title: Annotated[str, typer.Argument(help="Issue title")],
    body: Annotated[str, typer.Option("--body", "-b", help="Issue body")] = "",
    repo: RepoOption = None,
    local: LocalOption = None,
):
    """Create an issue (assigned to you on GitHub)."""
    from ..exceptions import OctopaiError

    board = open_board(repo, local)
    try:
        number = board.operations.create_issue(title, body)
    except OctopaiError as e:
        fatal(str(e))
    rprint(f"[green]✓[/green] Created issue #{number}")


@app.command("edit-issue")
def edit_issue(
    number: Annotated[int, typer.Argument(help="Issue number")],
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="New title")] = None,
    body: Annotated[Optional[str], typer.Option("--body", "-b", help="New body")] = None,
    repo: RepoOption = None,
    local: LocalOption = None,
):
    """Change an issue's title and/or body."""
    from ..exceptions import OctopaiError

    if title is None and body is None:
        fatal("Nothing to change (use --title and/or --body)")

    board = open_board(repo, local)
    issue_id = board.operations.issue_id(number)
    try:
        current_title, current_body = board.operations.issue_details(issue_id)
        board.operations.edit_issue(
            issue_id,
            current_title if title is None else title,
            current_body if body is None else body,
        )
    except OctopaiError as e:
        fatal(str(e))
    rprint(f"[green]✓[/green] Updated issue #{number}")


@app.command("new-session")
def new_session(
    number: Annotated[int, typer.Argument(help="Issue number to work on")],
    repo: RepoOption = None,
    local: LocalOption = None,
):
    """Create a worktree and start an agent session for an issue."""
    from ..exceptions import OctopaiError

    board = open_board(repo, local)
    try:
        branch = board.operations.start_issue(board.operations.issue_id(number))
    except OctopaiError as e:
        fatal(str(e))
    rprint(f"[green]✓[/green] Started session '{branch}'")
    rprint(f"  [dim]octopai attach {branch}[/dim]")


@app.command()
def pull(
    repo: RepoOption = None,
    local: LocalOption = None,
):
    """Fast-forward the main worktree from origin."""
    from ..exceptions import OctopaiError

    board = open_board(repo, local)
    try:
        summary = board.operations.pull_main()
    except OctopaiError as e:
        fatal(str(e))
    rprint(f"[green]✓[/green] {summary}")


@app.command()
def verify(
    branch: Annotated[str, typer.Argument(help="Worktree branch")],
    repo: RepoOption = None,
    local: LocalOption = None,
):
    """Run the repository's verify command in a worktree, in the foreground."""
    from ..exceptions import OctopaiError

    board = open_board(repo, local)
    path = board.operations.worktree_path(branch)
    if path is None:
        fatal(f"No worktree for branch '{branch}'")
    try:
        code = board.operations.verify_worktree(branch, path, wait=True)
    except OctopaiError as e:
        fatal(f"{e} (set one with 'octopai config verify-command')")
    if code != 0:
        rprint(f"[red]✗[/red] Verify failed for '{branch}' (exit {code})")
        raise typer.Exit(code)
    rprint(f"[green]✓[/green] Verify passed for '{branch}'")


@app.command()
def edit(
    branch: Annotated[str, typer.Argument(help="Worktree branch")],
    repo: RepoOption = None,
    local: LocalOption = None,
):
    """Open a worktree with the repository's editor command."""
    from ..exceptions import OctopaiError

    board = open_board(repo, local)
    path = board.operations.worktree_path(branch)
    if path is None:
        fatal(f"No worktree for branch '{branch}'")
    try:
        board.operations.open_in_editor(path)
    except OctopaiError as e:
        fatal(f"{e} (set one with 'octopai config editor-command')")
    rprint(f"[green]✓[/green] Opened editor for '{branch}'")


@app.command()
def repos(
    owner: Annotated[str, typer.Argument(help="GitHub org or user")],
    query: Annotated[Optional[str], typer.Argument(help="Fuzzy filter on owner/name")] = None,
    use: Annotated[
        bool, typer.Option("--use", help="Remember the single match as the configured repo")
    ] = False,
):
    """List an owner's repositories, optionally picking one."""
    from .. import config, github
    from ..exceptions import OctopaiError
    from ..models import fuzzy_match

    try:
        names = github.fetch_repos(owner)
    except OctopaiError as e:
        fatal(str(e))
    if query:
        names = [name for name in names if fuzzy_match(query, name)]
    if not names:
        fatal(f"No repos of '{owner}' match '{query}'")

    if use:
        if len(names) > 1:
            fatal(f"{len(names)} repos match; narrow the query to pick one")
        config.set_repo(names[0])
        rprint(f"[green]✓[/green] Using {names[0]} when not inside a checkout")
        return
    for name in names:
        typer.echo(name)


@app.command()
def deps():
    """Check the external tools Octopai needs."""
    from ..dependency_check import check_dependencies, has_missing_required

    dependencies = check_dependencies()
    table = Table(title="Dependencies", title_justify="left")
    table.add_column("Tool", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Version")
    table.add_column("Purpose")
    for dep in dependencies:
        if dep.available:
            status = "[green]✓ found[/green]"
        elif dep.required:
            status = "[red]✗ missing[/red]"
        else:
            status = "[yellow]- optional[/yellow]"
        table.add_row(dep.name, status, dep.version or "", dep.description)
    console.print(table)

    if has_missing_required(dependencies):
        rprint("[red]Required tools are missing.[/red]")
        raise typer.Exit(1)
