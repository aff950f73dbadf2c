"""Command-line interface for turnsync."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .backend import BackendClient
from .config import ConfigError, Settings, config_path, load_settings, save_settings
from .save import MalformedIdentity, decode
from .selection import UnknownItem
from .session import SyncSession
from .view import SelectionView

console = Console()
err_console = Console(stderr=True)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _make_session(settings: Settings) -> SyncSession:
    backend = BackendClient(
        base_url=settings.backend_url,
        api_key=settings.api_key,
        timeout=settings.timeout,
    )
    return SyncSession(backend, result_log_limit=settings.result_log_limit)


def _refresh(session: SyncSession) -> None:
    prediction = asyncio.run(session.refresh("cli"))
    if prediction is None:
        last = session.results.last()
        console.print(f"[red]Error:[/red] {last.message if last else 'refresh failed'}")
        sys.exit(1)


def _print_view(view: SelectionView) -> None:
    if view.nothing_to_do:
        console.print("[dim]Nothing to do.[/dim]")

    table = Table(title="Saves")
    table.add_column("", width=3)
    table.add_column("Save", style="cyan")
    table.add_column("Action")
    table.add_column("Token", style="dim")

    actions = {
        "autosave": "[blue]Upload autosave[/blue]",
        "upload": "[green]Upload[/green]",
        "download": "[yellow]Download[/yellow]",
    }
    for row in view.rows():
        table.add_row(
            "[green]x[/green]" if row.included else " ",
            row.label,
            actions[row.pool],
            row.token,
        )

    if view.rows():
        console.print(table)

    if view.autosave is None and view.autosave_reason:
        console.print(f"[bold]Autosave:[/bold] {view.autosave_reason}")
    for notice in view.notices:
        console.print(f"[dim]{notice}[/dim]")


def _in_turn_order(tokens) -> str:
    return ", ".join(str(identity) for identity in sorted(decode(t) for t in tokens))


def _print_results(session: SyncSession) -> None:
    for entry in session.results:
        if entry.kind == "error":
            console.print(f"[red]{entry.message}[/red]")
        elif entry.kind == "refresh":
            console.print(f"[dim]{entry.message}[/dim]")
        else:
            console.print(f"[green]{entry.message}[/green]")


@click.group()
@click.option(
    "--backend-url",
    envvar="TURNSYNC_BACKEND_URL",
    help="Backend URL (or set TURNSYNC_BACKEND_URL env var)",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default ~/.config/turnsync/config.json)",
)
@click.option("-v", "--verbose", count=True, help="Show more log output (-vv for debug)")
@click.pass_context
def main(
    ctx: click.Context, backend_url: str | None, config_file: Path | None, verbose: int
) -> None:
    """Choose which game saves to upload and download."""
    ctx.ensure_object(dict)

    try:
        settings = load_settings(config_file)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)

    if backend_url:
        settings.backend_url = backend_url

    level = settings.log_level
    if verbose == 1:
        level = "INFO"
    elif verbose > 1:
        level = "DEBUG"
    _setup_logging(level)

    ctx.obj["settings"] = settings
    ctx.obj["config_file"] = config_file


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show what the backend suggests uploading and downloading."""
    session = _make_session(ctx.obj["settings"])

    console.print("[dim]Checking saves...[/dim]")
    _refresh(session)
    _print_view(session.view())


@main.command()
@click.option("--exclude", "-x", multiple=True, metavar="TOKEN", help="Leave a save out")
@click.option("--include", "-i", multiple=True, metavar="TOKEN", help="Put a save back in")
@click.option("--no-autosave", is_flag=True, help="Do not upload the autosave")
@click.option("--dry-run", is_flag=True, help="Show what would be sent without sending it")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def go(
    ctx: click.Context,
    exclude: tuple[str, ...],
    include: tuple[str, ...],
    no_autosave: bool,
    dry_run: bool,
    yes: bool,
) -> None:
    """
    Upload and download the suggested saves.

    Every suggested save is selected by default; use --exclude with the
    token shown by 'status' to leave one out.
    """
    session = _make_session(ctx.obj["settings"])

    console.print("[dim]Checking saves...[/dim]")
    _refresh(session)

    try:
        for token in exclude:
            session.toggle(token, False)
        for token in include:
            session.toggle(token, True)
        if no_autosave and session.store.autosave is not None:
            session.toggle(session.store.autosave.identity, False)
    except MalformedIdentity as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except UnknownItem as e:
        console.print(f"[red]Error:[/red] {e.args[0]} is not a suggested save")
        sys.exit(1)

    _print_view(session.view())

    request = session.build_request()
    if request.is_empty:
        console.print("[yellow]Nothing selected.[/yellow]")
        return

    if request.upload_items:
        console.print(f"[bold]Upload:[/bold] {_in_turn_order(request.upload_items)}")
    if request.download_items:
        console.print(f"[bold]Download:[/bold] {_in_turn_order(request.download_items)}")

    if dry_run:
        console.print("[dim]Dry run, nothing sent.[/dim]")
        return

    if not yes and not click.confirm("Go?", default=True):
        console.print("Aborted.")
        return

    outcome = asyncio.run(session.go())

    console.print()
    _print_results(session)
    if not outcome.ok:
        sys.exit(1)

    console.print()
    _print_view(session.view())


@main.command()
@click.option("--port", type=int, default=5000, help="Port (default 5000)")
@click.pass_context
def web(ctx: click.Context, port: int) -> None:
    """Serve the selection over a local web API."""
    from .web import create_and_run

    console.print(f"[bold]Serving on[/bold] http://127.0.0.1:{port}")
    create_and_run(ctx.obj["settings"], port=port)


@main.group()
def config() -> None:
    """Show or create the config file."""


@config.command(name="show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective settings."""
    settings: Settings = ctx.obj["settings"]
    path = ctx.obj.get("config_file") or config_path()
    console.print(f"[bold]Config file:[/bold] {path}{'' if path.exists() else ' (missing)'}")
    for key, value in settings.to_dict().items():
        if key == "api_key" and value:
            value = "***"
        console.print(f"  {key} = {value}")


@config.command(name="init")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Write the current settings to the config file."""
    path = ctx.obj.get("config_file") or config_path()
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists.[/yellow] Use --force to overwrite.")
        sys.exit(1)
    save_settings(ctx.obj["settings"], path)
    console.print(f"[green]Wrote[/green] {path}")
