"""Command-line interface for megadvc."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from .lock import LockError
from .megacmd import MegaCmd, MegaError, RemoteStore
from .models import LockStatus, PushReport
from .options import ConfigError, Options
from .repository import (
    FileAbsentError,
    FileOutsideRepositoryError,
    RemoteRepositoryExistsError,
    Repository,
    RepositoryAbsentError,
    RepositoryError,
    init_repository,
)

app = typer.Typer(help="Push and pull data to mega.nz in a similar fashion to git")
console = Console()


def _remote_store() -> RemoteStore:
    return MegaCmd()


def _open_repository(directory: Path | None) -> Repository:
    return Repository.open(directory)


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print(f"[red]Permission denied:[/red] {exc.filename or exc}")
        raise typer.Exit(code=1)
    if isinstance(exc, RepositoryAbsentError):
        console.print(f"[red]{exc}[/red]")
        console.print("[yellow]Use 'megadvc init' to create a repository.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, RemoteRepositoryExistsError):
        console.print(f"[red]{exc}[/red]")
        console.print("[yellow]The local files were written; choose another --remote-dir to start fresh.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, (FileAbsentError, FileOutsideRepositoryError)):
        console.print(f"[red]{exc}[/red]", soft_wrap=True)
        console.print("[yellow]Nothing was staged.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, (RepositoryError, ConfigError, LockError, MegaError)):
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    if isinstance(exc, OSError):
        console.print(f"[red]I/O error:[/red] {exc}")
        raise typer.Exit(code=1)
    raise exc


def _format_options(options: Options) -> None:
    console.print("[bold]Options:[/bold]")
    console.print(f"Remote path: [yellow]{options.remote_path}[/yellow]")
    console.print(f"Local path: [yellow]{options.local_path}[/yellow]")
    console.print()


def _print_section(title: str, paths: Iterable[Path], style: str) -> None:
    items = sorted(paths)
    if not items:
        return
    console.print(f"[bold]{title}[/bold]")
    for path in items:
        console.print(f"  [{style}]{path}[/{style}]", soft_wrap=True)
    console.print()


def _format_status(report: LockStatus) -> None:
    _print_section("Staged files:", report.staged, "green")
    _print_section("Files to remove:", report.to_remove, "red")

    if report.moved:
        table = Table(show_header=True, header_style="bold magenta", title="Moved files")
        table.add_column("From")
        table.add_column("To")
        for old, new in sorted(report.moved):
            table.add_row(str(old), f"[cyan]{new}[/cyan]")
        console.print(table)

    _print_section("Added files:", report.added, "green")
    _print_section("Deleted files:", report.deleted, "red")

    if report.is_clean():
        console.print("[green]Nothing to push, working tree unchanged.[/green]")


def _format_push(report: PushReport) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Path")
    table.add_column("Action")

    for path in report.pushed:
        table.add_row(str(path), "[green]pushed[/green]")
    for path in report.removed:
        table.add_row(str(path), "[red]removed[/red]")

    console.print(table)
    console.print(f"[green]Lock generation {report.generation} published.[/green]")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging for every command."""

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


@app.command()
def init(
    directory: Path | None = typer.Option(
        None,
        "--dir",
        "-d",
        help="The directory where to initialise the repository [default: current directory]",
    ),
    remote_dir: Path | None = typer.Option(
        None,
        "--remote-dir",
        "-r",
        help="The remote directory for the repository [default: local directory name]",
    ),
) -> None:
    """Initialise a data repository."""

    try:
        repository = init_repository(directory or Path.cwd(), remote_dir, store=_remote_store())
        console.print(f"[green]Initialised repository in '{repository.root}'.[/green]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def add(
    files: list[Path] = typer.Argument(..., help="Files to be pushed"),
    directory: Path | None = typer.Option(None, "--dir", "-d", help="Repository root"),
) -> None:
    """Stage files to be pushed."""

    try:
        staged = _open_repository(directory).add(files)
        console.print(f"[green]Staged {len(staged)} new file(s) to add.[/green]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def remove(
    files: list[Path] = typer.Argument(..., help="Files to be removed"),
    directory: Path | None = typer.Option(None, "--dir", "-d", help="Repository root"),
) -> None:
    """Stage files to be removed from the remote."""

    try:
        staged = _open_repository(directory).remove(files)
        console.print(f"[green]Staged {len(staged)} new file(s) to remove.[/green]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def status(
    directory: Path | None = typer.Option(None, "--dir", "-d", help="Repository root"),
    against: Path | None = typer.Option(
        None,
        "--against",
        help="Compare with another recorded lock file instead of the local one",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """Print the current status of the repository."""

    try:
        repository = _open_repository(directory)
        report = repository.status(against=against)
        _format_options(repository.options)
        _format_status(report)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def push(
    directory: Path | None = typer.Option(None, "--dir", "-d", help="Repository root"),
) -> None:
    """Push all staged changes to the remote folder."""

    try:
        report = _open_repository(directory).push(store=_remote_store())
        _format_push(report)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
