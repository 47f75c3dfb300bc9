"""
CLI for KeeShepherd.

Provides command-line interface for tracking, masking and stashing secrets
in local files.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

from keeshepherd.cli.ui import (
    configure_logging,
    render_bulk_result,
    render_secrets_table,
)
from keeshepherd.core.masker import render_masked
from keeshepherd.core.models import ControlType, SecretReference, SecretType
from keeshepherd.services import ServicesContainer, create_services

# Initialize Rich Console
console = Console()

app = typer.Typer(
    name="keeshepherd",
    help="KeeShepherd - keep track of secrets in local files",
    add_completion=False,
)

_state: dict = {"config_path": None}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML or JSON configuration file"
    ),
):
    """Keep track of secrets in local files: mask, stash and unstash them."""
    _state["config_path"] = config


def get_services(assume_yes: bool = False) -> ServicesContainer:
    """
    Initialize services from .env and configuration.

    Destructive follow-ups (forgetting secrets) are confirmed on the
    terminal unless ``assume_yes`` is set.
    """
    load_dotenv()

    async def confirm(message: str) -> bool:
        if assume_yes:
            return True
        return typer.confirm(message, default=False)

    container = create_services(_state["config_path"], confirm=confirm)
    configure_logging(container.config.logging, console)
    return container


def _file_key(path: Path) -> str:
    return str(path.expanduser().resolve())


def _read_file(path: Path) -> str:
    with path.open(encoding="utf-8", newline="") as f:
        return f.read()


def _parse_properties(values: Optional[List[str]]) -> Optional[dict]:
    if not values:
        return None
    properties = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{item}'")
        properties[key] = value
    return properties


def _parse_type(value: str) -> SecretType:
    try:
        return SecretType[value.upper().replace("-", "_")]
    except KeyError:
        choices = ", ".join(t.name.lower() for t in SecretType)
        raise typer.BadParameter(f"Unknown secret type '{value}'. Choose from: {choices}")


@app.command()
def init():
    """Create the storage folder, salt and secret database."""
    try:
        container = get_services()
        try:
            root = container.config.storage.root_path
            console.print(f"[green]✓[/green] Storage ready at [cyan]{root}[/cyan]")
            console.print(f"  Machine: {container.secret_store.machine_name}")
        finally:
            container.close()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("list")
def list_secrets(
    path: Optional[Path] = typer.Argument(None, help="File or folder to list secrets of"),
):
    """List tracked secrets."""
    try:
        container = get_services()
        try:
            if path is None:
                secrets = container.secret_store.get_all_secrets()
                title = "Tracked Secrets"
            else:
                secrets = container.secret_store.list_secrets(_file_key(path), False)
                title = f"Secrets in {path}"

            if not secrets:
                console.print("[yellow]No secrets tracked.[/yellow]")
                return
            render_secrets_table(console, secrets, title)
        finally:
            container.close()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def add(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding the secret"),
    name: str = typer.Option(..., "--name", "-n", help="Secret name"),
    start: int = typer.Option(..., "--start", help="Offset of the first character of the value"),
    end: int = typer.Option(..., "--end", help="Offset just past the last character of the value"),
    managed: bool = typer.Option(
        False, "--managed/--supervised", help="Managed secrets can be stashed and unstashed"
    ),
    secret_type: str = typer.Option("unknown", "--type", "-t", help="Where the value comes from"),
    prop: Optional[List[str]] = typer.Option(
        None, "--property", "-p", help="Value provider property, as key=value"
    ),
):
    """Start tracking the text at a range of a file as a secret."""
    try:
        container = get_services()
        try:
            control_type = ControlType.MANAGED if managed else ControlType.SUPERVISED
            secret = asyncio.run(
                container.shepherd.control_secret(
                    _file_key(file),
                    start,
                    end,
                    name,
                    control_type,
                    secret_type=_parse_type(secret_type),
                    properties=_parse_properties(prop),
                )
            )
            console.print(f"[green]✓[/green] {secret.name} was added successfully.")
        finally:
            container.close()
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def insert(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to insert into"),
    name: str = typer.Option(..., "--name", "-n", help="Secret name at its source"),
    offset: int = typer.Option(..., "--offset", help="Where to insert the value"),
    secret_type: str = typer.Option(..., "--type", "-t", help="Where the value comes from"),
    prop: Optional[List[str]] = typer.Option(
        None, "--property", "-p", help="Value provider property, as key=value"
    ),
    local_name: Optional[str] = typer.Option(
        None, "--as", help="Name to track the secret under in this file"
    ),
    managed: bool = typer.Option(True, "--managed/--supervised"),
):
    """Fetch a secret value from its provider and insert it into a file."""
    try:
        container = get_services()
        try:
            reference = SecretReference(
                name=name, type=_parse_type(secret_type), properties=_parse_properties(prop)
            )
            control_type = ControlType.MANAGED if managed else ControlType.SUPERVISED
            secret = asyncio.run(
                container.shepherd.insert_secret(
                    _file_key(file), offset, reference, control_type, name=local_name
                )
            )
            console.print(f"[green]✓[/green] {secret.name} was inserted successfully.")
        finally:
            container.close()
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def forget(
    file: Path = typer.Argument(..., help="File whose secrets to forget"),
    names: Optional[List[str]] = typer.Argument(None, help="Secret names (all when omitted)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Drop secret records. Neither the secrets nor the file are touched."""
    try:
        container = get_services(assume_yes=yes)
        try:
            count = asyncio.run(container.shepherd.forget_secrets(_file_key(file), names or None))
            console.print(f"KeeShepherd: {count} secret(s) have been forgotten.")
        finally:
            container.close()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def mask(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to show"),
    mask_char: str = typer.Option("*", "--char", help="Character to hide values with"),
):
    """Print a file with its secret values hidden."""
    try:
        container = get_services()
        try:
            file_key = _file_key(file)
            text = _read_file(file)
            result = asyncio.run(container.shepherd.mask_file(file_key, text))
            console.out(render_masked(text, result.hide_ranges, mask_char), end="", highlight=False)
            if result.missing:
                console.print(
                    f"[yellow]Not found:[/yellow] {', '.join(result.missing)}", style="dim"
                )
        finally:
            container.close()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _stash_one(file: Path, stash: bool, yes: bool) -> None:
    try:
        container = get_services(assume_yes=yes)
        try:
            shepherd = container.shepherd
            run = shepherd.stash_file if stash else shepherd.unstash_file
            outcome = asyncio.run(run(_file_key(file)))
            verb = "Stashed" if stash else "Unstashed"
            console.print(f"[bold green]{verb}[/bold green] {outcome.replaced} secret(s).")
            if outcome.missing:
                console.print(f"  [yellow]![/yellow] Not found: {', '.join(outcome.missing)}")
            if outcome.unresolved:
                console.print(f"  [yellow]![/yellow] No value for: {', '.join(outcome.unresolved)}")
        finally:
            container.close()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def stash(
    file: Path = typer.Argument(..., exists=True, dir_okay=False),
    yes: bool = typer.Option(False, "--yes", "-y", help="Forget missing secrets without asking"),
):
    """Replace Managed secret values in a file with anchors."""
    _stash_one(file, True, yes)


@app.command()
def unstash(
    file: Path = typer.Argument(..., exists=True, dir_okay=False),
    yes: bool = typer.Option(False, "--yes", "-y", help="Forget missing secrets without asking"),
):
    """Replace anchors in a file with Managed secret values."""
    _stash_one(file, False, yes)


def _stash_many(folders: Optional[List[Path]], stash: bool, yes: bool) -> None:
    try:
        container = get_services(assume_yes=yes)
        try:
            keys = [_file_key(f) for f in folders or [Path.cwd()]]
            result = asyncio.run(container.shepherd.stash_workspace(keys, stash))
            render_bulk_result(console, result, "Stashed" if stash else "Unstashed")
            if not result.succeeded:
                raise typer.Exit(1)
        finally:
            container.close()
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("stash-all")
def stash_all(
    folders: Optional[List[Path]] = typer.Argument(None, help="Folders (current one when omitted)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Forget missing secrets without asking"),
):
    """Stash every tracked file under the given folders."""
    _stash_many(folders, True, yes)


@app.command("unstash-all")
def unstash_all(
    folders: Optional[List[Path]] = typer.Argument(None, help="Folders (current one when omitted)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Forget missing secrets without asking"),
):
    """Unstash every tracked file under the given folders."""
    if not yes and not typer.confirm("Secret values will be written into files. Proceed?"):
        raise typer.Abort()
    _stash_many(folders, False, yes)


@app.command("stash-pending")
def stash_pending():
    """Finish a stash-all that was interrupted."""
    try:
        container = get_services()
        try:
            result = asyncio.run(container.shepherd.stash_pending_folders())
            render_bulk_result(console, result, "Stashed")
            if not result.succeeded:
                raise typer.Exit(1)
        finally:
            container.close()
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def resolve(file: Path = typer.Argument(..., exists=True, dir_okay=False)):
    """Register anchors in a file that name secrets known from other files."""
    try:
        container = get_services()
        try:
            result = asyncio.run(container.shepherd.resolve_anchors(_file_key(file)))
            if result.resolved:
                console.print(
                    f"[green]✓[/green] Resolved the following secrets: {', '.join(result.resolved)}"
                )
            for name in result.unresolved:
                console.print(
                    f"[yellow]![/yellow] Could not automatically resolve {name}. Insert it manually."
                )
            if not result.resolved and not result.unresolved:
                console.print("[yellow]Nothing to resolve.[/yellow]")
        finally:
            container.close()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def locate(
    file: Path = typer.Argument(..., exists=True, dir_okay=False),
    name: str = typer.Argument(..., help="Secret name"),
):
    """Print where a secret currently sits in a file."""
    try:
        container = get_services()
        try:
            location = asyncio.run(container.shepherd.locate_secret(_file_key(file), name))
            if location is None:
                console.print(f"[yellow]{name} was not found in {file}.[/yellow]")
                raise typer.Exit(1)

            text = _read_file(file)
            line = text.count("\n", 0, location.range.start) + 1
            column = location.range.start - (text.rfind("\n", 0, location.range.start) + 1) + 1
            state = "stashed" if location.stashed else "unstashed"
            console.print(
                f"{name}: line {line}, column {column} "
                f"(offset {location.range.start}, {location.range.length} chars, {state})"
            )
        finally:
            container.close()
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def rotate(
    old_value: str = typer.Option(
        ..., "--old", prompt="Current value", hide_input=True, help="Value being replaced"
    ),
    new_value: str = typer.Option(
        ..., "--new", prompt="New value", hide_input=True, help="Value replacing it"
    ),
):
    """Point every record of a secret value at its new value."""
    try:
        container = get_services()
        try:
            count = asyncio.run(container.shepherd.rotate_secret(old_value, new_value))
            console.print(f"[green]✓[/green] Updated {count} secret record(s).")
        finally:
            container.close()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("store-value")
def store_value(
    key: str = typer.Argument(..., help="Secret storage key"),
    value: str = typer.Option(..., "--value", prompt=True, hide_input=True),
):
    """Put a value into the local secret storage."""
    try:
        container = get_services()
        try:
            container.secret_storage.store_value(key, value)
            console.print(f"[green]✓[/green] Stored {key}.")
        finally:
            container.close()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
