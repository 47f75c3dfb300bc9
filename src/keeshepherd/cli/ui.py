"""
UI helpers for the KeeShepherd CLI.

Rich tables and logging setup shared by the commands.
"""

import logging
from datetime import datetime
from typing import Iterable

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from keeshepherd.core.config import LoggingConfig
from keeshepherd.core.models import Secret
from keeshepherd.services import BulkStashResult


def configure_logging(config: LoggingConfig, console: Console) -> None:
    """Route log records to the console through RichHandler."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(config.level.upper())


def timestamp_to_string(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def render_secrets_table(console: Console, secrets: Iterable[Secret], title: str) -> None:
    table = Table(title=title, border_style="blue")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Control", style="green")
    table.add_column("Type", style="magenta")
    table.add_column("File", style="white")
    table.add_column("Length", justify="right")
    table.add_column("Added", style="yellow", no_wrap=True)

    for secret in secrets:
        table.add_row(
            secret.name,
            secret.control_type.name.lower(),
            secret.type.name.lower(),
            secret.file_path,
            str(secret.length),
            timestamp_to_string(secret.timestamp),
        )

    console.print(table)


def render_bulk_result(console: Console, result: BulkStashResult, verb: str) -> None:
    console.print(
        f"[bold green]{verb}[/bold green] {result.secrets_replaced} secret(s) "
        f"in {result.files_changed} file(s)."
    )
    for outcome in result.outcomes:
        if outcome.missing:
            console.print(
                f"  [yellow]![/yellow] {outcome.file_path}: not found: {', '.join(outcome.missing)}"
            )
        if outcome.unresolved:
            console.print(
                f"  [yellow]![/yellow] {outcome.file_path}: no value for: "
                f"{', '.join(outcome.unresolved)}"
            )
    for file_path, error in result.failures.items():
        console.print(f"  [red]✗[/red] {file_path}: {error}")
