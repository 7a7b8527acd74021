from __future__ import annotations

import json
import sys
from typing import Any

from rich.console import Console
from rich.table import Table

from mcserve.container import ContainerError

console = Console()


def _emit_envelope(action: str, data: Any = None, error: dict[str, str] | None = None) -> None:
    envelope: dict[str, Any] = {"ok": error is None, "action": action, "data": data, "error": error}
    json.dump(envelope, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def _rows_table(rows: list[dict[str, Any]], title: str | None) -> Table:
    table = Table(title=title)
    for key in rows[0]:
        table.add_column(key.replace("_", " ").title())
    for row in rows:
        table.add_row(*[str(v) for v in row.values()])
    return table


def output(
    data: dict[str, Any] | list[dict[str, Any]],
    *,
    action: str,
    json_mode: bool = False,
    title: str | None = None,
    empty_message: str = "Nothing to show.",
) -> None:
    """Print a command result: one record as key/value lines, many as a table."""
    if json_mode:
        _emit_envelope(action, data=data)
    elif isinstance(data, dict):
        for key, value in data.items():
            console.print(f"[bold]{key}:[/bold] {value}")
    elif data:
        console.print(_rows_table(data, title))
    else:
        console.print(f"[yellow]{empty_message}[/yellow]")


def output_error(error: ContainerError, *, action: str, json_mode: bool = False, exit_code: int = 1) -> None:
    """Report a runtime failure with its remediation text and exit."""
    hint = error.remediation or ""
    if json_mode:
        _emit_envelope(action, error={"type": type(error).__name__, "message": str(error), "hint": hint})
    else:
        console.print(f"[red]Error: {error}[/red]")
        if hint:
            console.print(f"[yellow]{hint}[/yellow]")
    raise SystemExit(exit_code)
