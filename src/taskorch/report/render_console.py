from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table


def print_summary(summary: dict[str, Any], console: Console | None = None) -> None:
    console = console or Console()
    table = Table(title="E2E Test Results Summary", show_header=False)
    table.add_column("metric")
    table.add_column("value", justify="right")
    table.add_row("Total", str(summary["total"]))
    table.add_row("Passed", f"{summary['passed']} ({summary['passRate']:.1f}%)")
    table.add_row("Failed", str(summary["failed"]))
    table.add_row("Skipped", str(summary["skipped"]))
    table.add_row("Duration", f"{summary['duration']:.2f}s")
    console.print(table)
    if summary["success"]:
        console.print("Status: [bold green]SUCCESS[/bold green]")
    else:
        console.print("Status: [bold red]FAILURE[/bold red]")


def print_results(results: list[dict[str, Any]], console: Console | None = None) -> None:
    console = console or Console()
    table = Table(title="Task Results")
    table.add_column("id")
    table.add_column("environment")
    table.add_column("status")
    table.add_column("attempts", justify="right")
    table.add_column("duration_sec", justify="right")
    for row in results:
        table.add_row(
            escape(row["id"]),
            row["environment"],
            row["status"],
            str(row["attempts"]),
            f"{row['duration']:.2f}",
        )
    console.print(table)
