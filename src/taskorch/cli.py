from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from taskorch.config.loader import load_catalog
from taskorch.config.schema import Catalog, OrchestratorConfig, TaskSpec
from taskorch.dag.build import build_execution_plan
from taskorch.dag.filter import PRESET_TAGS, filter_tasks, tasks_with_tag
from taskorch.orchestrator import Orchestrator
from taskorch.util.errors import (
    CatalogError,
    ConfigurationError,
    DependencyError,
    OrchError,
    PlanInvariantError,
    PrerequisiteError,
)

app = typer.Typer(help="Dependency-aware task orchestrator")
console = Console()

EXIT_FATAL = 2
EXIT_FAILED = 3

CatalogArg = Annotated[Path, typer.Argument(exists=True, dir_okay=False)]
EnvOpt = Annotated[list[str] | None, typer.Option("--env", help="docker, qemu or both")]
TagOpt = Annotated[list[str] | None, typer.Option("--tag")]
ExcludeTagOpt = Annotated[list[str] | None, typer.Option("--exclude-tag")]
PresetOpt = Annotated[str | None, typer.Option("--preset", help="smoke, prereq or performance")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_catalog_or_exit(path: Path, *, timeout_sec: float, retries: int) -> Catalog:
    try:
        return load_catalog(path, default_timeout_sec=timeout_sec, default_retries=retries)
    except (CatalogError, DependencyError) as exc:
        console.print(f"[red]Catalog validation error:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FATAL) from exc


def _apply_preset(tasks: list[TaskSpec], preset: str | None) -> list[TaskSpec]:
    if preset is None:
        return tasks
    if preset not in PRESET_TAGS:
        console.print(f"[red]Unknown preset:[/red] {preset} (choose from {sorted(PRESET_TAGS)})")
        raise typer.Exit(EXIT_FATAL)
    console.print(f"Running {preset} tasks only")
    return tasks_with_tag(tasks, PRESET_TAGS[preset])


def _print_plan(plan: list[list[TaskSpec]]) -> None:
    table = Table(title="Dry Run - Execution Plan")
    table.add_column("phase", justify="right")
    table.add_column("task_id")
    table.add_column("environment")
    table.add_column("parallel")
    for idx, phase in enumerate(plan, start=1):
        for task in phase:
            table.add_row(str(idx), task.id, task.environment, "yes" if task.parallel else "no")
    console.print(table)


@app.command()
def run(
    catalog_path: CatalogArg,
    env: EnvOpt = None,
    tag: TagOpt = None,
    exclude_tag: ExcludeTagOpt = None,
    preset: PresetOpt = None,
    parallel: Annotated[bool, typer.Option("--parallel/--sequential")] = True,
    max_parallel: Annotated[int, typer.Option("--max-parallel", min=1)] = 3,
    fail_fast: Annotated[bool, typer.Option("--fail-fast/--no-fail-fast")] = False,
    retries: Annotated[int, typer.Option("--retries", min=0)] = 1,
    timeout_sec: Annotated[float, typer.Option("--timeout-sec")] = 600.0,
    retry_backoff_sec: Annotated[float, typer.Option("--retry-backoff-sec")] = 2.0,
    verbose: Annotated[bool, typer.Option("--verbose")] = False,
    workdir: Annotated[Path, typer.Option("--workdir", file_okay=False)] = Path("."),
    fixtures_dir: Annotated[Path | None, typer.Option("--fixtures-dir")] = None,
    report_dir: Annotated[Path | None, typer.Option("--report-dir")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run")] = False,
) -> None:
    _configure_logging(verbose)
    config = OrchestratorConfig(
        parallel=parallel,
        max_parallel=max_parallel,
        fail_fast=fail_fast,
        retries=retries,
        timeout_sec=timeout_sec,
        environments=env or ["both"],
        tags=tag or [],
        exclude_tags=exclude_tag or [],
        verbose=verbose,
        retry_backoff_sec=retry_backoff_sec,
    )
    try:
        config.validate()
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FATAL) from exc

    catalog = _load_catalog_or_exit(catalog_path, timeout_sec=timeout_sec, retries=retries)
    tasks = _apply_preset(catalog.tasks, preset)

    if dry_run:
        try:
            phases = build_execution_plan(filter_tasks(tasks, config))
        except (DependencyError, PlanInvariantError) as exc:
            console.print(f"[red]Plan error:[/red] {escape(str(exc))}")
            raise typer.Exit(EXIT_FATAL) from exc
        _print_plan(phases)
        raise typer.Exit(0)

    orchestrator = Orchestrator(
        config,
        workdir=workdir,
        fixtures_dir=fixtures_dir,
        report_dir=report_dir,
        infrastructure=catalog.infrastructure,
        console=console,
    )
    try:
        orchestrator.load_tasks(tasks)
        results = asyncio.run(orchestrator.run())
    except PrerequisiteError as exc:
        console.print(f"[red]Prerequisite check failed:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FATAL) from exc
    except DependencyError as exc:
        console.print(f"[red]Dependency error:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FATAL) from exc
    except OrchError as exc:
        console.print(f"[red]Fatal error during execution:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FATAL) from exc

    if orchestrator.report_paths is not None:
        console.print(f"report: {orchestrator.report_paths.json}")
    failed = sum(1 for result in results if result.status == "failed")
    raise typer.Exit(EXIT_FAILED if failed > 0 else 0)


@app.command()
def plan(
    catalog_path: CatalogArg,
    env: EnvOpt = None,
    tag: TagOpt = None,
    exclude_tag: ExcludeTagOpt = None,
    preset: PresetOpt = None,
) -> None:
    """Print the phases a run would execute."""
    config = OrchestratorConfig(
        environments=env or ["both"],
        tags=tag or [],
        exclude_tags=exclude_tag or [],
    )
    try:
        config.validate()
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FATAL) from exc
    catalog = _load_catalog_or_exit(catalog_path, timeout_sec=config.timeout_sec, retries=0)
    tasks = _apply_preset(catalog.tasks, preset)
    try:
        phases = build_execution_plan(filter_tasks(tasks, config))
    except (DependencyError, PlanInvariantError) as exc:
        console.print(f"[red]Plan error:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_FATAL) from exc
    _print_plan(phases)


@app.command("list")
def list_tasks(catalog_path: CatalogArg) -> None:
    """List catalog tasks grouped by their first tag."""
    catalog = _load_catalog_or_exit(catalog_path, timeout_sec=600.0, retries=0)
    grouped: dict[str, list[TaskSpec]] = {}
    for task in catalog.tasks:
        category = task.tags[0] if task.tags else "other"
        grouped.setdefault(category, []).append(task)

    for category in sorted(grouped):
        table = Table(title=category.upper())
        table.add_column("task_id")
        table.add_column("environment")
        table.add_column("timeout_sec", justify="right")
        table.add_column("deps", justify="right")
        table.add_column("mode")
        table.add_column("description")
        for task in grouped[category]:
            table.add_row(
                task.id,
                task.environment,
                f"{task.timeout_sec:g}",
                str(len(task.dependencies)),
                "parallel" if task.parallel else "sequential",
                escape(task.description),
            )
        console.print(table)
    console.print(f"Total: {len(catalog.tasks)} tasks")


if __name__ == "__main__":
    app()
