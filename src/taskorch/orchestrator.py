"""Top-level coordinator: filter, fixtures, setup, phases, teardown, reports."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from rich.console import Console

from taskorch.config.schema import InfrastructureSpec, OrchestratorConfig, TaskSpec
from taskorch.dag.build import build_execution_plan
from taskorch.dag.filter import filter_tasks
from taskorch.exec.infra import setup_infrastructure, teardown_infrastructure
from taskorch.exec.phase import execute_phase
from taskorch.exec.task_runner import execute_task
from taskorch.fixtures.store import FixtureStore, required_fixtures
from taskorch.report.render_console import print_results, print_summary
from taskorch.report.summarize import build_json_report
from taskorch.report.writer import ReportPaths, new_report_stamp, write_reports
from taskorch.state.model import ResultStore, TaskResult
from taskorch.util.errors import CatalogError
from taskorch.util.time import duration_sec, now, to_iso

logger = logging.getLogger(__name__)

DEFAULT_FIXTURES_DIR = Path("tests") / "e2e" / "fixtures"
DEFAULT_REPORT_DIR = Path("test-results") / "e2e"


class Orchestrator:
    """Runs a task catalog once and reports the outcome.

    Fatal errors (configuration, dependency cycles, missing prerequisites)
    propagate out of :meth:`run` after global teardown; task failures are
    recorded in the returned results.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        workdir: Path = Path("."),
        fixtures_dir: Path | None = None,
        report_dir: Path | None = None,
        infrastructure: InfrastructureSpec | None = None,
        console: Console | None = None,
    ) -> None:
        self.config = config or OrchestratorConfig()
        self.workdir = workdir.resolve()
        self.fixtures = FixtureStore(fixtures_dir or self.workdir / DEFAULT_FIXTURES_DIR)
        self.report_dir = report_dir or self.workdir / DEFAULT_REPORT_DIR
        self.infrastructure = infrastructure or InfrastructureSpec()
        self.console = console or Console()
        self.plan: list[list[TaskSpec]] = []
        self.report_paths: ReportPaths | None = None
        self._tasks: dict[str, TaskSpec] = {}

    @property
    def tasks(self) -> list[TaskSpec]:
        return list(self._tasks.values())

    def register_task(self, task: TaskSpec) -> None:
        if task.id in self._tasks:
            raise CatalogError(f"task already registered: {task.id}")
        self._tasks[task.id] = task
        logger.debug("Registered task: %s (%s)", task.display_name, task.environment)

    def load_tasks(self, tasks: Iterable[TaskSpec]) -> None:
        for task in tasks:
            self.register_task(task)

    async def run(self, tasks: Iterable[TaskSpec] | None = None) -> list[TaskResult]:
        self.config.validate()
        catalog = list(tasks) if tasks is not None else self.tasks
        started_dt = now()
        results = ResultStore()
        self.plan = []
        self.report_paths = None
        logger.info("Starting task orchestration...")

        filtered = filter_tasks(catalog, self.config)
        logger.info("Running %d of %d registered tasks", len(filtered), len(catalog))
        self.fixtures.load(required_fixtures(filtered))

        try:
            await setup_infrastructure(
                self.infrastructure,
                filtered,
                workdir=self.workdir,
                verbose=self.config.verbose,
            )
            self.plan = build_execution_plan(filtered)
            logger.info("Execution plan: %d phases", len(self.plan))
            await self._execute_plan(results)
        finally:
            await teardown_infrastructure(
                self.infrastructure,
                workdir=self.workdir,
                verbose=self.config.verbose,
            )
            self.fixtures.clear()

        ended_dt = now()
        ordered = [results.get(task.id) for phase in self.plan for task in phase]
        self._report(ordered, started_dt=started_dt, ended_dt=ended_dt)
        return ordered

    async def _execute_plan(self, results: ResultStore) -> None:
        async def _run(task: TaskSpec) -> TaskResult:
            return await execute_task(task, results, config=self.config, workdir=self.workdir)

        for phase in self.plan:
            await execute_phase(phase, results, config=self.config, run_task=_run)
            if self.config.fail_fast and results.has_failures():
                logger.warning("Fail-fast mode enabled, stopping execution")
                break

        for phase in self.plan:
            for task in phase:
                if task.id not in results or not results.get(task.id).is_terminal:
                    results.mark_skipped(task, "fail_fast")

    def _report(
        self, results: list[TaskResult], *, started_dt: datetime, ended_dt: datetime
    ) -> None:
        logger.info("Generating test reports...")
        report = build_json_report(
            results,
            self.config,
            started_at=to_iso(started_dt),
            ended_at=to_iso(ended_dt),
            duration_sec=duration_sec(started_dt, ended_dt),
        )
        if results:
            print_results(report["results"], self.console)
        print_summary(report["summary"], self.console)
        try:
            self.report_paths = write_reports(
                self.report_dir,
                report,
                results,
                stamp=new_report_stamp(ended_dt),
            )
        except (OSError, RuntimeError) as exc:
            logger.warning("failed to write reports to %s: %s", self.report_dir, exc)
