from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from taskorch.config.schema import OrchestratorConfig, TaskSpec
from taskorch.exec.process import ActionOutcome, run_action
from taskorch.exec.retry import backoff_for_attempt
from taskorch.state.model import ResultStore, TaskResult
from taskorch.util.time import duration_sec, now, to_iso

logger = logging.getLogger(__name__)


def _attempt_header(attempt: int, max_attempts: int) -> str:
    return f"===== attempt {attempt} / {max_attempts} =====\n"


async def _run_attempt(task: TaskSpec, *, config: OrchestratorConfig, workdir: Path) -> ActionOutcome:
    setup_output = ""
    if task.setup is not None:
        setup = await run_action(
            task.setup, timeout_sec=task.timeout_sec, cwd=workdir, verbose=config.verbose
        )
        if not setup.succeeded:
            return ActionOutcome(
                exit_code=setup.exit_code,
                timed_out=setup.timed_out,
                start_failed=setup.start_failed,
                output=setup.output,
                error=f"Setup failed: {setup.error}",
            )
        setup_output = setup.output

    outcome = await run_action(
        task.command, timeout_sec=task.timeout_sec, cwd=workdir, verbose=config.verbose
    )
    outcome.output = setup_output + outcome.output
    return outcome


async def _run_teardown(task: TaskSpec, *, config: OrchestratorConfig, workdir: Path) -> None:
    assert task.teardown is not None
    try:
        outcome = await run_action(
            task.teardown, timeout_sec=task.timeout_sec, cwd=workdir, verbose=config.verbose
        )
    except Exception as exc:  # teardown never changes the task outcome
        logger.warning("Teardown failed for %s: %s", task.display_name, exc)
        return
    if not outcome.succeeded:
        logger.warning("Teardown failed for %s: %s", task.display_name, outcome.error)


async def execute_task(
    task: TaskSpec,
    results: ResultStore,
    *,
    config: OrchestratorConfig,
    workdir: Path,
) -> TaskResult:
    """Run setup, command and teardown with retries; failures land in the result."""
    result = results.schedule(task)
    started_dt = now()
    result.status = "running"
    result.started_at = to_iso(started_dt)
    logger.info("Running: %s", task.display_name)

    max_attempts = task.retries + 1
    output_parts: list[str] = []
    try:
        for attempt in range(1, max_attempts + 1):
            result.attempts = attempt
            output_parts.append(_attempt_header(attempt, max_attempts))
            try:
                outcome = await _run_attempt(task, config=config, workdir=workdir)
                output_parts.append(outcome.output)
            finally:
                if task.teardown is not None:
                    await _run_teardown(task, config=config, workdir=workdir)

            result.exit_code = outcome.exit_code
            result.timed_out = outcome.timed_out
            if outcome.succeeded:
                result.status = "passed"
                result.error = None
                break

            result.error = outcome.error
            if attempt < max_attempts:
                delay = backoff_for_attempt(
                    attempt - 1, task.retry_backoff_sec, config.retry_backoff_sec
                )
                logger.warning(
                    "Failed: %s (attempt %d/%d), retrying in %.1fs",
                    task.display_name,
                    attempt,
                    max_attempts,
                    delay,
                )
                await asyncio.sleep(delay)
            else:
                result.status = "failed"
    except Exception as exc:
        logger.exception("Runner exception for %s", task.display_name)
        result.status = "failed"
        result.error = f"runner exception: {exc}"
    finally:
        ended_dt = now()
        result.ended_at = to_iso(ended_dt)
        result.duration_sec = duration_sec(started_dt, ended_dt)
        result.output = "".join(output_parts)

    if result.status == "passed":
        logger.info("Passed: %s (%.2fs)", task.display_name, result.duration_sec)
    else:
        logger.error("Failed: %s after %d attempts", task.display_name, result.attempts)
    return result
