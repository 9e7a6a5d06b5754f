from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from taskorch.config.schema import OrchestratorConfig, TaskSpec
from taskorch.state.model import ResultStore, TaskResult

logger = logging.getLogger(__name__)

TaskRunner = Callable[[TaskSpec], Awaitable[TaskResult]]


def batch_tasks(phase: list[TaskSpec], batch_size: int) -> list[list[TaskSpec]]:
    """Split a phase into consecutive batches; non-parallel tasks get a batch of their own."""
    batches: list[list[TaskSpec]] = []
    current: list[TaskSpec] = []
    for task in phase:
        if not task.parallel:
            if current:
                batches.append(current)
                current = []
            batches.append([task])
            continue
        current.append(task)
        if len(current) >= batch_size:
            batches.append(current)
            current = []
    if current:
        batches.append(current)
    return batches


async def execute_phase(
    phase: list[TaskSpec],
    results: ResultStore,
    *,
    config: OrchestratorConfig,
    run_task: TaskRunner,
) -> bool:
    """Run one phase.

    A sequential phase always runs every task; fail-fast only takes effect
    between phases. In parallel mode fail-fast is also checked between
    batches, and tasks of unstarted batches keep their pending results.
    Returns False when fail-fast stopped the phase early.
    """
    logger.info("Executing phase with %d tasks", len(phase))
    for task in phase:
        results.schedule(task)

    if not config.parallel or len(phase) <= 1:
        for task in phase:
            await run_task(task)
        return True

    batches = batch_tasks(phase, config.max_parallel)
    for index, batch in enumerate(batches):
        if len(batch) == 1:
            await run_task(batch[0])
        else:
            await asyncio.gather(*(run_task(task) for task in batch))
        is_last = index == len(batches) - 1
        if config.fail_fast and not is_last and results.has_failures():
            logger.warning("Fail-fast mode enabled, stopping phase after batch %d", index + 1)
            return False
    return True
