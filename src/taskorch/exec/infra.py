"""Global setup and teardown around a run."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from taskorch.config.schema import ANY_ENVIRONMENT, ENVIRONMENT_VALUES, InfrastructureSpec, TaskSpec
from taskorch.exec.process import run_action
from taskorch.util.errors import PrerequisiteError

logger = logging.getLogger(__name__)


def needed_environments(tasks: list[TaskSpec]) -> set[str]:
    """Environments whose probes must pass before these tasks can run."""
    needed: set[str] = set()
    for task in tasks:
        if task.environment == ANY_ENVIRONMENT:
            needed.update(ENVIRONMENT_VALUES)
        else:
            needed.update({task.environment, ANY_ENVIRONMENT})
    return needed


async def setup_infrastructure(
    infra: InfrastructureSpec,
    tasks: list[TaskSpec],
    *,
    workdir: Path,
    verbose: bool = False,
) -> None:
    logger.info("Checking prerequisites...")
    for tool in infra.required_tools:
        if shutil.which(tool) is None:
            raise PrerequisiteError(f"required tool not found on PATH: {tool}")

    for env in sorted(needed_environments(tasks) & infra.probes.keys()):
        probe = infra.probes[env]
        logger.info("Checking %s availability...", env)
        outcome = await run_action(
            probe,
            timeout_sec=infra.probe_timeout_sec,
            cwd=workdir,
            verbose=verbose,
        )
        if not outcome.succeeded:
            raise PrerequisiteError(f"{env} is not available: {outcome.error}")


async def teardown_infrastructure(
    infra: InfrastructureSpec,
    *,
    workdir: Path,
    verbose: bool = False,
) -> None:
    """Run every cleanup action; failures are logged and never raised."""
    if not infra.teardown:
        return
    logger.info("Cleaning up test infrastructure...")
    for action in infra.teardown:
        try:
            outcome = await run_action(
                action,
                timeout_sec=infra.probe_timeout_sec,
                cwd=workdir,
                verbose=verbose,
            )
        except Exception as exc:
            logger.warning("Teardown action failed: %s: %s", action.describe(), exc)
            continue
        if not outcome.succeeded:
            logger.warning("Teardown action failed: %s: %s", action.describe(), outcome.error)
