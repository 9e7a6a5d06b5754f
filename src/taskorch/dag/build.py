"""Partition tasks into dependency-ordered phases."""

from __future__ import annotations

from taskorch.config.schema import TaskSpec
from taskorch.util.errors import CircularDependencyError, PlanInvariantError


def build_execution_plan(tasks: list[TaskSpec]) -> list[list[TaskSpec]]:
    """Return phases whose dependencies are all satisfied by earlier phases.

    Each round places every remaining task whose dependencies are resolved,
    sorted by id. A round that places nothing while tasks remain means the
    rest form a cycle or wait on ids that are not part of ``tasks``.
    """
    plan: list[list[TaskSpec]] = []
    resolved: set[str] = set()
    remaining = {task.id: task for task in tasks}
    max_iterations = len(tasks) * 2
    iterations = 0

    while remaining:
        if iterations >= max_iterations:
            raise PlanInvariantError(
                f"plan building exceeded {max_iterations} iterations "
                f"with {len(remaining)} tasks remaining"
            )
        iterations += 1

        phase = sorted(
            (
                task
                for task in remaining.values()
                if all(dep in resolved for dep in task.dependencies)
            ),
            key=lambda task: task.id,
        )
        if not phase:
            known = {task.id for task in tasks}
            missing = {
                dep for task in remaining.values() for dep in task.dependencies if dep not in known
            }
            raise CircularDependencyError(list(remaining), sorted(missing))

        for task in phase:
            resolved.add(task.id)
            del remaining[task.id]
        plan.append(phase)

    return plan
