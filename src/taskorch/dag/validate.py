"""Dependency validation helpers."""

from __future__ import annotations

from taskorch.config.schema import TaskSpec
from taskorch.util.errors import DependencyError


def validate_dependencies(tasks: list[TaskSpec]) -> None:
    """Check every dependency names another task of the same catalog."""
    known = {task.id for task in tasks}
    for task in tasks:
        if task.id in task.dependencies:
            raise DependencyError(f"task '{task.id}' must not depend on itself")
        if len(set(task.dependencies)) != len(task.dependencies):
            raise DependencyError(f"task '{task.id}' has duplicate dependencies")
        unknown = sorted(dep for dep in task.dependencies if dep not in known)
        if unknown:
            raise DependencyError(f"task '{task.id}' has unknown dependencies: {unknown}")
