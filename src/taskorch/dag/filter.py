"""Select the tasks a run should schedule."""

from __future__ import annotations

from taskorch.config.schema import ANY_ENVIRONMENT, OrchestratorConfig, TaskSpec

PRESET_TAGS: dict[str, str] = {
    "smoke": "smoke",
    "prereq": "prerequisites",
    "performance": "performance",
}


def environment_matches(task_environment: str, requested: list[str]) -> bool:
    if not requested:
        return True
    return any(
        env == ANY_ENVIRONMENT or task_environment == ANY_ENVIRONMENT or env == task_environment
        for env in requested
    )


def filter_tasks(tasks: list[TaskSpec], config: OrchestratorConfig) -> list[TaskSpec]:
    """Return tasks matching environment, include-tag and exclude-tag criteria, in order."""
    selected: list[TaskSpec] = []
    for task in tasks:
        if not environment_matches(task.environment, config.environments):
            continue
        if config.tags and not any(tag in task.tags for tag in config.tags):
            continue
        if any(tag in task.tags for tag in config.exclude_tags):
            continue
        selected.append(task)
    return selected


def tasks_with_tag(tasks: list[TaskSpec], tag: str) -> list[TaskSpec]:
    return [task for task in tasks if tag in task.tags]
