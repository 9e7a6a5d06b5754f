from __future__ import annotations

from taskorch.config.schema import OrchestratorConfig, ShellCommand, TaskSpec
from taskorch.dag.filter import PRESET_TAGS, filter_tasks, tasks_with_tag


def _task(task_id: str, environment: str = "both", tags: tuple[str, ...] = ()) -> TaskSpec:
    return TaskSpec(
        id=task_id,
        command=ShellCommand("true"),
        environment=environment,  # type: ignore[arg-type]
        tags=tags,
    )


CATALOG = [
    _task("docker-smoke", "docker", ("agent", "smoke")),
    _task("qemu-smoke", "qemu", ("agent", "smoke")),
    _task("cross", "both", ("metrics",)),
    _task("perf", "docker", ("performance",)),
]


def _ids(tasks: list[TaskSpec]) -> list[str]:
    return [task.id for task in tasks]


def test_filter_tasks_wildcard_environment_keeps_everything() -> None:
    assert _ids(filter_tasks(CATALOG, OrchestratorConfig())) == _ids(CATALOG)


def test_filter_tasks_by_environment_keeps_wildcard_tasks() -> None:
    config = OrchestratorConfig(environments=["docker"])
    assert _ids(filter_tasks(CATALOG, config)) == ["docker-smoke", "cross", "perf"]


def test_filter_tasks_with_empty_environment_list_matches_all() -> None:
    config = OrchestratorConfig(environments=[])
    assert len(filter_tasks(CATALOG, config)) == len(CATALOG)


def test_filter_tasks_include_and_exclude_tags() -> None:
    config = OrchestratorConfig(tags=["agent", "performance"], exclude_tags=["smoke"])
    assert _ids(filter_tasks(CATALOG, config)) == ["perf"]


def test_filter_tasks_can_return_empty_selection() -> None:
    config = OrchestratorConfig(environments=["qemu"], tags=["performance"])
    assert filter_tasks(CATALOG, config) == []


def test_tasks_with_tag_supports_presets() -> None:
    assert _ids(tasks_with_tag(CATALOG, PRESET_TAGS["smoke"])) == ["docker-smoke", "qemu-smoke"]
    assert tasks_with_tag(CATALOG, PRESET_TAGS["prereq"]) == []
