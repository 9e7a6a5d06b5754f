from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from taskorch.config.loader import load_catalog, normalize_action, parse_catalog
from taskorch.config.schema import ExecCommand, ShellCommand
from taskorch.util.errors import CatalogError, DependencyError


def _write(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")
    return path


def test_load_catalog_parses_tasks_and_infrastructure(tmp_path: Path) -> None:
    catalog_path = _write(
        tmp_path / "catalog.yaml",
        """
        infrastructure:
          required_tools: ["sh"]
          probes:
            docker: "docker info"
          teardown:
            - "docker compose down"
          probe_timeout_sec: 5
        tasks:
          - id: build-agent
            name: Build Agent
            environment: docker
            timeout_sec: 300
            retries: 1
            tags: [build, docker]
            parallel: false
            command: ["cargo", "build"]
          - id: agent-connect
            environment: docker
            dependencies: [build-agent]
            fixtures: [test-credentials]
            setup: "docker compose up -d"
            teardown: "docker compose down"
            command: "tests/run.sh"
        """,
    )

    catalog = load_catalog(catalog_path, default_timeout_sec=42.0, default_retries=2)
    build, connect = catalog.tasks
    assert build.name == "Build Agent"
    assert build.command == ExecCommand(("cargo", "build"))
    assert build.timeout_sec == 300.0
    assert build.parallel is False
    assert connect.name == "agent-connect"
    assert connect.timeout_sec == 42.0
    assert connect.retries == 2
    assert connect.setup == ShellCommand("docker compose up -d")
    assert connect.dependencies == ("build-agent",)
    assert connect.fixtures == ("test-credentials",)
    assert catalog.infrastructure.required_tools == ["sh"]
    assert catalog.infrastructure.probes == {"docker": ShellCommand("docker info")}
    assert catalog.infrastructure.probe_timeout_sec == 5.0


def test_parse_catalog_rejects_unknown_task_fields() -> None:
    with pytest.raises(CatalogError, match="unknown fields"):
        parse_catalog({"tasks": [{"id": "a", "command": "true", "cmd": "x"}]})


def test_parse_catalog_rejects_duplicate_ids() -> None:
    with pytest.raises(CatalogError, match="unique"):
        parse_catalog({"tasks": [{"id": "a", "command": "true"}, {"id": "a", "command": "true"}]})


@pytest.mark.parametrize(
    ("task", "message"),
    [
        ({"id": "a", "command": "true", "environment": "vm"}, "environment"),
        ({"id": "a", "command": "true", "retries": -1}, "retries"),
        ({"id": "a", "command": "true", "timeout_sec": 0}, "timeout_sec"),
        ({"id": "a", "command": ""}, "command"),
        ({"id": "a"}, "missing command"),
        ({"id": "../a", "command": "true"}, "task.id"),
    ],
)
def test_parse_catalog_rejects_invalid_task_values(task: dict[str, object], message: str) -> None:
    with pytest.raises(CatalogError, match=message):
        parse_catalog({"tasks": [task]})


def test_parse_catalog_rejects_unknown_and_self_dependencies() -> None:
    with pytest.raises(DependencyError, match="unknown dependencies"):
        parse_catalog({"tasks": [{"id": "a", "command": "true", "dependencies": ["z"]}]})
    with pytest.raises(DependencyError, match="itself"):
        parse_catalog({"tasks": [{"id": "a", "command": "true", "dependencies": ["a"]}]})


def test_load_catalog_reports_missing_file_and_bad_yaml(tmp_path: Path) -> None:
    with pytest.raises(CatalogError, match="not found"):
        load_catalog(tmp_path / "missing.yaml")
    bad = _write(tmp_path / "bad.yaml", "tasks: [unclosed")
    with pytest.raises(CatalogError, match="failed to parse yaml"):
        load_catalog(bad)


def test_normalize_action_distinguishes_shell_lines_and_argv() -> None:
    assert normalize_action("echo hi") == ShellCommand("echo hi")
    assert normalize_action(["echo", "hi"]) == ExecCommand(("echo", "hi"))
    with pytest.raises(CatalogError):
        normalize_action([])
