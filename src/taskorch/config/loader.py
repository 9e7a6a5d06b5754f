from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any

import yaml

from taskorch.config.schema import (
    ENVIRONMENT_VALUES,
    Action,
    Catalog,
    ExecCommand,
    InfrastructureSpec,
    ShellCommand,
    TaskSpec,
)
from taskorch.dag.validate import validate_dependencies
from taskorch.util.errors import CatalogError
from taskorch.util.fs import plain_file_problem

_SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_TASK_ID_MAX_LEN = 128
_ALLOWED_CATALOG_KEYS = {"tasks", "infrastructure"}
_ALLOWED_INFRA_KEYS = {"required_tools", "probes", "teardown", "probe_timeout_sec"}
_ALLOWED_TASK_KEYS = {
    "id",
    "name",
    "description",
    "environment",
    "timeout_sec",
    "retries",
    "dependencies",
    "tags",
    "fixtures",
    "parallel",
    "command",
    "setup",
    "teardown",
    "retry_backoff_sec",
}


def _is_finite_real_number(value: object) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return math.isfinite(value)


def _is_non_blank_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip()) and "\x00" not in value


def _is_safe_id(value: object) -> bool:
    return isinstance(value, str) and _SAFE_ID_PATTERN.fullmatch(value) is not None


def normalize_action(raw: str | list[str], *, field_name: str = "command") -> Action:
    """A string is a shell line, a list of strings is an argv."""
    if isinstance(raw, str):
        if not _is_non_blank_str(raw):
            raise CatalogError(f"{field_name} string must not be empty")
        return ShellCommand(raw)
    if isinstance(raw, list) and raw and all(_is_non_blank_str(p) for p in raw):
        return ExecCommand(tuple(raw))
    raise CatalogError(f"{field_name} must be str or non-empty list[str]")


def _optional_action(raw: Any, field_name: str) -> Action | None:
    if raw is None:
        return None
    return normalize_action(raw, field_name=field_name)


def _ensure_list_str(name: str, value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(_is_non_blank_str(v) for v in value):
        raise CatalogError(f"{name} must be list of non-empty strings")
    return tuple(value)


def _parse_task(raw: Any, *, default_timeout_sec: float, default_retries: int) -> TaskSpec:
    if not isinstance(raw, dict):
        raise CatalogError("task must be mapping")
    if any(not isinstance(key, str) for key in raw):
        raise CatalogError("task fields must use string keys")
    if "id" not in raw or not _is_non_blank_str(raw["id"]):
        raise CatalogError("task.id is required and must be non-empty string")
    task_id = raw["id"]
    if len(task_id) > _TASK_ID_MAX_LEN:
        raise CatalogError(f"task.id must be <= {_TASK_ID_MAX_LEN} characters")
    if not _is_safe_id(task_id):
        raise CatalogError("task.id must match ^[A-Za-z0-9][A-Za-z0-9._-]*$")
    unknown = set(raw.keys()) - _ALLOWED_TASK_KEYS
    if unknown:
        raise CatalogError(f"task '{task_id}' has unknown fields: {sorted(unknown)}")
    if "command" not in raw:
        raise CatalogError(f"task '{task_id}' missing command")

    environment = raw.get("environment", "both")
    if environment not in ENVIRONMENT_VALUES:
        raise CatalogError(
            f"task '{task_id}' environment must be one of {sorted(ENVIRONMENT_VALUES)}"
        )

    retries = raw.get("retries", default_retries)
    if not isinstance(retries, int) or isinstance(retries, bool) or retries < 0:
        raise CatalogError(f"task '{task_id}' retries must be int >= 0")

    timeout_sec = raw.get("timeout_sec", default_timeout_sec)
    if not _is_finite_real_number(timeout_sec) or timeout_sec <= 0:
        raise CatalogError(f"task '{task_id}' timeout_sec must be > 0")

    raw_backoff = raw.get("retry_backoff_sec", [])
    if not isinstance(raw_backoff, list) or not all(
        _is_finite_real_number(v) and v >= 0 for v in raw_backoff
    ):
        raise CatalogError(f"task '{task_id}' retry_backoff_sec must be list[number>=0]")

    parallel = raw.get("parallel", True)
    if not isinstance(parallel, bool):
        raise CatalogError(f"task '{task_id}' parallel must be bool")

    for text_field in ("name", "description"):
        value = raw.get(text_field)
        if value is not None and not isinstance(value, str):
            raise CatalogError(f"task '{task_id}' {text_field} must be string")

    try:
        return TaskSpec(
            id=task_id,
            name=raw.get("name") or task_id,
            description=raw.get("description") or "",
            environment=environment,
            timeout_sec=float(timeout_sec),
            retries=retries,
            dependencies=_ensure_list_str("dependencies", raw.get("dependencies")),
            tags=_ensure_list_str("tags", raw.get("tags")),
            fixtures=_ensure_list_str("fixtures", raw.get("fixtures")),
            parallel=parallel,
            command=normalize_action(raw["command"]),
            setup=_optional_action(raw.get("setup"), "setup"),
            teardown=_optional_action(raw.get("teardown"), "teardown"),
            retry_backoff_sec=tuple(float(v) for v in raw_backoff),
        )
    except CatalogError as exc:
        raise CatalogError(f"task '{task_id}': {exc}") from exc


def _parse_infrastructure(raw: Any) -> InfrastructureSpec:
    if raw is None:
        return InfrastructureSpec()
    if not isinstance(raw, dict):
        raise CatalogError("infrastructure must be a mapping")
    unknown = set(raw.keys()) - _ALLOWED_INFRA_KEYS
    if unknown:
        raise CatalogError(f"infrastructure contains unknown fields: {sorted(unknown)}")

    raw_probes = raw.get("probes") or {}
    if not isinstance(raw_probes, dict):
        raise CatalogError("infrastructure.probes must be a mapping")
    probes: dict[str, Action] = {}
    for env, action in raw_probes.items():
        if env not in ENVIRONMENT_VALUES:
            raise CatalogError(f"infrastructure.probes has unknown environment: {env}")
        probes[env] = normalize_action(action, field_name=f"probes.{env}")

    raw_teardown = raw.get("teardown") or []
    if not isinstance(raw_teardown, list):
        raise CatalogError("infrastructure.teardown must be a list")

    probe_timeout_sec = raw.get("probe_timeout_sec", 30.0)
    if not _is_finite_real_number(probe_timeout_sec) or probe_timeout_sec <= 0:
        raise CatalogError("infrastructure.probe_timeout_sec must be > 0")

    return InfrastructureSpec(
        required_tools=list(_ensure_list_str("required_tools", raw.get("required_tools"))),
        probes=probes,
        teardown=[normalize_action(a, field_name="teardown") for a in raw_teardown],
        probe_timeout_sec=float(probe_timeout_sec),
    )


def validate_catalog(tasks: list[TaskSpec]) -> None:
    ids = [task.id for task in tasks]
    if len(set(ids)) != len(ids):
        raise CatalogError("task.id must be unique")
    validate_dependencies(tasks)


def parse_catalog(
    raw: Any,
    *,
    default_timeout_sec: float = 600.0,
    default_retries: int = 0,
) -> Catalog:
    if not isinstance(raw, dict):
        raise CatalogError("catalog root must be a mapping")
    if any(not isinstance(key, str) for key in raw):
        raise CatalogError("catalog root keys must be strings")
    unknown_root = set(raw.keys()) - _ALLOWED_CATALOG_KEYS
    if unknown_root:
        raise CatalogError(f"catalog contains unknown fields: {sorted(unknown_root)}")

    raw_tasks = raw.get("tasks")
    if not isinstance(raw_tasks, list):
        raise CatalogError("catalog.tasks must be a list")

    tasks = [
        _parse_task(
            task,
            default_timeout_sec=default_timeout_sec,
            default_retries=default_retries,
        )
        for task in raw_tasks
    ]
    validate_catalog(tasks)
    return Catalog(tasks=tasks, infrastructure=_parse_infrastructure(raw.get("infrastructure")))


def load_catalog(
    path: Path,
    *,
    default_timeout_sec: float = 600.0,
    default_retries: int = 0,
) -> Catalog:
    problem = plain_file_problem(path)
    if problem is not None:
        raise CatalogError(f"catalog file {problem}: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeError as exc:
        raise CatalogError(f"failed to decode catalog file as utf-8: {path}") from exc
    except OSError as exc:
        raise CatalogError(f"failed to read catalog file: {path}") from exc

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise CatalogError(f"failed to parse yaml: {exc}") from exc

    return parse_catalog(
        raw,
        default_timeout_sec=default_timeout_sec,
        default_retries=default_retries,
    )
