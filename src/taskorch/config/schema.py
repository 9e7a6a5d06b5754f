from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from taskorch.util.errors import ConfigurationError

Environment = Literal["docker", "qemu", "both"]
ENVIRONMENT_VALUES: set[str] = {"docker", "qemu", "both"}
ANY_ENVIRONMENT: Environment = "both"


@dataclass(frozen=True, slots=True)
class ShellCommand:
    """A shell line executed through ``sh -c``."""

    line: str

    def argv(self) -> list[str]:
        return ["sh", "-c", self.line]

    def describe(self) -> str:
        return self.line.strip()


@dataclass(frozen=True, slots=True)
class ExecCommand:
    """An argument vector executed without a shell."""

    args: tuple[str, ...]

    def argv(self) -> list[str]:
        return list(self.args)

    def describe(self) -> str:
        return " ".join(self.args)


Action = Union[ShellCommand, ExecCommand]


@dataclass(frozen=True, slots=True)
class TaskSpec:
    id: str
    command: Action
    name: str = ""
    description: str = ""
    environment: Environment = ANY_ENVIRONMENT
    timeout_sec: float = 600.0
    retries: int = 0
    dependencies: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    fixtures: tuple[str, ...] = ()
    setup: Action | None = None
    teardown: Action | None = None
    parallel: bool = True
    retry_backoff_sec: tuple[float, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(slots=True)
class InfrastructureSpec:
    required_tools: list[str] = field(default_factory=list)
    probes: dict[str, Action] = field(default_factory=dict)
    teardown: list[Action] = field(default_factory=list)
    probe_timeout_sec: float = 30.0


@dataclass(slots=True)
class Catalog:
    tasks: list[TaskSpec]
    infrastructure: InfrastructureSpec = field(default_factory=InfrastructureSpec)


@dataclass(slots=True)
class OrchestratorConfig:
    parallel: bool = True
    max_parallel: int = 3
    fail_fast: bool = False
    retries: int = 1
    timeout_sec: float = 600.0
    environments: list[str] = field(default_factory=lambda: [ANY_ENVIRONMENT])
    tags: list[str] = field(default_factory=list)
    exclude_tags: list[str] = field(default_factory=list)
    verbose: bool = False
    retry_backoff_sec: float = 2.0

    def validate(self) -> None:
        if isinstance(self.max_parallel, bool) or self.max_parallel < 1:
            raise ConfigurationError("max_parallel must be >= 1")
        if isinstance(self.retries, bool) or self.retries < 0:
            raise ConfigurationError("retries must be >= 0")
        if self.timeout_sec <= 0:
            raise ConfigurationError("timeout_sec must be > 0")
        if self.retry_backoff_sec < 0:
            raise ConfigurationError("retry_backoff_sec must be >= 0")
        unknown = sorted(set(self.environments) - ENVIRONMENT_VALUES)
        if unknown:
            raise ConfigurationError(f"unknown environments: {unknown}")

    def to_dict(self) -> dict[str, object]:
        return {
            "parallel": self.parallel,
            "maxParallel": self.max_parallel,
            "failFast": self.fail_fast,
            "retries": self.retries,
            "timeoutSec": self.timeout_sec,
            "environments": list(self.environments),
            "tags": list(self.tags),
            "excludeTags": list(self.exclude_tags),
            "verbose": self.verbose,
            "retryBackoffSec": self.retry_backoff_sec,
        }
