from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from taskorch.config.schema import TaskSpec

TaskStatus = Literal["pending", "running", "passed", "failed", "skipped"]
TERMINAL_STATUSES: set[str] = {"passed", "failed", "skipped"}


@dataclass(slots=True)
class TaskResult:
    id: str
    name: str
    environment: str
    status: TaskStatus = "pending"
    started_at: str | None = None
    ended_at: str | None = None
    duration_sec: float = 0.0
    error: str | None = None
    output: str = ""
    attempts: int = 0
    exit_code: int | None = None
    timed_out: bool = False
    skip_reason: str | None = None

    @classmethod
    def for_task(cls, task: TaskSpec) -> TaskResult:
        return cls(id=task.id, name=task.display_name, environment=task.environment)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "environment": self.environment,
            "status": self.status,
            "startTime": self.started_at,
            "endTime": self.ended_at,
            "duration": self.duration_sec,
            "error": self.error,
            "output": self.output,
            "attempts": self.attempts,
            "exitCode": self.exit_code,
            "timedOut": self.timed_out,
            "skipReason": self.skip_reason,
        }


class ResultStore:
    """Results keyed by task id, in scheduling order.

    All writes happen on the event loop thread and each task only touches
    its own entry.
    """

    def __init__(self) -> None:
        self._results: dict[str, TaskResult] = {}

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._results

    def __len__(self) -> int:
        return len(self._results)

    def get(self, task_id: str) -> TaskResult:
        return self._results[task_id]

    def schedule(self, task: TaskSpec) -> TaskResult:
        """Create the pending result for a task entering a phase."""
        if task.id in self._results:
            return self._results[task.id]
        result = TaskResult.for_task(task)
        self._results[task.id] = result
        return result

    def mark_skipped(self, task: TaskSpec, reason: str) -> TaskResult:
        result = self.schedule(task)
        if not result.is_terminal:
            result.status = "skipped"
            result.skip_reason = reason
        return result

    def count(self, status: TaskStatus) -> int:
        return sum(1 for result in self._results.values() if result.status == status)

    def has_failures(self) -> bool:
        return any(result.status == "failed" for result in self._results.values())

    def values(self) -> list[TaskResult]:
        return list(self._results.values())
