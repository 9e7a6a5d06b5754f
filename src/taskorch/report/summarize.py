from __future__ import annotations

from typing import Any

from taskorch.config.schema import OrchestratorConfig
from taskorch.state.model import TaskResult


def build_summary(results: list[TaskResult]) -> dict[str, Any]:
    total = len(results)
    passed = sum(1 for r in results if r.status == "passed")
    failed = sum(1 for r in results if r.status == "failed")
    skipped = sum(1 for r in results if r.status == "skipped")
    duration = round(sum(r.duration_sec for r in results), 3)
    return {
        "total": total,
        "passed": passed,
        "failed": failed,
        "skipped": skipped,
        "duration": duration,
        "success": failed == 0,
        "passRate": (passed / total) * 100 if total > 0 else 0,
    }


def build_json_report(
    results: list[TaskResult],
    config: OrchestratorConfig,
    *,
    started_at: str,
    ended_at: str,
    duration_sec: float,
) -> dict[str, Any]:
    return {
        "summary": build_summary(results),
        "results": [result.to_dict() for result in results],
        "config": config.to_dict(),
        "startTime": started_at,
        "endTime": ended_at,
        "duration": duration_sec,
    }
