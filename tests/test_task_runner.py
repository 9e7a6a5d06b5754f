from __future__ import annotations

import asyncio
import os
import sys
import time
from pathlib import Path

import pytest

from taskorch.config.schema import ExecCommand, OrchestratorConfig, ShellCommand, TaskSpec
from taskorch.exec.task_runner import execute_task
from taskorch.state.model import ResultStore


def _py(code: str) -> ExecCommand:
    return ExecCommand((sys.executable, "-c", code))


def _config(**overrides: object) -> OrchestratorConfig:
    values: dict[str, object] = {"retry_backoff_sec": 0.0}
    values.update(overrides)
    return OrchestratorConfig(**values)  # type: ignore[arg-type]


def _pid_is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


@pytest.mark.asyncio
async def test_execute_task_passes_and_records_output(tmp_path: Path) -> None:
    task = TaskSpec(id="hello", name="Hello", command=_py("print('hello world')"))
    results = ResultStore()

    result = await execute_task(task, results, config=_config(), workdir=tmp_path)

    assert result is results.get("hello")
    assert result.status == "passed"
    assert result.attempts == 1
    assert result.exit_code == 0
    assert result.error is None
    assert "hello world" in result.output
    assert "===== attempt 1 / 1 =====" in result.output
    assert result.started_at is not None
    assert result.ended_at is not None
    assert result.duration_sec >= 0


@pytest.mark.asyncio
async def test_execute_task_retries_until_attempts_exhausted(tmp_path: Path) -> None:
    counter = tmp_path / "count.txt"
    code = (
        "from pathlib import Path; p = Path('count.txt'); "
        "n = int(p.read_text()) if p.exists() else 0; p.write_text(str(n + 1)); "
        "raise SystemExit(1)"
    )
    task = TaskSpec(id="flaky", command=_py(code), retries=2)

    result = await execute_task(task, ResultStore(), config=_config(), workdir=tmp_path)

    assert result.status == "failed"
    assert result.attempts == 3
    assert result.exit_code == 1
    assert counter.read_text() == "3"
    assert result.error is not None
    assert result.error.startswith("Command failed with code 1")
    assert "===== attempt 3 / 3 =====" in result.output


@pytest.mark.asyncio
async def test_execute_task_passes_on_second_attempt(tmp_path: Path) -> None:
    code = (
        "from pathlib import Path; p = Path('seen'); "
        "first = not p.exists(); p.touch(); raise SystemExit(1 if first else 0)"
    )
    task = TaskSpec(id="second-time", command=_py(code), retries=1)

    result = await execute_task(task, ResultStore(), config=_config(), workdir=tmp_path)

    assert result.status == "passed"
    assert result.attempts == 2
    assert result.error is None


@pytest.mark.asyncio
async def test_execute_task_waits_configured_backoff_between_attempts(tmp_path: Path) -> None:
    task = TaskSpec(
        id="backoff",
        command=_py("raise SystemExit(1)"),
        retries=1,
        retry_backoff_sec=(0.3,),
    )

    started = time.monotonic()
    result = await execute_task(task, ResultStore(), config=_config(), workdir=tmp_path)

    assert result.status == "failed"
    assert time.monotonic() - started >= 0.3


@pytest.mark.asyncio
async def test_execute_task_timeout_kills_process_group(tmp_path: Path) -> None:
    task = TaskSpec(
        id="slow",
        command=ShellCommand("sleep 5 & echo $! > child.pid; wait"),
        timeout_sec=0.2,
    )

    result = await execute_task(task, ResultStore(), config=_config(), workdir=tmp_path)

    assert result.status == "failed"
    assert result.timed_out is True
    assert result.exit_code is None
    assert result.error == "Command timed out after 200ms"
    assert result.duration_sec < 5

    child_pid = int((tmp_path / "child.pid").read_text().strip())
    deadline = time.monotonic() + 3.0
    while _pid_is_alive(child_pid) and time.monotonic() < deadline:
        await asyncio.sleep(0.05)
    assert not _pid_is_alive(child_pid)


@pytest.mark.asyncio
async def test_execute_task_setup_failure_skips_command(tmp_path: Path) -> None:
    task = TaskSpec(
        id="setup-fails",
        setup=ShellCommand("echo broken >&2; exit 4"),
        command=ShellCommand("touch ran.txt"),
    )

    result = await execute_task(task, ResultStore(), config=_config(), workdir=tmp_path)

    assert result.status == "failed"
    assert result.exit_code == 4
    assert result.error is not None
    assert result.error.startswith("Setup failed: Command failed with code 4")
    assert not (tmp_path / "ran.txt").exists()


@pytest.mark.asyncio
async def test_execute_task_teardown_runs_after_each_attempt(tmp_path: Path) -> None:
    task = TaskSpec(
        id="with-teardown",
        command=ShellCommand("exit 1"),
        teardown=ShellCommand("echo x >> teardown.log"),
        retries=1,
    )

    result = await execute_task(task, ResultStore(), config=_config(), workdir=tmp_path)

    assert result.status == "failed"
    assert (tmp_path / "teardown.log").read_text().splitlines() == ["x", "x"]


@pytest.mark.asyncio
async def test_execute_task_teardown_failure_does_not_fail_task(tmp_path: Path) -> None:
    task = TaskSpec(
        id="teardown-fails",
        command=ShellCommand("echo ok"),
        teardown=ShellCommand("exit 9"),
    )

    result = await execute_task(task, ResultStore(), config=_config(), workdir=tmp_path)

    assert result.status == "passed"
    assert result.exit_code == 0


@pytest.mark.asyncio
async def test_execute_task_start_failure_is_reported_as_127(tmp_path: Path) -> None:
    task = TaskSpec(id="missing", command=ExecCommand(("__definitely_missing_command__",)))

    result = await execute_task(task, ResultStore(), config=_config(), workdir=tmp_path)

    assert result.status == "failed"
    assert result.exit_code == 127
    assert result.error is not None
    assert "failed to start process" in result.error
