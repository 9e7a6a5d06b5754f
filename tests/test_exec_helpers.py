from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from taskorch.config.schema import ExecCommand, ShellCommand
from taskorch.exec.process import format_timeout_error, run_action, wait_with_timeout
from taskorch.exec.retry import backoff_for_attempt


def test_backoff_for_attempt_uses_configured_values_and_clamps_to_last() -> None:
    backoff = [0.5, 1.0]
    assert backoff_for_attempt(0, backoff, 2.0) == 0.5
    assert backoff_for_attempt(1, backoff, 2.0) == 1.0
    assert backoff_for_attempt(5, backoff, 2.0) == 1.0


def test_backoff_for_attempt_falls_back_to_fixed_default() -> None:
    assert backoff_for_attempt(0, [], 2.0) == 2.0
    assert backoff_for_attempt(4, (), 2.0) == 2.0


def test_format_timeout_error_uses_milliseconds() -> None:
    assert format_timeout_error(0.1) == "Command timed out after 100ms"


@pytest.mark.asyncio
async def test_wait_with_timeout_returns_exit_code_when_process_finishes() -> None:
    proc = await asyncio.create_subprocess_exec(sys.executable, "-c", "print('ok')")
    timed_out, exit_code = await wait_with_timeout(proc, timeout_sec=5.0)
    assert timed_out is False
    assert exit_code == 0


@pytest.mark.asyncio
async def test_wait_with_timeout_times_out_and_terminates_process() -> None:
    proc = await asyncio.create_subprocess_exec(
        sys.executable,
        "-c",
        "import time; time.sleep(10)",
        start_new_session=True,
    )
    timed_out, exit_code = await wait_with_timeout(proc, timeout_sec=0.1)
    assert timed_out is True
    assert exit_code is None
    assert proc.returncode is not None


@pytest.mark.asyncio
async def test_run_action_captures_stdout_and_stderr(tmp_path: Path) -> None:
    action = ExecCommand(
        (sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)")
    )
    outcome = await run_action(action, timeout_sec=5.0, cwd=tmp_path)
    assert outcome.succeeded
    assert "out" in outcome.output
    assert "err" in outcome.output
    assert outcome.error is None


@pytest.mark.asyncio
async def test_run_action_runs_shell_line_in_cwd(tmp_path: Path) -> None:
    outcome = await run_action(ShellCommand("pwd && echo done"), timeout_sec=5.0, cwd=tmp_path)
    assert outcome.succeeded
    assert tmp_path.name in outcome.output


@pytest.mark.asyncio
async def test_run_action_reports_exit_code_and_stderr(tmp_path: Path) -> None:
    action = ShellCommand("echo boom >&2; exit 3")
    outcome = await run_action(action, timeout_sec=5.0, cwd=tmp_path)
    assert not outcome.succeeded
    assert outcome.exit_code == 3
    assert outcome.error is not None
    assert outcome.error.startswith("Command failed with code 3")
    assert "boom" in outcome.error


@pytest.mark.asyncio
async def test_run_action_marks_start_failure(tmp_path: Path) -> None:
    action = ExecCommand(("__definitely_missing_command__", "--version"))
    outcome = await run_action(action, timeout_sec=5.0, cwd=tmp_path)
    assert outcome.start_failed is True
    assert outcome.exit_code == 127
    assert outcome.error is not None
    assert "failed to start process" in outcome.error


@pytest.mark.asyncio
async def test_run_action_times_out(tmp_path: Path) -> None:
    outcome = await run_action(ShellCommand("sleep 1"), timeout_sec=0.1, cwd=tmp_path)
    assert outcome.timed_out is True
    assert outcome.exit_code is None
    assert outcome.error == "Command timed out after 100ms"


@pytest.mark.asyncio
async def test_run_action_streams_output_when_verbose(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    outcome = await run_action(
        ShellCommand("echo streamed-line"), timeout_sec=5.0, cwd=tmp_path, verbose=True
    )
    assert outcome.succeeded
    assert "streamed-line" in capsys.readouterr().out
