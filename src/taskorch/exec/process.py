from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from taskorch.config.schema import Action

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096
_TERMINATE_GRACE_SEC = 1.0


@dataclass(slots=True)
class ActionOutcome:
    exit_code: int | None
    timed_out: bool
    start_failed: bool
    output: str
    error: str | None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and not self.start_failed


def format_timeout_error(timeout_sec: float) -> str:
    return f"Command timed out after {round(timeout_sec * 1000)}ms"


def _signal_process(proc: asyncio.subprocess.Process, sig: int) -> None:
    # Children run in their own session, so the whole group goes down with sh.
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, sig)
        else:
            proc.send_signal(sig)
    except ProcessLookupError:
        return


async def wait_with_timeout(
    proc: asyncio.subprocess.Process, timeout_sec: float | None
) -> tuple[bool, int | None]:
    if timeout_sec is None:
        return False, await proc.wait()
    try:
        code = await asyncio.wait_for(proc.wait(), timeout=timeout_sec)
        return False, code
    except TimeoutError:
        _signal_process(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=_TERMINATE_GRACE_SEC)
        except TimeoutError:
            _signal_process(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
            await proc.wait()
        return True, None


async def stream_output(
    stream: asyncio.StreamReader | None,
    chunks: list[bytes],
    combined: list[bytes],
    echo: Callable[[str], None] | None = None,
) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
        combined.append(chunk)
        if echo is not None:
            echo(chunk.decode("utf-8", errors="replace"))


def _echo_to(target_name: str) -> Callable[[str], None]:
    def _write(text: str) -> None:
        target = getattr(sys, target_name)
        target.write(text)
        target.flush()

    return _write


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


async def run_action(
    action: Action,
    *,
    timeout_sec: float | None,
    cwd: Path,
    verbose: bool = False,
) -> ActionOutcome:
    """Run one action as a child process and capture its output."""
    logger.debug("spawning %s (cwd=%s, timeout=%ss)", action.describe(), cwd, timeout_sec)
    try:
        proc = await asyncio.create_subprocess_exec(
            *action.argv(),
            cwd=str(cwd),
            env=os.environ.copy(),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except (OSError, ValueError) as exc:
        return ActionOutcome(
            exit_code=127,
            timed_out=False,
            start_failed=True,
            output="",
            error=f"failed to start process: {exc}",
        )

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []
    combined: list[bytes] = []
    readers = [
        asyncio.create_task(
            stream_output(proc.stdout, stdout_chunks, combined, _echo_to("stdout") if verbose else None)
        ),
        asyncio.create_task(
            stream_output(proc.stderr, stderr_chunks, combined, _echo_to("stderr") if verbose else None)
        ),
    ]

    timed_out, exit_code = await wait_with_timeout(proc, timeout_sec)
    if timed_out:
        for reader in readers:
            reader.cancel()
    await asyncio.gather(*readers, return_exceptions=True)

    output = _decode(combined)
    if timed_out:
        assert timeout_sec is not None
        error: str | None = format_timeout_error(timeout_sec)
    elif exit_code != 0:
        detail = _decode(stderr_chunks) or _decode(stdout_chunks)
        error = f"Command failed with code {exit_code}\n{detail}".rstrip()
    else:
        error = None
    return ActionOutcome(
        exit_code=exit_code,
        timed_out=timed_out,
        start_failed=False,
        output=output,
        error=error,
    )
