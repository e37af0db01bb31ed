"""Async subprocess execution with captured output lines."""

from __future__ import annotations

import asyncio
import logging
import shlex
import time
from datetime import timedelta
from pathlib import Path

from runtests.core.models import ProcessResult

logger = logging.getLogger(__name__)

# Longest single output line accepted from a child process
STREAM_LIMIT = 16 * 1024 * 1024


async def run_process(
    cmd: list[str],
    workdir: Path | None = None,
    timeout: int | None = None,
    env: dict[str, str] | None = None,
) -> ProcessResult:
    """
    Run a command and capture its stdout and stderr line by line.

    Args:
        cmd: Command and arguments to execute
        workdir: Working directory for command execution
        timeout: Timeout in seconds, or None to wait indefinitely
        env: Full environment for the child process (inherits when None)

    Returns:
        ProcessResult with the exit code and captured lines. A timed out
        process is killed and reported with exit code -1.

    Raises:
        OSError: If the command cannot be started
        ValueError: If a single output line exceeds STREAM_LIMIT; the child
            process is killed before the error propagates
        asyncio.CancelledError: If the awaiting task is cancelled; the child
            process is killed before the error propagates
    """
    command = shlex.join(cmd)
    logger.debug("Starting process: %s", command)
    start_time = time.monotonic()

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=workdir,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
        limit=STREAM_LIMIT,
    )

    stdout_lines: list[str] = []
    stderr_lines: list[str] = []

    async def read_stream(stream, lines):
        while True:
            line = await stream.readline()
            if not line:
                break
            lines.append(line.decode("utf-8", errors="replace").rstrip("\r\n"))

    try:
        await asyncio.wait_for(
            asyncio.gather(
                read_stream(proc.stdout, stdout_lines),
                read_stream(proc.stderr, stderr_lines),
                proc.wait(),
            ),
            timeout=timeout,
        )
        exit_code = proc.returncode
    except asyncio.TimeoutError:
        await _kill(proc)
        logger.debug("Process timed out after %s seconds: %s", timeout, command)
        stderr_lines.append(f"Process timed out after {timeout} seconds")
        exit_code = -1
    except asyncio.CancelledError:
        await _kill(proc)
        logger.debug("Process cancelled: %s", command)
        raise
    except BaseException:
        await _kill(proc)
        logger.debug("Reading output failed, process killed: %s", command)
        raise

    elapsed = timedelta(seconds=time.monotonic() - start_time)
    logger.debug("Process exited with code %s in %s: %s", exit_code, elapsed, command)

    return ProcessResult(
        command=command,
        exit_code=exit_code,
        output_lines=tuple(stdout_lines),
        error_lines=tuple(stderr_lines),
        elapsed=elapsed,
    )


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
