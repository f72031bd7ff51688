"""
Command Runner
==============
The single execution primitive of the gateway: spawn one external process
from an argument vector, wait for it without blocking the event loop, and
return its captured output.

BOUNDARY RULES:
    - Runner never builds arguments — that is the Command Builder's job.
    - Runner never interprets tool output — stdout/stderr are passed through.
    - Runner never retries.
    - Runner never uses a shell.

Failure contract:
    Spawn failure, non-zero exit and timeout all raise CommandExecutionError
    carrying ``error``, ``stderr`` and ``stdout``.
"""
import asyncio
import logging
import shlex
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from gateway.core.errors import CommandExecutionError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Command Result (returned to the Workspace Gateway)
# ---------------------------------------------------------------------------
@dataclass
class CommandResult:
    """
    Captured outcome of a successful command.

    Fields
    ------
    stdout : str
        Decoded standard output.
    stderr : str
        Decoded standard error (warnings from a successful run land here).
    exit_code : int
        Always 0 for a returned result.
    execution_time_seconds : float
        Wall clock duration of the run.
    """
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    execution_time_seconds: float = 0.0

    def output(self) -> dict:
        return {"stdout": self.stdout, "stderr": self.stderr}


# ---------------------------------------------------------------------------
# Log Excerpt Helper
# ---------------------------------------------------------------------------
_EXCERPT_HEAD_LINES = 30
_EXCERPT_TAIL_LINES = 30


def create_log_excerpt(full_log: str,
                       head: int = _EXCERPT_HEAD_LINES,
                       tail: int = _EXCERPT_TAIL_LINES) -> str:
    """
    Create an abbreviated log showing the first and last N lines.

    Parameters
    ----------
    full_log : str
        The complete tool output.
    head : int
        Number of lines to keep from the start.
    tail : int
        Number of lines to keep from the end.

    Returns
    -------
    str
        Abbreviated log string. If the log is short enough, returns it as-is.
    """
    lines = full_log.splitlines()
    total = len(lines)

    if total <= head + tail:
        return full_log

    omitted = total - head - tail
    return "\n".join(
        lines[:head]
        + [f"\n... ({omitted} lines omitted) ...\n"]
        + lines[-tail:]
    )


# Seconds to wait for exit and pipe EOF once a timed-out child was killed
_KILL_GRACE_SECONDS = 2.0


async def _within_grace(awaitable):
    """Await ``awaitable`` for at most the kill grace period; None when it runs over."""
    try:
        return await asyncio.wait_for(awaitable, timeout=_KILL_GRACE_SECONDS)
    except asyncio.TimeoutError:
        return None


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------
async def run_command(
    argv: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    Run ``argv`` as a child process and capture its output.

    Parameters
    ----------
    argv : Sequence[str]
        Executable followed by its arguments. Never passed through a shell.
    cwd : str | Path | None
        Working directory for the child. None inherits the server's.
    timeout : float | None
        Seconds before the child is killed. None waits indefinitely.

    Returns
    -------
    CommandResult
        On exit code 0.

    Raises
    ------
    CommandExecutionError
        On spawn failure, non-zero exit, or timeout.
    """
    command_line = shlex.join(argv)
    logger.info("Executing: %s%s", command_line, f" (cwd={cwd})" if cwd else "")
    start_time = time.monotonic()

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        # ValueError: an argument the OS cannot take, e.g. an embedded NUL
        logger.error("Error spawning command: %s", e)
        raise CommandExecutionError(error=str(e)) from e

    # Drain both pipes while waiting so a chatty child never blocks on a full pipe
    stdout_task = asyncio.ensure_future(proc.stdout.read())
    stderr_task = asyncio.ensure_future(proc.stderr.read())

    timed_out = False
    try:
        await asyncio.wait_for(proc.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        timed_out = True

    if timed_out:
        logger.warning("Command exceeded %ss, killing pid %s", timeout, proc.pid)
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        # Grandchildren may still hold the pipes open after the kill
        await _within_grace(proc.wait())
        stdout = _decode(await _within_grace(stdout_task))
        stderr = _decode(await _within_grace(stderr_task))
    else:
        stdout = _decode(await stdout_task)
        stderr = _decode(await stderr_task)
    elapsed = round(time.monotonic() - start_time, 3)

    if timed_out:
        raise CommandExecutionError(
            error=f"Command timed out after {timeout}s: {command_line}",
            stderr=stderr,
            stdout=stdout,
        )

    if proc.returncode != 0:
        logger.error("Error executing command: exit code %d after %.2fs", proc.returncode, elapsed)
        logger.error("Stderr: %s", create_log_excerpt(stderr))
        raise CommandExecutionError(
            error=f"Command failed with exit code {proc.returncode}: {command_line}",
            stderr=stderr,
            stdout=stdout,
        )

    logger.info("Command complete | exit=0 | time=%.2fs", elapsed)
    if stdout:
        logger.info("Stdout: %s", create_log_excerpt(stdout))
    if stderr:
        logger.warning("Stderr: %s", create_log_excerpt(stderr))

    return CommandResult(stdout=stdout, stderr=stderr, exit_code=0, execution_time_seconds=elapsed)
