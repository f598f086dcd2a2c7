"""Run coverage tooling as asyncio subprocesses.

cargo-llvm-cov and cargo-tarpaulin rebuild the crate under instrumentation
and can take minutes. :func:`run_subprocess` bounds each run with a timeout
and turns an executable that cannot be started into :class:`SubprocessError`.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_TIMEOUT_MESSAGE = b"Process timed out and was killed"


@dataclass
class SubprocessResult:
    """Outcome of one tool invocation."""

    returncode: int
    """Exit status; -1 when the process never ran or was killed."""

    stdout: str
    """Decoded standard output."""

    stderr: str
    """Decoded standard error."""

    success: bool
    """Exit status 0 and no timeout."""

    timed_out: bool = False
    """Killed because the timeout elapsed."""

    duration_ms: float = 0.0
    """Wall-clock time from spawn to exit."""


class SubprocessError(Exception):
    """A tool could not be started, or failed while ``check=True``."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        super().__init__(message)
        self.result = result


def _command_line(command: Sequence[str]) -> str:
    return " ".join(command)


def _resolve_work_dir(cwd: Path | None) -> Path:
    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")
    return work_dir


async def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
        await process.wait()
    except ProcessLookupError:
        logger.debug("Process %s exited before it could be killed", process.pid)


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float = 120.0,
    env: dict[str, str] | None = None,
    check: bool = False,
) -> SubprocessResult:
    """Run *command* and collect its output.

    Args:
        command: Executable and arguments, e.g. ``["cargo", "llvm-cov", "--cobertura"]``.
        cwd: Directory to run in (the current directory when omitted).
        timeout: Seconds before the process is killed.
        env: Variables layered over ``os.environ``.
        check: Raise :class:`SubprocessError` unless the run succeeds.

    Raises:
        SubprocessError: The executable is missing or cannot be run, or
            *check* is set and the run failed or timed out.
        ValueError: Empty *command*, non-positive *timeout* or missing *cwd*.
    """
    if not command:
        raise ValueError("Command cannot be empty")
    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    work_dir = _resolve_work_dir(cwd)
    merged_env = {**os.environ, **env} if env else None
    logger.debug("$ %s (cwd=%s, timeout=%ss)", _command_line(command), work_dir, timeout)

    started = time.perf_counter()
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=work_dir,
            env=merged_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        logger.error("Command not found: %s", command[0])
        missing = SubprocessResult(returncode=-1, stdout="", stderr=str(exc), success=False)
        raise SubprocessError(f"Command not found: {command[0]}", result=missing) from exc
    except OSError as exc:
        logger.error("Cannot run %s: %s", command[0], exc)
        failed = SubprocessResult(returncode=-1, stdout="", stderr=str(exc), success=False)
        raise SubprocessError(f"Cannot run {command[0]}: {exc}", result=failed) from exc

    timed_out = False
    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        logger.warning("%s timed out after %ss", command[0], timeout)
        timed_out = True
        await _kill(process)
        out, err = b"", _TIMEOUT_MESSAGE

    elapsed_ms = (time.perf_counter() - started) * 1000
    returncode = -1 if timed_out or process.returncode is None else process.returncode

    result = SubprocessResult(
        returncode=returncode,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
        success=returncode == 0 and not timed_out,
        timed_out=timed_out,
        duration_ms=elapsed_ms,
    )
    logger.debug("%s exited with %d after %.0fms", command[0], returncode, elapsed_ms)

    if check and not result.success:
        raise SubprocessError(
            f"Command failed with exit code {returncode}: {_command_line(command)}",
            result=result,
        )
    return result
