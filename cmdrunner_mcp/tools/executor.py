"""
Process executor for cmdrunner tools.

Runs an argument vector (never a shell string) with an optional wall-clock
timeout. On expiry the child is force-killed and reaped before returning, so no
process or pipe outlives the call.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
import logging
import os
import signal as sigmod
import subprocess
import sys

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Error: Command timed out"

# poll() takes an int millisecond timeout (INT_MAX ms is ~24.8 days)
MAX_TIMEOUT_SECONDS = 24 * 24 * 3600.0


@dataclass(frozen=True)
class ExecutionContext:
    """Per-request execution settings."""

    timeout: float | None = None  # seconds
    working_dir: str | None = None
    env: Mapping[str, str] | None = None


class ResultKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of running a command."""

    kind: ResultKind
    text: str = ""

    @classmethod
    def success(cls, text: str) -> ExecutionResult:
        return cls(ResultKind.SUCCESS, text)

    @classmethod
    def error(cls, text: str) -> ExecutionResult:
        return cls(ResultKind.ERROR, text)

    @classmethod
    def timeout(cls) -> ExecutionResult:
        return cls(ResultKind.TIMEOUT, TIMEOUT_MESSAGE)

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS

    def to_text(self) -> str:
        """Collapse to the string returned to the caller."""
        if self.kind is ResultKind.TIMEOUT:
            return TIMEOUT_MESSAGE
        return self.text


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def _classify(returncode: int, stdout: bytes | None, stderr: bytes | None) -> ExecutionResult:
    if returncode == 0:
        return ExecutionResult.success(_decode(stdout))
    err = _decode(stderr)
    if err:
        return ExecutionResult.error(f"Error: {err}")
    return ExecutionResult.error(f"Error: {_decode(stdout)}")


def _kill_process(proc: subprocess.Popen) -> None:
    """Force-kill a child by pid. Failures for an already-gone pid are ignored."""
    try:
        if sys.platform == "win32":
            proc.kill()
        else:
            os.kill(proc.pid, sigmod.SIGKILL)
    except OSError as e:
        logger.debug(f"Kill of pid {proc.pid} failed (already exited?): {e}")


def _build_env(overrides: Mapping[str, str] | None) -> dict[str, str] | None:
    if not overrides:
        return None
    env = dict(os.environ)
    env.update(overrides)
    return env


def _bounded(timeout: float | None) -> float | None:
    if timeout is None:
        return None
    return min(timeout, MAX_TIMEOUT_SECONDS)


def run_command(argv: Sequence[str], ctx: ExecutionContext | None = None) -> ExecutionResult:
    """
    Run a command and classify its outcome.

    Args:
        argv: Program name followed by its arguments
        ctx: Timeout, working directory and environment overrides

    Returns:
        ExecutionResult; spawn failures are reported as errors, never raised
    """
    ctx = ctx or ExecutionContext()
    argv = list(argv)
    if not argv:
        return ExecutionResult.error("Error: Failed to spawn command: empty command")
    logger.debug(
        f"Running {argv} (cwd={ctx.working_dir}, timeout={ctx.timeout}, "
        f"env_overrides={sorted(ctx.env) if ctx.env else []})"
    )

    try:
        proc = subprocess.Popen(
            argv,
            shell=False,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=ctx.working_dir,
            env=_build_env(ctx.env),
        )
    except (OSError, ValueError) as e:
        logger.error(f"Failed to spawn {argv[0] if argv else '<empty>'}: {e}")
        return ExecutionResult.error(f"Error: Failed to spawn command: {e}")

    with proc:
        try:
            stdout, stderr = proc.communicate(timeout=_bounded(ctx.timeout))
        except subprocess.TimeoutExpired:
            _kill_process(proc)
            # Reap; pipes are closed when the context manager exits
            proc.wait()
            logger.warning(f"Command {argv} timed out after {ctx.timeout}s (pid={proc.pid} killed)")
            return ExecutionResult.timeout()

    result = _classify(proc.returncode, stdout, stderr)
    logger.debug(f"Command {argv[0]} exited with {proc.returncode}")
    return result
