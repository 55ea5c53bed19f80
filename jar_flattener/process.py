"""Subprocess helpers for external tools (build tools, jdeps, jlink, jcmd)."""

from dataclasses import dataclass
import logging
import os
import pathlib
import subprocess

from jar_flattener.errors import BuildError, ToolError, ToolTimeoutError

logger: logging.Logger = logging.getLogger("jar_flattener.process")

# Time limits, in seconds. Expiry is a stage failure.
BUILD_TIMEOUT: float = 30 * 60
JDEPS_TIMEOUT: float = 10 * 60
JLINK_TIMEOUT: float = 10 * 60
CDS_TIMEOUT: float = 5 * 60
CHECKPOINT_TIMEOUT: float = 5 * 60

_STDERR_TAIL_LINES: int = 20


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Captured result of a finished tool.

    :ivar args: Command that ran.
    :ivar returncode: Exit status.
    :ivar stdout: Captured standard output.
    :ivar stderr: Captured standard error.
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


def _tail(text: str) -> str:
    lines: list[str] = text.strip().splitlines()
    return "\n".join(lines[-_STDERR_TAIL_LINES:])


def run_tool(
    args: list[str],
    *,
    timeout: float,
    error_cls: type[BuildError] = ToolError,
    cwd: pathlib.Path | None = None,
    env: dict[str, str] | None = None,
) -> ToolResult:
    """Run an external tool with captured output and a time limit.

    :param args: Command and arguments.
    :param timeout: Time limit in seconds.
    :param error_cls: Error raised for a missing command or non-zero exit.
    :param cwd: Working directory.
    :param env: Extra environment variables layered over the current environment.
    :returns: Captured result (exit status 0).
    :raises ToolTimeoutError: If the tool runs past ``timeout``.
    :raises BuildError: ``error_cls`` if the tool is missing or exits non-zero.
    """

    cmd: str = " ".join(args)
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"jar-flattener: running: {cmd}" + (f" (cwd={cwd})" if cwd is not None else ""))

    full_env: dict[str, str] | None = None
    if env is not None:
        full_env = {**os.environ, **env}

    try:
        proc = subprocess.run(
            args,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise error_cls(f"command not found: {args[0]}") from e
    except OSError as e:
        raise error_cls(f"could not run {args[0]}: {e}") from e
    except subprocess.TimeoutExpired as e:
        raise ToolTimeoutError(f"{args[0]} timed out after {timeout:.0f}s: {cmd}") from e

    if proc.returncode != 0:
        detail: str = _tail(proc.stderr) or _tail(proc.stdout)
        message: str = f"{pathlib.Path(args[0]).name} failed (exit={proc.returncode}): {cmd}"
        if len(detail) > 0:
            message = f"{message}\n{detail}"
        raise error_cls(message)

    return ToolResult(
        args=tuple(args),
        returncode=proc.returncode,
        stdout=proc.stdout,
        stderr=proc.stderr,
    )
