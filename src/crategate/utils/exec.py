"""Command runners for external toolchain invocations."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stdout first."""
        return self.stdout + self.stderr


class ToolNotFoundError(RuntimeError):
    """Raised when the executable for a command is not installed."""

    def __init__(self, tool: str):
        super().__init__(f"{tool} not found on PATH")
        self.tool = tool


def _decode(stream: bytes | str | None) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def run_command(
    argv: list[str],
    *,
    cwd: Path,
    timeout: float | None = None,
) -> ExecResult:
    """Run a command and return a structured result.

    The child is killed when ``timeout`` seconds elapse; the partial output
    is kept and ``timed_out`` is set on the result.

    Raises:
        ToolNotFoundError: If the executable does not exist.
    """
    logger.debug("running %s in %s (timeout=%s)", " ".join(argv), cwd, timeout)
    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ToolNotFoundError(argv[0]) from exc
    except subprocess.TimeoutExpired as exc:
        logger.warning("command timed out after %ss: %s", timeout, " ".join(argv))
        return ExecResult(
            argv=tuple(argv),
            cwd=cwd.resolve(),
            returncode=-1,
            stdout=_decode(exc.stdout),
            stderr=_decode(exc.stderr),
            timed_out=True,
        )

    return ExecResult(
        argv=tuple(argv),
        cwd=cwd.resolve(),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def run_cargo(
    args: list[str],
    *,
    project_root: Path,
    timeout: float | None = None,
) -> ExecResult:
    """Run a cargo subcommand rooted at the project."""
    return run_command(["cargo", *args], cwd=project_root, timeout=timeout)

