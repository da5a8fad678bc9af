"""Bounded subprocess execution shared by hooks, kubectl and command checks."""

from __future__ import annotations

import asyncio
import os
import shlex
from collections.abc import Mapping, Sequence

from bluegreen.domain.models.base import ValueObject


class CommandResult(ValueObject):
    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandTimeoutError(TimeoutError):
    """Raised when a command outlives its timeout; the process is killed."""


def split_command(command: str | Sequence[str]) -> list[str]:
    """Split a shell-like command line into argv without invoking a shell."""
    argv = shlex.split(command) if isinstance(command, str) else list(command)
    if not argv:
        raise ValueError("Empty command")
    return argv


async def run_command(
    command: str | Sequence[str],
    timeout: float,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """Run ``command`` and capture its output.

    ``env`` is layered over the current process environment.
    """
    argv = split_command(command)
    process_env = {**os.environ, **env} if env else None
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=process_env,
        cwd=cwd,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except (asyncio.TimeoutError, asyncio.CancelledError) as e:
        if process.returncode is None:
            process.kill()
            await process.wait()
        if isinstance(e, asyncio.CancelledError):
            raise
        raise CommandTimeoutError(f"{argv[0]} timed out after {timeout}s") from e

    return CommandResult(
        argv=tuple(argv),
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
