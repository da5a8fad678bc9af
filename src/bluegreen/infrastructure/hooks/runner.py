"""Lifecycle hook execution."""

from __future__ import annotations

import structlog

from bluegreen.domain.errors import HookFailedError
from bluegreen.domain.ports.services import HookRunner
from bluegreen.infrastructure.process import CommandTimeoutError, run_command


logger = structlog.get_logger(__name__)


class SubprocessHookRunner(HookRunner):
    """Runs hook commands as child processes without a shell.

    A non-zero exit status, a timeout or a command that cannot be started
    all raise ``HookFailedError``.
    """

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd

    async def run(
        self, command: str, phase: str, env: dict[str, str], timeout: float
    ) -> str:
        logger.info("hook_started", phase=phase, command=command)
        try:
            result = await run_command(command, timeout, env=env, cwd=self._cwd)
        except CommandTimeoutError as e:
            raise HookFailedError(phase, f"{phase} hook timed out after {timeout}s") from e
        except (OSError, ValueError) as e:
            raise HookFailedError(phase, f"{phase} hook could not be started: {e}") from e

        if not result.ok:
            logger.warning(
                "hook_failed",
                phase=phase,
                returncode=result.returncode,
                stderr=result.stderr.strip()[-500:],
            )
            raise HookFailedError(
                phase, f"{phase} hook exited with status {result.returncode}"
            )

        logger.info("hook_completed", phase=phase)
        return result.stdout
