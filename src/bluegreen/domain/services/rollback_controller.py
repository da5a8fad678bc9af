"""Reverting a deployment to the color that was live before it."""

from __future__ import annotations

import time

import structlog

from bluegreen.domain.errors import HookFailedError, RollbackFailedError
from bluegreen.domain.models.deployment import (
    DeploymentError,
    DeploymentState,
    DeploymentStatus,
    RollbackInfo,
    RollbackTrigger,
)
from bluegreen.domain.models.environment import Color
from bluegreen.domain.ports.repositories import StateStore
from bluegreen.domain.ports.services import HookRunner
from bluegreen.domain.services.traffic_switcher import TrafficSwitcher
from bluegreen.infrastructure.observability.metrics import ROLLBACKS_TOTAL


logger = structlog.get_logger(__name__)


def hook_environment(status: DeploymentStatus, phase: str) -> dict[str, str]:
    """Environment variables handed to lifecycle hook commands."""
    return {
        "DEPLOY_PHASE": phase,
        "DEPLOYMENT_ID": status.id,
        "DEPLOY_ENVIRONMENT": status.environment,
        "DEPLOY_VERSION": status.requested_version,
        "DEPLOY_PREVIOUS_VERSION": status.previous_version,
        "DEPLOY_CURRENT_COLOR": status.current_color.value,
        "DEPLOY_TARGET_COLOR": status.target_color.value,
    }


class RollbackController:
    """Restores the pre-deployment color of an environment.

    The color to return to is ``status.current_color``, captured when the
    deployment was submitted, never the live pointer at rollback time.
    Calling ``rollback`` on a deployment that is already rolled back returns
    the recorded ``RollbackInfo`` without touching the platform.
    """

    def __init__(
        self,
        switcher: TrafficSwitcher,
        hooks: HookRunner,
        store: StateStore,
        hook_timeout_seconds: float = 300.0,
    ) -> None:
        self._switcher = switcher
        self._hooks = hooks
        self._store = store
        self._hook_timeout = hook_timeout_seconds

    async def rollback(
        self,
        status: DeploymentStatus,
        trigger: RollbackTrigger,
        reason: str,
        revert_live: bool = True,
    ) -> RollbackInfo:
        """Run the rollback for ``status``.

        With ``revert_live`` false only the hooks run and the rollback is
        recorded; routing and backed up data are left untouched.
        """
        if status.status == DeploymentState.ROLLED_BACK and status.rollback_info is not None:
            logger.info("rollback_already_done", deployment_id=status.id)
            return status.rollback_info

        config = status.deployment_config
        started = time.monotonic()
        status.start_rollback(trigger)
        logger.info(
            "rollback_started",
            deployment_id=status.id,
            environment=status.environment,
            trigger=trigger.value,
            reason=reason,
        )

        await self._run_hook(status, config.hooks.pre_rollback, "pre-rollback")

        try:
            if revert_live:
                await self._revert_routing(status, config.timeout_seconds)
        except Exception as e:
            ROLLBACKS_TOTAL.labels(trigger=trigger.value, result="failure").inc()
            error = RollbackFailedError(
                f"Rollback of {status.id} failed: {e}",
                {"trigger": trigger.value, "reason": reason},
            )
            status.record_error(DeploymentError.from_exception(error))
            logger.error(
                "rollback_failed",
                deployment_id=status.id,
                environment=status.environment,
                error=str(e),
            )
            raise error from e

        data_restored = await self._restore_data(status) if revert_live else False
        await self._run_hook(status, config.hooks.post_rollback, "post-rollback")

        info = RollbackInfo(
            reason=reason,
            trigger=trigger,
            target_version=status.previous_version or "unknown",
            target_color=status.current_color,
            rollback_duration_seconds=time.monotonic() - started,
            data_restored=data_restored,
        )
        status.complete_rollback(info)
        ROLLBACKS_TOTAL.labels(trigger=trigger.value, result="success").inc()
        logger.info(
            "rollback_completed",
            deployment_id=status.id,
            environment=status.environment,
            color=status.current_color.value,
            duration_seconds=info.rollback_duration_seconds,
        )
        return info

    async def _revert_routing(self, status: DeploymentStatus, timeout: float) -> None:
        previous = status.current_color
        if previous == Color.UNKNOWN:
            if status.traffic_switched:
                raise RollbackFailedError(
                    "No previously active color is known to switch back to"
                )
            # Routing was never moved, so there is nothing to revert.
            return
        await self._switcher.switch(
            status.environment, status.target_color, previous, timeout
        )

    async def _restore_data(self, status: DeploymentStatus) -> bool:
        backup_id = status.metadata.get("backup_id")
        if not status.deployment_config.restore_data_on_rollback or not backup_id:
            return False
        try:
            restored = await self._store.restore_backup(backup_id)
        except Exception as e:
            status.add_warning(f"Failed to restore backup {backup_id}: {e}")
            return False
        if not restored:
            status.add_warning(f"Backup {backup_id} not found; data not restored")
        return restored

    async def _run_hook(self, status: DeploymentStatus, command: str | None, phase: str) -> None:
        if not command:
            return
        try:
            await self._hooks.run(
                command, phase, hook_environment(status, phase), self._hook_timeout
            )
        except HookFailedError as e:
            status.add_warning(f"{phase} hook failed: {e.message}")
            logger.warning("rollback_hook_failed", deployment_id=status.id, phase=phase)
