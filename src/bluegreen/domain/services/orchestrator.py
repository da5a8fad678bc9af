"""Blue/green deployment orchestration.

The orchestrator sequences one deployment per request::

    pending -> deploying -> validating -> switching -> completed
                   \\            \\             \\
                    +------------+-------------+--> failed [-> rolled_back]

Admission (conflict and health pre-checks) happens before any side effect.
Every later failure is recorded on the ``DeploymentStatus`` and, when the
artifact has been pushed and ``rollback_on_failure`` is set, handed to the
``RollbackController``. ``EnvironmentState`` in the ``StateStore`` is the
only source of truth for the live color and is written with
compare-and-swap.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

import structlog

from bluegreen.config import DeploymentSettings
from bluegreen.domain.errors import (
    CancellationNotAllowedError,
    ConflictError,
    DeployFailedError,
    DeploymentNotFoundError,
    DeployTimeoutError,
    HealthTimeoutError,
    HookFailedError,
    InvalidStateTransitionError,
    OrchestrationError,
    RollbackFailedError,
    StaleStateError,
    StateConflictError,
    UnhealthyEnvironmentError,
    ValidationFailedError,
)
from bluegreen.domain.models.base import utc_now
from bluegreen.domain.models.deployment import (
    CANCELLABLE_STATES,
    DeploymentConfig,
    DeploymentError,
    DeploymentMetrics,
    DeploymentOptions,
    DeploymentState,
    DeploymentStatus,
    RollbackTrigger,
    ValidationResult,
    ValidationStep,
)
from bluegreen.domain.models.environment import (
    Color,
    EnvironmentState,
    HealthStatus,
    PerformanceSnapshot,
)
from bluegreen.domain.models.health import HealthReport
from bluegreen.domain.ports.repositories import StateStore
from bluegreen.domain.ports.services import (
    DistributedLock,
    EventPublisher,
    HookRunner,
    PlatformAdapter,
    ValidationContext,
)
from bluegreen.domain.services.health_probe import HealthProbe, resolve_base_url
from bluegreen.domain.services.rollback_controller import (
    hook_environment,
    RollbackController,
)
from bluegreen.domain.services.traffic_switcher import TrafficSwitcher
from bluegreen.domain.services.validation_runner import ValidationRunner
from bluegreen.infrastructure.observability.metrics import (
    ACTIVE_DEPLOYMENTS,
    DEPLOYMENT_DURATION,
    DEPLOYMENTS_REJECTED,
    DEPLOYMENTS_TOTAL,
    DISTRIBUTED_LOCK_OPERATIONS,
    HOOKS_TOTAL,
)
from bluegreen.infrastructure.observability.tracing import get_tracer


logger = structlog.get_logger(__name__)


def environment_lock_key(environment: str) -> str:
    return f"environment:{environment}"


class DeploymentOrchestrator:
    """Runs blue/green deployments against injected collaborators.

    One instance owns the deployments it admitted. Different environments
    proceed in parallel; a second deployment for an environment is refused
    while one is active unless the caller forces it.
    """

    def __init__(
        self,
        store: StateStore,
        platform: PlatformAdapter,
        probe: HealthProbe,
        validator: ValidationRunner,
        switcher: TrafficSwitcher,
        rollback_controller: RollbackController,
        hooks: HookRunner,
        lock: DistributedLock,
        events: EventPublisher,
        settings: DeploymentSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._platform = platform
        self._probe = probe
        self._validator = validator
        self._switcher = switcher
        self._rollback = rollback_controller
        self._hooks = hooks
        self._lock = lock
        self._events = events
        self._settings = settings
        self._clock = clock
        self._tracer = get_tracer(__name__)

        self._admission_lock = asyncio.Lock()
        self._active: dict[str, DeploymentStatus] = {}
        self._tasks: dict[str, asyncio.Task[DeploymentStatus]] = {}
        self._lock_holders: set[str] = set()
        self._running: set[str] = set()
        self._cancel_requested: set[str] = set()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start_deployment(
        self,
        config: DeploymentConfig,
        version: str,
        options: DeploymentOptions | None = None,
    ) -> DeploymentStatus:
        """Admit and run a deployment to a terminal state."""
        status = await self.submit_deployment(config, version, options)
        return await self.wait_for(status.id)

    async def submit_deployment(
        self,
        config: DeploymentConfig,
        version: str,
        options: DeploymentOptions | None = None,
    ) -> DeploymentStatus:
        """Admit a deployment and run it in the background.

        Raises ``ConflictError`` or ``UnhealthyEnvironmentError`` when the
        request is refused; nothing is persisted in that case.
        """
        options = options or DeploymentOptions()
        status = await self._admit(config, version, options)
        task = asyncio.create_task(
            self._execute(status, options), name=f"deployment-{status.id}"
        )
        self._tasks[status.id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(status.id, None))
        return status

    async def wait_for(self, deployment_id: str) -> DeploymentStatus:
        """Wait until a deployment owned by this orchestrator is terminal."""
        task = self._tasks.get(deployment_id)
        if task is not None:
            return await asyncio.shield(task)
        return await self.get_deployment(deployment_id)

    async def get_deployment(self, deployment_id: str) -> DeploymentStatus:
        status = self._active.get(deployment_id)
        if status is not None:
            return status
        status = await self._store.get_deployment(deployment_id)
        if status is None:
            raise DeploymentNotFoundError(f"Deployment {deployment_id} not found")
        return status

    async def list_deployments(self, environment: str | None = None) -> list[DeploymentStatus]:
        persisted = await self._store.list_deployments(environment)
        merged = {d.id: d for d in persisted}
        for status in self._active.values():
            if environment is None or status.environment == environment:
                merged[status.id] = status
        return sorted(merged.values(), key=lambda d: d.start_time, reverse=True)

    async def get_environment_state(self, environment: str) -> EnvironmentState | None:
        return await self._store.load_environment_state(environment)

    async def get_metrics(self, environment: str | None = None) -> DeploymentMetrics:
        return DeploymentMetrics.from_deployments(await self.list_deployments(environment))

    async def cancel_deployment(self, deployment_id: str) -> DeploymentStatus:
        """Cancel a deployment that has not started switching traffic."""
        status = self._active.get(deployment_id)
        if status is None:
            persisted = await self.get_deployment(deployment_id)
            raise CancellationNotAllowedError(
                f"Deployment {deployment_id} is {persisted.status.value} and not running here"
            )
        if status.status not in CANCELLABLE_STATES:
            raise CancellationNotAllowedError(
                f"Deployment {deployment_id} is {status.status.value}; "
                "request a rollback instead"
            )

        task = self._tasks.get(deployment_id)
        if task is None:
            raise CancellationNotAllowedError(f"Deployment {deployment_id} has no running task")

        logger.info("deployment_cancel_requested", deployment_id=deployment_id)
        self._cancel_requested.add(deployment_id)
        if deployment_id in self._running:
            task.cancel()
        return await asyncio.shield(task)

    async def rollback_deployment(
        self,
        deployment_id: str,
        reason: str,
        trigger: RollbackTrigger = RollbackTrigger.MANUAL,
    ) -> DeploymentStatus:
        """Revert a finished deployment to its pre-deployment color.

        Rolling back an already rolled back deployment returns it unchanged.
        A failed deployment that never moved traffic is only recorded as
        rolled back; routing and the environment record belong to whatever
        is live now.
        """
        status = await self.get_deployment(deployment_id)
        if status.status == DeploymentState.ROLLED_BACK:
            return status
        if not status.is_terminal:
            raise InvalidStateTransitionError(
                f"Deployment {deployment_id} is still {status.status.value}; cancel it instead"
            )

        environment = status.environment
        async with self._admission_lock:
            if self._has_local_active(environment) or await self._has_persisted_active(environment):
                raise ConflictError(f"A deployment is in progress for environment {environment}")
            lock_key = environment_lock_key(environment)
            if not await self._acquire_lock(lock_key):
                raise ConflictError(f"Environment {environment} is locked by another deployment")

        try:
            moved_traffic = status.status == DeploymentState.COMPLETED or status.traffic_switched
            if moved_traffic:
                state = await self._store.load_environment_state(environment)
                if state is None or state.last_deployment_id != status.id:
                    raise StateConflictError(
                        f"Deployment {deployment_id} is no longer live in {environment}"
                    )

            status.reopen_for_rollback()
            try:
                await self._rollback.rollback(status, trigger, reason, revert_live=moved_traffic)
            except RollbackFailedError:
                status.finalize(self._clock())
                await self._persist(status)
                raise

            if moved_traffic:
                await self._restore_environment_state(status)
            status.finalize(self._clock())
            await self._persist(status)
            await self._publish_events(status)
            DEPLOYMENTS_TOTAL.labels(status=status.status.value, environment=environment).inc()
            return status
        finally:
            await self._release_lock(lock_key)

    async def check_environment_health(self, config: DeploymentConfig) -> HealthReport:
        """Probe the live color and record the result on the environment."""
        environment = config.environment
        state = await self._store.load_environment_state(environment)
        if state is None or state.active_color == Color.UNKNOWN:
            return HealthReport(
                healthy=False,
                error_rate=100.0,
                issues=["Environment state not found"],
            )

        report = await self._probe.check(
            environment,
            state.active_color,
            config.health_check_endpoints,
            self._settings.health_check_timeout_seconds,
            config.base_url_template,
        )
        health = HealthStatus.HEALTHY if report.healthy else HealthStatus.UNHEALTHY
        for _ in range(self._settings.state_persist_max_attempts):
            current = await self._store.load_environment_state(environment)
            if current is None:
                break
            updated = current.model_copy(update={
                "health_status": health,
                "performance": PerformanceSnapshot(
                    avg_response_time_ms=report.avg_response_time_ms,
                    error_rate=report.error_rate,
                    sampled_at=report.checked_at,
                ),
            })
            try:
                await self._store.save_environment_state(updated, current.revision)
                break
            except StaleStateError:
                logger.info("environment_health_write_retry", environment=environment)

        logger.info(
            "environment_health_checked",
            environment=environment,
            color=state.active_color.value,
            healthy=report.healthy,
            avg_response_time_ms=report.avg_response_time_ms,
        )
        return report

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def _has_local_active(self, environment: str) -> bool:
        return any(d.environment == environment for d in self._active.values())

    async def _has_persisted_active(self, environment: str) -> bool:
        for deployment in await self._store.list_deployments(environment):
            if deployment.is_active and deployment.id not in self._active:
                return True
        return False

    async def _admit(
        self,
        config: DeploymentConfig,
        version: str,
        options: DeploymentOptions,
    ) -> DeploymentStatus:
        environment = config.environment
        async with self._admission_lock:
            if not options.force and (
                self._has_local_active(environment)
                or await self._has_persisted_active(environment)
            ):
                self._reject(environment, "conflict")
                raise ConflictError(
                    f"Deployment already in progress for environment {environment}"
                )

            lock_key = environment_lock_key(environment)
            holds_lock = await self._acquire_lock(lock_key)
            if not holds_lock and not options.force:
                self._reject(environment, "locked")
                raise ConflictError(
                    f"Environment {environment} is locked by another deployment"
                )

            state = await self._store.load_environment_state(environment)
            if (
                state is not None
                and state.health_status == HealthStatus.UNHEALTHY
                and not options.force
            ):
                if holds_lock:
                    await self._release_lock(lock_key)
                self._reject(environment, "unhealthy")
                raise UnhealthyEnvironmentError(
                    f"Environment {environment} is unhealthy. Force deployment required."
                )

            current = state.active_color if state else Color.UNKNOWN
            target = current.inverse() or self._settings.default_color
            status = DeploymentStatus(
                environment=environment,
                deployment_config=config,
                start_time=self._clock(),
                current_color=current,
                target_color=target,
                requested_version=version,
                previous_version=state.current_version if state else "",
                metadata={
                    "version": version,
                    "force": options.force,
                    "skip_validation": options.skip_validation,
                    "custom_timeout_seconds": options.custom_timeout_seconds,
                },
            )
            if holds_lock:
                self._lock_holders.add(status.id)
            self._active[status.id] = status
            await self._persist(status)

        ACTIVE_DEPLOYMENTS.labels(environment=environment).inc()
        logger.info(
            "deployment_admitted",
            deployment_id=status.id,
            environment=environment,
            version=version,
            current_color=current.value,
            target_color=target.value,
            force=options.force,
        )
        return status

    def _reject(self, environment: str, reason: str) -> None:
        DEPLOYMENTS_REJECTED.labels(environment=environment, reason=reason).inc()
        logger.warning("deployment_rejected", environment=environment, reason=reason)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _execute(
        self, status: DeploymentStatus, options: DeploymentOptions
    ) -> DeploymentStatus:
        config = status.deployment_config
        timeout = options.custom_timeout_seconds or config.timeout_seconds
        try:
            self._running.add(status.id)
            if status.id in self._cancel_requested:
                raise asyncio.CancelledError
            with self._tracer.start_as_current_span(
                "bluegreen.deployment",
                attributes={
                    "deployment.id": status.id,
                    "deployment.environment": status.environment,
                    "deployment.target_color": status.target_color.value,
                },
            ):
                await self._run_pipeline(status, options, timeout)
        except asyncio.CancelledError:
            if status.id not in self._cancel_requested:
                status.record_error(DeploymentError(
                    code="INTERRUPTED", message="Deployment task was interrupted"
                ))
                if not status.is_terminal:
                    status.fail("interrupted")
                await self._finish(status)
                raise
            current_task = asyncio.current_task()
            if current_task is not None:
                current_task.uncancel()
            try:
                await self._handle_cancellation(status)
            except Exception as cleanup_error:
                self._record_cleanup_error(status, cleanup_error)
        except Exception as e:
            try:
                await self._handle_failure(status, e)
            except Exception as cleanup_error:
                self._record_cleanup_error(status, cleanup_error)

        await self._finish(status)
        return status

    def _record_cleanup_error(self, status: DeploymentStatus, error: Exception) -> None:
        """A failure while handling a failure still ends the deployment."""
        logger.exception(
            "deployment_cleanup_failed",
            deployment_id=status.id,
            environment=status.environment,
            error=str(error),
        )
        status.record_error(DeploymentError.from_exception(error))
        if not status.is_terminal:
            status.fail(str(error) or type(error).__name__)

    async def _run_pipeline(
        self,
        status: DeploymentStatus,
        options: DeploymentOptions,
        timeout: float,
    ) -> None:
        config = status.deployment_config
        environment = status.environment

        status.start_deploying()
        await self._persist(status)
        await self._publish_events(status)

        await self._run_hook(status, config.hooks.pre_deploy, "pre-deploy")

        if config.backup_before_deploy:
            await self._create_backup(status)

        with self._tracer.start_as_current_span("bluegreen.deploy_artifact"):
            try:
                report = await asyncio.wait_for(self._deploy_artifact(status), timeout)
            except asyncio.TimeoutError as e:
                raise DeployTimeoutError(
                    f"Deployment to {environment}-{status.target_color.value} "
                    f"did not become healthy within {timeout}s"
                ) from e
        logger.info(
            "artifact_deployed",
            deployment_id=status.id,
            environment=environment,
            color=status.target_color.value,
            avg_response_time_ms=report.avg_response_time_ms,
        )

        if options.skip_validation:
            status.add_warning("Validation skipped at caller request")
        else:
            status.start_validating()
            await self._persist(status)
            with self._tracer.start_as_current_span("bluegreen.validate"):
                await self._validate(status)

        status.start_switching()
        await self._persist(status)
        with self._tracer.start_as_current_span("bluegreen.switch_traffic"):
            await self._switcher.switch(
                environment, status.current_color, status.target_color, timeout
            )
        status.mark_traffic_switched()
        await self._persist(status)
        await self._publish_events(status)

        with self._tracer.start_as_current_span("bluegreen.post_switch_health"):
            try:
                report = await asyncio.wait_for(
                    self._probe.wait_until_healthy(
                        environment,
                        status.target_color,
                        config.health_check_endpoints,
                        self._settings.health_check_timeout_seconds,
                        self._settings.post_switch_max_retries,
                        self._settings.health_retry_delay_seconds,
                        config.base_url_template,
                    ),
                    timeout,
                )
            except asyncio.TimeoutError as e:
                raise HealthTimeoutError(
                    f"Post-switch health check of {environment} timed out after {timeout}s"
                ) from e

        try:
            await self._run_hook(status, config.hooks.post_deploy, "post-deploy")
        except HookFailedError as e:
            status.add_warning(f"post-deploy hook failed: {e.message}")

        await self._commit_environment_state(status, report)
        status.complete(self._clock())
        logger.info(
            "deployment_completed",
            deployment_id=status.id,
            environment=environment,
            color=status.target_color.value,
            version=status.requested_version,
        )

    async def _deploy_artifact(self, status: DeploymentStatus) -> HealthReport:
        config = status.deployment_config
        status.mark_artifact_deployed()
        try:
            await self._platform.deploy(
                status.environment, status.target_color, status.requested_version
            )
        except OrchestrationError:
            raise
        except Exception as e:
            raise DeployFailedError(
                f"Deployment to {status.environment}-{status.target_color.value} failed: {e}"
            ) from e

        try:
            return await self._probe.wait_until_healthy(
                status.environment,
                status.target_color,
                config.health_check_endpoints,
                self._settings.health_check_timeout_seconds,
                self._settings.health_max_retries,
                self._settings.health_retry_delay_seconds,
                config.base_url_template,
            )
        except HealthTimeoutError as e:
            raise DeployTimeoutError(e.message, e.details) from e

    async def _validate(self, status: DeploymentStatus) -> None:
        config = status.deployment_config

        def record(step: ValidationStep, result: ValidationResult) -> None:
            status.record_validation_result(result)
            if not result.success and not step.critical:
                status.add_warning(
                    f"Non-critical validation step '{step.name}' failed: {result.error}"
                )

        context = ValidationContext(
            deployment_id=status.id,
            environment=status.environment,
            color=status.target_color,
            base_url=resolve_base_url(
                config.base_url_template or self._settings.base_url_template,
                status.environment,
                status.target_color,
            ),
        )
        await self._validator.run(config.validation_steps, context, on_result=record)

    async def _create_backup(self, status: DeploymentStatus) -> None:
        try:
            backup_id = await self._store.create_backup(status.environment)
        except Exception as e:
            status.add_warning(f"Failed to create backup: {e}")
            logger.warning("backup_failed", deployment_id=status.id, error=str(e))
            return
        status.metadata["backup_id"] = backup_id
        logger.info("backup_created", deployment_id=status.id, backup_id=backup_id)

    async def _run_hook(self, status: DeploymentStatus, command: str | None, phase: str) -> None:
        if not command:
            return
        try:
            await self._hooks.run(
                command,
                phase,
                hook_environment(status, phase),
                self._settings.hook_timeout_seconds,
            )
        except HookFailedError:
            HOOKS_TOTAL.labels(phase=phase, result="failure").inc()
            raise
        HOOKS_TOTAL.labels(phase=phase, result="success").inc()

    # ------------------------------------------------------------------
    # Environment state
    # ------------------------------------------------------------------

    async def _commit_environment_state(
        self, status: DeploymentStatus, report: HealthReport
    ) -> EnvironmentState:
        """Point the environment at the target color with compare-and-swap."""
        environment = status.environment
        for attempt in range(1, self._settings.state_persist_max_attempts + 1):
            current = await self._store.load_environment_state(environment)
            live = current.active_color if current else Color.UNKNOWN
            if live not in {status.current_color, status.target_color}:
                raise StateConflictError(
                    f"Active color of {environment} changed to {live.value} during deployment",
                    {"expected": status.current_color.value, "found": live.value},
                )
            base = current or EnvironmentState(name=environment, revision=0)
            updated = base.model_copy(update={
                "active_color": status.target_color,
                "current_version": status.requested_version,
                "last_deployment_time": self._clock(),
                "last_deployment_id": status.id,
                "health_status": HealthStatus.HEALTHY,
                "performance": PerformanceSnapshot(
                    avg_response_time_ms=report.avg_response_time_ms,
                    error_rate=report.error_rate,
                    sampled_at=report.checked_at,
                ),
            })
            try:
                return await self._store.save_environment_state(updated, base.revision)
            except StaleStateError:
                logger.info(
                    "environment_state_write_retry",
                    deployment_id=status.id,
                    environment=environment,
                    attempt=attempt,
                )
        raise StateConflictError(
            f"Could not persist state of {environment} after "
            f"{self._settings.state_persist_max_attempts} attempts"
        )

    async def _restore_environment_state(self, status: DeploymentStatus) -> None:
        """After a manual rollback, point the store back at the previous color."""
        environment = status.environment
        for _ in range(self._settings.state_persist_max_attempts):
            current = await self._store.load_environment_state(environment)
            if current is None:
                return
            if (
                current.active_color == status.current_color
                and current.current_version == status.previous_version
            ):
                return
            updated = current.model_copy(update={
                "active_color": status.current_color,
                "current_version": status.previous_version,
                "last_deployment_time": self._clock(),
                "last_deployment_id": status.id,
                "health_status": HealthStatus.UNKNOWN,
            })
            try:
                await self._store.save_environment_state(updated, current.revision)
                return
            except StaleStateError:
                logger.info("environment_state_write_retry", deployment_id=status.id)
        raise StateConflictError(f"Could not restore state of {environment}")

    async def _mark_live_target_unhealthy(self, status: DeploymentStatus) -> None:
        """Traffic stayed on the target color: record it as live but unhealthy."""
        environment = status.environment
        for _ in range(self._settings.state_persist_max_attempts):
            current = await self._store.load_environment_state(environment)
            base = current or EnvironmentState(name=environment, revision=0)
            updated = base.model_copy(update={
                "active_color": status.target_color,
                "current_version": status.requested_version,
                "last_deployment_time": self._clock(),
                "last_deployment_id": status.id,
                "health_status": HealthStatus.UNHEALTHY,
            })
            try:
                await self._store.save_environment_state(updated, base.revision)
                return
            except StaleStateError:
                continue
        status.add_warning(f"Could not record live color of {environment}")

    # ------------------------------------------------------------------
    # Failure, cancellation, completion
    # ------------------------------------------------------------------

    async def _handle_failure(self, status: DeploymentStatus, error: Exception) -> None:
        status.record_error(DeploymentError.from_exception(error))
        if not status.is_terminal:
            message = error.message if isinstance(error, OrchestrationError) else str(error)
            status.fail(message or type(error).__name__)

        if isinstance(error, OrchestrationError):
            logger.warning(
                "deployment_failed",
                deployment_id=status.id,
                environment=status.environment,
                code=error.code,
                error=error.message,
            )
        else:
            logger.exception(
                "deployment_failed_unexpectedly",
                deployment_id=status.id,
                environment=status.environment,
                error=str(error),
            )

        config = status.deployment_config
        state_conflict = isinstance(error, StateConflictError)
        if status.artifact_deployed and config.rollback_on_failure and not state_conflict:
            trigger = self._rollback_trigger(status, error)
            try:
                await self._rollback.rollback(status, trigger, str(error))
            except RollbackFailedError as e:
                logger.error(
                    "automatic_rollback_failed",
                    deployment_id=status.id,
                    error=e.message,
                )

        if (
            status.traffic_switched
            and status.status != DeploymentState.ROLLED_BACK
            and not state_conflict
        ):
            await self._mark_live_target_unhealthy(status)

    @staticmethod
    def _rollback_trigger(status: DeploymentStatus, error: Exception) -> RollbackTrigger:
        if isinstance(error, ValidationFailedError):
            return RollbackTrigger.VALIDATION_FAILED
        if isinstance(error, HealthTimeoutError) and status.traffic_switched:
            return RollbackTrigger.HEALTH_CHECK_FAILED
        return RollbackTrigger.AUTOMATIC

    async def _handle_cancellation(self, status: DeploymentStatus) -> None:
        status.record_error(DeploymentError(
            code="CANCELLED", message="Deployment cancelled by caller"
        ))
        status.mark_cancelled()
        logger.info(
            "deployment_cancelled",
            deployment_id=status.id,
            environment=status.environment,
        )
        if not status.artifact_deployed:
            return

        hooks = status.deployment_config.hooks
        for command, phase in (
            (hooks.pre_rollback, "pre-rollback"),
            (hooks.post_rollback, "post-rollback"),
        ):
            try:
                await self._run_hook(status, command, phase)
            except HookFailedError as e:
                status.add_warning(f"{phase} hook failed during cancellation: {e.message}")

    async def _finish(self, status: DeploymentStatus) -> None:
        status.finalize(self._clock())
        self._active.pop(status.id, None)
        self._cancel_requested.discard(status.id)
        self._running.discard(status.id)
        if status.id in self._lock_holders:
            self._lock_holders.discard(status.id)
            await self._release_lock(environment_lock_key(status.environment))

        ACTIVE_DEPLOYMENTS.labels(environment=status.environment).dec()
        DEPLOYMENTS_TOTAL.labels(
            status=status.status.value, environment=status.environment
        ).inc()
        DEPLOYMENT_DURATION.labels(
            environment=status.environment, status=status.status.value
        ).observe(status.duration_seconds)

        await self._persist(status)
        await self._publish_events(status)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _persist(self, status: DeploymentStatus) -> None:
        await self._store.save_deployment(status)

    async def _publish_events(self, status: DeploymentStatus) -> None:
        """Collect and publish all pending domain events from a deployment."""
        for event in status.collect_events():
            await self._events.publish(event.event_type, event.model_dump(mode="json"))

    async def _acquire_lock(self, key: str) -> bool:
        acquired = await self._lock.acquire(key, ttl_seconds=self._settings.lock_ttl_seconds)
        DISTRIBUTED_LOCK_OPERATIONS.labels(
            operation="acquire", result="success" if acquired else "failure"
        ).inc()
        return acquired

    async def _release_lock(self, key: str) -> None:
        released = await self._lock.release(key)
        DISTRIBUTED_LOCK_OPERATIONS.labels(
            operation="release", result="success" if released else "failure"
        ).inc()
