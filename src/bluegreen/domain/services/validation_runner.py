"""Sequential validation of a freshly deployed color."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping

import structlog

from bluegreen.domain.errors import ValidationFailedError
from bluegreen.domain.models.deployment import (
    ValidationKind,
    ValidationResult,
    ValidationStep,
)
from bluegreen.domain.ports.services import (
    StepOutcome,
    ValidationContext,
    ValidationExecutor,
)
from bluegreen.infrastructure.observability.metrics import VALIDATION_STEPS_TOTAL


logger = structlog.get_logger(__name__)

ResultCallback = Callable[[ValidationStep, ValidationResult], None]


class ValidationRunner:
    """Runs validation steps strictly in order.

    Each attempt is bounded by the step's own timeout. Only retry-safe kinds
    (``http``, ``file``) are retried; ``command``, ``database`` and ``custom``
    steps run exactly once. A failed critical step raises
    ``ValidationFailedError`` and no further steps run.
    """

    def __init__(
        self,
        executors: Mapping[ValidationKind, ValidationExecutor],
        retry_delay_seconds: float = 1.0,
    ) -> None:
        self._executors = dict(executors)
        self._retry_delay = retry_delay_seconds

    async def run(
        self,
        steps: list[ValidationStep],
        context: ValidationContext,
        on_result: ResultCallback | None = None,
    ) -> list[ValidationResult]:
        results: list[ValidationResult] = []
        for step in steps:
            result = await self._run_step(step, context)
            results.append(result)
            VALIDATION_STEPS_TOTAL.labels(
                kind=step.kind.value,
                result="success" if result.success else "failure",
            ).inc()

            if on_result is not None:
                on_result(step, result)

            if result.success:
                continue

            if step.critical:
                logger.warning(
                    "critical_validation_failed",
                    deployment_id=context.deployment_id,
                    step=step.name,
                    error=result.error,
                )
                raise ValidationFailedError(
                    step.name,
                    f"Critical validation step '{step.name}' failed: {result.error}",
                    results,
                )

            logger.warning(
                "validation_step_failed",
                deployment_id=context.deployment_id,
                step=step.name,
                error=result.error,
            )
        return results

    async def _run_step(
        self, step: ValidationStep, context: ValidationContext
    ) -> ValidationResult:
        max_attempts = step.retries + 1 if step.retry_safe else 1
        started = time.monotonic()
        outcome = StepOutcome(success=False, error="not executed")
        attempt = 0

        for attempt in range(1, max_attempts + 1):
            outcome = await self._attempt(step, context)
            if outcome.success:
                break
            if attempt < max_attempts:
                logger.info(
                    "validation_step_retry",
                    step=step.name,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=outcome.error,
                )
                await asyncio.sleep(self._retry_delay)

        return ValidationResult(
            step_name=step.name,
            success=outcome.success,
            duration_ms=(time.monotonic() - started) * 1000,
            attempts=attempt,
            error=None if outcome.success else outcome.error,
            output=outcome.output or None,
        )

    async def _attempt(
        self, step: ValidationStep, context: ValidationContext
    ) -> StepOutcome:
        executor = self._executors.get(step.kind)
        if executor is None:
            return StepOutcome(
                success=False,
                error=f"No executor registered for validation kind '{step.kind.value}'",
            )
        try:
            return await asyncio.wait_for(
                executor.execute(step, context), step.timeout_seconds
            )
        except asyncio.TimeoutError:
            return StepOutcome(
                success=False,
                error=f"Step '{step.name}' timed out after {step.timeout_seconds}s",
            )
        except Exception as e:
            logger.exception("validation_step_error", step=step.name, error=str(e))
            return StepOutcome(success=False, error=f"{type(e).__name__}: {e}")
