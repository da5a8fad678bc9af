"""Unit tests for the validation runner."""

from __future__ import annotations

import asyncio

import pytest

from bluegreen.domain.errors import ValidationFailedError
from bluegreen.domain.models.deployment import ValidationKind, ValidationResult, ValidationStep
from bluegreen.domain.models.environment import Color
from bluegreen.domain.ports.services import StepOutcome, ValidationContext, ValidationExecutor
from bluegreen.domain.services.validation_runner import ValidationRunner


class ScriptedExecutor(ValidationExecutor):
    """Returns scripted outcomes per step name; the last outcome repeats."""

    def __init__(self, outcomes: dict[str, list[bool]] | None = None, delay: float = 0.0) -> None:
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls: list[str] = []

    async def execute(self, step: ValidationStep, context: ValidationContext) -> StepOutcome:
        self.calls.append(step.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        script = self.outcomes.get(step.name, [True])
        index = min(self.calls.count(step.name), len(script)) - 1
        if script[index]:
            return StepOutcome(success=True, output="ok")
        return StepOutcome(success=False, error=f"{step.name} attempt failed")


class RaisingExecutor(ValidationExecutor):
    async def execute(self, step: ValidationStep, context: ValidationContext) -> StepOutcome:
        raise RuntimeError("executor blew up")


@pytest.fixture
def context() -> ValidationContext:
    return ValidationContext(
        deployment_id="deploy-1",
        environment="prod",
        color=Color.GREEN,
        base_url="http://prod-green.test",
    )


def _runner(executor: ValidationExecutor) -> ValidationRunner:
    return ValidationRunner({kind: executor for kind in ValidationKind}, retry_delay_seconds=0.0)


class TestValidationRunner:
    @pytest.mark.asyncio
    async def test_runs_steps_in_order(self, context: ValidationContext) -> None:
        executor = ScriptedExecutor()
        steps = [
            ValidationStep(name="first", kind=ValidationKind.HTTP),
            ValidationStep(name="second", kind=ValidationKind.COMMAND),
            ValidationStep(name="third", kind=ValidationKind.CUSTOM),
        ]
        results = await _runner(executor).run(steps, context)
        assert executor.calls == ["first", "second", "third"]
        assert [r.step_name for r in results] == ["first", "second", "third"]
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_retry_safe_step_is_retried(self, context: ValidationContext) -> None:
        executor = ScriptedExecutor({"http": [False, False, True]})
        step = ValidationStep(name="http", kind=ValidationKind.HTTP, retries=3)
        [result] = await _runner(executor).run([step], context)
        assert result.success
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_command_step_runs_once(self, context: ValidationContext) -> None:
        executor = ScriptedExecutor({"migrate": [False, True]})
        step = ValidationStep(name="migrate", kind=ValidationKind.COMMAND, retries=3)
        [result] = await _runner(executor).run([step], context)
        assert not result.success
        assert result.attempts == 1
        assert executor.calls == ["migrate"]

    @pytest.mark.asyncio
    async def test_non_critical_failure_continues(self, context: ValidationContext) -> None:
        executor = ScriptedExecutor({"optional": [False]})
        steps = [
            ValidationStep(name="optional", kind=ValidationKind.CUSTOM),
            ValidationStep(name="after", kind=ValidationKind.CUSTOM),
        ]
        results = await _runner(executor).run(steps, context)
        assert [r.success for r in results] == [False, True]

    @pytest.mark.asyncio
    async def test_critical_failure_stops(self, context: ValidationContext) -> None:
        executor = ScriptedExecutor({"smoke": [False]})
        steps = [
            ValidationStep(name="smoke", kind=ValidationKind.CUSTOM, critical=True),
            ValidationStep(name="never", kind=ValidationKind.CUSTOM),
        ]
        with pytest.raises(ValidationFailedError) as exc_info:
            await _runner(executor).run(steps, context)
        assert exc_info.value.step_name == "smoke"
        assert [r.step_name for r in exc_info.value.results] == ["smoke"]
        assert "never" not in executor.calls

    @pytest.mark.asyncio
    async def test_attempt_timeout(self, context: ValidationContext) -> None:
        executor = ScriptedExecutor(delay=1.0)
        step = ValidationStep(name="slow", kind=ValidationKind.CUSTOM, timeout_seconds=0.05)
        [result] = await _runner(executor).run([step], context)
        assert not result.success
        assert "timed out" in (result.error or "")

    @pytest.mark.asyncio
    async def test_executor_exception_is_a_failure(self, context: ValidationContext) -> None:
        step = ValidationStep(name="boom", kind=ValidationKind.CUSTOM)
        [result] = await _runner(RaisingExecutor()).run([step], context)
        assert not result.success
        assert "executor blew up" in (result.error or "")

    @pytest.mark.asyncio
    async def test_missing_executor(self, context: ValidationContext) -> None:
        runner = ValidationRunner({}, retry_delay_seconds=0.0)
        step = ValidationStep(name="db", kind=ValidationKind.DATABASE)
        [result] = await runner.run([step], context)
        assert not result.success
        assert "No executor registered" in (result.error or "")

    @pytest.mark.asyncio
    async def test_on_result_sees_every_step(self, context: ValidationContext) -> None:
        seen: list[ValidationResult] = []
        steps = [
            ValidationStep(name="a", kind=ValidationKind.CUSTOM),
            ValidationStep(name="b", kind=ValidationKind.CUSTOM),
        ]
        await _runner(ScriptedExecutor()).run(steps, context, on_result=lambda _s, r: seen.append(r))
        assert [r.step_name for r in seen] == ["a", "b"]
