"""Unit tests for the deployment domain model."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from bluegreen.domain.errors import InvalidStateTransitionError, ValidationFailedError
from bluegreen.domain.models.base import utc_now
from bluegreen.domain.models.deployment import (
    DeploymentConfig,
    DeploymentError,
    DeploymentMetrics,
    DeploymentOptions,
    DeploymentState,
    DeploymentStatus,
    DeploymentStrategy,
    RollbackInfo,
    RollbackTrigger,
    VALID_TRANSITIONS,
    ValidationKind,
    ValidationStep,
)
from bluegreen.domain.models.environment import Color


def _make_status(**overrides: object) -> DeploymentStatus:
    data: dict = {
        "environment": "prod",
        "deployment_config": DeploymentConfig(environment="prod"),
        "current_color": Color.BLUE,
        "target_color": Color.GREEN,
        "requested_version": "v1.1",
        "previous_version": "v1.0",
    }
    data.update(overrides)
    return DeploymentStatus(**data)


def _run_to_switching(status: DeploymentStatus) -> None:
    status.start_deploying()
    status.start_validating()
    status.start_switching()


class TestDeploymentStateMachine:
    """Tests for deployment state machine transitions."""

    def test_initial_status_is_pending(self) -> None:
        assert _make_status().status == DeploymentState.PENDING

    def test_happy_path(self) -> None:
        status = _make_status()
        _run_to_switching(status)
        status.mark_traffic_switched()
        status.complete(utc_now())
        assert status.status == DeploymentState.COMPLETED
        assert status.end_time is not None
        assert status.is_terminal

    def test_validation_may_be_skipped(self) -> None:
        status = _make_status()
        status.start_deploying()
        status.start_switching()
        assert status.status == DeploymentState.SWITCHING

    def test_cannot_switch_from_pending(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            _make_status().start_switching()

    def test_cannot_complete_from_validating(self) -> None:
        status = _make_status()
        status.start_deploying()
        status.start_validating()
        with pytest.raises(InvalidStateTransitionError):
            status.complete(utc_now())

    def test_fail_from_every_active_state(self) -> None:
        for prefix in ([], ["start_deploying"], ["start_deploying", "start_validating"]):
            status = _make_status()
            for step in prefix:
                getattr(status, step)()
            status.fail("boom")
            assert status.status == DeploymentState.FAILED
            assert status.failure_reason == "boom"

    def test_rolled_back_is_final(self) -> None:
        assert VALID_TRANSITIONS[DeploymentState.ROLLED_BACK] == set()

    def test_finalized_record_is_immutable(self) -> None:
        status = _make_status()
        status.fail("boom")
        status.finalize(utc_now())
        with pytest.raises(InvalidStateTransitionError):
            status.add_warning("late")

    def test_finalize_requires_terminal_state(self) -> None:
        status = _make_status()
        status.start_deploying()
        with pytest.raises(InvalidStateTransitionError):
            status.finalize(utc_now())

    def test_finalize_keeps_first_end_time(self) -> None:
        status = _make_status()
        _run_to_switching(status)
        completed_at = utc_now()
        status.complete(completed_at)
        status.finalize(completed_at + timedelta(seconds=5))
        assert status.end_time == completed_at

    def test_reopen_for_rollback(self) -> None:
        status = _make_status()
        _run_to_switching(status)
        status.complete(utc_now())
        status.reopen_for_rollback()
        status.complete_rollback(RollbackInfo(
            reason="bad release",
            trigger=RollbackTrigger.MANUAL,
            target_version="v1.0",
            target_color=Color.BLUE,
        ))
        assert status.status == DeploymentState.ROLLED_BACK
        assert status.rollback_info is not None

    def test_reopen_rejected_while_active(self) -> None:
        status = _make_status()
        status.start_deploying()
        with pytest.raises(InvalidStateTransitionError):
            status.reopen_for_rollback()


class TestDeploymentEvents:
    def test_lifecycle_events(self) -> None:
        status = _make_status()
        _run_to_switching(status)
        status.mark_traffic_switched()
        status.complete(utc_now())
        types = [e.event_type for e in status.collect_events()]
        assert types == [
            "deployment.started",
            "deployment.traffic_switched",
            "deployment.completed",
        ]

    def test_cancel_emits_failed_and_cancelled(self) -> None:
        status = _make_status()
        status.mark_cancelled()
        types = [e.event_type for e in status.collect_events()]
        assert types == ["deployment.failed", "deployment.cancelled"]
        assert status.failure_reason == "cancelled"

    def test_rollback_events(self) -> None:
        status = _make_status()
        status.fail("boom")
        status.collect_events()
        status.start_rollback(RollbackTrigger.AUTOMATIC)
        status.complete_rollback(RollbackInfo(
            reason="boom",
            trigger=RollbackTrigger.AUTOMATIC,
            target_version="v1.0",
            target_color=Color.BLUE,
        ))
        types = [e.event_type for e in status.collect_events()]
        assert types == ["deployment.rollback_started", "deployment.rollback_completed"]


class TestDeploymentConfig:
    def test_defaults(self) -> None:
        config = DeploymentConfig(environment="staging")
        assert config.strategy == DeploymentStrategy.BLUE_GREEN
        assert config.rollback_on_failure is True
        assert config.timeout_seconds == 300.0

    def test_hyphenated_strategy(self) -> None:
        config = DeploymentConfig.model_validate({"environment": "x", "strategy": "blue-green"})
        assert config.strategy == DeploymentStrategy.BLUE_GREEN

    def test_duplicate_step_names_rejected(self) -> None:
        step = ValidationStep(name="smoke", kind=ValidationKind.HTTP)
        with pytest.raises(ValidationError):
            DeploymentConfig(environment="x", validation_steps=[step, step])

    def test_non_positive_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DeploymentConfig(environment="x", timeout_seconds=0)

    def test_retry_safe_kinds(self) -> None:
        assert ValidationStep(name="a", kind=ValidationKind.HTTP).retry_safe
        assert ValidationStep(name="b", kind=ValidationKind.FILE).retry_safe
        assert not ValidationStep(name="c", kind=ValidationKind.COMMAND).retry_safe
        assert not ValidationStep(name="d", kind=ValidationKind.DATABASE).retry_safe

    def test_options_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            DeploymentOptions(custom_timeout_seconds=-1)


class TestDeploymentError:
    def test_from_orchestration_error(self) -> None:
        error = DeploymentError.from_exception(ValidationFailedError("smoke", "smoke failed"))
        assert error.code == "VALIDATION_FAILED"
        assert error.details == {"step": "smoke"}

    def test_from_unexpected_error(self) -> None:
        error = DeploymentError.from_exception(KeyError("x"))
        assert error.code == "UNEXPECTED_ERROR"
        assert error.details["type"] == "KeyError"


class TestDeploymentMetrics:
    def test_empty(self) -> None:
        metrics = DeploymentMetrics.from_deployments([])
        assert metrics.total_deployments == 0
        assert metrics.success_rate == 0.0

    def test_rates_ignore_active_deployments(self) -> None:
        now = utc_now()
        completed = _make_status(start_time=now - timedelta(seconds=10))
        _run_to_switching(completed)
        completed.complete(now)

        failed = _make_status(start_time=now - timedelta(seconds=30))
        failed.fail("boom")
        failed.finalize(now)

        rolled_back = _make_status(start_time=now - timedelta(seconds=20))
        rolled_back.fail("boom")
        rolled_back.complete_rollback(RollbackInfo(
            reason="boom",
            trigger=RollbackTrigger.AUTOMATIC,
            target_version="v1.0",
            target_color=Color.BLUE,
        ))
        rolled_back.finalize(now)

        active = _make_status()
        active.start_deploying()

        metrics = DeploymentMetrics.from_deployments([completed, failed, rolled_back, active])
        assert metrics.total_deployments == 3
        assert metrics.successful_deployments == 1
        assert metrics.failed_deployments == 1
        assert metrics.rolled_back_deployments == 1
        assert metrics.average_duration_seconds == pytest.approx(20.0)
        assert metrics.success_rate == pytest.approx(100 / 3)
        assert metrics.rollback_rate == pytest.approx(100 / 3)
