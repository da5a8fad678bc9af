"""Deployment aggregate root with the blue/green state machine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator, model_validator

from bluegreen.domain.errors import InvalidStateTransitionError, OrchestrationError
from bluegreen.domain.events.deployment_events import (
    DeploymentCancelled,
    DeploymentCompleted,
    DeploymentFailed,
    DeploymentRollbackCompleted,
    DeploymentRollbackStarted,
    DeploymentStarted,
    TrafficSwitched,
)
from bluegreen.domain.models.base import (
    AggregateRoot,
    generate_deployment_id,
    utc_now,
    ValueObject,
)
from bluegreen.domain.models.environment import Color


class DeploymentState(str, Enum):
    """Deployment lifecycle states."""

    PENDING = "pending"
    DEPLOYING = "deploying"
    VALIDATING = "validating"
    SWITCHING = "switching"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


ACTIVE_STATES = frozenset({
    DeploymentState.PENDING,
    DeploymentState.DEPLOYING,
    DeploymentState.VALIDATING,
    DeploymentState.SWITCHING,
})

TERMINAL_STATES = frozenset({
    DeploymentState.COMPLETED,
    DeploymentState.FAILED,
    DeploymentState.ROLLED_BACK,
})

CANCELLABLE_STATES = frozenset({
    DeploymentState.PENDING,
    DeploymentState.DEPLOYING,
    DeploymentState.VALIDATING,
})


# State machine transitions
VALID_TRANSITIONS: dict[DeploymentState, set[DeploymentState]] = {
    DeploymentState.PENDING: {DeploymentState.DEPLOYING, DeploymentState.FAILED},
    DeploymentState.DEPLOYING: {
        DeploymentState.VALIDATING, DeploymentState.SWITCHING,
        DeploymentState.FAILED,
    },
    DeploymentState.VALIDATING: {DeploymentState.SWITCHING, DeploymentState.FAILED},
    DeploymentState.SWITCHING: {DeploymentState.COMPLETED, DeploymentState.FAILED},
    # Only reachable through a manual rollback.
    DeploymentState.COMPLETED: {DeploymentState.ROLLED_BACK},
    DeploymentState.FAILED: {DeploymentState.ROLLED_BACK},
    DeploymentState.ROLLED_BACK: set(),
}


class DeploymentStrategy(str, Enum):
    """Deployment strategies. Only blue/green is orchestrated here."""

    BLUE_GREEN = "blue_green"


class ValidationKind(str, Enum):
    """Kinds of validation steps."""

    HTTP = "http"
    COMMAND = "command"
    FILE = "file"
    DATABASE = "database"
    CUSTOM = "custom"


# Kinds whose checks are read-only and may be retried.
RETRY_SAFE_KINDS = frozenset({ValidationKind.HTTP, ValidationKind.FILE})


class RollbackTrigger(str, Enum):
    """What caused a rollback."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"
    VALIDATION_FAILED = "validation_failed"
    HEALTH_CHECK_FAILED = "health_check_failed"


class ValidationStep(ValueObject):
    """A single check run against the freshly deployed color."""

    name: str = Field(..., min_length=1)
    kind: ValidationKind
    params: dict[str, Any] = Field(default_factory=dict)
    timeout_seconds: float = Field(default=30.0, gt=0)
    critical: bool = False
    retries: int = Field(default=0, ge=0)

    @property
    def retry_safe(self) -> bool:
        return self.kind in RETRY_SAFE_KINDS


class LifecycleHooks(ValueObject):
    """Optional commands run around deployment and rollback."""

    pre_deploy: str | None = None
    post_deploy: str | None = None
    pre_rollback: str | None = None
    post_rollback: str | None = None


class DeploymentConfig(ValueObject):
    """Deployment configuration for one environment."""

    environment: str = Field(..., min_length=1)
    strategy: DeploymentStrategy = DeploymentStrategy.BLUE_GREEN
    validation_steps: list[ValidationStep] = Field(default_factory=list)
    health_check_endpoints: list[str] = Field(default_factory=list)
    timeout_seconds: float = Field(default=300.0, gt=0)
    rollback_on_failure: bool = True
    backup_before_deploy: bool = False
    restore_data_on_rollback: bool = False
    hooks: LifecycleHooks = Field(default_factory=LifecycleHooks)
    base_url_template: str | None = None

    @field_validator("strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.replace("-", "_")
        return value

    @model_validator(mode="after")
    def _unique_step_names(self) -> DeploymentConfig:
        names = [step.name for step in self.validation_steps]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate validation step names: {duplicates}")
        return self


class DeploymentOptions(ValueObject):
    """Per-request deployment options."""

    force: bool = False
    skip_validation: bool = False
    custom_timeout_seconds: float | None = Field(default=None, gt=0)


class ValidationResult(ValueObject):
    """Result of executing a single validation step."""

    step_name: str
    success: bool
    duration_ms: float = 0.0
    attempts: int = 1
    error: str | None = None
    output: str | None = None


class DeploymentError(ValueObject):
    """An error recorded on a deployment."""

    code: str
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: BaseException) -> DeploymentError:
        if isinstance(exc, OrchestrationError):
            return cls(code=exc.code, message=exc.message, details=exc.details)
        return cls(
            code="UNEXPECTED_ERROR",
            message=str(exc) or exc.__class__.__name__,
            details={"type": exc.__class__.__name__},
        )


class RollbackInfo(ValueObject):
    """Details of a completed rollback."""

    reason: str
    trigger: RollbackTrigger
    target_version: str
    target_color: Color
    rollback_duration_seconds: float = 0.0
    data_restored: bool = False


class DeploymentStatus(AggregateRoot):
    """Deployment aggregate root - the record of one deployment request."""

    id: str = Field(default_factory=generate_deployment_id)
    environment: str
    deployment_config: DeploymentConfig
    status: DeploymentState = DeploymentState.PENDING
    start_time: datetime = Field(default_factory=utc_now)
    end_time: datetime | None = None
    current_color: Color = Color.UNKNOWN
    target_color: Color = Color.UNKNOWN
    requested_version: str
    previous_version: str = ""
    validation_results: list[ValidationResult] = Field(default_factory=list)
    errors: list[DeploymentError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    rollback_info: RollbackInfo | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    failure_reason: str | None = None
    artifact_deployed: bool = False
    traffic_switched: bool = False

    @property
    def deployment_id(self) -> str:
        return self.id

    def _ensure_mutable(self) -> None:
        if self.end_time is not None:
            raise InvalidStateTransitionError(
                f"Deployment {self.id} is finalized ({self.status.value})"
            )

    def _transition_to(self, new_status: DeploymentState) -> None:
        """Validate and execute state transition."""
        self._ensure_mutable()
        valid = VALID_TRANSITIONS.get(self.status, set())
        if new_status not in valid:
            raise InvalidStateTransitionError(
                f"Cannot transition from {self.status.value} to {new_status.value}. "
                f"Valid transitions: {sorted(s.value for s in valid)}"
            )
        self.status = new_status
        self.touch()

    def start_deploying(self) -> None:
        """Leave pending and start pushing the artifact."""
        self._transition_to(DeploymentState.DEPLOYING)
        self.add_event(DeploymentStarted(
            deployment_id=self.id,
            environment=self.environment,
            target_color=self.target_color.value,
            requested_version=self.requested_version,
            correlation_id=self.id,
        ))

    def mark_artifact_deployed(self) -> None:
        self._ensure_mutable()
        self.artifact_deployed = True
        self.touch()

    def start_validating(self) -> None:
        self._transition_to(DeploymentState.VALIDATING)

    def record_validation_result(self, result: ValidationResult) -> None:
        """Append a validation result."""
        self._ensure_mutable()
        self.validation_results.append(result)
        self.touch()

    def add_warning(self, warning: str) -> None:
        self._ensure_mutable()
        self.warnings.append(warning)
        self.touch()

    def record_error(self, error: DeploymentError) -> None:
        self._ensure_mutable()
        self.errors.append(error)
        self.touch()

    def start_switching(self) -> None:
        self._transition_to(DeploymentState.SWITCHING)

    def mark_traffic_switched(self) -> None:
        self._ensure_mutable()
        self.traffic_switched = True
        self.touch()
        self.add_event(TrafficSwitched(
            deployment_id=self.id,
            environment=self.environment,
            from_color=self.current_color.value,
            to_color=self.target_color.value,
            correlation_id=self.id,
        ))

    def complete(self, now: datetime) -> None:
        """Mark deployment as successfully completed."""
        self._transition_to(DeploymentState.COMPLETED)
        self.end_time = now
        self.add_event(DeploymentCompleted(
            deployment_id=self.id,
            environment=self.environment,
            correlation_id=self.id,
        ))

    def fail(self, reason: str) -> None:
        """Mark deployment as failed. The record stays open until finalized."""
        self._transition_to(DeploymentState.FAILED)
        self.failure_reason = reason
        self.add_event(DeploymentFailed(
            deployment_id=self.id,
            environment=self.environment,
            error_message=reason,
            correlation_id=self.id,
        ))

    def mark_cancelled(self) -> None:
        self.fail("cancelled")
        self.add_event(DeploymentCancelled(
            deployment_id=self.id,
            environment=self.environment,
            correlation_id=self.id,
        ))

    def start_rollback(self, trigger: RollbackTrigger) -> None:
        self._ensure_mutable()
        self.add_event(DeploymentRollbackStarted(
            deployment_id=self.id,
            trigger=trigger.value,
            correlation_id=self.id,
        ))

    def complete_rollback(self, info: RollbackInfo) -> None:
        """Record a successful rollback."""
        self._transition_to(DeploymentState.ROLLED_BACK)
        self.rollback_info = info
        self.add_event(DeploymentRollbackCompleted(
            deployment_id=self.id,
            target_color=info.target_color.value,
            correlation_id=self.id,
        ))

    def reopen_for_rollback(self) -> None:
        """Re-open a finalized deployment so a manual rollback can be recorded."""
        if self.status not in {DeploymentState.COMPLETED, DeploymentState.FAILED}:
            raise InvalidStateTransitionError(
                f"Deployment {self.id} cannot be rolled back from {self.status.value}"
            )
        self.end_time = None
        self.touch()

    def finalize(self, now: datetime) -> None:
        """Stamp the end time; the record is immutable afterwards."""
        if not self.is_terminal:
            raise InvalidStateTransitionError(
                f"Deployment {self.id} is still {self.status.value}"
            )
        if self.end_time is None:
            self.end_time = now
            self.touch()

    @property
    def is_terminal(self) -> bool:
        """Check if deployment is in a terminal state."""
        return self.status in TERMINAL_STATES

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATES

    @property
    def duration_seconds(self) -> float:
        end = self.end_time or utc_now()
        return max((end - self.start_time).total_seconds(), 0.0)


class DeploymentMetrics(ValueObject):
    """Aggregate deployment statistics."""

    total_deployments: int = 0
    successful_deployments: int = 0
    failed_deployments: int = 0
    rolled_back_deployments: int = 0
    average_duration_seconds: float = 0.0
    success_rate: float = 0.0
    rollback_rate: float = 0.0

    @classmethod
    def from_deployments(cls, deployments: list[DeploymentStatus]) -> DeploymentMetrics:
        finished = [d for d in deployments if d.is_terminal]
        total = len(finished)
        if total == 0:
            return cls()
        successful = sum(1 for d in finished if d.status == DeploymentState.COMPLETED)
        failed = sum(1 for d in finished if d.status == DeploymentState.FAILED)
        rolled_back = sum(1 for d in finished if d.status == DeploymentState.ROLLED_BACK)
        return cls(
            total_deployments=total,
            successful_deployments=successful,
            failed_deployments=failed,
            rolled_back_deployments=rolled_back,
            average_duration_seconds=sum(d.duration_seconds for d in finished) / total,
            success_rate=successful / total * 100,
            rollback_rate=rolled_back / total * 100,
        )
