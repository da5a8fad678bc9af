"""Domain models package."""

from bluegreen.domain.models.base import (
    AggregateRoot,
    DomainEntity,
    DomainEvent,
    generate_deployment_id,
    generate_id,
    utc_now,
    ValueObject,
)
from bluegreen.domain.models.deployment import (
    ACTIVE_STATES,
    CANCELLABLE_STATES,
    DeploymentConfig,
    DeploymentError,
    DeploymentMetrics,
    DeploymentOptions,
    DeploymentState,
    DeploymentStatus,
    DeploymentStrategy,
    LifecycleHooks,
    RETRY_SAFE_KINDS,
    RollbackInfo,
    RollbackTrigger,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ValidationKind,
    ValidationResult,
    ValidationStep,
)
from bluegreen.domain.models.environment import (
    Color,
    EnvironmentState,
    HealthStatus,
    PerformanceSnapshot,
)
from bluegreen.domain.models.health import EndpointCheckResult, HealthReport


__all__ = [
    "ACTIVE_STATES",
    "AggregateRoot",
    "CANCELLABLE_STATES",
    "Color",
    "DeploymentConfig",
    "DeploymentError",
    "DeploymentMetrics",
    "DeploymentOptions",
    "DeploymentState",
    "DeploymentStatus",
    "DeploymentStrategy",
    "DomainEntity",
    "DomainEvent",
    "EndpointCheckResult",
    "EnvironmentState",
    "HealthReport",
    "HealthStatus",
    "LifecycleHooks",
    "PerformanceSnapshot",
    "RETRY_SAFE_KINDS",
    "RollbackInfo",
    "RollbackTrigger",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "ValidationKind",
    "ValidationResult",
    "ValidationStep",
    "ValueObject",
    "generate_deployment_id",
    "generate_id",
    "utc_now",
]
