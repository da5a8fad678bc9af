"""Deployment domain events."""

from __future__ import annotations

from bluegreen.domain.models.base import DomainEvent


class DeploymentStarted(DomainEvent):
    """Emitted when a deployment leaves the pending state."""

    deployment_id: str
    environment: str
    target_color: str
    requested_version: str
    event_type: str = "deployment.started"


class TrafficSwitched(DomainEvent):
    """Emitted when routing has moved to the target color."""

    deployment_id: str
    environment: str
    from_color: str
    to_color: str
    event_type: str = "deployment.traffic_switched"


class DeploymentCompleted(DomainEvent):
    """Emitted when a deployment completes successfully."""

    deployment_id: str
    environment: str
    event_type: str = "deployment.completed"


class DeploymentFailed(DomainEvent):
    """Emitted when a deployment fails."""

    deployment_id: str
    environment: str
    error_message: str
    event_type: str = "deployment.failed"


class DeploymentCancelled(DomainEvent):
    """Emitted when a deployment is cancelled by the caller."""

    deployment_id: str
    environment: str
    event_type: str = "deployment.cancelled"


class DeploymentRollbackStarted(DomainEvent):
    """Emitted when rollback starts."""

    deployment_id: str
    trigger: str
    event_type: str = "deployment.rollback_started"


class DeploymentRollbackCompleted(DomainEvent):
    """Emitted when rollback completes."""

    deployment_id: str
    target_color: str
    event_type: str = "deployment.rollback_completed"
