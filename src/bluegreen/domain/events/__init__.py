"""Domain events package."""

from bluegreen.domain.events.deployment_events import (
    DeploymentCancelled,
    DeploymentCompleted,
    DeploymentFailed,
    DeploymentRollbackCompleted,
    DeploymentRollbackStarted,
    DeploymentStarted,
    TrafficSwitched,
)


__all__ = [
    "DeploymentCancelled",
    "DeploymentCompleted",
    "DeploymentFailed",
    "DeploymentRollbackCompleted",
    "DeploymentRollbackStarted",
    "DeploymentStarted",
    "TrafficSwitched",
]
