"""Deployment error taxonomy.

Every exception carries a stable ``code`` that is copied into the
``DeploymentError`` records attached to a deployment, so a failed
deployment can be diagnosed from its status alone.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from bluegreen.domain.models.deployment import ValidationResult
    from bluegreen.domain.models.health import HealthReport


class OrchestrationError(Exception):
    """Base class for all orchestration errors."""

    code = "DEPLOYMENT_FAILED"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConflictError(OrchestrationError):
    """Raised when another deployment is already active for the environment."""

    code = "CONFLICT"


class UnhealthyEnvironmentError(OrchestrationError):
    """Raised when the environment is unhealthy and the deployment is not forced."""

    code = "ENVIRONMENT_UNHEALTHY"


class DeployFailedError(OrchestrationError):
    """Raised when the platform rejects the artifact deployment."""

    code = "DEPLOY_FAILED"


class DeployTimeoutError(OrchestrationError):
    """Raised when the target color does not become healthy in time."""

    code = "DEPLOY_TIMEOUT"


class ValidationFailedError(OrchestrationError):
    """Raised when a critical validation step fails."""

    code = "VALIDATION_FAILED"

    def __init__(
        self,
        step_name: str,
        message: str,
        results: list[ValidationResult] | None = None,
    ) -> None:
        super().__init__(message, {"step": step_name})
        self.step_name = step_name
        self.results = list(results or [])


class SwitchFailedError(OrchestrationError):
    """Raised when routing could not be moved to the target color."""

    code = "SWITCH_FAILED"


class HealthTimeoutError(OrchestrationError):
    """Raised when health polling exhausts its retries."""

    code = "HEALTH_TIMEOUT"

    def __init__(self, message: str, last_report: HealthReport | None = None) -> None:
        details: dict[str, Any] = {}
        if last_report is not None:
            details["issues"] = list(last_report.issues)
        super().__init__(message, details)
        self.last_report = last_report


class RollbackFailedError(OrchestrationError):
    """Raised when reverting to the previous color fails."""

    code = "ROLLBACK_FAILED"


class HookFailedError(OrchestrationError):
    """Raised when a lifecycle hook command fails."""

    code = "HOOK_FAILED"

    def __init__(self, phase: str, message: str) -> None:
        super().__init__(message, {"phase": phase})
        self.phase = phase


class StateConflictError(OrchestrationError):
    """Raised when the live color changed underneath a deployment."""

    code = "STATE_CONFLICT"


class StaleStateError(OrchestrationError):
    """Raised by a state store when a compare-and-swap loses."""

    code = "STALE_STATE"


class DeploymentNotFoundError(OrchestrationError):
    """Raised when a deployment is not found."""

    code = "NOT_FOUND"


class CancellationNotAllowedError(OrchestrationError):
    """Raised when cancellation is requested after traffic switching began."""

    code = "CANCEL_REFUSED"


class InvalidStateTransitionError(OrchestrationError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"
