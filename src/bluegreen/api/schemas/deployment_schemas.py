"""API schemas for deployment and environment endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from bluegreen.domain.models.deployment import (
    DeploymentConfig,
    DeploymentError,
    DeploymentState,
    RollbackInfo,
    ValidationResult,
)
from bluegreen.domain.models.environment import (
    Color,
    HealthStatus,
    PerformanceSnapshot,
)


class CreateDeploymentRequest(BaseModel):
    environment: str = Field(..., min_length=1, max_length=255)
    version: str = Field(..., min_length=1, max_length=255)
    force: bool = False
    skip_validation: bool = False
    timeout_seconds: float | None = Field(default=None, gt=0)
    config: DeploymentConfig | None = Field(
        default=None,
        description="Inline deployment config; defaults to <config_dir>/<environment>.yaml",
    )


class RollbackRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class HealthCheckRequest(BaseModel):
    config: DeploymentConfig


class DeploymentResponse(BaseModel):
    id: str
    environment: str
    status: DeploymentState
    start_time: datetime
    end_time: datetime | None = None
    duration_seconds: float = 0.0
    current_color: Color
    target_color: Color
    requested_version: str
    previous_version: str = ""
    validation_results: list[ValidationResult] = Field(default_factory=list)
    errors: list[DeploymentError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    rollback_info: RollbackInfo | None = None
    failure_reason: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class DeploymentListResponse(BaseModel):
    items: list[DeploymentResponse]
    total: int


class EnvironmentStateResponse(BaseModel):
    name: str
    active_color: Color
    current_version: str
    health_status: HealthStatus
    last_deployment_id: str | None = None
    last_deployment_time: datetime | None = None
    performance: PerformanceSnapshot
    revision: int

    model_config = {"from_attributes": True}


class HealthReportResponse(BaseModel):
    healthy: bool
    avg_response_time_ms: float
    error_rate: float
    issues: list[str] = Field(default_factory=list)
    checked_at: datetime

    model_config = {"from_attributes": True}
