"""Environment API routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from bluegreen.api.dependencies.services import get_orchestrator
from bluegreen.api.schemas.deployment_schemas import (
    EnvironmentStateResponse,
    HealthCheckRequest,
    HealthReportResponse,
)
from bluegreen.domain.services.orchestrator import DeploymentOrchestrator


router = APIRouter(prefix="/environments", tags=["environments"])


@router.get("/{name}", response_model=EnvironmentStateResponse)
async def get_environment(
    name: str,
    orchestrator: Annotated[DeploymentOrchestrator, Depends(get_orchestrator)],
) -> EnvironmentStateResponse:
    """Get the recorded state of an environment."""
    state = await orchestrator.get_environment_state(name)
    if state is None:
        raise HTTPException(status_code=404, detail=f"Environment {name} not found")
    return EnvironmentStateResponse.model_validate(state)


@router.post("/health", response_model=HealthReportResponse)
async def check_environment_health(
    request: HealthCheckRequest,
    orchestrator: Annotated[DeploymentOrchestrator, Depends(get_orchestrator)],
) -> HealthReportResponse:
    """Probe the live color of an environment and record the result."""
    report = await orchestrator.check_environment_health(request.config)
    return HealthReportResponse.model_validate(report)
