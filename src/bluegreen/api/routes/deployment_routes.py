"""Deployment API routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    status,
)

from bluegreen.api.dependencies.services import get_container, get_orchestrator
from bluegreen.api.schemas.deployment_schemas import (
    CreateDeploymentRequest,
    DeploymentListResponse,
    DeploymentResponse,
    RollbackRequest,
)
from bluegreen.config import load_deployment_config
from bluegreen.container import ServiceContainer
from bluegreen.domain.errors import (
    CancellationNotAllowedError,
    ConflictError,
    DeploymentNotFoundError,
    InvalidStateTransitionError,
    OrchestrationError,
    StateConflictError,
    UnhealthyEnvironmentError,
)
from bluegreen.domain.models.deployment import DeploymentMetrics, DeploymentOptions, DeploymentStatus
from bluegreen.domain.services.orchestrator import DeploymentOrchestrator


router = APIRouter(prefix="/deployments", tags=["deployments"])
metrics_router = APIRouter(prefix="/metrics", tags=["metrics"])

_STATUS_CODES: list[tuple[type[OrchestrationError], int]] = [
    (DeploymentNotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (CancellationNotAllowedError, status.HTTP_409_CONFLICT),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (UnhealthyEnvironmentError, status.HTTP_412_PRECONDITION_FAILED),
]


def http_error(error: OrchestrationError) -> HTTPException:
    """Map an orchestration error to an HTTP error response."""
    code = next(
        (http_status for error_type, http_status in _STATUS_CODES if isinstance(error, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    return HTTPException(
        status_code=code,
        detail={"code": error.code, "message": error.message, "details": error.details},
    )


def _to_response(deployment: DeploymentStatus) -> DeploymentResponse:
    """Map domain model to API response."""
    return DeploymentResponse(
        id=deployment.id,
        environment=deployment.environment,
        status=deployment.status,
        start_time=deployment.start_time,
        end_time=deployment.end_time,
        duration_seconds=deployment.duration_seconds,
        current_color=deployment.current_color,
        target_color=deployment.target_color,
        requested_version=deployment.requested_version,
        previous_version=deployment.previous_version,
        validation_results=deployment.validation_results,
        errors=deployment.errors,
        warnings=deployment.warnings,
        rollback_info=deployment.rollback_info,
        failure_reason=deployment.failure_reason,
        metadata=deployment.metadata,
    )


@router.post(
    "",
    response_model=DeploymentResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def create_deployment(
    request: CreateDeploymentRequest,
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> DeploymentResponse:
    """Admit a deployment and run it in the background."""
    config = request.config
    if config is None:
        try:
            config = load_deployment_config(
                request.environment,
                config_dir=container.settings.deployment.config_dir,
            )
        except (OSError, ValueError) as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
    elif config.environment != request.environment:
        raise HTTPException(
            status_code=422,
            detail="config.environment must match environment",
        )

    options = DeploymentOptions(
        force=request.force,
        skip_validation=request.skip_validation,
        custom_timeout_seconds=request.timeout_seconds,
    )
    try:
        deployment = await container.orchestrator.submit_deployment(
            config, request.version, options
        )
    except OrchestrationError as e:
        raise http_error(e) from e
    return _to_response(deployment)


@router.get("", response_model=DeploymentListResponse)
async def list_deployments(
    orchestrator: Annotated[DeploymentOrchestrator, Depends(get_orchestrator)],
    environment: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
) -> DeploymentListResponse:
    """List deployments, newest first."""
    deployments = await orchestrator.list_deployments(environment)
    return DeploymentListResponse(
        items=[_to_response(d) for d in deployments[:limit]],
        total=len(deployments),
    )


@router.get("/{deployment_id}", response_model=DeploymentResponse)
async def get_deployment(
    deployment_id: str,
    orchestrator: Annotated[DeploymentOrchestrator, Depends(get_orchestrator)],
) -> DeploymentResponse:
    """Get a deployment by ID."""
    try:
        deployment = await orchestrator.get_deployment(deployment_id)
    except OrchestrationError as e:
        raise http_error(e) from e
    return _to_response(deployment)


@router.post("/{deployment_id}/rollback", response_model=DeploymentResponse)
async def rollback_deployment(
    deployment_id: str,
    request: RollbackRequest,
    orchestrator: Annotated[DeploymentOrchestrator, Depends(get_orchestrator)],
) -> DeploymentResponse:
    """Roll a finished deployment back to its previous color."""
    try:
        deployment = await orchestrator.rollback_deployment(deployment_id, request.reason)
    except OrchestrationError as e:
        raise http_error(e) from e
    return _to_response(deployment)


@router.post("/{deployment_id}/cancel", response_model=DeploymentResponse)
async def cancel_deployment(
    deployment_id: str,
    orchestrator: Annotated[DeploymentOrchestrator, Depends(get_orchestrator)],
) -> DeploymentResponse:
    """Cancel a deployment that has not started switching traffic."""
    try:
        deployment = await orchestrator.cancel_deployment(deployment_id)
    except OrchestrationError as e:
        raise http_error(e) from e
    return _to_response(deployment)


@metrics_router.get("/deployments", response_model=DeploymentMetrics)
async def deployment_metrics(
    orchestrator: Annotated[DeploymentOrchestrator, Depends(get_orchestrator)],
    environment: str | None = None,
) -> DeploymentMetrics:
    """Aggregate deployment statistics."""
    return await orchestrator.get_metrics(environment)
