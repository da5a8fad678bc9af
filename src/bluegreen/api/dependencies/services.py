"""Service dependencies for FastAPI dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from bluegreen.container import ServiceContainer
from bluegreen.domain.services.orchestrator import DeploymentOrchestrator


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_orchestrator(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> DeploymentOrchestrator:
    return container.orchestrator
