"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx

from bluegreen.domain.errors import HookFailedError
from bluegreen.domain.models.deployment import ValidationStep
from bluegreen.domain.models.environment import Color, EnvironmentState, HealthStatus
from bluegreen.domain.models.health import EndpointCheckResult
from bluegreen.domain.ports.repositories import StateStore
from bluegreen.domain.ports.services import (
    EndpointChecker,
    HookRunner,
    StepOutcome,
    ValidationContext,
)
from bluegreen.infrastructure.platform.adapters import SimulatedPlatformAdapter


class FakeEndpointChecker(EndpointChecker):
    """Endpoint checker answering from a predicate over the requested URL."""

    def __init__(self, predicate: Callable[[str], bool] | None = None, latency_ms: float = 5.0) -> None:
        self.predicate = predicate or (lambda _url: True)
        self.latency_ms = latency_ms
        self.urls: list[str] = []

    async def check(self, url: str, timeout: float) -> EndpointCheckResult:
        self.urls.append(url)
        ok = self.predicate(url)
        return EndpointCheckResult(
            url=url,
            ok=ok,
            status_code=200 if ok else 503,
            response_time_ms=self.latency_ms,
            error="" if ok else "HTTP 503",
        )


class FakeHookRunner(HookRunner):
    """Records hook invocations; phases in ``failing_phases`` raise."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, str]]] = []
        self.failing_phases: set[str] = set()

    async def run(self, command: str, phase: str, env: dict[str, str], timeout: float) -> str:
        self.calls.append((command, phase, env))
        if phase in self.failing_phases:
            raise HookFailedError(phase, f"{phase} hook exited with status 1")
        return ""

    @property
    def phases(self) -> list[str]:
        return [phase for _command, phase, _env in self.calls]


class GatedPlatformAdapter(SimulatedPlatformAdapter):
    """Simulated platform whose ``deploy`` waits until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()
        self.deploy_started = asyncio.Event()

    async def deploy(self, environment: str, color: Color, version: str) -> None:
        self.deploy_started.set()
        await self.gate.wait()
        await super().deploy(environment, color, version)


async def passing_check(step: ValidationStep, context: ValidationContext) -> StepOutcome:
    return StepOutcome(success=True, output=f"{step.name} ok on {context.color.value}")


async def failing_check(step: ValidationStep, context: ValidationContext) -> StepOutcome:
    return StepOutcome(success=False, error=f"{step.name} failed")


async def seed_environment(
    store: StateStore,
    platform: SimulatedPlatformAdapter,
    name: str = "prod",
    color: Color = Color.BLUE,
    version: str = "v1.0",
    health: HealthStatus = HealthStatus.HEALTHY,
) -> EnvironmentState:
    """Record ``name`` as serving ``version`` on ``color``."""
    platform.routes[name] = color
    platform.deployed[(name, color)] = version
    return await store.save_environment_state(
        EnvironmentState(
            name=name,
            active_color=color,
            current_version=version,
            health_status=health,
        ),
        expected_revision=0,
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: object) -> httpx.AsyncClient:
    """httpx client answering every request with ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)
