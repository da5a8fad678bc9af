"""Shared test fixtures."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

import pytest
import structlog

from bluegreen.config import DeploymentSettings, Environment, Settings, StorageBackend, StorageSettings
from bluegreen.domain.models.deployment import (
    DeploymentConfig,
    ValidationKind,
    ValidationStep,
)
from bluegreen.domain.services.health_probe import HealthProbe
from bluegreen.domain.services.orchestrator import DeploymentOrchestrator
from bluegreen.domain.services.rollback_controller import RollbackController
from bluegreen.domain.services.traffic_switcher import TrafficSwitcher
from bluegreen.domain.services.validation_runner import ValidationRunner
from bluegreen.infrastructure.locking.in_memory import InMemoryDistributedLock
from bluegreen.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from bluegreen.infrastructure.persistence.repositories.in_memory import InMemoryStateStore
from bluegreen.infrastructure.platform.adapters import SimulatedPlatformAdapter
from bluegreen.infrastructure.validation.executors import CustomCheck, CustomValidationExecutor
from tests.fakes import (
    failing_check,
    FakeEndpointChecker,
    FakeHookRunner,
    passing_check,
)


@pytest.fixture(autouse=True)
def quiet_logging() -> Iterator[None]:
    """Keep structlog silent so command output stays parseable."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def deployment_settings() -> DeploymentSettings:
    return DeploymentSettings(
        base_url_template="http://{environment}-{color}.test",
        health_check_timeout_seconds=1.0,
        health_max_retries=2,
        health_retry_delay_seconds=0.01,
        post_switch_max_retries=2,
        switch_poll_interval_seconds=0.01,
        validation_retry_delay_seconds=0.01,
        hook_timeout_seconds=5.0,
        lock_ttl_seconds=60,
    )


@pytest.fixture
def settings(deployment_settings: DeploymentSettings) -> Settings:
    return Settings(
        environment=Environment.TESTING,
        debug=True,
        deployment=deployment_settings,
        storage=StorageSettings(backend=StorageBackend.MEMORY),
    )


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def platform() -> SimulatedPlatformAdapter:
    return SimulatedPlatformAdapter()


@pytest.fixture
def checker() -> FakeEndpointChecker:
    return FakeEndpointChecker()


@pytest.fixture
def hooks() -> FakeHookRunner:
    return FakeHookRunner()


@pytest.fixture
def lock() -> InMemoryDistributedLock:
    return InMemoryDistributedLock()


@pytest.fixture
def event_publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def custom_checks() -> dict[str, CustomCheck]:
    return {"smoke": passing_check, "broken": failing_check}


@pytest.fixture
def make_orchestrator(
    store: InMemoryStateStore,
    checker: FakeEndpointChecker,
    hooks: FakeHookRunner,
    lock: InMemoryDistributedLock,
    event_publisher: InMemoryEventPublisher,
    deployment_settings: DeploymentSettings,
    custom_checks: dict[str, CustomCheck],
) -> Callable[[SimulatedPlatformAdapter], DeploymentOrchestrator]:
    """Build an orchestrator around the shared fakes and a given platform."""

    def _make(platform: SimulatedPlatformAdapter) -> DeploymentOrchestrator:
        switcher = TrafficSwitcher(platform, deployment_settings.switch_poll_interval_seconds)
        return DeploymentOrchestrator(
            store=store,
            platform=platform,
            probe=HealthProbe(
                checker,
                deployment_settings.base_url_template,
                deployment_settings.health_latency_threshold_ms,
            ),
            validator=ValidationRunner(
                {ValidationKind.CUSTOM: CustomValidationExecutor(custom_checks)},
                deployment_settings.validation_retry_delay_seconds,
            ),
            switcher=switcher,
            rollback_controller=RollbackController(
                switcher, hooks, store, deployment_settings.hook_timeout_seconds
            ),
            hooks=hooks,
            lock=lock,
            events=event_publisher,
            settings=deployment_settings,
        )

    return _make


@pytest.fixture
def orchestrator(
    make_orchestrator: Callable[[SimulatedPlatformAdapter], DeploymentOrchestrator],
    platform: SimulatedPlatformAdapter,
) -> DeploymentOrchestrator:
    return make_orchestrator(platform)


@pytest.fixture
def prod_config() -> DeploymentConfig:
    return DeploymentConfig(
        environment="prod",
        health_check_endpoints=["/health"],
        validation_steps=[
            ValidationStep(name="smoke", kind=ValidationKind.CUSTOM, critical=True),
        ],
        timeout_seconds=5.0,
    )
