"""Composition root assembling the orchestrator from settings."""

from __future__ import annotations

import httpx
import structlog

from bluegreen.config import LockBackend, Settings, StorageBackend, get_settings
from bluegreen.domain.ports.repositories import StateStore
from bluegreen.domain.ports.services import (
    DistributedLock,
    EndpointChecker,
    EventPublisher,
    HookRunner,
    PlatformAdapter,
)
from bluegreen.domain.services.health_probe import HealthProbe
from bluegreen.domain.services.orchestrator import DeploymentOrchestrator
from bluegreen.domain.services.rollback_controller import RollbackController
from bluegreen.domain.services.traffic_switcher import TrafficSwitcher
from bluegreen.domain.services.validation_runner import ValidationRunner
from bluegreen.infrastructure.hooks.runner import SubprocessHookRunner
from bluegreen.infrastructure.locking.in_memory import InMemoryDistributedLock
from bluegreen.infrastructure.locking.redis_lock import (
    create_redis_client,
    RedisDistributedLock,
)
from bluegreen.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from bluegreen.infrastructure.persistence.database import DatabaseManager
from bluegreen.infrastructure.persistence.repositories import (
    InMemoryStateStore,
    JsonFileStateStore,
    SqlAlchemyStateStore,
)
from bluegreen.infrastructure.platform.adapters import create_platform_adapter
from bluegreen.infrastructure.probes.http_checker import HttpEndpointChecker
from bluegreen.infrastructure.validation.executors import (
    CustomCheck,
    default_executors,
)


logger = structlog.get_logger(__name__)


class ServiceContainer:
    """Simple dependency injection container.

    Implements the Composition Root pattern for assembling
    dependencies and managing their lifecycle. Any collaborator can be
    passed in explicitly, which is how tests swap in fakes.
    """

    _instance: ServiceContainer | None = None

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: StateStore | None = None,
        platform: PlatformAdapter | None = None,
        checker: EndpointChecker | None = None,
        hooks: HookRunner | None = None,
        lock: DistributedLock | None = None,
        events: EventPublisher | None = None,
        custom_checks: dict[str, CustomCheck] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = httpx.AsyncClient(follow_redirects=True)
        self._db: DatabaseManager | None = None
        self._redis_client = None

        self._store = store or self._create_store()
        self._platform = platform or create_platform_adapter(self._settings.platform)
        self._checker = checker or HttpEndpointChecker(self._http_client)
        self._hooks = hooks or SubprocessHookRunner()
        self._lock = lock or self._create_lock()
        self._event_publisher = events or InMemoryEventPublisher()
        self._orchestrator = self._create_orchestrator(custom_checks)

    @classmethod
    def get_instance(cls) -> ServiceContainer:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def _create_store(self) -> StateStore:
        storage = self._settings.storage
        if storage.backend == StorageBackend.MEMORY:
            return InMemoryStateStore()
        if storage.backend == StorageBackend.DATABASE:
            self._db = DatabaseManager(self._settings.database)
            return SqlAlchemyStateStore(self._db)
        return JsonFileStateStore(storage.state_dir)

    def _create_lock(self) -> DistributedLock:
        if self._settings.lock_backend == LockBackend.REDIS:
            self._redis_client = create_redis_client(self._settings.redis)
            return RedisDistributedLock(self._redis_client)
        return InMemoryDistributedLock()

    def _create_orchestrator(
        self, custom_checks: dict[str, CustomCheck] | None
    ) -> DeploymentOrchestrator:
        deployment = self._settings.deployment
        switcher = TrafficSwitcher(self._platform, deployment.switch_poll_interval_seconds)
        return DeploymentOrchestrator(
            store=self._store,
            platform=self._platform,
            probe=HealthProbe(
                self._checker,
                deployment.base_url_template,
                deployment.health_latency_threshold_ms,
            ),
            validator=ValidationRunner(
                default_executors(
                    self._http_client,
                    custom_checks,
                    self._settings.database.url_override,
                ),
                deployment.validation_retry_delay_seconds,
            ),
            switcher=switcher,
            rollback_controller=RollbackController(
                switcher, self._hooks, self._store, deployment.hook_timeout_seconds
            ),
            hooks=self._hooks,
            lock=self._lock,
            events=self._event_publisher,
            settings=deployment,
        )

    async def initialize(self) -> None:
        if self._db is not None:
            await self._db.initialize(create_schema=True)
        logger.info(
            "container_initialized",
            storage=self._settings.storage.backend.value,
            platform=self._settings.platform.kind.value,
            lock=self._settings.lock_backend.value,
        )

    async def close(self) -> None:
        await self._http_client.aclose()
        if self._db is not None:
            await self._db.close()
        if self._redis_client is not None:
            await self._redis_client.aclose()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def orchestrator(self) -> DeploymentOrchestrator:
        return self._orchestrator

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def platform(self) -> PlatformAdapter:
        return self._platform

    @property
    def event_publisher(self) -> EventPublisher:
        return self._event_publisher


def get_service_container() -> ServiceContainer:
    return ServiceContainer.get_instance()
