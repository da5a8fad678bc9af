"""Service port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from bluegreen.domain.models.base import ValueObject
from bluegreen.domain.models.deployment import ValidationStep
from bluegreen.domain.models.environment import Color
from bluegreen.domain.models.health import EndpointCheckResult


class PlatformAdapter(ABC):
    """Port for the hosting platform that runs the two colors."""

    @abstractmethod
    async def deploy(self, environment: str, color: Color, version: str) -> None:
        """Push ``version`` to ``color``. Must be idempotent."""

    @abstractmethod
    async def update_routing(self, environment: str, color: Color) -> None:
        """Point production traffic of ``environment`` at ``color``."""

    @abstractmethod
    async def verify_routing(self, environment: str, color: Color) -> bool:
        """Check whether ``color`` is observably serving production traffic."""


class EndpointChecker(ABC):
    """Port for probing a single health endpoint."""

    @abstractmethod
    async def check(self, url: str, timeout: float) -> EndpointCheckResult:
        """Request ``url`` and report status and latency."""


class StepOutcome(ValueObject):
    """Result of a single attempt of a validation step."""

    success: bool
    output: str = ""
    error: str = ""


class ValidationContext(ValueObject):
    """What validation executors need to know about the target color."""

    deployment_id: str = ""
    environment: str
    color: Color
    base_url: str


class ValidationExecutor(ABC):
    """Port for executing one kind of validation step."""

    @abstractmethod
    async def execute(self, step: ValidationStep, context: ValidationContext) -> StepOutcome:
        """Run one attempt of ``step``."""


class HookRunner(ABC):
    """Port for running lifecycle hook commands."""

    @abstractmethod
    async def run(
        self, command: str, phase: str, env: dict[str, str], timeout: float
    ) -> str:
        """Run ``command`` for ``phase``; raise HookFailedError on failure."""


class EventPublisher(ABC):
    """Port for publishing domain events."""

    @abstractmethod
    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        """Publish an event."""

    @abstractmethod
    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        """Publish a batch of events."""


class DistributedLock(ABC):
    """Port for distributed locking."""

    @abstractmethod
    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        """Acquire a lock without waiting. Returns False if already held."""

    @abstractmethod
    async def release(self, resource_id: str) -> bool:
        """Release a lock held by this instance."""

    @abstractmethod
    async def extend(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        """Extend the TTL of an existing lock."""

    @abstractmethod
    async def is_locked(self, resource_id: str) -> bool:
        """Check if a resource is locked."""
