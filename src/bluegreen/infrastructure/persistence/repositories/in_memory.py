"""In-memory state store for development and testing."""

from __future__ import annotations

import asyncio

from bluegreen.domain.errors import StaleStateError
from bluegreen.domain.models.base import generate_id, utc_now
from bluegreen.domain.models.deployment import DeploymentStatus
from bluegreen.domain.models.environment import EnvironmentState
from bluegreen.domain.ports.repositories import StateStore


class InMemoryStateStore(StateStore):
    """In-memory state store.

    Records are stored as deep copies so callers never share mutable state
    with the store, which mirrors how the durable backends behave.
    """

    def __init__(self) -> None:
        self._environments: dict[str, EnvironmentState] = {}
        self._deployments: dict[str, DeploymentStatus] = {}
        self._backups: dict[str, EnvironmentState | None] = {}
        self._backup_environments: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def load_environment_state(self, name: str) -> EnvironmentState | None:
        state = self._environments.get(name)
        return state.model_copy(deep=True) if state else None

    async def save_environment_state(
        self, state: EnvironmentState, expected_revision: int | None = None
    ) -> EnvironmentState:
        async with self._lock:
            stored = self._environments.get(state.name)
            stored_revision = stored.revision if stored else 0
            if expected_revision is not None and expected_revision != stored_revision:
                raise StaleStateError(
                    f"Environment {state.name} is at revision {stored_revision}, "
                    f"expected {expected_revision}"
                )
            saved = state.model_copy(
                update={"revision": stored_revision + 1, "updated_at": utc_now()},
                deep=True,
            )
            self._environments[state.name] = saved
            return saved.model_copy(deep=True)

    async def get_deployment(self, deployment_id: str) -> DeploymentStatus | None:
        status = self._deployments.get(deployment_id)
        return status.model_copy(deep=True) if status else None

    async def list_deployments(self, environment: str | None = None) -> list[DeploymentStatus]:
        items = [
            d.model_copy(deep=True)
            for d in self._deployments.values()
            if environment is None or d.environment == environment
        ]
        return sorted(items, key=lambda d: d.start_time, reverse=True)

    async def save_deployment(self, status: DeploymentStatus) -> DeploymentStatus:
        stored = status.model_copy(deep=True)
        # Pending events belong to the caller.
        stored.collect_events()
        self._deployments[status.id] = stored
        return status

    async def create_backup(self, environment: str) -> str:
        backup_id = generate_id()
        state = self._environments.get(environment)
        self._backups[backup_id] = state.model_copy(deep=True) if state else None
        self._backup_environments[backup_id] = environment
        return backup_id

    async def restore_backup(self, backup_id: str) -> bool:
        if backup_id not in self._backups:
            return False
        snapshot = self._backups[backup_id]
        environment = self._backup_environments[backup_id]
        async with self._lock:
            if snapshot is None:
                self._environments.pop(environment, None)
            else:
                current = self._environments.get(environment)
                revision = (current.revision if current else 0) + 1
                self._environments[environment] = snapshot.model_copy(
                    update={"revision": revision, "updated_at": utc_now()}, deep=True
                )
        return True

    def clear(self) -> None:
        """Drop every record. Used by test fixtures for isolation."""
        self._environments.clear()
        self._deployments.clear()
        self._backups.clear()
        self._backup_environments.clear()
