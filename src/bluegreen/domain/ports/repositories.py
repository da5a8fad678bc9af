"""Repository port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from bluegreen.domain.models.deployment import DeploymentStatus
from bluegreen.domain.models.environment import EnvironmentState


class StateStore(ABC):
    """Port for environment state and deployment history persistence.

    One state record per environment, one record per deployment keyed by
    deployment id.
    """

    @abstractmethod
    async def load_environment_state(self, name: str) -> EnvironmentState | None:
        """Load the state record of an environment, if any."""

    @abstractmethod
    async def save_environment_state(
        self, state: EnvironmentState, expected_revision: int | None = None
    ) -> EnvironmentState:
        """Persist an environment state with compare-and-swap semantics.

        When ``expected_revision`` is given, the write only succeeds if the
        stored revision still equals it (or no record exists and it is 0);
        otherwise ``StaleStateError`` is raised. The returned state carries
        the new revision.
        """

    @abstractmethod
    async def get_deployment(self, deployment_id: str) -> DeploymentStatus | None:
        """Retrieve a deployment by ID."""

    @abstractmethod
    async def list_deployments(self, environment: str | None = None) -> list[DeploymentStatus]:
        """List deployments, newest first, optionally for one environment."""

    @abstractmethod
    async def save_deployment(self, status: DeploymentStatus) -> DeploymentStatus:
        """Insert or update a deployment record."""

    @abstractmethod
    async def create_backup(self, environment: str) -> str:
        """Snapshot the environment state and return a backup handle."""

    @abstractmethod
    async def restore_backup(self, backup_id: str) -> bool:
        """Restore a snapshot. Returns False if the handle is unknown."""
