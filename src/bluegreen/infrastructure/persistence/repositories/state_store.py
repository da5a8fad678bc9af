"""SQL state store implementation."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from bluegreen.domain.errors import StaleStateError
from bluegreen.domain.models.base import generate_id, utc_now
from bluegreen.domain.models.deployment import DeploymentStatus
from bluegreen.domain.models.environment import (
    Color,
    EnvironmentState,
    HealthStatus,
    PerformanceSnapshot,
)
from bluegreen.domain.ports.repositories import StateStore
from bluegreen.infrastructure.persistence.database import DatabaseManager
from bluegreen.infrastructure.persistence.models import (
    BackupORM,
    DeploymentORM,
    EnvironmentStateORM,
)


logger = structlog.get_logger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlAlchemyStateStore(StateStore):
    """SQL implementation of StateStore.

    Environment state writes are conditional ``UPDATE ... WHERE revision = ?``
    statements; zero affected rows means another writer got there first.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def load_environment_state(self, name: str) -> EnvironmentState | None:
        async with self._db.session() as session:
            orm = await session.get(EnvironmentStateORM, name)
            return self._state_to_domain(orm) if orm else None

    async def save_environment_state(
        self, state: EnvironmentState, expected_revision: int | None = None
    ) -> EnvironmentState:
        now = utc_now()
        async with self._db.session() as session:
            if expected_revision is None:
                existing = await session.get(EnvironmentStateORM, state.name)
                stored_revision = existing.revision if existing else 0
            else:
                stored_revision = expected_revision

            saved = state.model_copy(update={"revision": stored_revision + 1, "updated_at": now})
            values = self._state_values(saved)

            if stored_revision == 0:
                session.add(EnvironmentStateORM(name=state.name, **values))
                try:
                    await session.flush()
                except IntegrityError as e:
                    raise StaleStateError(
                        f"Environment {state.name} was created concurrently"
                    ) from e
            else:
                result = await session.execute(
                    update(EnvironmentStateORM)
                    .where(
                        EnvironmentStateORM.name == state.name,
                        EnvironmentStateORM.revision == stored_revision,
                    )
                    .values(**values)
                )
                if result.rowcount == 0:
                    raise StaleStateError(
                        f"Environment {state.name} is no longer at revision {stored_revision}"
                    )

        logger.debug("environment_state_written", environment=state.name, revision=saved.revision)
        return saved

    async def get_deployment(self, deployment_id: str) -> DeploymentStatus | None:
        async with self._db.session() as session:
            orm = await session.get(DeploymentORM, deployment_id)
            return DeploymentStatus.model_validate(orm.document) if orm else None

    async def list_deployments(self, environment: str | None = None) -> list[DeploymentStatus]:
        query = select(DeploymentORM).order_by(DeploymentORM.start_time.desc())
        if environment is not None:
            query = query.where(DeploymentORM.environment == environment)
        async with self._db.session() as session:
            result = await session.execute(query)
            items = [DeploymentStatus.model_validate(orm.document) for orm in result.scalars().all()]
        return sorted(items, key=lambda d: d.start_time, reverse=True)

    async def save_deployment(self, status: DeploymentStatus) -> DeploymentStatus:
        values = {
            "environment": status.environment,
            "status": status.status.value,
            "requested_version": status.requested_version,
            "start_time": status.start_time,
            "end_time": status.end_time,
            "failure_reason": status.failure_reason,
            "document": status.model_dump(mode="json"),
            "revision": status.revision,
        }
        async with self._db.session() as session:
            orm = await session.get(DeploymentORM, status.id)
            if orm is None:
                session.add(DeploymentORM(id=status.id, **values))
            else:
                for key, value in values.items():
                    setattr(orm, key, value)
        return status

    async def create_backup(self, environment: str) -> str:
        backup_id = generate_id()
        async with self._db.session() as session:
            orm = await session.get(EnvironmentStateORM, environment)
            snapshot = self._state_to_domain(orm).model_dump(mode="json") if orm else None
            session.add(BackupORM(id=backup_id, environment=environment, state_data=snapshot))
        logger.info("backup_written", environment=environment, backup_id=backup_id)
        return backup_id

    async def restore_backup(self, backup_id: str) -> bool:
        async with self._db.session() as session:
            backup = await session.get(BackupORM, backup_id)
            if backup is None:
                return False

            current = await session.get(EnvironmentStateORM, backup.environment)
            if backup.state_data is None:
                if current is not None:
                    await session.execute(
                        delete(EnvironmentStateORM).where(
                            EnvironmentStateORM.name == backup.environment
                        )
                    )
                return True

            snapshot = EnvironmentState.model_validate(backup.state_data)
            restored = snapshot.model_copy(update={
                "revision": (current.revision if current else 0) + 1,
                "updated_at": utc_now(),
            })
            values = self._state_values(restored)
            if current is None:
                session.add(EnvironmentStateORM(name=backup.environment, **values))
            else:
                for key, value in values.items():
                    setattr(current, key, value)
        return True

    @staticmethod
    def _state_values(state: EnvironmentState) -> dict:
        return {
            "id": state.id,
            "current_version": state.current_version,
            "active_color": state.active_color.value,
            "last_deployment_time": state.last_deployment_time,
            "last_deployment_id": state.last_deployment_id,
            "health_status": state.health_status.value,
            "performance_data": state.performance.model_dump(mode="json"),
            "revision": state.revision,
            "created_at": state.created_at,
            "updated_at": state.updated_at,
        }

    @staticmethod
    def _state_to_domain(orm: EnvironmentStateORM) -> EnvironmentState:
        return EnvironmentState(
            id=orm.id,
            name=orm.name,
            current_version=orm.current_version or "",
            active_color=Color(orm.active_color),
            last_deployment_time=_aware(orm.last_deployment_time),
            last_deployment_id=orm.last_deployment_id,
            health_status=HealthStatus(orm.health_status),
            performance=PerformanceSnapshot.model_validate(orm.performance_data or {}),
            revision=orm.revision,
            created_at=_aware(orm.created_at) or utc_now(),
            updated_at=_aware(orm.updated_at) or utc_now(),
        )
