"""JSON file state store.

Layout under ``root``::

    environments/<name>.json
    deployments/<deployment-id>.json
    backups/<backup-id>.json

Writes go to a temporary file and are moved into place with ``os.replace``
so a reader never sees a partial record. Compare-and-swap of environment
state is serialized across processes with an exclusive ``fcntl`` lock on
``root/.lock``.
"""

from __future__ import annotations

import asyncio
import fcntl
import json
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from urllib.parse import quote

import structlog
from pydantic import ValidationError

from bluegreen.domain.errors import StaleStateError
from bluegreen.domain.models.base import generate_id, utc_now
from bluegreen.domain.models.deployment import DeploymentStatus
from bluegreen.domain.models.environment import EnvironmentState
from bluegreen.domain.ports.repositories import StateStore


logger = structlog.get_logger(__name__)


def _filename(key: str) -> str:
    return f"{quote(key, safe='')}.json"


class JsonFileStateStore(StateStore):
    """State store keeping one JSON document per record on local disk."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root)
        self._environments = self._root / "environments"
        self._deployments = self._root / "deployments"
        self._backups = self._root / "backups"
        for directory in (self._environments, self._deployments, self._backups):
            directory.mkdir(parents=True, exist_ok=True)
        self._lock_path = self._root / ".lock"

    @property
    def root(self) -> Path:
        return self._root

    # Environment state

    async def load_environment_state(self, name: str) -> EnvironmentState | None:
        return await asyncio.to_thread(self._read_environment, name)

    async def save_environment_state(
        self, state: EnvironmentState, expected_revision: int | None = None
    ) -> EnvironmentState:
        return await asyncio.to_thread(self._write_environment, state, expected_revision)

    def _read_environment(self, name: str) -> EnvironmentState | None:
        raw = self._read(self._environments / _filename(name))
        return EnvironmentState.model_validate_json(raw) if raw is not None else None

    def _write_environment(
        self, state: EnvironmentState, expected_revision: int | None
    ) -> EnvironmentState:
        with self._exclusive():
            stored = self._read_environment(state.name)
            stored_revision = stored.revision if stored else 0
            if expected_revision is not None and expected_revision != stored_revision:
                raise StaleStateError(
                    f"Environment {state.name} is at revision {stored_revision}, "
                    f"expected {expected_revision}"
                )
            saved = state.model_copy(
                update={"revision": stored_revision + 1, "updated_at": utc_now()}
            )
            self._write(self._environments / _filename(state.name), saved.model_dump_json(indent=2))
        logger.debug(
            "environment_state_written",
            environment=state.name,
            revision=saved.revision,
        )
        return saved

    # Deployments

    async def get_deployment(self, deployment_id: str) -> DeploymentStatus | None:
        return await asyncio.to_thread(self._read_deployment, self._deployments / _filename(deployment_id))

    async def list_deployments(self, environment: str | None = None) -> list[DeploymentStatus]:
        def _list() -> list[DeploymentStatus]:
            items = []
            for path in self._deployments.glob("*.json"):
                status = self._read_deployment(path)
                if status is not None and (environment is None or status.environment == environment):
                    items.append(status)
            return sorted(items, key=lambda d: d.start_time, reverse=True)

        return await asyncio.to_thread(_list)

    async def save_deployment(self, status: DeploymentStatus) -> DeploymentStatus:
        document = status.model_dump_json(indent=2)
        await asyncio.to_thread(self._write, self._deployments / _filename(status.id), document)
        return status

    def _read_deployment(self, path: Path) -> DeploymentStatus | None:
        raw = self._read(path)
        if raw is None:
            return None
        try:
            return DeploymentStatus.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("deployment_record_unreadable", path=str(path), error=str(e))
            return None

    # Backups

    async def create_backup(self, environment: str) -> str:
        backup_id = generate_id()

        def _snapshot() -> None:
            state = self._read_environment(environment)
            document = {
                "environment": environment,
                "created_at": utc_now().isoformat(),
                "state": state.model_dump(mode="json") if state else None,
            }
            self._write(self._backups / _filename(backup_id), json.dumps(document, indent=2))

        await asyncio.to_thread(_snapshot)
        logger.info("backup_written", environment=environment, backup_id=backup_id)
        return backup_id

    async def restore_backup(self, backup_id: str) -> bool:
        return await asyncio.to_thread(self._restore, backup_id)

    def _restore(self, backup_id: str) -> bool:
        raw = self._read(self._backups / _filename(backup_id))
        if raw is None:
            return False
        document = json.loads(raw)
        environment = document["environment"]
        path = self._environments / _filename(environment)
        with self._exclusive():
            if document["state"] is None:
                path.unlink(missing_ok=True)
                return True
            current = self._read_environment(environment)
            snapshot = EnvironmentState.model_validate(document["state"])
            restored = snapshot.model_copy(update={
                "revision": (current.revision if current else 0) + 1,
                "updated_at": utc_now(),
            })
            self._write(path, restored.model_dump_json(indent=2))
        return True

    # File helpers

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        with open(self._lock_path, "a+") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    @staticmethod
    def _write(path: Path, content: str) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
