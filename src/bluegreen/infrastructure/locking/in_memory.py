"""Process-local distributed lock for single-instance deployments and tests."""

from __future__ import annotations

import asyncio
import time

import structlog

from bluegreen.domain.ports.services import DistributedLock


logger = structlog.get_logger(__name__)


class InMemoryDistributedLock(DistributedLock):
    """Lock table held in process memory with TTL expiry."""

    def __init__(self) -> None:
        self._expires_at: dict[str, float] = {}
        self._guard = asyncio.Lock()

    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        async with self._guard:
            now = time.monotonic()
            expires_at = self._expires_at.get(resource_id)
            if expires_at is not None and expires_at > now:
                logger.debug("lock_not_acquired", resource_id=resource_id)
                return False
            self._expires_at[resource_id] = now + ttl_seconds
            logger.debug("lock_acquired", resource_id=resource_id, ttl=ttl_seconds)
            return True

    async def release(self, resource_id: str) -> bool:
        async with self._guard:
            if self._expires_at.pop(resource_id, None) is None:
                return False
            logger.debug("lock_released", resource_id=resource_id)
            return True

    async def extend(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        async with self._guard:
            if not self._is_held(resource_id):
                return False
            self._expires_at[resource_id] = time.monotonic() + ttl_seconds
            return True

    async def is_locked(self, resource_id: str) -> bool:
        return self._is_held(resource_id)

    def _is_held(self, resource_id: str) -> bool:
        expires_at = self._expires_at.get(resource_id)
        return expires_at is not None and expires_at > time.monotonic()
