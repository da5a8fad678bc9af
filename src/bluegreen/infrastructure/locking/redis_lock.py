"""Redis distributed lock used to serialize deployments across instances."""

from __future__ import annotations

import uuid

import redis.asyncio
import structlog

from bluegreen.config import RedisSettings
from bluegreen.domain.ports.services import DistributedLock


logger = structlog.get_logger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class RedisDistributedLock(DistributedLock):
    """Redis implementation of distributed locking using SET NX.

    Each acquisition stores a random token; release and extend only act when
    the stored token is still ours.
    """

    def __init__(self, client: redis.Redis, key_prefix: str = "bluegreen:lock") -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._lock_values: dict[str, str] = {}

    def _key(self, resource_id: str) -> str:
        return f"{self._key_prefix}:{resource_id}"

    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        lock_value = str(uuid.uuid4())
        acquired = await self._client.set(
            self._key(resource_id), lock_value, nx=True, ex=ttl_seconds
        )
        if acquired:
            self._lock_values[resource_id] = lock_value
            logger.debug("lock_acquired", resource_id=resource_id, ttl=ttl_seconds)
            return True

        logger.debug("lock_not_acquired", resource_id=resource_id)
        return False

    async def release(self, resource_id: str) -> bool:
        lock_value = self._lock_values.get(resource_id)
        if lock_value is None:
            return False

        result = await self._client.eval(_RELEASE_SCRIPT, 1, self._key(resource_id), lock_value)
        self._lock_values.pop(resource_id, None)
        if result:
            logger.debug("lock_released", resource_id=resource_id)
            return True
        logger.warning("lock_expired_before_release", resource_id=resource_id)
        return False

    async def extend(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        lock_value = self._lock_values.get(resource_id)
        if lock_value is None:
            return False

        result = await self._client.eval(
            _EXTEND_SCRIPT, 1, self._key(resource_id), lock_value, str(ttl_seconds)
        )
        return bool(result)

    async def is_locked(self, resource_id: str) -> bool:
        return bool(await self._client.exists(self._key(resource_id)))


def create_redis_client(settings: RedisSettings) -> redis.Redis:
    """Factory function to create a Redis client."""
    return redis.Redis.from_url(
        settings.url,
        decode_responses=False,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
    )
