"""Redis-backed distributed lock with ownership-checked extend and release.

Acquire is a single ``SET NX EX``. Extend and release compare the stored value
with the caller's value inside a Lua script when the caller passes it. Every
Redis failure is logged and reported as "not acquired" / ``False`` so callers
never run lock-protected work without holding the lock.
"""

from __future__ import annotations

import os
import socket
import time
from typing import TYPE_CHECKING, NamedTuple, Optional

from sharepoint_connector.main.exceptions import ConfigurationError
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.worker.redis.lua_scripts import LuaScripts

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = get_logger(__name__)


class LockAcquisition(NamedTuple):
    acquired: bool
    value: Optional[str] = None


def default_lock_value() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{time.time_ns()}"


class DistributedLock:
    """Lock primitives on top of an async Redis client.

    Args:
        redis_client: Async Redis connection. Required.
    """

    def __init__(self, redis_client: Optional[aioredis.Redis]) -> None:
        if redis_client is None:
            raise ConfigurationError("Redis client not configured for distributed lock")
        self._redis = redis_client

    async def acquire(
        self,
        key: str,
        ttl_seconds: int,
        value: Optional[str] = None,
    ) -> LockAcquisition:
        """Try to take the lock once.

        Returns:
            ``LockAcquisition(True, value)`` when this caller now holds the lock,
            ``LockAcquisition(False)`` when it is held elsewhere or Redis failed.
        """
        lock_value = value or default_lock_value()
        try:
            acquired = await self._redis.set(key, lock_value, nx=True, ex=ttl_seconds)
        except Exception as exc:
            logger.warning(
                "Failed to acquire lock",
                extra={"error": str(exc), "lock_key": key},
            )
            return LockAcquisition(acquired=False)

        if not acquired:
            logger.debug("Lock held by another owner", extra={"lock_key": key})
            return LockAcquisition(acquired=False)

        logger.debug("Lock acquired", extra={"lock_key": key, "ttl_seconds": ttl_seconds})
        return LockAcquisition(acquired=True, value=lock_value)

    async def extend(
        self,
        key: str,
        ttl_seconds: int,
        expected_value: Optional[str] = None,
    ) -> bool:
        """Reset the lock's TTL.

        With ``expected_value`` the TTL is only reset while the stored value matches.
        """
        try:
            if expected_value is not None:
                return await LuaScripts.extend_owned_lock(
                    self._redis, key, expected_value, ttl_seconds
                )
            return bool(await self._redis.expire(key, ttl_seconds))
        except Exception as exc:
            logger.warning(
                "Failed to extend lock",
                extra={"error": str(exc), "lock_key": key},
            )
            return False

    async def release(self, key: str, expected_value: Optional[str] = None) -> bool:
        """Delete the lock.

        With ``expected_value`` the key is only deleted while the stored value matches.
        """
        try:
            if expected_value is not None:
                return await LuaScripts.release_owned_lock(self._redis, key, expected_value)
            return bool(await self._redis.delete(key))
        except Exception as exc:
            logger.warning(
                "Failed to release lock",
                extra={"error": str(exc), "lock_key": key},
            )
            return False
