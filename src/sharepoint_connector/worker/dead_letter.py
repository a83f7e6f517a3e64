from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import orjson

from sharepoint_connector.main.logging import get_logger

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = get_logger(__name__)


class DeadLetterQueue:
    """Capped Redis list of jobs that failed on their last attempt."""

    def __init__(self, redis_client: aioredis.Redis, key: str, max_entries: int = 1000) -> None:
        self._redis = redis_client
        self._key = key
        self._max_entries = max_entries

    @property
    def key(self) -> str:
        return self._key

    async def push(self, entry: dict[str, Any]) -> bool:
        record = {**entry, "failed_at": datetime.now(timezone.utc).isoformat()}
        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.lpush(self._key, orjson.dumps(record, default=str))
            pipe.ltrim(self._key, 0, self._max_entries - 1)
            await pipe.execute()
            return True
        except Exception as exc:
            logger.error(
                "Failed to record dead-lettered job",
                extra={"error": str(exc), "dead_letter_key": self._key},
            )
            return False

    async def list_entries(self, limit: int = 100) -> list[dict[str, Any]]:
        raw_entries = await self._redis.lrange(self._key, 0, limit - 1)
        return [orjson.loads(raw) for raw in raw_entries]

    async def size(self) -> int:
        return int(await self._redis.llen(self._key))
