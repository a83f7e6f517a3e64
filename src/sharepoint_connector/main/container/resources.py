"""Connections shared by everything a process builds from the container."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
import redis.asyncio as aioredis
from arq import create_pool
from arq.connections import ArqRedis
from dependency_injector import providers

from sharepoint_connector.main.aiohttp_client import AioHttpClient
from sharepoint_connector.main.config import Settings
from sharepoint_connector.main.container.container import Container
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.redis.connection import build_arq_redis_settings, create_redis_client

logger = get_logger(__name__)

DEFAULT_HTTP_TIMEOUT = 60.0


@dataclass
class Resources:
    redis_client: aioredis.Redis
    arq_redis: ArqRedis
    aiohttp_client: AioHttpClient
    http_client: httpx.AsyncClient

    @classmethod
    async def open(cls, settings: Settings) -> Resources:
        redis_client = create_redis_client(settings)
        arq_redis = await create_pool(
            build_arq_redis_settings(settings),
            default_queue_name=settings.queue_name,
        )
        aiohttp_client = AioHttpClient()
        aiohttp_client.start()
        http_client = httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT)

        logger.debug(
            f"Connected to redis on host {settings.redis_host} and port {settings.redis_port}"
        )
        return cls(
            redis_client=redis_client,
            arq_redis=arq_redis,
            aiohttp_client=aiohttp_client,
            http_client=http_client,
        )

    async def close(self) -> None:
        await self.http_client.aclose()
        await self.aiohttp_client.stop()
        await self.arq_redis.aclose()
        await self.redis_client.aclose()


def create_container(settings: Settings, resources: Optional[Resources] = None) -> Container:
    container = Container(settings=providers.Object(settings))
    if resources is not None:
        container.redis_client.override(providers.Object(resources.redis_client))
        container.arq_redis.override(providers.Object(resources.arq_redis))
        container.aiohttp_session.override(providers.Object(resources.aiohttp_client()))
        container.http_client.override(providers.Object(resources.http_client))
    return container
