import time
from typing import Any, Optional

import pytest

from sharepoint_connector.main.config import Settings, reset_settings
from sharepoint_connector.worker.redis.lua_scripts import LuaScripts


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings with explicit values for unit tests.

    Provides a clean, isolated configuration that doesn't depend on the
    .env file or environment variables.
    """
    return Settings(
        redis_host="localhost",
        redis_port=6379,
        queue_name="sharepoint-tasks",
        processing_concurrency=4,
        max_retries=3,
        retry_backoff_seconds=1.0,
        graph_client_id="graph-client",
        graph_client_secret="graph-secret",
        graph_tenant_id="contoso.onmicrosoft.com",
        sharepoint_sites="site-a,site-b",
        allowed_mime_types="",
        step_timeout_seconds=30,
        max_file_size_bytes=1024,
        unique_ingestion_url="https://unique.example.com/ingestion",
        unique_ingestion_graphql_url="https://unique.example.com/ingestion/graphql",
        unique_scope_id="scope-1",
        unique_api_min_request_interval_seconds=0,
        zitadel_oauth_token_url="https://id.example.com/oauth/v2/token",
        zitadel_project_id="project-1",
        zitadel_client_id="zitadel-client",
        zitadel_client_secret="zitadel-secret",
        scan_interval_seconds=900,
    )


@pytest.fixture(autouse=True)
def _reset_settings():
    yield
    reset_settings()


@pytest.fixture
def drive_item_payload() -> dict[str, Any]:
    """A Graph drive item as the scanner puts it on the queue."""
    return {
        "id": "file-1",
        "name": "report.pdf",
        "webUrl": "https://contoso.sharepoint.com/sites/finance/Shared%20Documents/report.pdf",
        "size": 11,
        "lastModifiedDateTime": "2024-05-01T10:00:00Z",
        "file": {"mimeType": "application/pdf"},
        "parentReference": {"driveId": "drive-1", "siteId": "site-a"},
        "listItem": {
            "id": "7",
            "fields": {"FinanceGPTKnowledge": True},
            "lastModifiedDateTime": "2024-05-02T10:00:00Z",
        },
    }


class FakeRedis:
    """In-memory stand-in for redis.asyncio supporting the lock commands.

    Keys expire against a manual clock; call ``advance`` to move time forward.
    """

    def __init__(self):
        self._store: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}
        self._now = time.monotonic()

    def advance(self, seconds: float) -> None:
        self._now += seconds

    def _purge(self, key: str) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= self._now:
            self._store.pop(key, None)
            self._expires_at.pop(key, None)

    def ttl_remaining(self, key: str) -> Optional[float]:
        self._purge(key)
        expires_at = self._expires_at.get(key)
        return None if expires_at is None else expires_at - self._now

    async def get(self, key: str) -> Optional[str]:
        self._purge(key)
        return self._store.get(key)

    async def set(self, key: str, value: str, nx: bool = False, ex: Optional[int] = None):
        self._purge(key)
        if nx and key in self._store:
            return None
        self._store[key] = value
        if ex is not None:
            self._expires_at[key] = self._now + ex
        return True

    async def expire(self, key: str, seconds: int) -> bool:
        self._purge(key)
        if key not in self._store:
            return False
        self._expires_at[key] = self._now + seconds
        return True

    async def delete(self, key: str) -> int:
        self._purge(key)
        self._expires_at.pop(key, None)
        return 1 if self._store.pop(key, None) is not None else 0

    async def eval(self, script: str, numkeys: int, *args: Any) -> int:
        key, expected = args[0], args[1]
        if script == LuaScripts.EXTEND_OWNED_LOCK:
            if await self.get(key) == expected:
                await self.expire(key, int(args[2]))
                return 1
            return 0
        if script == LuaScripts.RELEASE_OWNED_LOCK:
            if await self.get(key) == expected:
                return await self.delete(key)
            return 0
        raise NotImplementedError("Unknown script")


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
