from __future__ import annotations

from typing import Any, Optional

import aiohttp

from sharepoint_connector.integration.domain.drive_item import DriveItem
from sharepoint_connector.integration.infrastructure.auth_service.auth_service import (
    AuthService,
)
from sharepoint_connector.main.exceptions import FileSizeLimitExceededError
from sharepoint_connector.main.logging import get_logger

logger = get_logger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024
APPROVED_MODERATION_STATUS = 0


class SharePointApiClient:
    """Microsoft Graph access for discovering and downloading SharePoint files.

    Requests authenticate with the cached Graph token. A 401 forces one token
    refresh and one retry of the same request.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        auth_service: AuthService,
        base_url: str = "https://graph.microsoft.com/",
        sync_column_name: str = "FinanceGPTKnowledge",
        max_file_size_bytes: int = 209715200,
        page_size: int = 200,
    ):
        self._session = session
        self._auth_service = auth_service
        self._base_url = base_url.rstrip("/") + "/"
        self._sync_column_name = sync_column_name
        self._max_file_size_bytes = max_file_size_bytes
        self._page_size = page_size

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}

    async def _get(
        self, url: str, params: Optional[dict[str, Any]] = None
    ) -> aiohttp.ClientResponse:
        token = await self._auth_service.get_graph_api_token()
        response = await self._session.get(url, headers=self._headers(token), params=params)
        if response.status == 401:
            response.release()
            logger.info("Graph token rejected, refreshing", extra={"url": url})
            token = await self._auth_service.get_graph_api_token(force_refresh=True)
            response = await self._session.get(url, headers=self._headers(token), params=params)
        return response

    async def _get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        response = await self._get(url, params=params)
        async with response:
            response.raise_for_status()
            return await response.json()

    async def _get_paged(self, url: str, params: Optional[dict[str, Any]] = None) -> list[dict]:
        items: list[dict] = []
        next_url: Optional[str] = url
        while next_url:
            page = await self._get_json(next_url, params=params)
            items.extend(page.get("value", []))
            next_url = page.get("@odata.nextLink")
            # nextLink already carries the query string
            params = None
        return items

    async def get_site_drives(self, site_id: str) -> list[dict[str, Any]]:
        drives = await self._get_paged(f"{self._base_url}v1.0/sites/{site_id}/drives")
        return [drive for drive in drives if drive.get("driveType", "documentLibrary") == "documentLibrary"]

    async def list_syncable_items(self, site_id: str) -> list[DriveItem]:
        """List files in the site's document libraries that are flagged for sync."""
        syncable: list[DriveItem] = []
        for drive in await self.get_site_drives(site_id):
            drive_id = drive["id"]
            list_items = await self._get_paged(
                f"{self._base_url}v1.0/drives/{drive_id}/list/items",
                params={"$expand": "fields,driveItem", "$top": str(self._page_size)},
            )
            for list_item in list_items:
                item = self._to_syncable_item(list_item, site_id=site_id, drive_id=drive_id)
                if item is not None:
                    syncable.append(item)

            logger.debug(
                "Scanned document library",
                extra={"site_id": site_id, "drive_id": drive_id, "list_items": len(list_items)},
            )

        return syncable

    def _to_syncable_item(
        self, list_item: dict[str, Any], site_id: str, drive_id: str
    ) -> Optional[DriveItem]:
        drive_item = list_item.get("driveItem")
        fields = list_item.get("fields") or {}
        if not drive_item or "file" not in drive_item:
            return None
        if not fields.get(self._sync_column_name):
            return None
        if fields.get("_ModerationStatus", APPROVED_MODERATION_STATUS) != APPROVED_MODERATION_STATUS:
            return None

        parent_reference = dict(drive_item.get("parentReference") or {})
        parent_reference.setdefault("driveId", drive_id)
        parent_reference.setdefault("siteId", site_id)

        return DriveItem.model_validate(
            {
                **drive_item,
                "parentReference": parent_reference,
                "listItem": {
                    "id": list_item.get("id"),
                    "fields": fields,
                    "lastModifiedDateTime": list_item.get("lastModifiedDateTime"),
                },
            }
        )

    async def download_file_content(self, drive_id: str, item_id: str) -> bytes:
        """Download a file, aborting as soon as it grows past the size limit.

        Raises:
            FileSizeLimitExceededError: If the file is larger than the limit.
            aiohttp.ClientResponseError: If Graph answers with an error status.
        """
        url = f"{self._base_url}v1.0/drives/{drive_id}/items/{item_id}/content"
        response = await self._get(url)
        async with response:
            response.raise_for_status()

            if (
                response.content_length is not None
                and response.content_length > self._max_file_size_bytes
            ):
                raise FileSizeLimitExceededError(self._max_file_size_bytes)

            buffer = bytearray()
            async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                buffer.extend(chunk)
                if len(buffer) > self._max_file_size_bytes:
                    logger.warning(
                        "Aborting download above size limit",
                        extra={"drive_id": drive_id, "item_id": item_id},
                    )
                    raise FileSizeLimitExceededError(self._max_file_size_bytes)

        return bytes(buffer)
