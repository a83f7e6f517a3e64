from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from sharepoint_connector.integration.domain.unique_models import (
    ContentRegistrationRequest,
    ContentRegistrationResponse,
    FileDiffItem,
    FileDiffResponse,
    IngestionFinalizationRequest,
    IngestionFinalizationResponse,
)
from sharepoint_connector.main.exceptions import ConfigurationError, UniqueApiError
from sharepoint_connector.main.logging import get_logger

logger = get_logger(__name__)

FILE_DIFF_SOURCE_KIND = "MICROSOFT_365_SHAREPOINT"
FILE_DIFF_SOURCE_NAME = "SharePoint Online Connector"

REGISTER_CONTENT_MUTATION = """
mutation ContentUpsert(
  $input: ContentCreateInput!
  $fileUrl: String
  $chatId: String
  $scopeId: String
  $sourceOwnerType: String
  $sourceName: String
  $sourceKind: String
  $storeInternally: Boolean
) {
  contentUpsert(
    input: $input
    fileUrl: $fileUrl
    chatId: $chatId
    scopeId: $scopeId
    sourceOwnerType: $sourceOwnerType
    sourceName: $sourceName
    sourceKind: $sourceKind
    storeInternally: $storeInternally
  ) {
    id
    key
    byteSize
    mimeType
    ownerType
    ownerId
    writeUrl
    readUrl
    createdAt
    internallyStoredAt
  }
}
"""

FINALIZE_INGESTION_MUTATION = """
mutation ContentUpsert(
  $input: ContentCreateInput!
  $scopeId: String
  $fileUrl: String
  $sourceOwnerType: String
  $sourceName: String
  $sourceKind: String
) {
  contentUpsert(
    input: $input
    scopeId: $scopeId
    fileUrl: $fileUrl
    sourceOwnerType: $sourceOwnerType
    sourceName: $sourceName
    sourceKind: $sourceKind
  ) {
    id
  }
}
"""


class UniqueApiClient:
    """Client for the Unique ingestion GraphQL and REST APIs.

    Calls are spaced at least ``min_request_interval_seconds`` apart within
    this process.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        graphql_url: Optional[str],
        ingestion_url: Optional[str],
        file_diff_base_path: str = "",
        file_diff_partial_key: str = "sharepoint",
        min_request_interval_seconds: float = 0.05,
    ):
        if not graphql_url or not ingestion_url:
            raise ConfigurationError(
                "Unique API not configured (UNIQUE_INGESTION_URL, UNIQUE_INGESTION_URL_GRAPHQL)"
            )
        self._http_client = http_client
        self._graphql_url = graphql_url
        self._ingestion_url = ingestion_url.rstrip("/")
        self._file_diff_base_path = file_diff_base_path
        self._file_diff_partial_key = file_diff_partial_key
        self._min_request_interval = min_request_interval_seconds
        self._throttle_lock = asyncio.Lock()
        self._last_request_at = 0.0

    async def _throttle(self) -> None:
        async with self._throttle_lock:
            wait = self._last_request_at + self._min_request_interval - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_at = time.monotonic()

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {token}"}

    async def _graphql(self, query: str, variables: dict[str, Any], token: str) -> dict[str, Any]:
        await self._throttle()
        response = await self._http_client.post(
            self._graphql_url,
            json={"query": query, "variables": variables},
            headers=self._headers(token),
        )
        if response.is_error:
            logger.error(
                "Unique GraphQL request failed",
                extra={"status_code": response.status_code, "body": response.text},
            )
            response.raise_for_status()

        body = response.json()
        if body.get("errors"):
            raise UniqueApiError(f"Unique API returned errors: {body['errors']}")

        return body.get("data") or {}

    async def register_content(
        self, request: ContentRegistrationRequest, token: str
    ) -> ContentRegistrationResponse:
        """Register a file and obtain the pre-signed URL to upload it to."""
        variables = {
            "input": {
                "key": request.key,
                "title": request.title,
                "mimeType": request.mime_type,
                "ownerType": request.owner_type,
                "byteSize": request.byte_size,
            },
            "scopeId": request.scope_id,
            "sourceOwnerType": request.source_owner_type,
            "sourceKind": request.source_kind,
            "sourceName": request.source_name,
            "storeInternally": True,
        }
        data = await self._graphql(REGISTER_CONTENT_MUTATION, variables, token)
        content = data.get("contentUpsert")
        if not content:
            raise UniqueApiError("Invalid response from Unique API content registration")

        return ContentRegistrationResponse.model_validate(content)

    async def finalize_ingestion(
        self, request: IngestionFinalizationRequest, token: str
    ) -> IngestionFinalizationResponse:
        """Tell Unique the uploaded bytes are in place and ready for ingestion."""
        variables = {
            "input": {
                "key": request.key,
                "title": request.title,
                "mimeType": request.mime_type,
                "ownerType": request.owner_type,
                "byteSize": request.byte_size,
                "url": request.file_url,
            },
            "scopeId": request.scope_id,
            "fileUrl": request.file_url,
            "sourceOwnerType": request.source_owner_type,
            "sourceName": request.source_name,
            "sourceKind": request.source_kind,
        }
        data = await self._graphql(FINALIZE_INGESTION_MUTATION, variables, token)
        content = data.get("contentUpsert")
        if not content or not content.get("id"):
            raise UniqueApiError("Invalid response from Unique API ingestion finalization")

        return IngestionFinalizationResponse.model_validate(content)

    async def perform_file_diff(
        self, items: list[FileDiffItem], token: str, scope_id: Optional[str] = None
    ) -> FileDiffResponse:
        """Ask Unique which of the discovered files are new, changed, moved or gone."""
        await self._throttle()
        payload = {
            "basePath": self._file_diff_base_path,
            "partialKey": self._file_diff_partial_key,
            "sourceKind": FILE_DIFF_SOURCE_KIND,
            "sourceName": FILE_DIFF_SOURCE_NAME,
            "fileList": [item.model_dump(by_alias=True, exclude_none=True) for item in items],
            "scope": scope_id,
        }
        response = await self._http_client.post(
            f"{self._ingestion_url}/file-diff",
            json=payload,
            headers=self._headers(token),
        )
        if response.is_error:
            logger.error(
                "Unique file diff failed",
                extra={"status_code": response.status_code, "body": response.text},
            )
            response.raise_for_status()

        body = response.json()
        if not body:
            raise UniqueApiError("Invalid response from Unique API file diff")

        return FileDiffResponse.model_validate(body)

    async def upload_content(self, upload_url: str, data: bytes, mime_type: str) -> httpx.Response:
        """PUT file bytes to the blob storage URL returned by registration."""
        return await self._http_client.put(
            upload_url,
            content=data,
            headers={"Content-Type": mime_type, "x-ms-blob-type": "BlockBlob"},
        )
