"""Discovery of SharePoint files that need to be (re)ingested.

A scan lists every syncable file in the configured sites, asks Unique which
of them are new or changed, and enqueues exactly those for processing.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from sharepoint_connector.integration.domain.drive_item import DriveItem
from sharepoint_connector.integration.domain.unique_models import FileDiffItem
from sharepoint_connector.integration.infrastructure.auth_service.auth_service import (
    AuthService,
)
from sharepoint_connector.integration.infrastructure.clients.sharepoint_api_client import (
    SharePointApiClient,
)
from sharepoint_connector.integration.infrastructure.clients.unique_api_client import (
    UniqueApiClient,
)
from sharepoint_connector.jobs.ingestion_queue import IngestionQueue
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.metrics.metrics_service import MetricsService

logger = get_logger(__name__)


def build_diff_key(item: DriveItem) -> str:
    return f"sharepoint_file_{item.id}"


def to_diff_item(item: DriveItem) -> FileDiffItem:
    return FileDiffItem(
        id=item.id,
        name=item.name,
        url=item.web_url,
        updated_at=item.updated_at,
        key=build_diff_key(item),
    )


class SharepointScanner:
    def __init__(
        self,
        site_ids: list[str],
        auth_service: AuthService,
        sharepoint_client: SharePointApiClient,
        unique_client: UniqueApiClient,
        ingestion_queue: IngestionQueue,
        metrics: Optional[MetricsService] = None,
        scope_id: Optional[str] = None,
    ):
        self._site_ids = site_ids
        self._auth_service = auth_service
        self._sharepoint_client = sharepoint_client
        self._unique_client = unique_client
        self._ingestion_queue = ingestion_queue
        self._metrics = metrics
        self._scope_id = scope_id

    async def scan_for_work(self) -> int:
        """Run one scan and return the number of files queued.

        Raises:
            Exception: Token, diff and queue errors propagate to the caller.
        """
        started = time.perf_counter()
        if self._metrics is not None:
            self._metrics.record_scan_started()

        logger.info("Starting SharePoint scan", extra={"sites": len(self._site_ids)})

        items = await self._discover_items()
        if not items:
            logger.info("No syncable files found")
            self._record_scan_completed(started)
            return 0

        queued = await self._diff_and_enqueue(items)

        self._record_scan_completed(started)
        logger.info(
            "SharePoint scan completed",
            extra={
                "files_discovered": len(items),
                "files_queued": queued,
                "duration_seconds": round(time.perf_counter() - started, 3),
            },
        )
        return queued

    async def _discover_items(self) -> list[DriveItem]:
        items: list[DriveItem] = []
        for site_id in self._site_ids:
            try:
                site_items = await self._sharepoint_client.list_syncable_items(site_id)
            except Exception as exc:
                logger.error(
                    f"Failed to scan site {site_id}: {exc}",
                    extra={"site_id": site_id, "error_type": type(exc).__name__},
                )
                if self._metrics is not None:
                    self._metrics.record_scan_error(site_id, type(exc).__name__)
                continue

            if self._metrics is not None:
                self._metrics.record_files_discovered(len(site_items), site_id)
            logger.debug(
                f"Found {len(site_items)} syncable files",
                extra={"site_id": site_id},
            )
            items.extend(site_items)
        return items

    async def _diff_and_enqueue(self, items: list[DriveItem]) -> int:
        token = await self._auth_service.get_unique_api_token()
        diff = await self._unique_client.perform_file_diff(
            [to_diff_item(item) for item in items], token, scope_id=self._scope_id
        )

        if self._metrics is not None:
            self._metrics.record_file_diff_results(
                new_and_updated=len(diff.new_and_updated_files),
                deleted=len(diff.deleted_files),
                moved=len(diff.moved_files),
            )

        changed_keys = set(diff.new_and_updated_files)
        to_process = [item for item in items if build_diff_key(item) in changed_keys]
        if not to_process:
            return 0

        results = await asyncio.gather(
            *(self._ingestion_queue.enqueue(item) for item in to_process),
            return_exceptions=True,
        )

        queued = 0
        for item, outcome in zip(to_process, results):
            if isinstance(outcome, BaseException):
                logger.error(
                    f"Failed to queue {item.name}: {outcome}",
                    extra={"file_id": item.id},
                )
            elif outcome:
                queued += 1

        if self._metrics is not None:
            self._metrics.record_files_queued(queued)
        await self._ingestion_queue.refresh_queue_size_metric()

        return queued

    def _record_scan_completed(self, started: float) -> None:
        if self._metrics is not None:
            self._metrics.record_scan_completed(time.perf_counter() - started)
