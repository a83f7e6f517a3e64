from __future__ import annotations

from typing import Optional

from sharepoint_connector.integration.infrastructure.clients.sharepoint_api_client import (
    SharePointApiClient,
)
from sharepoint_connector.main.exceptions import ContentValidationError, MimeTypeNotAllowedError
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.processing_context import (
    PipelineStepName,
    ProcessingContext,
    resolve_drive_id,
)
from sharepoint_connector.pipeline.steps.base import PipelineStep

logger = get_logger(__name__)


class ContentFetchingStep(PipelineStep):
    name = PipelineStepName.CONTENT_FETCHING

    def __init__(
        self,
        sharepoint_client: SharePointApiClient,
        allowed_mime_types: Optional[list[str]] = None,
        metrics: Optional[MetricsService] = None,
    ):
        super().__init__(metrics=metrics)
        self._sharepoint_client = sharepoint_client
        self._allowed_mime_types = allowed_mime_types or []

    def _validate_mime_type(self, mime_type: Optional[str]) -> None:
        if not self._allowed_mime_types:
            return
        if mime_type not in self._allowed_mime_types:
            raise MimeTypeNotAllowedError(str(mime_type), self._allowed_mime_types)

    async def run(self, context: ProcessingContext) -> ProcessingContext:
        drive_id = resolve_drive_id(context.metadata)
        if not drive_id:
            raise ContentValidationError("Drive ID not found in file metadata")

        self._validate_mime_type(context.metadata.get("mime_type"))

        content = await self._sharepoint_client.download_file_content(drive_id, context.file_id)
        context.content_buffer = content
        context.file_size = len(content)

        logger.info(
            f"Downloaded {context.file_name}",
            extra={"file_id": context.file_id, "size_bytes": context.file_size},
        )
        return context

    async def cleanup(self, context: ProcessingContext) -> None:
        # Buffer is still needed by the upload step
        logger.debug("Content fetching cleanup", extra={"file_id": context.file_id})
