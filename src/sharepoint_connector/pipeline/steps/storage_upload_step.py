from __future__ import annotations

from typing import Optional

from sharepoint_connector.integration.infrastructure.clients.unique_api_client import (
    UniqueApiClient,
)
from sharepoint_connector.main.exceptions import ContentValidationError, StorageUploadError
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.processing_context import PipelineStepName, ProcessingContext
from sharepoint_connector.pipeline.steps.base import PipelineStep
from sharepoint_connector.pipeline.steps.content_registration_step import DEFAULT_MIME_TYPE

logger = get_logger(__name__)


class StorageUploadStep(PipelineStep):
    name = PipelineStepName.STORAGE_UPLOAD

    def __init__(self, unique_client: UniqueApiClient, metrics: Optional[MetricsService] = None):
        super().__init__(metrics=metrics)
        self._unique_client = unique_client

    async def run(self, context: ProcessingContext) -> ProcessingContext:
        if context.content_buffer is None:
            raise ContentValidationError(
                "Content buffer not found - content fetching may have failed"
            )
        if not context.upload_url:
            raise ContentValidationError(
                "Upload URL not found - content registration may have failed"
            )

        response = await self._unique_client.upload_content(
            context.upload_url,
            context.content_buffer,
            context.metadata.get("mime_type") or DEFAULT_MIME_TYPE,
        )
        if not response.is_success:
            raise StorageUploadError(response.status_code, response.reason_phrase)

        logger.info(
            "Content uploaded",
            extra={"file_id": context.file_id, "size_bytes": context.file_size},
        )
        context.release_content()
        return context

    async def cleanup(self, context: ProcessingContext) -> None:
        context.release_content()
