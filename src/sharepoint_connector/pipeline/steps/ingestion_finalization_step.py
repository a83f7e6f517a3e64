from __future__ import annotations

from typing import Optional

from sharepoint_connector.integration.domain.unique_models import (
    ContentRegistrationResponse,
    IngestionFinalizationRequest,
)
from sharepoint_connector.integration.infrastructure.auth_service.auth_service import (
    AuthService,
)
from sharepoint_connector.integration.infrastructure.clients.unique_api_client import (
    UniqueApiClient,
)
from sharepoint_connector.main.exceptions import ConfigurationError, ContentValidationError
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.processing_context import PipelineStepName, ProcessingContext
from sharepoint_connector.pipeline.steps.base import PipelineStep
from sharepoint_connector.pipeline.steps.content_registration_step import extract_source_name

logger = get_logger(__name__)


class IngestionFinalizationStep(PipelineStep):
    name = PipelineStepName.INGESTION_FINALIZATION

    def __init__(
        self,
        auth_service: AuthService,
        unique_client: UniqueApiClient,
        scope_id: Optional[str],
        metrics: Optional[MetricsService] = None,
    ):
        if not scope_id:
            raise ConfigurationError("Unique scope not configured (set UNIQUE_SCOPE_ID)")
        super().__init__(metrics=metrics)
        self._auth_service = auth_service
        self._unique_client = unique_client
        self._scope_id = scope_id

    async def run(self, context: ProcessingContext) -> ProcessingContext:
        registration: Optional[ContentRegistrationResponse] = context.metadata.get(
            "registration_response"
        )
        if registration is None:
            raise ContentValidationError(
                "Registration response not found in context - content registration may have failed"
            )

        token = await self._auth_service.get_unique_api_token()

        request = IngestionFinalizationRequest(
            key=registration.key,
            title=context.file_name,
            mime_type=registration.mime_type,
            owner_type=registration.owner_type,
            byte_size=registration.byte_size or context.file_size,
            scope_id=self._scope_id,
            source_owner_type="USER",
            source_name=extract_source_name(context.site_url),
            source_kind="MICROSOFT_365_SHAREPOINT",
            file_url=registration.read_url,
            content_id=registration.id,
        )

        response = await self._unique_client.finalize_ingestion(request, token)

        context.metadata["finalization_response"] = response
        context.metadata["final_content_id"] = response.id

        logger.info(
            "Ingestion finalized",
            extra={"file_id": context.file_id, "content_id": response.id},
        )
        return context
