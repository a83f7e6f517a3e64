from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional

from sharepoint_connector.integration.infrastructure.auth_service.auth_service import (
    AuthService,
)
from sharepoint_connector.main.exceptions import TokenValidationError
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.processing_context import PipelineStepName, ProcessingContext
from sharepoint_connector.pipeline.steps.base import PipelineStep

logger = get_logger(__name__)


class TokenValidationStep(PipelineStep):
    name = PipelineStepName.TOKEN_VALIDATION

    def __init__(self, auth_service: AuthService, metrics: Optional[MetricsService] = None):
        super().__init__(metrics=metrics)
        self._auth_service = auth_service

    async def run(self, context: ProcessingContext) -> ProcessingContext:
        graph_token, unique_token = await asyncio.gather(
            self._auth_service.get_graph_api_token(),
            self._auth_service.get_unique_api_token(),
        )

        if not graph_token:
            raise TokenValidationError("Failed to obtain valid token from Microsoft Graph")
        if not unique_token:
            raise TokenValidationError("Failed to obtain valid token from Zitadel")

        context.metadata["tokens"] = {
            "graph_api_token": graph_token,
            "unique_api_token": unique_token,
            "validated_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.debug("Tokens validated", extra={"file_id": context.file_id})
        return context
