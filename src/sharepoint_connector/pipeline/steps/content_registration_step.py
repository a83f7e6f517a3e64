from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from sharepoint_connector.integration.domain.unique_models import ContentRegistrationRequest
from sharepoint_connector.integration.infrastructure.clients.unique_api_client import (
    UniqueApiClient,
)
from sharepoint_connector.main.exceptions import ConfigurationError, ContentValidationError
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.processing_context import (
    PipelineStepName,
    ProcessingContext,
    resolve_drive_id,
    resolve_site_id,
)
from sharepoint_connector.pipeline.steps.base import PipelineStep

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_SOURCE_NAME = "SharePoint"


def extract_source_name(site_url: Optional[str]) -> str:
    """Human readable source name: the site path segment, else the host."""
    if not site_url:
        return DEFAULT_SOURCE_NAME
    parsed = urlparse(site_url)
    if not parsed.scheme or not parsed.hostname:
        return DEFAULT_SOURCE_NAME
    segments = [segment for segment in parsed.path.split("/") if segment]
    if len(segments) >= 2 and segments[0] == "sites":
        return segments[1]
    return parsed.hostname


def build_content_key(prefix: str, site_id: Optional[str], drive_id: Optional[str], file_id: str) -> str:
    return f"{prefix}_{site_id or 'unknown-site'}_{drive_id or 'unknown-drive'}_{file_id}"


def get_unique_token(context: ProcessingContext) -> str:
    token = (context.metadata.get("tokens") or {}).get("unique_api_token")
    if not token:
        raise ContentValidationError(
            "Unique API token not found in context - token validation may have failed"
        )
    return token


class ContentRegistrationStep(PipelineStep):
    name = PipelineStepName.CONTENT_REGISTRATION

    def __init__(
        self,
        unique_client: UniqueApiClient,
        scope_id: Optional[str],
        key_prefix: str = "sharepoint",
        metrics: Optional[MetricsService] = None,
    ):
        if not scope_id:
            raise ConfigurationError("Unique scope not configured (set UNIQUE_SCOPE_ID)")
        super().__init__(metrics=metrics)
        self._unique_client = unique_client
        self._scope_id = scope_id
        self._key_prefix = key_prefix

    async def run(self, context: ProcessingContext) -> ProcessingContext:
        token = get_unique_token(context)

        request = ContentRegistrationRequest(
            key=build_content_key(
                self._key_prefix,
                resolve_site_id(context.metadata),
                resolve_drive_id(context.metadata),
                context.file_id,
            ),
            title=context.file_name,
            mime_type=context.metadata.get("mime_type") or DEFAULT_MIME_TYPE,
            owner_type="SCOPE",
            scope_id=self._scope_id,
            source_owner_type="COMPANY",
            source_kind="UNIQUE_BLOB_STORAGE",
            source_name=extract_source_name(context.site_url),
            byte_size=context.file_size,
        )

        response = await self._unique_client.register_content(request, token)

        context.upload_url = response.write_url
        context.unique_content_id = response.id
        context.metadata["registration_response"] = response

        logger.info(
            "Content registered",
            extra={"file_id": context.file_id, "content_id": response.id, "key": response.key},
        )
        return context
