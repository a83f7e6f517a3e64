from unittest.mock import AsyncMock, MagicMock

import pytest

from sharepoint_connector.integration.domain.drive_item import DriveItem
from sharepoint_connector.integration.domain.unique_models import ContentRegistrationResponse
from sharepoint_connector.pipeline.processing_context import ProcessingContext


@pytest.fixture
def drive_item(drive_item_payload) -> DriveItem:
    return DriveItem.model_validate(drive_item_payload)


@pytest.fixture
def context(drive_item) -> ProcessingContext:
    return ProcessingContext.from_drive_item(drive_item)


@pytest.fixture
def auth_service():
    auth = MagicMock()
    auth.get_graph_api_token = AsyncMock(return_value="graph-token")
    auth.get_unique_api_token = AsyncMock(return_value="unique-token")
    return auth


@pytest.fixture
def registration_response() -> ContentRegistrationResponse:
    return ContentRegistrationResponse(
        id="cont_1",
        key="sharepoint_site-a_drive-1_file-1",
        byte_size=11,
        mime_type="application/pdf",
        owner_type="SCOPE",
        write_url="https://blob.example.com/write",
        read_url="https://blob.example.com/read",
    )
