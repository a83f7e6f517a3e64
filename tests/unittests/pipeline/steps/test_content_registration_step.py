"""Unit tests for the content registration step."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sharepoint_connector.integration.domain.drive_item import DriveItem
from sharepoint_connector.main.exceptions import ConfigurationError, ContentValidationError
from sharepoint_connector.pipeline.processing_context import ProcessingContext
from sharepoint_connector.pipeline.steps.content_fetching_step import ContentFetchingStep
from sharepoint_connector.pipeline.steps.content_registration_step import (
    ContentRegistrationStep,
    build_content_key,
    extract_source_name,
)


@pytest.fixture
def unique_client(registration_response):
    client = MagicMock()
    client.register_content = AsyncMock(return_value=registration_response)
    return client


class TestExtractSourceName:
    @pytest.mark.parametrize(
        "site_url, expected",
        [
            ("https://contoso.sharepoint.com/sites/finance", "finance"),
            ("https://contoso.sharepoint.com/sites/finance/sub", "finance"),
            ("https://contoso.sharepoint.com", "contoso.sharepoint.com"),
            ("invalid-url", "SharePoint"),
            ("", "SharePoint"),
            (None, "SharePoint"),
        ],
    )
    def test_source_name(self, site_url, expected):
        assert extract_source_name(site_url) == expected


class TestBuildContentKey:
    def test_uses_placeholders_for_missing_ids(self):
        assert build_content_key("sharepoint", None, None, "f") == "sharepoint_unknown-site_unknown-drive_f"


class TestContentRegistrationStep:
    async def test_registers_and_stores_response(self, unique_client, context, registration_response):
        context.metadata["tokens"] = {"unique_api_token": "unique-token"}
        step = ContentRegistrationStep(unique_client, scope_id="scope-1")

        await step.execute(context)

        request, token = unique_client.register_content.call_args.args
        assert token == "unique-token"
        assert request.key == "sharepoint_site-a_drive-1_file-1"
        assert request.title == "report.pdf"
        assert request.mime_type == "application/pdf"
        assert request.owner_type == "SCOPE"
        assert request.scope_id == "scope-1"
        assert request.source_owner_type == "COMPANY"
        assert request.source_kind == "UNIQUE_BLOB_STORAGE"
        assert request.source_name == "finance"
        assert context.upload_url == "https://blob.example.com/write"
        assert context.unique_content_id == "cont_1"
        assert context.metadata["registration_response"] is registration_response

    async def test_defaults_mime_type(self, unique_client, context):
        context.metadata["tokens"] = {"unique_api_token": "unique-token"}
        context.metadata["mime_type"] = None

        await ContentRegistrationStep(unique_client, scope_id="scope-1").execute(context)

        request, _ = unique_client.register_content.call_args.args
        assert request.mime_type == "application/octet-stream"

    async def test_requires_token_from_validation(self, unique_client, context):
        with pytest.raises(ContentValidationError, match="token validation may have failed"):
            await ContentRegistrationStep(unique_client, scope_id="scope-1").execute(context)

        unique_client.register_content.assert_not_called()


class TestContentKeyResolution:
    async def test_key_uses_drive_from_list_item_fields(self, unique_client):
        item = DriveItem.model_validate(
            {
                "id": "f",
                "name": "f.pdf",
                "file": {"mimeType": "application/pdf"},
                "listItem": {"fields": {"driveId": "drive-9", "siteId": "site-9"}},
            }
        )
        context = ProcessingContext.from_drive_item(item)
        context.metadata["tokens"] = {"unique_api_token": "unique-token"}
        sharepoint_client = MagicMock()
        sharepoint_client.download_file_content = AsyncMock(return_value=b"data")

        await ContentFetchingStep(sharepoint_client).execute(context)
        await ContentRegistrationStep(unique_client, scope_id="scope-1").execute(context)

        sharepoint_client.download_file_content.assert_called_once_with("drive-9", "f")
        request = unique_client.register_content.call_args.args[0]
        assert request.key == "sharepoint_site-9_drive-9_f"

    async def test_key_uses_parent_reference_when_top_level_ids_missing(
        self, unique_client, context
    ):
        context.metadata["tokens"] = {"unique_api_token": "unique-token"}
        context.metadata.pop("drive_id")
        context.metadata.pop("site_id")

        await ContentRegistrationStep(unique_client, scope_id="scope-1").execute(context)

        request = unique_client.register_content.call_args.args[0]
        assert request.key == "sharepoint_site-a_drive-1_file-1"


class TestScopeConfiguration:
    @pytest.mark.parametrize("scope_id", [None, ""])
    def test_missing_scope_fails_at_construction(self, unique_client, scope_id):
        with pytest.raises(ConfigurationError, match="UNIQUE_SCOPE_ID"):
            ContentRegistrationStep(unique_client, scope_id=scope_id)
