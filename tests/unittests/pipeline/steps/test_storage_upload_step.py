"""Unit tests for the storage upload step."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from sharepoint_connector.main.exceptions import ContentValidationError, StorageUploadError
from sharepoint_connector.pipeline.steps.storage_upload_step import StorageUploadStep


@pytest.fixture
def unique_client():
    client = MagicMock()
    client.upload_content = AsyncMock(return_value=httpx.Response(201))
    return client


class TestStorageUploadStep:
    async def test_uploads_and_releases_buffer(self, unique_client, context):
        context.content_buffer = b"bytes"
        context.upload_url = "https://blob.example.com/write"

        await StorageUploadStep(unique_client).execute(context)

        unique_client.upload_content.assert_called_once_with(
            "https://blob.example.com/write", b"bytes", "application/pdf"
        )
        assert context.content_buffer is None

    async def test_missing_buffer(self, unique_client, context):
        context.upload_url = "https://blob.example.com/write"

        with pytest.raises(ContentValidationError, match="Content buffer not found"):
            await StorageUploadStep(unique_client).execute(context)

    async def test_missing_upload_url(self, unique_client, context):
        context.content_buffer = b"bytes"

        with pytest.raises(ContentValidationError, match="Upload URL not found"):
            await StorageUploadStep(unique_client).execute(context)

    async def test_non_success_status(self, unique_client, context):
        context.content_buffer = b"bytes"
        context.upload_url = "https://blob.example.com/write"
        unique_client.upload_content = AsyncMock(return_value=httpx.Response(403))

        with pytest.raises(StorageUploadError, match="Upload failed with status 403: Forbidden"):
            await StorageUploadStep(unique_client).execute(context)

    async def test_cleanup_releases_buffer(self, unique_client, context):
        context.content_buffer = b"bytes"

        await StorageUploadStep(unique_client).cleanup(context)

        assert context.content_buffer is None
