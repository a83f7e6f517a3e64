"""Unit tests for the token validation step."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sharepoint_connector.main.exceptions import TokenValidationError
from sharepoint_connector.pipeline.steps.token_validation_step import TokenValidationStep


class TestTokenValidationStep:
    async def test_stores_both_tokens(self, auth_service, context):
        metrics = MagicMock()

        await TokenValidationStep(auth_service, metrics=metrics).execute(context)

        tokens = context.metadata["tokens"]
        assert tokens["graph_api_token"] == "graph-token"
        assert tokens["unique_api_token"] == "unique-token"
        assert tokens["validated_at"]
        metrics.record_pipeline_step_duration.assert_called_once()
        assert metrics.record_pipeline_step_duration.call_args.args[0] == "token-validation"

    async def test_empty_graph_token_fails_first(self, auth_service, context):
        auth_service.get_graph_api_token = AsyncMock(return_value="")
        auth_service.get_unique_api_token = AsyncMock(return_value="")

        with pytest.raises(TokenValidationError, match="Microsoft Graph"):
            await TokenValidationStep(auth_service).execute(context)

    async def test_empty_unique_token(self, auth_service, context):
        auth_service.get_unique_api_token = AsyncMock(return_value=None)
        metrics = MagicMock()

        with pytest.raises(TokenValidationError, match="Zitadel"):
            await TokenValidationStep(auth_service, metrics=metrics).execute(context)

        metrics.record_pipeline_step_duration.assert_not_called()

    async def test_token_errors_propagate(self, auth_service, context):
        auth_service.get_graph_api_token = AsyncMock(side_effect=RuntimeError("idp down"))

        with pytest.raises(RuntimeError, match="idp down"):
            await TokenValidationStep(auth_service).execute(context)
