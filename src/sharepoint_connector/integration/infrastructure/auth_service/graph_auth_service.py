from __future__ import annotations

import httpx

from sharepoint_connector.integration.infrastructure.auth_service.token_cache import (
    DEFAULT_AUTH_TIMEOUT,
    CachedToken,
    CachedTokenProvider,
)
from sharepoint_connector.main.exceptions import ConfigurationError
from sharepoint_connector.main.logging import get_logger

logger = get_logger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class GraphAuthService(CachedTokenProvider):
    """Application token for Microsoft Graph (client credentials flow)."""

    provider_name = "Microsoft Graph"

    def __init__(
        self,
        tenant_id: str | None,
        client_id: str | None,
        client_secret: str | None,
        expiration_buffer_seconds: int = 15 * 60,
    ):
        if not tenant_id or not client_id or not client_secret:
            raise ConfigurationError(
                "Microsoft Graph credentials not configured "
                "(GRAPH_TENANT_ID, GRAPH_CLIENT_ID, GRAPH_CLIENT_SECRET)"
            )
        super().__init__(expiration_buffer_seconds=expiration_buffer_seconds)
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret

    @property
    def token_endpoint(self) -> str:
        return f"https://login.microsoftonline.com/{self._tenant_id}/oauth2/v2.0/token"

    async def _acquire_token(self) -> CachedToken:
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": GRAPH_SCOPE,
            "grant_type": "client_credentials",
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self.token_endpoint,
                    headers=headers,
                    data=data,
                    timeout=DEFAULT_AUTH_TIMEOUT,
                )
            except httpx.HTTPError as e:
                logger.error(f"HTTP error acquiring Microsoft Graph token: {e}")
                raise

        if response.status_code != 200:
            logger.error(
                "Failed to acquire Microsoft Graph token",
                extra={"status_code": response.status_code, "body": response.text},
            )
            response.raise_for_status()

        token_data = response.json()
        token = self._token_from_response(token_data)
        logger.info(f"Acquired Microsoft Graph token, expires at {token.expires_at}")
        return token
