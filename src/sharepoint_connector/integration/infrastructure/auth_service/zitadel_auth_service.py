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


class ZitadelAuthService(CachedTokenProvider):
    """Service account token for the Unique APIs, issued by Zitadel."""

    provider_name = "Zitadel"

    def __init__(
        self,
        token_url: str | None,
        project_id: str | None,
        client_id: str | None,
        client_secret: str | None,
        expiration_buffer_seconds: int = 5 * 60,
    ):
        if not token_url or not project_id or not client_id or not client_secret:
            raise ConfigurationError(
                "Zitadel credentials not configured (ZITADEL_OAUTH_TOKEN_URL, "
                "ZITADEL_PROJECT_ID, ZITADEL_CLIENT_ID, ZITADEL_CLIENT_SECRET)"
            )
        super().__init__(expiration_buffer_seconds=expiration_buffer_seconds)
        self._token_url = token_url
        self._project_id = project_id
        self._client_id = client_id
        self._client_secret = client_secret

    @property
    def scope(self) -> str:
        return (
            "openid profile email urn:zitadel:iam:user:resourceowner "
            "urn:zitadel:iam:org:projects:roles "
            f"urn:zitadel:iam:org:project:id:{self._project_id}:aud"
        )

    async def _acquire_token(self) -> CachedToken:
        data = {"grant_type": "client_credentials", "scope": self.scope}

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self._token_url,
                    data=data,
                    auth=(self._client_id, self._client_secret),
                    timeout=DEFAULT_AUTH_TIMEOUT,
                )
            except httpx.HTTPError as e:
                logger.error(f"HTTP error acquiring Zitadel token: {e}")
                raise

        if response.status_code != 200:
            logger.error(
                "Failed to acquire Zitadel token",
                extra={"status_code": response.status_code, "body": response.text},
            )
            response.raise_for_status()

        token_data = response.json()
        return self._token_from_response(token_data)
