from __future__ import annotations

from sharepoint_connector.integration.infrastructure.auth_service.graph_auth_service import (
    GraphAuthService,
)
from sharepoint_connector.integration.infrastructure.auth_service.zitadel_auth_service import (
    ZitadelAuthService,
)


class AuthService:
    """Access to the two bearer tokens the pipeline needs.

    The Graph and Zitadel caches are independent; refreshing one never
    touches the other.
    """

    def __init__(self, graph_auth: GraphAuthService, zitadel_auth: ZitadelAuthService):
        self._graph_auth = graph_auth
        self._zitadel_auth = zitadel_auth

    async def get_graph_api_token(self, force_refresh: bool = False) -> str:
        return await self._graph_auth.get_access_token(force_refresh=force_refresh)

    async def get_unique_api_token(self, force_refresh: bool = False) -> str:
        return await self._zitadel_auth.get_access_token(force_refresh=force_refresh)
