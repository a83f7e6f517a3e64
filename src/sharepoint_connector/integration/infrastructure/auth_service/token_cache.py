from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sharepoint_connector.main.exceptions import TokenAcquisitionError
from sharepoint_connector.main.logging import get_logger

logger = get_logger(__name__)

DEFAULT_AUTH_TIMEOUT = 30.0


@dataclass(frozen=True)
class CachedToken:
    """Token obtained via a client credentials exchange."""

    access_token: str
    expires_at: datetime

    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at

    def is_expiring_soon(self, buffer_seconds: int) -> bool:
        """Check if the token expires within ``buffer_seconds``."""
        threshold = datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds)
        return self.expires_at <= threshold

    @classmethod
    def from_expires_in(cls, access_token: str, expires_in: int | float) -> CachedToken:
        return cls(
            access_token=access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=float(expires_in)),
        )


class CachedTokenProvider(ABC):
    """Lazily refreshed bearer token for one identity provider.

    The cached token is returned until it enters the expiry buffer; the next
    caller then exchanges credentials again and replaces the cached token
    wholesale. Concurrent callers inside the buffer may each refresh, and the
    last completed refresh wins.
    """

    provider_name: str = "identity provider"

    def __init__(self, expiration_buffer_seconds: int):
        self._expiration_buffer_seconds = expiration_buffer_seconds
        self._cached_token: Optional[CachedToken] = None

    @property
    def cached_token(self) -> Optional[CachedToken]:
        return self._cached_token

    def invalidate(self) -> None:
        self._cached_token = None

    async def get_access_token(self, force_refresh: bool = False) -> str:
        """Return a bearer token, refreshing it when it is missing or expiring.

        Raises:
            httpx.HTTPError: If the credential exchange fails.
            TokenAcquisitionError: If the response carries no usable token;
                nothing is cached in that case.
        """
        cached = self._cached_token
        if not force_refresh and cached is not None:
            if not cached.is_expiring_soon(self._expiration_buffer_seconds):
                logger.debug(f"Using cached {self.provider_name} token")
                return cached.access_token

        logger.info(f"Acquiring new {self.provider_name} token")
        token = await self._acquire_token()
        self._cached_token = token

        return token.access_token

    @abstractmethod
    async def _acquire_token(self) -> CachedToken:
        ...

    def _token_from_response(self, token_data: Any) -> CachedToken:
        if not isinstance(token_data, dict):
            raise TokenAcquisitionError(self.provider_name, "response body is not a JSON object")

        access_token = token_data.get("access_token")
        if not access_token:
            raise TokenAcquisitionError(
                self.provider_name, "response did not contain an access token"
            )

        expires_in = token_data.get("expires_in")
        if expires_in is None:
            raise TokenAcquisitionError(self.provider_name, "response did not contain expires_in")

        return CachedToken.from_expires_in(access_token, expires_in)
