"""
Provider client contract.

Each supported provider kind has one ``ProviderClient`` subclass that
turns the generic authorization-code flow into the provider's own HTTP
dialect and normalizes what it returns into a ``UnifiedIdentity``.
"""

from abc import ABC, abstractmethod
from typing import NamedTuple, Optional

import httpx

from oauth_gateway.config import ProviderConfig
from oauth_gateway.models import ProviderKind, UnifiedIdentity


class TokenGrant(NamedTuple):
    """Result of a successful authorization-code exchange."""

    access_token: str
    # 0 when the provider did not report a lifetime
    expires_in: int


class ProviderClient(ABC):
    """
    Base class for provider clients.

    Args:
        name: Configured provider name; stamped on every identity
        config: Provider client settings
        transport: Optional httpx transport, used by tests to stub the provider
        timeout: Timeout in seconds for upstream calls
    """

    default_scopes: tuple = ()

    def __init__(
        self,
        name: str,
        config: ProviderConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.name = name
        self.config = config
        self._transport = transport
        self._timeout = timeout

    @property
    def kind(self) -> ProviderKind:
        return self.config.kind

    @property
    def scopes(self) -> list:
        return list(self.config.scopes or self.default_scopes)

    @abstractmethod
    def authorize_url(self, redirect_uri: str, state: str) -> str:
        """Build the provider authorization URL. Performs no I/O."""

    @abstractmethod
    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        """
        Exchange an authorization code for an access token.

        Raises:
            ExchangeError: If the upstream call fails or returns an unusable body
        """

    @abstractmethod
    async def fetch_identity(self, access_token: str) -> UnifiedIdentity:
        """
        Fetch the user behind an access token and normalize it.

        Raises:
            IdentityFetchError: If an upstream call fails or returns an unusable body
        """

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)


def upstream_error_message(response: httpx.Response) -> str:
    """Best-effort human readable message from an upstream error response."""
    fallback = f"{response.status_code} {response.reason_phrase}".strip()

    if not response.headers.get("content-type", "").startswith("application/json"):
        return fallback

    try:
        error_data = response.json()
    except ValueError:
        return fallback

    if not isinstance(error_data, dict):
        return fallback

    message = (
        error_data.get("error_description")
        or error_data.get("error")
        or error_data.get("message")
    )
    return str(message) if message else fallback
