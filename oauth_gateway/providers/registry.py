"""
Provider registry.

Maps configured provider names to their settings and, for enabled
providers, to a client built once at startup. Client selection is a
closed dispatch over ``ProviderType``: adding a provider means adding a
client class and one entry to ``PROVIDER_CLIENTS``.
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple, Type

import httpx

from oauth_gateway.config import ProviderConfig
from oauth_gateway.errors import ProviderDisabled, ProviderNotFound, ProviderNotImplemented
from oauth_gateway.models import ProviderType
from oauth_gateway.providers.base import ProviderClient
from oauth_gateway.providers.blessingskin import BlessingSkinClient

logger = logging.getLogger(__name__)

PROVIDER_CLIENTS: Dict[ProviderType, Type[ProviderClient]] = {
    ProviderType.BLESSING_SKIN: BlessingSkinClient,
    # ProviderType.MICROSOFT has no client yet
}


def create_provider_client(
    name: str,
    config: ProviderConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 10.0,
) -> ProviderClient:
    """
    Build the client for a provider's kind.

    Raises:
        ProviderNotImplemented: If no client exists for the kind
    """
    client_class = PROVIDER_CLIENTS.get(config.kind.type)
    if client_class is None:
        raise ProviderNotImplemented(
            f"Provider {name}: kind '{config.kind.type.value}' is not implemented"
        )
    return client_class(name, config, transport=transport, timeout=timeout)


class ProviderRegistry:
    """
    Read-only view of the configured providers.

    Args:
        providers: Mapping from provider name to settings
        prefix_url: Public base URL used to build callback addresses
        transport: Optional httpx transport handed to every client
        timeout: Upstream timeout in seconds

    Raises:
        ProviderNotImplemented: If an enabled provider has no client implementation
    """

    def __init__(
        self,
        providers: Mapping[str, ProviderConfig],
        prefix_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self._providers = dict(providers)
        self._prefix_url = prefix_url.rstrip("/")
        self._clients: Dict[str, ProviderClient] = {
            name: create_provider_client(name, config, transport=transport, timeout=timeout)
            for name, config in self._providers.items()
            if config.enabled
        }

    def get_config(self, name: str) -> ProviderConfig:
        try:
            return self._providers[name]
        except KeyError:
            raise ProviderNotFound(f"Provider {name} not found") from None

    def resolve(self, name: str) -> ProviderClient:
        """
        Look up the client for an enabled provider.

        Raises:
            ProviderNotFound: If no provider has this name
            ProviderDisabled: If the provider is configured but disabled
        """
        config = self.get_config(name)
        if not config.enabled:
            raise ProviderDisabled(f"Provider {name} is disabled")
        return self._clients[name]

    def enabled(self) -> List[Tuple[str, ProviderConfig]]:
        return sorted(
            ((name, config) for name, config in self._providers.items() if config.enabled),
            key=lambda item: item[0],
        )

    def redirect_uri(self, name: str) -> str:
        return f"{self._prefix_url}/api/oauth/{name}/callback"

    @staticmethod
    def login_path(name: str) -> str:
        return f"/api/oauth/{name}/login"
