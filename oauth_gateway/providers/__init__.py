"""
Identity provider clients.

Modules:
- base: ProviderClient contract and shared helpers
- blessingskin: Blessing Skin (LittleSkin and other self-hosted skin sites)
- registry: configured providers and closed dispatch from kind to client
"""

from .base import ProviderClient, TokenGrant
from .blessingskin import BlessingSkinClient
from .registry import PROVIDER_CLIENTS, ProviderRegistry, create_provider_client

__all__ = [
    "ProviderClient",
    "TokenGrant",
    "BlessingSkinClient",
    "PROVIDER_CLIENTS",
    "ProviderRegistry",
    "create_provider_client",
]
