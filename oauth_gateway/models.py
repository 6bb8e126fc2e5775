"""
Data Models Module

This module defines the Pydantic models shared by the provider clients,
the session credential codec and the HTTP routes.

Models are organized by functional area:
- Provider kinds (closed set of supported identity provider dialects)
- Identity models (normalized user and player profiles)
- Token payloads (state token and session credential)
- Response models (provider listing, errors)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator


# ============================================================================
# Provider Kinds
# ============================================================================

class ProviderType(str, Enum):
    """Supported identity provider dialects."""

    BLESSING_SKIN = "blessingskin"
    MICROSOFT = "microsoft"


_BLESSING_SKIN_PREFIXES = ("bs", "blessingskin", "blessing-skin")
_MICROSOFT_NAMES = ("microsoft", "ms")
MICROSOFT_LOGIN_URL = "https://login.microsoftonline.com"


class ProviderKind(BaseModel):
    """
    Tagged provider kind.

    BlessingSkin carries the base URL of the skin site; Microsoft carries
    nothing. The compact string form used in configuration files is
    ``blessingskin=<url>`` or ``microsoft``, and that is also how a kind
    is serialized.
    """

    model_config = ConfigDict(frozen=True)

    type: ProviderType
    base_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _parse_compact_form(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if "=" in raw:
            prefix, _, url = raw.partition("=")
            if prefix.lower() in _BLESSING_SKIN_PREFIXES:
                return {"type": ProviderType.BLESSING_SKIN, "base_url": url}
        elif raw.lower() in _MICROSOFT_NAMES:
            return {"type": ProviderType.MICROSOFT}

        raise ValueError(f"Unknown provider type: {value}")

    @model_validator(mode="after")
    def _check_parameters(self) -> "ProviderKind":
        if self.type is ProviderType.BLESSING_SKIN:
            if not self.base_url or not self.base_url.startswith(("http://", "https://")):
                raise ValueError("BlessingSkin provider requires an http(s) base URL")
        elif self.base_url:
            raise ValueError(f"{self.type.value} provider does not take a base URL")
        return self

    @model_serializer
    def _serialize(self) -> str:
        return str(self)

    def __str__(self) -> str:
        if self.type is ProviderType.BLESSING_SKIN:
            return f"blessingskin={self.base_url}"
        return self.type.value

    @property
    def display_name(self) -> str:
        if self.type is ProviderType.BLESSING_SKIN:
            return f"Blessing Skin ({self.base_url})"
        return "Microsoft"

    @property
    def endpoint(self) -> str:
        """Base URL of the provider's OAuth endpoints, without trailing slash."""
        if self.type is ProviderType.BLESSING_SKIN:
            return self.base_url.rstrip("/")
        return MICROSOFT_LOGIN_URL


# ============================================================================
# Identity Models
# ============================================================================

class ProfileProperty(BaseModel):
    """Name/value property attached to a player profile."""
    name: str = Field(..., description="Property name")
    value: str = Field(..., description="Property value")


class PlayerProfile(BaseModel):
    """Game profile (character) owned by the authenticated account."""
    id: str = Field(..., description="Profile identifier")
    name: str = Field(..., description="Profile display name")
    properties: List[ProfileProperty] = Field(default_factory=list, description="Profile properties")


class UnifiedIdentity(BaseModel):
    """
    Provider-independent identity produced by every provider client.

    ``uid`` is only unique within one provider, so callers must key users
    on ``(provider, uid)``.
    """
    uid: str = Field(..., description="Provider-local user identifier")
    nickname: str = Field(default="", description="User display name")
    email: str = Field(default="", description="User email address, empty if not shared")
    provider: str = Field(..., description="Configured provider name")
    provider_kind: ProviderKind = Field(..., description="Provider kind")
    profiles: List[PlayerProfile] = Field(default_factory=list, description="Player profiles")


# ============================================================================
# Token Payloads
# ============================================================================

class StatePayload(BaseModel):
    """Payload of the anti-forgery state token issued by the login endpoint."""
    nonce: str = Field(..., description="Random value unique to this login attempt")
    provider: str = Field(..., description="Provider the login was started for")
    issued_at: int = Field(..., description="Unix time the state was issued")


class SessionCredential(BaseModel):
    """Payload of the signed session cookie."""
    access_token: str = Field(..., description="Upstream provider access token")
    provider_name: str = Field(..., description="Provider the user logged in with")
    expire_at: int = Field(..., description="Unix time after which the credential is rejected")
    identity: UnifiedIdentity = Field(..., description="Normalized identity of the user")

    @property
    def expires(self) -> datetime:
        return datetime.fromtimestamp(self.expire_at, tz=timezone.utc)


# ============================================================================
# Response Models
# ============================================================================

class ProviderSummary(BaseModel):
    """Entry of the public provider listing."""
    name: str = Field(..., description="Configured provider name")
    type: str = Field(..., description="Provider kind in compact form")
    display_name: str = Field(..., description="Human readable provider name")
    login_url: str = Field(..., description="Path that starts the login flow")


class ProviderListResponse(BaseModel):
    providers: List[ProviderSummary] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")


class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Error timestamp",
    )
