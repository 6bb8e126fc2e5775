"""
Error taxonomy for the OAuth gateway.

Every failure the gateway reports to a client is a ``GatewayError``
subclass. Each one knows its HTTP status, a short machine-readable code,
and whether the failure invalidates the client's session cookie.
The FastAPI exception handler in ``oauth_gateway.main`` and the auth
middleware both render these the same way.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for errors surfaced at the request boundary."""

    status_code: int = 500
    error: str = "gateway_error"
    default_message: str = "Gateway error"
    clears_cookie: bool = False

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# Startup
# =============================================================================

class ConfigError(GatewayError):
    """Configuration could not be loaded or is inconsistent. Fatal at startup."""

    error = "config_error"
    default_message = "Invalid configuration"


class ProviderNotImplemented(ConfigError):
    """A provider kind is configured but has no client implementation."""

    error = "provider_not_implemented"
    default_message = "Provider kind is not implemented"


# =============================================================================
# Login / callback
# =============================================================================

class ProviderNotFound(GatewayError):
    status_code = 404
    error = "provider_not_found"
    default_message = "Provider not found"


class ProviderDisabled(GatewayError):
    status_code = 403
    error = "provider_disabled"
    default_message = "Provider is disabled"


class StateVerificationFailed(GatewayError):
    status_code = 401
    error = "state_verification_failed"
    default_message = "State verification failed"


class CallbackRequestInvalid(GatewayError):
    status_code = 400
    error = "invalid_callback"
    default_message = "Missing required parameters (code or state)"


class AuthorizationDenied(GatewayError):
    """The provider redirected back with an ``error`` parameter."""

    status_code = 401
    error = "authorization_denied"
    default_message = "Authorization was denied by the provider"


class ExchangeError(GatewayError):
    """Upstream authorization-code exchange failed."""

    status_code = 502
    error = "token_exchange_failed"
    default_message = "Token exchange failed"


class IdentityFetchError(GatewayError):
    """Upstream user/profile lookup failed."""

    status_code = 502
    error = "identity_fetch_failed"
    default_message = "Failed to fetch user information"


# =============================================================================
# Session credential
# =============================================================================

class Unauthenticated(GatewayError):
    status_code = 401
    error = "unauthenticated"
    default_message = "Not authenticated"


class TokenMalformed(GatewayError):
    status_code = 401
    error = "token_malformed"
    default_message = "Invalid token"
    clears_cookie = True


class TokenSignatureInvalid(GatewayError):
    status_code = 401
    error = "token_signature_invalid"
    default_message = "Invalid token"
    clears_cookie = True


class SessionExpired(GatewayError):
    status_code = 401
    error = "session_expired"
    default_message = "Login token expired"
    clears_cookie = True


__all__ = [
    "GatewayError",
    "ConfigError",
    "ProviderNotImplemented",
    "ProviderNotFound",
    "ProviderDisabled",
    "StateVerificationFailed",
    "CallbackRequestInvalid",
    "AuthorizationDenied",
    "ExchangeError",
    "IdentityFetchError",
    "Unauthenticated",
    "TokenMalformed",
    "TokenSignatureInvalid",
    "SessionExpired",
]
