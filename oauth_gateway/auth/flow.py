"""
Login flow orchestration.

Drives one login attempt from anonymous to authenticated:

1. ``login`` signs a fresh state and redirects to the provider
2. the provider sends the user back to ``callback`` with a code
3. ``callback`` verifies the state, exchanges the code, fetches the
   identity, and sets the signed session cookie
4. ``logout`` deletes the cookie
"""

import logging
import time
from typing import Callable, List, Optional

from fastapi.responses import RedirectResponse

from oauth_gateway.auth.session import (
    clear_session_cookie,
    issue_session_credential,
    set_session_cookie,
)
from oauth_gateway.auth.state import check_state_binding, issue_state_token, open_state_token
from oauth_gateway.auth.tokens import TokenCodec
from oauth_gateway.errors import AuthorizationDenied, CallbackRequestInvalid
from oauth_gateway.models import ProviderSummary, SessionCredential
from oauth_gateway.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

APPLICATION_ROOT = "/"


class OAuthFlow:
    """
    Login, callback and logout handlers bound to one registry and signing key.

    Args:
        registry: Configured providers
        codec: Token codec holding the process signing key
        state_ttl_seconds: Maximum age of a state token at callback
        default_session_ttl_seconds: Session lifetime when the provider reports none
        cookie_secure: Whether to mark the session cookie Secure
        clock: Returns the current Unix time
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        codec: TokenCodec,
        *,
        state_ttl_seconds: int = 600,
        default_session_ttl_seconds: int = 3600,
        cookie_secure: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.codec = codec
        self.state_ttl_seconds = state_ttl_seconds
        self.default_session_ttl_seconds = default_session_ttl_seconds
        self.cookie_secure = cookie_secure
        self.clock = clock

    def list_providers(self) -> List[ProviderSummary]:
        return [
            ProviderSummary(
                name=name,
                type=str(config.kind),
                display_name=config.kind.display_name,
                login_url=self.registry.login_path(name),
            )
            for name, config in self.registry.enabled()
        ]

    def login(self, provider_name: str) -> RedirectResponse:
        """
        Start a login attempt.

        Raises:
            ProviderNotFound: Unknown provider
            ProviderDisabled: Provider is configured but disabled
        """
        logger.info(f"Starting {provider_name} OAuth2 login")

        client = self.registry.resolve(provider_name)
        redirect_uri = self.registry.redirect_uri(provider_name)
        logger.debug(f"redirect_uri: {redirect_uri}")

        state = issue_state_token(self.codec, provider_name, self.clock())
        return RedirectResponse(url=client.authorize_url(redirect_uri, state), status_code=302)

    async def callback(
        self,
        provider_name: str,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> RedirectResponse:
        """
        Complete a login attempt.

        The state signature is checked before anything else, so a forged
        or corrupted state never reaches the provider.

        Raises:
            AuthorizationDenied: The provider reported an error instead of a code
            CallbackRequestInvalid: ``code`` or ``state`` is missing
            StateVerificationFailed: The state is forged, stale, or for another provider
            ProviderNotFound / ProviderDisabled: As for ``login``
            ExchangeError / IdentityFetchError: The provider call failed
        """
        logger.debug(f"Received {provider_name} OAuth2 callback")

        if error:
            raise AuthorizationDenied(f"Unable to authenticate: {error_description or error}")
        if not code or not state:
            raise CallbackRequestInvalid()

        verified_state = open_state_token(self.codec, state)
        client = self.registry.resolve(provider_name)
        check_state_binding(verified_state, provider_name, self.clock(), self.state_ttl_seconds)

        redirect_uri = self.registry.redirect_uri(provider_name)
        grant = await client.exchange_code(code, redirect_uri)
        identity = await client.fetch_identity(grant.access_token)

        ttl = grant.expires_in or self.default_session_ttl_seconds
        credential = SessionCredential(
            access_token=grant.access_token,
            provider_name=provider_name,
            expire_at=int(self.clock()) + ttl,
            identity=identity,
        )
        token = issue_session_credential(self.codec, credential)

        logger.info(
            f"User logged in via {provider_name}: uid={identity.uid}, nickname={identity.nickname}",
            extra={"session_ttl_seconds": ttl},
        )

        response = RedirectResponse(url=APPLICATION_ROOT, status_code=302)
        set_session_cookie(response, token, credential, secure=self.cookie_secure)
        return response

    def logout(self) -> RedirectResponse:
        logger.info("User logged out")

        response = RedirectResponse(url=APPLICATION_ROOT, status_code=302)
        clear_session_cookie(response, secure=self.cookie_secure)
        return response
