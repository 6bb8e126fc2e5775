"""
Blessing Skin provider client.

Blessing Skin is a self-hosted Minecraft skin site (e.g. LittleSkin) that
ships an OAuth2 server and a Yggdrasil API. Besides the account itself
the client reads the player profiles owned by the account.
"""

import logging
from typing import Any, Dict, List
from urllib.parse import urlencode

import httpx

from oauth_gateway.errors import ExchangeError, IdentityFetchError, ProviderNotImplemented
from oauth_gateway.models import (
    PlayerProfile,
    ProviderType,
    UnifiedIdentity,
)
from oauth_gateway.providers.base import ProviderClient, TokenGrant, upstream_error_message

logger = logging.getLogger(__name__)

PROFILE_PATH = "/api/yggdrasil/sessionserver/session/minecraft/profile"
PROFILE_SCOPE = "Yggdrasil.PlayerProfiles.Read"


class BlessingSkinClient(ProviderClient):
    """OAuth client for a Blessing Skin site."""

    default_scopes = ("User.Read", PROFILE_SCOPE)

    def __init__(self, name, config, **kwargs):
        if config.kind.type is not ProviderType.BLESSING_SKIN:
            raise ProviderNotImplemented(
                f"Provider {name} has kind {config.kind}, not a Blessing Skin site"
            )
        super().__init__(name, config, **kwargs)

    @property
    def base_url(self) -> str:
        return self.kind.endpoint

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": state,
            "scope": " ".join(self.scopes),
        }
        return f"{self.base_url}/oauth/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        payload = {
            "grant_type": "authorization_code",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        }

        try:
            async with self._http_client() as client:
                response = await client.post(
                    f"{self.base_url}/oauth/token",
                    data=payload,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise ExchangeError(f"Token exchange failed: {e}") from e

        if not response.is_success:
            raise ExchangeError(f"Token exchange failed: {upstream_error_message(response)}")

        try:
            token_data = response.json()
        except ValueError as e:
            raise ExchangeError("Token exchange failed: response is not JSON") from e

        if not isinstance(token_data, dict) or not token_data.get("access_token"):
            raise ExchangeError("Token exchange failed: response missing access_token")

        try:
            expires_in = max(int(token_data.get("expires_in") or 0), 0)
        except (TypeError, ValueError):
            expires_in = 0

        logger.debug(f"{self.name}: access token granted, expires in {expires_in}s")
        return TokenGrant(str(token_data["access_token"]), expires_in)

    async def fetch_identity(self, access_token: str) -> UnifiedIdentity:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

        async with self._http_client() as client:
            user_info = await self._get_json(client, "/api/user", headers)
            profiles = await self._fetch_profiles(client, headers)

        if not isinstance(user_info, dict) or user_info.get("uid") is None:
            raise IdentityFetchError("User info response missing uid")

        logger.debug(
            f"{self.name}: user info fetched, uid={user_info['uid']}, "
            f"nickname={user_info.get('nickname', '')}"
        )

        try:
            return UnifiedIdentity(
                uid=str(user_info["uid"]),
                nickname=str(user_info.get("nickname") or ""),
                email=str(user_info.get("email") or ""),
                provider=self.name,
                provider_kind=self.kind,
                profiles=_parse_profiles(profiles),
            )
        except ValueError as e:
            raise IdentityFetchError(f"Unexpected profile data: {e}") from e

    async def _fetch_profiles(self, client: httpx.AsyncClient, headers: Dict[str, str]) -> Any:
        """
        Read the player profiles owned by the account.

        Profiles are optional: without the profile scope the endpoint is not
        called, and a token the site refuses for it yields no profiles.
        """
        if PROFILE_SCOPE not in self.scopes:
            logger.debug(f"{self.name}: {PROFILE_SCOPE} not requested, skipping profiles")
            return None

        return await self._get_json(client, PROFILE_PATH, headers, optional=True)

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        path: str,
        headers: Dict[str, str],
        optional: bool = False,
    ) -> Any:
        try:
            response = await client.get(f"{self.base_url}{path}", headers=headers)
        except httpx.HTTPError as e:
            raise IdentityFetchError(f"Failed to fetch {path}: {e}") from e

        if optional and response.status_code in (401, 403):
            logger.warning(
                f"{self.name}: {path} refused ({upstream_error_message(response)}), continuing without it"
            )
            return None

        if not response.is_success:
            raise IdentityFetchError(
                f"Failed to fetch {path}: {upstream_error_message(response)}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise IdentityFetchError(f"Failed to decode {path} response") from e


def _parse_profiles(data: Any) -> List[PlayerProfile]:
    if data is None:
        return []
    # A single profile object is accepted as well as a list
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError("profile list expected")
    return [PlayerProfile.model_validate(item) for item in data]
