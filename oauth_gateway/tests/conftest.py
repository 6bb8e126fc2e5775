"""
Shared fixtures for the gateway tests.

Upstream providers are stubbed with ``httpx.MockTransport`` so that the
real provider clients run end to end without network access.
"""

from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from oauth_gateway.auth.tokens import TokenCodec
from oauth_gateway.config import Settings
from oauth_gateway.main import create_app

TEST_SECRET = "test-session-secret-0123456789abcdef"
OTHER_SECRET = "another-session-secret-fedcba9876543210"
SKIN_URL = "https://skin.example.test"
PREFIX_URL = "http://gateway.example.test"


class FakeBlessingSkin:
    """
    Minimal Blessing Skin server.

    Every request is recorded in ``calls``; responses can be overridden
    per path through ``responses``.
    """

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.responses: Dict[str, httpx.Response] = {}
        self.token_response: Dict[str, Any] = {
            "access_token": "upstream-access-token",
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        self.user: Dict[str, Any] = {
            "uid": 42,
            "nickname": "Steve",
            "email": "steve@example.test",
        }
        self.profiles: Any = [
            {
                "id": "0f1e2d3c4b5a69788796a5b4c3d2e1f0",
                "name": "Steve",
                "properties": [{"name": "textures", "value": "e30="}],
            }
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path

        if path in self.responses:
            return self.responses[path]
        if path == "/oauth/token" and request.method == "POST":
            return httpx.Response(200, json=self.token_response)
        if path == "/api/user":
            return httpx.Response(200, json=self.user)
        if path == "/api/yggdrasil/sessionserver/session/minecraft/profile":
            return httpx.Response(200, json=self.profiles)
        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.calls]


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "OAUTH_PREFIX_URL": PREFIX_URL,
        "SESSION_SECRET": TEST_SECRET,
        "OAUTH_PROVIDERS": {
            "littleskin": {
                "kind": f"blessingskin={SKIN_URL}",
                "client_id": "X",
                "client_secret": "client-secret",
            },
            "closed": {
                "kind": f"blessingskin={SKIN_URL}",
                "client_id": "Y",
                "client_secret": "client-secret",
                "enabled": False,
            },
            "microsoft": {
                "kind": "microsoft",
                "client_id": "Z",
                "client_secret": "client-secret",
                "enabled": False,
            },
        },
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def skin() -> FakeBlessingSkin:
    return FakeBlessingSkin()


@pytest.fixture
def app(settings, skin):
    return create_app(settings, transport=skin.transport)


@pytest.fixture
def client(app):
    with TestClient(app, base_url=PREFIX_URL) as test_client:
        yield test_client


def session_cookie_headers(response: httpx.Response) -> List[str]:
    return [
        header
        for header in response.headers.get_list("set-cookie")
        if header.startswith("access_token=")
    ]


def cookie_is_cleared(response: httpx.Response) -> bool:
    headers = session_cookie_headers(response)
    return bool(headers) and all("max-age=0" in header.lower() for header in headers)


def cookie_value(response: httpx.Response) -> Optional[str]:
    return response.cookies.get("access_token")
