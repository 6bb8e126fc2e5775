"""
Tests for the session authentication middleware.

Covers the outcomes for the protected user endpoint: no cookie, broken
cookie, forged cookie, expired cookie and valid cookie.
"""

import time

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from oauth_gateway.auth.middleware import _is_protected_path, get_current_identity
from oauth_gateway.auth.session import error_response
from oauth_gateway.auth.state import issue_state_token
from oauth_gateway.auth.tokens import TokenCodec
from oauth_gateway.errors import SessionExpired, Unauthenticated
from oauth_gateway.main import create_app
from oauth_gateway.models import SessionCredential, UnifiedIdentity

from conftest import (
    OTHER_SECRET,
    PREFIX_URL,
    SKIN_URL,
    cookie_is_cleared,
    make_settings,
    session_cookie_headers,
)


def make_credential(expire_at=None) -> SessionCredential:
    return SessionCredential(
        access_token="upstream-access-token",
        provider_name="littleskin",
        expire_at=int(time.time()) + 3600 if expire_at is None else expire_at,
        identity=UnifiedIdentity(
            uid="42",
            nickname="Steve",
            provider="littleskin",
            provider_kind=f"blessingskin={SKIN_URL}",
        ),
    )


def sign_credential(codec, credential) -> str:
    return codec.sign(credential.model_dump(mode="json"))


def cookie_attributes(response):
    # expires carries the current time and is left out
    (header,) = session_cookie_headers(response)
    return {
        part.strip().lower()
        for part in header.split(";")
        if not part.strip().lower().startswith("expires=")
    }


def get_user(client, cookie=None):
    if cookie is not None:
        client.cookies.set("access_token", cookie)
    return client.get("/api/user")


class TestProtectedEndpoint:

    def test_without_cookie(self, client):
        response = get_user(client)

        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"
        assert session_cookie_headers(response) == []

    def test_valid_cookie_returns_identity(self, client, codec):
        response = get_user(client, sign_credential(codec, make_credential()))

        assert response.status_code == 200
        body = response.json()
        assert body["uid"] == "42"
        assert body["nickname"] == "Steve"
        assert body["provider"] == "littleskin"
        assert body["provider_kind"] == f"blessingskin={SKIN_URL}"
        assert session_cookie_headers(response) == []

    def test_garbage_cookie_is_cleared(self, client):
        response = get_user(client, "definitely-not-a-token")

        assert response.status_code == 401
        assert response.json()["error"] == "token_malformed"
        assert cookie_is_cleared(response)

    def test_empty_cookie_is_cleared(self, client):
        response = client.get("/api/user", headers={"cookie": "access_token="})

        assert response.status_code == 401
        assert response.json()["error"] == "token_malformed"
        assert cookie_is_cleared(response)

    def test_forged_cookie_is_cleared(self, client):
        forged = sign_credential(TokenCodec(OTHER_SECRET), make_credential())

        response = get_user(client, forged)

        assert response.status_code == 401
        assert response.json()["error"] == "token_signature_invalid"
        assert cookie_is_cleared(response)

    def test_expired_cookie_is_cleared(self, client, codec):
        expired = sign_credential(codec, make_credential(expire_at=int(time.time()) - 1))

        response = get_user(client, expired)

        assert response.status_code == 401
        assert response.json()["error"] == "session_expired"
        assert cookie_is_cleared(response)

    def test_state_token_is_not_a_session(self, client, codec):
        state = issue_state_token(codec, "littleskin", time.time())

        response = get_user(client, state)

        assert response.status_code == 401
        assert response.json()["error"] == "token_malformed"
        assert cookie_is_cleared(response)


class TestSecureCookie:

    @pytest.fixture
    def secure_client(self, skin):
        app = create_app(make_settings(COOKIE_SECURE=True), transport=skin.transport)
        with TestClient(app, base_url=PREFIX_URL) as test_client:
            yield test_client

    def test_rejected_cookie_is_cleared_as_secure(self, secure_client):
        response = secure_client.get("/api/user", headers={"cookie": "access_token=garbage"})

        assert response.status_code == 401
        assert cookie_is_cleared(response)
        assert all("secure" in header.lower() for header in session_cookie_headers(response))

    def test_logout_and_rejection_clear_the_same_cookie(self, secure_client):
        logout = secure_client.get("/api/logout", follow_redirects=False)
        rejected = secure_client.get("/api/user", headers={"cookie": "access_token=garbage"})

        assert cookie_attributes(logout) == cookie_attributes(rejected)

    def test_error_response_defaults_to_plain_cookie(self):
        response = error_response(SessionExpired())

        header = response.headers["set-cookie"].lower()
        assert "max-age=0" in header
        assert "secure" not in header


class TestUnprotectedPaths:

    def test_broken_cookie_is_ignored_elsewhere(self, client):
        client.cookies.set("access_token", "garbage")

        response = client.get("/api/oauth/providers")

        assert response.status_code == 200
        assert session_cookie_headers(response) == []

    def test_health_needs_no_session(self, client):
        assert client.get("/health").status_code == 200

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/api/user", True),
            ("/api/user/", False),
            ("/api/users", False),
            ("/api/oauth/providers", False),
        ],
    )
    def test_exact_path_matching(self, path, expected):
        assert _is_protected_path(path, [("/api/user", False)]) is expected

    def test_prefix_path_matching(self):
        protected = [("/api/admin", True)]

        assert _is_protected_path("/api/admin", protected)
        assert _is_protected_path("/api/admin/settings", protected)
        assert not _is_protected_path("/api/administrator", protected)


@pytest.mark.asyncio
async def test_dependency_without_middleware_is_unauthenticated():
    request = Request({"type": "http", "method": "GET", "path": "/", "headers": []})

    with pytest.raises(Unauthenticated):
        await get_current_identity(request)
