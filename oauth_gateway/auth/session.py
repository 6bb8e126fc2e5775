"""
Session Credential Module
=========================

Handles creation and verification of the signed session credential and
the cookie that carries it.

The credential is self-contained: it embeds the normalized identity and
its own expiry, and no server-side record of issued credentials exists.
Logging out deletes the cookie on the client; otherwise a credential is
only ever invalidated by reaching ``expire_at``.
"""

import logging
from typing import Optional

from fastapi.responses import JSONResponse
from starlette.responses import Response

from oauth_gateway.auth.tokens import TokenCodec
from oauth_gateway.errors import (
    GatewayError,
    SessionExpired,
    TokenMalformed,
    Unauthenticated,
)
from oauth_gateway.models import ErrorResponse, SessionCredential

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "access_token"
SESSION_COOKIE_PATH = "/"


# =============================================================================
# Credential Creation / Verification
# =============================================================================

def issue_session_credential(codec: TokenCodec, credential: SessionCredential) -> str:
    """
    Sign a session credential for use as the cookie value.

    Args:
        codec: Token codec holding the process signing key
        credential: Credential to sign

    Returns:
        Signed token string
    """
    token = codec.sign(credential.model_dump(mode="json"))

    logger.debug(
        f"Issued session credential for {credential.provider_name} user {credential.identity.uid}",
        extra={"expire_at": credential.expire_at},
    )

    return token


def read_session_credential(codec: TokenCodec, token: Optional[str], now: float) -> SessionCredential:
    """
    Validate a session cookie value.

    This is the only place that decides whether a session cookie is
    acceptable. Checks run in order: presence, signature and structure,
    then expiry.

    Args:
        codec: Token codec holding the process signing key
        token: Raw cookie value, or None if the cookie is absent
        now: Current Unix time

    Returns:
        The verified, unexpired credential

    Raises:
        Unauthenticated: No cookie was sent
        TokenMalformed: The cookie could not be parsed or is not a session credential
        TokenSignatureInvalid: The cookie was not signed with this key
        SessionExpired: The credential is past its ``expire_at``
    """
    if token is None:
        raise Unauthenticated()

    payload = codec.verify(token)

    try:
        credential = SessionCredential.model_validate(payload)
    except ValueError as e:
        raise TokenMalformed("Token is not a session credential") from e

    if now >= credential.expire_at:
        raise SessionExpired()

    return credential


# =============================================================================
# Cookie Helpers
# =============================================================================

def set_session_cookie(
    response: Response,
    token: str,
    credential: SessionCredential,
    secure: bool = False,
) -> None:
    """Attach the session cookie; its expiry matches the credential's."""
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        path=SESSION_COOKIE_PATH,
        expires=credential.expires,
        httponly=True,
        samesite="strict",
        secure=secure,
    )


def clear_session_cookie(response: Response, secure: bool = False) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path=SESSION_COOKIE_PATH,
        httponly=True,
        samesite="strict",
        secure=secure,
    )


def error_response(exc: GatewayError, secure: bool = False) -> JSONResponse:
    """
    Render a gateway error as JSON.

    Errors that invalidate a previously trusted cookie also delete it, so a
    broken credential does not survive the client's retries.
    """
    body = ErrorResponse(error=exc.error, message=exc.message)
    response = JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json"),
    )

    if exc.clears_cookie:
        clear_session_cookie(response, secure=secure)

    return response
