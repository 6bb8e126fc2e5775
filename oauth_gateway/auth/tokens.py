"""
Signed token codec.

A single HMAC-signed JWT primitive shared by the login state token and
the session cookie. The codec only proves that a payload was produced
with the process signing key and has not been altered; it does not look
at what the payload means. Expiry of session credentials is checked by
the caller after a successful ``verify``.
"""

import logging
from typing import Any, Dict, Mapping

import jwt
from jwt.exceptions import InvalidSignatureError, InvalidTokenError
from jwt.utils import base64url_decode, base64url_encode

from oauth_gateway.errors import TokenMalformed, TokenSignatureInvalid

logger = logging.getLogger(__name__)


class TokenCodec:
    """
    Sign and verify opaque payloads with a symmetric key.

    Signing is deterministic: the same key and payload always produce the
    same token. Verification distinguishes structurally broken tokens
    (``TokenMalformed``) from well-formed tokens whose signature does not
    match (``TokenSignatureInvalid``).
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm

    def sign(self, payload: Mapping[str, Any]) -> str:
        """
        Sign a JSON-serializable mapping.

        Args:
            payload: Claims to embed in the token

        Returns:
            Compact JWT string
        """
        return jwt.encode(dict(payload), self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Verify a token and return its payload.

        Args:
            token: Compact JWT string

        Returns:
            Decoded payload

        Raises:
            TokenMalformed: If the token cannot be parsed
            TokenSignatureInvalid: If the signature does not match the key
        """
        if not isinstance(token, str) or not _is_canonical(token):
            raise TokenMalformed("Malformed token")

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": []},
            )
        except InvalidSignatureError as e:
            raise TokenSignatureInvalid("Token signature mismatch") from e
        except InvalidTokenError as e:
            raise TokenMalformed(f"Malformed token: {e}") from e


def _is_canonical(token: str) -> bool:
    # base64url decoding ignores stray characters and trailing bits, so a
    # segment must re-encode to exactly itself to be accepted.
    segments = token.split(".")
    if len(segments) != 3:
        return False

    for segment in segments:
        if not segment:
            return False
        try:
            raw = base64url_decode(segment)
        except ValueError:
            return False
        if base64url_encode(raw).decode("ascii") != segment:
            return False

    return True
