"""
Tests for the signed token codec.

Covers round-trips, determinism, tamper detection and the distinction
between malformed and forged tokens.
"""

import pytest

from oauth_gateway.auth.tokens import TokenCodec
from oauth_gateway.errors import TokenMalformed, TokenSignatureInvalid

from conftest import OTHER_SECRET, TEST_SECRET


PAYLOADS = [
    {"nonce": "3f2a", "provider": "littleskin", "issued_at": 1700000000},
    {
        "access_token": "abc",
        "provider_name": "littleskin",
        "expire_at": 1700003600,
        "identity": {"uid": "1", "nickname": "Ünïcødé 名前", "profiles": []},
    },
    {},
]


class TestRoundTrip:

    @pytest.mark.parametrize("payload", PAYLOADS)
    def test_verify_returns_signed_payload(self, codec, payload):
        assert codec.verify(codec.sign(payload)) == payload

    def test_signing_is_deterministic(self, codec):
        payload = PAYLOADS[0]
        assert codec.sign(payload) == codec.sign(dict(payload))
        assert codec.sign(payload) == TokenCodec(TEST_SECRET).sign(payload)

    @pytest.mark.parametrize("algorithm", ["HS384", "HS512"])
    def test_other_hmac_algorithms(self, algorithm):
        codec = TokenCodec(TEST_SECRET, algorithm=algorithm)
        assert codec.verify(codec.sign(PAYLOADS[0])) == PAYLOADS[0]

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenCodec("")


class TestTamperDetection:

    def test_every_single_character_change_is_detected(self, codec):
        token = codec.sign(PAYLOADS[0])

        for index, char in enumerate(token):
            tampered = token[:index] + chr(ord(char) ^ 0x01) + token[index + 1:]
            with pytest.raises((TokenMalformed, TokenSignatureInvalid)):
                codec.verify(tampered)

    def test_swapped_signature_character_is_signature_error(self, codec):
        token = codec.sign(PAYLOADS[0])
        header, payload, signature = token.split(".")
        # Changing the first signature character keeps the segment canonical
        replacement = "A" if signature[0] != "A" else "B"
        forged = ".".join([header, payload, replacement + signature[1:]])

        with pytest.raises(TokenSignatureInvalid):
            codec.verify(forged)

    def test_token_from_other_key_is_signature_error(self, codec):
        token = TokenCodec(OTHER_SECRET).sign(PAYLOADS[0])

        with pytest.raises(TokenSignatureInvalid):
            codec.verify(token)

    def test_payload_swap_is_signature_error(self, codec):
        first = codec.sign({"user": "alice"}).split(".")
        second = codec.sign({"user": "mallory"}).split(".")
        spliced = ".".join([first[0], second[1], first[2]])

        with pytest.raises(TokenSignatureInvalid):
            codec.verify(spliced)


class TestMalformed:

    @pytest.mark.parametrize(
        "token",
        [
            "",
            "not-a-token",
            "a.b",
            "a.b.c.d",
            "..",
            "eyJhbGciOiJIUzI1NiJ9.!!!.abc",
        ],
    )
    def test_structurally_broken_tokens(self, codec, token):
        with pytest.raises(TokenMalformed):
            codec.verify(token)

    def test_non_string_token(self, codec):
        with pytest.raises(TokenMalformed):
            codec.verify(None)

    def test_unsigned_token_is_rejected(self, codec):
        import jwt

        token = jwt.encode({"uid": "1"}, None, algorithm="none")

        with pytest.raises((TokenMalformed, TokenSignatureInvalid)):
            codec.verify(token)
