"""Anti-forgery state tokens binding a callback to the login that started it."""

import logging
import uuid

from oauth_gateway.auth.tokens import TokenCodec
from oauth_gateway.errors import GatewayError, StateVerificationFailed
from oauth_gateway.models import StatePayload

logger = logging.getLogger(__name__)


def issue_state_token(codec: TokenCodec, provider_name: str, now: float) -> str:
    payload = StatePayload(
        nonce=uuid.uuid4().hex,
        provider=provider_name,
        issued_at=int(now),
    )
    return codec.sign(payload.model_dump())


def open_state_token(codec: TokenCodec, token: str) -> StatePayload:
    """
    Verify the signature of a state token and decode it.

    Raises:
        StateVerificationFailed: If the token is malformed, forged, or not a state token
    """
    try:
        payload = codec.verify(token)
    except GatewayError as e:
        logger.warning(f"State token rejected: {e.message}")
        raise StateVerificationFailed() from e

    try:
        return StatePayload.model_validate(payload)
    except ValueError as e:
        logger.warning("State token has an unexpected payload")
        raise StateVerificationFailed() from e


def check_state_binding(
    state: StatePayload,
    provider_name: str,
    now: float,
    ttl_seconds: int,
) -> None:
    """
    Check that a verified state belongs to this provider and is still fresh.

    Single use is not enforced: there is no server-side record of issued
    states, so a fresh state can be presented more than once until it ages out.
    """
    if state.provider != provider_name:
        logger.warning(
            f"State issued for provider {state.provider} presented to {provider_name}"
        )
        raise StateVerificationFailed("State was issued for a different provider")

    age = now - state.issued_at
    if age < 0 or age > ttl_seconds:
        logger.warning(f"State token outside its lifetime (age={int(age)}s)")
        raise StateVerificationFailed("State has expired")
