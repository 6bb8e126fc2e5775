"""Session authentication middleware for protected routes."""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import List, Sequence, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from oauth_gateway.auth.session import SESSION_COOKIE_NAME, error_response, read_session_credential
from oauth_gateway.auth.tokens import TokenCodec
from oauth_gateway.errors import GatewayError, Unauthenticated
from oauth_gateway.models import UnifiedIdentity

logger = logging.getLogger(__name__)

# (path, is_prefix) pairs; is_prefix=True also protects sub-paths
PROTECTED_PATHS: List[Tuple[str, bool]] = [
    ("/api/user", False),
]


def _is_protected_path(request_path: str, protected_paths: Sequence[Tuple[str, bool]]) -> bool:
    for path, is_prefix in protected_paths:
        if is_prefix:
            if request_path == path or request_path.startswith(path + "/"):
                return True
        elif request_path == path:
            return True
    return False


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """
    Validate the session cookie on protected requests.

    On success the credential's identity is stored on ``request.state.identity``
    and the downstream response is returned untouched. On failure the request
    is answered with 401, and the cookie is deleted when it was present but
    malformed, forged or expired.
    """

    def __init__(
        self,
        app: ASGIApp,
        codec: TokenCodec,
        protected_paths: Sequence[Tuple[str, bool]] = tuple(PROTECTED_PATHS),
        clock: Callable[[], float] = time.time,
        cookie_secure: bool = False,
    ):
        super().__init__(app)
        self.codec = codec
        self.protected_paths = list(protected_paths)
        self.clock = clock
        self.cookie_secure = cookie_secure

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if not _is_protected_path(request.url.path, self.protected_paths):
            return await call_next(request)

        try:
            credential = read_session_credential(
                self.codec,
                request.cookies.get(SESSION_COOKIE_NAME),
                self.clock(),
            )
        except GatewayError as e:
            if e.clears_cookie:
                logger.warning(
                    f"Rejected session cookie: {e.error}",
                    extra={"path": request.url.path},
                )
            return error_response(e, secure=self.cookie_secure)

        logger.debug(
            f"User authorized: provider={credential.provider_name}, uid={credential.identity.uid}"
        )
        request.state.identity = credential.identity
        return await call_next(request)


async def get_current_identity(request: Request) -> UnifiedIdentity:
    """
    FastAPI dependency returning the identity stored by SessionAuthMiddleware.

    Usage in routes:
        @router.get("/protected")
        async def route(user: UnifiedIdentity = Depends(get_current_identity)):
            return {"uid": user.uid}

    Raises:
        Unauthenticated: If the route is not covered by the middleware
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise Unauthenticated("Authentication required")
    return identity
