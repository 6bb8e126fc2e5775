"""
Authentication Package

This package implements the gateway's login state machine: users log in
through an external OAuth2 identity provider and receive a signed,
self-contained session cookie that is re-validated on every protected
request.

Modules:
- tokens: HMAC-signed token codec shared by state tokens and session cookies
- state: anti-forgery state tokens for the login redirect
- session: session credential signing/validation and cookie helpers
- flow: login, callback and logout orchestration
- middleware: session cookie validation for protected routes
- routes: public authentication endpoints (/api/oauth/*, /api/logout, /api/user)

The authentication flow:
1. Client opens /api/oauth/{provider}/login
2. Gateway redirects to the provider with a signed state
3. Provider redirects back to /api/oauth/{provider}/callback with a code
4. Gateway verifies the state, exchanges the code, fetches the identity
5. Gateway sets the signed session cookie and redirects to /
6. Client sends the cookie with later requests; the middleware validates it
"""

from .flow import OAuthFlow
from .middleware import SessionAuthMiddleware, get_current_identity
from .routes import auth_router
from .tokens import TokenCodec

__all__ = [
    "OAuthFlow",
    "SessionAuthMiddleware",
    "TokenCodec",
    "auth_router",
    "get_current_identity",
]
