"""
Authentication routes for the OAuth2 login flow.

Endpoints:
    GET /api/oauth/providers            enabled providers and their login URLs
    GET /api/oauth/{provider}/login     redirect to the provider
    GET /api/oauth/{provider}/callback  finish login, set session cookie
    GET /api/logout                     delete session cookie
    GET /api/user                       current identity (protected)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from oauth_gateway.auth.flow import OAuthFlow
from oauth_gateway.auth.middleware import get_current_identity
from oauth_gateway.models import ProviderListResponse, UnifiedIdentity


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    prefix="/api",
    tags=["authentication"],
)


def get_flow(request: Request) -> OAuthFlow:
    return request.app.state.flow


# =============================================================================
# Provider Listing
# =============================================================================

@auth_router.get("/oauth/providers", response_model=ProviderListResponse)
async def list_providers(flow: OAuthFlow = Depends(get_flow)):
    return ProviderListResponse(providers=flow.list_providers())


# =============================================================================
# Login / Callback
# =============================================================================

@auth_router.get("/oauth/{provider}/login", response_class=RedirectResponse)
async def login(provider: str, flow: OAuthFlow = Depends(get_flow)):
    """
    Redirect the user to the provider's authorization page.

    Returns 404 for an unknown provider and 403 for a disabled one.
    """
    return flow.login(provider)


@auth_router.get("/oauth/{provider}/callback", response_class=RedirectResponse)
async def callback(
    provider: str,
    code: Optional[str] = Query(None, description="Authorization code from the provider"),
    state: Optional[str] = Query(None, description="State parameter for CSRF protection"),
    error: Optional[str] = Query(None, description="Error code if authentication failed"),
    error_description: Optional[str] = Query(None, description="Error description"),
    flow: OAuthFlow = Depends(get_flow),
):
    """
    Handle the provider redirect after the user authorized the application.

    On success the session cookie is set and the user is sent to ``/``.
    """
    return await flow.callback(
        provider,
        code=code,
        state=state,
        error=error,
        error_description=error_description,
    )


# =============================================================================
# Session
# =============================================================================

@auth_router.get("/logout", response_class=RedirectResponse)
async def logout(flow: OAuthFlow = Depends(get_flow)):
    return flow.logout()


@auth_router.get("/user", response_model=UnifiedIdentity)
async def get_user(user: UnifiedIdentity = Depends(get_current_identity)):
    return user
