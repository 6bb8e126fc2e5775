"""
FastAPI Application Factory
===========================

Entry point for the OAuth gateway. The gateway lets a web application
delegate login to external identity providers and hands the browser a
signed session cookie that protected routes validate on every request.

Routers:
    - /api/oauth/*  : provider listing, login redirect, callback
    - /api/logout   : session cookie removal
    - /api/user     : current identity (requires a valid session cookie)
    - /health       : health check endpoint

Configuration:
    Settings are read from the environment and from the YAML file named by
    OAUTH_GATEWAY_CONFIG (default: config.yml). See oauth_gateway.config.

Running the Service:
    Development:
        uvicorn oauth_gateway.main:create_app --factory --reload --port 3000

    Direct:
        python -m oauth_gateway.main
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from oauth_gateway.auth.flow import OAuthFlow
from oauth_gateway.auth.middleware import PROTECTED_PATHS, SessionAuthMiddleware
from oauth_gateway.auth.routes import auth_router
from oauth_gateway.auth.session import error_response
from oauth_gateway.auth.tokens import TokenCodec
from oauth_gateway.config import (
    Settings,
    config_file_path,
    get_settings,
    write_default_config,
)
from oauth_gateway.errors import ConfigError, GatewayError
from oauth_gateway.models import ErrorResponse, HealthResponse
from oauth_gateway.providers.registry import ProviderRegistry

SERVICE_NAME = "oauth-gateway"

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup."""
    settings: Settings = app.state.settings
    registry: ProviderRegistry = app.state.registry

    setup_logging(settings.LOG_LEVEL)

    logger.info(
        "Starting OAuth gateway",
        extra={"prefix_url": settings.OAUTH_PREFIX_URL, "log_level": settings.LOG_LEVEL},
    )
    logger.info(f"OAuth callback base: {settings.OAUTH_PREFIX_URL}/api/oauth/[provider]/callback")

    enabled = registry.enabled()
    if not enabled:
        logger.warning("No OAuth providers are enabled")
    for name, config in enabled:
        logger.info(
            f"Enabled provider {name} ({config.kind.display_name}): "
            f"{settings.OAUTH_PREFIX_URL}{registry.login_path(name)}"
        )

    yield

    logger.info("OAuth gateway shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use; loaded from the environment when omitted
        transport: Optional httpx transport for provider calls (tests)

    Returns:
        FastAPI: Configured application instance

    Raises:
        ConfigError: If the configuration is invalid or names an unimplemented provider
    """
    settings = settings or get_settings()

    codec = TokenCodec(settings.SESSION_SECRET, algorithm=settings.SESSION_JWT_ALGORITHM)
    registry = ProviderRegistry(
        settings.OAUTH_PROVIDERS,
        settings.OAUTH_PREFIX_URL,
        transport=transport,
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
    )
    flow = OAuthFlow(
        registry,
        codec,
        state_ttl_seconds=settings.STATE_TOKEN_TTL_SECONDS,
        default_session_ttl_seconds=settings.DEFAULT_SESSION_TTL_SECONDS,
        cookie_secure=settings.COOKIE_SECURE,
    )

    app = FastAPI(
        title="OAuth Gateway",
        description="OAuth2 login gateway with signed session cookies",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.flow = flow

    origins = settings.allowed_origins_list
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["*"],
        )

    app.add_middleware(
        SessionAuthMiddleware,
        codec=codec,
        protected_paths=PROTECTED_PATHS,
        cookie_secure=settings.COOKIE_SECURE,
    )

    app.include_router(auth_router)

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check():
        return HealthResponse(status="ok", service=SERVICE_NAME)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                f"{exc.error}: {exc.message}",
                extra={"path": request.url.path, "method": request.method},
            )
        return error_response(exc, secure=settings.COOKIE_SECURE)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        body = ErrorResponse(error="internal_server_error", message="An unexpected error occurred")
        return JSONResponse(status_code=500, content=body.model_dump(mode="json"))

    return app


def main() -> None:
    """
    Run the gateway with uvicorn.

    When no configuration file exists and the environment does not provide
    one, a starter file is written and the process exits so it can be edited.
    """
    setup_logging()

    path = config_file_path()
    try:
        settings = get_settings()
    except ConfigError as e:
        if path.exists():
            logger.error(f"Failed to load configuration: {e.message}")
            sys.exit(1)
        write_default_config(path)
        logger.info(f"Created default config file: {path}")
        logger.info("Edit the config file and start the gateway again")
        sys.exit(0)

    try:
        app = create_app(settings)
    except ConfigError as e:
        logger.error(f"Failed to start: {e.message}")
        sys.exit(1)

    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
