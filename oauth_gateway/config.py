"""
Configuration module for the OAuth gateway.

This module uses Pydantic Settings to load and validate the gateway's
configuration: the public prefix URL used to build callback addresses,
the session signing secret, and the per-provider OAuth client settings.

Values are read from the environment (or a .env file) and can be
overlaid by a YAML file whose top-level keys mirror the field names.
The YAML path is taken from the OAUTH_GATEWAY_CONFIG environment
variable and defaults to ``config.yml``.
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oauth_gateway.errors import ConfigError
from oauth_gateway.models import ProviderKind

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "OAUTH_GATEWAY_CONFIG"
DEFAULT_CONFIG_FILE = "config.yml"

_PROVIDER_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class ProviderConfig(BaseModel):
    """OAuth client settings for one configured provider."""

    kind: ProviderKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type", "provider_type"),
        description="Provider kind, e.g. 'blessingskin=https://littleskin.cn' or 'microsoft'",
    )
    client_id: str = Field(..., min_length=1, description="OAuth client ID")
    client_secret: str = Field(..., description="OAuth client secret")
    enabled: bool = Field(default=True, description="Whether the provider accepts logins")
    scopes: List[str] = Field(
        default_factory=list,
        description="Requested scopes; empty means the provider client's defaults",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scope_string(cls, v: Union[str, List[str], None]) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return v.split()
        return v


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The provider registry and the signing secret are read once at
    startup and treated as immutable for the life of the process.
    """

    # =========================================================================
    # OAuth Configuration
    # =========================================================================

    OAUTH_PREFIX_URL: str = Field(
        ...,
        description="Public base URL of the gateway; callbacks are {prefix}/api/oauth/{name}/callback",
        min_length=1,
    )

    OAUTH_PROVIDERS: Dict[str, ProviderConfig] = Field(
        default_factory=dict,
        description="Mapping from provider name to its client settings",
    )

    STATE_TOKEN_TTL_SECONDS: int = Field(
        default=600,
        description="Maximum age of a login state token accepted at callback",
        ge=30,
        le=3600,
    )

    DEFAULT_SESSION_TTL_SECONDS: int = Field(
        default=3600,
        description="Session lifetime used when the provider does not report expires_in",
        ge=60,
    )

    UPSTREAM_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for calls to identity providers",
        gt=0,
    )

    # =========================================================================
    # Session Configuration
    # =========================================================================

    SESSION_SECRET: str = Field(
        ...,
        description="Secret key for signing state tokens and session cookies",
        min_length=32,
    )

    SESSION_JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    COOKIE_SECURE: bool = Field(
        default=False,
        description="Mark the session cookie Secure (enable behind HTTPS)",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(default="127.0.0.1", description="Host to bind the server")

    PORT: int = Field(default=3000, description="Port to bind the server", ge=1, le=65535)

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_origins_list(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("OAUTH_PREFIX_URL")
    @classmethod
    def validate_prefix_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"OAUTH_PREFIX_URL must be an http(s) URL, got: {v}")
        return v.rstrip("/")

    @field_validator("OAUTH_PROVIDERS")
    @classmethod
    def validate_provider_names(cls, v: Dict[str, ProviderConfig]) -> Dict[str, ProviderConfig]:
        for name in v:
            if not _PROVIDER_NAME.match(name):
                raise ValueError(
                    f"Invalid provider name: '{name}'. "
                    "Use letters, digits, '-' and '_' only"
                )
        return v

    @field_validator("SESSION_JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level


# =============================================================================
# Loading
# =============================================================================

def config_file_path() -> Path:
    return Path(os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE))


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from the environment, overlaid by a YAML file if present.

    Args:
        path: YAML file to read. Defaults to ``config_file_path()``.

    Returns:
        Validated Settings instance

    Raises:
        ConfigError: If the file cannot be read or parsed, or validation fails
    """
    path = Path(path) if path is not None else config_file_path()
    overrides = {}

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config file {path}: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        overrides = raw
        logger.info(f"Loaded config file: {path}")

    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


def write_default_config(path: Union[str, Path]) -> None:
    """Write a starter configuration file for the operator to edit."""
    default_config = {
        "HOST": "127.0.0.1",
        "PORT": 3000,
        "OAUTH_PREFIX_URL": "http://127.0.0.1:3000",
        "SESSION_SECRET": "your-secret-here-change-this-in-production",
        "OAUTH_PROVIDERS": {
            "littleskin": {
                "kind": "blessingskin=https://littleskin.cn",
                "client_id": "your_client_id_here",
                "client_secret": "your_client_secret_here",
                "enabled": True,
            },
            "microsoft": {
                "kind": "microsoft",
                "client_id": "your_azure_client_id",
                "client_secret": "your_azure_client_secret",
                "enabled": False,
            },
        },
    }

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(default_config, f, sort_keys=False)
