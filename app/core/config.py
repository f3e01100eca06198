"""
Application configuration models and helpers.

Centralizes settings management for the FastAPI app and resolves the eBay
credentials and endpoints the integration needs.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.errors import EbayConfigError

logger = logging.getLogger(__name__)


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


EbayEnvironment = Literal["sandbox", "production"]

# Permissions needed to manage inventory and listings.
EBAY_SCOPES: tuple[str, ...] = (
    "https://api.ebay.com/oauth/api_scope/sell.inventory",
    "https://api.ebay.com/oauth/api_scope/sell.inventory.readonly",
    "https://api.ebay.com/oauth/api_scope/sell.account",
    "https://api.ebay.com/oauth/api_scope/sell.account.readonly",
    "https://api.ebay.com/oauth/api_scope/sell.fulfillment",
    "https://api.ebay.com/oauth/api_scope/commerce.catalog.readonly",
)

EBAY_MARKETPLACE_ID = "EBAY_US"
EBAY_CURRENCY = "USD"

_API_BASE_URLS = {
    "production": "https://api.ebay.com",
    "sandbox": "https://api.sandbox.ebay.com",
}
_AUTH_BASE_URLS = {
    "production": "https://auth.ebay.com",
    "sandbox": "https://auth.sandbox.ebay.com",
}

_REQUIRED_EBAY_VARS = {
    "client_id": "EBAY_CLIENT_ID",
    "client_secret": "EBAY_CLIENT_SECRET",
    "dev_id": "EBAY_DEV_ID",
    "ru_name": "EBAY_RU_NAME",
}


class EbaySettings(BaseSettings):
    """Raw eBay credentials as found in the environment."""

    model_config = SettingsConfigDict(env_prefix="EBAY_", extra="ignore")

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    dev_id: Optional[str] = None
    ru_name: Optional[str] = Field(
        None,
        description="eBay redirect URL name registered for the application.",
    )
    environment: str = "sandbox"


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Settings page browsers return to after connecting eBay.",
    )
    token_db_path: str = Field("data/tokens.db", validation_alias="TOKEN_DB_PATH")
    http_timeout_seconds: float = Field(10.0, validation_alias="EBAY_HTTP_TIMEOUT")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    ebay: EbaySettings = Field(default_factory=EbaySettings)


class EbayConfig(BaseModel):
    """Validated eBay credentials plus endpoints derived from the environment."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    dev_id: str
    ru_name: str
    environment: EbayEnvironment
    api_base_url: str
    auth_base_url: str
    scopes: tuple[str, ...] = EBAY_SCOPES


def _missing_ebay_vars(settings: EbaySettings) -> list[str]:
    return [
        env_name
        for field_name, env_name in _REQUIRED_EBAY_VARS.items()
        if not (getattr(settings, field_name) or "").strip()
    ]


def _resolve_environment(raw: Optional[str]) -> EbayEnvironment:
    value = (raw or "sandbox").strip().lower()
    if value == "production":
        return "production"
    if value != "sandbox":
        logger.warning("Invalid EBAY_ENVIRONMENT %r, defaulting to sandbox", raw)
    return "sandbox"


def resolve_ebay_config(settings: Optional[EbaySettings] = None) -> EbayConfig:
    """Validate the eBay credentials and derive the endpoint base URLs."""
    settings = settings or EbaySettings()
    missing = _missing_ebay_vars(settings)
    if missing:
        raise EbayConfigError(
            "Missing eBay configuration. Required env vars: " + ", ".join(missing),
            missing=missing,
        )

    environment = _resolve_environment(settings.environment)
    return EbayConfig(
        client_id=settings.client_id.strip(),  # type: ignore[union-attr]
        client_secret=settings.client_secret.strip(),  # type: ignore[union-attr]
        dev_id=settings.dev_id.strip(),  # type: ignore[union-attr]
        ru_name=settings.ru_name.strip(),  # type: ignore[union-attr]
        environment=environment,
        api_base_url=_API_BASE_URLS[environment],
        auth_base_url=_AUTH_BASE_URLS[environment],
    )


def is_ebay_configured(settings: Optional[EbaySettings] = None) -> bool:
    """Return whether all required eBay credentials are present."""
    return not _missing_ebay_vars(settings or EbaySettings())


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "EBAY_CURRENCY",
    "EBAY_MARKETPLACE_ID",
    "EBAY_SCOPES",
    "EbayConfig",
    "EbaySettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
    "is_ebay_configured",
    "resolve_ebay_config",
]
