"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_ebay_api_client,
    get_ebay_config,
    get_ebay_listing_service,
    get_ebay_oauth_client,
    get_ebay_token_service,
    get_ebay_token_service_if_configured,
    get_oauth_state_encoder,
    get_token_cipher_service,
    get_token_store,
)
from .config import SettingsDependency, get_app_settings, get_ebay_configured

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_ebay_api_client",
    "get_ebay_config",
    "get_ebay_configured",
    "get_ebay_listing_service",
    "get_ebay_oauth_client",
    "get_ebay_token_service",
    "get_ebay_token_service_if_configured",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
    "get_token_store",
]
