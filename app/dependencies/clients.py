"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import EbayApiClient, EbayOAuthClient, OAuthStateEncoder, SQLiteTokenStore
from app.core.config import EbayConfig, get_settings, resolve_ebay_config
from app.services import EbayListingService, EbayTokenService, TokenCipherService

from .config import get_ebay_configured


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_ebay_config() -> EbayConfig:
    """Resolve eBay credentials; raises ``EbayConfigError`` until they are set."""
    return resolve_ebay_config(_settings().ebay)


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder keyed by the eBay client secret."""
    return OAuthStateEncoder(secret_key=get_ebay_config().client_secret)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    return TokenCipherService.from_settings(_settings())


@lru_cache()
def get_token_store() -> SQLiteTokenStore:
    """Provide the single-record eBay token store."""
    return SQLiteTokenStore(_settings().token_db_path, get_token_cipher_service())


@lru_cache()
def get_ebay_oauth_client() -> EbayOAuthClient:
    return EbayOAuthClient(get_ebay_config(), timeout=_settings().http_timeout_seconds)


@lru_cache()
def get_ebay_token_service() -> EbayTokenService:
    """Provide the eBay token lifecycle manager."""
    return EbayTokenService(store=get_token_store(), oauth_client=get_ebay_oauth_client())


def get_ebay_token_service_if_configured() -> EbayTokenService | None:
    """Token service, or ``None`` while eBay credentials are missing."""
    if not get_ebay_configured():
        return None
    return get_ebay_token_service()


@lru_cache()
def get_ebay_api_client() -> EbayApiClient:
    return EbayApiClient(
        get_ebay_config(),
        get_ebay_token_service(),
        timeout=_settings().http_timeout_seconds,
    )


def get_ebay_listing_service() -> EbayListingService:
    """Build a listing service on top of the authenticated API client."""
    return EbayListingService(get_ebay_api_client())


__all__ = [
    "get_ebay_api_client",
    "get_ebay_config",
    "get_ebay_listing_service",
    "get_ebay_oauth_client",
    "get_ebay_token_service",
    "get_ebay_token_service_if_configured",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
    "get_token_store",
]
