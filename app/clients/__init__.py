"""Expose constructed client wrappers."""

from .ebay_api import EbayApiClient
from .ebay_auth import EbayOAuthClient, OAuthStateEncoder
from .sqlite_store import SQLiteTokenStore, TokenStore

__all__ = [
    "EbayApiClient",
    "EbayOAuthClient",
    "OAuthStateEncoder",
    "SQLiteTokenStore",
    "TokenStore",
]
