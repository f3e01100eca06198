"""Service layer exports."""

from .token_cipher import TokenCipherService
from .ebay_listing import EbayListingService, map_condition_to_ebay
from .ebay_tokens import EbayTokenService, TokenState

__all__ = [
    "EbayListingService",
    "EbayTokenService",
    "TokenCipherService",
    "TokenState",
    "map_condition_to_ebay",
]
