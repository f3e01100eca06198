"""Public schema exports."""

from .ebay import (
    EbayListingParams,
    EbayStatusResponse,
    PostListingRequest,
    PostListingResponse,
    PublishedListing,
)

__all__ = [
    "EbayListingParams",
    "EbayStatusResponse",
    "PostListingRequest",
    "PostListingResponse",
    "PublishedListing",
]
