"""Schemas for eBay connection and listing endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

ItemCondition = Literal["new_with_tags", "like_new", "good", "fair"]
EbayCondition = Literal["NEW", "LIKE_NEW", "USED_EXCELLENT", "USED_GOOD", "USED_ACCEPTABLE"]
ListingFormat = Literal["FIXED_PRICE", "AUCTION"]
ListingDuration = Literal["DAYS_3", "DAYS_5", "DAYS_7", "DAYS_10", "GTC"]

MAX_TITLE_LENGTH = 80


class EbayStatusResponse(BaseModel):
    configured: bool
    connected: bool
    needs_reauth: bool
    expires_at: Optional[datetime] = None
    message: Optional[str] = None


class EbayListingParams(BaseModel):
    """Everything needed to create and publish one eBay listing."""

    sku: str
    title: str = Field(..., max_length=MAX_TITLE_LENGTH)
    description: str
    condition: EbayCondition
    price: float = Field(..., gt=0)
    quantity: int = Field(1, ge=1)
    category_id: str
    images: List[str] = Field(default_factory=list)
    format: ListingFormat = "FIXED_PRICE"
    duration: Optional[ListingDuration] = None
    starting_bid: Optional[float] = Field(None, gt=0)


class PublishedListing(BaseModel):
    offer_id: str
    listing_id: str


class PostListingRequest(BaseModel):
    """Listing content submitted for publication on eBay."""

    item_id: str = Field(..., description="Identifier of the item being sold.")
    description: str = Field(..., min_length=1)
    title: Optional[str] = Field(
        None,
        max_length=MAX_TITLE_LENGTH,
        description="Defaults to the first line of the description.",
    )
    condition: ItemCondition
    price: float = Field(..., gt=0)
    category_id: str
    images: List[str] = Field(default_factory=list)
    format: ListingFormat = "FIXED_PRICE"
    duration: Optional[ListingDuration] = None
    starting_bid: Optional[float] = Field(None, gt=0)

    @model_validator(mode="after")
    def _check_auction_fields(self) -> "PostListingRequest":
        if self.format == "FIXED_PRICE" and self.starting_bid is not None:
            raise ValueError("starting_bid only applies to AUCTION listings")
        return self

    def resolved_title(self) -> str:
        if self.title:
            return self.title
        first_line = next(
            (line.strip() for line in self.description.splitlines() if line.strip()), ""
        )
        return first_line[:MAX_TITLE_LENGTH]


class PostListingResponse(BaseModel):
    success: bool = True
    offer_id: str
    ebay_listing_id: str
    message: str = "Successfully posted to eBay"


__all__ = [
    "EbayCondition",
    "EbayListingParams",
    "EbayStatusResponse",
    "ItemCondition",
    "ListingDuration",
    "ListingFormat",
    "PostListingRequest",
    "PostListingResponse",
    "PublishedListing",
]
