"""
Sell Inventory API workflow for publishing listings.

A listing goes live in three calls: upsert the inventory item, create an
offer for it, then publish the offer.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict
from urllib.parse import quote

from app.core.config import EBAY_CURRENCY, EBAY_MARKETPLACE_ID
from app.core.errors import EbayApiError
from app.schemas.ebay import EbayCondition, EbayListingParams, ItemCondition, PublishedListing

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.clients.ebay_api import EbayApiClient

logger = logging.getLogger(__name__)

INVENTORY_BASE = "/sell/inventory/v1"
MAX_IMAGES = 12

_CONDITION_MAP: Dict[str, EbayCondition] = {
    "new_with_tags": "NEW",
    "like_new": "LIKE_NEW",
    "good": "USED_GOOD",
    "fair": "USED_ACCEPTABLE",
}


def map_condition_to_ebay(condition: ItemCondition) -> EbayCondition:
    """Translate the app's item condition into eBay's condition enum."""
    return _CONDITION_MAP[condition]


def _money(value: float) -> Dict[str, str]:
    return {"value": f"{value:.2f}", "currency": EBAY_CURRENCY}


def _require(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not value:
        raise EbayApiError(
            f"eBay response did not include {key}.",
            error_id="invalid_response",
            http_status=200,
        )
    return str(value)


class EbayListingService:
    """Create, price and publish listings through the Sell Inventory API."""

    def __init__(self, api_client: "EbayApiClient") -> None:
        self._api = api_client

    async def create_inventory_item(self, params: EbayListingParams) -> None:
        body = {
            "sku": params.sku,
            "product": {
                "title": params.title,
                "description": params.description,
                "imageUrls": params.images[:MAX_IMAGES],
            },
            "condition": params.condition,
            "availability": {
                "shipToLocationAvailability": {"quantity": params.quantity},
            },
        }
        await self._api.put(
            f"{INVENTORY_BASE}/inventory_item/{quote(params.sku, safe='')}", body
        )

    async def create_offer(self, params: EbayListingParams) -> str:
        """Create an offer for an existing inventory item and return its id."""
        offer: Dict[str, Any] = {
            "sku": params.sku,
            "marketplaceId": EBAY_MARKETPLACE_ID,
            "format": params.format,
            "availableQuantity": params.quantity,
            "categoryId": params.category_id,
            "listingDescription": params.description,
            "listingPolicies": {},
            "pricingSummary": {"price": _money(params.price)},
        }
        if params.format == "AUCTION":
            offer["listingDuration"] = params.duration or "DAYS_7"
            if params.starting_bid:
                offer["bidPrice"] = _money(params.starting_bid)
        else:
            offer["listingDuration"] = "GTC"

        response = await self._api.post(f"{INVENTORY_BASE}/offer", offer)
        return _require(response, "offerId")

    async def publish_offer(self, offer_id: str) -> str:
        response = await self._api.post(
            f"{INVENTORY_BASE}/offer/{quote(offer_id, safe='')}/publish"
        )
        return _require(response, "listingId")

    async def create_and_publish_listing(self, params: EbayListingParams) -> PublishedListing:
        await self.create_inventory_item(params)
        offer_id = await self.create_offer(params)
        listing_id = await self.publish_offer(offer_id)
        logger.info("Published eBay listing %s for sku %s", listing_id, params.sku)
        return PublishedListing(offer_id=offer_id, listing_id=listing_id)


__all__ = ["EbayListingService", "map_condition_to_ebay"]
