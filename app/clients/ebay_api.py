"""Authenticated eBay REST client with rate-limit and network retries."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from app.core.config import EBAY_MARKETPLACE_ID, EbayConfig
from app.core.errors import (
    EbayApiError,
    EbayNetworkError,
    EbayRateLimitError,
    parse_ebay_error,
)
from app.utils.http import RetryConfig, parse_retry_after

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.services.ebay_tokens import EbayTokenService

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class EbayApiClient:
    """Send JSON requests to eBay with a fresh bearer token on every attempt."""

    def __init__(
        self,
        config: EbayConfig,
        token_service: "EbayTokenService",
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._tokens = token_service
        self._timeout = timeout
        self._transport = transport
        self._sleep = sleep

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self._config.api_base_url}{endpoint}"

    @staticmethod
    def _decode_success(response: httpx.Response) -> Dict[str, Any]:
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise EbayApiError(
                "eBay returned a response that is not valid JSON.",
                error_id="invalid_response",
                http_status=response.status_code,
            ) from exc

    @staticmethod
    def _decode_error(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    async def request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        max_retries: int = 3,
    ) -> Dict[str, Any]:
        """
        Call an eBay endpoint and return the decoded JSON body.

        Each attempt either returns, raises a non-retryable error, or records
        a retryable failure (HTTP 429 or no response) and sleeps before the
        next one. The final attempt raises instead of sleeping.
        """
        retry = RetryConfig(attempts=max_retries)
        url = self._build_url(endpoint)

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for attempt in range(1, retry.attempts + 1):
                final_attempt = attempt == retry.attempts
                access_token = await self._tokens.get_valid_access_token()
                request_headers = {
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "X-EBAY-C-MARKETPLACE-ID": EBAY_MARKETPLACE_ID,
                }
                request_headers.update(headers or {})

                try:
                    response = await client.request(
                        method, url, params=params, json=json, headers=request_headers
                    )
                except httpx.TransportError as exc:
                    if final_attempt:
                        raise EbayNetworkError(
                            f"eBay request {method} {endpoint} failed: {exc}"
                        ) from exc
                    delay = retry.backoff_seconds(attempt)
                    logger.warning(
                        "Network error calling eBay %s %s (attempt %s/%s); retrying in %ss",
                        method,
                        endpoint,
                        attempt,
                        retry.attempts,
                        delay,
                    )
                    await self._sleep(delay)
                    continue

                if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
                    retry_after = parse_retry_after(
                        response.headers.get("Retry-After"), retry.default_retry_after
                    )
                    if final_attempt:
                        raise EbayRateLimitError(retry_after)
                    logger.warning(
                        "eBay rate limited %s %s (attempt %s/%s); retrying in %ss",
                        method,
                        endpoint,
                        attempt,
                        retry.attempts,
                        retry_after,
                    )
                    await self._sleep(retry_after)
                    continue

                if response.is_error:
                    raise parse_ebay_error(self._decode_error(response), response.status_code)

                return self._decode_success(response)

        raise AssertionError("retry loop exited without a result")  # pragma: no cover

    async def get(
        self, endpoint: str, params: Optional[Mapping[str, str]] = None
    ) -> Dict[str, Any]:
        return await self.request(endpoint, method="GET", params=params)

    async def post(self, endpoint: str, body: Any = None) -> Dict[str, Any]:
        return await self.request(endpoint, method="POST", json=body)

    async def put(self, endpoint: str, body: Any = None) -> Dict[str, Any]:
        return await self.request(endpoint, method="PUT", json=body)

    async def delete(self, endpoint: str) -> Dict[str, Any]:
        return await self.request(endpoint, method="DELETE")


__all__ = ["EbayApiClient"]
