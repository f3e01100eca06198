"""
eBay OAuth utilities.

These helpers build the consent URL and talk to the identity token endpoint.
Persisting the resulting tokens is the token service's job.
"""

from __future__ import annotations

import base64
import hmac
import json
import logging
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException, status
from pydantic import ValidationError

from app.core.config import EbayConfig
from app.core.errors import EbayAuthError, EbayTokenExpiredError, parse_ebay_error
from app.models.oauth import EbayTokenResponse

logger = logging.getLogger(__name__)


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed OAuth state.",
            ) from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid OAuth state signature.",
            )
        return json.loads(serialized)


def _decode_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class EbayOAuthClient:
    """Build eBay authorization URLs and call the identity token endpoint."""

    TOKEN_PATH = "/identity/v1/oauth2/token"

    def __init__(
        self,
        config: EbayConfig,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._timeout = timeout
        self._transport = transport

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._config.scopes

    @property
    def token_url(self) -> str:
        return f"{self._config.api_base_url}{self.TOKEN_PATH}"

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """Construct the eBay consent URL."""
        params = {
            "client_id": self._config.client_id,
            "response_type": "code",
            "redirect_uri": self._config.ru_name,
            "scope": " ".join(self._config.scopes),
        }
        if state:
            params["state"] = state
        return f"{self._config.auth_base_url}/oauth2/authorize?{urlencode(params)}"

    def _basic_auth_header(self) -> str:
        raw = f"{self._config.client_id}:{self._config.client_secret}"
        return "Basic " + base64.b64encode(raw.encode("utf-8")).decode("utf-8")

    async def _post_token_request(self, form: Dict[str, str]) -> httpx.Response:
        headers = {
            "Authorization": self._basic_auth_header(),
            "Content-Type": "application/x-www-form-urlencoded",
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            return await client.post(self.token_url, data=form, headers=headers)

    @staticmethod
    def _parse_token_payload(response: httpx.Response) -> EbayTokenResponse:
        try:
            return EbayTokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise EbayAuthError(
                "Incomplete token payload returned from eBay.", code="invalid_token_payload"
            ) from exc

    async def exchange_authorization_code(self, code: str) -> EbayTokenResponse:
        """Exchange an authorization code for an access/refresh token pair."""
        response = await self._post_token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._config.ru_name,
            }
        )
        if response.is_error:
            logger.warning("eBay code exchange failed with status %s", response.status_code)
            raise parse_ebay_error(_decode_json(response), response.status_code)
        return self._parse_token_payload(response)

    async def refresh_token(self, refresh_token: str) -> EbayTokenResponse:
        """
        Mint a new access token from a refresh token.

        eBay answers 400/401 when the refresh token itself is no longer
        usable, which requires the user to authorize again.
        """
        response = await self._post_token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": " ".join(self._config.scopes),
            }
        )
        if response.status_code in (
            status.HTTP_400_BAD_REQUEST,
            status.HTTP_401_UNAUTHORIZED,
        ):
            logger.warning("eBay rejected the refresh token (status %s)", response.status_code)
            raise EbayTokenExpiredError()
        if response.is_error:
            raise parse_ebay_error(_decode_json(response), response.status_code)
        return self._parse_token_payload(response)


__all__ = ["EbayOAuthClient", "OAuthStateEncoder"]
