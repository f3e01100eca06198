"""
Domain models for eBay OAuth token persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field


class EbayTokenResponse(BaseModel):
    """Body returned by the eBay identity token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "User Access Token"
    expires_in: int
    refresh_token_expires_in: Optional[int] = None


class StoredEbayToken(BaseModel):
    """The single token record kept for this installation."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    scopes: tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: datetime

    @classmethod
    def from_response(
        cls,
        response: EbayTokenResponse,
        *,
        received_at: datetime,
        scopes: tuple[str, ...],
        refresh_token: Optional[str] = None,
        refresh_expires_at: Optional[datetime] = None,
    ) -> "StoredEbayToken":
        """
        Build a record whose expiries are measured from ``received_at``.

        ``refresh_token``/``refresh_expires_at`` are used only when the
        response does not issue a new refresh token.
        """
        new_refresh_token = response.refresh_token or refresh_token
        if response.refresh_token_expires_in is not None:
            refresh_expires_at = received_at + timedelta(
                seconds=response.refresh_token_expires_in
            )
        if not new_refresh_token or refresh_expires_at is None:
            raise ValueError("Token response lacks refresh token details.")

        return cls(
            access_token=response.access_token,
            refresh_token=new_refresh_token,
            access_expires_at=received_at + timedelta(seconds=response.expires_in),
            refresh_expires_at=refresh_expires_at,
            scopes=scopes,
            updated_at=received_at,
        )


class ConnectionStatus(BaseModel):
    """Read-only view of the eBay connection."""

    connected: bool
    expires_at: Optional[datetime] = Field(
        None, description="Expiry of the current access token."
    )
    needs_reauth: bool


__all__ = ["ConnectionStatus", "EbayTokenResponse", "StoredEbayToken"]
