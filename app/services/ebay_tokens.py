"""
Lifecycle management for the eBay OAuth token record.

Access tokens are refreshed lazily: every read checks the stored expiry and
refreshes when it falls inside ``REFRESH_WINDOW``. There is no background
timer and no in-process cache, so each call sees the persisted record.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from app.clients.ebay_auth import EbayOAuthClient
from app.core.errors import EbayAuthError, EbayNotConnectedError, EbayTokenExpiredError
from app.models.oauth import ConnectionStatus, EbayTokenResponse, StoredEbayToken

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.clients.sqlite_store import TokenStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TokenState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    ACCESS_EXPIRING = "access_expiring"
    REFRESH_EXPIRED = "refresh_expired"


class EbayTokenService:
    """Obtains, refreshes and validates the eBay access token."""

    REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        store: "TokenStore",
        oauth_client: EbayOAuthClient,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._clock = clock

    def classify(self, record: Optional[StoredEbayToken], now: datetime) -> TokenState:
        """Place a record in the token state machine at time ``now``."""
        if record is None:
            return TokenState.ABSENT
        if _as_utc(record.refresh_expires_at) <= now:
            return TokenState.REFRESH_EXPIRED
        if _as_utc(record.access_expires_at) - self.REFRESH_WINDOW <= now:
            return TokenState.ACCESS_EXPIRING
        return TokenState.VALID

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        return self._oauth.build_authorization_url(state=state)

    def _persist(
        self,
        response: EbayTokenResponse,
        *,
        received_at: datetime,
        previous: Optional[StoredEbayToken] = None,
        presented_refresh_token: Optional[str] = None,
    ) -> StoredEbayToken:
        try:
            record = StoredEbayToken.from_response(
                response,
                received_at=received_at,
                scopes=self._oauth.scopes,
                refresh_token=presented_refresh_token,
                refresh_expires_at=previous.refresh_expires_at if previous else None,
            )
        except ValueError as exc:
            raise EbayAuthError(
                "Incomplete token payload returned from eBay.", code="invalid_token_payload"
            ) from exc
        if previous is not None:
            record.created_at = previous.created_at
        return self._store.replace(record)

    async def exchange_code(self, code: str) -> StoredEbayToken:
        """Exchange an authorization code and store the brand-new token pair."""
        response = await self._oauth.exchange_authorization_code(code)
        record = self._persist(response, received_at=self._clock())
        logger.info("Connected eBay account; access token valid until %s", record.access_expires_at)
        return record

    async def refresh_access_token(
        self, refresh_token: str, *, current: Optional[StoredEbayToken] = None
    ) -> StoredEbayToken:
        """Mint a new access token and replace the stored record."""
        response = await self._oauth.refresh_token(refresh_token)
        received_at = self._clock()
        previous = current if current is not None else self._store.get()
        record = self._persist(
            response,
            received_at=received_at,
            previous=previous,
            presented_refresh_token=refresh_token,
        )
        logger.info("Refreshed eBay access token; valid until %s", record.access_expires_at)
        return record

    async def get_valid_access_token(self) -> str:
        """Return an access token that stays valid for at least the refresh window."""
        record = self._store.get()
        if record is None:
            raise EbayNotConnectedError()

        state = self.classify(record, self._clock())
        if state is TokenState.REFRESH_EXPIRED:
            raise EbayTokenExpiredError()
        if state is TokenState.ACCESS_EXPIRING:
            refreshed = await self.refresh_access_token(record.refresh_token, current=record)
            return refreshed.access_token
        return record.access_token

    def get_connection_status(self) -> ConnectionStatus:
        record = self._store.get()
        if record is None:
            return ConnectionStatus(connected=False, needs_reauth=True)
        state = self.classify(record, self._clock())
        return ConnectionStatus(
            connected=True,
            expires_at=record.access_expires_at,
            needs_reauth=state is TokenState.REFRESH_EXPIRED,
        )

    def disconnect(self) -> None:
        """Forget the stored tokens. Safe to call when nothing is stored."""
        self._store.delete()
        logger.info("Disconnected eBay account")


__all__ = ["EbayTokenService", "TokenState"]
