try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import copy
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.clients.ebay_auth import OAuthStateEncoder
from app.clients.sqlite_store import SQLiteTokenStore
from app.core.errors import (
    EbayApiError,
    EbayConfigError,
    EbayNotConnectedError,
    EbayRateLimitError,
)
from app.main import app
from app.models.oauth import ConnectionStatus, StoredEbayToken
from app.schemas import PublishedListing
from app.services.token_cipher import TokenCipherService


class DummyTokenService:
    def __init__(self) -> None:
        self.states: list[str] = []
        self.codes: list[str] = []
        self.exchange_error: Exception | None = None
        self.status = ConnectionStatus(
            connected=True,
            expires_at=datetime(2026, 5, 1, tzinfo=timezone.utc),
            needs_reauth=False,
        )

    def build_authorization_url(self, state: str | None = None) -> str:
        self.states.append(state)
        return f"https://auth.sandbox.ebay.com/oauth2/authorize?state={state}"

    async def exchange_code(self, code: str):
        self.codes.append(code)
        if self.exchange_error:
            raise self.exchange_error
        return None

    def get_connection_status(self) -> ConnectionStatus:
        return self.status


class FakeTokenStore:
    def __init__(self) -> None:
        self.deletes = 0

    def delete(self) -> None:
        self.deletes += 1


class DummyListingService:
    def __init__(self) -> None:
        self.params = []
        self.error: Exception | None = None

    async def create_and_publish_listing(self, params):
        self.params.append(params)
        if self.error:
            raise self.error
        return PublishedListing(offer_id="OFFER-9", listing_id="2200")


@pytest.fixture()
def overrides():
    from app import dependencies
    from app.core.config import get_settings

    token_service = DummyTokenService()
    listing_service = DummyListingService()
    store = FakeTokenStore()
    settings = copy.deepcopy(get_settings())
    settings.frontend_base_url = None

    app.dependency_overrides.update(
        {
            dependencies.get_ebay_token_service: lambda: token_service,
            dependencies.get_ebay_token_service_if_configured: lambda: token_service,
            dependencies.get_oauth_state_encoder: lambda: OAuthStateEncoder("route-secret"),
            dependencies.get_ebay_listing_service: lambda: listing_service,
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_token_store: lambda: store,
        }
    )

    yield token_service, listing_service, settings, store

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.mark.anyio
async def test_authorize_returns_url_and_state(overrides):
    token_service, _, _, _ = overrides
    async with _client() as client:
        response = await client.get("/api/ebay/auth")

    assert response.status_code == 200
    data = response.json()
    assert data["authorization_url"].startswith("https://auth.sandbox.ebay.com/oauth2/authorize")
    assert token_service.states == [data["state"]]


@pytest.mark.anyio
async def test_authorize_redirects_browsers(overrides):
    async with _client() as client:
        response = await client.get("/api/ebay/auth", headers={"accept": "text/html"})

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://auth.sandbox.ebay.com/")


@pytest.mark.anyio
async def test_authorize_reports_missing_configuration(overrides):
    from app import dependencies

    def _unconfigured():
        raise EbayConfigError(
            "Missing eBay configuration. Required env vars: EBAY_DEV_ID",
            missing=["EBAY_DEV_ID"],
        )

    app.dependency_overrides[dependencies.get_oauth_state_encoder] = _unconfigured
    async with _client() as client:
        response = await client.get("/api/ebay/auth")

    assert response.status_code == 500
    assert response.json()["kind"] == "config"
    assert "EBAY_DEV_ID" in response.json()["error"]


@pytest.mark.anyio
async def test_callback_exchanges_code(overrides):
    token_service, _, _, _ = overrides
    async with _client() as client:
        state = (await client.get("/api/ebay/auth")).json()["state"]
        response = await client.get(
            "/api/ebay/callback", params={"code": "auth-code", "state": state}
        )

    assert response.status_code == 200
    assert response.json() == {"status": "connected"}
    assert token_service.codes == ["auth-code"]


@pytest.mark.anyio
async def test_callback_redirects_to_frontend(overrides):
    _, _, settings, _ = overrides
    settings.frontend_base_url = "https://app.example.com/settings"

    async with _client() as client:
        state = (await client.get("/api/ebay/auth")).json()["state"]
        response = await client.get(
            "/api/ebay/callback",
            params={"code": "auth-code", "state": state},
            headers={"accept": "text/html"},
        )

    assert response.status_code == 307
    location = urlparse(response.headers["location"])
    assert location.netloc == "app.example.com"
    assert parse_qs(location.query) == {"ebay": ["connected"]}


@pytest.mark.anyio
async def test_authorize_rejects_foreign_redirect_target(overrides):
    token_service, _, settings, _ = overrides
    settings.frontend_base_url = "https://app.example.com/settings"

    async with _client() as client:
        response = await client.get(
            "/api/ebay/auth", params={"redirect_to": "https://evil.example/steal"}
        )

    assert response.status_code == 400
    assert token_service.states == []


@pytest.mark.anyio
async def test_callback_returns_to_frontend_redirect_target(overrides):
    _, _, settings, _ = overrides
    settings.frontend_base_url = "https://app.example.com/settings"

    async with _client() as client:
        state = (
            await client.get(
                "/api/ebay/auth",
                params={"redirect_to": "https://app.example.com/listings/42"},
            )
        ).json()["state"]
        response = await client.get(
            "/api/ebay/callback",
            params={"code": "auth-code", "state": state},
            headers={"accept": "text/html"},
        )

    location = urlparse(response.headers["location"])
    assert response.status_code == 307
    assert (location.netloc, location.path) == ("app.example.com", "/listings/42")


@pytest.mark.anyio
async def test_callback_ignores_foreign_redirect_in_signed_state(overrides):
    _, _, settings, _ = overrides
    settings.frontend_base_url = "https://app.example.com/settings"
    state = OAuthStateEncoder("route-secret").encode(
        {
            "redirect_to": "https://evil.example/steal",
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )

    async with _client() as client:
        response = await client.get(
            "/api/ebay/callback",
            params={"code": "auth-code", "state": state},
            headers={"accept": "text/html"},
        )

    assert response.status_code == 307
    assert urlparse(response.headers["location"]).netloc == "app.example.com"


@pytest.mark.anyio
async def test_callback_surfaces_consent_errors(overrides):
    token_service, _, settings, _ = overrides
    settings.frontend_base_url = "https://app.example.com/settings"

    async with _client() as client:
        response = await client.get(
            "/api/ebay/callback",
            params={"error": "access_denied", "error_description": "User declined"},
            headers={"accept": "text/html"},
        )

    assert response.status_code == 307
    query = parse_qs(urlparse(response.headers["location"]).query)
    assert query == {"ebay": ["error"], "message": ["User declined"]}
    assert token_service.codes == []


@pytest.mark.anyio
async def test_callback_without_code_is_an_error(overrides):
    async with _client() as client:
        response = await client.get("/api/ebay/callback")

    assert response.status_code == 400
    assert response.json()["error"] == "No authorization code received"


@pytest.mark.anyio
async def test_callback_rejects_forged_state(overrides):
    forged = OAuthStateEncoder("attacker").encode(
        {"issued_at": datetime.now(timezone.utc).isoformat()}
    )
    async with _client() as client:
        response = await client.get(
            "/api/ebay/callback", params={"code": "c", "state": forged}
        )

    assert response.status_code == 400


@pytest.mark.anyio
async def test_callback_exchange_failure_is_readable(overrides):
    token_service, _, _, _ = overrides
    token_service.exchange_error = EbayApiError(
        "the provided authorization grant is invalid",
        error_id="invalid_grant",
        http_status=400,
    )
    async with _client() as client:
        state = (await client.get("/api/ebay/auth")).json()["state"]
        response = await client.get(
            "/api/ebay/callback", params={"code": "stale", "state": state}
        )

    assert response.status_code == 400
    assert response.json()["error"] == "the provided authorization grant is invalid"


@pytest.mark.anyio
async def test_status_when_connected(overrides):
    async with _client() as client:
        response = await client.get("/api/ebay/status")

    assert response.status_code == 200
    data = response.json()
    assert data["configured"] is True
    assert data["connected"] is True
    assert data["needs_reauth"] is False
    assert data["expires_at"].startswith("2026-05-01")


@pytest.mark.anyio
async def test_status_when_unconfigured(overrides):
    from app import dependencies

    app.dependency_overrides[dependencies.get_ebay_token_service_if_configured] = lambda: None
    async with _client() as client:
        response = await client.get("/api/ebay/status")

    assert response.status_code == 200
    data = response.json()
    assert data["configured"] is False
    assert data["connected"] is False
    assert data["needs_reauth"] is False


@pytest.mark.anyio
async def test_disconnect(overrides):
    _, _, _, store = overrides
    async with _client() as client:
        first = await client.post("/api/ebay/disconnect")
        second = await client.post("/api/ebay/disconnect")

    assert first.json() == {"success": True}
    assert second.status_code == 200
    assert store.deletes == 2


@pytest.mark.anyio
async def test_disconnect_without_ebay_credentials(overrides, tmp_path):
    from app import dependencies

    def _unconfigured():
        raise EbayConfigError(
            "Missing eBay configuration. Required env vars: EBAY_CLIENT_ID",
            missing=["EBAY_CLIENT_ID"],
        )

    store = SQLiteTokenStore(str(tmp_path / "tokens.db"), TokenCipherService(secret="k"))
    issued = datetime(2026, 1, 10, tzinfo=timezone.utc)
    store.replace(
        StoredEbayToken(
            access_token="access",
            refresh_token="refresh",
            access_expires_at=issued + timedelta(hours=2),
            refresh_expires_at=issued + timedelta(days=540),
            updated_at=issued,
        )
    )
    app.dependency_overrides.update(
        {
            dependencies.get_ebay_config: _unconfigured,
            dependencies.get_ebay_token_service: _unconfigured,
            dependencies.get_token_store: lambda: store,
        }
    )

    async with _client() as client:
        response = await client.post("/api/ebay/disconnect")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert store.get() is None


_LISTING_PAYLOAD = {
    "item_id": "42",
    "description": "\nVintage denim jacket with brass buttons\nSize M.",
    "condition": "like_new",
    "price": 35,
    "category_id": "57988",
    "images": ["https://img.example/1.jpg"],
}


@pytest.mark.anyio
async def test_post_listing_publishes_fixed_price(overrides):
    _, listing_service, _, _ = overrides
    async with _client() as client:
        response = await client.post("/api/ebay/listings", json=_LISTING_PAYLOAD)

    assert response.status_code == 200
    assert response.json()["ebay_listing_id"] == "2200"
    assert response.json()["offer_id"] == "OFFER-9"

    params = listing_service.params[0]
    assert params.sku.startswith("ITEM-42-")
    assert params.title == "Vintage denim jacket with brass buttons"
    assert params.condition == "LIKE_NEW"
    assert params.duration == "GTC"
    assert params.starting_bid is None


@pytest.mark.anyio
async def test_post_auction_listing_defaults_duration(overrides):
    _, listing_service, _, _ = overrides
    payload = dict(_LISTING_PAYLOAD, format="AUCTION", starting_bid=9.99)
    async with _client() as client:
        response = await client.post("/api/ebay/listings", json=payload)

    assert response.status_code == 200
    params = listing_service.params[0]
    assert params.duration == "DAYS_7"
    assert params.starting_bid == 9.99


@pytest.mark.anyio
async def test_post_listing_requires_connected_account(overrides):
    _, listing_service, _, _ = overrides
    listing_service.error = EbayNotConnectedError()
    async with _client() as client:
        response = await client.post("/api/ebay/listings", json=_LISTING_PAYLOAD)

    assert response.status_code == 401
    assert response.json()["kind"] == "not_connected"
    assert "connect your eBay account" in response.json()["error"]


@pytest.mark.anyio
async def test_post_listing_maps_known_api_errors(overrides):
    _, listing_service, _, _ = overrides
    listing_service.error = EbayApiError(
        "Offer entity already exists.", error_id="25002", http_status=400
    )
    async with _client() as client:
        response = await client.post("/api/ebay/listings", json=_LISTING_PAYLOAD)

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "This item is already listed on eBay."
    assert data["error_id"] == "25002"
    assert data["errors"] == []


@pytest.mark.anyio
async def test_post_listing_rate_limited(overrides):
    _, listing_service, _, _ = overrides
    listing_service.error = EbayRateLimitError(45)
    async with _client() as client:
        response = await client.post("/api/ebay/listings", json=_LISTING_PAYLOAD)

    assert response.status_code == 429
    assert response.headers["retry-after"] == "45"
