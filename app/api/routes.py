"""
FastAPI routes for connecting eBay and publishing listings.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.core.errors import EbayError, EbayErrorKind, get_ebay_error_message
from app.dependencies import (
    get_app_settings,
    get_ebay_listing_service,
    get_ebay_token_service,
    get_ebay_token_service_if_configured,
    get_oauth_state_encoder,
    get_token_store,
)
from app.schemas import (
    EbayListingParams,
    EbayStatusResponse,
    PostListingRequest,
    PostListingResponse,
)
from app.services.ebay_listing import map_condition_to_ebay

router = APIRouter()
logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    EbayErrorKind.CONFIG: HTTPStatus.INTERNAL_SERVER_ERROR,
    EbayErrorKind.AUTH: HTTPStatus.INTERNAL_SERVER_ERROR,
    EbayErrorKind.NOT_CONNECTED: HTTPStatus.UNAUTHORIZED,
    EbayErrorKind.TOKEN_EXPIRED: HTTPStatus.UNAUTHORIZED,
    EbayErrorKind.RATE_LIMIT: HTTPStatus.TOO_MANY_REQUESTS,
    EbayErrorKind.NETWORK: HTTPStatus.BAD_GATEWAY,
}


async def ebay_error_handler(request: Request, exc: EbayError) -> JSONResponse:
    """Render any eBay failure as a user-readable JSON error."""
    content: dict[str, Any] = {
        "error": get_ebay_error_message(exc),
        "kind": exc.kind.value,
    }
    headers: dict[str, str] = {}

    if exc.kind is EbayErrorKind.API:
        upstream = exc.http_status  # type: ignore[attr-defined]
        status_code = upstream if 400 <= upstream < 600 else HTTPStatus.BAD_GATEWAY
        content["error_id"] = exc.error_id  # type: ignore[attr-defined]
        content["errors"] = [
            detail.model_dump(by_alias=True, exclude_none=True)
            for detail in exc.errors  # type: ignore[attr-defined]
        ]
    else:
        status_code = _ERROR_STATUS[exc.kind]
    if exc.kind is EbayErrorKind.RATE_LIMIT:
        headers["Retry-After"] = str(exc.retry_after)  # type: ignore[attr-defined]

    logger.warning("eBay request failed (%s): %s", exc.kind.value, exc.message)
    return JSONResponse(status_code=int(status_code), content=content, headers=headers)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _same_origin(target: str, base: Any) -> bool:
    if not base:
        return False
    try:
        candidate, allowed = httpx.URL(target), httpx.URL(str(base))
    except httpx.InvalidURL:
        return False
    return (candidate.scheme, candidate.host, candidate.port) == (
        allowed.scheme,
        allowed.host,
        allowed.port,
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/ebay/auth", status_code=HTTPStatus.OK)
async def start_ebay_oauth_flow(
    request: Request,
    token_service: Annotated[Any, Depends(get_ebay_token_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    redirect_to: str | None = Query(
        default=None,
        description="Optional URL to return to once the account is connected.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the eBay consent screen.",
    ),
) -> Any:
    """Kick off the OAuth flow by generating a state token and authorization URL."""
    if redirect_to and not _same_origin(redirect_to, settings.frontend_base_url):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="redirect_to must point at the configured frontend.",
        )
    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "redirect_to": redirect_to,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = token_service.build_authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    return {"authorization_url": authorization_url, "state": state}


def _verify_state(state: str, state_encoder: Any, ttl_seconds: int) -> dict:
    state_data = state_encoder.decode(state)

    issued_at_raw = state_data.get("issued_at")
    if not issued_at_raw:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing issued_at in state token.",
        )
    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    if datetime.now(timezone.utc) - issued_at > timedelta(seconds=ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )
    return state_data


def _callback_response(
    *,
    connected: bool,
    message: Optional[str],
    redirect_target: Optional[str],
    redirect_browser: bool,
) -> Response:
    if redirect_target and redirect_browser:
        params = {"ebay": "connected" if connected else "error"}
        if message and not connected:
            params["message"] = message
        url = httpx.URL(str(redirect_target)).copy_merge_params(params)
        return RedirectResponse(url=str(url), status_code=HTTPStatus.TEMPORARY_REDIRECT)

    if connected:
        return JSONResponse(content={"status": "connected"})
    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST,
        content={"status": "error", "error": message},
    )


@router.get("/ebay/callback")
async def handle_ebay_oauth_callback(
    request: Request,
    token_service: Annotated[Any, Depends(get_ebay_token_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str | None = Query(default=None, description="Authorization code from eBay."),
    state: str | None = Query(default=None, description="OAuth state token."),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    """Complete the OAuth exchange and store the new token pair."""
    redirect_target = settings.frontend_base_url
    redirect_browser = redirect or _wants_html(request)

    if error:
        logger.warning("eBay OAuth error: %s %s", error, error_description or "")
        return _callback_response(
            connected=False,
            message=error_description or error,
            redirect_target=redirect_target,
            redirect_browser=redirect_browser,
        )
    if not code:
        return _callback_response(
            connected=False,
            message="No authorization code received",
            redirect_target=redirect_target,
            redirect_browser=redirect_browser,
        )
    if not state:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Missing OAuth state.")

    state_data = _verify_state(state, state_encoder, settings.oauth.state_ttl_seconds)
    state_redirect = state_data.get("redirect_to")
    if state_redirect and _same_origin(state_redirect, settings.frontend_base_url):
        redirect_target = state_redirect

    try:
        await token_service.exchange_code(code)
    except EbayError as exc:
        logger.warning("eBay token exchange failed: %s", exc.message)
        return _callback_response(
            connected=False,
            message=get_ebay_error_message(exc),
            redirect_target=redirect_target,
            redirect_browser=redirect_browser,
        )

    return _callback_response(
        connected=True,
        message=None,
        redirect_target=redirect_target,
        redirect_browser=redirect_browser,
    )


@router.get("/ebay/status", response_model=EbayStatusResponse)
async def get_ebay_status(
    token_service: Annotated[Any, Depends(get_ebay_token_service_if_configured)],
) -> EbayStatusResponse:
    """Report whether eBay is configured and connected; never refreshes tokens."""
    if token_service is None:
        return EbayStatusResponse(
            configured=False,
            connected=False,
            needs_reauth=False,
            message="eBay integration is not configured",
        )

    status = token_service.get_connection_status()
    return EbayStatusResponse(
        configured=True,
        connected=status.connected,
        needs_reauth=status.needs_reauth,
        expires_at=status.expires_at,
    )


@router.post("/ebay/disconnect")
async def disconnect_ebay(
    store: Annotated[Any, Depends(get_token_store)],
) -> dict:
    """Forget the stored tokens; needs no eBay credentials."""
    store.delete()
    logger.info("Disconnected eBay account")
    return {"success": True}


@router.post("/ebay/listings", response_model=PostListingResponse)
async def post_ebay_listing(
    payload: PostListingRequest,
    listing_service: Annotated[Any, Depends(get_ebay_listing_service)],
) -> PostListingResponse:
    """Create, price and publish a listing on eBay."""
    title = payload.resolved_title()
    if not title:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail="A listing title or a non-blank description is required.",
        )

    is_auction = payload.format == "AUCTION"
    params = EbayListingParams(
        sku=f"ITEM-{payload.item_id}-{int(time.time() * 1000)}",
        title=title,
        description=payload.description,
        condition=map_condition_to_ebay(payload.condition),
        price=payload.price,
        quantity=1,
        category_id=payload.category_id,
        images=payload.images,
        format=payload.format,
        duration=(payload.duration or "DAYS_7") if is_auction else "GTC",
        starting_bid=payload.starting_bid if is_auction else None,
    )

    published = await listing_service.create_and_publish_listing(params)
    return PostListingResponse(
        offer_id=published.offer_id,
        ebay_listing_id=published.listing_id,
    )


__all__ = ["ebay_error_handler", "router"]
