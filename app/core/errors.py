"""
eBay error taxonomy.

Every failure raised by the eBay integration derives from ``EbayError`` and
carries an ``EbayErrorKind``. Callers branch on ``error.kind`` instead of on
the concrete class, and ``get_ebay_error_message`` reduces any of them to text
that can be shown to a user.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class EbayErrorKind(str, Enum):
    """Failure categories surfaced by the eBay integration."""

    CONFIG = "config"
    NOT_CONNECTED = "not_connected"
    TOKEN_EXPIRED = "token_expired"
    AUTH = "auth"
    API = "api"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"


class EbayErrorParameter(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    name: Optional[str] = None
    value: Optional[str] = None


class EbayErrorDetail(BaseModel):
    """One entry of the ``errors`` array returned by eBay REST APIs."""

    model_config = ConfigDict(
        populate_by_name=True, coerce_numbers_to_str=True, extra="ignore"
    )

    error_id: Optional[str] = Field(None, alias="errorId")
    domain: Optional[str] = None
    subdomain: Optional[str] = None
    category: Optional[str] = None
    message: Optional[str] = None
    long_message: Optional[str] = Field(None, alias="longMessage")
    parameters: List[EbayErrorParameter] = Field(default_factory=list)


class EbayError(Exception):
    """Base class for eBay integration failures."""

    kind: EbayErrorKind = EbayErrorKind.API

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EbayConfigError(EbayError):
    """Raised when required eBay credentials are missing from the environment."""

    kind = EbayErrorKind.CONFIG

    def __init__(self, message: str, missing: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing = tuple(missing)


class EbayAuthError(EbayError):
    """Raised when token material cannot be stored, read or understood."""

    kind = EbayErrorKind.AUTH

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class EbayNotConnectedError(EbayError):
    kind = EbayErrorKind.NOT_CONNECTED

    def __init__(self) -> None:
        super().__init__(
            "eBay account not connected. Please connect your eBay account in Settings."
        )


class EbayTokenExpiredError(EbayAuthError):
    """The refresh token can no longer mint access tokens; reauthorize."""

    kind = EbayErrorKind.TOKEN_EXPIRED

    def __init__(self) -> None:
        super().__init__(
            "eBay session expired. Please reconnect your eBay account.",
            code="token_expired",
        )


class EbayApiError(EbayError):
    """Non-2xx response from an eBay endpoint."""

    kind = EbayErrorKind.API

    def __init__(
        self,
        message: str,
        *,
        error_id: str,
        http_status: int,
        errors: Optional[List[EbayErrorDetail]] = None,
    ) -> None:
        super().__init__(message)
        self.error_id = error_id
        self.http_status = http_status
        self.errors = list(errors or [])


class EbayRateLimitError(EbayError):
    kind = EbayErrorKind.RATE_LIMIT

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"Rate limited. Retry after {retry_after} seconds")
        self.retry_after = retry_after


class EbayNetworkError(EbayError):
    """No response was received from eBay after exhausting retries."""

    kind = EbayErrorKind.NETWORK


def _parse_details(raw_errors: list[Any]) -> List[EbayErrorDetail]:
    details: List[EbayErrorDetail] = []
    for raw in raw_errors:
        if not isinstance(raw, dict):
            continue
        try:
            details.append(EbayErrorDetail.model_validate(raw))
        except ValidationError:
            error_id = raw.get("errorId")
            message = raw.get("message")
            details.append(
                EbayErrorDetail(
                    error_id=None if error_id is None else str(error_id),
                    message=None if message is None else str(message),
                )
            )
    return details


def parse_ebay_error(payload: Any, http_status: int) -> EbayApiError:
    """Build an ``EbayApiError`` from a decoded error response body."""
    if isinstance(payload, dict):
        raw_errors = payload.get("errors")
        if isinstance(raw_errors, list):
            details = _parse_details(raw_errors)
            primary = details[0] if details else None
            message = (primary.message if primary else None) or "Unknown eBay API error"
            error_id = (primary.error_id if primary else None) or "unknown"
            return EbayApiError(
                message, error_id=error_id, http_status=http_status, errors=details
            )

        # OAuth endpoints use {"error": ..., "error_description": ...}
        if "error" in payload:
            error_code = str(payload["error"])
            message = str(payload.get("error_description") or error_code)
            return EbayApiError(message, error_id=error_code, http_status=http_status)

    return EbayApiError(
        "Unknown eBay API error", error_id="unknown", http_status=http_status
    )


_API_ERROR_MESSAGES = {
    "25002": "This item is already listed on eBay.",
    "25014": "Please select a valid eBay category.",
    "25710": "eBay requires at least one image for listings.",
}


def get_ebay_error_message(error: BaseException) -> str:
    """Translate an exception into text suitable for end users."""
    kind = getattr(error, "kind", None)
    if kind == EbayErrorKind.NOT_CONNECTED:
        return "Please connect your eBay account in Settings to post listings."
    if kind == EbayErrorKind.TOKEN_EXPIRED:
        return "Your eBay session has expired. Please reconnect your account."
    if kind == EbayErrorKind.RATE_LIMIT:
        return (
            "eBay is temporarily limiting requests. "
            f"Please wait {error.retry_after} seconds and try again."  # type: ignore[attr-defined]
        )
    if kind == EbayErrorKind.NETWORK:
        return "Could not reach eBay. Please check your connection and try again."
    if kind == EbayErrorKind.API:
        return _API_ERROR_MESSAGES.get(error.error_id, error.message)  # type: ignore[attr-defined]
    if isinstance(error, EbayError):
        return error.message
    if str(error):
        return str(error)
    return "An unexpected error occurred with eBay."


__all__ = [
    "EbayApiError",
    "EbayAuthError",
    "EbayConfigError",
    "EbayError",
    "EbayErrorDetail",
    "EbayErrorKind",
    "EbayErrorParameter",
    "EbayNetworkError",
    "EbayNotConnectedError",
    "EbayRateLimitError",
    "EbayTokenExpiredError",
    "get_ebay_error_message",
    "parse_ebay_error",
]
