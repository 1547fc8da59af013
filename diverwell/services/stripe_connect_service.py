"""
Stripe Connect Service
Express account onboarding and commission transfers over the Stripe REST API
"""
import logging
from typing import Any, Optional

import httpx

from ..config import FRONTEND_URL, STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)

STRIPE_API_BASE = "https://api.stripe.com/v1"


class StripeError(Exception):
    """Raised when Stripe rejects a request or is not configured"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _headers(idempotency_key: Optional[str] = None) -> dict:
    if not STRIPE_SECRET_KEY:
        raise StripeError("Stripe is not configured")
    headers = {"Authorization": f"Bearer {STRIPE_SECRET_KEY}"}
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key
    return headers


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message") or response.text
    except ValueError:
        return response.text


async def _request(
    method: str, path: str, data: Optional[dict] = None, idempotency_key: Optional[str] = None
) -> dict[str, Any]:
    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.request(
            method,
            f"{STRIPE_API_BASE}{path}",
            headers=_headers(idempotency_key),
            data=data,
        )

    if response.status_code >= 400:
        message = _error_message(response)
        logger.error(f"❌ Stripe {method} {path} failed ({response.status_code}): {message}")
        raise StripeError(message, response.status_code)
    return response.json()


async def create_express_account(email: str, affiliate_id: int) -> dict[str, Any]:
    """Create an Express connected account able to receive transfers"""
    account = await _request(
        "POST",
        "/accounts",
        data={
            "type": "express",
            "email": email,
            "capabilities[transfers][requested]": "true",
            "metadata[affiliate_id]": str(affiliate_id),
        },
    )
    logger.info(f"✅ Stripe Connect account created: {account.get('id')}")
    return account


async def create_account_link(account_id: str) -> str:
    """Onboarding URL for a connected account"""
    link = await _request(
        "POST",
        "/account_links",
        data={
            "account": account_id,
            "refresh_url": f"{FRONTEND_URL}/affiliate/payouts?stripe=refresh",
            "return_url": f"{FRONTEND_URL}/affiliate/payouts?stripe=return",
            "type": "account_onboarding",
        },
    )
    return link["url"]


async def retrieve_account(account_id: str) -> dict[str, Any]:
    return await _request("GET", f"/accounts/{account_id}")


async def create_transfer(
    account_id: str, amount_cents: int, description: str, idempotency_key: str
) -> dict[str, Any]:
    """Move commission funds to a connected account (USD, cents)"""
    transfer = await _request(
        "POST",
        "/transfers",
        data={
            "amount": str(amount_cents),
            "currency": "usd",
            "destination": account_id,
            "description": description,
        },
        idempotency_key=idempotency_key,
    )
    logger.info(f"💸 Stripe transfer {transfer.get('id')} created for {amount_cents} cents to {account_id}")
    return transfer


def onboarding_status(account: dict[str, Any]) -> str:
    """Collapse a Stripe account object to not_started / pending / complete"""
    if account.get("details_submitted") and account.get("payouts_enabled"):
        return "complete"
    if account.get("id"):
        return "pending"
    return "not_started"
