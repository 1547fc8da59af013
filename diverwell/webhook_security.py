"""
Webhook Security Module

Signature verification for inbound webhooks (Stripe, GoHighLevel):
- Constant-time signature comparison
- Timestamp validation against replayed deliveries
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300

HIGHLEVEL_SIGNATURE_HEADER = "X-GHL-Signature"


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time"""
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(
    timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS, now: Optional[int] = None
) -> bool:
    """
    Verify webhook timestamp is within acceptable range.

    Args:
        timestamp: Unix timestamp as string
        max_age: Maximum age in seconds
        now: Current unix time (defaults to time.time())

    Returns:
        True if timestamp is valid, False otherwise
    """
    if not timestamp:
        return False

    try:
        webhook_time = int(timestamp)
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    current_time = int(time.time()) if now is None else now
    age = abs(current_time - webhook_time)
    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def _reject(raise_on_failure: bool, detail: str, raw_body: bytes) -> tuple[bool, bytes]:
    if raise_on_failure:
        raise HTTPException(status_code=401, detail=detail)
    return False, raw_body


async def verify_stripe_webhook(
    request: Request, secret: str, raise_on_failure: bool = True
) -> tuple[bool, bytes]:
    """
    Verify Stripe webhook signature.

    Stripe uses:
    - Header: 'Stripe-Signature' (format: "t=<timestamp>,v1=<signature>[,v1=<signature>]")
    - Signed payload: "<timestamp>.<raw body>"

    Returns:
        Tuple of (is_valid, raw_body)
    """
    raw_body = await request.body()
    signature_header = request.headers.get("Stripe-Signature", "")

    logger.debug("📥 Stripe webhook received")

    if not signature_header:
        logger.warning("🚫 Stripe webhook missing signature header")
        return _reject(raise_on_failure, "Missing webhook signature", raw_body)

    timestamp = None
    signatures = []
    for item in signature_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1" and value:
            signatures.append(value)

    if not timestamp or not signatures:
        logger.warning("🚫 Stripe webhook invalid signature format")
        return _reject(raise_on_failure, "Invalid signature format", raw_body)

    if not verify_timestamp(timestamp):
        return _reject(raise_on_failure, "Webhook timestamp expired", raw_body)

    signed_payload = timestamp.encode("utf-8") + b"." + raw_body
    expected_signature = compute_hmac_sha256(secret, signed_payload)

    if not any(constant_time_compare(expected_signature, sig) for sig in signatures):
        logger.warning("🚫 Stripe webhook signature mismatch")
        return _reject(raise_on_failure, "Invalid webhook signature", raw_body)

    logger.debug("✅ Stripe webhook signature verified")
    return True, raw_body


async def verify_highlevel_webhook(
    request: Request, secret: str, raise_on_failure: bool = True
) -> tuple[bool, bytes]:
    """
    Verify a GoHighLevel workflow webhook.

    The workflow is configured to send 'X-GHL-Signature: sha256=<hex digest>'
    computed over the raw body with the shared webhook secret.

    Returns:
        Tuple of (is_valid, raw_body)
    """
    raw_body = await request.body()
    signature_header = request.headers.get(HIGHLEVEL_SIGNATURE_HEADER, "")

    logger.debug("📥 HighLevel webhook received")

    if not signature_header:
        logger.warning("🚫 HighLevel webhook missing signature header")
        return _reject(raise_on_failure, "Missing webhook signature", raw_body)

    expected_header = f"sha256={compute_hmac_sha256(secret, raw_body)}"
    if not constant_time_compare(expected_header, signature_header):
        logger.warning("🚫 HighLevel webhook signature mismatch")
        return _reject(raise_on_failure, "Invalid webhook signature", raw_body)

    logger.debug("✅ HighLevel webhook signature verified")
    return True, raw_body


def create_webhook_signature(
    secret: str, payload: bytes, provider: str = "generic", timestamp: Optional[int] = None
) -> str:
    """
    Create a webhook signature for testing or outgoing webhooks.

    Args:
        secret: Signing secret
        payload: Request body bytes
        provider: Provider format ('generic', 'highlevel', 'stripe')
        timestamp: Unix time to sign with (Stripe only, defaults to now)

    Returns:
        Signature string in provider's format
    """
    if provider == "highlevel":
        return f"sha256={compute_hmac_sha256(secret, payload)}"
    if provider == "stripe":
        ts = int(time.time()) if timestamp is None else timestamp
        sig = compute_hmac_sha256(secret, str(ts).encode("utf-8") + b"." + payload)
        return f"t={ts},v1={sig}"
    return compute_hmac_sha256(secret, payload)
