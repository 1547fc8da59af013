"""
Stripe Webhook Handler
Completes affiliate commission transfers and tracks Connect onboarding
"""

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import STRIPE_WEBHOOK_SECRET
from ..database import get_db
from ..domain.affiliates.payout_service import PayoutService, notify_payout, payout_notification
from ..domain.affiliates.repository import AffiliateRepository
from ..domain.affiliates.service import AffiliateService
from ..webhook_security import verify_stripe_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def handle_stripe_webhook(
    request: Request, background_tasks: BackgroundTasks, db: Session = Depends(get_db)
):
    """
    Handle Stripe webhook events

    Events handled:
    - transfer.paid - commission transfer landed, payment COMPLETED
    - transfer.failed / transfer.reversed - payment FAILED, earnings restored
    - account.updated - Connect onboarding status and payout capability
    """
    if not STRIPE_WEBHOOK_SECRET:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=503, detail="Stripe webhooks not configured")

    _, body = await verify_stripe_webhook(request, STRIPE_WEBHOOK_SECRET)

    try:
        payload = json.loads(body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("❌ Invalid JSON payload")
        raise HTTPException(status_code=400, detail="Invalid JSON") from None

    if not isinstance(payload, dict):
        logger.error("❌ Webhook payload is not a JSON object")
        raise HTTPException(status_code=400, detail="Webhook payload must be a JSON object")

    event_type = payload.get("type")
    data = payload.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        obj = {}
    logger.info(f"📥 Received Stripe webhook: {event_type}")

    payouts = PayoutService(db)
    if event_type == "transfer.paid":
        payment = payouts.mark_transfer_paid(obj.get("id", ""))
        notification = payout_notification(payment) if payment else None
        if notification:
            background_tasks.add_task(notify_payout, notification)

    elif event_type in ("transfer.failed", "transfer.reversed"):
        reason = obj.get("failure_message") or event_type.replace(".", " ")
        payouts.mark_transfer_failed(obj.get("id", ""), reason)

    elif event_type == "account.updated":
        affiliate = AffiliateRepository.get_by_stripe_account(db, obj.get("id", ""))
        if affiliate:
            AffiliateService(db).apply_account_update(affiliate, obj)
            logger.info(
                f"✅ Affiliate {affiliate.affiliate_code} Stripe status: {affiliate.stripe_connect_onboarding_status}"
            )
        else:
            logger.info(f"ℹ️ account.updated for unknown account {obj.get('id')}")

    else:
        logger.info(f"ℹ️ Unhandled event type: {event_type}")

    return {"status": "success", "event_type": event_type}
