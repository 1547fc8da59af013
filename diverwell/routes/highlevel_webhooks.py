"""
GoHighLevel Webhook Handler
Keeps CRM clients in step with HighLevel contacts and appointments
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import GHL_WEBHOOK_SECRET
from ..database import get_db
from ..domain.crm.service import CrmService
from ..webhook_security import verify_highlevel_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

CONTACT_EVENTS = ("ContactCreate", "ContactUpdate", "ContactTagUpdate")


def _section(payload: dict, key: str) -> dict:
    """Nested contact/appointment object, or the flat payload when HighLevel sends it top-level"""
    section = payload.get(key)
    return section if isinstance(section, dict) else payload


@router.post("/highlevel")
async def handle_highlevel_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Handle HighLevel webhook events

    Events handled:
    - ContactCreate / ContactUpdate / ContactTagUpdate - upsert the CRM client
    - AppointmentCreate - record the booking on the client
    """
    if not GHL_WEBHOOK_SECRET:
        logger.error("❌ GHL_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=503, detail="HighLevel webhooks not configured")

    _, body = await verify_highlevel_webhook(request, GHL_WEBHOOK_SECRET)

    try:
        payload = json.loads(body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("❌ Invalid JSON payload")
        raise HTTPException(status_code=400, detail="Invalid JSON") from None

    if not isinstance(payload, dict):
        logger.error("❌ Webhook payload is not a JSON object")
        raise HTTPException(status_code=400, detail="Webhook payload must be a JSON object")

    event_type = payload.get("type")
    logger.info(f"📥 Received HighLevel webhook: {event_type}")

    service = CrmService(db)
    client = None
    if event_type in CONTACT_EVENTS:
        client = service.upsert_from_highlevel(_section(payload, "contact"))
    elif event_type == "AppointmentCreate":
        client = service.record_booking(_section(payload, "appointment"))
    else:
        logger.info(f"ℹ️ Unhandled event type: {event_type}")

    return {"status": "success", "event_type": event_type, "clientId": client.id if client else None}
