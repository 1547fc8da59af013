"""
GoHighLevel Service
Contact sync for the CRM and appointment reads for the unified calendar
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from ..config import GHL_API_KEY, GHL_LOCATION_ID

logger = logging.getLogger(__name__)

HIGHLEVEL_API_BASE = "https://rest.gohighlevel.com/v1"
HIGHLEVEL_API_VERSION = "2021-07-28"


def is_highlevel_available() -> bool:
    return bool(GHL_API_KEY and GHL_LOCATION_ID)


def _headers(api_key: Optional[str] = None) -> dict:
    return {
        "Authorization": f"Bearer {api_key or GHL_API_KEY}",
        "Content-Type": "application/json",
        "Version": HIGHLEVEL_API_VERSION,
    }


def build_tags(client: dict) -> list[str]:
    """CRM state mirrored as 'Prefix:VALUE' contact tags"""
    tags = ["Diver Well Training"]
    if client.get("subscription_type"):
        tags.append(f"Subscription:{client['subscription_type']}")
    if client.get("status"):
        tags.append(f"Status:{client['status']}")
    if client.get("partner_status") and client["partner_status"] != "NONE":
        tags.append(f"Partner:{client['partner_status']}")
    return tags


def build_custom_fields(client: dict) -> dict:
    return {
        "subscriptionType": client.get("subscription_type"),
        "subscriptionStatus": client.get("status"),
        "partnerStatus": client.get("partner_status"),
        "monthlyRevenue": client.get("monthly_revenue"),
    }


def split_name(name: Optional[str], email: str) -> tuple[str, str]:
    first, _, last = (name or "").strip().partition(" ")
    return first or email.split("@")[0], last.strip()


def _tag_value(tags: list, prefix: str) -> Optional[str]:
    for tag in tags or []:
        if isinstance(tag, str) and tag.startswith(prefix):
            return tag[len(prefix):].strip().upper() or None
    return None


def extract_contact_fields(contact: dict) -> dict:
    """
    Map a HighLevel contact payload to CRM client columns.
    Custom fields win over 'Subscription:' / 'Status:' / 'Partner:' tags.
    """
    custom = contact.get("customField") or contact.get("customFields") or {}
    if not isinstance(custom, dict):
        custom = {}
    tags = contact.get("tags") or []

    first = contact.get("firstName") or ""
    last = contact.get("lastName") or ""
    name = f"{first} {last}".strip() or contact.get("name") or contact.get("email")

    fields = {
        "name": name,
        "email": (contact.get("email") or "").strip().lower() or None,
        "phone": contact.get("phone") or None,
        "subscription_type": custom.get("subscriptionType") or _tag_value(tags, "Subscription:"),
        "status": custom.get("subscriptionStatus") or _tag_value(tags, "Status:"),
        "partner_status": custom.get("partnerStatus") or _tag_value(tags, "Partner:"),
        "tags": [t for t in tags if isinstance(t, str)],
    }
    return {key: value for key, value in fields.items() if value}


async def create_contact(client: dict) -> Optional[str]:
    """Create a contact; returns its id or None on failure"""
    first, last = split_name(client.get("name"), client["email"])
    payload = {
        "firstName": first,
        "lastName": last,
        "email": client["email"],
        "phone": client.get("phone") or "",
        "locationId": GHL_LOCATION_ID,
        "tags": build_tags(client),
        "customField": build_custom_fields(client),
    }
    try:
        async with httpx.AsyncClient(timeout=30.0) as http_client:
            response = await http_client.post(
                f"{HIGHLEVEL_API_BASE}/contacts/", headers=_headers(), json=payload
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Error creating HighLevel contact: {e}")
        return None

    if response.status_code not in (200, 201):
        logger.error(f"❌ HighLevel contact create failed ({response.status_code}): {response.text}")
        return None
    contact_id = response.json().get("contact", {}).get("id")
    logger.info(f"✅ HighLevel contact created: {contact_id}")
    return contact_id


async def update_contact(contact_id: str, client: dict) -> bool:
    first, last = split_name(client.get("name"), client["email"])
    payload = {
        "firstName": first,
        "lastName": last,
        "email": client["email"],
        "phone": client.get("phone") or "",
        "tags": build_tags(client),
        "customField": build_custom_fields(client),
    }
    try:
        async with httpx.AsyncClient(timeout=30.0) as http_client:
            response = await http_client.put(
                f"{HIGHLEVEL_API_BASE}/contacts/{contact_id}", headers=_headers(), json=payload
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Error updating HighLevel contact {contact_id}: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"❌ HighLevel contact update failed ({response.status_code}): {response.text}")
        return False
    return True


async def sync_contact(client: dict) -> Optional[str]:
    """Push a CRM client: update when a contact id is known, otherwise create"""
    if not is_highlevel_available():
        logger.info("ℹ️ HighLevel not configured, skipping contact sync")
        return None

    contact_id = client.get("highlevel_contact_id")
    if contact_id:
        return contact_id if await update_contact(contact_id, client) else None
    return await create_contact(client)


async def list_appointments(
    api_key: str, calendar_id: str, start: datetime, end: datetime
) -> list[dict[str, Any]]:
    """
    Appointments of one HighLevel calendar in [start, end).

    Raises:
        httpx.HTTPError: request failed or returned an error status
    """
    async with httpx.AsyncClient(timeout=30.0) as http_client:
        response = await http_client.get(
            f"{HIGHLEVEL_API_BASE}/appointments/",
            headers=_headers(api_key),
            params={
                "calendarId": calendar_id,
                "startDate": int(start.replace(tzinfo=timezone.utc).timestamp() * 1000),
                "endDate": int(end.replace(tzinfo=timezone.utc).timestamp() * 1000),
                "includeAll": "true",
            },
        )
        response.raise_for_status()
    return response.json().get("appointments", [])


async def check_api_key(api_key: str) -> bool:
    """Cheap authenticated call used to test a stored connection"""
    try:
        async with httpx.AsyncClient(timeout=15.0) as http_client:
            response = await http_client.get(
                f"{HIGHLEVEL_API_BASE}/calendars/", headers=_headers(api_key)
            )
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ HighLevel connection test failed: {e}")
        return False
    return response.status_code == 200
