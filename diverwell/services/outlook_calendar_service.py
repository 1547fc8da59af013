"""
Outlook Calendar Service
Microsoft Graph OAuth token exchange and refresh, calendarView reads and event creation
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import OUTLOOK_CLIENT_ID, OUTLOOK_CLIENT_SECRET, OUTLOOK_REDIRECT_URI, OUTLOOK_TENANT
from ..models_calendar import CalendarSyncCredential
from ..shared.crypto import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

MICROSOFT_LOGIN_URL = f"https://login.microsoftonline.com/{OUTLOOK_TENANT}/oauth2/v2.0"
MICROSOFT_AUTH_URL = f"{MICROSOFT_LOGIN_URL}/authorize"
MICROSOFT_TOKEN_URL = f"{MICROSOFT_LOGIN_URL}/token"  # noqa: S105 - OAuth endpoint URL
GRAPH_API = "https://graph.microsoft.com/v1.0"
OUTLOOK_CALENDAR_SCOPES = ["offline_access", "User.Read", "Calendars.ReadWrite"]


def is_outlook_configured() -> bool:
    return bool(OUTLOOK_CLIENT_ID and OUTLOOK_CLIENT_SECRET)


def build_authorization_url(state: str) -> str:
    params = {
        "client_id": OUTLOOK_CLIENT_ID,
        "redirect_uri": OUTLOOK_REDIRECT_URI,
        "response_type": "code",
        "response_mode": "query",
        "scope": " ".join(OUTLOOK_CALENDAR_SCOPES),
        "prompt": "select_account",
        "state": state,
    }
    return f"{MICROSOFT_AUTH_URL}?{urlencode(params)}"


def _graph_datetime(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def _calendar_path(calendar_id: Optional[str]) -> str:
    return f"/me/calendars/{calendar_id}" if calendar_id else "/me"


async def exchange_code(code: str) -> dict[str, Any]:
    """
    Exchange an authorization code for tokens and look up the mailbox.

    Returns access_token, refresh_token, expires_in and email.
    Raises HTTPException(400) when Microsoft rejects the exchange.
    """
    async with httpx.AsyncClient(timeout=30.0) as client:
        token_response = await client.post(
            MICROSOFT_TOKEN_URL,
            data={
                "code": code,
                "client_id": OUTLOOK_CLIENT_ID,
                "client_secret": OUTLOOK_CLIENT_SECRET,
                "redirect_uri": OUTLOOK_REDIRECT_URI,
                "grant_type": "authorization_code",
                "scope": " ".join(OUTLOOK_CALENDAR_SCOPES),
            },
        )

        if token_response.status_code != 200:
            logger.error(f"❌ Outlook token exchange failed: {token_response.text}")
            raise HTTPException(status_code=400, detail="Failed to exchange authorization code")

        tokens = token_response.json()
        access_token = tokens.get("access_token")
        refresh_token = tokens.get("refresh_token")

        if not access_token or not refresh_token:
            raise HTTPException(status_code=400, detail="Invalid token response")

        me_response = await client.get(f"{GRAPH_API}/me", headers={"Authorization": f"Bearer {access_token}"})
        if me_response.status_code != 200:
            logger.error(f"❌ Failed to get Outlook profile: {me_response.text}")
            raise HTTPException(status_code=400, detail="Failed to get user info")

    profile = me_response.json()
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_in": tokens.get("expires_in", 3600),
        "email": profile.get("mail") or profile.get("userPrincipalName"),
    }


async def get_valid_access_token(credential: CalendarSyncCredential, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Microsoft rotates refresh tokens, so the new one is stored too
    """
    expires_at = credential.token_expires_at
    if expires_at and expires_at > datetime.utcnow() + timedelta(minutes=5):
        return decrypt_token(credential.access_token)

    logger.info("🔄 Outlook Calendar token expired, refreshing...")
    refresh_token = decrypt_token(credential.refresh_token)
    if not refresh_token:
        logger.error("❌ No refresh token stored for Outlook Calendar credential")
        return None

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                MICROSOFT_TOKEN_URL,
                data={
                    "client_id": OUTLOOK_CLIENT_ID,
                    "client_secret": OUTLOOK_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                    "scope": " ".join(OUTLOOK_CALENDAR_SCOPES),
                },
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Outlook token refresh request failed: {str(e)}")
        return None

    if response.status_code != 200:
        logger.error(f"❌ Outlook token refresh failed: {response.text}")
        return None

    tokens = response.json()
    new_access_token = tokens.get("access_token")
    if not new_access_token:
        logger.error("❌ No access token in refresh response")
        return None

    credential.access_token = encrypt_token(new_access_token)
    if tokens.get("refresh_token"):
        credential.refresh_token = encrypt_token(tokens["refresh_token"])
    credential.token_expires_at = datetime.utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
    db.commit()

    logger.info("✅ Outlook Calendar token refreshed successfully")
    return new_access_token


async def list_events(
    access_token: str, calendar_id: Optional[str], start: datetime, end: datetime
) -> list[dict[str, Any]]:
    """
    Expanded occurrences between start and end, times in UTC.

    Raises:
        httpx.HTTPError: request failed or returned an error status
    """
    items: list[dict[str, Any]] = []
    url = f"{GRAPH_API}{_calendar_path(calendar_id)}/calendarView"
    params: Optional[dict] = {
        "startDateTime": _graph_datetime(start),
        "endDateTime": _graph_datetime(end),
        "$top": 250,
    }
    headers = {"Authorization": f"Bearer {access_token}", "Prefer": 'outlook.timezone="UTC"'}
    async with httpx.AsyncClient(timeout=30.0) as client:
        while url:
            response = await client.get(url, headers=headers, params=params)
            response.raise_for_status()
            data = response.json()
            items.extend(data.get("value", []))
            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None
    return items


def build_event_body(
    title: str,
    start: datetime,
    end: datetime,
    description: Optional[str] = None,
    location: Optional[str] = None,
    all_day: bool = False,
) -> dict[str, Any]:
    if all_day:
        start = datetime.combine(start.date(), datetime.min.time())
        end = datetime.combine(max(end.date(), start.date() + timedelta(days=1)), datetime.min.time())
    event_data: dict[str, Any] = {
        "subject": title,
        "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
        "isAllDay": all_day,
    }
    if description:
        event_data["body"] = {"contentType": "text", "content": description}
    if location:
        event_data["location"] = {"displayName": location}
    return event_data


async def create_event(access_token: str, calendar_id: Optional[str], event_data: dict[str, Any]) -> Optional[str]:
    """Create an event; returns the Graph event id or None on failure"""
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{GRAPH_API}{_calendar_path(calendar_id)}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=event_data,
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Error creating Outlook event: {str(e)}")
        return None

    if response.status_code not in [200, 201]:
        logger.error(f"❌ Failed to create Outlook event: {response.text}")
        return None

    event_id = response.json().get("id")
    logger.info(f"✅ Outlook Calendar event created: {event_id}")
    return event_id
