"""
Google Calendar Service
Handles OAuth token exchange and refresh, event listing and event creation
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI
from ..models_calendar import CalendarSyncCredential
from ..shared.crypto import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


def is_google_configured() -> bool:
    return bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)


def build_authorization_url(state: str) -> str:
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


async def exchange_code(code: str) -> dict[str, Any]:
    """
    Exchange an authorization code for tokens and look up the account.

    Returns access_token, refresh_token, expires_in, email and calendar_id.
    Raises HTTPException(400) when Google rejects the exchange.
    """
    async with httpx.AsyncClient(timeout=30.0) as client:
        token_response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )

        if token_response.status_code != 200:
            logger.error(f"❌ Token exchange failed: {token_response.text}")
            raise HTTPException(status_code=400, detail="Failed to exchange authorization code")

        tokens = token_response.json()
        access_token = tokens.get("access_token")
        refresh_token = tokens.get("refresh_token")

        if not access_token or not refresh_token:
            raise HTTPException(status_code=400, detail="Invalid token response")

        headers = {"Authorization": f"Bearer {access_token}"}
        user_info_response = await client.get(GOOGLE_USERINFO_URL, headers=headers)
        if user_info_response.status_code != 200:
            logger.error(f"❌ Failed to get user info: {user_info_response.text}")
            raise HTTPException(status_code=400, detail="Failed to get user info")

        calendar_id = "primary"
        calendar_response = await client.get(
            f"{GOOGLE_CALENDAR_API}/users/me/calendarList/primary", headers=headers
        )
        if calendar_response.status_code == 200:
            calendar_id = calendar_response.json().get("id", "primary")

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_in": tokens.get("expires_in", 3600),
        "email": user_info_response.json().get("email"),
        "calendar_id": calendar_id,
    }


async def get_valid_access_token(credential: CalendarSyncCredential, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    expires_at = credential.token_expires_at
    if expires_at and expires_at > datetime.utcnow() + timedelta(minutes=5):
        return decrypt_token(credential.access_token)

    logger.info("🔄 Google Calendar token expired, refreshing...")
    refresh_token = decrypt_token(credential.refresh_token)
    if not refresh_token:
        logger.error("❌ No refresh token stored for Google Calendar credential")
        return None

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Token refresh request failed: {str(e)}")
        return None

    if response.status_code != 200:
        logger.error(f"❌ Token refresh failed: {response.text}")
        return None

    tokens = response.json()
    new_access_token = tokens.get("access_token")
    if not new_access_token:
        logger.error("❌ No access token in refresh response")
        return None

    credential.access_token = encrypt_token(new_access_token)
    credential.token_expires_at = datetime.utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))
    db.commit()

    logger.info("✅ Google Calendar token refreshed successfully")
    return new_access_token


async def list_events(
    access_token: str, calendar_id: str, start: datetime, end: datetime
) -> list[dict[str, Any]]:
    """
    Expanded single events of one calendar between start and end.

    Raises:
        httpx.HTTPError: request failed or returned an error status
    """
    items: list[dict[str, Any]] = []
    params = {
        "timeMin": _rfc3339(start),
        "timeMax": _rfc3339(end),
        "singleEvents": "true",
        "orderBy": "startTime",
        "maxResults": 250,
    }
    async with httpx.AsyncClient(timeout=30.0) as client:
        while True:
            response = await client.get(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                params=params,
            )
            response.raise_for_status()
            data = response.json()
            items.extend(data.get("items", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
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
        event_data = {
            "summary": title,
            "start": {"date": start.date().isoformat()},
            "end": {"date": max(end.date(), start.date() + timedelta(days=1)).isoformat()},
        }
    else:
        event_data = {
            "summary": title,
            "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": end.isoformat(), "timeZone": "UTC"},
        }
    if description:
        event_data["description"] = description
    if location:
        event_data["location"] = location
    return event_data


async def create_event(access_token: str, calendar_id: str, event_data: dict[str, Any]) -> Optional[str]:
    """Create an event; returns the Google event id or None on failure"""
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=event_data,
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Error creating calendar event: {str(e)}")
        return None

    if response.status_code not in [200, 201]:
        logger.error(f"❌ Failed to create calendar event: {response.text}")
        return None

    event_id = response.json().get("id")
    logger.info(f"✅ Google Calendar event created: {event_id}")
    return event_id


async def revoke_token(token: Optional[str]) -> None:
    if not token:
        return
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": token})
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Failed to revoke Google tokens: {str(e)}")
