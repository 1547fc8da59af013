"""
Calendar provider registry
Google Calendar and Outlook (OAuth), Apple iCloud (CalDAV), GoHighLevel
calendars (API key) and ICS feed subscriptions behind one pull/push interface.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import httpx
from caldav.lib.error import DAVError
from sqlalchemy.orm import Session

from ...models_calendar import CalendarSyncCredential
from ...services import apple_calendar_service, google_calendar_service, highlevel_service, outlook_calendar_service
from ...shared.crypto import decrypt_config, decrypt_token
from ...shared.serialization import parse_datetime
from .events import CalendarEvent
from .ical import ICalParseError, read_vevents
from .repository import CalendarRepository

logger = logging.getLogger(__name__)


class CalendarProviderError(Exception):
    """A provider could not be reached or rejected the request"""


class ProviderNotConnected(CalendarProviderError):
    pass


class CalendarProvider:
    provider = ""
    name = ""
    description = ""
    requires_oauth = False
    required_fields: tuple = ()
    optional_fields: tuple = ()

    def get_config(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "name": self.name,
            "description": self.description,
            "requiresOAuth": self.requires_oauth,
            "requiredFields": list(self.required_fields),
            "optionalFields": list(self.optional_fields),
        }

    def validate_config(self, config: dict) -> tuple[bool, list[str]]:
        errors = [f"{field} is required" for field in self.required_fields if not str(config.get(field) or "").strip()]
        return not errors, errors

    def get_credential(self, db: Session, user_id: int) -> CalendarSyncCredential:
        credential = CalendarRepository.get_credential(db, user_id, self.provider)
        if not credential or not credential.is_active:
            raise ProviderNotConnected(f"{self.name} is not connected")
        return credential

    async def authenticate(self, db: Session, user_id: int) -> bool:
        raise NotImplementedError

    async def pull_events(self, db: Session, user_id: int, start: datetime, end: datetime) -> list[CalendarEvent]:
        raise NotImplementedError

    async def push_events(self, db: Session, user_id: int, events: list[CalendarEvent]) -> dict[str, Any]:
        return {"success": False, "synced": 0, "errors": [f"{self.name} is read-only"]}

    async def disconnect(self, db: Session, user_id: int) -> None:
        credential = CalendarRepository.get_credential(db, user_id, self.provider)
        if credential:
            CalendarRepository.delete(db, credential)
            logger.info(f"✅ {self.name} disconnected for user {user_id}")


class GoogleCalendarProvider(CalendarProvider):
    provider = "google"
    name = "Google Calendar"
    description = "Two-way sync with a Google Calendar over OAuth"
    requires_oauth = True
    optional_fields = ("calendarId",)

    async def _access_token(self, db: Session, credential: CalendarSyncCredential) -> str:
        access_token = await google_calendar_service.get_valid_access_token(credential, db)
        if not access_token:
            raise CalendarProviderError("Google Calendar token could not be refreshed")
        return access_token

    def _calendar_id(self, credential: CalendarSyncCredential) -> str:
        config = decrypt_config(credential.config_encrypted)
        return config.get("calendarId") or credential.external_calendar_id or "primary"

    async def authenticate(self, db: Session, user_id: int) -> bool:
        credential = self.get_credential(db, user_id)
        return bool(await google_calendar_service.get_valid_access_token(credential, db))

    async def pull_events(self, db: Session, user_id: int, start: datetime, end: datetime) -> list[CalendarEvent]:
        credential = self.get_credential(db, user_id)
        access_token = await self._access_token(db, credential)
        try:
            items = await google_calendar_service.list_events(access_token, self._calendar_id(credential), start, end)
        except httpx.HTTPError as e:
            raise CalendarProviderError(f"Google Calendar request failed: {str(e)}") from e

        events = []
        for item in items:
            if item.get("status") == "cancelled":
                continue
            event = google_event_to_calendar_event(item, user_id)
            if event:
                events.append(event)
        return events

    async def push_events(self, db: Session, user_id: int, events: list[CalendarEvent]) -> dict[str, Any]:
        credential = self.get_credential(db, user_id)
        access_token = await self._access_token(db, credential)
        calendar_id = self._calendar_id(credential)

        synced = 0
        errors = []
        for event in events:
            body = google_calendar_service.build_event_body(
                event.title, event.start, event.end, event.description, event.location, event.all_day
            )
            if await google_calendar_service.create_event(access_token, calendar_id, body):
                synced += 1
            else:
                errors.append(f"Failed to push {event.key}")
        return {"success": not errors, "synced": synced, "errors": errors}

    async def disconnect(self, db: Session, user_id: int) -> None:
        credential = CalendarRepository.get_credential(db, user_id, self.provider)
        if credential:
            await google_calendar_service.revoke_token(decrypt_token(credential.access_token))
        await super().disconnect(db, user_id)


class HighLevelCalendarProvider(CalendarProvider):
    provider = "highlevel"
    name = "GoHighLevel"
    description = "Appointments from a GoHighLevel calendar"
    required_fields = ("apiKey", "calendarId")
    optional_fields = ("locationId",)

    def _config(self, credential: CalendarSyncCredential) -> dict:
        config = decrypt_config(credential.config_encrypted)
        if not config.get("apiKey") or not config.get("calendarId"):
            raise CalendarProviderError("GoHighLevel credential is missing apiKey or calendarId")
        return config

    async def authenticate(self, db: Session, user_id: int) -> bool:
        config = self._config(self.get_credential(db, user_id))
        return await highlevel_service.check_api_key(config["apiKey"])

    async def pull_events(self, db: Session, user_id: int, start: datetime, end: datetime) -> list[CalendarEvent]:
        config = self._config(self.get_credential(db, user_id))
        try:
            appointments = await highlevel_service.list_appointments(
                config["apiKey"], config["calendarId"], start, end
            )
        except httpx.HTTPError as e:
            raise CalendarProviderError(f"GoHighLevel request failed: {str(e)}") from e

        events = []
        for appointment in appointments:
            event = highlevel_appointment_to_calendar_event(appointment, user_id)
            if event:
                events.append(event)
        return events


class OutlookCalendarProvider(CalendarProvider):
    provider = "outlook"
    name = "Outlook Calendar"
    description = "Two-way sync with an Outlook or Microsoft 365 calendar over OAuth"
    requires_oauth = True
    optional_fields = ("calendarId",)

    async def _access_token(self, db: Session, credential: CalendarSyncCredential) -> str:
        access_token = await outlook_calendar_service.get_valid_access_token(credential, db)
        if not access_token:
            raise CalendarProviderError("Outlook Calendar token could not be refreshed")
        return access_token

    def _calendar_id(self, credential: CalendarSyncCredential) -> Optional[str]:
        """None reads the mailbox default calendar"""
        config = decrypt_config(credential.config_encrypted)
        return config.get("calendarId") or credential.external_calendar_id

    async def authenticate(self, db: Session, user_id: int) -> bool:
        credential = self.get_credential(db, user_id)
        return bool(await outlook_calendar_service.get_valid_access_token(credential, db))

    async def pull_events(self, db: Session, user_id: int, start: datetime, end: datetime) -> list[CalendarEvent]:
        credential = self.get_credential(db, user_id)
        access_token = await self._access_token(db, credential)
        try:
            items = await outlook_calendar_service.list_events(access_token, self._calendar_id(credential), start, end)
        except httpx.HTTPError as e:
            raise CalendarProviderError(f"Outlook Calendar request failed: {str(e)}") from e

        events = []
        for item in items:
            if item.get("isCancelled"):
                continue
            event = outlook_event_to_calendar_event(item, user_id)
            if event:
                events.append(event)
        return events

    async def push_events(self, db: Session, user_id: int, events: list[CalendarEvent]) -> dict[str, Any]:
        credential = self.get_credential(db, user_id)
        access_token = await self._access_token(db, credential)
        calendar_id = self._calendar_id(credential)

        synced = 0
        errors = []
        for event in events:
            body = outlook_calendar_service.build_event_body(
                event.title, event.start, event.end, event.description, event.location, event.all_day
            )
            if await outlook_calendar_service.create_event(access_token, calendar_id, body):
                synced += 1
            else:
                errors.append(f"Failed to push {event.key}")
        return {"success": not errors, "synced": synced, "errors": errors}


class AppleCalendarProvider(CalendarProvider):
    provider = "apple"
    name = "Apple Calendar"
    description = "iCloud calendars over CalDAV with an app-specific password"
    required_fields = ("appleId", "appPassword")
    optional_fields = ("calendarUrl",)

    def validate_config(self, config: dict) -> tuple[bool, list[str]]:
        valid, errors = super().validate_config(config)
        calendar_url = str(config.get("calendarUrl") or "").strip().lower()
        if calendar_url and not calendar_url.startswith("https://"):
            errors.append("calendarUrl must be an https URL")
        return not errors, errors

    def _config(self, credential: CalendarSyncCredential) -> dict:
        config = decrypt_config(credential.config_encrypted)
        if not config.get("appleId") or not config.get("appPassword"):
            raise CalendarProviderError("Apple Calendar credential is missing appleId or appPassword")
        return config

    async def authenticate(self, db: Session, user_id: int) -> bool:
        config = self._config(self.get_credential(db, user_id))
        try:
            return await asyncio.to_thread(
                apple_calendar_service.check_credentials, config["appleId"], config["appPassword"]
            )
        except (DAVError, OSError) as e:
            raise CalendarProviderError(f"iCloud CalDAV request failed: {str(e)}") from e

    async def pull_events(self, db: Session, user_id: int, start: datetime, end: datetime) -> list[CalendarEvent]:
        config = self._config(self.get_credential(db, user_id))
        try:
            documents = await asyncio.to_thread(
                apple_calendar_service.fetch_calendar_data,
                config["appleId"],
                config["appPassword"],
                start,
                end,
                config.get("calendarUrl"),
            )
        except (DAVError, OSError) as e:
            raise CalendarProviderError(f"iCloud CalDAV request failed: {str(e)}") from e

        events = []
        for document in documents:
            try:
                vevents = read_vevents(document)
            except ICalParseError as e:
                logger.warning(f"⚠️ Skipping unreadable iCloud event: {str(e)}")
                continue
            events.extend(vevent_to_calendar_event("apple", vevent, user_id) for vevent in vevents if vevent["uid"])
        return events


class ICalFeedProvider(CalendarProvider):
    provider = "ical"
    name = "iCal Feed"
    description = "Read-only subscription to an ICS calendar feed URL"
    required_fields = ("feedUrl",)
    optional_fields = ("name",)

    def validate_config(self, config: dict) -> tuple[bool, list[str]]:
        valid, errors = super().validate_config(config)
        feed_url = str(config.get("feedUrl") or "").strip().lower()
        if feed_url and not feed_url.startswith(("http://", "https://", "webcal://")):
            errors.append("feedUrl must be an http(s) or webcal URL")
        return not errors, errors

    async def _fetch(self, credential: CalendarSyncCredential) -> list[dict]:
        feed_url = decrypt_config(credential.config_encrypted).get("feedUrl")
        if not feed_url:
            raise CalendarProviderError("iCal credential is missing feedUrl")
        if feed_url.lower().startswith("webcal://"):
            feed_url = "https://" + feed_url[len("webcal://"):]
        try:
            async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
                response = await client.get(feed_url)
                response.raise_for_status()
            return read_vevents(response.content)
        except (httpx.HTTPError, ICalParseError) as e:
            raise CalendarProviderError(f"iCal feed could not be read: {str(e)}") from e

    async def authenticate(self, db: Session, user_id: int) -> bool:
        await self._fetch(self.get_credential(db, user_id))
        return True

    async def pull_events(self, db: Session, user_id: int, start: datetime, end: datetime) -> list[CalendarEvent]:
        vevents = await self._fetch(self.get_credential(db, user_id))
        return [
            vevent_to_calendar_event("ical", vevent, user_id)
            for vevent in vevents
            if vevent["uid"] and vevent["start"] < end and vevent["end"] > start
        ]


def vevent_to_calendar_event(source: str, vevent: dict, user_id: Optional[int] = None) -> CalendarEvent:
    return CalendarEvent(
        source=source,
        source_id=vevent["uid"],
        title=vevent["title"],
        start=vevent["start"],
        end=vevent["end"],
        description=vevent["description"],
        location=vevent["location"],
        attendees=vevent["attendees"],
        status=vevent["status"],
        all_day=vevent["all_day"],
        last_synced_at=datetime.utcnow(),
        user_id=user_id,
    )


def outlook_event_to_calendar_event(item: dict, user_id: Optional[int] = None) -> Optional[CalendarEvent]:
    start = parse_datetime((item.get("start") or {}).get("dateTime"))
    end = parse_datetime((item.get("end") or {}).get("dateTime"))
    if not item.get("id") or not start:
        return None

    attendees = []
    for attendee in item.get("attendees") or []:
        address = attendee.get("emailAddress") or {}
        if address.get("address"):
            attendees.append({"email": address["address"].lower(), "name": address.get("name")})
    body = item.get("body") or {}
    description = body.get("content") if body.get("contentType") == "text" else item.get("bodyPreview")
    return CalendarEvent(
        source="outlook",
        source_id=item["id"],
        title=item.get("subject") or "Untitled Event",
        start=start,
        end=end or start,
        description=description or None,
        location=(item.get("location") or {}).get("displayName") or None,
        attendees=attendees,
        status=item.get("showAs"),
        all_day=bool(item.get("isAllDay")),
        last_synced_at=parse_datetime(item.get("lastModifiedDateTime")) or datetime.utcnow(),
        user_id=user_id,
        metadata={"webLink": item.get("webLink")} if item.get("webLink") else {},
    )


def google_event_to_calendar_event(item: dict, user_id: Optional[int] = None) -> Optional[CalendarEvent]:
    start_info = item.get("start") or {}
    end_info = item.get("end") or {}
    all_day = "date" in start_info and "dateTime" not in start_info
    start = parse_datetime(start_info.get("dateTime") or start_info.get("date"))
    end = parse_datetime(end_info.get("dateTime") or end_info.get("date"))
    if not item.get("id") or not start:
        return None

    attendees = [
        {"email": (a.get("email") or "").lower(), "name": a.get("displayName")}
        for a in item.get("attendees", [])
        if a.get("email")
    ]
    return CalendarEvent(
        source="google",
        source_id=item["id"],
        title=item.get("summary") or "Untitled Event",
        start=start,
        end=end or start,
        description=item.get("description"),
        location=item.get("location"),
        attendees=attendees,
        status=item.get("status"),
        all_day=all_day,
        last_synced_at=parse_datetime(item.get("updated")) or datetime.utcnow(),
        user_id=user_id,
        metadata={"htmlLink": item.get("htmlLink")} if item.get("htmlLink") else {},
    )


def highlevel_appointment_to_calendar_event(appointment: dict, user_id: Optional[int] = None) -> Optional[CalendarEvent]:
    appointment_id = appointment.get("id")
    start = parse_datetime(appointment.get("startTime"))
    if not appointment_id or not start:
        return None

    contact = appointment.get("contact") or {}
    email = (appointment.get("email") or contact.get("email") or "").strip().lower()
    attendees = [{"email": email, "name": contact.get("name") or appointment.get("name")}] if email else []
    return CalendarEvent(
        source="highlevel",
        source_id=str(appointment_id),
        title=appointment.get("title") or "Appointment",
        start=start,
        end=parse_datetime(appointment.get("endTime")) or start,
        description=appointment.get("notes"),
        location=appointment.get("address"),
        attendees=attendees,
        status=appointment.get("appointmentStatus") or appointment.get("status"),
        last_synced_at=parse_datetime(appointment.get("dateUpdated")) or datetime.utcnow(),
        user_id=user_id,
        metadata={"contactId": appointment.get("contactId")} if appointment.get("contactId") else {},
    )


class ProviderRegistry:
    def __init__(self):
        self._providers: dict[str, CalendarProvider] = {}

    def register(self, provider: CalendarProvider) -> None:
        self._providers[provider.provider] = provider

    def has(self, name: str) -> bool:
        return name in self._providers

    def get(self, name: str) -> Optional[CalendarProvider]:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return list(self._providers)

    def list_configs(self) -> list[dict[str, Any]]:
        return [provider.get_config() for provider in self._providers.values()]

    def validate_config(self, name: str, config: dict) -> tuple[bool, list[str]]:
        provider = self.get(name)
        if not provider:
            return False, [f"Provider {name} not found"]
        return provider.validate_config(config)


provider_registry = ProviderRegistry()
provider_registry.register(GoogleCalendarProvider())
provider_registry.register(OutlookCalendarProvider())
provider_registry.register(AppleCalendarProvider())
provider_registry.register(HighLevelCalendarProvider())
provider_registry.register(ICalFeedProvider())
