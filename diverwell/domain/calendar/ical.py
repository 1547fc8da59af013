"""
iCalendar export and import for the operations calendar, plus the VEVENT
reader used by ICS feed subscriptions.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Optional

from icalendar import Calendar, Event, vCalAddress

from ...models_calendar import OPERATION_TYPES

logger = logging.getLogger(__name__)

PRODID = "-//Diver Well Training//Operations Calendar//EN"

# Checked in order when an event carries no category
DESCRIPTION_KEYWORDS = ("DIVE", "INSPECTION", "MAINTENANCE", "TRAINING")


class ICalParseError(ValueError):
    pass


def type_to_category(operation_type: Optional[str]) -> str:
    """Exported CATEGORIES value: the operation type itself, unknown types as OTHER"""
    return operation_type if operation_type in OPERATION_TYPES else "OTHER"


def category_to_type(category: Optional[str]) -> str:
    """A type name maps to itself; free text falls back to the first keyword it contains"""
    text = (category or "").strip().upper()
    if text in OPERATION_TYPES:
        return text
    for operation_type in DESCRIPTION_KEYWORDS:
        if operation_type in text:
            return operation_type
    return "OTHER"


def parse_hhmm(value: Optional[str]) -> Optional[time]:
    if not value:
        return None
    hours, _, minutes = value.partition(":")
    try:
        return time(int(hours or 0), int(minutes or 0))
    except ValueError:
        return None


def operation_bounds(operation) -> tuple[datetime, datetime, bool]:
    """Start, end and all-day flag for an operation; end defaults to one hour after start"""
    day = operation.operation_date.date()
    start_clock = parse_hhmm(operation.start_time)
    end_clock = parse_hhmm(operation.end_time)
    all_day = start_clock is None and end_clock is None

    start = datetime.combine(day, start_clock or time.min)
    end = datetime.combine(day, end_clock) if end_clock else start + timedelta(hours=1)
    return start, end, all_day


def _utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def operation_description(operation) -> Optional[str]:
    description = operation.description or ""
    if operation.type:
        description = f"Type: {operation.type}\n{description}".strip()
    if operation.status:
        description = f"{description}\nStatus: {operation.status}".strip()
    return description or None


def generate_ical(operations: Iterable, calendar_name: str = "Operations Calendar") -> bytes:
    """Render operations as an iCalendar document"""
    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", calendar_name)
    cal.add("x-wr-timezone", "UTC")

    stamp = _utc(datetime.utcnow())
    for operation in operations:
        start, end, all_day = operation_bounds(operation)

        event = Event()
        event.add("uid", str(operation.id))
        event.add("dtstamp", stamp)
        event.add("summary", operation.title)
        if all_day:
            event.add("dtstart", start.date())
            event.add("dtend", start.date() + timedelta(days=1))
        else:
            event.add("dtstart", _utc(start))
            event.add("dtend", _utc(end))

        description = operation_description(operation)
        if description:
            event.add("description", description)
        if operation.location:
            event.add("location", operation.location)
        event.add("categories", [type_to_category(operation.type)])
        event.add("status", "CANCELLED" if operation.status == "CANCELLED" else "CONFIRMED")
        event.add("url", f"operations://{operation.id}")
        cal.add_component(event)

    return cal.to_ical()


def _text(component, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0] if value else None
    text = str(value).strip() if value is not None else ""
    return text or None


def _categories(component) -> list[str]:
    value = component.get("categories")
    if value is None:
        return []
    groups = value if isinstance(value, list) else [value]
    categories = []
    for group in groups:
        categories.extend(str(c).strip() for c in getattr(group, "cats", [group]) if str(c).strip())
    return categories


def _attendees(component) -> list[dict]:
    value = component.get("attendee")
    if value is None:
        return []
    attendees = []
    for address in value if isinstance(value, list) else [value]:
        email = str(address)
        if email.lower().startswith("mailto:"):
            email = email[7:]
        name = address.params.get("CN") if isinstance(address, vCalAddress) else None
        attendees.append({"email": email.strip().lower(), "name": str(name) if name else None})
    return attendees


def _decoded(component, name: str):
    if component.get(name) is None:
        return None
    return component.decoded(name)


def read_vevents(content) -> list[dict[str, Any]]:
    """
    Read every VEVENT of an iCalendar document into plain dicts.

    Times come back as naive UTC; date values are all-day and start at
    midnight. A missing end is one hour after the start.

    Raises:
        ICalParseError: the document is not valid iCalendar
    """
    try:
        cal = Calendar.from_ical(content)
    except ValueError as e:
        raise ICalParseError(f"Failed to parse iCal file: {str(e)}") from e

    events = []
    for component in cal.walk("VEVENT"):
        start_value = _decoded(component, "dtstart")
        if start_value is None:
            logger.warning("⚠️ Skipping VEVENT without DTSTART")
            continue

        all_day = isinstance(start_value, date) and not isinstance(start_value, datetime)
        if all_day:
            start = datetime.combine(start_value, time.min)
        else:
            start = _naive_utc(start_value)

        end_value = _decoded(component, "dtend")
        if end_value is None:
            end = start + timedelta(hours=1)
        elif isinstance(end_value, datetime):
            end = _naive_utc(end_value)
        else:
            end = datetime.combine(end_value, time.min)

        events.append(
            {
                "uid": _text(component, "uid"),
                "title": _text(component, "summary") or "Untitled Event",
                "description": _text(component, "description"),
                "location": _text(component, "location"),
                "start": start,
                "end": end,
                "all_day": all_day,
                "categories": _categories(component),
                "url": _text(component, "url"),
                "status": _text(component, "status"),
                "attendees": _attendees(component),
            }
        )
    return events


def external_id_for(event: dict) -> Optional[str]:
    url = event.get("url")
    if url and "://" in url:
        return url.split("://", 1)[1] or event.get("uid")
    return event.get("uid")


def operation_type_for(event: dict) -> str:
    """First category when present; description keywords only when uncategorized"""
    categories = event.get("categories") or []
    if categories:
        return category_to_type(categories[0])
    return category_to_type(event.get("description"))


def parse_ical(content) -> list[dict[str, Any]]:
    """VEVENTs of an uploaded file as operation fields (title, dates, type, external id)"""
    parsed = []
    for event in read_vevents(content):
        parsed.append(
            {
                "title": event["title"],
                "description": event["description"],
                "start": event["start"],
                "end": event["end"],
                "location": event["location"],
                "type": operation_type_for(event),
                "all_day": event["all_day"],
                "external_id": external_id_for(event),
            }
        )
    return parsed
