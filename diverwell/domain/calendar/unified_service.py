"""Unified calendar - aggregates every calendar source into one stored, de-duplicated view"""

import logging
from collections import Counter
from datetime import datetime, time, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models_calendar import CALENDAR_SOURCES, SYNC_SOURCES, UnifiedCalendarEvent
from .conflict_resolver import ConflictResolver
from .events import CalendarEvent
from .ical import parse_hhmm
from .providers import CalendarProviderError, provider_registry
from .repository import CalendarRepository

logger = logging.getLogger(__name__)

SOURCE_COLORS = {
    "internal": "#8b5cf6",
    "calendly": "#3b82f6",
    "google": "#dc2626",
    "outlook": "#0078d4",
    "apple": "#6b7280",
    "highlevel": "#10b981",
    "ical": "#f59e0b",
}

INTERNAL_DEFAULT_END = time(17, 0)
BOOKING_DURATION = timedelta(hours=1)
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def internal_event(operation) -> CalendarEvent:
    """Operations without an end time run until 17:00 (or one hour when they start later)"""
    day = operation.operation_date.date()
    start_clock = parse_hhmm(operation.start_time)
    end_clock = parse_hhmm(operation.end_time)
    start = datetime.combine(day, start_clock or time.min)
    end = datetime.combine(day, end_clock or INTERNAL_DEFAULT_END)
    if end <= start:
        end = start + timedelta(hours=1)

    return CalendarEvent(
        source="internal",
        source_id=str(operation.id),
        title=operation.title,
        start=start,
        end=end,
        description=operation.description,
        location=operation.location,
        event_type=operation.type,
        status=operation.status,
        color=operation.color or SOURCE_COLORS["internal"],
        all_day=start_clock is None and end_clock is None,
        last_synced_at=operation.updated_at,
        user_id=operation.created_by,
    )


def booking_event(client) -> CalendarEvent:
    event_name = client.calendly_event_name or "Calendly Meeting"
    return CalendarEvent(
        source="calendly",
        source_id=client.calendly_event_uri,
        title=f"{event_name} - {client.name}",
        start=client.last_booking_time,
        end=client.last_booking_time + BOOKING_DURATION,
        description=f"Booking with {client.name} ({client.email})",
        attendees=[{"email": client.email, "name": client.name}],
        color=SOURCE_COLORS["calendly"],
        last_synced_at=client.last_booking_time,
        metadata={"clientId": client.id},
    )


def deduplicate_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    """
    Collapse events sharing start, end and primary attendee email.
    A synced event beats one that is not; otherwise more attendees wins.
    """
    seen: dict[tuple, CalendarEvent] = {}
    for event in events:
        key = (event.start, event.end, event.primary_email)
        existing = seen.get(key)
        if existing is None:
            seen[key] = event
            continue
        event_synced = event.sync_status == "synced"
        existing_synced = existing.sync_status == "synced"
        if event_synced and not existing_synced:
            seen[key] = event
        elif event_synced == existing_synced and len(event.attendees) > len(existing.attendees):
            seen[key] = event
    return list(seen.values())


class UnifiedCalendarService:
    """Service layer for the unified calendar view"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CalendarRepository()

    def _internal_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        first_day = datetime.combine(start.date(), time.min)
        return [internal_event(op) for op in self.repo.get_operations(self.db, first_day, end)]

    def _booking_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        return [booking_event(client) for client in self.repo.get_bookings_between(self.db, start, end)]

    def _has_sync_credential(self, user_id: int, source: str) -> bool:
        credential = self.repo.get_credential(self.db, user_id, source)
        return bool(credential and credential.is_active and credential.sync_enabled)

    async def _provider_events(self, user_id: int, source: str, start: datetime, end: datetime) -> list[CalendarEvent]:
        if not self._has_sync_credential(user_id, source):
            return []
        try:
            events = await provider_registry.get(source).pull_events(self.db, user_id, start, end)
        except CalendarProviderError as e:
            logger.warning(f"⚠️ Skipping {source} events for user {user_id}: {str(e)}")
            return []
        for event in events:
            event.color = event.color or SOURCE_COLORS[source]
        return events

    async def collect_events(
        self, user_id: int, start: datetime, end: datetime, sources: Optional[list[str]] = None
    ) -> list[CalendarEvent]:
        wanted = [s for s in (sources or CALENDAR_SOURCES) if s in CALENDAR_SOURCES]
        events: list[CalendarEvent] = []
        if "internal" in wanted:
            events.extend(self._internal_events(start, end))
        if "calendly" in wanted:
            events.extend(self._booking_events(start, end))
        for source in SYNC_SOURCES:
            if source in wanted:
                events.extend(await self._provider_events(user_id, source, start, end))
        return [e for e in events if e.start < end and (e.end > start or e.start >= start)]

    def store_events(self, events: list[CalendarEvent], user_id: Optional[int] = None) -> list[UnifiedCalendarEvent]:
        """
        Upsert into the owner's copy of each event, keyed by (user, source, source_id).
        The owner is user_id when given, else the event's own user.
        Suppression and conflict state survive a refresh.
        """
        owned: dict[Optional[int], list[CalendarEvent]] = {}
        for event in events:
            owned.setdefault(user_id if user_id is not None else event.user_id, []).append(event)

        now = datetime.utcnow()
        rows = {}
        for owner, owner_events in owned.items():
            existing = {
                row.event_key: row
                for row in self.repo.get_unified_by_keys(self.db, [e.key for e in owner_events], owner)
            }
            for event in owner_events:
                row = existing.get(event.key)
                if row is None:
                    row = UnifiedCalendarEvent(
                        event_key=event.key,
                        source=event.source,
                        source_id=event.source_id,
                        user_id=owner,
                        suppressed=False,
                        sync_status=event.sync_status,
                    )
                    self.db.add(row)
                    existing[event.key] = row
                row.title = event.title
                row.start_time = event.start
                row.end_time = event.end
                row.description = event.description
                row.location = event.location
                row.attendees = event.attendees
                row.event_type = event.event_type
                row.status = event.status
                row.color = event.color or SOURCE_COLORS.get(event.source)
                row.all_day = event.all_day
                row.last_synced_at = event.last_synced_at or now
                row.event_metadata = event.metadata
                rows[(owner, event.key)] = row
        self.db.commit()
        return list(rows.values())

    async def get_unified_events(
        self, user_id: int, start: datetime, end: datetime, sources: Optional[list[str]] = None
    ) -> list[CalendarEvent]:
        events = deduplicate_events(await self.collect_events(user_id, start, end, sources))
        rows = self.store_events(events, user_id)
        visible = [CalendarEvent.from_row(row) for row in rows if not row.suppressed]
        logger.info(f"📅 Unified calendar for user {user_id}: {len(visible)} events")
        return sorted(visible, key=lambda e: e.start)

    async def detect_conflicts(self, user_id: int, start: datetime, end: datetime):
        events = await self.get_unified_events(user_id, start, end)
        return ConflictResolver(self.db).detect(events, user_id)

    def get_analytics(self, start: datetime, end: datetime) -> dict:
        rows = self.repo.get_unified_between(self.db, start, end)
        keys = {row.event_key for row in rows}

        by_source = Counter(row.source for row in rows)
        by_type = Counter(row.event_type or "UNSPECIFIED" for row in rows)
        by_weekday = Counter(WEEKDAYS[row.start_time.weekday()] for row in rows)
        busiest = by_weekday.most_common(1)

        conflicts = [c for c in self.repo.get_conflicts(self.db) if keys.intersection(c.event_ids or [])]
        return {
            "totalEvents": len(rows),
            "bySource": dict(by_source),
            "byType": dict(by_type),
            "byWeekday": dict(by_weekday),
            "busiestDay": busiest[0][0] if busiest else None,
            "conflicts": {
                "total": len(conflicts),
                "byType": dict(Counter(c.conflict_type for c in conflicts)),
                "bySeverity": dict(Counter(c.severity for c in conflicts)),
                "resolved": sum(1 for c in conflicts if c.resolved),
                "unresolved": sum(1 for c in conflicts if not c.resolved),
            },
        }
