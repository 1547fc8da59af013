"""Normalized calendar event shared by providers, aggregation and conflict detection"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class CalendarEvent:
    source: str
    source_id: str
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: list[dict] = field(default_factory=list)
    event_type: Optional[str] = None
    status: Optional[str] = None
    color: Optional[str] = None
    all_day: bool = False
    sync_status: str = "synced"
    last_synced_at: Optional[datetime] = None
    user_id: Optional[int] = None
    suppressed: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return event_key(self.source, self.source_id)

    @property
    def primary_email(self) -> str:
        if not self.attendees:
            return ""
        return (self.attendees[0].get("email") or "").strip().lower()

    @classmethod
    def from_row(cls, row) -> "CalendarEvent":
        return cls(
            source=row.source,
            source_id=row.source_id,
            title=row.title,
            start=row.start_time,
            end=row.end_time,
            description=row.description,
            location=row.location,
            attendees=list(row.attendees or []),
            event_type=row.event_type,
            status=row.status,
            color=row.color,
            all_day=bool(row.all_day),
            sync_status=row.sync_status,
            last_synced_at=row.last_synced_at,
            user_id=row.user_id,
            suppressed=bool(row.suppressed),
            metadata=dict(row.event_metadata or {}),
        )


def event_key(source: str, source_id) -> str:
    return f"{source}-{source_id}"
