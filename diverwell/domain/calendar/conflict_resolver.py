"""
Calendar conflict detection and resolution

Detection runs over normalized events and reports three kinds of conflict:
time overlaps between sources, the same meeting seen through two sources
(duplicates), and two sources booking the same location at once (resource).
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from itertools import combinations
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models_calendar import CalendarConflict, UnifiedCalendarEvent
from .events import CalendarEvent
from .repository import CalendarRepository

logger = logging.getLogger(__name__)

CONFLICT_RESOLUTIONS = ("local_wins", "remote_wins", "newest_wins", "manual")
CONFLICT_TYPES = ("time_overlap", "duplicate", "resource")
CONFLICT_SEVERITIES = ("low", "medium", "high")

DUPLICATE_START_TOLERANCE = timedelta(minutes=5)
DUPLICATE_TITLE_SIMILARITY = 0.8

_WORD = re.compile(r"\w+")


@dataclass
class DetectedConflict:
    conflict_type: str
    severity: str
    event_keys: list[str]
    description: str
    suggested_resolution: str

    @property
    def fingerprint(self) -> str:
        return conflict_fingerprint(self.conflict_type, self.event_keys)


def conflict_fingerprint(conflict_type: str, event_keys) -> str:
    return f"{conflict_type}:{','.join(sorted(event_keys))}"


def events_overlap(a: CalendarEvent, b: CalendarEvent) -> bool:
    return a.start < b.end and b.start < a.end


def overlap_severity(a: CalendarEvent, b: CalendarEvent) -> str:
    """Overlap measured against the shorter event: over 80% high, over 50% medium"""
    shorter = min(a.end - a.start, b.end - b.start)
    if shorter <= timedelta(0):
        return "high"
    overlap = min(a.end, b.end) - max(a.start, b.start)
    ratio = overlap / shorter
    if ratio > 0.8:
        return "high"
    if ratio > 0.5:
        return "medium"
    return "low"


def title_similarity(first: Optional[str], second: Optional[str]) -> float:
    """Jaccard similarity of the lower-cased word sets"""
    words_a = set(_WORD.findall((first or "").lower()))
    words_b = set(_WORD.findall((second or "").lower()))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def normalize_location(location: Optional[str]) -> str:
    return (location or "").strip().lower()


def is_duplicate(a: CalendarEvent, b: CalendarEvent) -> bool:
    if a.source == b.source:
        return False
    if abs(a.start - b.start) > DUPLICATE_START_TOLERANCE:
        return False
    if title_similarity(a.title, b.title) > DUPLICATE_TITLE_SIMILARITY:
        return True
    return bool(a.primary_email) and a.primary_email == b.primary_email


def _overlapping_pairs(events: list[CalendarEvent]):
    """Pairs of events from different sources whose time ranges intersect"""
    ordered = sorted(events, key=lambda e: (e.start, e.end))
    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            if second.start > first.end:
                break
            if first.source != second.source and events_overlap(first, second):
                yield first, second


def detect_time_overlaps(events: list[CalendarEvent]) -> list[DetectedConflict]:
    conflicts = []
    for first, second in _overlapping_pairs(events):
        severity = overlap_severity(first, second)
        conflicts.append(
            DetectedConflict(
                conflict_type="time_overlap",
                severity=severity,
                event_keys=sorted([first.key, second.key]),
                description=f'"{first.title}" ({first.source}) overlaps "{second.title}" ({second.source})',
                suggested_resolution="manual" if severity == "high" else "local_wins",
            )
        )
    return conflicts


def detect_duplicates(events: list[CalendarEvent]) -> list[DetectedConflict]:
    """One medium conflict per group of events that look like the same meeting"""
    parent = list(range(len(events)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i, j in combinations(range(len(events)), 2):
        if is_duplicate(events[i], events[j]):
            parent[find(i)] = find(j)

    groups: dict[int, list[CalendarEvent]] = {}
    for i, event in enumerate(events):
        groups.setdefault(find(i), []).append(event)

    conflicts = []
    for group in groups.values():
        if len(group) < 2:
            continue
        sources = sorted({event.source for event in group})
        conflicts.append(
            DetectedConflict(
                conflict_type="duplicate",
                severity="medium",
                event_keys=sorted(event.key for event in group),
                description=f'"{group[0].title}" appears in {", ".join(sources)}',
                suggested_resolution="newest_wins",
            )
        )
    return conflicts


def detect_resource_conflicts(events: list[CalendarEvent]) -> list[DetectedConflict]:
    conflicts = []
    for first, second in _overlapping_pairs(events):
        location = normalize_location(first.location)
        if not location or location != normalize_location(second.location):
            continue
        conflicts.append(
            DetectedConflict(
                conflict_type="resource",
                severity="high",
                event_keys=sorted([first.key, second.key]),
                description=f"{first.location.strip()} is booked by {first.source} and {second.source} at the same time",
                suggested_resolution="manual",
            )
        )
    return conflicts


def detect_conflicts(events: list[CalendarEvent]) -> list[DetectedConflict]:
    active = [event for event in events if not event.suppressed]
    return detect_time_overlaps(active) + detect_duplicates(active) + detect_resource_conflicts(active)


def _newest(events: list[CalendarEvent]) -> CalendarEvent:
    newest = events[0]
    for event in events[1:]:
        if (event.last_synced_at or event.start) >= (newest.last_synced_at or newest.start):
            newest = event
    return newest


def apply_resolution(events: list[CalendarEvent], resolution: str) -> tuple[list[CalendarEvent], list[CalendarEvent]]:
    """
    Split conflicting events into (kept, dropped) for a strategy.

    When a strategy would keep nothing (for example local_wins without an
    internal event) every event is kept. newest_wins breaks ties toward
    the later event in the list.
    """
    if resolution == "local_wins":
        kept = [event for event in events if event.source == "internal"]
    elif resolution == "remote_wins":
        kept = [event for event in events if event.source != "internal"]
    elif resolution == "newest_wins":
        kept = [_newest(events)] if events else []
    else:
        kept = list(events)

    if not kept:
        kept = list(events)
    kept_keys = {event.key for event in kept}
    return kept, [event for event in events if event.key not in kept_keys]


class ConflictResolver:
    """Stores detected conflicts and applies resolutions to the unified event store"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CalendarRepository()

    def store_conflicts(
        self, detected: list[DetectedConflict], user_id: Optional[int] = None
    ) -> list[CalendarConflict]:
        """Persist one user's conflicts; an unresolved conflict with the same fingerprint is reused"""
        now = datetime.utcnow()
        stored = []
        involved_keys = set()
        for conflict in detected:
            row = self.repo.get_unresolved_by_fingerprint(self.db, conflict.fingerprint, user_id)
            if not row:
                row = CalendarConflict(
                    user_id=user_id,
                    conflict_type=conflict.conflict_type,
                    severity=conflict.severity,
                    event_ids=conflict.event_keys,
                    fingerprint=conflict.fingerprint,
                    description=conflict.description,
                    suggested_resolution=conflict.suggested_resolution,
                    resolved=False,
                    detected_at=now,
                )
                self.db.add(row)
                self.db.flush()
            stored.append(row)
            involved_keys.update(conflict.event_keys)

        for event_row in self.repo.get_unified_by_keys(self.db, sorted(involved_keys), user_id):
            event_row.sync_status = "conflict"

        self.db.commit()
        if detected:
            logger.info(f"⚠️ {len(detected)} calendar conflicts detected")
        return stored

    def detect(self, events: list[CalendarEvent], user_id: Optional[int] = None) -> list[CalendarConflict]:
        """Events belong to one user; without user_id the owner is read off the events"""
        if user_id is None:
            user_id = next((event.user_id for event in events if event.user_id is not None), None)
        return self.store_conflicts(detect_conflicts(events), user_id)

    def _rows_for(self, conflict: CalendarConflict) -> list[UnifiedCalendarEvent]:
        """The conflict owner's rows in event_ids order"""
        keys = list(conflict.event_ids or [])
        rows = {row.event_key: row for row in self.repo.get_unified_by_keys(self.db, keys, conflict.user_id)}
        return [rows[key] for key in keys if key in rows]

    def events_for(self, conflict: CalendarConflict) -> list[CalendarEvent]:
        return [CalendarEvent.from_row(row) for row in self._rows_for(conflict)]

    def get_unresolved(self) -> list[tuple[CalendarConflict, list[CalendarEvent]]]:
        return [(conflict, self.events_for(conflict)) for conflict in self.repo.get_unresolved_conflicts(self.db)]

    def get_conflict(self, conflict_id: int) -> CalendarConflict:
        conflict = self.repo.get_conflict(self.db, conflict_id)
        if not conflict:
            raise HTTPException(status_code=404, detail="Conflict not found")
        return conflict

    def _apply(self, conflict: CalendarConflict, resolution: str, resolved_by: str) -> None:
        rows = self._rows_for(conflict)
        kept, dropped = apply_resolution([CalendarEvent.from_row(row) for row in rows], resolution)
        dropped_keys = {event.key for event in dropped}
        for row in rows:
            if row.event_key in dropped_keys:
                row.suppressed = True
            else:
                row.suppressed = False
                row.sync_status = "synced"

        conflict.resolved = True
        conflict.resolution = resolution
        conflict.resolved_by = resolved_by
        conflict.resolved_at = datetime.utcnow()
        logger.info(
            f"✅ Conflict {conflict.id} resolved with {resolution}: kept {len(kept)}, suppressed {len(dropped)}"
        )

    def resolve(self, conflict_id: int, resolution: str, resolved_by: str) -> CalendarConflict:
        if resolution not in CONFLICT_RESOLUTIONS:
            raise HTTPException(status_code=400, detail=f"Unknown resolution: {resolution}")
        conflict = self.get_conflict(conflict_id)
        if conflict.resolved:
            raise HTTPException(status_code=409, detail="Conflict already resolved")
        self._apply(conflict, resolution, resolved_by)
        self.db.commit()
        self.db.refresh(conflict)
        return conflict

    def auto_resolve(self, strategy: str, resolved_by: str = "system") -> dict:
        """Resolve unresolved low and medium conflicts; high severity waits for a person"""
        if strategy not in CONFLICT_RESOLUTIONS:
            raise HTTPException(status_code=400, detail=f"Unknown resolution: {strategy}")
        if strategy == "manual":
            raise HTTPException(status_code=400, detail="Auto-resolve needs a non-manual strategy")

        resolved = 0
        skipped = 0
        for conflict in self.repo.get_unresolved_conflicts(self.db):
            if conflict.severity == "high":
                skipped += 1
                continue
            self._apply(conflict, strategy, resolved_by)
            resolved += 1
        self.db.commit()
        logger.info(f"🤖 Auto-resolved {resolved} calendar conflicts ({skipped} left for review)")
        return {"resolved": resolved, "skipped": skipped, "strategy": strategy}
