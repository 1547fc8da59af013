from datetime import datetime

import pytest
from fastapi import HTTPException

from diverwell.domain.calendar.conflict_resolver import (
    ConflictResolver,
    apply_resolution,
    detect_conflicts,
    detect_duplicates,
    detect_resource_conflicts,
    detect_time_overlaps,
    is_duplicate,
    overlap_severity,
    title_similarity,
)
from diverwell.domain.calendar.events import CalendarEvent
from diverwell.domain.calendar.unified_service import UnifiedCalendarService
from diverwell.models_calendar import UnifiedCalendarEvent


def at(hour, minute=0):
    return datetime(2026, 7, 6, hour, minute)


def make_event(source, source_id, title, start, end, **extra):
    return CalendarEvent(source=source, source_id=str(source_id), title=title, start=start, end=end, **extra)


@pytest.mark.parametrize(
    "second, expected",
    [
        ((at(10), at(11)), "high"),
        ((at(10, 15), at(12)), "medium"),
        ((at(10, 45), at(12)), "low"),
        ((at(10, 30), at(10, 30)), "high"),
    ],
)
def test_overlap_severity(second, expected):
    first = make_event("internal", 1, "Hull survey", at(10), at(11))
    other = make_event("google", "g1", "Crew call", *second)

    assert overlap_severity(first, other) == expected


def test_title_similarity():
    assert title_similarity("Hull inspection", "hull Inspection!") == 1.0
    assert title_similarity("Hull inspection dive", "Hull inspection") == pytest.approx(2 / 3)
    assert title_similarity("", "Hull inspection") == 0.0


def test_is_duplicate():
    internal = make_event("internal", 1, "Weekly dive briefing", at(9), at(10))

    assert is_duplicate(internal, make_event("google", "g1", "weekly dive briefing", at(9, 3), at(10)))
    assert not is_duplicate(internal, make_event("internal", 2, "Weekly dive briefing", at(9), at(10)))
    assert not is_duplicate(internal, make_event("google", "g2", "Weekly dive briefing", at(9, 10), at(10)))

    attendee = [{"email": "Kai@Example.com", "name": "Kai"}]
    booked = make_event("calendly", "c1", "Intro call", at(9), at(10), attendees=attendee)
    synced = make_event("highlevel", "h1", "Discovery", at(9), at(10), attendees=[{"email": "kai@example.com"}])
    assert is_duplicate(booked, synced)


def test_time_overlaps_between_sources_only():
    events = [
        make_event("internal", 1, "Hull survey", at(10), at(11)),
        make_event("internal", 2, "Tank check", at(10), at(11)),
        make_event("google", "g1", "Crew call", at(10, 45), at(12)),
    ]

    conflicts = detect_time_overlaps(events)

    assert {tuple(c.event_keys) for c in conflicts} == {("google-g1", "internal-1"), ("google-g1", "internal-2")}
    assert {c.severity for c in conflicts} == {"low"}
    assert {c.suggested_resolution for c in conflicts} == {"local_wins"}


def test_duplicates_are_grouped():
    events = [
        make_event("internal", 1, "Weekly dive briefing", at(9), at(10)),
        make_event("google", "g1", "Weekly dive briefing", at(9), at(10)),
        make_event("ical", "i1", "weekly dive briefing", at(9, 2), at(10)),
        make_event("google", "g2", "Lunch", at(13), at(14)),
    ]

    conflicts = detect_duplicates(events)

    assert len(conflicts) == 1
    assert conflicts[0].event_keys == ["google-g1", "ical-i1", "internal-1"]
    assert conflicts[0].severity == "medium"
    assert conflicts[0].suggested_resolution == "newest_wins"


def test_resource_conflict_on_shared_location():
    events = [
        make_event("internal", 1, "Hull survey", at(10), at(11), location=" Dock 3 "),
        make_event("highlevel", "h1", "Client walkthrough", at(10, 30), at(11, 30), location="dock 3"),
        make_event("google", "g1", "Crew call", at(10), at(11), location="Office"),
    ]

    conflicts = detect_resource_conflicts(events)

    assert len(conflicts) == 1
    assert conflicts[0].event_keys == ["highlevel-h1", "internal-1"]
    assert conflicts[0].severity == "high"
    assert conflicts[0].suggested_resolution == "manual"


def test_suppressed_events_are_ignored():
    events = [
        make_event("internal", 1, "Hull survey", at(10), at(11)),
        make_event("google", "g1", "Crew call", at(10), at(11), suppressed=True),
    ]

    assert detect_conflicts(events) == []


def test_apply_resolution():
    internal = make_event("internal", 1, "Hull survey", at(10), at(11), last_synced_at=at(8))
    google = make_event("google", "g1", "Crew call", at(10), at(11), last_synced_at=at(9))
    ical = make_event("ical", "i1", "Harbor meeting", at(10), at(11), last_synced_at=at(7))

    kept, dropped = apply_resolution([internal, google], "local_wins")
    assert kept == [internal]
    assert dropped == [google]

    kept, dropped = apply_resolution([internal, google, ical], "newest_wins")
    assert kept == [google]
    assert len(dropped) == 2

    # Nothing local to keep, so everything stays
    kept, dropped = apply_resolution([google, ical], "local_wins")
    assert kept == [google, ical]
    assert dropped == []


def test_newest_wins_tie_keeps_later_event():
    first = make_event("google", "g1", "Crew call", at(10), at(11), last_synced_at=at(8))
    second = make_event("ical", "i1", "Crew call", at(10), at(11), last_synced_at=at(8))

    kept, dropped = apply_resolution([first, second], "newest_wins")

    assert kept == [second]
    assert dropped == [first]


@pytest.fixture
def stored(db, admin_user):
    def store(*events):
        for event in events:
            event.user_id = admin_user.id
        UnifiedCalendarService(db).store_events(list(events), admin_user.id)
        return list(events)

    return store


def test_store_conflicts_reuses_unresolved_fingerprint(db, stored):
    events = stored(
        make_event("internal", 1, "Hull survey", at(10), at(11)),
        make_event("google", "g1", "Crew call", at(10), at(11)),
    )
    resolver = ConflictResolver(db)

    first = resolver.detect(events)
    second = resolver.detect(events)

    assert len(first) == 1
    assert second[0].id == first[0].id
    rows = db.query(UnifiedCalendarEvent).all()
    assert {row.sync_status for row in rows} == {"conflict"}


def test_resolve_suppresses_dropped_events(db, stored):
    events = stored(
        make_event("internal", 1, "Hull survey", at(10), at(11)),
        make_event("google", "g1", "Crew call", at(10), at(11)),
    )
    resolver = ConflictResolver(db)
    conflict = resolver.detect(events)[0]

    resolved = resolver.resolve(conflict.id, "local_wins", "admin@diverwell.com")

    assert resolved.resolved is True
    assert resolved.resolution == "local_wins"
    assert resolved.resolved_by == "admin@diverwell.com"
    rows = {row.event_key: row for row in db.query(UnifiedCalendarEvent).all()}
    assert rows["google-g1"].suppressed is True
    assert rows["internal-1"].suppressed is False
    assert rows["internal-1"].sync_status == "synced"

    with pytest.raises(HTTPException) as exc:
        resolver.resolve(conflict.id, "local_wins", "admin@diverwell.com")
    assert exc.value.status_code == 409


def test_resolve_rejects_unknown_input(db):
    resolver = ConflictResolver(db)

    with pytest.raises(HTTPException) as exc:
        resolver.resolve(1, "coin_flip", "admin@diverwell.com")
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        resolver.resolve(999, "manual", "admin@diverwell.com")
    assert exc.value.status_code == 404


def test_auto_resolve_leaves_high_severity(db, stored):
    events = stored(
        make_event("internal", 1, "Morning dive", at(8), at(9)),
        make_event("google", "g1", "Crew call", at(8, 45), at(10)),
        make_event("internal", 2, "Hull survey", at(13), at(14)),
        make_event("ical", "i1", "Harbor meeting", at(13), at(14)),
    )
    resolver = ConflictResolver(db)
    resolver.detect(events)

    result = resolver.auto_resolve("remote_wins")

    assert result == {"resolved": 1, "skipped": 1, "strategy": "remote_wins"}
    remaining = resolver.get_unresolved()
    assert [conflict.severity for conflict, _ in remaining] == ["high"]
    assert db.query(UnifiedCalendarEvent).filter(UnifiedCalendarEvent.event_key == "internal-1").one().suppressed

    with pytest.raises(HTTPException) as exc:
        resolver.auto_resolve("manual")
    assert exc.value.status_code == 400


def test_conflict_endpoints(client, db, stored):
    stored(
        make_event("internal", 1, "Hull survey", at(10), at(11)),
        make_event("google", "g1", "Crew call", at(10), at(11)),
    )
    ConflictResolver(db).detect(
        [CalendarEvent.from_row(row) for row in db.query(UnifiedCalendarEvent).all()]
    )

    conflicts = client.get("/api/admin/calendar/conflicts").json()
    assert len(conflicts) == 1

    assert client.post(
        f"/api/admin/calendar/conflicts/{conflicts[0]['id']}/resolve", json={"resolution": "shrug"}
    ).status_code == 422
    response = client.post(
        f"/api/admin/calendar/conflicts/{conflicts[0]['id']}/resolve", json={"resolution": "remote_wins"}
    )
    assert response.status_code == 200
    assert response.json()["resolution"] == "remote_wins"
    assert client.get("/api/admin/calendar/conflicts").json() == []


def test_users_keep_separate_copies_of_a_shared_event(db, admin_user, member_user):
    service = UnifiedCalendarService(db)
    service.store_events(
        [make_event("internal", 1, "Hull survey", at(10), at(11)), make_event("google", "g1", "Crew call", at(10), at(11))],
        admin_user.id,
    )
    service.store_events([make_event("google", "g1", "Crew call", at(10), at(11))], member_user.id)

    def shared_rows():
        return db.query(UnifiedCalendarEvent).filter(UnifiedCalendarEvent.event_key == "google-g1").all()

    assert sorted(row.user_id for row in shared_rows()) == sorted([admin_user.id, member_user.id])

    admin_rows = db.query(UnifiedCalendarEvent).filter(UnifiedCalendarEvent.user_id == admin_user.id).all()
    resolver = ConflictResolver(db)
    conflict = resolver.detect([CalendarEvent.from_row(row) for row in admin_rows])[0]
    assert conflict.user_id == admin_user.id

    resolver.resolve(conflict.id, "local_wins", "admin@diverwell.com")

    by_user = {row.user_id: row for row in shared_rows()}
    assert by_user[admin_user.id].suppressed is True
    assert by_user[member_user.id].suppressed is False
    assert by_user[member_user.id].sync_status == "synced"
