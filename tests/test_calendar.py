from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from diverwell.domain.calendar.events import CalendarEvent
from diverwell.domain.calendar.ical import category_to_type, operation_type_for, type_to_category
from diverwell.domain.calendar.providers import CalendarProviderError, ICalFeedProvider, outlook_event_to_calendar_event
from diverwell.domain.calendar.unified_service import booking_event, deduplicate_events, internal_event
from diverwell.models_calendar import CalendarSyncCredential, UnifiedCalendarEvent
from diverwell.services import apple_calendar_service, outlook_calendar_service

OPERATION = {"title": "Hull inspection", "operationDate": "2026-07-06T00:00:00", "startTime": "09:00", "type": "DIVE"}

IMPORT_ICS = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//Harbor Authority//Schedule//EN\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:ext-1@harbor\r\n"
    "DTSTAMP:20260601T000000Z\r\n"
    "DTSTART:20260710T140000Z\r\n"
    "DTEND:20260710T160000Z\r\n"
    "SUMMARY:Pier inspection\r\n"
    "CATEGORIES:INSPECTION\r\n"
    "LOCATION:Pier 4\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:ext-2@harbor\r\n"
    "DTSTAMP:20260601T000000Z\r\n"
    "DTSTART;VALUE=DATE:20260711\r\n"
    "SUMMARY:Team day\r\n"
    "DESCRIPTION:Annual training refresh\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
).encode()


@pytest.fixture
def operation(client):
    response = client.post("/api/operations-calendar", json=OPERATION)
    assert response.status_code == 201
    return response.json()


def operation_row(**overrides):
    fields = {
        "id": 5,
        "title": "Hull inspection",
        "description": None,
        "operation_date": datetime(2026, 7, 6),
        "start_time": "09:00",
        "end_time": None,
        "location": None,
        "type": "DIVE",
        "status": "SCHEDULED",
        "color": None,
        "updated_at": None,
        "created_by": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_internal_event_defaults_to_end_of_day():
    event = internal_event(operation_row())

    assert event.key == "internal-5"
    assert event.start == datetime(2026, 7, 6, 9)
    assert event.end == datetime(2026, 7, 6, 17)
    assert event.color == "#8b5cf6"
    assert event.all_day is False


def test_internal_event_late_start_and_all_day():
    late = internal_event(operation_row(start_time="18:00"))
    assert late.end == datetime(2026, 7, 6, 19)

    all_day = internal_event(operation_row(start_time=None))
    assert all_day.all_day is True
    assert all_day.start == datetime(2026, 7, 6)


def test_booking_event_lasts_an_hour():
    client = SimpleNamespace(
        id=3,
        name="Dana Reef",
        email="dana@reef.com",
        calendly_event_name=None,
        calendly_event_uri="highlevel://appointments/apt-1",
        last_booking_time=datetime(2026, 7, 7, 15),
    )

    event = booking_event(client)

    assert event.title == "Calendly Meeting - Dana Reef"
    assert event.end == datetime(2026, 7, 7, 16)
    assert event.primary_email == "dana@reef.com"
    assert event.metadata == {"clientId": 3}


def test_deduplicate_prefers_synced_then_attendees():
    start, end = datetime(2026, 7, 6, 9), datetime(2026, 7, 6, 10)
    kai = {"email": "kai@example.com", "name": "Kai"}
    pending = CalendarEvent("google", "g1", "Dive plan", start, end, attendees=[kai], sync_status="pending")
    synced = CalendarEvent("highlevel", "h1", "Dive plan", start, end, attendees=[kai])
    bigger = CalendarEvent("ical", "i1", "Dive plan", start, end, attendees=[kai, {"email": "sam@example.com"}])
    elsewhere = CalendarEvent("google", "g2", "Other", start, end, attendees=[{"email": "lee@example.com"}])

    result = deduplicate_events([pending, synced, bigger, elsewhere])

    assert [e.key for e in result] == ["ical-i1", "google-g2"]


def test_operation_validation(client):
    assert client.post("/api/operations-calendar", json={**OPERATION, "startTime": "25:00"}).status_code == 422
    assert client.post("/api/operations-calendar", json={**OPERATION, "color": "blue"}).status_code == 422
    assert client.post("/api/operations-calendar", json={**OPERATION, "type": "PARTY"}).status_code == 422


def test_operation_crud(client, operation):
    assert operation["status"] == "SCHEDULED"
    assert operation["operationDate"] == "2026-07-06T00:00:00"

    updated = client.put(f"/api/operations-calendar/{operation['id']}", json={"status": "COMPLETED", "color": "#1A2B3C"})
    assert updated.json()["status"] == "COMPLETED"
    assert updated.json()["color"] == "#1a2b3c"

    assert client.delete(f"/api/operations-calendar/{operation['id']}").status_code == 200
    assert client.get(f"/api/operations-calendar/{operation['id']}").status_code == 404


def test_members_read_but_cannot_schedule(client, auth, member_user, operation):
    auth.login(member_user)

    assert [op["title"] for op in client.get("/api/operations-calendar").json()] == ["Hull inspection"]
    assert client.post("/api/operations-calendar", json=OPERATION).status_code == 403


def test_export_ical(client, operation):
    response = client.get("/api/operations-calendar/export/ical")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/calendar")
    body = response.text
    assert "BEGIN:VEVENT" in body
    assert "SUMMARY:Hull inspection" in body
    assert "CATEGORIES:DIVE" in body


def test_import_ical_skips_known_events(client):
    files = {"file": ("harbor.ics", IMPORT_ICS, "text/calendar")}

    first = client.post("/api/operations-calendar/import/ical", files=files).json()

    assert first["imported"] == 2
    assert first["skipped"] == 0
    pier, team_day = first["events"]
    assert pier["type"] == "INSPECTION"
    assert pier["operationDate"] == "2026-07-10T00:00:00"
    assert (pier["startTime"], pier["endTime"]) == ("14:00", "16:00")
    assert pier["externalId"] == "ext-1@harbor"
    assert team_day["type"] == "TRAINING"
    assert team_day["startTime"] is None

    again = client.post("/api/operations-calendar/import/ical", files=files).json()
    assert again["imported"] == 0
    assert again["skipped"] == 2


def test_type_to_category():
    assert type_to_category("MAINTENANCE") == "MAINTENANCE"
    assert type_to_category("SNORKEL") == "OTHER"
    assert type_to_category(None) == "OTHER"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("inspection", "INSPECTION"),
        (" Other ", "OTHER"),
        ("Night dive briefing", "DIVE"),
        ("Compressor maintenance window", "MAINTENANCE"),
        ("Harbor party", "OTHER"),
        (None, "OTHER"),
    ],
)
def test_category_to_type(text, expected):
    assert category_to_type(text) == expected


def test_operation_type_prefers_first_category():
    event = {"categories": ["Training", "Dive"], "description": "Inspection of pier 4"}

    assert operation_type_for(event) == "TRAINING"
    assert operation_type_for({"categories": [], "description": "Inspection of pier 4"}) == "INSPECTION"


def test_import_ical_rejects_empty_upload(client):
    files = {"file": ("empty.ics", b"", "text/calendar")}
    assert client.post("/api/operations-calendar/import/ical", files=files).status_code == 400


def test_list_providers(client):
    providers = client.get("/api/calendar/connections/providers").json()

    assert [p["provider"] for p in providers] == ["google", "outlook", "apple", "highlevel", "ical"]
    assert providers[0]["requiresOAuth"] is True
    assert providers[1]["requiresOAuth"] is True
    assert providers[2]["requiredFields"] == ["appleId", "appPassword"]
    assert providers[3]["requiredFields"] == ["apiKey", "calendarId"]


def test_connection_validation(client):
    def create(payload):
        return client.post("/api/calendar/connections", json=payload)

    assert create({"provider": "google"}).status_code == 400
    assert create({"provider": "outlook"}).status_code == 400
    assert create({"provider": "yahoo"}).status_code == 422
    assert create({"provider": "apple", "config": {"appleId": "ops@icloud.com"}}).json()["detail"] == "appPassword is required"
    insecure = {"appleId": "ops@icloud.com", "appPassword": "abcd-efgh-ijkl-mnop", "calendarUrl": "http://caldav.icloud.com/1/"}
    assert create({"provider": "apple", "config": insecure}).status_code == 400
    assert create({"provider": "ical", "config": {"feedUrl": "ftp://calendar.example.com"}}).status_code == 400

    missing = create({"provider": "highlevel", "config": {"apiKey": "key"}})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "calendarId is required"


@pytest.fixture
def ical_connection(client):
    response = client.post(
        "/api/calendar/connections",
        json={"provider": "ical", "config": {"feedUrl": "webcal://calendar.example.com/dive.ics"}},
    )
    assert response.status_code == 201
    return response.json()


def test_ical_connection_lifecycle(client, ical_connection):
    assert ical_connection["name"] == "iCal Feed"
    assert ical_connection["configuredFields"] == ["feedUrl"]

    duplicate = client.post(
        "/api/calendar/connections", json={"provider": "ical", "config": {"feedUrl": "https://other.example.com"}}
    )
    assert duplicate.status_code == 409

    renamed = client.put(f"/api/calendar/connections/{ical_connection['id']}", json={"name": "Harbor feed"})
    assert renamed.json()["name"] == "Harbor feed"

    assert client.delete(f"/api/calendar/connections/{ical_connection['id']}").status_code == 200
    assert client.get("/api/calendar/connections").json() == []


def test_connections_belong_to_their_owner(client, auth, member_user, ical_connection):
    auth.login(member_user)

    assert client.get("/api/calendar/connections").json() == []
    assert client.delete(f"/api/calendar/connections/{ical_connection['id']}").status_code == 404


def test_unified_calendar_and_analytics(client, operation):
    params = {"start": "2026-07-01T00:00:00", "end": "2026-07-31T00:00:00"}

    events = client.get("/api/admin/calendar/unified", params=params).json()

    assert [e["id"] for e in events] == [f"internal-{operation['id']}"]
    assert events[0]["endTime"] == "2026-07-06T17:00:00"
    assert events[0]["color"] == "#8b5cf6"

    analytics = client.get("/api/admin/calendar/analytics", params=params).json()
    assert analytics["totalEvents"] == 1
    assert analytics["bySource"] == {"internal": 1}
    assert analytics["byType"] == {"DIVE": 1}
    assert analytics["busiestDay"] == "Monday"
    assert analytics["conflicts"]["total"] == 0


def test_unified_calendar_rejects_bad_filters(client, auth, member_user):
    assert client.get("/api/admin/calendar/unified", params={"sources": "internal,zoom"}).status_code == 400
    assert client.get(
        "/api/admin/calendar/unified", params={"start": "2026-07-10T00:00:00", "end": "2026-07-01T00:00:00"}
    ).status_code == 400

    auth.login(member_user)
    assert client.get("/api/admin/calendar/unified").status_code == 403


def test_sync_without_connections_reports_note(client):
    results = client.post("/api/admin/calendar/sync", json={}).json()

    assert [r["note"] for r in results] == [
        "Google Calendar is not connected",
        "Outlook Calendar is not connected",
        "Apple Calendar is not connected",
        "GoHighLevel is not connected",
        "iCal Feed is not connected",
    ]
    assert all(r["success"] for r in results)

    statuses = client.get("/api/admin/calendar/sync/status").json()
    assert {s["source"]: s["status"] for s in statuses} == {
        "google": "success",
        "outlook": "success",
        "apple": "success",
        "highlevel": "success",
        "ical": "success",
    }
    assert len(client.get("/api/admin/calendar/sync/logs").json()) == 5


def test_sync_stores_feed_events(client, db, ical_connection, monkeypatch):
    start = datetime.utcnow().replace(microsecond=0) + timedelta(days=1)

    async def fake_fetch(self, credential):
        return [
            {
                "uid": "feed-1",
                "title": "Harbor closure",
                "description": None,
                "location": "Harbor",
                "start": start,
                "end": start + timedelta(hours=2),
                "all_day": False,
                "status": "CONFIRMED",
                "attendees": [],
            },
            {
                "uid": "feed-2",
                "title": "Outside the window",
                "description": None,
                "location": None,
                "start": start + timedelta(days=400),
                "end": start + timedelta(days=400, hours=1),
                "all_day": False,
                "status": None,
                "attendees": [],
            },
        ]

    monkeypatch.setattr(ICalFeedProvider, "_fetch", fake_fetch)

    results = client.post("/api/admin/calendar/sync", json={"source": "ical"}).json()

    assert results == [{"source": "ical", "success": True, "eventsSynced": 1, "errors": [], "note": None}]
    row = db.query(UnifiedCalendarEvent).one()
    assert row.event_key == "ical-feed-1"
    assert row.color == "#f59e0b"
    credential = db.query(CalendarSyncCredential).one()
    db.refresh(credential)
    assert credential.last_sync_at is not None


def test_sync_failure_is_recorded(client, ical_connection, monkeypatch):
    async def broken_fetch(self, credential):
        raise CalendarProviderError("iCal feed could not be read: 404")

    monkeypatch.setattr(ICalFeedProvider, "_fetch", broken_fetch)

    results = client.post("/api/admin/calendar/sync", json={"source": "ical"}).json()

    assert results[0]["success"] is False
    assert results[0]["errors"] == ["iCal feed could not be read: 404"]
    status = client.get("/api/admin/calendar/sync/status").json()[0]
    assert status["status"] == "failed"
    assert status["errorMessage"] == "iCal feed could not be read: 404"
    assert client.get("/api/admin/calendar/sync/logs").json()[0]["status"] == "failed"


def test_sync_reads_apple_calendar(client, db, monkeypatch):
    start = (datetime.utcnow() + timedelta(days=2)).replace(hour=9, minute=0, second=0, microsecond=0)
    document = (
        "BEGIN:VCALENDAR\r\n"
        "VERSION:2.0\r\n"
        "PRODID:-//Apple Inc.//iCloud//EN\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:icloud-42\r\n"
        f"DTSTAMP:{start:%Y%m%dT%H%M%S}Z\r\n"
        f"DTSTART:{start:%Y%m%dT%H%M%S}Z\r\n"
        f"DTEND:{start + timedelta(hours=1):%Y%m%dT%H%M%S}Z\r\n"
        "SUMMARY:Gear service\r\n"
        "END:VEVENT\r\n"
        "END:VCALENDAR\r\n"
    )
    calls = []

    def fake_fetch(apple_id, app_password, window_start, window_end, calendar_url=None):
        calls.append((apple_id, app_password, calendar_url))
        return [document]

    monkeypatch.setattr(apple_calendar_service, "fetch_calendar_data", fake_fetch)
    connection = client.post(
        "/api/calendar/connections",
        json={"provider": "apple", "config": {"appleId": "ops@icloud.com", "appPassword": "abcd-efgh-ijkl-mnop"}},
    )
    assert connection.status_code == 201

    results = client.post("/api/admin/calendar/sync", json={"source": "apple"}).json()

    assert results == [{"source": "apple", "success": True, "eventsSynced": 1, "errors": [], "note": None}]
    assert calls == [("ops@icloud.com", "abcd-efgh-ijkl-mnop", None)]
    row = db.query(UnifiedCalendarEvent).one()
    assert row.event_key == "apple-icloud-42"
    assert row.title == "Gear service"
    assert row.color == "#6b7280"


def test_outlook_event_mapping():
    item = {
        "id": "AAMkAGI2",
        "subject": "Dive team standup",
        "body": {"contentType": "html", "content": "<p>Agenda</p>"},
        "bodyPreview": "Agenda",
        "start": {"dateTime": "2026-07-06T09:00:00.0000000", "timeZone": "UTC"},
        "end": {"dateTime": "2026-07-06T09:30:00.0000000", "timeZone": "UTC"},
        "location": {"displayName": "Dock 3"},
        "attendees": [{"emailAddress": {"address": "Kai@Example.com", "name": "Kai"}}],
        "isAllDay": False,
        "showAs": "busy",
        "lastModifiedDateTime": "2026-07-01T12:00:00Z",
        "webLink": "https://outlook.office365.com/owa/?itemid=AAMkAGI2",
    }

    event = outlook_event_to_calendar_event(item, user_id=7)

    assert event.key == "outlook-AAMkAGI2"
    assert (event.start, event.end) == (datetime(2026, 7, 6, 9), datetime(2026, 7, 6, 9, 30))
    assert event.description == "Agenda"
    assert event.location == "Dock 3"
    assert event.attendees == [{"email": "kai@example.com", "name": "Kai"}]
    assert event.last_synced_at == datetime(2026, 7, 1, 12)
    assert event.metadata["webLink"].endswith("AAMkAGI2")
    assert outlook_event_to_calendar_event({"subject": "No id"}) is None


def test_outlook_event_body_for_all_day():
    body = outlook_calendar_service.build_event_body(
        "Harbor closed", datetime(2026, 7, 6, 10), datetime(2026, 7, 6, 12), location="Harbor", all_day=True
    )

    assert body["isAllDay"] is True
    assert body["start"] == {"dateTime": "2026-07-06T00:00:00", "timeZone": "UTC"}
    assert body["end"] == {"dateTime": "2026-07-07T00:00:00", "timeZone": "UTC"}
    assert body["location"] == {"displayName": "Harbor"}
    assert "body" not in body
