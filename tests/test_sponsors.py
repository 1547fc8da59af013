from datetime import datetime
from types import SimpleNamespace

import pytest

from diverwell import cache as cache_module
from diverwell.domain.sponsors import router as sponsor_router
from diverwell.domain.sponsors import service as sponsor_service
from diverwell.domain.sponsors.schemas import SponsorCreate
from diverwell.domain.sponsors.service import SponsorService, compute_analytics, month_bounds, previous_month
from diverwell.models_sponsor import SponsorEvent

SPONSOR = {"companyName": "Deep Blue Gear", "contactEmail": "partners@deepblue.com", "tier": "GOLD"}


def event(event_type, placement_id=None):
    return SimpleNamespace(event_type=event_type, placement_id=placement_id)


def test_compute_analytics_counts_cta_clicks_as_clicks():
    events = [event("IMPRESSION", 1)] * 3 + [event("CLICK", 1), event("CTA_CLICK", 2), event("CONVERSION")]

    analytics = compute_analytics(events)

    assert analytics["impressions"] == 3
    assert analytics["clicks"] == 2
    assert analytics["conversions"] == 1
    assert analytics["ctr"] == 66.67
    assert analytics["placementBreakdown"]["1"] == {"impressions": 3, "clicks": 1, "conversions": 0, "ctr": 33.33}
    assert analytics["placementBreakdown"]["2"]["ctr"] == 0.0
    assert analytics["placementBreakdown"]["unplaced"]["conversions"] == 1


def test_month_helpers():
    assert month_bounds("2026-12") == (datetime(2026, 12, 1), datetime(2027, 1, 1))
    assert month_bounds("2026-02") == (datetime(2026, 2, 1), datetime(2026, 3, 1))
    assert previous_month(datetime(2026, 1, 15)) == "2025-12"
    assert previous_month(datetime(2026, 7, 1)) == "2026-06"


@pytest.fixture
def sponsor(client):
    response = client.post("/api/sponsors", json={**SPONSOR, "status": "ACTIVE", "exclusivityCategory": "dive-gear"})
    assert response.status_code == 201
    return response.json()


def test_exclusivity_category_is_held_by_one_active_sponsor(client, sponsor):
    rival = {**SPONSOR, "companyName": "Reef Supply", "exclusivityCategory": "dive-gear"}

    assert client.post("/api/sponsors", json={**rival, "status": "ACTIVE"}).status_code == 409
    pending = client.post("/api/sponsors", json=rival)
    assert pending.status_code == 201
    assert client.put(f"/api/sponsors/{pending.json()['id']}", json={"status": "ACTIVE"}).status_code == 409


def test_activating_while_clearing_exclusivity_is_allowed(client, sponsor):
    rival = client.post("/api/sponsors", json={**SPONSOR, "companyName": "Reef Supply", "exclusivityCategory": "dive-gear"})

    response = client.put(f"/api/sponsors/{rival.json()['id']}", json={"status": "ACTIVE", "exclusivityCategory": None})

    assert response.status_code == 200
    assert response.json()["status"] == "ACTIVE"
    assert response.json()["exclusivityCategory"] is None


def test_sponsor_dates_can_be_cleared(client, sponsor):
    client.put(f"/api/sponsors/{sponsor['id']}", json={"startDate": "2026-06-01T00:00:00", "endDate": "2026-06-30T00:00:00"})

    response = client.put(f"/api/sponsors/{sponsor['id']}", json={"endDate": None, "startDate": "2026-07-01T00:00:00"})

    assert response.status_code == 200
    assert response.json()["endDate"] is None


def test_sponsor_end_date_must_follow_start(client):
    response = client.post(
        "/api/sponsors", json={**SPONSOR, "startDate": "2026-06-01T00:00:00", "endDate": "2026-05-01T00:00:00"}
    )
    assert response.status_code == 400


def test_sponsor_admin_requires_admin(client, auth, member_user):
    auth.login(member_user)
    assert client.get("/api/sponsors").status_code == 403


def test_public_sponsors_hide_contact_details(client, sponsor):
    client.post("/api/sponsors", json={**SPONSOR, "companyName": "Pending Co"})

    public = client.get("/api/sponsors/public/active").json()

    assert [s["companyName"] for s in public] == ["Deep Blue Gear"]
    assert "contactEmail" not in public[0]


def test_track_event_and_analytics(client, sponsor):
    placement = client.post(
        f"/api/sponsors/{sponsor['id']}/placements", json={"placementType": "HOMEPAGE_STRIP", "location": "hero"}
    ).json()

    for event_type in ("IMPRESSION", "IMPRESSION", "CTA_CLICK"):
        response = client.post(
            "/api/sponsors/track-event",
            json={"sponsorId": sponsor["id"], "placementId": placement["id"], "eventType": event_type},
        )
        assert response.status_code == 201

    analytics = client.get(f"/api/sponsors/{sponsor['id']}/analytics").json()
    assert analytics["impressions"] == 2
    assert analytics["clicks"] == 1
    assert analytics["ctr"] == 50.0

    active = client.get("/api/sponsors/placements/active").json()
    assert active[0]["placementId"] == placement["id"]


class MemoryCache:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl=3600):
        self.store[key] = value
        return True

    def delete(self, key):
        return self.store.pop(key, None) is not None

    def delete_pattern(self, pattern):
        prefix = pattern.rstrip("*")
        keys = [key for key in self.store if key.startswith(prefix)]
        for key in keys:
            del self.store[key]
        return len(keys)


def test_active_placements_are_cached_until_a_write(client, sponsor, monkeypatch):
    memory = MemoryCache()
    monkeypatch.setattr(sponsor_service, "cache", memory)
    monkeypatch.setattr(cache_module, "cache", memory)
    client.post(f"/api/sponsors/{sponsor['id']}/placements", json={"placementType": "HOMEPAGE_STRIP"})

    first = client.get("/api/sponsors/placements/active").json()
    assert len(first) == 1
    assert "sponsors:placements:all" in memory.store

    memory.store["sponsors:placements:all"] = []
    assert client.get("/api/sponsors/placements/active").json() == []

    client.post(f"/api/sponsors/{sponsor['id']}/placements", json={"placementType": "IN_APP_TILE"})
    assert "sponsors:placements:all" not in memory.store
    assert len(client.get("/api/sponsors/placements/active").json()) == 2


def test_track_event_rejects_foreign_placement(client, sponsor):
    other = client.post("/api/sponsors", json={**SPONSOR, "companyName": "Reef Supply"}).json()
    placement = client.post(f"/api/sponsors/{other['id']}/placements", json={"placementType": "IN_APP_TILE"}).json()

    response = client.post(
        "/api/sponsors/track-event",
        json={"sponsorId": sponsor["id"], "placementId": placement["id"], "eventType": "CLICK"},
    )
    assert response.status_code == 400


def test_track_event_validates_type(client, sponsor):
    response = client.post("/api/sponsors/track-event", json={"sponsorId": sponsor["id"], "eventType": "HOVER"})
    assert response.status_code == 422


def test_generate_report_upserts(client, sponsor, db):
    db.add_all(
        [
            SponsorEvent(sponsor_id=sponsor["id"], event_type="IMPRESSION", timestamp=datetime(2026, 4, 3)),
            SponsorEvent(sponsor_id=sponsor["id"], event_type="CLICK", timestamp=datetime(2026, 4, 20)),
            SponsorEvent(sponsor_id=sponsor["id"], event_type="CLICK", timestamp=datetime(2026, 5, 1)),
        ]
    )
    db.commit()

    first = client.post(f"/api/sponsors/{sponsor['id']}/generate-report", json={"reportMonth": "2026-04"}).json()
    second = client.post(f"/api/sponsors/{sponsor['id']}/generate-report", json={"reportMonth": "2026-04"}).json()

    assert first["impressions"] == 1
    assert first["clicks"] == 1
    assert first["ctr"] == 100.0
    assert second["id"] == first["id"]
    assert len(client.get(f"/api/sponsors/{sponsor['id']}/reports").json()) == 1


def test_generate_report_validates_month(client, sponsor):
    response = client.post(f"/api/sponsors/{sponsor['id']}/generate-report", json={"reportMonth": "2026-13"})
    assert response.status_code == 422


async def test_send_monthly_reports_marks_sent(db, monkeypatch):
    service = SponsorService(db)
    delivered = service.create_sponsor(SponsorCreate(**SPONSOR, status="ACTIVE"))
    bounced = service.create_sponsor(
        SponsorCreate(**{**SPONSOR, "companyName": "Broken Mail", "contactEmail": "bounce@example.com"}, status="ACTIVE")
    )
    service.create_sponsor(SponsorCreate(**{**SPONSOR, "companyName": "Inactive Co"}, status="INACTIVE"))
    sent_to = []

    async def fake_send(email, company_name, summary):
        if email == "bounce@example.com":
            raise RuntimeError("mailbox unavailable")
        sent_to.append((email, summary["reportMonth"]))

    monkeypatch.setattr(sponsor_service, "send_sponsor_report_email", fake_send)

    result = await service.send_monthly_reports(now=datetime(2026, 5, 2))
    assert result == {"reportMonth": "2026-04", "sent": 1, "failed": 1}
    assert sent_to == [("partners@deepblue.com", "2026-04")]

    # A second run only retries the sponsor whose email failed
    rerun = await service.send_monthly_reports(now=datetime(2026, 5, 3))
    assert rerun == {"reportMonth": "2026-04", "sent": 0, "failed": 1}
    assert service.repo.get_report(db, delivered.id, "2026-04").sent_at is not None
    assert service.repo.get_report(db, bounced.id, "2026-04").sent_at is None


def test_inquiry_is_stored_even_when_notification_fails(client, monkeypatch):
    async def failing_notification(inquiry):
        raise RuntimeError("email provider down")

    monkeypatch.setattr(sponsor_router, "send_sponsor_inquiry_notification", failing_notification)

    response = client.post(
        "/api/sponsors/inquiry",
        json={"companyName": "Harbor Tools", "contactName": "Alex", "contactEmail": "alex@harbor.com", "interestedTier": "SILVER"},
    )

    assert response.status_code == 201
    assert response.json()["status"] == "PENDING"
    inquiries = client.get("/api/sponsors/inquiries").json()
    assert [i["companyName"] for i in inquiries] == ["Harbor Tools"]

    updated = client.patch(f"/api/sponsors/inquiries/{inquiries[0]['id']}", json={"status": "CONTACTED", "notes": "Called"})
    assert updated.json()["status"] == "CONTACTED"


def test_inquiries_are_rate_limited(client, monkeypatch):
    async def quiet_notification(inquiry):
        return None

    monkeypatch.setattr(sponsor_router, "send_sponsor_inquiry_notification", quiet_notification)
    payload = {"companyName": "Harbor Tools", "contactName": "Alex", "contactEmail": "alex@harbor.com"}

    statuses = [client.post("/api/sponsors/inquiry", json=payload).status_code for _ in range(6)]

    assert statuses == [201] * 5 + [429]
