import pytest

from diverwell.domain.crm.service import CrmService
from diverwell.models import ROLE_AFFILIATE


@pytest.fixture
def crm_client(client):
    response = client.post(
        "/api/crm/clients",
        json={"name": "Marina Ops", "email": "Ops@Marina.com", "subscriptionType": "MONTHLY", "status": "ACTIVE"},
    )
    assert response.status_code == 201
    return response.json()


def test_create_client_derives_monthly_revenue(crm_client):
    assert crm_client["email"] == "ops@marina.com"
    assert crm_client["monthlyRevenue"] == 2500
    assert crm_client["partnerStatus"] == "NONE"


def test_client_email_is_unique(client, crm_client):
    response = client.post("/api/crm/clients", json={"name": "Copy", "email": "ops@marina.com"})
    assert response.status_code == 409


def test_client_validation(client):
    assert client.post("/api/crm/clients", json={"name": "X", "email": "not-an-email"}).status_code == 422
    assert client.post(
        "/api/crm/clients", json={"name": "X", "email": "x@example.com", "subscriptionType": "WEEKLY"}
    ).status_code == 422


def test_crm_is_admin_only(client, auth, member_user):
    auth.login(member_user)
    assert client.get("/api/crm/clients").status_code == 403


def test_update_subscription_recomputes_revenue(client, crm_client):
    response = client.put(f"/api/crm/clients/{crm_client['id']}", json={"subscriptionType": "ANNUAL"})
    assert response.json()["monthlyRevenue"] == 2083


def test_tags(client, crm_client):
    client.post(f"/api/crm/clients/{crm_client['id']}/tags", json={"tag": "vip"})
    tagged = client.post(f"/api/crm/clients/{crm_client['id']}/tags", json={"tag": " vip "}).json()
    assert tagged["tags"] == ["vip"]

    assert client.delete(f"/api/crm/clients/{crm_client['id']}/tags/vip").json()["tags"] == []
    assert client.delete(f"/api/crm/clients/{crm_client['id']}/tags/vip").status_code == 404


def test_stats(client, crm_client):
    client.post("/api/crm/clients", json={"name": "Lead", "email": "lead@example.com"})

    stats = client.get("/api/crm/clients/stats").json()

    assert stats["total"] == 2
    assert stats["byStatus"]["ACTIVE"] == 1
    assert stats["byStatus"]["LEAD"] == 1
    assert stats["byStatus"]["PAUSED"] == 0
    assert stats["bySubscription"] == {"MONTHLY": 1, "TRIAL": 1}
    assert stats["totalMonthlyRevenue"] == 2500


def test_communications(client, admin_user, crm_client):
    response = client.post(
        f"/api/crm/clients/{crm_client['id']}/communications",
        json={"channel": "call", "subject": "Renewal", "body": "Discussed annual plan"},
    )
    assert response.status_code == 201
    assert response.json()["createdBy"] == admin_user.id

    history = client.get(f"/api/crm/clients/{crm_client['id']}/communications").json()
    assert [c["subject"] for c in history] == ["Renewal"]


def test_sync_user_creates_then_refreshes(client, make_user):
    user = make_user("partner@example.com", role=ROLE_AFFILIATE, full_name="Pat Partner")

    created = client.post(f"/api/crm/clients/sync-user/{user.id}").json()
    refreshed = client.post(f"/api/crm/clients/sync-user/{user.id}").json()

    assert created["userId"] == user.id
    assert created["partnerStatus"] == "AFFILIATE"
    assert refreshed["id"] == created["id"]
    assert client.post("/api/crm/clients/sync-user/9999").status_code == 404


def test_highlevel_sync_without_configuration(client, crm_client):
    response = client.post(f"/api/crm/clients/{crm_client['id']}/highlevel-sync")
    assert response.json() == {"synced": False, "highlevelContactId": None}


def test_upsert_from_highlevel_creates_and_updates(db):
    service = CrmService(db)

    created = service.upsert_from_highlevel(
        {
            "id": "ghl-1",
            "firstName": "Dana",
            "lastName": "Reef",
            "email": "Dana@Reef.com",
            "tags": ["Subscription: monthly", "newsletter"],
        }
    )
    assert created.email == "dana@reef.com"
    assert created.name == "Dana Reef"
    assert created.status == "LEAD"
    assert created.subscription_type == "MONTHLY"
    assert created.monthly_revenue == 2500

    updated = service.upsert_from_highlevel(
        {"id": "ghl-1", "email": "dana@reef.com", "customField": {"subscriptionStatus": "ACTIVE", "partnerStatus": "BOGUS"}}
    )
    assert updated.id == created.id
    assert updated.status == "ACTIVE"
    assert updated.partner_status == "NONE"


def test_upsert_from_highlevel_skips_contact_without_email(db):
    assert CrmService(db).upsert_from_highlevel({"id": "ghl-2", "firstName": "Nameless"}) is None


def test_record_booking(db):
    service = CrmService(db)

    client = service.record_booking(
        {"id": "apt-9", "title": "Discovery call", "startTime": "2026-07-01T15:00:00Z", "contact": {"email": "New@Lead.com", "name": "New Lead"}}
    )
    again = service.record_booking({"id": "apt-10", "email": "new@lead.com"})

    assert client.status == "LEAD"
    assert again.id == client.id
    assert again.booking_count == 2
    assert again.calendly_event_uri == "highlevel://appointments/apt-10"
    assert service.record_booking({"id": "apt-11"}) is None
