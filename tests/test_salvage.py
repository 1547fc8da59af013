from datetime import date

import pytest

from diverwell.domain.salvage.schemas import CrewCreate
from diverwell.domain.salvage.service import SalvageService

WRECK = {"name": "MV Coral Queen", "location": {"lat": 25.76, "lng": -80.19}, "hullType": "metal"}


@pytest.fixture
def wreck(client):
    response = client.post("/api/salvage/wrecks", json={**WRECK, "estimatedValue": 150000, "progressPercentage": 40})
    assert response.status_code == 201
    return response.json()


def create_crew(client, email, role="diver", **extra):
    response = client.post("/api/salvage/crew", json={"name": email.split("@")[0], "email": email, "role": role, **extra})
    assert response.status_code == 201
    return response.json()


def test_create_wreck_defaults(wreck):
    assert wreck["status"] == "pending"
    assert wreck["location"] == {"lat": 25.76, "lng": -80.19}
    assert wreck["equipmentRequired"] == []


@pytest.mark.parametrize(
    "override",
    [
        {"hullType": "wood"},
        {"location": {"lat": 120, "lng": 0}},
        {"location": {"lat": 10}},
        {"progressPercentage": 101},
    ],
)
def test_create_wreck_rejects_invalid_fields(client, override):
    response = client.post("/api/salvage/wrecks", json={**WRECK, **override})
    assert response.status_code == 422


def test_members_cannot_register_wrecks(client, auth, member_user):
    auth.login(member_user)
    assert client.post("/api/salvage/wrecks", json=WRECK).status_code == 403
    assert client.get("/api/salvage/wrecks").status_code == 200


def test_delete_parks_wreck_on_hold(client, wreck):
    response = client.delete(f"/api/salvage/wrecks/{wreck['id']}")

    assert response.status_code == 200
    assert response.json()["status"] == "on-hold"
    assert client.get(f"/api/salvage/wrecks/{wreck['id']}").status_code == 200


def test_dashboard_stats(client, wreck):
    second = client.post(
        "/api/salvage/wrecks",
        json={**WRECK, "name": "SV Blue Marlin", "hullType": "fiberglass", "status": "in-progress",
              "estimatedValue": 50000, "actualCost": 20000, "progressPercentage": 80},
    ).json()
    client.delete(f"/api/salvage/wrecks/{second['id']}")

    stats = client.get("/api/salvage/stats").json()

    assert stats["total"] == 2
    assert stats["pending"] == 1
    assert stats["onHold"] == 1
    assert stats["inProgress"] == 0
    assert stats["totalEstimatedValue"] == 200000
    assert stats["totalActualCost"] == 20000
    assert stats["averageProgress"] == 60.0


def test_assign_crew(client, wreck):
    first = create_crew(client, "diver.one@diverwell.com")
    second = create_crew(client, "diver.two@diverwell.com", role="supervisor")

    response = client.post(
        f"/api/salvage/wrecks/{wreck['id']}/assign-crew", json={"crewMemberIds": [first["id"], second["id"]]}
    )

    assert response.status_code == 200
    assert response.json()["assignedCrewId"] == first["id"]
    assert client.get(f"/api/salvage/crew/{second['id']}").json()["assignedToWreckId"] == wreck["id"]


def test_assign_unknown_crew_is_rejected(client, wreck):
    first = create_crew(client, "diver.one@diverwell.com")
    response = client.post(
        f"/api/salvage/wrecks/{wreck['id']}/assign-crew", json={"crewMemberIds": [first["id"], 9999]}
    )
    assert response.status_code == 400


def test_operations_and_progress(client, wreck):
    bad = client.post(
        f"/api/salvage/wrecks/{wreck['id']}/operations",
        json={"operationType": "survey", "startTime": "2026-03-02T10:00:00", "endTime": "2026-03-02T09:00:00"},
    )
    assert bad.status_code == 400

    for percent in (100, 50):
        client.post(
            f"/api/salvage/wrecks/{wreck['id']}/operations",
            json={"operationType": "lift", "startTime": "2026-03-02T10:00:00", "progressPercentage": percent},
        )

    progress = client.get(f"/api/salvage/wrecks/{wreck['id']}/progress").json()
    assert progress == {"wreckProgress": 40, "operationsProgress": 75.0, "totalOperations": 2, "completedOperations": 1}


def test_vessel_imo_must_be_unique(client):
    vessel = {"name": "Northern Star", "vesselType": "tanker", "imoNumber": "IMO9321483"}
    assert client.post("/api/salvage/vessels", json=vessel).status_code == 201
    assert client.post("/api/salvage/vessels", json={**vessel, "name": "Copy"}).status_code == 409


def test_crew_email_must_be_unique(client):
    create_crew(client, "Diver.One@DiverWell.com")
    response = client.post(
        "/api/salvage/crew", json={"name": "Again", "email": "diver.one@diverwell.com", "role": "diver"}
    )
    assert response.status_code == 409


def test_crew_role_is_validated(client):
    response = client.post("/api/salvage/crew", json={"name": "X", "email": "x@diverwell.com", "role": "captain"})
    assert response.status_code == 422


def test_expiring_certifications_include_expired(db):
    service = SalvageService(db)
    service.create_crew_member(
        CrewCreate(
            name="Sam",
            email="sam@diverwell.com",
            role="diver",
            certifications=[
                {"name": "ADCI Surface Supplied", "expiresAt": "2026-05-20"},
                {"name": "First Aid", "expiresAt": "2026-04-01"},
                {"name": "HAZMAT", "expiresAt": "2027-01-01"},
                {"name": "Rigging"},
            ],
        )
    )

    expiring = service.get_expiring_certifications(days=30, today=date(2026, 5, 1))

    assert [item["certification"] for item in expiring] == ["First Aid", "ADCI Surface Supplied"]
    assert expiring[0]["expired"] is True
    assert expiring[1]["daysRemaining"] == 19


def test_project_pipeline(client):
    for status, value in (("bid", 10000), ("active", 25000), ("completed", 40000), ("active", 5000)):
        response = client.post(
            "/api/salvage/projects",
            json={"name": f"{status} job", "client": "Port Authority", "value": value, "status": status, "currency": "usd"},
        )
        assert response.json()["currency"] == "USD"

    pipeline = client.get("/api/salvage/projects/pipeline").json()

    assert pipeline["byStatus"]["active"] == {"count": 2, "value": 30000}
    assert pipeline["openValue"] == 40000
