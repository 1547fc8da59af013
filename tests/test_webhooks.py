import json
from datetime import datetime

import pytest

from diverwell.models_affiliate import Affiliate, CommissionPayment
from diverwell.models_crm import CrmClient
from diverwell.routes import highlevel_webhooks, stripe_webhooks
from diverwell.webhook_security import constant_time_compare, create_webhook_signature, verify_timestamp

GHL_SECRET = "ghl-test-secret"
STRIPE_SECRET = "whsec_test"


def test_verify_timestamp():
    assert verify_timestamp("1000", now=1200)
    assert not verify_timestamp("1000", now=1400)
    assert not verify_timestamp("yesterday", now=1000)
    assert not verify_timestamp(None)


def test_constant_time_compare_rejects_empty():
    assert constant_time_compare("abc", "abc")
    assert not constant_time_compare("", "")


@pytest.fixture
def highlevel_secret(monkeypatch):
    monkeypatch.setattr(highlevel_webhooks, "GHL_WEBHOOK_SECRET", GHL_SECRET)


@pytest.fixture
def stripe_secret(monkeypatch):
    monkeypatch.setattr(stripe_webhooks, "STRIPE_WEBHOOK_SECRET", STRIPE_SECRET)


def post_highlevel(client, payload, secret=GHL_SECRET):
    body = json.dumps(payload).encode()
    return client.post(
        "/api/webhooks/highlevel",
        content=body,
        headers={"X-GHL-Signature": create_webhook_signature(secret, body, provider="highlevel")},
    )


def post_stripe(client, payload, secret=STRIPE_SECRET):
    body = json.dumps(payload).encode()
    return client.post(
        "/api/webhooks/stripe",
        content=body,
        headers={"Stripe-Signature": create_webhook_signature(secret, body, provider="stripe")},
    )


def test_highlevel_webhook_requires_configuration(client):
    assert post_highlevel(client, {"type": "ContactCreate"}).status_code == 503


def test_highlevel_webhook_rejects_bad_signature(client, highlevel_secret):
    assert post_highlevel(client, {"type": "ContactCreate"}, secret="wrong").status_code == 401
    assert client.post("/api/webhooks/highlevel", json={"type": "ContactCreate"}).status_code == 401


def test_highlevel_contact_event_upserts_client(client, db, highlevel_secret):
    response = post_highlevel(
        client,
        {"type": "ContactCreate", "contact": {"id": "ghl-7", "firstName": "Kai", "email": "kai@example.com"}},
    )

    assert response.status_code == 200
    client_id = response.json()["clientId"]
    crm_client = db.query(CrmClient).filter(CrmClient.id == client_id).one()
    assert crm_client.highlevel_contact_id == "ghl-7"


def test_highlevel_appointment_event_records_booking(client, db, highlevel_secret):
    response = post_highlevel(
        client, {"type": "AppointmentCreate", "appointment": {"id": "apt-1", "email": "kai@example.com"}}
    )

    crm_client = db.query(CrmClient).filter(CrmClient.id == response.json()["clientId"]).one()
    assert crm_client.booking_count == 1


def test_highlevel_unknown_event_is_acknowledged(client, highlevel_secret):
    response = post_highlevel(client, {"type": "OpportunityCreate"})
    assert response.json() == {"status": "success", "event_type": "OpportunityCreate", "clientId": None}


@pytest.fixture
def stripe_payment(db, make_user):
    user = make_user("earner@example.com")
    affiliate = Affiliate(
        user_id=user.id,
        affiliate_code="EARNER",
        email="earner@example.com",
        monthly_earnings=0,
        stripe_connect_account_id="acct_earner",
    )
    db.add(affiliate)
    db.commit()
    payment = CommissionPayment(
        affiliate_id=affiliate.id,
        amount=7000,
        payment_method="STRIPE_CONNECT",
        payment_reference="tr_123",
        status="PENDING",
        period_start=datetime(2026, 6, 1),
        period_end=datetime(2026, 6, 30, 23, 59, 59),
    )
    db.add(payment)
    db.commit()
    return payment


def test_stripe_webhook_rejects_bad_signature(client, stripe_secret):
    assert post_stripe(client, {"type": "transfer.paid"}, secret="wrong").status_code == 401


def test_stripe_webhook_rejects_stale_timestamp(client, stripe_secret):
    body = json.dumps({"type": "transfer.paid"}).encode()
    signature = create_webhook_signature(STRIPE_SECRET, body, provider="stripe", timestamp=1_000_000)
    response = client.post("/api/webhooks/stripe", content=body, headers={"Stripe-Signature": signature})
    assert response.status_code == 401


def test_stripe_transfer_paid(client, db, stripe_payment, stripe_secret, monkeypatch):
    sent = []

    async def fake_notification(**kwargs):
        sent.append(kwargs["reference"])

    monkeypatch.setattr("diverwell.domain.affiliates.payout_service.send_payout_notification", fake_notification)

    response = post_stripe(client, {"type": "transfer.paid", "data": {"object": {"id": "tr_123"}}})

    assert response.status_code == 200
    db.expire_all()
    assert stripe_payment.status == "COMPLETED"
    assert sent == ["tr_123"]


def test_stripe_transfer_reversed_restores_earnings(client, db, stripe_payment, stripe_secret):
    post_stripe(client, {"type": "transfer.reversed", "data": {"object": {"id": "tr_123"}}})

    db.expire_all()
    assert stripe_payment.status == "FAILED"
    assert stripe_payment.failure_reason == "transfer reversed"
    assert stripe_payment.affiliate.monthly_earnings == 7000


def test_stripe_account_updated(client, db, stripe_payment, stripe_secret):
    post_stripe(
        client,
        {
            "type": "account.updated",
            "data": {"object": {"id": "acct_earner", "details_submitted": True, "payouts_enabled": True}},
        },
    )

    db.expire_all()
    affiliate = stripe_payment.affiliate
    assert affiliate.stripe_connect_onboarding_status == "complete"
    assert affiliate.stripe_payouts_enabled is True


@pytest.mark.parametrize("payload", [[{"type": "ContactCreate"}], "ContactCreate", 42])
def test_highlevel_webhook_rejects_non_object_body(client, highlevel_secret, payload):
    response = post_highlevel(client, payload)

    assert response.status_code == 400
    assert response.json()["detail"] == "Webhook payload must be a JSON object"


def test_highlevel_contact_event_with_null_contact(client, highlevel_secret):
    response = post_highlevel(client, {"type": "ContactCreate", "contact": None})

    assert response.status_code == 200
    assert response.json()["clientId"] is None


@pytest.mark.parametrize("payload", [[{"type": "transfer.paid"}], None])
def test_stripe_webhook_rejects_non_object_body(client, stripe_secret, payload):
    assert post_stripe(client, payload).status_code == 400


@pytest.mark.parametrize("data", [None, [], {"object": None}])
def test_stripe_webhook_tolerates_missing_event_object(client, stripe_secret, data):
    response = post_stripe(client, {"type": "transfer.paid", "data": data})

    assert response.status_code == 200
    assert response.json() == {"status": "success", "event_type": "transfer.paid"}
