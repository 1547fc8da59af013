from datetime import datetime
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from diverwell.domain.affiliates import payout_service as payout_module
from diverwell.domain.affiliates.payout_service import PayoutService, payout_period
from diverwell.domain.affiliates.service import check_eligibility, code_base, commission_for
from diverwell.models_affiliate import Affiliate, CommissionPayment
from diverwell.services import stripe_connect_service
from diverwell.services.stripe_connect_service import StripeError


def test_commission_rounds_half_up():
    assert commission_for(2500, 50) == 1250
    assert commission_for(2083, 50) == 1042
    assert commission_for(0, 50) == 0


def test_code_base():
    assert code_base("Jo Diver-Smith") == "JODIVERSMITH"
    assert code_base(None, "reef.runner@example.com") == "REEFRUNNER"
    assert code_base("!!!") == "DIVER"
    assert len(code_base("A very long affiliate display name")) == 12


@pytest.mark.parametrize(
    "affiliate, eligible, reason",
    [
        (SimpleNamespace(monthly_earnings=4999, preferred_payment_method="PAYPAL", paypal_email="a@b.com"), False, "Minimum threshold"),
        (SimpleNamespace(monthly_earnings=5000, preferred_payment_method="PAYPAL", paypal_email=None), False, "PayPal email"),
        (
            SimpleNamespace(
                monthly_earnings=6000,
                preferred_payment_method="STRIPE_CONNECT",
                stripe_connect_account_id="acct_1",
                stripe_payouts_enabled=False,
            ),
            False,
            "Stripe Connect",
        ),
        (SimpleNamespace(monthly_earnings=5000, preferred_payment_method="BANK_TRANSFER", bank_details={"iban": "x"}), True, None),
    ],
)
def test_check_eligibility(affiliate, eligible, reason):
    result = check_eligibility(affiliate, threshold=5000)

    assert result["eligible"] is eligible
    if reason:
        assert result["reason"].startswith(reason)
    else:
        assert result["reason"] is None


def test_payout_period_covers_the_month():
    assert payout_period(datetime(2026, 12, 14)) == (datetime(2026, 12, 1), datetime(2026, 12, 31, 23, 59, 59))


def test_affiliate_account_is_created_once(client, auth, member_user):
    auth.login(member_user)

    first = client.post("/api/affiliates/me").json()
    second = client.post("/api/affiliates/me").json()

    assert first["affiliateCode"] == "LEARNERDIVER"
    assert first["commissionRate"] == 50
    assert second["id"] == first["id"]


def test_click_and_conversion_flow(client, auth, member_user, make_user):
    auth.login(member_user)
    code = client.post("/api/affiliates/me").json()["affiliateCode"]
    referred = make_user("new.diver@example.com")

    assert client.post("/api/affiliates/track-click", json={"affiliateCode": code, "landingPage": "/pricing"}).status_code == 201
    assert client.post("/api/affiliates/track-click", json={"affiliateCode": "NOPE"}).status_code == 404

    # Conversions are recorded by admins
    payload = {"affiliateCode": code, "referredUserId": referred.id, "subscriptionType": "MONTHLY"}
    assert client.post("/api/affiliates/convert", json=payload).status_code == 403


def test_convert_updates_totals(client, auth, admin_user, member_user, make_user, db):
    auth.login(member_user)
    code = client.post("/api/affiliates/me").json()["affiliateCode"]
    client.post("/api/affiliates/track-click", json={"affiliateCode": code})
    referred = make_user("new.diver@example.com")

    auth.login(admin_user)
    response = client.post(
        "/api/affiliates/convert",
        json={"affiliateCode": code, "referredUserId": referred.id, "subscriptionType": "MONTHLY"},
    )
    assert response.status_code == 201
    assert response.json()["commissionEarned"] == 1250

    auth.login(member_user)
    dashboard = client.get("/api/affiliates/me/dashboard").json()
    assert dashboard["stats"]["totalReferrals"] == 1
    assert dashboard["stats"]["monthlyEarnings"] == 1250
    assert dashboard["stats"]["totalConversions"] == 1
    assert dashboard["stats"]["conversionRate"] == 100.0
    assert dashboard["eligibility"]["eligible"] is False

    db.expire_all()
    assert referred.referred_by == code


def test_affiliate_cannot_refer_themselves(client, auth, member_user, admin_user):
    auth.login(member_user)
    code = client.post("/api/affiliates/me").json()["affiliateCode"]

    auth.login(admin_user)
    response = client.post(
        "/api/affiliates/convert",
        json={"affiliateCode": code, "referredUserId": member_user.id, "subscriptionType": "ANNUAL"},
    )
    assert response.status_code == 400


def test_paypal_method_requires_email(client, auth, member_user):
    auth.login(member_user)
    client.post("/api/affiliates/me")

    assert client.put("/api/affiliates/me/payment-method", json={"preferredPaymentMethod": "PAYPAL"}).status_code == 400
    response = client.put(
        "/api/affiliates/me/payment-method",
        json={"preferredPaymentMethod": "PAYPAL", "paypalEmail": "Payouts@Example.com"},
    )
    assert response.json()["paypalEmail"] == "payouts@example.com"


@pytest.fixture
def affiliates(db, make_user):
    def build(email, **columns):
        user = make_user(email)
        affiliate = Affiliate(user_id=user.id, affiliate_code=email.split("@")[0].upper(), email=email, **columns)
        db.add(affiliate)
        db.commit()
        return affiliate

    return {
        "stripe": build(
            "stripe@example.com",
            monthly_earnings=8000,
            stripe_connect_account_id="acct_ok",
            stripe_payouts_enabled=True,
        ),
        "rejected": build(
            "rejected@example.com",
            monthly_earnings=6000,
            stripe_connect_account_id="acct_bad",
            stripe_payouts_enabled=True,
        ),
        "paypal": build("paypal@example.com", monthly_earnings=5000, preferred_payment_method="PAYPAL", paypal_email="paypal@example.com"),
        "small": build("small@example.com", monthly_earnings=1000, preferred_payment_method="PAYPAL", paypal_email="small@example.com"),
    }


@pytest.fixture
def fake_transfers(monkeypatch):
    calls = []

    async def create_transfer(account_id, amount_cents, description, idempotency_key):
        calls.append((account_id, amount_cents, idempotency_key))
        if account_id == "acct_bad":
            raise StripeError("Destination account is restricted", status_code=400)
        return {"id": f"tr_{account_id}"}

    monkeypatch.setattr(stripe_connect_service, "create_transfer", create_transfer)
    return calls


async def test_run_payouts(db, affiliates, fake_transfers):
    service = PayoutService(db)

    result = await service.run_payouts(now=datetime(2026, 6, 30))

    assert result["processed"] == 2
    assert result["failed"] == 1
    assert result["skipped"] == 1
    assert result["totalAmount"] == 13000
    by_affiliate = {p.affiliate_id: p for p in result["payments"]}
    assert by_affiliate[affiliates["stripe"].id].payment_reference == "tr_acct_ok"
    assert by_affiliate[affiliates["paypal"].id].payment_reference == f"PAYPAL-{affiliates['paypal'].id}-202606"
    assert by_affiliate[affiliates["rejected"].id].status == "FAILED"
    assert ("acct_ok", 8000, f"affiliate-payout-{affiliates['stripe'].id}-202606") in fake_transfers

    db.expire_all()
    assert affiliates["stripe"].monthly_earnings == 0
    assert affiliates["rejected"].monthly_earnings == 6000

    # The failed affiliate is retried, everyone else already holds a payment for June
    rerun = await service.run_payouts(now=datetime(2026, 6, 30))
    assert rerun["processed"] == 0
    assert rerun["failed"] == 1


async def test_manual_payout_completion(db, affiliates, fake_transfers):
    service = PayoutService(db)
    await service.run_payouts(now=datetime(2026, 6, 30))
    manual = service.get_payments(affiliate_id=affiliates["paypal"].id)[0]
    transfer = service.get_payments(affiliate_id=affiliates["stripe"].id)[0]

    completed = service.complete_payment(manual.id, reference="PP-12345")
    assert completed.status == "COMPLETED"
    assert completed.payment_reference == "PP-12345"

    with pytest.raises(HTTPException) as exc:
        service.complete_payment(manual.id)
    assert exc.value.status_code == 409

    with pytest.raises(HTTPException) as exc:
        service.complete_payment(transfer.id)
    assert exc.value.status_code == 400


async def test_failed_transfer_restores_earnings(db, affiliates, fake_transfers):
    service = PayoutService(db)
    await service.run_payouts(now=datetime(2026, 6, 30))

    payment = service.mark_transfer_failed("tr_acct_ok", "account closed")

    assert payment.status == "FAILED"
    db.expire_all()
    assert affiliates["stripe"].monthly_earnings == 8000
    # Repeated failure events do not double-credit
    service.mark_transfer_failed("tr_acct_ok", "account closed")
    db.expire_all()
    assert affiliates["stripe"].monthly_earnings == 8000


async def test_transfer_paid_completes_payment(db, affiliates, fake_transfers):
    service = PayoutService(db)
    await service.run_payouts(now=datetime(2026, 6, 30))

    payment = service.mark_transfer_paid("tr_acct_ok")

    assert payment.status == "COMPLETED"
    assert payment.paid_at is not None
    assert service.mark_transfer_paid("tr_unknown") is None


def test_complete_payout_endpoint_notifies_affiliate(client, db, affiliates, monkeypatch):
    notifications = []

    async def fake_notification(**kwargs):
        notifications.append(kwargs)

    monkeypatch.setattr(payout_module, "send_payout_notification", fake_notification)
    payment = CommissionPayment(
        affiliate_id=affiliates["paypal"].id,
        amount=5000,
        payment_method="PAYPAL",
        status="PENDING",
        period_start=datetime(2026, 6, 1),
        period_end=datetime(2026, 6, 30, 23, 59, 59),
    )
    db.add(payment)
    db.commit()

    response = client.post(f"/api/affiliates/payouts/{payment.id}/complete", json={"paymentReference": "PP-1"})

    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert notifications == [
        {"to": "paypal@example.com", "affiliate_name": "PAYPAL", "amount_cents": 5000, "method": "PAYPAL", "reference": "PP-1"}
    ]
