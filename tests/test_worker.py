from datetime import datetime, timedelta

from diverwell import worker
from diverwell.domain.calendar.providers import ICalFeedProvider
from diverwell.domain.sponsors import service as sponsor_service
from diverwell.domain.sponsors.schemas import SponsorCreate
from diverwell.domain.sponsors.service import SponsorService, previous_month
from diverwell.models_affiliate import Affiliate, CommissionPayment
from diverwell.models_calendar import CalendarSyncCredential, CalendarSyncLog, UnifiedCalendarEvent
from diverwell.shared.crypto import encrypt_config


def test_sync_minutes():
    assert worker.sync_minutes(30) == {0, 30}
    assert worker.sync_minutes(0) == set(range(60))
    assert worker.sync_minutes(90) == {0}


def test_worker_registers_every_cron_job():
    assert [job.coroutine for job in worker.WorkerSettings.cron_jobs] == [
        worker.calendar_sync_task,
        worker.affiliate_payouts_task,
        worker.sponsor_reports_task,
    ]


async def test_calendar_sync_task(db, admin_user, monkeypatch):
    db.add(
        CalendarSyncCredential(
            user_id=admin_user.id,
            provider="ical",
            name="Harbor feed",
            config_encrypted=encrypt_config({"feedUrl": "https://calendar.example.com/harbor.ics"}),
            sync_enabled=True,
            is_active=True,
        )
    )
    db.commit()
    start = datetime.utcnow().replace(microsecond=0) + timedelta(days=1)

    async def fake_fetch(self, credential):
        return [
            {
                "uid": "harbor-1",
                "title": "Harbor closure",
                "description": None,
                "location": "Harbor",
                "start": start,
                "end": start + timedelta(hours=2),
                "all_day": False,
                "status": "CONFIRMED",
                "attendees": [],
            }
        ]

    monkeypatch.setattr(ICalFeedProvider, "_fetch", fake_fetch)

    result = await worker.calendar_sync_task({"job_id": "cron:calendar_sync_task"})

    assert result == {"users": 1, "synced": 1, "failed": 0}
    assert db.query(UnifiedCalendarEvent).one().event_key == "ical-harbor-1"
    assert db.query(CalendarSyncLog).one().status == "success"


async def test_affiliate_payouts_task(db, make_user):
    user = make_user("reef@example.com")
    db.add(
        Affiliate(
            user_id=user.id,
            affiliate_code="REEF",
            email="reef@example.com",
            monthly_earnings=7000,
            preferred_payment_method="PAYPAL",
            paypal_email="reef@example.com",
        )
    )
    db.commit()

    result = await worker.affiliate_payouts_task({})

    assert result == {"processed": 1, "skipped": 0, "failed": 0, "totalAmount": 7000}
    assert db.query(CommissionPayment).one().amount == 7000


async def test_sponsor_reports_task(db, monkeypatch):
    SponsorService(db).create_sponsor(
        SponsorCreate(companyName="Deep Blue Gear", contactEmail="partners@deepblue.com", tier="GOLD", status="ACTIVE")
    )
    sent_to = []

    async def fake_send(email, company_name, summary):
        sent_to.append(email)

    monkeypatch.setattr(sponsor_service, "send_sponsor_report_email", fake_send)

    result = await worker.sponsor_reports_task({})

    assert result == {"reportMonth": previous_month(datetime.utcnow()), "sent": 1, "failed": 0}
    assert sent_to == ["partners@deepblue.com"]
