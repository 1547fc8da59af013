"""Sponsor service - Business logic for the sponsor program"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import ACTIVE_PLACEMENTS_PREFIX, PUBLIC_SPONSORS_KEY, cache, invalidate_sponsor_cache
from ...email_service import send_sponsor_report_email
from ...models_sponsor import Sponsor, SponsorEvent, SponsorInquiry, SponsorPlacement, SponsorReport
from ...shared.serialization import schema_to_columns
from .repository import SponsorRepository
from .schemas import (
    InquiryCreate,
    InquiryUpdate,
    PlacementCreate,
    PlacementUpdate,
    SponsorCreate,
    SponsorUpdate,
    TrackEventRequest,
)

logger = logging.getLogger(__name__)

PUBLIC_CACHE_TTL = 300
CLICK_EVENTS = ("CLICK", "CTA_CLICK")
CLEARABLE_SPONSOR_COLUMNS = ("exclusivity_category", "start_date", "end_date")


def _ctr(clicks: int, impressions: int) -> float:
    return round(clicks / impressions * 100, 2) if impressions else 0.0


def compute_analytics(events) -> dict:
    """
    Aggregate sponsor events.
    Clicks count both CLICK and CTA_CLICK; CTR is clicks per hundred impressions.
    """
    totals = {"impressions": 0, "clicks": 0, "conversions": 0}
    breakdown: dict[str, dict] = {}
    for event in events:
        key = str(event.placement_id) if event.placement_id is not None else "unplaced"
        bucket = breakdown.setdefault(key, {"impressions": 0, "clicks": 0, "conversions": 0})
        if event.event_type == "IMPRESSION":
            field = "impressions"
        elif event.event_type in CLICK_EVENTS:
            field = "clicks"
        elif event.event_type == "CONVERSION":
            field = "conversions"
        else:
            continue
        totals[field] += 1
        bucket[field] += 1

    for bucket in breakdown.values():
        bucket["ctr"] = _ctr(bucket["clicks"], bucket["impressions"])
    return {**totals, "ctr": _ctr(totals["clicks"], totals["impressions"]), "placementBreakdown": breakdown}


def month_bounds(report_month: str) -> tuple[datetime, datetime]:
    """First instant of the month and of the following month"""
    year, month = (int(part) for part in report_month.split("-"))
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def previous_month(now: datetime) -> str:
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    return f"{year:04d}-{month:02d}"


def report_summary(report: SponsorReport) -> dict:
    return {
        "reportMonth": report.report_month,
        "impressions": report.impressions or 0,
        "clicks": report.clicks or 0,
        "ctr": report.ctr or 0.0,
        "ctaConversions": report.cta_conversions or 0,
    }


def public_sponsor_dict(sponsor: Sponsor) -> dict:
    return {
        "id": sponsor.id,
        "companyName": sponsor.company_name,
        "tier": sponsor.tier,
        "category": sponsor.category,
        "landingUrl": sponsor.landing_url,
        "logoUrl": sponsor.logo_url,
        "description": sponsor.description,
        "promoCode": sponsor.promo_code,
        "ctaText": sponsor.cta_text,
    }


class SponsorService:
    """Service layer for sponsors, placements, event tracking and reporting"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SponsorRepository()

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def get_public_sponsors(self, now: Optional[datetime] = None) -> list[dict]:
        cached = cache.get(PUBLIC_SPONSORS_KEY)
        if cached is not None:
            return cached
        sponsors = [
            public_sponsor_dict(s) for s in self.repo.get_active_sponsors(self.db, now or datetime.utcnow())
        ]
        cache.set(PUBLIC_SPONSORS_KEY, sponsors, ttl=PUBLIC_CACHE_TTL)
        return sponsors

    def get_active_placements(self, placement_type: Optional[str] = None) -> list[dict]:
        key = f"{ACTIVE_PLACEMENTS_PREFIX}:{placement_type or 'all'}"
        cached = cache.get(key)
        if cached is not None:
            return cached
        placements = self.repo.get_active_placements(self.db, datetime.utcnow(), placement_type)
        result = [
            {
                "placementId": p.id,
                "placementType": p.placement_type,
                "location": p.location,
                "order": p.order,
                "metadata": p.placement_metadata,
                "sponsor": public_sponsor_dict(p.sponsor),
            }
            for p in placements
        ]
        cache.set(key, result, ttl=PUBLIC_CACHE_TTL)
        return result

    def track_event(self, data: TrackEventRequest) -> SponsorEvent:
        sponsor = self.get_sponsor(data.sponsorId)
        if data.placementId is not None:
            placement = self.repo.get_placement(self.db, data.placementId)
            if not placement or placement.sponsor_id != sponsor.id:
                raise HTTPException(status_code=400, detail="Placement does not belong to this sponsor")
        event = SponsorEvent(
            sponsor_id=sponsor.id,
            placement_id=data.placementId,
            event_type=data.eventType,
            user_id=data.userId,
            utm_source=data.utmSource,
            utm_medium=data.utmMedium,
            utm_campaign=data.utmCampaign,
            event_metadata=data.metadata,
            timestamp=datetime.utcnow(),
        )
        return self.repo.save(self.db, event)

    def create_inquiry(self, data: InquiryCreate) -> SponsorInquiry:
        inquiry = self.repo.save(self.db, SponsorInquiry(**schema_to_columns(data)))
        logger.info(f"📨 Sponsor inquiry received from {inquiry.company_name}")
        return inquiry

    # ------------------------------------------------------------------
    # Sponsors
    # ------------------------------------------------------------------

    def get_sponsors(self, status: Optional[str] = None, tier: Optional[str] = None) -> list[Sponsor]:
        return self.repo.get_sponsors(self.db, status, tier)

    def get_sponsor(self, sponsor_id: int) -> Sponsor:
        sponsor = self.repo.get_sponsor(self.db, sponsor_id)
        if not sponsor:
            raise HTTPException(status_code=404, detail="Sponsor not found")
        return sponsor

    def _check_exclusivity(self, status: str, category: Optional[str], sponsor_id: Optional[int] = None) -> None:
        """Only one ACTIVE sponsor may hold an exclusivity category"""
        if status != "ACTIVE" or not category:
            return
        holder = self.repo.get_active_exclusive(self.db, category, exclude_id=sponsor_id)
        if holder:
            raise HTTPException(
                status_code=409,
                detail=f"Exclusivity category '{category}' is already held by {holder.company_name}",
            )

    @staticmethod
    def _check_dates(start: Optional[datetime], end: Optional[datetime]) -> None:
        if start and end and end < start:
            raise HTTPException(status_code=400, detail="End date must be after start date")

    def create_sponsor(self, data: SponsorCreate) -> Sponsor:
        self._check_dates(data.startDate, data.endDate)
        self._check_exclusivity(data.status, data.exclusivityCategory)
        sponsor = self.repo.save(self.db, Sponsor(**schema_to_columns(data)))
        invalidate_sponsor_cache()
        logger.info(f"🤝 Sponsor created: {sponsor.company_name} ({sponsor.tier})")
        return sponsor

    def update_sponsor(self, sponsor_id: int, data: SponsorUpdate) -> Sponsor:
        sponsor = self.get_sponsor(sponsor_id)
        columns = schema_to_columns(data, exclude_unset=True)
        # An explicit null clears these; status is required so null keeps it
        merged = {
            column: columns[column] if column in columns else getattr(sponsor, column)
            for column in CLEARABLE_SPONSOR_COLUMNS
        }
        self._check_dates(merged["start_date"], merged["end_date"])
        self._check_exclusivity(data.status or sponsor.status, merged["exclusivity_category"], sponsor.id)
        for column, value in merged.items():
            if value is None:
                setattr(sponsor, column, None)
        sponsor = self.repo.update(self.db, sponsor, **columns)
        invalidate_sponsor_cache()
        return sponsor

    def delete_sponsor(self, sponsor_id: int) -> dict:
        self.repo.delete(self.db, self.get_sponsor(sponsor_id))
        invalidate_sponsor_cache()
        return {"message": "Sponsor deleted"}

    # ------------------------------------------------------------------
    # Placements
    # ------------------------------------------------------------------

    def get_placement(self, placement_id: int) -> SponsorPlacement:
        placement = self.repo.get_placement(self.db, placement_id)
        if not placement:
            raise HTTPException(status_code=404, detail="Placement not found")
        return placement

    def create_placement(self, sponsor_id: int, data: PlacementCreate) -> SponsorPlacement:
        sponsor = self.get_sponsor(sponsor_id)
        self._check_dates(data.startDate, data.endDate)
        columns = schema_to_columns(data)
        columns["placement_metadata"] = columns.pop("metadata")
        placement = self.repo.save(self.db, SponsorPlacement(sponsor_id=sponsor.id, **columns))
        invalidate_sponsor_cache()
        return placement

    def update_placement(self, placement_id: int, data: PlacementUpdate) -> SponsorPlacement:
        placement = self.get_placement(placement_id)
        columns = schema_to_columns(data, exclude_unset=True)
        if "metadata" in columns:
            columns["placement_metadata"] = columns.pop("metadata")
        placement = self.repo.update(self.db, placement, **columns)
        invalidate_sponsor_cache()
        return placement

    def delete_placement(self, placement_id: int) -> dict:
        self.repo.delete(self.db, self.get_placement(placement_id))
        invalidate_sponsor_cache()
        return {"message": "Placement deleted"}

    # ------------------------------------------------------------------
    # Analytics and reports
    # ------------------------------------------------------------------

    def get_analytics(self, sponsor_id: int, start: datetime, end: datetime) -> dict:
        self.get_sponsor(sponsor_id)
        if end <= start:
            raise HTTPException(status_code=400, detail="Analytics range end must be after start")
        analytics = compute_analytics(self.repo.get_events(self.db, sponsor_id, start, end))
        return {"sponsorId": sponsor_id, **analytics}

    def generate_report(self, sponsor_id: int, report_month: str) -> SponsorReport:
        """Compute the month's analytics and upsert the stored report"""
        start, end = month_bounds(report_month)
        analytics = self.get_analytics(sponsor_id, start, end)
        report = self.repo.get_report(self.db, sponsor_id, report_month)
        if not report:
            report = SponsorReport(sponsor_id=sponsor_id, report_month=report_month)
            self.db.add(report)
        report.impressions = analytics["impressions"]
        report.clicks = analytics["clicks"]
        report.ctr = analytics["ctr"]
        report.cta_conversions = analytics["conversions"]
        report.placement_breakdown = analytics["placementBreakdown"]
        self.db.commit()
        self.db.refresh(report)
        logger.info(f"📊 Sponsor {sponsor_id} report for {report_month}: {report.impressions} impressions")
        return report

    async def send_monthly_reports(self, now: Optional[datetime] = None) -> dict:
        """Generate and email last month's report to every active sponsor not yet sent one"""
        report_month = previous_month(now or datetime.utcnow())
        sent = 0
        failed = 0
        for sponsor in self.repo.get_sponsors(self.db, status="ACTIVE"):
            report = self.generate_report(sponsor.id, report_month)
            if report.sent_at:
                continue
            try:
                await send_sponsor_report_email(sponsor.contact_email, sponsor.company_name, report_summary(report))
            except Exception as e:
                logger.error(f"❌ Failed to send {report_month} report to sponsor {sponsor.id}: {str(e)}")
                failed += 1
                continue
            report.sent_at = datetime.utcnow()
            self.db.commit()
            sent += 1
        logger.info(f"📧 Sponsor reports for {report_month}: {sent} sent, {failed} failed")
        return {"reportMonth": report_month, "sent": sent, "failed": failed}

    def get_reports(self, sponsor_id: int) -> list[SponsorReport]:
        self.get_sponsor(sponsor_id)
        return self.repo.get_reports(self.db, sponsor_id)

    # ------------------------------------------------------------------
    # Inquiries
    # ------------------------------------------------------------------

    def get_inquiries(self, status: Optional[str] = None) -> list[SponsorInquiry]:
        return self.repo.get_inquiries(self.db, status)

    def update_inquiry(self, inquiry_id: int, data: InquiryUpdate) -> SponsorInquiry:
        inquiry = self.repo.get_inquiry(self.db, inquiry_id)
        if not inquiry:
            raise HTTPException(status_code=404, detail="Inquiry not found")
        return self.repo.update(self.db, inquiry, status=data.status, notes=data.notes)
