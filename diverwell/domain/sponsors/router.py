"""Sponsor router - public placement feed, event tracking and admin management"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...email_service import send_sponsor_inquiry_notification
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    ActivePlacement,
    GenerateReportRequest,
    InquiryCreate,
    InquiryResponse,
    InquiryUpdate,
    PlacementCreate,
    PlacementResponse,
    PlacementUpdate,
    PublicSponsor,
    SponsorAnalytics,
    SponsorCreate,
    SponsorReportResponse,
    SponsorResponse,
    SponsorUpdate,
    TrackEventRequest,
)
from .service import SponsorService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sponsors", tags=["Sponsors"])

rate_limit_events = create_rate_limiter(limit=120, window_seconds=60, key_prefix="sponsor_events")
rate_limit_inquiries = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="sponsor_inquiry")


def get_sponsor_service(db: Session = Depends(get_db)) -> SponsorService:
    """Dependency injection for SponsorService"""
    return SponsorService(db)


def _placement_response(p) -> PlacementResponse:
    return PlacementResponse(
        id=p.id,
        sponsorId=p.sponsor_id,
        placementType=p.placement_type,
        location=p.location,
        order=p.order,
        isActive=p.is_active,
        startDate=p.start_date,
        endDate=p.end_date,
        metadata=p.placement_metadata,
    )


def _sponsor_response(s) -> SponsorResponse:
    return SponsorResponse(
        id=s.id,
        companyName=s.company_name,
        contactName=s.contact_name,
        contactEmail=s.contact_email,
        contactPhone=s.contact_phone,
        category=s.category,
        tier=s.tier,
        status=s.status,
        exclusivityCategory=s.exclusivity_category,
        startDate=s.start_date,
        endDate=s.end_date,
        monthlyFee=s.monthly_fee,
        landingUrl=s.landing_url,
        logoUrl=s.logo_url,
        description=s.description,
        promoCode=s.promo_code,
        ctaText=s.cta_text,
        notes=s.notes,
        placements=[_placement_response(p) for p in s.placements],
    )


def _inquiry_response(i) -> InquiryResponse:
    return InquiryResponse(
        id=i.id,
        companyName=i.company_name,
        contactName=i.contact_name,
        contactEmail=i.contact_email,
        contactPhone=i.contact_phone,
        interestedTier=i.interested_tier,
        message=i.message,
        status=i.status,
        notes=i.notes,
        createdAt=i.created_at,
    )


def _report_response(r) -> SponsorReportResponse:
    return SponsorReportResponse(
        id=r.id,
        sponsorId=r.sponsor_id,
        reportMonth=r.report_month,
        impressions=r.impressions,
        clicks=r.clicks,
        ctr=r.ctr,
        ctaConversions=r.cta_conversions,
        placementBreakdown=r.placement_breakdown or {},
        sentAt=r.sent_at,
    )


async def _notify_inquiry(inquiry: dict) -> None:
    try:
        await send_sponsor_inquiry_notification(inquiry)
    except Exception as e:
        logger.warning(f"⚠️ Failed to send sponsor inquiry notification: {e}")


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("/public/active", response_model=list[PublicSponsor])
async def list_public_sponsors(service: SponsorService = Depends(get_sponsor_service)):
    """Active sponsors whose contract window includes now"""
    return service.get_public_sponsors()


@router.get("/placements/active", response_model=list[ActivePlacement])
async def list_active_placements(
    placement_type: Optional[str] = Query(None),
    service: SponsorService = Depends(get_sponsor_service),
):
    return service.get_active_placements(placement_type)


@router.post("/track-event", status_code=201)
async def track_event(
    data: TrackEventRequest,
    _: None = Depends(rate_limit_events),
    service: SponsorService = Depends(get_sponsor_service),
):
    event = service.track_event(data)
    return {"success": True, "eventId": event.id}


@router.post("/inquiry", response_model=InquiryResponse, status_code=201)
async def create_inquiry(
    data: InquiryCreate,
    background_tasks: BackgroundTasks,
    _: None = Depends(rate_limit_inquiries),
    service: SponsorService = Depends(get_sponsor_service),
):
    inquiry = service.create_inquiry(data)
    background_tasks.add_task(_notify_inquiry, data.model_dump())
    return _inquiry_response(inquiry)


# ============================================================================
# ADMIN - INQUIRIES
# ============================================================================


@router.get("/inquiries", response_model=list[InquiryResponse])
async def list_inquiries(
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return [_inquiry_response(i) for i in service.get_inquiries(status)]


@router.patch("/inquiries/{inquiry_id}", response_model=InquiryResponse)
async def update_inquiry(
    inquiry_id: int,
    data: InquiryUpdate,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return _inquiry_response(service.update_inquiry(inquiry_id, data))


# ============================================================================
# ADMIN - SPONSORS AND PLACEMENTS
# ============================================================================


@router.get("", response_model=list[SponsorResponse])
async def list_sponsors(
    status: Optional[str] = Query(None),
    tier: Optional[str] = Query(None),
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return [_sponsor_response(s) for s in service.get_sponsors(status, tier)]


@router.post("", response_model=SponsorResponse, status_code=201)
async def create_sponsor(
    data: SponsorCreate,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return _sponsor_response(service.create_sponsor(data))


@router.get("/{sponsor_id}", response_model=SponsorResponse)
async def get_sponsor(
    sponsor_id: int,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return _sponsor_response(service.get_sponsor(sponsor_id))


@router.put("/{sponsor_id}", response_model=SponsorResponse)
async def update_sponsor(
    sponsor_id: int,
    data: SponsorUpdate,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return _sponsor_response(service.update_sponsor(sponsor_id, data))


@router.delete("/{sponsor_id}")
async def delete_sponsor(
    sponsor_id: int,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return service.delete_sponsor(sponsor_id)


@router.post("/{sponsor_id}/placements", response_model=PlacementResponse, status_code=201)
async def create_placement(
    sponsor_id: int,
    data: PlacementCreate,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return _placement_response(service.create_placement(sponsor_id, data))


@router.put("/placements/{placement_id}", response_model=PlacementResponse)
async def update_placement(
    placement_id: int,
    data: PlacementUpdate,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return _placement_response(service.update_placement(placement_id, data))


@router.delete("/placements/{placement_id}")
async def delete_placement(
    placement_id: int,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return service.delete_placement(placement_id)


# ============================================================================
# ADMIN - ANALYTICS AND REPORTS
# ============================================================================


@router.get("/{sponsor_id}/analytics", response_model=SponsorAnalytics)
async def get_analytics(
    sponsor_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    """Defaults to the last 30 days"""
    end = end or datetime.utcnow()
    start = start or end - timedelta(days=30)
    return service.get_analytics(sponsor_id, start, end)


@router.post("/{sponsor_id}/generate-report", response_model=SponsorReportResponse)
async def generate_report(
    sponsor_id: int,
    data: GenerateReportRequest,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return _report_response(service.generate_report(sponsor_id, data.reportMonth))


@router.get("/{sponsor_id}/reports", response_model=list[SponsorReportResponse])
async def list_reports(
    sponsor_id: int,
    current_user: User = Depends(get_current_admin),
    service: SponsorService = Depends(get_sponsor_service),
):
    return [_report_response(r) for r in service.get_reports(sponsor_id)]


__all__ = ["router"]
