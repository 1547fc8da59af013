"""Affiliate router - FastAPI endpoints for the affiliate program and payouts"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter, get_client_ip
from .payout_service import PayoutService, notify_payout, payout_notification
from .schemas import (
    AffiliateDashboard,
    AffiliateResponse,
    CommissionPaymentResponse,
    CompletePayoutRequest,
    ConvertReferralRequest,
    LeaderboardEntry,
    PaymentMethodUpdate,
    PayoutRunResult,
    PendingPayout,
    ReferralResponse,
    StripeOnboardResponse,
    StripeStatusResponse,
    TrackClickRequest,
)
from .service import AffiliateService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/affiliates", tags=["Affiliates"])

rate_limit_clicks = create_rate_limiter(limit=60, window_seconds=60, key_prefix="affiliate_clicks")


def get_affiliate_service(db: Session = Depends(get_db)) -> AffiliateService:
    """Dependency injection for AffiliateService"""
    return AffiliateService(db)


def get_payout_service(db: Session = Depends(get_db)) -> PayoutService:
    return PayoutService(db)


def _affiliate_response(a) -> AffiliateResponse:
    return AffiliateResponse(
        id=a.id,
        userId=a.user_id,
        affiliateCode=a.affiliate_code,
        name=a.name,
        email=a.email,
        commissionRate=a.commission_rate,
        totalReferrals=a.total_referrals or 0,
        totalEarnings=a.total_earnings or 0,
        monthlyEarnings=a.monthly_earnings or 0,
        preferredPaymentMethod=a.preferred_payment_method,
        paypalEmail=a.paypal_email,
        hasBankDetails=bool(a.bank_details),
        stripeConnectAccountId=a.stripe_connect_account_id,
        stripeConnectOnboardingStatus=a.stripe_connect_onboarding_status,
        stripePayoutsEnabled=bool(a.stripe_payouts_enabled),
        isActive=a.is_active,
        createdAt=a.created_at,
    )


def _referral_response(r) -> ReferralResponse:
    return ReferralResponse(
        id=r.id,
        affiliateId=r.affiliate_id,
        referredUserId=r.referred_user_id,
        subscriptionType=r.subscription_type,
        monthlyValue=r.monthly_value,
        commissionEarned=r.commission_earned,
        status=r.status,
        createdAt=r.created_at,
    )


def _payment_response(p) -> CommissionPaymentResponse:
    return CommissionPaymentResponse(
        id=p.id,
        affiliateId=p.affiliate_id,
        amount=p.amount,
        paymentMethod=p.payment_method,
        paymentReference=p.payment_reference,
        status=p.status,
        failureReason=p.failure_reason,
        periodStart=p.period_start,
        periodEnd=p.period_end,
        paidAt=p.paid_at,
    )


# ============================================================================
# AFFILIATE ACCOUNT
# ============================================================================


@router.post("/me", response_model=AffiliateResponse)
async def ensure_my_affiliate(
    current_user: User = Depends(get_current_user),
    service: AffiliateService = Depends(get_affiliate_service),
):
    """Create the caller's affiliate account if it does not exist yet"""
    return _affiliate_response(service.ensure_affiliate(current_user))


@router.get("/me/dashboard", response_model=AffiliateDashboard)
async def get_my_dashboard(
    current_user: User = Depends(get_current_user),
    service: AffiliateService = Depends(get_affiliate_service),
):
    affiliate = service.get_affiliate_for_user(current_user)
    dashboard = service.get_dashboard(affiliate)
    return AffiliateDashboard(
        affiliate=_affiliate_response(affiliate),
        stats=dashboard["stats"],
        eligibility=dashboard["eligibility"],
        recentReferrals=[_referral_response(r) for r in dashboard["recentReferrals"]],
    )


@router.put("/me/payment-method", response_model=AffiliateResponse)
async def update_payment_method(
    data: PaymentMethodUpdate,
    current_user: User = Depends(get_current_user),
    service: AffiliateService = Depends(get_affiliate_service),
):
    affiliate = service.get_affiliate_for_user(current_user)
    return _affiliate_response(service.update_payment_method(affiliate, data))


@router.post("/me/stripe/onboard", response_model=StripeOnboardResponse)
async def start_stripe_onboarding(
    current_user: User = Depends(get_current_user),
    service: AffiliateService = Depends(get_affiliate_service),
):
    affiliate = service.get_affiliate_for_user(current_user)
    return await service.start_stripe_onboarding(affiliate)


@router.get("/me/stripe/status", response_model=StripeStatusResponse)
async def get_stripe_status(
    current_user: User = Depends(get_current_user),
    service: AffiliateService = Depends(get_affiliate_service),
):
    affiliate = service.get_affiliate_for_user(current_user)
    return await service.get_stripe_status(affiliate)


# ============================================================================
# TRACKING
# ============================================================================


@router.post("/track-click", status_code=201)
async def track_click(
    data: TrackClickRequest,
    request: Request,
    _: None = Depends(rate_limit_clicks),
    service: AffiliateService = Depends(get_affiliate_service),
):
    click = service.track_click(data, get_client_ip(request), request.headers.get("User-Agent"))
    return {"success": True, "clickId": click.id}


@router.post("/convert", response_model=ReferralResponse, status_code=201)
async def convert_referral(
    data: ConvertReferralRequest,
    current_user: User = Depends(get_current_admin),
    service: AffiliateService = Depends(get_affiliate_service),
):
    return _referral_response(service.convert_referral(data))


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    current_user: User = Depends(get_current_user),
    service: AffiliateService = Depends(get_affiliate_service),
):
    return service.get_leaderboard()


# ============================================================================
# ADMIN - PAYOUTS
# ============================================================================


@router.get("/payouts/pending", response_model=list[PendingPayout])
async def list_pending_payouts(
    current_user: User = Depends(get_current_admin),
    service: PayoutService = Depends(get_payout_service),
):
    return service.get_pending()


@router.get("/payouts", response_model=list[CommissionPaymentResponse])
async def list_payouts(
    status: Optional[str] = Query(None),
    affiliate_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_admin),
    service: PayoutService = Depends(get_payout_service),
):
    return [_payment_response(p) for p in service.get_payments(affiliate_id, status)]


@router.post("/payouts/run", response_model=PayoutRunResult)
async def run_payouts(
    current_user: User = Depends(get_current_admin),
    service: PayoutService = Depends(get_payout_service),
):
    result = await service.run_payouts()
    logger.info(f"💸 Payout run triggered by {current_user.email}")
    return PayoutRunResult(
        processed=result["processed"],
        skipped=result["skipped"],
        failed=result["failed"],
        totalAmount=result["totalAmount"],
        payments=[_payment_response(p) for p in result["payments"]],
    )


@router.post("/payouts/{payment_id}/complete", response_model=CommissionPaymentResponse)
async def complete_payout(
    payment_id: int,
    data: CompletePayoutRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_admin),
    service: PayoutService = Depends(get_payout_service),
):
    payment = service.complete_payment(payment_id, data.paymentReference)
    notification = payout_notification(payment)
    if notification:
        background_tasks.add_task(notify_payout, notification)
    return _payment_response(payment)


__all__ = ["router"]
