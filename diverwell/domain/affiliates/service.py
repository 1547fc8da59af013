"""Affiliate service - Business logic for affiliate accounts and referrals"""

import logging
import re
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import AFFILIATE_DEFAULT_COMMISSION_RATE, AFFILIATE_MINIMUM_PAYOUT_CENTS
from ...models import SUBSCRIPTION_MONTHLY_VALUE, USER_ROLES, User
from ...models_affiliate import Affiliate, AffiliateClick, Referral
from ...services import stripe_connect_service
from ...services.stripe_connect_service import StripeError
from .repository import AffiliateRepository
from .schemas import ConvertReferralRequest, PaymentMethodUpdate, TrackClickRequest

logger = logging.getLogger(__name__)

# Commission percentage per user role
ROLE_COMMISSION_RATES = {role: AFFILIATE_DEFAULT_COMMISSION_RATE for role in USER_ROLES}


def commission_for(monthly_value: int, rate: int) -> int:
    """Commission in cents, rounded half away from zero"""
    return int(monthly_value * rate / 100 + 0.5)


def code_base(name: Optional[str], email: Optional[str] = None) -> str:
    """Upper-case alphanumeric stem for an affiliate code"""
    source = name or (email.split("@")[0] if email else "")
    base = re.sub(r"[^A-Z0-9]", "", source.upper())[:12]
    return base or "DIVER"


def check_eligibility(affiliate: Affiliate, threshold: int = AFFILIATE_MINIMUM_PAYOUT_CENTS) -> dict:
    """
    Payout eligibility: earnings threshold met and the preferred method is set up
    """
    earnings = affiliate.monthly_earnings or 0
    method = affiliate.preferred_payment_method
    if method == "STRIPE_CONNECT":
        account_ready = bool(affiliate.stripe_connect_account_id and affiliate.stripe_payouts_enabled)
        not_ready = "Stripe Connect account not ready for payouts"
    elif method == "PAYPAL":
        account_ready = bool(affiliate.paypal_email)
        not_ready = "PayPal email not set"
    else:
        account_ready = bool(affiliate.bank_details)
        not_ready = "Bank details not set"

    reason = None
    if earnings < threshold:
        reason = f"Minimum threshold not met. Need ${threshold / 100:.2f}, have ${earnings / 100:.2f}"
    elif not account_ready:
        reason = not_ready

    return {
        "eligible": reason is None,
        "reason": reason,
        "minimumThreshold": threshold,
        "currentEarnings": earnings,
        "accountReady": account_ready,
    }


class AffiliateService:
    """Service layer for affiliate operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AffiliateRepository()

    def get_affiliate(self, affiliate_id: int) -> Affiliate:
        affiliate = self.repo.get_by_id(self.db, affiliate_id)
        if not affiliate:
            raise HTTPException(status_code=404, detail="Affiliate not found")
        return affiliate

    def get_affiliate_for_user(self, user: User) -> Affiliate:
        affiliate = self.repo.get_by_user(self.db, user.id)
        if not affiliate:
            raise HTTPException(status_code=404, detail="Affiliate account not found")
        return affiliate

    def get_affiliate_by_code(self, code: str) -> Affiliate:
        affiliate = self.repo.get_by_code(self.db, code)
        if not affiliate or not affiliate.is_active:
            raise HTTPException(status_code=404, detail="Affiliate not found")
        return affiliate

    def _unique_code(self, name: Optional[str], email: Optional[str]) -> str:
        base = code_base(name, email)
        code, suffix = base, 2
        while self.repo.code_exists(self.db, code):
            code = f"{base}{suffix}"
            suffix += 1
        return code

    def ensure_affiliate(self, user: User) -> Affiliate:
        """Return the caller's affiliate account, creating it on first use"""
        affiliate = self.repo.get_by_user(self.db, user.id)
        if affiliate:
            return affiliate

        affiliate = Affiliate(
            user_id=user.id,
            affiliate_code=self._unique_code(user.full_name, user.email),
            name=user.full_name,
            email=user.email,
            commission_rate=ROLE_COMMISSION_RATES.get(user.role, AFFILIATE_DEFAULT_COMMISSION_RATE),
        )
        affiliate = self.repo.save(self.db, affiliate)
        logger.info(f"✅ Affiliate account {affiliate.affiliate_code} created for user {user.id}")
        return affiliate

    # ------------------------------------------------------------------
    # Clicks and conversions
    # ------------------------------------------------------------------

    def track_click(self, data: TrackClickRequest, ip_address: Optional[str], user_agent: Optional[str]) -> AffiliateClick:
        affiliate = self.get_affiliate_by_code(data.affiliateCode)
        click = AffiliateClick(
            affiliate_id=affiliate.id,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
            referrer=data.referrer,
            landing_page=data.landingPage,
        )
        return self.repo.save(self.db, click)

    def convert_referral(self, data: ConvertReferralRequest) -> Referral:
        """
        Record a paid referral.
        Commission is monthlyValue * rate / 100; totals move together and the
        oldest unconverted click for the affiliate is marked converted.
        """
        affiliate = self.get_affiliate_by_code(data.affiliateCode)
        if affiliate.user_id == data.referredUserId:
            raise HTTPException(status_code=400, detail="Affiliates cannot refer themselves")

        monthly_value = data.monthlyValue
        if monthly_value is None:
            monthly_value = SUBSCRIPTION_MONTHLY_VALUE[data.subscriptionType]
        commission = commission_for(monthly_value, affiliate.commission_rate)

        referral = Referral(
            affiliate_id=affiliate.id,
            referred_user_id=data.referredUserId,
            subscription_type=data.subscriptionType,
            monthly_value=monthly_value,
            commission_earned=commission,
            status="ACTIVE",
        )
        self.db.add(referral)

        affiliate.total_referrals = (affiliate.total_referrals or 0) + 1
        affiliate.total_earnings = (affiliate.total_earnings or 0) + commission
        affiliate.monthly_earnings = (affiliate.monthly_earnings or 0) + commission

        click = self.repo.get_oldest_unconverted_click(self.db, affiliate.id)
        if click:
            click.converted = True
            click.converted_user_id = data.referredUserId

        referred_user = self.db.query(User).filter(User.id == data.referredUserId).first()
        if referred_user and not referred_user.referred_by:
            referred_user.referred_by = affiliate.affiliate_code

        self.db.commit()
        self.db.refresh(referral)
        logger.info(
            f"💰 Referral recorded for {affiliate.affiliate_code}: {data.subscriptionType}, commission {commission} cents"
        )
        return referral

    # ------------------------------------------------------------------
    # Dashboard and leaderboard
    # ------------------------------------------------------------------

    def get_dashboard(self, affiliate: Affiliate, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()
        month_start = datetime(now.year, now.month, 1)
        referrals = self.repo.get_referrals(self.db, affiliate.id)
        total_clicks = self.repo.count_clicks(self.db, affiliate.id)
        total_conversions = self.repo.count_clicks(self.db, affiliate.id, converted=True)
        conversion_rate = round(total_conversions / total_clicks * 100, 2) if total_clicks else 0.0
        average_value = round(sum(r.monthly_value for r in referrals) / len(referrals)) if referrals else 0

        stats = {
            "totalReferrals": affiliate.total_referrals or 0,
            "totalEarnings": affiliate.total_earnings or 0,
            "monthlyEarnings": affiliate.monthly_earnings or 0,
            "monthlyReferrals": sum(1 for r in referrals if r.created_at and r.created_at >= month_start),
            "totalClicks": total_clicks,
            "totalConversions": total_conversions,
            "conversionRate": conversion_rate,
            "averageOrderValue": average_value,
        }
        return {
            "stats": stats,
            "eligibility": check_eligibility(affiliate),
            "recentReferrals": referrals[:10],
        }

    def get_leaderboard(self, limit: int = 10) -> list[dict]:
        return [
            {
                "rank": index,
                "name": affiliate.name,
                "affiliateCode": affiliate.affiliate_code,
                "totalReferrals": affiliate.total_referrals or 0,
                "totalEarnings": affiliate.total_earnings or 0,
                "monthlyEarnings": affiliate.monthly_earnings or 0,
            }
            for index, affiliate in enumerate(self.repo.get_leaderboard(self.db, limit), start=1)
        ]

    # ------------------------------------------------------------------
    # Payment settings and Stripe Connect
    # ------------------------------------------------------------------

    def update_payment_method(self, affiliate: Affiliate, data: PaymentMethodUpdate) -> Affiliate:
        if data.preferredPaymentMethod == "PAYPAL" and not (data.paypalEmail or affiliate.paypal_email):
            raise HTTPException(status_code=400, detail="PayPal email is required for PayPal payouts")
        if data.preferredPaymentMethod == "BANK_TRANSFER" and not (data.bankDetails or affiliate.bank_details):
            raise HTTPException(status_code=400, detail="Bank details are required for bank transfers")

        affiliate.preferred_payment_method = data.preferredPaymentMethod
        if data.paypalEmail is not None:
            affiliate.paypal_email = data.paypalEmail
        if data.bankDetails is not None:
            affiliate.bank_details = data.bankDetails
        self.db.commit()
        self.db.refresh(affiliate)
        return affiliate

    async def start_stripe_onboarding(self, affiliate: Affiliate) -> dict:
        """Create the Express account on first call, then a fresh onboarding link"""
        try:
            if not affiliate.stripe_connect_account_id:
                account = await stripe_connect_service.create_express_account(affiliate.email, affiliate.id)
                affiliate.stripe_connect_account_id = account["id"]
                affiliate.stripe_connect_onboarding_status = "pending"
                self.db.commit()
            url = await stripe_connect_service.create_account_link(affiliate.stripe_connect_account_id)
        except StripeError as e:
            raise HTTPException(status_code=502, detail=f"Stripe error: {e}") from e
        return {"accountId": affiliate.stripe_connect_account_id, "onboardingUrl": url}

    async def get_stripe_status(self, affiliate: Affiliate) -> dict:
        if not affiliate.stripe_connect_account_id:
            return {"accountId": None, "onboardingStatus": affiliate.stripe_connect_onboarding_status}
        try:
            account = await stripe_connect_service.retrieve_account(affiliate.stripe_connect_account_id)
        except StripeError as e:
            logger.warning(f"⚠️ Could not refresh Stripe account {affiliate.stripe_connect_account_id}: {e}")
            return {
                "accountId": affiliate.stripe_connect_account_id,
                "onboardingStatus": affiliate.stripe_connect_onboarding_status,
            }

        self.apply_account_update(affiliate, account)
        return {
            "accountId": affiliate.stripe_connect_account_id,
            "onboardingStatus": affiliate.stripe_connect_onboarding_status,
            "detailsSubmitted": bool(account.get("details_submitted")),
            "chargesEnabled": bool(account.get("charges_enabled")),
            "payoutsEnabled": bool(account.get("payouts_enabled")),
        }

    def apply_account_update(self, affiliate: Affiliate, account: dict) -> Affiliate:
        """Sync onboarding status and payout capability from a Stripe account object"""
        affiliate.stripe_connect_onboarding_status = stripe_connect_service.onboarding_status(account)
        affiliate.stripe_payouts_enabled = bool(account.get("payouts_enabled"))
        self.db.commit()
        self.db.refresh(affiliate)
        return affiliate
