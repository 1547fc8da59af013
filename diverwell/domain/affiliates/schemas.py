"""Affiliate domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import SUBSCRIPTION_MONTHLY_VALUE
from ...models_affiliate import PAYMENT_METHODS
from ...shared.validators import validate_choice, validate_email


class AffiliateResponse(BaseModel):
    id: int
    userId: int
    affiliateCode: str
    name: Optional[str]
    email: Optional[str]
    commissionRate: int
    totalReferrals: int
    totalEarnings: int
    monthlyEarnings: int
    preferredPaymentMethod: str
    paypalEmail: Optional[str]
    hasBankDetails: bool
    stripeConnectAccountId: Optional[str]
    stripeConnectOnboardingStatus: str
    stripePayoutsEnabled: bool
    isActive: bool
    createdAt: Optional[datetime] = None


class TrackClickRequest(BaseModel):
    affiliateCode: str = Field(..., min_length=1, max_length=50)
    referrer: Optional[str] = Field(None, max_length=500)
    landingPage: Optional[str] = Field(None, max_length=500)


class ConvertReferralRequest(BaseModel):
    affiliateCode: str = Field(..., min_length=1, max_length=50)
    referredUserId: int
    subscriptionType: str
    monthlyValue: Optional[int] = Field(None, ge=0)  # cents, defaults from subscription type

    @field_validator("subscriptionType")
    @classmethod
    def validate_subscription_type(cls, v):
        return validate_choice(v, tuple(SUBSCRIPTION_MONTHLY_VALUE), "subscription type")


class ReferralResponse(BaseModel):
    id: int
    affiliateId: int
    referredUserId: Optional[int]
    subscriptionType: str
    monthlyValue: int
    commissionEarned: int
    status: str
    createdAt: Optional[datetime] = None


class PaymentMethodUpdate(BaseModel):
    preferredPaymentMethod: str
    paypalEmail: Optional[str] = None
    bankDetails: Optional[dict] = None

    @field_validator("preferredPaymentMethod")
    @classmethod
    def validate_method(cls, v):
        return validate_choice(v, PAYMENT_METHODS, "payment method")

    @field_validator("paypalEmail")
    @classmethod
    def validate_paypal_email(cls, v):
        return validate_email(v)


class DashboardStats(BaseModel):
    totalReferrals: int
    totalEarnings: int
    monthlyEarnings: int
    monthlyReferrals: int
    totalClicks: int
    totalConversions: int
    conversionRate: float
    averageOrderValue: int


class PayoutEligibility(BaseModel):
    eligible: bool
    reason: Optional[str]
    minimumThreshold: int
    currentEarnings: int
    accountReady: bool


class AffiliateDashboard(BaseModel):
    affiliate: AffiliateResponse
    stats: DashboardStats
    eligibility: PayoutEligibility
    recentReferrals: list[ReferralResponse]


class LeaderboardEntry(BaseModel):
    rank: int
    name: Optional[str]
    affiliateCode: str
    totalReferrals: int
    totalEarnings: int
    monthlyEarnings: int


class StripeOnboardResponse(BaseModel):
    accountId: str
    onboardingUrl: str


class StripeStatusResponse(BaseModel):
    accountId: Optional[str]
    onboardingStatus: str
    detailsSubmitted: Optional[bool] = None
    chargesEnabled: Optional[bool] = None
    payoutsEnabled: Optional[bool] = None


class CommissionPaymentResponse(BaseModel):
    id: int
    affiliateId: int
    amount: int
    paymentMethod: str
    paymentReference: Optional[str]
    status: str
    failureReason: Optional[str]
    periodStart: datetime
    periodEnd: datetime
    paidAt: Optional[datetime]


class PendingPayout(BaseModel):
    affiliateId: int
    affiliateCode: str
    name: Optional[str]
    email: Optional[str]
    amount: int
    paymentMethod: str
    eligible: bool
    reason: Optional[str]


class PayoutRunResult(BaseModel):
    processed: int
    skipped: int
    failed: int
    totalAmount: int
    payments: list[CommissionPaymentResponse]


class CompletePayoutRequest(BaseModel):
    paymentReference: Optional[str] = Field(None, max_length=255)
