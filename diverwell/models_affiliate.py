"""
Affiliate Program Models
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

PAYMENT_METHODS = ("STRIPE_CONNECT", "PAYPAL", "BANK_TRANSFER")
PAYMENT_STATUSES = ("PENDING", "COMPLETED", "FAILED")


class Affiliate(Base):
    __tablename__ = "affiliates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    affiliate_code = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    commission_rate = Column(Integer, default=50, nullable=False)  # percentage
    total_referrals = Column(Integer, default=0, nullable=False)
    total_earnings = Column(Integer, default=0, nullable=False)  # cents, lifetime
    monthly_earnings = Column(Integer, default=0, nullable=False)  # cents, unpaid this cycle
    preferred_payment_method = Column(String(20), default="STRIPE_CONNECT", nullable=False)
    paypal_email = Column(String(255), nullable=True)
    bank_details = Column(JSON, nullable=True)
    stripe_connect_account_id = Column(String(255), nullable=True)
    stripe_connect_onboarding_status = Column(String(20), default="not_started", nullable=False)
    stripe_payouts_enabled = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    referrals = relationship("Referral", back_populates="affiliate", cascade="all, delete-orphan")
    payments = relationship(
        "CommissionPayment", back_populates="affiliate", cascade="all, delete-orphan"
    )


class AffiliateClick(Base):
    __tablename__ = "affiliate_clicks"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="CASCADE"), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    referrer = Column(String(500), nullable=True)
    landing_page = Column(String(500), nullable=True)
    converted = Column(Boolean, default=False, nullable=False)
    converted_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class Referral(Base):
    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="CASCADE"), nullable=False, index=True)
    referred_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    subscription_type = Column(String(20), nullable=False)
    monthly_value = Column(Integer, nullable=False)  # cents
    commission_earned = Column(Integer, nullable=False)  # cents
    status = Column(String(20), default="ACTIVE", nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    affiliate = relationship("Affiliate", back_populates="referrals")


class CommissionPayment(Base):
    __tablename__ = "commission_payments"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # cents
    payment_method = Column(String(20), nullable=False)
    payment_reference = Column(String(255), nullable=True)  # Stripe transfer id or manual reference
    status = Column(String(20), default="PENDING", nullable=False, index=True)
    failure_reason = Column(String(500), nullable=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    affiliate = relationship("Affiliate", back_populates="payments")
