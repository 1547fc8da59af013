from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from .database import Base

# User roles
ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"
ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_AFFILIATE = "AFFILIATE"
ROLE_ENTERPRISE = "ENTERPRISE"

USER_ROLES = (ROLE_USER, ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_AFFILIATE, ROLE_ENTERPRISE)
ADMIN_ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN)

# Subscription tiers and their monthly value in cents
SUBSCRIPTION_MONTHLY_VALUE = {
    "TRIAL": 0,
    "MONTHLY": 2500,
    "ANNUAL": 2083,  # $250/year billed monthly equivalent
    "LIFETIME": 0,
}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), default=ROLE_USER, nullable=False)
    subscription_type = Column(String(20), default="TRIAL", nullable=False)  # TRIAL, MONTHLY, ANNUAL, LIFETIME
    subscription_status = Column(String(20), default="ACTIVE", nullable=False)  # ACTIVE, PAUSED, CANCELLED
    subscription_date = Column(DateTime, nullable=True)
    trial_expires_at = Column(DateTime, nullable=True)
    referred_by = Column(String(50), nullable=True)  # affiliate code used at signup
    phone_number = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
