"""Affiliate repository - Database operations for affiliates, referrals and payouts"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models_affiliate import Affiliate, AffiliateClick, CommissionPayment, Referral


class AffiliateRepository:
    """Repository for affiliate database operations"""

    @staticmethod
    def save(db: Session, row):
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def get_by_id(db: Session, affiliate_id: int) -> Optional[Affiliate]:
        return db.query(Affiliate).filter(Affiliate.id == affiliate_id).first()

    @staticmethod
    def get_by_user(db: Session, user_id: int) -> Optional[Affiliate]:
        return db.query(Affiliate).filter(Affiliate.user_id == user_id).first()

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[Affiliate]:
        return db.query(Affiliate).filter(Affiliate.affiliate_code == code.upper()).first()

    @staticmethod
    def get_by_stripe_account(db: Session, account_id: str) -> Optional[Affiliate]:
        return db.query(Affiliate).filter(Affiliate.stripe_connect_account_id == account_id).first()

    @staticmethod
    def code_exists(db: Session, code: str) -> bool:
        return db.query(Affiliate.id).filter(Affiliate.affiliate_code == code).first() is not None

    @staticmethod
    def get_active(db: Session) -> list[Affiliate]:
        return db.query(Affiliate).filter(Affiliate.is_active.is_(True)).order_by(Affiliate.id).all()

    @staticmethod
    def get_leaderboard(db: Session, limit: int = 10) -> list[Affiliate]:
        return (
            db.query(Affiliate)
            .filter(Affiliate.is_active.is_(True))
            .order_by(Affiliate.total_earnings.desc(), Affiliate.id)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_oldest_unconverted_click(db: Session, affiliate_id: int) -> Optional[AffiliateClick]:
        return (
            db.query(AffiliateClick)
            .filter(AffiliateClick.affiliate_id == affiliate_id, AffiliateClick.converted.is_(False))
            .order_by(AffiliateClick.id)
            .first()
        )

    @staticmethod
    def count_clicks(db: Session, affiliate_id: int, converted: Optional[bool] = None) -> int:
        query = db.query(AffiliateClick).filter(AffiliateClick.affiliate_id == affiliate_id)
        if converted is not None:
            query = query.filter(AffiliateClick.converted.is_(converted))
        return query.count()

    @staticmethod
    def get_referrals(db: Session, affiliate_id: int) -> list[Referral]:
        return (
            db.query(Referral)
            .filter(Referral.affiliate_id == affiliate_id)
            .order_by(Referral.id.desc())
            .all()
        )

    @staticmethod
    def get_payment(db: Session, payment_id: int) -> Optional[CommissionPayment]:
        return db.query(CommissionPayment).filter(CommissionPayment.id == payment_id).first()

    @staticmethod
    def get_payment_by_reference(db: Session, reference: str) -> Optional[CommissionPayment]:
        return (
            db.query(CommissionPayment)
            .filter(CommissionPayment.payment_reference == reference)
            .first()
        )

    @staticmethod
    def get_payment_for_period(db: Session, affiliate_id: int, period_start: datetime) -> Optional[CommissionPayment]:
        return (
            db.query(CommissionPayment)
            .filter(
                CommissionPayment.affiliate_id == affiliate_id,
                CommissionPayment.period_start == period_start,
                CommissionPayment.status != "FAILED",
            )
            .first()
        )

    @staticmethod
    def get_payments(db: Session, affiliate_id: Optional[int] = None, status: Optional[str] = None) -> list[CommissionPayment]:
        query = db.query(CommissionPayment)
        if affiliate_id is not None:
            query = query.filter(CommissionPayment.affiliate_id == affiliate_id)
        if status:
            query = query.filter(CommissionPayment.status == status)
        return query.order_by(CommissionPayment.id.desc()).all()
