"""
Affiliate payout service
Monthly commission payouts: Stripe Connect transfers or manual PayPal / bank records
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...email_service import send_payout_notification
from ...models_affiliate import Affiliate, CommissionPayment
from ...services import stripe_connect_service
from ...services.stripe_connect_service import StripeError
from .repository import AffiliateRepository
from .service import check_eligibility

logger = logging.getLogger(__name__)


def payout_period(now: datetime) -> tuple[datetime, datetime]:
    """Start of the month containing now and the last second of that month"""
    start = datetime(now.year, now.month, 1)
    next_month = datetime(now.year + 1, 1, 1) if now.month == 12 else datetime(now.year, now.month + 1, 1)
    return start, next_month - timedelta(seconds=1)


class PayoutService:
    """Computes and executes affiliate commission payouts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AffiliateRepository()

    def get_pending(self) -> list[dict]:
        """Active affiliates with unpaid monthly earnings, flagged with eligibility"""
        pending = []
        for affiliate in self.repo.get_active(self.db):
            if not affiliate.monthly_earnings:
                continue
            eligibility = check_eligibility(affiliate)
            pending.append(
                {
                    "affiliateId": affiliate.id,
                    "affiliateCode": affiliate.affiliate_code,
                    "name": affiliate.name,
                    "email": affiliate.email,
                    "amount": affiliate.monthly_earnings,
                    "paymentMethod": affiliate.preferred_payment_method,
                    "eligible": eligibility["eligible"],
                    "reason": eligibility["reason"],
                }
            )
        return pending

    def get_payments(self, affiliate_id: Optional[int] = None, status: Optional[str] = None) -> list[CommissionPayment]:
        return self.repo.get_payments(self.db, affiliate_id, status)

    async def _pay(
        self, affiliate: Affiliate, period_start: datetime, period_end: datetime
    ) -> CommissionPayment:
        amount = affiliate.monthly_earnings
        method = affiliate.preferred_payment_method
        payment = CommissionPayment(
            affiliate_id=affiliate.id,
            amount=amount,
            payment_method=method,
            status="PENDING",
            period_start=period_start,
            period_end=period_end,
        )

        if method == "STRIPE_CONNECT":
            try:
                transfer = await stripe_connect_service.create_transfer(
                    affiliate.stripe_connect_account_id,
                    amount,
                    description=f"Diver Well affiliate commission {period_start:%Y-%m}",
                    idempotency_key=f"affiliate-payout-{affiliate.id}-{period_start:%Y%m}",
                )
            except StripeError as e:
                logger.error(f"❌ Stripe transfer failed for affiliate {affiliate.affiliate_code}: {e}")
                payment.status = "FAILED"
                payment.failure_reason = str(e)[:500]
                self.db.add(payment)
                self.db.commit()
                self.db.refresh(payment)
                return payment
            # Completed by the transfer.paid webhook
            payment.payment_reference = transfer["id"]
        else:
            prefix = "PAYPAL" if method == "PAYPAL" else "BANK"
            payment.payment_reference = f"{prefix}-{affiliate.id}-{period_start:%Y%m}"
            logger.info(f"📝 Manual {method} payout queued for {affiliate.affiliate_code}: {amount} cents")

        affiliate.monthly_earnings = 0
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    async def run_payouts(self, now: Optional[datetime] = None) -> dict:
        """
        Pay every eligible affiliate for the current month.
        An affiliate already holding a non-failed payment for the period is skipped.
        """
        period_start, period_end = payout_period(now or datetime.utcnow())
        payments = []
        skipped = failed = 0

        for affiliate in self.repo.get_active(self.db):
            if not affiliate.monthly_earnings:
                continue
            if not check_eligibility(affiliate)["eligible"]:
                skipped += 1
                continue
            if self.repo.get_payment_for_period(self.db, affiliate.id, period_start):
                skipped += 1
                continue

            payment = await self._pay(affiliate, period_start, period_end)
            if payment.status == "FAILED":
                failed += 1
            payments.append(payment)

        processed = [p for p in payments if p.status != "FAILED"]
        logger.info(
            f"💸 Payout run {period_start:%Y-%m}: {len(processed)} processed, {skipped} skipped, {failed} failed"
        )
        return {
            "processed": len(processed),
            "skipped": skipped,
            "failed": failed,
            "totalAmount": sum(p.amount for p in processed),
            "payments": payments,
        }

    def complete_payment(self, payment_id: int, reference: Optional[str] = None) -> CommissionPayment:
        """Mark a manual payout as paid"""
        payment = self.repo.get_payment(self.db, payment_id)
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        if payment.status != "PENDING":
            raise HTTPException(status_code=409, detail=f"Payment is already {payment.status}")
        if payment.payment_method == "STRIPE_CONNECT":
            raise HTTPException(status_code=400, detail="Stripe transfers are completed by webhook")

        payment.status = "COMPLETED"
        payment.paid_at = datetime.utcnow()
        if reference:
            payment.payment_reference = reference
        self.db.commit()
        self.db.refresh(payment)
        return payment

    # ------------------------------------------------------------------
    # Stripe webhook events
    # ------------------------------------------------------------------

    def mark_transfer_paid(self, transfer_id: str) -> Optional[CommissionPayment]:
        payment = self.repo.get_payment_by_reference(self.db, transfer_id)
        if not payment:
            logger.warning(f"⚠️ No commission payment for transfer {transfer_id}")
            return None
        payment.status = "COMPLETED"
        payment.paid_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"✅ Commission payment {payment.id} completed via transfer {transfer_id}")
        return payment

    def mark_transfer_failed(self, transfer_id: str, reason: str) -> Optional[CommissionPayment]:
        """A failed or reversed transfer returns the amount to the affiliate's unpaid earnings"""
        payment = self.repo.get_payment_by_reference(self.db, transfer_id)
        if not payment:
            logger.warning(f"⚠️ No commission payment for transfer {transfer_id}")
            return None
        if payment.status == "FAILED":
            return payment

        payment.status = "FAILED"
        payment.failure_reason = reason[:500]
        payment.affiliate.monthly_earnings = (payment.affiliate.monthly_earnings or 0) + payment.amount
        self.db.commit()
        self.db.refresh(payment)
        logger.warning(f"⚠️ Commission payment {payment.id} failed: {reason}")
        return payment


def payout_notification(payment: CommissionPayment) -> Optional[dict]:
    """Plain notification arguments, safe to hand to a background task"""
    affiliate = payment.affiliate
    if not affiliate or not affiliate.email:
        return None
    return {
        "to": affiliate.email,
        "affiliate_name": affiliate.name or affiliate.affiliate_code,
        "amount_cents": payment.amount,
        "method": payment.payment_method,
        "reference": payment.payment_reference or "",
    }


async def notify_payout(notification: dict) -> None:
    """Email the affiliate a payout confirmation; delivery problems are logged only"""
    try:
        await send_payout_notification(**notification)
    except Exception as e:
        logger.warning(f"⚠️ Failed to send payout notification to {notification['to']}: {e}")
