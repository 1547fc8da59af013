"""
Email service - transactional emails sent through Resend
Templates are written in MJML and compiled to HTML before sending.
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import ADMIN_NOTIFICATION_EMAIL, EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    payout_sent_template,
    sponsor_inquiry_notification_template,
    sponsor_report_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(RuntimeError):
    pass


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    return str(result)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email via Resend

    Raises:
        EmailNotConfiguredError: RESEND_API_KEY is not set
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": compile_mjml_to_html(mjml_content),
    }
    logger.info(f"📧 Sending email via Resend to: {recipients}")
    response = resend.Emails.send(email_data)
    logger.info(f"✅ Email sent successfully via Resend: {response}")
    return response


async def send_sponsor_report_email(to: str, company_name: str, report: dict) -> dict:
    return await send_email(
        to=to,
        subject=f"Your Diver Well sponsorship report - {report['reportMonth']}",
        mjml_content=sponsor_report_template(company_name, report),
    )


async def send_payout_notification(
    to: str, affiliate_name: str, amount_cents: int, method: str, reference: str
) -> dict:
    return await send_email(
        to=to,
        subject="Your affiliate commission payout",
        mjml_content=payout_sent_template(affiliate_name, amount_cents, method, reference),
    )


async def send_sponsor_inquiry_notification(inquiry: dict) -> Optional[dict]:
    """Notify the admin inbox; skipped when no admin address is configured"""
    if not ADMIN_NOTIFICATION_EMAIL:
        logger.info("ℹ️ ADMIN_NOTIFICATION_EMAIL not set, skipping inquiry notification")
        return None
    return await send_email(
        to=ADMIN_NOTIFICATION_EMAIL,
        subject=f"New sponsor inquiry: {inquiry['companyName']}",
        mjml_content=sponsor_inquiry_notification_template(inquiry),
    )
