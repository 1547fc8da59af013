"""
MJML Email Templates
Sponsor reports, affiliate payout notices and admin notifications
"""

from html import escape
from typing import Optional

from .config import FRONTEND_URL

# Navy/aqua theme
THEME = {
    "primary": "#0e7490",
    "background": "#f1f5f9",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button href="{cta_url}" background-color="{THEME['primary']}" color="#ffffff"
              font-weight="600" border-radius="8px" padding="18px 40px" font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>
        {cta_section}
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              Diver Well Training
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _dollars(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def sponsor_report_template(company_name: str, report: dict) -> str:
    """Monthly sponsor performance report"""
    rows = "".join(
        f"<tr><td>{escape(str(placement))}</td><td>{stats['impressions']}</td>"
        f"<td>{stats['clicks']}</td><td>{stats['ctr']:.2f}%</td></tr>"
        for placement, stats in report.get("placementBreakdown", {}).items()
    )
    content = f"""
    <mj-text>Hi {escape(company_name)} team,</mj-text>
    <mj-text>Here is how your placements performed in {report['reportMonth']}.</mj-text>
    <mj-text padding="0 0 0 20px">
      • Impressions: {report['impressions']}<br/>
      • Clicks: {report['clicks']}<br/>
      • Click-through rate: {report['ctr']:.2f}%<br/>
      • Conversions: {report['ctaConversions']}
    </mj-text>
    <mj-table>
      <tr style="text-align:left;"><th>Placement</th><th>Impressions</th><th>Clicks</th><th>CTR</th></tr>
      {rows}
    </mj-table>
    """
    return get_base_template(
        title=f"Sponsor report for {report['reportMonth']}",
        preview_text=f"{report['impressions']} impressions, {report['clicks']} clicks",
        content_sections=content,
    )


def payout_sent_template(affiliate_name: str, amount_cents: int, method: str, reference: str) -> str:
    content = f"""
    <mj-text>Hi {escape(affiliate_name or 'there')},</mj-text>
    <mj-text>
      Your commission payout of <strong>{_dollars(amount_cents)}</strong> has been initiated
      via {method.replace('_', ' ').title()}.
    </mj-text>
    <mj-text color="{THEME['text_muted']}">Reference: {escape(reference)}</mj-text>
    """
    return get_base_template(
        title="Your affiliate payout is on its way",
        preview_text=f"{_dollars(amount_cents)} commission payout",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/affiliate",
        cta_label="View dashboard",
    )


def sponsor_inquiry_notification_template(inquiry: dict) -> str:
    content = f"""
    <mj-text>A new sponsorship inquiry was submitted.</mj-text>
    <mj-text padding="0 0 0 20px">
      • Company: {escape(inquiry['companyName'])}<br/>
      • Contact: {escape(inquiry['contactName'])} ({escape(inquiry['contactEmail'])})<br/>
      • Interested tier: {escape(inquiry.get('interestedTier') or 'not specified')}
    </mj-text>
    <mj-text>{escape(inquiry.get('message') or '')}</mj-text>
    """
    return get_base_template(
        title="New sponsor inquiry",
        preview_text=f"Inquiry from {inquiry['companyName']}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/admin/sponsors",
        cta_label="Review inquiries",
    )
