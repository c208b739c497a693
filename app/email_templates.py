"""
MJML Email Templates
Booking lifecycle emails, written in MJML for responsive, cross-client rendering
"""

from typing import Optional

from .config import FRONTEND_URL

# Brand colors - Teal/Slate color scheme
THEME = {
    "primary": "#14b8a6",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#14b8a6",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

STATUS_COLORS = {
    "pending": THEME["warning"],
    "confirmed": THEME["success"],
    "in_progress": THEME["primary"],
    "completed": THEME["success"],
    "cancelled": THEME["danger"],
}

STATUS_LABELS = {
    "pending": "Awaiting payment",
    "confirmed": "Confirmed",
    "in_progress": "Cleaning in progress",
    "completed": "Completed",
    "cancelled": "Cancelled",
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
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
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
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="32px 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you booked a cleaning with us.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def booking_update_template(
    customer_name: str,
    booking_id: str,
    status: str,
    status_message: str,
    scheduled_for: Optional[str] = None,
    address: Optional[str] = None,
    total_amount: Optional[str] = None,
) -> str:
    """Single template for every booking lifecycle notification"""
    color = STATUS_COLORS.get(status, THEME["text_muted"])
    label = STATUS_LABELS.get(status, status.replace("_", " ").title())

    rows = [("Booking", booking_id[:8].upper())]
    if scheduled_for:
        rows.append(("Scheduled for", scheduled_for))
    if address:
        rows.append(("Address", address))
    if total_amount:
        rows.append(("Total", total_amount))

    details = "".join(
        f"""
            <mj-text padding="4px 0" font-size="14px">
              <span style="color: {THEME['text_muted']};">{name}:</span> {value}
            </mj-text>"""
        for name, value in rows
    )

    content = f"""
            <mj-text padding="0 0 16px 0">Hi {customer_name},</mj-text>
            <mj-text padding="0 0 16px 0">{status_message}</mj-text>
            <mj-text padding="0 0 16px 0" font-weight="600" color="{color}">
              Status: {label}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="8px 0 16px 0" />
            {details}
    """

    return get_base_template(
        title=f"Booking {label}",
        preview_text=status_message,
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/customer",
        cta_label="View my bookings",
    )
