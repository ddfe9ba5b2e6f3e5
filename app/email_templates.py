"""
MJML Email Templates
Customer and team emails for invitations and appointment lifecycle events
"""

from html import escape
from typing import Optional

from .shared.formatting import format_long_date, format_time_12h

THEME = {
    "primary": "#4F46E5",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#eaeaea",
    "panel": "#f9fafb",
}


def _detail_rows(rows: list[tuple[str, Optional[str]]]) -> str:
    """Render label/value pairs inside the grey details panel, skipping empty values"""
    lines = "".join(
        f"<strong>{escape(label)}:</strong> {escape(str(value))}<br/>"
        for label, value in rows
        if value
    )
    return f"""
    <mj-text container-background-color="{THEME['panel']}" padding="15px" line-height="1.9">
      {lines}
    </mj-text>
    """


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
        <mj-section padding="10px 0 30px 0" background-color="#ffffff">
          <mj-column>
            <mj-button
              href="{escape(cta_url)}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="bold"
              border-radius="6px"
              padding="12px 20px">
              {escape(cta_label)}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{escape(title)}</mj-title>
        <mj-preview>{escape(preview_text)}</mj-preview>
        <mj-attributes>
          <mj-all font-family="Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}" width="600px">
        <mj-section background-color="#ffffff" padding="20px">
          <mj-column>
            <mj-text font-size="22px" font-weight="600" color="{THEME['text_primary']}">
              {escape(title)}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section background-color="#ffffff" padding="0 20px 20px 20px">
          <mj-column>
            <mj-divider border-color="{THEME['border']}" border-width="1px" />
            <mj-text>Best regards,<br />The Rzev Team</mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def team_invitation_template(
    workspace_name: str, inviter_name: str, invitation_link: str, role: str, expires_at: str
) -> str:
    content = f"""
    <mj-text>Hello,</mj-text>
    <mj-text>
      {escape(inviter_name)} has invited you to join {escape(workspace_name)} as a <strong>{escape(role)}</strong>.
    </mj-text>
    <mj-text>This invitation will expire on {escape(expires_at)}.</mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      If you don't know why you received this invitation, please ignore this email.
    </mj-text>
    """
    return get_base_template(
        title=f"You've been invited to join {workspace_name}",
        preview_text=f"{inviter_name} invited you to {workspace_name}",
        content_sections=content,
        cta_url=invitation_link,
        cta_label="Accept Invitation",
    )


def appointment_confirmation_template(
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    team_member_name: Optional[str] = None,
    price: Optional[float] = None,
    notes: Optional[str] = None,
) -> str:
    details = _detail_rows(
        [
            ("Service", service_name),
            ("Date", format_long_date(date)),
            ("Time", f"{format_time_12h(start_time)} - {format_time_12h(end_time)}"),
            ("Staff", team_member_name),
            ("Price", f"${price:.2f}" if price else None),
            ("Notes", notes),
        ]
    )
    content = f"""
    <mj-text>Hello {escape(customer_name)},</mj-text>
    <mj-text>Your appointment with {escape(workspace_name)} has been confirmed.</mj-text>
    {details}
    <mj-text>We look forward to seeing you!</mj-text>
    """
    return get_base_template(
        title="Your appointment is confirmed!",
        preview_text=f"Your appointment with {workspace_name} is confirmed",
        content_sections=content,
    )


def appointment_cancellation_template(
    customer_name: str, workspace_name: str, service_name: str, date: str, start_time: str
) -> str:
    details = _detail_rows(
        [
            ("Service", service_name),
            ("Date", format_long_date(date)),
            ("Time", format_time_12h(start_time)),
        ]
    )
    content = f"""
    <mj-text>Hello {escape(customer_name)},</mj-text>
    <mj-text>Your appointment with {escape(workspace_name)} has been cancelled.</mj-text>
    {details}
    <mj-text>If you would like to reschedule, please contact us or book a new appointment.</mj-text>
    """
    return get_base_template(
        title="Your appointment has been cancelled",
        preview_text=f"Your appointment with {workspace_name} has been cancelled",
        content_sections=content,
    )


def reschedule_request_template(
    customer_name: str,
    workspace_name: str,
    service_name: str,
    old_date: str,
    old_time: str,
    new_date: str,
    new_time: str,
    new_end_time: str,
    team_member_name: Optional[str] = None,
) -> str:
    original = _detail_rows(
        [
            ("Service", service_name),
            ("Original", f"{format_long_date(old_date)} at {format_time_12h(old_time)}"),
        ]
    )
    proposed = _detail_rows(
        [
            ("Date", format_long_date(new_date)),
            ("Time", f"{format_time_12h(new_time)} - {format_time_12h(new_end_time)}"),
            ("Staff", team_member_name),
        ]
    )
    content = f"""
    <mj-text>Hello {escape(customer_name)},</mj-text>
    <mj-text>{escape(workspace_name)} needs to reschedule your appointment.</mj-text>
    {original}
    <mj-text font-weight="bold">Proposed New Time:</mj-text>
    {proposed}
    <mj-text>Please contact us to confirm or request a different time.</mj-text>
    """
    return get_base_template(
        title="Appointment Reschedule Request",
        preview_text=f"{workspace_name} proposed a new time for your appointment",
        content_sections=content,
    )


def reschedule_confirmation_template(
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    team_member_name: Optional[str] = None,
) -> str:
    details = _detail_rows(
        [
            ("Service", service_name),
            ("Date", format_long_date(date)),
            ("Time", f"{format_time_12h(start_time)} - {format_time_12h(end_time)}"),
            ("Staff", team_member_name),
        ]
    )
    content = f"""
    <mj-text>Hello {escape(customer_name)},</mj-text>
    <mj-text>Your rescheduled appointment with {escape(workspace_name)} has been confirmed.</mj-text>
    {details}
    <mj-text>We look forward to seeing you!</mj-text>
    """
    return get_base_template(
        title="Your rescheduled appointment is confirmed!",
        preview_text=f"Your rescheduled appointment with {workspace_name} is confirmed",
        content_sections=content,
    )


def reschedule_declined_template(
    customer_name: str, workspace_name: str, service_name: str, date: str, start_time: str
) -> str:
    details = _detail_rows(
        [
            ("Service", service_name),
            ("Date", format_long_date(date)),
            ("Time", format_time_12h(start_time)),
        ]
    )
    content = f"""
    <mj-text>Hello {escape(customer_name)},</mj-text>
    <mj-text>
      {escape(workspace_name)} was unable to accommodate your reschedule request.
      Your original appointment remains unchanged.
    </mj-text>
    {details}
    <mj-text>Please contact us if you need to make changes.</mj-text>
    """
    return get_base_template(
        title="Reschedule Request Declined",
        preview_text=f"Your reschedule request with {workspace_name} was declined",
        content_sections=content,
    )


def team_member_appointment_template(
    team_member_name: str,
    workspace_name: str,
    customer_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    notes: Optional[str] = None,
) -> str:
    details = _detail_rows(
        [
            ("Customer", customer_name),
            ("Service", service_name),
            ("Date", format_long_date(date)),
            ("Time", f"{format_time_12h(start_time)} - {format_time_12h(end_time)}"),
            ("Notes", notes),
        ]
    )
    content = f"""
    <mj-text>Hello {escape(team_member_name)},</mj-text>
    <mj-text>A new appointment at {escape(workspace_name)} has been assigned to you.</mj-text>
    {details}
    <mj-text>Please check your dashboard for more details.</mj-text>
    """
    return get_base_template(
        title="New Appointment Assigned",
        preview_text=f"New appointment assigned to you at {workspace_name}",
        content_sections=content,
    )
