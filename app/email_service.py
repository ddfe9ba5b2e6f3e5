"""
Email Service using Resend
Renders MJML templates and records one "emails" usage unit per delivered message
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html
from sqlalchemy.orm import Session

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .domain.usage.service import UsageService
from .email_templates import (
    appointment_cancellation_template,
    appointment_confirmation_template,
    reschedule_confirmation_template,
    reschedule_declined_template,
    reschedule_request_template,
    team_invitation_template,
    team_member_appointment_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        html = getattr(result, "html", None)
        if html is not None:
            if getattr(result, "errors", None):
                logger.warning(f"MJML compilation warnings: {result.errors}")
            return html
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Resend response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise Exception("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


def record_email_usage(db: Session, workspace_id: str, user_id: Optional[str] = None) -> None:
    """Count a delivered email against the workspace"""
    UsageService(db).record_internal(workspace_id, "emails", 1, created_by=user_id)


async def _send_and_record(
    db: Session,
    to: str,
    subject: str,
    mjml_content: str,
    workspace_id: str,
    user_id: Optional[str],
) -> dict:
    response = await send_email(to=to, subject=subject, mjml_content=mjml_content)
    record_email_usage(db, workspace_id, user_id)
    return response


# ============================================
# Pre-built emails for team and appointment events
# ============================================


async def send_team_invitation_email(
    db: Session,
    to: str,
    workspace_name: str,
    inviter_name: str,
    invitation_link: str,
    role: str,
    expires_at: str,
    workspace_id: str,
    user_id: Optional[str] = None,
) -> dict:
    return await _send_and_record(
        db,
        to,
        f"You've been invited to join {workspace_name} on Rzev",
        team_invitation_template(workspace_name, inviter_name, invitation_link, role, expires_at),
        workspace_id,
        user_id,
    )


async def send_appointment_confirmation_email(
    db: Session,
    to: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    workspace_id: str,
    team_member_name: Optional[str] = None,
    price: Optional[float] = None,
    notes: Optional[str] = None,
    user_id: Optional[str] = None,
) -> dict:
    return await _send_and_record(
        db,
        to,
        f"Your appointment with {workspace_name} is confirmed",
        appointment_confirmation_template(
            customer_name,
            workspace_name,
            service_name,
            date,
            start_time,
            end_time,
            team_member_name=team_member_name,
            price=price,
            notes=notes,
        ),
        workspace_id,
        user_id,
    )


async def send_appointment_cancellation_email(
    db: Session,
    to: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
    workspace_id: str,
    user_id: Optional[str] = None,
) -> dict:
    return await _send_and_record(
        db,
        to,
        f"Your appointment with {workspace_name} has been cancelled",
        appointment_cancellation_template(customer_name, workspace_name, service_name, date, start_time),
        workspace_id,
        user_id,
    )


async def send_reschedule_request_email(
    db: Session,
    to: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    old_date: str,
    old_time: str,
    new_date: str,
    new_time: str,
    new_end_time: str,
    workspace_id: str,
    team_member_name: Optional[str] = None,
    user_id: Optional[str] = None,
) -> dict:
    """Ask the customer to accept a new time proposed by the workspace"""
    return await _send_and_record(
        db,
        to,
        f"Appointment reschedule request from {workspace_name}",
        reschedule_request_template(
            customer_name,
            workspace_name,
            service_name,
            old_date,
            old_time,
            new_date,
            new_time,
            new_end_time,
            team_member_name=team_member_name,
        ),
        workspace_id,
        user_id,
    )


async def send_reschedule_confirmation_email(
    db: Session,
    to: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    workspace_id: str,
    team_member_name: Optional[str] = None,
    user_id: Optional[str] = None,
) -> dict:
    return await _send_and_record(
        db,
        to,
        f"Your rescheduled appointment with {workspace_name} is confirmed",
        reschedule_confirmation_template(
            customer_name,
            workspace_name,
            service_name,
            date,
            start_time,
            end_time,
            team_member_name=team_member_name,
        ),
        workspace_id,
        user_id,
    )


async def send_reschedule_declined_email(
    db: Session,
    to: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
    workspace_id: str,
    user_id: Optional[str] = None,
) -> dict:
    return await _send_and_record(
        db,
        to,
        f"Your reschedule request with {workspace_name} was declined",
        reschedule_declined_template(customer_name, workspace_name, service_name, date, start_time),
        workspace_id,
        user_id,
    )


async def send_team_member_appointment_email(
    db: Session,
    to: str,
    team_member_name: str,
    workspace_name: str,
    customer_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    workspace_id: str,
    notes: Optional[str] = None,
    user_id: Optional[str] = None,
) -> dict:
    """Tell a team member an appointment was (re)assigned to them"""
    return await _send_and_record(
        db,
        to,
        f"New appointment assigned to you at {workspace_name}",
        team_member_appointment_template(
            team_member_name,
            workspace_name,
            customer_name,
            service_name,
            date,
            start_time,
            end_time,
            notes=notes,
        ),
        workspace_id,
        user_id,
    )
