"""
Sendo SMS Service
Sends appointment lifecycle messages and records one "messages" usage unit per delivered SMS
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..config import SENDO_API_KEY, SENDO_API_URL, SENDO_CAMPAIGN_ID, SENDO_FROM_NUMBER
from ..domain.usage.service import UsageService
from ..shared.formatting import format_short_date, format_time_12h

logger = logging.getLogger(__name__)


async def send_sms(
    db: Session,
    workspace_id: str,
    to_phone: str,
    message_body: str,
    message_type: str,
    metadata: Optional[dict] = None,
) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Sendo

    Args:
        db: Database session
        workspace_id: Workspace the message is billed to
        to_phone: Recipient phone number (E.164)
        message_body: SMS message content
        message_type: Type of message (appointment_confirmation, reschedule_request, etc.)
        metadata: Optional metadata forwarded to Sendo

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not to_phone:
        return False, "No phone number provided"

    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return False, "Phone number must be in E.164 format (e.g., +1234567890)"

    if not SENDO_API_KEY or not SENDO_CAMPAIGN_ID:
        logger.debug("Sendo not configured, SMS skipped")
        return False, "SMS service disabled"

    payload = {
        "campaign": SENDO_CAMPAIGN_ID,
        "body": message_body,
        "to": to_phone,
    }
    if SENDO_FROM_NUMBER:
        payload["from"] = SENDO_FROM_NUMBER
    if metadata:
        payload["metadata"] = metadata

    try:
        logger.info(f"📱 Sending {message_type} SMS to {to_phone} for workspace {workspace_id}")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                SENDO_API_URL,
                headers={"Authorization": f"Bearer {SENDO_API_KEY}"},
                json=payload,
                timeout=10.0,
            )

        if not response.is_success:
            try:
                error_message = response.json().get("error") or "Failed to send SMS"
            except ValueError:
                error_message = "Failed to send SMS"
            logger.error(f"❌ Sendo API error ({response.status_code}): {error_message}")
            return False, error_message

    except httpx.HTTPError as e:
        logger.error(f"❌ Sendo API error: {str(e)}")
        return False, str(e)

    logger.info(f"✅ SMS sent successfully: {message_type} to {to_phone}")

    UsageService(db).record_internal(workspace_id, "messages", 1)

    return True, None


# SMS Template Functions


def _staff_suffix(team_member_name: Optional[str]) -> str:
    return f", Staff: {team_member_name}" if team_member_name else ""


async def send_appointment_confirmation_sms(
    db: Session,
    workspace_id: str,
    to_phone: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    team_member_name: Optional[str] = None,
):
    """Send SMS when an appointment is confirmed"""
    message = (
        f"Hi {customer_name}, your appointment with {workspace_name} is confirmed! "
        f"Service: {service_name}, Date: {format_short_date(date)}, "
        f"Time: {format_time_12h(start_time)} - {format_time_12h(end_time)}"
        f"{_staff_suffix(team_member_name)}. We look forward to seeing you!"
    )
    return await send_sms(db, workspace_id, to_phone, message, "appointment_confirmation")


async def send_appointment_cancellation_sms(
    db: Session,
    workspace_id: str,
    to_phone: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
):
    """Send SMS when an appointment is cancelled"""
    message = (
        f"Hi {customer_name}, your appointment with {workspace_name} for {service_name} "
        f"on {format_short_date(date)} at {format_time_12h(start_time)} has been cancelled. "
        f"Please contact us if you would like to reschedule."
    )
    return await send_sms(db, workspace_id, to_phone, message, "appointment_cancellation")


async def send_reschedule_request_sms(
    db: Session,
    workspace_id: str,
    to_phone: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    old_date: str,
    old_time: str,
    new_date: str,
    new_time: str,
    new_end_time: str,
):
    """Send SMS when the workspace proposes a new time"""
    message = (
        f"Hi {customer_name}, {workspace_name} needs to reschedule your appointment for "
        f"{service_name}. Original: {format_short_date(old_date)} at {format_time_12h(old_time)}. "
        f"New proposed time: {format_short_date(new_date)} from {format_time_12h(new_time)} "
        f"to {format_time_12h(new_end_time)}. Please contact us to confirm or request a different time."
    )
    return await send_sms(db, workspace_id, to_phone, message, "reschedule_request")


async def send_reschedule_confirmation_sms(
    db: Session,
    workspace_id: str,
    to_phone: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    team_member_name: Optional[str] = None,
):
    """Send SMS when a reschedule is confirmed"""
    message = (
        f"Hi {customer_name}, your rescheduled appointment with {workspace_name} is confirmed! "
        f"Service: {service_name}, Date: {format_short_date(date)}, "
        f"Time: {format_time_12h(start_time)} - {format_time_12h(end_time)}"
        f"{_staff_suffix(team_member_name)}. We look forward to seeing you!"
    )
    return await send_sms(db, workspace_id, to_phone, message, "reschedule_confirmation")


async def send_reschedule_declined_sms(
    db: Session,
    workspace_id: str,
    to_phone: str,
    customer_name: str,
    workspace_name: str,
    service_name: str,
    date: str,
    start_time: str,
):
    """Send SMS when a reschedule request is declined"""
    message = (
        f"Hi {customer_name}, {workspace_name} was unable to accommodate your reschedule request. "
        f"Your original appointment for {service_name} on {format_short_date(date)} at "
        f"{format_time_12h(start_time)} remains unchanged. Please contact us if you need to make changes."
    )
    return await send_sms(db, workspace_id, to_phone, message, "reschedule_declined")
