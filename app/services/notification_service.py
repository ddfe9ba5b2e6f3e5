"""
Appointment notifications
Each lifecycle event fans out to the customer's email and SMS; a failure on
one channel never blocks the other and is reported in the result dict.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Appointment, CustomerProfile, TeamMember, Workspace
from ..shared.validators import format_phone_number

logger = logging.getLogger(__name__)


async def send_notification(
    db: Session,
    workspace_id: str,
    customer_email: Optional[str],
    customer_phone: Optional[str],
    customer_name: str,
    notification_type: str,
    email_func,
    sms_func,
    email_kwargs: dict,
    sms_kwargs: dict,
) -> dict:
    """
    Deliver one event over both channels.

    Args:
        workspace_id: Workspace the messages are sent and billed for
        customer_name: Used in log lines only
        notification_type: Label such as "confirmation", for log lines
        email_func: Coroutine taking db, to, workspace_id plus email_kwargs
        sms_func: Coroutine taking db, workspace_id, to_phone plus sms_kwargs,
            returning (success, error)

    Returns:
        {"email_sent", "sms_sent", "email_error", "sms_error"}
    """
    result = {"email_sent": False, "sms_sent": False, "email_error": None, "sms_error": None}

    if customer_email:
        try:
            await email_func(db=db, to=customer_email, workspace_id=workspace_id, **email_kwargs)
            result["email_sent"] = True
            logger.info(f"📧 {notification_type} email delivered to {customer_email}")
        except Exception as e:
            result["email_error"] = str(e)
            logger.error(f"❌ {notification_type} email to {customer_email} failed: {e}")
    else:
        logger.debug(f"No email on file for {customer_name}, skipping {notification_type} email")

    if not customer_phone:
        logger.debug(f"No phone on file for {customer_name}, skipping {notification_type} SMS")
        return result

    phone = format_phone_number(customer_phone)
    if not phone:
        result["sms_error"] = "Invalid phone number format"
        logger.warning(f"⚠️ Unusable phone number for {customer_name}: {customer_phone}")
        return result

    try:
        sent, error = await sms_func(db=db, workspace_id=workspace_id, to_phone=phone, **sms_kwargs)
    except Exception as e:
        result["sms_error"] = str(e)
        logger.error(f"❌ {notification_type} SMS to {phone} failed: {e}")
        return result

    if sent:
        result["sms_sent"] = True
        logger.info(f"📱 {notification_type} SMS delivered to {phone}")
    else:
        result["sms_error"] = error
        # Workspaces with SMS turned off are the normal case
        log = logger.debug if error and "disabled" in error.lower() else logger.warning
        log(f"{notification_type} SMS to {phone} not sent: {error}")

    return result


def member_display_name(member: Optional[TeamMember]) -> Optional[str]:
    if not member:
        return None
    if member.display_name:
        return member.display_name
    full_name = " ".join(part for part in (member.first_name, member.last_name) if part)
    return full_name or None


def resolve_customer_phone(db: Session, appointment: Appointment) -> Optional[str]:
    """Phone on the appointment, falling back to the linked customer profile"""
    if appointment.customer_phone:
        return appointment.customer_phone
    if not appointment.customer_id:
        return None
    profile = db.query(CustomerProfile).filter(CustomerProfile.id == appointment.customer_id).first()
    return profile.phone_number if profile else None


def _appointment_context(db: Session, appointment: Appointment) -> dict:
    workspace = db.query(Workspace).filter(Workspace.id == appointment.workspace_id).first()
    return {
        "customer_name": appointment.customer_name or "Customer",
        "workspace_name": (workspace.name if workspace else None) or "Our Business",
        "service_name": (appointment.service.name if appointment.service else None) or "Service",
        "team_member_name": member_display_name(appointment.team_member),
    }


async def send_appointment_confirmation_notification(
    db: Session, appointment: Appointment, user_id: Optional[str] = None
) -> dict:
    """Send appointment confirmation via email and SMS"""
    from ..email_service import send_appointment_confirmation_email
    from .sms_service import send_appointment_confirmation_sms

    ctx = _appointment_context(db, appointment)
    times = {
        "date": appointment.date,
        "start_time": appointment.start_time,
        "end_time": appointment.end_time or appointment.start_time,
    }
    return await send_notification(
        db=db,
        workspace_id=appointment.workspace_id,
        customer_email=appointment.customer_email,
        customer_phone=resolve_customer_phone(db, appointment),
        customer_name=ctx["customer_name"],
        notification_type="appointment_confirmation",
        email_func=send_appointment_confirmation_email,
        sms_func=send_appointment_confirmation_sms,
        email_kwargs={
            **ctx,
            **times,
            "price": appointment.price,
            "notes": appointment.notes,
            "user_id": user_id,
        },
        sms_kwargs={**ctx, **times},
    )


async def send_appointment_cancellation_notification(
    db: Session, appointment: Appointment, user_id: Optional[str] = None
) -> dict:
    """Send appointment cancellation via email and SMS"""
    from ..email_service import send_appointment_cancellation_email
    from .sms_service import send_appointment_cancellation_sms

    ctx = _appointment_context(db, appointment)
    ctx.pop("team_member_name")
    details = {**ctx, "date": appointment.date, "start_time": appointment.start_time}
    return await send_notification(
        db=db,
        workspace_id=appointment.workspace_id,
        customer_email=appointment.customer_email,
        customer_phone=resolve_customer_phone(db, appointment),
        customer_name=ctx["customer_name"],
        notification_type="appointment_cancellation",
        email_func=send_appointment_cancellation_email,
        sms_func=send_appointment_cancellation_sms,
        email_kwargs={**details, "user_id": user_id},
        sms_kwargs=details,
    )


async def send_reschedule_request_notification(
    db: Session,
    appointment: Appointment,
    old_date: str,
    old_time: str,
    new_date: str,
    new_time: str,
    new_end_time: str,
    team_member_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> dict:
    """Send a workspace-initiated reschedule proposal via email and SMS"""
    from ..email_service import send_reschedule_request_email
    from .sms_service import send_reschedule_request_sms

    ctx = _appointment_context(db, appointment)
    team_member_name = ctx.pop("team_member_name")
    if team_member_id and team_member_id != appointment.team_member_id:
        proposed = db.query(TeamMember).filter(TeamMember.id == team_member_id).first()
        team_member_name = member_display_name(proposed) or team_member_name

    times = {
        "old_date": old_date,
        "old_time": old_time,
        "new_date": new_date,
        "new_time": new_time,
        "new_end_time": new_end_time,
    }
    return await send_notification(
        db=db,
        workspace_id=appointment.workspace_id,
        customer_email=appointment.customer_email,
        customer_phone=resolve_customer_phone(db, appointment),
        customer_name=ctx["customer_name"],
        notification_type="reschedule_request",
        email_func=send_reschedule_request_email,
        sms_func=send_reschedule_request_sms,
        email_kwargs={**ctx, **times, "team_member_name": team_member_name, "user_id": user_id},
        sms_kwargs={**ctx, **times},
    )


async def send_reschedule_confirmation_notification(
    db: Session, appointment: Appointment, user_id: Optional[str] = None
) -> dict:
    """Send reschedule confirmation via email and SMS"""
    from ..email_service import send_reschedule_confirmation_email
    from .sms_service import send_reschedule_confirmation_sms

    ctx = _appointment_context(db, appointment)
    times = {
        "date": appointment.date,
        "start_time": appointment.start_time,
        "end_time": appointment.end_time or appointment.start_time,
    }
    return await send_notification(
        db=db,
        workspace_id=appointment.workspace_id,
        customer_email=appointment.customer_email,
        customer_phone=resolve_customer_phone(db, appointment),
        customer_name=ctx["customer_name"],
        notification_type="reschedule_confirmation",
        email_func=send_reschedule_confirmation_email,
        sms_func=send_reschedule_confirmation_sms,
        email_kwargs={**ctx, **times, "user_id": user_id},
        sms_kwargs={**ctx, **times},
    )


async def send_reschedule_declined_notification(
    db: Session, appointment: Appointment, user_id: Optional[str] = None
) -> dict:
    """Tell the customer the original appointment stands"""
    from ..email_service import send_reschedule_declined_email
    from .sms_service import send_reschedule_declined_sms

    ctx = _appointment_context(db, appointment)
    ctx.pop("team_member_name")
    details = {**ctx, "date": appointment.date, "start_time": appointment.start_time}
    return await send_notification(
        db=db,
        workspace_id=appointment.workspace_id,
        customer_email=appointment.customer_email,
        customer_phone=resolve_customer_phone(db, appointment),
        customer_name=ctx["customer_name"],
        notification_type="reschedule_declined",
        email_func=send_reschedule_declined_email,
        sms_func=send_reschedule_declined_sms,
        email_kwargs={**details, "user_id": user_id},
        sms_kwargs=details,
    )


async def send_team_member_assignment_notification(
    db: Session, appointment: Appointment, team_member: TeamMember, user_id: Optional[str] = None
) -> bool:
    """Email a team member who was just assigned an appointment; email only"""
    from ..email_service import send_team_member_appointment_email

    if not team_member.email:
        return False

    ctx = _appointment_context(db, appointment)
    try:
        await send_team_member_appointment_email(
            db=db,
            to=team_member.email,
            team_member_name=member_display_name(team_member) or "Team Member",
            workspace_name=ctx["workspace_name"],
            customer_name=ctx["customer_name"],
            service_name=ctx["service_name"],
            date=appointment.date,
            start_time=appointment.start_time,
            end_time=appointment.end_time or appointment.start_time,
            workspace_id=appointment.workspace_id,
            notes=appointment.notes,
            user_id=user_id,
        )
        logger.info(f"✅ Assignment email sent to team member {team_member.id}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to send assignment email to team member {team_member.id}: {e}")
        return False
