"""Appointment service - Business logic for appointment status and reschedule workflow"""

import logging
import random
import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Appointment, TeamMember
from ...services.notification_service import (
    send_appointment_cancellation_notification,
    send_appointment_confirmation_notification,
    send_reschedule_confirmation_notification,
    send_reschedule_declined_notification,
    send_reschedule_request_notification,
    send_team_member_assignment_notification,
)
from ...shared.access import require_workspace_id, validate_workspace_access
from .repository import AppointmentRepository
from .schemas import (
    AppointmentActionRequest,
    AppointmentDetailResponse,
    AppointmentResponse,
    RequestRescheduleRequest,
    RescheduleResponseRequest,
)

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


def _copy_metadata(appointment: Appointment) -> tuple[dict, list[dict]]:
    """
    Detached copies of the metadata blob and its reschedule history.
    The JSON column only sees a change when a new object is assigned.
    """
    metadata = dict(appointment.metadata_ or {})
    history = [dict(entry) for entry in metadata.get("reschedule_history") or []]
    return metadata, history


def _find_entry(history: list[dict], **match) -> int:
    for index, entry in enumerate(history):
        if all(entry.get(key) == value for key, value in match.items()):
            return index
    return -1


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()

    def _require_ids(self, data: AppointmentActionRequest) -> tuple[str, str]:
        if not data.appointmentId:
            raise HTTPException(status_code=400, detail="Appointment ID is required")
        return data.appointmentId, require_workspace_id(data.workspaceId)

    def _save(self, appointment: Appointment, failure_message: str) -> Appointment:
        try:
            return self.repo.save(self.db, appointment)
        except Exception as e:
            logger.error(f"❌ {failure_message} {appointment.id}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail=failure_message)

    # ============================================
    # Calendar
    # ============================================

    def list_appointments(
        self,
        user: TeamMember,
        workspace_id: Optional[str],
        start_date: Optional[str],
        end_date: Optional[str],
        team_member_id: Optional[str],
    ) -> dict:
        access = validate_workspace_access(self.db, user, workspace_id)
        appointments = self.repo.list_appointments(
            self.db, access.workspace_id, start_date, end_date, team_member_id
        )
        return {
            "success": True,
            "appointments": [AppointmentDetailResponse.model_validate(a) for a in appointments],
        }

    def list_pending_reschedules(self, user: TeamMember, workspace_id: Optional[str]) -> dict:
        """Pending appointments waiting on the workspace to confirm a customer-accepted reschedule"""
        access = validate_workspace_access(self.db, user, workspace_id)
        appointments = [
            a
            for a in self.repo.list_pending(self.db, access.workspace_id)
            if (a.metadata_ or {}).get("pending_reschedule")
        ]
        return {"appointments": [AppointmentResponse.model_validate(a) for a in appointments]}

    # ============================================
    # Status changes
    # ============================================

    async def confirm_appointment(self, user: TeamMember, data: AppointmentActionRequest) -> dict:
        appointment_id, workspace_id = self._require_ids(data)
        validate_workspace_access(self.db, user, workspace_id)

        appointment = self.repo.get_appointment(self.db, appointment_id, workspace_id)
        if not appointment or appointment.status != "pending":
            raise HTTPException(status_code=404, detail="Appointment not found or already confirmed")

        appointment.status = "confirmed"
        appointment = self._save(appointment, "Failed to confirm appointment")
        logger.info(f"✅ Appointment {appointment.id} confirmed by {user.id}")

        await send_appointment_confirmation_notification(self.db, appointment, user.id)

        return {
            "success": True,
            "message": "Appointment confirmed successfully",
            "appointment": AppointmentResponse.model_validate(appointment),
        }

    async def cancel_appointment(self, user: TeamMember, data: AppointmentActionRequest) -> dict:
        appointment_id, workspace_id = self._require_ids(data)
        validate_workspace_access(self.db, user, workspace_id)

        appointment = self.repo.get_appointment(self.db, appointment_id, workspace_id)
        if not appointment or appointment.status == "cancelled":
            raise HTTPException(status_code=404, detail="Appointment not found or already cancelled")

        appointment.status = "cancelled"
        appointment.cancelled_at = datetime.utcnow()
        appointment = self._save(appointment, "Failed to cancel appointment")
        logger.info(f"✅ Appointment {appointment.id} cancelled by {user.id}")

        await send_appointment_cancellation_notification(self.db, appointment, user.id)

        return {
            "success": True,
            "message": "Appointment cancelled successfully",
            "appointment": AppointmentResponse.model_validate(appointment),
        }

    # ============================================
    # Reschedule workflow
    # ============================================

    async def request_reschedule(self, user: TeamMember, data: RequestRescheduleRequest) -> dict:
        """Workspace proposes a new time; the customer answers via reschedule-response"""
        if not all([data.appointmentId, data.workspaceId, data.newDate, data.newTime, data.newEndTime]):
            raise HTTPException(status_code=400, detail="All fields are required")

        validate_workspace_access(self.db, user, data.workspaceId)

        appointment = self.repo.get_appointment(self.db, data.appointmentId, data.workspaceId)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")

        selected_member_id = data.teamMemberId
        if data.teamMemberPreference == "any":
            member_ids = self.repo.get_active_member_ids(self.db, data.workspaceId)
            selected_member_id = random.choice(member_ids) if member_ids else appointment.team_member_id

        now = _now_iso()
        reschedule_id = str(uuid.uuid4())
        old_date, old_time = appointment.date, appointment.start_time

        metadata, history = _copy_metadata(appointment)
        history.append(
            {
                "status": "pending",
                "initiated_at": now,
                "initiated_by": "workspace",
                "reschedule_id": reschedule_id,
                "previous_date": old_date,
                "previous_time": old_time,
                "new_date": data.newDate,
                "new_time": data.newTime,
                "new_end_time": data.newEndTime,
                "team_member_id": selected_member_id,
                "team_member_preference": data.teamMemberPreference,
            }
        )
        metadata.update(
            {
                "workspace_pending_reschedule": {
                    "new_date": data.newDate,
                    "new_time": data.newTime,
                    "new_end_time": data.newEndTime,
                    "team_member_id": selected_member_id,
                    "team_member_preference": data.teamMemberPreference,
                    "initiated_at": now,
                },
                "current_reschedule": {
                    "initiated_at": now,
                    "initiated_by": "workspace",
                    "previous_date": old_date,
                    "previous_time": old_time,
                    "reschedule_id": reschedule_id,
                },
                "reschedule_history": history,
                "team_member_preference": data.teamMemberPreference,
                "original_team_member_id": metadata.get("original_team_member_id")
                or appointment.team_member_id,
            }
        )

        appointment.metadata_ = metadata
        appointment.status = "pending"
        appointment = self._save(appointment, "Failed to request reschedule")
        logger.info(f"📅 Reschedule {reschedule_id} requested for appointment {appointment.id}")

        await send_reschedule_request_notification(
            self.db,
            appointment,
            old_date=old_date,
            old_time=old_time,
            new_date=data.newDate,
            new_time=data.newTime,
            new_end_time=data.newEndTime,
            team_member_id=selected_member_id,
            user_id=user.id,
        )

        return {
            "success": True,
            "message": "Reschedule request sent successfully",
            "appointment": AppointmentResponse.model_validate(appointment),
        }

    def respond_to_reschedule(self, data: RescheduleResponseRequest) -> dict:
        """Record the customer's accept or reject of a workspace proposal"""
        appointment = self.repo.get_appointment(self.db, data.appointmentId)
        metadata, history = _copy_metadata(appointment) if appointment else ({}, [])
        index = _find_entry(history, reschedule_id=data.rescheduleId, status="pending")
        if not appointment or index == -1:
            raise HTTPException(status_code=404, detail="Reschedule request not found")

        entry = history[index]
        entry["customer_responded_at"] = _now_iso()

        if data.accept:
            entry["status"] = "customer_confirmed"
            metadata["pending_reschedule"] = {
                "reschedule_id": data.rescheduleId,
                "new_date": entry.get("new_date"),
                "new_time": entry.get("new_time"),
                "new_end_time": entry.get("new_end_time"),
                "team_member_id": entry.get("team_member_id"),
                "team_member_preference": entry.get("team_member_preference"),
                "original_team_member_id": metadata.get("original_team_member_id"),
            }
            metadata["workspace_pending_reschedule"] = None
            message = "Reschedule proposal accepted"
        else:
            entry["status"] = "rejected"
            entry["notes"] = "Customer declined reschedule proposal"
            metadata["workspace_pending_reschedule"] = None
            metadata["current_reschedule"] = None
            appointment.status = "confirmed"
            message = "Reschedule proposal declined"

        metadata["reschedule_history"] = history
        appointment.metadata_ = metadata
        self._save(appointment, "Failed to record reschedule response")
        logger.info(f"📥 Customer {'accepted' if data.accept else 'declined'} reschedule {data.rescheduleId}")

        return {"success": True, "message": message}

    def _load_customer_confirmed(
        self, user: TeamMember, data: AppointmentActionRequest
    ) -> tuple[Appointment, dict, list[dict], int]:
        appointment_id, workspace_id = self._require_ids(data)
        validate_workspace_access(self.db, user, workspace_id)

        appointment = self.repo.get_appointment(self.db, appointment_id, workspace_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")

        metadata, history = _copy_metadata(appointment)
        if not metadata.get("pending_reschedule"):
            raise HTTPException(
                status_code=400, detail="No pending reschedule found for this appointment"
            )

        index = _find_entry(history, status="customer_confirmed")
        if index == -1:
            raise HTTPException(
                status_code=400, detail="No customer-confirmed reschedule found in history"
            )
        return appointment, metadata, history, index

    async def confirm_reschedule(self, user: TeamMember, data: AppointmentActionRequest) -> dict:
        """Apply a customer-accepted reschedule to the appointment"""
        appointment, metadata, history, index = self._load_customer_confirmed(user, data)
        pending = metadata["pending_reschedule"]

        history[index].update(
            {
                "status": "completed",
                "confirmed_at": _now_iso(),
                "notes": "Workspace confirmed reschedule request",
            }
        )
        metadata.update(
            {
                "pending_reschedule": None,
                "current_reschedule": None,
                "reschedule_history": history,
                "team_member_preference": pending.get("team_member_preference")
                or metadata.get("team_member_preference"),
                "original_team_member_id": pending.get("original_team_member_id")
                or metadata.get("original_team_member_id"),
            }
        )

        previous_member_id = appointment.team_member_id
        appointment.date = pending.get("new_date") or appointment.date
        appointment.start_time = pending.get("new_time") or appointment.start_time
        appointment.end_time = pending.get("new_end_time") or appointment.end_time
        appointment.team_member_id = pending.get("team_member_id") or appointment.team_member_id
        appointment.status = "confirmed"
        appointment.metadata_ = metadata
        appointment = self._save(appointment, "Failed to confirm reschedule")
        logger.info(f"✅ Reschedule confirmed for appointment {appointment.id}")

        await send_reschedule_confirmation_notification(self.db, appointment, user.id)

        if appointment.team_member_id and appointment.team_member_id != previous_member_id:
            new_member = self.repo.get_team_member(self.db, appointment.team_member_id)
            if new_member:
                await send_team_member_assignment_notification(
                    self.db, appointment, new_member, user.id
                )

        return {
            "success": True,
            "message": "Reschedule confirmed successfully",
            "appointment": AppointmentResponse.model_validate(appointment),
        }

    async def decline_reschedule(self, user: TeamMember, data: AppointmentActionRequest) -> dict:
        appointment, metadata, history, index = self._load_customer_confirmed(user, data)

        history[index].update(
            {
                "status": "rejected",
                "rejected_at": _now_iso(),
                "notes": "Workspace declined reschedule request",
            }
        )
        metadata.update(
            {
                "pending_reschedule": None,
                "current_reschedule": None,
                "reschedule_history": history,
            }
        )

        if appointment.status == "pending":
            appointment.status = "confirmed"
        appointment.metadata_ = metadata
        appointment = self._save(appointment, "Failed to decline reschedule")
        logger.info(f"✅ Reschedule declined for appointment {appointment.id}")

        await send_reschedule_declined_notification(self.db, appointment, user.id)

        return {
            "success": True,
            "message": "Reschedule declined successfully",
            "appointment": AppointmentResponse.model_validate(appointment),
        }
