"""Appointment router - FastAPI endpoints for appointment operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import TeamMember
from ...rate_limiter import create_rate_limiter
from .schemas import AppointmentActionRequest, RequestRescheduleRequest, RescheduleResponseRequest
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])

rate_limit_reschedule_response = create_rate_limiter(
    limit=10, window_seconds=60, key_prefix="reschedule_response"
)


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


# ============================================================================
# CALENDAR
# ============================================================================


@router.get("")
async def list_appointments(
    workspaceId: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    teamMemberId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Non-cancelled appointments in a date range, with service, variant and team member"""
    return service.list_appointments(current_user, workspaceId, startDate, endDate, teamMemberId)


@router.get("/pending-reschedules")
async def list_pending_reschedules(
    workspaceId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_pending_reschedules(current_user, workspaceId)


# ============================================================================
# STATUS CHANGES
# ============================================================================


@router.post("/confirm")
async def confirm_appointment(
    data: AppointmentActionRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Confirm a pending appointment and notify the customer"""
    return await service.confirm_appointment(current_user, data)


@router.post("/cancel")
async def cancel_appointment(
    data: AppointmentActionRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment and notify the customer"""
    return await service.cancel_appointment(current_user, data)


# ============================================================================
# RESCHEDULE WORKFLOW
# ============================================================================


@router.post("/request-reschedule")
async def request_reschedule(
    data: RequestRescheduleRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Propose a new time to the customer"""
    return await service.request_reschedule(current_user, data)


@router.post("/reschedule-response")
async def reschedule_response(
    data: RescheduleResponseRequest,
    service: AppointmentService = Depends(get_appointment_service),
    _: None = Depends(rate_limit_reschedule_response),
):
    """Customer accepts or rejects a proposed time (public)"""
    return service.respond_to_reschedule(data)


@router.post("/confirm-reschedule")
async def confirm_reschedule(
    data: AppointmentActionRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.confirm_reschedule(current_user, data)


@router.post("/decline-reschedule")
async def decline_reschedule(
    data: AppointmentActionRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.decline_reschedule(current_user, data)
