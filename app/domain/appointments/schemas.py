"""Appointment domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_date, validate_time


class AppointmentActionRequest(BaseModel):
    """Body for confirm, cancel, confirm-reschedule and decline-reschedule"""

    appointmentId: Optional[str] = None
    workspaceId: Optional[str] = None


class RequestRescheduleRequest(BaseModel):
    appointmentId: Optional[str] = None
    workspaceId: Optional[str] = None
    newDate: Optional[str] = None
    newTime: Optional[str] = None
    newEndTime: Optional[str] = None
    teamMemberId: Optional[str] = None
    teamMemberPreference: Optional[str] = None  # "specific" | "any"

    @field_validator("newDate")
    @classmethod
    def check_date(cls, v):
        return validate_date(v) if v else v

    @field_validator("newTime", "newEndTime")
    @classmethod
    def check_time(cls, v):
        return validate_time(v) if v else v


class RescheduleResponseRequest(BaseModel):
    """Customer's answer to a workspace reschedule proposal"""

    appointmentId: str
    rescheduleId: str
    accept: bool


class ServiceSummary(BaseModel):
    id: str
    name: str
    color: Optional[str] = None

    class Config:
        from_attributes = True


class VariantSummary(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class TeamMemberSummary(BaseModel):
    id: str
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: str
    workspace_id: str
    team_member_id: Optional[str] = None
    service_id: Optional[str] = None
    service_variant_id: Optional[str] = None
    customer_id: Optional[str] = None
    status: str
    date: str
    start_time: str
    end_time: Optional[str] = None
    duration: Optional[int] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    price: Optional[float] = None
    payment_status: Optional[str] = None
    notes: Optional[str] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    notification_status: Optional[dict] = None
    cancelled_at: Optional[datetime] = None
    metadata: Optional[dict] = Field(default=None, validation_alias="metadata_")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentDetailResponse(AppointmentResponse):
    """Calendar row enriched with service, variant and team member"""

    service: Optional[ServiceSummary] = None
    service_variant: Optional[VariantSummary] = None
    team_member: Optional[TeamMemberSummary] = None
