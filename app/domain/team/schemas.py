"""Team domain schemas - Members, invitations, availability and service assignments"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_phone, validate_time


class InviteRequest(BaseModel):
    email: Optional[str] = None
    role: Optional[str] = None
    workspaceId: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)


class AcceptInvitationRequest(BaseModel):
    token: Optional[str] = None


class CancelInvitationRequest(BaseModel):
    invitationId: Optional[str] = None
    workspaceId: Optional[str] = None


class TeamMemberUpsertRequest(BaseModel):
    teamMemberId: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    role: str = "staff"
    active: bool = True
    workspaceId: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)


class AvailabilityRequest(BaseModel):
    id: Optional[str] = None
    teamMemberId: Optional[str] = None
    dayOfWeek: int
    startTime: str
    endTime: str

    @field_validator("dayOfWeek")
    @classmethod
    def validate_day(cls, v):
        if v < 0 or v > 6:
            raise ValueError("Day of week must be between 0 and 6")
        return v

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_times(cls, v):
        return validate_time(v)


class AssignServiceRequest(BaseModel):
    teamMemberId: Optional[str] = None
    serviceId: Optional[str] = None
    workspaceId: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    teamMemberId: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    displayName: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v):
        return validate_phone(v)


class TeamMemberProfileResponse(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    auth_provider: Optional[str] = None
    is_professional: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    id: str
    team_member_id: str
    day_of_week: int
    start_time: str
    end_time: str

    class Config:
        from_attributes = True


class AssignedServiceSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    active: bool

    class Config:
        from_attributes = True


class ServiceAssignmentResponse(BaseModel):
    id: str
    team_member_id: str
    service_id: str
    self_assigned: bool
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    active: bool
    service: Optional[AssignedServiceSummary] = None

    class Config:
        from_attributes = True
