"""Workspace domain schemas - Business profile, onboarding answers and join requests"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_phone


class WorkspaceData(BaseModel):
    """Editable business profile; unknown keys in the body are ignored"""

    name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    business_type: Optional[Union[dict, list]] = None
    service_locations: Optional[list[str]] = None
    timezone: Optional[str] = None
    require_upfront_payment: Optional[bool] = None

    @field_validator("contact_email")
    @classmethod
    def validate_contact_email(cls, v):
        return validate_email(v)

    @field_validator("contact_phone")
    @classmethod
    def validate_contact_phone(cls, v):
        return validate_phone(v)


class WorkspaceCreateRequest(BaseModel):
    workspaceData: WorkspaceData


class WorkspaceUpdateRequest(BaseModel):
    workspaceId: Optional[str] = None
    workspaceData: Optional[WorkspaceData] = None


class GoLiveRequest(BaseModel):
    workspaceId: Optional[str] = None
    deactivate: bool = False


class JoinRequestCreate(BaseModel):
    workspaceId: Optional[str] = None
    message: Optional[str] = None


class JoinRequestRespond(BaseModel):
    requestId: Optional[str] = None
    response: Optional[str] = None


class OperatingHoursRequest(BaseModel):
    operatingHours: Any = None


class BusinessLocationRequest(BaseModel):
    address: Any = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class ServiceLocationsRequest(BaseModel):
    serviceLocations: Any = None


class HeardAboutUsRequest(BaseModel):
    source: Optional[str] = None
    otherSource: Optional[str] = None


class CurrentSoftwareRequest(BaseModel):
    software: Optional[str] = None
    otherSoftware: Optional[str] = None


class BusinessServicesRequest(BaseModel):
    services: Any = None
    otherService: Optional[str] = None


class WorkspaceProfileResponse(BaseModel):
    id: str
    name: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    business_type: Optional[Union[dict, list]] = None
    service_locations: Optional[list] = None
    address: Optional[dict] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    timezone: Optional[str] = None
    operating_hours: Optional[dict] = None
    active_status: bool
    onboarding_complete: bool
    heard_about_us: Optional[str] = None
    current_software: Optional[str] = None
    require_upfront_payment: bool
    stripe_connect_onboarding_complete: bool
    subscription_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
