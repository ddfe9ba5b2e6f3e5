"""Workspace router - FastAPI endpoints for workspaces, onboarding and account status"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import TeamMember
from ...rate_limiter import create_rate_limiter
from .schemas import (
    BusinessLocationRequest,
    BusinessServicesRequest,
    CurrentSoftwareRequest,
    GoLiveRequest,
    HeardAboutUsRequest,
    JoinRequestCreate,
    JoinRequestRespond,
    OperatingHoursRequest,
    ServiceLocationsRequest,
    WorkspaceCreateRequest,
    WorkspaceUpdateRequest,
)
from .service import WorkspaceService, validate_business_address

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workspace", tags=["Workspace"])
auth_router = APIRouter(prefix="/api/auth", tags=["Auth"])
public_router = APIRouter(prefix="/api", tags=["Public"])

rate_limit_search = create_rate_limiter(limit=30, window_seconds=60, key_prefix="workspace_search")
rate_limit_user_check = create_rate_limiter(limit=10, window_seconds=60, key_prefix="check_user_exists")
rate_limit_address = create_rate_limiter(limit=20, window_seconds=60, key_prefix="validate_address")


class CheckUserExistsRequest(BaseModel):
    email: Optional[str] = None


class ValidateAddressRequest(BaseModel):
    address: Optional[str] = None


def get_workspace_service(db: Session = Depends(get_db)) -> WorkspaceService:
    """Dependency injection for WorkspaceService"""
    return WorkspaceService(db)


# ============================================================================
# WORKSPACE
# ============================================================================


@router.post("/create")
async def create_workspace(
    data: WorkspaceCreateRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Create a workspace owned by the caller"""
    return service.create_workspace(current_user, data)


@router.post("/update")
async def update_workspace(
    data: WorkspaceUpdateRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.update_workspace(current_user, data)


@router.get("/go-live")
async def get_go_live_status(
    workspaceId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_go_live_status(current_user, workspaceId)


@router.post("/go-live")
async def set_go_live(
    data: GoLiveRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Activate after the readiness checks pass, or deactivate"""
    return service.set_go_live(current_user, data)


@router.get("/search")
async def search_workspaces(
    query: Optional[str] = Query(None),
    limit: int = Query(10),
    service: WorkspaceService = Depends(get_workspace_service),
    _: None = Depends(rate_limit_search),
):
    return service.search(query, limit)


@router.post("/join-request")
async def create_join_request(
    data: JoinRequestCreate,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.create_join_request(current_user, data)


@router.post("/join-request/respond")
async def respond_to_join_request(
    data: JoinRequestRespond,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.respond_to_join_request(current_user, data)


# ============================================================================
# ONBOARDING
# ============================================================================


@router.get("/operating-hours")
async def get_operating_hours(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_operating_hours(current_user)


@router.post("/operating-hours")
async def set_operating_hours(
    data: OperatingHoursRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.set_operating_hours(current_user, data)


@router.get("/business-location")
async def get_business_location(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_business_location(current_user)


@router.post("/business-location")
async def set_business_location(
    data: BusinessLocationRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.set_business_location(current_user, data)


@router.get("/service-locations")
async def get_service_locations(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_service_locations(current_user)


@router.post("/service-locations")
async def set_service_locations(
    data: ServiceLocationsRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.set_service_locations(current_user, data)


@router.get("/heard-about-us")
async def get_heard_about_us(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_heard_about_us(current_user)


@router.post("/heard-about-us")
async def set_heard_about_us(
    data: HeardAboutUsRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Last onboarding step; marks onboarding complete"""
    return service.set_heard_about_us(current_user, data)


@router.get("/current-software")
async def get_current_software(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_current_software(current_user)


@router.post("/current-software")
async def set_current_software(
    data: CurrentSoftwareRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.set_current_software(current_user, data)


@router.get("/services")
async def get_business_services(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_business_services(current_user)


@router.post("/services")
async def set_business_services(
    data: BusinessServicesRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.set_business_services(current_user, data)


@router.get("/get-user-workspace")
async def get_user_workspace(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_user_workspace(current_user)


@router.get("/get-workspace-profile")
async def get_workspace_profile(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_workspace_profile(current_user)


# ============================================================================
# AUTH FLOW AND PUBLIC HELPERS
# ============================================================================


@auth_router.get("/check-workspace-status")
async def check_workspace_status(
    current_user: TeamMember = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.check_workspace_status(current_user)


@public_router.post("/check-user-exists")
async def check_user_exists(
    data: CheckUserExistsRequest,
    service: WorkspaceService = Depends(get_workspace_service),
    _: None = Depends(rate_limit_user_check),
):
    return service.check_user_exists(data.email)


@public_router.post("/validate-address")
async def validate_address_endpoint(
    data: ValidateAddressRequest,
    _: None = Depends(rate_limit_address),
):
    """Geocode an address (public, rate limited)"""
    return await validate_business_address(data.address)
