"""Team router - FastAPI endpoints for team management and member profiles"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_token_claims
from ...database import get_db
from ...models import TeamMember
from .schemas import (
    AcceptInvitationRequest,
    AssignServiceRequest,
    AvailabilityRequest,
    CancelInvitationRequest,
    InviteRequest,
    ProfileUpdateRequest,
    TeamMemberUpsertRequest,
)
from .service import TeamService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/team", tags=["Team"])
profile_router = APIRouter(prefix="/api/team-member", tags=["Team"])


def get_team_service(db: Session = Depends(get_db)) -> TeamService:
    """Dependency injection for TeamService"""
    return TeamService(db)


@router.get("")
async def list_team(
    workspaceId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    """Owners see every member, staff only themselves"""
    return team.list_team(current_user, workspaceId)


# ============================================================================
# INVITATIONS
# ============================================================================


@router.post("/invite")
async def invite_team_member(
    data: InviteRequest,
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return await team.invite(current_user, data)


@router.post("/accept-invitation")
async def accept_invitation(
    data: AcceptInvitationRequest,
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.accept_invitation(current_user, data)


@router.post("/cancel-invitation")
async def cancel_invitation(
    data: CancelInvitationRequest,
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.cancel_invitation(current_user, data)


# ============================================================================
# MEMBERS
# ============================================================================


@router.post("/member")
async def upsert_team_member(
    data: TeamMemberUpsertRequest,
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    """Add a member (subject to the seat limit) or update an existing one"""
    return team.upsert_member(current_user, data)


@router.delete("/member")
async def remove_team_member(
    workspaceId: Optional[str] = Query(None),
    teamMemberId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.remove_member(current_user, workspaceId, teamMemberId)


@router.get("/member/availability")
async def list_availability(
    teamMemberId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.list_availability(current_user, teamMemberId)


@router.post("/member/availability")
async def save_availability(
    data: AvailabilityRequest,
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.save_availability(current_user, data)


@router.delete("/member/availability")
async def delete_availability(
    id: Optional[str] = Query(None),
    teamMemberId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.delete_availability(current_user, id, teamMemberId)


@router.get("/member/services")
async def list_member_services(
    teamMemberId: Optional[str] = Query(None),
    workspaceId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.list_member_services(current_user, teamMemberId, workspaceId)


@router.post("/member/services")
async def assign_service(
    data: AssignServiceRequest,
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.assign_service(current_user, data)


@router.delete("/member/services")
async def remove_service_assignment(
    assignmentId: Optional[str] = Query(None),
    teamMemberId: Optional[str] = Query(None),
    workspaceId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.remove_service_assignment(current_user, assignmentId, teamMemberId, workspaceId)


# ============================================================================
# PROFILE
# ============================================================================


@profile_router.get("/profile")
async def get_profile(
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.get_profile(current_user)


@profile_router.post("/profile")
async def update_profile(
    data: ProfileUpdateRequest,
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.update_profile(current_user, data)


@profile_router.post("/populate")
async def populate_profile(
    request: Request,
    current_user: TeamMember = Depends(get_current_user),
    team: TeamService = Depends(get_team_service),
):
    return team.populate_from_claims(current_user, get_token_claims(request))
