"""Team service - Business logic for workspace members, invitations and staff scheduling"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...auth import names_from_claims
from ...models import (
    TeamMember,
    TeamMemberAvailability,
    TeamMemberService,
    WorkspaceInvitation,
    WorkspaceMember,
)
from ...services.notification_service import member_display_name
from ...shared.access import WorkspaceAccess, require_workspace_id, validate_workspace_access
from ...shared.formatting import format_long_date
from ..billing.repository import BillingRepository
from .repository import TeamRepository
from .schemas import (
    AcceptInvitationRequest,
    AssignServiceRequest,
    AvailabilityRequest,
    AvailabilityResponse,
    CancelInvitationRequest,
    InviteRequest,
    ProfileUpdateRequest,
    ServiceAssignmentResponse,
    TeamMemberProfileResponse,
    TeamMemberUpsertRequest,
)

logger = logging.getLogger(__name__)

INVITATION_TTL_DAYS = 7
VALID_ROLES = ("owner", "staff")
DEFAULT_SEAT_LIMIT = 1


def split_name(name: str) -> tuple[str, Optional[str]]:
    parts = name.strip().split(" ", 1)
    return parts[0], (parts[1].strip() or None) if len(parts) > 1 else None


class TeamService:
    """Service layer for team management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TeamRepository()
        self.billing_repo = BillingRepository()

    def _save(self, obj, failure_message: str):
        try:
            return self.repo.save(self.db, obj)
        except Exception as e:
            logger.error(f"❌ {failure_message}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail=failure_message)

    # ============================================
    # Team list
    # ============================================

    def list_team(self, user: TeamMember, workspace_id: Optional[str]) -> dict:
        access = validate_workspace_access(self.db, user, workspace_id)

        rows = self.repo.list_members(
            self.db, access.workspace_id, team_member_id=user.id if access.is_staff else None
        )
        team_members = [
            {
                "id": member.id,
                "display_name": member_display_name(member) or "Team Member",
                "first_name": member.first_name,
                "last_name": member.last_name,
                "email": member.email,
                "phone": member.phone,
                "avatar_url": member.avatar_url,
                "role": membership.role,
                "active": membership.active,
            }
            for membership, member in rows
        ]
        return {"success": True, "teamMembers": team_members, "isStaff": access.is_staff}

    # ============================================
    # Invitations
    # ============================================

    async def invite(self, user: TeamMember, data: InviteRequest) -> dict:
        """Create or refresh a pending invitation and email the link"""
        workspace_id = require_workspace_id(data.workspaceId)
        if not data.email:
            raise HTTPException(status_code=400, detail="Email is required")
        if data.role not in VALID_ROLES:
            raise HTTPException(status_code=400, detail="Valid role is required (owner or staff)")
        if user.email and user.email.lower() == data.email:
            raise HTTPException(status_code=400, detail="You cannot invite yourself to this workspace")

        access = validate_workspace_access(self.db, user, workspace_id)
        if not access.is_owner:
            raise HTTPException(status_code=403, detail="You don't have permission to invite team members")

        workspace = self.repo.get_workspace(self.db, workspace_id)
        if not workspace:
            raise HTTPException(status_code=404, detail="Workspace not found")

        existing_member = self.repo.get_team_member_by_email(self.db, data.email)
        if existing_member:
            memberships = self.repo.get_memberships(self.db, existing_member.id)
            if any(m.workspace_id == workspace_id for m in memberships):
                raise HTTPException(status_code=400, detail="This email is already a member of this workspace")
            if memberships:
                raise HTTPException(
                    status_code=400, detail="This email is already associated with another workspace"
                )

        expires_at = datetime.utcnow() + timedelta(days=INVITATION_TTL_DAYS)
        invitation = self.repo.get_pending_invitation(self.db, workspace_id, data.email)
        if invitation:
            logger.info(f"🔄 Refreshing pending invitation {invitation.id} for {data.email}")
            invitation.role = data.role
            invitation.invited_by = user.id
            invitation.expires_at = expires_at
            invitation = self._save(invitation, "Failed to update invitation")
        else:
            invitation = self._save(
                WorkspaceInvitation(
                    workspace_id=workspace_id,
                    email=data.email,
                    role=data.role,
                    token=secrets.token_hex(32),
                    status="pending",
                    invited_by=user.id,
                    expires_at=expires_at,
                ),
                "Failed to create invitation",
            )

        invitation_link = f"{config.APP_URL}/auth/accept-invitation?token={invitation.token}"

        from ...email_service import send_team_invitation_email

        try:
            await send_team_invitation_email(
                db=self.db,
                to=data.email,
                workspace_name=workspace.name,
                inviter_name=member_display_name(user) or user.email,
                invitation_link=invitation_link,
                role=data.role,
                expires_at=format_long_date(expires_at.date().isoformat()),
                workspace_id=workspace_id,
                user_id=user.id,
            )
        except Exception as e:
            logger.error(f"❌ Failed to send invitation email to {data.email}: {e}")

        return {
            "success": True,
            "message": "Invitation sent successfully",
            "invitationId": invitation.id,
        }

    def accept_invitation(self, user: TeamMember, data: AcceptInvitationRequest) -> dict:
        if not data.token:
            raise HTTPException(status_code=400, detail="Invitation token is required")

        invitation = self.repo.get_invitation_by_token(self.db, data.token)
        if not invitation:
            raise HTTPException(status_code=404, detail="Invalid invitation")

        if (user.email or "").lower() != invitation.email.lower():
            raise HTTPException(
                status_code=403, detail="This invitation was sent to a different email address"
            )

        if invitation.status == "accepted":
            raise HTTPException(status_code=400, detail="Invitation has already been accepted")

        now = datetime.utcnow()
        if invitation.status == "expired" or invitation.expires_at < now:
            if invitation.status != "expired":
                invitation.status = "expired"
                self._save(invitation, "Failed to update invitation status")
            raise HTTPException(status_code=400, detail="Invitation has expired")

        membership = self.repo.get_membership(self.db, invitation.workspace_id, user.id)
        if membership:
            invitation.status = "accepted"
            invitation.accepted_at = now
            self._save(invitation, "Failed to update invitation status")
            return {
                "success": True,
                "message": "You are already a member of this workspace",
                "alreadyMember": True,
                "workspaceId": invitation.workspace_id,
            }

        try:
            self.db.add(
                WorkspaceMember(
                    workspace_id=invitation.workspace_id,
                    team_member_id=user.id,
                    role=invitation.role,
                    active=True,
                )
            )
            invitation.status = "accepted"
            invitation.accepted_at = now
            self.db.commit()
        except Exception as e:
            logger.error(f"❌ Failed to accept invitation {invitation.id}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail="Failed to add user to workspace")

        logger.info(f"✅ {user.id} joined workspace {invitation.workspace_id} as {invitation.role}")
        return {
            "success": True,
            "message": "Invitation accepted successfully",
            "workspaceId": invitation.workspace_id,
        }

    def cancel_invitation(self, user: TeamMember, data: CancelInvitationRequest) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId)
        if not access.is_owner:
            raise HTTPException(
                status_code=403, detail="You don't have permission to manage team invitations"
            )
        if not data.invitationId:
            raise HTTPException(status_code=400, detail="Invitation ID is required")

        invitation = self.repo.get_invitation(self.db, data.invitationId, access.workspace_id)
        if not invitation:
            raise HTTPException(status_code=404, detail="Invitation not found")
        if invitation.status != "pending":
            raise HTTPException(status_code=400, detail="Invitation is not in pending status")

        invitation.status = "expired"
        self._save(invitation, "Failed to cancel invitation")
        return {"success": True, "message": "Invitation cancelled successfully"}

    # ============================================
    # Members
    # ============================================

    def _check_seat_limit(self, workspace_id: str) -> None:
        """Raise 403 with seat details when no seat is free for another active member"""
        current_seats = self.billing_repo.count_active_members(self.db, workspace_id)
        subscription = self.billing_repo.get_latest_subscription(self.db, workspace_id)

        if subscription:
            included = subscription.plan.included_seats if subscription.plan else 0
            total_seats = (included or 0) + (subscription.additional_seats or 0)
            is_trialing = subscription.status == "trialing"
        else:
            total_seats = DEFAULT_SEAT_LIMIT
            is_trialing = False

        if current_seats >= total_seats:
            logger.warning(f"⚠️ Seat limit reached for workspace {workspace_id}: {current_seats}/{total_seats}")
            raise HTTPException(
                status_code=403,
                detail={
                    "error": (
                        f"Seat limit reached. Your trial plan has a limit of {total_seats} seats."
                        if is_trialing
                        else "Seat limit reached"
                    ),
                    "seatLimitReached": True,
                    "currentSeats": current_seats,
                    "totalSeats": total_seats,
                    "isTrialing": is_trialing,
                },
            )

    def upsert_member(self, user: TeamMember, data: TeamMemberUpsertRequest) -> dict:
        """Create or update a team member and their membership in the workspace"""
        access = validate_workspace_access(self.db, user, data.workspaceId, "owner")
        if data.role not in VALID_ROLES:
            raise HTTPException(status_code=400, detail="Valid role is required (owner or staff)")

        if data.teamMemberId:
            member = self.repo.get_team_member(self.db, data.teamMemberId)
            if not member:
                raise HTTPException(status_code=404, detail="Team member not found")
        else:
            if not data.email:
                raise HTTPException(status_code=400, detail="Email is required")
            member = self.repo.get_team_member_by_email(self.db, data.email)
            if not member:
                member = TeamMember(email=data.email)
                self.db.add(member)

        if data.name:
            member.first_name, member.last_name = split_name(data.name)
            member.display_name = data.name.strip()

        membership = self.repo.get_membership(self.db, access.workspace_id, member.id) if member.id else None
        takes_seat = data.active and (membership is None or not membership.active)
        if takes_seat:
            try:
                self._check_seat_limit(access.workspace_id)
            except HTTPException:
                self.db.rollback()
                raise

        if membership:
            membership.role = data.role
            membership.active = data.active
            message = "Team member updated successfully"
        else:
            membership = WorkspaceMember(workspace_id=access.workspace_id, role=data.role, active=data.active)
            membership.team_member = member
            self.db.add(membership)
            message = "Team member added successfully"

        try:
            self.db.commit()
            self.db.refresh(member)
        except Exception as e:
            logger.error(f"❌ Failed to save team member for workspace {access.workspace_id}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail="Failed to save team member")

        return {
            "success": True,
            "teamMember": {
                **TeamMemberProfileResponse.model_validate(member).model_dump(),
                "role": membership.role,
                "active": membership.active,
            },
            "message": message,
        }

    def remove_member(self, user: TeamMember, workspace_id: Optional[str], team_member_id: Optional[str]) -> dict:
        access = validate_workspace_access(self.db, user, workspace_id, "owner")
        if not team_member_id:
            raise HTTPException(status_code=400, detail="Team member ID is required")
        if team_member_id == user.id:
            raise HTTPException(status_code=400, detail="You cannot remove yourself from the workspace")

        membership = self.repo.get_membership(self.db, access.workspace_id, team_member_id)
        if not membership:
            raise HTTPException(status_code=404, detail="Team member not found in this workspace")

        try:
            self.repo.delete_membership(self.db, membership)
        except Exception as e:
            logger.error(f"❌ Failed to remove team member {team_member_id}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail="Failed to delete team member")

        logger.info(f"🗑️ Team member {team_member_id} removed from workspace {access.workspace_id}")
        return {"success": True, "message": "Team member removed successfully"}

    # ============================================
    # Availability
    # ============================================

    def _validate_member_access(self, user: TeamMember, team_member_id: Optional[str], edit: bool = False) -> None:
        """The caller must share a workspace with the member; staff may only edit themselves"""
        if not team_member_id:
            raise HTTPException(status_code=400, detail="Team member ID is required")

        target_memberships = self.repo.get_memberships(self.db, team_member_id)
        if not target_memberships:
            raise HTTPException(status_code=404, detail="Team member not found")

        shared_roles = []
        for target in target_memberships:
            own = self.repo.get_membership(self.db, target.workspace_id, user.id)
            if own and own.active:
                shared_roles.append(own.role)

        if not shared_roles:
            raise HTTPException(status_code=403, detail="You don't have access to this team member")

        if edit and team_member_id != user.id and "owner" not in shared_roles:
            raise HTTPException(
                status_code=403, detail="Staff members can only manage their own availability"
            )

    def list_availability(self, user: TeamMember, team_member_id: Optional[str]) -> dict:
        self._validate_member_access(user, team_member_id)
        rows = self.repo.list_availability(self.db, team_member_id)
        return {"success": True, "availabilities": [AvailabilityResponse.model_validate(r) for r in rows]}

    def save_availability(self, user: TeamMember, data: AvailabilityRequest) -> dict:
        self._validate_member_access(user, data.teamMemberId, edit=True)
        if data.startTime >= data.endTime:
            raise HTTPException(status_code=400, detail="Start time must be before end time")

        if data.id:
            availability = self.repo.get_availability(self.db, data.id, data.teamMemberId)
            if not availability:
                raise HTTPException(status_code=404, detail="Availability not found")
            message = "Availability updated successfully"
        else:
            availability = TeamMemberAvailability(team_member_id=data.teamMemberId)
            message = "Availability added successfully"

        availability.day_of_week = data.dayOfWeek
        availability.start_time = data.startTime
        availability.end_time = data.endTime
        availability = self._save(availability, "Failed to save availability")

        return {
            "success": True,
            "availability": AvailabilityResponse.model_validate(availability),
            "message": message,
        }

    def delete_availability(self, user: TeamMember, availability_id: Optional[str], team_member_id: Optional[str]) -> dict:
        if not availability_id:
            raise HTTPException(status_code=400, detail="Availability ID is required")
        self._validate_member_access(user, team_member_id, edit=True)

        availability = self.repo.get_availability(self.db, availability_id, team_member_id)
        if not availability:
            raise HTTPException(status_code=404, detail="Availability not found")

        self.repo.delete_availability(self.db, availability)
        return {"success": True, "message": "Availability deleted successfully"}

    # ============================================
    # Service assignments
    # ============================================

    def list_member_services(self, user: TeamMember, team_member_id: Optional[str], workspace_id: Optional[str]) -> dict:
        if not team_member_id:
            raise HTTPException(status_code=400, detail="Team member ID is required")
        access = validate_workspace_access(self.db, user, workspace_id)
        if access.is_staff and team_member_id != user.id:
            raise HTTPException(status_code=403, detail="You can only view your own service assignments")

        assignments = self.repo.list_assignments(self.db, team_member_id, access.workspace_id)
        services = self.repo.list_active_services(self.db, access.workspace_id)
        return {
            "success": True,
            "assignments": [ServiceAssignmentResponse.model_validate(a) for a in assignments],
            "availableServices": [
                {"id": s.id, "name": s.name, "description": s.description, "color": s.color, "category": s.category}
                for s in services
            ],
        }

    def assign_service(self, user: TeamMember, data: AssignServiceRequest) -> dict:
        if not data.teamMemberId:
            raise HTTPException(status_code=400, detail="Team member ID is required")
        if not data.serviceId:
            raise HTTPException(status_code=400, detail="Service ID is required")
        access = validate_workspace_access(self.db, user, data.workspaceId)

        if not self.repo.get_service_in_workspace(self.db, data.serviceId, access.workspace_id):
            raise HTTPException(status_code=404, detail="Service not found in this workspace")
        if not self.repo.get_membership(self.db, access.workspace_id, data.teamMemberId):
            raise HTTPException(status_code=404, detail="Team member not found in this workspace")
        if access.is_staff and data.teamMemberId != user.id:
            raise HTTPException(status_code=403, detail="Staff members can only assign services to themselves")

        assignment = self.repo.get_assignment(self.db, data.teamMemberId, data.serviceId)
        if assignment and assignment.active:
            return {
                "success": True,
                "message": "Service is already assigned to this team member",
                "assignment": ServiceAssignmentResponse.model_validate(assignment),
            }

        if not assignment:
            assignment = TeamMemberService(team_member_id=data.teamMemberId, service_id=data.serviceId)
        assignment.active = True
        assignment.self_assigned = data.teamMemberId == user.id
        assignment.assigned_by = user.id
        assignment.assigned_at = datetime.utcnow()
        assignment = self._save(assignment, "Failed to create service assignment")

        return {
            "success": True,
            "message": "Service assigned successfully",
            "assignment": ServiceAssignmentResponse.model_validate(assignment),
        }

    def remove_service_assignment(
        self,
        user: TeamMember,
        assignment_id: Optional[str],
        team_member_id: Optional[str],
        workspace_id: Optional[str],
    ) -> dict:
        if not assignment_id:
            raise HTTPException(status_code=400, detail="Assignment ID is required")
        if not team_member_id:
            raise HTTPException(status_code=400, detail="Team member ID is required")
        access: WorkspaceAccess = validate_workspace_access(self.db, user, workspace_id)

        assignment = self.repo.get_assignment_by_id(self.db, assignment_id, team_member_id)
        if not assignment:
            raise HTTPException(status_code=404, detail="Assignment not found")
        if not assignment.service or assignment.service.workspace_id != access.workspace_id:
            raise HTTPException(status_code=403, detail="Service does not belong to this workspace")

        if access.is_staff and (team_member_id != user.id or not assignment.self_assigned):
            raise HTTPException(
                status_code=403, detail="Staff members can only remove their own self-assigned services"
            )

        assignment.active = False
        self._save(assignment, "Failed to remove service assignment")
        return {"success": True, "message": "Service assignment removed successfully"}

    # ============================================
    # Profile
    # ============================================

    def get_profile(self, user: TeamMember) -> dict:
        return {"success": True, "teamMember": TeamMemberProfileResponse.model_validate(user)}

    def update_profile(self, user: TeamMember, data: ProfileUpdateRequest) -> dict:
        if data.teamMemberId and data.teamMemberId != user.id:
            raise HTTPException(status_code=403, detail="You can only update your own profile")

        updates = data.model_dump(exclude_unset=True)
        field_map = {
            "firstName": "first_name",
            "lastName": "last_name",
            "displayName": "display_name",
            "phone": "phone",
        }
        for key, column in field_map.items():
            if key in updates:
                setattr(user, column, updates[key])

        user = self._save(user, "Failed to update team member profile")
        return {
            "success": True,
            "message": "Profile updated successfully",
            "teamMember": TeamMemberProfileResponse.model_validate(user),
        }

    def populate_from_claims(self, user: TeamMember, claims: dict) -> dict:
        """Fill empty name fields for professionals from the token's user metadata"""
        metadata = claims.get("user_metadata") or {}
        if not (user.is_professional or metadata.get("is_professional")):
            return {"success": False, "message": "User is not a professional"}

        first_name, last_name, display_name = names_from_claims(claims)
        changed = False
        for column, value in (
            ("first_name", first_name),
            ("last_name", last_name),
            ("display_name", display_name),
            ("avatar_url", metadata.get("avatar_url") or metadata.get("picture")),
            ("phone", metadata.get("phone")),
        ):
            if value and not getattr(user, column):
                setattr(user, column, value)
                changed = True

        if changed:
            user = self._save(user, "Failed to populate team member")
            logger.info(f"✅ Populated profile for team member {user.id}")

        return {"success": True, "teamMember": TeamMemberProfileResponse.model_validate(user)}
