"""Team repository - Database operations for members, invitations and assignments"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import (
    Service,
    TeamMember,
    TeamMemberAvailability,
    TeamMemberService,
    Workspace,
    WorkspaceInvitation,
    WorkspaceMember,
)


class TeamRepository:
    """Repository for team database operations"""

    @staticmethod
    def save(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def get_workspace(db: Session, workspace_id: str) -> Optional[Workspace]:
        return db.query(Workspace).filter(Workspace.id == workspace_id).first()

    # ========================================
    # Members
    # ========================================

    @staticmethod
    def list_members(db: Session, workspace_id: str, team_member_id: Optional[str] = None):
        """(WorkspaceMember, TeamMember) pairs for a workspace"""
        query = (
            db.query(WorkspaceMember, TeamMember)
            .join(TeamMember, TeamMember.id == WorkspaceMember.team_member_id)
            .filter(WorkspaceMember.workspace_id == workspace_id)
        )
        if team_member_id:
            query = query.filter(WorkspaceMember.team_member_id == team_member_id)
        return query.order_by(WorkspaceMember.created_at).all()

    @staticmethod
    def get_team_member(db: Session, team_member_id: str) -> Optional[TeamMember]:
        return db.query(TeamMember).filter(TeamMember.id == team_member_id).first()

    @staticmethod
    def get_team_member_by_email(db: Session, email: str) -> Optional[TeamMember]:
        return db.query(TeamMember).filter(func.lower(TeamMember.email) == email.lower()).first()

    @staticmethod
    def get_membership(db: Session, workspace_id: str, team_member_id: str) -> Optional[WorkspaceMember]:
        return (
            db.query(WorkspaceMember)
            .filter(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.team_member_id == team_member_id,
            )
            .first()
        )

    @staticmethod
    def get_memberships(db: Session, team_member_id: str) -> list[WorkspaceMember]:
        return db.query(WorkspaceMember).filter(WorkspaceMember.team_member_id == team_member_id).all()

    @staticmethod
    def delete_membership(db: Session, membership: WorkspaceMember) -> None:
        db.delete(membership)
        db.commit()

    # ========================================
    # Invitations
    # ========================================

    @staticmethod
    def get_invitation_by_token(db: Session, token: str) -> Optional[WorkspaceInvitation]:
        return (
            db.query(WorkspaceInvitation)
            .options(joinedload(WorkspaceInvitation.workspace))
            .filter(WorkspaceInvitation.token == token)
            .first()
        )

    @staticmethod
    def get_invitation(db: Session, invitation_id: str, workspace_id: str) -> Optional[WorkspaceInvitation]:
        return (
            db.query(WorkspaceInvitation)
            .filter(
                WorkspaceInvitation.id == invitation_id,
                WorkspaceInvitation.workspace_id == workspace_id,
            )
            .first()
        )

    @staticmethod
    def get_pending_invitation(db: Session, workspace_id: str, email: str) -> Optional[WorkspaceInvitation]:
        return (
            db.query(WorkspaceInvitation)
            .filter(
                WorkspaceInvitation.workspace_id == workspace_id,
                func.lower(WorkspaceInvitation.email) == email.lower(),
                WorkspaceInvitation.status == "pending",
            )
            .first()
        )

    # ========================================
    # Availability
    # ========================================

    @staticmethod
    def list_availability(db: Session, team_member_id: str) -> list[TeamMemberAvailability]:
        return (
            db.query(TeamMemberAvailability)
            .filter(TeamMemberAvailability.team_member_id == team_member_id)
            .order_by(TeamMemberAvailability.day_of_week, TeamMemberAvailability.start_time)
            .all()
        )

    @staticmethod
    def get_availability(db: Session, availability_id: str, team_member_id: str) -> Optional[TeamMemberAvailability]:
        return (
            db.query(TeamMemberAvailability)
            .filter(
                TeamMemberAvailability.id == availability_id,
                TeamMemberAvailability.team_member_id == team_member_id,
            )
            .first()
        )

    @staticmethod
    def delete_availability(db: Session, availability: TeamMemberAvailability) -> None:
        db.delete(availability)
        db.commit()

    # ========================================
    # Service assignments
    # ========================================

    @staticmethod
    def list_assignments(db: Session, team_member_id: str, workspace_id: str) -> list[TeamMemberService]:
        return (
            db.query(TeamMemberService)
            .join(Service, Service.id == TeamMemberService.service_id)
            .options(joinedload(TeamMemberService.service))
            .filter(
                TeamMemberService.team_member_id == team_member_id,
                TeamMemberService.active.is_(True),
                Service.workspace_id == workspace_id,
            )
            .all()
        )

    @staticmethod
    def list_active_services(db: Session, workspace_id: str) -> list[Service]:
        return (
            db.query(Service)
            .filter(Service.workspace_id == workspace_id, Service.active.is_(True))
            .order_by(Service.name)
            .all()
        )

    @staticmethod
    def get_service_in_workspace(db: Session, service_id: str, workspace_id: str) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.id == service_id, Service.workspace_id == workspace_id)
            .first()
        )

    @staticmethod
    def get_assignment(db: Session, team_member_id: str, service_id: str) -> Optional[TeamMemberService]:
        return (
            db.query(TeamMemberService)
            .filter(
                TeamMemberService.team_member_id == team_member_id,
                TeamMemberService.service_id == service_id,
            )
            .first()
        )

    @staticmethod
    def get_assignment_by_id(db: Session, assignment_id: str, team_member_id: str) -> Optional[TeamMemberService]:
        return (
            db.query(TeamMemberService)
            .options(joinedload(TeamMemberService.service))
            .filter(
                TeamMemberService.id == assignment_id,
                TeamMemberService.team_member_id == team_member_id,
            )
            .first()
        )
