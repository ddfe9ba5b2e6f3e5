"""Workspace repository - Database operations for workspaces, onboarding and join requests"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import (
    Service,
    ServiceVariant,
    TeamMember,
    Workspace,
    WorkspaceInvitation,
    WorkspaceJoinRequest,
    WorkspaceMember,
)


class WorkspaceRepository:
    """Repository for workspace database operations"""

    @staticmethod
    def get_by_id(db: Session, workspace_id: str) -> Optional[Workspace]:
        return db.query(Workspace).filter(Workspace.id == workspace_id).first()

    @staticmethod
    def create(db: Session, **data) -> Workspace:
        workspace = Workspace(**data)
        db.add(workspace)
        db.commit()
        db.refresh(workspace)
        return workspace

    @staticmethod
    def update(db: Session, workspace: Workspace, **updates) -> Workspace:
        for key, value in updates.items():
            setattr(workspace, key, value)
        db.commit()
        db.refresh(workspace)
        return workspace

    @staticmethod
    def delete(db: Session, workspace: Workspace) -> None:
        db.delete(workspace)
        db.commit()

    @staticmethod
    def search(db: Session, query: str, limit: int) -> list[Workspace]:
        # Wildcards in the query match literally
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        return (
            db.query(Workspace)
            .filter(
                or_(
                    Workspace.name.ilike(pattern, escape="\\"),
                    Workspace.contact_email.ilike(pattern, escape="\\"),
                    Workspace.website.ilike(pattern, escape="\\"),
                )
            )
            .order_by(Workspace.name)
            .limit(limit)
            .all()
        )

    @staticmethod
    def has_bookable_service(db: Session, workspace_id: str) -> bool:
        """At least one active service with an active variant"""
        return (
            db.query(Service.id)
            .join(ServiceVariant, ServiceVariant.service_id == Service.id)
            .filter(
                Service.workspace_id == workspace_id,
                Service.active.is_(True),
                ServiceVariant.active.is_(True),
            )
            .first()
            is not None
        )

    # ========================================
    # Membership
    # ========================================

    @staticmethod
    def add_member(db: Session, workspace_id: str, team_member_id: str, role: str) -> WorkspaceMember:
        member = WorkspaceMember(
            workspace_id=workspace_id,
            team_member_id=team_member_id,
            role=role,
            active=True,
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

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
    def get_pending_invitation_for_email(db: Session, email: str) -> Optional[WorkspaceInvitation]:
        return (
            db.query(WorkspaceInvitation)
            .filter(
                func.lower(WorkspaceInvitation.email) == email.lower(),
                WorkspaceInvitation.status == "pending",
            )
            .order_by(WorkspaceInvitation.created_at.desc())
            .first()
        )

    @staticmethod
    def get_auth_linked_member_by_email(db: Session, email: str) -> Optional[TeamMember]:
        return (
            db.query(TeamMember)
            .filter(
                func.lower(TeamMember.email) == email.lower(),
                TeamMember.auth_user_id.isnot(None),
            )
            .first()
        )

    # ========================================
    # Join requests
    # ========================================

    @staticmethod
    def get_join_request(db: Session, request_id: str) -> Optional[WorkspaceJoinRequest]:
        return db.query(WorkspaceJoinRequest).filter(WorkspaceJoinRequest.id == request_id).first()

    @staticmethod
    def get_pending_join_request(db: Session, workspace_id: str, team_member_id: str) -> Optional[WorkspaceJoinRequest]:
        return (
            db.query(WorkspaceJoinRequest)
            .filter(
                WorkspaceJoinRequest.workspace_id == workspace_id,
                WorkspaceJoinRequest.team_member_id == team_member_id,
                WorkspaceJoinRequest.status == "pending",
            )
            .first()
        )

    @staticmethod
    def create_join_request(db: Session, **data) -> WorkspaceJoinRequest:
        join_request = WorkspaceJoinRequest(**data)
        db.add(join_request)
        db.commit()
        db.refresh(join_request)
        return join_request
