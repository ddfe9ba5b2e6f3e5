"""Workspace membership checks shared by every domain router"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import Service, TeamMember, WorkspaceMember

logger = logging.getLogger(__name__)


@dataclass
class WorkspaceAccess:
    workspace_id: str
    role: str

    @property
    def is_owner(self) -> bool:
        return self.role == "owner"

    @property
    def is_staff(self) -> bool:
        return self.role == "staff"


def require_workspace_id(workspace_id: Optional[str]) -> str:
    if not workspace_id:
        raise HTTPException(status_code=400, detail="Workspace ID is required")
    return workspace_id


def validate_workspace_access(
    db: Session,
    user: TeamMember,
    workspace_id: Optional[str],
    required_role: Optional[str] = None,
) -> WorkspaceAccess:
    """
    Check the caller's membership in a workspace.

    Raises:
        HTTPException 400 when no workspace id is given, 403 when the caller
        is not an active member or lacks the required role
    """
    workspace_id = require_workspace_id(workspace_id)

    membership = (
        db.query(WorkspaceMember)
        .filter(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.team_member_id == user.id,
        )
        .first()
    )

    if not membership:
        logger.warning(f"🚫 {user.id} denied access to workspace {workspace_id}")
        raise HTTPException(status_code=403, detail="You don't have access to this workspace")

    if not membership.active:
        raise HTTPException(status_code=403, detail="Your account is inactive for this workspace")

    if required_role == "owner" and membership.role != "owner":
        raise HTTPException(
            status_code=403, detail="You need owner permissions to access this resource"
        )

    return WorkspaceAccess(workspace_id=workspace_id, role=membership.role)


def validate_service_access(
    db: Session,
    user: TeamMember,
    service_id: str,
    required_role: Optional[str] = None,
) -> tuple[Service, WorkspaceAccess]:
    """Resolve a service's workspace, then check the caller's membership in it"""
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")

    access = validate_workspace_access(db, user, service.workspace_id, required_role)
    return service, access


def get_primary_membership(db: Session, user: TeamMember) -> Optional[WorkspaceMember]:
    """The caller's first active membership, used by per-user onboarding endpoints"""
    return (
        db.query(WorkspaceMember)
        .filter(WorkspaceMember.team_member_id == user.id, WorkspaceMember.active.is_(True))
        .order_by(WorkspaceMember.created_at)
        .first()
    )
