"""Usage router - FastAPI endpoints for usage tracking"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import TeamMember
from .schemas import UsageRecordRequest
from .service import UsageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/usage", tags=["Usage"])


def get_usage_service(db: Session = Depends(get_db)) -> UsageService:
    """Dependency injection for UsageService"""
    return UsageService(db)


@router.get("/current")
async def get_current_usage(
    workspaceId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    service: UsageService = Depends(get_usage_service),
):
    """Plan limits and usage for the current window (owner only)"""
    return service.get_current_usage(current_user, workspaceId)


@router.post("/record")
async def record_usage(
    data: UsageRecordRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: UsageService = Depends(get_usage_service),
):
    """Record metered usage; staff members are allowed"""
    return service.record_usage(current_user, data)
