"""Usage domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UsageRecordRequest(BaseModel):
    workspaceId: Optional[str] = None
    resourceType: Optional[str] = None
    quantity: Optional[float] = None


class UsageRecordResponse(BaseModel):
    id: str
    workspace_id: str
    resource_type: str
    quantity_used: float
    recorded_at: datetime
    created_by: Optional[str] = None

    class Config:
        from_attributes = True
