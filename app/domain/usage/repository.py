"""Usage repository - Database operations for metered usage"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import UsageRecord


class UsageRepository:
    """Repository for usage record database operations"""

    @staticmethod
    def create_record(
        db: Session,
        workspace_id: str,
        resource_type: str,
        quantity: float,
        created_by: Optional[str] = None,
    ) -> UsageRecord:
        record = UsageRecord(
            workspace_id=workspace_id,
            resource_type=resource_type,
            quantity_used=quantity,
            recorded_at=datetime.utcnow(),
            created_by=created_by,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def sum_usage(
        db: Session,
        workspace_id: str,
        resource_type: str,
        start: datetime,
        end: datetime,
    ) -> float:
        """Total quantity recorded for a resource type within [start, end]"""
        total = (
            db.query(func.coalesce(func.sum(UsageRecord.quantity_used), 0))
            .filter(
                UsageRecord.workspace_id == workspace_id,
                UsageRecord.resource_type == resource_type,
                UsageRecord.recorded_at >= start,
                UsageRecord.recorded_at <= end,
            )
            .scalar()
        )
        return float(total or 0)
