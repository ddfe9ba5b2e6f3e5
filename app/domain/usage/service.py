"""Usage service - Business logic for metered usage and plan limits"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Subscription, TeamMember, UsageRecord
from ...shared.access import require_workspace_id, validate_workspace_access
from ..billing.repository import BillingRepository
from .repository import UsageRepository
from .schemas import UsageRecordRequest, UsageRecordResponse

logger = logging.getLogger(__name__)

METERED_RESOURCE_TYPES = ("messages", "emails", "call_minutes")
USAGE_WINDOW_DAYS = 30
BILLABLE_STATUSES = ("active", "trialing")


class UsageService:
    """Service layer for usage tracking"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UsageRepository()
        self.billing_repo = BillingRepository()

    def get_current_usage(self, user: TeamMember, workspace_id: Optional[str]) -> dict:
        """Limits and consumption for the current usage window"""
        access = validate_workspace_access(self.db, user, workspace_id, "owner")

        subscription = self.billing_repo.get_latest_subscription(self.db, access.workspace_id)
        if not subscription:
            raise HTTPException(status_code=404, detail="No subscription found for this workspace")

        plan = subscription.plan
        included_seats = plan.included_seats if plan else 0
        max_messages = plan.max_messages if plan else 0
        max_emails = plan.max_emails if plan else 0
        max_call_minutes = plan.max_call_minutes if plan else 0

        usage = {"seats": 0, "messages": 0, "emails": 0, "call_minutes": 0}
        usage["seats"] = self.billing_repo.count_active_members(self.db, access.workspace_id)

        start = subscription.usage_billing_start
        end = subscription.usage_billing_end
        if start and end and datetime.utcnow() >= start:
            for resource_type in METERED_RESOURCE_TYPES:
                usage[resource_type] = self.repo.sum_usage(
                    self.db, access.workspace_id, resource_type, start, end
                )

        return {
            "subscription": {
                "id": subscription.id,
                "status": subscription.status,
                "trial_ends_at": subscription.trial_ends_at,
                "current_period_start": subscription.current_period_start,
                "current_period_end": subscription.current_period_end,
                "usage_billing_start": start,
                "usage_billing_end": end,
                "billing_interval": subscription.billing_interval,
                "cancel_at_period_end": subscription.cancel_at_period_end,
            },
            "plan": {
                "id": plan.id if plan else None,
                "name": plan.name if plan else None,
                "included_seats": included_seats,
                "max_messages": max_messages,
                "max_emails": max_emails,
                "max_call_minutes": max_call_minutes,
            },
            "limits": {
                "seats": included_seats + (subscription.additional_seats or 0),
                "messages": max_messages,
                "emails": max_emails,
                "call_minutes": max_call_minutes,
            },
            "usage": usage,
            "billing_period": {"start": start, "end": end},
        }

    def roll_usage_window(self, subscription: Subscription) -> Subscription:
        """Advance an expired usage window in 30-day steps until it covers now"""
        now = datetime.utcnow()
        start = subscription.usage_billing_start
        end = subscription.usage_billing_end
        if not start or not end or end >= now:
            return subscription

        step = timedelta(days=USAGE_WINDOW_DAYS)
        while end < now:
            start, end = end, end + step

        logger.info(f"🔄 Usage window for subscription {subscription.id} rolled to {start} - {end}")
        return self.billing_repo.update_subscription(
            self.db, subscription, usage_billing_start=start, usage_billing_end=end
        )

    def record_usage(self, user: TeamMember, data: UsageRecordRequest) -> dict:
        """Record usage against the plan, enforcing the per-window limit"""
        workspace_id = require_workspace_id(data.workspaceId)

        if not data.resourceType:
            raise HTTPException(status_code=400, detail="Resource type is required")

        if data.quantity is None or data.quantity <= 0:
            raise HTTPException(status_code=400, detail="Quantity must be a positive number")

        validate_workspace_access(self.db, user, workspace_id)

        resource_type = data.resourceType
        if resource_type not in METERED_RESOURCE_TYPES:
            raise HTTPException(status_code=400, detail="Invalid resource type")

        subscription = self.billing_repo.get_latest_subscription(self.db, workspace_id)
        if not subscription or subscription.status not in BILLABLE_STATUSES:
            raise HTTPException(status_code=400, detail="No active subscription found")

        subscription = self.roll_usage_window(subscription)

        if not subscription.usage_billing_start or not subscription.usage_billing_end:
            raise HTTPException(
                status_code=400, detail="No usage billing periods found for the subscription"
            )

        plan = subscription.plan
        limit = getattr(plan, f"max_{resource_type}", 0) if plan else 0
        if limit and limit > 0:
            current = self.repo.sum_usage(
                self.db,
                workspace_id,
                resource_type,
                subscription.usage_billing_start,
                subscription.usage_billing_end,
            )
            if current + data.quantity > limit:
                is_trialing = subscription.status == "trialing"
                label = resource_type.replace("_", " ")
                logger.warning(
                    f"⚠️ Workspace {workspace_id} reached {resource_type} limit ({current}/{limit})"
                )
                raise HTTPException(
                    status_code=403,
                    detail={
                        "error": (
                            f"Usage limit reached. Your trial plan has a limit of {limit} {label}."
                            if is_trialing
                            else f"Usage limit reached for {label}"
                        ),
                        "limitReached": True,
                        "currentUsage": current,
                        "limit": limit,
                        "isTrialing": is_trialing,
                    },
                )

        record = self.repo.create_record(
            self.db, workspace_id, resource_type, data.quantity, created_by=user.id
        )
        return {
            "success": True,
            "message": "Usage recorded successfully",
            "record": UsageRecordResponse.model_validate(record),
        }

    def record_internal(
        self,
        workspace_id: str,
        resource_type: str,
        quantity: float = 1,
        created_by: Optional[str] = None,
    ) -> Optional[UsageRecord]:
        """Record usage from outbound notifications; never raises"""
        try:
            return self.repo.create_record(
                self.db, workspace_id, resource_type, quantity, created_by=created_by
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error recording {resource_type} usage for workspace {workspace_id}: {e}")
            return None
