"""Billing repository - Database operations for plans and subscriptions"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Subscription, SubscriptionPlan, Workspace, WorkspaceMember

ADDITIONAL_SEAT_PLAN_PATTERN = "%Additional Seat%"


class BillingRepository:
    """Repository for billing database operations"""

    @staticmethod
    def get_workspace(db: Session, workspace_id: str) -> Optional[Workspace]:
        return db.query(Workspace).filter(Workspace.id == workspace_id).first()

    @staticmethod
    def get_workspace_by_connect_account(db: Session, account_id: str) -> Optional[Workspace]:
        return db.query(Workspace).filter(Workspace.stripe_connect_account_id == account_id).first()

    @staticmethod
    def update_workspace(db: Session, workspace: Workspace, **updates) -> Workspace:
        for key, value in updates.items():
            setattr(workspace, key, value)
        db.commit()
        db.refresh(workspace)
        return workspace

    # ========================================
    # Plans
    # ========================================

    @staticmethod
    def get_plan(db: Session, plan_id: str) -> Optional[SubscriptionPlan]:
        return db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()

    @staticmethod
    def get_plans(db: Session, include_private: bool = False) -> list[SubscriptionPlan]:
        """Plans ordered by included seats, public only unless include_private"""
        query = db.query(SubscriptionPlan)
        if not include_private:
            query = query.filter(SubscriptionPlan.is_public.is_(True))
        return query.order_by(SubscriptionPlan.included_seats).all()

    @staticmethod
    def get_additional_seat_plan(db: Session) -> Optional[SubscriptionPlan]:
        return (
            db.query(SubscriptionPlan)
            .filter(SubscriptionPlan.name.ilike(ADDITIONAL_SEAT_PLAN_PATTERN))
            .first()
        )

    # ========================================
    # Subscriptions
    # ========================================

    @staticmethod
    def get_latest_subscription(db: Session, workspace_id: str) -> Optional[Subscription]:
        """Most recently created subscription for a workspace"""
        return (
            db.query(Subscription)
            .filter(Subscription.workspace_id == workspace_id)
            .order_by(Subscription.created_at.desc())
            .first()
        )

    @staticmethod
    def has_any_subscription(db: Session, workspace_id: str) -> bool:
        return (
            db.query(Subscription.id).filter(Subscription.workspace_id == workspace_id).first()
            is not None
        )

    @staticmethod
    def get_by_stripe_id(db: Session, stripe_subscription_id: str) -> Optional[Subscription]:
        return (
            db.query(Subscription)
            .filter(Subscription.stripe_subscription_id == stripe_subscription_id)
            .first()
        )

    @staticmethod
    def create_subscription(db: Session, **data) -> Subscription:
        subscription = Subscription(**data)
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def update_subscription(db: Session, subscription: Subscription, **updates) -> Subscription:
        for key, value in updates.items():
            setattr(subscription, key, value)
        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def count_active_members(db: Session, workspace_id: str) -> int:
        """Seats in use"""
        return (
            db.query(WorkspaceMember)
            .filter(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.active.is_(True))
            .count()
        )
