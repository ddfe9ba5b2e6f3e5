"""Subscription service - Business logic for plans, checkout, seats and Stripe Connect"""

import logging
import math
import time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...models import Subscription, SubscriptionPlan, TeamMember, Workspace
from ...shared.access import validate_workspace_access
from ..usage.service import BILLABLE_STATUSES
from .repository import BillingRepository
from .schemas import (
    AddSeatsRequest,
    CheckoutRequest,
    PlanResponse,
    SubscriptionResponse,
    WorkspaceBillingRequest,
)
from .stripe_service import StripeError, stripe_service

logger = logging.getLogger(__name__)

INTERVALS = {"monthly": "month", "yearly": "year"}
SECONDS_PER_DAY = 60 * 60 * 24


def price_for_interval(plan: SubscriptionPlan, interval: str) -> Optional[str]:
    """Stripe price id for "month"/"year" (or "monthly"/"yearly")"""
    if interval in ("year", "yearly"):
        return plan.stripe_price_id_yearly
    return plan.stripe_price_id_monthly


def remaining_trial_days(stripe_subscription: dict) -> Optional[int]:
    trial_end = stripe_subscription.get("trial_end")
    if stripe_subscription.get("status") != "trialing" or not trial_end:
        return None
    remaining = int(trial_end) - int(time.time())
    if remaining <= 0:
        return None
    return math.ceil(remaining / SECONDS_PER_DAY)


def subscription_items(stripe_subscription: dict) -> list[dict]:
    return (stripe_subscription.get("items") or {}).get("data") or []


def find_seat_item(stripe_subscription: dict, seat_plan: SubscriptionPlan) -> Optional[dict]:
    for item in subscription_items(stripe_subscription):
        if (item.get("price") or {}).get("product") == seat_plan.stripe_product_id:
            return item
    return None


class SubscriptionService:
    """Service for subscription management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def _require_stripe(self) -> None:
        if not stripe_service.is_available():
            raise HTTPException(status_code=503, detail="Billing service temporarily unavailable")

    def _get_workspace(self, workspace_id: str) -> Workspace:
        workspace = self.repo.get_workspace(self.db, workspace_id)
        if not workspace:
            raise HTTPException(status_code=404, detail="Workspace not found")
        return workspace

    def _checkout_urls(self) -> tuple[str, str]:
        return (
            f"{config.APP_URL}/dashboard/subscriptions?checkout_success=true",
            f"{config.APP_URL}/dashboard/subscriptions",
        )

    # ============================================
    # Plans and current subscription
    # ============================================

    def get_current_subscription(self, user: TeamMember, workspace_id: Optional[str]) -> dict:
        access = validate_workspace_access(self.db, user, workspace_id, "owner")
        subscription = self.repo.get_latest_subscription(self.db, access.workspace_id)
        if not subscription:
            return {"subscription": None}

        response = SubscriptionResponse.model_validate(subscription)
        response.trial_period_days = subscription.plan.trial_period_days if subscription.plan else None
        return {"subscription": response}

    async def get_plans(self, include_private: bool = False) -> dict:
        """Plans with their Stripe prices; price lookup failures leave the price empty"""
        plans = self.repo.get_plans(self.db, include_private)
        lookup_prices = stripe_service.is_available()
        if not lookup_prices:
            logger.warning("⚠️ Stripe not configured; returning plans without prices")

        results = []
        for plan in plans:
            entry = PlanResponse.model_validate(plan).model_dump()
            entry.update({"monthly_price": None, "yearly_price": None, "currency": "usd"})

            for key, price_id in (
                ("monthly_price", plan.stripe_price_id_monthly),
                ("yearly_price", plan.stripe_price_id_yearly),
            ):
                if not (lookup_prices and price_id):
                    continue
                try:
                    price = await stripe_service.get_price(price_id)
                except StripeError as e:
                    logger.error(f"❌ Failed to fetch price {price_id} for plan {plan.id}: {e}")
                    continue
                unit_amount = price.get("unit_amount")
                entry[key] = unit_amount / 100 if unit_amount else None
                entry["currency"] = price.get("currency") or "usd"

            results.append(entry)

        return {"plans": results}

    # ============================================
    # Checkout
    # ============================================

    async def _ensure_customer(self, workspace: Workspace) -> str:
        if workspace.stripe_customer_id:
            return workspace.stripe_customer_id

        try:
            customer = await stripe_service.create_customer(
                name=workspace.name,
                email=workspace.contact_email,
                metadata={"workspace_id": workspace.id},
            )
        except StripeError as e:
            logger.error(f"❌ Failed to create Stripe customer for workspace {workspace.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create Stripe customer")

        self.repo.update_workspace(self.db, workspace, stripe_customer_id=customer["id"])
        logger.info(f"✅ Created Stripe customer {customer['id']} for workspace {workspace.id}")
        return customer["id"]

    async def _update_plan_in_place(
        self,
        current: Subscription,
        stripe_subscription: dict,
        plan: SubscriptionPlan,
        price_id: str,
        interval: str,
        workspace_id: str,
    ) -> dict:
        items = subscription_items(stripe_subscription)
        if not items:
            raise StripeError("No subscription item found")

        params: dict = {
            "items": [{"id": items[0]["id"], "price": price_id}],
            "metadata": {"workspace_id": workspace_id, "plan_id": plan.id},
        }
        if stripe_subscription.get("status") == "trialing":
            trial_end = stripe_subscription.get("trial_end")
            params["trial_end"] = trial_end if trial_end and int(trial_end) > int(time.time()) else "now"

        await stripe_service.update_subscription(stripe_subscription["id"], **params)
        current = self.repo.update_subscription(
            self.db, current, subscription_plan_id=plan.id, billing_interval=interval
        )
        logger.info(f"✅ Subscription {current.stripe_subscription_id} moved to plan {plan.id}")

        return {
            "success": True,
            "updated": True,
            "subscription": SubscriptionResponse.model_validate(current),
            "message": "Subscription updated successfully",
        }

    async def _interval_change_checkout(
        self,
        current: Subscription,
        stripe_subscription: dict,
        plan: SubscriptionPlan,
        price_id: str,
        interval: str,
        workspace_id: str,
        customer_id: str,
    ) -> dict:
        """A new subscription on the new interval; the old one is cancelled once checkout completes"""
        line_items = [{"price": price_id, "quantity": 1}]
        additional_seats = current.additional_seats or 0
        change_metadata = {
            "workspace_id": workspace_id,
            "plan_id": plan.id,
            "is_billing_interval_change": "true",
            "old_subscription_id": current.stripe_subscription_id,
        }

        if additional_seats > 0:
            seat_plan = self.repo.get_additional_seat_plan(self.db)
            seat_price_id = price_for_interval(seat_plan, interval) if seat_plan else None
            if not seat_price_id:
                raise HTTPException(
                    status_code=400,
                    detail=f"No price found for additional seats with billing interval: {interval}",
                )
            line_items.append({"price": seat_price_id, "quantity": additional_seats})
            change_metadata["additional_seats"] = additional_seats

        success_url, cancel_url = self._checkout_urls()
        session = await stripe_service.create_checkout_session(
            customer_id=customer_id,
            line_items=line_items,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={**change_metadata, "billing_interval": interval},
            subscription_metadata=change_metadata,
            trial_period_days=remaining_trial_days(stripe_subscription),
        )
        logger.info(f"🔄 Interval change checkout {session.get('id')} for workspace {workspace_id}")
        return {"url": session.get("url"), "sessionId": session.get("id")}

    async def create_checkout(self, user: TeamMember, data: CheckoutRequest) -> dict:
        """Start a subscription checkout, or change plan on the current subscription"""
        access = validate_workspace_access(self.db, user, data.workspaceId, "owner")
        self._require_stripe()

        if not data.planId:
            raise HTTPException(status_code=400, detail="Plan ID is required")
        plan = self.repo.get_plan(self.db, data.planId)
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")

        price_id = price_for_interval(plan, data.billingInterval)
        if not price_id:
            raise HTTPException(status_code=400, detail=f"No {data.billingInterval} price found for this plan")

        workspace = self._get_workspace(access.workspace_id)
        customer_id = await self._ensure_customer(workspace)
        interval = INTERVALS[data.billingInterval]

        current = self.repo.get_latest_subscription(self.db, workspace.id)
        if current and current.stripe_subscription_id:
            try:
                stripe_subscription = await stripe_service.get_subscription(current.stripe_subscription_id)
                if stripe_subscription.get("status") in BILLABLE_STATUSES:
                    if current.billing_interval == interval:
                        return await self._update_plan_in_place(
                            current, stripe_subscription, plan, price_id, interval, workspace.id
                        )
                    return await self._interval_change_checkout(
                        current, stripe_subscription, plan, price_id, interval, workspace.id, customer_id
                    )
            except StripeError as e:
                logger.error(f"❌ Error updating existing subscription, falling back to checkout: {e}")

        is_first_time = not self.repo.has_any_subscription(self.db, workspace.id)
        success_url, cancel_url = self._checkout_urls()
        try:
            session = await stripe_service.create_checkout_session(
                customer_id=customer_id,
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"workspace_id": workspace.id, "plan_id": plan.id, "billing_interval": interval},
                subscription_metadata={"workspace_id": workspace.id, "plan_id": plan.id},
                trial_period_days=plan.trial_period_days if is_first_time else None,
            )
        except StripeError as e:
            logger.error(f"Failed to create checkout session for workspace {workspace.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create checkout session")

        logger.info(f"✅ Created checkout session for workspace {workspace.id}: {session.get('id')}")
        return {"url": session.get("url"), "sessionId": session.get("id")}

    # ============================================
    # Seats and cancellation
    # ============================================

    async def add_seats(self, user: TeamMember, data: AddSeatsRequest) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId, "owner")
        self._require_stripe()

        subscription = self.repo.get_latest_subscription(self.db, access.workspace_id)
        if (
            not subscription
            or not subscription.stripe_subscription_id
            or subscription.status not in BILLABLE_STATUSES
        ):
            raise HTTPException(status_code=400, detail="No active subscription found")

        seat_plan = self.repo.get_additional_seat_plan(self.db)
        if not seat_plan:
            raise HTTPException(status_code=500, detail="Failed to fetch additional seat plan")

        interval = subscription.billing_interval or "month"
        price_id = price_for_interval(seat_plan, interval)
        if not price_id:
            raise HTTPException(
                status_code=400,
                detail=f"No price found for additional seats with billing interval: {interval}",
            )

        try:
            stripe_subscription = await stripe_service.get_subscription(subscription.stripe_subscription_id)
            seat_item = find_seat_item(stripe_subscription, seat_plan)
            if seat_item:
                item = {"id": seat_item["id"], "quantity": int(seat_item.get("quantity") or 0) + data.seatsToAdd}
            else:
                item = {"price": price_id, "quantity": data.seatsToAdd}
            await stripe_service.update_subscription(subscription.stripe_subscription_id, items=[item])
        except StripeError as e:
            logger.error(f"❌ Error adding seats to {subscription.stripe_subscription_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to add seats")

        new_total = (subscription.additional_seats or 0) + data.seatsToAdd
        self.repo.update_subscription(self.db, subscription, additional_seats=new_total)
        logger.info(f"✅ Workspace {access.workspace_id} now has {new_total} additional seat(s)")

        return {
            "success": True,
            "message": f"Successfully added {data.seatsToAdd} additional seat(s)",
            "additional_seats": new_total,
        }

    async def cancel_subscription(self, user: TeamMember, data: WorkspaceBillingRequest) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId, "owner")
        self._require_stripe()

        subscription = self.repo.get_latest_subscription(self.db, access.workspace_id)
        if (
            not subscription
            or not subscription.stripe_subscription_id
            or subscription.status not in BILLABLE_STATUSES
        ):
            raise HTTPException(status_code=404, detail="No active subscription found")

        try:
            await stripe_service.update_subscription(
                subscription.stripe_subscription_id, cancel_at_period_end=True
            )
        except StripeError as e:
            logger.error(f"Failed to cancel subscription {subscription.stripe_subscription_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to cancel subscription")

        self.repo.update_subscription(self.db, subscription, cancel_at_period_end=True)
        logger.info(f"✅ Subscription {subscription.stripe_subscription_id} set to cancel at period end")
        return {
            "success": True,
            "message": "Subscription marked for cancellation at the end of the current period",
        }

    async def create_customer_portal(self, user: TeamMember, data: WorkspaceBillingRequest) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId, "owner")
        self._require_stripe()

        workspace = self._get_workspace(access.workspace_id)
        if not workspace.stripe_customer_id:
            raise HTTPException(status_code=400, detail="No Stripe customer found for this workspace")

        try:
            session = await stripe_service.create_billing_portal_session(
                workspace.stripe_customer_id, f"{config.APP_URL}/dashboard/subscriptions"
            )
        except StripeError as e:
            logger.error(f"Failed to create billing portal session for {workspace.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create customer portal session")

        return {"url": session.get("url")}

    # ============================================
    # Stripe Connect
    # ============================================

    async def create_connect_account(self, user: TeamMember, data: WorkspaceBillingRequest) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId, "owner")
        self._require_stripe()

        workspace = self._get_workspace(access.workspace_id)
        if workspace.stripe_connect_account_id:
            return {
                "accountId": workspace.stripe_connect_account_id,
                "onboardingComplete": bool(workspace.stripe_connect_onboarding_complete),
            }

        try:
            account = await stripe_service.create_account(
                email=workspace.contact_email,
                business_profile={"name": workspace.name, "url": workspace.website},
                metadata={"workspace_id": workspace.id},
            )
        except StripeError as e:
            logger.error(f"Failed to create Connect account for {workspace.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create Connect account")

        self.repo.update_workspace(
            self.db,
            workspace,
            stripe_connect_account_id=account["id"],
            stripe_connect_onboarding_complete=False,
        )
        logger.info(f"✅ Connect account {account['id']} created for workspace {workspace.id}")
        return {"accountId": account["id"], "onboardingComplete": False}

    async def create_connect_account_link(self, user: TeamMember, data: WorkspaceBillingRequest) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId, "owner")
        self._require_stripe()

        workspace = self._get_workspace(access.workspace_id)
        if not workspace.stripe_connect_account_id:
            raise HTTPException(status_code=400, detail="No Stripe Connect account found")

        settings_url = f"{config.APP_URL}/dashboard/settings?tab=business"
        link_type = "account_update" if workspace.stripe_connect_onboarding_complete else "account_onboarding"
        try:
            link = await stripe_service.create_account_link(
                workspace.stripe_connect_account_id,
                refresh_url=f"{settings_url}&refresh=true",
                return_url=f"{settings_url}&success=true",
                link_type=link_type,
            )
        except StripeError as e:
            logger.error(f"Failed to create account link for {workspace.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create account link")

        return {"url": link.get("url")}

    def create_connect_login_link(self, user: TeamMember, data: WorkspaceBillingRequest) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId, "owner")

        workspace = self._get_workspace(access.workspace_id)
        if not workspace.stripe_connect_account_id:
            raise HTTPException(status_code=400, detail="No Stripe Connect account found")
        if not workspace.stripe_connect_onboarding_complete:
            raise HTTPException(status_code=400, detail="Stripe Connect onboarding is not complete")

        return {"url": f"https://dashboard.stripe.com/{workspace.stripe_connect_account_id}"}
