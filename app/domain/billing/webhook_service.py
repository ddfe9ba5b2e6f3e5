"""
Stripe webhook handling
Keeps local subscriptions, workspace billing status and Connect onboarding in sync with Stripe events
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Subscription
from ..usage.service import BILLABLE_STATUSES, USAGE_WINDOW_DAYS
from .repository import BillingRepository
from .subscription_service import find_seat_item, price_for_interval, subscription_items
from .stripe_service import StripeError, stripe_service

logger = logging.getLogger(__name__)


def _from_ts(value) -> Optional[datetime]:
    """Stripe unix timestamp to naive UTC datetime"""
    if not value:
        return None
    return datetime.utcfromtimestamp(int(value))


def _metadata_seats(metadata: dict) -> int:
    try:
        return int(metadata.get("additional_seats") or 0)
    except (TypeError, ValueError):
        return 0


def _first_item_period(stripe_subscription: dict) -> tuple[datetime, datetime]:
    now = datetime.utcnow()
    items = subscription_items(stripe_subscription)
    item = items[0] if items else {}
    start = _from_ts(item.get("current_period_start") or stripe_subscription.get("current_period_start"))
    end = _from_ts(item.get("current_period_end") or stripe_subscription.get("current_period_end"))
    return start or now, end or now + timedelta(days=USAGE_WINDOW_DAYS)


def _first_item_interval(stripe_subscription: dict) -> Optional[str]:
    items = subscription_items(stripe_subscription)
    if not items:
        return None
    plan = items[0].get("plan") or items[0].get("price", {}).get("recurring") or {}
    return plan.get("interval")


class StripeWebhookService:
    """Dispatches verified Stripe events to their handlers"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    async def handle_event(self, event: dict) -> None:
        event_type = event.get("type")
        data = (event.get("data") or {}).get("object") or {}
        logger.info(f"📥 Received Stripe webhook: {event_type}")

        if event_type == "checkout.session.completed":
            await self.handle_checkout_completed(data)
        elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
            await self.handle_subscription_updated(data)
        elif event_type == "customer.subscription.deleted":
            self.handle_subscription_deleted(data)
        elif event_type in ("invoice.paid", "invoice.payment_failed"):
            await self.handle_invoice_event(data)
        else:
            logger.info(f"ℹ️ Unhandled event type: {event_type}")

    async def handle_connect_event(self, event: dict) -> None:
        event_type = event.get("type")
        logger.info(f"📥 Received Stripe Connect webhook: {event_type}")
        if event_type == "account.updated":
            self.handle_account_updated((event.get("data") or {}).get("object") or {})
        else:
            logger.info(f"ℹ️ Unhandled Connect event type: {event_type}")

    # ========================================
    # Helpers
    # ========================================

    def _set_workspace_status(self, workspace_id: str, status: str) -> None:
        workspace = self.repo.get_workspace(self.db, workspace_id)
        if not workspace:
            logger.warning(f"⚠️ Workspace {workspace_id} not found for subscription status {status}")
            return
        self.repo.update_workspace(self.db, workspace, subscription_status=status)

    def _usage_window(self) -> dict:
        now = datetime.utcnow()
        return {"usage_billing_start": now, "usage_billing_end": now + timedelta(days=USAGE_WINDOW_DAYS)}

    # ========================================
    # Checkout
    # ========================================

    async def handle_checkout_completed(self, session: dict) -> None:
        metadata = session.get("metadata") or {}
        workspace_id = metadata.get("workspace_id")
        stripe_subscription_id = session.get("subscription")
        if not workspace_id or not stripe_subscription_id:
            logger.warning("⚠️ Checkout session missing workspace_id or subscription")
            return

        stripe_subscription = await stripe_service.get_subscription(stripe_subscription_id)
        status = stripe_subscription.get("status") or "incomplete"
        period_start, period_end = _first_item_period(stripe_subscription)

        values = {
            "workspace_id": workspace_id,
            "subscription_plan_id": metadata.get("plan_id"),
            "status": status,
            "trial_ends_at": _from_ts(stripe_subscription.get("trial_end")),
            "current_period_start": period_start,
            "current_period_end": period_end,
            "billing_interval": _first_item_interval(stripe_subscription),
            "additional_seats": _metadata_seats(metadata),
            "cancel_at_period_end": bool(stripe_subscription.get("cancel_at_period_end")),
        }
        if status in BILLABLE_STATUSES:
            values.update(self._usage_window())

        existing = self.repo.get_by_stripe_id(self.db, stripe_subscription_id)
        if existing:
            self.repo.update_subscription(self.db, existing, **values)
        else:
            self.repo.create_subscription(self.db, stripe_subscription_id=stripe_subscription_id, **values)
        logger.info(f"✅ Subscription {stripe_subscription_id} stored for workspace {workspace_id} ({status})")

        self._set_workspace_status(workspace_id, status)

        if metadata.get("is_billing_interval_change") == "true" and metadata.get("old_subscription_id"):
            await self._retire_old_subscription(metadata["old_subscription_id"])

    async def _retire_old_subscription(self, old_subscription_id: str) -> None:
        try:
            await stripe_service.update_subscription(old_subscription_id, cancel_at_period_end=True)
        except StripeError as e:
            logger.error(f"❌ Failed to cancel old subscription {old_subscription_id}: {e}")
            return

        old = self.repo.get_by_stripe_id(self.db, old_subscription_id)
        if old:
            self.repo.update_subscription(self.db, old, cancel_at_period_end=True)
        logger.info(f"🔄 Old subscription {old_subscription_id} set to cancel at period end")

    # ========================================
    # Subscription lifecycle
    # ========================================

    async def handle_subscription_updated(self, stripe_subscription: dict) -> None:
        subscription = self.repo.get_by_stripe_id(self.db, stripe_subscription.get("id"))
        if not subscription:
            logger.info(f"ℹ️ Subscription {stripe_subscription.get('id')} not tracked yet")
            return

        previous_status = subscription.status
        previous_interval = subscription.billing_interval
        status = stripe_subscription.get("status") or previous_status
        period_start, period_end = _first_item_period(stripe_subscription)
        interval = _first_item_interval(stripe_subscription) or previous_interval

        updates = {
            "status": status,
            "trial_ends_at": _from_ts(stripe_subscription.get("trial_end")),
            "current_period_start": period_start,
            "current_period_end": period_end,
            "billing_interval": interval,
            "cancel_at_period_end": bool(stripe_subscription.get("cancel_at_period_end")),
        }
        plan_id = (stripe_subscription.get("metadata") or {}).get("plan_id")
        if plan_id:
            updates["subscription_plan_id"] = plan_id
        if status == "active" and (not subscription.usage_billing_start or previous_status != "active"):
            updates.update(self._usage_window())

        subscription = self.repo.update_subscription(self.db, subscription, **updates)
        logger.info(f"✅ Subscription {subscription.stripe_subscription_id} synced ({status})")

        if previous_interval and interval != previous_interval and (subscription.additional_seats or 0) > 0:
            await self._move_seats_to_interval(subscription, stripe_subscription, interval)

        self._set_workspace_status(subscription.workspace_id, status)

    async def _move_seats_to_interval(
        self, subscription: Subscription, stripe_subscription: dict, interval: str
    ) -> None:
        seat_plan = self.repo.get_additional_seat_plan(self.db)
        if not seat_plan:
            logger.error("❌ Additional seat plan not found")
            return
        seat_item = find_seat_item(stripe_subscription, seat_plan)
        price_id = price_for_interval(seat_plan, interval)
        if not seat_item or not price_id:
            return
        try:
            await stripe_service.update_subscription(
                subscription.stripe_subscription_id,
                items=[{"id": seat_item["id"], "price": price_id, "quantity": subscription.additional_seats}],
            )
            logger.info(f"🔄 Seat item moved to {interval} price on {subscription.stripe_subscription_id}")
        except StripeError as e:
            logger.error(f"❌ Failed to update seat price on {subscription.stripe_subscription_id}: {e}")

    def handle_subscription_deleted(self, stripe_subscription: dict) -> None:
        subscription = self.repo.get_by_stripe_id(self.db, stripe_subscription.get("id"))
        if not subscription:
            return
        status = stripe_subscription.get("status") or "canceled"
        self.repo.update_subscription(self.db, subscription, status=status, cancel_at_period_end=False)
        self._set_workspace_status(subscription.workspace_id, "canceled")
        logger.info(f"🗑️ Subscription {subscription.stripe_subscription_id} deleted")

    async def handle_invoice_event(self, invoice: dict) -> None:
        stripe_subscription_id = invoice.get("subscription")
        if not stripe_subscription_id:
            return
        subscription = self.repo.get_by_stripe_id(self.db, stripe_subscription_id)
        if not subscription:
            return

        stripe_subscription = await stripe_service.get_subscription(stripe_subscription_id)
        status = stripe_subscription.get("status") or subscription.status
        self.repo.update_subscription(
            self.db,
            subscription,
            status=status,
            cancel_at_period_end=bool(stripe_subscription.get("cancel_at_period_end")),
        )
        self._set_workspace_status(subscription.workspace_id, status)
        logger.info(f"💰 Invoice event synced subscription {stripe_subscription_id} ({status})")

    # ========================================
    # Connect
    # ========================================

    def handle_account_updated(self, account: dict) -> None:
        workspace = self.repo.get_workspace_by_connect_account(self.db, account.get("id"))
        if not workspace:
            logger.warning(f"⚠️ No workspace for Connect account {account.get('id')}")
            return
        onboarding_complete = bool(account.get("charges_enabled"))
        if workspace.stripe_connect_onboarding_complete != onboarding_complete:
            self.repo.update_workspace(self.db, workspace, stripe_connect_onboarding_complete=onboarding_complete)
            logger.info(f"✅ Connect onboarding for workspace {workspace.id}: {onboarding_complete}")
