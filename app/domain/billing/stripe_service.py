"""Stripe service - Integration with the Stripe API through the stripe SDK"""

import logging
from typing import Any, Callable, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from ... import config

logger = logging.getLogger(__name__)

StripeError = stripe.StripeError


class StripeService:
    """Service for Stripe API operations"""

    def __init__(self):
        self.api_key = config.STRIPE_SECRET_KEY

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; billing endpoints will fail until configured")

    def is_available(self) -> bool:
        """Check if Stripe credentials are configured"""
        return bool(self.api_key)

    async def _call(self, operation: Callable[..., Any], *args, **params) -> Any:
        """Run a blocking SDK call off the event loop with this service's key"""
        if not self.api_key:
            raise StripeError("Stripe client not initialized")

        try:
            return await run_in_threadpool(operation, *args, api_key=self.api_key, **params)
        except StripeError as e:
            logger.error(f"❌ Stripe request failed: {e}")
            raise

    # ========================================
    # Customers
    # ========================================

    async def create_customer(
        self, name: Optional[str], email: Optional[str], metadata: Optional[dict] = None
    ):
        return await self._call(stripe.Customer.create, name=name, email=email, metadata=metadata or {})

    # ========================================
    # Checkout and billing portal
    # ========================================

    async def create_checkout_session(
        self,
        customer_id: str,
        line_items: list[dict],
        success_url: str,
        cancel_url: str,
        metadata: Optional[dict] = None,
        subscription_metadata: Optional[dict] = None,
        trial_period_days: Optional[int] = None,
    ):
        """Create a subscription-mode checkout session"""
        subscription_data: dict = {"metadata": subscription_metadata or {}}
        if trial_period_days:
            subscription_data["trial_period_days"] = trial_period_days

        return await self._call(
            stripe.checkout.Session.create,
            customer=customer_id,
            payment_method_types=["card"],
            line_items=line_items,
            mode="subscription",
            subscription_data=subscription_data,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata or {},
        )

    async def create_billing_portal_session(self, customer_id: str, return_url: str):
        return await self._call(stripe.billing_portal.Session.create, customer=customer_id, return_url=return_url)

    # ========================================
    # Subscriptions and prices
    # ========================================

    async def get_subscription(self, subscription_id: str):
        """Get subscription details"""
        return await self._call(stripe.Subscription.retrieve, subscription_id)

    async def update_subscription(self, subscription_id: str, **params):
        """Update a subscription (items, metadata, trial_end, cancel_at_period_end)"""
        return await self._call(stripe.Subscription.modify, subscription_id, **params)

    async def get_price(self, price_id: str):
        return await self._call(stripe.Price.retrieve, price_id)

    # ========================================
    # Connect
    # ========================================

    async def create_account(
        self, email: Optional[str], business_profile: dict, metadata: dict, account_type: str = "standard"
    ):
        return await self._call(
            stripe.Account.create,
            type=account_type,
            email=email,
            business_profile=business_profile,
            metadata=metadata,
        )

    async def create_account_link(self, account_id: str, refresh_url: str, return_url: str, link_type: str):
        return await self._call(
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type=link_type,
        )


# Singleton instance
stripe_service = StripeService()
