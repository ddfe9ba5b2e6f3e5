"""Billing router - FastAPI endpoints for subscriptions, Stripe checkout, Connect and webhooks"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ... import config
from ...auth import get_current_user
from ...database import get_db
from ...models import TeamMember
from ...webhook_security import verify_stripe_webhook
from .schemas import AddSeatsRequest, CheckoutRequest, WorkspaceBillingRequest
from .subscription_service import SubscriptionService
from .webhook_service import StripeWebhookService

logger = logging.getLogger(__name__)

subscriptions_router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])
router = APIRouter(prefix="/api/stripe", tags=["Stripe"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db)


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================


@subscriptions_router.get("/current")
async def get_current_subscription(
    workspaceId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Latest subscription for the workspace, with its plan"""
    return service.get_current_subscription(current_user, workspaceId)


@subscriptions_router.get("/plans")
async def get_plans(
    includePrivate: bool = Query(False),
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_plans(includePrivate)


# ============================================================================
# CHECKOUT AND SUBSCRIPTION MANAGEMENT
# ============================================================================


@router.post("/create-checkout")
async def create_checkout(
    data: CheckoutRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Create a checkout session, or switch plan on an existing subscription"""
    return await service.create_checkout(current_user, data)


@router.post("/add-seats")
async def add_seats(
    data: AddSeatsRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.add_seats(current_user, data)


@router.post("/cancel-subscription")
async def cancel_subscription(
    data: WorkspaceBillingRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.cancel_subscription(current_user, data)


@router.post("/customer-portal")
async def customer_portal(
    data: WorkspaceBillingRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.create_customer_portal(current_user, data)


# ============================================================================
# STRIPE CONNECT
# ============================================================================


@router.post("/connect/create-account")
async def connect_create_account(
    data: WorkspaceBillingRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.create_connect_account(current_user, data)


@router.post("/connect/create-account-link")
async def connect_create_account_link(
    data: WorkspaceBillingRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.create_connect_account_link(current_user, data)


@router.post("/connect/create-login-link")
async def connect_create_login_link(
    data: WorkspaceBillingRequest,
    current_user: TeamMember = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.create_connect_login_link(current_user, data)


# ============================================================================
# WEBHOOKS
# ============================================================================


@router.post("/webhooks")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """Subscription and invoice events for the platform account"""
    event = await verify_stripe_webhook(request, config.STRIPE_WEBHOOK_SECRET)

    try:
        await StripeWebhookService(db).handle_event(event)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Webhook handler failed for {event.get('type')}: {str(e)}")
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    return {"received": True}


@router.post("/webhooks/connect")
async def stripe_connect_webhook(request: Request, db: Session = Depends(get_db)):
    """Events from connected accounts"""
    event = await verify_stripe_webhook(request, config.STRIPE_CONNECT_WEBHOOK_SECRET)

    try:
        await StripeWebhookService(db).handle_connect_event(event)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Connect webhook handler failed for {event.get('type')}: {str(e)}")
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    return {"received": True}
