"""
Shared pytest fixtures

The app is imported after the environment below is in place: a throwaway
SQLite database, a known JWT secret and rate limiting switched off.
Tables are created and dropped around every test.
"""

import hashlib
import hmac
import os
import tempfile
import time
import uuid
from typing import Optional
from unittest.mock import AsyncMock, patch

import pytest

_db_dir = tempfile.mkdtemp(prefix="rzev_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["APP_URL"] = "http://localhost:3000"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_CONNECT_WEBHOOK_SECRET"] = "whsec_connect_test"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt as jose_jwt  # noqa: E402

from app.database import Base, SessionLocal, engine  # noqa: E402
from app.domain.billing.stripe_service import stripe_service  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Service,
    ServiceVariant,
    Subscription,
    SubscriptionPlan,
    TeamMember,
    Workspace,
    WorkspaceMember,
)

APPOINTMENT_NOTIFIERS = (
    "send_appointment_confirmation_notification",
    "send_appointment_cancellation_notification",
    "send_reschedule_request_notification",
    "send_reschedule_confirmation_notification",
    "send_reschedule_declined_notification",
    "send_team_member_assignment_notification",
)


def make_token(auth_user_id: str, email: str, **claims) -> str:
    payload = {
        "sub": auth_user_id,
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    return jose_jwt.encode(payload, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


def auth_headers(member: TeamMember) -> dict:
    return {"Authorization": f"Bearer {make_token(member.auth_user_id, member.email)}"}


def create_stripe_signature(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value as Stripe would send it"""
    ts = str(timestamp if timestamp is not None else int(time.time()))
    digest = hmac.new(secret.encode("utf-8"), ts.encode("utf-8") + b"." + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


# ============================================================================
# Database and client
# ============================================================================


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def notifications():
    """Appointment notifications are recorded instead of sent"""
    mocks = {name: AsyncMock(return_value={"email_sent": True, "sms_sent": False}) for name in APPOINTMENT_NOTIFIERS}
    patchers = [patch(f"app.domain.appointments.service.{name}", mock) for name, mock in mocks.items()]
    for patcher in patchers:
        patcher.start()
    yield mocks
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def stripe():
    """Stripe client with every API call replaced by an AsyncMock"""
    with patch.object(stripe_service, "api_key", "sk_test"), \
            patch.object(stripe_service, "create_customer", AsyncMock(return_value={"id": "cus_new"})), \
            patch.object(stripe_service, "create_checkout_session", AsyncMock(return_value={"id": "cs_1", "url": "https://checkout.stripe.com/cs_1"})), \
            patch.object(stripe_service, "create_billing_portal_session", AsyncMock(return_value={"url": "https://billing.stripe.com/p/1"})), \
            patch.object(stripe_service, "get_subscription", AsyncMock()), \
            patch.object(stripe_service, "update_subscription", AsyncMock(return_value={})), \
            patch.object(stripe_service, "get_price", AsyncMock(return_value={"unit_amount": 2900, "currency": "usd"})), \
            patch.object(stripe_service, "create_account", AsyncMock(return_value={"id": "acct_1"})), \
            patch.object(stripe_service, "create_account_link", AsyncMock(return_value={"url": "https://connect.stripe.com/setup/1"})):
        yield stripe_service


# ============================================================================
# Seed data
# ============================================================================


def create_member(db, email: str, name: str = None, linked: bool = True) -> TeamMember:
    first, _, last = (name or "").partition(" ")
    member = TeamMember(
        auth_user_id=str(uuid.uuid4()) if linked else None,
        email=email,
        first_name=first or None,
        last_name=last or None,
        display_name=name,
        auth_provider="email",
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def add_membership(db, workspace: Workspace, member: TeamMember, role: str = "staff", active: bool = True):
    membership = WorkspaceMember(workspace_id=workspace.id, team_member_id=member.id, role=role, active=active)
    db.add(membership)
    db.commit()
    return membership


@pytest.fixture
def owner(db):
    return create_member(db, "owner@example.com", "Olivia Owner")


@pytest.fixture
def staff(db):
    return create_member(db, "staff@example.com", "Sam Staff")


@pytest.fixture
def outsider(db):
    return create_member(db, "outsider@example.com", "Oscar Outsider")


@pytest.fixture
def workspace(db, owner, staff):
    ws = Workspace(
        name="Glow Studio",
        contact_email="hello@glow.example.com",
        contact_phone="+15555550100",
    )
    db.add(ws)
    db.commit()
    db.refresh(ws)
    add_membership(db, ws, owner, "owner")
    add_membership(db, ws, staff, "staff")
    return ws


@pytest.fixture
def service(db, workspace):
    svc = Service(workspace_id=workspace.id, name="Haircut", color="#ff0000", active=True)
    db.add(svc)
    db.commit()
    db.refresh(svc)
    return svc


@pytest.fixture
def variant(db, service):
    var = ServiceVariant(service_id=service.id, name="Short hair", duration=30, price=40.0, active=True)
    db.add(var)
    db.commit()
    db.refresh(var)
    return var


@pytest.fixture
def plan(db):
    p = SubscriptionPlan(
        name="Pro",
        stripe_product_id="prod_pro",
        stripe_price_id_monthly="price_pro_month",
        stripe_price_id_yearly="price_pro_year",
        included_seats=3,
        max_messages=100,
        max_emails=50,
        max_call_minutes=0,
        is_public=True,
        trial_period_days=14,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def seat_plan(db):
    p = SubscriptionPlan(
        name="Additional Seat",
        stripe_product_id="prod_seat",
        stripe_price_id_monthly="price_seat_month",
        stripe_price_id_yearly="price_seat_year",
        included_seats=0,
        is_public=False,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def create_subscription(db, workspace: Workspace, plan: SubscriptionPlan, **values) -> Subscription:
    values.setdefault("status", "active")
    values.setdefault("billing_interval", "month")
    subscription = Subscription(workspace_id=workspace.id, subscription_plan_id=plan.id, **values)
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription
