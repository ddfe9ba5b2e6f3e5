"""Subscriptions, checkout, seats, customer portal and Stripe Connect"""

import asyncio
import time
from unittest.mock import MagicMock, patch

import pytest
from conftest import auth_headers, create_subscription

from app.domain.billing.stripe_service import StripeError, StripeService


def _stripe_subscription(sub_id="sub_1", status="active", interval="month", **extra):
    return {
        "id": sub_id,
        "status": status,
        "items": {
            "data": [
                {
                    "id": "si_plan",
                    "quantity": 1,
                    "price": {"id": "price_pro_month", "product": "prod_pro"},
                    "plan": {"interval": interval},
                }
            ]
        },
        **extra,
    }


class TestStripeService:
    def _service(self):
        service = StripeService()
        service.api_key = "sk_test"
        return service

    def test_checkout_session_goes_through_sdk(self):
        with patch("stripe.checkout.Session.create", MagicMock(return_value={"id": "cs_1"})) as create:
            session = asyncio.run(
                self._service().create_checkout_session(
                    "cus_1",
                    [{"price": "price_pro_month", "quantity": 1}],
                    "https://app/ok",
                    "https://app/cancel",
                    subscription_metadata={"workspace_id": "ws-1"},
                    trial_period_days=14,
                )
            )

        assert session == {"id": "cs_1"}
        kwargs = create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test"
        assert kwargs["mode"] == "subscription"
        assert kwargs["subscription_data"] == {"metadata": {"workspace_id": "ws-1"}, "trial_period_days": 14}

    def test_subscription_update_passes_id(self):
        with patch("stripe.Subscription.modify", MagicMock(return_value={})) as modify:
            asyncio.run(self._service().update_subscription("sub_1", cancel_at_period_end=True))

        modify.assert_called_once_with("sub_1", api_key="sk_test", cancel_at_period_end=True)

    def test_sdk_errors_propagate(self):
        with patch("stripe.Price.retrieve", MagicMock(side_effect=StripeError("No such price"))):
            with pytest.raises(StripeError):
                asyncio.run(self._service().get_price("price_missing"))

    def test_unconfigured_raises(self):
        service = StripeService()
        service.api_key = None
        with pytest.raises(StripeError):
            asyncio.run(service.get_subscription("sub_1"))


class TestSubscriptions:
    def test_current_without_subscription(self, client, owner, workspace):
        response = client.get(
            "/api/subscriptions/current", params={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )
        assert response.json() == {"subscription": None}

    def test_current_includes_plan(self, client, db, owner, workspace, plan):
        create_subscription(db, workspace, plan, stripe_subscription_id="sub_1")

        response = client.get(
            "/api/subscriptions/current", params={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )

        subscription = response.json()["subscription"]
        assert subscription["subscription_plans"]["name"] == "Pro"
        assert subscription["trial_period_days"] == 14

    def test_current_owner_only(self, client, staff, workspace):
        response = client.get(
            "/api/subscriptions/current", params={"workspaceId": workspace.id}, headers=auth_headers(staff)
        )
        assert response.status_code == 403

    def test_plans_with_prices(self, client, owner, plan, seat_plan, stripe):
        response = client.get("/api/subscriptions/plans", headers=auth_headers(owner))

        plans = response.json()["plans"]
        assert [p["name"] for p in plans] == ["Pro"]
        assert plans[0]["monthly_price"] == 29.0
        assert plans[0]["currency"] == "usd"

    def test_private_plans_on_request(self, client, owner, plan, seat_plan, stripe):
        response = client.get(
            "/api/subscriptions/plans", params={"includePrivate": "true"}, headers=auth_headers(owner)
        )
        assert {p["name"] for p in response.json()["plans"]} == {"Pro", "Additional Seat"}

    def test_price_failure_leaves_price_empty(self, client, owner, plan, stripe):
        stripe.get_price.side_effect = StripeError("No such price")

        response = client.get("/api/subscriptions/plans", headers=auth_headers(owner))
        assert response.json()["plans"][0]["monthly_price"] is None


class TestCheckout:
    def test_stripe_not_configured_is_503(self, client, owner, workspace, plan):
        response = client.post(
            "/api/stripe/create-checkout",
            json={"planId": plan.id, "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )
        assert response.status_code == 503
        assert response.json()["detail"] == "Billing service temporarily unavailable"

    def test_first_checkout_gets_trial(self, client, db, owner, workspace, plan, stripe):
        response = client.post(
            "/api/stripe/create-checkout",
            json={"planId": plan.id, "workspaceId": workspace.id, "billingInterval": "monthly"},
            headers=auth_headers(owner),
        )

        assert response.json() == {"url": "https://checkout.stripe.com/cs_1", "sessionId": "cs_1"}
        kwargs = stripe.create_checkout_session.await_args.kwargs
        assert kwargs["customer_id"] == "cus_new"
        assert kwargs["line_items"] == [{"price": "price_pro_month", "quantity": 1}]
        assert kwargs["trial_period_days"] == 14
        assert kwargs["metadata"]["billing_interval"] == "month"
        db.refresh(workspace)
        assert workspace.stripe_customer_id == "cus_new"

    def test_returning_customer_gets_no_trial(self, client, db, owner, workspace, plan, stripe):
        workspace.stripe_customer_id = "cus_existing"
        db.commit()
        create_subscription(db, workspace, plan, status="canceled")

        client.post(
            "/api/stripe/create-checkout",
            json={"planId": plan.id, "workspaceId": workspace.id, "billingInterval": "yearly"},
            headers=auth_headers(owner),
        )

        kwargs = stripe.create_checkout_session.await_args.kwargs
        assert kwargs["customer_id"] == "cus_existing"
        assert kwargs["line_items"][0]["price"] == "price_pro_year"
        assert kwargs["trial_period_days"] is None
        stripe.create_customer.assert_not_awaited()

    def test_same_interval_updates_in_place(self, client, db, owner, workspace, plan, stripe):
        workspace.stripe_customer_id = "cus_existing"
        db.commit()
        subscription = create_subscription(db, workspace, plan, stripe_subscription_id="sub_1")
        stripe.get_subscription.return_value = _stripe_subscription()

        response = client.post(
            "/api/stripe/create-checkout",
            json={"planId": plan.id, "workspaceId": workspace.id, "billingInterval": "monthly"},
            headers=auth_headers(owner),
        )

        body = response.json()
        assert body["updated"] is True
        assert body["message"] == "Subscription updated successfully"
        args, kwargs = stripe.update_subscription.await_args
        assert args == ("sub_1",)
        assert kwargs["items"] == [{"id": "si_plan", "price": "price_pro_month"}]
        stripe.create_checkout_session.assert_not_awaited()
        db.refresh(subscription)
        assert subscription.billing_interval == "month"

    def test_interval_change_starts_checkout_with_seats(self, client, db, owner, workspace, plan, seat_plan, stripe):
        workspace.stripe_customer_id = "cus_existing"
        db.commit()
        create_subscription(db, workspace, plan, stripe_subscription_id="sub_1", additional_seats=2)
        trial_end = int(time.time()) + 3 * 86400 - 60
        stripe.get_subscription.return_value = _stripe_subscription(status="trialing", trial_end=trial_end)

        response = client.post(
            "/api/stripe/create-checkout",
            json={"planId": plan.id, "workspaceId": workspace.id, "billingInterval": "yearly"},
            headers=auth_headers(owner),
        )

        assert response.json()["sessionId"] == "cs_1"
        kwargs = stripe.create_checkout_session.await_args.kwargs
        assert kwargs["line_items"] == [
            {"price": "price_pro_year", "quantity": 1},
            {"price": "price_seat_year", "quantity": 2},
        ]
        assert kwargs["trial_period_days"] == 3
        assert kwargs["subscription_metadata"]["is_billing_interval_change"] == "true"
        assert kwargs["subscription_metadata"]["old_subscription_id"] == "sub_1"

    def test_update_failure_falls_back_to_checkout(self, client, db, owner, workspace, plan, stripe):
        workspace.stripe_customer_id = "cus_existing"
        db.commit()
        create_subscription(db, workspace, plan, stripe_subscription_id="sub_1")
        stripe.get_subscription.side_effect = StripeError("boom")

        response = client.post(
            "/api/stripe/create-checkout",
            json={"planId": plan.id, "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )

        assert response.json()["sessionId"] == "cs_1"

    def test_unknown_plan(self, client, owner, workspace, stripe):
        response = client.post(
            "/api/stripe/create-checkout",
            json={"planId": "nope", "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )
        assert response.status_code == 404

    def test_bad_interval_rejected(self, client, owner, workspace, plan, stripe):
        response = client.post(
            "/api/stripe/create-checkout",
            json={"planId": plan.id, "workspaceId": workspace.id, "billingInterval": "weekly"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422


class TestSeatsAndCancellation:
    def test_add_seats_increments_existing_item(self, client, db, owner, workspace, plan, seat_plan, stripe):
        subscription = create_subscription(db, workspace, plan, stripe_subscription_id="sub_1", additional_seats=1)
        stripe_sub = _stripe_subscription()
        stripe_sub["items"]["data"].append(
            {"id": "si_seat", "quantity": 1, "price": {"id": "price_seat_month", "product": "prod_seat"}}
        )
        stripe.get_subscription.return_value = stripe_sub

        response = client.post(
            "/api/stripe/add-seats",
            json={"workspaceId": workspace.id, "seatsToAdd": 2},
            headers=auth_headers(owner),
        )

        body = response.json()
        assert body["message"] == "Successfully added 2 additional seat(s)"
        assert body["additional_seats"] == 3
        assert stripe.update_subscription.await_args.kwargs["items"] == [{"id": "si_seat", "quantity": 3}]
        db.refresh(subscription)
        assert subscription.additional_seats == 3

    def test_add_seats_creates_item(self, client, db, owner, workspace, plan, seat_plan, stripe):
        create_subscription(db, workspace, plan, stripe_subscription_id="sub_1", billing_interval="year")
        stripe.get_subscription.return_value = _stripe_subscription(interval="year")

        client.post(
            "/api/stripe/add-seats",
            json={"workspaceId": workspace.id, "seatsToAdd": 1},
            headers=auth_headers(owner),
        )

        assert stripe.update_subscription.await_args.kwargs["items"] == [{"price": "price_seat_year", "quantity": 1}]

    def test_add_seats_needs_active_subscription(self, client, owner, workspace, stripe):
        response = client.post(
            "/api/stripe/add-seats",
            json={"workspaceId": workspace.id, "seatsToAdd": 1},
            headers=auth_headers(owner),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "No active subscription found"

    def test_seats_must_be_positive(self, client, owner, workspace, stripe):
        response = client.post(
            "/api/stripe/add-seats",
            json={"workspaceId": workspace.id, "seatsToAdd": 0},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422

    def test_cancel_at_period_end(self, client, db, owner, workspace, plan, stripe):
        subscription = create_subscription(db, workspace, plan, stripe_subscription_id="sub_1")

        response = client.post(
            "/api/stripe/cancel-subscription", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )

        assert response.json()["message"] == "Subscription marked for cancellation at the end of the current period"
        stripe.update_subscription.assert_awaited_once_with("sub_1", cancel_at_period_end=True)
        db.refresh(subscription)
        assert subscription.cancel_at_period_end is True

    def test_cancel_without_subscription(self, client, owner, workspace, stripe):
        response = client.post(
            "/api/stripe/cancel-subscription", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )
        assert response.status_code == 404

    def test_portal_requires_customer(self, client, owner, workspace, stripe):
        response = client.post(
            "/api/stripe/customer-portal", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )
        assert response.json()["detail"] == "No Stripe customer found for this workspace"

    def test_portal_url(self, client, db, owner, workspace, stripe):
        workspace.stripe_customer_id = "cus_1"
        db.commit()

        response = client.post(
            "/api/stripe/customer-portal", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )

        assert response.json() == {"url": "https://billing.stripe.com/p/1"}
        stripe.create_billing_portal_session.assert_awaited_once_with(
            "cus_1", "http://localhost:3000/dashboard/subscriptions"
        )


class TestConnect:
    def test_create_account(self, client, db, owner, workspace, stripe):
        response = client.post(
            "/api/stripe/connect/create-account", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )

        assert response.json() == {"accountId": "acct_1", "onboardingComplete": False}
        db.refresh(workspace)
        assert workspace.stripe_connect_account_id == "acct_1"

    def test_existing_account_returned(self, client, db, owner, workspace, stripe):
        workspace.stripe_connect_account_id = "acct_old"
        workspace.stripe_connect_onboarding_complete = True
        db.commit()

        response = client.post(
            "/api/stripe/connect/create-account", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )

        assert response.json() == {"accountId": "acct_old", "onboardingComplete": True}
        stripe.create_account.assert_not_awaited()

    def test_account_link_type(self, client, db, owner, workspace, stripe):
        workspace.stripe_connect_account_id = "acct_1"
        db.commit()

        client.post(
            "/api/stripe/connect/create-account-link", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )

        kwargs = stripe.create_account_link.await_args.kwargs
        assert kwargs["link_type"] == "account_onboarding"
        assert kwargs["return_url"] == "http://localhost:3000/dashboard/settings?tab=business&success=true"

    def test_account_link_without_account(self, client, owner, workspace, stripe):
        response = client.post(
            "/api/stripe/connect/create-account-link", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )
        assert response.json()["detail"] == "No Stripe Connect account found"

    def test_login_link_needs_onboarding(self, client, db, owner, workspace):
        workspace.stripe_connect_account_id = "acct_1"
        db.commit()

        response = client.post(
            "/api/stripe/connect/create-login-link", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )
        assert response.json()["detail"] == "Stripe Connect onboarding is not complete"

        workspace.stripe_connect_onboarding_complete = True
        db.commit()
        response = client.post(
            "/api/stripe/connect/create-login-link", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )
        assert response.json() == {"url": "https://dashboard.stripe.com/acct_1"}

    def test_staff_forbidden(self, client, staff, workspace, stripe):
        response = client.post(
            "/api/stripe/connect/create-account", json={"workspaceId": workspace.id}, headers=auth_headers(staff)
        )
        assert response.status_code == 403
