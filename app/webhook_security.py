"""
Stripe webhook verification

Signature parsing, HMAC comparison and the replay window are the Stripe
SDK's; this module maps its failures onto HTTP errors.
"""

import json
import logging
from typing import Optional

import stripe
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


async def verify_stripe_webhook(request: Request, secret: Optional[str]) -> dict:
    """
    Check the request's Stripe-Signature against secret and decode the event.

    Raises:
        HTTPException(400): "Invalid signature" when the secret is missing or the
            signature is wrong or stale, "Invalid JSON" when an authentic body
            does not parse.
    """
    raw_body = await request.body()

    if not secret:
        logger.error("❌ Stripe webhook rejected: webhook secret not configured")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        stripe.Webhook.construct_event(
            raw_body,
            request.headers.get("Stripe-Signature", ""),
            secret,
            tolerance=SIGNATURE_TOLERANCE_SECONDS,
        )
    except stripe.SignatureVerificationError as e:
        logger.warning(f"🚫 Stripe webhook rejected: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature") from None
    except ValueError:
        logger.error("❌ Invalid JSON payload")
        raise HTTPException(status_code=400, detail="Invalid JSON") from None

    # Handlers take the plain JSON body, not the SDK's Event wrapper
    return json.loads(raw_body)
